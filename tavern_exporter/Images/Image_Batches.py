# Image_Batches.py
# Description: Groups neighbouring generated images that came out of the same generation request
#
# Imports
from typing import List, Sequence
#
# 3rd-Party Imports
#
# Local Imports
from ..Constants import BATCH_TIME_WINDOW_MS, BATCH_SIZE_EXACT
from ..tavern_api.schemas import ImageRecord
#
########################################################################################################################
#
# Functions:

_MISSING = object()


def _same_batch(current: ImageRecord, other: ImageRecord) -> bool:
    if not other.text_to_image:
        return False
    if other.prompt != current.prompt:
        return False
    current_seed = current.text_to_image.get("seed", _MISSING)
    same_seed = current_seed is not _MISSING and other.text_to_image.get("seed", _MISSING) == current_seed
    close = abs(current.timestamp_ms - other.timestamp_ms) <= BATCH_TIME_WINDOW_MS
    return same_seed or close


def find_batch_images(index: int, images: Sequence[ImageRecord]) -> List[ImageRecord]:
    """
    The comparison batch containing `images[index]`.

    Neighbours are collected outward from the target while they share its
    prompt and either its seed or a timestamp within 2 s. Only a run of
    exactly two is returned as a batch; anything else yields the target alone.
    An out-of-range index yields an empty list.
    """
    if index < 0 or index >= len(images):
        return []
    current = images[index]
    if not current.text_to_image:
        return [current]

    batch = [current]
    for i in range(index - 1, -1, -1):
        if not _same_batch(current, images[i]):
            break
        batch.insert(0, images[i])
    for i in range(index + 1, len(images)):
        if not _same_batch(current, images[i]):
            break
        batch.append(images[i])

    return batch if len(batch) == BATCH_SIZE_EXACT else [current]

#
# End of Image_Batches.py
########################################################################################################################
