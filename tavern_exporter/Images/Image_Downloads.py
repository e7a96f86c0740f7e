# Image_Downloads.py
# Description: Bulk download of selected chat images to a local directory
#
# Imports
import asyncio
import io
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Awaitable, Callable, List, Optional, Sequence, Set, Union
#
# 3rd-Party Imports
from loguru import logger
from PIL import Image
#
# Local Imports
from ..Constants import IMAGE_DOWNLOAD_BATCH_SIZE, IMAGE_DOWNLOAD_BATCH_DELAY_S
from ..tavern_api.client import TavernAPIClient
from ..tavern_api.exceptions import TavernAPIError
from ..tavern_api.schemas import ImageRecord
#
########################################################################################################################
#
# Functions:

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9]")


@dataclass
class DownloadResult:
    url: str
    filename: str
    success: bool
    path: Optional[Path] = None
    error: Optional[str] = None


@dataclass
class DownloadSummary:
    results: List[DownloadResult] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def total(self) -> int:
        return len(self.results)


def image_download_filename(image: ImageRecord) -> str:
    """`{caption as [A-Za-z0-9_], 30 chars}_{YYYY-MM-DD}.jpg`"""
    stem = _UNSAFE_CHARS.sub("_", image.message or "")[:30]
    day = datetime.fromtimestamp(image.timestamp_ms / 1000.0, tz=timezone.utc).strftime("%Y-%m-%d")
    return f"{stem}_{day}.jpg"


def _unique_path(dest_dir: Path, filename: str, taken: Set[str]) -> Path:
    candidate = dest_dir / filename
    stem, suffix = candidate.stem, candidate.suffix
    counter = 2
    while candidate.name in taken or candidate.exists():
        candidate = dest_dir / f"{stem}_{counter}{suffix}"
        counter += 1
    taken.add(candidate.name)
    return candidate


def verify_image_bytes(data: bytes) -> None:
    """Raises ValueError if `data` is not a decodable image."""
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.verify()
    except (OSError, SyntaxError) as e:
        raise ValueError(f"Not a valid image: {e}") from e


async def _download_one(client: TavernAPIClient, image: ImageRecord, path: Path) -> DownloadResult:
    try:
        data = await client.fetch_bytes(image.url)
        verify_image_bytes(data)
        path.write_bytes(data)
    except (TavernAPIError, ValueError, OSError) as e:
        logger.warning(f"Failed to download {image.url}: {e}")
        return DownloadResult(image.url, path.name, False, error=str(e))
    logger.debug(f"Saved {image.url} -> {path}")
    return DownloadResult(image.url, path.name, True, path=path)


async def download_images(
    client: TavernAPIClient,
    images: Sequence[ImageRecord],
    dest_dir: Union[str, Path],
    batch_size: int = IMAGE_DOWNLOAD_BATCH_SIZE,
    batch_delay_s: float = IMAGE_DOWNLOAD_BATCH_DELAY_S,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    progress: Optional[Callable[[int, int], None]] = None,
) -> DownloadSummary:
    """
    Downloads `images` into `dest_dir` in groups of `batch_size`, pausing between groups.

    Character portraits are never downloaded. A failed item is recorded and
    the run carries on.
    """
    dest = Path(dest_dir).expanduser()
    dest.mkdir(parents=True, exist_ok=True)
    wanted = [image for image in images if not image.is_character_photo]
    summary = DownloadSummary()
    if not wanted:
        return summary

    taken: Set[str] = set()
    total = len(wanted)
    logger.info(f"Downloading {total} image(s) to {dest}")
    for start in range(0, total, batch_size):
        group = wanted[start:start + batch_size]
        paths = [_unique_path(dest, image_download_filename(image), taken) for image in group]
        results = await asyncio.gather(*(_download_one(client, image, path) for image, path in zip(group, paths)))
        summary.results.extend(results)
        if progress:
            progress(len(summary.results), total)
        if start + batch_size < total:
            await sleep(batch_delay_s)

    logger.info(f"Image download finished: {summary.succeeded} succeeded, {summary.failed} failed")
    return summary

#
# End of Image_Downloads.py
########################################################################################################################
