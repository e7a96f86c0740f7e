# Image_Extraction.py
# Description: Builds the ordered, de-duplicated list of images referenced by a chat
#
# Imports
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple
#
# 3rd-Party Imports
from loguru import logger
#
# Local Imports
from ..Constants import (
    PRIMARY_IMAGE_FIELD, IMAGE_EXTENSIONS, THUMBNAIL_MARKERS, KNOWN_IMAGE_ARRAY_FIELDS, IMAGE_OBJECT_URL_KEYS,
    SOURCE_CHARACTER_FOREGROUND, SOURCE_CHARACTER_BACKGROUND, GENERATED_IMAGE_CAPTION, UNKNOWN_MODEL,
    CAPTION_MAX_CHARS,
)
from ..tavern_api.schemas import ChatMessage, CharacterRef, ImageRecord
from ..tavern_api.utils import normalize_url
#
########################################################################################################################
#
# Functions:

# (url, provenance) pairs produced by a rule
Candidate = Tuple[str, str]


def is_thumbnail(url: str) -> bool:
    return any(marker in url for marker in THUMBNAIL_MARKERS)


def looks_like_image_url(value: Any) -> bool:
    if not isinstance(value, str) or not value.startswith("http"):
        return False
    lowered = value.lower()
    return any(ext in lowered for ext in IMAGE_EXTENSIONS)


@dataclass(frozen=True)
class ImageFieldRule:
    """
    One rule for pulling image URLs out of a generation payload.

    `collect` yields (url, provenance) candidates. `drop_thumbnails` filters
    resized variants; `skip_primary` drops candidates whose normalized URL is
    the payload's primary image.
    """
    label: str
    collect: Callable[[Dict[str, Any]], Iterable[Candidate]]
    drop_thumbnails: bool = True
    skip_primary: bool = False


def _collect_primary(payload: Dict[str, Any]) -> Iterator[Candidate]:
    url = payload.get(PRIMARY_IMAGE_FIELD)
    if isinstance(url, str) and url:
        yield url, f"text_to_image.{PRIMARY_IMAGE_FIELD}"


def _collect_field_scan(payload: Dict[str, Any]) -> Iterator[Candidate]:
    for key, value in payload.items():
        if key == PRIMARY_IMAGE_FIELD:
            continue
        if isinstance(value, str):
            if looks_like_image_url(value):
                yield value, f"text_to_image.{key}"
        elif isinstance(value, list):
            for j, item in enumerate(value):
                if isinstance(item, str):
                    if looks_like_image_url(item):
                        yield item, f"text_to_image.{key}[{j}]"
                elif isinstance(item, dict):
                    for sub_key, sub_value in item.items():
                        if looks_like_image_url(sub_value):
                            yield sub_value, f"text_to_image.{key}[{j}].{sub_key}"


def _first_object_url(item: Dict[str, Any]) -> Optional[str]:
    for key in IMAGE_OBJECT_URL_KEYS:
        value = item.get(key)
        if value:
            return value if isinstance(value, str) else None
    return None


def _collect_known_arrays(payload: Dict[str, Any]) -> Iterator[Candidate]:
    for field_name in KNOWN_IMAGE_ARRAY_FIELDS:
        entries = payload.get(field_name)
        if not isinstance(entries, list):
            continue
        for item in entries:
            url = item if isinstance(item, str) else _first_object_url(item) if isinstance(item, dict) else None
            if url and url.startswith("http"):
                yield url, f"text_to_image.{field_name}"


# Evaluated in order; earlier rules win during de-duplication
PAYLOAD_RULES: Tuple[ImageFieldRule, ...] = (
    ImageFieldRule("primary", _collect_primary, drop_thumbnails=False),
    ImageFieldRule("field_scan", _collect_field_scan, skip_primary=True),
    ImageFieldRule("known_arrays", _collect_known_arrays),
)


def message_caption(message: ChatMessage) -> str:
    if message.text:
        return message.text[:CAPTION_MAX_CHARS] + "..."
    return GENERATED_IMAGE_CAPTION


def payload_model(payload: Dict[str, Any]) -> str:
    return payload.get("model_display_name") or payload.get("model") or UNKNOWN_MODEL


def extract_character_photos(characters: Sequence[CharacterRef], timestamp_ms: int) -> List[ImageRecord]:
    """Portrait and background photos of every chat character, in character order."""
    records = []
    for character in characters:
        for urls, caption, source in (
            (character.foreground_photo_urls, "Character Photo", SOURCE_CHARACTER_FOREGROUND),
            (character.background_photo_urls, "Background Photo", SOURCE_CHARACTER_BACKGROUND),
        ):
            for j, url in enumerate(urls):
                if url and url.startswith("http"):
                    records.append(ImageRecord(
                        url=url, message=f"{caption} {j + 1}", timestamp_ms=timestamp_ms,
                        source=source, model=caption,
                    ))
    return records


def extract_message_images(message: ChatMessage,
                           rules: Sequence[ImageFieldRule] = PAYLOAD_RULES) -> List[ImageRecord]:
    """Every candidate image of one message, before de-duplication."""
    payload = message.text_to_image
    if not payload:
        return []
    primary = payload.get(PRIMARY_IMAGE_FIELD)
    primary_normalized = normalize_url(primary) if isinstance(primary, str) and primary else ""
    caption = message_caption(message)
    model = payload_model(payload)

    records = []
    for rule in rules:
        for url, source in rule.collect(payload):
            if rule.drop_thumbnails and is_thumbnail(url):
                logger.trace(f"Skipping thumbnail from {source}: {url}")
                continue
            if rule.skip_primary and normalize_url(url) == primary_normalized:
                continue
            records.append(ImageRecord(
                url=url, message=caption, timestamp_ms=message.timestamp_ms,
                source=source, model=model, text_to_image=payload,
            ))
    return records


def dedupe_images(images: Iterable[ImageRecord]) -> List[ImageRecord]:
    """Keeps the first record per URL with the query string removed."""
    seen = set()
    unique = []
    for image in images:
        key = image.normalized_url
        if key in seen:
            continue
        seen.add(key)
        unique.append(image)
    return unique


def extract_chat_images(
    messages: Sequence[ChatMessage],
    characters: Sequence[CharacterRef] = (),
    rules: Sequence[ImageFieldRule] = PAYLOAD_RULES,
    now_ms: Optional[int] = None,
) -> List[ImageRecord]:
    """
    Character photos first, then generated images in message order, de-duplicated.

    Messages are sorted by timestamp before extraction. Portraits carry the
    first message's timestamp, or `now_ms` when the chat is empty.
    """
    ordered = sorted(messages, key=lambda m: m.timestamp_ms)
    if ordered:
        portrait_ts = ordered[0].timestamp_ms
    else:
        portrait_ts = now_ms if now_ms is not None else int(time.time() * 1000)

    candidates = extract_character_photos(characters, portrait_ts)
    for message in ordered:
        candidates.extend(extract_message_images(message, rules))

    unique = dedupe_images(candidates)
    logger.debug(f"Extracted {len(unique)} unique image(s) from {len(candidates)} candidate(s)")
    return unique


def filter_images(images: Sequence[ImageRecord], filter_value: Optional[str]) -> List[ImageRecord]:
    """'all' (or nothing) keeps everything; any other value must appear in the caption."""
    if not filter_value or filter_value == "all":
        return list(images)
    return [image for image in images if image.message and filter_value in image.message]


def selectable_images(images: Sequence[ImageRecord]) -> List[ImageRecord]:
    """Images that may be bulk downloaded; character portraits are excluded."""
    return [image for image in images if not image.is_character_photo]

#
# End of Image_Extraction.py
########################################################################################################################
