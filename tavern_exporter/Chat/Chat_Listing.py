# Chat_Listing.py
# Description: Search, sort and narrow the materialized chat list; backfill per-chat image counts
#
# Imports
import asyncio
from typing import Awaitable, Callable, Iterable, List, Optional, Sequence
#
# 3rd-Party Imports
from loguru import logger
#
# Local Imports
from ..Constants import (
    ALL_SORT_MODES, SORT_DATE_DESC, SORT_DATE_ASC, SORT_NAME_ASC, SORT_NAME_DESC, SORT_CHARS_ASC,
    SORT_IMAGE_COUNT_DESC, SORT_IMAGE_COUNT_ASC, IMAGE_COUNT_BATCH_SIZE, IMAGE_COUNT_BATCH_DELAY_S,
)
from ..tavern_api.schemas import ChatSummary, ChatMessage
#
########################################################################################################################
#
# Functions:

def count_generated_images(messages: Iterable[ChatMessage]) -> int:
    """Number of messages that carry a generation payload."""
    return sum(1 for message in messages if message.text_to_image)


def search_chats(chats: Sequence[ChatSummary], query: Optional[str]) -> List[ChatSummary]:
    """Case-insensitive substring match over the chat name and its character names."""
    q = (query or "").strip().lower()
    if not q:
        return list(chats)
    matches = []
    for chat in chats:
        haystack = f"{chat.name or ''} {' '.join(c.name for c in chat.characters)}".lower()
        if q in haystack:
            matches.append(chat)
    return matches


def _image_count_key(chat: ChatSummary) -> int:
    return chat.image_count if chat.image_count is not None else 0


def sort_chats(chats: Sequence[ChatSummary], mode: str = SORT_DATE_DESC) -> List[ChatSummary]:
    """Returns a sorted copy. Unknown modes fall back to newest first; unknown image counts sort as 0."""
    if mode not in ALL_SORT_MODES:
        logger.warning(f"Unknown sort mode '{mode}', using {SORT_DATE_DESC}")
        mode = SORT_DATE_DESC
    working = list(chats)
    if mode == SORT_DATE_ASC:
        working.sort(key=lambda c: c.created_at_ms)
    elif mode == SORT_NAME_ASC:
        working.sort(key=lambda c: c.character_names.casefold())
    elif mode == SORT_NAME_DESC:
        working.sort(key=lambda c: c.character_names.casefold(), reverse=True)
    elif mode == SORT_CHARS_ASC:
        working.sort(key=lambda c: (c.characters[0].name if c.characters else "").casefold())
    elif mode == SORT_IMAGE_COUNT_DESC:
        working.sort(key=_image_count_key, reverse=True)
    elif mode == SORT_IMAGE_COUNT_ASC:
        working.sort(key=_image_count_key)
    else:
        working.sort(key=lambda c: c.created_at_ms, reverse=True)
    return working


def chats_sharing_characters(chats: Sequence[ChatSummary], chat_uuid: Optional[str]) -> List[ChatSummary]:
    """
    Narrows the list to chats that have at least one character in common with `chat_uuid`.

    If that chat is not in the list, or has no identifiable characters, the list is returned unchanged.
    """
    if not chat_uuid:
        return list(chats)
    current = next((c for c in chats if c.uuid == chat_uuid), None)
    if current is None or not current.character_uuids:
        return list(chats)
    targets = current.character_uuids
    return [chat for chat in chats if chat.character_uuids & targets]


def chats_in_order(chats: Sequence[ChatSummary], ordered_uuids: Sequence[str]) -> List[ChatSummary]:
    """Keeps only chats named in `ordered_uuids`, in that order (e.g. the site's recent-chats strip)."""
    position = {uuid: idx for idx, uuid in enumerate(ordered_uuids)}
    kept = [chat for chat in chats if chat.uuid in position]
    kept.sort(key=lambda c: position[c.uuid])
    return kept


def shape_chat_list(
    chats: Sequence[ChatSummary],
    search: Optional[str] = None,
    sort: str = SORT_DATE_DESC,
    recent_uuids: Optional[Sequence[str]] = None,
) -> List[ChatSummary]:
    """Search, then either the recent-chats order (when given) or the requested sort."""
    working = search_chats(chats, search)
    if recent_uuids:
        return chats_in_order(working, recent_uuids)
    return sort_chats(working, sort)


async def fill_missing_image_counts(
    chats: Sequence[ChatSummary],
    count_for_chat: Callable[[str], Awaitable[Optional[int]]],
    batch_size: int = IMAGE_COUNT_BATCH_SIZE,
    batch_delay_s: float = IMAGE_COUNT_BATCH_DELAY_S,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    progress: Optional[Callable[[int, int], None]] = None,
) -> int:
    """
    Fills `image_count` on every chat that does not have one yet.

    Chats are processed in groups of `batch_size`; requests inside a group run
    together, and groups are separated by `batch_delay_s`. A count that could
    not be determined stays None. Returns how many chats received a count.
    """
    pending = [chat for chat in chats if chat.image_count is None]
    if not pending:
        return 0

    total = len(pending)
    completed = 0
    filled = 0
    logger.info(f"Fetching image counts for {total} chat(s) in groups of {batch_size}")
    for start in range(0, total, batch_size):
        group = pending[start:start + batch_size]
        counts = await asyncio.gather(*(count_for_chat(chat.uuid) for chat in group))
        for chat, count in zip(group, counts):
            if count is not None:
                chat.image_count = count
                filled += 1
        completed += len(group)
        if progress:
            progress(completed, total)
        if start + batch_size < total:
            await sleep(batch_delay_s)
    logger.info(f"Image counts filled for {filled}/{total} chat(s)")
    return filled

#
# End of Chat_Listing.py
########################################################################################################################
