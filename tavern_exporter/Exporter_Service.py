# Exporter_Service.py
# Description: Per-session service tying the API client, the cache and the pipeline stages together
#
# Imports
import asyncio
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Awaitable, Callable, Iterator, List, Optional, Sequence, Set, Union
#
# 3rd-Party Imports
from loguru import logger
#
# Local Imports
from .Cache.Chat_Cache import ChatCache
from .Chat.Chat_Listing import (
    chats_sharing_characters, count_generated_images, fill_missing_image_counts, shape_chat_list,
)
from .Chat.Chat_Pagination import retrieve_chat_list, retrieve_chat_messages
from .Constants import (
    PAGE_SIZE, SORT_DATE_DESC, IMAGE_COUNT_BATCH_SIZE, IMAGE_COUNT_BATCH_DELAY_S,
    IMAGE_DOWNLOAD_BATCH_SIZE, IMAGE_DOWNLOAD_BATCH_DELAY_S,
)
from .Export.Chat_Export import (
    ExportFormat, ExportResult, conversation_character_uuid, export_conversation,
)
from .Images.Image_Downloads import DownloadSummary, download_images
from .Images.Image_Extraction import extract_chat_images, filter_images
from .tavern_api.client import TavernAPIClient
from .tavern_api.exceptions import ChatRetrievalError
from .tavern_api.schemas import ChatMessage, ChatSummary, ImageRecord
#
########################################################################################################################
#
# Functions:

@dataclass
class ChatImages:
    chat: Optional[ChatSummary]
    images: List[ImageRecord] = field(default_factory=list)
    message_count: int = 0


class ExporterSession:
    """
    One user session against the chat service.

    Owns the client and the cache. Each user-visible action is guarded so that
    triggering it again while it is still running does nothing and returns None.
    """

    def __init__(
        self,
        client: TavernAPIClient,
        cache: Optional[ChatCache] = None,
        page_size: int = PAGE_SIZE,
        site_url: Optional[str] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client
        self.cache = cache or ChatCache()
        self.page_size = page_size
        self.site_url = site_url
        self._sleep = sleep
        self._busy: Set[str] = set()

    @contextmanager
    def _guard(self, action: str) -> Iterator[bool]:
        """Yields False when `action` is already running."""
        if action in self._busy:
            logger.debug(f"Ignoring '{action}': already in progress")
            yield False
            return
        self._busy.add(action)
        try:
            yield True
        finally:
            self._busy.discard(action)

    def is_busy(self, action: str) -> bool:
        return action in self._busy

    # --- Retrieval ---
    async def _chat_list(self) -> List[ChatSummary]:
        result = await retrieve_chat_list(self.client, self.cache, self.page_size)
        if not result.completed:
            raise ChatRetrievalError("chat list", result.failure_reason or "unknown error")
        return result.records

    async def list_chats(self, current_chat_uuid: Optional[str] = None) -> Optional[List[ChatSummary]]:
        """
        All chats of the account, optionally narrowed to those sharing a character with `current_chat_uuid`.

        Raises ChatRetrievalError when the listing is aborted.
        """
        with self._guard("chat_list") as acquired:
            if not acquired:
                return None
            chats = await self._chat_list()
            return chats_sharing_characters(chats, current_chat_uuid)

    async def get_messages(self, chat_uuid: str,
                           on_page: Optional[Callable[[int, int], None]] = None) -> List[ChatMessage]:
        result = await retrieve_chat_messages(self.client, self.cache, chat_uuid, self.page_size, on_page)
        if not result.completed:
            raise ChatRetrievalError(f"messages of chat {chat_uuid}", result.failure_reason or "unknown error")
        return result.records

    async def find_chat(self, chat_uuid: str) -> Optional[ChatSummary]:
        chats = await self._chat_list()
        return next((c for c in chats if c.uuid == chat_uuid), None)

    async def get_image_count(self, chat_uuid: str) -> Optional[int]:
        """Generated-image count of a chat, or None when its messages could not be retrieved."""
        cached = self.cache.get_image_count(chat_uuid)
        if cached is not None:
            return cached
        result = await retrieve_chat_messages(self.client, self.cache, chat_uuid, self.page_size)
        if not result.completed:
            logger.warning(f"Image count unavailable for chat {chat_uuid}: {result.failure_reason}")
            return None
        count = count_generated_images(result.records)
        self.cache.set_image_count(chat_uuid, count)
        return count

    async def fill_missing_image_counts(self, chats: Sequence[ChatSummary],
                                        progress: Optional[Callable[[int, int], None]] = None) -> int:
        return await fill_missing_image_counts(
            chats, self.get_image_count,
            batch_size=IMAGE_COUNT_BATCH_SIZE, batch_delay_s=IMAGE_COUNT_BATCH_DELAY_S,
            sleep=self._sleep, progress=progress,
        )

    @staticmethod
    def prepare_chat_list(chats: Sequence[ChatSummary], search: Optional[str] = None,
                          sort: str = SORT_DATE_DESC,
                          recent_uuids: Optional[Sequence[str]] = None) -> List[ChatSummary]:
        return shape_chat_list(chats, search=search, sort=sort, recent_uuids=recent_uuids)

    # --- Export ---
    async def export_chat(self, chat_uuid: str, export_format: Union[ExportFormat, str] = ExportFormat.PLAIN_TEXT,
                          now: Optional[datetime] = None,
                          on_page: Optional[Callable[[int, int], None]] = None) -> Optional[ExportResult]:
        """
        Retrieves and renders one chat. The character record supplies the greeting
        (and the name, when no bot message carries one). Returns None while the
        same chat is already being exported.
        """
        with self._guard(f"download:{chat_uuid}") as acquired:
            if not acquired:
                return None
            messages = await self.get_messages(chat_uuid, on_page)
            export_format = ExportFormat(export_format)
            if not messages:
                logger.info(f"Chat {chat_uuid} has no messages; nothing to export")
                return export_conversation([], export_format, source=self.site_url, now=now)

            details = await self.client.fetch_character(conversation_character_uuid(messages) or "")
            return export_conversation(
                messages,
                export_format,
                character_name=details.name if details else None,
                greeting=details.greeting if details else None,
                source=self.site_url,
                now=now,
            )

    @staticmethod
    def write_export(result: ExportResult, output_dir: Union[str, Path]) -> Path:
        out_dir = Path(output_dir).expanduser()
        out_dir.mkdir(parents=True, exist_ok=True)
        path = out_dir / result.filename
        path.write_text(result.content, encoding="utf-8")
        logger.info(f"Wrote {result.message_count} message(s) to {path}")
        return path

    # --- Images ---
    async def load_chat_images(self, chat_uuid: str, filter_value: Optional[str] = None,
                               chat: Optional[ChatSummary] = None) -> Optional[ChatImages]:
        """Images of a chat (character photos included). Returns None while already loading."""
        with self._guard(f"images:{chat_uuid}") as acquired:
            if not acquired:
                return None
            if chat is None:
                chat = await self.find_chat(chat_uuid)
            messages = await self.get_messages(chat_uuid)
            images = extract_chat_images(messages, chat.characters if chat else ())
            return ChatImages(chat, filter_images(images, filter_value), len(messages))

    async def download_images(self, images: Sequence[ImageRecord], dest_dir: Union[str, Path],
                              batch_size: int = IMAGE_DOWNLOAD_BATCH_SIZE,
                              batch_delay_s: float = IMAGE_DOWNLOAD_BATCH_DELAY_S,
                              progress: Optional[Callable[[int, int], None]] = None) -> Optional[DownloadSummary]:
        with self._guard("bulk_download") as acquired:
            if not acquired:
                return None
            return await download_images(
                self.client, images, dest_dir,
                batch_size=batch_size, batch_delay_s=batch_delay_s, sleep=self._sleep, progress=progress,
            )

    # --- Lifecycle ---
    def invalidate_chat(self, chat_uuid: str) -> None:
        self.cache.invalidate(chat_uuid)

    def clear_cache(self) -> None:
        self.cache.clear()

    async def close(self) -> None:
        await self.client.close()

    async def __aenter__(self) -> "ExporterSession":
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

#
# End of Exporter_Service.py
########################################################################################################################
