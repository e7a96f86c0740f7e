# Chat_Pagination.py
# Description: Materializes server-paginated collections (chat list, chat messages) one page at a time
#
# Imports
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Generic, Hashable, List, Optional, TypeVar
#
# 3rd-Party Imports
from loguru import logger
from pydantic import ValidationError
#
# Local Imports
from ..Cache.Chat_Cache import ChatCache, CacheNamespace
from ..Constants import PAGE_SIZE
from ..tavern_api.client import TavernAPIClient
from ..tavern_api.schemas import ChatSummary, ChatMessage
from ..tavern_api.utils import parse_page
#
########################################################################################################################
#
# Functions:

T = TypeVar("T")


class PaginationState(Enum):
    IDLE = "idle"
    FETCHING_PAGE = "fetching_page"
    COMPLETE = "complete"
    FAILED = "failed"


@dataclass
class PaginationResult(Generic[T]):
    state: PaginationState
    records: List[T] = field(default_factory=list)
    requests_made: int = 0
    from_cache: bool = False
    failure_reason: Optional[str] = None

    @property
    def completed(self) -> bool:
        return self.state is PaginationState.COMPLETE


class ChunkedRetriever(Generic[T]):
    """
    Drives the client through `limit`/`offset` pages until a short page arrives.

    States: IDLE -> FETCHING_PAGE(offset) -> COMPLETE(records) | FAILED(reason).
    Only one page request is in flight at a time, so records accumulate in
    server order. A complete collection is written to the cache under
    (`namespace`, `cache_key`); a failed run discards what it had gathered and
    caches nothing. Instances are single-use.
    """

    def __init__(
        self,
        client: TavernAPIClient,
        cache: ChatCache,
        namespace: CacheNamespace,
        cache_key: Optional[Hashable],
        path_for_offset: Callable[[int], str],
        records_field: str,
        parse_record: Callable[[Dict[str, Any]], T],
        page_size: int = PAGE_SIZE,
        label: str = "collection",
        on_page: Optional[Callable[[int, int], None]] = None,
    ):
        self.client = client
        self.cache = cache
        self.namespace = namespace
        self.cache_key = cache_key
        self.path_for_offset = path_for_offset
        self.records_field = records_field
        self.parse_record = parse_record
        self.page_size = page_size
        self.label = label
        self.on_page = on_page

        self.state = PaginationState.IDLE
        self.offset = 0
        self.failure_reason: Optional[str] = None

    def _parse_records(self, raw_records: List[Any]) -> List[T]:
        parsed = []
        for idx, raw in enumerate(raw_records):
            try:
                parsed.append(self.parse_record(raw))
            except ValidationError as e:
                logger.warning(f"Skipping malformed record {self.offset + idx} in {self.label}: {e.error_count()} error(s)")
        return parsed

    def _fail(self, reason: str, requests_made: int) -> PaginationResult[T]:
        self.state = PaginationState.FAILED
        self.failure_reason = reason
        logger.error(f"Retrieval of {self.label} aborted at offset {self.offset}: {reason}")
        return PaginationResult(PaginationState.FAILED, [], requests_made, False, reason)

    async def run(self) -> PaginationResult[T]:
        if self.state is not PaginationState.IDLE:
            raise RuntimeError(f"Retriever for {self.label} has already run (state: {self.state.value})")

        cached = self.cache.get(self.namespace, self.cache_key)
        if cached is not None:
            self.state = PaginationState.COMPLETE
            logger.debug(f"Serving {self.label} from cache ({len(cached)} records)")
            return PaginationResult(PaginationState.COMPLETE, cached, 0, True)

        accumulator: List[T] = []
        requests_made = 0
        self.offset = 0
        while True:
            self.state = PaginationState.FETCHING_PAGE
            chunk_number = self.offset // self.page_size + 1
            logger.info(f"Fetching {self.label}, chunk {chunk_number} (offset {self.offset})")
            response = await self.client.request(self.path_for_offset(self.offset))
            requests_made += 1

            if response.not_found:
                raw_records: List[Any] = []
            else:
                raw_records = parse_page(response.body, self.records_field)
                if raw_records is None:
                    reason = (f"request failed with HTTP {response.status_code}" if response.body is None
                              else "response carried an error or was malformed")
                    return self._fail(reason, requests_made)

            accumulator.extend(self._parse_records(raw_records))
            if self.on_page:
                self.on_page(chunk_number, len(accumulator))

            if len(raw_records) == self.page_size:
                self.offset += self.page_size
                continue

            self.state = PaginationState.COMPLETE
            self.cache.set(self.namespace, self.cache_key, accumulator)
            logger.info(f"Retrieved {len(accumulator)} records for {self.label} in {requests_made} request(s)")
            return PaginationResult(PaginationState.COMPLETE, accumulator, requests_made, False)


def chat_list_retriever(client: TavernAPIClient, cache: ChatCache, page_size: int = PAGE_SIZE,
                        on_page: Optional[Callable[[int, int], None]] = None) -> ChunkedRetriever[ChatSummary]:
    return ChunkedRetriever(
        client, cache, CacheNamespace.CHAT_LIST, None,
        path_for_offset=lambda offset: client.chats_path(offset, page_size),
        records_field="chats",
        parse_record=ChatSummary.from_api,
        page_size=page_size,
        label="chat list",
        on_page=on_page,
    )


def chat_messages_retriever(client: TavernAPIClient, cache: ChatCache, chat_uuid: str, page_size: int = PAGE_SIZE,
                            on_page: Optional[Callable[[int, int], None]] = None) -> ChunkedRetriever[ChatMessage]:
    return ChunkedRetriever(
        client, cache, CacheNamespace.CHAT_MESSAGES, chat_uuid,
        path_for_offset=lambda offset: client.messages_path(chat_uuid, offset, page_size),
        records_field="messages",
        parse_record=ChatMessage.from_api,
        page_size=page_size,
        label=f"messages of chat {chat_uuid}",
        on_page=on_page,
    )


async def retrieve_chat_list(client: TavernAPIClient, cache: ChatCache,
                             page_size: int = PAGE_SIZE) -> PaginationResult[ChatSummary]:
    return await chat_list_retriever(client, cache, page_size).run()


async def retrieve_chat_messages(client: TavernAPIClient, cache: ChatCache, chat_uuid: str,
                                 page_size: int = PAGE_SIZE,
                                 on_page: Optional[Callable[[int, int], None]] = None) -> PaginationResult[ChatMessage]:
    return await chat_messages_retriever(client, cache, chat_uuid, page_size, on_page).run()

#
# End of Chat_Pagination.py
########################################################################################################################
