# Chat_Cache.py
# Description: In-memory TTL cache for chat lists, chat messages and per-chat image counts
#
# Imports
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Dict, Generic, Hashable, Optional, TypeVar
#
# 3rd-Party Imports
from loguru import logger
#
# Local Imports
from ..Constants import CHAT_LIST_TTL_MS, CHAT_MESSAGES_TTL_MS, IMAGE_COUNTS_TTL_MS
#
########################################################################################################################
#
# Functions:

T = TypeVar("T")


class CacheNamespace(Enum):
    CHAT_LIST = "chat_list"
    CHAT_MESSAGES = "chat_messages"
    IMAGE_COUNTS = "image_counts"


DEFAULT_TTLS_MS: Dict[CacheNamespace, int] = {
    CacheNamespace.CHAT_LIST: CHAT_LIST_TTL_MS,
    CacheNamespace.CHAT_MESSAGES: CHAT_MESSAGES_TTL_MS,
    CacheNamespace.IMAGE_COUNTS: IMAGE_COUNTS_TTL_MS,
}

# The chat list namespace only ever holds one entry
CHAT_LIST_KEY = "__all_chats__"


def _wall_clock_ms() -> float:
    return time.time() * 1000.0


@dataclass
class CacheEntry(Generic[T]):
    data: T
    timestamp_ms: float
    ttl_ms: int

    def is_valid(self, now_ms: float) -> bool:
        return now_ms - self.timestamp_ms < self.ttl_ms


class ChatCache:
    """
    Three independent keyed namespaces, each with a fixed TTL.

    Entries are only ever replaced whole by `set`. A `get` straight after a
    `set` for the same key returns the object that was written.
    """

    def __init__(self, clock: Optional[Callable[[], float]] = None,
                 ttls_ms: Optional[Dict[CacheNamespace, int]] = None):
        self._clock = clock or _wall_clock_ms
        self._ttls_ms = dict(DEFAULT_TTLS_MS)
        if ttls_ms:
            self._ttls_ms.update(ttls_ms)
        self._stores: Dict[CacheNamespace, Dict[Hashable, CacheEntry]] = {ns: {} for ns in CacheNamespace}

    @staticmethod
    def _key(namespace: CacheNamespace, key: Optional[Hashable]) -> Hashable:
        return CHAT_LIST_KEY if namespace is CacheNamespace.CHAT_LIST else key

    def ttl_ms(self, namespace: CacheNamespace) -> int:
        return self._ttls_ms[namespace]

    def get(self, namespace: CacheNamespace, key: Optional[Hashable] = None) -> Optional[Any]:
        """Cached data if present and unexpired, else None. Expired entries are dropped."""
        store = self._stores[namespace]
        try:
            entry = store.get(self._key(namespace, key))
        except TypeError:
            logger.warning(f"Unhashable cache key for {namespace.value}: {key!r}")
            return None
        if entry is None:
            return None
        if not entry.is_valid(self._clock()):
            logger.debug(f"Cache entry expired: {namespace.value}/{key}")
            store.pop(self._key(namespace, key), None)
            return None
        return entry.data

    def set(self, namespace: CacheNamespace, key: Optional[Hashable], data: Any) -> None:
        self._stores[namespace][self._key(namespace, key)] = CacheEntry(
            data=data, timestamp_ms=self._clock(), ttl_ms=self._ttls_ms[namespace]
        )
        logger.debug(f"Cached {namespace.value}/{key if key is not None else '-'}")

    def invalidate(self, key: Hashable) -> None:
        """Forgets the messages and image count of one chat."""
        self._stores[CacheNamespace.CHAT_MESSAGES].pop(key, None)
        self._stores[CacheNamespace.IMAGE_COUNTS].pop(key, None)
        logger.debug(f"Invalidated cached data for chat {key}")

    def clear(self) -> None:
        for store in self._stores.values():
            store.clear()
        logger.debug("Chat cache cleared")

    # --- Convenience accessors ---
    def get_chat_list(self):
        return self.get(CacheNamespace.CHAT_LIST)

    def set_chat_list(self, chats) -> None:
        self.set(CacheNamespace.CHAT_LIST, None, chats)

    def get_chat_messages(self, chat_uuid: str):
        return self.get(CacheNamespace.CHAT_MESSAGES, chat_uuid)

    def set_chat_messages(self, chat_uuid: str, messages) -> None:
        self.set(CacheNamespace.CHAT_MESSAGES, chat_uuid, messages)

    def get_image_count(self, chat_uuid: str) -> Optional[int]:
        return self.get(CacheNamespace.IMAGE_COUNTS, chat_uuid)

    def set_image_count(self, chat_uuid: str, count: int) -> None:
        self.set(CacheNamespace.IMAGE_COUNTS, chat_uuid, count)

#
# End of Chat_Cache.py
########################################################################################################################
