# tavern_exporter/Cache/__init__.py
from .Chat_Cache import ChatCache, CacheEntry, CacheNamespace, DEFAULT_TTLS_MS

__all__ = ["ChatCache", "CacheEntry", "CacheNamespace", "DEFAULT_TTLS_MS"]
