# tavern_exporter/tavern_api/__init__.py
from .client import TavernAPIClient, RemoteResponse, is_retryable_status
from .exceptions import (
    TavernAPIError, APIConnectionError, APIResponseError, ChatRetrievalError
)
from .schemas import (
    CharacterRef, ChatSummary, ChatMessage, MessageVariation, Attachment,
    CharacterDetails, ImageRecord, AuthorRole
)

__all__ = [
    "TavernAPIClient", "RemoteResponse", "is_retryable_status",
    "TavernAPIError", "APIConnectionError", "APIResponseError", "ChatRetrievalError",
    "CharacterRef", "ChatSummary", "ChatMessage", "MessageVariation", "Attachment",
    "CharacterDetails", "ImageRecord", "AuthorRole",
]
