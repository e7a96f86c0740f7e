# tavern_exporter/tavern_api/schemas.py
#
# Records returned by the Tavern chat API, reduced to the fields the exporter uses.
# The API is not schema-validated: every `from_api` reads fields defensively and
# falls back to placeholders rather than raising.
#
# Imports
from datetime import datetime
from typing import List, Optional, Dict, Any, Literal
#
# 3rd-party Libraries
from pydantic import BaseModel, Field
#
# Local Imports
from .utils import parse_timestamp, to_epoch_ms, normalize_url
from ..Constants import (
    CHARACTER_PLACEHOLDER,
    USER_DISPLAY_NAME,
    SOURCE_CHARACTER_FOREGROUND,
    SOURCE_CHARACTER_BACKGROUND,
)
#
#######################################################################################################################
#
# Functions:

AuthorRole = Literal['user', 'bot']


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def _as_list(value: Any) -> List[Any]:
    return value if isinstance(value, list) else []


def _as_str(value: Any, default: Optional[str] = None) -> Optional[str]:
    return value if isinstance(value, str) else default


def _photo_urls(photos: Any) -> List[str]:
    urls = []
    for photo in _as_list(photos):
        if isinstance(photo, str):
            urls.append(photo)
        elif isinstance(photo, dict) and isinstance(photo.get("url"), str):
            urls.append(photo["url"])
    return urls


# --- Chats ---
class CharacterRef(BaseModel):
    uuid: Optional[str] = None
    name: str = CHARACTER_PLACEHOLDER
    thumbnail_url: Optional[str] = None
    foreground_photo_urls: List[str] = Field(default_factory=list)
    background_photo_urls: List[str] = Field(default_factory=list)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "CharacterRef":
        data = _as_dict(data)
        return cls(
            uuid=_as_str(data.get("uuid")),
            name=_as_str(data.get("name")) or CHARACTER_PLACEHOLDER,
            thumbnail_url=_as_str(_as_dict(data.get("thumbnail_photo")).get("url")),
            foreground_photo_urls=_photo_urls(data.get("photos")),
            background_photo_urls=_photo_urls(data.get("background_photos")),
        )


class ChatSummary(BaseModel):
    uuid: str
    name: Optional[str] = None
    created_at: Optional[datetime] = None
    image_count: Optional[int] = None  # filled lazily
    characters: List[CharacterRef] = Field(default_factory=list)

    @property
    def character_names(self) -> str:
        return ", ".join(c.name for c in self.characters)

    @property
    def character_uuids(self) -> set:
        return {c.uuid for c in self.characters if c.uuid}

    @property
    def created_at_ms(self) -> int:
        return to_epoch_ms(self.created_at)

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ChatSummary":
        data = _as_dict(data)
        return cls(
            uuid=_as_str(data.get("uuid"), ""),
            name=_as_str(data.get("name")),
            created_at=parse_timestamp(data.get("created_at")),
            image_count=None,
            characters=[CharacterRef.from_api(c) for c in _as_list(data.get("characters"))],
        )


# --- Messages ---
class MessageVariation(BaseModel):
    uuid: Optional[str] = None
    text: str = ""


class Attachment(BaseModel):
    url: Optional[str] = None


class ChatMessage(BaseModel):
    uuid: Optional[str] = None
    created_at: Optional[datetime] = None
    author_role: AuthorRole = 'user'
    text: str = ""
    character_nickname: Optional[str] = None
    character_uuid: Optional[str] = None
    # None when the API sent no variation list at all
    variations: Optional[List[MessageVariation]] = None
    text_to_image: Optional[Dict[str, Any]] = None
    attachments: List[Attachment] = Field(default_factory=list)

    @property
    def is_bot(self) -> bool:
        return self.author_role == 'bot'

    @property
    def timestamp_ms(self) -> int:
        return to_epoch_ms(self.created_at)

    @property
    def speaker_name(self) -> str:
        if self.is_bot:
            return self.character_nickname or CHARACTER_PLACEHOLDER
        return USER_DISPLAY_NAME

    @property
    def active_variation_index(self) -> int:
        """Index of the variation currently shown (the one sharing the message uuid), else 0."""
        for idx, variation in enumerate(self.variations or []):
            if variation.uuid is not None and variation.uuid == self.uuid:
                return idx
        return 0

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "ChatMessage":
        data = _as_dict(data)
        character = _as_dict(data.get("character"))
        raw_variations = data.get("message_variations")
        variations = None
        if isinstance(raw_variations, list):
            variations = [
                MessageVariation(uuid=_as_str(_as_dict(v).get("uuid")), text=_as_str(_as_dict(v).get("message"), ""))
                for v in raw_variations
            ]
        text_to_image = data.get("text_to_image")
        return cls(
            uuid=_as_str(data.get("uuid")),
            created_at=parse_timestamp(data.get("created_at")),
            author_role='bot' if data.get("message_source") == 'bot' else 'user',
            text=_as_str(data.get("message"), ""),
            character_nickname=_as_str(character.get("nickname")),
            character_uuid=_as_str(character.get("uuid")),
            variations=variations,
            text_to_image=text_to_image if isinstance(text_to_image, dict) and text_to_image else None,
            attachments=[Attachment(url=_as_str(_as_dict(a).get("url"))) for a in _as_list(data.get("attachments"))],
        )


# --- Characters ---
class CharacterDetails(BaseModel):
    name: Optional[str] = None
    greeting: Optional[str] = None

    @classmethod
    def from_api(cls, data: Dict[str, Any]) -> "CharacterDetails":
        data = _as_dict(data)
        return cls(
            name=_as_str(data.get("char_name")) or None,
            greeting=_as_str(data.get("char_greeting")) or _as_str(data.get("greeting")) or None,
        )


# --- Images ---
class ImageRecord(BaseModel):
    url: str
    message: str
    timestamp_ms: int
    source: str
    model: str
    text_to_image: Optional[Dict[str, Any]] = None

    @property
    def normalized_url(self) -> str:
        return normalize_url(self.url)

    @property
    def is_character_photo(self) -> bool:
        return SOURCE_CHARACTER_FOREGROUND in self.source or SOURCE_CHARACTER_BACKGROUND in self.source

    @property
    def prompt(self) -> str:
        return (self.text_to_image or {}).get("prompt") or ""

    @property
    def seed(self) -> Any:
        return (self.text_to_image or {}).get("seed")

#
# End of tavern_exporter/tavern_api/schemas.py
########################################################################################################################
