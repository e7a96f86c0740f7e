# Chat_Export.py
# Description: Serializes an ordered chat into plain text, SillyTavern/OpenAI JSONL, full JSON or HTML
#
# Imports
import json
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Sequence
#
# 3rd-Party Imports
from loguru import logger
#
# Local Imports
from ..Constants import CHARACTER_PLACEHOLDER, USER_DISPLAY_NAME, FILENAME_MAX_CHARS, GREETING_OFFSET_MS
from ..tavern_api.schemas import ChatMessage
from .Html_Export import render_html, accent_color_for
#
########################################################################################################################
#
# Functions:

class ExportFormat(str, Enum):
    PLAIN_TEXT = "txt"
    JSONL_SILLYTAVERN = "jsonl-st"
    JSONL_OPENAI = "jsonl-openai"
    FULL_JSON = "json"
    HTML = "html"

    @property
    def extension(self) -> str:
        return _EXTENSIONS[self]

    @property
    def media_type(self) -> str:
        return _MEDIA_TYPES[self]


_EXTENSIONS = {
    ExportFormat.PLAIN_TEXT: "txt",
    ExportFormat.JSONL_SILLYTAVERN: "jsonl",
    ExportFormat.JSONL_OPENAI: "jsonl",
    ExportFormat.FULL_JSON: "json",
    ExportFormat.HTML: "html",
}

_MEDIA_TYPES = {
    ExportFormat.PLAIN_TEXT: "text/plain",
    ExportFormat.JSONL_SILLYTAVERN: "text/plain",
    ExportFormat.JSONL_OPENAI: "application/x-ndjson",
    ExportFormat.FULL_JSON: "application/json",
    ExportFormat.HTML: "text/html",
}


@dataclass
class ExportResult:
    filename: str
    content: str
    media_type: str
    message_count: int

    @property
    def is_empty(self) -> bool:
        return self.message_count == 0


@dataclass
class ExportContext:
    """Everything a renderer needs besides the sorted messages."""
    character_name: str
    greeting: Optional[str]
    source: Optional[str]
    now: datetime


_ILLEGAL_FILENAME_CHARS = re.compile(r'[<>:"/\\|?*\x00-\x1F]')
_WHITESPACE_RUN = re.compile(r"\s+")


def sanitize_file_name(name: Optional[str]) -> str:
    cleaned = _ILLEGAL_FILENAME_CHARS.sub("_", name or "chat")
    cleaned = _WHITESPACE_RUN.sub(" ", cleaned).strip()
    return cleaned[:FILENAME_MAX_CHARS]


def sort_messages(messages: Sequence[ChatMessage]) -> List[ChatMessage]:
    """Oldest first; the sort is stable for equal timestamps."""
    return sorted(messages, key=lambda m: m.timestamp_ms)


def first_bot_message(messages: Sequence[ChatMessage]) -> Optional[ChatMessage]:
    return next((m for m in sort_messages(messages) if m.is_bot), None)


def conversation_character_name(messages: Sequence[ChatMessage], fallback: Optional[str] = None) -> str:
    """The first bot speaker's name; `fallback` (e.g. from the character record) when no bot spoke."""
    bot = first_bot_message(messages)
    if bot is not None:
        return bot.speaker_name
    return fallback or ""


def conversation_character_uuid(messages: Sequence[ChatMessage]) -> Optional[str]:
    bot = first_bot_message(messages)
    return bot.character_uuid if bot is not None else None


def _iso_utc(dt: datetime) -> str:
    dt = dt.astimezone(timezone.utc)
    return dt.strftime("%Y-%m-%dT%H:%M:%S.") + f"{dt.microsecond // 1000:03d}Z"


def _now_ms(now: datetime) -> int:
    return int(round(now.timestamp() * 1000))


def _dump_line(record: Dict[str, Any]) -> str:
    return json.dumps(record, ensure_ascii=False, separators=(",", ":"))


# --- Renderers ---
def render_plain_text(messages: List[ChatMessage], ctx: ExportContext) -> str:
    pieces = []
    if ctx.greeting:
        pieces.append(f"{ctx.character_name or CHARACTER_PLACEHOLDER}\n\n{ctx.greeting}")
    pieces.extend(f"{m.speaker_name}\n\n{m.text}" for m in messages)
    return "\n\n\n".join(pieces)


def sillytavern_record(message: ChatMessage) -> Dict[str, Any]:
    swipes = [v.text for v in message.variations] if message.variations is not None else None
    return {
        "name": message.speaker_name,
        "is_user": not message.is_bot,
        "is_name": message.is_bot,
        "send_date": message.timestamp_ms,
        "mes": message.text,
        "swipes": swipes,
        "swipe_id": message.active_variation_index,
    }


def render_jsonl_sillytavern(messages: List[ChatMessage], ctx: ExportContext) -> str:
    name = ctx.character_name or CHARACTER_PLACEHOLDER
    lines = [_dump_line({"user_name": USER_DISPLAY_NAME, "character_name": name})]
    if ctx.greeting:
        anchor = messages[0].timestamp_ms if messages else _now_ms(ctx.now)
        lines.append(_dump_line({
            "name": name,
            "is_user": False,
            "is_name": True,
            "send_date": anchor - GREETING_OFFSET_MS,
            "mes": ctx.greeting,
            "swipes": None,
            "swipe_id": 0,
        }))
    lines.extend(_dump_line(sillytavern_record(m)) for m in messages)
    return "\n".join(lines)


def openai_record(message: ChatMessage) -> Dict[str, Any]:
    record: Dict[str, Any] = {
        "role": "assistant" if message.is_bot else "user",
        "content": message.text,
        "timestamp": message.timestamp_ms,
    }
    if message.is_bot:
        record["name"] = message.speaker_name
    if message.attachments:
        record["images"] = [a.url for a in message.attachments if a.url and re.search(r"https?://", a.url)]
    return record


def render_jsonl_openai(messages: List[ChatMessage], ctx: ExportContext) -> str:
    lines = []
    if ctx.greeting:
        lines.append(_dump_line({
            "role": "assistant",
            "name": ctx.character_name or CHARACTER_PLACEHOLDER,
            "content": ctx.greeting,
            "timestamp": _now_ms(ctx.now),
        }))
    lines.extend(_dump_line(openai_record(m)) for m in messages)
    return "\n".join(lines)


def full_json_record(message: ChatMessage) -> Dict[str, Any]:
    variations = None
    if message.variations is not None:
        variations = [{"uuid": v.uuid, "text": v.text} for v in message.variations]
    return {
        "author": message.speaker_name,
        "role": "assistant" if message.is_bot else "user",
        "timestamp": message.timestamp_ms,
        "text": message.text,
        "uuid": message.uuid,
        "character_uuid": message.character_uuid or None,
        "variations": variations,
    }


def render_full_json(messages: List[ChatMessage], ctx: ExportContext) -> str:
    payload = {
        "source": ctx.source,
        "exported_at": _iso_utc(ctx.now),
        "character_name": ctx.character_name or None,
        "greeting": ctx.greeting or None,
        "messages": [full_json_record(m) for m in messages],
    }
    return json.dumps(payload, ensure_ascii=False, indent=2)


def _render_html(messages: List[ChatMessage], ctx: ExportContext) -> str:
    return render_html(
        messages,
        character_name=ctx.character_name,
        greeting=ctx.greeting,
        source=ctx.source,
        accent=accent_color_for(ctx.source),
        now=ctx.now,
    )


RENDERERS: Dict[ExportFormat, Callable[[List[ChatMessage], ExportContext], str]] = {
    ExportFormat.PLAIN_TEXT: render_plain_text,
    ExportFormat.JSONL_SILLYTAVERN: render_jsonl_sillytavern,
    ExportFormat.JSONL_OPENAI: render_jsonl_openai,
    ExportFormat.FULL_JSON: render_full_json,
    ExportFormat.HTML: _render_html,
}


def export_conversation(
    messages: Sequence[ChatMessage],
    export_format: ExportFormat,
    character_name: Optional[str] = None,
    greeting: Optional[str] = None,
    source: Optional[str] = None,
    now: Optional[datetime] = None,
) -> ExportResult:
    """
    Renders `messages` in `export_format`.

    Messages are sorted oldest first. The character name comes from the first
    bot message, falling back to `character_name`. `source` is the page the
    chat was exported from; it is recorded in JSON and picks the HTML accent.
    """
    export_format = ExportFormat(export_format)
    now = now or datetime.now(timezone.utc)
    ordered = sort_messages(messages)
    ctx = ExportContext(
        character_name=conversation_character_name(ordered, character_name),
        greeting=greeting or None,
        source=source,
        now=now,
    )
    content = RENDERERS[export_format](ordered, ctx)
    base_name = sanitize_file_name(
        f"Chat with {ctx.character_name or CHARACTER_PLACEHOLDER} {now.astimezone(timezone.utc).strftime('%Y-%m-%d')}"
    )
    filename = f"{base_name}.{export_format.extension}"
    logger.info(f"Rendered {len(ordered)} message(s) as {export_format.value} -> {filename}")
    return ExportResult(filename, content, export_format.media_type, len(ordered))

#
# End of Chat_Export.py
########################################################################################################################
