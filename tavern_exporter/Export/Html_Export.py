# Html_Export.py
# Description: Self-contained HTML rendering of a chat, with generated images linked inline
#
# Imports
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import urlsplit
#
# 3rd-Party Imports
from jinja2 import DictLoader
from jinja2.sandbox import SandboxedEnvironment
#
# Local Imports
from ..Constants import (
    CHARACTER_PLACEHOLDER, IMAGE_COMMANDS, PRIMARY_IMAGE_FIELD, HTML_IMAGE_ARRAY_FIELDS, HTML_IMAGE_OBJECT_URL_KEYS,
    SITE_ACCENT_COLORS, DEFAULT_ACCENT_COLOR,
)
from ..Images.Image_Extraction import is_thumbnail
from ..tavern_api.schemas import ChatMessage
from ..tavern_api.utils import normalize_url
#
########################################################################################################################
#
# Functions:

_MESSAGE_TEMPLATE = """
    <div class="message {{ m.role }}">
        <div class="message-header">{{ m.name }}</div>
{% if m.text %}
        <div class="message-content">{{ m.text }}</div>
{% endif %}
{% if m.show_images %}
        <div class="message-images">
{% for url in m.image_urls %}
            <img src="{{ url }}" alt="Generated image" loading="lazy" onclick="window.open(this.src, '_blank')">
{% endfor %}
        </div>
{% endif %}
        <div class="message-timestamp">{{ m.timestamp }}</div>
    </div>"""

_DOCUMENT_TEMPLATE = """<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Chat with {{ title }}</title>
    <style>
        * { margin: 0; padding: 0; box-sizing: border-box; }
        body {
            font-family: -apple-system, BlinkMacSystemFont, 'Segoe UI', Roboto, Oxygen, Ubuntu, Cantarell, sans-serif;
            background: #151820;
            color: #ffffff;
            line-height: 1.6;
            padding: 20px;
            max-width: 1200px;
            margin: 0 auto;
        }
        .header {
            background: #25282c;
            padding: 20px;
            border-radius: 12px;
            margin-bottom: 20px;
            border: 1px solid #303439;
        }
        .header h1 { font-size: 24px; margin-bottom: 8px; color: {{ accent }}; }
        .header .meta { color: #999; font-size: 14px; }
        .message {
            background: #25282c;
            padding: 16px;
            border-radius: 8px;
            margin-bottom: 16px;
            border-left: 4px solid {{ accent }};
        }
        .message.user { border-left-color: #4b5563; }
        .message-header { font-weight: 600; margin-bottom: 8px; color: {{ accent }}; }
        .message.user .message-header { color: #ffffff; }
        .message-content { color: #e0e0e0; white-space: pre-wrap; word-wrap: break-word; }
        .message-timestamp { color: #999; font-size: 12px; margin-top: 8px; }
        .message-images { margin-top: 12px; display: flex; flex-wrap: wrap; gap: 12px; }
        .message-images img {
            max-width: 100%;
            max-height: 400px;
            border-radius: 8px;
            border: 1px solid #303439;
            cursor: pointer;
        }
        .greeting {
            background: #25282c;
            padding: 16px;
            border-radius: 8px;
            margin-bottom: 20px;
            border: 1px solid #303439;
            font-style: italic;
            color: #e0e0e0;
        }
        @media (max-width: 768px) {
            body { padding: 12px; }
            .message-images img { max-height: 300px; }
        }
    </style>
</head>
<body>
    <div class="header">
        <h1>Chat with {{ title }}</h1>
        <div class="meta">Exported on {{ exported_on }} from {{ host }}</div>
    </div>
{% if greeting_lines %}
    <div class="greeting">
        <strong>{{ title }}:</strong><br>
        {% for line in greeting_lines %}{{ line }}{% if not loop.last %}<br>{% endif %}{% endfor %}

    </div>
{% endif %}
{% for m in messages %}
{% include "message.html" %}

{% endfor %}
</body>
</html>
"""

_ENV = SandboxedEnvironment(
    loader=DictLoader({"message.html": _MESSAGE_TEMPLATE, "document.html": _DOCUMENT_TEMPLATE}),
    autoescape=True,
    trim_blocks=True,
    lstrip_blocks=True,
)


def accent_color_for(source: Optional[str]) -> str:
    host = (urlsplit(source).hostname or "") if source else ""
    for fragment, color in SITE_ACCENT_COLORS.items():
        if fragment in host:
            return color
    return DEFAULT_ACCENT_COLOR


def is_image_command(text: str) -> bool:
    if not text:
        return False
    return any(cmd in text for cmd in IMAGE_COMMANDS) or text.strip().startswith("/image")


def _object_image_url(item: Dict[str, Any]) -> Optional[str]:
    orig = item.get("orig_url")
    if isinstance(orig, str) and orig and not is_thumbnail(orig):
        return orig
    for key in HTML_IMAGE_OBJECT_URL_KEYS:
        candidate = item.get(key)
        if isinstance(candidate, str) and candidate.startswith("http") and not is_thumbnail(candidate):
            return candidate
    return None


def full_size_image_urls(payload: Optional[Dict[str, Any]]) -> List[str]:
    """Primary image plus array entries, thumbnails skipped, de-duplicated without query strings."""
    if not payload:
        return []
    urls: List[str] = []
    seen = set()
    primary = payload.get(PRIMARY_IMAGE_FIELD)
    if isinstance(primary, str) and primary and not is_thumbnail(primary):
        urls.append(primary)
        seen.add(normalize_url(primary))
    for field_name in HTML_IMAGE_ARRAY_FIELDS:
        entries = payload.get(field_name)
        if not isinstance(entries, list):
            continue
        for item in entries:
            url = None
            if isinstance(item, str) and item.startswith("http") and not is_thumbnail(item):
                url = item
            elif isinstance(item, dict):
                url = _object_image_url(item)
            if url and url.startswith("http") and normalize_url(url) not in seen:
                urls.append(url)
                seen.add(normalize_url(url))
    return urls


def _local_time(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000.0, tz=timezone.utc).astimezone().strftime("%Y-%m-%d %H:%M:%S")


def message_view(message: ChatMessage, character_name: str) -> Dict[str, Any]:
    """Template context for one message block."""
    has_images = bool(message.text_to_image and message.text_to_image.get(PRIMARY_IMAGE_FIELD))
    show_text = not (message.is_bot and has_images and is_image_command(message.text))
    show_images = has_images and message.is_bot
    if message.is_bot:
        name = message.character_nickname or character_name or CHARACTER_PLACEHOLDER
    else:
        name = message.speaker_name
    return {
        "role": "assistant" if message.is_bot else "user",
        "name": name,
        "text": message.text if show_text else "",
        "show_images": show_images,
        "image_urls": full_size_image_urls(message.text_to_image) if show_images else [],
        "timestamp": _local_time(message.timestamp_ms),
    }


def render_message_html(message: ChatMessage, character_name: str) -> str:
    return _ENV.get_template("message.html").render(m=message_view(message, character_name))


def render_html(
    messages: Sequence[ChatMessage],
    character_name: str,
    greeting: Optional[str],
    source: Optional[str],
    accent: str = DEFAULT_ACCENT_COLOR,
    now: Optional[datetime] = None,
) -> str:
    """Messages must already be sorted."""
    now = now or datetime.now(timezone.utc)
    return _ENV.get_template("document.html").render(
        title=character_name or CHARACTER_PLACEHOLDER,
        accent=accent,
        host=(urlsplit(source).hostname or "") if source else "",
        exported_on=now.astimezone().strftime("%Y-%m-%d %H:%M:%S"),
        greeting_lines=greeting.split("\n") if greeting else [],
        messages=[message_view(m, character_name) for m in messages],
    )

#
# End of Html_Export.py
########################################################################################################################
