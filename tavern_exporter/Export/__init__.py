# tavern_exporter/Export/__init__.py
from .Chat_Export import (
    ExportFormat, ExportResult, ExportContext, sanitize_file_name, sort_messages, conversation_character_name,
    conversation_character_uuid, export_conversation, RENDERERS,
)
from .Html_Export import render_html, is_image_command, full_size_image_urls, accent_color_for

__all__ = [
    "ExportFormat", "ExportResult", "ExportContext", "sanitize_file_name", "sort_messages",
    "conversation_character_name", "conversation_character_uuid", "export_conversation", "RENDERERS",
    "render_html", "is_image_command", "full_size_image_urls", "accent_color_for",
]
