# tavern_exporter/Chat/__init__.py
from .Chat_Pagination import (
    PaginationState, PaginationResult, ChunkedRetriever,
    chat_list_retriever, chat_messages_retriever, retrieve_chat_list, retrieve_chat_messages,
)
from .Chat_Listing import (
    count_generated_images, search_chats, sort_chats, chats_sharing_characters, chats_in_order,
    shape_chat_list, fill_missing_image_counts,
)

__all__ = [
    "PaginationState", "PaginationResult", "ChunkedRetriever",
    "chat_list_retriever", "chat_messages_retriever", "retrieve_chat_list", "retrieve_chat_messages",
    "count_generated_images", "search_chats", "sort_chats", "chats_sharing_characters", "chats_in_order",
    "shape_chat_list", "fill_missing_image_counts",
]
