# tavern_exporter/Images/__init__.py
from .Image_Extraction import (
    ImageFieldRule, PAYLOAD_RULES, is_thumbnail, looks_like_image_url, extract_character_photos,
    extract_message_images, extract_chat_images, dedupe_images, filter_images, selectable_images,
)
from .Image_Batches import find_batch_images
from .Image_Downloads import (
    DownloadResult, DownloadSummary, image_download_filename, verify_image_bytes, download_images,
)

__all__ = [
    "ImageFieldRule", "PAYLOAD_RULES", "is_thumbnail", "looks_like_image_url", "extract_character_photos",
    "extract_message_images", "extract_chat_images", "dedupe_images", "filter_images", "selectable_images",
    "find_batch_images",
    "DownloadResult", "DownloadSummary", "image_download_filename", "verify_image_bytes", "download_images",
]
