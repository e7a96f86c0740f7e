# Constants.py
# Description: Constants shared by the retrieval and export pipeline
#
# Imports
#
# 3rd-Party Imports
#
# Local Imports
#
########################################################################################################################
#
# Functions:

# --- Remote API ---
PAGE_SIZE = 500
CSRF_HEADER = "X-Csrf-Token"

MAX_RETRIES = 6
BACKOFF_BASE_MS = 2000
BACKOFF_CAP_MS = 15000
RETRYABLE_STATUS_CODES = {429}  # plus every 5xx

# --- Cache TTLs (milliseconds) ---
CHAT_LIST_TTL_MS = 5 * 60 * 1000
CHAT_MESSAGES_TTL_MS = 10 * 60 * 1000
IMAGE_COUNTS_TTL_MS = 30 * 60 * 1000

# --- Background image-count fill ---
IMAGE_COUNT_BATCH_SIZE = 5
IMAGE_COUNT_BATCH_DELAY_S = 0.3

# --- Bulk image download ---
IMAGE_DOWNLOAD_BATCH_SIZE = 5
IMAGE_DOWNLOAD_BATCH_DELAY_S = 1.0

# --- Speakers / placeholders ---
USER_DISPLAY_NAME = "You"
CHARACTER_PLACEHOLDER = "Character"
GENERATED_IMAGE_CAPTION = "Generated Image"
UNKNOWN_MODEL = "Unknown Model"
CAPTION_MAX_CHARS = 100

# --- Image heuristics ---
PRIMARY_IMAGE_FIELD = "output_image_url"
IMAGE_EXTENSIONS = (".jpg", ".jpeg", ".png", ".webp")
THUMBNAIL_MARKERS = (
    "-resized",
    "width%3D256",
    "width=256",
    "width%3D512",
    "width=512",
    "thumbnail",
    "thumb",
    "small",
    "preview",
)
KNOWN_IMAGE_ARRAY_FIELDS = ("output_images", "images", "generated_images", "result_images", "full_images")
IMAGE_OBJECT_URL_KEYS = (
    "url", "src", "image_url", "link", "href", "full_url",
    "original_url", "image", "thumbnail_url", "full_image_url",
)
# HTML export only looks at these, and prefers "orig_url" inside objects
HTML_IMAGE_ARRAY_FIELDS = ("output_images", "images", "generated_images")
HTML_IMAGE_OBJECT_URL_KEYS = ("url", "src", "image_url", "full_url", "original_url")

SOURCE_CHARACTER_FOREGROUND = "character.photos.foreground"
SOURCE_CHARACTER_BACKGROUND = "character.photos.background"

BATCH_TIME_WINDOW_MS = 2000
BATCH_SIZE_EXACT = 2

IMAGE_COMMANDS = ("/image you", "/image face", "/image last", "/image raw_last")
IMAGE_FILTERS = ("all",) + IMAGE_COMMANDS + ("Character Photo", "Background Photo")

# --- Chat list sorting ---
SORT_DATE_DESC = "date_desc"
SORT_DATE_ASC = "date_asc"
SORT_NAME_ASC = "name_asc"
SORT_NAME_DESC = "name_desc"
SORT_CHARS_ASC = "chars_asc"
SORT_IMAGE_COUNT_DESC = "image_count_desc"
SORT_IMAGE_COUNT_ASC = "image_count_asc"
ALL_SORT_MODES = [SORT_DATE_DESC, SORT_DATE_ASC, SORT_NAME_ASC, SORT_NAME_DESC,
                  SORT_CHARS_ASC, SORT_IMAGE_COUNT_DESC, SORT_IMAGE_COUNT_ASC]
IMAGE_COUNT_SORT_MODES = (SORT_IMAGE_COUNT_DESC, SORT_IMAGE_COUNT_ASC)

# --- Export ---
FILENAME_MAX_CHARS = 120
GREETING_OFFSET_MS = 60 * 60 * 1000

# Accent colour used by the HTML export, keyed by a hostname fragment
SITE_ACCENT_COLORS = {
    "moescape.ai": "#E4F063",
    "yodayo.com": "#f597E8",
}
DEFAULT_ACCENT_COLOR = "#E4F063"

#
# End of Constants.py
########################################################################################################################
