# tavern_exporter/config.py
# Description: Configuration management for the tavern_exporter application.
#
# Imports
import copy
import os
import tomllib
from pathlib import Path
from typing import Any, Dict, Optional
#
# Third-Party Imports
from loguru import logger
#
# Local Imports
#
#######################################################################################################################
#
# Functions:

# --- Path to the configuration file ---
DEFAULT_CONFIG_PATH = Path.home() / ".config" / "tavern_exporter" / "config.toml"
CONFIG_PATH_ENV_VAR = "TAVERN_EXPORTER_CONFIG"
COOKIE_ENV_VAR = "TAVERN_EXPORTER_COOKIE"

BASE_DATA_DIR = Path.home() / ".local" / "share" / "tavern_exporter"

CONFIG_TOML_CONTENT = """
# Configuration for tavern_exporter
# This file is created with defaults on first run. Edit it to suit your setup.

[general]
log_level = "INFO" # TRACE, DEBUG, INFO, WARNING, ERROR, CRITICAL

[logging]
# The log file lives in the data directory (~/.local/share/tavern_exporter)
log_filename = "tavern_exporter.log"
file_log_level = "INFO"
log_max_bytes = 10485760 # 10 MB
log_backup_count = 5

[api]
# API host of the site. Use "https://api.yodayo.com" for Yodayo.
base_url = "https://api.moescape.ai"
# Page the exports are attributed to; also selects the HTML accent colour
site_url = "https://moescape.ai/"
# Paste the Cookie header of a logged-in browser session, or set TAVERN_EXPORTER_COOKIE
session_cookie = ""
timeout = 30.0
max_retries = 6

[export]
default_format = "txt" # txt, jsonl-st, jsonl-openai, json, html
output_dir = "~/Downloads"

[images]
download_dir = "~/Downloads/tavern_images"
batch_size = 5
batch_delay = 1.0
"""

try:
    DEFAULT_CONFIG_FROM_TOML: Dict[str, Any] = tomllib.loads(CONFIG_TOML_CONTENT)
except tomllib.TOMLDecodeError as e:
    logger.critical(f"FATAL: Could not parse internal CONFIG_TOML_CONTENT: {e}")
    DEFAULT_CONFIG_FROM_TOML = {}


# --- Helper for deep merging dictionaries ---
def deep_merge_dicts(base: Dict, update: Dict) -> Dict:
    """Recursively merges update_dict into base_dict."""
    merged = copy.deepcopy(base)
    for key, value in update.items():
        if isinstance(value, dict) and key in merged and isinstance(merged[key], dict):
            merged[key] = deep_merge_dicts(merged[key], value)
        else:
            merged[key] = value
    return merged


def get_config_path(config_path: Optional[Path] = None) -> Path:
    if config_path:
        return Path(config_path).expanduser()
    override = os.environ.get(CONFIG_PATH_ENV_VAR)
    return Path(override).expanduser() if override else DEFAULT_CONFIG_PATH


# --- Primary Configuration Loading Logic ---
_CONFIG_CACHE: Optional[Dict[str, Any]] = None

def load_settings(force_reload: bool = False, config_path: Optional[Path] = None) -> Dict[str, Any]:
    """
    Loads settings from config_path, TAVERN_EXPORTER_CONFIG or ~/.config/tavern_exporter/config.toml, in that order.
    If the file doesn't exist, it's created with default values.
    """
    global _CONFIG_CACHE
    if _CONFIG_CACHE is not None and not force_reload:
        return _CONFIG_CACHE

    config_path = get_config_path(config_path)
    loaded_config = copy.deepcopy(DEFAULT_CONFIG_FROM_TOML)

    if not config_path.exists():
        logger.info(f"Config file not found at {config_path}. Creating with default values.")
        try:
            config_path.parent.mkdir(parents=True, exist_ok=True)
            with open(config_path, "w", encoding="utf-8") as f:
                f.write(CONFIG_TOML_CONTENT)
            logger.info(f"Created default config file at {config_path}")
        except OSError as e:
            logger.error(f"Could not create default config file {config_path}: {e}. Using internal defaults.")
    else:
        logger.debug(f"Loading config from: {config_path}")
        try:
            with open(config_path, "rb") as f:
                user_config_from_file = tomllib.load(f)
            loaded_config = deep_merge_dicts(loaded_config, user_config_from_file)
        except tomllib.TOMLDecodeError as e:
            logger.error(f"Error decoding TOML config file {config_path}: {e}. Using internal defaults.")
        except OSError as e:
            logger.error(f"Could not read config file {config_path}: {e}. Using internal defaults.")

    cookie_override = os.environ.get(COOKIE_ENV_VAR)
    if cookie_override:
        loaded_config.setdefault("api", {})["session_cookie"] = cookie_override
        logger.debug(f"Session cookie taken from {COOKIE_ENV_VAR}")

    _CONFIG_CACHE = loaded_config
    logger.debug(f"load_settings returning config with top-level keys: {list(loaded_config.keys())}")
    return _CONFIG_CACHE


# --- Setting Getter ---
def get_cli_setting(section: str, key: str, default: Any = None) -> Any:
    """Helper to get a specific setting from the loaded configuration."""
    config = load_settings()
    section_data = config.get(section)
    if isinstance(section_data, dict):
        return section_data.get(key, default)
    return default


# --- Path Getters ---
def get_log_file_path() -> Path:
    default_log_filename = DEFAULT_CONFIG_FROM_TOML.get("logging", {}).get("log_filename", "tavern_exporter.log")
    log_filename = get_cli_setting("logging", "log_filename", default_log_filename)
    log_file_path = BASE_DATA_DIR / log_filename
    try:
        log_file_path.parent.mkdir(parents=True, exist_ok=True)
    except OSError as e:
        logger.error(f"Could not create log directory {log_file_path.parent}: {e}")
    return log_file_path


def get_export_dir() -> Path:
    return Path(get_cli_setting("export", "output_dir", "~/Downloads")).expanduser()


def get_image_download_dir() -> Path:
    return Path(get_cli_setting("images", "download_dir", "~/Downloads/tavern_images")).expanduser()

#
# End of config.py
#######################################################################################################################
