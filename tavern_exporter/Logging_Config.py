# Logging_Config.py
# Description: Configuration for logging
#
# Imports
import logging
import logging.handlers
from pathlib import Path
from typing import Optional
#
# 3rd-Party Imports
from loguru import logger as loguru_logger
from rich.console import Console
from rich.logging import RichHandler
#
# Local Imports
from .config import get_cli_setting, get_log_file_path
#
########################################################################################################################
#
# Functions:

LEVEL_MAPPING = {
    "TRACE": logging.DEBUG, "DEBUG": logging.DEBUG, "INFO": logging.INFO,
    "SUCCESS": logging.INFO, "WARNING": logging.WARNING, "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}


def sink_to_standard_logging(message):
    """Loguru sink that re-emits each record through the standard `logging` tree."""
    record = message.record
    std_level = LEVEL_MAPPING.get(record["level"].name, logging.INFO)
    std_logger = logging.getLogger(record["name"])
    if record["exception"]:
        std_logger.log(std_level, record["message"], exc_info=record["exception"])
    else:
        std_logger.log(std_level, record["message"])


def configure_logging(log_level: Optional[str] = None, log_file: Optional[Path] = None,
                      console: Optional[Console] = None) -> None:
    """Routes loguru through standard logging, to a Rich console handler and a rotating log file."""
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)

    loguru_logger.remove()
    loguru_logger.add(sink_to_standard_logging, level="TRACE")

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    level_name = (log_level or get_cli_setting("general", "log_level", "INFO")).upper()
    console_level = getattr(logging, level_name, logging.INFO)
    root_logger.setLevel(logging.DEBUG)

    console_handler = RichHandler(console=console or Console(stderr=True), show_path=False, rich_tracebacks=True)
    console_handler.setLevel(console_level)
    console_handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    root_logger.addHandler(console_handler)

    log_file_path = Path(log_file) if log_file else get_log_file_path()
    try:
        log_file_path.parent.mkdir(parents=True, exist_ok=True)
        max_bytes = int(get_cli_setting("logging", "log_max_bytes", 10485760))
        backup_count = int(get_cli_setting("logging", "log_backup_count", 5))
        file_level_str = str(get_cli_setting("logging", "file_log_level", "INFO")).upper()
        file_handler = logging.handlers.RotatingFileHandler(
            log_file_path, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        file_handler.setLevel(getattr(logging, file_level_str, logging.INFO))
        file_handler.setFormatter(logging.Formatter(
            "%(asctime)s [%(levelname)-8s] %(name)s:%(lineno)d - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S"
        ))
        root_logger.addHandler(file_handler)
    except OSError as e:
        logging.warning(f"File logging disabled, could not open {log_file_path}: {e}")

    loguru_logger.debug(f"Logging configured (console level {level_name}, file {log_file_path})")

#
# End of Logging_Config.py
########################################################################################################################
