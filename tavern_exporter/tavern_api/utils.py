# tavern_exporter/tavern_api/utils.py
#
#
# Imports
import json
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlsplit
#
# 3rd-party Libraries
from loguru import logger
#
#######################################################################################################################
#
# Functions:

def parse_timestamp(value: Union[str, int, float, datetime, None]) -> Optional[datetime]:
    """
    Converts the API's timestamp representations into an aware UTC datetime.

    The service sends ISO-8601 strings (sometimes with a trailing 'Z'); numbers
    are taken as epoch milliseconds. Anything unparsable becomes None.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=timezone.utc)
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.debug(f"Unparsable timestamp from API: {value!r}")
            return None
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    return None


def to_epoch_ms(value: Optional[datetime]) -> int:
    """Epoch milliseconds for a datetime; missing timestamps sort first as 0."""
    if value is None:
        return 0
    return int(round(value.timestamp() * 1000))


def normalize_url(url: str) -> str:
    """Strips the query string (and fragment) so resized/signed variants compare equal."""
    try:
        parts = urlsplit(url)
    except ValueError:
        return url.split("?")[0]
    if parts.scheme and parts.netloc:
        return f"{parts.scheme}://{parts.netloc}{parts.path}"
    return url.split("?")[0]


def parse_page(body: Optional[str], records_field: str) -> Optional[List[Dict[str, Any]]]:
    """
    Decodes one page of a paginated listing.

    Returns the list stored under `records_field`, or None when the body is
    absent, not JSON, carries an explicit `error` indicator, or has no list
    under that field.
    """
    if body is None:
        return None
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, TypeError) as e:
        logger.warning(f"Could not decode page body as JSON: {e}")
        return None
    if not isinstance(payload, dict):
        logger.warning(f"Unexpected page payload type: {type(payload).__name__}")
        return None
    if payload.get("error"):
        logger.warning(f"API returned an error indicator: {payload.get('error')!r}")
        return None
    records = payload.get(records_field)
    if not isinstance(records, list):
        logger.warning(f"Page payload is missing a '{records_field}' list")
        return None
    return records


def parse_object(body: Optional[str]) -> Optional[Dict[str, Any]]:
    """Decodes a single JSON object response; None on absence, bad JSON, or an error indicator."""
    if not body:
        return None
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, TypeError):
        logger.warning("Could not decode object body as JSON")
        return None
    if not isinstance(payload, dict) or payload.get("error"):
        return None
    return payload

#
# End of utils.py
#######################################################################################################################
