"""
Response format detection.
Classifies a provider response body into one of the known dialects.
"""
import json
import logging
from enum import Enum
from typing import Any, Optional
from urllib.parse import urlparse, parse_qs

from pydantic import BaseModel

from iptv_catalog.errors import ParseError

logger = logging.getLogger(__name__)

# Wrapper keys some providers put around a stream array
WRAPPER_KEYS = ("channels", "data", "live_streams")


class PayloadFormat(str, Enum):
    PLAYLIST_TEXT = "playlist_text"
    NESTED_CATEGORIES = "nested_categories"
    FLAT_ARRAY = "flat_array"
    UNRECOGNIZED_OBJECT = "unrecognized_object"


class ClassifiedPayload(BaseModel):
    """A response body tagged with its dialect."""
    format: PayloadFormat
    data: Any = None
    text: Optional[str] = None
    source_url: str = ""


def is_m3u_endpoint(url: str) -> bool:
    """True when the URL asks for an M3U playlist (``type=m3u*`` or a .m3u path)."""
    parsed = urlparse(url)
    query = parse_qs(parsed.query)
    if any(value.lower().startswith("m3u") for value in query.get("type", [])):
        return True
    return parsed.path.lower().endswith((".m3u", ".m3u8"))


def detect_format(body: str, url: str = "") -> ClassifiedPayload:
    """
    Classify a raw response body.

    Args:
        body: Response text
        url: Endpoint that produced it

    Returns:
        The classified payload

    Raises:
        ParseError: the body is not JSON and the URL is not an M3U endpoint
    """
    if is_m3u_endpoint(url):
        return ClassifiedPayload(format=PayloadFormat.PLAYLIST_TEXT, text=body, source_url=url)

    try:
        data = json.loads(body)
    except (json.JSONDecodeError, TypeError) as e:
        raise ParseError(f"Response from {url or 'input'} is not valid JSON: {e}") from e

    if isinstance(data, dict):
        if isinstance(data.get("categories"), dict):
            payload_format = PayloadFormat.NESTED_CATEGORIES
        else:
            payload_format = PayloadFormat.UNRECOGNIZED_OBJECT
    elif isinstance(data, list):
        payload_format = PayloadFormat.FLAT_ARRAY
    else:
        raise ParseError(f"Response from {url or 'input'} is a bare JSON {type(data).__name__}")

    if payload_format == PayloadFormat.UNRECOGNIZED_OBJECT:
        logger.debug(f"Unrecognized object with keys: {sorted(data.keys())}")
    return ClassifiedPayload(format=payload_format, data=data, source_url=url)


def unwrap_array(data: dict) -> Optional[list]:
    """Best-effort scan of an unrecognized object for a wrapped stream array."""
    for key in WRAPPER_KEYS:
        value = data.get(key)
        if isinstance(value, list):
            return value
    return None
