"""
Raw stream record extraction from classified provider payloads.
Output records keep the provider's field names; see normalizer.py.
"""
import logging

from iptv_catalog.models.catalog import KIND_LIVE, KIND_SERIES, SERIES_ID_PREFIX
from iptv_catalog.services.format_detector import ClassifiedPayload, PayloadFormat, unwrap_array
from iptv_catalog.services.json_fields import as_string

logger = logging.getLogger(__name__)


def _inject_kind(record: dict, kind: str):
    record.setdefault("stream_type", kind)
    # get_series lists carry series_id instead of stream_id
    if kind == KIND_SERIES and "stream_id" not in record:
        series_id = as_string(record.get("series_id"))
        if series_id is not None:
            record["stream_id"] = f"{SERIES_ID_PREFIX}{series_id}"


def _from_keyed_map(channels: dict, kind: str) -> list[dict]:
    """Panel shape: ``{"<stream_id>": {...record without id...}}``."""
    records = []
    for stream_id, channel_data in channels.items():
        if not isinstance(channel_data, dict):
            continue
        record = dict(channel_data)
        record["stream_id"] = str(stream_id)
        _inject_kind(record, kind)
        records.append(record)
    return records


def _from_array(channels: list, kind: str) -> list[dict]:
    """Player shape: a list of records; non-object elements are dropped."""
    records = []
    for channel_data in channels:
        if not isinstance(channel_data, dict):
            continue
        record = dict(channel_data)
        _inject_kind(record, kind)
        records.append(record)
    return records


def extract_channels(payload: ClassifiedPayload, kind: str = KIND_LIVE) -> list[dict]:
    """
    Extract raw stream records in source order.

    Args:
        payload: Classified response
        kind: Content kind of the originating endpoint, injected when a record
            does not carry its own ``stream_type``

    Returns:
        List of raw record dicts
    """
    records: list[dict] = []

    if payload.format in (PayloadFormat.NESTED_CATEGORIES, PayloadFormat.UNRECOGNIZED_OBJECT):
        available = payload.data.get("available_channels")
        if isinstance(available, dict):
            records = _from_keyed_map(available, kind)
        elif isinstance(available, list):
            records = _from_array(available, kind)
        elif payload.format == PayloadFormat.UNRECOGNIZED_OBJECT:
            wrapped = unwrap_array(payload.data)
            if wrapped is not None:
                records = _from_array(wrapped, kind)
            else:
                logger.warning(f"No channel list found in response from {payload.source_url or 'input'}")

    elif payload.format == PayloadFormat.FLAT_ARRAY:
        records = _from_array(payload.data, kind)

    logger.info(f"Extracted {len(records)} raw {kind} records from {payload.format.value} payload")
    return records
