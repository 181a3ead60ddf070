"""
Record normalization.
Maps raw provider records onto the canonical Channel model.
"""
import logging
from typing import Optional

from iptv_catalog.errors import MissingField
from iptv_catalog.models.catalog import (
    Category,
    Channel,
    KIND_LIVE,
    KIND_MOVIE,
    KIND_SERIES,
    SERIES_ID_PREFIX,
    UNCATEGORIZED,
    canonical_kind,
)
from iptv_catalog.services.json_fields import (
    as_float,
    as_int,
    as_string,
    as_string_list,
    first_string,
)

logger = logging.getLogger(__name__)

API_SUFFIXES = ("/api/panel_api.php", "/panel_api.php", "/player_api.php")

KIND_PATHS = {
    KIND_LIVE: "live",
    KIND_MOVIE: "movie",
    KIND_SERIES: "series",
}

# Optional metadata copied through as present-or-absent
METADATA_FIELDS = {
    "type_name": as_string,
    "stream_icon": as_string,
    "epg_channel_id": as_string,
    "added": as_string,
    "series_no": as_string,
    "live": as_string,
    "container_extension": as_string,
    "custom_sid": as_string,
    "tv_archive": as_int,
    "direct_source": as_string,
    "tv_archive_duration": as_int,
    "num": as_string,
    "plot": as_string,
    "cast": as_string,
    "director": as_string,
    "genre": as_string,
    "release_date": as_string,
    "rating": as_string,
    "rating_5based": as_float,
    "backdrop_path": as_string_list,
    "youtube_trailer": as_string,
    "episode_run_time": as_string,
    "cover": as_string,
}


def base_server_url(server_url: str) -> str:
    """Strip a trailing API script (player_api.php / panel_api.php) and slashes."""
    url = server_url.strip().rstrip("/")
    for suffix in API_SUFFIXES:
        if url.endswith(suffix):
            url = url[: -len(suffix)]
            break
    return url.rstrip("/")


def build_stream_url(
    server_url: str,
    username: str,
    password: str,
    stream_type: str,
    stream_id: str,
    extension: Optional[str] = None,
) -> str:
    """Xtream-style playback URL: ``{server}/{kind}/{username}/{password}/{id}``."""
    path = KIND_PATHS.get(stream_type, "live")
    url = f"{base_server_url(server_url)}/{path}/{username}/{password}/{stream_id}"
    if extension:
        url = f"{url}.{extension.lstrip('.')}"
    return url


class RecordNormalizer:
    """Normalize raw records for one playlist against a resolved category map."""

    def __init__(
        self,
        playlist_id: int,
        server_url: str,
        username: str,
        password: str,
        categories: Optional[dict[str, Category]] = None,
    ):
        self.playlist_id = playlist_id
        self.server_url = server_url
        self.username = username
        self.password = password
        self.categories = categories or {}

    def normalize(self, record: dict, kind: Optional[str] = None) -> Channel:
        """
        Normalize a single raw record.

        Raises:
            MissingField: the record has no stream id or no name
        """
        stream_id = first_string(record, "stream_id", "num")
        if stream_id is None:
            raise MissingField("stream_id")

        name = first_string(record, "name", "title")
        if name is None:
            raise MissingField("name")

        category_id = first_string(record, "category_id", "group")
        category = self.categories.get(category_id) if category_id is not None else None
        category_name = category.name if category else UNCATEGORIZED

        stream_type = (
            canonical_kind(as_string(record.get("stream_type")))
            or canonical_kind(kind)
            or KIND_LIVE
        )

        metadata = {}
        for field, coerce in METADATA_FIELDS.items():
            value = coerce(record.get(field))
            if value is not None:
                metadata[field] = value

        stream_url = first_string(record, "stream_url", "stream")
        if stream_url is None:
            url_id = stream_id
            if stream_id.startswith(SERIES_ID_PREFIX):
                url_id = first_string(record, "series_id") or stream_id[len(SERIES_ID_PREFIX):]
            stream_url = build_stream_url(
                self.server_url,
                self.username,
                self.password,
                stream_type,
                url_id,
                metadata.get("container_extension"),
            )

        return Channel(
            playlist_id=self.playlist_id,
            category_id=category_id,
            category_name=category_name,
            stream_id=stream_id,
            name=name,
            stream_type=stream_type,
            stream_url=stream_url,
            **metadata,
        )

    def normalize_all(self, records: list[dict], kind: Optional[str] = None) -> list[Channel]:
        """
        Normalize a batch. Records that fail are dropped; the first record
        with a given stream id wins over later duplicates.
        """
        channels = []
        seen: set[str] = set()
        dropped = 0
        duplicates = 0

        for record in records:
            try:
                channel = self.normalize(record, kind)
            except MissingField as e:
                dropped += 1
                logger.debug(f"Dropping record without {e.field}: {sorted(record.keys())}")
                continue
            if channel.stream_id in seen:
                duplicates += 1
                continue
            seen.add(channel.stream_id)
            channels.append(channel)

        if dropped:
            logger.warning(f"Dropped {dropped} records missing a stream id or name")
        if duplicates:
            logger.warning(f"Dropped {duplicates} records with duplicate stream ids")
        logger.info(f"Normalized {len(channels)} channels for playlist {self.playlist_id}")
        return channels
