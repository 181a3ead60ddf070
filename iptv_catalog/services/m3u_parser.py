"""
M3U Parser Service.
Parses M3U / M3U Plus playlist text into canonical channels.
"""
import re
import logging
from typing import Optional

from iptv_catalog.errors import InvalidFormat
from iptv_catalog.models.catalog import Channel, KIND_LIVE, UNCATEGORIZED

logger = logging.getLogger(__name__)

HEADER_TAG = "#EXTM3U"
EXTINF_TAG = "#EXTINF:"

# key="value" attributes on an EXTINF line (values may contain spaces)
ATTRIBUTE_PATTERN = re.compile(r'([A-Za-z0-9_-]+)="([^"]*)"')


def parse_extinf(line: str) -> dict:
    """
    Split an EXTINF line into its attributes and display name.

    The name is whatever follows the last comma:
    ``#EXTINF:-1 tvg-id="x" group-title="y",Channel Name``
    """
    attributes = {key.lower(): value.strip() for key, value in ATTRIBUTE_PATTERN.findall(line)}
    name = None
    if "," in line:
        name = line.rsplit(",", 1)[1].strip() or None
    return {
        "name": name or attributes.get("tvg-name") or "Unknown",
        "group": attributes.get("group-title") or UNCATEGORIZED,
        "attributes": attributes,
    }


class M3UParser:
    """Parse M3U playlist text for one playlist."""

    def __init__(self, playlist_id: int):
        self.playlist_id = playlist_id

    def parse(self, content: str) -> list[Channel]:
        """
        Parse playlist text.

        Stream ids are a 1-based counter over accepted entries, so they are
        only stable within one parse.

        Args:
            content: Raw M3U text

        Returns:
            Channels in playlist order

        Raises:
            InvalidFormat: first non-empty line is not #EXTM3U
        """
        lines = iter((content or "").lstrip("\ufeff").splitlines())

        header = next((line.strip() for line in lines if line.strip()), "")
        if not header.startswith(HEADER_TAG):
            raise InvalidFormat("M3U content does not start with #EXTM3U")

        channels = []
        current_info: Optional[dict] = None
        dangling = 0

        for line in lines:
            line = line.strip()
            if not line:
                continue

            if line.startswith(EXTINF_TAG):
                current_info = parse_extinf(line)
            elif line.startswith("#"):
                continue
            elif current_info is None:
                dangling += 1
            else:
                attributes = current_info["attributes"]
                channels.append(Channel(
                    playlist_id=self.playlist_id,
                    category_id=None,
                    category_name=current_info["group"],
                    stream_id=str(len(channels) + 1),
                    name=current_info["name"],
                    stream_type=KIND_LIVE,
                    stream_url=line,
                    stream_icon=attributes.get("tvg-logo") or None,
                    epg_channel_id=attributes.get("tvg-id") or None,
                ))
                current_info = None

        if dangling:
            logger.debug(f"Ignored {dangling} URL lines without a preceding #EXTINF")
        logger.info(f"Parsed {len(channels)} channels from M3U content")
        return channels
