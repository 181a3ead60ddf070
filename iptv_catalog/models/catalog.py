"""
Playlist, Category and Channel data models.
Channel is the canonical, storage-ready shape every provider dialect normalizes into.
"""
from pydantic import BaseModel, Field
from typing import Optional


UNCATEGORIZED = "Uncategorized"

# Content kinds. "movie" is the canonical label for video-on-demand;
# providers that say "vod" are mapped onto it.
KIND_LIVE = "live"
KIND_MOVIE = "movie"
KIND_SERIES = "series"
CONTENT_KINDS = (KIND_LIVE, KIND_MOVIE, KIND_SERIES)

# get_series ids share no range with live/vod stream ids; namespaced on ingestion
SERIES_ID_PREFIX = "series:"


def canonical_kind(kind: Optional[str]) -> Optional[str]:
    """Map provider kind labels onto the canonical ones, leaving unknown labels as-is."""
    if kind is None:
        return None
    kind = kind.strip().lower()
    if kind in ("vod", "movies"):
        return KIND_MOVIE
    return kind


class PlaylistBase(BaseModel):
    """Provider account fields supplied by the caller."""
    name: str
    server_url: str
    username: str
    password: str
    epg_url: Optional[str] = None
    is_active: bool = True


class PlaylistCreate(PlaylistBase):
    pass


class Playlist(PlaylistBase):
    """Stored provider account."""
    id: int
    created_at: str
    updated_at: Optional[str] = None
    last_updated: Optional[str] = None


class PlaylistCredentials(BaseModel):
    server_url: str
    username: str
    password: str


class Category(BaseModel):
    """Content grouping scoped to a playlist."""
    category_id: str
    name: str
    content_type: str = KIND_LIVE
    parent_id: Optional[int] = None
    playlist_id: Optional[int] = None


class Channel(BaseModel):
    """One playable item (live channel, movie or series entry)."""
    id: Optional[int] = None
    playlist_id: int
    category_id: Optional[str] = None
    # Snapshot taken at ingestion time, never re-joined.
    category_name: str = UNCATEGORIZED
    stream_id: str
    name: str
    stream_type: str = KIND_LIVE
    stream_url: str

    # Optional provider metadata
    type_name: Optional[str] = None
    stream_icon: Optional[str] = None
    epg_channel_id: Optional[str] = None
    added: Optional[str] = None
    series_no: Optional[str] = None
    live: Optional[str] = None
    container_extension: Optional[str] = None
    custom_sid: Optional[str] = None
    tv_archive: Optional[int] = None
    direct_source: Optional[str] = None
    tv_archive_duration: Optional[int] = None
    num: Optional[str] = None
    plot: Optional[str] = None
    cast: Optional[str] = None
    director: Optional[str] = None
    genre: Optional[str] = None
    release_date: Optional[str] = None
    rating: Optional[str] = None
    rating_5based: Optional[float] = None
    backdrop_path: Optional[list[str]] = None
    youtube_trailer: Optional[str] = None
    episode_run_time: Optional[str] = None
    cover: Optional[str] = None

    created_at: Optional[str] = None


class SelectedChannelUpdate(BaseModel):
    channel_id: int


class SyncResponse(BaseModel):
    """Result of a catalog sync returned to the caller."""
    playlist_id: int
    channel_count: int
    channels: list[Channel] = Field(default_factory=list)


class ImportResponse(BaseModel):
    playlist_id: int
    imported: bool
