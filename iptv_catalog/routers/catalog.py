"""
Catalog API endpoints: sync, M3U import and catalog reads for one playlist.
"""
from fastapi import APIRouter, Request, Query, HTTPException
from slowapi import Limiter
from slowapi.util import get_remote_address
from typing import Optional

from iptv_catalog.config import get_settings
from iptv_catalog.errors import (
    AllEndpointsFailed,
    InvalidFormat,
    PlaylistNotFound,
    StorageError,
)
from iptv_catalog.models.catalog import (
    ImportResponse,
    SelectedChannelUpdate,
    SyncResponse,
    canonical_kind,
)
from iptv_catalog.services.catalog_store import get_store
from iptv_catalog.services.catalog_sync import get_sync_service

import logging
logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/playlists", tags=["catalog"])

# Rate limiter (sync requests hit the provider)
limiter = Limiter(key_func=get_remote_address)
SYNC_RATE_LIMIT = f"{get_settings().sync_rate_limit_per_minute}/minute"


async def _require_playlist(playlist_id: int):
    store = await get_store()
    if not await store.get_playlist(playlist_id):
        raise HTTPException(status_code=404, detail="Playlist not found")
    return store


@router.post("/{playlist_id}/sync")
@limiter.limit(SYNC_RATE_LIMIT)
async def sync_playlist(request: Request, playlist_id: int) -> SyncResponse:
    """
    Fetch the playlist's catalog from its provider and replace the stored one.

    - **502**: no provider endpoint returned usable data
    - **500**: the catalog could not be stored (previous catalog kept)
    """
    sync_service = get_sync_service()
    try:
        channels = await sync_service.sync_playlist(playlist_id)
    except PlaylistNotFound:
        raise HTTPException(status_code=404, detail="Playlist not found")
    except AllEndpointsFailed as e:
        raise HTTPException(status_code=502, detail=str(e))
    except InvalidFormat as e:
        raise HTTPException(status_code=502, detail=f"Provider returned an invalid playlist: {e}")
    except StorageError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return SyncResponse(playlist_id=playlist_id, channel_count=len(channels), channels=channels)


@router.post("/{playlist_id}/import-m3u")
async def import_m3u(request: Request, playlist_id: int) -> ImportResponse:
    """Replace the playlist's channels with the M3U text sent as the request body."""
    await _require_playlist(playlist_id)
    content = (await request.body()).decode("utf-8", errors="ignore")

    sync_service = get_sync_service()
    try:
        imported = await sync_service.import_from_m3u(playlist_id, content)
    except InvalidFormat as e:
        raise HTTPException(status_code=422, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=500, detail=str(e))

    return ImportResponse(playlist_id=playlist_id, imported=imported)


@router.get("/{playlist_id}/channels")
async def list_channels(
    playlist_id: int,
    category_id: Optional[str] = Query(None, description="Provider category id"),
    stream_type: Optional[str] = Query(None, description="live, movie or series"),
):
    """List the playlist's channels."""
    store = await _require_playlist(playlist_id)
    channels = await store.fetch_channels(
        playlist_id, category_id=category_id, stream_type=canonical_kind(stream_type)
    )
    return {"channels": channels, "total": len(channels)}


@router.get("/{playlist_id}/categories")
async def list_categories(
    playlist_id: int,
    content_type: Optional[str] = Query(None, description="live, movie or series"),
):
    store = await _require_playlist(playlist_id)
    categories = await store.get_categories(playlist_id, canonical_kind(content_type))
    return {"categories": categories}


@router.get("/{playlist_id}/selected-channel")
async def get_selected_channel(playlist_id: int):
    store = await _require_playlist(playlist_id)
    channel = await store.get_selected_channel(playlist_id)
    return {"channel": channel}


@router.put("/{playlist_id}/selected-channel")
async def set_selected_channel(playlist_id: int, update: SelectedChannelUpdate):
    store = await _require_playlist(playlist_id)
    if not await store.set_selected_channel(playlist_id, update.channel_id):
        raise HTTPException(status_code=404, detail="Channel not found in playlist")
    return {"channel": await store.get_selected_channel(playlist_id)}
