"""
Playlist management API endpoints.
"""
from fastapi import APIRouter, HTTPException

from iptv_catalog.models.catalog import Playlist, PlaylistCreate
from iptv_catalog.services.catalog_store import get_store

router = APIRouter(prefix="/api/playlists", tags=["playlists"])


@router.post("", status_code=201)
async def add_playlist(playlist: PlaylistCreate) -> Playlist:
    """Store a new provider account."""
    store = await get_store()
    playlist_id = await store.add_playlist(playlist)
    return await store.get_playlist(playlist_id)


@router.get("")
async def list_playlists():
    store = await get_store()
    playlists = await store.get_playlists()
    return {"playlists": playlists}


@router.get("/{playlist_id}")
async def get_playlist(playlist_id: int) -> Playlist:
    store = await get_store()
    playlist = await store.get_playlist(playlist_id)
    if not playlist:
        raise HTTPException(status_code=404, detail="Playlist not found")
    return playlist


@router.put("/{playlist_id}")
async def update_playlist(playlist_id: int, playlist: PlaylistCreate) -> Playlist:
    store = await get_store()
    if not await store.update_playlist(playlist_id, playlist):
        raise HTTPException(status_code=404, detail="Playlist not found")
    return await store.get_playlist(playlist_id)


@router.delete("/{playlist_id}", status_code=204)
async def delete_playlist(playlist_id: int):
    """Delete a playlist together with its categories and channels."""
    store = await get_store()
    if not await store.delete_playlist(playlist_id):
        raise HTTPException(status_code=404, detail="Playlist not found")
