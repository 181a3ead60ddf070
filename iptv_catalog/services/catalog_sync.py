"""
Catalog synchronization service.
Probes a provider, normalizes whatever dialect answers and replaces the
playlist's catalog in one transaction.
"""
import httpx
import logging
from typing import Optional

from iptv_catalog.config import get_settings
from iptv_catalog.errors import AllEndpointsFailed, InvalidFormat
from iptv_catalog.models.catalog import Category, Channel
from iptv_catalog.services.catalog_store import CatalogStore, get_store
from iptv_catalog.services.category_extractor import extract_categories
from iptv_catalog.services.channel_extractor import extract_channels
from iptv_catalog.services.format_detector import PayloadFormat
from iptv_catalog.services.m3u_parser import M3UParser
from iptv_catalog.services.normalizer import RecordNormalizer
from iptv_catalog.services.provider_client import (
    PLAYER_KIND_ENDPOINTS,
    PLAYER_LIVE_STREAMS_PROBE,
    ProbeOutcome,
    ProviderClient,
)

logger = logging.getLogger(__name__)


class CatalogSyncService:
    """Service to sync a playlist's catalog from its provider."""

    def __init__(
        self,
        store: Optional[CatalogStore] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = get_settings()
        self._store = store
        self.transport = transport

    async def _get_store(self) -> CatalogStore:
        if self._store is None:
            self._store = await get_store()
        return self._store

    async def sync_playlist(self, playlist_id: int) -> list[Channel]:
        """Sync using the credentials stored for the playlist."""
        store = await self._get_store()
        credentials = await store.get_playlist_credentials(playlist_id)
        return await self.sync_catalog(
            playlist_id, credentials.server_url, credentials.username, credentials.password
        )

    async def sync_catalog(
        self,
        playlist_id: int,
        server_url: str,
        username: str,
        password: str,
    ) -> list[Channel]:
        """
        Fetch, normalize and store a playlist's catalog.

        Args:
            playlist_id: Playlist whose catalog is replaced
            server_url: Provider base URL
            username: Provider username
            password: Provider password

        Returns:
            The committed channels

        Raises:
            AllEndpointsFailed: no endpoint produced usable data (nothing written)
            InvalidFormat: the M3U endpoint answered with something that is not M3U
            StorageError: the commit failed (previous catalog kept)
        """
        store = await self._get_store()
        client = ProviderClient(server_url, username, password, transport=self.transport)

        logger.info(f"Syncing catalog for playlist {playlist_id}")
        try:
            outcome = await client.probe()
        except AllEndpointsFailed as e:
            logger.error(f"Sync failed for playlist {playlist_id}: {e}")
            raise

        payload = outcome.payload
        logger.info(f"Using {outcome.probe.name} endpoint ({payload.format.value})")

        if payload.format == PayloadFormat.PLAYLIST_TEXT:
            return await self._replace_from_m3u(playlist_id, payload.text or "")

        # Categories are fully resolved before any record is normalized
        categories = extract_categories(payload, outcome.probe.kind)
        records = extract_channels(payload, outcome.probe.kind)

        if outcome.probe.name == PLAYER_LIVE_STREAMS_PROBE.name:
            await self._fetch_player_kinds(client, categories, records)

        normalizer = RecordNormalizer(playlist_id, server_url, username, password, categories)
        channels = normalizer.normalize_all(records)

        stored = await store.replace_catalog(playlist_id, channels, list(categories.values()))
        logger.info(
            f"Synced playlist {playlist_id}: {len(channels)} channels, {len(categories)} categories"
        )
        return stored

    async def _fetch_player_kinds(
        self,
        client: ProviderClient,
        categories: dict[str, Category],
        records: list[dict],
    ):
        """Add the configured movie/series endpoints of the player dialect. Best effort."""
        for kind in self.settings.player_content_kinds:
            endpoints = PLAYER_KIND_ENDPOINTS.get(kind)
            if endpoints is None:
                continue
            categories_probe, streams_probe = endpoints

            outcome = await client.fetch(categories_probe)
            if outcome.ok:
                categories.update(extract_categories(outcome.payload, kind))
            else:
                self._log_skipped(outcome)

            outcome = await client.fetch(streams_probe)
            if outcome.ok:
                records.extend(extract_channels(outcome.payload, kind))
            else:
                self._log_skipped(outcome)

    @staticmethod
    def _log_skipped(outcome: ProbeOutcome):
        logger.warning(f"Skipping {outcome.probe.name}: {outcome.error}")

    async def import_from_m3u(self, playlist_id: int, m3u_text: str) -> bool:
        """
        Replace a playlist's channels with the entries of an M3U playlist.
        Categories are left untouched.

        Returns:
            True if channels were stored, False if the playlist had no entries

        Raises:
            InvalidFormat: text does not start with #EXTM3U (nothing written)
            StorageError: the commit failed (previous catalog kept)
        """
        stored = await self._replace_from_m3u(playlist_id, m3u_text)
        return bool(stored)

    async def _replace_from_m3u(self, playlist_id: int, m3u_text: str) -> list[Channel]:
        """Parse and store M3U text; an empty playlist writes nothing and returns []."""
        store = await self._get_store()
        try:
            channels = M3UParser(playlist_id).parse(m3u_text)
        except InvalidFormat as e:
            logger.error(f"M3U import failed for playlist {playlist_id}: {e}")
            raise

        if not channels:
            logger.warning(f"No channels found in M3U content for playlist {playlist_id}")
            return []

        return await store.replace_catalog(playlist_id, channels)


# Singleton
_sync_service: Optional[CatalogSyncService] = None


def get_sync_service() -> CatalogSyncService:
    """Get or create sync service singleton."""
    global _sync_service
    if _sync_service is None:
        _sync_service = CatalogSyncService()
    return _sync_service
