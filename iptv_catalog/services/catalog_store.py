"""
SQLite-backed catalog store.
Holds playlists and their categories, channels and selected-channel pointer.
"""
import aiosqlite
import json
import logging
import sqlite3
import asyncio
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, AsyncIterator

from iptv_catalog.config import get_settings
from iptv_catalog.errors import PlaylistNotFound, StorageError
from iptv_catalog.models.catalog import (
    Category,
    Channel,
    Playlist,
    PlaylistCreate,
    PlaylistCredentials,
)

logger = logging.getLogger(__name__)

# Channel columns in insert order (everything but the autoincrement id)
CHANNEL_COLUMNS = [name for name in Channel.model_fields if name != "id"]


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _channel_from_row(row) -> Channel:
    data = dict(row)
    if data.get("backdrop_path"):
        data["backdrop_path"] = json.loads(data["backdrop_path"])
    return Channel(**data)


async def _select_channels(
    db: aiosqlite.Connection,
    playlist_id: int,
    category_id: Optional[str] = None,
    stream_type: Optional[str] = None,
) -> list[Channel]:
    conditions = ["playlist_id = ?"]
    params: list = [playlist_id]
    if category_id is not None:
        conditions.append("category_id = ?")
        params.append(category_id)
    if stream_type is not None:
        conditions.append("stream_type = ?")
        params.append(stream_type)

    cursor = await db.execute(
        f"SELECT * FROM channels WHERE {' AND '.join(conditions)} ORDER BY id",
        params,
    )
    rows = await cursor.fetchall()
    return [_channel_from_row(row) for row in rows]


def _playlist_from_row(row) -> Playlist:
    data = dict(row)
    data["is_active"] = bool(data["is_active"])
    return Playlist(**data)


class CatalogTransaction:
    """Catalog writes bound to one open transaction. Obtain via CatalogStore.transaction()."""

    def __init__(self, db: aiosqlite.Connection):
        self.db = db

    async def delete_categories(self, playlist_id: int):
        await self.db.execute("DELETE FROM categories WHERE playlist_id = ?", (playlist_id,))

    async def delete_channels(self, playlist_id: int):
        """Delete a playlist's channels and its selected-channel pointer."""
        await self.db.execute("DELETE FROM selected_channel WHERE playlist_id = ?", (playlist_id,))
        await self.db.execute("DELETE FROM channels WHERE playlist_id = ?", (playlist_id,))

    async def insert_category(self, playlist_id: int, category: Category):
        await self.db.execute(
            """INSERT INTO categories
               (playlist_id, category_id, name, content_type, parent_id, created_at)
               VALUES (?, ?, ?, ?, ?, ?)""",
            (
                playlist_id,
                category.category_id,
                category.name,
                category.content_type,
                category.parent_id,
                _now(),
            ),
        )

    async def insert_channel(self, playlist_id: int, channel: Channel):
        values = channel.model_dump(exclude={"id"})
        values["playlist_id"] = playlist_id
        values["created_at"] = values.get("created_at") or _now()
        if values.get("backdrop_path") is not None:
            values["backdrop_path"] = json.dumps(values["backdrop_path"])
        columns = ", ".join(f'"{column}"' for column in CHANNEL_COLUMNS)
        placeholders = ", ".join("?" for _ in CHANNEL_COLUMNS)
        await self.db.execute(
            f"INSERT INTO channels ({columns}) VALUES ({placeholders})",
            [values[column] for column in CHANNEL_COLUMNS],
        )

    async def fetch_channels(self, playlist_id: int) -> list[Channel]:
        """Channels as seen by this transaction."""
        return await _select_channels(self.db, playlist_id)

    async def touch_playlist(self, playlist_id: int):
        """Stamp the playlist's last successful refresh."""
        await self.db.execute(
            "UPDATE playlists SET last_updated = ? WHERE id = ?", (_now(), playlist_id)
        )


class CatalogStore:
    """Async SQLite store for playlists and their catalogs."""

    def __init__(self, db_path: Optional[str] = None):
        settings = get_settings()
        self.db_path = db_path or settings.database_path
        # Serializes every catalog-mutating operation
        self._lock = asyncio.Lock()
        self._ensure_directory()

    def _ensure_directory(self):
        """Create data directory if it doesn't exist."""
        Path(self.db_path).parent.mkdir(parents=True, exist_ok=True)

    @asynccontextmanager
    async def _connect(self) -> AsyncIterator[aiosqlite.Connection]:
        # Autocommit mode; multi-statement work uses explicit BEGIN/COMMIT
        async with aiosqlite.connect(self.db_path, isolation_level=None) as db:
            db.row_factory = aiosqlite.Row
            await db.execute("PRAGMA foreign_keys = ON")
            yield db

    async def initialize(self):
        """Create database tables if they don't exist."""
        async with self._connect() as db:
            await db.execute("""
                CREATE TABLE IF NOT EXISTS playlists (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    server_url TEXT NOT NULL,
                    username TEXT NOT NULL,
                    password TEXT NOT NULL,
                    epg_url TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT,
                    last_updated TEXT,
                    is_active INTEGER NOT NULL DEFAULT 1
                )
            """)

            await db.execute("""
                CREATE TABLE IF NOT EXISTS categories (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    playlist_id INTEGER NOT NULL,
                    category_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    content_type TEXT NOT NULL DEFAULT 'live',
                    parent_id INTEGER,
                    created_at TEXT NOT NULL,
                    UNIQUE(playlist_id, category_id),
                    FOREIGN KEY(playlist_id) REFERENCES playlists(id) ON DELETE CASCADE
                )
            """)

            await db.execute("""
                CREATE TABLE IF NOT EXISTS channels (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    playlist_id INTEGER NOT NULL,
                    category_id TEXT,
                    category_name TEXT NOT NULL,
                    stream_id TEXT NOT NULL,
                    name TEXT NOT NULL,
                    stream_type TEXT NOT NULL,
                    stream_url TEXT NOT NULL,
                    type_name TEXT,
                    stream_icon TEXT,
                    epg_channel_id TEXT,
                    added TEXT,
                    series_no TEXT,
                    live TEXT,
                    container_extension TEXT,
                    custom_sid TEXT,
                    tv_archive INTEGER,
                    direct_source TEXT,
                    tv_archive_duration INTEGER,
                    num TEXT,
                    plot TEXT,
                    "cast" TEXT,
                    director TEXT,
                    genre TEXT,
                    release_date TEXT,
                    rating TEXT,
                    rating_5based REAL,
                    backdrop_path TEXT,
                    youtube_trailer TEXT,
                    episode_run_time TEXT,
                    cover TEXT,
                    created_at TEXT NOT NULL,
                    UNIQUE(playlist_id, stream_id),
                    FOREIGN KEY(playlist_id) REFERENCES playlists(id) ON DELETE CASCADE
                )
            """)

            # One pointer per playlist; removed with its channel or playlist
            await db.execute("""
                CREATE TABLE IF NOT EXISTS selected_channel (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    playlist_id INTEGER NOT NULL UNIQUE,
                    channel_id INTEGER NOT NULL,
                    created_at TEXT NOT NULL,
                    FOREIGN KEY(playlist_id) REFERENCES playlists(id) ON DELETE CASCADE,
                    FOREIGN KEY(channel_id) REFERENCES channels(id) ON DELETE CASCADE
                )
            """)

            await db.execute("CREATE INDEX IF NOT EXISTS idx_categories_playlist ON categories(playlist_id, content_type)")
            await db.execute("CREATE INDEX IF NOT EXISTS idx_channels_playlist ON channels(playlist_id, category_id)")
            await db.execute("CREATE INDEX IF NOT EXISTS idx_selected_channel ON selected_channel(channel_id)")

    @asynccontextmanager
    async def transaction(self) -> AsyncIterator[CatalogTransaction]:
        """
        Hold the catalog lock and one write transaction.

        Commits when the block exits normally and rolls back on any exception.
        Database failures surface as StorageError.
        """
        async with self._lock:
            async with self._connect() as db:
                try:
                    await db.execute("BEGIN IMMEDIATE")
                    yield CatalogTransaction(db)
                    await db.execute("COMMIT")
                except Exception as e:
                    if db.in_transaction:
                        await db.execute("ROLLBACK")
                    logger.error(f"Catalog transaction rolled back: {e}")
                    if isinstance(e, sqlite3.Error):
                        raise StorageError(f"Catalog transaction failed: {e}") from e
                    raise

    async def replace_catalog(
        self,
        playlist_id: int,
        channels: list[Channel],
        categories: Optional[list[Category]] = None,
    ) -> list[Channel]:
        """
        Replace a playlist's catalog in one transaction.

        Args:
            playlist_id: Owning playlist
            channels: Normalized channels to insert
            categories: Categories to insert; None leaves existing categories untouched

        Returns:
            The stored channels, read back before the commit
        """
        async with self.transaction() as tx:
            if categories is not None:
                await tx.delete_categories(playlist_id)
            await tx.delete_channels(playlist_id)
            if categories is not None:
                for category in categories:
                    await tx.insert_category(playlist_id, category)
            for channel in channels:
                await tx.insert_channel(playlist_id, channel)
            await tx.touch_playlist(playlist_id)
            stored = await tx.fetch_channels(playlist_id)

        logger.info(
            f"Committed catalog for playlist {playlist_id}: "
            f"{len(channels)} channels"
            + (f", {len(categories)} categories" if categories is not None else "")
        )
        return stored

    # Playlist methods
    async def add_playlist(self, playlist: PlaylistCreate) -> int:
        """Insert a playlist and return its id."""
        async with self._lock:
            async with self._connect() as db:
                now = _now()
                cursor = await db.execute(
                    """INSERT INTO playlists
                       (name, server_url, username, password, epg_url, created_at, updated_at, is_active)
                       VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                    (
                        playlist.name,
                        playlist.server_url,
                        playlist.username,
                        playlist.password,
                        playlist.epg_url,
                        now,
                        now,
                        1 if playlist.is_active else 0,
                    ),
                )
                logger.info(f"Added playlist {cursor.lastrowid}: {playlist.name}")
                return cursor.lastrowid

    async def get_playlists(self) -> list[Playlist]:
        async with self._connect() as db:
            cursor = await db.execute("SELECT * FROM playlists ORDER BY id")
            rows = await cursor.fetchall()
            return [_playlist_from_row(row) for row in rows]

    async def get_playlist(self, playlist_id: int) -> Optional[Playlist]:
        async with self._connect() as db:
            cursor = await db.execute("SELECT * FROM playlists WHERE id = ?", (playlist_id,))
            row = await cursor.fetchone()
            return _playlist_from_row(row) if row else None

    async def update_playlist(self, playlist_id: int, playlist: PlaylistCreate) -> bool:
        async with self._lock:
            async with self._connect() as db:
                cursor = await db.execute(
                    """UPDATE playlists
                       SET name = ?, server_url = ?, username = ?, password = ?,
                           epg_url = ?, is_active = ?, updated_at = ?
                       WHERE id = ?""",
                    (
                        playlist.name,
                        playlist.server_url,
                        playlist.username,
                        playlist.password,
                        playlist.epg_url,
                        1 if playlist.is_active else 0,
                        _now(),
                        playlist_id,
                    ),
                )
                return cursor.rowcount > 0

    async def delete_playlist(self, playlist_id: int) -> bool:
        """Delete a playlist; its catalog goes with it."""
        async with self._lock:
            async with self._connect() as db:
                cursor = await db.execute("DELETE FROM playlists WHERE id = ?", (playlist_id,))
                return cursor.rowcount > 0

    async def get_playlist_credentials(self, playlist_id: int) -> PlaylistCredentials:
        """
        Raises:
            PlaylistNotFound: no playlist with that id
        """
        async with self._connect() as db:
            cursor = await db.execute(
                "SELECT server_url, username, password FROM playlists WHERE id = ?",
                (playlist_id,),
            )
            row = await cursor.fetchone()
            if row is None:
                raise PlaylistNotFound(playlist_id)
            return PlaylistCredentials(**dict(row))

    # Catalog queries
    async def fetch_channels(
        self,
        playlist_id: int,
        category_id: Optional[str] = None,
        stream_type: Optional[str] = None,
    ) -> list[Channel]:
        """Channels of a playlist in insertion order."""
        async with self._connect() as db:
            return await _select_channels(db, playlist_id, category_id, stream_type)

    async def get_categories(self, playlist_id: int, content_type: Optional[str] = None) -> list[Category]:
        conditions = ["playlist_id = ?"]
        params: list = [playlist_id]
        if content_type is not None:
            conditions.append("content_type = ?")
            params.append(content_type)

        async with self._connect() as db:
            cursor = await db.execute(
                f"""SELECT playlist_id, category_id, name, content_type, parent_id
                    FROM categories WHERE {' AND '.join(conditions)} ORDER BY name""",
                params,
            )
            rows = await cursor.fetchall()
            return [Category(**dict(row)) for row in rows]

    # Selected channel
    async def get_selected_channel(self, playlist_id: int) -> Optional[Channel]:
        async with self._connect() as db:
            cursor = await db.execute(
                """SELECT c.* FROM selected_channel s
                   JOIN channels c ON c.id = s.channel_id
                   WHERE s.playlist_id = ?""",
                (playlist_id,),
            )
            row = await cursor.fetchone()
            return _channel_from_row(row) if row else None

    async def set_selected_channel(self, playlist_id: int, channel_id: int) -> bool:
        """Point the playlist at one of its channels. False if the channel is not in the playlist."""
        async with self._lock:
            async with self._connect() as db:
                cursor = await db.execute(
                    "SELECT 1 FROM channels WHERE id = ? AND playlist_id = ?",
                    (channel_id, playlist_id),
                )
                if await cursor.fetchone() is None:
                    return False
                await db.execute(
                    """INSERT INTO selected_channel (playlist_id, channel_id, created_at)
                       VALUES (?, ?, ?)
                       ON CONFLICT(playlist_id) DO UPDATE
                       SET channel_id = excluded.channel_id, created_at = excluded.created_at""",
                    (playlist_id, channel_id, _now()),
                )
                return True


# Singleton
_store: Optional[CatalogStore] = None


async def get_store() -> CatalogStore:
    """Get or create catalog store singleton."""
    global _store
    if _store is None:
        _store = CatalogStore()
        await _store.initialize()
    return _store
