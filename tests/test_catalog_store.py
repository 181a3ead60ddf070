"""
Tests for the SQLite catalog store.
"""
import sqlite3

import aiosqlite
import pytest

from iptv_catalog.errors import PlaylistNotFound, StorageError
from iptv_catalog.models.catalog import Category, Channel, PlaylistCreate


def make_channel(playlist_id: int, stream_id: str, name: str, **extra) -> Channel:
    return Channel(
        playlist_id=playlist_id,
        stream_id=stream_id,
        name=name,
        stream_type=extra.pop("stream_type", "live"),
        stream_url=f"http://x/{stream_id}",
        **extra,
    )


class TestPlaylists:

    @pytest.mark.asyncio
    async def test_add_and_get(self, store, playlist_id):
        playlist = await store.get_playlist(playlist_id)

        assert playlist.name == "Test Provider"
        assert playlist.is_active is True
        assert playlist.last_updated is None
        assert [p.id for p in await store.get_playlists()] == [playlist_id]

    @pytest.mark.asyncio
    async def test_update(self, store, playlist_id):
        updated = await store.update_playlist(playlist_id, PlaylistCreate(
            name="Renamed", server_url="http://other.test", username="u2", password="p2",
        ))
        assert updated is True
        assert (await store.get_playlist(playlist_id)).name == "Renamed"
        assert await store.update_playlist(999, PlaylistCreate(
            name="x", server_url="http://x", username="u", password="p",
        )) is False

    @pytest.mark.asyncio
    async def test_credentials(self, store, playlist_id):
        credentials = await store.get_playlist_credentials(playlist_id)
        assert credentials.server_url == "http://provider.test"
        assert credentials.password == "secret"

        with pytest.raises(PlaylistNotFound):
            await store.get_playlist_credentials(999)

    @pytest.mark.asyncio
    async def test_delete_cascades_to_catalog(self, store, playlist_id):
        await store.replace_catalog(
            playlist_id,
            [make_channel(playlist_id, "1", "One")],
            [Category(category_id="1", name="News")],
        )
        channel = (await store.fetch_channels(playlist_id))[0]
        await store.set_selected_channel(playlist_id, channel.id)

        assert await store.delete_playlist(playlist_id) is True
        assert await store.get_playlist(playlist_id) is None
        assert await store.fetch_channels(playlist_id) == []
        assert await store.get_categories(playlist_id) == []
        assert await store.get_selected_channel(playlist_id) is None
        assert await store.delete_playlist(playlist_id) is False


class TestReplaceCatalog:

    @pytest.mark.asyncio
    async def test_replace_is_full_replacement(self, store, playlist_id):
        await store.replace_catalog(
            playlist_id,
            [make_channel(playlist_id, "1", "One"), make_channel(playlist_id, "2", "Two")],
            [Category(category_id="1", name="News")],
        )
        await store.replace_catalog(
            playlist_id,
            [make_channel(playlist_id, "3", "Three")],
            [Category(category_id="9", name="Films", content_type="movie")],
        )

        channels = await store.fetch_channels(playlist_id)
        categories = await store.get_categories(playlist_id)
        assert [c.stream_id for c in channels] == ["3"]
        assert [(c.category_id, c.content_type) for c in categories] == [("9", "movie")]
        assert (await store.get_playlist(playlist_id)).last_updated is not None

    @pytest.mark.asyncio
    async def test_none_categories_left_untouched(self, store, playlist_id):
        await store.replace_catalog(
            playlist_id,
            [make_channel(playlist_id, "1", "One")],
            [Category(category_id="1", name="News")],
        )
        await store.replace_catalog(playlist_id, [make_channel(playlist_id, "1", "Other")])

        assert [c.name for c in await store.get_categories(playlist_id)] == ["News"]
        assert [c.name for c in await store.fetch_channels(playlist_id)] == ["Other"]

    @pytest.mark.asyncio
    async def test_metadata_round_trips(self, store, playlist_id):
        await store.replace_catalog(playlist_id, [make_channel(
            playlist_id, "7", "Die Hard",
            stream_type="movie",
            cast="Bruce Willis",
            rating_5based=4.5,
            tv_archive=1,
            backdrop_path=["http://img/a.jpg", "http://img/b.jpg"],
        )])
        channel = (await store.fetch_channels(playlist_id))[0]

        assert channel.id is not None
        assert channel.cast == "Bruce Willis"
        assert channel.rating_5based == 4.5
        assert channel.tv_archive == 1
        assert channel.backdrop_path == ["http://img/a.jpg", "http://img/b.jpg"]
        assert channel.plot is None

    @pytest.mark.asyncio
    async def test_duplicate_stream_id_rolls_back(self, store, playlist_id):
        await store.replace_catalog(playlist_id, [make_channel(playlist_id, "1", "Original")])

        with pytest.raises(StorageError):
            await store.replace_catalog(playlist_id, [
                make_channel(playlist_id, "5", "New"),
                make_channel(playlist_id, "5", "Duplicate"),
            ])

        assert [c.name for c in await store.fetch_channels(playlist_id)] == ["Original"]

    @pytest.mark.asyncio
    async def test_duplicate_category_id_rolls_back(self, store, playlist_id):
        await store.replace_catalog(playlist_id, [], [Category(category_id="1", name="Kept")])

        with pytest.raises(StorageError):
            await store.replace_catalog(playlist_id, [], [
                Category(category_id="2", name="A"),
                Category(category_id="2", name="B"),
            ])

        assert [c.name for c in await store.get_categories(playlist_id)] == ["Kept"]

    @pytest.mark.asyncio
    async def test_non_database_error_propagates_after_rollback(self, store, playlist_id):
        await store.replace_catalog(playlist_id, [make_channel(playlist_id, "1", "Original")])

        with pytest.raises(RuntimeError):
            async with store.transaction() as tx:
                await tx.delete_channels(playlist_id)
                raise RuntimeError("boom")

        assert [c.name for c in await store.fetch_channels(playlist_id)] == ["Original"]

    @pytest.mark.asyncio
    async def test_unknown_playlist_violates_foreign_key(self, store):
        with pytest.raises(StorageError) as exc:
            await store.replace_catalog(999, [make_channel(999, "1", "Orphan")])
        assert isinstance(exc.value.__cause__, sqlite3.IntegrityError)

    @pytest.mark.asyncio
    async def test_locked_database_raises_storage_error(self, store, playlist_id, monkeypatch):
        await store.replace_catalog(playlist_id, [make_channel(playlist_id, "1", "Original")])
        original_execute = aiosqlite.Connection.execute

        async def locked_execute(self, sql, *args, **kwargs):
            if sql == "BEGIN IMMEDIATE":
                raise sqlite3.OperationalError("database is locked")
            return await original_execute(self, sql, *args, **kwargs)

        monkeypatch.setattr(aiosqlite.Connection, "execute", locked_execute)

        with pytest.raises(StorageError) as exc:
            await store.replace_catalog(playlist_id, [make_channel(playlist_id, "2", "New")])
        assert isinstance(exc.value.__cause__, sqlite3.OperationalError)

        monkeypatch.undo()
        assert [c.name for c in await store.fetch_channels(playlist_id)] == ["Original"]

    @pytest.mark.asyncio
    async def test_replace_returns_stored_rows(self, store, playlist_id):
        stored = await store.replace_catalog(playlist_id, [
            make_channel(playlist_id, "1", "One"),
            make_channel(playlist_id, "2", "Two"),
        ])

        assert [c.name for c in stored] == ["One", "Two"]
        assert all(c.id is not None for c in stored)
        assert stored == await store.fetch_channels(playlist_id)


class TestQueries:

    @pytest.mark.asyncio
    async def test_fetch_filters(self, store, playlist_id):
        await store.replace_catalog(playlist_id, [
            make_channel(playlist_id, "1", "BBC", category_id="1"),
            make_channel(playlist_id, "2", "CNN", category_id="2"),
            make_channel(playlist_id, "3", "Film", category_id="1", stream_type="movie"),
        ])

        assert [c.name for c in await store.fetch_channels(playlist_id)] == ["BBC", "CNN", "Film"]
        assert [c.name for c in await store.fetch_channels(playlist_id, category_id="1")] == ["BBC", "Film"]
        assert [c.name for c in await store.fetch_channels(playlist_id, stream_type="movie")] == ["Film"]

    @pytest.mark.asyncio
    async def test_categories_by_content_type(self, store, playlist_id):
        await store.replace_catalog(playlist_id, [], [
            Category(category_id="1", name="News"),
            Category(category_id="2", name="Drama", content_type="series", parent_id=1),
        ])

        series = await store.get_categories(playlist_id, content_type="series")
        assert [(c.name, c.parent_id, c.playlist_id) for c in series] == [("Drama", 1, playlist_id)]


class TestSelectedChannel:

    @pytest.mark.asyncio
    async def test_set_and_replace(self, store, playlist_id):
        await store.replace_catalog(playlist_id, [
            make_channel(playlist_id, "1", "One"),
            make_channel(playlist_id, "2", "Two"),
        ])
        one, two = await store.fetch_channels(playlist_id)

        assert await store.set_selected_channel(playlist_id, one.id) is True
        assert (await store.get_selected_channel(playlist_id)).name == "One"
        assert await store.set_selected_channel(playlist_id, two.id) is True
        assert (await store.get_selected_channel(playlist_id)).name == "Two"

    @pytest.mark.asyncio
    async def test_channel_of_other_playlist_rejected(self, store, playlist_id):
        other_id = await store.add_playlist(PlaylistCreate(
            name="Other", server_url="http://o", username="u", password="p",
        ))
        await store.replace_catalog(other_id, [make_channel(other_id, "1", "Foreign")])
        foreign = (await store.fetch_channels(other_id))[0]

        assert await store.set_selected_channel(playlist_id, foreign.id) is False
        assert await store.get_selected_channel(playlist_id) is None

    @pytest.mark.asyncio
    async def test_cleared_when_catalog_replaced(self, store, playlist_id):
        await store.replace_catalog(playlist_id, [make_channel(playlist_id, "1", "One")])
        channel = (await store.fetch_channels(playlist_id))[0]
        await store.set_selected_channel(playlist_id, channel.id)

        await store.replace_catalog(playlist_id, [make_channel(playlist_id, "1", "One")])
        assert await store.get_selected_channel(playlist_id) is None
