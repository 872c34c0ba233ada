"""Tests for the playable item store."""

import asyncio
import json
from dataclasses import replace
from datetime import datetime, timezone

import pytest

from naat_player.domain.naat.exceptions import StorageWriteError
from naat_player.domain.naat.models import NaatDraft
from naat_player.domain.naat.store import DEFAULT_STORAGE_KEY, PlaybackItemStore

from conftest import FakeFileSystem, MemoryStorage


def draft(title: str = "Tala al-Badru", **overrides) -> NaatDraft:
    values = {
        "title": title,
        "reciter_name": "Qari Example",
        "source_url": "https://youtu.be/abc123",
    }
    values.update(overrides)
    return NaatDraft(**values)


class TestAdd:
    @pytest.mark.anyio
    async def test_add_builds_and_persists_item(self, store: PlaybackItemStore, storage: MemoryStorage) -> None:
        item = await store.add(
            draft("  Mawlaya  ", reciter_name=" Qari ", source_url=" https://youtu.be/x ")
        )

        assert item.id == "naat-1"
        assert item.title == "Mawlaya"
        assert item.reciter_name == "Qari"
        assert item.source_url == "https://youtu.be/x"
        assert item.play_count == 0
        assert item.is_downloaded is False
        assert item.local_file_uri is None
        assert item.created_at.tzinfo is not None

        stored = json.loads(storage.data[DEFAULT_STORAGE_KEY])
        assert [record["id"] for record in stored] == ["naat-1"]
        assert stored[0]["created_at"] == item.created_at.isoformat()

    @pytest.mark.anyio
    async def test_add_keeps_pre_resolved_url(self, store: PlaybackItemStore) -> None:
        item = await store.add(draft(resolved_audio_url="https://cdn/audio.webm"))
        assert item.resolved_audio_url == "https://cdn/audio.webm"

    @pytest.mark.anyio
    async def test_add_rejects_unknown_language(self, store: PlaybackItemStore, storage: MemoryStorage) -> None:
        with pytest.raises(ValueError):
            await store.add(draft(language="en"))
        assert storage.writes == 0


class TestList:
    @pytest.mark.anyio
    async def test_newest_first_regardless_of_updates(self, store: PlaybackItemStore) -> None:
        first = await store.add(draft("First"))
        second = await store.add(draft("Second"))
        third = await store.add(draft("Third"))

        await store.update(first.id, {"title": "First (edited)"})
        await store.increment_play_count(second.id)

        items = await store.list()
        assert [i.id for i in items] == [third.id, second.id, first.id]

    @pytest.mark.anyio
    async def test_equal_timestamps_list_latest_addition_first(self, storage: MemoryStorage, file_system: FakeFileSystem) -> None:
        fixed = datetime(2025, 1, 1, tzinfo=timezone.utc)
        ids = iter(["a", "b"])
        store = PlaybackItemStore(storage, file_system, clock=lambda: fixed, id_factory=lambda: next(ids))

        await store.add(draft("A"))
        await store.add(draft("B"))

        assert [i.id for i in await store.list()] == ["b", "a"]

    @pytest.mark.anyio
    async def test_empty_store(self, store: PlaybackItemStore) -> None:
        assert await store.list() == []

    @pytest.mark.anyio
    async def test_mixed_naive_and_aware_timestamps_sort(self, file_system: FakeFileSystem) -> None:
        """Records without an offset are read as UTC and sort with the rest."""
        records = [
            {"id": "old", "title": "t", "reciter_name": "r", "source_url": "u", "created_at": "2025-01-01T00:00:00+00:00"},
            {"id": "new", "title": "t", "reciter_name": "r", "source_url": "u", "created_at": "2025-01-02T00:00:00"},
        ]
        store = PlaybackItemStore(MemoryStorage({DEFAULT_STORAGE_KEY: json.dumps(records)}), file_system)

        items = await store.list()

        assert [i.id for i in items] == ["new", "old"]
        assert items[0].created_at == datetime(2025, 1, 2, tzinfo=timezone.utc)

    @pytest.mark.anyio
    async def test_undecodable_storage_reads_as_empty(self, file_system: FakeFileSystem) -> None:
        class UndecodableStorage(MemoryStorage):
            async def get_item(self, key):
                return b"\xff\xfe[garbage".decode("utf-8")

        store = PlaybackItemStore(UndecodableStorage(), file_system)
        assert await store.list() == []

    @pytest.mark.anyio
    @pytest.mark.parametrize(
        "payload",
        [
            "{not json",
            '{"id": "x"}',
            '[{"id": "x", "title": "no created_at"}]',
            '[1, 2]',
            '[{"id": "x", "title": "t", "reciter_name": "r", "source_url": "u", "created_at": "yesterday"}]',
        ],
    )
    async def test_corrupt_payload_reads_as_empty(self, file_system: FakeFileSystem, payload: str) -> None:
        storage = MemoryStorage({DEFAULT_STORAGE_KEY: payload})
        store = PlaybackItemStore(storage, file_system)
        assert await store.list() == []


class TestUpdate:
    @pytest.mark.anyio
    async def test_update_merges_patch(self, store: PlaybackItemStore) -> None:
        item = await store.add(draft())
        updated = await store.update(item.id, {"resolved_audio_url": "https://cdn/a", "title": "New"})

        assert updated is not None
        assert updated.resolved_audio_url == "https://cdn/a"
        assert updated.title == "New"
        assert updated.reciter_name == item.reciter_name
        assert await store.get(item.id) == updated

    @pytest.mark.anyio
    async def test_unknown_id_returns_none_without_writing(self, store: PlaybackItemStore, storage: MemoryStorage) -> None:
        await store.add(draft())
        before = await store.list()
        writes = storage.writes

        assert await store.update("missing", {"title": "x"}) is None

        assert storage.writes == writes
        assert await store.list() == before

    @pytest.mark.anyio
    @pytest.mark.parametrize("field", ["id", "source_url", "created_at", "no_such_field"])
    async def test_rejects_immutable_or_unknown_fields(self, store: PlaybackItemStore, field: str) -> None:
        item = await store.add(draft())
        with pytest.raises(ValueError):
            await store.update(item.id, {field: "x"})

    @pytest.mark.anyio
    async def test_local_file_link_is_advisory(self, store: PlaybackItemStore) -> None:
        """Setting local_file_uri alone does not force is_downloaded."""
        item = await store.add(draft())
        updated = await store.update(item.id, {"local_file_uri": "/cache/a.mp3"})
        assert updated.local_file_uri == "/cache/a.mp3"
        assert updated.is_downloaded is False

    @pytest.mark.anyio
    async def test_write_failure_propagates(self, store: PlaybackItemStore, storage: MemoryStorage) -> None:
        item = await store.add(draft())
        storage.fail_writes = True
        with pytest.raises(StorageWriteError):
            await store.update(item.id, {"title": "x"})


class TestDelete:
    @pytest.mark.anyio
    async def test_delete_removes_item(self, store: PlaybackItemStore) -> None:
        keep = await store.add(draft("Keep"))
        drop = await store.add(draft("Drop"))

        await store.delete(drop.id)

        assert [i.id for i in await store.list()] == [keep.id]

    @pytest.mark.anyio
    async def test_delete_missing_is_silent(self, store: PlaybackItemStore, storage: MemoryStorage) -> None:
        await store.add(draft())
        writes = storage.writes
        await store.delete("missing")
        assert storage.writes == writes


class TestIncrementPlayCount:
    @pytest.mark.anyio
    async def test_twice_adds_exactly_two(self, store: PlaybackItemStore) -> None:
        item = await store.add(draft())

        await store.increment_play_count(item.id)
        await store.increment_play_count(item.id)

        after = await store.get(item.id)
        assert after.play_count == 2
        assert after == replace(item, play_count=2)

    @pytest.mark.anyio
    async def test_missing_is_silent(self, store: PlaybackItemStore, storage: MemoryStorage) -> None:
        writes = storage.writes
        await store.increment_play_count("missing")
        assert storage.writes == writes

    @pytest.mark.anyio
    async def test_write_failure_propagates(self, store: PlaybackItemStore, storage: MemoryStorage) -> None:
        item = await store.add(draft())
        storage.fail_writes = True
        with pytest.raises(StorageWriteError):
            await store.increment_play_count(item.id)


class TestReconcileDownloads:
    @pytest.mark.anyio
    async def test_clears_missing_files_only(self, store: PlaybackItemStore, file_system: FakeFileSystem) -> None:
        present = await store.add(draft("Present"))
        missing = await store.add(draft("Missing"))
        plain = await store.add(draft("Never downloaded"))
        await store.update(present.id, {"local_file_uri": "/cache/present.mp3", "is_downloaded": True})
        await store.update(missing.id, {"local_file_uri": "/cache/missing.mp3", "is_downloaded": True})
        file_system.existing.add("/cache/present.mp3")

        repaired = await store.reconcile_downloads()

        assert repaired == 1
        after_missing = await store.get(missing.id)
        assert after_missing.local_file_uri is None
        assert after_missing.is_downloaded is False
        after_present = await store.get(present.id)
        assert after_present.local_file_uri == "/cache/present.mp3"
        assert after_present.is_downloaded is True
        assert await store.get(plain.id) == plain

    @pytest.mark.anyio
    async def test_second_run_does_not_write(self, store: PlaybackItemStore, storage: MemoryStorage) -> None:
        item = await store.add(draft())
        await store.update(item.id, {"local_file_uri": "/cache/gone.mp3", "is_downloaded": True})

        await store.reconcile_downloads()
        writes = storage.writes
        repaired = await store.reconcile_downloads()

        assert repaired == 0
        assert storage.writes == writes

    @pytest.mark.anyio
    async def test_writes_once_for_many_repairs(self, store: PlaybackItemStore, storage: MemoryStorage) -> None:
        for n in range(3):
            item = await store.add(draft(f"Naat {n}"))
            await store.update(item.id, {"local_file_uri": f"/cache/{n}.mp3", "is_downloaded": True})
        writes = storage.writes

        assert await store.reconcile_downloads() == 3
        assert storage.writes == writes + 1

    @pytest.mark.anyio
    async def test_failed_existence_check_counts_as_missing(self, store: PlaybackItemStore, file_system: FakeFileSystem) -> None:
        item = await store.add(draft())
        await store.update(item.id, {"local_file_uri": "/locked/a.mp3", "is_downloaded": True})
        file_system.broken.add("/locked/a.mp3")

        assert await store.reconcile_downloads() == 1
        assert (await store.get(item.id)).is_downloaded is False


class TestConcurrentUpdates:
    @pytest.mark.anyio
    async def test_racing_updates_may_lose_one_but_stay_well_formed(self, store: PlaybackItemStore) -> None:
        """Read-modify-write without a lock: the later write can drop the earlier patch."""
        item = await store.add(draft("Original"))
        other = await store.add(draft("Bystander"))

        await asyncio.gather(
            store.update(item.id, {"title": "Patched title"}),
            store.update(item.id, {"reciter_name": "Patched reciter"}),
        )

        items = await store.list()
        assert sorted(i.id for i in items) == sorted([item.id, other.id])
        after = await store.get(item.id)
        kept_title = after.title == "Patched title"
        kept_reciter = after.reciter_name == "Patched reciter"
        assert kept_title or kept_reciter
        assert after.source_url == item.source_url
        assert after.created_at == item.created_at
        # Both reads happen before either write, so one patch is lost
        assert not (kept_title and kept_reciter)
