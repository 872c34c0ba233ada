"""Tests for naat models and their stored records."""

import re
from datetime import datetime, timezone

import pytest

from naat_player.domain.naat.models import (
    NaatDraft,
    PlayableItem,
    generate_item_id,
    item_from_draft,
)

CREATED = datetime(2025, 2, 14, 9, 30, tzinfo=timezone.utc)


class TestItemFromDraft:
    def test_trims_and_normalizes(self) -> None:
        item = item_from_draft(
            NaatDraft(
                title="  Qaseeda Burda ",
                reciter_name=" Reciter ",
                source_url=" https://youtu.be/x ",
                language=" PS ",
                resolved_audio_url="   ",
                description="  ",
            ),
            item_id="id-1",
            created_at=CREATED,
        )
        assert item.title == "Qaseeda Burda"
        assert item.reciter_name == "Reciter"
        assert item.source_url == "https://youtu.be/x"
        assert item.language == "ps"
        assert item.resolved_audio_url is None
        assert item.description is None

    def test_unknown_language_rejected(self) -> None:
        with pytest.raises(ValueError):
            item_from_draft(
                NaatDraft(title="t", reciter_name="r", source_url="u", language="de"),
                item_id="id-1",
                created_at=CREATED,
            )


class TestRecords:
    def test_record_uses_iso_timestamp(self) -> None:
        item = PlayableItem(
            id="id-1", title="t", reciter_name="r", source_url="u", created_at=CREATED
        )
        record = item.to_record()
        assert record["created_at"] == "2025-02-14T09:30:00+00:00"
        assert PlayableItem.from_record(record) == item

    def test_from_record_ignores_unknown_keys_and_coerces(self) -> None:
        record = {
            "id": "id-1",
            "title": "t",
            "reciter_name": "r",
            "source_url": "u",
            "created_at": "2025-02-14T09:30:00+00:00",
            "play_count": None,
            "is_downloaded": 1,
            "downloadProgress": 0.5,
        }
        item = PlayableItem.from_record(record)
        assert item.play_count == 0
        assert item.is_downloaded is True

    def test_timestamp_without_offset_is_utc(self) -> None:
        item = PlayableItem.from_record(
            {"id": "x", "title": "t", "reciter_name": "r", "source_url": "u", "created_at": "2025-02-14T09:30:00"}
        )
        assert item.created_at == CREATED
        assert item.created_at.tzinfo is not None

    def test_missing_created_at_raises(self) -> None:
        with pytest.raises(KeyError):
            PlayableItem.from_record({"id": "x"})


def test_generated_ids_are_time_based_and_unique() -> None:
    ids = {generate_item_id() for _ in range(50)}
    assert len(ids) == 50
    for item_id in ids:
        assert re.fullmatch(r"\d{13}-[0-9a-f]{8}", item_id)
