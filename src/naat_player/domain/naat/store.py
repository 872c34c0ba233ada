"""
Durable catalog of playable naat items.

The whole collection lives under one storage key and is read and rewritten
as a unit on every mutating call. Nothing is locked across awaits, so two
interleaved mutations can lose one of the updates (the later write wins).
Callers that need stronger guarantees must serialize their own calls.
"""

import json
from dataclasses import fields, replace
from datetime import datetime, timezone
from typing import Any, Callable, Optional

from loguru import logger

from .exceptions import StorageWriteError
from .models import IMMUTABLE_FIELDS, NaatDraft, PlayableItem, generate_item_id, item_from_draft
from .storage import FileSystem, KeyValueStorage

DEFAULT_STORAGE_KEY = "@naat/playable_items_v1"

_PATCHABLE_FIELDS = frozenset(f.name for f in fields(PlayableItem)) - IMMUTABLE_FIELDS


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _sort_newest_first(items: list[PlayableItem]) -> list[PlayableItem]:
    # Stable: items sharing a timestamp keep stored order (newest added first)
    return sorted(items, key=lambda item: item.created_at, reverse=True)


class PlaybackItemStore:
    """Add/update/delete/list for PlayableItems plus the download sweep."""

    def __init__(
        self,
        storage: KeyValueStorage,
        file_system: FileSystem,
        storage_key: str = DEFAULT_STORAGE_KEY,
        clock: Callable[[], datetime] = _utc_now,
        id_factory: Callable[[], str] = generate_item_id,
    ):
        self.storage = storage
        self.file_system = file_system
        self.storage_key = storage_key
        self._clock = clock
        self._id_factory = id_factory

    async def _load(self) -> list[PlayableItem]:
        try:
            raw = await self.storage.get_item(self.storage_key)
            if not raw:
                return []
            records = json.loads(raw)
            if not isinstance(records, list):
                raise ValueError(f"expected a list, got {type(records).__name__}")
            return [PlayableItem.from_record(record) for record in records]
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning(f"Corrupt naat collection under {self.storage_key!r}, treating as empty: {e}")
            return []

    async def _save(self, items: list[PlayableItem]) -> None:
        payload = json.dumps([item.to_record() for item in items], ensure_ascii=False)
        try:
            await self.storage.set_item(self.storage_key, payload)
        except OSError as e:
            logger.error(f"Failed to persist naat collection: {e}")
            raise StorageWriteError(f"Could not save naat collection: {e}") from e

    async def list(self) -> list[PlayableItem]:
        """All items, newest created_at first. Corrupt data reads as empty."""
        return _sort_newest_first(await self._load())

    async def get(self, item_id: str) -> Optional[PlayableItem]:
        for item in await self._load():
            if item.id == item_id:
                return item
        return None

    async def add(self, draft: NaatDraft) -> PlayableItem:
        """Create an item from a draft and persist it.

        Raises:
            ValueError: If the draft's language is unsupported
            StorageWriteError: If the collection cannot be saved
        """
        items = await self._load()
        item = item_from_draft(draft, item_id=self._id_factory(), created_at=self._clock())
        await self._save([item] + items)
        logger.info(f"Added naat {item.id}: {item.title!r} by {item.reciter_name!r}")
        return item

    async def update(self, item_id: str, patch: dict[str, Any]) -> Optional[PlayableItem]:
        """Merge patch fields into an item.

        Returns:
            The merged item, or None (and no write) if item_id is unknown

        Raises:
            ValueError: If the patch names an unknown or immutable field
            StorageWriteError: If the collection cannot be saved
        """
        invalid = set(patch) - _PATCHABLE_FIELDS
        if invalid:
            raise ValueError(f"Cannot patch fields: {sorted(invalid)}")

        items = await self._load()
        for index, item in enumerate(items):
            if item.id == item_id:
                updated = replace(item, **patch)
                items[index] = updated
                await self._save(items)
                return updated

        logger.debug(f"update: no naat with id {item_id}")
        return None

    async def delete(self, item_id: str) -> None:
        items = await self._load()
        remaining = [item for item in items if item.id != item_id]
        if len(remaining) != len(items):
            await self._save(remaining)
            logger.info(f"Deleted naat {item_id}")

    async def increment_play_count(self, item_id: str) -> None:
        items = await self._load()
        for index, item in enumerate(items):
            if item.id == item_id:
                items[index] = replace(item, play_count=item.play_count + 1)
                await self._save(items)
                return

    async def reconcile_downloads(self) -> int:
        """Clear local file references whose files are gone.

        A failed existence check counts as a missing file. Writes once, and
        only if something changed.

        Returns:
            Number of items repaired
        """
        items = await self._load()
        repaired = 0

        for index, item in enumerate(items):
            if not item.local_file_uri:
                continue
            try:
                present = await self.file_system.exists(item.local_file_uri)
            except Exception as e:
                logger.warning(f"Could not check {item.local_file_uri}: {e}")
                present = False

            if not present:
                items[index] = replace(item, local_file_uri=None, is_downloaded=False)
                repaired += 1

        if repaired:
            await self._save(items)
            logger.info(f"Reconciled downloads: cleared {repaired} missing file(s)")
        return repaired
