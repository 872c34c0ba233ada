"""
Naat domain models.

Contains data structures for playable naat items and the drafts they are
created from, plus their JSON record encoding.
"""

import secrets
import time
from dataclasses import asdict, dataclass, fields
from datetime import datetime, timezone
from typing import Any, Optional

LANGUAGES = ("fa", "ps", "ar")

# Fields an update patch may never touch
IMMUTABLE_FIELDS = frozenset({"id", "source_url", "created_at"})


@dataclass(frozen=True)
class NaatDraft:
    """Caller-supplied fields for a new item, before id/timestamp assignment."""

    title: str
    reciter_name: str
    source_url: str
    language: str = "fa"
    resolved_audio_url: Optional[str] = None
    description: Optional[str] = None


@dataclass(frozen=True)
class PlayableItem:
    """A naat the player can stream or play from the local cache.

    local_file_uri set means the item is treated as downloaded until the
    reconciliation sweep finds the file missing.
    """

    id: str
    title: str
    reciter_name: str
    source_url: str
    created_at: datetime
    language: str = "fa"
    resolved_audio_url: Optional[str] = None  # Proxy URL, may be stale
    local_file_uri: Optional[str] = None
    is_downloaded: bool = False
    play_count: int = 0
    description: Optional[str] = None
    duration_seconds: Optional[int] = None

    def to_record(self) -> dict[str, Any]:
        """Encode as a JSON-safe dict (datetimes as ISO-8601)."""
        record = asdict(self)
        record["created_at"] = self.created_at.isoformat()
        return record

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> "PlayableItem":
        """Decode a stored record. Unknown keys are ignored.

        A created_at without an offset is taken as UTC.

        Raises:
            KeyError: If a required field is missing
            ValueError: If created_at is not ISO-8601
        """
        known = {f.name for f in fields(cls)}
        values = {k: v for k, v in record.items() if k in known}
        created_at = datetime.fromisoformat(record["created_at"])
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        values["created_at"] = created_at
        values["is_downloaded"] = bool(values.get("is_downloaded", False))
        values["play_count"] = int(values.get("play_count") or 0)
        return cls(**values)


def generate_item_id() -> str:
    """Time-based id with a random suffix, e.g. '1760870400123-9f3a1c2b'."""
    return f"{int(time.time() * 1000)}-{secrets.token_hex(4)}"


def item_from_draft(draft: NaatDraft, item_id: str, created_at: datetime) -> PlayableItem:
    """Build a new item from a draft, trimming user-facing strings."""
    language = draft.language.strip().lower() if draft.language else "fa"
    if language not in LANGUAGES:
        raise ValueError(f"Unsupported language {draft.language!r}. Valid: {LANGUAGES}")

    resolved = (draft.resolved_audio_url or "").strip() or None
    description = (draft.description or "").strip() or None

    return PlayableItem(
        id=item_id,
        title=draft.title.strip(),
        reciter_name=draft.reciter_name.strip(),
        source_url=draft.source_url.strip(),
        created_at=created_at,
        language=language,
        resolved_audio_url=resolved,
        description=description,
    )
