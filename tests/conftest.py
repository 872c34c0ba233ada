"""Shared fixtures: in-memory storage, file system and audio engine fakes."""

import asyncio
import itertools
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

import pytest

from naat_player.domain.naat.exceptions import PlaybackError
from naat_player.domain.naat.store import PlaybackItemStore
from naat_player.domain.playback.session import Progress


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


class MemoryStorage:
    """KeyValueStorage fake. Yields to the loop on every call, like real I/O."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self.data: dict[str, str] = dict(initial or {})
        self.writes = 0
        self.fail_writes = False

    async def get_item(self, key: str) -> Optional[str]:
        await asyncio.sleep(0)
        return self.data.get(key)

    async def set_item(self, key: str, value: str) -> None:
        await asyncio.sleep(0)
        if self.fail_writes:
            raise OSError(28, "No space left on device")
        self.data[key] = value
        self.writes += 1


class FakeFileSystem:
    """FileSystem fake backed by a set of existing paths."""

    def __init__(self, existing: Optional[set[str]] = None):
        self.existing: set[str] = set(existing or ())
        self.broken: set[str] = set()  # exists() raises for these
        self.directories: list[str] = []
        self.removed: list[str] = []

    async def exists(self, path: str) -> bool:
        if path in self.broken:
            raise PermissionError(13, "Permission denied", path)
        return path in self.existing

    async def ensure_directory(self, path: str) -> None:
        self.directories.append(path)

    async def remove(self, path: str) -> None:
        self.removed.append(path)
        self.existing.discard(path)


class FakeSession:
    """PlaybackSession fake that records commands.

    Put a method name in `failing` to make that command raise PlaybackError.
    """

    def __init__(self, position: float = 0.0, duration: float = 0.0):
        self.progress = Progress(position=position, duration=duration)
        self.calls: list[tuple[str, Any]] = []
        self.failing: set[str] = set()

    def _record(self, name: str, arg: Any = None) -> None:
        if name in self.failing:
            raise PlaybackError(f"{name} failed")
        self.calls.append((name, arg))

    async def load(self, uri: str, title: Optional[str] = None) -> None:
        self._record("load", uri)

    async def play(self) -> None:
        self._record("play")

    async def pause(self) -> None:
        self._record("pause")

    async def reset(self) -> None:
        self._record("reset")

    async def seek_to(self, position: float) -> None:
        self._record("seek_to", position)

    async def skip_to_next(self) -> None:
        self._record("skip_to_next")

    async def skip_to_previous(self) -> None:
        self._record("skip_to_previous")

    async def get_progress(self) -> Progress:
        self._record("get_progress")
        return self.progress

    def commands(self) -> list[str]:
        return [name for name, _ in self.calls if name != "get_progress"]


class StepClock:
    """Clock that advances one minute per call."""

    def __init__(self, start: Optional[datetime] = None):
        self.current = start or datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        now = self.current
        self.current = now + timedelta(minutes=1)
        return now


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def file_system() -> FakeFileSystem:
    return FakeFileSystem()


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def store(storage: MemoryStorage, file_system: FakeFileSystem) -> PlaybackItemStore:
    counter = itertools.count(1)
    return PlaybackItemStore(
        storage,
        file_system,
        clock=StepClock(),
        id_factory=lambda: f"naat-{next(counter)}",
    )
