"""
Storage capabilities for the naat store.

The store only talks to these two protocols, so tests can swap in in-memory
fakes. The disk implementations run blocking I/O through asyncio.to_thread.
"""

import asyncio
import os
import re
import tempfile
from pathlib import Path
from typing import Optional, Protocol

from loguru import logger


class KeyValueStorage(Protocol):
    """Async string key-value storage."""

    async def get_item(self, key: str) -> Optional[str]: ...

    async def set_item(self, key: str, value: str) -> None: ...


class FileSystem(Protocol):
    """Async file-system operations used by the store and player."""

    async def exists(self, path: str) -> bool: ...

    async def ensure_directory(self, path: str) -> None: ...

    async def remove(self, path: str) -> None: ...


def to_local_path(uri: str) -> Path:
    """Convert a 'file://' URI or plain path to a Path."""
    if uri.startswith("file://"):
        uri = uri[len("file://"):]
    return Path(uri)


def atomic_write_text(path: Path, text: str) -> None:
    """Write text via a temp file in the same directory and os.replace.

    Readers see either the old or the new content, never a partial file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(text)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise


class JsonFileStorage:
    """Key-value storage with one file per key under a data directory."""

    def __init__(self, data_dir: Path):
        self.data_dir = Path(data_dir)

    def path_for(self, key: str) -> Path:
        # '@naat/items_v1' -> 'naat_items_v1.json'
        safe = re.sub(r"[^\w.-]+", "_", key).strip("_") or "default"
        return self.data_dir / f"{safe}.json"

    async def get_item(self, key: str) -> Optional[str]:
        path = self.path_for(key)
        try:
            return await asyncio.to_thread(path.read_text, encoding="utf-8")
        except FileNotFoundError:
            return None

    async def set_item(self, key: str, value: str) -> None:
        path = self.path_for(key)
        await asyncio.to_thread(atomic_write_text, path, value)
        logger.debug(f"Wrote {len(value)} bytes to {path}")


class LocalFileSystem:
    """FileSystem backed by the local disk."""

    async def exists(self, path: str) -> bool:
        return await asyncio.to_thread(to_local_path(path).exists)

    async def ensure_directory(self, path: str) -> None:
        await asyncio.to_thread(to_local_path(path).mkdir, parents=True, exist_ok=True)

    async def remove(self, path: str) -> None:
        await asyncio.to_thread(to_local_path(path).unlink, missing_ok=True)
