"""
Naat playback controller.

Ties the store, the stream resolver and the audio engine together:
picks the best source for an item (local copy, cached stream URL, fresh
resolution), starts playback, and manages the offline download cache.
"""

import asyncio
import os
import tempfile
from pathlib import Path
from typing import Optional

import requests
from loguru import logger

from ..naat.exceptions import AudioUnavailableError, ItemNotFoundError, PlaybackError
from ..naat.models import NaatDraft, PlayableItem
from ..naat.resolver import StreamResolver
from ..naat.storage import FileSystem
from ..naat.store import PlaybackItemStore
from .session import PlaybackSession

DOWNLOAD_TIMEOUT_SECONDS = 60
DOWNLOAD_CHUNK_SIZE = 64 * 1024


def download_file(url: str, target: Path, timeout: float = DOWNLOAD_TIMEOUT_SECONDS) -> Path:
    """Stream a URL to target. The file only appears once complete.

    Raises:
        requests.RequestException: On HTTP or transport failure
        OSError: If the file cannot be written
    """
    target.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".part")
    try:
        with os.fdopen(fd, "wb") as f, requests.get(url, stream=True, timeout=timeout) as response:
            response.raise_for_status()
            for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                if chunk:
                    f.write(chunk)
        os.replace(tmp_path, target)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
    return target


class NaatPlayer:
    """High-level naat operations on top of the store, resolver and engine."""

    def __init__(
        self,
        store: PlaybackItemStore,
        resolver: StreamResolver,
        session: Optional[PlaybackSession],
        file_system: FileSystem,
        cache_dir: Path,
    ):
        self.store = store
        self.resolver = resolver
        self.session = session
        self.file_system = file_system
        self.cache_dir = Path(cache_dir)
        self.current: Optional[PlayableItem] = None

    async def refresh(self) -> list[PlayableItem]:
        """Ensure the cache dir, reconcile downloads and list the catalog."""
        await self.file_system.ensure_directory(str(self.cache_dir))
        await self.store.reconcile_downloads()
        return await self.store.list()

    async def add(self, draft: NaatDraft) -> PlayableItem:
        return await self.store.add(draft)

    def _engine(self) -> PlaybackSession:
        if self.session is None:
            raise PlaybackError("No audio engine attached")
        return self.session

    async def _require(self, item_id: str) -> PlayableItem:
        item = await self.store.get(item_id)
        if item is None:
            raise ItemNotFoundError(item_id)
        return item

    async def _resolve_remote(self, item: PlayableItem) -> tuple[str, PlayableItem]:
        audio_url = await self.resolver.resolve(item.source_url)
        if not audio_url:
            raise AudioUnavailableError(f"No audio stream found for {item.title!r}")
        updated = await self.store.update(item.id, {"resolved_audio_url": audio_url})
        return audio_url, updated or item

    async def resolve_source(self, item: PlayableItem) -> tuple[str, PlayableItem]:
        """Pick a playable URI: local copy, cached stream URL, then resolver.

        Returns:
            (uri, item) where item reflects any stored resolution

        Raises:
            AudioUnavailableError: If nothing playable is found
        """
        if item.local_file_uri and await self.file_system.exists(item.local_file_uri):
            return item.local_file_uri, item

        if item.resolved_audio_url:
            return item.resolved_audio_url, item

        return await self._resolve_remote(item)

    async def play(self, item_id: str) -> PlayableItem:
        """Start playing an item and count the play.

        A cached stream URL that fails to load is treated as expired: it is
        cleared, resolved again, and loading is retried once.

        Raises:
            ItemNotFoundError: If item_id is unknown
            AudioUnavailableError: If no source can be found
            PlaybackError: If the engine cannot load the source
        """
        item = await self._require(item_id)
        cached_url = item.resolved_audio_url
        uri, item = await self.resolve_source(item)

        try:
            await self._engine().load(uri, title=item.title)
        except PlaybackError:
            if not cached_url or uri != cached_url:
                raise
            logger.warning(f"Cached stream for {item.id} failed to load, resolving again")
            item = await self.store.update(item.id, {"resolved_audio_url": None}) or item
            uri, item = await self._resolve_remote(item)
            await self._engine().load(uri, title=item.title)

        await self._engine().play()
        self.current = item
        logger.info(f"Playing {item.id}: {item.title!r}")

        progress = await self._engine().get_progress()
        if progress.duration > 0 and item.duration_seconds is None:
            item = await self.store.update(item.id, {"duration_seconds": int(progress.duration)}) or item
            self.current = item

        await self.store.increment_play_count(item.id)
        return item

    async def pause(self) -> None:
        await self._engine().pause()

    async def resume(self) -> None:
        await self._engine().play()

    async def stop(self) -> None:
        await self._engine().reset()
        self.current = None

    async def seek(self, position: float) -> None:
        await self._engine().seek_to(position)

    async def download(self, item_id: str) -> PlayableItem:
        """Save an item's audio into the cache dir for offline playback.

        Raises:
            ItemNotFoundError: If item_id is unknown
            AudioUnavailableError: If no source can be found
            requests.RequestException: If the transfer fails
        """
        item = await self._require(item_id)
        if item.local_file_uri and await self.file_system.exists(item.local_file_uri):
            logger.debug(f"{item.id} already downloaded")
            return item

        await self.file_system.ensure_directory(str(self.cache_dir))
        if item.resolved_audio_url:
            uri = item.resolved_audio_url
        else:
            uri, item = await self._resolve_remote(item)

        target = self.cache_dir / f"{item.id}.mp3"
        logger.info(f"Downloading {item.id} to {target}")
        await asyncio.to_thread(download_file, uri, target)

        updated = await self.store.update(
            item.id, {"local_file_uri": str(target), "is_downloaded": True}
        )
        return updated or item

    async def remove(self, item_id: str) -> None:
        """Delete an item and its cached file, if any."""
        item = await self.store.get(item_id)
        if item is None:
            return
        if item.local_file_uri:
            try:
                await self.file_system.remove(item.local_file_uri)
            except OSError as e:
                logger.warning(f"Could not remove {item.local_file_uri}: {e}")
        await self.store.delete(item_id)
