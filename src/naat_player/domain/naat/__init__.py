"""Naat domain - playable items, their store, and stream resolution.

This domain handles:
- PlayableItem / NaatDraft models and their JSON records
- The durable item store and its download reconciliation sweep
- Resolving source videos to direct audio stream URLs
"""

from .exceptions import (
    AudioUnavailableError,
    ItemNotFoundError,
    NaatError,
    PlaybackError,
    StorageWriteError,
)
from .models import NaatDraft, PlayableItem, generate_item_id
from .resolver import StreamResolver, extract_video_id, pick_best_stream
from .storage import FileSystem, JsonFileStorage, KeyValueStorage, LocalFileSystem
from .store import PlaybackItemStore

__all__ = [
    # Exceptions
    "AudioUnavailableError",
    "ItemNotFoundError",
    "NaatError",
    "PlaybackError",
    "StorageWriteError",
    # Models
    "NaatDraft",
    "PlayableItem",
    "generate_item_id",
    # Resolver
    "StreamResolver",
    "extract_video_id",
    "pick_best_stream",
    # Storage
    "FileSystem",
    "JsonFileStorage",
    "KeyValueStorage",
    "LocalFileSystem",
    "PlaybackItemStore",
]
