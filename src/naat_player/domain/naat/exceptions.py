"""Naat-specific exceptions for error handling."""

from typing import Optional


class NaatError(Exception):
    """Base exception for naat operations."""

    pass


class StorageWriteError(NaatError):
    """Raised when the item collection cannot be persisted."""

    pass


class ItemNotFoundError(NaatError):
    """Raised when an operation needs an item that is not in the store."""

    def __init__(self, item_id: str, message: Optional[str] = None):
        self.item_id = item_id
        super().__init__(message or f"No naat with id {item_id}")


class AudioUnavailableError(NaatError):
    """Raised when an item has no local copy and no resolvable stream."""

    pass


class PlaybackError(NaatError):
    """Raised when the audio engine rejects or fails a command."""

    pass
