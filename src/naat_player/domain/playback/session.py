"""Contract for the audio engine that the player and remote bridge drive."""

from typing import NamedTuple, Optional, Protocol


class Progress(NamedTuple):
    """Playback position and duration in seconds (duration 0 = unknown)."""

    position: float = 0.0
    duration: float = 0.0


class PlaybackSession(Protocol):
    """Audio engine commands. Implementations raise PlaybackError on failure."""

    async def load(self, uri: str, title: Optional[str] = None) -> None: ...

    async def play(self) -> None: ...

    async def pause(self) -> None: ...

    async def reset(self) -> None: ...

    async def seek_to(self, position: float) -> None: ...

    async def skip_to_next(self) -> None: ...

    async def skip_to_previous(self) -> None: ...

    async def get_progress(self) -> Progress: ...
