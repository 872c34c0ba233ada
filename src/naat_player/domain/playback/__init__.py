"""Playback domain - audio engine integration and remote controls.

This domain handles:
- The PlaybackSession contract and its MPV implementation
- Remote transport events and the bridge that maps them to engine commands
- The NaatPlayer controller (source selection, play counts, downloads)
"""

from .controller import NaatPlayer, download_file
from .mpv import MpvSession, check_mpv_available
from .remote import (
    RemoteCommandBridge,
    RemoteEvent,
    RemoteEventBus,
    Subscription,
    log_remote_failure,
)
from .session import PlaybackSession, Progress

__all__ = [
    "NaatPlayer",
    "download_file",
    "MpvSession",
    "check_mpv_available",
    "RemoteCommandBridge",
    "RemoteEvent",
    "RemoteEventBus",
    "Subscription",
    "log_remote_failure",
    "PlaybackSession",
    "Progress",
]
