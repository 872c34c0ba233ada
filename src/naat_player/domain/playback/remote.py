"""
Remote transport-control handling.

Transport events (media keys, lock-screen style controls, the IPC control
socket) are emitted on a RemoteEventBus. RemoteCommandBridge subscribes one
handler per event kind and turns each into PlaybackSession commands. These
callbacks have no caller to report to, so failures never propagate; they go
to a diagnostic sink instead.
"""

import math
from enum import Enum
from typing import Any, Awaitable, Callable, Optional

from loguru import logger

from .session import PlaybackSession

DEFAULT_JUMP_INTERVAL = 15.0
# "previous" restarts the current item once playback is past this point
RESTART_THRESHOLD_SECONDS = 3.0


class RemoteEvent(str, Enum):
    PLAY = "play"
    PAUSE = "pause"
    STOP = "stop"
    SEEK = "seek"
    JUMP_FORWARD = "jump-forward"
    JUMP_BACKWARD = "jump-backward"
    NEXT = "next"
    PREVIOUS = "previous"


RemoteHandler = Callable[[dict[str, Any]], Awaitable[None]]
DiagnosticSink = Callable[[RemoteEvent, BaseException], None]


def log_remote_failure(event: RemoteEvent, error: BaseException) -> None:
    """Default sink: debug-level log only, never user facing."""
    logger.debug(f"Remote {event.value} failed: {error!r}")


class Subscription:
    """Handle for one registered listener. remove() is idempotent."""

    def __init__(self, bus: "RemoteEventBus", event: RemoteEvent, handler: RemoteHandler):
        self._bus = bus
        self.event = event
        self.handler = handler
        self.active = True

    def remove(self) -> None:
        if self.active:
            self._bus._discard(self)
            self.active = False


class RemoteEventBus:
    """Dispatches remote events to registered async listeners."""

    def __init__(self):
        self._listeners: dict[RemoteEvent, list[Subscription]] = {}

    def add_listener(self, event: RemoteEvent, handler: RemoteHandler) -> Subscription:
        subscription = Subscription(self, RemoteEvent(event), handler)
        self._listeners.setdefault(subscription.event, []).append(subscription)
        return subscription

    def _discard(self, subscription: Subscription) -> None:
        listeners = self._listeners.get(subscription.event, [])
        if subscription in listeners:
            listeners.remove(subscription)

    def listener_count(self, event: Optional[RemoteEvent] = None) -> int:
        if event is not None:
            return len(self._listeners.get(RemoteEvent(event), []))
        return sum(len(subs) for subs in self._listeners.values())

    async def emit(self, event: RemoteEvent, payload: Optional[dict[str, Any]] = None) -> None:
        """Run every listener for an event in registration order.

        A failing listener is logged and does not stop the others.
        """
        event = RemoteEvent(event)
        payload = payload or {}
        for subscription in list(self._listeners.get(event, [])):
            try:
                await subscription.handler(payload)
            except Exception:
                logger.exception(f"Remote listener for {event.value} raised")


class RemoteCommandBridge:
    """Maps remote events onto a PlaybackSession for the session's lifetime."""

    def __init__(
        self,
        session: PlaybackSession,
        bus: RemoteEventBus,
        diagnostics: DiagnosticSink = log_remote_failure,
        jump_interval: float = DEFAULT_JUMP_INTERVAL,
        restart_threshold: float = RESTART_THRESHOLD_SECONDS,
    ):
        self.session = session
        self.bus = bus
        self.diagnostics = diagnostics
        self.jump_interval = jump_interval
        self.restart_threshold = restart_threshold
        self.subscriptions: list[Subscription] = []

    def start(self) -> list[Subscription]:
        """Register one handler per event. Calling start twice is a no-op."""
        if self.subscriptions:
            return list(self.subscriptions)

        handlers: dict[RemoteEvent, RemoteHandler] = {
            RemoteEvent.PLAY: self.on_play,
            RemoteEvent.PAUSE: self.on_pause,
            RemoteEvent.STOP: self.on_stop,
            RemoteEvent.SEEK: self.on_seek,
            RemoteEvent.JUMP_FORWARD: self.on_jump_forward,
            RemoteEvent.JUMP_BACKWARD: self.on_jump_backward,
            RemoteEvent.NEXT: self.on_next,
            RemoteEvent.PREVIOUS: self.on_previous,
        }
        self.subscriptions = [
            self.bus.add_listener(event, handler) for event, handler in handlers.items()
        ]
        logger.debug(f"Remote command bridge started ({len(self.subscriptions)} handlers)")
        return list(self.subscriptions)

    def stop(self) -> None:
        for subscription in self.subscriptions:
            subscription.remove()
        self.subscriptions = []
        logger.debug("Remote command bridge stopped")

    def _report(self, event: RemoteEvent, error: BaseException) -> None:
        try:
            self.diagnostics(event, error)
        except Exception:
            logger.exception("Remote diagnostic sink raised")

    def _interval(self, payload: dict[str, Any]) -> float:
        interval = payload.get("interval")
        return self.jump_interval if interval is None else float(interval)

    async def on_play(self, payload: dict[str, Any]) -> None:
        try:
            await self.session.play()
        except Exception as e:
            self._report(RemoteEvent.PLAY, e)

    async def on_pause(self, payload: dict[str, Any]) -> None:
        try:
            await self.session.pause()
        except Exception as e:
            self._report(RemoteEvent.PAUSE, e)

    async def on_stop(self, payload: dict[str, Any]) -> None:
        try:
            await self.session.reset()
        except Exception as e:
            self._report(RemoteEvent.STOP, e)

    async def on_seek(self, payload: dict[str, Any]) -> None:
        try:
            await self.session.seek_to(float(payload["position"]))
        except Exception as e:
            self._report(RemoteEvent.SEEK, e)

    async def on_jump_forward(self, payload: dict[str, Any]) -> None:
        try:
            progress = await self.session.get_progress()
            duration = progress.duration if progress.duration > 0 else math.inf
            await self.session.seek_to(min(progress.position + self._interval(payload), duration))
        except Exception as e:
            self._report(RemoteEvent.JUMP_FORWARD, e)

    async def on_jump_backward(self, payload: dict[str, Any]) -> None:
        try:
            progress = await self.session.get_progress()
            await self.session.seek_to(max(0.0, progress.position - self._interval(payload)))
        except Exception as e:
            self._report(RemoteEvent.JUMP_BACKWARD, e)

    async def on_next(self, payload: dict[str, Any]) -> None:
        try:
            await self.session.skip_to_next()
        except Exception as e:
            self._report(RemoteEvent.NEXT, e)

    async def on_previous(self, payload: dict[str, Any]) -> None:
        try:
            progress = await self.session.get_progress()
            if progress.position > self.restart_threshold:
                await self.session.seek_to(0)
            else:
                await self.session.skip_to_previous()
        except Exception as e:
            self._report(RemoteEvent.PREVIOUS, e)
            try:
                await self.session.seek_to(0)
            except Exception as fallback_error:
                self._report(RemoteEvent.PREVIOUS, fallback_error)
