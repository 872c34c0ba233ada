"""
MPV audio engine driven over JSON IPC.

Implements the PlaybackSession protocol. Socket calls are blocking and run
through asyncio.to_thread so the event loop keeps serving remote events.
"""

import asyncio
import json
import os
import socket
import subprocess
import tempfile
import time
from pathlib import Path
from typing import Any, Optional

from loguru import logger

from ..naat.exceptions import PlaybackError
from .session import Progress

SOCKET_TIMEOUT = 2.0
STARTUP_TIMEOUT = 5.0


def check_mpv_available() -> bool:
    """Check if MPV is available on the system."""
    try:
        result = subprocess.run(
            ["mpv", "--version"], capture_output=True, text=True, timeout=5
        )
        return result.returncode == 0
    except (subprocess.SubprocessError, FileNotFoundError, OSError):
        return False


def send_mpv_command(socket_path: str, command: list[Any]) -> Any:
    """Send one JSON IPC command to MPV and return its 'data' field.

    Raises:
        PlaybackError: If the socket is unreachable or MPV reports an error
    """
    if not socket_path or not os.path.exists(socket_path):
        raise PlaybackError("MPV is not running")

    try:
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
            sock.settimeout(SOCKET_TIMEOUT)
            sock.connect(socket_path)
            sock.sendall((json.dumps({"command": command}) + "\n").encode("utf-8"))

            buffer = b""
            while b"\n" not in buffer:
                chunk = sock.recv(4096)
                if not chunk:
                    break
                buffer += chunk
    except OSError as e:
        raise PlaybackError(f"MPV IPC failed for {command[0]}: {e}") from e

    # MPV may interleave event lines; the reply is the line without an "event" key
    for line in buffer.decode("utf-8", errors="replace").splitlines():
        try:
            message = json.loads(line)
        except json.JSONDecodeError:
            continue
        if "event" in message:
            continue
        if message.get("error") != "success":
            raise PlaybackError(f"MPV rejected {command[0]}: {message.get('error')}")
        return message.get("data")

    raise PlaybackError(f"No reply from MPV for {command[0]}")


class MpvSession:
    """PlaybackSession backed by an MPV subprocess."""

    def __init__(self, socket_path: Optional[str] = None, volume: int = 80):
        if not socket_path:
            socket_path = str(Path(tempfile.gettempdir()) / f"naat-mpv-{os.getpid()}")
        self.socket_path = socket_path
        self.volume = volume
        self.process: Optional[subprocess.Popen] = None

    def start(self) -> None:
        """Start MPV idle with a JSON IPC server.

        Raises:
            PlaybackError: If MPV cannot be started
        """
        logger.info(f"Starting MPV with socket: {self.socket_path}")
        if os.path.exists(self.socket_path):
            os.unlink(self.socket_path)

        cmd = [
            "mpv",
            "--idle=yes",
            "--no-video",
            "--no-terminal",
            f"--input-ipc-server={self.socket_path}",
            f"--volume={self.volume}",
            "--load-scripts=no",
        ]
        try:
            self.process = subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                stdin=subprocess.DEVNULL,
            )
        except OSError as e:
            raise PlaybackError(f"Failed to start MPV: {e}") from e

        deadline = time.time() + STARTUP_TIMEOUT
        while not os.path.exists(self.socket_path):
            if time.time() > deadline or self.process.poll() is not None:
                self.stop()
                raise PlaybackError(f"MPV socket not created after {STARTUP_TIMEOUT}s")
            time.sleep(0.1)

    def stop(self) -> None:
        """Stop the MPV process and remove its socket."""
        if self.process:
            try:
                self.process.kill()
                self.process.wait(timeout=2.0)
            except (OSError, subprocess.TimeoutExpired):
                pass  # Already gone
            self.process = None

        if os.path.exists(self.socket_path):
            try:
                os.unlink(self.socket_path)
            except OSError:
                pass

    def is_running(self) -> bool:
        return self.process is not None and self.process.poll() is None

    async def _command(self, *command: Any) -> Any:
        return await asyncio.to_thread(send_mpv_command, self.socket_path, list(command))

    async def _get_property(self, name: str) -> Any:
        try:
            return await self._command("get_property", name)
        except PlaybackError:
            # Unavailable properties (e.g. duration before load) read as None
            return None

    async def load(self, uri: str, title: Optional[str] = None) -> None:
        await self._command("loadfile", uri, "replace")
        if title:
            await self._command("set_property", "force-media-title", title)
        logger.debug(f"Loaded {uri}")

    async def play(self) -> None:
        await self._command("set_property", "pause", False)

    async def pause(self) -> None:
        await self._command("set_property", "pause", True)

    async def reset(self) -> None:
        await self._command("stop")

    async def seek_to(self, position: float) -> None:
        await self._command("seek", float(position), "absolute")

    async def skip_to_next(self) -> None:
        await self._command("playlist-next")

    async def skip_to_previous(self) -> None:
        await self._command("playlist-prev")

    async def get_progress(self) -> Progress:
        position = await self._get_property("time-pos")
        duration = await self._get_property("duration")
        return Progress(position=float(position or 0.0), duration=float(duration or 0.0))

    async def is_idle(self) -> bool:
        """True once nothing is loaded (finished or stopped)."""
        return bool(await self._get_property("idle-active"))
