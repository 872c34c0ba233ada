"""IPC server that feeds remote transport events into the running player."""

import asyncio
import json
import os
import socket
import threading
from pathlib import Path
from typing import Any, Optional, Tuple

from loguru import logger

from naat_player.domain.playback.remote import RemoteEvent, RemoteEventBus

# Events whose payload needs a number, and the key it goes under
_NUMERIC_PAYLOAD = {
    RemoteEvent.SEEK: "position",
    RemoteEvent.JUMP_FORWARD: "interval",
    RemoteEvent.JUMP_BACKWARD: "interval",
}


def get_socket_path() -> Path:
    """
    Get the path to the Naat Player control socket.

    Returns:
        Path to Unix socket
    """
    # Use XDG_RUNTIME_DIR if available, otherwise fall back to ~/.local/share
    runtime_dir = os.environ.get('XDG_RUNTIME_DIR')
    if runtime_dir:
        return Path(runtime_dir) / 'naat-player' / 'control.sock'
    return Path.home() / '.local' / 'share' / 'naat-player' / 'control.sock'


def parse_event_message(data: bytes) -> Tuple[RemoteEvent, dict[str, Any]]:
    """
    Parse one control message: {"event": "<name>", "payload": {...}}.

    Raises:
        ValueError: If the message is not valid JSON or names an unknown event
    """
    message = json.loads(data.decode('utf-8').strip())
    if not isinstance(message, dict):
        raise ValueError("Message must be a JSON object")

    try:
        event = RemoteEvent(message.get('event', ''))
    except ValueError:
        valid = ', '.join(e.value for e in RemoteEvent)
        raise ValueError(f"Unknown event {message.get('event')!r}. Valid: {valid}") from None

    payload = message.get('payload') or {}
    if not isinstance(payload, dict):
        raise ValueError("Payload must be a JSON object")

    key = _NUMERIC_PAYLOAD.get(event)
    if key and key in payload:
        try:
            payload[key] = float(payload[key])
        except (TypeError, ValueError) as e:
            raise ValueError(f"{key} must be a number") from e
    if event is RemoteEvent.SEEK and 'position' not in payload:
        raise ValueError("seek requires a position")

    return event, payload


class IPCServer:
    """Unix socket server for remote transport events.

    Runs in a background thread; each parsed event is scheduled onto the
    asyncio loop that owns the event bus. Replies are sent as soon as the
    event is queued, since transport events have no result to report.
    """

    def __init__(
        self,
        bus: RemoteEventBus,
        loop: asyncio.AbstractEventLoop,
        socket_path: Optional[Path] = None,
    ):
        self.bus = bus
        self.loop = loop
        self.socket_path = socket_path or get_socket_path()
        self.server_socket: Optional[socket.socket] = None
        self.running = False
        self.thread: Optional[threading.Thread] = None

    def start(self) -> None:
        """Start the IPC server in a background thread."""
        if self.running:
            return

        self.socket_path.parent.mkdir(parents=True, exist_ok=True)
        if self.socket_path.exists():
            try:
                self.socket_path.unlink()
            except OSError:
                pass

        self.running = True
        self.thread = threading.Thread(target=self._run_server, daemon=True)
        self.thread.start()
        logger.info(f"IPC server listening on {self.socket_path}")

    def stop(self) -> None:
        """Stop the IPC server and cleanup."""
        self.running = False

        # Close server socket to unblock accept()
        if self.server_socket:
            try:
                self.server_socket.close()
            except OSError:
                pass

        if self.thread and self.thread.is_alive():
            self.thread.join(timeout=2.0)

        if self.socket_path.exists():
            try:
                self.socket_path.unlink()
            except OSError:
                pass

    def _run_server(self) -> None:
        """Run the Unix socket server loop."""
        try:
            self.server_socket = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
            self.server_socket.bind(str(self.socket_path))
            self.server_socket.listen(5)
            self.server_socket.settimeout(1.0)  # Poll every second

            while self.running:
                try:
                    client_socket, _ = self.server_socket.accept()
                    self._handle_client(client_socket)
                except socket.timeout:
                    continue
                except Exception as e:
                    if self.running:
                        logger.error(f"Error handling connection: {e}")
        except OSError:
            logger.exception("IPC server error")
        finally:
            if self.server_socket:
                self.server_socket.close()

    def dispatch(self, data: bytes) -> dict[str, Any]:
        """Parse a message and schedule it on the bus. Returns the reply."""
        try:
            event, payload = parse_event_message(data)
        except (ValueError, UnicodeDecodeError) as e:
            return {'success': False, 'message': f'Invalid event: {e}'}

        asyncio.run_coroutine_threadsafe(self.bus.emit(event, payload), self.loop)
        logger.debug(f"[IPC] queued {event.value} {payload}")
        return {'success': True, 'message': f'Sent: {event.value}'}

    def _handle_client(self, client_socket: socket.socket) -> None:
        """
        Handle a client connection.

        Args:
            client_socket: Connected client socket
        """
        try:
            data = b''
            while b'\n' not in data:
                chunk = client_socket.recv(4096)
                if not chunk:
                    break
                data += chunk

            if not data:
                return

            response = self.dispatch(data)
            client_socket.sendall((json.dumps(response) + '\n').encode('utf-8'))
        except OSError as e:
            logger.warning(f"IPC client error: {e}")
        except Exception as e:
            logger.exception("Error handling IPC message")
            try:
                reply = {'success': False, 'message': f'Error: {e}'}
                client_socket.sendall((json.dumps(reply) + '\n').encode('utf-8'))
            except OSError:
                pass
        finally:
            client_socket.close()
