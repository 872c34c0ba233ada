"""IPC client for sending remote events to a running Naat Player."""

import json
import socket
from typing import Any, Optional, Tuple

from .server import get_socket_path


def send_event(event: str, payload: Optional[dict[str, Any]] = None) -> Tuple[bool, str]:
    """
    Send a transport event to the running player.

    Args:
        event: Event name (e.g., 'pause', 'jump-forward', 'seek')
        payload: Event payload (e.g., {'position': 30})

    Returns:
        (success, message) tuple
    """
    socket_path = get_socket_path()
    if not socket_path.exists():
        return False, "Naat Player is not running"

    message = json.dumps({'event': event, 'payload': payload or {}}) + '\n'

    try:
        with socket.socket(socket.AF_UNIX, socket.SOCK_STREAM) as sock:
            sock.settimeout(5.0)
            sock.connect(str(socket_path))
            sock.sendall(message.encode('utf-8'))

            response_data = b''
            while b'\n' not in response_data:
                chunk = sock.recv(4096)
                if not chunk:
                    break
                response_data += chunk

        if not response_data:
            return False, "No response from Naat Player"

        response = json.loads(response_data.decode('utf-8').strip())
        return response.get('success', False), response.get('message', 'No message')

    except socket.timeout:
        return False, "Naat Player not responding (timeout)"
    except (ConnectionRefusedError, FileNotFoundError):
        return False, "Naat Player not running"
    except json.JSONDecodeError as e:
        return False, f"Invalid response from Naat Player: {e}"
    except OSError as e:
        return False, f"Failed to send event: {e}"
