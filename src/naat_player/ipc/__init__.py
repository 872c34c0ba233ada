"""IPC (Inter-Process Communication) for Naat Player.

Lets media keys, hotkeys and other processes send transport events to a
running player.
"""

from .client import send_event
from .server import IPCServer, get_socket_path, parse_event_message

__all__ = ['send_event', 'IPCServer', 'get_socket_path', 'parse_event_message']
