from __future__ import annotations

from typing import Any, Callable

from flask_socketio import SocketIO


class SocketIOTransport:
    """What the game layer needs from Socket.IO, usable outside request context."""

    def __init__(self, socketio: SocketIO, namespace: str = "/") -> None:
        self.socketio = socketio
        self.namespace = namespace

    def emit(self, event: str, data: Any, to: str | None = None) -> None:
        self.socketio.emit(event, data, to=to, namespace=self.namespace)

    def leave_room(self, sid: str, room: str) -> None:
        self.socketio.server.leave_room(sid, room, namespace=self.namespace)

    def disconnect(self, sid: str) -> None:
        self.socketio.server.disconnect(sid, namespace=self.namespace)

    def start_background_task(self, target: Callable[..., Any], *args: Any) -> Any:
        return self.socketio.start_background_task(target, *args)

    def sleep(self, seconds: float) -> None:
        self.socketio.sleep(seconds)
