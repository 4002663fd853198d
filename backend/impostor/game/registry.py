from __future__ import annotations

import logging
import secrets
import time
import uuid
from dataclasses import dataclass
from threading import RLock

from .errors import GameError, RoomNotFound
from .models import Room, Settings

log = logging.getLogger(__name__)

PIN_MIN = 100000
PIN_MAX = 999999


def now_ms() -> int:
    return int(time.time() * 1000)


def generate_pin() -> str:
    return str(PIN_MIN + secrets.randbelow(PIN_MAX - PIN_MIN + 1))


@dataclass(frozen=True)
class Binding:
    user_id: str
    pin: str | None = None


class RoomRegistry:
    """Process-wide rooms keyed by PIN plus the socket -> identity map.

    ``lock`` must be held around any lookup + mutation of a room; socket
    handlers and timer callbacks all share it.
    """

    def __init__(self, pin_retry_limit: int = 50) -> None:
        self.lock = RLock()
        self.pin_retry_limit = pin_retry_limit
        self._rooms: dict[str, Room] = {}
        self._bindings: dict[str, Binding] = {}

    def init(self) -> "RoomRegistry":
        with self.lock:
            self._rooms = {}
            self._bindings = {}
        return self

    def shutdown(self) -> None:
        with self.lock:
            for room in self._rooms.values():
                cancel_room_timers(room)
            log.info("[registry-shutdown] rooms=%d", len(self._rooms))
            self._rooms.clear()
            self._bindings.clear()

    def create_room(self, host_id: str, display_name: str, settings: Settings | None = None) -> Room:
        with self.lock:
            for _ in range(max(1, self.pin_retry_limit)):
                pin = generate_pin()
                if pin not in self._rooms:
                    break
            else:
                raise GameError("Could not allocate a room PIN", code="pin_exhausted")

            room = Room(
                id=uuid.uuid4().hex,
                pin=pin,
                host_id=host_id,
                host_name=display_name,
                settings=settings or Settings(),
                created_at_ms=now_ms(),
            )
            self._rooms[pin] = room
            log.info("[room-create] room=%s host=%s", pin, host_id)
            return room

    def get(self, pin: str) -> Room | None:
        with self.lock:
            return self._rooms.get(pin)

    def require(self, pin: str) -> Room:
        room = self.get(pin)
        if room is None:
            raise RoomNotFound()
        return room

    def list_rooms(self) -> list[Room]:
        with self.lock:
            return list(self._rooms.values())

    # ---- connection bindings ----

    def bind(self, sid: str, user_id: str, pin: str | None = None) -> Binding:
        with self.lock:
            binding = Binding(user_id=user_id, pin=pin)
            self._bindings[sid] = binding
            return binding

    def binding(self, sid: str) -> Binding | None:
        with self.lock:
            return self._bindings.get(sid)

    def user_for(self, sid: str) -> str | None:
        binding = self.binding(sid)
        return binding.user_id if binding else None

    def unbind(self, sid: str) -> Binding | None:
        with self.lock:
            return self._bindings.pop(sid, None)

    def latest_room_for(self, user_id: str) -> Room | None:
        """Most recently created room where ``user_id`` hosts or plays."""
        with self.lock:
            found = None
            for room in self._rooms.values():
                if user_id != room.host_id and user_id not in room.players:
                    continue
                if found is None or room.created_at_ms >= found.created_at_ms:
                    found = room
            return found


def cancel_room_timers(room: Room) -> None:
    if room.phase_timer is not None:
        room.phase_timer.cancel()
        room.phase_timer = None
    if room.ticker is not None:
        room.ticker.cancel()
        room.ticker = None
    for timer in room.grace_timers.values():
        timer.cancel()
    room.grace_timers.clear()
