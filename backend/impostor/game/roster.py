from __future__ import annotations

import logging
from typing import Any, ContextManager

from ..config import GameRules
from ..realtime.events import ServerEvent
from . import views
from .errors import InvalidTarget, JoinRejected, NotAllowed
from .models import Player, Room
from .registry import now_ms
from .rounds import RoundOrchestrator
from .timers import Timer

log = logging.getLogger(__name__)


def validate_name(name: str, max_len: int) -> str:
    n = (name or "").strip()
    if not n:
        raise JoinRejected("Display name is required", code="invalid_name")
    if len(n) > max_len:
        raise JoinRejected(f"Display name must be at most {max_len} characters", code="invalid_name")
    # Avoid obvious HTML/script injection.
    if "<" in n or ">" in n:
        raise JoinRejected("Display name contains invalid characters", code="invalid_name")
    for ch in n:
        if ord(ch) < 32:
            raise JoinRejected("Display name contains invalid characters", code="invalid_name")
    return n


class PlayerRoster:
    """Room membership: join, reconnect, disconnect grace period, kick.

    A player goes absent -> connected -> disconnected -> removed, and may go
    back from disconnected to connected while the grace timer is pending.
    """

    def __init__(self, transport: Any, lock: ContextManager, rules: GameRules, rounds: RoundOrchestrator) -> None:
        self._transport = transport
        self._lock = lock
        self.rules = rules
        self.rounds = rounds

    def join(self, room: Room, user_id: str, display_name: str, sid: str) -> tuple[Player, bool]:
        """Add ``user_id`` to the room, or reconnect it if already rostered.

        Returns ``(player, reconnected)``.
        """
        self._check_not_host(room, user_id)
        name = validate_name(display_name, self.rules.name_max_len)

        existing = room.players.get(user_id)
        if existing is not None:
            if room.phase == "lobby" and existing.display_name.casefold() != name.casefold():
                self._check_name_free(room, name, user_id)
                existing.display_name = name
            self._reconnect(room, existing, sid)
            return existing, True

        if room.phase != "lobby":
            raise JoinRejected("Game already in progress", code="game_in_progress")
        self._check_name_free(room, name, user_id)
        if self.rules.max_players and len(room.connected_players()) >= self.rules.max_players:
            raise JoinRejected("Room is full", code="room_full")

        player = Player(id=user_id, display_name=name, sid=sid)
        room.players[user_id] = player
        room.scores[user_id] = 0
        log.info("[player-join] room=%s user=%s name=%s", room.pin, user_id, name)
        views.broadcast_room_update(self._transport, room)
        return player, False

    def rejoin(self, room: Room, user_id: str, display_name: str, sid: str) -> Player:
        self._check_not_host(room, user_id)
        player = room.players.get(user_id)
        if player is None:
            raise JoinRejected("You are no longer in this game", code="not_in_room")

        if not player.connected and player.disconnected_at_ms is not None:
            elapsed_ms = now_ms() - player.disconnected_at_ms
            if elapsed_ms > self.rules.disconnect_grace_sec * 1000:
                self.remove(room, user_id, reason="expired")
                raise JoinRejected("Rejoin window expired", code="rejoin_expired")

        self._reconnect(room, player, sid)
        return player

    def identify(self, room: Room, user_id: str, sid: str) -> Player | None:
        player = room.players.get(user_id)
        if player is None:
            return None
        self._reconnect(room, player, sid)
        return player

    def disconnect(self, room: Room, user_id: str, sid: str) -> bool:
        player = room.players.get(user_id)
        # A newer socket may already have taken over this identity.
        if player is None or player.sid != sid or not player.connected:
            return False

        player.status = "disconnected"
        player.sid = None
        player.disconnected_at_ms = stamp = now_ms()
        self._cancel_grace(room, user_id)
        room.grace_timers[user_id] = Timer(
            self._transport,
            self._lock,
            self.rules.disconnect_grace_sec,
            self._expire,
            room,
            user_id,
            stamp,
            name=f"{room.pin}:grace:{user_id}",
        ).start()
        log.info("[player-disconnect] room=%s user=%s phase=%s", room.pin, user_id, room.phase)
        views.broadcast_room_update(self._transport, room)
        return True

    def kick(self, room: Room, requester_id: str | None, target_id: str) -> Player:
        if requester_id != room.host_id:
            raise NotAllowed("Only the host can kick players")
        player = room.players.get(target_id)
        if player is None:
            raise InvalidTarget("Unknown player")

        sid = player.sid
        if sid:
            self._transport.emit(
                ServerEvent.PLAYER_KICKED, {"message": "You have been kicked from the game."}, to=sid
            )
            self._transport.leave_room(sid, room.pin)

        log.info("[player-kick] room=%s user=%s", room.pin, target_id)
        self.remove(room, target_id, reason="kicked", host_fallback=True)
        # Removed first so the resulting disconnect event finds nothing to do.
        if sid:
            self._transport.disconnect(sid)
        return player

    def remove(self, room: Room, user_id: str, reason: str = "removed", host_fallback: bool = False) -> None:
        """Permanently drop a player: roster, score and pending round data."""
        self._cancel_grace(room, user_id)
        if room.players.pop(user_id, None) is None:
            return
        room.scores.pop(user_id, None)
        if room.current_round_data is not None:
            room.current_round_data.purge(user_id)

        log.info("[player-remove] room=%s user=%s reason=%s", room.pin, user_id, reason)
        views.broadcast_room_update(self._transport, room, host_fallback=host_fallback)
        self.rounds.check_progress(room)

    # ---- internals ----

    def _check_not_host(self, room: Room, user_id: str) -> None:
        if user_id == room.host_id:
            raise JoinRejected("The host cannot join as a player", code="host_cannot_play")

    def _check_name_free(self, room: Room, name: str, user_id: str) -> None:
        holder = room.find_by_name(name)
        if holder is None or holder.id == user_id:
            return
        if holder.connected:
            raise JoinRejected("That player name is already in use. Pick another name.", code="name_taken")
        raise JoinRejected(
            "That name belongs to a player who is reconnecting. Try again shortly.",
            code="name_reserved",
            retry=True,
        )

    def _reconnect(self, room: Room, player: Player, sid: str) -> None:
        was_connected = player.connected
        self._cancel_grace(room, player.id)
        player.sid = sid
        player.status = "connected"
        player.disconnected_at_ms = None
        if not was_connected:
            log.info("[player-reconnect] room=%s user=%s phase=%s", room.pin, player.id, room.phase)
            views.broadcast_room_update(self._transport, room)

    def _cancel_grace(self, room: Room, user_id: str) -> None:
        timer = room.grace_timers.pop(user_id, None)
        if timer is not None:
            timer.cancel()

    def _expire(self, room: Room, user_id: str, stamp: int) -> None:
        player = room.players.get(user_id)
        if player is None or player.connected or player.disconnected_at_ms != stamp:
            return
        room.grace_timers.pop(user_id, None)
        log.info("[player-expire] room=%s user=%s", room.pin, user_id)
        self.remove(room, user_id, reason="expired")
