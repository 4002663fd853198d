from __future__ import annotations

import logging

from flask import request
from flask_socketio import SocketIO, emit, join_room, leave_room

from ..game import views
from ..game.errors import GameError, NotAllowed
from ..game.hub import GameHub
from .events import (
    HostJoin,
    Identify,
    JoinRoom,
    KickPlayer,
    RejoinRoom,
    ServerEvent,
    SkipToVoting,
    StartGame,
    SubmitAnswer,
    SubmitVote,
    ThemeBroadcast,
)

log = logging.getLogger(__name__)


def register_socketio_handlers(socketio: SocketIO, hub: GameHub) -> None:
    registry = hub.registry

    def _reject(exc: GameError) -> dict:
        log.debug("[rejected] sid=%s code=%s message=%s", request.sid, exc.code, exc.message)
        emit(ServerEvent.ERROR, exc.to_payload())
        return {"ok": False, "error": exc.code}

    def _welcome(room, player=None) -> None:
        emit(ServerEvent.ROOM_JOINED, {"roomId": room.id, "pin": room.pin})
        emit(ServerEvent.ROOM_UPDATE, views.room_update(room))
        if player is not None:
            hub.rounds.resync(room, player)

    @socketio.on(JoinRoom.event)
    def room_join(data):
        try:
            msg = JoinRoom.parse(data)
            with registry.lock:
                room = registry.require(msg.pin)
                # Enter the channel first so the joiner sees its own room:update.
                join_room(room.pin)
                try:
                    player, reconnected = hub.roster.join(room, msg.user_id, msg.display_name, request.sid)
                except GameError:
                    leave_room(room.pin)
                    raise
                registry.bind(request.sid, msg.user_id, room.pin)
                _welcome(room, player if reconnected else None)
        except GameError as exc:
            return _reject(exc)
        return {"ok": True, "reconnected": reconnected}

    @socketio.on(RejoinRoom.event)
    def room_rejoin(data):
        try:
            msg = RejoinRoom.parse(data)
            with registry.lock:
                room = registry.require(msg.pin)
                player = hub.roster.rejoin(room, msg.user_id, msg.display_name, request.sid)
                join_room(room.pin)
                registry.bind(request.sid, msg.user_id, room.pin)
                _welcome(room, player)
        except GameError as exc:
            return _reject(exc)
        return {"ok": True}

    @socketio.on(HostJoin.event)
    def room_host_join(data):
        try:
            msg = HostJoin.parse(data)
            with registry.lock:
                room = registry.require(msg.pin)
                if msg.user_id != room.host_id:
                    raise NotAllowed("Only the room host can join as host")
                # The host manages the room but is never a player.
                join_room(room.pin)
                room.host_sid = request.sid
                if msg.display_name:
                    room.host_name = msg.display_name
                registry.bind(request.sid, msg.user_id, room.pin)
                _welcome(room)
        except GameError as exc:
            return _reject(exc)
        return {"ok": True}

    @socketio.on(Identify.event)
    def user_identify(data):
        try:
            msg = Identify.parse(data)
        except GameError as exc:
            return _reject(exc)

        with registry.lock:
            # One socket speaks for one room; without a pin, the newest one.
            room = registry.get(msg.pin) if msg.pin else registry.latest_room_for(msg.user_id)
            registry.bind(request.sid, msg.user_id, room.pin if room is not None else None)
            if room is None:
                return {"ok": True, "pin": None}

            if room.host_id == msg.user_id:
                room.host_sid = request.sid
                join_room(room.pin)
                emit(ServerEvent.ROOM_UPDATE, views.room_update(room))
                return {"ok": True, "pin": room.pin}

            player = hub.roster.identify(room, msg.user_id, request.sid)
            if player is not None:
                join_room(room.pin)
                emit(ServerEvent.ROOM_UPDATE, views.room_update(room))
                hub.rounds.resync(room, player)
        return {"ok": True, "pin": room.pin}

    @socketio.on(StartGame.event)
    def game_start(data):
        try:
            msg = StartGame.parse(data)
            with registry.lock:
                room = registry.require(msg.pin)
                hub.rounds.start_game(room, registry.user_for(request.sid), msg.settings)
        except GameError as exc:
            return _reject(exc)
        return {"ok": True}

    @socketio.on(SubmitAnswer.event)
    def answer_submit(data):
        try:
            msg = SubmitAnswer.parse(data)
            with registry.lock:
                room = registry.require(msg.pin)
                accepted = hub.rounds.submit_answer(room, registry.user_for(request.sid), msg.target_user_id)
        except GameError as exc:
            return _reject(exc)
        return {"ok": True, "accepted": accepted}

    @socketio.on(SubmitVote.event)
    def vote_submit(data):
        try:
            msg = SubmitVote.parse(data)
            with registry.lock:
                room = registry.require(msg.pin)
                accepted = hub.rounds.submit_vote(room, registry.user_for(request.sid), msg.target_user_id)
        except GameError as exc:
            return _reject(exc)
        return {"ok": True, "accepted": accepted}

    @socketio.on(ThemeBroadcast.event)
    def theme_broadcast(data):
        try:
            msg = ThemeBroadcast.parse(data)
            room = registry.require(msg.pin)
        except GameError as exc:
            return _reject(exc)
        socketio.emit(ServerEvent.THEME_UPDATE, {"theme": msg.theme}, to=room.pin)
        return {"ok": True}

    @socketio.on(SkipToVoting.event)
    def discussion_skip(data):
        try:
            msg = SkipToVoting.parse(data)
            with registry.lock:
                room = registry.require(msg.pin)
                requester = registry.user_for(request.sid) or msg.host_id
                hub.rounds.skip_discussion(room, requester)
        except GameError as exc:
            return _reject(exc)
        return {"ok": True}

    @socketio.on(KickPlayer.event)
    def player_kick(data):
        try:
            msg = KickPlayer.parse(data)
            with registry.lock:
                room = registry.require(msg.pin)
                hub.roster.kick(room, registry.user_for(request.sid), msg.target_user_id)
        except GameError as exc:
            return _reject(exc)
        return {"ok": True}

    @socketio.on("disconnect")
    def on_disconnect(reason=None):
        with registry.lock:
            binding = registry.unbind(request.sid)
            if binding is None or binding.pin is None:
                return
            room = registry.get(binding.pin)
            if room is None:
                return
            if room.host_sid == request.sid:
                room.host_sid = None
                log.info("[host-disconnect] room=%s reason=%s", room.pin, reason)
                return
            hub.roster.disconnect(room, binding.user_id, request.sid)
