from __future__ import annotations

from typing import Any

from ..realtime.events import ServerEvent
from .models import Room


def player_list(room: Room, include_status: bool = False) -> list[dict]:
    players = []
    for p in room.players.values():
        d = {"id": p.id, "displayName": p.display_name}
        if include_status:
            d["status"] = p.status
        players.append(d)
    return players


def room_summary(room: Room) -> dict:
    return {
        "id": room.id,
        "pin": room.pin,
        "hostName": room.host_name,
        "players": player_list(room),
        "phase": room.phase,
        "settings": room.settings.to_dict(),
    }


def room_update(room: Room) -> dict:
    return {"players": player_list(room, include_status=True), "phase": room.phase}


def broadcast_room_update(transport: Any, room: Room, host_fallback: bool = False) -> None:
    payload = room_update(room)
    transport.emit(ServerEvent.ROOM_UPDATE, payload, to=room.pin)
    # Some transports only fan out to room members; the host is not one.
    if host_fallback and room.host_sid:
        transport.emit(ServerEvent.ROOM_UPDATE, payload, to=room.host_sid)


def answers_update(room: Room) -> dict:
    data = room.current_round_data
    answers = []
    if data is not None:
        for player_id, target_id in data.answers.items():
            player = room.players.get(player_id)
            target = room.players.get(target_id)
            answers.append(
                {
                    "playerId": player_id,
                    "playerName": player.display_name if player else None,
                    "targetId": target_id,
                    "targetName": target.display_name if target else None,
                }
            )
    return {"answers": answers}
