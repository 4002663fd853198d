from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from ..game import views
from ..game.errors import GameError

bp = Blueprint("rooms", __name__)


def _hub():
    return current_app.extensions["impostor"]


@bp.post("/rooms")
def create_room():
    data = request.get_json(silent=True) or {}
    host_id = str(data.get("hostId", "") or "").strip()
    display_name = str(data.get("displayName", "") or "").strip()
    if not host_id or not display_name:
        return jsonify({"error": "invalid_payload", "message": "Missing hostId or displayName"}), 400

    try:
        room = _hub().create_room(host_id, display_name)
    except GameError as exc:
        return jsonify({"error": exc.code, "message": exc.message}), 503
    return jsonify({"roomId": room.id, "pin": room.pin})


@bp.get("/rooms/<pin>")
def get_room(pin: str):
    hub = _hub()
    with hub.registry.lock:
        room = hub.registry.get(pin)
        if not room:
            return jsonify({"error": "room_not_found", "message": "Room not found"}), 404
        return jsonify(views.room_summary(room))
