from __future__ import annotations

from flask import Blueprint, current_app, jsonify

bp = Blueprint("health", __name__)


@bp.get("/health")
def health():
    hub = current_app.extensions["impostor"]
    return jsonify({"ok": True, "rooms": len(hub.registry.list_rooms())})
