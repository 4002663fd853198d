import time

import pytest

FAST = {"rounds": 1, "answerTimerSec": 1, "discussionTimerSec": 1, "voteTimerSec": 1}


def _args(packets, name):
    return [pkt["args"][0] for pkt in packets if pkt["name"] == name]


@pytest.fixture()
def lobby(app_and_socketio, client):
    """A room with a connected host and three joined players."""
    app, socketio = app_and_socketio
    pin = client.post("/api/rooms", json={"hostId": "host-1", "displayName": "Hosty"}).get_json()["pin"]

    host = socketio.test_client(app, flask_test_client=client)
    ack = host.emit("room:host-join", {"pin": pin, "userId": "host-1"}, callback=True)
    assert ack == {"ok": True}

    players = {}
    for name in ("Ann", "Ben", "Cat"):
        sio = socketio.test_client(app, flask_test_client=client)
        ack = sio.emit("room:join", {"pin": pin, "userId": name.lower(), "displayName": name}, callback=True)
        assert ack == {"ok": True, "reconnected": False}
        players[name.lower()] = sio

    return pin, host, players


def test_join_is_acknowledged_with_room_state(lobby):
    pin, host, players = lobby

    received = players["cat"].get_received()

    assert _args(received, "room:joined")[0]["pin"] == pin
    update = _args(received, "room:update")[-1]
    assert [p["id"] for p in update["players"]] == ["ann", "ben", "cat"]
    assert _args(host.get_received(), "room:update")


def test_duplicate_name_is_rejected(app_and_socketio, client, lobby):
    app, socketio = app_and_socketio
    pin, _, _ = lobby
    sio = socketio.test_client(app, flask_test_client=client)

    ack = sio.emit("room:join", {"pin": pin, "userId": "imposter", "displayName": "ANN"}, callback=True)

    assert ack == {"ok": False, "error": "name_taken"}
    assert _args(sio.get_received(), "error")[0]["code"] == "name_taken"


def test_unknown_pin_is_rejected(app_and_socketio, client):
    app, socketio = app_and_socketio
    sio = socketio.test_client(app, flask_test_client=client)

    ack = sio.emit("room:join", {"pin": "000000", "userId": "u", "displayName": "U"}, callback=True)

    assert ack == {"ok": False, "error": "room_not_found"}


def test_only_host_can_start(lobby):
    pin, _, players = lobby

    ack = players["ann"].emit("game:start", {"pin": pin}, callback=True)

    assert ack == {"ok": False, "error": "only_host"}


def test_host_kicks_player(lobby, client):
    pin, host, players = lobby
    players["ann"].get_received()

    ack = host.emit("player:kick", {"pin": pin, "targetUserId": "ben"}, callback=True)

    assert ack == {"ok": True}
    update = _args(players["ann"].get_received(), "room:update")[-1]
    assert [p["id"] for p in update["players"]] == ["ann", "cat"]
    summary = client.get(f"/api/rooms/{pin}").get_json()
    assert [p["id"] for p in summary["players"]] == ["ann", "cat"]


def test_theme_is_relayed_to_room(lobby):
    pin, host, players = lobby
    players["ben"].get_received()

    host.emit("theme:broadcast", {"pin": pin, "theme": "dark"}, callback=True)

    assert _args(players["ben"].get_received(), "theme:update") == [{"theme": "dark"}]


def test_full_game_runs_on_timers(lobby):
    pin, host, players = lobby

    ack = host.emit("game:start", {"pin": pin, "settings": FAST}, callback=True)
    assert ack == {"ok": True}

    seen = []
    deadline = time.time() + 15
    while time.time() < deadline:
        seen.extend(host.get_received())
        if _args(seen, "game:end"):
            break
        time.sleep(0.1)

    names = [pkt["name"] for pkt in seen]
    for event in ("round:start", "discussion:start", "voting:start", "round:result", "game:end"):
        assert event in names
    final = _args(seen, "game:end")[0]["finalScores"]
    assert sum(row["score"] for row in final) == 3

    prompts = {"group": 0, "impostor": 0}
    for sio in players.values():
        received = sio.get_received()
        prompts["group"] += len(_args(received, "prompt:group"))
        prompts["impostor"] += len(_args(received, "prompt:impostor"))
    assert prompts == {"group": 2, "impostor": 1}
    assert _args(seen, "prompt:group") == [] and _args(seen, "prompt:impostor") == []


def _game(app_and_socketio):
    return app_and_socketio[0].extensions["impostor"]


def _connect(app_and_socketio, client):
    app, socketio = app_and_socketio
    return socketio.test_client(app, flask_test_client=client)


# ---- reconnection paths ----


@pytest.mark.parametrize("with_pin", [True, False])
def test_identify_restores_disconnected_player(app_and_socketio, client, lobby, with_pin):
    pin, _, players = lobby
    room = _game(app_and_socketio).registry.get(pin)
    players["ann"].disconnect()
    assert room.players["ann"].status == "disconnected"

    sio = _connect(app_and_socketio, client)
    payload = {"userId": "ann", "pin": pin} if with_pin else {"userId": "ann"}
    ack = sio.emit("user:identify", payload, callback=True)

    assert ack == {"ok": True, "pin": pin}
    assert room.players["ann"].connected
    assert "ann" not in room.grace_timers
    assert _args(sio.get_received(), "room:update")

    sio.disconnect()
    assert room.players["ann"].status == "disconnected"
    assert room.grace_timers["ann"].active


def test_identify_without_pin_binds_only_the_newest_room(app_and_socketio, client, lobby):
    pin, _, players = lobby
    game = _game(app_and_socketio)
    other_pin = client.post("/api/rooms", json={"hostId": "host-2", "displayName": "Other"}).get_json()["pin"]
    first, second = game.registry.get(pin), game.registry.get(other_pin)
    first.created_at_ms, second.created_at_ms = 1000, 2000

    ann_again = _connect(app_and_socketio, client)
    ack = ann_again.emit("room:join", {"pin": other_pin, "userId": "ann", "displayName": "Ann"}, callback=True)
    assert ack["ok"] is True
    players["ann"].disconnect()
    ann_again.disconnect()
    assert first.players["ann"].status == second.players["ann"].status == "disconnected"

    sio = _connect(app_and_socketio, client)
    ack = sio.emit("user:identify", {"userId": "ann"}, callback=True)

    assert ack == {"ok": True, "pin": other_pin}
    assert second.players["ann"].connected
    assert first.players["ann"].status == "disconnected"
    assert first.grace_timers["ann"].active

    sio.disconnect()
    for room in (first, second):
        assert room.players["ann"].status == "disconnected"
        assert room.grace_timers["ann"].active


def test_rejoin_mid_round_redelivers_prompt(app_and_socketio, client, lobby):
    pin, host, players = lobby
    room = _game(app_and_socketio).registry.get(pin)
    assert host.emit("game:start", {"pin": pin}, callback=True) == {"ok": True}
    players["ben"].disconnect()

    sio = _connect(app_and_socketio, client)
    ack = sio.emit("room:rejoin", {"pin": pin, "userId": "ben", "displayName": "Ben"}, callback=True)

    assert ack == {"ok": True}
    received = sio.get_received()
    assert _args(received, "room:joined")[0]["pin"] == pin
    prompts = _args(received, "prompt:group") + _args(received, "prompt:impostor")
    assert [p["text"] for p in prompts] == [room.current_round_data.question_for("ben")]
    assert room.players["ben"].connected


def test_rejoin_after_grace_window_is_refused(app_and_socketio, client, lobby):
    pin, _, players = lobby
    game = _game(app_and_socketio)
    room = game.registry.get(pin)
    players["ben"].disconnect()
    with game.registry.lock:
        room.players["ben"].disconnected_at_ms -= 61_000

    sio = _connect(app_and_socketio, client)
    ack = sio.emit("room:rejoin", {"pin": pin, "userId": "ben", "displayName": "Ben"}, callback=True)

    assert ack == {"ok": False, "error": "rejoin_expired"}
    assert "ben" not in room.players


def test_host_cannot_join_own_room_as_player(app_and_socketio, client, lobby):
    pin, _, _ = lobby
    sio = _connect(app_and_socketio, client)

    ack = sio.emit("room:join", {"pin": pin, "userId": "host-1", "displayName": "Hosty"}, callback=True)

    assert ack == {"ok": False, "error": "host_cannot_play"}


# ---- discussion skip ----


def test_skip_to_voting_is_host_only(app_and_socketio, lobby):
    pin, host, players = lobby
    room = _game(app_and_socketio).registry.get(pin)
    assert host.emit("game:start", {"pin": pin}, callback=True) == {"ok": True}

    for uid, target in (("ann", "ben"), ("ben", "cat"), ("cat", "ann")):
        ack = players[uid].emit("answer:submit", {"pin": pin, "targetUserId": target}, callback=True)
        assert ack == {"ok": True, "accepted": True}
    assert room.phase == "discussing"

    ack = players["ann"].emit("discussion:skip-to-voting", {"pin": pin, "hostId": "host-1"}, callback=True)
    assert ack == {"ok": False, "error": "only_host"}
    assert room.phase == "discussing"

    host.get_received()
    ack = host.emit("discussion:skip-to-voting", {"pin": pin}, callback=True)
    assert ack == {"ok": True}
    assert room.phase == "voting"
    assert _args(host.get_received(), "voting:start")
