import random

import pytest

from impostor.config import Config, GameRules
from impostor.game.hub import GameHub
from impostor.server import create_app


class FakeTransport:
    """Records emits and queues background tasks instead of running them.

    ``sleep`` is a no-op, so running a queued timer fires it immediately.
    """

    def __init__(self):
        self.sent = []
        self.tasks = []
        self.left = []
        self.disconnected = []

    def emit(self, event, data, to=None):
        self.sent.append((event, data, to))

    def leave_room(self, sid, room):
        self.left.append((sid, room))

    def disconnect(self, sid):
        self.disconnected.append(sid)

    def start_background_task(self, target, *args):
        self.tasks.append((target, args))

    def sleep(self, seconds):
        pass

    def task_names(self):
        return [getattr(getattr(t, "__self__", None), "name", "") for t, _ in self.tasks]

    def run_pending(self, match=None, skip="grace"):
        """Run the tasks queued right now (not the ones they schedule)."""
        ready, keep = [], []
        for target, args in self.tasks:
            name = getattr(getattr(target, "__self__", None), "name", "")
            wanted = (match is None or match in name) and not (skip and skip in name)
            (ready if wanted else keep).append((target, args))
        self.tasks = keep
        for target, args in ready:
            target(*args)

    def events(self, name, to=None):
        return [data for event, data, target in self.sent if event == name and (to is None or target == to)]

    def targets(self, name):
        return [target for event, _, target in self.sent if event == name]

    def clear(self):
        self.sent.clear()


@pytest.fixture()
def transport():
    return FakeTransport()


@pytest.fixture()
def rules():
    return GameRules()


@pytest.fixture()
def hub(transport, rules):
    game_hub = GameHub.build(transport, rules, rng=random.Random(1234))
    yield game_hub
    game_hub.shutdown()


@pytest.fixture()
def make_room(hub):
    """Create a room hosted by ``host`` and join the given player names.

    Player ids are the lower-cased names; socket ids are ``sid-<id>``.
    """

    def _make(*names):
        room = hub.create_room("host", "Host")
        room.host_sid = "sid-host"
        for name in names:
            uid = name.lower()
            hub.roster.join(room, uid, name, f"sid-{uid}")
        return room

    return _make


@pytest.fixture()
def started_room(hub, make_room, transport):
    def _start(*names, **settings):
        room = make_room(*names)
        hub.rounds.start_game(room, "host", settings or None)
        return room

    return _start


class TestConfig(Config):
    TESTING = True
    SECRET_KEY = "test-secret"
    TRUST_PROXY_HEADERS = False
    SOCKETIO_ASYNC_MODE = "threading"
    RESULTS_DURATION_SEC = 1
    DISCONNECT_GRACE_SEC = 60


@pytest.fixture()
def app_and_socketio():
    app, socketio = create_app(TestConfig)
    yield app, socketio
    app.extensions["impostor"].shutdown()


@pytest.fixture()
def flask_app(app_and_socketio):
    return app_and_socketio[0]


@pytest.fixture()
def client(flask_app):
    return flask_app.test_client()
