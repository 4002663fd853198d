from threading import RLock

from impostor.game.models import Room
from impostor.game.timers import Ticker, Timer, TimerBroadcaster


def test_timer_fires_once(transport):
    calls = []
    timer = Timer(transport, RLock(), 5, calls.append, "x", name="t").start()
    assert timer.active

    transport.run_pending()

    assert calls == ["x"]
    assert timer.fired
    assert not timer.active
    timer.cancel()
    timer.cancel()


def test_cancelled_timer_never_fires(transport):
    calls = []
    timer = Timer(transport, RLock(), 5, calls.append, "x").start()
    timer.cancel()
    timer.cancel()

    transport.run_pending()

    assert calls == []
    assert not timer.fired


def test_start_is_idempotent(transport):
    timer = Timer(transport, RLock(), 1, lambda: None)
    timer.start()
    timer.start()
    assert len(transport.tasks) == 1


def test_ticker_counts_down_to_zero(transport):
    ticks = []
    Ticker(transport, RLock(), 3, ticks.append).start()

    transport.run_pending()

    assert ticks == [2, 1, 0]


def test_broadcaster_replaces_previous_ticker(transport):
    room = Room(id="r", pin="222222", host_id="host")
    broadcaster = TimerBroadcaster(transport, RLock())

    first = broadcaster.start(room, 10)
    second = broadcaster.start(room, 2)
    transport.run_pending()

    assert not first.active
    assert room.ticker is second
    assert transport.events("timer:update", to="222222") == [{"secondsLeft": 1}, {"secondsLeft": 0}]


def test_broadcaster_stop_is_idempotent(transport):
    room = Room(id="r", pin="222222", host_id="host")
    broadcaster = TimerBroadcaster(transport, RLock())
    broadcaster.start(room, 3)

    broadcaster.stop(room)
    broadcaster.stop(room)
    transport.run_pending()

    assert room.ticker is None
    assert transport.events("timer:update") == []
