from __future__ import annotations

import logging
from typing import Any, Callable, ContextManager, Protocol

from ..realtime.events import ServerEvent
from .models import Room

log = logging.getLogger(__name__)


class Runtime(Protocol):
    def start_background_task(self, target: Callable[..., Any], *args: Any) -> Any: ...

    def sleep(self, seconds: float) -> None: ...


class Timer:
    """One-shot callback run on a background task after ``delay`` seconds.

    The callback runs while holding ``lock`` so it is serialized with
    socket handlers touching the same rooms. ``cancel()`` may be called any
    number of times, before or after the timer fired.
    """

    def __init__(
        self,
        runtime: Runtime,
        lock: ContextManager,
        delay: float,
        callback: Callable[..., Any],
        *args: Any,
        name: str = "timer",
    ) -> None:
        self._runtime = runtime
        self._lock = lock
        self.delay = max(0.0, float(delay))
        self._callback = callback
        self._args = args
        self.name = name
        self._started = False
        self._done = False
        self.fired = False

    def start(self) -> "Timer":
        if self._started:
            return self
        self._started = True
        self._runtime.start_background_task(self._run)
        return self

    def cancel(self) -> None:
        self._done = True

    @property
    def active(self) -> bool:
        return self._started and not self._done

    def _run(self) -> None:
        self._runtime.sleep(self.delay)
        with self._lock:
            if self._done:
                return
            self._done = True
            self.fired = True
            try:
                self._callback(*self._args)
            except Exception:
                log.exception("[timer-error] %s", self.name)


class Ticker:
    """Calls ``on_tick(seconds_left)`` once per second until it reaches zero."""

    def __init__(
        self,
        runtime: Runtime,
        lock: ContextManager,
        duration: int,
        on_tick: Callable[[int], Any],
        name: str = "ticker",
    ) -> None:
        self._runtime = runtime
        self._lock = lock
        self.duration = max(0, int(duration))
        self._on_tick = on_tick
        self.name = name
        self._started = False
        self._done = False

    def start(self) -> "Ticker":
        if not self._started:
            self._started = True
            self._runtime.start_background_task(self._run)
        return self

    def cancel(self) -> None:
        self._done = True

    @property
    def active(self) -> bool:
        return self._started and not self._done

    def _run(self) -> None:
        remaining = self.duration
        while remaining > 0:
            self._runtime.sleep(1)
            with self._lock:
                if self._done:
                    return
                remaining -= 1
                self._on_tick(remaining)
        self._done = True


class TimerBroadcaster:
    """Per-room countdown pushed to every socket in the room channel.

    Purely cosmetic: reaching zero does not move the game along. Phase
    changes are driven by the orchestrator's own phase timer.
    """

    def __init__(self, transport: Any, lock: ContextManager) -> None:
        self._transport = transport
        self._lock = lock

    def start(self, room: Room, seconds: int) -> Ticker:
        self.stop(room)
        pin = room.pin

        def _tick(seconds_left: int) -> None:
            self._transport.emit(ServerEvent.TIMER_UPDATE, {"secondsLeft": seconds_left}, to=pin)

        room.ticker = Ticker(self._transport, self._lock, seconds, _tick, name=f"{pin}:ticker").start()
        return room.ticker

    def stop(self, room: Room) -> None:
        if room.ticker is not None:
            room.ticker.cancel()
            room.ticker = None
