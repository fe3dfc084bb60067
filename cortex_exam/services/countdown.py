"""Cooperative countdown that drives a session toward forced submission."""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import Callable, Iterable, Protocol

logger = logging.getLogger(__name__)

# Warnings at two minutes, one minute and thirty seconds remaining.
WARNING_THRESHOLDS: tuple[int, ...] = (120, 60, 30)
WARNING_LEVEL_SECONDS = 300
CRITICAL_LEVEL_SECONDS = 120


class CountdownState(str, Enum):
    RUNNING = "running"
    SUSPENDED = "suspended"
    EXPIRED = "expired"


class Clock(Protocol):
    def monotonic(self) -> float: ...


class SystemClock:
    def monotonic(self) -> float:
        return time.monotonic()


class Ticker(Protocol):
    def start(self) -> None: ...

    def stop(self) -> None: ...


class ThreadTicker:
    """Call ``callback`` every ``interval`` seconds on a daemon thread until stopped.

    ``stop()`` only signals the thread; it never joins, so it is safe to call
    from inside the callback or while holding a lock the callback needs.
    """

    def __init__(
        self, callback: Callable[[], None], *, interval: float = 1.0, name: str = "exam-ticker"
    ) -> None:
        self._callback = callback
        self.interval = interval
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._run, name=name, daemon=True)

    def start(self) -> None:
        self._thread.start()

    def stop(self) -> None:
        self._stopped.set()

    @property
    def alive(self) -> bool:
        return self._thread.is_alive() and not self._stopped.is_set()

    def _run(self) -> None:
        while not self._stopped.wait(self.interval):
            try:
                self._callback()
            except Exception:
                logger.exception("Exam ticker callback failed")


def log_warning_signal(seconds_left: int) -> None:
    logger.warning("Exam time warning: %s remaining", format_time(seconds_left))


class CountdownController:
    """One tick per elapsed second while running; expiry is terminal.

    ``is_live`` is consulted before every tick so that nothing fires once the
    owning session has ended. ``on_expire`` runs synchronously inside the tick
    that reaches zero.
    """

    def __init__(
        self,
        time_left: int,
        *,
        on_expire: Callable[[], None],
        on_warning: Callable[[int], None] | None = None,
        is_live: Callable[[], bool] | None = None,
        clock: Clock | None = None,
        thresholds: Iterable[int] = WARNING_THRESHOLDS,
        suspended: bool = False,
    ) -> None:
        self.time_left = max(int(time_left), 0)
        self._on_expire = on_expire
        self._on_warning = on_warning or log_warning_signal
        self._is_live = is_live or (lambda: True)
        self._clock = clock or SystemClock()
        # Thresholds at or above the starting time count as already crossed.
        self._pending = {value for value in thresholds if 0 < value < self.time_left}
        self._anchor = self._clock.monotonic()
        if self.time_left == 0:
            self.state = CountdownState.EXPIRED
        elif suspended:
            self.state = CountdownState.SUSPENDED
        else:
            self.state = CountdownState.RUNNING

    @property
    def running(self) -> bool:
        return self.state is CountdownState.RUNNING

    @property
    def expired(self) -> bool:
        return self.state is CountdownState.EXPIRED

    def tick(self) -> bool:
        if self.state is not CountdownState.RUNNING or not self._is_live():
            return False

        self.time_left -= 1
        if self.time_left in self._pending:
            self._pending.discard(self.time_left)
            self._signal(self.time_left)

        if self.time_left <= 0:
            self.time_left = 0
            self.state = CountdownState.EXPIRED
            logger.info("Countdown expired")
            self._on_expire()
        return True

    def sync(self) -> int:
        """Apply one tick for every whole second elapsed since the last sync."""

        now = self._clock.monotonic()
        if self.state is not CountdownState.RUNNING:
            self._anchor = now
            return 0

        due = int(now - self._anchor)
        if due <= 0:
            return 0
        self._anchor += due
        applied = 0
        for _ in range(due):
            if not self.tick():
                break
            applied += 1
        return applied

    def suspend(self) -> bool:
        if self.state is not CountdownState.RUNNING:
            return False
        self.sync()
        if self.state is not CountdownState.RUNNING:
            return False
        self.state = CountdownState.SUSPENDED
        return True

    def resume(self) -> bool:
        if self.state is not CountdownState.SUSPENDED:
            return False
        self._anchor = self._clock.monotonic()
        self.state = CountdownState.RUNNING
        return True

    def _signal(self, seconds_left: int) -> None:
        try:
            self._on_warning(seconds_left)
        except Exception:
            logger.exception("Warning signal failed at %s seconds", seconds_left)


def format_time(seconds: int) -> str:
    seconds = max(int(seconds), 0)
    minutes, remaining = divmod(seconds, 60)
    return f"{minutes:02d}:{remaining:02d}"


def urgency(seconds: int) -> str:
    if seconds <= CRITICAL_LEVEL_SECONDS:
        return "critical"
    if seconds <= WARNING_LEVEL_SECONDS:
        return "warning"
    return "normal"


__all__ = [
    "Clock",
    "CountdownController",
    "CountdownState",
    "SystemClock",
    "ThreadTicker",
    "Ticker",
    "WARNING_THRESHOLDS",
    "format_time",
    "log_warning_signal",
    "urgency",
]
