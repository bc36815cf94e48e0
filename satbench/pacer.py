from __future__ import annotations

import threading
import time
from typing import Callable

from .driver import Driver

TICK_SECONDS = 0.001

Clock = Callable[[], int]
Sleeper = Callable[[float], bool]


class BenchmarkCancelled(Exception):
    """Raised when an operator cancels a run before saturation is found."""

    def __init__(self, last_successful_rate: int | None = None) -> None:
        super().__init__("benchmark cancelled")
        self.last_successful_rate = last_successful_rate


def monotonic_ms() -> int:
    return time.monotonic_ns() // 1_000_000


class RatePacer:
    """Spread one second worth of load evenly over time.

    Each call to :meth:`pace` sends ``rate`` operations in batches of
    ``batch_size`` and never issues a batch ahead of its slot in a uniform
    schedule that started when the call began. Precision is bounded by the
    millisecond sleep tick.
    """

    def __init__(
        self,
        driver: Driver,
        batch_size: int,
        *,
        cancel_event: threading.Event | None = None,
        clock: Clock | None = None,
        sleep: Sleeper | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        self._driver = driver
        self._batch_size = batch_size
        self._cancel_event = cancel_event or threading.Event()
        self._clock = clock or monotonic_ms
        # Event.wait returns True once the event is set, so sleeps end early on cancel.
        self._sleep = sleep or self._cancel_event.wait

    @property
    def cancel_event(self) -> threading.Event:
        return self._cancel_event

    def now_ms(self) -> int:
        return self._clock()

    def pace(self, rate: int) -> int:
        """Send one window of load at ``rate`` ops/sec and return the ops issued."""
        self.check_cancelled()
        if rate <= 0:
            self.tick()
            return 0

        ops_issued = 0
        started_ms = self._clock()
        while ops_issued < rate:
            self._driver.send(self._batch_size)
            ops_issued += self._batch_size
            scheduled_ms = ops_issued * 1000 / rate
            while self._clock() - started_ms < scheduled_ms:
                self.tick()
        return ops_issued

    def tick(self) -> None:
        if self._sleep(TICK_SECONDS) or self._cancel_event.is_set():
            raise BenchmarkCancelled()

    def check_cancelled(self) -> None:
        if self._cancel_event.is_set():
            raise BenchmarkCancelled()


__all__ = ["BenchmarkCancelled", "RatePacer", "monotonic_ms", "TICK_SECONDS"]
