from __future__ import annotations

import logging

from ..driver import CompletionCounter, Driver
from ..pacer import Clock, monotonic_ms

LOGGER = logging.getLogger("satbench.drivers.simulated")

BURST_MS_DEFAULT = 100


class SimulatedDriver(Driver):
    """In-process system under test with a fixed capacity in ops/sec.

    Capacity is modelled as a token bucket refilled continuously from the
    clock and holding at most ``burst_ms`` worth of tokens. A batch completes
    as many operations as there are tokens; the rest are dropped.
    """

    def __init__(
        self,
        capacity: int,
        burst_ms: int = BURST_MS_DEFAULT,
        clock: Clock | None = None,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        if burst_ms <= 0:
            raise ValueError("burst_ms must be > 0")
        self._capacity = capacity
        self._bucket_size = max(capacity * burst_ms / 1000.0, 1.0)
        self._clock = clock or monotonic_ms
        self._completed = CompletionCounter()
        self._tokens = 0.0
        self._last_refill_ms: int | None = None
        self.sent = 0
        self.dropped = 0

    def setup(self) -> None:
        self._tokens = self._bucket_size
        self._last_refill_ms = self._clock()
        LOGGER.info("Simulated system with capacity %d ops/sec", self._capacity)

    def send(self, batch_size: int) -> None:
        if self._last_refill_ms is None:
            raise RuntimeError("SimulatedDriver.setup() must be called before sending")
        self._refill()
        completed = min(batch_size, int(self._tokens))
        self._tokens -= completed
        self.sent += batch_size
        self.dropped += batch_size - completed
        if completed:
            self._completed.add(completed)

    def consume_and_reset_completed_count(self) -> int:
        return self._completed.consume_and_reset()

    def log_results(self) -> None:
        LOGGER.info(
            "Simulated system: sent=%d dropped=%d (capacity %d ops/sec)",
            self.sent,
            self.dropped,
            self._capacity,
        )

    def close(self) -> None:
        self._last_refill_ms = None

    def _refill(self) -> None:
        now = self._clock()
        elapsed_ms = now - self._last_refill_ms
        self._last_refill_ms = now
        if elapsed_ms > 0:
            self._tokens = min(
                self._bucket_size,
                self._tokens + elapsed_ms * self._capacity / 1000.0,
            )


__all__ = ["SimulatedDriver"]
