"""Shared fixtures: a deterministic millisecond clock and a scriptable driver."""

from __future__ import annotations

import matplotlib

matplotlib.use("Agg")

import pytest

from satbench.config import BenchmarkConfig
from satbench.driver import CompletionCounter, Driver


class FakeClock:
    """Integer millisecond clock whose sleep advances time instead of blocking."""

    def __init__(self, start_ms: int = 0) -> None:
        self.now_ms = start_ms
        self.sleeps = 0

    def __call__(self) -> int:
        return self.now_ms

    def sleep(self, seconds: float) -> bool:
        self.now_ms += max(1, round(seconds * 1000))
        self.sleeps += 1
        return False


class RecordingDriver(Driver):
    """Synchronous driver completing a fixed share of each batch.

    ``completion_pct`` of every batch completes; ``stage_capacity`` caps the
    completions between two ``start_stage`` calls to model a finite system.
    """

    def __init__(
        self,
        clock: FakeClock,
        completion_pct: int = 100,
        stage_capacity: int | None = None,
    ) -> None:
        self.clock = clock
        self.completion_pct = completion_pct
        self.stage_capacity = stage_capacity
        self.counter = CompletionCounter()
        self.events: list[tuple] = []
        self.send_times: list[int] = []
        self.stage_completed = 0
        self.closed = False
        self.fail_on_send: int | None = None
        self.on_send = None

    def setup(self) -> None:
        self.events.append(("setup",))

    def send(self, batch_size: int) -> None:
        self.send_times.append(self.clock())
        self.events.append(("send", batch_size))
        if self.fail_on_send is not None and len(self.send_times) >= self.fail_on_send:
            raise RuntimeError("connection reset by peer")
        if self.on_send is not None:
            self.on_send(self)

        completed = batch_size * self.completion_pct // 100
        if self.stage_capacity is not None:
            completed = min(completed, self.stage_capacity - self.stage_completed)
        self.stage_completed += completed
        self.counter.add(completed)

    def consume_and_reset_completed_count(self) -> int:
        value = self.counter.consume_and_reset()
        self.events.append(("consume", value))
        return value

    def wait_pending_jobs(self) -> None:
        self.events.append(("wait",))

    def start_stage(self, target_rate: int) -> None:
        self.stage_completed = 0
        self.events.append(("start_stage", target_rate))

    def log_results(self) -> None:
        self.events.append(("log_results",))

    def close(self) -> None:
        self.closed = True
        self.events.append(("close",))

    def event_names(self) -> list[str]:
        return [event[0] for event in self.events if event[0] != "send"]


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock(start_ms=5_000)


@pytest.fixture
def driver(clock: FakeClock) -> RecordingDriver:
    return RecordingDriver(clock)


def make_config(**overrides) -> BenchmarkConfig:
    values = dict(
        initial_target_rate=100,
        rate_increment=50,
        warm_up_rate=0,
        stage_duration_ms=1000,
        warm_up_duration_ms=0,
        batch_size=10,
        tolerance=10,
    )
    values.update(overrides)
    return BenchmarkConfig(**values)


@pytest.fixture
def config_factory():
    return make_config


@pytest.fixture
def driver_factory(clock: FakeClock):
    def _factory(**kwargs) -> RecordingDriver:
        return RecordingDriver(clock, **kwargs)

    return _factory
