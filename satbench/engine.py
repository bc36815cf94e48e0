from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import Callable

from .config import BenchmarkConfig
from .driver import Driver
from .pacer import BenchmarkCancelled, Clock, RatePacer, Sleeper

LOGGER = logging.getLogger("satbench.engine")

# Target used for the worked tolerance example in the startup log.
_EXAMPLE_TARGET_RATE = 10_000


@dataclass(frozen=True)
class StageResult:
    index: int
    target_rate: int
    completed_ops: int
    achieved_rate: int
    threshold: int
    saturated: bool
    elapsed_ms: int


@dataclass
class RunState:
    current_target_rate: int
    last_successful_rate: int = 0
    stages_run: int = 0


StageObserver = Callable[[StageResult], None]


def achieved_rate(completed_ops: int, stage_duration_ms: int) -> int:
    """Throughput in ops/sec over a stage, truncated to an integer."""
    return completed_ops * 1000 // stage_duration_ms


def is_saturated(achieved: int, target_rate: int, tolerance: int) -> bool:
    """A stage is saturated when it falls strictly below the truncated threshold."""
    return achieved < target_rate * (100 - tolerance) // 100


class SaturationEngine:
    """Ramp the target rate stage by stage until the driver stops keeping up.

    The run has two phases. An optional warm-up paces load at
    ``warm_up_rate`` and then discards whatever the driver counted. The
    staged search then runs fixed-length stages, raising the target by
    ``rate_increment`` after every stage that stays within tolerance. The
    achieved rate of the last such stage is the result.
    """

    def __init__(
        self,
        config: BenchmarkConfig,
        driver: Driver,
        *,
        cancel_event: threading.Event | None = None,
        clock: Clock | None = None,
        sleep: Sleeper | None = None,
        on_stage: StageObserver | None = None,
    ) -> None:
        self._config = config
        self._driver = driver
        self._on_stage = on_stage
        self._pacer = RatePacer(
            driver,
            config.batch_size,
            cancel_event=cancel_event,
            clock=clock,
            sleep=sleep,
        )
        self._cancel_event = self._pacer.cancel_event

        LOGGER.info(
            "Configuring benchmark: initial target %d ops/sec, increment %d ops/sec, "
            "warm-up %d ops/sec for %d ms, stage duration %d ms, batch size %d, tolerance %d%%",
            config.initial_target_rate,
            config.rate_increment,
            config.warm_up_rate,
            config.warm_up_duration_ms,
            config.stage_duration_ms,
            config.batch_size,
            config.tolerance,
        )
        LOGGER.info(
            "With a target of %d ops/sec the system is saturated below %d ops/sec",
            _EXAMPLE_TARGET_RATE,
            config.saturation_threshold(_EXAMPLE_TARGET_RATE),
        )

    @property
    def config(self) -> BenchmarkConfig:
        return self._config

    def cancel(self) -> None:
        self._cancel_event.set()

    def run(self) -> int:
        """Run warm-up and the staged search; return the last sustained throughput."""
        state = RunState(current_target_rate=self._config.initial_target_rate)
        self._driver.setup()
        try:
            try:
                self._warm_up()
                result = self._ramp(state)
            except BenchmarkCancelled as exc:
                LOGGER.warning(
                    "Benchmark cancelled after %d stage(s); last successful throughput %d ops/sec",
                    state.stages_run,
                    state.last_successful_rate,
                )
                raise BenchmarkCancelled(state.last_successful_rate) from exc
            self._driver.log_results()
        finally:
            self._driver.close()

        LOGGER.info("SATURATED - last successful throughput: %d ops/sec", result)
        return result

    def _warm_up(self) -> None:
        duration_ms = self._config.warm_up_duration_ms
        if duration_ms == 0:
            return

        LOGGER.info("Warm-up at %d ops/sec for %d ms", self._config.warm_up_rate, duration_ms)
        self._run_window(self._config.warm_up_rate, duration_ms)
        self._wait_pending()
        discarded = self._driver.consume_and_reset_completed_count()
        LOGGER.debug("Discarded %d warm-up operations", discarded)

    def _ramp(self, state: RunState) -> int:
        while True:
            stage = self._run_stage(state)
            if self._on_stage is not None:
                self._on_stage(stage)

            if stage.saturated:
                LOGGER.info(
                    "Stage %d saturated: target %d ops/sec, achieved %d ops/sec (threshold %d)",
                    stage.index,
                    stage.target_rate,
                    stage.achieved_rate,
                    stage.threshold,
                )
                return state.last_successful_rate

            state.last_successful_rate = stage.achieved_rate
            state.current_target_rate += self._config.rate_increment
            LOGGER.info("Current throughput: %d ops/sec", stage.achieved_rate)

    def _run_stage(self, state: RunState) -> StageResult:
        target_rate = state.current_target_rate
        LOGGER.info("Current target rate: %d ops/sec", target_rate)

        self._driver.start_stage(target_rate)
        elapsed_ms = self._run_window(target_rate, self._config.stage_duration_ms)
        self._wait_pending()

        completed = self._driver.consume_and_reset_completed_count()
        achieved = achieved_rate(completed, self._config.stage_duration_ms)
        state.stages_run += 1
        return StageResult(
            index=state.stages_run,
            target_rate=target_rate,
            completed_ops=completed,
            achieved_rate=achieved,
            threshold=self._config.saturation_threshold(target_rate),
            saturated=is_saturated(achieved, target_rate, self._config.tolerance),
            elapsed_ms=elapsed_ms,
        )

    def _run_window(self, rate: int, duration_ms: int) -> int:
        started_ms = self._pacer.now_ms()
        elapsed_ms = 0
        while elapsed_ms < duration_ms:
            self._pacer.pace(rate)
            elapsed_ms = self._pacer.now_ms() - started_ms
        return elapsed_ms

    def _wait_pending(self) -> None:
        self._driver.wait_pending_jobs()
        self._pacer.check_cancelled()


__all__ = [
    "BenchmarkCancelled",
    "RunState",
    "SaturationEngine",
    "StageResult",
    "achieved_rate",
    "is_saturated",
]
