from __future__ import annotations

import dataclasses
from dataclasses import dataclass
from typing import Any


class ConfigurationError(ValueError):
    """Raised when a benchmark configuration violates its invariants."""


@dataclass(frozen=True)
class BenchmarkConfig:
    """Parameters of one saturation search.

    Rates are in operations per second, durations in milliseconds. A stage is
    saturated when its achieved rate falls below ``tolerance`` percent of the
    target rate.
    """

    initial_target_rate: int
    rate_increment: int
    warm_up_rate: int
    stage_duration_ms: int
    warm_up_duration_ms: int
    batch_size: int
    tolerance: int

    def __post_init__(self) -> None:
        for field in dataclasses.fields(self):
            value = getattr(self, field.name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ConfigurationError(
                    f"{field.name} must be an integer, got {value!r}"
                )

        _require_positive("initial_target_rate", self.initial_target_rate)
        _require_positive("rate_increment", self.rate_increment)
        _require_non_negative("warm_up_rate", self.warm_up_rate)
        _require_positive("stage_duration_ms", self.stage_duration_ms)
        _require_non_negative("warm_up_duration_ms", self.warm_up_duration_ms)
        _require_positive("batch_size", self.batch_size)
        if not 1 <= self.tolerance <= 99:
            raise ConfigurationError(
                f"tolerance must be between 1 and 99 percent, got {self.tolerance}"
            )

    def saturation_threshold(self, target_rate: int) -> int:
        """Lowest achieved rate that still counts as keeping up with ``target_rate``."""
        return target_rate * (100 - self.tolerance) // 100

    def to_dict(self) -> dict[str, Any]:
        return dataclasses.asdict(self)


def _require_positive(name: str, value: int) -> None:
    if value <= 0:
        raise ConfigurationError(f"{name} must be > 0, got {value}")


def _require_non_negative(name: str, value: int) -> None:
    if value < 0:
        raise ConfigurationError(f"{name} must be >= 0, got {value}")


__all__ = ["BenchmarkConfig", "ConfigurationError"]
