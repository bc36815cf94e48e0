"""Concrete drivers the saturation engine can ramp against."""

from __future__ import annotations

from typing import Any

from ..driver import Driver
from .simulated import SimulatedDriver

DRIVER_NAMES: tuple[str, ...] = ("simulated", "kafka")


def build_driver(name: str, **options: Any) -> Driver:
    if name == "simulated":
        return SimulatedDriver(capacity=options["capacity"])
    if name == "kafka":
        from .kafka import PAYLOAD_SIZE_DEFAULT, KafkaDriver

        return KafkaDriver(
            broker=options["broker"],
            topic=options["topic"],
            payload_size=options.get("payload_size", PAYLOAD_SIZE_DEFAULT),
        )
    raise ValueError(f"Unknown driver: {name!r} (expected one of {', '.join(DRIVER_NAMES)})")


__all__ = ["DRIVER_NAMES", "SimulatedDriver", "build_driver"]
