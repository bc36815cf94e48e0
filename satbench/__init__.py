"""
Closed-loop saturation benchmark harness.

The engine ramps a pluggable driver through fixed-length stages of
increasing target throughput until the achieved throughput falls outside
tolerance, then reports the last sustained rate.
"""

from .config import BenchmarkConfig, ConfigurationError
from .driver import CompletionCounter, Driver
from .engine import BenchmarkCancelled, SaturationEngine, StageResult
from .pacer import RatePacer

__all__ = [
    "BenchmarkCancelled",
    "BenchmarkConfig",
    "CompletionCounter",
    "ConfigurationError",
    "Driver",
    "RatePacer",
    "SaturationEngine",
    "StageResult",
]
