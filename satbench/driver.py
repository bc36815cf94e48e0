from __future__ import annotations

import abc
import threading


class CompletionCounter:
    """Completed-operation counter shared between a driver and its completion callbacks."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value = 0

    def add(self, count: int = 1) -> None:
        with self._lock:
            self._value += count

    def consume_and_reset(self) -> int:
        with self._lock:
            value, self._value = self._value, 0
        return value


class Driver(abc.ABC):
    """Load-producing collaborator driven by the saturation engine.

    Concrete drivers own a :class:`CompletionCounter` and add to it when an
    operation is actually completed by the system under test. The engine treats
    that counter as ground truth for achieved throughput.
    """

    @abc.abstractmethod
    def setup(self) -> None:
        """Acquire connections/sessions. Called once before any load."""

    @abc.abstractmethod
    def send(self, batch_size: int) -> None:
        """Dispatch one batch of ``batch_size`` logical operations."""

    @abc.abstractmethod
    def consume_and_reset_completed_count(self) -> int:
        """Return the operations completed since the last call and reset to zero."""

    @abc.abstractmethod
    def close(self) -> None:
        """Release driver resources."""

    def wait_pending_jobs(self) -> None:
        # Synchronous drivers complete work inside send().
        return None

    def start_stage(self, target_rate: int) -> None:
        return None

    def log_results(self) -> None:
        return None


__all__ = ["CompletionCounter", "Driver"]
