from __future__ import annotations

import threading
from dataclasses import asdict

import pandas as pd

from .engine import StageResult

STAGE_COLUMNS = [
    "stage",
    "target_rate",
    "completed_ops",
    "achieved_rate",
    "threshold",
    "saturated",
    "elapsed_ms",
]


class StageCollector:
    """Stage observer that keeps every stage result for the run report."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._stages: list[StageResult] = []

    def __call__(self, stage: StageResult) -> None:
        with self._lock:
            self._stages.append(stage)

    @property
    def stages(self) -> list[StageResult]:
        with self._lock:
            return list(self._stages)

    def build_dataframe(self) -> pd.DataFrame:
        rows = []
        for stage in self.stages:
            row = asdict(stage)
            row["stage"] = row.pop("index")
            rows.append(row)

        if not rows:
            return pd.DataFrame(columns=STAGE_COLUMNS)
        return pd.DataFrame(rows, columns=STAGE_COLUMNS)

    def summary(self) -> dict[str, int]:
        stages = self.stages
        sustained = [stage for stage in stages if not stage.saturated]
        return {
            "stages": len(stages),
            "sustained_stages": len(sustained),
            "peak_target_rate": max((s.target_rate for s in sustained), default=0),
            "peak_achieved_rate": max((s.achieved_rate for s in stages), default=0),
        }


__all__ = ["STAGE_COLUMNS", "StageCollector"]
