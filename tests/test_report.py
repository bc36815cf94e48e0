"""Tests for stage collection, chart rendering and the CLI."""

from __future__ import annotations

import json

import pytest

from satbench import main as cli
from satbench.charts import render_ramp_chart
from satbench.collector import STAGE_COLUMNS, StageCollector
from satbench.engine import BenchmarkCancelled, StageResult


def _stage(index: int, target: int, achieved: int, saturated: bool = False) -> StageResult:
    return StageResult(
        index=index,
        target_rate=target,
        completed_ops=achieved,
        achieved_rate=achieved,
        threshold=target * 90 // 100,
        saturated=saturated,
        elapsed_ms=1000,
    )


@pytest.fixture
def collector() -> StageCollector:
    collector = StageCollector()
    collector(_stage(1, 100, 100))
    collector(_stage(2, 150, 148))
    collector(_stage(3, 200, 160, saturated=True))
    return collector


class TestStageCollector:
    def test_dataframe(self, collector):
        df = collector.build_dataframe()
        assert list(df.columns) == STAGE_COLUMNS
        assert df["stage"].tolist() == [1, 2, 3]
        assert df["saturated"].tolist() == [False, False, True]

    def test_empty_dataframe_has_columns(self):
        df = StageCollector().build_dataframe()
        assert df.empty
        assert list(df.columns) == STAGE_COLUMNS

    def test_summary(self, collector):
        assert collector.summary() == {
            "stages": 3,
            "sustained_stages": 2,
            "peak_target_rate": 150,
            "peak_achieved_rate": 160,
        }


class TestCharts:
    def test_render_ramp_chart(self, collector, tmp_path):
        path = render_ramp_chart(collector.build_dataframe(), tmp_path / "ramp.png")
        assert path == tmp_path / "ramp.png"
        assert path.stat().st_size > 0

    def test_empty_chart_is_skipped(self, tmp_path):
        assert render_ramp_chart(StageCollector().build_dataframe(), tmp_path / "ramp.png") is None
        assert not (tmp_path / "ramp.png").exists()


class _FakeEngine:
    outcome: object = 150

    def __init__(self, config, driver, *, on_stage=None, **_kwargs) -> None:
        self.config = config
        self.on_stage = on_stage
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True

    def run(self) -> int:
        self.on_stage(_stage(1, 100, 100))
        self.on_stage(_stage(2, 150, 150))
        self.on_stage(_stage(3, 200, 120, saturated=True))
        if isinstance(self.outcome, BaseException):
            raise self.outcome
        return self.outcome


class TestCli:
    def test_env_defaults(self, monkeypatch):
        monkeypatch.setenv("SATBENCH_INITIAL_RATE", "250")
        monkeypatch.setenv("SATBENCH_TOLERANCE", "5")
        monkeypatch.setenv("KAFKA_BROKER", "broker:9092")
        args = cli.parse_args([])
        assert args.initial_rate == 250
        assert args.tolerance == 5
        assert args.broker == "broker:9092"
        assert args.driver == "simulated"

    def test_flags_override_env(self, monkeypatch):
        monkeypatch.setenv("SATBENCH_BATCH_SIZE", "50")
        args = cli.parse_args(["--batch-size", "20", "--driver", "kafka"])
        config = cli.config_from_args(args)
        assert config.batch_size == 20
        assert args.driver == "kafka"

    def test_dry_run(self, capsys):
        assert cli.main(["--dry-run", "--initial-rate", "100", "--increment", "50"]) == 0
        out = capsys.readouterr().out
        assert "stage 1: target=100 ops/sec, saturated below 90 ops/sec" in out
        assert "stage 5: target=300 ops/sec" in out

    def test_invalid_config_exit_code(self):
        assert cli.main(["--tolerance", "100", "--dry-run"]) == cli.EXIT_CONFIG_ERROR

    def test_run_writes_report(self, monkeypatch, tmp_path, capsys):
        monkeypatch.setattr(cli, "SaturationEngine", _FakeEngine)
        monkeypatch.setattr(_FakeEngine, "outcome", 150)

        assert cli.main(["--output-dir", str(tmp_path)]) == 0

        assert "Saturation throughput: 150 ops/sec" in capsys.readouterr().out
        manifest = json.loads((tmp_path / "benchmark_manifest.json").read_text())
        assert manifest["last_successful_rate"] == 150
        assert manifest["saturated"] is True
        assert manifest["summary"]["stages"] == 3
        assert manifest["config"]["tolerance"] == 10
        assert (tmp_path / "stages.csv").read_text().startswith(",".join(STAGE_COLUMNS))
        assert (tmp_path / "ramp.png").exists()

    def test_cancelled_run(self, monkeypatch, tmp_path):
        monkeypatch.setattr(cli, "SaturationEngine", _FakeEngine)
        monkeypatch.setattr(_FakeEngine, "outcome", BenchmarkCancelled(150))

        assert cli.main(["--output-dir", str(tmp_path)]) == cli.EXIT_CANCELLED

        manifest = json.loads((tmp_path / "benchmark_manifest.json").read_text())
        assert manifest["saturated"] is False
        assert manifest["last_successful_rate"] is None

    def test_no_report(self, monkeypatch, tmp_path):
        monkeypatch.setattr(cli, "SaturationEngine", _FakeEngine)
        monkeypatch.setattr(_FakeEngine, "outcome", 150)
        output_dir = tmp_path / "out"

        assert cli.main(["--output-dir", str(output_dir), "--no-report"]) == 0
        assert not output_dir.exists()
