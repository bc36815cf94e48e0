from __future__ import annotations

import argparse
import contextlib
import json
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Any, Iterator

from .charts import render_ramp_chart
from .collector import StageCollector
from .config import BenchmarkConfig, ConfigurationError
from .drivers import DRIVER_NAMES, build_driver
from .engine import BenchmarkCancelled, SaturationEngine

LOGGER = logging.getLogger("satbench")

EXIT_CONFIG_ERROR = 2
EXIT_CANCELLED = 130
DRY_RUN_STAGES = 5


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    env = os.environ
    parser = argparse.ArgumentParser(description="Closed-loop saturation throughput benchmark")
    parser.add_argument(
        "--initial-rate",
        type=int,
        default=env.get("SATBENCH_INITIAL_RATE", "1000"),
        help="Target throughput of the first stage (ops/sec)",
    )
    parser.add_argument(
        "--increment",
        type=int,
        default=env.get("SATBENCH_RATE_INCREMENT", "500"),
        help="Target throughput added after each sustained stage (ops/sec)",
    )
    parser.add_argument(
        "--warm-up-rate",
        type=int,
        default=env.get("SATBENCH_WARM_UP_RATE", "500"),
        help="Target throughput during warm-up (ops/sec)",
    )
    parser.add_argument(
        "--stage-duration-ms",
        type=int,
        default=env.get("SATBENCH_STAGE_DURATION_MS", "10000"),
        help="Duration of each stage in milliseconds",
    )
    parser.add_argument(
        "--warm-up-duration-ms",
        type=int,
        default=env.get("SATBENCH_WARM_UP_DURATION_MS", "5000"),
        help="Duration of warm-up in milliseconds (0 skips warm-up)",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        default=env.get("SATBENCH_BATCH_SIZE", "10"),
        help="Operations per driver send call",
    )
    parser.add_argument(
        "--tolerance",
        type=int,
        default=env.get("SATBENCH_TOLERANCE", "10"),
        help="Percentage of target throughput allowed to be missed before saturation (1-99)",
    )
    parser.add_argument(
        "--driver",
        choices=DRIVER_NAMES,
        default=env.get("SATBENCH_DRIVER", "simulated"),
    )
    parser.add_argument(
        "--capacity",
        type=int,
        default=env.get("SATBENCH_SIMULATED_CAPACITY", "5000"),
        help="Capacity of the simulated system (ops/sec)",
    )
    parser.add_argument("--broker", default=env.get("KAFKA_BROKER", "kafka:9092"))
    parser.add_argument("--topic", default=env.get("KAFKA_TOPIC", "satbench"))
    parser.add_argument(
        "--payload-size",
        type=int,
        default=env.get("SATBENCH_PAYLOAD_SIZE", "256"),
        help="Padding bytes per Kafka message",
    )
    parser.add_argument(
        "--output-dir",
        default=env.get("SATBENCH_OUTPUT_DIR", "satbench-results"),
        help="Directory to store the stage CSV, chart and manifest",
    )
    parser.add_argument(
        "--no-report",
        action="store_true",
        help="Do not write report artefacts",
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Validate the configuration and print the first stages without sending load",
    )
    parser.add_argument(
        "--log-level",
        default=env.get("SATBENCH_LOG_LEVEL", "INFO"),
        help="Logging level",
    )
    return parser.parse_args(argv)


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )


def config_from_args(args: argparse.Namespace) -> BenchmarkConfig:
    return BenchmarkConfig(
        initial_target_rate=args.initial_rate,
        rate_increment=args.increment,
        warm_up_rate=args.warm_up_rate,
        stage_duration_ms=args.stage_duration_ms,
        warm_up_duration_ms=args.warm_up_duration_ms,
        batch_size=args.batch_size,
        tolerance=args.tolerance,
    )


def write_report(
    output_dir: Path,
    config: BenchmarkConfig,
    collector: StageCollector,
    result: int | None,
    driver_name: str,
) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)

    df = collector.build_dataframe()
    csv_path = output_dir / "stages.csv"
    df.to_csv(csv_path, index=False)
    LOGGER.info("Saved stage results to %s (%d rows)", csv_path, len(df))

    chart_path = render_ramp_chart(df, output_dir / "ramp.png")

    manifest: dict[str, Any] = {
        "driver": driver_name,
        "config": config.to_dict(),
        "saturated": result is not None,
        "last_successful_rate": result,
        "summary": collector.summary(),
        "stages_csv": str(csv_path),
        "chart": str(chart_path) if chart_path is not None else None,
    }
    manifest_path = output_dir / "benchmark_manifest.json"
    with open(manifest_path, "w", encoding="utf-8") as f:
        json.dump(manifest, f, indent=2)
    LOGGER.info("Benchmark manifest written to %s", manifest_path)
    return manifest_path


@contextlib.contextmanager
def cancel_on_signals(engine: SaturationEngine) -> Iterator[None]:
    def _handle_signal(signum: int, _frame) -> None:
        LOGGER.warning("Received signal %d, cancelling benchmark", signum)
        engine.cancel()

    previous = {}
    for signum in (signal.SIGINT, signal.SIGTERM):
        previous[signum] = signal.signal(signum, _handle_signal)
    try:
        yield
    finally:
        for signum, handler in previous.items():
            signal.signal(signum, handler)


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv)
    setup_logging(args.log_level)

    try:
        config = config_from_args(args)
    except ConfigurationError as exc:
        LOGGER.error("Invalid benchmark configuration: %s", exc)
        return EXIT_CONFIG_ERROR

    if args.dry_run:
        _print_plan(config)
        return 0

    driver = build_driver(
        args.driver,
        capacity=args.capacity,
        broker=args.broker,
        topic=args.topic,
        payload_size=args.payload_size,
    )
    collector = StageCollector()
    engine = SaturationEngine(config, driver, on_stage=collector)

    result: int | None = None
    exit_code = 0
    try:
        with cancel_on_signals(engine):
            result = engine.run()
    except BenchmarkCancelled as exc:
        LOGGER.warning(
            "Benchmark cancelled before saturation (last successful throughput %s ops/sec)",
            exc.last_successful_rate,
        )
        exit_code = EXIT_CANCELLED

    if not args.no_report:
        write_report(Path(args.output_dir), config, collector, result, args.driver)

    if result is not None:
        print(f"Saturation throughput: {result} ops/sec")
    return exit_code


def _print_plan(config: BenchmarkConfig) -> None:
    if config.warm_up_duration_ms:
        print(f"Warm-up: {config.warm_up_rate} ops/sec for {config.warm_up_duration_ms} ms")
    else:
        print("Warm-up: skipped")
    for stage in range(DRY_RUN_STAGES):
        target = config.initial_target_rate + stage * config.rate_increment
        print(
            f"  - stage {stage + 1}: target={target} ops/sec, "
            f"saturated below {config.saturation_threshold(target)} ops/sec, "
            f"duration={config.stage_duration_ms} ms batch={config.batch_size}"
        )
    print("  ... until saturation")


if __name__ == "__main__":
    sys.exit(main())
