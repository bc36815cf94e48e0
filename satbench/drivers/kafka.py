from __future__ import annotations

import collections
import itertools
import json
import logging
import threading
import time

from kafka import KafkaProducer
from kafka.errors import NoBrokersAvailable

from ..driver import CompletionCounter, Driver

LOGGER = logging.getLogger("satbench.drivers.kafka")

CONNECT_TIMEOUT_S_DEFAULT = 60.0
PAYLOAD_SIZE_DEFAULT = 256


class DriverError(RuntimeError):
    """Raised when a driver cannot reach the system under test."""


def create_producer(broker: str, connect_timeout_s: float = CONNECT_TIMEOUT_S_DEFAULT) -> KafkaProducer:
    backoff = 1.0
    max_backoff = 10.0
    deadline = time.time() + connect_timeout_s

    while True:
        try:
            return KafkaProducer(
                bootstrap_servers=broker,
                key_serializer=lambda v: v.encode("utf-8") if v else None,
                value_serializer=lambda v: json.dumps(v).encode("utf-8"),
            )
        except NoBrokersAvailable as exc:
            if time.time() >= deadline:
                raise DriverError(
                    f"failed to connect to Kafka broker within {connect_timeout_s:g} seconds"
                ) from exc

            LOGGER.warning("Kafka broker %s not available, retrying in %.1fs", broker, backoff)
            time.sleep(backoff)
            backoff = min(backoff * 1.5, max_backoff)


class KafkaDriver(Driver):
    """Produce JSON messages to a Kafka topic; a delivery acknowledgement is a completion."""

    def __init__(
        self,
        broker: str,
        topic: str,
        payload_size: int = PAYLOAD_SIZE_DEFAULT,
        connect_timeout_s: float = CONNECT_TIMEOUT_S_DEFAULT,
    ) -> None:
        self._broker = broker
        self._topic = topic
        self._padding = "x" * max(payload_size, 0)
        self._connect_timeout_s = connect_timeout_s

        self._producer: KafkaProducer | None = None
        self._completed = CompletionCounter()
        self._message_ids = itertools.count(start=1)
        self._stage_rate = 0

        self._tally_lock = threading.Lock()
        self.sent: collections.Counter[int] = collections.Counter()
        self.acked: collections.Counter[int] = collections.Counter()
        self.failed: collections.Counter[int] = collections.Counter()

    def setup(self) -> None:
        LOGGER.info("Connecting to Kafka broker %s (topic %s)", self._broker, self._topic)
        self._producer = create_producer(self._broker, self._connect_timeout_s)

    def send(self, batch_size: int) -> None:
        producer = self._require_producer()
        stage_rate = self._stage_rate
        for _ in range(batch_size):
            message_id = f"satbench-{next(self._message_ids)}"
            payload = {
                "id": message_id,
                "target_rate": stage_rate,
                "sent_ts": time.time(),
                "payload": self._padding,
            }
            future = producer.send(self._topic, key=message_id, value=payload)
            with self._tally_lock:
                self.sent[stage_rate] += 1
            future.add_callback(self._on_delivered, stage_rate)
            future.add_errback(self._on_failed, stage_rate, message_id)

    def consume_and_reset_completed_count(self) -> int:
        return self._completed.consume_and_reset()

    def wait_pending_jobs(self) -> None:
        self._require_producer().flush()

    def start_stage(self, target_rate: int) -> None:
        self._stage_rate = target_rate

    def log_results(self) -> None:
        with self._tally_lock:
            rates = sorted(set(self.sent) | set(self.failed))
            rows = [(rate, self.sent[rate], self.acked[rate], self.failed[rate]) for rate in rates]
        for rate, sent, acked, failed in rows:
            label = "warm-up" if rate == 0 else f"target {rate} ops/sec"
            LOGGER.info("Kafka %s: sent=%d acked=%d failed=%d", label, sent, acked, failed)

    def close(self) -> None:
        if self._producer is None:
            return
        try:
            self._producer.flush()
        finally:
            self._producer.close()
            self._producer = None

    def _on_delivered(self, stage_rate: int, _metadata) -> None:
        self._completed.add(1)
        with self._tally_lock:
            self.acked[stage_rate] += 1

    def _on_failed(self, stage_rate: int, message_id: str, exc: BaseException) -> None:
        with self._tally_lock:
            self.failed[stage_rate] += 1
        LOGGER.debug("Delivery of %s failed: %r", message_id, exc)

    def _require_producer(self) -> KafkaProducer:
        if self._producer is None:
            raise DriverError("KafkaDriver.setup() must be called before sending")
        return self._producer


__all__ = ["DriverError", "KafkaDriver", "create_producer"]
