from __future__ import annotations

# Publisher loop.
#
# Every `interval` seconds: take one snapshot of the current dataset, then
# serialize and submit each entry in dataset order with QoS 1.
#
# By default any failure ends the loop (and therefore the process). With
# `isolate_failures=True` a failing entry is logged and skipped instead.

import logging
import threading
import time
from typing import Protocol

from .dataset import DatasetCell
from .errors import ChannelClosed
from .runner import next_deadline
from .serializer import to_bytes

logger = logging.getLogger(__name__)

QOS_AT_LEAST_ONCE = 1


class Outbound(Protocol):
    def submit(self, topic: str, payload: bytes, qos: int = QOS_AT_LEAST_ONCE) -> None: ...


class Publisher:
    def __init__(
        self,
        cell: DatasetCell,
        outbound: Outbound,
        *,
        interval: float,
        isolate_failures: bool = False,
    ) -> None:
        if interval <= 0:
            raise ValueError("interval must be > 0")
        self.cell = cell
        self.outbound = outbound
        self.interval = interval
        self.isolate_failures = isolate_failures

        self.ticks = 0

    def publish_once(self) -> int:
        """Publish the current snapshot. Returns the number of messages submitted."""
        snapshot = self.cell.get()
        sent = 0
        for entry in snapshot:
            try:
                payload = to_bytes(entry.value)
                self.outbound.submit(entry.topic, payload, qos=QOS_AT_LEAST_ONCE)
            except ChannelClosed:
                raise
            except Exception:
                if not self.isolate_failures:
                    raise
                logger.exception("Skipping %s this tick", entry.topic)
                continue
            sent += 1
        self.ticks += 1
        return sent

    def run(self, stop_event: threading.Event) -> None:
        next_tick = time.monotonic()
        while not stop_event.is_set():
            self.publish_once()
            next_tick = next_deadline(next_tick, self.interval)
            stop_event.wait(max(0.0, next_tick - time.monotonic()))
