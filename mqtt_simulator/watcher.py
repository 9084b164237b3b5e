from __future__ import annotations

# Dataset watcher.
#
# Polls the config file's modification time every `poll_interval` seconds and,
# when it moves forward, re-reads and re-parses the file and swaps the result
# into the shared DatasetCell.
#
# Failure policy:
# - stat() failure (file deleted, permissions) is fatal and propagates
# - read failure is transient: logged, retried on the next tick
# - parse failure keeps the current dataset. With `retry_malformed` (default)
#   the timestamp is not recorded, so a malformed file is re-parsed on every
#   tick until it becomes valid.

import logging
import threading
import time
from pathlib import Path

from .config import parse
from .dataset import DatasetCell
from .errors import ParseError
from .runner import next_deadline

logger = logging.getLogger(__name__)

POLL_INTERVAL = 0.1


class DatasetWatcher:
    def __init__(
        self,
        path: str | Path,
        cell: DatasetCell,
        *,
        poll_interval: float = POLL_INTERVAL,
        retry_malformed: bool = True,
    ) -> None:
        self.path = Path(path)
        self.cell = cell
        self.poll_interval = poll_interval
        self.retry_malformed = retry_malformed

        # st_mtime_ns of the last content we acted on; 0 means "never loaded".
        self.last_modified_ns = 0
        self.replacements = 0

    def poll_once(self) -> bool:
        """Run one Checking step. Returns True if the dataset was replaced."""
        modified_ns = self.path.stat().st_mtime_ns
        if modified_ns <= self.last_modified_ns:
            return False

        try:
            text = self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning("Failed to read %s, retrying: %s", self.path, e)
            return False

        try:
            entries = parse(text)
        except ParseError as e:
            logger.debug("Failed to read values: %s\n%s", e, text)
            if not self.retry_malformed:
                self.last_modified_ns = modified_ns
            return False

        logger.info("Replacing values with %d entries from %s", len(entries), self.path)
        for entry in entries:
            logger.debug("  %s: %r", entry.topic, entry.value)
        self.cell.replace(entries)
        self.last_modified_ns = modified_ns
        self.replacements += 1
        return True

    def run(self, stop_event: threading.Event) -> None:
        """Poll until `stop_event` is set; metadata errors propagate."""
        next_tick = time.monotonic()
        while not stop_event.is_set():
            self.poll_once()
            next_tick = next_deadline(next_tick, self.poll_interval)
            stop_event.wait(max(0.0, next_tick - time.monotonic()))

