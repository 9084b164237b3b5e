from __future__ import annotations

# Runtime settings and logging setup.
#
# Settings come from the command line only (see app.py). The log level can
# also be set through the MQTT_SIMULATOR_LOG environment variable.

import logging
import os
from dataclasses import dataclass

LOG_ENV_VAR = "MQTT_SIMULATOR_LOG"
LOG_FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


@dataclass(frozen=True)
class Settings:
    config_path: str
    host: str = "localhost"
    port: int = 1883
    client_id: str = "mqtt-simulator"
    send_interval_ms: int = 1000
    isolate_failures: bool = False
    retry_malformed: bool = True

    @property
    def send_interval(self) -> float:
        """Publish period in seconds."""
        return self.send_interval_ms / 1000.0


def default_log_level() -> str:
    """Level from the environment; unknown names fall back to INFO."""
    level = os.getenv(LOG_ENV_VAR, "INFO").upper()
    return level if level in LOG_LEVELS else "INFO"


def setup_logging(level: str | None = None) -> None:
    logging.basicConfig(level=(level or default_log_level()).upper(), format=LOG_FORMAT)
