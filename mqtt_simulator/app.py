from __future__ import annotations

# Single-entrypoint runner.
#
#     python -m mqtt_simulator values.json --host broker.local --send-interval 500
#
# Wires the three long-lived tasks together and runs them until the first one
# stops:
# - Watcher:   config file -> DatasetCell
# - Sender:    DatasetCell -> serialized messages -> MqttSupervisor.submit
# - Eventloop: MqttSupervisor (paho-mqtt network loop + connection events)

import argparse
import logging
from dataclasses import dataclass
from typing import Any

from .dataset import DatasetCell
from .errors import TaskExited
from .mqtt_client import MqttSupervisor
from .publisher import Publisher
from .runner import Task, run_until_first_exit
from .settings import LOG_LEVELS, Settings, default_log_level, setup_logging
from .watcher import DatasetWatcher

logger = logging.getLogger(__name__)


@dataclass
class Simulator:
    cell: DatasetCell
    watcher: DatasetWatcher
    publisher: Publisher
    supervisor: MqttSupervisor

    def tasks(self) -> dict[str, Task]:
        return {
            "Watcher": self.watcher.run,
            "Sender": self.publisher.run,
            "Eventloop": self.supervisor.run,
        }


def build_simulator(settings: Settings, *, client: Any = None) -> Simulator:
    """Create all components for `settings`. `client` replaces the paho client in tests."""
    cell = DatasetCell()
    supervisor = MqttSupervisor(
        client_id=settings.client_id,
        host=settings.host,
        port=settings.port,
        client=client,
    )
    watcher = DatasetWatcher(settings.config_path, cell, retry_malformed=settings.retry_malformed)
    publisher = Publisher(
        cell,
        supervisor,
        interval=settings.send_interval,
        isolate_failures=settings.isolate_failures,
    )
    return Simulator(cell=cell, watcher=watcher, publisher=publisher, supervisor=supervisor)


def _positive_int(raw: str) -> int:
    try:
        value = int(raw)
    except ValueError:
        raise argparse.ArgumentTypeError(f"not an integer: {raw!r}") from None
    if value <= 0:
        raise argparse.ArgumentTypeError("must be > 0")
    return value


def build_parser() -> argparse.ArgumentParser:
    # -h is the broker host, so help is only available as --help.
    parser = argparse.ArgumentParser(
        prog="mqtt-simulator",
        description="MQTT telemetry simulator: publishes binary-encoded values from a JSON dataset",
        add_help=False,
    )
    parser.add_argument("--help", action="help", help="show this help message and exit")
    parser.add_argument("config", help="path to the JSON dataset; reloaded when it changes")
    parser.add_argument("--host", "-h", default="localhost")
    parser.add_argument("--port", "-p", type=int, default=1883)
    parser.add_argument("--client-id", "-i", default="mqtt-simulator")
    parser.add_argument(
        "--send-interval",
        "-t",
        type=_positive_int,
        default=1000,
        help="Send interval in milliseconds",
    )
    parser.add_argument(
        "--isolate-failures",
        action="store_true",
        help="skip entries that fail to publish instead of stopping",
    )
    parser.add_argument(
        "--no-retry-malformed",
        dest="retry_malformed",
        action="store_false",
        help="re-parse a malformed dataset only after the file changes again",
    )
    parser.add_argument(
        "--log-level",
        type=str.upper,
        choices=LOG_LEVELS,
        default=default_log_level(),
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    settings = Settings(
        config_path=args.config,
        host=args.host,
        port=args.port,
        client_id=args.client_id,
        send_interval_ms=args.send_interval,
        isolate_failures=args.isolate_failures,
        retry_malformed=args.retry_malformed,
    )
    setup_logging(args.log_level)

    logger.info(
        "Sending data from %s to MQTT broker at %s:%s as %s",
        settings.config_path,
        settings.host,
        settings.port,
        settings.client_id,
    )
    sim = build_simulator(settings)

    try:
        outcome = run_until_first_exit(sim.tasks())
    except KeyboardInterrupt:
        return 0

    err = TaskExited(outcome.name, outcome.error)
    logger.critical("%s", err, exc_info=outcome.error)
    return 1


if __name__ == "__main__":
    raise SystemExit(main())
