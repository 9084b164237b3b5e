from __future__ import annotations

# Task runner.
#
# The simulator runs three long-lived tasks (watcher, publisher, connection
# supervisor), each on its own daemon thread. There is no graceful shutdown:
# the first task to finish, with or without an error, ends the run and the
# remaining threads are abandoned.

import logging
import queue
import threading
import time
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

Task = Callable[[threading.Event], None]


@dataclass(frozen=True)
class TaskOutcome:
    name: str
    error: BaseException | None


def run_until_first_exit(tasks: dict[str, Task], *, stop_event: threading.Event | None = None) -> TaskOutcome:
    """Start every task and return the outcome of the first one to finish.

    Each task is called with a shared stop event. It is set once the first
    task finishes so that cooperative tasks can wind down, but nobody waits
    for them.
    """
    if not tasks:
        raise ValueError("no tasks to run")

    stop = stop_event or threading.Event()
    done: "queue.Queue[TaskOutcome]" = queue.Queue()

    def wrap(name: str, task: Task) -> Callable[[], None]:
        def target() -> None:
            try:
                task(stop)
            except BaseException as e:  # reported to the main thread
                done.put(TaskOutcome(name=name, error=e))
            else:
                done.put(TaskOutcome(name=name, error=None))

        return target

    for name, task in tasks.items():
        t = threading.Thread(target=wrap(name, task), name=name, daemon=True)
        t.start()
        logger.debug("started task %s", name)

    outcome = done.get()
    stop.set()
    return outcome



def next_deadline(deadline: float, period: float) -> float:
    """Next fixed-period deadline on the monotonic clock.

    Ticks missed while the caller was busy are skipped, not replayed.
    """
    deadline += period
    now = time.monotonic()
    if deadline < now:
        deadline = now
    return deadline
