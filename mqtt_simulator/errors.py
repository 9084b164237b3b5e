"""Shared exception types.

Every component raises from this small hierarchy so the runner can report
a task's cause of death the same way regardless of where it came from.
"""

from __future__ import annotations


class SimulatorError(Exception):
    """Base class for simulator errors."""


class ParseError(SimulatorError, ValueError):
    """The dataset text is not a valid list of entries."""


class SubmitError(SimulatorError, ValueError):
    """An outbound message was rejected before it reached the broker client."""


class ChannelClosed(SimulatorError):
    """The outbound channel is no longer drained by the connection supervisor."""


class TaskExited(SimulatorError):
    def __init__(self, name: str, cause: BaseException | None) -> None:
        self.name = name
        self.cause = cause
        if cause is None:
            super().__init__(f"{name} died: exited without error")
        else:
            super().__init__(f"{name} died: {cause!r}")
