"""Custom exceptions for the enactment engine."""
from __future__ import annotations

from typing import Optional


class EnactmentError(Exception):
    """Base class for enactment related errors."""


class WorkflowDefinitionError(EnactmentError):
    """Raised when a workflow tree or one of its nodes is malformed."""


class MissingInputData(EnactmentError):
    """Raised when a declared input has neither a source value nor a literal."""

    def __init__(self, node_name: str, source: Optional[str]) -> None:
        self.node_name = node_name
        self.source = source
        super().__init__(f"{node_name} needs {source} !")


class InvocationFailure(EnactmentError):
    """Raised when a remote function call fails or reports an error."""

    def __init__(self, endpoint: str, message: str) -> None:
        self.endpoint = endpoint
        super().__init__(f"Invocation of {endpoint} failed: {message}")


class TimingConstraintViolation(EnactmentError):
    """Base class for violated timing constraints of one attempt."""

    constraint = "timing"

    def __init__(self, endpoint: str, message: str) -> None:
        self.endpoint = endpoint
        super().__init__(f"{self.constraint} violated for {endpoint}: {message}")


class MaxRunningTimeExceeded(TimingConstraintViolation):
    constraint = "C-maxRunningTime"


class LatestStartingTimeExceeded(TimingConstraintViolation):
    constraint = "C-latestStartingTime"


class LatestFinishingTimeExceeded(TimingConstraintViolation):
    constraint = "C-latestFinishingTime"


class NoProvidersConfigured(EnactmentError):
    """Raised when fault tolerance is required but no provider account exists."""


class OutputParseError(EnactmentError):
    """Raised when a declared output cannot be coerced to its declared type."""

    def __init__(self, key: str, expected: str, message: str) -> None:
        self.key = key
        self.expected = expected
        super().__init__(f"Cannot parse {key} as {expected}: {message}")
