"""Timing constraints and fault tolerance settings of function nodes."""
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, List, Optional, Tuple

from .errors import (
    LatestFinishingTimeExceeded,
    LatestStartingTimeExceeded,
    MaxRunningTimeExceeded,
    TimingConstraintViolation,
    WorkflowDefinitionError,
)
from .models import PropertyConstraint

LOGGER = logging.getLogger("enactment.constraints")

MAX_RUNNING_TIME = "C-maxRunningTime"
LATEST_STARTING_TIME = "C-latestStartingTime"
LATEST_FINISHING_TIME = "C-latestFinishingTime"
FT_RETRIES = "FT-Retries"
FT_ALT_PLAN_PREFIX = "FT-AltPlan-"

Clock = Callable[[], datetime]


def parse_timestamp(value: Any) -> datetime:
    """Parse an ISO-8601 timestamp or epoch milliseconds into a naive local datetime."""
    if isinstance(value, datetime):
        moment = value
    elif isinstance(value, (int, float)) and not isinstance(value, bool):
        moment = datetime.fromtimestamp(value / 1000)
    else:
        text = str(value).strip()
        if text.isdigit():
            moment = datetime.fromtimestamp(int(text) / 1000)
        else:
            moment = datetime.fromisoformat(text)
    if moment.tzinfo is not None:
        moment = moment.astimezone().replace(tzinfo=None)
    return moment


@dataclass
class TimingConstraints:
    max_running_time: Optional[int] = None  # milliseconds
    latest_starting_time: Optional[datetime] = None
    latest_finishing_time: Optional[datetime] = None

    @property
    def is_set(self) -> bool:
        return (
            self.max_running_time is not None
            or self.latest_starting_time is not None
            or self.latest_finishing_time is not None
        )


@dataclass
class FaultTolerancePolicy:
    retries: int = 0
    alternatives: List[str] = field(default_factory=list)

    @property
    def is_set(self) -> bool:
        return self.retries > 0 or bool(self.alternatives)


@dataclass
class ConstraintSet:
    """Parsed ``constraints`` block of a function node."""

    timing: TimingConstraints = field(default_factory=TimingConstraints)
    policy: FaultTolerancePolicy = field(default_factory=FaultTolerancePolicy)

    @property
    def has_constraint_set(self) -> bool:
        return self.timing.is_set

    @property
    def has_ft_set(self) -> bool:
        return self.policy.is_set

    @property
    def requires_fault_tolerance(self) -> bool:
        return self.has_constraint_set or self.has_ft_set

    @classmethod
    def parse(cls, constraints: Optional[List[PropertyConstraint]]) -> "ConstraintSet":
        parsed = cls()
        for constraint in constraints or []:
            name, value = constraint.name, constraint.value
            try:
                if name == MAX_RUNNING_TIME:
                    parsed.timing.max_running_time = int(value)
                elif name == LATEST_STARTING_TIME:
                    parsed.timing.latest_starting_time = parse_timestamp(value)
                elif name == LATEST_FINISHING_TIME:
                    parsed.timing.latest_finishing_time = parse_timestamp(value)
                elif name == FT_RETRIES:
                    parsed.policy.retries = max(0, int(value))
                elif name.startswith(FT_ALT_PLAN_PREFIX):
                    links = value if isinstance(value, list) else str(value).split(";")
                    parsed.policy.alternatives.extend(
                        link.strip() for link in links if link and link.strip()
                    )
                else:
                    LOGGER.warning("Ignoring unknown constraint %s", name)
            except (TypeError, ValueError) as exc:
                raise WorkflowDefinitionError(f"Invalid value {value!r} for constraint {name}") from exc
        return parsed


class TimingConstraintEvaluator:
    """Checks one invocation attempt against declared timing constraints."""

    def __init__(self, constraints: TimingConstraints, clock: Clock = datetime.now) -> None:
        self.constraints = constraints
        self.clock = clock

    def check_start(self, endpoint: str, started: datetime) -> None:
        deadline = self.constraints.latest_starting_time
        if deadline is not None and started > deadline:
            raise LatestStartingTimeExceeded(
                endpoint, f"attempt started at {started.isoformat()} after {deadline.isoformat()}"
            )

    def time_budget(
        self, endpoint: str, started: datetime
    ) -> Tuple[Optional[float], Optional[TimingConstraintViolation]]:
        """Return the seconds an attempt may run and the error raised when they run out."""
        budget: Optional[float] = None
        violation: Optional[TimingConstraintViolation] = None
        if self.constraints.max_running_time is not None:
            budget = self.constraints.max_running_time / 1000
            violation = MaxRunningTimeExceeded(
                endpoint, f"running longer than {self.constraints.max_running_time} ms"
            )
        deadline = self.constraints.latest_finishing_time
        if deadline is not None:
            remaining = (deadline - started).total_seconds()
            if remaining <= 0:
                raise LatestFinishingTimeExceeded(
                    endpoint, f"deadline {deadline.isoformat()} passed before the attempt started"
                )
            if budget is None or remaining < budget:
                budget = remaining
                violation = LatestFinishingTimeExceeded(
                    endpoint, f"not finished before {deadline.isoformat()}"
                )
        return budget, violation

    def check_finish(self, endpoint: str, finished: datetime, elapsed_ms: int) -> None:
        limit = self.constraints.max_running_time
        if limit is not None and elapsed_ms > limit:
            raise MaxRunningTimeExceeded(endpoint, f"took {elapsed_ms} ms, limit is {limit} ms")
        deadline = self.constraints.latest_finishing_time
        if deadline is not None and finished > deadline:
            raise LatestFinishingTimeExceeded(
                endpoint, f"finished at {finished.isoformat()} after {deadline.isoformat()}"
            )
