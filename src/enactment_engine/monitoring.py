"""Monitoring utilities: invocation log sinks, metrics and log redaction."""
from __future__ import annotations

import logging
import re
import threading
from abc import ABC, abstractmethod
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional

from .credentials import CREDENTIAL_KEYS
from .models import FunctionInvocation, InvocationEvent, InvocationLogEntry, RunType

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
REDACTED = "***"

_CREDENTIAL_PATTERN = re.compile(
    r'("?(?:%s)"?\s*[:=]\s*)("[^"]*"|[^,}\s]+)' % "|".join(CREDENTIAL_KEYS), re.IGNORECASE
)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(level=getattr(logging, level.upper(), logging.INFO), format=LOG_FORMAT)


def redact_credentials(value: Any) -> Any:
    """Replace credential values in a mapping or a serialized payload."""
    if isinstance(value, Mapping):
        return {
            key: REDACTED if str(key).lower() in CREDENTIAL_KEYS else redact_credentials(item)
            for key, item in value.items()
        }
    if isinstance(value, str):
        return _CREDENTIAL_PATTERN.sub(lambda m: m.group(1) + REDACTED, value)
    return value


class InvocationLogSink(ABC):
    """Receives one entry per invocation attempt."""

    @abstractmethod
    def save(self, entry: InvocationLogEntry) -> None:
        ...


class EventLogger(InvocationLogSink):
    """Structured event logger for invocation attempts."""

    def __init__(self) -> None:
        self.logger = logging.getLogger("enactment.events")

    def save(self, entry: InvocationLogEntry) -> None:
        level = logging.INFO if entry.event == InvocationEvent.FUNCTION_END else logging.WARNING
        self.logger.log(level, entry.event.value, extra={"invocation": entry.to_dict()})


class InMemoryLogStore(InvocationLogSink):
    """Keeps invocation entries in memory, used by tests and dry runs."""

    def __init__(self) -> None:
        self._entries: List[InvocationLogEntry] = []
        self._lock = threading.Lock()

    def save(self, entry: InvocationLogEntry) -> None:
        with self._lock:
            self._entries.append(entry)

    @property
    def entries(self) -> List[InvocationLogEntry]:
        with self._lock:
            return list(self._entries)

    def by_event(self, event: InvocationEvent) -> List[InvocationLogEntry]:
        return [entry for entry in self.entries if entry.event == event]


def record_invocation(
    sink: InvocationLogSink,
    invocation: FunctionInvocation,
    *,
    event: InvocationEvent,
    endpoint: str,
    payload: Optional[str],
    rtt: int,
    success: bool,
    started_at: datetime,
    run_type: RunType = RunType.EXECUTION,
) -> Optional[InvocationLogEntry]:
    """Hand one attempt to ``sink`` unless logging is disabled for the run."""
    if invocation.execution_id == -1:
        return None
    entry = InvocationLogEntry(
        event=event,
        endpoint=endpoint,
        deployment=invocation.deployment,
        node_name=invocation.node_name,
        node_type=invocation.node_type,
        payload=payload,
        rtt=rtt,
        success=success,
        loop_counter=invocation.loop_counter,
        max_loop_counter=invocation.max_loop_counter,
        started_at=started_at,
        run_type=run_type,
        invocation_id=invocation.invocation_id,
        execution_id=invocation.execution_id,
    )
    sink.save(entry)
    return entry


class MetricsRecorder:
    """In-memory metrics recorder used for tests and local runs."""

    def __init__(self) -> None:
        self.counters: Dict[str, Dict[str, float]] = defaultdict(lambda: defaultdict(float))
        self.histograms: Dict[str, Dict[str, List[float]]] = defaultdict(dict)
        self._lock = threading.Lock()

    def inc(self, name: str, labels: Optional[Dict[str, str]] = None, value: float = 1) -> None:
        with self._lock:
            self.counters[name][self._labels_key(labels)] += value

    def observe(self, name: str, value: float, labels: Optional[Dict[str, str]] = None) -> None:
        with self._lock:
            bucket = self.histograms[name].setdefault(self._labels_key(labels), [])
            bucket.append(value)

    def get_counter(self, name: str, labels: Optional[Dict[str, str]] = None) -> float:
        return self.counters[name].get(self._labels_key(labels), 0.0)

    def get_observations(self, name: str, labels: Optional[Dict[str, str]] = None) -> List[float]:
        return list(self.histograms[name].get(self._labels_key(labels), []))

    def _labels_key(self, labels: Optional[Dict[str, str]]) -> str:
        if not labels:
            return "__no_labels__"
        return "|".join(f"{k}={v}" for k, v in sorted(labels.items()))
