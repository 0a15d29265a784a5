"""Conversion of raw function payloads into typed output mappings."""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

from .errors import OutputParseError
from .models import DataOut, OutputType

LOGGER = logging.getLogger("enactment.output")

_MISSING = object()


def _load(payload: str) -> Any:
    try:
        return json.loads(payload)
    except ValueError:
        return payload


def has_error_marker(payload: Optional[str]) -> bool:
    """True when the payload reports an error (``error:`` prefix or ``"error"`` key)."""
    if not payload:
        return False
    if payload.lstrip().startswith("error:"):
        return True
    document = _load(payload)
    return isinstance(document, dict) and "error" in document


def coerce(key: str, value: Any, declared: str) -> Any:
    """Coerce ``value`` to the declared output type. ``None`` is kept for every type."""
    if value is None:
        return None
    if declared == OutputType.NUMBER.value:
        if isinstance(value, bool) or isinstance(value, (dict, list)):
            raise OutputParseError(key, declared, f"got {type(value).__name__}")
        try:
            return float(value)
        except ValueError as exc:
            raise OutputParseError(key, declared, str(exc)) from exc
    if declared == OutputType.STRING.value:
        if isinstance(value, (dict, list)):
            raise OutputParseError(key, declared, f"got {type(value).__name__}")
        if isinstance(value, bool):
            return json.dumps(value)
        return value if isinstance(value, str) else str(value)
    if declared == OutputType.BOOL.value:
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.strip().lower() == "true"
        raise OutputParseError(key, declared, f"got {type(value).__name__}")
    if declared == OutputType.COLLECTION.value:
        # element types are decided by the consumer
        if not isinstance(value, list):
            raise OutputParseError(key, declared, f"got {type(value).__name__}")
        return value
    if declared == OutputType.OBJECT.value:
        return value
    raise OutputParseError(key, declared, "unknown output type")


class OutputParser:
    """Fills a node's output mapping from the raw payload of its invocation."""

    def __init__(self, node_name: str, declarations: Optional[List[DataOut]] = None) -> None:
        self.node_name = node_name
        self.declarations = list(declarations or [])

    def key(self, output_name: str) -> str:
        return f"{self.node_name}/{output_name}"

    def parse(self, payload: Optional[str], outputs: Dict[str, Any]) -> bool:
        """Parse ``payload`` into ``outputs`` and report whether the invocation succeeded.

        Keys already present in ``outputs`` (pass-through inputs) are kept as they
        are. A field that is missing or cannot be coerced fails the whole parse
        and leaves ``outputs`` untouched.
        """
        if payload is None or payload == "null" or payload == "":
            return not self.declarations

        document = _load(payload)
        parsed: Dict[str, Any] = {}
        for data in self.declarations:
            key = self.key(data.name)
            if key in outputs:
                continue
            if data.type not in {t.value for t in OutputType}:
                LOGGER.error(
                    "Error while trying to parse key in function %s. Type: %s", self.node_name, data.type
                )
                continue
            if isinstance(document, dict):
                value = document.get(data.name, _MISSING)
            else:
                value = document
            try:
                if value is _MISSING:
                    raise OutputParseError(key, data.type, "field missing from result")
                parsed[key] = coerce(key, value, data.type)
            except OutputParseError as exc:
                LOGGER.error("Error while trying to parse key in function %s: %s", self.node_name, exc)
                return False
        outputs.update(parsed)
        return not has_error_marker(payload)
