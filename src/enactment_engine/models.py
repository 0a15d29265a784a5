"""Core data models used by the enactment engine."""
from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from .errors import WorkflowDefinitionError

if TYPE_CHECKING:  # pragma: no cover
    from .constraints import ConstraintSet


class Provider(str, enum.Enum):
    """Supported FaaS providers."""

    AWS = "aws"
    GOOGLE = "google"
    AZURE = "azure"
    IBM = "ibm"

    @classmethod
    def detect(cls, endpoint: Optional[str]) -> Optional["Provider"]:
        """Guess the provider hosting ``endpoint`` from its URL or ARN."""
        if not endpoint:
            return None
        link = endpoint.lower()
        if link.startswith("arn:aws:lambda") or "amazonaws.com" in link:
            return cls.AWS
        if "cloudfunctions.net" in link or link.endswith(".run.app") or ".run.app/" in link:
            return cls.GOOGLE
        if "azurewebsites.net" in link:
            return cls.AZURE
        if "appdomain.cloud" in link or "cloud.ibm.com" in link:
            return cls.IBM
        return None


class InvocationEvent(str, enum.Enum):
    FUNCTION_END = "FUNCTION_END"
    FUNCTION_FAILED = "FUNCTION_FAILED"


class RunType(str, enum.Enum):
    """Kind of run an invocation log entry belongs to."""

    EXECUTION = "EXEC"
    SIMULATION = "SIM"


class OutputType(str, enum.Enum):
    NUMBER = "number"
    STRING = "string"
    BOOL = "bool"
    OBJECT = "object"
    COLLECTION = "collection"


@dataclass(frozen=True)
class PropertyConstraint:
    """A declared ``name: value`` pair (property or constraint)."""

    name: str
    value: Any


def find_property(items: Optional[List[PropertyConstraint]], name: str) -> Optional[PropertyConstraint]:
    for item in items or []:
        if item.name == name:
            return item
    return None


@dataclass
class DataIn:
    """Input declaration of a node."""

    name: str
    source: Optional[str] = None
    type: str = "string"
    value: Any = None
    passing: bool = False
    properties: List[PropertyConstraint] = field(default_factory=list)

    @property
    def replicate(self) -> bool:
        prop = find_property(self.properties, "replicate")
        if prop is None:
            return False
        if isinstance(prop.value, bool):
            return prop.value
        return str(prop.value).strip().lower() == "true"

    @property
    def has_literal(self) -> bool:
        return self.source is None and self.value is not None

    def literal(self) -> Any:
        """Cast the literal value by the declared type."""
        value = self.value
        try:
            if self.type == OutputType.NUMBER.value:
                if isinstance(value, (int, float)) and not isinstance(value, bool):
                    return value
                text = str(value).strip()
                try:
                    return int(text)
                except ValueError:
                    return float(text)
            if self.type == OutputType.BOOL.value:
                if isinstance(value, bool):
                    return value
                return str(value).strip().lower() == "true"
            if self.type in (OutputType.COLLECTION.value, OutputType.OBJECT.value):
                return json.loads(value) if isinstance(value, str) else value
            if self.type == OutputType.STRING.value:
                return value if isinstance(value, str) else json.dumps(value)
        except ValueError as exc:
            raise WorkflowDefinitionError(
                f"Literal {value!r} of input {self.name} is not a valid {self.type}"
            ) from exc
        return value


@dataclass
class DataOut:
    """Output declaration. ``source`` is only used by control node aliases."""

    name: str
    type: str = "string"
    source: Optional[str] = None


@dataclass(frozen=True)
class Deployment:
    """Parsed ``<PROVIDER>_<region>_<memory>`` deployment descriptor."""

    provider: Optional[str]
    region: Optional[str]
    memory: Optional[int]

    @classmethod
    def parse(cls, deployment: Optional[str]) -> Optional["Deployment"]:
        if not deployment:
            return None
        parts = deployment.split("_")
        provider = parts[0] if parts else None
        region = parts[1] if len(parts) > 1 else None
        memory: Optional[int] = None
        if len(parts) > 2:
            try:
                memory = int(parts[-1])
            except ValueError:
                memory = None
        return cls(provider=provider, region=region, memory=memory)


@dataclass
class GatewayResult:
    """Raw payload returned by a gateway plus the round trip time in ms."""

    payload: Optional[str]
    rtt: int


@dataclass
class FunctionInvocation:
    """Everything needed to dispatch one function node."""

    endpoint: str
    inputs: Dict[str, Any]
    node_name: str
    node_type: str
    constraints: "ConstraintSet"
    deployment: Optional[str] = None
    loop_counter: int = -1
    max_loop_counter: int = -1
    execution_id: int = -1
    invocation_id: int = -1


@dataclass
class InvocationLogEntry:
    """One invocation attempt as handed to the log sink."""

    event: InvocationEvent
    endpoint: str
    deployment: Optional[str]
    node_name: str
    node_type: str
    payload: Optional[str]
    rtt: int
    success: bool
    loop_counter: int
    max_loop_counter: int
    started_at: datetime
    run_type: RunType = RunType.EXECUTION
    invocation_id: int = -1
    execution_id: int = -1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "event": self.event.value,
            "endpoint": self.endpoint,
            "deployment": self.deployment,
            "node_name": self.node_name,
            "node_type": self.node_type,
            "payload": self.payload,
            "rtt": self.rtt,
            "success": self.success,
            "loop_counter": self.loop_counter,
            "max_loop_counter": self.max_loop_counter,
            "started_at": self.started_at.isoformat(),
            "run_type": self.run_type.value,
            "invocation_id": self.invocation_id,
            "execution_id": self.execution_id,
        }
