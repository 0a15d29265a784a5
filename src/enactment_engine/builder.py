"""Tree builder turning nested YAML/JSON workflow descriptions into node trees."""
from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Union

import yaml

from .errors import WorkflowDefinitionError
from .models import DataIn, DataOut, PropertyConstraint
from .nodes import (
    BoundedLoopNode,
    BranchCase,
    BranchNode,
    Condition,
    FunctionNode,
    LoopInput,
    Node,
    ParallelNode,
    SequenceNode,
)
from .runtime import EngineRuntime


@dataclass
class WorkflowDefinition:
    name: str
    root: Node

    def prepare_inputs(self, inputs: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
        """Key the raw workflow input by ``<workflowName>/<key>``."""
        prepared: Dict[str, Any] = {}
        for key, value in (inputs or {}).items():
            prepared[key if "/" in key else f"{self.name}/{key}"] = value
        return prepared


class TreeBuilder:
    """Builds node trees from the nested ``workflow.root`` format.

    Every node mapping carries a ``kind`` (``function``, ``sequence``,
    ``parallel``, ``branch`` or ``loop``) and a unique ``name``; ``children``
    hold the nodes that run after it.
    """

    def __init__(self, runtime: Optional[EngineRuntime] = None, execution_id: int = -1) -> None:
        self.runtime = runtime or EngineRuntime()
        self.execution_id = execution_id

    def load(self, path: Union[str, Path]) -> WorkflowDefinition:
        path = Path(path)
        text = path.read_text(encoding="utf-8")
        if path.suffix in {".yaml", ".yml"}:
            payload = yaml.safe_load(text)
        elif path.suffix == ".json":
            payload = json.loads(text)
        else:
            raise WorkflowDefinitionError(f"Unsupported workflow format: {path.suffix}")
        return self.build(payload)

    def build(self, payload: Mapping[str, Any]) -> WorkflowDefinition:
        if not isinstance(payload, Mapping):
            raise WorkflowDefinitionError("Workflow description must be a mapping")
        if "workflow" in payload:
            payload = payload["workflow"]
        missing = {"name", "root"} - set(payload)
        if missing:
            raise WorkflowDefinitionError(f"Missing required workflow keys: {sorted(missing)}")
        root = self.build_node(payload["root"])
        self._ensure_unique_names(root)
        return WorkflowDefinition(name=payload["name"], root=root)

    def build_node(self, definition: Mapping[str, Any]) -> Node:
        if not isinstance(definition, Mapping) or "name" not in definition:
            raise WorkflowDefinitionError(f"Node must be a mapping with a name: {definition!r}")
        kind = definition.get("kind", "function")
        children = [self.build_node(child) for child in definition.get("children", [])]
        output = [self._data_out(item) for item in definition.get("output", [])]
        name = definition["name"]

        if kind == "function":
            return FunctionNode(
                name=name,
                type=definition.get("type", name),
                deployment=definition.get("deployment"),
                properties=self._properties(definition.get("properties")),
                constraints=self._properties(definition.get("constraints")),
                input=[self._data_in(item) for item in definition.get("input", [])],
                output=output,
                execution_id=self.execution_id,
                runtime=self.runtime,
                children=children,
            )
        if kind == "sequence":
            steps = [self.build_node(step) for step in self._required(definition, "steps")]
            return SequenceNode(name, steps, output=output, children=children)
        if kind == "parallel":
            branches = [self.build_node(branch) for branch in self._required(definition, "branches")]
            return ParallelNode(name, branches, output=output, children=children)
        if kind == "branch":
            cases = [self._case(case) for case in self._required(definition, "cases")]
            default = self.build_node(definition["default"]) if definition.get("default") else None
            return BranchNode(name, cases, default=default, output=output, children=children)
        if kind == "loop":
            return BoundedLoopNode(
                name,
                self.build_node(self._required(definition, "body")),
                iterations=definition.get("iterations"),
                concurrency_limit=int(definition.get("concurrency_limit", -1)),
                loop_inputs=[self._loop_input(item) for item in definition.get("loop_inputs", [])],
                output=output,
                children=children,
            )
        raise WorkflowDefinitionError(f"Unknown node kind {kind!r} for node {name}")

    def _required(self, definition: Mapping[str, Any], key: str) -> Any:
        if key not in definition:
            raise WorkflowDefinitionError(f"Node {definition.get('name')} is missing {key!r}")
        return definition[key]

    def _properties(self, value: Any) -> List[PropertyConstraint]:
        if not value:
            return []
        if isinstance(value, Mapping):
            return [PropertyConstraint(str(k), v) for k, v in value.items()]
        return [PropertyConstraint(self._required(item, "name"), item.get("value")) for item in value]

    def _data_in(self, item: Mapping[str, Any]) -> DataIn:
        if "name" not in item:
            raise WorkflowDefinitionError(f"Input declaration without name: {item!r}")
        return DataIn(
            name=item["name"],
            source=item.get("source"),
            type=item.get("type", "string"),
            value=item.get("value"),
            passing=bool(item.get("passing", False)),
            properties=self._properties(item.get("properties")),
        )

    def _data_out(self, item: Mapping[str, Any]) -> DataOut:
        if "name" not in item:
            raise WorkflowDefinitionError(f"Output declaration without name: {item!r}")
        return DataOut(name=item["name"], type=item.get("type", "string"), source=item.get("source"))

    def _loop_input(self, item: Mapping[str, Any]) -> LoopInput:
        return LoopInput(
            self._required(item, "name"), self._required(item, "source"), bool(item.get("distribute", False))
        )

    def _case(self, definition: Mapping[str, Any]) -> BranchCase:
        conditions = definition.get("conditions") or []
        if "condition" in definition:
            conditions = [definition["condition"]]
        return BranchCase(
            node=self.build_node(self._required(definition, "node")),
            conditions=[
                Condition(self._required(c, "source"), c.get("operator", "=="), c.get("value"))
                for c in conditions
            ],
            combined_with=definition.get("combined_with", "and"),
        )

    def _ensure_unique_names(self, root: Node) -> None:
        seen: Dict[str, Node] = {}
        for node in root.walk():
            if node.name in seen:
                raise WorkflowDefinitionError(f"Duplicate node name {node.name}")
            seen[node.name] = node

