"""Execution engine driving a workflow tree from its root."""
from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Mapping, Optional

from .nodes import Node, merge_results
from .runtime import EngineRuntime

if TYPE_CHECKING:  # pragma: no cover
    from .builder import WorkflowDefinition

LOGGER = logging.getLogger("enactment.engine")


@dataclass
class WorkflowResult:
    success: bool
    outputs: Dict[str, Any] = field(default_factory=dict)
    duration: float = 0.0


class ExecutionEngine:
    """Feeds the workflow input into the root node and collects the result."""

    def __init__(self, runtime: Optional[EngineRuntime] = None) -> None:
        self.runtime = runtime or EngineRuntime()

    async def execute(self, root: Node, inputs: Optional[Mapping[str, Any]] = None) -> WorkflowResult:
        LOGGER.info("Starting workflow at node %s", root.name)
        start = time.time()
        root.pass_result(inputs or {})
        success = await root.call()
        duration = time.time() - start
        outputs = merge_results(root.terminal_results())
        self.runtime.metrics.observe("workflow_duration_seconds", duration, labels={"root": root.name})
        if success:
            LOGGER.info("Workflow finished in %.3f s", duration)
        else:
            LOGGER.error("Workflow finished with failures in %.3f s", duration)
        return WorkflowResult(success=success, outputs=outputs, duration=duration)

    async def execute_workflow(
        self, workflow: "WorkflowDefinition", inputs: Optional[Mapping[str, Any]] = None
    ) -> WorkflowResult:
        return await self.execute(workflow.root, workflow.prepare_inputs(inputs))

    def run(self, root: Node, inputs: Optional[Mapping[str, Any]] = None) -> WorkflowResult:
        return asyncio.run(self.execute(root, inputs))
