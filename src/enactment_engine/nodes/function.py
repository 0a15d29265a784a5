"""Function node: resolves inputs, invokes a serverless function, parses its output."""
from __future__ import annotations

import logging
import time
from typing import Any, Dict, List, Optional

from ..constraints import ConstraintSet
from ..errors import (
    InvocationFailure,
    MissingInputData,
    TimingConstraintViolation,
    WorkflowDefinitionError,
)
from ..models import (
    DataIn,
    DataOut,
    Deployment,
    FunctionInvocation,
    GatewayResult,
    InvocationEvent,
    PropertyConstraint,
    find_property,
)
from ..monitoring import record_invocation, redact_credentials
from ..output_parser import OutputParser
from ..runtime import EngineRuntime
from .base import Node

LOGGER = logging.getLogger("enactment.nodes.function")


def _now_ms() -> int:
    return int(time.time() * 1000)


class FunctionNode(Node):
    """Node invoking one remote function and passing its output to the children."""

    def __init__(
        self,
        name: str,
        type: str,
        deployment: Optional[str] = None,
        properties: Optional[List[PropertyConstraint]] = None,
        constraints: Optional[List[PropertyConstraint]] = None,
        input: Optional[List[DataIn]] = None,
        output: Optional[List[DataOut]] = None,
        execution_id: int = -1,
        runtime: Optional[EngineRuntime] = None,
        children: Optional[List[Node]] = None,
    ) -> None:
        super().__init__(name, type, children)
        self.deployment = deployment
        self.properties = list(properties or [])
        self.constraints = list(constraints or [])
        self.input = list(input or [])
        self.output = list(output or [])
        self.execution_id = execution_id
        self.runtime = runtime or EngineRuntime()
        self.constraint_set = ConstraintSet.parse(self.constraints)
        self.parser = OutputParser(name, self.output)
        self.success = False

    def resource_link(self) -> str:
        resource = find_property(self.properties, "resource")
        if resource is None or not resource.value:
            raise WorkflowDefinitionError(f"Function {self.name} declares no resource")
        return str(resource.value)

    def used_services(self) -> List[str]:
        return [str(prop.value) for prop in self.properties if prop.name == "service"]

    def resolve_inputs(self, outputs: Dict[str, Any]) -> Dict[str, Any]:
        """Build the invocation inputs; pass-through values go to ``outputs`` instead."""
        data_values = self.data_values
        actual: Dict[str, Any] = {}
        for data in self.input:
            if data.source is not None and data.source in data_values:
                value = data_values[data.source]
                if data.passing or data.replicate:
                    outputs[f"{self.name}/{data.name}"] = value
                if not data.passing:
                    actual[data.name] = value
            elif data.has_literal:
                actual[data.name] = data.literal()
            else:
                raise MissingInputData(self.name, data.source)
        return actual

    async def call(self) -> bool:
        invocation_id = self.runtime.counter.next_id()
        endpoint = self.resource_link()
        LOGGER.info(
            "Executing function %s at resource: %s [%dms], id=%d",
            self.name, endpoint, _now_ms(), invocation_id,
        )

        outputs: Dict[str, Any] = {}
        try:
            inputs = self.resolve_inputs(outputs)
        except MissingInputData as exc:
            LOGGER.error("%s", exc)
            self.success = False
            return False

        self._log_input(inputs, invocation_id)
        invocation = FunctionInvocation(
            endpoint=endpoint,
            inputs=inputs,
            node_name=self.name,
            node_type=self.type,
            constraints=self.constraint_set,
            deployment=self.deployment,
            loop_counter=self.loop_counter,
            max_loop_counter=self.max_loop_counter,
            execution_id=self.execution_id,
            invocation_id=invocation_id,
        )

        try:
            result = await self._dispatch(invocation, outputs)
        except (InvocationFailure, TimingConstraintViolation) as exc:
            LOGGER.error("Function %s failed: %s, id=%d", self.name, exc, invocation_id)
            self.success = False
            self.runtime.metrics.inc("function_invocations_total", labels={"outcome": "failed"})
            return False

        self._log_output(result, invocation_id)
        self.runtime.metrics.observe("function_rtt_ms", result.rtt, labels={"function": self.name})
        self.runtime.metrics.inc(
            "function_invocations_total", labels={"outcome": "success" if self.success else "failed"}
        )
        self._store_result(outputs)
        if not self.success:
            LOGGER.error("Function %s returned an unsuccessful result, id=%d", self.name, invocation_id)
            return False
        return await self._call_children(outputs)

    async def _dispatch(self, invocation: FunctionInvocation, outputs: Dict[str, Any]) -> GatewayResult:
        if invocation.constraints.requires_fault_tolerance:
            LOGGER.info("Invoking function %s with fault tolerance...", self.name)
            result = await self.runtime.fault_tolerance().invoke(invocation)
            self.success = self.parser.parse(result.payload, outputs)
            return result

        started_at = self.runtime.clock()
        try:
            result = await self.runtime.gateway.invoke(invocation.endpoint, invocation.inputs)
        except InvocationFailure:
            self._record(invocation, InvocationEvent.FUNCTION_FAILED, None, 0, False, started_at)
            raise

        self.success = self.parser.parse(result.payload, outputs)
        services_rtt = 0
        if self.success:
            event = InvocationEvent.FUNCTION_END
            services = self.used_services()
            deployment = Deployment.parse(self.deployment)
            if services and deployment is not None:
                services_rtt = self.runtime.service_rtt(deployment.region, services)
        else:
            event = InvocationEvent.FUNCTION_FAILED
        self._record(invocation, event, result.payload, result.rtt - services_rtt, self.success, started_at)
        return result

    def _record(self, invocation, event, payload, rtt, success, started_at) -> None:
        record_invocation(
            self.runtime.log_sink,
            invocation,
            event=event,
            endpoint=invocation.endpoint,
            payload=payload,
            rtt=rtt,
            success=success,
            started_at=started_at,
            run_type=self.runtime.run_type,
        )

    def _log_input(self, inputs: Dict[str, Any], invocation_id: int) -> None:
        if len(inputs) > self.runtime.settings.large_input_threshold:
            LOGGER.info("Input for function is large [%dms], id=%d", _now_ms(), invocation_id)
            return
        shown = redact_credentials(inputs) if self.runtime.settings.hide_credentials else inputs
        LOGGER.info("Input for function %s : %s [%dms], id=%d", self.name, shown, _now_ms(), invocation_id)

    def _log_output(self, result: GatewayResult, invocation_id: int) -> None:
        payload = result.payload if result.payload is not None else "null"
        if len(payload) > self.runtime.settings.large_result_threshold:
            LOGGER.info(
                "Function took: %d ms. Result: too large [%dms], id=%d", result.rtt, _now_ms(), invocation_id
            )
            return
        if self.runtime.settings.hide_credentials:
            payload = redact_credentials(payload)
        LOGGER.info(
            "Function took: %d ms. Result: %s : %s [%dms], id=%d",
            result.rtt, self.name, payload, _now_ms(), invocation_id,
        )
