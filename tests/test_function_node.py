import asyncio

import pytest

from enactment_engine.errors import WorkflowDefinitionError
from enactment_engine.gateway import InvocationGateway
from enactment_engine.models import GatewayResult, InvocationEvent, PropertyConstraint
from enactment_engine.nodes import BoundedLoopNode, FunctionNode

from conftest import AWS_ENDPOINT, AZURE_ENDPOINT


def run_node(node, inputs):
    async def runner():
        node.pass_result(inputs)
        return await node.call()

    return asyncio.run(runner())


def test_inputs_from_sources_and_literals(gateway, function_node):
    received = []

    def handler(inputs):
        received.append(inputs)
        return {"sum": inputs["a"] + inputs["b"]}

    gateway.register(AZURE_ENDPOINT, handler)
    node = function_node(
        "add",
        AZURE_ENDPOINT,
        inputs=[
            {"name": "a", "source": "wf/a", "type": "number"},
            {"name": "b", "type": "number", "value": "2"},
        ],
        outputs=[{"name": "sum", "type": "number"}],
    )

    assert run_node(node, {"wf/a": 40}) is True
    assert received == [{"a": 40, "b": 2}]
    assert node.result == {"add/sum": 42.0}
    assert node.success is True


def test_missing_input_fails_without_invocation(gateway, log_store, function_node):
    gateway.register(AZURE_ENDPOINT, lambda inputs: pytest.fail("must not be invoked"))
    node = function_node("f", AZURE_ENDPOINT, inputs=[{"name": "a", "source": "wf/a"}])

    assert run_node(node, {}) is False
    assert log_store.entries == []


def test_passing_and_replicated_inputs(gateway, function_node):
    received = []
    gateway.register(AZURE_ENDPOINT, lambda inputs: received.append(inputs) or {})
    node = function_node(
        "f",
        AZURE_ENDPOINT,
        inputs=[
            {"name": "token", "source": "wf/token", "passing": True},
            {
                "name": "size",
                "source": "wf/size",
                "properties": [PropertyConstraint("replicate", "true")],
            },
        ],
    )

    assert run_node(node, {"wf/token": "t", "wf/size": 3}) is True
    assert received == [{"size": 3}]
    assert node.result == {"f/token": "t", "f/size": 3}


def test_output_reaches_children(gateway, function_node):
    gateway.register(AZURE_ENDPOINT, lambda inputs: {"word": "hello"})
    gateway.register(AWS_ENDPOINT, lambda inputs: {"text": inputs["word"].upper()})
    child = function_node(
        "shout",
        AWS_ENDPOINT,
        inputs=[{"name": "word", "source": "say/word"}],
        outputs=[{"name": "text"}],
    )
    parent = function_node("say", AZURE_ENDPOINT, outputs=[{"name": "word"}], children=[child])

    assert run_node(parent, {}) is True
    assert child.data_values == {"say/word": "hello"}
    assert parent.terminal_results() == [{"shout/text": "HELLO"}]


def test_error_marker_stops_branch(gateway, log_store, function_node):
    gateway.register(AZURE_ENDPOINT, lambda inputs: "error: out of memory")
    gateway.register(AWS_ENDPOINT, lambda inputs: pytest.fail("child must not run"))
    child = function_node("child", AWS_ENDPOINT)
    node = function_node("f", AZURE_ENDPOINT, children=[child])

    assert run_node(node, {}) is False
    assert node.success is False
    assert child.result is None
    failed = log_store.by_event(InvocationEvent.FUNCTION_FAILED)
    assert [entry.payload for entry in failed] == ["error: out of memory"]


def test_gateway_failure_is_logged(log_store, function_node):
    node = function_node("f", AZURE_ENDPOINT)

    assert run_node(node, {}) is False
    failed = log_store.by_event(InvocationEvent.FUNCTION_FAILED)
    assert len(failed) == 1
    assert failed[0].payload is None
    assert node.runtime.metrics.get_counter("function_invocations_total", {"outcome": "failed"}) == 1


def test_logging_disabled_without_execution_id(gateway, log_store, function_node):
    gateway.register(AZURE_ENDPOINT, lambda inputs: {})
    node = function_node("f", AZURE_ENDPOINT, execution_id=-1)

    assert run_node(node, {}) is True
    assert log_store.entries == []


def test_missing_resource(runtime):
    node = FunctionNode("f", "f", runtime=runtime)
    with pytest.raises(WorkflowDefinitionError):
        run_node(node, {})


class FixedRttGateway(InvocationGateway):
    async def invoke(self, endpoint, inputs):
        return GatewayResult(payload="{}", rtt=100)


def test_service_rtt_is_subtracted(runtime, log_store, function_node):
    runtime.gateway = FixedRttGateway()
    runtime.service_rtt = lambda region, services: 5 * len(services) if region == "us-east-1" else 0
    node = function_node(
        "f",
        AWS_ENDPOINT,
        properties=[PropertyConstraint("service", "s3")],
        deployment="AWS_us-east-1_512",
    )

    assert run_node(node, {}) is True
    assert [entry.rtt for entry in log_store.entries] == [95]


def test_loop_attributes_reach_log_entries(gateway, log_store, function_node):
    gateway.register(AZURE_ENDPOINT, lambda inputs: {})
    body = function_node("body", AZURE_ENDPOINT)
    loop = BoundedLoopNode("loop", body, iterations=3, concurrency_limit=2)

    assert run_node(loop, {}) is True
    entries = log_store.by_event(InvocationEvent.FUNCTION_END)
    assert sorted(entry.loop_counter for entry in entries) == [0, 1, 2]
    assert {entry.max_loop_counter for entry in entries} == {3}
    assert body.result is None


class TestLiteralInputs:
    @pytest.mark.asyncio
    async def test_literals_cast_by_type(self, gateway, function_node):
        received = []
        gateway.register(AZURE_ENDPOINT, lambda inputs: received.append(inputs) or {})
        node = function_node(
            "f",
            AZURE_ENDPOINT,
            inputs=[
                {"name": "flag", "type": "bool", "value": "True"},
                {"name": "ratio", "type": "number", "value": "0.5"},
                {"name": "items", "type": "collection", "value": "[1, 2]"},
            ],
        )

        node.pass_result({})
        assert await node.call() is True
        assert received == [{"flag": True, "ratio": 0.5, "items": [1, 2]}]

    @pytest.mark.asyncio
    async def test_invalid_literal(self, function_node):
        node = function_node("f", AZURE_ENDPOINT, inputs=[{"name": "n", "type": "number", "value": "many"}])

        node.pass_result({})
        with pytest.raises(WorkflowDefinitionError):
            await node.call()
