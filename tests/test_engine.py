from enactment_engine.engine import ExecutionEngine

from conftest import AWS_ENDPOINT, AZURE_ENDPOINT, GOOGLE_ENDPOINT


def test_run_merges_terminal_results(runtime, gateway, function_node):
    gateway.register(AZURE_ENDPOINT, lambda inputs: {"value": inputs["seed"]})
    gateway.register(AWS_ENDPOINT, lambda inputs: {"left": True})
    gateway.register(GOOGLE_ENDPOINT, lambda inputs: {"right": True})
    root = function_node(
        "start",
        AZURE_ENDPOINT,
        inputs=[{"name": "seed", "source": "wf/seed", "type": "number"}],
        outputs=[{"name": "value", "type": "number"}],
        children=[
            function_node("left", AWS_ENDPOINT, outputs=[{"name": "left", "type": "bool"}]),
            function_node("right", GOOGLE_ENDPOINT, outputs=[{"name": "right", "type": "bool"}]),
        ],
    )

    result = ExecutionEngine(runtime).run(root, {"wf/seed": 9})

    assert result.success is True
    assert result.outputs == {"left/left": True, "right/right": True}
    assert root.result == {"start/value": 9.0}
    assert result.duration >= 0


def test_failed_child_fails_workflow(runtime, gateway, function_node):
    gateway.register(AZURE_ENDPOINT, lambda inputs: {})
    gateway.register(AWS_ENDPOINT, lambda inputs: "error: nope")
    gateway.register(GOOGLE_ENDPOINT, lambda inputs: {"right": True})
    root = function_node(
        "start",
        AZURE_ENDPOINT,
        children=[
            function_node("left", AWS_ENDPOINT),
            function_node("right", GOOGLE_ENDPOINT, outputs=[{"name": "right", "type": "bool"}]),
        ],
    )

    result = ExecutionEngine(runtime).run(root)

    assert result.success is False
    assert result.outputs == {"right/right": True}
    assert runtime.metrics.get_counter("function_invocations_total", {"outcome": "failed"}) == 1
