import asyncio
from concurrent.futures import ThreadPoolExecutor

from enactment_engine.identity import InvocationCounter
from enactment_engine.models import InvocationEvent
from enactment_engine.nodes import ParallelNode

from conftest import AZURE_ENDPOINT


def test_ids_strictly_increase():
    counter = InvocationCounter(start=5)
    assert [counter.next_id() for _ in range(3)] == [5, 6, 7]


def test_ids_unique_across_threads():
    counter = InvocationCounter()

    def draw(_):
        return [counter.next_id() for _ in range(1000)]

    with ThreadPoolExecutor(max_workers=8) as pool:
        ids = [i for batch in pool.map(draw, range(8)) for i in batch]

    assert len(ids) == 8000
    assert set(ids) == set(range(8000))


def test_concurrent_function_nodes_get_distinct_ids(runtime, gateway, log_store, function_node):
    async def handler(inputs):
        await asyncio.sleep(0.01)
        return {"ok": True}

    gateway.register(AZURE_ENDPOINT, handler)
    branches = [function_node(f"f{i}", AZURE_ENDPOINT) for i in range(100)]
    root = ParallelNode("fanout", branches)

    async def runner():
        root.pass_result({})
        return await root.call()

    assert asyncio.run(runner()) is True
    ids = [entry.invocation_id for entry in log_store.by_event(InvocationEvent.FUNCTION_END)]
    assert len(ids) == 100
    assert len(set(ids)) == 100
