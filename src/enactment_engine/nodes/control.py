"""Control nodes: sequence, parallel fan-out, conditional branch and bounded loop."""
from __future__ import annotations

import asyncio
import logging
import operator
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from ..errors import MissingInputData, WorkflowDefinitionError
from ..models import DataOut
from .base import Node, merge_results

LOGGER = logging.getLogger("enactment.nodes.control")


def _contains(container: Any, item: Any) -> bool:
    return item in container


OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
    "==": operator.eq,
    "!=": operator.ne,
    "<": operator.lt,
    "<=": operator.le,
    ">": operator.gt,
    ">=": operator.ge,
    "contains": _contains,
}


class ControlNode(Node):
    """Shared join and propagation logic of the control nodes."""

    def __init__(
        self,
        name: str,
        type: str,
        output: Optional[List[DataOut]] = None,
        children: Optional[List[Node]] = None,
    ) -> None:
        super().__init__(name, type, children)
        self.output = list(output or [])

    def _with_aliases(self, joined: Dict[str, Any]) -> Dict[str, Any]:
        for alias in self.output:
            if alias.source is None:
                continue
            if alias.source in joined:
                joined[f"{self.name}/{alias.name}"] = joined[alias.source]
            else:
                LOGGER.warning("%s: output %s has no value for %s", self.name, alias.name, alias.source)
        return joined

    async def _run_subtree(self, subtree: Node, input: Mapping[str, Any]) -> Tuple[bool, Dict[str, Any]]:
        subtree.pass_result(input)
        self._inherit_loop(subtree)
        success = await subtree.call()
        return success, merge_results(subtree.terminal_results())

    async def _complete(self, joined: Dict[str, Any], success: bool) -> bool:
        output = self._with_aliases(joined)
        self._store_result(output)
        if not success:
            return False
        return await self._call_children(output)


class SequenceNode(ControlNode):
    """Runs its steps one after another, each seeing all previous results."""

    def __init__(
        self,
        name: str,
        steps: List[Node],
        output: Optional[List[DataOut]] = None,
        children: Optional[List[Node]] = None,
    ) -> None:
        super().__init__(name, "sequence", output, children)
        self.steps = list(steps)

    async def call(self) -> bool:
        accumulated = dict(self.data_values)
        for step in self.steps:
            success, results = await self._run_subtree(step, accumulated)
            accumulated.update(results)
            if not success:
                LOGGER.error("Sequence %s stopped at step %s", self.name, step.name)
                return await self._complete(accumulated, False)
        return await self._complete(accumulated, True)

    def subtrees(self) -> List[Node]:
        return list(self.steps)

    def clone(self) -> "SequenceNode":
        twin = super().clone()
        twin.steps = [step.clone() for step in self.steps]
        return twin


class ParallelNode(ControlNode):
    """Runs every branch concurrently and joins once all of them finished."""

    def __init__(
        self,
        name: str,
        branches: List[Node],
        output: Optional[List[DataOut]] = None,
        children: Optional[List[Node]] = None,
    ) -> None:
        super().__init__(name, "parallel", output, children)
        self.branches = list(branches)

    async def call(self) -> bool:
        input = dict(self.data_values)
        outcomes = await asyncio.gather(
            *(self._run_subtree(branch, input) for branch in self.branches),
            return_exceptions=True,
        )
        joined = dict(input)
        success = True
        errors: List[BaseException] = []
        for branch, outcome in zip(self.branches, outcomes):
            if isinstance(outcome, BaseException):
                errors.append(outcome)
                continue
            branch_success, results = outcome
            if not branch_success:
                LOGGER.error("Parallel %s: branch %s failed", self.name, branch.name)
                success = False
            joined.update(results)
        if errors:
            self._store_result(self._with_aliases(joined))
            raise errors[0]
        return await self._complete(joined, success)

    def subtrees(self) -> List[Node]:
        return list(self.branches)

    def clone(self) -> "ParallelNode":
        twin = super().clone()
        twin.branches = [branch.clone() for branch in self.branches]
        return twin


@dataclass
class Condition:
    source: str
    operator: str = "=="
    value: Any = None

    def __post_init__(self) -> None:
        if self.operator not in OPERATORS:
            raise WorkflowDefinitionError(f"Unknown condition operator {self.operator}")

    def evaluate(self, data_values: Mapping[str, Any]) -> bool:
        if self.source not in data_values:
            return False
        try:
            return bool(OPERATORS[self.operator](data_values[self.source], self.value))
        except TypeError:
            LOGGER.debug("Condition on %s is not comparable with %r", self.source, self.value)
            return False


@dataclass
class BranchCase:
    node: Node
    conditions: List[Condition] = field(default_factory=list)
    combined_with: str = "and"

    def matches(self, data_values: Mapping[str, Any]) -> bool:
        results = [condition.evaluate(data_values) for condition in self.conditions]
        if self.combined_with == "or":
            return any(results)
        return all(results)


class BranchNode(ControlNode):
    """Runs the first case whose conditions hold, else the default subtree."""

    def __init__(
        self,
        name: str,
        cases: List[BranchCase],
        default: Optional[Node] = None,
        output: Optional[List[DataOut]] = None,
        children: Optional[List[Node]] = None,
    ) -> None:
        super().__init__(name, "branch", output, children)
        self.cases = list(cases)
        self.default = default
        self.selected: Optional[Node] = None

    def select(self, data_values: Mapping[str, Any]) -> Optional[Node]:
        for case in self.cases:
            if case.matches(data_values):
                return case.node
        return self.default

    async def call(self) -> bool:
        input = dict(self.data_values)
        self.selected = self.select(input)
        if self.selected is None:
            LOGGER.info("Branch %s: no case matched, passing input through", self.name)
            return await self._complete(input, True)
        success, results = await self._run_subtree(self.selected, input)
        input.update(results)
        return await self._complete(input, success)

    def subtrees(self) -> List[Node]:
        nested = [case.node for case in self.cases]
        return nested + [self.default] if self.default is not None else nested

    def clone(self) -> "BranchNode":
        twin = super().clone()
        twin.cases = [BranchCase(case.node.clone(), list(case.conditions), case.combined_with) for case in self.cases]
        twin.default = self.default.clone() if self.default is not None else None
        twin.selected = None
        return twin


@dataclass
class LoopInput:
    """Loop input; ``distribute`` hands element ``i`` to iteration ``i``."""

    name: str
    source: str
    distribute: bool = False


class BoundedLoopNode(ControlNode):
    """Runs a fresh clone of ``body`` per iteration, at most ``concurrency_limit`` at once."""

    def __init__(
        self,
        name: str,
        body: Node,
        iterations: Union[int, str, None] = None,
        concurrency_limit: int = -1,
        loop_inputs: Optional[List[LoopInput]] = None,
        output: Optional[List[DataOut]] = None,
        children: Optional[List[Node]] = None,
    ) -> None:
        super().__init__(name, "loop", output, children)
        self.body = body
        self.iterations = iterations
        self.max_concurrency = concurrency_limit
        self.loop_inputs = list(loop_inputs or [])

    def iteration_count(self, data_values: Mapping[str, Any]) -> int:
        if isinstance(self.iterations, bool):
            raise WorkflowDefinitionError(f"Loop {self.name}: iterations must be an int or a source key")
        if isinstance(self.iterations, int):
            return max(0, self.iterations)
        if isinstance(self.iterations, str):
            if self.iterations not in data_values:
                raise MissingInputData(self.name, self.iterations)
            value = data_values[self.iterations]
            if isinstance(value, list):
                return len(value)
            try:
                return max(0, int(value))
            except (TypeError, ValueError) as exc:
                raise WorkflowDefinitionError(
                    f"Loop {self.name}: {self.iterations} is not an iteration count"
                ) from exc
        distributed = [self._source(data_values, li) for li in self.loop_inputs if li.distribute]
        if distributed:
            return min(len(values) for values in distributed)
        raise WorkflowDefinitionError(f"Loop {self.name} declares no iteration count")

    def _source(self, data_values: Mapping[str, Any], loop_input: LoopInput) -> Any:
        if loop_input.source not in data_values:
            raise MissingInputData(self.name, loop_input.source)
        value = data_values[loop_input.source]
        if loop_input.distribute and not isinstance(value, list):
            raise WorkflowDefinitionError(f"Loop {self.name}: {loop_input.source} is not a collection")
        return value

    def iteration_input(self, data_values: Mapping[str, Any], index: int) -> Dict[str, Any]:
        input = dict(data_values)
        input[f"{self.name}/counter"] = index
        for loop_input in self.loop_inputs:
            value = self._source(data_values, loop_input)
            input[f"{self.name}/{loop_input.name}"] = value[index] if loop_input.distribute else value
        return input

    async def call(self) -> bool:
        data_values = dict(self.data_values)
        try:
            count = self.iteration_count(data_values)
            inputs = [self.iteration_input(data_values, index) for index in range(count)]
        except MissingInputData as exc:
            LOGGER.error("%s", exc)
            return False

        semaphore = asyncio.Semaphore(self.max_concurrency) if self.max_concurrency > 0 else None

        async def iterate(index: int) -> Tuple[bool, Dict[str, Any]]:
            body = self.body.clone()
            body.pass_result(inputs[index])
            body.enter_loop(index, count, self.max_concurrency)
            if semaphore is None:
                success = await body.call()
            else:
                async with semaphore:
                    success = await body.call()
            produced = merge_results(body.terminal_results())
            # control bodies echo their input; only new keys are joined
            return success, {key: value for key, value in produced.items() if key not in inputs[index]}

        LOGGER.info("Loop %s: %d iterations, concurrency limit %d", self.name, count, self.max_concurrency)
        outcomes = await asyncio.gather(*(iterate(index) for index in range(count)), return_exceptions=True)

        success = True
        results: List[Dict[str, Any]] = []
        errors: List[BaseException] = []
        for index, outcome in enumerate(outcomes):
            if isinstance(outcome, BaseException):
                errors.append(outcome)
                results.append({})
                continue
            iteration_success, iteration_results = outcome
            if not iteration_success:
                LOGGER.error("Loop %s: iteration %d failed", self.name, index)
                success = False
            results.append(iteration_results)

        joined = dict(data_values)
        keys: List[str] = []
        for iteration_results in results:
            keys.extend(key for key in iteration_results if key not in keys)
        for key in keys:
            joined[key] = [iteration_results.get(key) for iteration_results in results]

        if errors:
            self._store_result(self._with_aliases(joined))
            raise errors[0]
        return await self._complete(joined, success)

    def subtrees(self) -> List[Node]:
        return [self.body]

    def clone(self) -> "BoundedLoopNode":
        twin = super().clone()
        twin.body = self.body.clone()
        return twin
