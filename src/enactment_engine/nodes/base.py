"""Base class of the execution tree."""
from __future__ import annotations

import copy
import threading
from abc import ABC, abstractmethod
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional

NOT_IN_LOOP = -1


def merge_results(results: Iterable[Optional[Mapping[str, Any]]]) -> Dict[str, Any]:
    merged: Dict[str, Any] = {}
    for result in results:
        if result:
            merged.update(result)
    return merged


class Node(ABC):
    """One vertex of the workflow execution tree.

    A node owns its children. Data reaches a node only through
    :meth:`pass_result`, which swaps in an immutable snapshot of the upstream
    output; concurrent writers never interleave and the last one wins.
    """

    def __init__(self, name: str, type: str, children: Optional[List["Node"]] = None) -> None:
        self._name = name
        self._type = type
        self.children: List[Node] = list(children or [])
        self._data_values: Mapping[str, Any] = MappingProxyType({})
        self._result: Optional[Dict[str, Any]] = None
        self._lock = threading.Lock()
        self.loop_counter = NOT_IN_LOOP
        self.max_loop_counter = NOT_IN_LOOP
        self.concurrency_limit = NOT_IN_LOOP

    @property
    def name(self) -> str:
        return self._name

    @property
    def type(self) -> str:
        return self._type

    @property
    def data_values(self) -> Mapping[str, Any]:
        return self._data_values

    @property
    def result(self) -> Optional[Dict[str, Any]]:
        return self._result

    def add_child(self, child: "Node") -> "Node":
        self.children.append(child)
        return child

    def pass_result(self, input: Mapping[str, Any]) -> None:
        snapshot = input if isinstance(input, MappingProxyType) else MappingProxyType(dict(input))
        with self._lock:
            self._data_values = snapshot
            for child in self.children:
                child.pass_result(snapshot)

    @abstractmethod
    async def call(self) -> bool:
        """Run this node and its children; return False on an ordinary failure."""

    def in_loop(self) -> bool:
        return self.loop_counter != NOT_IN_LOOP

    def enter_loop(self, loop_counter: int, max_loop_counter: int, concurrency_limit: int) -> None:
        self.loop_counter = loop_counter
        self.max_loop_counter = max_loop_counter
        self.concurrency_limit = concurrency_limit

    def _inherit_loop(self, child: "Node") -> None:
        if self.in_loop():
            child.enter_loop(self.loop_counter, self.max_loop_counter, self.concurrency_limit)

    def _store_result(self, result: Optional[Dict[str, Any]]) -> None:
        with self._lock:
            self._result = result

    async def _call_children(self, output: Mapping[str, Any]) -> bool:
        """Propagate ``output`` to each child, then run it; children run in order."""
        success = True
        for child in self.children:
            child.pass_result(output)
            self._inherit_loop(child)
            if not await child.call():
                success = False
        return success

    def terminal_results(self) -> List[Dict[str, Any]]:
        """Results of the nodes without children below (and including) this one."""
        if not self.children:
            return [self._result] if self._result is not None else []
        results: List[Dict[str, Any]] = []
        for child in self.children:
            results.extend(child.terminal_results())
        return results

    def subtrees(self) -> List["Node"]:
        """Nested subtrees run by this node itself, not counting its children."""
        return []

    def walk(self) -> Iterator["Node"]:
        yield self
        for inner in self.subtrees() + self.children:
            yield from inner.walk()

    def clone(self) -> "Node":
        """Fresh, unexecuted copy of this subtree sharing the immutable declarations."""
        twin = copy.copy(self)
        twin._lock = threading.Lock()
        twin._data_values = MappingProxyType({})
        twin._result = None
        twin.loop_counter = NOT_IN_LOOP
        twin.max_loop_counter = NOT_IN_LOOP
        twin.concurrency_limit = NOT_IN_LOOP
        twin.children = [child.clone() for child in self.children]
        return twin

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self._name!r}, type={self._type!r})"
