"""Execution tree nodes"""

from .base import Node, merge_results
from .control import (
    BoundedLoopNode,
    BranchCase,
    BranchNode,
    Condition,
    ControlNode,
    LoopInput,
    ParallelNode,
    SequenceNode,
)
from .function import FunctionNode

__all__ = [
    "Node",
    "merge_results",
    "FunctionNode",
    "ControlNode",
    "SequenceNode",
    "ParallelNode",
    "BranchNode",
    "BranchCase",
    "Condition",
    "BoundedLoopNode",
    "LoopInput",
]
