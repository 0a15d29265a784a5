"""
FaaS enactment engine - fault tolerant execution of serverless workflows
"""

__version__ = "0.1.0"

from .builder import TreeBuilder, WorkflowDefinition
from .config import EngineSettings
from .credentials import ProviderAccounts, load_accounts
from .engine import ExecutionEngine, WorkflowResult
from .fault_tolerance import FaultToleranceEngine
from .gateway import HttpGateway, InvocationGateway, LocalGateway
from .identity import INVOCATION_COUNTER, InvocationCounter
from .nodes import (
    BoundedLoopNode,
    BranchNode,
    FunctionNode,
    Node,
    ParallelNode,
    SequenceNode,
)
from .output_parser import OutputParser
from .runtime import EngineRuntime

__all__ = [
    "TreeBuilder",
    "WorkflowDefinition",
    "EngineSettings",
    "ProviderAccounts",
    "load_accounts",
    "ExecutionEngine",
    "WorkflowResult",
    "FaultToleranceEngine",
    "HttpGateway",
    "InvocationGateway",
    "LocalGateway",
    "INVOCATION_COUNTER",
    "InvocationCounter",
    "Node",
    "FunctionNode",
    "SequenceNode",
    "ParallelNode",
    "BranchNode",
    "BoundedLoopNode",
    "OutputParser",
    "EngineRuntime",
]
