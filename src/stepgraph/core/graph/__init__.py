"""Graph package initialization.

Exposes core graph components and helpers for building workflows.
"""

from stepgraph.core.graph.errors import (
    GraphError,
    GraphStructureError,
    NodeExecutionError,
    TypeMismatch,
    RoutingError,
    IterationLimitExceeded,
    CancelledError,
)
from stepgraph.core.graph.state import StateStrategy, StrategyRegistry, StateContainer
from stepgraph.core.graph.edges import START, END, SimpleEdge, ConditionalEdge, Edge
from stepgraph.core.graph.execution import (
    RunStatus,
    ExecutionStep,
    RunResult,
    CancellationToken,
)
from stepgraph.core.graph.config import GraphConfig
from stepgraph.core.graph.nodes import (
    Node,
    NodeAction,
    ActionNode,
    AsyncActionNode,
    FanOutNode,
    blocking,
    message_update,
)
from stepgraph.core.graph.compiled import CompiledGraph
from stepgraph.core.graph.base import Graph
from stepgraph.core.graph.viz import GraphVisualizer

__all__ = [
    # Definition and execution
    "Graph",
    "CompiledGraph",
    "GraphConfig",
    "START",
    "END",
    "SimpleEdge",
    "ConditionalEdge",
    "Edge",

    # State
    "StateStrategy",
    "StrategyRegistry",
    "StateContainer",

    # Nodes
    "Node",
    "NodeAction",
    "ActionNode",
    "AsyncActionNode",
    "FanOutNode",
    "blocking",
    "message_update",

    # Execution records
    "RunStatus",
    "ExecutionStep",
    "RunResult",
    "CancellationToken",
    "GraphVisualizer",

    # Errors
    "GraphError",
    "GraphStructureError",
    "NodeExecutionError",
    "TypeMismatch",
    "RoutingError",
    "IterationLimitExceeded",
    "CancelledError",
]
