"""Node package initialization.

Exposes node types and helpers for building workflows.
"""

from stepgraph.core.graph.nodes.base.blocking import blocking
from stepgraph.core.graph.nodes.base.node import (
    MESSAGES_FIELD,
    Node,
    NodeAction,
    message_update,
)
from stepgraph.core.graph.nodes.actions import ActionNode, AsyncActionNode
from stepgraph.core.graph.nodes.parallel import FanOutNode

__all__ = [
    # Base node types
    "Node",
    "NodeAction",
    "ActionNode",
    "AsyncActionNode",
    "FanOutNode",

    # Adapters and helpers
    "blocking",
    "message_update",
    "MESSAGES_FIELD",
]
