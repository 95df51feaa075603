"""Base node class for the graph system.

This module defines the Node abstraction. A Node is a named unit of work (a
model call, a retrieval step, plain business logic) executed against the run's
shared state. Nodes are validated via Pydantic.

An action receives a private working copy of the state and returns one of:
    - the updated ``StateContainer``
    - a mapping of field updates, combined through the strategy registry
    - ``None`` when it changed nothing (or updated the container in place)
    - a ``NodeExecutionError`` instance to report a failure without raising

Typical Usage:
    - Pass a plain callable to ``Graph.add_node(name, action)``
    - Or subclass Node and override ``process``
"""

from collections.abc import Mapping
from typing import Any, Callable, Dict, List, Optional, Protocol, runtime_checkable

from mirascope.core import BaseMessageParam
from pydantic import BaseModel, Field, model_validator

from stepgraph.core.graph.config import GraphConfig
from stepgraph.core.graph.edges import SENTINELS
from stepgraph.core.graph.errors import NodeExecutionError
from stepgraph.core.graph.nodes.base.blocking import call_blocking
from stepgraph.core.graph.state import StateContainer
from stepgraph.core.logging import LogComponent, get_logger, log_verbose

logger = get_logger(LogComponent.NODES)

MESSAGES_FIELD = "messages"


@runtime_checkable
class NodeAction(Protocol):
    """Callable contract every node action satisfies."""

    def __call__(self, state: StateContainer) -> Any: ...


def message_update(content: str, role: str = "user") -> Dict[str, Any]:
    """Build a chat message dict suitable for an APPEND-governed messages field."""
    return BaseMessageParam(role=role, content=content).model_dump()


def apply_result(working: StateContainer, result: Any) -> StateContainer:
    """Normalise an action's return value into the resulting container.

    Raises:
        NodeExecutionError: If the action returned a failure or an unsupported value
        TypeMismatch: If a returned update violates its field's strategy
    """
    if result is None:
        return working
    if isinstance(result, NodeExecutionError):
        raise result
    if isinstance(result, StateContainer):
        if result.registry is not working.registry:
            return StateContainer(data=result.data, registry=working.registry)
        return result
    if isinstance(result, Mapping):
        working.update_many(result)
        return working
    raise NodeExecutionError(
        f"Action returned unsupported value of type {type(result).__name__}; "
        "expected a StateContainer, a mapping of updates, or None"
    )


class Node(BaseModel):
    """
    Named unit of work in a graph.

    Attributes:
        name: Unique node name within its graph
        action: Callable (sync or async) invoked with the working state
        metadata: Optional node metadata
    """
    name: str = Field(..., description="Unique name for this node")
    action: Optional[Callable[..., Any]] = Field(default=None)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    class Config:
        arbitrary_types_allowed = True

    @model_validator(mode='after')
    def validate_node(self) -> 'Node':
        """Validate node configuration."""
        if not self.name:
            raise ValueError("Node must have a name")
        if self.name in SENTINELS:
            raise ValueError(f"Node name '{self.name}' is reserved")
        if self.action is not None and not callable(self.action):
            raise ValueError(f"Node {self.name} requires a callable action")
        return self

    def process(self, state: StateContainer) -> Any:
        """Run the node's logic. Override in subclasses that do not take an action."""
        if self.action is None:
            raise NotImplementedError("Subclasses must implement process() or supply an action")
        return call_blocking(self.action, state)

    def bind(self, config: GraphConfig) -> "Node":
        """Return the node as it should run under ``config``."""
        return self

    def invoke(self, state: StateContainer) -> StateContainer:
        """Run the node against a working copy of ``state``.

        The caller's container is never touched, so a failed invocation leaves
        the run state exactly as it was.

        Raises:
            NodeExecutionError: On any failure, with ``node`` set to this node
        """
        working = state.fork()
        log_verbose(logger, f"Node {self.name} starting")
        try:
            return apply_result(working, self.process(working))
        except NodeExecutionError as e:
            if e.node is None:
                e.node = self.name
            raise
        except Exception as e:
            raise NodeExecutionError(
                f"Node '{self.name}' failed: {type(e).__name__}: {e}",
                node=self.name,
                cause=e
            ) from e

    def add_message(self, state: StateContainer, content: str, role: str = "user") -> None:
        """Append a chat message to the state's messages field."""
        state.update(MESSAGES_FIELD, message_update(content, role))

    def get_messages(self, state: StateContainer) -> List[Dict[str, Any]]:
        """Return the chat messages accumulated so far."""
        return state.get(MESSAGES_FIELD, list, default=[])

    def set_metadata(self, key: str, value: Any) -> None:
        self.metadata[key] = value

    def get_metadata(self, key: str, default: Any = None) -> Any:
        return self.metadata.get(key, default)
