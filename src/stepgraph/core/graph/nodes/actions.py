"""
Action Node Implementation

ActionNode wraps an arbitrary tool callable (sync or async) so it can run as a
graph step. It supports:
    - Keyword inputs resolved from state fields via ``input_map``, including
      dotted references into nested mappings.
    - Required field checks (``required_state``) before the tool runs.
    - An optional timeout bounding the tool call.
    - Writing the tool's result to a single state field (``output_key``).

AsyncActionNode runs a plain action off the traversal thread with an optional
timeout, for actions that wrap asynchronous clients.

Example:
--------
>>> def add(x: int, y: int) -> int:
...     return x + y
>>>
>>> node = ActionNode(
...     name="add",
...     tool=add,
...     input_map={"x": "calc_args.x", "y": "calc_args.y"},
...     required_state=["calc_args"],
...     output_key="sum",
... )
>>> graph.add_node(node)
"""

import inspect
from datetime import datetime
from functools import partial
from typing import Any, Callable, Dict, List, Optional

from pydantic import Field, model_validator

from stepgraph.core.graph.nodes.base.blocking import await_blocking, call_blocking, run_on_worker
from stepgraph.core.graph.nodes.base.node import Node
from stepgraph.core.graph.state import StateContainer
from stepgraph.core.logging import Colors, LogComponent, get_logger

logger = get_logger(LogComponent.NODES)


class ActionNode(Node):
    """
    Node that executes a tool callable with inputs mapped from state.

    Attributes:
        tool: The callable (sync or async) to execute
        input_map: Tool parameter name -> dotted state reference
        required_state: Fields that must be present before execution
        output_key: State field receiving the tool's result
        timeout: Optional bound, in seconds, on the tool call
    """
    tool: Callable[..., Any] = Field(
        ...,
        description="A callable (sync or async) that this node executes."
    )
    input_map: Dict[str, str] = Field(default_factory=dict)
    required_state: List[str] = Field(
        default_factory=list,
        description="Required state fields to check before execution."
    )
    output_key: str = Field(
        default="result",
        description="The state field the tool's result is written to."
    )
    timeout: Optional[float] = Field(default=None, gt=0)

    @model_validator(mode='after')
    def validate_tool_config(self) -> "ActionNode":
        """Validate the configuration of the action node."""
        if not callable(self.tool):
            raise ValueError(f"ActionNode {self.name} requires a callable 'tool'.")
        return self

    def process(self, state: StateContainer) -> Dict[str, Any]:
        """Execute the tool and return its result as a state update."""
        start_time = datetime.now()

        self._validate_required_state(state)
        inputs = self._prepare_input_data(state)
        result = call_blocking(partial(self.tool, **inputs), timeout=self.timeout)

        elapsed = (datetime.now() - start_time).total_seconds()
        logger.debug(
            f"{Colors.SUCCESS}✓ Node '{self.name}' tool completed in {elapsed:.2f}s{Colors.RESET}"
        )
        return {self.output_key: result}

    def _validate_required_state(self, state: StateContainer) -> None:
        """Raise ValueError if any required field is missing."""
        missing_keys = [key for key in self.required_state if key not in state]
        if missing_keys:
            raise ValueError(
                f"Missing required state keys for node '{self.name}': {missing_keys}"
            )

    def _prepare_input_data(self, state: StateContainer) -> Dict[str, Any]:
        """Resolve ``input_map`` references like ``'field'`` or ``'field.nested.key'``."""
        input_data = {}
        for param_name, ref in self.input_map.items():
            field, _, nested_key = ref.partition(".")
            if field not in state:
                raise ValueError(
                    f"Field '{field}' not found in state for param '{param_name}'. "
                    f"Available fields: {sorted(state.keys())}"
                )
            value = state.get(field, object)
            if nested_key:
                value = self._get_nested_value(value, nested_key)
            input_data[param_name] = value
        return input_data

    @staticmethod
    def _get_nested_value(data: Any, dotted_key: str) -> Any:
        """Walk a dotted key path through nested mappings."""
        current = data
        for part in dotted_key.split('.'):
            if not isinstance(current, dict) or part not in current:
                raise ValueError(f"Key '{part}' not found while traversing '{dotted_key}'")
            current = current[part]
        return current


class AsyncActionNode(Node):
    """
    Node whose action runs off the traversal thread.

    A coroutine action is driven on a worker event loop; a synchronous one
    runs on a worker thread. Either way the traversal blocks until the action
    finishes or ``timeout`` elapses, which fails the node.

    Attributes:
        timeout: Optional bound, in seconds, on the action
    """
    timeout: Optional[float] = Field(default=None, gt=0)

    @model_validator(mode='after')
    def validate_action(self) -> "AsyncActionNode":
        if self.action is None:
            raise ValueError(f"AsyncActionNode {self.name} requires an action")
        return self

    def process(self, state: StateContainer) -> Any:
        if inspect.iscoroutinefunction(self.action):
            return await_blocking(self.action(state), self.timeout)
        return run_on_worker(self.action, state, timeout=self.timeout)
