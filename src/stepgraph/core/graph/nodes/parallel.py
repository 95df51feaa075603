"""Explicit parallel fan-out.

A ``FanOutNode`` runs several independent branch actions concurrently, each
against its own copy of the current state, and then folds every branch's
changes back into the node's working state through the strategy registry.
Branches are folded in declaration order, so MERGE and APPEND fields come out
the same on every run regardless of which branch finished first.
"""

from concurrent.futures import ThreadPoolExecutor, wait
from typing import Any, Callable, Dict, Optional

from pydantic import Field, model_validator

from stepgraph.core.graph.config import GraphConfig
from stepgraph.core.graph.errors import NodeExecutionError
from stepgraph.core.graph.nodes.base.node import Node
from stepgraph.core.graph.state import StateContainer, StateStrategy
from stepgraph.core.logging import LogComponent, get_logger, log_verbose

logger = get_logger(LogComponent.NODES)


class FanOutNode(Node):
    """
    Node dispatching independent branches in parallel.

    Attributes:
        branches: Branch name -> action, in the order results are merged
        timeout: Seconds to wait for all branches; defaults to the
            compiling graph's ``GraphConfig.fan_out_timeout``
        max_parallel: Worker threads; defaults to ``GraphConfig.max_parallel``

    Outside a compiled graph, unset limits come from a default GraphConfig.
    """
    branches: Dict[str, Callable[..., Any]] = Field(default_factory=dict)
    timeout: Optional[float] = Field(default=None, gt=0)
    max_parallel: Optional[int] = Field(default=None, gt=0)

    @model_validator(mode='after')
    def validate_branches(self) -> "FanOutNode":
        if not self.branches:
            raise ValueError(f"FanOutNode {self.name} requires at least one branch")
        return self

    def bind(self, config: GraphConfig) -> "FanOutNode":
        """Fill unset ``timeout`` and ``max_parallel`` from the graph's config."""
        return self.model_copy(update={
            "timeout": self.timeout or config.fan_out_timeout,
            "max_parallel": self.max_parallel or config.max_parallel,
        })

    def process(self, state: StateContainer) -> StateContainer:
        if self.timeout is None or self.max_parallel is None:
            return self.bind(GraphConfig()).process(state)
        timeout = self.timeout
        workers = min(self.max_parallel, len(self.branches))

        branch_nodes = [
            Node(name=f"{self.name}.{branch}", action=action)
            for branch, action in self.branches.items()
        ]
        base = state.snapshot()

        pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"stepgraph-{self.name}")
        try:
            futures = [pool.submit(node.invoke, state) for node in branch_nodes]
            _, pending = wait(futures, timeout=timeout)
        finally:
            pool.shutdown(wait=False, cancel_futures=True)

        if pending:
            unfinished = [node.name for node, future in zip(branch_nodes, futures) if future in pending]
            raise NodeExecutionError(
                f"Fan-out timed out after {timeout}s waiting for {unfinished}"
            )

        for node, future in zip(branch_nodes, futures):
            branch_state = future.result()
            changes = self._changes(state, base, branch_state.data)
            log_verbose(logger, f"Merging branch {node.name}: {sorted(changes)}")
            state.update_many(changes)

        return state

    @staticmethod
    def _changes(state: StateContainer, base: Dict[str, Any], after: Dict[str, Any]) -> Dict[str, Any]:
        """Express a branch's final state as updates relative to ``base``."""
        changes: Dict[str, Any] = {}
        for field, value in after.items():
            if field in base and base[field] == value:
                continue
            old = base.get(field)
            strategy = state.registry.strategy_for(field)

            if strategy is StateStrategy.APPEND and isinstance(old, (list, tuple)):
                if list(value[:len(old)]) != list(old):
                    raise NodeExecutionError(
                        f"Branch rewrote existing entries of append-only field '{field}'"
                    )
                changes[field] = list(value[len(old):])
            elif strategy is StateStrategy.MERGE and isinstance(old, dict):
                changes[field] = {
                    key: item for key, item in value.items()
                    if key not in old or old[key] != item
                }
            else:
                changes[field] = value
        return changes
