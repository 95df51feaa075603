"""Compiled graphs and the execution engine.

A CompiledGraph is produced by ``Graph.compile``. It holds the resolved node
lookup and one outgoing transition per node, plus the frozen strategy
registry, and no per-run state: one instance can serve many runs, including
concurrent ones.

Each run walks the graph on a single thread of control:

    RUNNING(START) -> resolve START edge
    RUNNING(node)  -> check cancellation and step cap, invoke node, record step,
                      resolve next node against the post-invocation state
    END            -> COMPLETED
    any failure    -> FAILED (steps so far plus the captured error)
"""

import asyncio
import logging
import time
from datetime import datetime
from typing import Any, Dict, Generator, List, Mapping, Optional

from pydantic import BaseModel, PrivateAttr

from stepgraph.core.graph.config import GraphConfig
from stepgraph.core.graph.edges import END, START, Edge
from stepgraph.core.graph.errors import (
    CancelledError,
    GraphError,
    IterationLimitExceeded,
    NodeExecutionError,
    RoutingError,
)
from stepgraph.core.graph.execution import CancellationToken, ExecutionStep, RunResult, RunStatus
from stepgraph.core.graph.nodes.base.node import Node
from stepgraph.core.graph.state import StateContainer, StrategyRegistry
from stepgraph.core.logging import LogComponent, get_logger, log_state, log_step, log_verbose

# Marks a ``max_steps`` argument the caller did not pass
UNSET: Any = object()


class CompiledGraph(BaseModel):
    """
    Validated, immutable, reusable graph.

    Attributes:
        nodes: Node name -> Node
        edges: Every declared edge, for inspection and rendering
        transitions: Node name (or START) -> the edge used to leave it
        registry: Frozen state strategy registry
        config: Execution settings
    """
    nodes: Dict[str, Node]
    edges: List[Edge]
    transitions: Dict[str, Edge]
    registry: StrategyRegistry
    config: GraphConfig
    _logger: logging.Logger = PrivateAttr()

    class Config:
        frozen = True
        arbitrary_types_allowed = True

    def __init__(self, **data):
        super().__init__(**data)
        self._logger = get_logger(LogComponent.ENGINE)

    def run(
        self,
        initial: Optional[Mapping[str, Any]] = None,
        *,
        max_steps: Optional[int] = UNSET,
        cancel: Optional[CancellationToken] = None
    ) -> RunResult:
        """Execute the graph to completion or failure.

        Args:
            initial: Initial field values
            max_steps: Node invocations allowed; ``None`` disables the cap.
                When omitted, ``config.max_steps`` applies
            cancel: Token checked before every node invocation

        Returns:
            RunResult with every execution step, and the final state or the
            error that stopped the run. Run-time errors are never raised.
        """
        steps = self.stream(initial, max_steps=max_steps, cancel=cancel)
        while True:
            try:
                next(steps)
            except StopIteration as stop:
                return stop.value

    async def arun(
        self,
        initial: Optional[Mapping[str, Any]] = None,
        *,
        max_steps: Optional[int] = UNSET,
        cancel: Optional[CancellationToken] = None
    ) -> RunResult:
        """Execute ``run`` on a worker thread for asyncio callers."""
        return await asyncio.to_thread(self.run, initial, max_steps=max_steps, cancel=cancel)

    def stream(
        self,
        initial: Optional[Mapping[str, Any]] = None,
        *,
        max_steps: Optional[int] = UNSET,
        cancel: Optional[CancellationToken] = None
    ) -> Generator[ExecutionStep, None, RunResult]:
        """Execute the graph, yielding each ExecutionStep as it is produced.

        The generator's return value is the RunResult:

            result = yield from graph.stream(initial)
        """
        limit = self.config.max_steps if max_steps is UNSET else max_steps
        logging_config = self.config.logging_config
        state = StateContainer(data=dict(initial or {}), registry=self.registry)
        steps: List[ExecutionStep] = []

        def failed(error: GraphError, snapshot: Dict[str, Any]) -> RunResult:
            self._logger.debug(f"Run failed after {len(steps)} steps: {error}")
            return RunResult(status=RunStatus.FAILED, steps=steps, state=snapshot, error=error)

        try:
            current = self._next(START, state)
        except RoutingError as e:
            return failed(e, state.snapshot())

        while current != END:
            if cancel is not None and cancel.cancelled:
                return failed(CancelledError(f"Run cancelled before node '{current}'"), state.snapshot())
            if limit is not None and len(steps) >= limit:
                return failed(IterationLimitExceeded(limit), state.snapshot())

            node = self.nodes[current]
            before = state.snapshot()
            started_at = datetime.now()
            t0 = time.perf_counter()
            try:
                updated = node.invoke(state)
            except NodeExecutionError as e:
                step = ExecutionStep(
                    index=len(steps) + 1,
                    node=current,
                    state_before=before,
                    state_after=state.snapshot(),
                    started_at=started_at,
                    duration=time.perf_counter() - t0,
                    success=False,
                    error=e
                )
                steps.append(step)
                yield step
                return failed(e, state.snapshot())

            duration = time.perf_counter() - t0
            if cancel is not None and cancel.cancelled:
                # The in-flight result is discarded
                return failed(CancelledError(f"Run cancelled during node '{current}'"), before)

            state = updated
            step = ExecutionStep(
                index=len(steps) + 1,
                node=current,
                state_before=before,
                state_after=state.snapshot(),
                started_at=started_at,
                duration=duration,
                success=True
            )
            steps.append(step)
            log_verbose(self._logger, f"Step {step.index}: {current} completed in {duration:.3f}s")
            if logging_config.show_state_snapshots:
                log_state(self._logger, step.state_after, prefix="  ")
            yield step

            try:
                current = self._next(current, state)
            except RoutingError as e:
                return failed(e, state.snapshot())
            if logging_config.show_node_transitions:
                log_step(self._logger, f"{node.name} --> {current}")
            else:
                log_verbose(self._logger, f"Transitioning {node.name} --> {current}")

        log_verbose(self._logger, f"Run completed after {len(steps)} steps")
        return RunResult(status=RunStatus.COMPLETED, steps=steps, state=state.snapshot())

    def _next(self, name: str, state: StateContainer) -> str:
        transition = self.transitions.get(name)
        if transition is None:
            raise RoutingError(f"Node '{name}' has no outgoing edge", node=name)
        return transition.resolve(state)
