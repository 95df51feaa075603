"""Execution records produced by a graph run.

This module provides:
1. RunStatus: terminal and in-flight states of a run
2. ExecutionStep: immutable record of one node invocation
3. RunResult: ordered steps plus the final state or the captured error
4. CancellationToken: cooperative cancellation signal checked between nodes
"""

import threading
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class RunStatus(str, Enum):
    """Execution state of a run."""
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"


class ExecutionStep(BaseModel):
    """
    Recorded outcome of one node invocation.

    Attributes:
        index: 1-based position of the step within its run
        node: Name of the invoked node
        state_before: Snapshot of the state handed to the node
        state_after: Snapshot after the node's updates (unchanged on failure)
        started_at: Wall-clock time the invocation started
        duration: Elapsed seconds
        success: Whether the node completed without error
        error: Captured error when ``success`` is False
    """
    index: int
    node: str
    state_before: Dict[str, Any]
    state_after: Dict[str, Any]
    started_at: datetime
    duration: float
    success: bool
    error: Optional[BaseException] = None

    class Config:
        frozen = True
        arbitrary_types_allowed = True

    def outcome(self) -> Dict[str, Any]:
        """Timing-independent view of the step, stable across identical runs."""
        return {
            "index": self.index,
            "node": self.node,
            "state_before": self.state_before,
            "state_after": self.state_after,
            "success": self.success,
            "error": repr(self.error) if self.error is not None else None,
        }


class RunResult(BaseModel):
    """
    Outcome of a complete run.

    Attributes:
        status: ``COMPLETED`` or ``FAILED``
        steps: Execution steps in invocation order
        state: Final state snapshot (last good snapshot when the run failed)
        error: Error that stopped a failed run
    """
    status: RunStatus
    steps: List[ExecutionStep] = Field(default_factory=list)
    state: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[BaseException] = None

    class Config:
        frozen = True
        arbitrary_types_allowed = True

    @property
    def completed(self) -> bool:
        return self.status == RunStatus.COMPLETED

    @property
    def failed(self) -> bool:
        return self.status == RunStatus.FAILED

    @property
    def last_step(self) -> Optional[ExecutionStep]:
        return self.steps[-1] if self.steps else None

    @property
    def path(self) -> List[str]:
        """Names of the invoked nodes, in order."""
        return [step.node for step in self.steps]

    def raise_for_status(self) -> "RunResult":
        """Re-raise the captured error of a failed run; return self otherwise."""
        if self.failed and self.error is not None:
            raise self.error
        return self


class CancellationToken:
    """Thread-safe flag a caller sets to stop a run before its next node."""

    def __init__(self):
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()
