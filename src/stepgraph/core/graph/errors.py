"""Error taxonomy for graph construction and execution.

Construction errors (``GraphStructureError``) are raised while a graph is being
built or compiled. Everything else is a run-time error: the engine captures it
on the failing execution step and hands it back inside a ``RunResult`` instead
of raising.
"""

from typing import Any, Iterable, List, Optional


class GraphError(Exception):
    """Base class for all stepgraph errors."""


class GraphStructureError(GraphError, ValueError):
    """The graph definition violates a structural rule.

    Attributes:
        rule: Short identifier of the rule that was broken
            such as ``"unknown_node"`` or ``"unreachable"``
        violations: Every violation found for that rule category
    """

    def __init__(self, rule: str, violations: Iterable[str]):
        self.rule = rule
        self.violations: List[str] = list(violations)
        detail = "; ".join(self.violations)
        super().__init__(f"[{rule}] {detail}")


class NodeExecutionError(GraphError):
    """A node action reported (returned or raised) a failure."""

    def __init__(self, message: str, node: Optional[str] = None, cause: Optional[BaseException] = None):
        self.node = node
        self.cause = cause
        super().__init__(message)


class TypeMismatch(NodeExecutionError, TypeError):
    """A state field was read or combined with an incompatible type."""

    def __init__(self, field: str, expected: Any, actual: Any, message: Optional[str] = None):
        self.field = field
        self.expected = expected
        self.actual = actual
        super().__init__(
            message or (
                f"Field '{field}' holds {_type_name(actual)}, "
                f"expected {_type_name(expected)}"
            )
        )


class RoutingError(GraphError):
    """A conditional edge could not resolve a destination."""

    def __init__(self, message: str, node: str, value: Any = None):
        self.node = node
        self.value = value
        super().__init__(message)


class IterationLimitExceeded(GraphError):
    """Traversal needed more node invocations than the configured cap."""

    def __init__(self, limit: int):
        self.limit = limit
        super().__init__(f"Run exceeded the maximum of {limit} steps")


class CancelledError(GraphError):
    """The run was cancelled between node invocations."""


def _type_name(value: Any) -> str:
    if isinstance(value, type):
        return value.__name__
    if isinstance(value, tuple):
        return " | ".join(_type_name(v) for v in value)
    return type(value).__name__
