"""stepgraph - strategy-driven workflow graph engine."""

from stepgraph.core.logging import configure_logging, LogLevel, LogComponent
from stepgraph.core.graph import (
    Graph,
    CompiledGraph,
    GraphConfig,
    START,
    END,
    StateStrategy,
    StateContainer,
    RunResult,
    RunStatus,
    CancellationToken,
)

__all__ = [
    'Graph',
    'CompiledGraph',
    'GraphConfig',
    'START',
    'END',
    'StateStrategy',
    'StateContainer',
    'RunResult',
    'RunStatus',
    'CancellationToken',
    'configure_logging',
    'LogLevel',
    'LogComponent'
]
