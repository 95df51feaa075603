"""Core modules for stepgraph."""

from stepgraph.core.logging import configure_logging, LogLevel, LogComponent
from stepgraph.core.graph import Graph, CompiledGraph, GraphConfig, START, END

__all__ = [
    'Graph',
    'CompiledGraph',
    'GraphConfig',
    'START',
    'END',
    'configure_logging',
    'LogLevel',
    'LogComponent'
]
