"""Graph visualization tools."""

from typing import List

from stepgraph.core.graph.compiled import CompiledGraph
from stepgraph.core.graph.edges import END, START
from stepgraph.core.graph.execution import RunResult


def _node_id(name: str) -> str:
    if name == START:
        return "__start__"
    if name == END:
        return "__end__"
    return "n_" + "".join(ch if ch.isalnum() else "_" for ch in name)


class GraphVisualizer:
    """Render graph structure and execution traces as text."""

    def __init__(self, graph: CompiledGraph):
        self.graph = graph

    def render_graph(self) -> str:
        """Render the graph as a Mermaid flowchart."""
        lines: List[str] = ["flowchart TD", f"    {_node_id(START)}([START])"]
        for name in self.graph.nodes:
            lines.append(f"    {_node_id(name)}[\"{name}\"]")
        lines.append(f"    {_node_id(END)}([END])")

        for edge in self.graph.edges:
            source = _node_id(edge.source)
            if edge.kind == "simple":
                lines.append(f"    {source} --> {_node_id(edge.target)}")
            else:
                for value, target in edge.destinations.items():
                    lines.append(f"    {source} -. \"{value}\" .-> {_node_id(target)}")
        return "\n".join(lines)

    def render_execution(self, result: RunResult) -> str:
        """Render a run as one line per execution step plus a status line."""
        lines = []
        for step in result.steps:
            marker = "✓" if step.success else "✗"
            line = f"{step.index:>3}. {marker} {step.node} ({step.duration * 1000:.1f} ms)"
            if step.error is not None:
                line += f" - {type(step.error).__name__}: {step.error}"
            lines.append(line)
        status = f"{result.status.value.upper()}"
        if result.error is not None:
            status += f": {type(result.error).__name__}: {result.error}"
        lines.append(status)
        return "\n".join(lines)
