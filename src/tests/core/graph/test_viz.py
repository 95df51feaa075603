"""Tests for graph visualization."""

import pytest

from stepgraph.core.graph.base import Graph
from stepgraph.core.graph.compiled import CompiledGraph
from stepgraph.core.graph.edges import END, START
from stepgraph.core.graph.viz import GraphVisualizer


@pytest.fixture
def compiled() -> CompiledGraph:
    graph = Graph()
    graph.add_node("classify", lambda s: {"sentiment": s.get("text", str)})
    graph.add_node("finish", lambda s: None)
    graph.add_node("human review", lambda s: None)
    graph.add_edge(START, "classify")
    graph.add_conditional_edges(
        "classify",
        lambda s: "negative" if s.get("sentiment", str) == "bad" else "positive",
        {"positive": "finish", "negative": "human review"}
    )
    graph.add_edge("finish", END)
    graph.add_edge("human review", END)
    return graph.compile()


class TestRenderGraph:
    """Test suite for Mermaid rendering."""

    def test_nodes_and_sentinels(self, compiled: CompiledGraph):
        chart = GraphVisualizer(compiled).render_graph()
        lines = chart.splitlines()
        assert lines[0] == "flowchart TD"
        assert "__start__([START])" in chart
        assert "__end__([END])" in chart
        assert 'n_human_review["human review"]' in chart

    def test_edges(self, compiled: CompiledGraph):
        chart = GraphVisualizer(compiled).render_graph()
        assert "__start__ --> n_classify" in chart
        assert 'n_classify -. "negative" .-> n_human_review' in chart
        assert "n_finish --> __end__" in chart


class TestRenderExecution:
    """Test suite for execution traces."""

    def test_completed_run(self, compiled: CompiledGraph):
        result = compiled.run({"text": "bad"})
        lines = GraphVisualizer(compiled).render_execution(result).splitlines()
        assert len(lines) == 3
        assert "✓ classify" in lines[0]
        assert "✓ human review" in lines[1]
        assert lines[-1] == "COMPLETED"

    def test_failed_run(self, compiled: CompiledGraph):
        result = compiled.run({"text": 3})
        trace = GraphVisualizer(compiled).render_execution(result)
        assert "✗ classify" in trace
        assert trace.splitlines()[-1].startswith("FAILED: TypeMismatch")
