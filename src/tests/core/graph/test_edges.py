"""Tests for simple and conditional edges."""

import pytest
from pydantic import TypeAdapter

from stepgraph.core.graph.edges import END, ConditionalEdge, Edge, SimpleEdge
from stepgraph.core.graph.errors import RoutingError
from stepgraph.core.graph.state import StateContainer


@pytest.fixture
def state() -> StateContainer:
    return StateContainer(data={"sentiment": "bad"})


def route_sentiment(state: StateContainer) -> str:
    return "negative" if state.get("sentiment", str) == "bad" else "positive"


class TestSimpleEdge:
    """Test suite for simple edges."""

    def test_resolve_is_fixed(self, state: StateContainer):
        edge = SimpleEdge(source="a", target="b")
        assert edge.kind == "simple"
        assert edge.resolve(state) == "b"
        assert edge.targets() == ["b"]


class TestConditionalEdge:
    """Test suite for conditional edges."""

    def test_resolve_mapped_value(self, state: StateContainer):
        edge = ConditionalEdge(
            source="classify",
            router=route_sentiment,
            destinations={"positive": "finish", "negative": "escalate"}
        )
        assert edge.kind == "conditional"
        assert edge.resolve(state) == "escalate"

    def test_sequence_destinations_map_to_themselves(self, state: StateContainer):
        edge = ConditionalEdge(source="a", router=lambda s: "b", destinations=["b", END])
        assert edge.destinations == {"b": "b", END: END}
        assert edge.resolve(state) == "b"

    def test_unmapped_value(self, state: StateContainer):
        edge = ConditionalEdge(source="a", router=lambda s: "nowhere", destinations={"x": "b"})
        with pytest.raises(RoutingError) as exc_info:
            edge.resolve(state)
        assert exc_info.value.node == "a"
        assert exc_info.value.value == "nowhere"

    def test_unhashable_value(self, state: StateContainer):
        edge = ConditionalEdge(source="a", router=lambda s: ["b"], destinations={"b": "b"})
        with pytest.raises(RoutingError):
            edge.resolve(state)

    def test_router_exception(self, state: StateContainer):
        def broken(state):
            raise KeyError("label")

        edge = ConditionalEdge(source="a", router=broken, destinations={"b": "b"})
        with pytest.raises(RoutingError) as exc_info:
            edge.resolve(state)
        assert isinstance(exc_info.value.__cause__, KeyError)

    def test_non_string_routing_values(self, state: StateContainer):
        edge = ConditionalEdge(
            source="check",
            router=lambda s: "sentiment" in s,
            destinations={True: "yes", False: "no"}
        )
        assert edge.resolve(state) == "yes"


class TestEdgeUnion:
    """Test suite for the tagged edge union."""

    def test_discriminator_selects_variant(self):
        adapter = TypeAdapter(Edge)
        simple = adapter.validate_python({"kind": "simple", "source": "a", "target": "b"})
        conditional = adapter.validate_python({
            "kind": "conditional",
            "source": "a",
            "router": route_sentiment,
            "destinations": {"positive": "b"},
        })
        assert isinstance(simple, SimpleEdge)
        assert isinstance(conditional, ConditionalEdge)
