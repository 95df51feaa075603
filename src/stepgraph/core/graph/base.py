"""Graph Base Classes

This module defines the graph definition used to assemble workflows:
1. Register named nodes (plain callables or Node instances)
2. Connect them with simple or conditional edges, including START and END
3. Declare per-field state strategies
4. Validate the structure and compile it into an immutable CompiledGraph

Example:
    ```python
    def classify(state):
        return {"label": "negative" if state.get("sentiment", str) == "bad" else "positive"}

    graph = Graph()
    graph.add_node("classify", classify)
    graph.add_node("finish", lambda state: {"done": True})
    graph.add_node("escalate", lambda state: {"escalated": True})

    graph.add_edge(START, "classify")
    graph.add_conditional_edges(
        "classify",
        lambda state: state.get("label", str),
        {"positive": "finish", "negative": "escalate"},
    )
    graph.add_edge("finish", END)
    graph.add_edge("escalate", END)

    result = graph.compile().run({"sentiment": "bad"})
    ```
"""

import logging
from collections import deque
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Set, Union

from pydantic import BaseModel, Field, PrivateAttr

from stepgraph.core.graph.compiled import CompiledGraph
from stepgraph.core.graph.config import GraphConfig
from stepgraph.core.graph.edges import END, SENTINELS, START, ConditionalEdge, Edge, SimpleEdge
from stepgraph.core.graph.errors import GraphStructureError
from stepgraph.core.graph.nodes.base.node import Node, NodeAction
from stepgraph.core.graph.state import StateStrategy, StrategyRegistry
from stepgraph.core.logging import LogComponent, get_logger, log_verbose

RULE_DUPLICATE_NODE = "duplicate_node"
RULE_RESERVED_NAME = "reserved_name"
RULE_DUPLICATE_CONDITIONAL = "duplicate_conditional_edges"
RULE_FROZEN = "frozen"
RULE_UNKNOWN_NODE = "unknown_node"
RULE_ENTRY_POINT = "entry_point"
RULE_UNREACHABLE = "unreachable"


def _label(name: str) -> str:
    if name == START:
        return "START"
    if name == END:
        return "END"
    return f"'{name}'"


class Graph(BaseModel):
    """A mutable graph definition, built incrementally and compiled once.

    The definition accepts nodes and edges in any order; references are only
    checked by ``validate``, which ``compile`` runs first. After a successful
    compile the definition is frozen and further changes are rejected.

    Attributes:
        nodes: Node name -> Node, in registration order
        edges: Simple and conditional edges, in declaration order
        registry: Per-field state strategies
        config: Execution settings handed to the compiled graph
    """
    nodes: Dict[str, Node] = Field(default_factory=dict)
    edges: List[Edge] = Field(default_factory=list)
    registry: StrategyRegistry = Field(default_factory=StrategyRegistry)
    config: GraphConfig = Field(default_factory=GraphConfig)
    _logger: logging.Logger = PrivateAttr()
    _compiled: bool = PrivateAttr(default=False)

    def __init__(self, strategies: Optional[Mapping[str, Union[StateStrategy, str]]] = None, **data):
        super().__init__(**data)
        self._logger = get_logger(LogComponent.GRAPH)
        for field, strategy in (strategies or {}).items():
            self.set_strategy(field, strategy)

    def _ensure_mutable(self) -> None:
        if self._compiled:
            raise GraphStructureError(RULE_FROZEN, ["Graph has been compiled and can no longer change"])

    def add_node(self, node: Union[str, Node], action: Optional[NodeAction] = None) -> None:
        """Register a node.

        Args:
            node: A Node instance, or the name for a new node wrapping ``action``
            action: Callable (sync or async) taking the state; required when
                ``node`` is a name

        Raises:
            GraphStructureError: If the name is reserved or already registered
        """
        self._ensure_mutable()
        if isinstance(node, str):
            if node in SENTINELS:
                raise GraphStructureError(RULE_RESERVED_NAME, [f"Node name {_label(node)} is reserved"])
            if action is None:
                raise ValueError(f"Node '{node}' needs an action")
            node = Node(name=node, action=action)
        elif action is not None:
            raise ValueError("Pass either a Node instance or a name with an action, not both")

        if node.name in self.nodes:
            raise GraphStructureError(RULE_DUPLICATE_NODE, [f"Node '{node.name}' is already registered"])

        self.nodes[node.name] = node
        self._logger.debug(f"Added node: {node.name} of type {type(node).__name__}")

    def add_edge(self, source: str, target: str) -> None:
        """Add a simple edge. References are checked at validation time."""
        self._ensure_mutable()
        self.edges.append(SimpleEdge(source=source, target=target))
        self._logger.debug(f"Added edge: {source} --> {target}")

    def add_conditional_edges(
        self,
        source: str,
        router: Callable[[Any], Any],
        destinations: Union[Mapping[Any, str], Sequence[str]]
    ) -> None:
        """Add a conditional edge group leaving ``source``.

        Args:
            source: Node the edges leave from
            router: Called with the post-invocation state; its return value
                selects the destination
            destinations: Routing value -> destination node, or a sequence of
                node names each routed to by its own name

        Raises:
            GraphStructureError: If ``source`` already has a conditional edge group
        """
        self._ensure_mutable()
        for edge in self.edges:
            if edge.kind == "conditional" and edge.source == source:
                raise GraphStructureError(
                    RULE_DUPLICATE_CONDITIONAL,
                    [f"Node {_label(source)} already has a conditional edge group"]
                )
        edge = ConditionalEdge(source=source, router=router, destinations=destinations)
        self.edges.append(edge)
        self._logger.debug(f"Added conditional edges: {source} --> {edge.destinations}")

    def set_entry_point(self, name: str) -> None:
        """Route START to ``name``."""
        self.add_edge(START, name)

    def set_finish_point(self, name: str) -> None:
        """Route ``name`` to END."""
        self.add_edge(name, END)

    def chain(self, names: Sequence[str]) -> None:
        """Connect already registered nodes in sequence with simple edges."""
        for source, target in zip(names, names[1:]):
            self.add_edge(source, target)

    def set_strategy(self, field: str, strategy: Union[StateStrategy, str]) -> None:
        """Declare how updates to ``field`` combine with its current value."""
        self._ensure_mutable()
        self.registry = self.registry.with_strategy(field, strategy)

    def outgoing(self, name: str) -> List[Union[SimpleEdge, ConditionalEdge]]:
        """Edges leaving ``name`` in declaration order."""
        return [edge for edge in self.edges if edge.source == name]

    def validate(self) -> None:
        """Check the graph structure.

        Rules are checked by category, in order: unknown node references,
        the START edge, then reachability. The first failing category raises
        with every violation found in it.

        Raises:
            GraphStructureError: If any rule is broken
        """
        known = set(self.nodes)

        violations: List[str] = []
        for edge in self.edges:
            if edge.source not in known and edge.source != START:
                violations.append(
                    f"Edge source {_label(edge.source)} is not a declared node or START"
                )
        for edge in self.edges:
            for target in edge.targets():
                if target not in known and target != END:
                    violations.append(
                        f"Edge {_label(edge.source)} -> {_label(target)}: "
                        f"destination is not a declared node or END"
                    )
        if violations:
            raise GraphStructureError(RULE_UNKNOWN_NODE, violations)

        entry_edges = self.outgoing(START)
        if not entry_edges:
            raise GraphStructureError(RULE_ENTRY_POINT, ["No edge leaves START"])
        if len(entry_edges) > 1:
            raise GraphStructureError(
                RULE_ENTRY_POINT,
                [f"Expected exactly one edge from START, found {len(entry_edges)}"]
            )

        reachable = self._reachable_from(START)
        unreachable = [name for name in self.nodes if name not in reachable]
        if unreachable:
            raise GraphStructureError(
                RULE_UNREACHABLE,
                [f"Node '{name}' is not reachable from START" for name in unreachable]
            )

    def _reachable_from(self, origin: str) -> Set[str]:
        adjacency: Dict[str, List[str]] = {}
        for edge in self.edges:
            adjacency.setdefault(edge.source, []).extend(edge.targets())

        seen: Set[str] = {origin}
        queue = deque([origin])
        while queue:
            for target in adjacency.get(queue.popleft(), []):
                if target not in seen:
                    seen.add(target)
                    queue.append(target)
        return seen

    def compile(self, config: Optional[GraphConfig] = None) -> CompiledGraph:
        """Validate the definition and freeze it into a CompiledGraph.

        Raises:
            GraphStructureError: If validation fails
        """
        self.validate()

        transitions: Dict[str, Union[SimpleEdge, ConditionalEdge]] = {}
        for name in [START, *self.nodes]:
            edges = self.outgoing(name)
            simple = [edge for edge in edges if edge.kind == "simple"]
            if simple:
                transitions[name] = simple[0]
            elif edges:
                transitions[name] = edges[0]

        config = config or self.config
        self._compiled = True
        compiled = CompiledGraph(
            nodes={name: node.bind(config) for name, node in self.nodes.items()},
            edges=list(self.edges),
            transitions=transitions,
            registry=self.registry,
            config=config
        )
        log_verbose(
            self._logger,
            f"Compiled graph with {len(self.nodes)} nodes and {len(self.edges)} edges"
        )
        return compiled
