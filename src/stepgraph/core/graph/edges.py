"""Edge definitions for the graph system.

Edges form a closed tagged union discriminated by ``kind``:

- ``SimpleEdge``: a fixed transition ``source -> target``
- ``ConditionalEdge``: ``source -> destinations[router(state)]``

``START`` and ``END`` are sentinel pseudo-nodes marking the unique entry point
and the exit points of a graph.
"""

from typing import Annotated, Any, Callable, Dict, List, Literal, Union

from pydantic import BaseModel, Field, field_validator

from stepgraph.core.graph.errors import RoutingError

START = "__start__"
END = "__end__"

SENTINELS = frozenset({START, END})


class SimpleEdge(BaseModel):
    """A fixed, unconditional transition."""
    kind: Literal["simple"] = "simple"
    source: str
    target: str

    class Config:
        frozen = True

    def targets(self) -> List[str]:
        return [self.target]

    def resolve(self, state: Any) -> str:
        return self.target


class ConditionalEdge(BaseModel):
    """
    A transition whose destination is chosen at run time.

    Attributes:
        source: Node the edge leaves from
        router: Callable inspecting the state and returning a routing value
        destinations: Mapping from routing value to destination node name.
            A plain sequence of names is accepted and maps each name to itself.
    """
    kind: Literal["conditional"] = "conditional"
    source: str
    router: Callable[[Any], Any]
    destinations: Dict[Any, str]

    class Config:
        frozen = True
        arbitrary_types_allowed = True

    @field_validator("destinations", mode="before")
    @classmethod
    def _normalise_destinations(cls, value: Any) -> Any:
        if isinstance(value, (list, tuple, set, frozenset)):
            return {name: name for name in value}
        return value

    def targets(self) -> List[str]:
        """Destinations in declaration order."""
        return list(self.destinations.values())

    def resolve(self, state: Any) -> str:
        """Evaluate the router against ``state`` and look up the destination.

        Raises:
            RoutingError: If the router fails or returns an unmapped value
        """
        try:
            value = self.router(state)
        except Exception as e:
            raise RoutingError(
                f"Router for node '{self.source}' raised {type(e).__name__}: {e}",
                node=self.source
            ) from e

        try:
            return self.destinations[value]
        except (KeyError, TypeError):
            raise RoutingError(
                f"Router for node '{self.source}' returned {value!r}, "
                f"expected one of {sorted(map(repr, self.destinations))}",
                node=self.source,
                value=value
            ) from None


Edge = Annotated[Union[SimpleEdge, ConditionalEdge], Field(discriminator="kind")]
