"""State management for the graph system.

This module provides:
1. StateStrategy: how a new value for a field combines with the old one
2. StrategyRegistry: an immutable field-name -> strategy lookup table
3. StateContainer: the key-value store every node in a run reads and updates
"""

import copy
from collections.abc import Mapping
from enum import Enum
from typing import Any, Dict, Iterator, Optional, Tuple, Type, TypeVar, Union

from pydantic import BaseModel, Field

from stepgraph.core.graph.errors import TypeMismatch
from stepgraph.core.logging import LogComponent, get_logger

T = TypeVar("T")

_MISSING = object()

logger = get_logger(LogComponent.STATE)


class StateStrategy(str, Enum):
    """Merge behaviour for a state field."""
    REPLACE = "replace"
    MERGE = "merge"
    APPEND = "append"


def _is_sequence(value: Any) -> bool:
    return isinstance(value, (list, tuple))


class StrategyRegistry(BaseModel):
    """Immutable mapping of field names to their merge strategy.

    Fields without a registered strategy use ``StateStrategy.REPLACE``. The
    registry never changes after construction; ``with_strategy`` returns a new
    registry instead.
    """
    strategies: Dict[str, StateStrategy] = Field(default_factory=dict)

    class Config:
        frozen = True

    def strategy_for(self, field: str) -> StateStrategy:
        """Return the strategy registered for ``field``."""
        return self.strategies.get(field, StateStrategy.REPLACE)

    def with_strategy(self, field: str, strategy: Union[StateStrategy, str]) -> "StrategyRegistry":
        """Return a copy of this registry with ``field`` bound to ``strategy``."""
        updated = dict(self.strategies)
        updated[field] = StateStrategy(strategy)
        return StrategyRegistry(strategies=updated)

    def combine(self, field: str, old: Any, new: Any) -> Any:
        """Combine ``old`` and ``new`` for ``field`` according to its strategy.

        ``old`` is ``_MISSING`` when the field has never been set.

        Raises:
            TypeMismatch: If the values violate the strategy's combination rule
        """
        strategy = self.strategy_for(field)

        if strategy is StateStrategy.MERGE:
            if old is _MISSING or old is None:
                old = {}
            if not isinstance(old, Mapping):
                raise TypeMismatch(field, dict, old, f"Cannot merge into field '{field}': "
                                   f"existing value is {type(old).__name__}, not a mapping")
            if not isinstance(new, Mapping):
                raise TypeMismatch(field, dict, new, f"Cannot merge into field '{field}': "
                                   f"new value is {type(new).__name__}, not a mapping")
            merged = dict(old)
            merged.update(new)
            return merged

        if strategy is StateStrategy.APPEND:
            if old is _MISSING or old is None:
                old = []
            if not _is_sequence(old):
                raise TypeMismatch(field, list, old, f"Cannot append to field '{field}': "
                                   f"existing value is {type(old).__name__}, not a sequence")
            if _is_sequence(new):
                return list(old) + list(new)
            return list(old) + [new]

        return new


class StateContainer(BaseModel):
    """
    Mutable, strategy-governed key-value store shared by the nodes of one run.

    Attributes:
        data: Current field values
        registry: Strategy registry used to combine updates
    """
    data: Dict[str, Any] = Field(default_factory=dict)
    registry: StrategyRegistry = Field(default_factory=StrategyRegistry)

    def get(
        self,
        field: str,
        expected_type: Union[Type[T], Tuple[type, ...]],
        default: Optional[Any] = None
    ) -> Any:
        """Read a field, asserting its type.

        Args:
            field: Field name
            expected_type: Type (or tuple of types) the stored value must be an
                instance of
            default: Returned when the field has never been set

        Raises:
            TypeMismatch: If the stored value is not an ``expected_type``
        """
        if field not in self.data:
            return default
        value = self.data[field]
        if not isinstance(value, expected_type):
            raise TypeMismatch(field, expected_type, value)
        return value

    def update(self, field: str, value: Any) -> None:
        """Combine ``value`` into ``field`` using its registered strategy.

        On a ``TypeMismatch`` the previous value is left untouched.
        """
        old = self.data.get(field, _MISSING)
        try:
            self.data[field] = self.registry.combine(field, old, value)
        except TypeMismatch as e:
            logger.debug(f"Rejected update to '{field}': {e}")
            raise

    def update_many(self, updates: Mapping) -> None:
        """Apply several updates in order; either all of them land or none do."""
        staged = dict(self.data)
        for field, value in updates.items():
            try:
                staged[field] = self.registry.combine(field, staged.get(field, _MISSING), value)
            except TypeMismatch as e:
                logger.debug(f"Rejected {len(updates)} staged updates at '{field}': {e}")
                raise
        self.data = staged

    def snapshot(self) -> Dict[str, Any]:
        """Return an independently owned deep copy of every field."""
        return copy.deepcopy(self.data)

    def fork(self) -> "StateContainer":
        """Return an independent container sharing this container's registry."""
        return StateContainer(data=self.snapshot(), registry=self.registry)

    def keys(self) -> Iterator[str]:
        return iter(self.data.keys())

    def __contains__(self, field: object) -> bool:
        return field in self.data

    def __len__(self) -> int:
        return len(self.data)
