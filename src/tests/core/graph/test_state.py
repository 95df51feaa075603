"""Tests for graph state management.

This module tests:
- Strategy registry lookups and immutability
- Replace, merge and append combination rules
- Typed reads from the state container
- Snapshot and fork isolation
"""

import logging

import pytest
from pydantic import ValidationError

from stepgraph.core.graph.errors import NodeExecutionError, TypeMismatch
from stepgraph.core.graph.state import StateContainer, StateStrategy, StrategyRegistry
from stepgraph.core.logging import LogComponent


@pytest.fixture
def registry() -> StrategyRegistry:
    """Fixture providing a registry with one field per strategy."""
    return StrategyRegistry(strategies={
        "context": StateStrategy.MERGE,
        "history": StateStrategy.APPEND,
        "answer": StateStrategy.REPLACE,
    })


@pytest.fixture
def state(registry: StrategyRegistry) -> StateContainer:
    """Fixture providing an empty container bound to the registry."""
    return StateContainer(registry=registry)


class TestStrategyRegistry:
    """Test suite for the strategy registry."""

    def test_unregistered_field_defaults_to_replace(self, registry: StrategyRegistry):
        assert registry.strategy_for("unknown") is StateStrategy.REPLACE

    def test_registered_strategies(self, registry: StrategyRegistry):
        assert registry.strategy_for("context") is StateStrategy.MERGE
        assert registry.strategy_for("history") is StateStrategy.APPEND

    def test_with_strategy_returns_new_registry(self, registry: StrategyRegistry):
        updated = registry.with_strategy("scores", "append")
        assert updated.strategy_for("scores") is StateStrategy.APPEND
        assert registry.strategy_for("scores") is StateStrategy.REPLACE

    def test_registry_is_frozen(self, registry: StrategyRegistry):
        with pytest.raises(ValidationError):
            registry.strategies = {}

    def test_invalid_strategy_name(self, registry: StrategyRegistry):
        with pytest.raises(ValueError):
            registry.with_strategy("field", "concatenate")


class TestReplaceStrategy:
    """Test suite for the replace strategy."""

    def test_replace_supersedes(self, state: StateContainer):
        state.update("answer", "first")
        state.update("answer", "second")
        assert state.get("answer", str) == "second"

    def test_replace_allows_type_change(self, state: StateContainer):
        state.update("answer", "text")
        state.update("answer", 42)
        assert state.get("answer", int) == 42


class TestMergeStrategy:
    """Test suite for the merge strategy."""

    def test_merge_disjoint_keys(self, state: StateContainer):
        state.update("context", {"x": 1})
        state.update("context", {"y": 2})
        assert state.get("context", dict) == {"x": 1, "y": 2}

    def test_merge_overwrites_overlapping_keys(self, state: StateContainer):
        state.update("context", {"x": 1})
        state.update("context", {"x": 2})
        assert state.get("context", dict) == {"x": 2}

    def test_merge_into_absent_field(self, state: StateContainer):
        state.update("context", {"x": 1})
        assert state.get("context", dict) == {"x": 1}

    def test_merge_non_mapping_value(self, state: StateContainer):
        state.update("context", {"x": 1})
        with pytest.raises(TypeMismatch) as exc_info:
            state.update("context", ["not", "a", "mapping"])
        assert exc_info.value.field == "context"
        assert state.get("context", dict) == {"x": 1}

    def test_merge_into_non_mapping(self):
        state = StateContainer(
            data={"context": "plain"},
            registry=StrategyRegistry(strategies={"context": StateStrategy.MERGE})
        )
        with pytest.raises(TypeMismatch):
            state.update("context", {"x": 1})
        assert state.get("context", str) == "plain"

    def test_merge_does_not_alias_previous_value(self, state: StateContainer):
        original = {"x": 1}
        state.update("context", original)
        state.update("context", {"y": 2})
        assert original == {"x": 1}


class TestAppendStrategy:
    """Test suite for the append strategy."""

    def test_append_preserves_order(self):
        state = StateContainer(
            data={"history": []},
            registry=StrategyRegistry(strategies={"history": StateStrategy.APPEND})
        )
        state.update("history", "a")
        state.update("history", "b")
        assert state.get("history", list) == ["a", "b"]

    def test_append_sequence_concatenates(self, state: StateContainer):
        state.update("history", "a")
        state.update("history", ["b", "c"])
        assert state.get("history", list) == ["a", "b", "c"]

    def test_append_tuple_concatenates(self, state: StateContainer):
        state.update("history", ("a", "b"))
        assert state.get("history", list) == ["a", "b"]

    def test_append_mapping_is_single_element(self, state: StateContainer):
        state.update("history", {"role": "user"})
        assert state.get("history", list) == [{"role": "user"}]

    def test_append_to_non_sequence(self):
        state = StateContainer(
            data={"history": 5},
            registry=StrategyRegistry(strategies={"history": StateStrategy.APPEND})
        )
        with pytest.raises(TypeMismatch):
            state.update("history", "a")
        assert state.get("history", int) == 5


class TestTypedAccess:
    """Test suite for typed reads."""

    def test_get_matching_type(self, state: StateContainer):
        state.update("answer", "yes")
        assert state.get("answer", str) == "yes"

    def test_get_type_mismatch(self, state: StateContainer):
        state.update("answer", "yes")
        with pytest.raises(TypeMismatch) as exc_info:
            state.get("answer", int)
        error = exc_info.value
        assert error.field == "answer"
        assert error.expected is int
        assert error.actual == "yes"
        assert "str" in str(error) and "int" in str(error)

    def test_type_mismatch_is_node_error(self, state: StateContainer):
        state.update("answer", "yes")
        with pytest.raises(NodeExecutionError):
            state.get("answer", list)

    def test_get_absent_field(self, state: StateContainer):
        assert state.get("missing", str) is None
        assert state.get("missing", str, default="fallback") == "fallback"

    def test_get_tuple_of_types(self, state: StateContainer):
        state.update("answer", 3.5)
        assert state.get("answer", (int, float)) == 3.5

    def test_no_coercion(self, state: StateContainer):
        state.update("answer", "1")
        with pytest.raises(TypeMismatch):
            state.get("answer", int)


class TestUpdateMany:
    """Test suite for batched updates."""

    def test_update_many_applies_in_order(self, state: StateContainer):
        state.update_many({"history": "a", "answer": "x", "context": {"k": 1}})
        assert state.get("history", list) == ["a"]
        assert state.get("answer", str) == "x"
        assert state.get("context", dict) == {"k": 1}

    def test_update_many_is_all_or_nothing(self, state: StateContainer):
        state.update("context", {"k": 1})
        with pytest.raises(TypeMismatch):
            state.update_many({"answer": "x", "context": "bad"})
        assert "answer" not in state
        assert state.get("context", dict) == {"k": 1}


class TestSnapshots:
    """Test suite for snapshots and forks."""

    def test_snapshot_is_independent(self, state: StateContainer):
        state.update("context", {"nested": {"value": 1}})
        snapshot = state.snapshot()
        snapshot["context"]["nested"]["value"] = 99
        assert state.get("context", dict) == {"nested": {"value": 1}}

    def test_snapshot_unaffected_by_later_updates(self, state: StateContainer):
        state.update("history", "a")
        snapshot = state.snapshot()
        state.update("history", "b")
        assert snapshot == {"history": ["a"]}

    def test_fork_shares_registry_not_data(self, state: StateContainer):
        state.update("history", "a")
        forked = state.fork()
        forked.update("history", "b")
        assert forked.registry is state.registry
        assert state.get("history", list) == ["a"]
        assert forked.get("history", list) == ["a", "b"]

    def test_container_helpers(self, state: StateContainer):
        state.update("answer", "x")
        assert "answer" in state
        assert list(state.keys()) == ["answer"]
        assert len(state) == 1


class TestRejectedUpdateLogging:
    """Test that rejected updates are reported on the state logger."""

    def test_rejected_merge_logged(self, state: StateContainer, caplog):
        state.update("context", {"x": 1})
        with caplog.at_level(logging.DEBUG, logger=LogComponent.STATE.value):
            with pytest.raises(TypeMismatch):
                state.update("context", "not a mapping")
        records = [r for r in caplog.records if r.name == LogComponent.STATE.value]
        assert len(records) == 1
        assert records[0].levelno == logging.DEBUG
        assert "context" in records[0].getMessage()

    def test_rejected_update_many_logged(self, state: StateContainer, caplog):
        with caplog.at_level(logging.DEBUG, logger=LogComponent.STATE.value):
            with pytest.raises(TypeMismatch):
                state.update_many({"answer": "yes", "history": 5, "context": 3})
        assert state.data == {}
        messages = [r.getMessage() for r in caplog.records if r.name == LogComponent.STATE.value]
        assert len(messages) == 1
        assert "Rejected 3 staged updates at 'context'" in messages[0]

    def test_accepted_updates_not_logged(self, state: StateContainer, caplog):
        with caplog.at_level(logging.DEBUG, logger=LogComponent.STATE.value):
            state.update("answer", "yes")
        assert not [r for r in caplog.records if r.name == LogComponent.STATE.value]
