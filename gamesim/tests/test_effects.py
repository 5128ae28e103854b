"""
Tests for the effect resolver.

Tests:
- Variable and entity effects skip silently on bad input
- Bookkeeping effects fail explicitly on bad input
- apply_all stops at the first failure and keeps earlier writes
"""

import pytest

from ..engine_core.state import GameStatus
from ..spec_schema.effect_dsl import (
    AddEvent,
    AddLog,
    Message,
    ModifyOperation,
    ModifyVar,
    SetEntity,
    SetStatus,
    SetVar,
    TriggerEvent,
    UpdateScore,
)


class TestVariableEffects:
    """set_var and modify_var."""

    def test_set_var(self, store, resolver):
        outcome = resolver.apply(SetVar(target="power", value=75))
        assert outcome.applied and not outcome.skipped
        assert outcome.details["value"] == 75
        assert store.get_variable("power") == 75

    def test_set_var_clamps(self, store, resolver):
        resolver.apply(SetVar(target="power", value=500))
        assert store.get_variable("power") == 100

    def test_set_var_expression(self, store, resolver):
        resolver.apply(SetVar(target="power", value="temperature / 10"))
        assert store.get_variable("power") == 30

    def test_set_var_bad_expression_skipped(self, store, resolver):
        outcome = resolver.apply(SetVar(target="power", value="power >"))
        assert outcome.skipped
        assert outcome.reason == "Invalid value expression: power >"
        assert store.get_variable("power") == 50

    def test_set_var_unknown_target_skipped(self, resolver):
        outcome = resolver.apply(SetVar(target="ghost", value=1))
        assert outcome.skipped
        assert outcome.reason == "Unknown variable: ghost"
        assert not outcome.failed

    def test_set_var_without_target(self, resolver):
        assert resolver.apply(SetVar(value=1)).reason == "No target specified"

    def test_modify_var(self, store, resolver):
        resolver.apply(ModifyVar(target="power", operation=ModifyOperation.SUBTRACT, value=20))
        assert store.get_variable("power") == 30

    def test_modify_var_with_expression(self, store, resolver):
        resolver.apply(ModifyVar(target="temperature", operation=ModifyOperation.ADD, value="power / 10"))
        assert store.get_variable("temperature") == 305

    def test_modify_var_set_operation(self, store, resolver):
        resolver.apply(ModifyVar(target="power", operation=ModifyOperation.SET, value=5))
        assert store.get_variable("power") == 5

    def test_modify_var_divide_by_zero_leaves_value(self, store, resolver):
        outcome = resolver.apply(ModifyVar(target="power", operation=ModifyOperation.DIVIDE, value=0))
        assert outcome.applied
        assert store.get_variable("power") == 50

    def test_modify_var_non_numeric_skipped(self, store, resolver):
        outcome = resolver.apply(ModifyVar(target="power", operation=ModifyOperation.ADD, value=[1]))
        assert outcome.skipped
        assert outcome.reason == "Could not modify variable: power"

    def test_modify_var_missing_value_skipped(self, resolver):
        outcome = resolver.apply(ModifyVar(target="power", operation=ModifyOperation.ADD))
        assert outcome.reason == "Invalid value"


class TestEntityEffects:
    """set_entity merges properties."""

    def test_merge(self, store, resolver):
        resolver.apply(SetEntity(target="reactor", value={"status": "offline", "rods": 100}))
        entity = store.get_entity("reactor")
        assert entity["status"] == "offline"
        assert entity["rods"] == 100
        assert entity["output"] == 10

    def test_creates_entity(self, store, resolver):
        resolver.apply(SetEntity(target="turbine", value={"rpm": 1}))
        assert store.get_entity("turbine") == {"rpm": 1}

    @pytest.mark.parametrize("value", [None, {}, "offline", [1, 2]])
    def test_bad_value_skipped(self, store, resolver, value):
        outcome = resolver.apply(SetEntity(target="reactor", value=value))
        assert outcome.skipped
        assert outcome.reason == "Invalid target or value"
        assert store.get_entity_property("reactor", "status") == "online"


class TestObservabilityEffects:
    """trigger_event and message only log."""

    def test_trigger_event(self, store, resolver, caplog):
        before = store.snapshot()
        with caplog.at_level("INFO"):
            outcome = resolver.apply(TriggerEvent(target="alarm"))
        assert outcome.applied
        assert "Event triggered: alarm" in caplog.text
        assert store.snapshot() == before

    def test_message(self, resolver, caplog):
        with caplog.at_level("INFO"):
            resolver.apply(Message(message="hello"))
        assert "Game message: hello" in caplog.text


class TestBookkeepingEffects:
    """update_score, add_log, add_event fail explicitly."""

    def test_update_score(self, store, resolver, player):
        resolver.apply(UpdateScore(player_id=player.id, value=7))
        assert store.get_score(player.id) == 7

    @pytest.mark.parametrize("effect", [
        UpdateScore(player_id="p1", value="seven"),
        UpdateScore(player_id="p1", value=True),
        UpdateScore(player_id=None, value=1),
        UpdateScore(player_id="p1", value=float("nan")),
        UpdateScore(player_id="p1", value=float("-inf")),
    ])
    def test_update_score_errors(self, resolver, effect):
        outcome = resolver.apply(effect)
        assert outcome.failed
        assert outcome.error == "Invalid playerId or value"

    def test_add_log(self, store, resolver):
        resolver.apply(AddLog(message="hello"))
        assert store.get_logs() == ["hello"]

    def test_add_log_error(self, resolver):
        assert resolver.apply(AddLog()).error == "add_log requires a message"

    def test_add_event(self, store, resolver):
        outcome = resolver.apply(AddEvent(event_type="alarm", message="hot"))
        assert outcome.details["timestamp"] == store.get_events()[0].timestamp
        assert store.get_events()[0].type == "alarm"

    def test_add_event_error(self, resolver):
        outcome = resolver.apply(AddEvent(event_type="alarm"))
        assert outcome.error == "add_event requires an eventType and a message"

    def test_outcome_to_dict(self, resolver):
        data = resolver.apply(AddLog()).to_dict()
        assert data == {"type": "add_log", "error": "add_log requires a message"}


class TestStatusEffects:
    """set_status drives the state machine."""

    def test_ended_finishes(self, store, resolver):
        store.start_game()
        resolver.apply(SetStatus(status="ended"))
        assert store.status == GameStatus.FINISHED

    def test_invalid_status_errors(self, resolver):
        assert resolver.apply(SetStatus(status="exploded")).error == "Invalid status: exploded"

    def test_leaving_finished_is_skipped(self, store, resolver):
        store.end_game()
        outcome = resolver.apply(SetStatus(status="running"))
        assert outcome.skipped
        assert store.status == GameStatus.FINISHED


class TestApplyAll:
    """Ordered application and the stop-on-error policy."""

    def test_later_effects_see_earlier_writes(self, store, resolver):
        resolver.apply_all([
            SetVar(target="power", value=80),
            ModifyVar(target="temperature", operation=ModifyOperation.ADD, value="power"),
        ])
        assert store.get_variable("temperature") == 380

    def test_stops_at_first_failure_without_rollback(self, store, resolver):
        outcomes = resolver.apply_all([
            SetVar(target="power", value=80),
            AddLog(),
            SetVar(target="temperature", value=0),
        ])
        assert len(outcomes) == 2
        assert outcomes[-1].failed
        assert store.get_variable("power") == 80
        assert store.get_variable("temperature") == 300

    def test_skips_do_not_stop(self, store, resolver):
        outcomes = resolver.apply_all([
            SetVar(target="ghost", value=1),
            SetVar(target="power", value=10),
        ])
        assert len(outcomes) == 2
        assert store.get_variable("power") == 10

    def test_continue_on_error(self, store, resolver):
        outcomes = resolver.apply_all([AddLog(), SetVar(target="power", value=10)], stop_on_error=False)
        assert len(outcomes) == 2
        assert store.get_variable("power") == 10

    def test_unknown_effect(self, resolver):
        class Bogus:
            effect_type = "bogus"

        outcome = resolver.apply(Bogus())
        assert outcome.failed
