"""
Tests for the state store.
"""

import math
import random

import pytest

from ..engine_core.action import ActionExecution
from ..engine_core.state import GameStatus, StateStore
from ..spec_schema import parse
from .conftest import make_definition


class TestVariables:
    """Writes are clamped and bad values are repaired."""

    def test_initial_values(self, store):
        assert store.get_variable("power") == 50
        assert store.get_variable("temperature") == 300

    def test_set_clamps_to_bounds(self, store):
        store.set_variable("power", 150)
        assert store.get_variable("power") == 100
        store.set_variable("power", -5)
        assert store.get_variable("power") == 0

    @pytest.mark.parametrize("bad", [None, math.nan, "hot", True])
    def test_bad_values_restore_initial(self, store, bad):
        store.set_variable("power", 80)
        assert store.set_variable("power", bad)
        assert store.get_variable("power") == 50

    def test_infinities_clamp(self, store):
        store.set_variable("power", math.inf)
        assert store.get_variable("power") == 100
        store.set_variable("power", -math.inf)
        assert store.get_variable("power") == 0

    def test_unknown_variable(self, store):
        assert store.set_variable("ghost", 1) is False
        assert store.get_variable("ghost") is None

    @pytest.mark.parametrize("op, amount, expected", [
        ("add", 10, 60),
        ("subtract", 20, 30),
        ("multiply", 3, 100),
        ("divide", 2, 25),
        ("divide", 0, 50),
    ])
    def test_modify(self, store, op, amount, expected):
        assert store.modify_variable("power", op, amount)
        assert store.get_variable("power") == expected

    def test_modify_rejects_bad_input(self, store):
        assert store.modify_variable("power", "add", "ten") is False
        assert store.modify_variable("power", "power", 1) is False
        assert store.modify_variable("power", "set", 1) is False
        assert store.modify_variable("ghost", "add", 1) is False
        assert store.get_variable("power") == 50


class TestEntities:
    """Entity properties."""

    def test_get_and_set(self, store):
        assert store.get_entity_property("reactor", "status") == "online"
        store.set_entity_property("reactor", "status", "offline")
        assert store.get_entity("reactor")["status"] == "offline"

    def test_set_creates_entity(self, store):
        store.set_entity_property("turbine", "rpm", 3000)
        assert store.get_entity("turbine") == {"rpm": 3000}

    def test_get_entity_is_a_copy(self, store):
        store.get_entity("reactor")["status"] = "hacked"
        assert store.get_entity_property("reactor", "status") == "online"

    def test_missing_entity(self, store):
        assert store.get_entity("ghost") is None
        assert store.get_entity_property("ghost", "x") is None


class TestPlayers:
    """Players and scores."""

    def test_add_player(self, store):
        player = store.add_player({"alias": "bob"}, role="engineer")
        assert player.id.startswith("player_")
        assert player.alias == "bob"
        assert player.role == "engineer"
        assert player.joined_at == store.clock.now()
        assert store.has_player(player.id)

    def test_ids_are_unique(self, store):
        ids = {store.add_player().id for _ in range(20)}
        assert len(ids) == 20

    def test_default_alias_and_role(self, store):
        player = store.add_player()
        assert player.alias == "anonymous"
        assert player.role == "player"

    def test_update_player(self, store, player, clock):
        clock.advance(500)
        assert store.update_player(player.id, {"role": "engineer"})
        updated = store.get_player(player.id)
        assert updated.role == "engineer"
        assert updated.last_seen == clock.now()
        assert store.update_player("nobody", {"role": "x"}) is False

    def test_remove_player(self, store, player):
        assert store.remove_player(player.id)
        assert not store.remove_player(player.id)
        assert store.get_player(player.id) is None

    def test_scores_are_set_not_added(self, store, player):
        store.update_score(player.id, 10)
        store.update_score(player.id, 4)
        assert store.get_score(player.id) == 4
        assert store.get_player(player.id).score == 4
        assert store.get_score("nobody") == 0

    def test_score_for_unknown_player(self, store):
        store.update_score("observer", 3)
        assert store.get_scores() == {"observer": 3}

    @pytest.mark.parametrize("score", ["high", None, True, float("nan"), float("inf"), [1]])
    def test_bad_initial_score_is_zero(self, store, score):
        player = store.add_player({"alias": "x", "score": score})
        assert player.score == 0

    def test_numeric_initial_score_kept(self, store):
        assert store.add_player(score=12.5).score == 12.5

    def test_update_player_checks_values(self, store, player):
        store.update_player(player.id, {"score": 5})
        assert store.update_player(player.id, {"score": "high", "alias": 7, "role": None})
        updated = store.get_player(player.id)
        assert updated.score == 5
        assert updated.alias == "7"
        assert updated.role == "player"

    def test_non_string_ids_are_unknown(self, store, player):
        for bad_id in (["x"], {"id": player.id}, None):
            assert store.has_player(bad_id) is False
            assert store.get_player(bad_id) is None
            assert store.remove_player(bad_id) is False
            assert store.update_player(bad_id, {"role": "x"}) is False
        assert store.has_player(player.id)


class TestLifecycle:
    """Status state machine."""

    def test_starts_waiting(self, store):
        assert store.status == GameStatus.WAITING

    def test_start_pause_resume(self, store):
        assert store.start_game()
        assert store.pause_game()
        assert store.status == GameStatus.PAUSED
        assert store.resume_game()
        assert store.status == GameStatus.RUNNING

    def test_pause_requires_running(self, store):
        assert store.pause_game() is False
        assert store.resume_game() is False

    def test_finished_is_terminal(self, store):
        store.start_game()
        assert store.set_status("ended")
        assert store.status == GameStatus.FINISHED
        assert store.start_game() is False
        assert store.status == GameStatus.FINISHED

    def test_invalid_status_ignored(self, store):
        assert store.set_status("exploded") is False
        assert store.status == GameStatus.WAITING

    def test_end_game_winner(self, store):
        store.end_game(winner="alice")
        assert store.state.winner == "alice"

    def test_reset_rebuilds(self, store, player):
        store.start_game()
        store.set_variable("power", 99)
        store.increment_tick()
        store.add_log("hello")
        store.reset()
        assert store.status == GameStatus.WAITING
        assert store.tick == 0
        assert store.get_variable("power") == 50
        assert store.get_logs() == []
        assert not store.has_player(player.id)

    def test_reset_leaves_finished(self, store):
        store.end_game()
        store.reset()
        assert store.start_game()


class TestHistoryAndSnapshots:
    """Action history, events and snapshots."""

    def test_record_action(self, store, player):
        execution = ActionExecution.succeeded("boost", player.id, {}, 123.0)
        store.record_action(execution)
        assert store.get_action_history() == [execution]
        assert store.state.last_action == "boost"
        assert store.state.last_action_time == 123.0
        assert store.get_player(player.id).actions == ["boost"]

    def test_recent_actions(self, store, player):
        for i in range(5):
            store.record_action(ActionExecution.succeeded(f"a{i}", player.id, {}, float(i)))
        assert [e.action_name for e in store.get_recent_actions(2)] == ["a3", "a4"]
        assert store.get_recent_actions(0) == []
        store.clear_action_history()
        assert store.get_action_history() == []

    def test_events_are_timestamped(self, store):
        event = store.add_event("alarm", "hot")
        assert event.timestamp == "1970-01-01T00:16:40+00:00"
        assert store.get_events()[0].message == "hot"

    def test_snapshot_is_independent(self, store):
        snap = store.snapshot()
        snap.variables["power"] = 0
        snap.entities["reactor"]["status"] = "gone"
        assert store.get_variable("power") == 50
        assert store.get_entity_property("reactor", "status") == "online"

    def test_summary(self, store, player):
        summary = store.summary()
        assert summary["player_count"] == 1
        assert summary["variable_count"] == 2
        assert summary["status"] == "waiting"

    def test_check_condition(self, store):
        assert store.check_condition("power == 50 && reactor.output == 10")
        assert not store.check_condition("nonsense(")


class TestRandomInitialization:
    """init_random draws initial values from the store's generator."""

    def test_values_in_range(self, reactor_definition):
        store = StateStore(reactor_definition)
        assert 280 <= store.get_variable("temperature") <= 320

    def test_seed_is_reproducible(self, reactor_definition):
        a = StateStore(reactor_definition).get_variable("temperature")
        b = StateStore(reactor_definition).get_variable("temperature")
        assert a == b

    def test_entity_overrides(self):
        definition = parse(make_definition(init_random={"entities": {"reactor": {"status": "warming"}}}))
        store = StateStore(definition, rng=random.Random(0))
        assert store.get_entity_property("reactor", "status") == "warming"
        assert store.get_entity_property("reactor", "output") == 10
