"""
Pytest fixtures for gamesim tests.
"""

import random

import pytest

from ..spec_schema import GameDefinition, parse
from ..engine_core.clock import ManualClock
from ..engine_core.state import StateStore
from ..engine_core.effect_resolver import EffectResolver
from ..engine_core.action_processor import ActionProcessor
from ..session.game_loop import TickScheduler
from ..games.reactor import create_reactor_definition


def make_definition(**sections) -> dict:
    """A small valid raw definition; keyword arguments replace whole sections."""
    raw = {
        "meta": {"name": "Test Game", "seed": 7},
        "vars": {
            "power": {"value": 50, "min": 0, "max": 100},
            "temperature": {"value": 300, "min": 0, "max": 1000},
        },
        "entities": {
            "reactor": {"status": "online", "emergency_shutdown": False, "output": 10},
        },
        "actions": [
            {
                "name": "boost",
                "effects": [
                    {"type": "modify_var", "target": "power", "operation": "add", "value": 10},
                ],
            },
        ],
        "rules": [],
        "random_events": [],
    }
    raw.update(sections)
    return raw


@pytest.fixture
def raw_definition() -> dict:
    return make_definition()


@pytest.fixture
def definition(raw_definition: dict) -> GameDefinition:
    return parse(raw_definition)


@pytest.fixture
def clock() -> ManualClock:
    """Store clock, starting well past zero so cooldown stamps are non-zero."""
    return ManualClock(1_000_000)


@pytest.fixture
def host_clock() -> ManualClock:
    """Host clock that drives scheduler frames."""
    return ManualClock(0)


@pytest.fixture
def store(definition: GameDefinition, clock: ManualClock) -> StateStore:
    return StateStore(definition, clock=clock, rng=random.Random(42))


@pytest.fixture
def resolver(store: StateStore) -> EffectResolver:
    return EffectResolver(store)


@pytest.fixture
def processor(store: StateStore, resolver: EffectResolver) -> ActionProcessor:
    return ActionProcessor(store, resolver=resolver)


@pytest.fixture
def player(store: StateStore):
    return store.add_player({"alias": "alice"})


@pytest.fixture
def scheduler(store: StateStore, resolver: EffectResolver, host_clock: ManualClock) -> TickScheduler:
    return TickScheduler(store, resolver=resolver, clock=host_clock, run_in_thread=False)


@pytest.fixture
def reactor_definition() -> GameDefinition:
    return create_reactor_definition(seed=1)
