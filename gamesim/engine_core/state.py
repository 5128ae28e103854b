"""
Simulation State - The single mutable owner of all live simulation data.

Design principles:
- One StateStore per room; nothing here is process-global
- Every write goes through the store, which clamps and validates
- Every mutator holds the store lock, so an action or a tick that
  holds it across several calls is never interleaved
- Readers get deep-copied snapshots, never live references
"""

from __future__ import annotations
from dataclasses import dataclass, field
from copy import deepcopy
from datetime import datetime, timezone
from enum import Enum
from typing import Any, TYPE_CHECKING
import logging
import math
import random
import threading
import uuid

from ..spec_schema.effect_dsl import ModifyOperation
from .clock import Clock, WallClock
from .expression import evaluate_condition

if TYPE_CHECKING:
    from ..spec_schema import GameDefinition
    from .action import ActionExecution

logger = logging.getLogger(__name__)


def is_score(value: Any) -> bool:
    """True for a finite int or float. Booleans are not scores."""
    return (
        not isinstance(value, bool)
        and isinstance(value, (int, float))
        and math.isfinite(value)
    )


class GameStatus(Enum):
    """Lifecycle of a simulation: waiting -> running <-> paused -> finished."""
    WAITING = "waiting"
    RUNNING = "running"
    PAUSED = "paused"
    FINISHED = "finished"

    @classmethod
    def parse(cls, value: GameStatus | str) -> GameStatus | None:
        """Accept an enum member or its string form ("ended" means finished)."""
        if isinstance(value, GameStatus):
            return value
        if value == "ended":
            return cls.FINISHED
        try:
            return cls(value)
        except ValueError:
            return None


@dataclass
class Player:
    """A participant in a room. Ids are assigned by the store."""
    id: str
    alias: str
    role: str = "player"
    joined_at: float = 0.0
    last_seen: float = 0.0
    score: float = 0
    actions: list[str] = field(default_factory=list)


@dataclass
class GameEvent:
    """A structured entry in the event feed."""
    type: str
    message: str
    timestamp: str


@dataclass
class SimulationState:
    """
    Complete live state of one room.

    The store owns the instance; everything else sees clones.
    """
    variables: dict[str, float] = field(default_factory=dict)
    entities: dict[str, dict[str, Any]] = field(default_factory=dict)
    players: dict[str, Player] = field(default_factory=dict)
    score: dict[str, float] = field(default_factory=dict)
    events: list[GameEvent] = field(default_factory=list)
    logs: list[str] = field(default_factory=list)
    tick: int = 0
    status: GameStatus = GameStatus.WAITING
    winner: str | None = None
    last_action: str | None = None
    last_action_time: float | None = None

    def clone(self) -> SimulationState:
        """Deep copy the state."""
        return deepcopy(self)


class StateStore:
    """
    Owns the SimulationState of one room.

    All reads and writes of simulation data go through here. The store
    never raises on bad input: unknown names are no-ops, bad values are
    clamped or replaced with the variable's initial value.
    """

    def __init__(
        self,
        definition: GameDefinition,
        *,
        clock: Clock | None = None,
        rng: random.Random | None = None,
        initial_state: SimulationState | None = None,
    ):
        self.definition = definition
        self.clock = clock or WallClock()
        self.rng = rng or random.Random(definition.meta.seed)
        self.lock = threading.RLock()
        self._history: list[ActionExecution] = []
        self.state = initial_state if initial_state is not None else self._initialize_state()

    # -------------------------------------------------------------------------
    # Initialization
    # -------------------------------------------------------------------------

    def _initialize_state(self) -> SimulationState:
        variables = {name: var.value for name, var in self.definition.variables.items()}
        entities = deepcopy(self.definition.entities)

        if self.definition.init_random:
            self._apply_random_initialization(variables, entities)

        return SimulationState(
            variables=variables,
            entities=entities,
            last_action_time=self.clock.now(),
        )

    def _apply_random_initialization(
        self, variables: dict[str, float], entities: dict[str, dict[str, Any]]
    ):
        init = self.definition.init_random
        for name, (low, high) in init.variables.items():
            if name in self.definition.variables:
                variables[name] = self.rng.uniform(low, high)

        for name, overrides in init.entities.items():
            if name in entities:
                entities[name] = {**entities[name], **deepcopy(overrides)}

    def reset(self):
        """
        Rebuild state from the definition, dropping players, scores,
        history and ticks. Cooldowns belong to the ActionProcessor and
        must be cleared there.
        """
        with self.lock:
            self.state = self._initialize_state()
            self._history = []
        logger.info("State reset for '%s'", self.definition.meta.name)

    # -------------------------------------------------------------------------
    # Snapshots
    # -------------------------------------------------------------------------

    def snapshot(self) -> SimulationState:
        """A deep copy of the current state."""
        with self.lock:
            return self.state.clone()

    def summary(self) -> dict[str, Any]:
        """Compact description of the state for debugging."""
        with self.lock:
            return {
                "status": self.state.status.value,
                "tick": self.state.tick,
                "player_count": len(self.state.players),
                "variable_count": len(self.state.variables),
                "entity_count": len(self.state.entities),
                "action_count": len(self._history),
                "last_action": self.state.last_action,
                "last_action_time": self.state.last_action_time,
            }

    # -------------------------------------------------------------------------
    # Variables
    # -------------------------------------------------------------------------

    def get_variable(self, name: str) -> float | None:
        with self.lock:
            return self.state.variables.get(name)

    def set_variable(self, name: str, value: Any) -> bool:
        """
        Set a variable, clamped to its bounds.

        None, NaN and non-numeric values fall back to the definition's
        initial value; +/-inf clamp to max/min. Unknown names return False.
        """
        variable = self.definition.variables.get(name)
        if variable is None:
            return False

        if isinstance(value, bool) or not isinstance(value, (int, float)) or math.isnan(value):
            processed = variable.value
        elif value == math.inf:
            processed = variable.max
        elif value == -math.inf:
            processed = variable.min
        else:
            processed = value

        with self.lock:
            self.state.variables[name] = variable.clamp(processed)
        return True

    def modify_variable(
        self, name: str, operation: ModifyOperation | str, amount: Any
    ) -> bool:
        """
        Apply add/subtract/multiply/divide to a variable and store the
        clamped result.

        Division by zero leaves the value unchanged. Non-numeric amounts
        and unknown operations return False without touching the value.
        """
        if name not in self.definition.variables:
            return False
        if isinstance(amount, bool) or not isinstance(amount, (int, float)):
            return False
        try:
            op = ModifyOperation(operation.value if isinstance(operation, Enum) else operation)
        except ValueError:
            return False
        if op == ModifyOperation.SET:
            return False

        with self.lock:
            current = self.state.variables.get(name) or 0
            if op == ModifyOperation.ADD:
                new_value = current + amount
            elif op == ModifyOperation.SUBTRACT:
                new_value = current - amount
            elif op == ModifyOperation.MULTIPLY:
                new_value = current * amount
            else:
                new_value = current / amount if amount != 0 else current
            return self.set_variable(name, new_value)

    # -------------------------------------------------------------------------
    # Entities
    # -------------------------------------------------------------------------

    def get_entity(self, name: str) -> dict[str, Any] | None:
        with self.lock:
            entity = self.state.entities.get(name)
            return deepcopy(entity) if entity is not None else None

    def get_entity_property(self, entity: str, key: str) -> Any:
        with self.lock:
            return deepcopy(self.state.entities.get(entity, {}).get(key))

    def set_entity_property(self, entity: str, key: str, value: Any) -> bool:
        """Set one property, creating the entity if it doesn't exist."""
        with self.lock:
            self.state.entities.setdefault(entity, {})[key] = value
        return True

    # -------------------------------------------------------------------------
    # Players and score
    # -------------------------------------------------------------------------

    def add_player(self, data: dict[str, Any] | None = None, **kwargs: Any) -> Player:
        """Add a player. Always succeeds with a freshly generated id."""
        data = {**(data or {}), **kwargs}
        score = data.get("score", 0)
        now = self.clock.now()
        player = Player(
            id=self._generate_player_id(),
            alias=str(data.get("alias") or "anonymous"),
            role=str(data.get("role") or "player"),
            joined_at=now,
            last_seen=now,
            score=score if is_score(score) else 0,
        )
        with self.lock:
            self.state.players[player.id] = player
        logger.debug("Player %s (%s) joined", player.id, player.alias)
        return deepcopy(player)

    def remove_player(self, player_id: str) -> bool:
        if not isinstance(player_id, str):
            return False
        with self.lock:
            return self.state.players.pop(player_id, None) is not None

    def update_player(self, player_id: str, updates: dict[str, Any]) -> bool:
        """Update alias/role/score of a player and refresh last_seen."""
        if not isinstance(player_id, str):
            return False
        with self.lock:
            player = self.state.players.get(player_id)
            if player is None:
                return False
            for key in ("alias", "role"):
                if updates.get(key) is not None:
                    setattr(player, key, str(updates[key]))
            if is_score(updates.get("score")):
                player.score = updates["score"]
            player.last_seen = self.clock.now()
            return True

    def get_player(self, player_id: str) -> Player | None:
        if not isinstance(player_id, str):
            return None
        with self.lock:
            player = self.state.players.get(player_id)
            return deepcopy(player) if player is not None else None

    def has_player(self, player_id: str) -> bool:
        if not isinstance(player_id, str):
            return False
        with self.lock:
            return player_id in self.state.players

    def update_score(self, player_id: str, score: float):
        """Set a player's score in the score index (and on the player, if present)."""
        with self.lock:
            self.state.score[player_id] = score
            player = self.state.players.get(player_id)
            if player is not None:
                player.score = score

    def get_score(self, player_id: str) -> float:
        with self.lock:
            return self.state.score.get(player_id, 0)

    def get_scores(self) -> dict[str, float]:
        with self.lock:
            return dict(self.state.score)

    # -------------------------------------------------------------------------
    # Logs and events
    # -------------------------------------------------------------------------

    def add_log(self, message: str):
        with self.lock:
            self.state.logs.append(message)

    def add_event(self, event_type: str, message: str) -> GameEvent:
        event = GameEvent(type=event_type, message=message, timestamp=self.timestamp())
        with self.lock:
            self.state.events.append(event)
        return event

    def get_logs(self) -> list[str]:
        with self.lock:
            return list(self.state.logs)

    def get_events(self) -> list[GameEvent]:
        with self.lock:
            return deepcopy(self.state.events)

    def timestamp(self) -> str:
        """ISO-8601 timestamp for the store's clock."""
        return datetime.fromtimestamp(self.clock.now() / 1000.0, tz=timezone.utc).isoformat()

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    @property
    def status(self) -> GameStatus:
        return self.state.status

    def set_status(self, status: GameStatus | str) -> bool:
        """
        Move the status state machine.

        Finished is terminal: leaving it requires reset(). Invalid
        statuses are ignored. Never raises.
        """
        new_status = GameStatus.parse(status)
        if new_status is None:
            logger.warning("Ignoring invalid status %r", status)
            return False

        with self.lock:
            current = self.state.status
            if current == GameStatus.FINISHED and new_status != GameStatus.FINISHED:
                logger.warning("Game is finished; ignoring transition to %s", new_status.value)
                return False
            self.state.status = new_status
        if current != new_status:
            logger.debug("Status %s -> %s", current.value, new_status.value)
        return True

    def start_game(self) -> bool:
        return self.set_status(GameStatus.RUNNING)

    def pause_game(self) -> bool:
        with self.lock:
            if self.state.status != GameStatus.RUNNING:
                return False
            return self.set_status(GameStatus.PAUSED)

    def resume_game(self) -> bool:
        with self.lock:
            if self.state.status != GameStatus.PAUSED:
                return False
            return self.set_status(GameStatus.RUNNING)

    def end_game(self, winner: str | None = None) -> bool:
        with self.lock:
            self.set_status(GameStatus.FINISHED)
            if winner:
                self.state.winner = winner
        logger.info("Game '%s' finished (winner: %s)", self.definition.meta.name, winner)
        return True

    def increment_tick(self) -> int:
        with self.lock:
            self.state.tick += 1
            return self.state.tick

    @property
    def tick(self) -> int:
        return self.state.tick

    # -------------------------------------------------------------------------
    # Action history
    # -------------------------------------------------------------------------

    def record_action(self, execution: ActionExecution):
        """Append an execution to history and to the acting player's action list."""
        with self.lock:
            self._history.append(execution)
            if isinstance(execution.action_name, str):
                self.state.last_action = execution.action_name
                self.state.last_action_time = execution.timestamp

            player = None
            if isinstance(execution.player_id, str):
                player = self.state.players.get(execution.player_id)
            if player is not None:
                player.actions.append(execution.action_name)

    def get_action_history(self) -> list[ActionExecution]:
        with self.lock:
            return list(self._history)

    def get_recent_actions(self, count: int = 10) -> list[ActionExecution]:
        with self.lock:
            return self._history[-count:] if count > 0 else []

    def clear_action_history(self):
        with self.lock:
            self._history = []

    # -------------------------------------------------------------------------
    # Conditions
    # -------------------------------------------------------------------------

    def check_condition(self, condition: str) -> bool:
        """Evaluate a condition against current values. Never raises."""
        with self.lock:
            return evaluate_condition(condition, self.state)

    def _generate_player_id(self) -> str:
        return f"player_{uuid.uuid4().hex[:12]}"
