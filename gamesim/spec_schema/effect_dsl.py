"""
Effect DSL - Effects and requirements of a game definition.

Effects are atomic state mutation instructions. Every effect kind is its own
dataclass so the interpreter can dispatch on a closed set of types:
- Variable effects: set_var, modify_var
- Entity effects: set_entity
- Observability hooks: trigger_event, message
- Bookkeeping: update_score, add_log, add_event
- Lifecycle: set_status

Requirements are preconditions an action must satisfy before its effects run.
"""

from __future__ import annotations
from dataclasses import dataclass
from enum import Enum
from typing import Any, ClassVar, Union


class EffectType(Enum):
    """Types of effects."""
    SET_VAR = "set_var"
    MODIFY_VAR = "modify_var"
    SET_ENTITY = "set_entity"
    TRIGGER_EVENT = "trigger_event"
    MESSAGE = "message"
    UPDATE_SCORE = "update_score"
    ADD_LOG = "add_log"
    ADD_EVENT = "add_event"
    SET_STATUS = "set_status"


class ModifyOperation(Enum):
    """Arithmetic operations for modify_var."""
    SET = "set"
    ADD = "add"
    SUBTRACT = "subtract"
    MULTIPLY = "multiply"
    DIVIDE = "divide"


class RequirementType(Enum):
    """Types of action requirements."""
    VAR_RANGE = "var_range"
    ENTITY_STATE = "entity_state"
    PLAYER_ROLE = "player_role"
    COOLDOWN = "cooldown"


# Values accepted by set_status. "ended" is an alias of "finished".
STATUS_VALUES = ("running", "paused", "ended", "waiting", "finished")


# Required fields per effect type, keyed by their JSON names.
REQUIRED_EFFECT_FIELDS: dict[EffectType, tuple[str, ...]] = {
    EffectType.SET_VAR: ("target",),
    EffectType.MODIFY_VAR: ("target", "operation"),
    EffectType.SET_ENTITY: ("target",),
    EffectType.TRIGGER_EVENT: (),
    EffectType.MESSAGE: ("message",),
    EffectType.UPDATE_SCORE: ("playerId",),
    EffectType.ADD_LOG: ("message",),
    EffectType.ADD_EVENT: ("eventType",),
    EffectType.SET_STATUS: ("status",),
}


# ============================================================================
# Effects
# ============================================================================

@dataclass(frozen=True)
class SetVar:
    """Overwrite a variable (clamped by the store)."""
    target: str | None = None
    value: Any = None

    effect_type: ClassVar[EffectType] = EffectType.SET_VAR


@dataclass(frozen=True)
class ModifyVar:
    """Arithmetic update of a variable."""
    target: str | None = None
    operation: ModifyOperation | None = None
    value: Any = None

    effect_type: ClassVar[EffectType] = EffectType.MODIFY_VAR


@dataclass(frozen=True)
class SetEntity:
    """Shallow-merge a property object onto an entity."""
    target: str | None = None
    value: Any = None

    effect_type: ClassVar[EffectType] = EffectType.SET_ENTITY


@dataclass(frozen=True)
class TriggerEvent:
    """Observability hook, no state change."""
    target: str | None = None
    value: Any = None

    effect_type: ClassVar[EffectType] = EffectType.TRIGGER_EVENT


@dataclass(frozen=True)
class Message:
    """Observability hook carrying a game message."""
    message: str | None = None

    effect_type: ClassVar[EffectType] = EffectType.MESSAGE


@dataclass(frozen=True)
class UpdateScore:
    """Set a player's score (not additive)."""
    player_id: str | None = None
    value: Any = None

    effect_type: ClassVar[EffectType] = EffectType.UPDATE_SCORE


@dataclass(frozen=True)
class AddLog:
    """Append free text to the log."""
    message: str | None = None

    effect_type: ClassVar[EffectType] = EffectType.ADD_LOG


@dataclass(frozen=True)
class AddEvent:
    """Append a structured event stamped with the current time."""
    event_type: str | None = None
    message: str | None = None

    effect_type: ClassVar[EffectType] = EffectType.ADD_EVENT


@dataclass(frozen=True)
class SetStatus:
    """Drive the game status state machine."""
    status: str | None = None

    effect_type: ClassVar[EffectType] = EffectType.SET_STATUS


Effect = Union[
    SetVar,
    ModifyVar,
    SetEntity,
    TriggerEvent,
    Message,
    UpdateScore,
    AddLog,
    AddEvent,
    SetStatus,
]


def effect_to_dict(effect: Effect) -> dict[str, Any]:
    """Render an effect back into its JSON shape (for results and logging)."""
    data: dict[str, Any] = {"type": effect.effect_type.value}
    if isinstance(effect, (SetVar, SetEntity, TriggerEvent)):
        data.update(target=effect.target, value=effect.value)
    elif isinstance(effect, ModifyVar):
        data.update(
            target=effect.target,
            operation=effect.operation.value if effect.operation else None,
            value=effect.value,
        )
    elif isinstance(effect, (Message, AddLog)):
        data["message"] = effect.message
    elif isinstance(effect, UpdateScore):
        data.update(playerId=effect.player_id, value=effect.value)
    elif isinstance(effect, AddEvent):
        data.update(eventType=effect.event_type, message=effect.message)
    elif isinstance(effect, SetStatus):
        data["status"] = effect.status
    return {k: v for k, v in data.items() if v is not None}


# ============================================================================
# Requirements
# ============================================================================

@dataclass(frozen=True)
class VarRangeRequirement:
    """
    Live variable must satisfy a comparator, e.g. target="power",
    condition=">= 50".
    """
    target: str
    condition: str

    requirement_type: ClassVar[RequirementType] = RequirementType.VAR_RANGE


@dataclass(frozen=True)
class EntityStateRequirement:
    """Entity property equality check, e.g. condition="status == online"."""
    target: str
    condition: str

    requirement_type: ClassVar[RequirementType] = RequirementType.ENTITY_STATE


@dataclass(frozen=True)
class PlayerRoleRequirement:
    """Acting player's role must equal `condition` exactly."""
    target: str
    condition: str

    requirement_type: ClassVar[RequirementType] = RequirementType.PLAYER_ROLE


@dataclass(frozen=True)
class CooldownRequirement:
    """
    Minimum elapsed time (ms) since the player's last successful
    invocation of the `target` action.
    """
    target: str
    value: float = 0
    condition: str = ""

    requirement_type: ClassVar[RequirementType] = RequirementType.COOLDOWN


Requirement = Union[
    VarRangeRequirement,
    EntityStateRequirement,
    PlayerRoleRequirement,
    CooldownRequirement,
]
