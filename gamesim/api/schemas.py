"""
Pydantic Schemas for API - Request/response models for hosts of the engine.

These models define the contract between a transport layer (HTTP,
WebSocket, CLI) and the engine. Snapshots are frozen: a host can hand one
to another thread without it changing underneath.

Error Codes:
- ROOM_NOT_FOUND: Room does not exist or has been closed
- INVALID_DEFINITION: Game definition failed to parse
- PLAYER_NOT_FOUND: Player is not in the room
- INTERNAL_ERROR: Unexpected engine failure
"""

from enum import Enum
from typing import Optional, Any
from pydantic import BaseModel, Field

from ..engine_core.action import ActionExecution
from ..engine_core.state import Player, SimulationState


# =============================================================================
# Enums
# =============================================================================

class GameStatusValue(str, Enum):
    """Game status values."""
    WAITING = "waiting"
    RUNNING = "running"
    PAUSED = "paused"
    FINISHED = "finished"


class ErrorCode(str, Enum):
    """Structured error codes."""
    ROOM_NOT_FOUND = "ROOM_NOT_FOUND"
    INVALID_DEFINITION = "INVALID_DEFINITION"
    PLAYER_NOT_FOUND = "PLAYER_NOT_FOUND"
    INTERNAL_ERROR = "INTERNAL_ERROR"


# =============================================================================
# Shared Models
# =============================================================================

class PlayerInfo(BaseModel):
    """A player as seen from outside the room."""
    id: str
    alias: str
    role: str = "player"
    joined_at: float = 0
    last_seen: float = 0
    score: float = 0
    actions: list[str] = Field(default_factory=list)

    model_config = {"from_attributes": True, "frozen": True}


class GameEventInfo(BaseModel):
    """An entry of the event feed."""
    type: str
    message: str
    timestamp: str

    model_config = {"from_attributes": True, "frozen": True}


class StateSnapshot(BaseModel):
    """Frozen copy of a room's whole simulation state."""
    room_id: Optional[str] = None
    variables: dict[str, float] = Field(default_factory=dict)
    entities: dict[str, dict[str, Any]] = Field(default_factory=dict)
    players: dict[str, PlayerInfo] = Field(default_factory=dict)
    score: dict[str, float] = Field(default_factory=dict)
    events: list[GameEventInfo] = Field(default_factory=list)
    logs: list[str] = Field(default_factory=list)
    tick: int = 0
    status: GameStatusValue = GameStatusValue.WAITING
    winner: Optional[str] = None
    last_action: Optional[str] = None
    last_action_time: Optional[float] = None

    model_config = {"frozen": True}


class ActionExecutionInfo(BaseModel):
    """Outcome of one action."""
    action_name: str
    player_id: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    timestamp: float
    success: bool
    result: Optional[Any] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    cooldown_remaining_ms: Optional[float] = None

    model_config = {"frozen": True}


# =============================================================================
# Requests
# =============================================================================

class CreateRoomRequest(BaseModel):
    """Request to create a room from a raw game definition."""
    definition: dict[str, Any] = Field(description="Game definition JSON object")
    room_id: Optional[str] = None
    start: bool = Field(default=False, description="Start ticking immediately")


class JoinRoomRequest(BaseModel):
    """Request to add a player to a room."""
    alias: str = "anonymous"
    role: str = "player"


class SubmitActionRequest(BaseModel):
    """Request to run an action."""
    action_name: str
    player_id: str
    parameters: dict[str, Any] = Field(default_factory=dict)


# =============================================================================
# Responses
# =============================================================================

class RoomResponse(BaseModel):
    """Summary of a room."""
    room_id: str
    name: str
    status: GameStatusValue
    scheduler: str = Field(description="running or stopped")
    tick: int = 0
    player_count: int = 0


class ValidationResponse(BaseModel):
    """Result of checking a game definition."""
    valid: bool
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)


class ErrorResponse(BaseModel):
    """Error response."""
    error: str
    error_code: ErrorCode
    details: Optional[dict[str, Any]] = None


# =============================================================================
# Converters
# =============================================================================

def player_info(player: Player) -> PlayerInfo:
    return PlayerInfo.model_validate(player)


def snapshot_from_state(state: SimulationState, room_id: Optional[str] = None) -> StateSnapshot:
    """Build a frozen snapshot from a (cloned) SimulationState."""
    return StateSnapshot(
        room_id=room_id,
        variables=dict(state.variables),
        entities=state.entities,
        players={pid: player_info(p) for pid, p in state.players.items()},
        score=dict(state.score),
        events=[GameEventInfo.model_validate(e) for e in state.events],
        logs=list(state.logs),
        tick=state.tick,
        status=GameStatusValue(state.status.value),
        winner=state.winner,
        last_action=state.last_action,
        last_action_time=state.last_action_time,
    )


def execution_info(execution: ActionExecution) -> ActionExecutionInfo:
    return ActionExecutionInfo(
        action_name=execution.action_name,
        player_id=execution.player_id,
        parameters=execution.parameters,
        timestamp=execution.timestamp,
        success=execution.success,
        result=execution.result,
        error=execution.error,
        error_code=execution.error_code.value if execution.error_code else None,
        cooldown_remaining_ms=execution.cooldown_remaining_ms,
    )
