"""
API Module - Host-facing interface to the engine.

A host (web server, WebSocket hub, CLI):
1. Validates and loads game definitions
2. Creates rooms
3. Adds players and submits their actions
4. Broadcasts frozen state snapshots

Transport and persistence live in the host, not here.
"""

from .schemas import (
    # Requests
    CreateRoomRequest,
    JoinRoomRequest,
    SubmitActionRequest,
    # Responses
    RoomResponse,
    ValidationResponse,
    ErrorResponse,
    # Shared
    PlayerInfo,
    GameEventInfo,
    StateSnapshot,
    ActionExecutionInfo,
    ErrorCode,
    GameStatusValue,
)
from .service import EngineService

__all__ = [
    # Requests
    "CreateRoomRequest",
    "JoinRoomRequest",
    "SubmitActionRequest",
    # Responses
    "RoomResponse",
    "ValidationResponse",
    "ErrorResponse",
    # Shared
    "PlayerInfo",
    "GameEventInfo",
    "StateSnapshot",
    "ActionExecutionInfo",
    "ErrorCode",
    "GameStatusValue",
    # Service
    "EngineService",
]
