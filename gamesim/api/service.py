"""
API Service - Business logic layer between a transport and the engine.

The service:
1. Validates and parses game definitions
2. Creates, lists and closes rooms
3. Adds players and runs their actions
4. Formats snapshots and results as response models

This layer is framework-agnostic (can be used behind FastAPI, a
WebSocket server, or the CLI).
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any
import logging

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
    ActionExecutionInfo,
    PlayerInfo,
    StateSnapshot,
    # Enums
    ErrorCode,
    GameStatusValue,
    # Converters
    execution_info,
    player_info,
)
from ..session import RoomManager, Room
from ..spec_schema import SchemaError, parse, validate_definition

logger = logging.getLogger(__name__)


@dataclass
class EngineService:
    """
    Main service for multi-room hosts.

    Usage:
        service = EngineService()

        room = service.create_room(CreateRoomRequest(definition=raw))
        player = service.join_room(room.room_id, JoinRoomRequest(alias="ops"))
        result = service.submit_action(
            room.room_id,
            SubmitActionRequest(action_name="vent", player_id=player.id),
        )
    """
    room_manager: RoomManager = field(default_factory=RoomManager)

    def validate_definition(self, raw: str | bytes | dict[str, Any]) -> ValidationResponse:
        """Parse a definition and report schema errors and semantic warnings."""
        try:
            definition = parse(raw)
        except SchemaError as e:
            return ValidationResponse(valid=False, errors=[str(e)])

        result = validate_definition(definition)
        return ValidationResponse(
            valid=result.valid,
            errors=list(result.errors),
            warnings=list(result.warnings),
        )

    def create_room(self, request: CreateRoomRequest) -> RoomResponse | ErrorResponse:
        """Create a room, optionally starting its tick loop."""
        try:
            room = self.room_manager.create_room(request.definition, room_id=request.room_id)
        except SchemaError as e:
            return ErrorResponse(
                error=str(e),
                error_code=ErrorCode.INVALID_DEFINITION,
                details={"path": e.path},
            )
        except ValueError as e:
            return ErrorResponse(error=str(e), error_code=ErrorCode.INVALID_DEFINITION)

        if request.start:
            room.start()
        return self._room_to_response(room)

    def get_room(self, room_id: str) -> RoomResponse | ErrorResponse:
        room = self.room_manager.get_room(room_id)
        if not room:
            return self._room_not_found(room_id)
        return self._room_to_response(room)

    def list_rooms(self) -> list[str]:
        return self.room_manager.list_rooms()

    def close_room(self, room_id: str) -> bool:
        return self.room_manager.close_room(room_id)

    def join_room(self, room_id: str, request: JoinRoomRequest) -> PlayerInfo | ErrorResponse:
        room = self.room_manager.get_room(room_id)
        if not room:
            return self._room_not_found(room_id)
        player = room.add_player({"alias": request.alias, "role": request.role})
        return player_info(player)

    def leave_room(self, room_id: str, player_id: str) -> bool | ErrorResponse:
        room = self.room_manager.get_room(room_id)
        if not room:
            return self._room_not_found(room_id)
        return room.remove_player(player_id)

    def submit_action(
        self,
        room_id: str,
        request: SubmitActionRequest,
    ) -> ActionExecutionInfo | ErrorResponse:
        """Queue an action on the room's writer and wait for its outcome."""
        room = self.room_manager.get_room(room_id)
        if not room:
            return self._room_not_found(room_id)

        future = room.submit_action(request.action_name, request.player_id, request.parameters)
        return execution_info(future.result())

    def get_state(self, room_id: str) -> StateSnapshot | ErrorResponse:
        room = self.room_manager.get_room(room_id)
        if not room:
            return self._room_not_found(room_id)
        return room.get_state()

    def get_state_json(self, room_id: str) -> str:
        """Snapshot serialized for broadcasting."""
        state = self.get_state(room_id)
        return state.model_dump_json()

    def control(self, room_id: str, command: str) -> RoomResponse | ErrorResponse:
        """Run a lifecycle command: start, stop, pause, resume, reset or tick."""
        room = self.room_manager.get_room(room_id)
        if not room:
            return self._room_not_found(room_id)

        commands = {
            "start": room.start,
            "stop": room.stop,
            "pause": room.pause,
            "resume": room.resume,
            "reset": room.reset,
            "tick": room.force_tick,
        }
        handler = commands.get(command)
        if not handler:
            return ErrorResponse(
                error=f"Unknown command: {command}",
                error_code=ErrorCode.INTERNAL_ERROR,
                details={"commands": sorted(commands)},
            )
        handler()
        return self._room_to_response(room)

    def shutdown(self):
        self.room_manager.close_all()

    # =========================================================================
    # Helper methods
    # =========================================================================

    def _room_to_response(self, room: Room) -> RoomResponse:
        summary = room.store.summary()
        return RoomResponse(
            room_id=room.room_id,
            name=room.name,
            status=GameStatusValue(summary["status"]),
            scheduler=room.get_status_string(),
            tick=summary["tick"],
            player_count=summary["player_count"],
        )

    def _room_not_found(self, room_id: str) -> ErrorResponse:
        logger.debug("Room %s not found", room_id)
        return ErrorResponse(
            error=f"Room {room_id} not found",
            error_code=ErrorCode.ROOM_NOT_FOUND,
        )
