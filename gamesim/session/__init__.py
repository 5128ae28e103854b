"""
Session Module - Hosts running simulation rooms.

A room represents one live simulation:
- Created from a parsed game definition
- Holds the state store, action processor and tick scheduler
- Closed when the host is done with it

Rooms are in-memory only; nothing here persists.
"""

from .manager import RoomManager, Room
from .game_loop import TickScheduler, LoopState, emergency_shutdown_gate

__all__ = [
    "RoomManager",
    "Room",
    "TickScheduler",
    "LoopState",
    "emergency_shutdown_gate",
]
