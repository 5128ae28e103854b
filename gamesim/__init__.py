"""
gamesim - Declarative Game Simulation Engine

A rules-driven engine for running multiplayer simulations described by a
JSON game definition. The engine loads a definition and provides:
- Schema validation
- A mutable per-room state store
- Safe condition evaluation
- Action processing with requirements and cooldowns
- A fixed-timestep tick scheduler
"""

from .spec_schema import GameDefinition, SchemaError, parse
from .session import Room, RoomManager

__version__ = "0.1.0"

__all__ = [
    "GameDefinition",
    "SchemaError",
    "parse",
    "Room",
    "RoomManager",
]
