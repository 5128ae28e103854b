"""
ReactorSim - The sample game

Players run a reactor together. Key mechanics:
- Power raises core temperature; coolant brings it back down
- Control rod and coolant actions have cooldowns
- Tick rules heat the core and deliver output
- Random faults are suppressed during an emergency shutdown
- The game ends on meltdown

This module contains the raw definition and its parsed form.
"""

from .spec import REACTOR_DEFINITION, create_reactor_definition

__all__ = [
    "REACTOR_DEFINITION",
    "create_reactor_definition",
]
