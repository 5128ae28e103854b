"""
Engine Core - Mutable simulation state and the rules that change it.

The engine is the runtime that:
1. Owns one room's SimulationState through a StateStore
2. Evaluates condition expressions safely
3. Applies effects via the EffectResolver
4. Validates and executes player actions via the ActionProcessor
"""

from .clock import Clock, MonotonicClock, WallClock, ManualClock
from .state import GameStatus, Player, GameEvent, SimulationState, StateStore
from .action import ActionErrorCode, ActionExecution, CheckResult, EffectOutcome
from .expression import (
    ExpressionContext,
    ExpressionError,
    ExpressionEvaluator,
    evaluate_condition,
    evaluate_conditions,
    evaluate_number,
)
from .effect_resolver import EffectError, EffectResolver
from .action_processor import ActionProcessor

__all__ = [
    "Clock",
    "MonotonicClock",
    "WallClock",
    "ManualClock",
    "GameStatus",
    "Player",
    "GameEvent",
    "SimulationState",
    "StateStore",
    "ActionErrorCode",
    "ActionExecution",
    "CheckResult",
    "EffectOutcome",
    "ExpressionContext",
    "ExpressionError",
    "ExpressionEvaluator",
    "evaluate_condition",
    "evaluate_conditions",
    "evaluate_number",
    "EffectError",
    "EffectResolver",
    "ActionProcessor",
]
