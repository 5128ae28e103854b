"""
Action Executions - The record of every action a player submits.

Player input never raises: every outcome, good or bad, is an
ActionExecution appended to history in arrival order.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class ActionErrorCode(Enum):
    """Why an action failed."""
    ACTION_NOT_FOUND = "ACTION_NOT_FOUND"
    PLAYER_NOT_FOUND = "PLAYER_NOT_FOUND"
    VALIDATION_ERROR = "VALIDATION_ERROR"
    REQUIREMENT_NOT_MET = "REQUIREMENT_NOT_MET"
    EFFECT_ERROR = "EFFECT_ERROR"
    INTERNAL_ERROR = "INTERNAL_ERROR"


@dataclass
class ActionExecution:
    """
    One processed action.

    Contains:
    - What was requested (action, player, parameters)
    - When (timestamp in ms)
    - Whether it succeeded, with a result payload or an error
    """
    action_name: str
    player_id: str
    parameters: dict[str, Any]
    timestamp: float
    success: bool
    result: Any | None = None
    error: str | None = None
    error_code: ActionErrorCode | None = None

    # Set when a cooldown requirement blocked the action
    cooldown_remaining_ms: float | None = None

    @classmethod
    def failure(
        cls,
        action_name: str,
        player_id: str,
        parameters: dict[str, Any],
        timestamp: float,
        error: str,
        error_code: ActionErrorCode,
        result: Any | None = None,
        cooldown_remaining_ms: float | None = None,
    ) -> ActionExecution:
        """Create a failed execution."""
        return cls(
            action_name=action_name,
            player_id=player_id,
            parameters=parameters,
            timestamp=timestamp,
            success=False,
            result=result,
            error=error,
            error_code=error_code,
            cooldown_remaining_ms=cooldown_remaining_ms,
        )

    @classmethod
    def succeeded(
        cls,
        action_name: str,
        player_id: str,
        parameters: dict[str, Any],
        timestamp: float,
        result: Any | None = None,
    ) -> ActionExecution:
        """Create a successful execution."""
        return cls(
            action_name=action_name,
            player_id=player_id,
            parameters=parameters,
            timestamp=timestamp,
            success=True,
            result=result,
        )


@dataclass
class CheckResult:
    """Outcome of a parameter or requirement check."""
    valid: bool
    error: str | None = None
    cooldown_remaining_ms: float | None = None

    @classmethod
    def ok(cls) -> CheckResult:
        return cls(valid=True)

    @classmethod
    def fail(cls, error: str, cooldown_remaining_ms: float | None = None) -> CheckResult:
        return cls(valid=False, error=error, cooldown_remaining_ms=cooldown_remaining_ms)


@dataclass
class EffectOutcome:
    """
    Result of applying one effect.

    A skipped effect was a silent no-op; an effect with `error` set
    failed explicitly and aborts the rest of an action's effect list.
    """
    effect_type: str
    applied: bool = True
    skipped: bool = False
    reason: str | None = None
    error: str | None = None
    details: dict[str, Any] = field(default_factory=dict)

    @property
    def failed(self) -> bool:
        return self.error is not None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"type": self.effect_type, **self.details}
        if self.skipped:
            data["skipped"] = True
            data["reason"] = self.reason
        if self.error:
            data["error"] = self.error
        return data
