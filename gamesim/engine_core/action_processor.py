"""
Action Processor - Validates and executes player actions.

process_action() is the only way player input reaches the state. The
pipeline for one action:
1. Look up the action definition
2. Check the player exists
3. Validate parameters (types, required, select options; defaults filled)
4. Check requirements in declared order (first failure wins)
5. Apply effects in order (first explicit error stops the list)
6. On success, stamp the cooldown and run action-triggered rules
7. Record the execution, success or failure

The whole pipeline runs while holding the store lock, so an action never
interleaves with a tick or another action in the same room.
"""

from __future__ import annotations
from typing import Any, Callable, Mapping, TYPE_CHECKING
import logging
import math
import re

from ..spec_schema.effect_dsl import (
    CooldownRequirement,
    RequirementType,
)
from ..spec_schema.game_spec import ParameterType, RuleTrigger
from .action import ActionErrorCode, ActionExecution, CheckResult
from .effect_resolver import EffectResolver

if TYPE_CHECKING:
    from ..spec_schema import ActionDefinition, GameDefinition
    from ..spec_schema.effect_dsl import Requirement
    from .clock import Clock
    from .state import StateStore

logger = logging.getLogger(__name__)

VAR_RANGE_PATTERN = re.compile(r"^([><=!]+)\s*(.+)$")
ENTITY_STATE_PATTERN = re.compile(r"^(\w+)\s*([><=!]+)\s*(.+)$")

COMPARATORS: dict[str, Callable[[float, float], bool]] = {
    ">": lambda a, b: a > b,
    ">=": lambda a, b: a >= b,
    "<": lambda a, b: a < b,
    "<=": lambda a, b: a <= b,
    "==": lambda a, b: a == b,
    "===": lambda a, b: a == b,
    "!=": lambda a, b: a != b,
    "!==": lambda a, b: a != b,
}


def _loose_equals(actual: Any, expected: str) -> bool:
    """Compare an entity property with the text on the right of a condition."""
    expected = expected.strip().strip("'\"")
    if isinstance(actual, bool):
        return ("true" if actual else "false") == expected.lower()
    if isinstance(actual, (int, float)):
        try:
            return float(actual) == float(expected)
        except ValueError:
            return False
    return str(actual) == expected


class ActionProcessor:
    """
    Runs player actions against one room's store.

    Owns the per-player cooldown table and the processor-level action
    history. Never raises for bad player input.
    """

    def __init__(
        self,
        store: StateStore,
        definition: GameDefinition | None = None,
        resolver: EffectResolver | None = None,
        clock: Clock | None = None,
    ):
        self.store = store
        self.definition = definition or store.definition
        self.resolver = resolver or EffectResolver(store)
        self.clock = clock or store.clock

        # player_id -> action_name -> time (ms) of last successful invocation
        self._cooldowns: dict[str, dict[str, float]] = {}
        self._history: list[ActionExecution] = []

    # =========================================================================
    # Processing
    # =========================================================================

    def process_action(
        self,
        action_name: str,
        player_id: str,
        parameters: dict[str, Any] | None = None,
    ) -> ActionExecution:
        """
        Process one player action.

        Returns an ActionExecution describing the outcome; failures carry
        an ActionErrorCode instead of raising.
        """
        malformed = parameters is not None and not isinstance(parameters, Mapping)
        parameters = {} if malformed else dict(parameters or {})

        with self.store.lock:
            timestamp = self.clock.now()
            try:
                execution = self._process(action_name, player_id, parameters, timestamp, malformed)
            except Exception as e:
                logger.exception("Unexpected error processing action '%s'", action_name)
                execution = ActionExecution.failure(
                    action_name, player_id, parameters, timestamp,
                    error=str(e) or type(e).__name__,
                    error_code=ActionErrorCode.INTERNAL_ERROR,
                )

            self._history.append(execution)
            self.store.record_action(execution)

        if execution.success:
            logger.debug("Action '%s' by %s succeeded", action_name, player_id)
        else:
            logger.debug(
                "Action '%s' by %s failed (%s): %s",
                action_name, player_id, execution.error_code.value, execution.error,
            )
        return execution

    def _process(
        self,
        action_name: str,
        player_id: str,
        parameters: dict[str, Any],
        timestamp: float,
        malformed: bool = False,
    ) -> ActionExecution:
        action = self.definition.get_action(action_name)
        if action is None:
            return ActionExecution.failure(
                action_name, player_id, parameters, timestamp,
                error=f"Action '{action_name}' not found",
                error_code=ActionErrorCode.ACTION_NOT_FOUND,
            )

        if not self.store.has_player(player_id):
            return ActionExecution.failure(
                action_name, player_id, parameters, timestamp,
                error=f"Player '{player_id}' not found",
                error_code=ActionErrorCode.PLAYER_NOT_FOUND,
            )

        if malformed:
            return ActionExecution.failure(
                action_name, player_id, parameters, timestamp,
                error="Parameters must be a mapping of name to value",
                error_code=ActionErrorCode.VALIDATION_ERROR,
            )

        check = self.validate_parameters(action, parameters)
        if not check.valid:
            return ActionExecution.failure(
                action_name, player_id, parameters, timestamp,
                error=check.error,
                error_code=ActionErrorCode.VALIDATION_ERROR,
            )

        check = self.check_requirements(action, player_id)
        if not check.valid:
            return ActionExecution.failure(
                action_name, player_id, parameters, timestamp,
                error=check.error,
                error_code=ActionErrorCode.REQUIREMENT_NOT_MET,
                cooldown_remaining_ms=check.cooldown_remaining_ms,
            )

        outcomes = self.resolver.apply_all(action.effects, stop_on_error=True)
        results = [outcome.to_dict() for outcome in outcomes]
        if outcomes and outcomes[-1].failed:
            return ActionExecution.failure(
                action_name, player_id, parameters, timestamp,
                error=outcomes[-1].error,
                error_code=ActionErrorCode.EFFECT_ERROR,
                result=results,
            )

        self._stamp_cooldown(action_name, player_id, timestamp)
        self._run_action_rules()

        return ActionExecution.succeeded(
            action_name, player_id, parameters, timestamp, result=results,
        )

    def _run_action_rules(self):
        """Apply rules triggered by any successful action."""
        for rule in self.definition.rules_for(RuleTrigger.ACTION):
            if rule.condition and not self.store.check_condition(rule.condition):
                continue
            self.resolver.apply_all(rule.effects, stop_on_error=False)

    # =========================================================================
    # Parameters
    # =========================================================================

    def validate_parameters(self, action: ActionDefinition, parameters: dict[str, Any]) -> CheckResult:
        """
        Validate parameters against the action's declarations.

        Missing parameters with a declared default are filled in place.
        """
        for param in action.parameters:
            value = parameters.get(param.name)
            if value is None and param.default is not None:
                value = param.default
                parameters[param.name] = value

            if value is None:
                if param.required:
                    return CheckResult.fail(f"Required parameter '{param.name}' is missing")
                continue

            if param.param_type == ParameterType.STRING and not isinstance(value, str):
                return CheckResult.fail(f"Parameter '{param.name}' must be a string")

            if param.param_type == ParameterType.NUMBER and (
                isinstance(value, bool)
                or not isinstance(value, (int, float))
                or math.isnan(value)
            ):
                return CheckResult.fail(f"Parameter '{param.name}' must be a number")

            if param.param_type == ParameterType.BOOLEAN and not isinstance(value, bool):
                return CheckResult.fail(f"Parameter '{param.name}' must be a boolean")

            if param.param_type == ParameterType.SELECT and param.options:
                if value not in param.options:
                    return CheckResult.fail(
                        f"Parameter '{param.name}' must be one of: {', '.join(param.options)}"
                    )

        return CheckResult.ok()

    # =========================================================================
    # Requirements
    # =========================================================================

    def check_requirements(self, action: ActionDefinition, player_id: str) -> CheckResult:
        """Check requirements in declared order; the first failure wins."""
        requirements: list[Requirement] = list(action.requirements)

        # An action-level cooldown guards the action itself unless a
        # cooldown requirement already does
        if action.cooldown and action.cooldown_requirement() is None:
            requirements.append(CooldownRequirement(target=action.name, value=action.cooldown))

        for requirement in requirements:
            check = self.check_requirement(requirement, player_id)
            if not check.valid:
                return check
        return CheckResult.ok()

    def check_requirement(self, requirement: Requirement, player_id: str) -> CheckResult:
        handlers: dict[RequirementType, Callable[..., CheckResult]] = {
            RequirementType.VAR_RANGE: self._check_var_range,
            RequirementType.ENTITY_STATE: self._check_entity_state,
            RequirementType.PLAYER_ROLE: self._check_player_role,
            RequirementType.COOLDOWN: self._check_cooldown,
        }
        handler = handlers.get(requirement.requirement_type)
        if handler is None:
            return CheckResult.fail(f"Unknown requirement type: {requirement.requirement_type}")
        return handler(requirement, player_id)

    def _check_var_range(self, requirement: Requirement, player_id: str) -> CheckResult:
        value = self.store.get_variable(requirement.target)
        if value is None:
            return CheckResult.fail(f"Variable '{requirement.target}' not found")

        match = VAR_RANGE_PATTERN.match(requirement.condition.strip())
        if not match:
            return CheckResult.fail(f"Invalid condition format: {requirement.condition}")

        operator, raw_target = match.group(1), match.group(2)
        try:
            target = float(raw_target)
        except ValueError:
            return CheckResult.fail(f"Invalid target value: {raw_target}")

        compare = COMPARATORS.get(operator)
        if compare is None:
            return CheckResult.fail(f"Unknown operator: {operator}")

        if not compare(value, target):
            return CheckResult.fail(
                f"Variable '{requirement.target}' ({value}) does not meet condition: "
                f"{requirement.condition}"
            )
        return CheckResult.ok()

    def _check_entity_state(self, requirement: Requirement, player_id: str) -> CheckResult:
        entity = self.store.get_entity(requirement.target)
        if entity is None:
            return CheckResult.fail(f"Entity '{requirement.target}' not found")

        match = ENTITY_STATE_PATTERN.match(requirement.condition.strip())
        if not match:
            return CheckResult.fail(f"Invalid entity condition format: {requirement.condition}")

        prop, operator, expected = match.groups()
        if prop not in entity:
            return CheckResult.fail(
                f"Property '{prop}' not found on entity '{requirement.target}'"
            )

        actual = entity[prop]
        if operator in ("==", "==="):
            valid = _loose_equals(actual, expected)
        elif operator in ("!=", "!=="):
            valid = not _loose_equals(actual, expected)
        else:
            return CheckResult.fail(f"Unsupported operator for entity state: {operator}")

        if not valid:
            return CheckResult.fail(
                f"Entity '{requirement.target}.{prop}' ({actual}) does not meet condition: "
                f"{requirement.condition}"
            )
        return CheckResult.ok()

    def _check_player_role(self, requirement: Requirement, player_id: str) -> CheckResult:
        player = self.store.get_player(player_id)
        if player is None:
            return CheckResult.fail(f"Player '{player_id}' not found")

        if player.role != requirement.condition:
            return CheckResult.fail(
                f"Player role '{player.role}' does not match required role "
                f"'{requirement.condition}'"
            )
        return CheckResult.ok()

    def _check_cooldown(self, requirement: CooldownRequirement, player_id: str) -> CheckResult:
        window = float(requirement.value or 0)
        if not window:
            target_action = self.definition.get_action(requirement.target)
            window = float(target_action.cooldown or 0) if target_action else 0.0

        remaining = self._remaining(requirement.target, player_id, window)
        if remaining > 0:
            return CheckResult.fail(
                f"Action '{requirement.target}' is on cooldown for "
                f"{math.ceil(remaining / 1000)} more seconds",
                cooldown_remaining_ms=remaining,
            )
        return CheckResult.ok()

    # =========================================================================
    # Cooldowns
    # =========================================================================

    def _stamp_cooldown(self, action_name: str, player_id: str, timestamp: float):
        with self.store.lock:
            self._cooldowns.setdefault(player_id, {})[action_name] = timestamp

    def _remaining(self, action_name: str, player_id: str, window: float) -> float:
        with self.store.lock:
            last = self._cooldowns.get(player_id, {}).get(action_name)
        if last is None or window <= 0:
            return 0.0
        return max(0.0, window - (self.clock.now() - last))

    def get_available_actions(self, player_id: str) -> list[ActionDefinition]:
        """Actions whose requirements the player currently meets."""
        with self.store.lock:
            if not self.store.has_player(player_id):
                return []
            return [
                action for action in self.definition.actions
                if self.check_requirements(action, player_id).valid
            ]

    def get_action_cooldowns(self, player_id: str) -> dict[str, float]:
        """Remaining cooldown (ms) for each of the player's cooling-down actions."""
        with self.store.lock:
            stamped = list(self._cooldowns.get(player_id, {}))

        cooldowns: dict[str, float] = {}
        for action_name in stamped:
            remaining = self.get_cooldown_status(action_name, player_id)
            if remaining:
                cooldowns[action_name] = remaining
        return cooldowns

    def get_cooldown_status(self, action_name: str, player_id: str) -> float | None:
        """Remaining cooldown (ms) of an action for a player, or None if ready."""
        action = self.definition.get_action(action_name)
        if action is None:
            return None
        window = action.cooldown_window()
        if not window:
            return None
        remaining = self._remaining(action_name, player_id, window)
        return remaining if remaining > 0 else None

    def set_cooldown(self, action_name: str, player_id: str, at: float | None = None):
        """Start an action's cooldown for a player as if it just succeeded."""
        self._stamp_cooldown(action_name, player_id, self.clock.now() if at is None else at)

    def clear_cooldown(self, action_name: str, player_id: str):
        with self.store.lock:
            self._cooldowns.get(player_id, {}).pop(action_name, None)

    def clear_player_cooldowns(self, player_id: str):
        with self.store.lock:
            self._cooldowns.pop(player_id, None)

    def clear_all_cooldowns(self):
        with self.store.lock:
            self._cooldowns.clear()

    # =========================================================================
    # History
    # =========================================================================

    def get_action_history(self) -> list[ActionExecution]:
        with self.store.lock:
            return list(self._history)

    def get_player_action_history(self, player_id: str) -> list[ActionExecution]:
        with self.store.lock:
            return [e for e in self._history if e.player_id == player_id]

    def clear_action_history(self):
        with self.store.lock:
            self._history = []
