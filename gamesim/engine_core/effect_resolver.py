"""
Effect Resolver - Applies effects to a StateStore.

Each effect kind has its own handler, dispatched by EffectType. The
failure policy differs per kind:
- set_var, modify_var, set_entity: malformed input is a silent no-op
  (the outcome is marked skipped)
- trigger_event, message: observability hooks that only log; never fail
- update_score, add_log, add_event, set_status: malformed input is an
  explicit error, which stops an action's remaining effects

The resolver holds no state of its own; every write goes through the store.
"""

from __future__ import annotations
from typing import Any, Callable, Iterable, TYPE_CHECKING
import logging

from ..spec_schema.effect_dsl import (
    Effect,
    EffectType,
    ModifyOperation,
    SetVar,
    ModifyVar,
    SetEntity,
    TriggerEvent,
    Message,
    UpdateScore,
    AddLog,
    AddEvent,
    SetStatus,
    effect_to_dict,
)
from .action import EffectOutcome
from .expression import ExpressionEvaluator, ExpressionContext
from .state import GameStatus, is_score

if TYPE_CHECKING:
    from .state import StateStore

logger = logging.getLogger(__name__)


class EffectError(Exception):
    """Raised by a handler when an effect is explicitly invalid."""

    def __init__(self, effect_type: EffectType, message: str):
        self.effect_type = effect_type
        self.message = message
        super().__init__(message)


class EffectResolver:
    """
    Applies effects against one room's store.

    `apply` never raises: explicit errors come back as failed outcomes.
    """

    def __init__(self, store: StateStore, evaluator: ExpressionEvaluator | None = None):
        self.store = store
        self.evaluator = evaluator or ExpressionEvaluator()

    def apply(self, effect: Effect) -> EffectOutcome:
        """Apply a single effect."""
        handlers: dict[EffectType, Callable[[Any], EffectOutcome]] = {
            EffectType.SET_VAR: self._apply_set_var,
            EffectType.MODIFY_VAR: self._apply_modify_var,
            EffectType.SET_ENTITY: self._apply_set_entity,
            EffectType.TRIGGER_EVENT: self._apply_trigger_event,
            EffectType.MESSAGE: self._apply_message,
            EffectType.UPDATE_SCORE: self._apply_update_score,
            EffectType.ADD_LOG: self._apply_add_log,
            EffectType.ADD_EVENT: self._apply_add_event,
            EffectType.SET_STATUS: self._apply_set_status,
        }

        effect_type = getattr(effect, "effect_type", None)
        handler = handlers.get(effect_type)
        if handler is None:
            return EffectOutcome(
                effect_type=str(effect_type),
                applied=False,
                error=f"Unknown effect type: {effect_type}",
            )

        try:
            return handler(effect)
        except EffectError as e:
            logger.warning("Effect %s failed: %s", e.effect_type.value, e.message)
            return EffectOutcome(
                effect_type=e.effect_type.value,
                applied=False,
                error=e.message,
                details=self._details(effect),
            )

    def apply_all(
        self,
        effects: Iterable[Effect],
        stop_on_error: bool = True,
    ) -> list[EffectOutcome]:
        """
        Apply effects in order.

        With stop_on_error the list ends at the first failed outcome
        (which is included); effects applied before it stay applied.
        """
        outcomes: list[EffectOutcome] = []
        with self.store.lock:
            for effect in effects:
                outcome = self.apply(effect)
                outcomes.append(outcome)
                if outcome.failed and stop_on_error:
                    break
        return outcomes

    # =========================================================================
    # Variable effects
    # =========================================================================

    def _apply_set_var(self, effect: SetVar) -> EffectOutcome:
        if not effect.target:
            return self._skipped(effect, "No target specified")

        value = self._resolve_value(effect.value)
        if isinstance(effect.value, str) and value is None:
            return self._skipped(effect, f"Invalid value expression: {effect.value}")

        if not self.store.set_variable(effect.target, value):
            return self._skipped(effect, f"Unknown variable: {effect.target}")
        return self._applied(effect, value=self.store.get_variable(effect.target))

    def _apply_modify_var(self, effect: ModifyVar) -> EffectOutcome:
        if not effect.target or effect.operation is None:
            return self._skipped(effect, "Invalid target or operation")

        amount = self._resolve_value(effect.value)
        if amount is None:
            return self._skipped(effect, "Invalid value")

        if effect.operation == ModifyOperation.SET:
            changed = self.store.set_variable(effect.target, amount)
        else:
            changed = self.store.modify_variable(effect.target, effect.operation, amount)

        if not changed:
            return self._skipped(effect, f"Could not modify variable: {effect.target}")
        return self._applied(effect, value=self.store.get_variable(effect.target))

    def _resolve_value(self, value: Any) -> Any:
        """String values are numeric expressions over the current state."""
        if not isinstance(value, str):
            return value
        with self.store.lock:
            context = ExpressionContext.from_state(self.store.state)
            return self.evaluator.evaluate_number(value, context)

    # =========================================================================
    # Entity effects
    # =========================================================================

    def _apply_set_entity(self, effect: SetEntity) -> EffectOutcome:
        if not effect.target or not isinstance(effect.value, dict) or not effect.value:
            return self._skipped(effect, "Invalid target or value")

        with self.store.lock:
            for key, value in effect.value.items():
                self.store.set_entity_property(effect.target, key, value)
        return self._applied(effect)

    # =========================================================================
    # Observability hooks
    # =========================================================================

    def _apply_trigger_event(self, effect: TriggerEvent) -> EffectOutcome:
        logger.info("Event triggered: %s", effect.target or "unknown")
        return self._applied(effect)

    def _apply_message(self, effect: Message) -> EffectOutcome:
        if effect.message:
            logger.info("Game message: %s", effect.message)
        return self._applied(effect)

    # =========================================================================
    # Bookkeeping
    # =========================================================================

    def _apply_update_score(self, effect: UpdateScore) -> EffectOutcome:
        value = effect.value
        if not effect.player_id or not is_score(value):
            raise EffectError(EffectType.UPDATE_SCORE, "Invalid playerId or value")

        self.store.update_score(effect.player_id, value)
        return self._applied(effect)

    def _apply_add_log(self, effect: AddLog) -> EffectOutcome:
        if not effect.message:
            raise EffectError(EffectType.ADD_LOG, "add_log requires a message")

        self.store.add_log(effect.message)
        return self._applied(effect)

    def _apply_add_event(self, effect: AddEvent) -> EffectOutcome:
        if not effect.event_type or not effect.message:
            raise EffectError(EffectType.ADD_EVENT, "add_event requires an eventType and a message")

        event = self.store.add_event(effect.event_type, effect.message)
        return self._applied(effect, timestamp=event.timestamp)

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def _apply_set_status(self, effect: SetStatus) -> EffectOutcome:
        status = GameStatus.parse(effect.status) if effect.status else None
        if status is None:
            raise EffectError(EffectType.SET_STATUS, f"Invalid status: {effect.status}")

        if not self.store.set_status(status):
            return self._skipped(effect, f"Status transition to {status.value} ignored")
        return self._applied(effect)

    # =========================================================================
    # Helpers
    # =========================================================================

    def _details(self, effect: Effect) -> dict[str, Any]:
        data = effect_to_dict(effect)
        data.pop("type", None)
        return data

    def _applied(self, effect: Effect, **extra: Any) -> EffectOutcome:
        return EffectOutcome(
            effect_type=effect.effect_type.value,
            details={**self._details(effect), **extra},
        )

    def _skipped(self, effect: Effect, reason: str) -> EffectOutcome:
        logger.debug("Skipped %s effect: %s", effect.effect_type.value, reason)
        return EffectOutcome(
            effect_type=effect.effect_type.value,
            applied=False,
            skipped=True,
            reason=reason,
            details=self._details(effect),
        )
