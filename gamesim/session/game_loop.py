"""
Game Loop - Fixed-timestep scheduler that drives autonomous progress.

The loop:
1. The host clock calls frame() (a background thread does this by default)
2. Elapsed time since the previous frame is clamped to max_frame_ms and
   added to an accumulator
3. While the accumulator holds a full timestep, one tick runs and the
   timestep is subtracted

Each tick, in order:
1. Increment the tick counter
2. Tick-triggered rules (frequency and guard permitting)
3. Condition-triggered rules whose guard just became true
4. Random events, unless the gate suppresses them
5. Tick callbacks with (tick, snapshot)

Nothing raised inside a tick or a callback escapes the loop; it goes to
the error callbacks and ticking continues.
"""

from __future__ import annotations
from enum import Enum
from typing import Any, Callable, TYPE_CHECKING
import logging
import random
import threading

from ..engine_core.clock import Clock, MonotonicClock
from ..engine_core.effect_resolver import EffectResolver
from ..engine_core.expression import evaluate_conditions
from ..engine_core.state import GameStatus
from ..spec_schema.game_spec import RuleTrigger

if TYPE_CHECKING:
    from ..engine_core.state import SimulationState, StateStore
    from ..spec_schema import GameDefinition

logger = logging.getLogger(__name__)

DEFAULT_TIMESTEP_MS = 16.0
DEFAULT_MAX_FRAME_MS = 50.0
DEFAULT_FRAME_INTERVAL_MS = 1.0

MIN_TIMESTEP_MS = 1.0
MAX_TIMESTEP_MS = 100.0

TickCallback = Callable[[int, "SimulationState"], Any]
ErrorCallback = Callable[[Exception], Any]


class LoopState(Enum):
    """State of the scheduler. Paused shows up only in the store's status."""
    STOPPED = "stopped"
    RUNNING = "running"


def emergency_shutdown_gate(state: SimulationState) -> bool:
    """Suppress random events while any entity has a truthy emergency_shutdown."""
    return any(
        isinstance(entity, dict) and entity.get("emergency_shutdown")
        for entity in state.entities.values()
    )


class TickScheduler:
    """
    Fixed-timestep tick loop for one room.

    Usage:
        scheduler = TickScheduler(store)
        scheduler.on_tick(lambda tick, state: print(tick))
        scheduler.start()
        ...
        scheduler.stop()

    Tests pass run_in_thread=False and a ManualClock, then call frame()
    themselves after advancing the clock.
    """

    def __init__(
        self,
        store: StateStore,
        definition: GameDefinition | None = None,
        resolver: EffectResolver | None = None,
        *,
        clock: Clock | None = None,
        rng: random.Random | None = None,
        fixed_timestep_ms: float = DEFAULT_TIMESTEP_MS,
        max_frame_ms: float = DEFAULT_MAX_FRAME_MS,
        frame_interval_ms: float = DEFAULT_FRAME_INTERVAL_MS,
        run_in_thread: bool = True,
        random_event_gate: Callable[[SimulationState], bool] | None = emergency_shutdown_gate,
    ):
        self.store = store
        self.definition = definition or store.definition
        self.resolver = resolver or EffectResolver(store)
        self.clock = clock or MonotonicClock()
        self.rng = rng or store.rng
        self.fixed_timestep_ms = self._clamp_timestep(fixed_timestep_ms)
        self.max_frame_ms = max_frame_ms
        self.frame_interval_ms = frame_interval_ms
        self.run_in_thread = run_in_thread
        self.random_event_gate = random_event_gate

        self.state = LoopState.STOPPED
        self._accumulator = 0.0
        self._last_time = 0.0
        self._ticks_executed = 0

        self._tick_callbacks: list[TickCallback] = []
        self._error_callbacks: list[ErrorCallback] = []

        # Guard results of condition rules on the previous tick, by rule index
        self._condition_states: dict[int, bool] = {}
        # Random event name -> store-clock time (ms) it last fired
        self._event_fired_at: dict[str, float] = {}

        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()
        self._control_lock = threading.Lock()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> bool:
        """Start ticking. A no-op if already running."""
        with self._control_lock:
            if self.state == LoopState.RUNNING:
                return True
            if not self.store.start_game():
                logger.warning("Cannot start '%s': game is finished", self.definition.name)
                return False

            self.state = LoopState.RUNNING
            self._accumulator = 0.0
            self._last_time = self.clock.now()

            if self.run_in_thread:
                self._stop_event = threading.Event()
                self._thread = threading.Thread(
                    target=self._run, name=f"tick-{self.definition.name}", daemon=True
                )
                self._thread.start()

        logger.info(
            "Tick loop started for '%s' (%sms timestep)",
            self.definition.name, self.fixed_timestep_ms,
        )
        return True

    def stop(self):
        """Stop ticking and mark the game paused. A no-op if already stopped."""
        if self._halt():
            self.store.pause_game()
            logger.info("Tick loop stopped for '%s'", self.definition.name)

    def pause(self):
        """Same as stop(); the store's status records the pause."""
        if self._halt():
            self.store.pause_game()
            logger.info("Tick loop paused for '%s'", self.definition.name)

    def resume(self) -> bool:
        if self.state == LoopState.RUNNING:
            return True
        return self.start()

    def destroy(self):
        """Stop and drop every registered callback."""
        self.stop()
        self._tick_callbacks = []
        self._error_callbacks = []
        self.reset_tracking()

    def reset_tracking(self):
        """Forget condition-rule edges and random-event firing times."""
        self._condition_states = {}
        self._event_fired_at = {}

    def _halt(self) -> bool:
        """Stop the loop without touching the store. False if already stopped."""
        with self._control_lock:
            if self.state == LoopState.STOPPED:
                return False
            self.state = LoopState.STOPPED
            self._accumulator = 0.0
            self._stop_event.set()
            thread, self._thread = self._thread, None

        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=1.0)
        return True

    def _run(self):
        """Background host loop: one frame per frame_interval_ms."""
        stop_event = self._stop_event
        while not stop_event.wait(self.frame_interval_ms / 1000.0):
            self.frame()

    # =========================================================================
    # Frames and ticks
    # =========================================================================

    def frame(self) -> int:
        """
        Handle one host-clock callback.

        Returns the number of ticks executed.
        """
        if self.state != LoopState.RUNNING:
            return 0

        now = self.clock.now()
        elapsed = max(0.0, min(now - self._last_time, self.max_frame_ms))
        self._last_time = now
        self._accumulator += elapsed

        ticks = 0
        while self._accumulator >= self.fixed_timestep_ms and self.state == LoopState.RUNNING:
            self._execute_tick()
            self._accumulator -= self.fixed_timestep_ms
            ticks += 1
        return ticks

    def force_tick(self) -> int:
        """Run exactly one tick now, running or not. Returns the tick number."""
        self._execute_tick()
        return self.store.tick

    def _execute_tick(self):
        try:
            with self.store.lock:
                tick = self.store.increment_tick()
                self._process_tick_rules(tick)
                self._process_condition_rules()
                self._process_random_events()
                snapshot = self.store.snapshot()
                finished = self.store.status == GameStatus.FINISHED
        except Exception as e:
            logger.exception("Error in tick execution")
            self._notify_error(e)
            return

        self._ticks_executed += 1
        self._notify_tick(tick, snapshot)

        if finished and self._halt():
            logger.info("Game '%s' finished at tick %d; tick loop halted", self.definition.name, tick)

    def _process_tick_rules(self, tick: int):
        for rule in self.definition.rules_for(RuleTrigger.TICK):
            if rule.frequency and tick % rule.frequency != 0:
                continue
            if rule.condition and not self.store.check_condition(rule.condition):
                continue
            self.resolver.apply_all(rule.effects, stop_on_error=False)

    def _process_condition_rules(self):
        """Condition rules fire once each time their guard goes from false to true."""
        for index, rule in enumerate(self.definition.rules):
            if rule.trigger != RuleTrigger.CONDITION or not rule.condition:
                continue
            met = self.store.check_condition(rule.condition)
            was_met = self._condition_states.get(index, False)
            self._condition_states[index] = met
            if met and not was_met:
                self.resolver.apply_all(rule.effects, stop_on_error=False)

    def _process_random_events(self):
        if self.random_event_gate is not None and self.random_event_gate(self.store.state):
            return

        for event in self.definition.random_events:
            sample = self.rng.random()
            if event.probability <= 0 or sample > event.probability:
                continue

            if event.cooldown:
                last = self._event_fired_at.get(event.name)
                if last is not None and self.store.clock.now() - last < event.cooldown:
                    continue

            if event.conditions and not evaluate_conditions(event.conditions, self.store.state):
                continue

            logger.info("Random event triggered: %s", event.name)
            self._event_fired_at[event.name] = self.store.clock.now()
            self.resolver.apply_all(event.effects, stop_on_error=False)

    # =========================================================================
    # Callbacks
    # =========================================================================

    def on_tick(self, callback: TickCallback):
        self._tick_callbacks.append(callback)

    def on_error(self, callback: ErrorCallback):
        self._error_callbacks.append(callback)

    def remove_tick_callback(self, callback: TickCallback):
        if callback in self._tick_callbacks:
            self._tick_callbacks.remove(callback)

    def remove_error_callback(self, callback: ErrorCallback):
        if callback in self._error_callbacks:
            self._error_callbacks.remove(callback)

    def _notify_tick(self, tick: int, snapshot: SimulationState):
        for callback in list(self._tick_callbacks):
            try:
                callback(tick, snapshot)
            except Exception as e:
                logger.exception("Error in tick callback")
                self._notify_error(e)

    def _notify_error(self, error: Exception):
        for callback in list(self._error_callbacks):
            try:
                callback(error)
            except Exception:
                logger.exception("Error in error callback")

    # =========================================================================
    # Introspection
    # =========================================================================

    @property
    def is_running(self) -> bool:
        return self.state == LoopState.RUNNING

    def get_current_tick(self) -> int:
        return self.store.tick

    def get_status_string(self) -> str:
        return self.state.value

    def get_stats(self) -> dict[str, Any]:
        return {
            "current_tick": self.store.tick,
            "is_running": self.is_running,
            "game_status": self.store.status.value,
            "ticks_executed": self._ticks_executed,
            "callback_count": len(self._tick_callbacks),
            "error_callback_count": len(self._error_callbacks),
            "timestep": self.fixed_timestep_ms,
            "fps": round(1000 / self.fixed_timestep_ms),
        }

    def set_fixed_timestep(self, timestep_ms: float):
        """Change the timestep, clamped to 1-100 ms."""
        self.fixed_timestep_ms = self._clamp_timestep(timestep_ms)

    @staticmethod
    def _clamp_timestep(timestep_ms: float) -> float:
        return float(max(MIN_TIMESTEP_MS, min(MAX_TIMESTEP_MS, timestep_ms)))
