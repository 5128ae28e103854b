"""
Room Manager - Creates and manages simulation rooms.

A room is one running simulation:
- One GameDefinition (read-only)
- One StateStore (the only mutable state)
- One ActionProcessor for player input
- One TickScheduler for autonomous progress

ISOLATION:
- Rooms share nothing; two rooms built from the same definition evolve
  independently
- Within a room, actions and ticks serialize on the store lock
- process_action() and submit_action() both go through the room's single
  writer thread, so actions apply in the order they were submitted

Rooms live in memory only; persistence belongs to the host.
"""

from __future__ import annotations
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, TYPE_CHECKING
import logging
import random
import threading
import uuid

from ..config import EngineConfig
from ..engine_core.action_processor import ActionProcessor
from ..engine_core.effect_resolver import EffectResolver
from ..engine_core.state import StateStore
from ..spec_schema import GameDefinition, parse
from .game_loop import TickScheduler, TickCallback, ErrorCallback

if TYPE_CHECKING:
    from ..api.schemas import StateSnapshot
    from ..engine_core.action import ActionExecution
    from ..engine_core.clock import Clock
    from ..engine_core.state import Player

logger = logging.getLogger(__name__)


class Room:
    """
    One simulation room.

    Usage:
        room = Room(parse(raw_json))
        player = room.add_player({"alias": "ops"})
        room.start()
        execution = room.process_action("vent", player.id)
        snapshot = room.get_state()
        room.close()
    """

    def __init__(
        self,
        definition: GameDefinition,
        *,
        room_id: str | None = None,
        config: EngineConfig | None = None,
        clock: Clock | None = None,
        host_clock: Clock | None = None,
        rng: random.Random | None = None,
        run_in_thread: bool = True,
    ):
        self.room_id = room_id or str(uuid.uuid4())
        self.definition = definition
        self.config = config or EngineConfig.from_env()

        self.store = StateStore(definition, clock=clock, rng=rng)
        self.resolver = EffectResolver(self.store)
        self.processor = ActionProcessor(self.store, definition, self.resolver)
        self.scheduler = TickScheduler(
            self.store,
            definition,
            self.resolver,
            clock=host_clock,
            fixed_timestep_ms=self.config.timestep_ms,
            max_frame_ms=self.config.max_frame_ms,
            frame_interval_ms=self.config.frame_interval_ms,
            run_in_thread=run_in_thread,
        )
        self.created_at = self.store.clock.now()

        self._writer: ThreadPoolExecutor | None = None
        self._writer_lock = threading.Lock()
        self._writer_ident: int | None = None
        self._closed = False

    @property
    def name(self) -> str:
        return self.definition.name

    # =========================================================================
    # Actions
    # =========================================================================

    def process_action(
        self,
        action_name: str,
        player_id: str,
        parameters: dict[str, Any] | None = None,
    ) -> ActionExecution:
        """
        Process an action and wait for its outcome.

        The action goes through the writer queue, so it applies after every
        action submitted before it. Called from the writer thread itself,
        it runs inline.

        Raises:
            RuntimeError: if the room is closed
        """
        if threading.get_ident() == self._writer_ident:
            return self.processor.process_action(action_name, player_id, parameters)
        return self.submit_action(action_name, player_id, parameters).result()

    def submit_action(
        self,
        action_name: str,
        player_id: str,
        parameters: dict[str, Any] | None = None,
    ) -> Future[ActionExecution]:
        """
        Queue an action on the room's writer thread.

        Actions submitted from any thread apply one at a time in
        submission order.
        """
        with self._writer_lock:
            if self._closed:
                raise RuntimeError(f"Room {self.room_id} is closed")
            if self._writer is None:
                self._writer = ThreadPoolExecutor(
                    max_workers=1, thread_name_prefix=f"room-{self.room_id[:8]}"
                )
            return self._writer.submit(self._apply_queued, action_name, player_id, parameters)

    def _apply_queued(
        self,
        action_name: str,
        player_id: str,
        parameters: dict[str, Any] | None,
    ) -> ActionExecution:
        self._writer_ident = threading.get_ident()
        return self.processor.process_action(action_name, player_id, parameters)

    # =========================================================================
    # Reads
    # =========================================================================

    def get_variable(self, name: str) -> float | None:
        return self.store.get_variable(name)

    def get_entity_property(self, entity: str, key: str) -> Any:
        return self.store.get_entity_property(entity, key)

    def get_score(self, player_id: str) -> float:
        return self.store.get_score(player_id)

    def get_state(self) -> StateSnapshot:
        """A frozen snapshot of the whole state."""
        from ..api.schemas import snapshot_from_state

        return snapshot_from_state(self.store.snapshot(), room_id=self.room_id)

    def get_action_history(self) -> list[ActionExecution]:
        return self.processor.get_action_history()

    def summary(self) -> dict[str, Any]:
        return {
            "room_id": self.room_id,
            "name": self.name,
            "scheduler": self.scheduler.get_status_string(),
            **self.store.summary(),
        }

    # =========================================================================
    # Players
    # =========================================================================

    def add_player(self, data: dict[str, Any] | None = None, **kwargs: Any) -> Player:
        return self.store.add_player(data, **kwargs)

    def remove_player(self, player_id: str) -> bool:
        removed = self.store.remove_player(player_id)
        if removed:
            self.processor.clear_player_cooldowns(player_id)
        return removed

    # =========================================================================
    # Lifecycle
    # =========================================================================

    def start(self) -> bool:
        return self.scheduler.start()

    def stop(self):
        self.scheduler.stop()

    def pause(self):
        self.scheduler.pause()

    def resume(self) -> bool:
        return self.scheduler.resume()

    def force_tick(self) -> int:
        return self.scheduler.force_tick()

    def on_tick(self, callback: TickCallback):
        self.scheduler.on_tick(callback)

    def on_error(self, callback: ErrorCallback):
        self.scheduler.on_error(callback)

    def get_status_string(self) -> str:
        return self.scheduler.get_status_string()

    def get_current_tick(self) -> int:
        return self.scheduler.get_current_tick()

    def reset(self):
        """
        Stop the scheduler and rebuild state from the definition.

        Players, scores, history, cooldowns and ticks are all dropped.
        """
        self.scheduler.stop()
        with self.store.lock:
            self.store.reset()
            self.processor.clear_all_cooldowns()
            self.processor.clear_action_history()
            self.scheduler.reset_tracking()
        logger.info("Room %s reset", self.room_id)

    def close(self):
        """Stop ticking and shut down the writer thread."""
        with self._writer_lock:
            self._closed = True
            writer, self._writer = self._writer, None
        self.scheduler.destroy()
        if writer is not None:
            writer.shutdown(wait=True)


class RoomManager:
    """
    Tracks the rooms one process hosts.

    No persistence - rooms are in-memory only.
    """

    def __init__(self, config: EngineConfig | None = None):
        self.config = config or EngineConfig.from_env()
        self._rooms: dict[str, Room] = {}
        self._lock = threading.Lock()

    def create_room(
        self,
        definition: GameDefinition | str | bytes | dict[str, Any],
        room_id: str | None = None,
        **room_options: Any,
    ) -> Room:
        """
        Create a room from a definition (parsed or raw JSON).

        Raises:
            SchemaError: if a raw definition is malformed
            ValueError: if room_id is already in use
        """
        if not isinstance(definition, GameDefinition):
            definition = parse(definition)

        room_options.setdefault("config", self.config)
        room = Room(definition, room_id=room_id, **room_options)

        with self._lock:
            if room.room_id in self._rooms:
                raise ValueError(f"Room {room.room_id} already exists")
            self._rooms[room.room_id] = room

        logger.info("Created room %s for '%s'", room.room_id, definition.name)
        return room

    def get_room(self, room_id: str) -> Room | None:
        with self._lock:
            return self._rooms.get(room_id)

    def list_rooms(self) -> list[str]:
        with self._lock:
            return list(self._rooms)

    def close_room(self, room_id: str) -> bool:
        """Stop a room and forget it."""
        with self._lock:
            room = self._rooms.pop(room_id, None)
        if room is None:
            return False
        room.close()
        logger.info("Closed room %s", room_id)
        return True

    def close_all(self):
        for room_id in self.list_rooms():
            self.close_room(room_id)

    def __len__(self) -> int:
        with self._lock:
            return len(self._rooms)
