from __future__ import annotations

import logging
import random
import time
import uuid
from collections.abc import Callable
from dataclasses import replace

from mazechase.common.constants import GHOST_COLORS, GHOST_START_DIRECTIONS
from mazechase.common.errors import InvalidPhaseTransition, MissingSpawnMarker
from mazechase.common.types import Direction, GameEvent, MatchPhase, TileKind
from mazechase.engine.ghosts import advance_ghosts
from mazechase.engine.interactions import (
    consume_tile,
    decay_timers,
    resolve_collision,
    settle_phase,
)
from mazechase.engine.movement import expire_stale_intent, step_player
from mazechase.engine.phases import PhaseCommand, transition
from mazechase.engine.state import GhostState, MatchConfig, MatchState, PlayerState
from mazechase.persist.base import Persistence

logger = logging.getLogger(__name__)

EventListener = Callable[[GameEvent], None]


def build_match(
    config: MatchConfig,
    match_id: str,
    now: float,
    phase: MatchPhase = MatchPhase.ACTIVE,
) -> MatchState:
    """Create a fresh match from the configured layout."""
    maze = config.build_maze()
    player_spawn = maze.find_spawn(TileKind.PLAYER_SPAWN)
    if player_spawn is None:
        raise MissingSpawnMarker("Layout has no player spawn marker")
    ghosts = tuple(
        GhostState(
            mover_id=f"ghost-{index}",
            pos=pos,
            home=pos,
            color=GHOST_COLORS[index % len(GHOST_COLORS)],
            direction=GHOST_START_DIRECTIONS[index % len(GHOST_START_DIRECTIONS)],
        )
        for index, pos in enumerate(maze.find_all_spawns(TileKind.GHOST_SPAWN))
    )
    return MatchState(
        maze=maze,
        player=PlayerState(pos=player_spawn, spawn=player_spawn),
        ghosts=ghosts,
        lives=config.starting_lives,
        phase=phase,
        last_input_at=now,
        match_id=match_id,
        difficulty=config.difficulty,
    )


def advance(
    state: MatchState,
    config: MatchConfig,
    rng: random.Random,
    now: float,
    intent: Direction | None = None,
    input_at: float | None = None,
) -> tuple[MatchState, list[GameEvent]]:
    """Compute the next state for an active match.

    ``intent`` is the direction buffered since the previous tick, if any.
    """
    events: list[GameEvent] = []
    player = state.player
    last_input_at = state.last_input_at
    if intent is not None:
        player = replace(player, intent=intent)
        last_input_at = input_at if input_at is not None else now
    player = expire_stale_intent(player, last_input_at, now, config.input_stale_seconds)
    player = step_player(state.maze, player)
    state = replace(state, tick=state.tick + 1, player=player, last_input_at=last_input_at)

    state = consume_tile(state, config, events)
    state = decay_timers(state, events)
    state = replace(
        state,
        ghosts=advance_ghosts(
            state.maze, state.ghosts, rng, config.ghost_straight_probability
        ),
    )
    state = resolve_collision(state, now, events)
    state = settle_phase(state, events)
    return state, events


class MatchEngine:
    """Drives a single match on a fixed tick cadence.

    Callers invoke ``step`` as often as they like (e.g. once per frame); the
    simulation only advances once ``tick_seconds`` have elapsed since the
    previous tick.
    """

    def __init__(
        self,
        persistence: Persistence | None = None,
        config: MatchConfig | None = None,
        seed: int | None = None,
        clock: Callable[[], float] = time.monotonic,
        enable_replay_logging: bool = True,
    ) -> None:
        self.persistence = persistence
        self.config = config or MatchConfig()
        self.rng = random.Random(seed)
        self.clock = clock
        self.enable_replay_logging = enable_replay_logging and persistence is not None
        self.state: MatchState | None = None
        self._listeners: list[EventListener] = []
        self._last_tick_at: float | None = None
        self._pending_intent: Direction | None = None
        self._pending_input_at: float | None = None
        self._in_step = False
        self._best_recorded = persistence.best_score() if persistence is not None else 0

    @property
    def phase(self) -> MatchPhase:
        return self.state.phase if self.state is not None else MatchPhase.IDLE

    @property
    def best_score(self) -> int:
        current = self.state.score if self.state is not None else 0
        return max(self._best_recorded, current)

    def subscribe(self, listener: EventListener) -> None:
        self._listeners.append(listener)

    def unsubscribe(self, listener: EventListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def start(self, now: float | None = None) -> MatchState | None:
        """Begin a match from idle. Ignored in any other phase."""
        try:
            transition(self.phase, PhaseCommand.START)
        except InvalidPhaseTransition as exc:
            logger.debug("Ignoring start: %s", exc)
            return self.state
        return self._begin(self.clock() if now is None else now)

    def restart(self, now: float | None = None) -> MatchState:
        """Throw away the current match (if any) and begin a new one."""
        transition(self.phase, PhaseCommand.RESTART)
        previous = self.state
        state = self._begin(self.clock() if now is None else now)
        if previous is not None and previous.phase == MatchPhase.ACTIVE:
            self._finalize_replay(previous, outcome="abandoned")
        return state

    def set_intended_direction(self, direction: Direction, now: float | None = None) -> None:
        """Buffer a turn for the next tick. Only honored while a match is active."""
        if direction == Direction.NONE or self.phase != MatchPhase.ACTIVE:
            return
        self._pending_intent = direction
        self._pending_input_at = self.clock() if now is None else now

    def step(self, now: float) -> bool:
        """Advance one tick if due. Returns True when the state changed."""
        if self._in_step or self.state is None:
            return False
        try:
            transition(self.state.phase, PhaseCommand.TICK)
        except InvalidPhaseTransition as exc:
            logger.debug("Ignoring tick: %s", exc)
            return False
        if self._last_tick_at is not None and now - self._last_tick_at < self.config.tick_seconds:
            return False
        self._last_tick_at = now
        self._in_step = True
        try:
            state, events = advance(
                self.state,
                self.config,
                self.rng,
                now,
                intent=self._pending_intent,
                input_at=self._pending_input_at,
            )
            self._pending_intent = None
            self._pending_input_at = None
            self.state = state
            self._dispatch(events)
            self._record_tick(state, events)
            if state.is_terminal:
                self._finish_match(state)
        finally:
            self._in_step = False
        return True

    # Internal helpers

    def _begin(self, now: float) -> MatchState:
        state = build_match(self.config, match_id=str(uuid.uuid4()), now=now)
        self.state = state
        self._last_tick_at = None
        self._pending_intent = None
        self._pending_input_at = None
        if self.enable_replay_logging:
            self.persistence.register_match(state.match_id, state.difficulty.value)
        logger.info(
            "Match %s started (%s, %d ghosts)",
            state.match_id,
            state.difficulty.value,
            len(state.ghosts),
        )
        return state

    def _dispatch(self, events: list[GameEvent]) -> None:
        for event in events:
            for listener in list(self._listeners):
                try:
                    listener(event)
                except Exception:
                    logger.exception("Event listener failed for %s", event.kind.value)

    def _record_tick(self, state: MatchState, events: list[GameEvent]) -> None:
        if not self.enable_replay_logging:
            return
        snapshot = render_snapshot(state)
        snapshot["events"] = [e.to_dict() for e in events]
        self.persistence.record_replay_tick(state.match_id, state.tick, snapshot)

    def _finish_match(self, state: MatchState) -> None:
        logger.info(
            "Match %s ended %s with score %d after %d ticks",
            state.match_id,
            state.phase.value,
            state.score,
            state.tick,
        )
        self._best_recorded = max(self._best_recorded, state.score)
        if self.persistence is None:
            return
        self.persistence.record_match_result(
            state.match_id,
            score=state.score,
            outcome=state.phase.value,
            ticks=state.tick,
            difficulty=state.difficulty.value,
        )
        self._finalize_replay(state, outcome=state.phase.value)

    def _finalize_replay(self, state: MatchState, outcome: str) -> None:
        if not self.enable_replay_logging:
            return
        self.persistence.finalize_match(
            state.match_id,
            total_ticks=state.tick,
            stats={"outcome": outcome, "score": state.score, "lives": state.lives},
        )


def render_snapshot(state: MatchState) -> dict:
    """Render a JSON-friendly view of a match state."""
    return {
        "match_id": state.match_id,
        "tick": state.tick,
        "phase": state.phase.value,
        "difficulty": state.difficulty.value,
        "score": state.score,
        "lives": state.lives,
        "power_ticks": state.power_ticks,
        "bonus_ticks": state.bonus_ticks,
        "dots_eaten": state.dots_eaten,
        "remaining": state.maze.remaining_collectibles(),
        "width": state.maze.width,
        "height": state.maze.height,
        "grid": state.maze.to_rows(),
        "player": {
            "id": state.player.mover_id,
            "pos": [state.player.pos[0], state.player.pos[1]],
            "direction": state.player.direction.value,
            "intent": state.player.intent.value,
            "color": state.player.color,
        },
        "ghosts": [
            {
                "id": g.mover_id,
                "pos": [g.pos[0], g.pos[1]],
                "direction": g.direction.value,
                "color": g.color,
                "frightened": g.frightened,
                "captured": g.captured,
            }
            for g in state.ghosts
        ],
    }
