from __future__ import annotations

from dataclasses import replace

from mazechase.common.constants import DOT_POINTS, GHOST_POINTS, POWER_POINTS
from mazechase.common.types import EventType, GameEvent, TileKind
from mazechase.engine.phases import PhaseCommand, transition
from mazechase.engine.state import MatchConfig, MatchState


def consume_tile(state: MatchState, config: MatchConfig, events: list[GameEvent]) -> MatchState:
    """Apply whatever collectible sits under the player."""
    pos = state.player.pos
    tile = state.maze.classify(pos)
    if tile == TileKind.DOT:
        dots_eaten = state.dots_eaten + 1
        state = replace(
            state,
            maze=state.maze.with_tile(pos, TileKind.EMPTY),
            score=state.score + DOT_POINTS,
            dots_eaten=dots_eaten,
        )
        events.append(GameEvent(EventType.DOT_EATEN, state.tick, pos, DOT_POINTS))
        if config.bonus_threshold > 0 and dots_eaten % config.bonus_threshold == 0:
            state = _spawn_bonus(state, config, events)
    elif tile == TileKind.POWER:
        state = replace(
            state,
            maze=state.maze.with_tile(pos, TileKind.EMPTY),
            score=state.score + POWER_POINTS,
            power_ticks=config.power_duration_ticks,
            # Captured ghosts are frightened too, as in the arcade.
            ghosts=tuple(replace(g, frightened=True) for g in state.ghosts),
        )
        events.append(GameEvent(EventType.POWER_EATEN, state.tick, pos, POWER_POINTS))
    elif tile == TileKind.BONUS:
        state = replace(
            state,
            maze=state.maze.with_tile(pos, TileKind.EMPTY),
            score=state.score + config.bonus_points,
            bonus_ticks=0,
        )
        events.append(GameEvent(EventType.BONUS_EATEN, state.tick, pos, config.bonus_points))
    return state


def _spawn_bonus(state: MatchState, config: MatchConfig, events: list[GameEvent]) -> MatchState:
    cell = state.maze.bonus_cell
    if cell is None:
        return state
    if state.maze.classify(cell) not in (TileKind.EMPTY, TileKind.BONUS):
        return state
    events.append(GameEvent(EventType.BONUS_SPAWNED, state.tick, cell))
    return replace(
        state,
        maze=state.maze.with_tile(cell, TileKind.BONUS),
        bonus_ticks=config.bonus_duration_ticks,
    )


def decay_timers(state: MatchState, events: list[GameEvent]) -> MatchState:
    if state.power_ticks > 0:
        power_ticks = state.power_ticks - 1
        state = replace(state, power_ticks=power_ticks)
        if power_ticks == 0:
            state = replace(state, ghosts=tuple(replace(g, frightened=False) for g in state.ghosts))
            events.append(GameEvent(EventType.POWER_EXPIRED, state.tick))
    if state.bonus_ticks > 0:
        bonus_ticks = state.bonus_ticks - 1
        state = replace(state, bonus_ticks=bonus_ticks)
        cell = state.maze.bonus_cell
        if bonus_ticks == 0 and cell is not None and state.maze.classify(cell) == TileKind.BONUS:
            state = replace(state, maze=state.maze.with_tile(cell, TileKind.EMPTY))
            events.append(GameEvent(EventType.BONUS_EXPIRED, state.tick, cell))
    return state


def resolve_collision(state: MatchState, now: float, events: list[GameEvent]) -> MatchState:
    """Settle a player/ghost meeting on the same cell.

    Only the first ghost in index order on the player's cell is considered.
    Losing the last life leaves every mover where it stands.
    """
    pos = state.player.pos
    index = next((i for i, g in enumerate(state.ghosts) if g.pos == pos), None)
    if index is None:
        return state
    ghost = state.ghosts[index]
    if ghost.captured:
        return state
    if ghost.frightened:
        captured = replace(ghost, pos=ghost.home, frightened=False, captured=True)
        ghosts = state.ghosts[:index] + (captured,) + state.ghosts[index + 1 :]
        events.append(
            GameEvent(
                EventType.GHOST_CAPTURED,
                state.tick,
                pos,
                GHOST_POINTS,
                {"ghost_id": ghost.mover_id},
            )
        )
        return replace(state, ghosts=ghosts, score=state.score + GHOST_POINTS)
    lives = state.lives - 1
    events.append(
        GameEvent(
            EventType.PLAYER_DEFEATED,
            state.tick,
            pos,
            detail={"ghost_id": ghost.mover_id, "lives": lives},
        )
    )
    if lives <= 0:
        return replace(state, lives=0)
    return replace(
        state,
        lives=lives,
        player=state.player.respawned(),
        ghosts=tuple(g.respawned() for g in state.ghosts),
        last_input_at=now,
    )


def settle_phase(state: MatchState, events: list[GameEvent]) -> MatchState:
    """Apply end-of-tick phase changes; clearing the board beats losing."""
    if state.maze.remaining_collectibles() == 0:
        events.append(GameEvent(EventType.MATCH_WON, state.tick, detail={"score": state.score}))
        return replace(state, phase=transition(state.phase, PhaseCommand.WIN))
    if state.lives == 0:
        events.append(GameEvent(EventType.MATCH_LOST, state.tick, detail={"score": state.score}))
        return replace(state, phase=transition(state.phase, PhaseCommand.LOSE))
    return state
