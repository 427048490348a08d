from __future__ import annotations

import random
from dataclasses import replace

from mazechase.common.types import Direction, Position
from mazechase.engine.maze import Maze
from mazechase.engine.movement import (
    CARDINALS,
    GHOST_MOVES,
    OPPOSITE,
    is_passable,
    project,
    try_move,
)
from mazechase.engine.state import GhostState


def homeward_direction(pos: Position, home: Position) -> Direction:
    """Step along the axis with the larger gap to ``home``; ties go horizontal."""
    dx = home[0] - pos[0]
    dy = home[1] - pos[1]
    if dx == 0 and dy == 0:
        return Direction.NONE
    if abs(dx) >= abs(dy):
        return Direction.RIGHT if dx > 0 else Direction.LEFT
    return Direction.DOWN if dy > 0 else Direction.UP


def candidate_directions(maze: Maze, ghost: GhostState) -> list[Direction]:
    open_dirs = [
        d for d in CARDINALS if is_passable(maze, project(maze, ghost.pos, d), GHOST_MOVES)
    ]
    reverse = OPPOSITE[ghost.direction]
    forward = [d for d in open_dirs if d != reverse]
    # Reversal only at a dead end.
    return forward if forward else open_dirs


def wander_direction(
    maze: Maze, ghost: GhostState, rng: random.Random, straight_probability: float
) -> Direction:
    candidates = candidate_directions(maze, ghost)
    if not candidates:
        # Fully enclosed cell; unreachable on a connected maze.
        for d in CARDINALS:
            if d != ghost.direction:
                return d
        return Direction.UP
    if ghost.direction in candidates and rng.random() < straight_probability:
        return ghost.direction
    return rng.choice(candidates)


def advance_ghost(
    maze: Maze, ghost: GhostState, rng: random.Random, straight_probability: float
) -> GhostState:
    """Pick and attempt one move for a ghost.

    A captured ghost heads home and becomes active again once it stands on its
    home cell (without moving that tick). A failed move keeps the previous
    direction.
    """
    if ghost.captured:
        if ghost.pos == ghost.home:
            return replace(ghost, captured=False, frightened=False, intent=Direction.NONE)
        intent = homeward_direction(ghost.pos, ghost.home)
    else:
        intent = wander_direction(maze, ghost, rng, straight_probability)
    dest = try_move(maze, ghost.pos, intent, GHOST_MOVES)
    if dest is None:
        return replace(ghost, intent=intent)
    return replace(ghost, pos=dest, direction=intent, intent=intent)


def advance_ghosts(
    maze: Maze,
    ghosts: tuple[GhostState, ...],
    rng: random.Random,
    straight_probability: float,
) -> tuple[GhostState, ...]:
    return tuple(advance_ghost(maze, g, rng, straight_probability) for g in ghosts)
