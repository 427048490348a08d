from __future__ import annotations

from dataclasses import dataclass, replace

from mazechase.common.types import Direction, MoverKind, Position, TileKind
from mazechase.engine.maze import Maze
from mazechase.engine.state import PlayerState

DIRECTION_DELTAS = {
    Direction.UP: (0, -1),
    Direction.DOWN: (0, 1),
    Direction.LEFT: (-1, 0),
    Direction.RIGHT: (1, 0),
    Direction.NONE: (0, 0),
}

OPPOSITE = {
    Direction.UP: Direction.DOWN,
    Direction.DOWN: Direction.UP,
    Direction.LEFT: Direction.RIGHT,
    Direction.RIGHT: Direction.LEFT,
    Direction.NONE: Direction.NONE,
}

CARDINALS = (Direction.UP, Direction.DOWN, Direction.LEFT, Direction.RIGHT)


@dataclass(frozen=True)
class Passability:
    """Tile kinds a class of mover may occupy."""

    mover: MoverKind
    allowed: frozenset[TileKind]

    def allows(self, tile: TileKind) -> bool:
        return tile in self.allowed


_WALKABLE = frozenset(TileKind) - {TileKind.WALL}

PASSABILITY = {
    MoverKind.PLAYER: Passability(MoverKind.PLAYER, _WALKABLE - {TileKind.DOOR}),
    # Ghosts may always enter and leave the home area.
    MoverKind.GHOST: Passability(MoverKind.GHOST, _WALKABLE),
}

PLAYER_MOVES = PASSABILITY[MoverKind.PLAYER]
GHOST_MOVES = PASSABILITY[MoverKind.GHOST]


def is_passable(maze: Maze, pos: Position, passability: Passability) -> bool:
    if not maze.in_bounds(pos):
        return False
    return passability.allows(maze.classify(pos))


def project(maze: Maze, pos: Position, direction: Direction) -> Position:
    """Apply one step in ``direction`` with horizontal wraparound only."""
    dx, dy = DIRECTION_DELTAS[direction]
    x = pos[0] + dx
    y = pos[1] + dy
    if x < 0:
        x = maze.width - 1
    elif x >= maze.width:
        x = 0
    return (x, y)


def try_move(
    maze: Maze, pos: Position, direction: Direction, passability: Passability
) -> Position | None:
    """Return the destination for a legal move, otherwise None."""
    if direction == Direction.NONE:
        return None
    dest = project(maze, pos, direction)
    if not is_passable(maze, dest, passability):
        return None
    return dest


def step_player(maze: Maze, player: PlayerState) -> PlayerState:
    """Advance the player one cell, preferring the buffered turn."""
    dest = try_move(maze, player.pos, player.intent, PLAYER_MOVES)
    if dest is not None:
        return replace(player, pos=dest, direction=player.intent)
    dest = try_move(maze, player.pos, player.direction, PLAYER_MOVES)
    if dest is not None:
        return replace(player, pos=dest)
    return player


def expire_stale_intent(
    player: PlayerState, last_input_at: float, now: float, window: float
) -> PlayerState:
    """Drop a buffered turn that has waited longer than ``window`` seconds."""
    if player.intent == player.direction:
        return player
    if now - last_input_at <= window:
        return player
    return replace(player, intent=player.direction)
