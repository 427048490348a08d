from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Tuple

Position = Tuple[int, int]


class Direction(str, Enum):
    UP = "UP"
    DOWN = "DOWN"
    LEFT = "LEFT"
    RIGHT = "RIGHT"
    NONE = "NONE"


class TileKind(str, Enum):
    EMPTY = "empty"
    WALL = "wall"
    DOT = "dot"
    POWER = "power"
    BONUS = "bonus"
    PLAYER_SPAWN = "player_spawn"
    GHOST_SPAWN = "ghost_spawn"
    DOOR = "door"


class MoverKind(str, Enum):
    PLAYER = "player"
    GHOST = "ghost"


class MatchPhase(str, Enum):
    IDLE = "idle"
    ACTIVE = "active"
    DEFEATED = "defeated"
    VICTORIOUS = "victorious"


class Difficulty(str, Enum):
    EASY = "EASY"
    MEDIUM = "MEDIUM"
    HARD = "HARD"


class EventType(str, Enum):
    DOT_EATEN = "dot_eaten"
    POWER_EATEN = "power_eaten"
    BONUS_EATEN = "bonus_eaten"
    GHOST_CAPTURED = "ghost_captured"
    PLAYER_DEFEATED = "player_defeated"
    BONUS_SPAWNED = "bonus_spawned"
    BONUS_EXPIRED = "bonus_expired"
    POWER_EXPIRED = "power_expired"
    MATCH_WON = "match_won"
    MATCH_LOST = "match_lost"


@dataclass(frozen=True)
class GameEvent:
    kind: EventType
    tick: int
    pos: Position | None = None
    points: int = 0
    detail: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "kind": self.kind.value,
            "tick": self.tick,
            "pos": list(self.pos) if self.pos is not None else None,
            "points": self.points,
            "detail": dict(self.detail),
        }
