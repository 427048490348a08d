from __future__ import annotations

from dataclasses import dataclass, replace
from typing import Tuple

from mazechase.common import constants
from mazechase.common.config import Settings
from mazechase.common.types import Difficulty, Direction, MatchPhase, Position
from mazechase.engine.maze import Maze


@dataclass(frozen=True)
class MatchConfig:
    """Constants for one match. Not mutated while a match runs."""

    layout: Tuple[str, ...] = constants.DEFAULT_LAYOUT
    bonus_cell: Position | None = constants.DEFAULT_BONUS_CELL
    difficulty: Difficulty = Difficulty.MEDIUM
    tick_seconds: float = constants.TICK_SECONDS
    starting_lives: int = constants.STARTING_LIVES
    power_duration_ticks: int = constants.POWER_DURATION_TICKS
    bonus_duration_ticks: int = constants.BONUS_DURATION_TICKS
    bonus_threshold: int = constants.BONUS_THRESHOLD
    bonus_points: int = constants.BONUS_POINTS
    input_stale_seconds: float = constants.INPUT_STALE_SECONDS
    ghost_straight_probability: float = constants.GHOST_STRAIGHT_PROBABILITY

    def __post_init__(self) -> None:
        if self.tick_seconds <= 0:
            raise ValueError("tick_seconds must be positive")
        if self.starting_lives < 1:
            raise ValueError("starting_lives must be at least 1")
        if self.power_duration_ticks < 1:
            raise ValueError("power_duration_ticks must be at least 1")
        if self.bonus_duration_ticks < 1:
            raise ValueError("bonus_duration_ticks must be at least 1")
        if self.bonus_threshold < 0:
            raise ValueError("bonus_threshold must not be negative")

    @classmethod
    def for_difficulty(cls, difficulty: Difficulty, **overrides) -> MatchConfig:
        tick_seconds, power_ticks, straight = constants.DIFFICULTY_PRESETS[difficulty]
        values = {
            "difficulty": difficulty,
            "tick_seconds": tick_seconds,
            "power_duration_ticks": power_ticks,
            "ghost_straight_probability": straight,
        }
        values.update(overrides)
        return cls(**values)

    @classmethod
    def from_settings(cls, settings: Settings) -> MatchConfig:
        overrides = {
            "starting_lives": settings.starting_lives,
            "bonus_duration_ticks": settings.bonus_duration_ticks,
            "bonus_threshold": settings.bonus_threshold,
            "bonus_points": settings.bonus_points,
            "input_stale_seconds": settings.input_stale_seconds,
        }
        if settings.tick_seconds is not None:
            overrides["tick_seconds"] = settings.tick_seconds
        if settings.power_duration_ticks is not None:
            overrides["power_duration_ticks"] = settings.power_duration_ticks
        if settings.ghost_straight_probability is not None:
            overrides["ghost_straight_probability"] = settings.ghost_straight_probability
        return cls.for_difficulty(Difficulty(settings.difficulty.upper()), **overrides)

    def build_maze(self) -> Maze:
        return Maze.from_rows(self.layout, bonus_cell=self.bonus_cell)


@dataclass(frozen=True)
class PlayerState:
    pos: Position
    spawn: Position
    direction: Direction = constants.DEFAULT_FACING
    intent: Direction = constants.DEFAULT_FACING
    mover_id: str = constants.PLAYER_ID
    color: str = constants.PLAYER_COLOR

    def respawned(self) -> PlayerState:
        return replace(
            self,
            pos=self.spawn,
            direction=constants.DEFAULT_FACING,
            intent=constants.DEFAULT_FACING,
        )


@dataclass(frozen=True)
class GhostState:
    mover_id: str
    pos: Position
    home: Position
    color: str
    direction: Direction = Direction.UP
    intent: Direction = Direction.NONE
    frightened: bool = False
    captured: bool = False

    def respawned(self) -> GhostState:
        return replace(self, pos=self.home, frightened=False, captured=False)


@dataclass(frozen=True)
class MatchState:
    maze: Maze
    player: PlayerState
    ghosts: Tuple[GhostState, ...] = ()
    score: int = 0
    lives: int = constants.STARTING_LIVES
    phase: MatchPhase = MatchPhase.IDLE
    power_ticks: int = 0
    dots_eaten: int = 0
    bonus_ticks: int = 0
    tick: int = 0
    last_input_at: float = 0.0
    match_id: str = ""
    difficulty: Difficulty = Difficulty.MEDIUM

    @property
    def is_terminal(self) -> bool:
        return self.phase in (MatchPhase.DEFEATED, MatchPhase.VICTORIOUS)
