from __future__ import annotations

from mazechase.common.types import Difficulty, Direction, TileKind

DOT_POINTS = 10
POWER_POINTS = 50
GHOST_POINTS = 200
BONUS_POINTS = 100

STARTING_LIVES = 3
TICK_SECONDS = 0.15
POWER_DURATION_TICKS = 50
BONUS_DURATION_TICKS = 60
BONUS_THRESHOLD = 70
INPUT_STALE_SECONDS = 0.6
GHOST_STRAIGHT_PROBABILITY = 0.7

PLAYER_ID = "player"
PLAYER_COLOR = "yellow"
DEFAULT_FACING = Direction.RIGHT
GHOST_COLORS = ("red", "pink", "cyan", "orange")
GHOST_START_DIRECTIONS = (Direction.UP, Direction.LEFT, Direction.RIGHT)

LAYOUT_CHARS = {
    " ": TileKind.EMPTY,
    "#": TileKind.WALL,
    ".": TileKind.DOT,
    "o": TileKind.POWER,
    "F": TileKind.BONUS,
    "P": TileKind.PLAYER_SPAWN,
    "G": TileKind.GHOST_SPAWN,
    "-": TileKind.DOOR,
}
TILE_CHARS = {kind: char for char, kind in LAYOUT_CHARS.items()}

# Row 9 is the wraparound tunnel.
DEFAULT_LAYOUT = (
    "###################",
    "#........#........#",
    "#o##.###.#.###.##o#",
    "#.................#",
    "#.##.#.#####.#.##.#",
    "#....#...#...#....#",
    "####.### # ###.####",
    "   #.#       #.#   ",
    "####.# ##-## #.####",
    "    .  #GGG#  .    ",
    "####.# ##### #.####",
    "   #.#       #.#   ",
    "####.# ##### #.####",
    "#........#........#",
    "#.##.###.#.###.##.#",
    "#o.#.....P.....#.o#",
    "##.#.#.#####.#.#.##",
    "#....#...#...#....#",
    "#.######.#.######.#",
    "#.................#",
    "###################",
)
DEFAULT_BONUS_CELL = (9, 11)

# tick_seconds, power_duration_ticks, ghost_straight_probability
DIFFICULTY_PRESETS = {
    Difficulty.EASY: (0.18, 70, 0.8),
    Difficulty.MEDIUM: (TICK_SECONDS, POWER_DURATION_TICKS, GHOST_STRAIGHT_PROBABILITY),
    Difficulty.HARD: (0.12, 35, 0.55),
}
