from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Tuple

from mazechase.common.constants import LAYOUT_CHARS, TILE_CHARS
from mazechase.common.errors import LayoutError, OutOfBounds
from mazechase.common.types import Position, TileKind

COLLECTIBLE_KINDS = frozenset({TileKind.DOT, TileKind.POWER})


@dataclass(frozen=True)
class Maze:
    """Immutable tile grid, row-major (``tiles[y][x]``).

    Tile replacement returns a new ``Maze``; walls and doors are never
    replaced during a match.
    """

    tiles: Tuple[Tuple[TileKind, ...], ...]
    bonus_cell: Position | None = None

    @classmethod
    def from_rows(cls, rows: Iterable[str], bonus_cell: Position | None = None) -> Maze:
        parsed: list[tuple[TileKind, ...]] = []
        for y, row in enumerate(rows):
            try:
                parsed.append(tuple(LAYOUT_CHARS[ch] for ch in row))
            except KeyError as exc:
                raise LayoutError(f"Unknown layout character {exc.args[0]!r} in row {y}") from exc
        if not parsed or not parsed[0]:
            raise LayoutError("Layout must contain at least one non-empty row")
        width = len(parsed[0])
        if any(len(row) != width for row in parsed):
            raise LayoutError("Layout rows must all have the same width")
        maze = cls(tiles=tuple(parsed), bonus_cell=bonus_cell)
        if bonus_cell is not None:
            if not maze.in_bounds(bonus_cell):
                raise LayoutError(f"Bonus cell {bonus_cell} outside the grid")
            if maze.classify(bonus_cell) in (TileKind.WALL, TileKind.DOOR):
                raise LayoutError(f"Bonus cell {bonus_cell} is not walkable")
        return maze

    @property
    def width(self) -> int:
        return len(self.tiles[0])

    @property
    def height(self) -> int:
        return len(self.tiles)

    def in_bounds(self, pos: Position) -> bool:
        x, y = pos
        return 0 <= x < self.width and 0 <= y < self.height

    def classify(self, pos: Position) -> TileKind:
        if not self.in_bounds(pos):
            raise OutOfBounds(pos, self.width, self.height)
        x, y = pos
        return self.tiles[y][x]

    def find_spawn(self, kind: TileKind) -> Position | None:
        """Return the first cell of ``kind`` in row-major scan order."""
        for pos in self._scan(kind):
            return pos
        return None

    def find_all_spawns(self, kind: TileKind) -> list[Position]:
        return list(self._scan(kind))

    def with_tile(self, pos: Position, kind: TileKind) -> Maze:
        current = self.classify(pos)
        if current in (TileKind.WALL, TileKind.DOOR):
            raise LayoutError(f"Cannot replace {current.value} tile at {pos}")
        if current == kind:
            return self
        x, y = pos
        row = list(self.tiles[y])
        row[x] = kind
        tiles = self.tiles[:y] + (tuple(row),) + self.tiles[y + 1 :]
        return Maze(tiles=tiles, bonus_cell=self.bonus_cell)

    def remaining_collectibles(self) -> int:
        return sum(1 for row in self.tiles for tile in row if tile in COLLECTIBLE_KINDS)

    def to_rows(self) -> list[str]:
        return ["".join(TILE_CHARS[tile] for tile in row) for row in self.tiles]

    def _scan(self, kind: TileKind):
        for y, row in enumerate(self.tiles):
            for x, tile in enumerate(row):
                if tile == kind:
                    yield (x, y)
