from __future__ import annotations


class MazeError(Exception):
    """Base class for simulation errors."""


class OutOfBounds(MazeError, IndexError):
    def __init__(self, pos: tuple[int, int], width: int, height: int) -> None:
        super().__init__(f"Position {pos} outside {width}x{height} grid")
        self.pos = pos


class MissingSpawnMarker(MazeError):
    """The layout cannot host a match: a required spawn marker is absent."""


class InvalidPhaseTransition(MazeError):
    def __init__(self, phase: str, command: str) -> None:
        super().__init__(f"Cannot {command} while match is {phase}")
        self.phase = phase
        self.command = command


class LayoutError(MazeError, ValueError):
    """Malformed maze layout text."""
