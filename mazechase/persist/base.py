from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List


class Persistence(ABC):
    """Abstract persistence interface for scores and match replays."""

    @abstractmethod
    def record_match_result(
        self, match_id: str, score: int, outcome: str, ticks: int, difficulty: str
    ) -> None:
        raise NotImplementedError

    @abstractmethod
    def best_score(self) -> int:
        raise NotImplementedError

    @abstractmethod
    def leaderboard(self, limit: int = 10) -> List[Dict]:
        raise NotImplementedError

    @abstractmethod
    def register_match(self, match_id: str, difficulty: str) -> None:
        raise NotImplementedError

    @abstractmethod
    def record_replay_tick(self, match_id: str, tick: int, snapshot: dict) -> None:
        raise NotImplementedError

    @abstractmethod
    def finalize_match(self, match_id: str, total_ticks: int, stats: dict) -> None:
        raise NotImplementedError

    @abstractmethod
    def list_matches(self, limit: int = 50) -> List[Dict]:
        raise NotImplementedError

    @abstractmethod
    def get_replay_ticks(
        self, match_id: str, start_tick: int = 0, limit: int = 100
    ) -> List[Dict]:
        raise NotImplementedError

    def flush(self) -> None:
        """Block until queued writes are applied."""

    def close(self) -> None:
        """Release any held resources."""
