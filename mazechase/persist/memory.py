from __future__ import annotations

import copy
import time

from mazechase.persist.base import Persistence


class MemoryPersistence(Persistence):
    """In-process persistence; everything is lost when the process exits."""

    def __init__(self) -> None:
        self.results: list[dict] = []
        self.matches: dict[str, dict] = {}
        self.ticks: dict[str, dict[int, dict]] = {}

    def record_match_result(
        self, match_id: str, score: int, outcome: str, ticks: int, difficulty: str
    ) -> None:
        self.results.append(
            {
                "match_id": match_id,
                "score": score,
                "outcome": outcome,
                "ticks": ticks,
                "difficulty": difficulty,
                "recorded_at": int(time.time()),
            }
        )

    def best_score(self) -> int:
        return max((r["score"] for r in self.results), default=0)

    def leaderboard(self, limit: int = 10) -> list[dict]:
        ranked = sorted(self.results, key=lambda r: (-r["score"], r["ticks"]))
        return [dict(r) for r in ranked[:limit]]

    def register_match(self, match_id: str, difficulty: str) -> None:
        self.matches.setdefault(
            match_id,
            {
                "match_id": match_id,
                "difficulty": difficulty,
                "started_at": int(time.time()),
                "ended_at": None,
                "outcome": None,
                "total_ticks": 0,
                "final_score": 0,
            },
        )
        self.ticks.setdefault(match_id, {})

    def record_replay_tick(self, match_id: str, tick: int, snapshot: dict) -> None:
        self.ticks.setdefault(match_id, {}).setdefault(tick, copy.deepcopy(snapshot))

    def finalize_match(self, match_id: str, total_ticks: int, stats: dict) -> None:
        match = self.matches.get(match_id)
        if match is None:
            return
        match.update(
            ended_at=int(time.time()),
            outcome=stats.get("outcome"),
            total_ticks=total_ticks,
            final_score=int(stats.get("score", 0)),
        )

    def list_matches(self, limit: int = 50) -> list[dict]:
        ordered = sorted(self.matches.values(), key=lambda m: m["started_at"], reverse=True)
        return [dict(m) for m in ordered[:limit]]

    def get_replay_ticks(self, match_id: str, start_tick: int = 0, limit: int = 100) -> list[dict]:
        ticks = self.ticks.get(match_id, {})
        selected = sorted(t for t in ticks if t >= start_tick)[:limit]
        return [{"tick": t, "snapshot": copy.deepcopy(ticks[t])} for t in selected]
