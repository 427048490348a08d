from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field


class InputRequest(BaseModel):
    direction: str


class PlayerView(BaseModel):
    id: str
    pos: List[int]
    direction: str
    intent: str
    color: str


class GhostView(BaseModel):
    id: str
    pos: List[int]
    direction: str
    color: str
    frightened: bool
    captured: bool


class MatchSnapshot(BaseModel):
    match_id: str
    tick: int
    phase: str
    difficulty: str
    score: int
    lives: int
    power_ticks: int
    bonus_ticks: int
    dots_eaten: int
    remaining: int
    width: int
    height: int
    grid: List[str]
    player: PlayerView
    ghosts: List[GhostView] = Field(default_factory=list)


class MatchStateResponse(BaseModel):
    phase: str
    best_score: int
    snapshot: Optional[MatchSnapshot] = None


class LeaderboardEntry(BaseModel):
    match_id: str
    score: int
    outcome: str
    ticks: int
    difficulty: str
    recorded_at: int


class ReplayMatchSummary(BaseModel):
    match_id: str
    difficulty: str
    started_at: int
    ended_at: int | None = None
    outcome: str | None = None
    total_ticks: int
    final_score: int


class ReplayTickEntry(BaseModel):
    tick: int
    snapshot: dict


class ReplayResponse(BaseModel):
    match_id: str
    ticks: List[ReplayTickEntry]
    has_more: bool
