import random

import pytest

from mazechase.common.errors import MissingSpawnMarker
from mazechase.common.types import Direction, EventType, MatchPhase, TileKind
from mazechase.engine.engine import MatchEngine, render_snapshot
from mazechase.engine.movement import CARDINALS
from mazechase.engine.state import MatchConfig
from mazechase.persist.memory import MemoryPersistence


class ScriptedRandom(random.Random):
    def __init__(self, value: float = 0.0, pick: int = 0) -> None:
        super().__init__(0)
        self.value = value
        self.pick = pick

    def random(self) -> float:
        return self.value

    def choice(self, seq):
        return seq[self.pick % len(seq)]


def _make_engine(layout, persistence=None, **config):
    config.setdefault("bonus_cell", None)
    engine = MatchEngine(persistence, config=MatchConfig(layout=tuple(layout), **config))
    engine.rng = ScriptedRandom()
    return engine


def test_single_corridor_victory():
    engine = _make_engine(["#####", "#P. #", "#   #", "#   #", "#####"])
    events = []
    engine.subscribe(events.append)
    engine.start(now=0.0)
    assert engine.step(0.0)
    state = engine.state
    assert state.player.pos == (2, 1)
    assert state.score == 10
    assert state.maze.classify((2, 1)) == TileKind.EMPTY
    assert state.phase == MatchPhase.VICTORIOUS
    assert [e.kind for e in events] == [EventType.DOT_EATEN, EventType.MATCH_WON]


def test_capture_through_engine():
    engine = _make_engine(["######", "#PoG.#", "######"])
    engine.start(now=0.0)
    engine.step(0.0)
    state = engine.state
    assert state.player.pos == (2, 1)
    assert state.score == 50 + 200
    ghost = state.ghosts[0]
    assert ghost.pos == (3, 1)
    assert ghost.captured
    assert not ghost.frightened
    assert state.phase == MatchPhase.ACTIVE


def test_defeat_freezes_match():
    persistence = MemoryPersistence()
    engine = _make_engine(["######", "#P.G.#", "######"], persistence, starting_lives=1)
    engine.start(now=0.0)
    engine.step(0.0)
    state = engine.state
    assert state.lives == 0
    assert state.phase == MatchPhase.DEFEATED
    assert state.player.pos == (2, 1)
    assert state.ghosts[0].pos == (2, 1)
    for i in range(1, 20):
        assert not engine.step(float(i))
    assert engine.state is state
    assert len(persistence.results) == 1
    assert persistence.results[0]["outcome"] == "defeated"
    assert persistence.results[0]["score"] == 10


def test_step_is_rate_limited():
    engine = _make_engine(["##########", "#P.......#", "##########"], tick_seconds=0.15)
    engine.start(now=0.0)
    assert engine.step(0.0)
    assert engine.state.tick == 1
    assert not engine.step(0.1)
    assert engine.state.tick == 1
    assert engine.step(0.15)
    assert engine.state.tick == 2


def test_tick_before_start_is_noop():
    engine = _make_engine(["#####", "#P. #", "#####"])
    assert not engine.step(0.0)
    assert engine.state is None
    assert engine.phase == MatchPhase.IDLE


def test_start_and_restart_lifecycle():
    engine = _make_engine(["######", "#P...#", "######"])
    first = engine.start(now=0.0)
    assert first.phase == MatchPhase.ACTIVE
    engine.step(0.0)
    assert engine.start(now=1.0) is engine.state
    assert engine.state.match_id == first.match_id
    second = engine.restart(now=2.0)
    assert second.match_id != first.match_id
    assert second.score == 0
    assert second.tick == 0
    assert second.lives == 3


def test_restart_required_after_terminal():
    engine = _make_engine(["#####", "#P. #", "#####"])
    engine.start(now=0.0)
    engine.step(0.0)
    assert engine.phase == MatchPhase.VICTORIOUS
    engine.start(now=1.0)
    assert engine.phase == MatchPhase.VICTORIOUS
    engine.restart(now=2.0)
    assert engine.phase == MatchPhase.ACTIVE
    assert engine.state.maze.classify((2, 1)) == TileKind.DOT


def test_missing_player_spawn_fails_at_start():
    engine = _make_engine(["#####", "#.G #", "#####"])
    with pytest.raises(MissingSpawnMarker):
        engine.start(now=0.0)
    assert engine.state is None


def test_buffered_input_applies_next_tick():
    engine = _make_engine(["#####", "#. .#", "#P..#", "#####"])
    engine.set_intended_direction(Direction.UP, now=0.0)
    engine.start(now=0.0)
    assert engine.state.player.intent == Direction.RIGHT
    engine.set_intended_direction(Direction.UP, now=0.0)
    assert engine.state.player.intent == Direction.RIGHT
    engine.step(0.0)
    assert engine.state.player.pos == (1, 1)
    assert engine.state.player.direction == Direction.UP


def test_stale_turn_is_dropped():
    engine = _make_engine(
        ["##########", "#P.......#", "##########"], tick_seconds=0.1, input_stale_seconds=0.6
    )
    engine.start(now=0.0)
    engine.set_intended_direction(Direction.UP, now=0.0)
    engine.step(0.0)
    assert engine.state.player.intent == Direction.UP
    engine.step(0.3)
    assert engine.state.player.intent == Direction.UP
    engine.step(1.0)
    assert engine.state.player.intent == Direction.RIGHT
    assert engine.state.player.direction == Direction.RIGHT


def test_reentrant_step_is_ignored():
    engine = _make_engine(["#######", "#P....#", "#######"])
    results = []
    engine.subscribe(lambda event: results.append(engine.step(100.0)))
    engine.start(now=0.0)
    engine.step(0.0)
    assert results == [False]
    assert engine.state.tick == 1


def test_listener_failure_does_not_break_tick():
    engine = _make_engine(["#######", "#P....#", "#######"])
    seen = []

    def broken(event):
        raise RuntimeError("renderer exploded")

    engine.subscribe(broken)
    engine.subscribe(seen.append)
    engine.start(now=0.0)
    assert engine.step(0.0)
    assert [e.kind for e in seen] == [EventType.DOT_EATEN]


def test_best_score_tracks_persisted_high_water():
    persistence = MemoryPersistence()
    persistence.record_match_result(
        "old", score=500, outcome="defeated", ticks=10, difficulty="MEDIUM"
    )
    engine = _make_engine(["#######", "#P....#", "#######"], persistence)
    assert engine.best_score == 500
    engine.start(now=0.0)
    engine.step(0.0)
    assert engine.best_score == 500


def test_replay_ticks_recorded_in_memory():
    persistence = MemoryPersistence()
    engine = _make_engine(["#######", "#P....#", "#######"], persistence)
    state = engine.start(now=0.0)
    engine.step(0.0)
    engine.step(1.0)
    ticks = persistence.get_replay_ticks(state.match_id)
    assert [t["tick"] for t in ticks] == [1, 2]
    assert ticks[0]["snapshot"]["events"][0]["kind"] == "dot_eaten"
    assert persistence.list_matches()[0]["match_id"] == state.match_id


def test_snapshot_render_format():
    engine = _make_engine(["######", "#P.G.#", "######"])
    state = engine.start(now=0.0)
    snapshot = render_snapshot(state)
    assert snapshot["grid"] == ["######", "#P.G.#", "######"]
    assert snapshot["phase"] == "active"
    assert snapshot["player"]["pos"] == [1, 1]
    assert snapshot["ghosts"][0]["id"] == "ghost-0"
    assert snapshot["remaining"] == 2


def test_default_maze_invariants_hold_over_long_run():
    config = MatchConfig.for_difficulty(MatchConfig().difficulty, tick_seconds=0.1)
    engine = MatchEngine(MemoryPersistence(), config=config, seed=11)
    inputs = random.Random(5)
    engine.start(now=0.0)
    walls = {
        (x, y)
        for y, row in enumerate(engine.state.maze.tiles)
        for x, tile in enumerate(row)
        if tile == TileKind.WALL
    }
    prev = engine.state
    now = 0.0
    for _ in range(600):
        now += 0.1
        if inputs.random() < 0.2:
            engine.set_intended_direction(inputs.choice(CARDINALS), now=now)
        engine.step(now)
        state = engine.state
        if state.match_id != prev.match_id:
            prev = state
            continue
        assert state.player.pos not in walls
        assert state.maze.classify(state.player.pos) != TileKind.DOOR
        assert all(g.pos not in walls for g in state.ghosts)
        assert state.power_ticks >= 0
        assert state.bonus_ticks >= 0
        if state.power_ticks == 0:
            assert not any(g.frightened for g in state.ghosts)
        if state.lives == prev.lives:
            assert state.score >= prev.score
        if state.is_terminal:
            engine.restart(now=now)
        prev = engine.state


def test_unsubscribed_listener_gets_nothing():
    engine = _make_engine(["#######", "#P....#", "#######"])
    seen = []
    engine.subscribe(seen.append)
    engine.unsubscribe(seen.append)
    engine.start(now=0.0)
    engine.step(0.0)
    assert seen == []
