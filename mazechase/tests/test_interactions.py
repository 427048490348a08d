from dataclasses import replace

from mazechase.common.types import Direction, EventType, MatchPhase, TileKind
from mazechase.engine.interactions import (
    consume_tile,
    decay_timers,
    resolve_collision,
    settle_phase,
)
from mazechase.engine.maze import Maze
from mazechase.engine.state import GhostState, MatchConfig, MatchState, PlayerState


def _state(rows, player_pos, ghosts=(), bonus_cell=None, **kwargs):
    spawn = kwargs.pop("spawn", player_pos)
    return MatchState(
        maze=Maze.from_rows(rows, bonus_cell=bonus_cell),
        player=PlayerState(pos=player_pos, spawn=spawn),
        ghosts=tuple(ghosts),
        phase=MatchPhase.ACTIVE,
        **kwargs,
    )


def _ghost(pos, home=None, **kwargs):
    return GhostState(
        mover_id="ghost-0",
        pos=pos,
        home=home if home is not None else pos,
        color="red",
        **kwargs,
    )


CONFIG = MatchConfig(
    bonus_cell=None,
    power_duration_ticks=50,
    bonus_duration_ticks=10,
    bonus_threshold=2,
    bonus_points=100,
)


def test_dot_adds_ten_and_clears_tile():
    state = _state(["######", "#P...#", "######"], (2, 1))
    events = []
    after = consume_tile(state, CONFIG, events)
    assert after.score == 10
    assert after.dots_eaten == 1
    assert after.maze.classify((2, 1)) == TileKind.EMPTY
    assert [e.kind for e in events] == [EventType.DOT_EATEN]


def test_power_frightens_every_ghost():
    ghosts = [_ghost((3, 1)), replace(_ghost((4, 1)), mover_id="ghost-1", captured=True)]
    state = _state(["######", "#Po..#", "######"], (2, 1), ghosts)
    events = []
    after = consume_tile(state, CONFIG, events)
    assert after.score == 50
    assert after.power_ticks == 50
    assert all(g.frightened for g in after.ghosts)
    assert after.ghosts[1].captured
    assert [e.kind for e in events] == [EventType.POWER_EATEN]


def test_bonus_spawns_on_threshold():
    state = _state(["######", "#P.. #", "######"], (2, 1), bonus_cell=(4, 1), dots_eaten=1)
    events = []
    after = consume_tile(state, CONFIG, events)
    assert after.dots_eaten == 2
    assert after.maze.classify((4, 1)) == TileKind.BONUS
    assert after.bonus_ticks == 10
    assert [e.kind for e in events] == [EventType.DOT_EATEN, EventType.BONUS_SPAWNED]
    after = decay_timers(after, events)
    assert after.bonus_ticks == 9


def test_bonus_does_not_replace_collectible():
    state = _state(["######", "#P...#", "######"], (2, 1), bonus_cell=(4, 1), dots_eaten=1)
    after = consume_tile(state, CONFIG, [])
    assert after.maze.classify((4, 1)) == TileKind.DOT
    assert after.bonus_ticks == 0


def test_bonus_eaten_clears_countdown():
    state = _state(["######", "#PF. #", "######"], (2, 1), bonus_cell=(2, 1), bonus_ticks=5)
    events = []
    after = consume_tile(state, CONFIG, events)
    assert after.score == 100
    assert after.bonus_ticks == 0
    assert after.maze.classify((2, 1)) == TileKind.EMPTY
    assert [e.kind for e in events] == [EventType.BONUS_EATEN]


def test_bonus_expires_when_uncollected():
    state = _state(["######", "#P.F #", "######"], (1, 1), bonus_cell=(3, 1), bonus_ticks=1)
    events = []
    after = decay_timers(state, events)
    assert after.bonus_ticks == 0
    assert after.maze.classify((3, 1)) == TileKind.EMPTY
    assert [e.kind for e in events] == [EventType.BONUS_EXPIRED]


def test_power_expiry_clears_frightened():
    ghosts = [_ghost((3, 1), frightened=True)]
    state = _state(["######", "#P.. #", "######"], (1, 1), ghosts, power_ticks=2)
    after = decay_timers(state, [])
    assert after.power_ticks == 1
    assert after.ghosts[0].frightened
    events = []
    after = decay_timers(after, events)
    assert after.power_ticks == 0
    assert not after.ghosts[0].frightened
    assert [e.kind for e in events] == [EventType.POWER_EXPIRED]


def test_capture_frightened_ghost():
    ghost = _ghost((2, 1), home=(4, 1), frightened=True, direction=Direction.LEFT)
    state = _state(["######", "#P.. #", "######"], (2, 1), [ghost], score=30, power_ticks=20)
    events = []
    after = resolve_collision(state, 1.0, events)
    assert after.score == 230
    captured = after.ghosts[0]
    assert captured.pos == (4, 1)
    assert captured.captured
    assert not captured.frightened
    assert after.lives == state.lives
    assert [e.kind for e in events] == [EventType.GHOST_CAPTURED]
    assert events[0].points == 200


def test_captured_ghost_is_harmless():
    ghost = _ghost((2, 1), home=(4, 1), captured=True)
    state = _state(["######", "#P.. #", "######"], (2, 1), [ghost])
    events = []
    assert resolve_collision(state, 1.0, events) == state
    assert events == []


def test_life_lost_resets_movers():
    ghost = _ghost((2, 1), home=(4, 1), direction=Direction.LEFT)
    player_state = _state(
        ["######", "#P.. #", "######"], (2, 1), [ghost], spawn=(1, 1), lives=3, score=40
    )
    player_state = replace(
        player_state,
        player=replace(player_state.player, direction=Direction.LEFT, intent=Direction.UP),
    )
    events = []
    after = resolve_collision(player_state, 5.0, events)
    assert after.lives == 2
    assert after.score == 40
    assert after.player.pos == (1, 1)
    assert after.player.direction == Direction.RIGHT
    assert after.player.intent == Direction.RIGHT
    assert after.ghosts[0].pos == (4, 1)
    assert after.ghosts[0].direction == Direction.LEFT
    assert after.last_input_at == 5.0
    assert after.phase == MatchPhase.ACTIVE
    assert [e.kind for e in events] == [EventType.PLAYER_DEFEATED]


def test_last_life_freezes_positions():
    ghost = _ghost((2, 1), home=(4, 1))
    state = _state(["######", "#P.. #", "######"], (2, 1), [ghost], spawn=(1, 1), lives=1)
    events = []
    after = settle_phase(resolve_collision(state, 1.0, events), events)
    assert after.lives == 0
    assert after.phase == MatchPhase.DEFEATED
    assert after.player.pos == (2, 1)
    assert after.ghosts[0].pos == (2, 1)
    assert [e.kind for e in events] == [EventType.PLAYER_DEFEATED, EventType.MATCH_LOST]


def test_clearing_board_beats_losing_last_life():
    state = _state(["#####", "#P  #", "#####"], (2, 1), lives=0)
    events = []
    after = settle_phase(state, events)
    assert after.phase == MatchPhase.VICTORIOUS
    assert [e.kind for e in events] == [EventType.MATCH_WON]
