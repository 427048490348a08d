from __future__ import annotations

from enum import Enum

from mazechase.common.errors import InvalidPhaseTransition
from mazechase.common.types import MatchPhase


class PhaseCommand(str, Enum):
    START = "start"
    RESTART = "restart"
    TICK = "tick"
    LOSE = "lose"
    WIN = "win"


TRANSITIONS: dict[tuple[MatchPhase, PhaseCommand], MatchPhase] = {
    (MatchPhase.IDLE, PhaseCommand.START): MatchPhase.ACTIVE,
    (MatchPhase.ACTIVE, PhaseCommand.TICK): MatchPhase.ACTIVE,
    (MatchPhase.ACTIVE, PhaseCommand.LOSE): MatchPhase.DEFEATED,
    (MatchPhase.ACTIVE, PhaseCommand.WIN): MatchPhase.VICTORIOUS,
}
TRANSITIONS.update({(phase, PhaseCommand.RESTART): MatchPhase.ACTIVE for phase in MatchPhase})


def transition(phase: MatchPhase, command: PhaseCommand) -> MatchPhase:
    try:
        return TRANSITIONS[(phase, command)]
    except KeyError:
        raise InvalidPhaseTransition(phase.value, command.value) from None
