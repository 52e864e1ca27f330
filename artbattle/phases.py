from enum import StrEnum


class Phase(StrEnum):
    START = "start"  # Process just came up, left immediately
    DUEL = "duel"  # Two pieces on screen, waiting for a vote
    DECISION = "decision"  # Vote arrived, ratings updated and shown
    TIMEOUT = "timeout"  # Nobody voted in time
    LEADERBOARD = "leaderboard"  # Top pieces on screen
    SPLASH_SCREEN = "splash_screen"  # Idle screen with the duel total
    ERROR = "error"  # Something failed, banner shown until the cooldown ends


class PhaseEvent(StrEnum):
    STARTED = "started"
    VOTED = "voted"
    TIMED_OUT = "timed_out"
    COMPLETED = "completed"
    FAILED = "failed"


_TRANSITIONS: dict[tuple[Phase, PhaseEvent], Phase] = {
    (Phase.DUEL, PhaseEvent.FAILED): Phase.ERROR,
    (Phase.DUEL, PhaseEvent.VOTED): Phase.DECISION,
    (Phase.DUEL, PhaseEvent.TIMED_OUT): Phase.TIMEOUT,
    (Phase.DECISION, PhaseEvent.COMPLETED): Phase.DUEL,
    (Phase.DECISION, PhaseEvent.FAILED): Phase.ERROR,
    (Phase.TIMEOUT, PhaseEvent.COMPLETED): Phase.LEADERBOARD,
    (Phase.TIMEOUT, PhaseEvent.FAILED): Phase.ERROR,
    (Phase.LEADERBOARD, PhaseEvent.COMPLETED): Phase.SPLASH_SCREEN,
    (Phase.LEADERBOARD, PhaseEvent.FAILED): Phase.ERROR,
    (Phase.SPLASH_SCREEN, PhaseEvent.COMPLETED): Phase.DUEL,
    (Phase.SPLASH_SCREEN, PhaseEvent.FAILED): Phase.ERROR,
}


def next_phase(phase: Phase, event: PhaseEvent) -> Phase:
    """
    Phase that follows `phase` when it ends with `event`.

    Start and Error always lead to Duel. Any pair not in the table also resets
    to Duel, so the show can't get stuck.
    """
    return _TRANSITIONS.get((phase, event), Phase.DUEL)
