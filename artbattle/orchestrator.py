import asyncio
import random
from typing import Awaitable, Callable

from loguru import logger

from artbattle.broadcast import BroadcastSink
from artbattle.decision import process_decision
from artbattle.errors import ArtBattleError, NoContendersError
from artbattle.matchmaking import select_duel
from artbattle.messages import (
    DuelMessage,
    ErrorMessage,
    LeaderboardMessage,
    MessageTag,
    SplashMessage,
    WireModel,
    encode_message,
)
from artbattle.models import Artwork
from artbattle.phases import Phase, PhaseEvent, next_phase
from artbattle.repository import ArtworkRepository
from artbattle.settings import Settings
from artbattle.votes import Vote, VoteChannel


class DuelOrchestrator:
    """Runs the show: duel, decision or timeout, leaderboard, splash screen, and round again.

    The orchestrator is the only owner of the phase and of the pair on screen.
    It talks to the outside only through the vote channel, the broadcast sink
    and the repository. Every phase failure ends in the error phase, which
    shows a banner, cools down and resumes with a new duel.
    """

    def __init__(
        self,
        settings: Settings,
        repository: ArtworkRepository,
        sink: BroadcastSink,
        channel: VoteChannel,
        rng: random.Random | None = None,
    ):
        self._settings = settings
        self._repository = repository
        self._sink = sink
        self._channel = channel
        self._rng = rng or random.Random()

        self.phase = Phase.START
        self.one: Artwork | None = None
        self.two: Artwork | None = None
        self.vote: Vote | None = None
        self.last_error = ""

        self._handlers: dict[Phase, Callable[[], Awaitable[PhaseEvent]]] = {
            Phase.START: self._start,
            Phase.DUEL: self._duel,
            Phase.DECISION: self._decision,
            Phase.TIMEOUT: self._timeout,
            Phase.LEADERBOARD: self._leaderboard,
            Phase.SPLASH_SCREEN: self._splash_screen,
            Phase.ERROR: self._error,
        }

    async def run(self) -> None:
        """Loop over phases until the task is cancelled."""
        logger.info("Duel loop started")
        while True:
            await self.step()

    async def step(self) -> Phase:
        """Run the current phase to completion and move to the next one."""
        phase = self.phase
        handler = self._handlers.get(phase)
        if handler is None:
            logger.warning(f"Unknown phase {phase!r}, resetting to duel")
            self.phase = Phase.DUEL
            return self.phase

        try:
            event = await handler()
        except ArtBattleError as e:
            logger.error(f"{_phase_label(phase)} failed: {e}")
            self.last_error = f"{_phase_label(phase)} error: {e}"
            event = PhaseEvent.FAILED
        except Exception as e:
            logger.exception(f"Unexpected failure in {_phase_label(phase)}: {e}")
            self.last_error = f"{_phase_label(phase)} error: {e}"
            event = PhaseEvent.FAILED

        self.phase = next_phase(phase, event)
        logger.debug(f"{phase.value} --{event.value}--> {self.phase.value}")
        return self.phase

    def _broadcast(self, tag: MessageTag, payload: WireModel) -> None:
        self._sink.send(encode_message(tag, payload))

    async def _display(self, seconds: float) -> None:
        """Keep the current screen up. A button press ends the wait early and is used up."""
        vote = await self._channel.wait_for_vote(seconds)
        if vote is not None:
            logger.debug(f"Button {vote.value} skipped the {self.phase.value} screen")

    def _pair(self) -> tuple[Artwork, Artwork]:
        if self.one is None or self.two is None:
            raise NoContendersError("no duel in play")
        return self.one, self.two

    async def _start(self) -> PhaseEvent:
        return PhaseEvent.STARTED

    async def _duel(self) -> PhaseEvent:
        self.vote = None
        self.one, self.two = await asyncio.to_thread(
            select_duel, self._repository, self._settings.contender_pool_size, self._rng
        )
        logger.info(f"Duel: {self.one.label()} vs {self.two.label()}")
        self._broadcast(MessageTag.DUEL, DuelMessage.from_pair(self.one, self.two))

        vote = await self._channel.wait_for_vote(self._settings.duel_timeout_seconds)
        if vote is None:
            return PhaseEvent.TIMED_OUT
        self.vote = vote
        return PhaseEvent.VOTED

    async def _decision(self) -> PhaseEvent:
        one, two = self._pair()
        if self.vote is None:
            raise NoContendersError("decision without a vote")

        result = await asyncio.to_thread(
            process_decision, self._repository, one, two, self.vote, self._settings.k_factor
        )
        self.one, self.two = result.one, result.two
        self._broadcast(MessageTag.DECISION, result.to_message())

        await self._display(self._settings.decision_cooldown_seconds)
        return PhaseEvent.COMPLETED

    async def _timeout(self) -> PhaseEvent:
        one, two = self._pair()
        logger.info("No vote, duel timed out")
        self._broadcast(MessageTag.TIMEOUT, DuelMessage.from_pair(one, two))

        await self._display(self._settings.timeout_display_seconds)
        return PhaseEvent.COMPLETED

    async def _leaderboard(self) -> PhaseEvent:
        entries = await asyncio.to_thread(self._repository.leaderboard, self._settings.leaderboard_size)
        self._broadcast(MessageTag.LEADERBOARD, LeaderboardMessage.from_artworks(entries))

        await self._display(self._settings.leaderboard_seconds)
        return PhaseEvent.COMPLETED

    async def _splash_screen(self) -> PhaseEvent:
        total = await asyncio.to_thread(self._repository.total_duel_count)
        self._broadcast(MessageTag.SPLASH, SplashMessage(duel_count=total))

        await self._display(self._settings.splash_screen_seconds)
        return PhaseEvent.COMPLETED

    async def _error(self) -> PhaseEvent:
        self._broadcast(MessageTag.ERROR, ErrorMessage(message=self.last_error))
        await self._display(self._settings.error_cooldown_seconds)
        return PhaseEvent.COMPLETED


def _phase_label(phase: Phase) -> str:
    return phase.value.replace("_", " ").capitalize()
