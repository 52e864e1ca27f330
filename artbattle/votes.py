import asyncio
import json
import os
from enum import StrEnum

import aiofiles
from aiofiles.threadpool.binary import AsyncFileIO
from loguru import logger
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_after_attempt, wait_exponential

from artbattle.errors import InvalidVoteError


BUTTON_PREFIX = "BUTTON:"
READ_CHUNK_SIZE = 1024
READ_POLL_SECONDS = 0.05


class Vote(StrEnum):
    ONE = "1"
    TWO = "2"


# The first button boxes sent r(ed) and b(lue) for the left and right piece.
_BYTE_TO_VOTE: dict[int, Vote] = {
    ord("1"): Vote.ONE,
    ord("2"): Vote.TWO,
    ord("r"): Vote.ONE,
    ord("b"): Vote.TWO,
}


def parse_vote_byte(value: int) -> Vote | None:
    return _BYTE_TO_VOTE.get(value)


def parse_button_payload(text: str) -> Vote:
    """Parse `BUTTON: {"button": "1"}` sent by a display or remote. Raises InvalidVoteError."""
    tag, sep, body = text.partition(":")
    if not sep or f"{tag}:" != BUTTON_PREFIX:
        raise InvalidVoteError(f"not a button message: {text[:40]!r}")
    try:
        payload = json.loads(body)
    except (json.JSONDecodeError, RecursionError) as e:
        raise InvalidVoteError(f"malformed button payload: {e}") from e
    if not isinstance(payload, dict):
        raise InvalidVoteError("button payload is not an object")
    try:
        return Vote(str(payload.get("button")))
    except ValueError as e:
        raise InvalidVoteError(f"unknown button {payload.get('button')!r}") from e


def parse_button_message(text: str) -> Vote | None:
    """Lenient variant of parse_button_payload: anything invalid is dropped."""
    try:
        return parse_button_payload(text)
    except InvalidVoteError as e:
        logger.debug(f"Dropped inbound message: {e}")
        return None


class VoteChannel:
    """Single-slot handoff between vote sources and the duel loop.

    offer() never blocks: while a vote is waiting to be picked up, later votes
    are dropped. The duel loop drains the slot before every wait so a press
    from an earlier phase is never counted in the next one.
    """

    def __init__(self) -> None:
        self._slot: asyncio.Queue[Vote] = asyncio.Queue(maxsize=1)

    def offer(self, vote: Vote) -> bool:
        try:
            self._slot.put_nowait(vote)
        except asyncio.QueueFull:
            logger.debug(f"Vote {vote.value} dropped, another vote is pending")
            return False
        return True

    def drain(self) -> int:
        drained = 0
        while True:
            try:
                self._slot.get_nowait()
            except asyncio.QueueEmpty:
                break
            drained += 1
        if drained:
            logger.debug(f"Discarded {drained} stale vote(s)")
        return drained

    async def receive(self, timeout: float) -> Vote | None:
        """Wait up to `timeout` seconds for a vote. None when the deadline passes first."""
        try:
            return await asyncio.wait_for(self._slot.get(), timeout=timeout)
        except TimeoutError:
            return None

    async def wait_for_vote(self, timeout: float) -> Vote | None:
        self.drain()
        return await self.receive(timeout)


def _log_retry(retry_state: RetryCallState) -> None:
    exception = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(f"Vote device retry {retry_state.attempt_number}: {exception}")


class SerialVoteReader:
    """Feeds button presses from a serial-like device file into a VoteChannel."""

    def __init__(
        self,
        device: str,
        channel: VoteChannel,
        attempts: int = 5,
        backoff_min: float = 1.0,
        backoff_max: float = 30.0,
    ):
        self._device = device
        self._channel = channel
        self._attempts = attempts
        self._backoff_min = backoff_min
        self._backoff_max = backoff_max
        self.opened = 0

    def feed(self, data: bytes) -> int:
        """Push every recognized byte of `data` into the channel. Returns the number of votes seen."""
        seen = 0
        for value in data:
            vote = parse_vote_byte(value)
            if vote is None:
                continue
            seen += 1
            self._channel.offer(vote)
        return seen

    async def _open_device(self) -> AsyncFileIO:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(self._attempts),
            retry=retry_if_exception_type(OSError),
            wait=wait_exponential(multiplier=1, min=self._backoff_min, max=self._backoff_max),
            before_sleep=_log_retry,
            reraise=True,
        ):
            with attempt:
                return await aiofiles.open(self._device, "rb", buffering=0, opener=_open_nonblocking)

    async def _listen(self, f: AsyncFileIO) -> None:
        while True:
            # Non-blocking reads keep executor threads short-lived so cancellation never waits on the tty.
            data = await f.read(READ_CHUNK_SIZE)
            if data is None:
                await asyncio.sleep(READ_POLL_SECONDS)
                continue
            if not data:
                raise EOFError(f"{self._device} closed")
            self.feed(data)

    async def run(self) -> None:
        """Read until cancelled.

        Opening is retried with backoff, up to `attempts` times in a row. Every
        successful open starts a fresh budget, so a device that drops now and
        then during a long show is always reopened.
        """
        while True:
            f = await self._open_device()
            self.opened += 1
            logger.info(f"Listening for votes on {self._device}")
            try:
                await self._listen(f)
            except (OSError, EOFError) as e:
                logger.warning(f"Vote device {self._device} lost: {e}")
            finally:
                await f.close()
            await asyncio.sleep(self._backoff_min)


def _open_nonblocking(path: str, flags: int) -> int:
    return os.open(path, flags | os.O_NONBLOCK)
