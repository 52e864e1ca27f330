import asyncio
from pathlib import Path

import pytest

from artbattle.errors import InvalidVoteError
from artbattle.votes import (
    SerialVoteReader,
    Vote,
    VoteChannel,
    parse_button_message,
    parse_button_payload,
    parse_vote_byte,
)


@pytest.mark.parametrize(
    ("raw", "expected"),
    [
        (b"1", Vote.ONE),
        (b"2", Vote.TWO),
        (b"r", Vote.ONE),
        (b"b", Vote.TWO),
        (b"3", None),
        (b"\n", None),
        (b"\x00", None),
    ],
)
def test_parse_vote_byte(raw: bytes, expected: Vote | None) -> None:
    assert parse_vote_byte(raw[0]) == expected


@pytest.mark.parametrize(
    ("text", "expected"),
    [
        ('BUTTON: {"button": "1"}', Vote.ONE),
        ('BUTTON: {"button": "2"}', Vote.TWO),
        ('BUTTON:{"button":"2"}', Vote.TWO),
        ('BUTTON: {"button": 1}', Vote.ONE),
        ('BUTTON: {"button": "3"}', None),
        ('BUTTON: {"button": ""}', None),
        ("BUTTON: {}", None),
        ("BUTTON: not json", None),
        ('BUTTON: ["1"]', None),
        ('PRESS: {"button": "1"}', None),
        ("", None),
        ("BUTTON: " + "[" * 100_000, None),
    ],
)
def test_parse_button_message(text: str, expected: Vote | None) -> None:
    assert parse_button_message(text) == expected


def test_strict_parser_reports_invalid_votes() -> None:
    with pytest.raises(InvalidVoteError):
        parse_button_payload('BUTTON: {"button": "7"}')


async def test_channel_delivers_offered_vote() -> None:
    channel = VoteChannel()
    assert channel.offer(Vote.TWO)
    assert await channel.receive(timeout=0.1) == Vote.TWO


async def test_channel_times_out_without_vote() -> None:
    channel = VoteChannel()
    assert await channel.receive(timeout=0.02) is None


async def test_channel_holds_a_single_vote() -> None:
    channel = VoteChannel()
    assert channel.offer(Vote.ONE)
    assert not channel.offer(Vote.TWO)
    assert await channel.receive(timeout=0.1) == Vote.ONE
    assert await channel.receive(timeout=0.02) is None


async def test_stale_vote_is_never_the_first_seen_by_the_next_wait() -> None:
    channel = VoteChannel()
    channel.offer(Vote.ONE)

    assert await channel.wait_for_vote(timeout=0.02) is None


async def test_vote_during_wait_is_delivered() -> None:
    channel = VoteChannel()
    channel.offer(Vote.ONE)

    async def press_later() -> None:
        await asyncio.sleep(0.02)
        channel.offer(Vote.TWO)

    presser = asyncio.create_task(press_later())
    assert await channel.wait_for_vote(timeout=1.0) == Vote.TWO
    await presser


async def test_drain_reports_discarded_votes() -> None:
    channel = VoteChannel()
    assert channel.drain() == 0
    channel.offer(Vote.ONE)
    assert channel.drain() == 1
    assert channel.drain() == 0


async def test_serial_reader_feeds_recognized_bytes() -> None:
    channel = VoteChannel()
    reader = SerialVoteReader("/dev/null", channel)

    assert reader.feed(b"xx\r\n") == 0
    assert reader.feed(b"?2") == 1
    assert await channel.receive(timeout=0.1) == Vote.TWO


async def _stop(task: asyncio.Task) -> None:
    task.cancel()
    try:
        await task
    except asyncio.CancelledError:
        pass


async def test_serial_reader_reads_device(tmp_path: Path) -> None:
    device = tmp_path / "tty"
    device.write_bytes(b"noise 1 xyz")
    channel = VoteChannel()
    reader = SerialVoteReader(str(device), channel, attempts=1, backoff_min=0.01, backoff_max=0.01)

    task = asyncio.create_task(reader.run())
    assert await channel.receive(timeout=1.0) == Vote.ONE
    await _stop(task)


async def test_serial_reader_keeps_reopening_a_device_that_drops(tmp_path: Path) -> None:
    device = tmp_path / "tty"
    device.write_bytes(b"")
    reader = SerialVoteReader(str(device), VoteChannel(), attempts=2, backoff_min=0, backoff_max=0)

    task = asyncio.create_task(reader.run())
    loop = asyncio.get_running_loop()
    deadline = loop.time() + 2.0
    while reader.opened <= 5 and loop.time() < deadline:
        await asyncio.sleep(0.005)

    assert reader.opened > 5
    assert not task.done()
    await _stop(task)


async def test_serial_reader_retries_missing_device(tmp_path: Path) -> None:
    channel = VoteChannel()
    reader = SerialVoteReader(str(tmp_path / "missing"), channel, attempts=2, backoff_min=0, backoff_max=0)

    with pytest.raises(FileNotFoundError):
        await reader.run()
