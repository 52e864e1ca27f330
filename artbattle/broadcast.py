import asyncio
from typing import Protocol

from loguru import logger


class DisplayClient(Protocol):
    async def send_text(self, data: str) -> None: ...


class Subscription:
    """A connected display: its outbox and the task that drains it."""

    def __init__(self, client: DisplayClient, outbox_size: int):
        self.client = client
        self.outbox: asyncio.Queue[str] = asyncio.Queue(maxsize=outbox_size)
        self.writer: asyncio.Task[None] | None = None
        self.dropped = 0


class BroadcastSink:
    """Fans broadcast messages out to every connected display.

    send() only enqueues, so a slow or dead display can't hold up the duel
    loop. When a display's outbox is full the message is dropped for that
    display alone. A display whose socket fails is unregistered.
    """

    def __init__(self, outbox_size: int = 16, replay_last_message: bool = False):
        self._outbox_size = outbox_size
        self._replay_last_message = replay_last_message
        self._subscriptions: set[Subscription] = set()
        self._last_message: str | None = None

    @property
    def client_count(self) -> int:
        return len(self._subscriptions)

    @property
    def last_message(self) -> str | None:
        return self._last_message

    def register(self, client: DisplayClient) -> Subscription:
        subscription = Subscription(client, self._outbox_size)
        if self._replay_last_message and self._last_message is not None:
            subscription.outbox.put_nowait(self._last_message)
        subscription.writer = asyncio.create_task(self._write(subscription))
        self._subscriptions.add(subscription)
        logger.info(f"Display connected ({self.client_count} total)")
        return subscription

    async def unregister(self, subscription: Subscription) -> None:
        if subscription not in self._subscriptions:
            return
        self._subscriptions.discard(subscription)
        writer = subscription.writer
        if writer is not None and writer is not asyncio.current_task():
            writer.cancel()
            try:
                await writer
            except asyncio.CancelledError:
                pass
        logger.info(f"Display disconnected ({self.client_count} left)")

    def send(self, message: str) -> None:
        self._last_message = message
        for subscription in list(self._subscriptions):
            try:
                subscription.outbox.put_nowait(message)
            except asyncio.QueueFull:
                subscription.dropped += 1
                logger.warning(f"Display outbox full, dropped message ({subscription.dropped} so far)")

    async def close(self) -> None:
        for subscription in list(self._subscriptions):
            await self.unregister(subscription)

    async def _write(self, subscription: Subscription) -> None:
        while True:
            message = await subscription.outbox.get()
            try:
                await subscription.client.send_text(message)
            except Exception as e:
                logger.info(f"Display send failed: {e}")
                await self.unregister(subscription)
                return
