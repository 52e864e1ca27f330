import asyncio
import sys

import uvicorn
from loguru import logger

from artbattle.broadcast import BroadcastSink
from artbattle.catalog import scan_catalog
from artbattle.orchestrator import DuelOrchestrator
from artbattle.repository import SqliteRepository
from artbattle.service import create_app
from artbattle.settings import Settings
from artbattle.votes import SerialVoteReader, VoteChannel


def setup_logging(log_level: str) -> None:
    logger.remove()

    logger.add(
        sys.stdout,
        format="<green>{time:YYYY-MM-DD HH:mm:ss}</green> "
        "| <level>{level: <8}</level> "
        "| <cyan>{name}</cyan>:<cyan>{function}</cyan> - <level>{message}</level>",
        level=log_level,
        colorize=True,
    )


async def _read_votes(reader: SerialVoteReader) -> None:
    try:
        await reader.run()
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.error(f"Vote device gave up, only remote buttons will work: {e}")


async def main(settings: Settings) -> None:
    setup_logging(log_level=settings.log_level)

    repository = SqliteRepository(settings.database_path)
    repository.migrate()
    if settings.scan_on_startup:
        await asyncio.to_thread(scan_catalog, repository, settings.image_path, settings.default_rating)

    sink = BroadcastSink(outbox_size=settings.client_outbox_size, replay_last_message=settings.replay_last_message)
    channel = VoteChannel()
    orchestrator = DuelOrchestrator(settings=settings, repository=repository, sink=sink, channel=channel)

    tasks = [asyncio.create_task(orchestrator.run(), name="orchestrator")]
    if settings.serial_device:
        reader = SerialVoteReader(settings.serial_device, channel, attempts=settings.serial_retry_attempts)
        tasks.append(asyncio.create_task(_read_votes(reader), name="serial-reader"))
    else:
        logger.info("No vote device configured, waiting for remote buttons only")

    server = uvicorn.Server(
        uvicorn.Config(
            create_app(sink, channel),
            host=settings.host,
            port=settings.port,
            log_level=settings.log_level.lower(),
        )
    )
    logger.info(f"Art Battle started on {settings.host}:{settings.port}")

    try:
        await server.serve()
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await sink.close()
        repository.close()
        logger.info("Art Battle stopped")


if __name__ == "__main__":
    try:
        asyncio.run(main(Settings()))  # type: ignore[call-arg]
    except KeyboardInterrupt:
        logger.info("Received keyboard interrupt")
        sys.exit(0)
    except Exception as e:
        logger.exception(f"Unexpected error: {e}")
        sys.exit(1)
