from fastapi import FastAPI, WebSocket
from loguru import logger

from artbattle.broadcast import BroadcastSink
from artbattle.votes import VoteChannel, parse_button_message


def create_app(sink: BroadcastSink, channel: VoteChannel) -> FastAPI:
    """Web front of the show: displays connect to /ws, remotes press buttons over the same socket."""
    app = FastAPI(title="Art Battle", version="0.1.0")

    @app.get("/health")
    async def health() -> dict[str, str | int]:
        """Health check endpoint."""
        return {"status": "ok", "clients": sink.client_count}

    @app.websocket("/ws")
    async def display(websocket: WebSocket) -> None:
        await websocket.accept()
        subscription = sink.register(websocket)
        try:
            while True:
                message = await websocket.receive()
                if message["type"] == "websocket.disconnect":
                    break
                text = message.get("text")
                if text is None:
                    logger.debug("Dropped binary frame from display")
                    continue
                vote = parse_button_message(text)
                if vote is None:
                    continue
                logger.info(f"Remote button {vote.value}")
                channel.offer(vote)
        finally:
            await sink.unregister(subscription)

    return app
