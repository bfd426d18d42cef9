"""WebSocket-backed device connection."""

import logging
from dataclasses import dataclass, field
from uuid import uuid4

from fastapi import WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class WebSocketConnection:
    """Sends JSON event envelopes over an accepted FastAPI WebSocket."""

    websocket: WebSocket
    connection_id: str = field(default_factory=lambda: uuid4().hex)

    async def send(self, event: str, payload: dict[str, object]) -> None:
        """Send an event; a socket that already went away is only logged."""
        try:
            await self.websocket.send_json({"event": event, "data": payload})
        except (WebSocketDisconnect, RuntimeError):
            logger.warning(
                "Dropped %s for closed connection",
                event,
                extra={"connection_id": self.connection_id},
            )

    async def receive(self) -> str:
        """Return the next frame as text; raise when the peer goes away."""
        message = await self.websocket.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(code=message.get("code", 1000))
        if message.get("text") is not None:
            return message["text"]
        return (message.get("bytes") or b"").decode("utf-8", errors="replace")
