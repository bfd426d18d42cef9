"""WebSocket endpoint carrying device events."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from checkpoint_sync.adapters.websocket_connection import WebSocketConnection

if TYPE_CHECKING:
    from checkpoint_sync.containers import AppContainer

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def device_socket(websocket: WebSocket) -> None:
    """Feed every frame of one device into the coordinator."""
    container: AppContainer = websocket.app.state.container
    await websocket.accept()
    connection = WebSocketConnection(websocket)
    logger.info("Device connected", extra={"connection_id": connection.connection_id})
    try:
        while True:
            raw = await connection.receive()
            await container.coordinator.dispatch(connection, raw)
    except WebSocketDisconnect:
        logger.info(
            "Device disconnected", extra={"connection_id": connection.connection_id}
        )
    finally:
        await container.coordinator.handle_disconnect(connection)
