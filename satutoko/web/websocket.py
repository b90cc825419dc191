"""WebSocket push of console snapshots.

Clients connected to ``/ws/console`` receive the full snapshot right
after connecting and again after every console change. Bursts of
changes (e.g. several progress events in a row) are coalesced into one
send; a change made while a send is in flight is pushed in a follow-up
send, so the last message always carries the latest state.
"""

from __future__ import annotations

import asyncio
import json
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

logger = logging.getLogger(__name__)

router = APIRouter()


class ConsoleBroadcaster:
    """Tracks WebSocket connections and pushes snapshots to them."""

    def __init__(self) -> None:
        self._connections: set[WebSocket] = set()
        self._lock = asyncio.Lock()
        self._pending: asyncio.Task[None] | None = None
        self._dirty = False

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._connections.add(websocket)
        logger.info(
            f"WebSocket connected ({len(self._connections)} connections)"
        )

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._connections.discard(websocket)
        logger.info("WebSocket disconnected")

    def schedule(self) -> None:
        """Console listener: queue a broadcast of the current snapshot."""
        if not self._connections:
            return
        self._dirty = True
        if self._pending is not None and not self._pending.done():
            # The running broadcast picks the change up on its next pass.
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            return
        self._pending = loop.create_task(self.broadcast())

    async def broadcast(self) -> None:
        """Send snapshots until no scheduled change is left unsent."""
        from satutoko.web.app import get_console

        while self._dirty:
            self._dirty = False
            async with self._lock:
                connections = self._connections.copy()
            if not connections:
                return

            try:
                message = get_console().snapshot().model_dump_json()
            except RuntimeError:
                return

            for websocket in connections:
                try:
                    await websocket.send_text(message)
                except Exception as e:
                    logger.warning(f"Failed to send to WebSocket: {e}")
                    # Don't remove here - let the disconnect handler clean up

    def get_connection_count(self) -> int:
        return len(self._connections)


# Global broadcaster
broadcaster = ConsoleBroadcaster()


def get_broadcaster() -> ConsoleBroadcaster:
    return broadcaster


@router.websocket("/ws/console")
async def websocket_endpoint(websocket: WebSocket) -> None:
    """Stream console snapshots.

    The client may send ``{"action": "ping"}`` and gets ``{"status":
    "pong"}`` back; any other message is answered with the current
    snapshot.
    """
    from satutoko.web.app import get_console

    try:
        console = get_console()
    except RuntimeError:
        await websocket.close(code=4000, reason="Server not initialized")
        return

    await broadcaster.connect(websocket)
    try:
        await websocket.send_text(console.snapshot().model_dump_json())
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json({"error": "Invalid JSON"})
                continue

            if isinstance(message, dict) and message.get("action") == "ping":
                await websocket.send_json({"status": "pong"})
            else:
                await websocket.send_text(
                    console.snapshot().model_dump_json()
                )
    except WebSocketDisconnect:
        pass
    finally:
        await broadcaster.disconnect(websocket)
