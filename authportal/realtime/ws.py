"""
WebSocket Channel for Browser Pages
===================================

Keeps the portal's pages in step with the session core.

Message Types (Client -> Server):
    - {"type": "location", "path": "/login"}   # page reports where it is
    - {"type": "ping"}

Events Sent (Server -> Client):
    - {"type": "connected", "timestamp": "..."}
    - {"type": "session", "identity": {...} | null, "isLoading": false}
    - {"type": "navigate", "url": "..."}       # page must set window.location
    - {"type": "location.ack", "path": "..."}
    - {"type": "pong", "timestamp": "..."}
    - {"type": "error", "message": "..."}
"""

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Dict, Set

from fastapi import APIRouter, Request, WebSocket, WebSocketDisconnect, status

from ..models import Session

logger = logging.getLogger(__name__)

realtime_router = APIRouter(prefix="/realtime", tags=["realtime"])


def session_message(session: Session) -> Dict[str, Any]:
    return {"type": "session", **session.model_dump(mode="json", by_alias=True)}


def navigate_message(url: str) -> Dict[str, Any]:
    return {"type": "navigate", "url": url}


class ConnectionManager:
    """
    Tracks connected pages and fans events out to all of them.

    Attributes:
        active_connections: Currently connected WebSockets
        lock: Asyncio lock guarding the connection set
    """

    def __init__(self):
        self.active_connections: Set[WebSocket] = set()
        self.lock = asyncio.Lock()
        self._tasks: Set[asyncio.Task] = set()

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self.lock:
            self.active_connections.add(websocket)
        logger.info(
            "WebSocket connected",
            extra={"total_connections": len(self.active_connections)},
        )

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self.lock:
            if websocket not in self.active_connections:
                return
            self.active_connections.discard(websocket)
        logger.info(
            "WebSocket disconnected",
            extra={"total_connections": len(self.active_connections)},
        )

    async def broadcast(self, event: Dict[str, Any]) -> int:
        """
        Send an event to every connected page.

        Returns:
            int: Number of pages that received the event
        """
        async with self.lock:
            targets = list(self.active_connections)

        if not targets:
            return 0

        message = json.dumps(event)
        sent_count = 0
        failed_websockets = []

        for websocket in targets:
            try:
                await websocket.send_text(message)
                sent_count += 1
            except Exception as e:
                logger.warning(f"Failed to send to WebSocket: {str(e)}")
                failed_websockets.append(websocket)

        for websocket in failed_websockets:
            await self.disconnect(websocket)

        logger.debug(
            "Broadcast event",
            extra={
                "event_type": event.get("type"),
                "recipients": sent_count,
                "failed": len(failed_websockets),
            },
        )
        return sent_count

    def publish_nowait(self, event: Dict[str, Any]) -> None:
        """Schedule a broadcast from synchronous code (store observers, navigation)."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug(f"No running loop; dropping {event.get('type')} event")
            return
        task = loop.create_task(self.broadcast(event))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def disconnect_all(self) -> None:
        """Close every connection. Used during application shutdown."""
        for task in list(self._tasks):
            task.cancel()

        async with self.lock:
            websockets = list(self.active_connections)

        for websocket in websockets:
            try:
                await websocket.close(code=status.WS_1001_GOING_AWAY, reason="Server shutdown")
            except Exception as e:
                logger.warning(f"Error closing WebSocket: {str(e)}")
            await self.disconnect(websocket)

        logger.info("All WebSocket connections closed")


@realtime_router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    Live session channel for a browser page.

    The current snapshot is sent right after connecting; later snapshots and
    navigation commands are pushed as they happen.
    """
    state = websocket.app.state
    manager: ConnectionManager = state.realtime_manager
    location = state.location

    await manager.connect(websocket)

    try:
        await websocket.send_json({
            "type": "connected",
            "timestamp": datetime.utcnow().isoformat(),
        })
        await websocket.send_json(session_message(state.auth_provider.store.session))

        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "message": "Invalid JSON"})
                continue

            if not isinstance(message, dict):
                await websocket.send_json({"type": "error", "message": "Expected a JSON object"})
                continue

            message_type = message.get("type")

            if message_type == "location":
                path = message.get("path")
                if not isinstance(path, str) or not path.startswith("/"):
                    await websocket.send_json({
                        "type": "error",
                        "message": "path must be an absolute path",
                    })
                    continue
                location.pathname = path
                await websocket.send_json({"type": "location.ack", "path": path})

            elif message_type == "ping":
                await websocket.send_json({
                    "type": "pong",
                    "timestamp": datetime.utcnow().isoformat(),
                })

            else:
                await websocket.send_json({
                    "type": "error",
                    "message": f"Unknown message type: {message_type}",
                })

    except WebSocketDisconnect:
        logger.info("WebSocket disconnected by client")

    finally:
        await manager.disconnect(websocket)


@realtime_router.get("/status")
async def realtime_status(request: Request):
    """Connection statistics."""
    manager: ConnectionManager = request.app.state.realtime_manager
    return {
        "status": "ok",
        "active_connections": len(manager.active_connections),
        "timestamp": datetime.utcnow().isoformat(),
    }
