"""WebSocket support for the live sensor event feed."""

import asyncio
import json
import weakref
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Set

import structlog
from fastapi import WebSocket, WebSocketDisconnect
from pydantic import BaseModel, Field

from ...models import CanonicalEvent
from ...services import AcquisitionPipeline

logger = structlog.get_logger(__name__)


# Subscription topics
LIVE_EVENTS = "live_events"
PIPELINE_STATUS = "pipeline_status"
DEFAULT_SUBSCRIPTIONS = [LIVE_EVENTS, PIPELINE_STATUS]


class WebSocketMessage(BaseModel):
    """Base WebSocket message structure."""

    type: str
    timestamp: datetime = Field(default_factory=datetime.now)
    data: Dict[str, Any] = Field(default_factory=dict)


class LiveEventMessage(WebSocketMessage):
    """One consumed canonical event."""

    type: str = "live_event"


class PipelineStatusMessage(WebSocketMessage):
    """Pipeline status update message."""

    type: str = "pipeline_status"


class ConnectionManager:
    """
    WebSocket connection manager for the live feed.

    Every event consumed by the pipeline is pushed to subscribed clients;
    status changes are broadcast once per second.
    """

    def __init__(self, pipeline: AcquisitionPipeline):
        self.pipeline = pipeline
        self.active_connections: Set[WebSocket] = set()
        self.connection_metadata: weakref.WeakKeyDictionary = weakref.WeakKeyDictionary()
        self.last_status: Optional[Dict[str, Any]] = None
        self.broadcast_task: Optional[asyncio.Task] = None
        self._pending: Set[asyncio.Task] = set()
        self._running = False

    async def connect(self, websocket: WebSocket, client_id: Optional[str] = None) -> None:
        """Accept and register a WebSocket connection."""
        await websocket.accept()
        self.active_connections.add(websocket)

        self.connection_metadata[websocket] = {
            "client_id": client_id or f"client_{id(websocket)}",
            "connected_at": datetime.now(),
            "last_ping": datetime.now(),
            "subscriptions": list(DEFAULT_SUBSCRIPTIONS)
        }

        logger.info("WebSocket connection established",
                   client_id=self.connection_metadata[websocket]["client_id"],
                   total_connections=len(self.active_connections))

        await self._send_initial_data(websocket)

    def disconnect(self, websocket: WebSocket) -> None:
        """Remove a WebSocket connection."""
        if websocket in self.active_connections:
            client_id = self.connection_metadata.get(websocket, {}).get("client_id", "unknown")
            self.active_connections.discard(websocket)

            logger.info("WebSocket connection closed",
                       client_id=client_id,
                       total_connections=len(self.active_connections))

    async def send_personal_message(self, message: Dict[str, Any], websocket: WebSocket) -> None:
        try:
            await websocket.send_text(json.dumps(message, default=str))
        except Exception as e:
            logger.error("Error sending personal message", error=str(e))
            self.disconnect(websocket)

    async def broadcast_message(self, message: Dict[str, Any], topic: str) -> None:
        """Send a message to every client subscribed to ``topic``."""
        if not self.active_connections:
            return

        disconnected = set()
        text = json.dumps(message, default=str)

        for websocket in self.active_connections.copy():
            metadata = self.connection_metadata.get(websocket, {})
            if topic not in metadata.get("subscriptions", []):
                continue
            try:
                await websocket.send_text(text)
            except Exception as e:
                logger.warning("Error broadcasting to client", error=str(e))
                disconnected.add(websocket)

        for websocket in disconnected:
            self.disconnect(websocket)

    def on_event(self, event: CanonicalEvent) -> None:
        """Pipeline listener: schedule a broadcast of the consumed event."""
        if not self.active_connections:
            return
        task = asyncio.get_running_loop().create_task(self.broadcast_event(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def broadcast_event(self, event: CanonicalEvent) -> None:
        message = LiveEventMessage(data=event.to_record()).model_dump()
        await self.broadcast_message(message, LIVE_EVENTS)

    def _status_data(self) -> Dict[str, Any]:
        status = self.pipeline.status().model_dump(mode="json")
        status.pop("timestamp", None)
        return status

    async def broadcast_status(self) -> None:
        """Broadcast the pipeline status if it changed since the last broadcast."""
        status_data = self._status_data()
        if self.last_status == status_data:
            return

        self.last_status = status_data
        message = PipelineStatusMessage(data=status_data).model_dump()
        await self.broadcast_message(message, PIPELINE_STATUS)

    async def handle_client_message(self, websocket: WebSocket, message: Dict[str, Any]) -> None:
        """Handle incoming message from WebSocket client."""
        try:
            message_type = message.get("type")
            data = message.get("data", {})

            if message_type == "ping":
                if websocket in self.connection_metadata:
                    self.connection_metadata[websocket]["last_ping"] = datetime.now()
                await self.send_personal_message({"type": "pong", "timestamp": datetime.now()}, websocket)

            elif message_type == "subscribe":
                subscriptions = [s for s in data.get("subscriptions", []) if s in DEFAULT_SUBSCRIPTIONS]
                if websocket in self.connection_metadata:
                    self.connection_metadata[websocket]["subscriptions"] = subscriptions
                    await self.send_personal_message({
                        "type": "subscription_updated",
                        "subscriptions": subscriptions
                    }, websocket)

            elif message_type == "get_status":
                await self._send_initial_data(websocket)

            else:
                logger.warning("Unknown WebSocket message type", message_type=message_type)

        except Exception as e:
            logger.error("Error handling client message", error=str(e))

    async def _send_initial_data(self, websocket: WebSocket) -> None:
        """Send status and the current live window to a client."""
        try:
            await self.send_personal_message({
                "type": "initial_pipeline_status",
                "timestamp": datetime.now(),
                "data": self._status_data()
            }, websocket)

            await self.send_personal_message({
                "type": "initial_live_window",
                "timestamp": datetime.now(),
                "data": {"events": [event.to_record() for event in self.pipeline.live_snapshot()]}
            }, websocket)

        except Exception as e:
            logger.error("Error sending initial data", error=str(e))

    def start_background_tasks(self) -> None:
        if not self._running:
            self._running = True
            self.broadcast_task = asyncio.create_task(self._background_broadcaster())

    async def stop_background_tasks(self) -> None:
        self._running = False
        if self.broadcast_task:
            self.broadcast_task.cancel()
            try:
                await self.broadcast_task
            except asyncio.CancelledError:
                pass
            self.broadcast_task = None

    async def _background_broadcaster(self) -> None:
        """Periodically broadcast status and drop stale connections."""
        while self._running:
            try:
                await self._cleanup_stale_connections()
                if self.active_connections:
                    await self.broadcast_status()
                await asyncio.sleep(1.0)

            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Error in background broadcaster", error=str(e))
                await asyncio.sleep(5.0)

    async def _cleanup_stale_connections(self) -> None:
        """Close connections that haven't sent a ping recently."""
        stale_threshold = datetime.now() - timedelta(minutes=5)
        stale_connections = {
            websocket for websocket in self.active_connections.copy()
            if self.connection_metadata.get(websocket, {}).get("last_ping", datetime.now()) < stale_threshold
        }

        for websocket in stale_connections:
            try:
                await websocket.close()
            except RuntimeError:
                # Already closed by the client
                pass
            self.disconnect(websocket)

    def get_connection_info(self) -> List[Dict[str, Any]]:
        connections = []
        for websocket in self.active_connections:
            metadata = self.connection_metadata.get(websocket, {})
            connections.append({
                "client_id": metadata.get("client_id", "unknown"),
                "connected_at": metadata.get("connected_at"),
                "last_ping": metadata.get("last_ping"),
                "subscriptions": metadata.get("subscriptions", [])
            })
        return connections


async def websocket_endpoint(websocket: WebSocket,
                             manager: ConnectionManager,
                             client_id: Optional[str] = None) -> None:
    """WebSocket endpoint handler."""
    await manager.connect(websocket, client_id)

    try:
        while True:
            data = await websocket.receive_text()

            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                logger.warning("Invalid JSON received from WebSocket client")
                continue
            if isinstance(message, dict):
                await manager.handle_client_message(websocket, message)

    except WebSocketDisconnect:
        manager.disconnect(websocket)
    except Exception as e:
        logger.error("WebSocket error", error=str(e))
        manager.disconnect(websocket)


__all__ = [
    "websocket_endpoint",
    "ConnectionManager",
    "WebSocketMessage",
    "LiveEventMessage",
    "PipelineStatusMessage",
    "LIVE_EVENTS",
    "PIPELINE_STATUS",
]
