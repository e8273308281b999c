"""
WebSocket broadcaster

Keeps websocket connections grouped by channel (``workflow-<id>``) and
pushes orchestrator events to every client of a channel.

Event envelope (Server -> Client):
    {"type": "agent-activated" | "agent-completed" | "workflow-message" | ...,
     "timestamp": ISO-8601,
     "payload": {...}}
"""
from datetime import datetime, timezone
from typing import Any, Dict, List
import logging

from fastapi import WebSocket

logger = logging.getLogger("broadcast.websocket")


def envelope(event: str, payload: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "type": event,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "payload": payload,
    }


class ConnectionManager:
    """WebSocket connection manager for per-channel broadcast messaging."""

    def __init__(self):
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, channel: str, websocket: WebSocket):
        """Accept and register a new WebSocket connection."""
        await websocket.accept()
        self.active_connections.setdefault(channel, []).append(websocket)
        logger.info(
            f"Client connected to {channel}. Total: {self.connection_count(channel)}"
        )

    def disconnect(self, channel: str, websocket: WebSocket):
        """Remove a WebSocket connection."""
        connections = self.active_connections.get(channel, [])
        if websocket in connections:
            connections.remove(websocket)
        if not connections:
            self.active_connections.pop(channel, None)
        logger.info(
            f"Client disconnected from {channel}. Total: {self.connection_count(channel)}"
        )

    async def send_personal_message(self, message: Dict[str, Any], websocket: WebSocket):
        """Send a message to a specific client."""
        try:
            await websocket.send_json(message)
        except Exception as e:
            logger.warning(f"Error sending message: {e}")

    async def broadcast(self, channel: str, message: Dict[str, Any]):
        """Broadcast a message to all clients of a channel."""
        disconnected = []
        for connection in list(self.active_connections.get(channel, [])):
            try:
                await connection.send_json(message)
            except Exception as e:
                logger.warning(f"Error broadcasting to {channel}: {e}")
                disconnected.append(connection)

        # Clean up disconnected clients
        for conn in disconnected:
            self.disconnect(channel, conn)

    async def publish(self, channel: str, event: str, payload: Dict[str, Any]) -> None:
        """Broadcaster interface used by the orchestrator."""
        await self.broadcast(channel, envelope(event, payload))

    def connection_count(self, channel: str = None) -> int:
        """Number of open connections (for one channel or all)."""
        if channel is not None:
            return len(self.active_connections.get(channel, []))
        return sum(len(c) for c in self.active_connections.values())
