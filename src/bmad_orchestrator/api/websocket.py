"""
WebSocket API for real-time workflow events

Message Types (Server -> Client):
- connected: Subscription accepted
- agent-activated: An agent started a step
- agent-completed: An agent finished a step
- workflow-message: Any other channel message

Message Types (Client -> Server):
- ping: Keep-alive message (server responds with pong)
"""
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
import json
import logging

from ..broadcast.websocket import envelope

router = APIRouter(tags=["websocket"])

logger = logging.getLogger("api.websocket")


@router.websocket("/ws/workflows/{workflow_id}")
async def workflow_events(websocket: WebSocket, workflow_id: str):
    """Subscribe to one workflow's events."""
    manager = websocket.app.state.connections
    channel = f"workflow-{workflow_id}"
    await manager.connect(channel, websocket)

    # Send welcome message
    await manager.send_personal_message(
        envelope("connected", {"workflow_id": workflow_id}), websocket
    )

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                logger.debug(f"Ignoring non-JSON frame on {channel}")
                continue

            if isinstance(message, dict) and message.get("type") == "ping":
                await manager.send_personal_message(envelope("pong", {}), websocket)

    except WebSocketDisconnect:
        manager.disconnect(channel, websocket)
