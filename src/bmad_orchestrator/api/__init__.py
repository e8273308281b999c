"""
API Module - HTTP and WebSocket surface

Routers:
    workflows_router: /api/workflows
    agents_router: /api/agents
    websocket_router: /ws/workflows/{workflow_id}
"""

from .workflows import router as workflows_router
from .agents import router as agents_router
from .websocket import router as websocket_router
from .main import create_app

__all__ = [
    "workflows_router",
    "agents_router",
    "websocket_router",
    "create_app",
]
