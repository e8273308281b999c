"""
API dependencies
"""
from fastapi import Request

from ..orchestrator.orchestrator import Orchestrator


def get_orchestrator(request: Request) -> Orchestrator:
    """Orchestrator created by the application lifespan."""
    return request.app.state.orchestrator
