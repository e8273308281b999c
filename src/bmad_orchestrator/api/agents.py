"""
Agents API Router
"""
from typing import Any, Dict, List
from fastapi import APIRouter, Depends

from ..orchestrator.orchestrator import Orchestrator
from .deps import get_orchestrator

router = APIRouter(prefix="/api/agents", tags=["agents"])


@router.get("")
def list_agents(
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> List[Dict[str, Any]]:
    """Get all registered agents."""
    return orchestrator.get_available_agents()


@router.get("/{agent_id}")
def get_agent(
    agent_id: str,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    """Get a single agent definition."""
    return orchestrator.get_agent(agent_id)
