"""
Workflows API Router

Endpoints for starting, steering and inspecting workflows.
Domain errors are mapped to HTTP status codes by the handlers in ``main``.
"""
from typing import Any, Dict, List, Optional
from fastapi import APIRouter, Depends, HTTPException, Query

from ..orchestrator.orchestrator import Orchestrator
from .deps import get_orchestrator
from .schemas import (
    CheckpointRequest,
    CheckpointSummary,
    ElicitationRequest,
    RollbackRequest,
    StartWorkflowRequest,
    WorkflowSummary,
)

router = APIRouter(prefix="/api/workflows", tags=["workflows"])


@router.post("", response_model=WorkflowSummary, status_code=201)
async def start_workflow(
    body: StartWorkflowRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    """
    Start a workflow.

    Returns immediately; steps run in the background.
    """
    return await orchestrator.start_workflow(body.user_prompt, body.to_config())


@router.get("", response_model=List[WorkflowSummary])
def list_active_workflows(
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> List[Dict[str, Any]]:
    """Get all non-terminal workflows held in memory."""
    return orchestrator.get_active_workflows()


@router.get("/history", response_model=List[WorkflowSummary])
async def get_history(
    limit: int = Query(50, ge=1, le=500),
    user_id: Optional[str] = Query(None, description="Filter by user"),
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> List[Dict[str, Any]]:
    """Get persisted workflows, most recent first."""
    return await orchestrator.get_execution_history(limit=limit, user_id=user_id)


@router.get("/sequences")
def get_sequences(
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> Dict[str, List[str]]:
    """List static and dynamic workflow sequences."""
    return orchestrator.get_workflow_sequences()


@router.get("/{workflow_id}")
async def get_workflow(
    workflow_id: str,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    """
    Get full workflow status.

    Includes communication statistics and per-agent status.
    """
    status = await orchestrator.get_workflow_status(workflow_id)
    if status is None:
        raise HTTPException(status_code=404, detail="Workflow not found")
    return status


@router.get("/{workflow_id}/artifacts")
async def get_artifacts(
    workflow_id: str,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> List[Dict[str, Any]]:
    """Get artifacts produced so far."""
    artifacts = await orchestrator.get_workflow_artifacts(workflow_id)
    if artifacts is None:
        raise HTTPException(status_code=404, detail="Workflow not found")
    return artifacts


@router.get("/{workflow_id}/messages")
def get_messages(
    workflow_id: str,
    limit: Optional[int] = Query(None, ge=1),
    message_type: Optional[str] = Query(None, alias="type"),
    agent_id: Optional[str] = Query(None),
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> List[Dict[str, Any]]:
    """Get channel messages in chronological order."""
    return orchestrator.get_workflow_messages(
        workflow_id, limit=limit, message_type=message_type, agent_id=agent_id
    )


@router.post("/{workflow_id}/pause", response_model=WorkflowSummary)
async def pause_workflow(
    workflow_id: str,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    return await orchestrator.pause_workflow(workflow_id)


@router.post("/{workflow_id}/resume", response_model=WorkflowSummary)
async def resume_workflow(
    workflow_id: str,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    return await orchestrator.resume_workflow(workflow_id)


@router.post("/{workflow_id}/cancel", response_model=WorkflowSummary)
async def cancel_workflow(
    workflow_id: str,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    return await orchestrator.cancel_workflow(workflow_id)


@router.post("/{workflow_id}/elicitation", response_model=WorkflowSummary)
async def answer_elicitation(
    workflow_id: str,
    body: ElicitationRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    """
    Answer a paused elicitation.

    The same step runs again with the response in its context.
    """
    return await orchestrator.resume_workflow_with_elicitation(
        workflow_id, body.response, agent_id=body.agent_id, user_id=body.user_id
    )


@router.post("/{workflow_id}/next-step")
async def execute_next_step(
    workflow_id: str,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    """Run the current step now (no-op if one is already running)."""
    result = await orchestrator.execute_next_step(workflow_id)
    return {"executed": result is not None, "workflow": result}


@router.get("/{workflow_id}/checkpoints", response_model=List[CheckpointSummary])
async def list_checkpoints(
    workflow_id: str,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> List[Dict[str, Any]]:
    checkpoints = await orchestrator.get_workflow_checkpoints(workflow_id)
    if checkpoints is None:
        raise HTTPException(status_code=404, detail="Workflow not found")
    return checkpoints


@router.post("/{workflow_id}/checkpoints", response_model=CheckpointSummary, status_code=201)
async def create_checkpoint(
    workflow_id: str,
    body: CheckpointRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    return await orchestrator.create_checkpoint(workflow_id, body.label, body.description)


@router.post("/{workflow_id}/rollback", response_model=WorkflowSummary)
async def rollback(
    workflow_id: str,
    body: RollbackRequest,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    """Roll back to a checkpoint. The workflow is left paused."""
    return await orchestrator.rollback_to_checkpoint(workflow_id, body.checkpoint_id)


@router.post("/{workflow_id}/resume-from-rollback", response_model=WorkflowSummary)
async def resume_from_rollback(
    workflow_id: str,
    orchestrator: Orchestrator = Depends(get_orchestrator),
) -> Dict[str, Any]:
    return await orchestrator.resume_from_rollback(workflow_id)
