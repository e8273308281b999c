"""
API Schemas

Request and response bodies for the workflow endpoints.
"""
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field


class StartWorkflowRequest(BaseModel):
    """Request body for starting a workflow"""
    user_prompt: str = Field(..., description="What the user wants built")
    sequence: Optional[Union[str, List[Dict[str, Any]]]] = Field(
        None, description="Dynamic workflow name, static sequence name or custom steps"
    )
    name: Optional[str] = None
    description: str = ""
    user_id: Optional[str] = None
    priority: str = Field("medium", description="low, medium or high")
    tags: List[str] = Field(default_factory=list)
    allow_interview: bool = False
    context: Dict[str, Any] = Field(default_factory=dict)

    def to_config(self) -> Dict[str, Any]:
        return self.model_dump(exclude={"user_prompt"})


class WorkflowSummary(BaseModel):
    """Workflow summary returned by lifecycle endpoints"""
    workflow_id: str
    name: str
    status: str
    current_step: int
    total_steps: int
    current_agent: Optional[str] = None
    progress: float
    user_id: Optional[str] = None
    created_at: str
    updated_at: str


class ElicitationRequest(BaseModel):
    """User answer to a paused elicitation"""
    response: str = Field(..., min_length=1)
    agent_id: Optional[str] = None
    user_id: Optional[str] = None


class CheckpointRequest(BaseModel):
    """Request body for creating a checkpoint"""
    label: str = Field(..., min_length=1, max_length=200)
    description: str = ""


class RollbackRequest(BaseModel):
    """Request body for rolling back"""
    checkpoint_id: str


class CheckpointSummary(BaseModel):
    """Checkpoint listing entry"""
    checkpoint_id: str
    label: str
    description: str = ""
    saved_at: str
    current_step: int
    artifact_count: int = 0
