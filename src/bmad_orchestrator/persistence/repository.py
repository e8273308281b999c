"""
Repository abstraction for workflow snapshot persistence.

Snapshots are the plain dicts produced by ``Workflow.to_dict()``; backends
store them opaquely and must round-trip them without loss.
"""
from typing import Any, Dict, List, Optional, Protocol


class WorkflowRepository(Protocol):
    """Protocol for workflow snapshot backends."""

    async def save_workflow(self, snapshot: Dict[str, Any]) -> None:
        """Insert or replace the snapshot keyed by ``snapshot["id"]``."""

    async def load_workflow(self, workflow_id: str) -> Optional[Dict[str, Any]]:
        """Return the latest snapshot or None."""

    async def list_workflows(
        self, limit: int = 50, user_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Return snapshots, most recently created first."""

    async def delete_workflow(self, workflow_id: str) -> bool:
        """Remove a snapshot. Returns False when it did not exist."""
