"""In-memory implementation of the workflow repository."""
from typing import Any, Dict, List, Optional
import copy

from .repository import WorkflowRepository


class InMemoryWorkflowRepository(WorkflowRepository):
    """Store workflow snapshots in local memory.

    Useful for tests or when no database is configured. Data is not
    persisted across process restarts. Snapshots are deep-copied on the
    way in and out so callers never share state with the store.
    """

    def __init__(self) -> None:
        self._snapshots: Dict[str, Dict[str, Any]] = {}

    async def save_workflow(self, snapshot: Dict[str, Any]) -> None:
        self._snapshots[snapshot["id"]] = copy.deepcopy(snapshot)

    async def load_workflow(self, workflow_id: str) -> Optional[Dict[str, Any]]:
        snapshot = self._snapshots.get(workflow_id)
        return copy.deepcopy(snapshot) if snapshot is not None else None

    async def list_workflows(
        self, limit: int = 50, user_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        snapshots = list(self._snapshots.values())
        if user_id is not None:
            snapshots = [
                s for s in snapshots if (s.get("metadata") or {}).get("user_id") == user_id
            ]
        snapshots.sort(key=lambda s: s.get("created_at") or "", reverse=True)
        return [copy.deepcopy(s) for s in snapshots[:limit]]

    async def delete_workflow(self, workflow_id: str) -> bool:
        return self._snapshots.pop(workflow_id, None) is not None

    def __len__(self) -> int:
        return len(self._snapshots)
