"""
체크포인트 관리

체크포인트는 워크플로우 집합체 안에 저장되므로 스냅샷과 함께
영속화되고 재수화 후에도 롤백할 수 있습니다.
"""

from typing import Any, Dict, List
import copy
import logging

from ..core.exceptions import CheckpointNotFoundError
from ..core.sequences import Step
from .workflow import Checkpoint, Workflow


class CheckpointManager:
    """
    체크포인트 생성/조회/복원

    Args:
        max_checkpoints: 워크플로우당 보관 개수 (초과 시 가장 오래된 것부터 삭제)
    """

    def __init__(self, max_checkpoints: int = 10):
        self.max_checkpoints = max_checkpoints
        self.logger = logging.getLogger("orchestrator.checkpoints")

    def create(self, workflow: Workflow, label: str, description: str = "") -> Checkpoint:
        """현재 context, current_step, sequence를 스냅샷으로 저장"""
        checkpoint = Checkpoint(
            workflow_id=workflow.id,
            label=label,
            description=description,
            snapshot={
                "context": copy.deepcopy(workflow.context),
                "current_step": workflow.current_step,
                "sequence": [s.to_dict() for s in workflow.sequence],
                "artifact_count": len(workflow.artifacts),
                "error_count": len(workflow.errors),
            },
        )
        workflow.checkpoints.append(checkpoint)
        if len(workflow.checkpoints) > self.max_checkpoints:
            dropped = workflow.checkpoints[: -self.max_checkpoints]
            del workflow.checkpoints[: -self.max_checkpoints]
            self.logger.debug(f"[{workflow.id}] Dropped {len(dropped)} old checkpoints")

        workflow.touch()
        self.logger.info(
            f"[{workflow.id}] Checkpoint '{label}' at step {workflow.current_step}"
        )
        return checkpoint

    def get(self, workflow: Workflow, checkpoint_id: str) -> Checkpoint:
        """
        체크포인트 조회

        Raises:
            CheckpointNotFoundError: 없는 ID
        """
        for checkpoint in workflow.checkpoints:
            if checkpoint.checkpoint_id == checkpoint_id:
                return checkpoint
        raise CheckpointNotFoundError(workflow.id, checkpoint_id)

    def has_label_at(self, workflow: Workflow, label: str, step: int) -> bool:
        return any(
            c.label == label and c.snapshot.get("current_step") == step
            for c in workflow.checkpoints
        )

    def list(self, workflow: Workflow) -> List[Dict[str, Any]]:
        """체크포인트 요약 목록 (오래된 순)"""
        return [c.summary() for c in workflow.checkpoints]

    def restore(self, workflow: Workflow, checkpoint: Checkpoint) -> None:
        """
        체크포인트 복원

        context, current_step, sequence를 되돌리고 이후에 생성된
        산출물을 버립니다. 상태 전이는 호출자 책임입니다.
        """
        snapshot = checkpoint.snapshot
        workflow.context = copy.deepcopy(snapshot["context"])
        workflow.sequence = [Step.from_dict(s) for s in snapshot["sequence"]]
        workflow.current_step = min(snapshot["current_step"], workflow.total_steps)
        del workflow.artifacts[snapshot.get("artifact_count", len(workflow.artifacts)):]
        workflow.elicitation = None
        workflow.touch()
        self.logger.info(
            f"[{workflow.id}] Restored checkpoint '{checkpoint.label}' "
            f"(step {workflow.current_step})"
        )
