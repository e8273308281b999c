"""
워크플로우 인스턴스 (집합체)

엔진이 단독으로 소유하는 변경 가능한 상태입니다. to_dict()로 만든 스냅샷은
from_dict()로 손실 없이 복원됩니다.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4
import copy

from ..core.agent_result import Artifact
from ..core.exceptions import InvalidTransitionError, WorkflowTerminalError
from ..core.sequences import Step
from ..core.types import WorkflowStatus, utcnow


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def _parse(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@dataclass
class ErrorRecord:
    """workflow.errors 항목"""

    step: int
    error: str
    type: str
    agent_id: Optional[str] = None
    timestamp: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "step": self.step,
            "error": self.error,
            "type": self.type,
            "agent_id": self.agent_id,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ErrorRecord":
        return cls(
            step=data["step"],
            error=data["error"],
            type=data["type"],
            agent_id=data.get("agent_id"),
            timestamp=_parse(data.get("timestamp")) or utcnow(),
        )


@dataclass
class Checkpoint:
    """
    롤백용 스냅샷

    snapshot에는 context, current_step, sequence, artifact_count가 들어갑니다.
    """

    workflow_id: str
    label: str
    snapshot: Dict[str, Any]
    description: str = ""
    checkpoint_id: str = field(default_factory=lambda: str(uuid4()))
    saved_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "checkpoint_id": self.checkpoint_id,
            "workflow_id": self.workflow_id,
            "label": self.label,
            "description": self.description,
            "saved_at": self.saved_at.isoformat(),
            "snapshot": copy.deepcopy(self.snapshot),
        }

    def summary(self) -> Dict[str, Any]:
        """snapshot을 제외한 요약"""
        return {
            "checkpoint_id": self.checkpoint_id,
            "label": self.label,
            "description": self.description,
            "saved_at": self.saved_at.isoformat(),
            "current_step": self.snapshot.get("current_step"),
            "artifact_count": self.snapshot.get("artifact_count"),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Checkpoint":
        return cls(
            workflow_id=data["workflow_id"],
            label=data["label"],
            snapshot=copy.deepcopy(data["snapshot"]),
            description=data.get("description", ""),
            checkpoint_id=data["checkpoint_id"],
            saved_at=_parse(data.get("saved_at")) or utcnow(),
        )


@dataclass
class Workflow:
    """
    워크플로우 인스턴스

    Attributes:
        user_prompt: 사용자 요청
        sequence: 해석된 단계 목록
        id: 워크플로우 고유 ID
        name: 이름 (템플릿 또는 시퀀스 이름)
        description: 설명
        status: 현재 상태
        current_step: 다음에 실행할 단계 인덱스 (0 <= current_step <= total_steps)
        current_agent: 마지막으로 활성화된 에이전트
        context: 단계 간 산출물 전달용 키/값 저장소
        artifacts: 산출물 목록
        errors: 오류 기록
        checkpoints: 체크포인트 목록
        elicitation: 대기 중인 사용자 입력 요청
        metadata: user_id, priority, tags, workflow_type, template 등
    """

    user_prompt: str
    sequence: List[Step]
    id: str = field(default_factory=lambda: str(uuid4()))
    name: str = ""
    description: str = ""
    status: WorkflowStatus = WorkflowStatus.INITIALIZING
    current_step: int = 0
    current_agent: Optional[str] = None
    context: Dict[str, Any] = field(default_factory=dict)
    artifacts: List[Artifact] = field(default_factory=list)
    errors: List[ErrorRecord] = field(default_factory=list)
    checkpoints: List[Checkpoint] = field(default_factory=list)
    elicitation: Optional[Dict[str, Any]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    # 타임스탬프
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    started_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None

    @property
    def total_steps(self) -> int:
        return len(self.sequence)

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal

    @property
    def progress(self) -> float:
        """진행률 (0~100)"""
        if not self.sequence:
            return 0.0
        return round(self.current_step / self.total_steps * 100, 1)

    def current_step_def(self) -> Optional[Step]:
        """현재 단계 (모두 끝났으면 None)"""
        if self.current_step < self.total_steps:
            return self.sequence[self.current_step]
        return None

    def transition_to(self, target: WorkflowStatus) -> None:
        """
        상태 전이

        Raises:
            WorkflowTerminalError: 종료된 워크플로우
            InvalidTransitionError: 그래프에 없는 전이
        """
        if self.status.is_terminal:
            raise WorkflowTerminalError(self.id, self.status.value, f"move to {target.value}")
        if not self.status.can_transition_to(target):
            raise InvalidTransitionError(self.id, self.status.value, target.value)

        self.status = target
        now = utcnow()
        if target == WorkflowStatus.RUNNING and self.started_at is None:
            self.started_at = now
        if target.is_terminal:
            self.ended_at = now
        self.updated_at = now

    def advance(self) -> None:
        """current_step 1 증가 (total_steps 초과 금지)"""
        if self.current_step < self.total_steps:
            self.current_step += 1
        self.touch()

    def touch(self) -> None:
        self.updated_at = utcnow()

    def summary(self) -> Dict[str, Any]:
        """목록/응답용 요약"""
        return {
            "workflow_id": self.id,
            "name": self.name,
            "status": self.status.value,
            "current_step": self.current_step,
            "total_steps": self.total_steps,
            "current_agent": self.current_agent,
            "progress": self.progress,
            "user_id": self.metadata.get("user_id"),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }

    def to_dict(self) -> Dict[str, Any]:
        """전체 스냅샷 (JSON 직렬화 가능)"""
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "user_prompt": self.user_prompt,
            "status": self.status.value,
            "current_step": self.current_step,
            "total_steps": self.total_steps,
            "current_agent": self.current_agent,
            "sequence": [s.to_dict() for s in self.sequence],
            "context": copy.deepcopy(self.context),
            "artifacts": [a.to_dict() for a in self.artifacts],
            "errors": [e.to_dict() for e in self.errors],
            "checkpoints": [c.to_dict() for c in self.checkpoints],
            "elicitation": copy.deepcopy(self.elicitation),
            "metadata": copy.deepcopy(self.metadata),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "started_at": _iso(self.started_at),
            "ended_at": _iso(self.ended_at),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Workflow":
        """스냅샷에서 복원"""
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            description=data.get("description", ""),
            user_prompt=data["user_prompt"],
            status=WorkflowStatus(data["status"]),
            current_step=data.get("current_step", 0),
            current_agent=data.get("current_agent"),
            sequence=[Step.from_dict(s) for s in data.get("sequence", [])],
            context=copy.deepcopy(data.get("context") or {}),
            artifacts=[Artifact.from_dict(a) for a in data.get("artifacts", [])],
            errors=[ErrorRecord.from_dict(e) for e in data.get("errors", [])],
            checkpoints=[Checkpoint.from_dict(c) for c in data.get("checkpoints", [])],
            elicitation=copy.deepcopy(data.get("elicitation")),
            metadata=copy.deepcopy(data.get("metadata") or {}),
            created_at=_parse(data.get("created_at")) or utcnow(),
            updated_at=_parse(data.get("updated_at")) or utcnow(),
            started_at=_parse(data.get("started_at")),
            ended_at=_parse(data.get("ended_at")),
        )

    def __repr__(self) -> str:
        return (
            f"Workflow(id={self.id[:8]}..., status={self.status.value}, "
            f"step={self.current_step}/{self.total_steps})"
        )
