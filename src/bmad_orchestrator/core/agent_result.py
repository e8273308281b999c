"""
에이전트 실행 결과

Executor는 단계마다 이 형식으로 결과를 반환합니다. 성공, 실패,
사용자 입력 요청(elicitation) 세 가지 경우가 있습니다.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from .types import ArtifactType, utcnow


@dataclass
class Artifact:
    """
    단계 산출물

    Attributes:
        name: 산출물 이름 (보통 단계의 creates 키)
        type: ArtifactType 값
        agent_id: 생성한 에이전트
        content: 본문
        step: 생성한 단계 인덱스
        filename: 저장 시 사용할 파일명
        id: 고유 ID
        created_at: 생성 시각
        metadata: 추가 메타데이터
    """

    name: str
    type: str
    agent_id: str
    content: str
    step: Optional[int] = None
    filename: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=utcnow)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "type": self.type,
            "agent_id": self.agent_id,
            "content": self.content,
            "step": self.step,
            "filename": self.filename,
            "created_at": self.created_at.isoformat(),
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Artifact":
        return cls(
            name=data["name"],
            type=data.get("type", ArtifactType.DOCUMENT.value),
            agent_id=data["agent_id"],
            content=data.get("content", ""),
            step=data.get("step"),
            filename=data.get("filename"),
            id=data.get("id") or str(uuid4()),
            created_at=datetime.fromisoformat(data["created_at"])
            if data.get("created_at")
            else utcnow(),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass
class AgentResult:
    """
    에이전트 실행 결과

    Attributes:
        success: 실행 성공 여부
        artifacts: 생성된 산출물
        content: 자유 형식 본문
        error: 실패 메시지
        error_type: 실패 분류
        elicitation: 사용자 입력 요청 상세 (있으면 일시정지 신호)
        attempts: 생성 시도 횟수
        metrics: 실행 메트릭

    Example:
        result = AgentResult.success_result(artifacts=[artifact], content=text)
        result = AgentResult.failure_result("timeout", error_type="generation_failed")
        result = AgentResult.elicitation_result({"instruction": "..."})
    """

    success: bool
    artifacts: List[Artifact] = field(default_factory=list)
    content: Optional[str] = None
    error: Optional[str] = None
    error_type: Optional[str] = None
    elicitation: Optional[Dict[str, Any]] = None
    attempts: int = 0
    metrics: Dict[str, float] = field(default_factory=dict)

    # 타임스탬프
    completed_at: datetime = field(default_factory=utcnow)

    @property
    def elicitation_required(self) -> bool:
        """사용자 입력 요청 여부"""
        return self.elicitation is not None

    def to_dict(self) -> Dict[str, Any]:
        """딕셔너리 변환"""
        return {
            "success": self.success,
            "artifacts": [a.to_dict() for a in self.artifacts],
            "content": self.content,
            "error": self.error,
            "error_type": self.error_type,
            "elicitation": self.elicitation,
            "attempts": self.attempts,
            "metrics": self.metrics,
            "completed_at": self.completed_at.isoformat(),
        }

    @classmethod
    def success_result(
        cls,
        artifacts: Optional[List[Artifact]] = None,
        content: Optional[str] = None,
        attempts: int = 1,
        metrics: Optional[Dict[str, float]] = None,
    ) -> "AgentResult":
        """성공 결과 생성 헬퍼"""
        return cls(
            success=True,
            artifacts=artifacts or [],
            content=content,
            attempts=attempts,
            metrics=metrics or {},
        )

    @classmethod
    def failure_result(
        cls,
        error: str,
        error_type: str = "AgentError",
        attempts: int = 0,
    ) -> "AgentResult":
        """실패 결과 생성 헬퍼"""
        return cls(success=False, error=error, error_type=error_type, attempts=attempts)

    @classmethod
    def elicitation_result(cls, details: Dict[str, Any]) -> "AgentResult":
        """
        사용자 입력 요청 결과 생성 헬퍼

        실패가 아닌 일시정지 신호이므로 success는 False지만 error는 비어 있습니다.
        """
        return cls(success=False, elicitation=dict(details))

    def __repr__(self) -> str:
        if self.elicitation_required:
            status = "ELICITATION"
        elif self.success:
            status = "SUCCESS"
        else:
            status = f"FAILED({self.error_type})"
        return f"AgentResult({status}, artifacts={len(self.artifacts)})"

    def __bool__(self) -> bool:
        """불리언 변환 - success 값 반환"""
        return self.success
