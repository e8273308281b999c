"""
단계 실행 컨텍스트

Executor에 전달되는 단계별 입력을 정의합니다.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from .agent_result import Artifact
from .sequences import Step
from .types import utcnow


@dataclass
class StepContext:
    """
    단계 실행 컨텍스트

    Attributes:
        workflow_id: 소속 워크플로우 ID
        step_index: 단계 인덱스
        step: 실행할 단계
        user_prompt: 사용자가 입력한 원본 요청
        context: 누적 워크플로우 컨텍스트 (복사본)
        artifacts: 이전 단계 산출물
        elicitation_response: 이 단계에 대한 사용자 응답 (있는 경우)
        classification: 응답 분류 결과 (있는 경우)
        missing_inputs: context에 없는 requires 키
        validation_feedback: 직전 생성 결과의 검증 피드백
        task_id: 실행 고유 ID
    """

    workflow_id: str
    step_index: int
    step: Step
    user_prompt: str
    context: Dict[str, Any] = field(default_factory=dict)
    artifacts: List[Artifact] = field(default_factory=list)
    elicitation_response: Optional[str] = None
    classification: Optional[str] = None
    missing_inputs: List[str] = field(default_factory=list)
    validation_feedback: Optional[str] = None
    task_id: str = field(default_factory=lambda: str(uuid4()))
    created_at: datetime = field(default_factory=utcnow)

    @property
    def action(self) -> str:
        return self.step.effective_command

    @property
    def inputs(self) -> Dict[str, Any]:
        """requires 키 중 context에 존재하는 값"""
        return {
            key: self.context[key] for key in self.step.requires if key in self.context
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "task_id": self.task_id,
            "workflow_id": self.workflow_id,
            "step_index": self.step_index,
            "step": self.step.to_dict(),
            "action": self.action,
            "user_prompt": self.user_prompt,
            "inputs": self.inputs,
            "artifact_count": len(self.artifacts),
            "elicitation_response": self.elicitation_response,
            "classification": self.classification,
            "missing_inputs": self.missing_inputs,
            "created_at": self.created_at.isoformat(),
        }

    def __repr__(self) -> str:
        return (
            f"StepContext(workflow={self.workflow_id}, step={self.step_index}, "
            f"agent={self.step.agent_id})"
        )
