"""
워크플로우 단계와 정적 시퀀스

Step은 "어떤 에이전트가 어떤 액션으로 무엇을 만들고 무엇을 필요로 하는가"를
나타냅니다. YAML 동적 워크플로우와 정적 시퀀스 모두 Step 목록으로 해석됩니다.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union


def _as_list(value: Union[None, str, List[str]]) -> List[str]:
    """단일 문자열 또는 목록을 목록으로 정규화"""
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    return [str(v) for v in value]


@dataclass
class Step:
    """
    워크플로우 단계

    Attributes:
        name: 단계 이름
        agent_id: 실행할 에이전트 ID ("pm/architect" 같은 복합 ID 허용)
        action: 실행할 액션
        command: 에이전트 명령어 (없으면 action 사용)
        creates: 이 단계가 context에 기록하는 산출물 키
        requires: 이전 단계에서 필요한 산출물 키
        description: 설명
        interactive: 사용자 입력이 필요한 단계 여부
        elicitation_prompt: 사용자에게 보여줄 질문
        classification_options: 응답 분류 후보 (키워드 매핑 허용)
        condition: 실행 조건 (``key``, ``key == value``, ``key != value``)
        optional: 선택 단계 여부
        checkpoint: 실행 직전에 체크포인트 생성 여부
        required_sections: 생성 결과에 반드시 있어야 하는 섹션
        max_attempts: 생성 재시도 예산 (없으면 전역 설정)
        notes: 참고 메모
    """

    name: str
    agent_id: str
    action: str = ""
    command: Optional[str] = None
    creates: List[str] = field(default_factory=list)
    requires: List[str] = field(default_factory=list)
    description: str = ""
    interactive: bool = False
    elicitation_prompt: Optional[str] = None
    classification_options: Union[List[str], Dict[str, List[str]]] = field(
        default_factory=list
    )
    condition: Optional[str] = None
    optional: bool = False
    checkpoint: bool = False
    required_sections: Optional[List[str]] = None
    max_attempts: Optional[int] = None
    notes: str = ""

    @property
    def effective_command(self) -> str:
        return self.command or self.action

    def to_dict(self) -> Dict[str, Any]:
        """딕셔너리 변환"""
        return {
            "name": self.name,
            "agent_id": self.agent_id,
            "action": self.action,
            "command": self.command,
            "creates": list(self.creates),
            "requires": list(self.requires),
            "description": self.description,
            "interactive": self.interactive,
            "elicitation_prompt": self.elicitation_prompt,
            "classification_options": self.classification_options,
            "condition": self.condition,
            "optional": self.optional,
            "checkpoint": self.checkpoint,
            "required_sections": self.required_sections,
            "max_attempts": self.max_attempts,
            "notes": self.notes,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Step":
        """
        딕셔너리에서 Step 생성

        ``agent``/``agent_id``, ``step``/``name`` 두 표기를 모두 허용합니다.

        Raises:
            ValueError: 에이전트가 지정되지 않음
        """
        agent_id = data.get("agent_id") or data.get("agent")
        if not agent_id:
            raise ValueError(f"Step has no agent: {data}")

        creates = _as_list(data.get("creates"))
        name = (
            data.get("name")
            or data.get("step")
            or (f"{agent_id}:{creates[0]}" if creates else str(agent_id))
        )
        return cls(
            name=str(name),
            agent_id=str(agent_id),
            action=data.get("action", "") or "",
            command=data.get("command"),
            creates=creates,
            requires=_as_list(data.get("requires")),
            description=data.get("description", "") or "",
            interactive=bool(data.get("interactive", False)),
            elicitation_prompt=data.get("elicitation_prompt") or data.get("elicit"),
            classification_options=data.get("classification_options") or [],
            condition=data.get("condition"),
            optional=bool(data.get("optional", False)),
            checkpoint=bool(data.get("checkpoint", False)),
            required_sections=data.get("required_sections"),
            max_attempts=data.get("max_attempts"),
            notes=data.get("notes", "") or "",
        )


# ─────────────────────────────────────────────────────────────────
# 정적 시퀀스
# ─────────────────────────────────────────────────────────────────

WORKFLOW_SEQUENCES: Dict[str, List[Dict[str, Any]]] = {
    "FULL_STACK": [
        {"agent": "analyst", "action": "create_project_brief", "creates": "project-brief"},
        {"agent": "pm", "action": "create_prd", "creates": "prd", "requires": "project-brief"},
        {"agent": "architect", "action": "create_architecture", "creates": "architecture", "requires": "prd"},
        {"agent": "ux-expert", "action": "create_frontend_spec", "creates": "front-end-spec", "requires": "prd"},
        {"agent": "dev", "action": "implement", "creates": "implementation", "requires": ["architecture", "front-end-spec"]},
        {"agent": "qa", "action": "review_implementation", "creates": "qa-report", "requires": "implementation"},
    ],
    "BACKEND_SERVICE": [
        {"agent": "analyst", "action": "create_project_brief", "creates": "project-brief"},
        {"agent": "pm", "action": "create_prd", "creates": "prd", "requires": "project-brief"},
        {"agent": "architect", "action": "create_architecture", "creates": "architecture", "requires": "prd"},
        {"agent": "dev", "action": "implement", "creates": "implementation", "requires": "architecture"},
        {"agent": "qa", "action": "review_implementation", "creates": "qa-report", "requires": "implementation"},
    ],
    "FRONTEND_APPLICATION": [
        {"agent": "analyst", "action": "create_project_brief", "creates": "project-brief"},
        {"agent": "pm", "action": "create_prd", "creates": "prd", "requires": "project-brief"},
        {"agent": "ux-expert", "action": "create_frontend_spec", "creates": "front-end-spec", "requires": "prd"},
        {"agent": "dev", "action": "implement", "creates": "implementation", "requires": "front-end-spec"},
        {"agent": "qa", "action": "review_implementation", "creates": "qa-report", "requires": "implementation"},
    ],
    "DOCUMENTATION": [
        {"agent": "analyst", "action": "create_project_brief", "creates": "project-brief"},
        {"agent": "pm", "action": "create_prd", "creates": "prd", "requires": "project-brief"},
        {"agent": "architect", "action": "create_architecture", "creates": "architecture", "requires": "prd"},
    ],
    "RESEARCH": [
        {"agent": "analyst", "action": "research", "creates": "research-report"},
    ],
}


def list_static_sequences() -> List[str]:
    """정적 시퀀스 이름 목록"""
    return list(WORKFLOW_SEQUENCES.keys())


def get_static_sequence(name: str) -> Optional[List[Step]]:
    """
    정적 시퀀스 조회

    Returns:
        새로 생성한 Step 목록 또는 None (알 수 없는 이름)
    """
    definition = WORKFLOW_SEQUENCES.get(name)
    if definition is None:
        return None
    return [Step.from_dict(item) for item in definition]
