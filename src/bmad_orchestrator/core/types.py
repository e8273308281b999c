"""
오케스트레이터 공통 열거형

워크플로우 상태, 메시지 타입, 산출물 타입 등 모듈 전반에서 공유하는
값들을 정의합니다. 모든 열거형은 str을 상속하므로 스냅샷(JSON)에
그대로 직렬화됩니다.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Dict, FrozenSet


def utcnow() -> datetime:
    """타임존이 포함된 현재 UTC 시각"""
    return datetime.now(timezone.utc)


class WorkflowStatus(str, Enum):
    """워크플로우 상태"""

    INITIALIZING = "INITIALIZING"
    RUNNING = "RUNNING"
    PAUSED = "PAUSED"
    PAUSED_FOR_ELICITATION = "PAUSED_FOR_ELICITATION"
    COMPLETED = "COMPLETED"
    ERROR = "ERROR"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        """종료 상태 여부 (COMPLETED, ERROR, CANCELLED)"""
        return self in TERMINAL_STATUSES

    def can_transition_to(self, target: "WorkflowStatus") -> bool:
        """상태 전이 그래프상 허용 여부"""
        return target in ALLOWED_TRANSITIONS[self]


TERMINAL_STATUSES: FrozenSet[WorkflowStatus] = frozenset(
    {WorkflowStatus.COMPLETED, WorkflowStatus.ERROR, WorkflowStatus.CANCELLED}
)

# 롤백은 진행 중이던 워크플로우를 PAUSED로 되돌린다
ALLOWED_TRANSITIONS: Dict[WorkflowStatus, FrozenSet[WorkflowStatus]] = {
    WorkflowStatus.INITIALIZING: frozenset(
        {WorkflowStatus.RUNNING, WorkflowStatus.ERROR, WorkflowStatus.CANCELLED}
    ),
    WorkflowStatus.RUNNING: frozenset(
        {
            WorkflowStatus.PAUSED,
            WorkflowStatus.PAUSED_FOR_ELICITATION,
            WorkflowStatus.COMPLETED,
            WorkflowStatus.ERROR,
            WorkflowStatus.CANCELLED,
        }
    ),
    WorkflowStatus.PAUSED: frozenset(
        {WorkflowStatus.RUNNING, WorkflowStatus.CANCELLED}
    ),
    WorkflowStatus.PAUSED_FOR_ELICITATION: frozenset(
        {WorkflowStatus.RUNNING, WorkflowStatus.PAUSED, WorkflowStatus.CANCELLED}
    ),
    WorkflowStatus.COMPLETED: frozenset(),
    WorkflowStatus.ERROR: frozenset(),
    WorkflowStatus.CANCELLED: frozenset(),
}


class MessageType(str, Enum):
    """채널 메시지 타입"""

    ACTIVATION = "activation"
    EXECUTION = "execution"
    COMPLETION = "completion"
    ERROR = "error"
    INTER_AGENT = "inter_agent"
    USER_INPUT = "user_input"
    SYSTEM = "system"
    WORKFLOW_COMPLETE = "workflow_complete"
    ELICITATION_REQUEST = "elicitation_request"
    ELICITATION_RESPONSE = "elicitation_response"


class ArtifactType(str, Enum):
    """산출물 타입"""

    DOCUMENT = "document"
    CODE = "code"
    CONFIGURATION = "configuration"
    TEST = "test"
    REPORT = "report"
    ANALYSIS = "analysis"


class AgentChannelStatus(str, Enum):
    """채널 활동으로 추론한 에이전트 상태"""

    PENDING = "pending"
    ACTIVE = "active"
    WAITING_FOR_INPUT = "waiting_for_input"
    COMPLETED = "completed"
    ERROR = "error"


class ErrorType(str, Enum):
    """workflow.errors 항목의 type 값"""

    STEP = "dynamic_step_error"
    PERSISTENCE = "persistence_error"
    ENGINE = "engine_error"
