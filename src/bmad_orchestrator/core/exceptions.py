"""
오케스트레이터 커스텀 예외

모든 예외는 AgentError를 상속받습니다. 단계 실행 실패는 예외가 아니라
AgentResult.failure_result 값으로 전달되며, 여기 정의된 예외는 호출자에게
동기적으로 거부를 알리는 용도입니다.
"""

from typing import List, Optional


class AgentError(Exception):
    """오케스트레이터 기본 예외"""

    def __init__(self, message: str, agent_id: Optional[str] = None):
        self.message = message
        self.agent_id = agent_id
        super().__init__(self.message)

    def __str__(self) -> str:
        if self.agent_id:
            return f"[{self.agent_id}] {self.message}"
        return self.message


class AgentDefinitionError(AgentError):
    """
    에이전트 정의 오류

    정의 파일이 없거나 id/role 등 필수 필드가 빠졌을 때 발생합니다.

    Attributes:
        source: 문제가 된 정의 파일 경로
    """

    def __init__(self, message: str, source: Optional[str] = None):
        self.source = source
        if source:
            message = f"{message} ({source})"
        super().__init__(f"Invalid agent definition: {message}")


class AgentNotFoundError(AgentError):
    """에이전트를 찾을 수 없음"""

    def __init__(self, agent_id: str):
        super().__init__(f"Agent not registered: {agent_id}", agent_id)


class AgentExecutionError(AgentError):
    """
    에이전트 실행 오류

    Attributes:
        original_error: 원본 예외 (있는 경우)
    """

    def __init__(
        self,
        message: str,
        agent_id: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.original_error = original_error
        super().__init__(message, agent_id)


class GenerationError(AgentExecutionError):
    """언어 모델 호출이 실패했거나 빈 응답을 반환함"""


class InvalidMessageError(AgentError):
    """필수 필드가 빠졌거나 알 수 없는 타입의 채널 메시지"""


class OrchestratorNotInitializedError(AgentError):
    """initialize() 이전에 퍼블릭 API를 호출함"""

    def __init__(self):
        super().__init__("Orchestrator is not initialized - call initialize() first")


class WorkflowError(AgentError):
    """워크플로우 관련 오류"""

    def __init__(
        self,
        message: str,
        workflow_id: Optional[str] = None,
        step: Optional[int] = None,
    ):
        self.workflow_id = workflow_id
        self.step = step
        prefix = ""
        if workflow_id:
            prefix += f"[WF:{workflow_id}]"
        if step is not None:
            prefix += f"[Step:{step}]"
        full_message = f"{prefix} {message}" if prefix else message
        super().__init__(full_message)


class WorkflowValidationError(WorkflowError):
    """
    워크플로우 시작 거부

    짧은 프롬프트, 알 수 없는 시퀀스, 등록되지 않은 에이전트 등
    RUNNING에 진입하기 전에 걸러지는 오류입니다.

    Attributes:
        errors: 개별 검증 오류 목록
    """

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = errors or [message]
        super().__init__(message)


class WorkflowNotFoundError(WorkflowError):
    """워크플로우를 찾을 수 없음"""

    def __init__(self, workflow_id: str):
        super().__init__(f"Workflow not found: {workflow_id}", workflow_id)


class InvalidTransitionError(WorkflowError):
    """
    허용되지 않은 상태 전이

    Attributes:
        current: 현재 상태
        target: 요청한 상태 또는 작업 이름
    """

    def __init__(self, workflow_id: str, current: str, target: str):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot transition from {current} to {target}", workflow_id
        )


class WorkflowTerminalError(InvalidTransitionError):
    """종료된(COMPLETED/ERROR/CANCELLED) 워크플로우에 대한 변경 시도"""

    def __init__(self, workflow_id: str, current: str, operation: str):
        super().__init__(workflow_id, current, operation)
        self.message = f"[WF:{workflow_id}] Workflow is terminal ({current}); cannot {operation}"


class CheckpointNotFoundError(WorkflowError):
    """롤백 대상 체크포인트가 없음"""

    def __init__(self, workflow_id: str, checkpoint_id: str):
        self.checkpoint_id = checkpoint_id
        super().__init__(f"Checkpoint not found: {checkpoint_id}", workflow_id)


class PersistenceError(WorkflowError):
    """
    스냅샷 저장/조회 실패

    Attributes:
        original_error: 저장소에서 발생한 원본 예외
    """

    def __init__(
        self,
        message: str,
        workflow_id: Optional[str] = None,
        original_error: Optional[Exception] = None,
    ):
        self.original_error = original_error
        super().__init__(message, workflow_id)
