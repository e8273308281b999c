"""
Core Infrastructure for the BMAD Orchestrator

이 모듈은 오케스트레이터의 핵심 인프라를 제공합니다.

Classes:
    Agent, AgentRegistry: 에이전트 정의와 중앙 등록소
    MessageChannel, Message: 워크플로우 단위 메시지 채널
    StepContext: 단계 실행 컨텍스트
    AgentResult, Artifact: 단계 실행 결과
    Step: 워크플로우 단계
"""

from .exceptions import (
    AgentError,
    AgentDefinitionError,
    AgentNotFoundError,
    AgentExecutionError,
    GenerationError,
    InvalidMessageError,
    OrchestratorNotInitializedError,
    WorkflowError,
    WorkflowValidationError,
    WorkflowNotFoundError,
    InvalidTransitionError,
    WorkflowTerminalError,
    CheckpointNotFoundError,
    PersistenceError,
)
from .types import (
    WorkflowStatus,
    MessageType,
    ArtifactType,
    AgentChannelStatus,
    ErrorType,
)
from .sequences import Step, WORKFLOW_SEQUENCES, get_static_sequence, list_static_sequences
from .agent_context import StepContext
from .agent_result import AgentResult, Artifact
from .agent_registry import Agent, AgentRegistry, SequenceValidation
from .message_channel import Message, MessageChannel

__all__ = [
    # Exceptions
    "AgentError",
    "AgentDefinitionError",
    "AgentNotFoundError",
    "AgentExecutionError",
    "GenerationError",
    "InvalidMessageError",
    "OrchestratorNotInitializedError",
    "WorkflowError",
    "WorkflowValidationError",
    "WorkflowNotFoundError",
    "InvalidTransitionError",
    "WorkflowTerminalError",
    "CheckpointNotFoundError",
    "PersistenceError",
    # Enums
    "WorkflowStatus",
    "MessageType",
    "ArtifactType",
    "AgentChannelStatus",
    "ErrorType",
    # Sequences
    "Step",
    "WORKFLOW_SEQUENCES",
    "get_static_sequence",
    "list_static_sequences",
    # Context & Result
    "StepContext",
    "AgentResult",
    "Artifact",
    # Registry
    "Agent",
    "AgentRegistry",
    "SequenceValidation",
    # Communication
    "Message",
    "MessageChannel",
]
