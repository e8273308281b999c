"""
Orchestrator Module - 워크플로우 실행 및 조율

Classes:
    Orchestrator: 외부 진입점 파사드
    WorkflowEngine: 워크플로우 상태 머신
    WorkflowConfig: 워크플로우 시작 옵션
    Workflow: 워크플로우 집합체
    WorkflowParser: YAML 동적 워크플로우 파서
    CheckpointManager: 체크포인트 생성/복원
"""

from .workflow import Checkpoint, ErrorRecord, Workflow
from .workflow_parser import WorkflowDefinition, WorkflowParser
from .checkpoints import CheckpointManager
from .elicitation import classify_response
from .workflow_engine import WorkflowConfig, WorkflowEngine, evaluate_condition
from .orchestrator import Orchestrator

__all__ = [
    "Orchestrator",
    "WorkflowEngine",
    "WorkflowConfig",
    "Workflow",
    "Checkpoint",
    "ErrorRecord",
    "WorkflowDefinition",
    "WorkflowParser",
    "CheckpointManager",
    "classify_response",
    "evaluate_condition",
]
