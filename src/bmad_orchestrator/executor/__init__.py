"""
Executor Module - 단계 실행

Classes:
    AgentExecutor: 단계 실행기 (elicitation 분기 포함)
    ExecutionStrategy: 실행 전략 추상 클래스
    MockStrategy: 고정 템플릿 전략
    GenerativeStrategy: 언어 모델 전략
    OutputValidator: 생성 결과 구조 검증
"""

from .base import ExecutionStrategy, TextGenerator
from .mock import MockStrategy
from .generative import GenerativeStrategy, GENERATION_FAILED
from .validation import OutputValidator, ValidationResult
from .agent_executor import AgentExecutor

__all__ = [
    "AgentExecutor",
    "ExecutionStrategy",
    "TextGenerator",
    "MockStrategy",
    "GenerativeStrategy",
    "GENERATION_FAILED",
    "OutputValidator",
    "ValidationResult",
]
