"""
실행 전략 인터페이스

Executor는 전략 객체에 "이 단계의 결과를 만들어라"를 위임합니다.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Protocol

from ..core.agent_context import StepContext
from ..core.agent_registry import Agent
from ..core.agent_result import AgentResult


class TextGenerator(Protocol):
    """외부 언어 모델 호출"""

    async def generate(self, prompt: str, context: Optional[Dict[str, Any]] = None) -> str:
        ...


class ExecutionStrategy(ABC):
    """단계 실행 전략 추상 클래스"""

    name: str = "base"

    @abstractmethod
    async def run(self, agent: Agent, step_context: StepContext) -> AgentResult:
        """
        단계 실행

        Args:
            agent: 실행할 에이전트
            step_context: 단계 컨텍스트

        Returns:
            AgentResult (실패도 값으로 반환)
        """

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name})"
