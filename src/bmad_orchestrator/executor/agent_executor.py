"""
AgentExecutor - 단계 실행기

단계가 사용자 입력을 필요로 하면 일시정지 신호를 반환하고,
그렇지 않으면 실행 전략(mock/generative)에 위임합니다.
"""

from typing import Iterable, Optional, TYPE_CHECKING
import logging

from ..core.agent_context import StepContext
from ..core.agent_registry import Agent
from ..core.agent_result import AgentResult
from ..core.sequences import Step
from .base import ExecutionStrategy, TextGenerator
from .generative import GenerativeStrategy
from .mock import MockStrategy
from .validation import OutputValidator

if TYPE_CHECKING:
    from ..config import Settings


def normalize_action(action: str) -> str:
    """액션 이름 정규화 ("Classify Enhancement-Scope" -> "classify_enhancement_scope")"""
    return "_".join(action.lower().replace("-", " ").split())


class AgentExecutor:
    """
    단계 실행기

    사용법:
        executor = AgentExecutor(MockStrategy())
        result = await executor.execute(agent, step_context)

        if result.elicitation_required:
            ...  # 워크플로우를 PAUSED_FOR_ELICITATION으로
    """

    def __init__(
        self,
        strategy: ExecutionStrategy,
        interactive_actions: Iterable[str] = (),
    ):
        self.strategy = strategy
        self.interactive_actions = {normalize_action(a) for a in interactive_actions}
        self.logger = logging.getLogger("agent.executor")

    @classmethod
    def from_settings(
        cls, settings: "Settings", generator: Optional[TextGenerator] = None
    ) -> "AgentExecutor":
        """
        설정으로 실행기 생성

        mock_mode가 꺼져 있고 generator가 없으면 OpenAI 생성기를 사용합니다.
        """
        if settings.mock_mode and generator is None:
            strategy: ExecutionStrategy = MockStrategy(
                delay=settings.mock_delay_seconds,
                jitter=settings.mock_delay_jitter,
                failure_rate=settings.mock_failure_rate,
            )
        else:
            if generator is None:
                from .openai_generator import OpenAITextGenerator

                generator = OpenAITextGenerator(
                    api_key=settings.openai_api_key,
                    model=settings.openai_model,
                    temperature=settings.openai_temperature,
                    timeout=settings.openai_timeout,
                )
            strategy = GenerativeStrategy(
                generator,
                OutputValidator(settings.required_sections, settings.min_output_length),
                max_attempts=settings.generation_max_attempts,
                backoff_base=settings.generation_backoff_base,
                backoff_cap=settings.generation_backoff_cap,
            )
        return cls(strategy, settings.interactive_actions)

    def is_interactive(self, step: Step) -> bool:
        """사용자 입력이 필요한 단계 여부 (명시적 플래그 우선)"""
        if step.interactive:
            return True
        return bool(step.action) and normalize_action(step.action) in self.interactive_actions

    async def execute(self, agent: Agent, step_context: StepContext) -> AgentResult:
        """
        단계 실행

        대화형 단계에 아직 응답이 없으면 전략을 호출하지 않고
        elicitation 결과를 반환합니다. 전략에서 예외가 나면 실패 결과로 바꿉니다.

        Args:
            agent: 실행할 에이전트
            step_context: 단계 컨텍스트

        Returns:
            AgentResult
        """
        step = step_context.step
        if self.is_interactive(step) and step_context.elicitation_response is None:
            self.logger.info(
                f"[{step_context.workflow_id}] Step {step_context.step_index} "
                f"({step.name}) requires operator input"
            )
            return AgentResult.elicitation_result(
                {
                    "section_title": step.description or step.name,
                    "section_id": step.name,
                    "instruction": step.elicitation_prompt
                    or f"{agent.name or agent.id} needs your input to {step.action or 'continue'}.",
                    "agent_id": agent.id,
                    "step": step_context.step_index,
                    "options": list(step.classification_options),
                }
            )

        self.logger.info(
            f"[{step_context.workflow_id}] Executing step {step_context.step_index}: "
            f"{agent.id}.{step_context.action or 'run'} via {self.strategy.name}"
        )
        try:
            return await self.strategy.run(agent, step_context)
        except Exception as e:
            self.logger.error(f"Strategy error in {agent.id}: {e}", exc_info=True)
            return AgentResult.failure_result(str(e), error_type=type(e).__name__)

    def __repr__(self) -> str:
        return f"AgentExecutor(strategy={self.strategy.name})"
