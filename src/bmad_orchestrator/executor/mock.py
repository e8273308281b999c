"""
Mock 실행 전략

언어 모델 없이 에이전트별 고정 템플릿으로 산출물을 만듭니다.
테스트와 오프라인 개발에 사용합니다.
"""

from typing import Callable, Dict, Optional, Tuple
import asyncio
import logging
import random

from ..core.agent_context import StepContext
from ..core.agent_registry import Agent
from ..core.agent_result import AgentResult, Artifact
from ..core.types import ArtifactType
from .base import ExecutionStrategy


# agent_id -> (제목, 산출물 타입)
AGENT_TEMPLATES: Dict[str, Tuple[str, ArtifactType]] = {
    "analyst": ("Project Brief", ArtifactType.DOCUMENT),
    "pm": ("Product Requirements Document", ArtifactType.DOCUMENT),
    "architect": ("System Architecture", ArtifactType.DOCUMENT),
    "ux-expert": ("Front-end Specification", ArtifactType.DOCUMENT),
    "dev": ("Implementation Notes", ArtifactType.CODE),
    "qa": ("QA Report", ArtifactType.TEST),
    "sm": ("User Story", ArtifactType.DOCUMENT),
    "po": ("Product Owner Review", ArtifactType.REPORT),
}

DEFAULT_TEMPLATE = ("Agent Output", ArtifactType.DOCUMENT)


class MockStrategy(ExecutionStrategy):
    """
    고정 템플릿 실행 전략

    Args:
        delay: 고정 지연 (초)
        jitter: 0~jitter 사이 무작위 추가 지연 (초)
        failure_rate: 실패 확률 (0.0~1.0)
        rng: 난수 생성기 (재현 가능한 테스트용)
        sleep: 대기 함수 (테스트에서 교체)
    """

    name = "mock"

    def __init__(
        self,
        delay: float = 0.0,
        jitter: float = 0.0,
        failure_rate: float = 0.0,
        rng: Optional[random.Random] = None,
        sleep: Callable = asyncio.sleep,
    ):
        if not 0.0 <= failure_rate <= 1.0:
            raise ValueError(f"failure_rate must be within [0, 1]: {failure_rate}")
        self.delay = delay
        self.jitter = jitter
        self.failure_rate = failure_rate
        self.rng = rng or random.Random()
        self._sleep = sleep
        self.logger = logging.getLogger("agent.executor.mock")

    async def run(self, agent: Agent, step_context: StepContext) -> AgentResult:
        wait = self.delay + (self.rng.uniform(0, self.jitter) if self.jitter else 0.0)
        await self._sleep(wait)

        if self.failure_rate and self.rng.random() < self.failure_rate:
            self.logger.info(f"Simulated failure for {agent.id} at step {step_context.step_index}")
            return AgentResult.failure_result(
                f"Simulated failure in {agent.id}.{step_context.action or 'run'}",
                error_type="mock_failure",
                attempts=1,
            )

        title, artifact_type = AGENT_TEMPLATES.get(agent.id, DEFAULT_TEMPLATE)
        step = step_context.step
        name = step.creates[0] if step.creates else f"{agent.id}-output"
        content = self.render(agent, title, step_context)

        artifact = Artifact(
            name=name,
            type=artifact_type.value,
            agent_id=agent.id,
            content=content,
            step=step_context.step_index,
            filename=f"{name}.md",
            metadata={"strategy": self.name, "title": title, "action": step_context.action},
        )
        return AgentResult.success_result(
            artifacts=[artifact],
            content=content,
            metrics={"delay_seconds": wait},
        )

    @staticmethod
    def render(agent: Agent, title: str, step_context: StepContext) -> str:
        """템플릿 문서 생성"""
        step = step_context.step
        lines = [
            f"# {title}",
            "",
            "## Context",
            f"Prepared by {agent.name or agent.id} ({agent.title or agent.role}) "
            f"for the request: {step_context.user_prompt}",
            "",
            "## Instructions",
            f"Action `{step_context.action or 'default'}` executed as step "
            f"{step_context.step_index + 1}.",
        ]
        if step.requires:
            lines.append(f"Inputs consumed: {', '.join(step.requires)}.")
        if step_context.elicitation_response:
            lines.append(f"Operator response: {step_context.elicitation_response}")
        if step_context.classification:
            lines.append(f"Classification: {step_context.classification}")
        lines += [
            "",
            "## Task",
            f"Deliver {', '.join(step.creates) or 'the step output'} "
            f"so the next agent in the sequence can continue.",
        ]
        return "\n".join(lines)
