"""
생성형 실행 전략

외부 언어 모델로 단계 산출물을 생성하고, 구조 검증에 실패하면
피드백을 붙여 제한된 횟수만큼 다시 시도합니다.
"""

from dataclasses import replace
from typing import Callable, List, Optional
import asyncio
import logging

from ..core.agent_context import StepContext
from ..core.agent_registry import Agent
from ..core.agent_result import AgentResult, Artifact
from ..core.types import ArtifactType
from .base import ExecutionStrategy, TextGenerator
from .validation import OutputValidator

GENERATION_FAILED = "generation_failed"

CONTEXT_PREVIEW_LENGTH = 2000


class GenerativeStrategy(ExecutionStrategy):
    """
    언어 모델 실행 전략

    재시도 규칙:
        - 검증 실패: 바로 다음 시도 (검증 피드백을 프롬프트에 추가)
        - 생성기 예외: min(backoff_base * 2 ** (n - 1), backoff_cap) 초 대기 후 재시도
        - 단계의 max_attempts가 있으면 전역 max_attempts 대신 사용

    Args:
        generator: TextGenerator 구현
        validator: OutputValidator
        max_attempts: 기본 시도 횟수
        backoff_base: 백오프 기본값 (초)
        backoff_cap: 백오프 상한 (초)
        sleep: 대기 함수 (테스트에서 교체)
    """

    name = "generative"

    def __init__(
        self,
        generator: TextGenerator,
        validator: Optional[OutputValidator] = None,
        max_attempts: int = 2,
        backoff_base: float = 1.0,
        backoff_cap: float = 5.0,
        sleep: Callable = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1: {max_attempts}")
        self.generator = generator
        self.validator = validator or OutputValidator()
        self.max_attempts = max_attempts
        self.backoff_base = backoff_base
        self.backoff_cap = backoff_cap
        self._sleep = sleep
        self.logger = logging.getLogger("agent.executor.generative")

    def backoff(self, attempt: int) -> float:
        """attempt번째 실패 후 대기 시간 (초)"""
        return min(self.backoff_base * 2 ** (attempt - 1), self.backoff_cap)

    async def run(self, agent: Agent, step_context: StepContext) -> AgentResult:
        budget = step_context.step.max_attempts or self.max_attempts
        last_error = "no attempt made"
        ctx = step_context

        for attempt in range(1, budget + 1):
            prompt = self.build_prompt(agent, ctx)
            try:
                text = await self.generator.generate(
                    prompt,
                    {
                        "agent_id": agent.id,
                        "workflow_id": ctx.workflow_id,
                        "step": ctx.step_index,
                        "attempt": attempt,
                        "system_prompt": self.build_system_prompt(agent),
                    },
                )
            except Exception as e:
                last_error = f"Generation call failed: {e}"
                self.logger.warning(
                    f"{agent.id} attempt {attempt}/{budget} failed: {e}"
                )
                if attempt < budget:
                    await self._sleep(self.backoff(attempt))
                continue

            validation = self.validator.validate(text, ctx.step.required_sections)
            if validation.valid:
                return AgentResult.success_result(
                    artifacts=[self._artifact(agent, ctx, text, attempt)],
                    content=text,
                    attempts=attempt,
                )

            last_error = f"Output validation failed: {validation.feedback}"
            self.logger.info(f"{agent.id} attempt {attempt}/{budget}: {last_error}")
            ctx = replace(ctx, validation_feedback=validation.feedback)

        return AgentResult.failure_result(
            f"{agent.id} failed after {budget} attempts: {last_error}",
            error_type=GENERATION_FAILED,
            attempts=budget,
        )

    @staticmethod
    def build_system_prompt(agent: Agent) -> str:
        persona = agent.persona or {}
        parts = [f"You are {agent.name or agent.id}, {agent.title or agent.role}."]
        if agent.role:
            parts.append(f"Role: {agent.role}.")
        for key in ("identity", "style", "focus"):
            if persona.get(key):
                parts.append(f"{key.capitalize()}: {persona[key]}.")
        return " ".join(parts)

    def build_prompt(self, agent: Agent, step_context: StepContext) -> str:
        """페르소나와 누적 컨텍스트로 단계 프롬프트 구성"""
        step = step_context.step
        sections = step.required_sections
        if sections is None:
            sections = self.validator.required_sections

        lines: List[str] = [
            f"User request: {step_context.user_prompt}",
            f"Action: {step_context.action or 'produce the step deliverable'}",
        ]
        if step.description:
            lines.append(f"Step description: {step.description}")
        if step.creates:
            lines.append(f"Deliverable: {', '.join(step.creates)}")

        for key, value in step_context.inputs.items():
            preview = str(value)[:CONTEXT_PREVIEW_LENGTH]
            lines += ["", f"Input '{key}':", preview]
        if step_context.missing_inputs:
            lines.append(f"Unavailable inputs: {', '.join(step_context.missing_inputs)}")

        if step_context.elicitation_response:
            lines += ["", f"Operator response: {step_context.elicitation_response}"]
        if step_context.classification:
            lines.append(f"Classification: {step_context.classification}")

        if sections:
            lines += [
                "",
                "Format the answer in markdown with these headings: "
                + ", ".join(f"## {s}" for s in sections),
            ]
        if step_context.validation_feedback:
            lines += [
                "",
                f"The previous answer was rejected: {step_context.validation_feedback}",
            ]
        return "\n".join(lines)

    def _artifact(
        self, agent: Agent, step_context: StepContext, text: str, attempt: int
    ) -> Artifact:
        step = step_context.step
        name = step.creates[0] if step.creates else f"{agent.id}-output"
        return Artifact(
            name=name,
            type=ArtifactType.DOCUMENT.value,
            agent_id=agent.id,
            content=text,
            step=step_context.step_index,
            filename=f"{name}.md",
            metadata={"strategy": self.name, "attempts": attempt},
        )
