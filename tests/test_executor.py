"""
Executor 테스트

- MockStrategy 산출물 / 실패 시뮬레이션
- AgentExecutor elicitation 분기와 예외 처리
- GenerativeStrategy 재시도와 백오프
- OutputValidator
- OpenAITextGenerator
"""

from types import SimpleNamespace
import random

import pytest
from openai import OpenAIError

from bmad_orchestrator.core.agent_context import StepContext
from bmad_orchestrator.core.agent_registry import Agent
from bmad_orchestrator.core.exceptions import GenerationError
from bmad_orchestrator.core.sequences import Step
from bmad_orchestrator.executor.agent_executor import AgentExecutor, normalize_action
from bmad_orchestrator.executor.base import ExecutionStrategy
from bmad_orchestrator.executor.generative import GENERATION_FAILED, GenerativeStrategy
from bmad_orchestrator.executor.mock import MockStrategy
from bmad_orchestrator.executor.openai_generator import OpenAITextGenerator
from bmad_orchestrator.executor.validation import OutputValidator


ANALYST = Agent(
    id="analyst",
    role="Insightful analyst",
    name="Mary",
    title="Business Analyst",
    persona={"style": "Analytical", "focus": "Discovery"},
)

VALID_DOCUMENT = (
    "## Context\nA small team wants a shared task tracker.\n\n"
    "## Instructions\nSummarize goals, users and constraints.\n\n"
    "## Task\nProduce the project brief for the product manager."
)


def make_context(step=None, **kwargs):
    step = step or Step.from_dict(
        {"agent": "analyst", "action": "create_project_brief", "creates": "project-brief"}
    )
    return StepContext(
        workflow_id="wf-1",
        step_index=0,
        step=step,
        user_prompt="Build a shared task tracker",
        **kwargs,
    )


class Recorder:
    """Stands in for asyncio.sleep and records requested delays."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


class QueueGenerator:
    """TextGenerator returning (or raising) queued items."""

    def __init__(self, items):
        self.items = list(items)
        self.prompts = []

    async def generate(self, prompt, context=None):
        self.prompts.append(prompt)
        item = self.items.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


# ─────────────────────────────────────────────────────────────────
# MockStrategy
# ─────────────────────────────────────────────────────────────────


class TestMockStrategy:
    """MockStrategy 테스트"""

    @pytest.mark.asyncio
    async def test_produces_named_artifact(self):
        sleep = Recorder()
        strategy = MockStrategy(delay=0.5, sleep=sleep)

        result = await strategy.run(ANALYST, make_context())

        assert result.success
        assert sleep.delays == [0.5]
        artifact = result.artifacts[0]
        assert artifact.name == "project-brief"
        assert artifact.agent_id == "analyst"
        assert artifact.filename == "project-brief.md"
        assert OutputValidator().validate(result.content).valid

    @pytest.mark.asyncio
    async def test_simulated_failure(self):
        strategy = MockStrategy(failure_rate=1.0, rng=random.Random(1), sleep=Recorder())

        result = await strategy.run(ANALYST, make_context())

        assert not result.success
        assert result.error_type == "mock_failure"

    def test_failure_rate_bounds(self):
        with pytest.raises(ValueError):
            MockStrategy(failure_rate=1.5)


# ─────────────────────────────────────────────────────────────────
# AgentExecutor
# ─────────────────────────────────────────────────────────────────


class ExplodingStrategy(ExecutionStrategy):
    name = "exploding"

    async def run(self, agent, step_context):
        raise RuntimeError("kaboom")


class TestAgentExecutor:
    """AgentExecutor 테스트"""

    def test_normalize_action(self):
        assert normalize_action("Classify Enhancement-Scope") == "classify_enhancement_scope"

    @pytest.mark.asyncio
    async def test_interactive_step_without_response_elicits(self):
        executor = AgentExecutor(MockStrategy(), ["classify_enhancement_scope"])
        step = Step.from_dict({
            "agent": "analyst",
            "action": "Classify Enhancement Scope",
            "classification_options": ["single_story", "major_enhancement"],
            "elicit": "How big is the change?",
        })

        result = await executor.execute(ANALYST, make_context(step))

        assert result.elicitation_required
        assert not result.success
        assert result.error is None
        assert result.elicitation["instruction"] == "How big is the change?"
        assert result.elicitation["options"] == ["single_story", "major_enhancement"]

    @pytest.mark.asyncio
    async def test_interactive_step_with_response_runs_strategy(self):
        executor = AgentExecutor(MockStrategy(sleep=Recorder()))
        step = Step.from_dict({"agent": "analyst", "interactive": True, "creates": "scope"})

        result = await executor.execute(
            ANALYST, make_context(step, elicitation_response="just a bug fix")
        )

        assert result.success
        assert "just a bug fix" in result.content

    @pytest.mark.asyncio
    async def test_strategy_exception_becomes_failure(self):
        executor = AgentExecutor(ExplodingStrategy())

        result = await executor.execute(ANALYST, make_context())

        assert not result.success
        assert result.error == "kaboom"
        assert result.error_type == "RuntimeError"

    def test_from_settings(self, settings):
        mock = AgentExecutor.from_settings(settings)
        assert isinstance(mock.strategy, MockStrategy)
        assert "elicit_requirements" in mock.interactive_actions

        generative = AgentExecutor.from_settings(settings, generator=QueueGenerator([]))
        assert isinstance(generative.strategy, GenerativeStrategy)
        assert generative.strategy.max_attempts == settings.generation_max_attempts


# ─────────────────────────────────────────────────────────────────
# GenerativeStrategy
# ─────────────────────────────────────────────────────────────────


class TestGenerativeStrategy:
    """GenerativeStrategy 테스트"""

    def test_backoff_is_capped(self):
        strategy = GenerativeStrategy(QueueGenerator([]), backoff_base=1.0, backoff_cap=5.0)
        assert [strategy.backoff(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 5.0]

    @pytest.mark.asyncio
    async def test_exception_backs_off_then_succeeds(self):
        sleep = Recorder()
        generator = QueueGenerator([GenerationError("rate limited"), VALID_DOCUMENT])
        strategy = GenerativeStrategy(generator, max_attempts=2, sleep=sleep)

        result = await strategy.run(ANALYST, make_context())

        assert result.success
        assert result.attempts == 2
        assert sleep.delays == [1.0]
        assert result.artifacts[0].name == "project-brief"

    @pytest.mark.asyncio
    async def test_validation_failure_retries_without_sleep(self):
        sleep = Recorder()
        generator = QueueGenerator(["## Context\nshort", "## Context\nstill short"])
        strategy = GenerativeStrategy(generator, max_attempts=2, sleep=sleep)

        result = await strategy.run(ANALYST, make_context())

        assert not result.success
        assert result.error_type == GENERATION_FAILED
        assert sleep.delays == []
        assert "Missing required sections" in generator.prompts[1]

    @pytest.mark.asyncio
    async def test_step_budget_overrides_default(self):
        generator = QueueGenerator(["bad"] * 3)
        strategy = GenerativeStrategy(generator, max_attempts=1, sleep=Recorder())
        step = Step.from_dict({"agent": "analyst", "creates": "brief", "max_attempts": 3})

        result = await strategy.run(ANALYST, make_context(step))

        assert result.attempts == 3
        assert len(generator.prompts) == 3

    def test_prompt_includes_inputs_and_persona(self):
        strategy = GenerativeStrategy(QueueGenerator([]))
        step = Step.from_dict({"agent": "pm", "creates": "prd", "requires": "project-brief"})
        context = make_context(step, context={"project-brief": "Brief text"}, missing_inputs=[])

        prompt = strategy.build_prompt(ANALYST, context)
        system = strategy.build_system_prompt(ANALYST)

        assert "Input 'project-brief':" in prompt
        assert "Brief text" in prompt
        assert "## Context" in prompt
        assert system.startswith("You are Mary, Business Analyst.")
        assert "Focus: Discovery." in system


# ─────────────────────────────────────────────────────────────────
# OutputValidator
# ─────────────────────────────────────────────────────────────────


class TestOutputValidator:
    """OutputValidator 테스트"""

    def test_valid_document(self):
        assert OutputValidator().validate(VALID_DOCUMENT).valid

    def test_bold_labels_count_as_sections(self):
        text = VALID_DOCUMENT.replace("## Task", "**Task**")
        assert OutputValidator().validate(text).valid

    def test_collects_every_problem(self):
        result = OutputValidator().validate("## Context\n[insert details here]")

        assert not result.valid
        assert result.missing_sections == ["Instructions", "Task"]
        assert len(result.errors) == 3
        assert "placeholder" in result.feedback

    def test_step_sections_override_defaults(self):
        validator = OutputValidator(min_length=10)
        assert validator.validate("# Summary\nAll good here.", ["Summary"]).valid
        assert not validator.validate("", ["Summary"]).valid


# ─────────────────────────────────────────────────────────────────
# OpenAITextGenerator
# ─────────────────────────────────────────────────────────────────


class FakeCompletions:
    def __init__(self, response=None, error=None):
        self.response = response
        self.error = error
        self.kwargs = None

    async def create(self, **kwargs):
        self.kwargs = kwargs
        if self.error is not None:
            raise self.error
        return self.response


def fake_client(completions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def completion(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


class TestOpenAITextGenerator:
    """OpenAITextGenerator 테스트"""

    @pytest.mark.asyncio
    async def test_returns_message_content(self):
        completions = FakeCompletions(response=completion(VALID_DOCUMENT))
        generator = OpenAITextGenerator(model="gpt-4o-mini", client=fake_client(completions))

        text = await generator.generate("prompt", {"system_prompt": "You are Mary."})

        assert text == VALID_DOCUMENT
        assert completions.kwargs["model"] == "gpt-4o-mini"
        assert completions.kwargs["messages"][0] == {"role": "system", "content": "You are Mary."}

    @pytest.mark.asyncio
    async def test_api_error_wrapped(self):
        completions = FakeCompletions(error=OpenAIError("service unavailable"))
        generator = OpenAITextGenerator(client=fake_client(completions))

        with pytest.raises(GenerationError):
            await generator.generate("prompt", {"agent_id": "pm"})

    @pytest.mark.asyncio
    async def test_empty_completion_rejected(self):
        generator = OpenAITextGenerator(client=fake_client(FakeCompletions(response=completion(""))))

        with pytest.raises(GenerationError):
            await generator.generate("prompt")
