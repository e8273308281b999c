"""
Pytest Configuration and Fixtures

Provides settings, registry and engine fixtures plus scripted execution
strategies for driving the workflow engine step by step.
"""
import asyncio
from typing import Any, Callable, Dict, List, Optional

import pytest
import pytest_asyncio

from bmad_orchestrator.config import Settings
from bmad_orchestrator.core.agent_context import StepContext
from bmad_orchestrator.core.agent_registry import Agent, AgentRegistry
from bmad_orchestrator.core.agent_result import AgentResult, Artifact
from bmad_orchestrator.core.message_channel import MessageChannel
from bmad_orchestrator.executor.agent_executor import AgentExecutor
from bmad_orchestrator.executor.base import ExecutionStrategy
from bmad_orchestrator.executor.mock import MockStrategy
from bmad_orchestrator.orchestrator.workflow_engine import WorkflowEngine
from bmad_orchestrator.orchestrator.workflow_parser import WorkflowParser
from bmad_orchestrator.persistence.inmemory import InMemoryWorkflowRepository


PROMPT = "Build a task tracker with user accounts and reminders"


# ─────────────────────────────────────────────────────────────────
# Scripted strategies
# ─────────────────────────────────────────────────────────────────


class GatedStrategy(ExecutionStrategy):
    """Blocks every run until ``gate`` is set; records each call."""

    name = "gated"

    def __init__(self):
        self.gate = asyncio.Event()
        self.started = asyncio.Event()
        self.calls: List[StepContext] = []

    async def run(self, agent: Agent, step_context: StepContext) -> AgentResult:
        self.calls.append(step_context)
        self.started.set()
        await self.gate.wait()
        name = step_context.step.creates[0] if step_context.step.creates else agent.id
        return AgentResult.success_result(
            artifacts=[Artifact(name=name, type="document", agent_id=agent.id, content=f"{name} body")],
            content=f"{name} body",
        )


class ScriptedStrategy(ExecutionStrategy):
    """Returns queued results in order, then succeeds."""

    name = "scripted"

    def __init__(self, results: Optional[List[AgentResult]] = None):
        self.results = list(results or [])
        self.calls: List[StepContext] = []

    async def run(self, agent: Agent, step_context: StepContext) -> AgentResult:
        self.calls.append(step_context)
        if self.results:
            return self.results.pop(0)
        return AgentResult.success_result(content=f"{agent.id} output")


class FailingRepository(InMemoryWorkflowRepository):
    """Repository whose saves always fail."""

    async def save_workflow(self, snapshot: Dict[str, Any]) -> None:
        raise RuntimeError("disk full")


class SlowLoadRepository(InMemoryWorkflowRepository):
    """Repository whose loads suspend, like a database round trip."""

    async def load_workflow(self, workflow_id: str) -> Optional[Dict[str, Any]]:
        await asyncio.sleep(0.01)
        return await super().load_workflow(workflow_id)


# ─────────────────────────────────────────────────────────────────
# Fixtures
# ─────────────────────────────────────────────────────────────────


@pytest.fixture
def settings() -> Settings:
    """Settings isolated from the environment (in-memory, mock executor)."""
    return Settings(_env_file=None, database_url="", mock_mode=True)


@pytest.fixture
def registry(settings) -> AgentRegistry:
    registry = AgentRegistry(settings.agents_file)
    registry.load_all()
    return registry


@pytest.fixture
def parser(settings) -> WorkflowParser:
    return WorkflowParser(settings.workflows_dir)


@pytest.fixture
def channel() -> MessageChannel:
    return MessageChannel()


@pytest.fixture
def repository() -> InMemoryWorkflowRepository:
    return InMemoryWorkflowRepository()


@pytest.fixture
def gated() -> GatedStrategy:
    return GatedStrategy()


@pytest_asyncio.fixture
async def make_engine(settings, registry, parser, channel, repository):
    """Factory building engines that share the fixture collaborators."""
    engines: List[WorkflowEngine] = []

    def factory(
        strategy: Optional[ExecutionStrategy] = None,
        auto_advance: bool = True,
        **overrides: Any,
    ) -> WorkflowEngine:
        executor = AgentExecutor(strategy or MockStrategy(), settings.interactive_actions)
        kwargs: Dict[str, Any] = dict(
            registry=registry,
            channel=channel,
            executor=executor,
            repository=repository,
            parser=parser,
            default_sequence=settings.default_sequence,
            interview_prompt=settings.interview_prompt,
            auto_advance=auto_advance,
        )
        kwargs.update(overrides)
        engine = WorkflowEngine(**kwargs)
        engines.append(engine)
        return engine

    yield factory

    for engine in engines:
        await engine.shutdown()


@pytest_asyncio.fixture
async def engine(make_engine) -> WorkflowEngine:
    return make_engine()


@pytest.fixture
def scripted() -> Callable[..., ScriptedStrategy]:
    """Build a ScriptedStrategy from a list of queued results."""
    return ScriptedStrategy


@pytest.fixture
def failing_repository() -> FailingRepository:
    return FailingRepository()


@pytest.fixture
def slow_repository() -> SlowLoadRepository:
    return SlowLoadRepository()
