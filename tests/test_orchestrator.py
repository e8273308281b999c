"""
Orchestrator 파사드 테스트

- 초기화 규칙
- 상태 보강 (communication, agents)
- 상태 저장소 / 브로드캐스터 전달
- 구독과 정리
"""

import asyncio

import pytest
import pytest_asyncio

from bmad_orchestrator.core.exceptions import (
    AgentDefinitionError,
    AgentNotFoundError,
    OrchestratorNotInitializedError,
)
from bmad_orchestrator.orchestrator.orchestrator import Orchestrator


PROMPT = "Build a recipe sharing site with ratings"


class RecordingStore:
    def __init__(self):
        self.actions = []

    def dispatch(self, action):
        self.actions.append(action)

    def types(self):
        return [a["type"] for a in self.actions]


class RecordingBroadcaster:
    def __init__(self):
        self.events = []

    async def publish(self, channel, event, payload):
        self.events.append((channel, event, payload))


class BrokenBroadcaster:
    async def publish(self, channel, event, payload):
        raise ConnectionError("socket closed")


class StuckBroadcaster:
    """Never finishes sending, like a client that stopped reading."""

    def __init__(self):
        self.calls = 0

    async def publish(self, channel, event, payload):
        self.calls += 1
        await asyncio.Event().wait()


@pytest.fixture
def store():
    return RecordingStore()


@pytest.fixture
def broadcaster():
    return RecordingBroadcaster()


@pytest_asyncio.fixture
async def orchestrator(settings, store, broadcaster):
    orchestrator = Orchestrator(settings=settings, broadcaster=broadcaster, store=store)
    await orchestrator.initialize()
    yield orchestrator
    await orchestrator.shutdown()


class TestInitialization:
    """초기화 테스트"""

    @pytest.mark.asyncio
    async def test_operations_require_initialize(self, settings):
        orchestrator = Orchestrator(settings=settings)

        with pytest.raises(OrchestratorNotInitializedError):
            await orchestrator.start_workflow(PROMPT)
        with pytest.raises(OrchestratorNotInitializedError):
            orchestrator.get_active_workflows()
        assert orchestrator.get_system_health()["status"] == "initializing"

    @pytest.mark.asyncio
    async def test_failed_initialize_stays_uninitialized(self, settings, tmp_path):
        bad = settings.model_copy(update={"definitions_dir": tmp_path})
        orchestrator = Orchestrator(settings=bad)

        with pytest.raises(AgentDefinitionError):
            await orchestrator.initialize()

        assert orchestrator.initialized is False
        assert len(orchestrator.registry) == 0

    @pytest.mark.asyncio
    async def test_agents_available_after_initialize(self, orchestrator):
        agents = orchestrator.get_available_agents()

        assert len(agents) == 8
        assert orchestrator.get_agent("qa")["name"] == "Quinn"
        with pytest.raises(AgentNotFoundError):
            orchestrator.get_agent("wizard")


class TestWorkflowStatus:
    """상태 조회 테스트"""

    @pytest.mark.asyncio
    async def test_status_includes_communication_and_agents(self, orchestrator):
        started = await orchestrator.start_workflow(PROMPT, {"sequence": "FULL_STACK"})
        wid = started["workflow_id"]
        await orchestrator.wait_idle(wid)

        status = await orchestrator.get_workflow_status(wid)

        assert status["status"] == "COMPLETED"
        communication = status["communication"]
        assert communication["message_count"] == len(communication["timeline"])
        assert communication["statistics"]["messages_by_type"]["completion"] == 6
        assert status["agents"] == {
            "analyst": "completed",
            "pm": "completed",
            "architect": "completed",
            "ux-expert": "completed",
            "dev": "completed",
            "qa": "completed",
        }
        assert await orchestrator.get_workflow_status("missing") is None

    @pytest.mark.asyncio
    async def test_pending_agents_before_activation(self, orchestrator):
        started = await orchestrator.start_workflow(PROMPT, {"sequence": "brownfield-fullstack"})
        wid = started["workflow_id"]
        await orchestrator.wait_idle(wid)

        status = await orchestrator.get_workflow_status(wid)

        assert status["status"] == "PAUSED_FOR_ELICITATION"
        assert status["agents"]["analyst"] == "waiting_for_input"
        assert status["agents"]["qa"] == "pending"

    @pytest.mark.asyncio
    async def test_sequences_and_health(self, orchestrator):
        sequences = orchestrator.get_workflow_sequences()
        assert "FULL_STACK" in sequences["static"]
        assert "greenfield-fullstack" in sequences["dynamic"]

        health = orchestrator.get_system_health()
        assert health["status"] == "healthy"
        assert health["agents_loaded"] == 8


class TestForwarding:
    """저장소 / 브로드캐스터 전달 테스트"""

    @pytest.mark.asyncio
    async def test_lifecycle_actions_dispatched(self, orchestrator, store):
        started = await orchestrator.start_workflow(PROMPT, {"sequence": "FULL_STACK"})
        wid = started["workflow_id"]
        await orchestrator.cancel_workflow(wid)

        assert store.types() == ["workflow/started", "workflow/cancelled"]
        assert store.actions[0]["payload"]["workflow_id"] == wid

    @pytest.mark.asyncio
    async def test_messages_broadcast_per_workflow(self, orchestrator, broadcaster):
        started = await orchestrator.start_workflow(PROMPT, {"sequence": "RESEARCH"})
        wid = started["workflow_id"]
        await orchestrator.wait_idle(wid)
        await orchestrator.drain_broadcasts(timeout=2)

        channels = {channel for channel, _, _ in broadcaster.events}
        events = [event for _, event, _ in broadcaster.events]
        assert channels == {f"workflow-{wid}"}
        assert events[0] == "workflow-message"
        assert "agent-activated" in events
        assert "agent-completed" in events
        assert broadcaster.events[-1][2]["type"] == "workflow_complete"

    @pytest.mark.asyncio
    async def test_broadcast_failure_does_not_stop_workflow(self, settings):
        orchestrator = Orchestrator(settings=settings, broadcaster=BrokenBroadcaster())
        await orchestrator.initialize()
        try:
            started = await orchestrator.start_workflow(PROMPT, {"sequence": "RESEARCH"})
            await orchestrator.wait_idle(started["workflow_id"])

            status = await orchestrator.get_workflow_status(started["workflow_id"])
            assert status["status"] == "COMPLETED"
        finally:
            await orchestrator.shutdown()

    @pytest.mark.asyncio
    async def test_stuck_broadcaster_does_not_block_steps(self, settings):
        broadcaster = StuckBroadcaster()
        orchestrator = Orchestrator(settings=settings, broadcaster=broadcaster)
        await orchestrator.initialize()
        try:
            started = await orchestrator.start_workflow(PROMPT, {"sequence": "FULL_STACK"})
            await orchestrator.wait_idle(started["workflow_id"], timeout=2)

            status = await orchestrator.get_workflow_status(started["workflow_id"])
            assert status["status"] == "COMPLETED"
            assert broadcaster.calls == 1
            assert orchestrator.get_system_health()["pending_broadcasts"] > 0
        finally:
            await orchestrator.shutdown()


class TestSubscriptions:
    """구독 테스트"""

    @pytest.mark.asyncio
    async def test_subscription_maps_events_to_store_actions(self, orchestrator, store):
        completed = []
        started = await orchestrator.start_workflow(PROMPT, {"sequence": "RESEARCH"})
        wid = started["workflow_id"]
        orchestrator.subscribe_to_workflow(wid, {"workflow:complete": completed.append})

        await orchestrator.wait_idle(wid)

        types = store.types()
        assert "agent/activated" in types
        assert "agent/completed" in types
        assert "workflow/message" in types
        assert types[-1] == "workflow/completed"
        assert len(completed) == 1
        assert completed[0].type == "workflow_complete"

    @pytest.mark.asyncio
    async def test_unsubscribe_stops_store_actions(self, orchestrator, store):
        started = await orchestrator.start_workflow(PROMPT, {"sequence": "RESEARCH"})
        wid = started["workflow_id"]
        orchestrator.subscribe_to_workflow(wid)
        orchestrator.unsubscribe_from_workflow(wid)

        await orchestrator.wait_idle(wid)

        assert store.types() == ["workflow/started"]


class TestCleanup:
    """정리 테스트"""

    @pytest.mark.asyncio
    async def test_cleanup_evicts_finished_workflows(self, orchestrator):
        finished = await orchestrator.start_workflow(PROMPT, {"sequence": "RESEARCH"})
        await orchestrator.wait_idle(finished["workflow_id"])
        waiting = await orchestrator.start_workflow(PROMPT, {"sequence": "brownfield-fullstack"})
        await orchestrator.wait_idle(waiting["workflow_id"])

        assert await orchestrator.cleanup() == 1

        assert not orchestrator.channel.has_channel(finished["workflow_id"])
        assert orchestrator.channel.has_channel(waiting["workflow_id"])
        status = await orchestrator.get_workflow_status(finished["workflow_id"])
        assert status["status"] == "COMPLETED"
        assert [w["workflow_id"] for w in orchestrator.get_active_workflows()] == [
            waiting["workflow_id"]
        ]
