"""
Persistence 테스트

- Workflow 스냅샷 직렬화
- 체크포인트 관리
- 인메모리 / SQLAlchemy 저장소
"""

import pytest

from bmad_orchestrator.core.agent_result import Artifact
from bmad_orchestrator.core.exceptions import (
    CheckpointNotFoundError,
    InvalidTransitionError,
    WorkflowTerminalError,
)
from bmad_orchestrator.core.sequences import get_static_sequence
from bmad_orchestrator.core.types import WorkflowStatus
from bmad_orchestrator.orchestrator.checkpoints import CheckpointManager
from bmad_orchestrator.orchestrator.workflow import ErrorRecord, Workflow
from bmad_orchestrator.persistence.inmemory import InMemoryWorkflowRepository
from bmad_orchestrator.persistence.sql import SqlWorkflowRepository


def make_workflow(user_id="u-1", sequence="FULL_STACK"):
    return Workflow(
        user_prompt="Build a task tracker with reminders",
        sequence=get_static_sequence(sequence),
        name=sequence,
        metadata={"user_id": user_id, "template": sequence, "workflow_type": "static"},
    )


class TestWorkflowAggregate:
    """Workflow 집합체 테스트"""

    def test_snapshot_round_trip(self):
        workflow = make_workflow()
        workflow.transition_to(WorkflowStatus.RUNNING)
        workflow.context["project-brief"] = "brief"
        workflow.artifacts.append(
            Artifact(name="project-brief", type="document", agent_id="analyst", content="brief", step=0)
        )
        workflow.errors.append(ErrorRecord(step=1, error="boom", type="dynamic_step_error", agent_id="pm"))
        CheckpointManager().create(workflow, "manual")
        workflow.advance()

        restored = Workflow.from_dict(workflow.to_dict())

        assert restored.to_dict() == workflow.to_dict()
        assert restored.status == WorkflowStatus.RUNNING
        assert restored.sequence[4].requires == ["architecture", "front-end-spec"]
        assert restored.checkpoints[0].label == "manual"

    def test_transition_rules(self):
        workflow = make_workflow()

        with pytest.raises(InvalidTransitionError):
            workflow.transition_to(WorkflowStatus.PAUSED)

        workflow.transition_to(WorkflowStatus.RUNNING)
        assert workflow.started_at is not None
        workflow.transition_to(WorkflowStatus.COMPLETED)
        assert workflow.ended_at is not None

        with pytest.raises(WorkflowTerminalError):
            workflow.transition_to(WorkflowStatus.RUNNING)

    def test_advance_stops_at_end(self):
        workflow = make_workflow(sequence="RESEARCH")
        workflow.advance()
        workflow.advance()

        assert workflow.current_step == 1
        assert workflow.current_step_def() is None
        assert workflow.progress == 100.0


class TestCheckpointManager:
    """CheckpointManager 테스트"""

    def test_oldest_checkpoints_trimmed(self):
        manager = CheckpointManager(max_checkpoints=2)
        workflow = make_workflow()
        for label in ("a", "b", "c"):
            manager.create(workflow, label)

        assert [c["label"] for c in manager.list(workflow)] == ["b", "c"]

    def test_restore(self):
        manager = CheckpointManager()
        workflow = make_workflow()
        workflow.context["project-brief"] = "brief"
        checkpoint = manager.create(workflow, "after-brief")

        workflow.context["prd"] = "prd"
        workflow.artifacts.append(Artifact(name="prd", type="document", agent_id="pm", content="prd"))
        workflow.advance()
        workflow.elicitation = {"step": 1}

        manager.restore(workflow, manager.get(workflow, checkpoint.checkpoint_id))

        assert workflow.context == {"project-brief": "brief"}
        assert workflow.current_step == 0
        assert workflow.artifacts == []
        assert workflow.elicitation is None
        assert manager.has_label_at(workflow, "after-brief", 0)

    def test_unknown_checkpoint(self):
        with pytest.raises(CheckpointNotFoundError):
            CheckpointManager().get(make_workflow(), "missing")


class TestInMemoryRepository:
    """InMemoryWorkflowRepository 테스트"""

    @pytest.mark.asyncio
    async def test_snapshots_are_isolated(self):
        repository = InMemoryWorkflowRepository()
        snapshot = make_workflow().to_dict()
        await repository.save_workflow(snapshot)

        snapshot["context"]["leak"] = True
        loaded = await repository.load_workflow(snapshot["id"])
        loaded["context"]["other"] = True

        assert (await repository.load_workflow(snapshot["id"]))["context"] == {}

    @pytest.mark.asyncio
    async def test_list_and_delete(self):
        repository = InMemoryWorkflowRepository()
        first, second = make_workflow("u-1"), make_workflow("u-2")
        await repository.save_workflow(first.to_dict())
        await repository.save_workflow(second.to_dict())

        assert len(await repository.list_workflows()) == 2
        mine = await repository.list_workflows(user_id="u-2")
        assert [s["id"] for s in mine] == [second.id]

        assert await repository.delete_workflow(first.id)
        assert not await repository.delete_workflow(first.id)
        assert await repository.load_workflow(first.id) is None
        assert len(repository) == 1


class TestSqlRepository:
    """SqlWorkflowRepository 테스트 (SQLite in-memory)"""

    @pytest.fixture
    def repository(self):
        repository = SqlWorkflowRepository("sqlite:///:memory:")
        repository.init_db()
        yield repository
        repository.engine.dispose()

    @pytest.mark.asyncio
    async def test_save_load_update(self, repository):
        workflow = make_workflow()
        await repository.save_workflow(workflow.to_dict())

        workflow.transition_to(WorkflowStatus.RUNNING)
        workflow.context["project-brief"] = "brief"
        workflow.advance()
        await repository.save_workflow(workflow.to_dict())

        loaded = await repository.load_workflow(workflow.id)
        assert loaded == workflow.to_dict()
        assert Workflow.from_dict(loaded).current_step == 1
        assert await repository.load_workflow("missing") is None

    @pytest.mark.asyncio
    async def test_list_filter_and_delete(self, repository):
        first, second = make_workflow("u-1"), make_workflow("u-2")
        await repository.save_workflow(first.to_dict())
        await repository.save_workflow(second.to_dict())

        assert len(await repository.list_workflows()) == 2
        assert [s["id"] for s in await repository.list_workflows(user_id="u-1")] == [first.id]
        assert len(await repository.list_workflows(limit=1)) == 1

        assert await repository.delete_workflow(first.id)
        assert not await repository.delete_workflow(first.id)
        assert await repository.list_workflows(user_id="u-1") == []
