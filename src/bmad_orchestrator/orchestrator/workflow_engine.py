"""
WorkflowEngine - 워크플로우 상태 머신

워크플로우 상태를 소유하고 단계 루프를 구동합니다. 일시정지, 재개, 취소,
체크포인트 롤백, 스냅샷 영속화와 재수화를 담당합니다.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set, Tuple, Union
import asyncio
import copy
import logging

import yaml

from ..core.agent_context import StepContext
from ..core.agent_registry import AgentRegistry
from ..core.exceptions import (
    InvalidTransitionError,
    PersistenceError,
    WorkflowNotFoundError,
    WorkflowTerminalError,
    WorkflowValidationError,
)
from ..core.message_channel import Message, MessageChannel
from ..core.sequences import Step, get_static_sequence
from ..core.types import ErrorType, MessageType, WorkflowStatus
from ..executor.agent_executor import AgentExecutor
from ..persistence.repository import WorkflowRepository
from .checkpoints import CheckpointManager
from .elicitation import classify_response
from .workflow import ErrorRecord, Workflow
from .workflow_parser import WorkflowParser

ORCHESTRATOR = "orchestrator"
USER = "user"

# _run_step 결과
APPLIED = "applied"
SKIPPED = "skipped"
STALE = "stale"
STOPPED = "stopped"


@dataclass
class WorkflowConfig:
    """
    워크플로우 시작 옵션

    Attributes:
        sequence: 동적 워크플로우 이름, 정적 시퀀스 이름 또는 단계 dict 목록
        name: 표시 이름
        description: 설명
        user_id: 시작한 사용자
        priority: 우선순위 (low, medium, high)
        tags: 태그
        allow_interview: 프롬프트가 짧으면 인터뷰 프롬프트로 대체
        context: 초기 컨텍스트
    """

    sequence: Union[str, List[Dict[str, Any]], None] = None
    name: Optional[str] = None
    description: str = ""
    user_id: Optional[str] = None
    priority: str = "medium"
    tags: List[str] = field(default_factory=list)
    allow_interview: bool = False
    context: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "WorkflowConfig":
        data = data or {}
        return cls(
            sequence=data.get("sequence"),
            name=data.get("name"),
            description=data.get("description", ""),
            user_id=data.get("user_id"),
            priority=data.get("priority", "medium"),
            tags=list(data.get("tags") or []),
            allow_interview=bool(data.get("allow_interview", False)),
            context=dict(data.get("context") or {}),
        )


def lookup(context: Dict[str, Any], path: str) -> Any:
    """점 표기 경로로 context 값 조회 ("routing_decisions.scope")"""
    value: Any = context
    for part in path.split("."):
        if not isinstance(value, dict) or part not in value:
            return None
        value = value[part]
    return value


def evaluate_condition(condition: str, context: Dict[str, Any]) -> bool:
    """
    단계 조건 평가

    지원 형식:
        ``${key}`` 또는 ``key``: 값이 존재하고 비어 있지 않음
        ``key == value`` / ``key != value``: 문자열 비교
    """
    expression = condition.strip()
    for operator in ("!=", "=="):
        if operator in expression:
            left, right = (part.strip() for part in expression.split(operator, 1))
            actual = lookup(context, left.strip("${}"))
            expected = right.strip("'\"")
            matched = actual is not None and str(actual) == expected
            return matched if operator == "==" else not matched

    if expression.startswith("${") and expression.endswith("}"):
        expression = expression[2:-1]
    value = lookup(context, expression)
    return value is not None and (
        not isinstance(value, (list, dict, str)) or len(value) > 0
    )


class WorkflowEngine:
    """
    워크플로우 상태 머신

    상태 전이:
        INITIALIZING -> RUNNING <-> PAUSED / PAUSED_FOR_ELICITATION
        RUNNING -> COMPLETED | ERROR, 비종료 상태 -> CANCELLED

    실행 모델:
        start_workflow는 즉시 반환하고 단계 루프는 asyncio 태스크로 실행됩니다.
        한 워크플로우에서는 한 번에 한 단계만 실행되며, 일시정지/취소/롤백은
        epoch를 올려 실행 중이던 단계의 결과를 버리게 합니다.

    사용법:
        engine = WorkflowEngine(registry, channel, executor, repository, parser)
        started = await engine.start_workflow(
            "Build a todo app with auth", WorkflowConfig(sequence="FULL_STACK")
        )
        await engine.wait_idle(started["workflow_id"])
    """

    def __init__(
        self,
        registry: AgentRegistry,
        channel: MessageChannel,
        executor: AgentExecutor,
        repository: WorkflowRepository,
        parser: WorkflowParser,
        default_sequence: str = "greenfield-fullstack",
        min_prompt_length: int = 10,
        max_prompt_length: int = 5000,
        interview_prompt: str = "",
        auto_advance: bool = True,
        checkpoint_enabled: bool = True,
        max_checkpoints: int = 10,
    ):
        self.registry = registry
        self.channel = channel
        self.executor = executor
        self.repository = repository
        self.parser = parser
        self.default_sequence = default_sequence
        self.min_prompt_length = min_prompt_length
        self.max_prompt_length = max_prompt_length
        self.interview_prompt = interview_prompt
        self.auto_advance = auto_advance
        self.checkpoint_enabled = checkpoint_enabled
        self.checkpoints = CheckpointManager(max_checkpoints)
        self.logger = logging.getLogger("orchestrator.engine")

        # 활성 워크플로우 테이블
        self._active: Dict[str, Workflow] = {}
        self._in_flight: Set[str] = set()
        self._epochs: Dict[str, int] = {}
        self._tasks: Dict[str, asyncio.Task] = {}
        self._wake: Set[str] = set()

    # ─────────────────────────────────────────────────────────────────
    # 시작
    # ─────────────────────────────────────────────────────────────────

    async def start_workflow(
        self,
        user_prompt: str,
        config: Union[WorkflowConfig, Dict[str, Any], None] = None,
    ) -> Dict[str, Any]:
        """
        워크플로우 시작

        프롬프트와 시퀀스를 검증하고 INITIALIZING으로 만든 뒤 RUNNING으로
        전이하고 단계 루프를 예약합니다. 단계 실행을 기다리지 않습니다.

        Args:
            user_prompt: 사용자 요청
            config: WorkflowConfig 또는 dict

        Returns:
            {"workflow_id", "status", ...}

        Raises:
            WorkflowValidationError: 프롬프트/시퀀스/에이전트 검증 실패
            PersistenceError: 스냅샷 저장 실패 (워크플로우는 등록되지 않음)
        """
        if not isinstance(config, WorkflowConfig):
            config = WorkflowConfig.from_dict(config)

        prompt, interview = self._validate_prompt(user_prompt, config)
        steps, workflow_type, template, definition_name = self._resolve_sequence(config)

        validation = self.registry.validate_sequence(steps)
        if not validation.valid:
            raise WorkflowValidationError(
                f"Invalid workflow sequence: {'; '.join(validation.errors)}",
                validation.errors,
            )
        for warning in validation.warnings:
            self.logger.warning(f"Sequence warning: {warning}")

        workflow = Workflow(
            user_prompt=prompt,
            sequence=steps,
            name=config.name or definition_name,
            description=config.description,
            context=copy.deepcopy(config.context),
            metadata={
                "user_id": config.user_id,
                "priority": config.priority,
                "tags": list(config.tags),
                "workflow_type": workflow_type,
                "template": template,
                "interview": interview,
                "validation_warnings": validation.warnings,
            },
        )
        wid = workflow.id

        self._active[wid] = workflow
        try:
            await self._save(workflow)
            if self.checkpoint_enabled:
                self.checkpoints.create(workflow, "workflow_initialized", "Initial state")
            workflow.transition_to(WorkflowStatus.RUNNING)
            await self._save(workflow)
        except PersistenceError:
            self._active.pop(wid, None)
            raise

        self.logger.info(
            f"Started workflow {wid} ({workflow.name}, {workflow.total_steps} steps)"
        )
        await self._publish(
            wid,
            ORCHESTRATOR,
            "all",
            MessageType.SYSTEM,
            {
                "message": f"Workflow '{workflow.name}' started",
                "total_steps": workflow.total_steps,
                "user_prompt": prompt,
            },
        )
        self._schedule(wid)
        return workflow.summary()

    def _validate_prompt(self, user_prompt: str, config: WorkflowConfig) -> Tuple[str, bool]:
        prompt = (user_prompt or "").strip()
        if len(prompt) < self.min_prompt_length:
            if not config.allow_interview:
                raise WorkflowValidationError(
                    f"Prompt must be at least {self.min_prompt_length} characters"
                )
            self.logger.info("Short prompt - agents will interview the user")
            return self.interview_prompt, True
        if len(prompt) > self.max_prompt_length:
            raise WorkflowValidationError(
                f"Prompt must be at most {self.max_prompt_length} characters"
            )
        return prompt, False

    def _resolve_sequence(
        self, config: WorkflowConfig
    ) -> Tuple[List[Step], str, Optional[str], str]:
        """
        시퀀스 해석

        Returns:
            (steps, workflow_type, template, 표시 이름)
        """
        sequence = config.sequence or self.default_sequence

        if isinstance(sequence, list):
            try:
                steps = [Step.from_dict(item) for item in sequence]
            except (ValueError, TypeError, AttributeError) as e:
                raise WorkflowValidationError(f"Invalid custom sequence: {e}") from e
            return steps, "custom", None, "custom"

        if self.parser.exists(sequence):
            try:
                definition = self.parser.load(sequence)
            except (ValueError, KeyError, yaml.YAMLError) as e:
                raise WorkflowValidationError(f"Invalid workflow definition '{sequence}': {e}") from e
            errors = self.parser.validate(definition)
            if errors:
                raise WorkflowValidationError(
                    f"Invalid workflow definition '{sequence}': {'; '.join(errors)}", errors
                )
            return definition.steps, "dynamic", sequence, definition.name

        steps = get_static_sequence(sequence)
        if steps is None:
            raise WorkflowValidationError(f"Unknown workflow sequence: {sequence}")
        return steps, "static", sequence, sequence

    # ─────────────────────────────────────────────────────────────────
    # 단계 루프
    # ─────────────────────────────────────────────────────────────────

    def _schedule(self, workflow_id: str) -> None:
        """단계 루프 태스크 예약 (이미 돌고 있으면 깨우기만)"""
        task = self._tasks.get(workflow_id)
        if workflow_id in self._in_flight or (task is not None and not task.done()):
            self._wake.add(workflow_id)
            return

        task = asyncio.create_task(self._run_loop(workflow_id))
        self._tasks[workflow_id] = task

        def _done(finished: asyncio.Task) -> None:
            if self._tasks.get(workflow_id) is finished:
                self._tasks.pop(workflow_id, None)

        task.add_done_callback(_done)

    async def _run_loop(self, workflow_id: str) -> None:
        """백그라운드 단계 루프 (호출자가 없으므로 예외를 기록으로 남김)"""
        try:
            await self.execute_next_step(workflow_id)
        except asyncio.CancelledError:
            raise
        except PersistenceError as e:
            self.logger.error(f"[{workflow_id}] Persistence failure in step loop: {e}")
            self._record_fatal(workflow_id, str(e), ErrorType.PERSISTENCE)
        except Exception as e:
            self.logger.error(f"[{workflow_id}] Step loop crashed: {e}", exc_info=True)
            self._record_fatal(workflow_id, str(e), ErrorType.ENGINE)

    def _record_fatal(self, workflow_id: str, error: str, error_type: ErrorType) -> None:
        workflow = self._active.get(workflow_id)
        if workflow is None or workflow.is_terminal:
            return
        workflow.errors.append(
            ErrorRecord(step=workflow.current_step, error=error, type=error_type.value)
        )
        if workflow.status.can_transition_to(WorkflowStatus.ERROR):
            workflow.transition_to(WorkflowStatus.ERROR)

    async def execute_next_step(self, workflow_id: str) -> Optional[Dict[str, Any]]:
        """
        현재 단계 실행

        같은 워크플로우의 단계가 이미 실행 중이면 아무것도 하지 않습니다.
        RUNNING이 아니면(취소, 일시정지 등) 아무것도 하지 않습니다.
        auto_advance가 켜져 있으면 워크플로우가 멈출 때까지 계속 진행합니다.

        Returns:
            실행 후 요약, 실행하지 않았으면 None

        Raises:
            WorkflowNotFoundError: 알 수 없는 워크플로우
            PersistenceError: 스냅샷 저장 실패
        """
        if workflow_id in self._in_flight:
            self.logger.debug(f"[{workflow_id}] Step already in flight - ignoring")
            return None

        workflow = await self._load(workflow_id)
        if workflow.status != WorkflowStatus.RUNNING or workflow_id in self._in_flight:
            return None

        self._in_flight.add(workflow_id)
        try:
            while True:
                outcome = await self._run_step(workflow)
                woken = workflow_id in self._wake
                self._wake.discard(workflow_id)
                if workflow.status != WorkflowStatus.RUNNING:
                    break
                if outcome == STALE or woken:
                    continue
                if outcome in (APPLIED, SKIPPED) and self.auto_advance:
                    continue
                break
        finally:
            self._in_flight.discard(workflow_id)
        return workflow.summary()

    async def _run_step(self, workflow: Workflow) -> str:
        """현재 단계 하나 실행 후 결과 적용"""
        wid = workflow.id
        index = workflow.current_step
        step = workflow.current_step_def()
        if step is None:
            await self._complete(workflow)
            return STOPPED

        if step.condition and not evaluate_condition(step.condition, workflow.context):
            self.logger.info(f"[{wid}] Skipping step {index} ({step.name}): condition not met")
            await self._publish(
                wid, ORCHESTRATOR, "all", MessageType.SYSTEM,
                {"message": f"Skipped step {step.name}", "step": index, "condition": step.condition},
            )
            return await self._advance(workflow, step, SKIPPED)

        agent = self.registry.get_safe(step.agent_id)
        if agent is None:
            await self._fail_step(workflow, index, step.agent_id, f"Agent not found: {step.agent_id}")
            return STOPPED

        if step.checkpoint and self.checkpoint_enabled:
            label = f"before_{step.name}"
            if not self.checkpoints.has_label_at(workflow, label, index):
                self.checkpoints.create(workflow, label, f"Before step {index}")

        workflow.current_agent = agent.id
        await self._publish(
            wid, ORCHESTRATOR, agent.id, MessageType.ACTIVATION,
            {"action": step.effective_command, "step": index, "step_name": step.name},
        )

        step_context = self._build_step_context(workflow, step, index)
        epoch = self._epochs.get(wid, 0)
        result = await self.executor.execute(agent, step_context)

        if (
            workflow.status != WorkflowStatus.RUNNING
            or self._epochs.get(wid, 0) != epoch
            or workflow.current_step != index
        ):
            self.logger.info(
                f"[{wid}] Discarding result of step {index} (status={workflow.status.value})"
            )
            return STALE

        if result.elicitation_required:
            await self._pause_for_elicitation(workflow, index, agent.id, result.elicitation)
            return STOPPED

        if not result.success:
            await self._fail_step(workflow, index, agent.id, result.error or "Unknown error")
            return STOPPED

        for artifact in result.artifacts:
            artifact.step = index
            workflow.artifacts.append(artifact)
        output = result.content
        if output is None and result.artifacts:
            output = result.artifacts[0].content
        for key in step.creates:
            workflow.context[key] = output

        await self._publish(
            wid, agent.id, ORCHESTRATOR, MessageType.COMPLETION,
            {
                "step": index,
                "step_name": step.name,
                "artifacts": [a.name for a in result.artifacts],
                "summary": f"{agent.id} completed {step.name}",
            },
        )
        next_step = workflow.sequence[index + 1] if index + 1 < workflow.total_steps else None
        if next_step is not None:
            await self.channel.send_inter_agent(
                wid, agent.id, next_step.agent_id,
                {"summary": f"Handoff: {', '.join(step.creates) or step.name}", "step": index},
            )
        return await self._advance(workflow, step, APPLIED)

    async def _advance(self, workflow: Workflow, step: Step, outcome: str) -> str:
        workflow.advance()
        if workflow.current_step >= workflow.total_steps:
            await self._complete(workflow)
            return STOPPED
        await self._save(workflow)
        return outcome

    def _build_step_context(self, workflow: Workflow, step: Step, index: int) -> StepContext:
        missing = [key for key in step.requires if key not in workflow.context]
        if missing:
            self.logger.warning(
                f"[{workflow.id}] Step {index} ({step.name}) missing inputs: {missing}"
            )
        response = (workflow.context.get("elicitation_responses") or {}).get(str(index))
        return StepContext(
            workflow_id=workflow.id,
            step_index=index,
            step=step,
            user_prompt=workflow.user_prompt,
            context=copy.deepcopy(workflow.context),
            artifacts=list(workflow.artifacts),
            elicitation_response=response["response"] if response else None,
            classification=response.get("classification") if response else None,
            missing_inputs=missing,
        )

    async def _complete(self, workflow: Workflow) -> None:
        workflow.transition_to(WorkflowStatus.COMPLETED)
        workflow.current_agent = None
        self.logger.info(f"[{workflow.id}] Workflow completed ({len(workflow.artifacts)} artifacts)")
        await self._publish(
            workflow.id, ORCHESTRATOR, USER, MessageType.WORKFLOW_COMPLETE,
            {
                "message": f"Workflow '{workflow.name}' completed",
                "artifacts": [a.name for a in workflow.artifacts],
            },
        )
        await self._save(workflow)

    async def _fail_step(self, workflow: Workflow, index: int, agent_id: str, error: str) -> None:
        workflow.errors.append(
            ErrorRecord(step=index, error=error, type=ErrorType.STEP.value, agent_id=agent_id)
        )
        workflow.transition_to(WorkflowStatus.ERROR)
        self.logger.error(f"[{workflow.id}] Step {index} failed: {error}")
        await self._publish(
            workflow.id, agent_id, ORCHESTRATOR, MessageType.ERROR,
            {"message": error, "step": index},
        )
        await self._save(workflow)

    async def _pause_for_elicitation(
        self, workflow: Workflow, index: int, agent_id: str, details: Dict[str, Any]
    ) -> None:
        workflow.elicitation = {**details, "step": index, "agent_id": agent_id}
        workflow.transition_to(WorkflowStatus.PAUSED_FOR_ELICITATION)
        await self._publish(
            workflow.id, agent_id, USER, MessageType.ELICITATION_REQUEST, workflow.elicitation
        )
        await self._save(workflow)

    # ─────────────────────────────────────────────────────────────────
    # 사용자 입력 / 일시정지 / 취소
    # ─────────────────────────────────────────────────────────────────

    async def resume_workflow_with_elicitation(
        self,
        workflow_id: str,
        response: Union[str, Dict[str, Any]],
        agent_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        사용자 응답으로 재개

        PAUSED_FOR_ELICITATION에서만 가능합니다. 응답을 context에 기록하고
        같은 단계를 다시 실행합니다 (다음 단계가 아님).

        Args:
            workflow_id: 워크플로우 ID
            response: 응답 문자열 또는 {"response": ...}
            agent_id: 응답을 받을 에이전트 (없으면 현재 단계 에이전트)
            user_id: 응답한 사용자

        Raises:
            WorkflowNotFoundError: 알 수 없는 워크플로우
            InvalidTransitionError: PAUSED_FOR_ELICITATION이 아님
        """
        workflow = await self._load(workflow_id)
        self._require(workflow, WorkflowStatus.PAUSED_FOR_ELICITATION, "resume with elicitation")

        text = response.get("response") if isinstance(response, dict) else response
        text = str(text or "").strip()
        if not text:
            raise WorkflowValidationError("Elicitation response must not be empty")

        index = workflow.current_step
        step = workflow.sequence[index]
        classification = (
            classify_response(text, step.classification_options)
            if step.classification_options
            else None
        )

        responses = workflow.context.setdefault("elicitation_responses", {})
        responses[str(index)] = {
            "response": text,
            "agent_id": agent_id or step.agent_id,
            "user_id": user_id,
            "classification": classification,
        }
        if classification:
            workflow.context.setdefault("routing_decisions", {})[step.name] = classification
            self.logger.info(f"[{workflow_id}] Classified response for {step.name}: {classification}")

        workflow.elicitation = None
        await self._publish(
            workflow_id, user_id or USER, agent_id or step.agent_id,
            MessageType.ELICITATION_RESPONSE,
            {"response": text, "step": index, "classification": classification},
        )
        workflow.transition_to(WorkflowStatus.RUNNING)
        await self._save(workflow)
        self._schedule(workflow_id)
        return workflow.summary()

    async def pause_workflow(self, workflow_id: str) -> Dict[str, Any]:
        """
        수동 일시정지 (RUNNING에서만)

        실행 중이던 단계의 결과는 버려지고, 재개 시 같은 단계를 다시 실행합니다.
        """
        workflow = await self._load(workflow_id)
        self._require(workflow, WorkflowStatus.RUNNING, "pause")
        workflow.transition_to(WorkflowStatus.PAUSED)
        self._bump_epoch(workflow_id)
        await self._publish(
            workflow_id, ORCHESTRATOR, "all", MessageType.SYSTEM,
            {"message": "Workflow paused", "step": workflow.current_step},
        )
        await self._save(workflow)
        return workflow.summary()

    async def resume_workflow(self, workflow_id: str) -> Dict[str, Any]:
        """수동 재개 (PAUSED에서만)"""
        workflow = await self._load(workflow_id)
        self._require(workflow, WorkflowStatus.PAUSED, "resume")
        workflow.metadata.pop("rolled_back_to", None)
        workflow.transition_to(WorkflowStatus.RUNNING)
        await self._publish(
            workflow_id, ORCHESTRATOR, "all", MessageType.SYSTEM,
            {"message": "Workflow resumed", "step": workflow.current_step},
        )
        await self._save(workflow)
        self._schedule(workflow_id)
        return workflow.summary()

    async def cancel_workflow(self, workflow_id: str) -> Dict[str, Any]:
        """
        취소 (비종료 상태에서)

        실행 중인 executor 호출을 강제로 중단하지 않습니다. 루프가 결과를
        적용하기 전에 상태를 확인하고 버립니다.
        """
        workflow = await self._load(workflow_id)
        if workflow.is_terminal:
            raise WorkflowTerminalError(workflow_id, workflow.status.value, "cancel")
        workflow.transition_to(WorkflowStatus.CANCELLED)
        workflow.elicitation = None
        self._bump_epoch(workflow_id)
        self.logger.info(f"[{workflow_id}] Workflow cancelled at step {workflow.current_step}")
        await self._publish(
            workflow_id, ORCHESTRATOR, "all", MessageType.SYSTEM,
            {"message": "Workflow cancelled", "step": workflow.current_step},
        )
        await self._save(workflow)
        return workflow.summary()

    # ─────────────────────────────────────────────────────────────────
    # 체크포인트 / 롤백
    # ─────────────────────────────────────────────────────────────────

    async def create_checkpoint(
        self, workflow_id: str, label: str, description: str = ""
    ) -> Dict[str, Any]:
        """요청 시 체크포인트 생성"""
        workflow = await self._load(workflow_id)
        if workflow.is_terminal:
            raise WorkflowTerminalError(workflow_id, workflow.status.value, "create checkpoint")
        checkpoint = self.checkpoints.create(workflow, label, description)
        await self._save(workflow)
        return checkpoint.summary()

    async def get_workflow_checkpoints(self, workflow_id: str) -> Optional[List[Dict[str, Any]]]:
        """체크포인트 요약 목록 (없는 워크플로우는 None)"""
        workflow = await self._peek(workflow_id)
        if workflow is None:
            return None
        return self.checkpoints.list(workflow)

    async def rollback_to_checkpoint(self, workflow_id: str, checkpoint_id: str) -> Dict[str, Any]:
        """
        체크포인트로 롤백

        context, current_step, sequence를 복원하고 이후 산출물을 버린 뒤
        PAUSED로 둡니다. resume_from_rollback으로 이어서 실행합니다.

        Raises:
            WorkflowNotFoundError: 알 수 없는 워크플로우
            WorkflowTerminalError: 종료된 워크플로우
            CheckpointNotFoundError: 없는 체크포인트 (상태 변경 없음)
            InvalidTransitionError: PAUSED로 갈 수 없는 상태 (상태 변경 없음)
        """
        workflow = await self._load(workflow_id)
        if workflow.is_terminal:
            raise WorkflowTerminalError(workflow_id, workflow.status.value, "roll back")
        checkpoint = self.checkpoints.get(workflow, checkpoint_id)
        needs_pause = workflow.status != WorkflowStatus.PAUSED
        if needs_pause and not workflow.status.can_transition_to(WorkflowStatus.PAUSED):
            raise InvalidTransitionError(workflow_id, workflow.status.value, "roll back")

        self.checkpoints.restore(workflow, checkpoint)
        self._bump_epoch(workflow_id)
        if needs_pause:
            workflow.transition_to(WorkflowStatus.PAUSED)
        workflow.metadata["rolled_back_to"] = checkpoint_id
        await self._publish(
            workflow_id, ORCHESTRATOR, "all", MessageType.SYSTEM,
            {
                "message": f"Rolled back to checkpoint '{checkpoint.label}'",
                "checkpoint_id": checkpoint_id,
                "step": workflow.current_step,
            },
        )
        await self._save(workflow)
        return workflow.summary()

    async def resume_from_rollback(self, workflow_id: str) -> Dict[str, Any]:
        """
        롤백 후 재개

        Raises:
            InvalidTransitionError: 롤백된 상태가 아님
        """
        workflow = await self._load(workflow_id)
        if "rolled_back_to" not in workflow.metadata:
            raise InvalidTransitionError(workflow_id, workflow.status.value, "resume from rollback")
        return await self.resume_workflow(workflow_id)

    # ─────────────────────────────────────────────────────────────────
    # 조회
    # ─────────────────────────────────────────────────────────────────

    async def get_workflow_status(self, workflow_id: str) -> Optional[Dict[str, Any]]:
        """
        워크플로우 전체 상태

        메모리에 없으면 저장소 스냅샷에서 재수화하지만 활성 테이블에는
        넣지 않으며 단계 실행도 예약하지 않습니다.

        Returns:
            스냅샷 dict 또는 None (없는 워크플로우)
        """
        workflow = await self._peek(workflow_id)
        if workflow is None:
            return None
        status = workflow.to_dict()
        status["progress"] = workflow.progress
        status["in_flight"] = workflow_id in self._in_flight
        return status

    async def get_workflow(self, workflow_id: str) -> Optional[Workflow]:
        return await self._peek(workflow_id)

    def get_active_workflows(self) -> List[Dict[str, Any]]:
        """메모리에 있는 비종료 워크플로우 요약"""
        return [wf.summary() for wf in self._active.values() if not wf.is_terminal]

    def resident_workflows(self) -> List[Workflow]:
        return list(self._active.values())

    async def get_execution_history(
        self, limit: int = 50, user_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """저장된 워크플로우 요약 (최신순)"""
        snapshots = await self.repository.list_workflows(limit=limit, user_id=user_id)
        history = []
        for snapshot in snapshots:
            resident = self._active.get(snapshot["id"])
            workflow = resident or Workflow.from_dict(snapshot)
            history.append(workflow.summary())
        return history

    async def get_workflow_artifacts(self, workflow_id: str) -> Optional[List[Dict[str, Any]]]:
        """산출물 목록 (없는 워크플로우는 None)"""
        workflow = await self._peek(workflow_id)
        if workflow is None:
            return None
        return [a.to_dict() for a in workflow.artifacts]

    def is_in_flight(self, workflow_id: str) -> bool:
        return workflow_id in self._in_flight

    # ─────────────────────────────────────────────────────────────────
    # 수명 주기
    # ─────────────────────────────────────────────────────────────────

    async def wait_idle(self, workflow_id: str, timeout: Optional[float] = None) -> None:
        """워크플로우의 백그라운드 루프가 끝날 때까지 대기"""

        async def _wait() -> None:
            while True:
                task = self._tasks.get(workflow_id)
                if task is None or task.done():
                    if task is not None:
                        self._tasks.pop(workflow_id, None)
                    return
                await asyncio.shield(task)

        await asyncio.wait_for(_wait(), timeout=timeout)

    def evict(self, workflow_id: str) -> bool:
        """종료된 워크플로우를 활성 테이블에서 제거"""
        workflow = self._active.get(workflow_id)
        if workflow is None or not workflow.is_terminal or workflow_id in self._in_flight:
            return False
        del self._active[workflow_id]
        self._epochs.pop(workflow_id, None)
        self._wake.discard(workflow_id)
        return True

    async def shutdown(self) -> None:
        """예약된 루프 모두 취소"""
        tasks = [t for t in self._tasks.values() if not t.done()]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._tasks.clear()

    # ─────────────────────────────────────────────────────────────────
    # 내부 헬퍼
    # ─────────────────────────────────────────────────────────────────

    def _require(self, workflow: Workflow, expected: WorkflowStatus, operation: str) -> None:
        if workflow.is_terminal:
            raise WorkflowTerminalError(workflow.id, workflow.status.value, operation)
        if workflow.status != expected:
            raise InvalidTransitionError(workflow.id, workflow.status.value, operation)

    def _bump_epoch(self, workflow_id: str) -> None:
        self._epochs[workflow_id] = self._epochs.get(workflow_id, 0) + 1

    async def _load(self, workflow_id: str) -> Workflow:
        """
        변경 작업용 조회 (재수화하면 활성 테이블에 등록)

        스냅샷을 기다리는 동안 다른 작업이 먼저 등록했으면 그 인스턴스를
        돌려줍니다. 같은 워크플로우의 인스턴스는 항상 하나입니다.
        """
        workflow = self._active.get(workflow_id)
        if workflow is not None:
            return workflow
        snapshot = await self._load_snapshot(workflow_id)
        workflow = self._active.get(workflow_id)
        if workflow is not None:
            return workflow
        if snapshot is None:
            raise WorkflowNotFoundError(workflow_id)
        workflow = self._rehydrate(snapshot)
        self._active[workflow_id] = workflow
        return workflow

    async def _peek(self, workflow_id: str) -> Optional[Workflow]:
        """읽기 전용 조회 (활성 테이블을 건드리지 않음)"""
        workflow = self._active.get(workflow_id)
        if workflow is not None:
            return workflow
        snapshot = await self._load_snapshot(workflow_id)
        return self._rehydrate(snapshot) if snapshot is not None else None

    async def _load_snapshot(self, workflow_id: str) -> Optional[Dict[str, Any]]:
        try:
            return await self.repository.load_workflow(workflow_id)
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError("Failed to load workflow snapshot", workflow_id, e) from e

    def _rehydrate(self, snapshot: Dict[str, Any]) -> Workflow:
        """
        스냅샷에서 워크플로우 복원

        동적 워크플로우는 정의 파일을 다시 파싱합니다. 정의가 없어졌거나
        단계 수가 달라졌으면 저장된 시퀀스를 사용합니다.
        """
        workflow = Workflow.from_dict(snapshot)
        template = workflow.metadata.get("template")
        if workflow.metadata.get("workflow_type") == "dynamic" and template:
            if self.parser.exists(template):
                try:
                    steps = self.parser.load(template).steps
                except (ValueError, KeyError, yaml.YAMLError) as e:
                    self.logger.warning(f"[{workflow.id}] Cannot re-parse '{template}': {e}")
                else:
                    if len(steps) == workflow.total_steps:
                        workflow.sequence = steps
                    else:
                        self.logger.warning(
                            f"[{workflow.id}] Definition '{template}' changed shape; "
                            f"keeping stored sequence"
                        )
        self.logger.debug(f"Rehydrated workflow {workflow.id} ({workflow.status.value})")
        return workflow

    async def _save(self, workflow: Workflow) -> None:
        try:
            await self.repository.save_workflow(workflow.to_dict())
        except PersistenceError:
            raise
        except Exception as e:
            raise PersistenceError("Failed to save workflow snapshot", workflow.id, e) from e

    async def _publish(
        self,
        workflow_id: str,
        sender: str,
        recipient: str,
        message_type: MessageType,
        content: Any,
    ) -> Message:
        return await self.channel.publish(
            workflow_id,
            Message(sender=sender, recipient=recipient, type=message_type.value, content=content),
        )

    def __repr__(self) -> str:
        return (
            f"WorkflowEngine(active={len(self._active)}, in_flight={len(self._in_flight)})"
        )
