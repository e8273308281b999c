"""
Orchestrator - 외부 진입점

레지스트리, 메시지 채널, 실행기, 엔진을 묶어 하나의 표면으로 제공하고
채널 이벤트를 상태 저장소와 브로드캐스터로 전달합니다.
"""

from typing import Any, Callable, Dict, List, Optional, Union
import asyncio
import logging

from ..broadcast.broadcaster import Broadcaster, StoreDispatcher
from ..config import Settings, get_settings
from ..core.agent_registry import AgentRegistry
from ..core.exceptions import OrchestratorNotInitializedError
from ..core.message_channel import Message, MessageChannel
from ..core.sequences import list_static_sequences
from ..core.types import AgentChannelStatus, MessageType
from ..executor.agent_executor import AgentExecutor
from ..persistence.inmemory import InMemoryWorkflowRepository
from ..persistence.repository import WorkflowRepository
from .workflow_engine import WorkflowConfig, WorkflowEngine
from .workflow_parser import WorkflowParser

# 채널 이벤트 -> 저장소 액션
STORE_ACTIONS: Dict[str, str] = {
    "message": "workflow/message",
    "agent:activated": "agent/activated",
    "agent:completed": "agent/completed",
    "agent:communication": "agent/communication",
    "workflow:error": "workflow/error",
    "elicitation:request": "workflow/elicitation",
    "workflow:complete": "workflow/completed",
}

# 메시지 타입 -> 브로드캐스트 이벤트
BROADCAST_EVENTS: Dict[str, str] = {
    MessageType.ACTIVATION.value: "agent-activated",
    MessageType.COMPLETION.value: "agent-completed",
}


class Orchestrator:
    """
    오케스트레이터 파사드

    모든 공개 연산은 initialize() 이후에만 사용할 수 있습니다.

    Args:
        settings: 설정 (없으면 환경 변수에서 로드)
        registry: 에이전트 레지스트리
        channel: 메시지 채널
        executor: 에이전트 실행기
        repository: 워크플로우 스냅샷 저장소
        parser: 동적 워크플로우 파서
        broadcaster: 실시간 이벤트 전송 (선택)
        store: 상태 저장소 디스패처 (선택)

    Example:
        orchestrator = Orchestrator()
        await orchestrator.initialize()

        started = await orchestrator.start_workflow(
            "Build a task tracker with user accounts",
            {"sequence": "greenfield-fullstack", "user_id": "u-1"},
        )
        status = await orchestrator.get_workflow_status(started["workflow_id"])
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        registry: Optional[AgentRegistry] = None,
        channel: Optional[MessageChannel] = None,
        executor: Optional[AgentExecutor] = None,
        repository: Optional[WorkflowRepository] = None,
        parser: Optional[WorkflowParser] = None,
        broadcaster: Optional[Broadcaster] = None,
        store: Optional[StoreDispatcher] = None,
    ):
        self.settings = settings or get_settings()
        self.registry = registry or AgentRegistry(self.settings.agents_file)
        self.channel = channel or MessageChannel(self.settings.max_message_history)
        self.executor = executor or AgentExecutor.from_settings(self.settings)
        self.repository = repository or InMemoryWorkflowRepository()
        self.parser = parser or WorkflowParser(self.settings.workflows_dir)
        self.broadcaster = broadcaster
        self.store = store
        self.logger = logging.getLogger("orchestrator")

        self.engine = WorkflowEngine(
            registry=self.registry,
            channel=self.channel,
            executor=self.executor,
            repository=self.repository,
            parser=self.parser,
            default_sequence=self.settings.default_sequence,
            min_prompt_length=self.settings.min_prompt_length,
            max_prompt_length=self.settings.max_prompt_length,
            interview_prompt=self.settings.interview_prompt,
            auto_advance=self.settings.auto_advance,
            checkpoint_enabled=self.settings.checkpoint_enabled,
            max_checkpoints=self.settings.max_checkpoints,
        )

        self.initialized = False
        self._unsubscribe_forwarder: Optional[Callable[[], None]] = None
        self._subscriptions: Dict[str, List[Callable[[], None]]] = {}

        # 브로드캐스트는 큐를 거쳐 단일 작업자가 순서대로 전송
        self._broadcast_queue: Optional[asyncio.Queue] = None
        self._broadcast_task: Optional[asyncio.Task] = None

        # 메트릭
        self._metrics: Dict[str, int] = {
            "workflows_started": 0,
            "workflows_cancelled": 0,
            "elicitations_answered": 0,
            "rollbacks": 0,
        }

    # ─────────────────────────────────────────────────────────────────
    # 수명 주기
    # ─────────────────────────────────────────────────────────────────

    async def initialize(self) -> None:
        """
        에이전트 정의 로드 및 브로드캐스트 연결

        Raises:
            AgentDefinitionError: 정의 파일 오류 (오케스트레이터는 미초기화 상태 유지)
        """
        if self.initialized:
            return
        try:
            loaded = self.registry.load_all()
        except Exception:
            self.registry.clear()
            self.logger.error("Orchestrator initialization failed", exc_info=True)
            raise

        self._broadcast_queue = asyncio.Queue(maxsize=self.settings.broadcast_queue_size)
        self._broadcast_task = asyncio.create_task(self._broadcast_worker())
        self._unsubscribe_forwarder = self.channel.subscribe_all(self._forward)
        self.initialized = True
        self.logger.info(f"Orchestrator initialized with {len(loaded)} agents: {loaded}")

    async def shutdown(self) -> None:
        """백그라운드 루프 정리 및 구독 해제"""
        await self.engine.shutdown()
        if self._unsubscribe_forwarder is not None:
            self._unsubscribe_forwarder()
            self._unsubscribe_forwarder = None
        for workflow_id in list(self._subscriptions):
            self.unsubscribe_from_workflow(workflow_id)
        if self._broadcast_task is not None:
            self._broadcast_task.cancel()
            await asyncio.gather(self._broadcast_task, return_exceptions=True)
            self._broadcast_task = None
            self._broadcast_queue = None
        self.initialized = False
        self.logger.info("Orchestrator shut down")

    def _ensure_initialized(self) -> None:
        if not self.initialized:
            raise OrchestratorNotInitializedError()

    # ─────────────────────────────────────────────────────────────────
    # 워크플로우 연산
    # ─────────────────────────────────────────────────────────────────

    async def start_workflow(
        self,
        user_prompt: str,
        config: Union[WorkflowConfig, Dict[str, Any], None] = None,
    ) -> Dict[str, Any]:
        """
        워크플로우 시작

        Args:
            user_prompt: 사용자 요청
            config: sequence, name, user_id, priority, tags, allow_interview 등

        Returns:
            {"workflow_id", "status", ...}

        Raises:
            OrchestratorNotInitializedError: initialize() 전 호출
            WorkflowValidationError: 프롬프트/시퀀스 검증 실패
        """
        self._ensure_initialized()
        started = await self.engine.start_workflow(user_prompt, config)
        self._metrics["workflows_started"] += 1
        await self._dispatch("workflow/started", started)
        return started

    async def execute_next_step(self, workflow_id: str) -> Optional[Dict[str, Any]]:
        self._ensure_initialized()
        return await self.engine.execute_next_step(workflow_id)

    async def resume_workflow_with_elicitation(
        self,
        workflow_id: str,
        response: Union[str, Dict[str, Any]],
        agent_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Dict[str, Any]:
        """사용자 응답 전달 후 같은 단계 재실행"""
        self._ensure_initialized()
        result = await self.engine.resume_workflow_with_elicitation(
            workflow_id, response, agent_id=agent_id, user_id=user_id
        )
        self._metrics["elicitations_answered"] += 1
        await self._dispatch("workflow/elicitation-answered", result)
        return result

    async def pause_workflow(self, workflow_id: str) -> Dict[str, Any]:
        self._ensure_initialized()
        result = await self.engine.pause_workflow(workflow_id)
        await self._dispatch("workflow/paused", result)
        return result

    async def resume_workflow(self, workflow_id: str) -> Dict[str, Any]:
        self._ensure_initialized()
        result = await self.engine.resume_workflow(workflow_id)
        await self._dispatch("workflow/resumed", result)
        return result

    async def cancel_workflow(self, workflow_id: str) -> Dict[str, Any]:
        self._ensure_initialized()
        result = await self.engine.cancel_workflow(workflow_id)
        self._metrics["workflows_cancelled"] += 1
        await self._dispatch("workflow/cancelled", result)
        return result

    async def create_checkpoint(
        self, workflow_id: str, label: str, description: str = ""
    ) -> Dict[str, Any]:
        self._ensure_initialized()
        return await self.engine.create_checkpoint(workflow_id, label, description)

    async def get_workflow_checkpoints(self, workflow_id: str) -> Optional[List[Dict[str, Any]]]:
        self._ensure_initialized()
        return await self.engine.get_workflow_checkpoints(workflow_id)

    async def rollback_to_checkpoint(self, workflow_id: str, checkpoint_id: str) -> Dict[str, Any]:
        self._ensure_initialized()
        result = await self.engine.rollback_to_checkpoint(workflow_id, checkpoint_id)
        self._metrics["rollbacks"] += 1
        await self._dispatch("workflow/rolled-back", {**result, "checkpoint_id": checkpoint_id})
        return result

    async def resume_from_rollback(self, workflow_id: str) -> Dict[str, Any]:
        self._ensure_initialized()
        result = await self.engine.resume_from_rollback(workflow_id)
        await self._dispatch("workflow/resumed", result)
        return result

    async def wait_idle(self, workflow_id: str, timeout: Optional[float] = None) -> None:
        await self.engine.wait_idle(workflow_id, timeout=timeout)

    # ─────────────────────────────────────────────────────────────────
    # 조회
    # ─────────────────────────────────────────────────────────────────

    async def get_workflow_status(self, workflow_id: str) -> Optional[Dict[str, Any]]:
        """
        엔진 상태에 통신 정보와 에이전트별 상태를 더한 전체 상태

        Returns:
            상태 dict 또는 None (없는 워크플로우)
        """
        self._ensure_initialized()
        status = await self.engine.get_workflow_status(workflow_id)
        if status is None:
            return None

        status["communication"] = {
            "message_count": len(self.channel.get_history(workflow_id)),
            "timeline": self.channel.get_timeline(workflow_id),
            "statistics": self.channel.get_statistics(workflow_id),
        }

        channels = self.channel.get_agent_channels(workflow_id)
        agents: Dict[str, str] = {}
        for step in status.get("sequence", []):
            agent_id = step["agent_id"]
            channel = channels.get(agent_id)
            agents[agent_id] = channel["status"] if channel else AgentChannelStatus.PENDING.value
        status["agents"] = agents
        return status

    def get_active_workflows(self) -> List[Dict[str, Any]]:
        self._ensure_initialized()
        return self.engine.get_active_workflows()

    async def get_execution_history(
        self, limit: int = 50, user_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        self._ensure_initialized()
        return await self.engine.get_execution_history(limit=limit, user_id=user_id)

    async def get_workflow_artifacts(self, workflow_id: str) -> Optional[List[Dict[str, Any]]]:
        self._ensure_initialized()
        return await self.engine.get_workflow_artifacts(workflow_id)

    def get_workflow_messages(
        self,
        workflow_id: str,
        limit: Optional[int] = None,
        message_type: Optional[str] = None,
        agent_id: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        """채널 히스토리 (시간순)"""
        self._ensure_initialized()
        history = self.channel.get_history(
            workflow_id, limit=limit, message_type=message_type, agent_id=agent_id
        )
        return [m.to_dict() for m in history]

    def get_available_agents(self) -> List[Dict[str, Any]]:
        self._ensure_initialized()
        return self.registry.get_all_info()

    def get_agent(self, agent_id: str) -> Dict[str, Any]:
        """
        Raises:
            AgentNotFoundError: 없는 에이전트
        """
        self._ensure_initialized()
        return self.registry.get(agent_id).to_dict()

    def get_workflow_sequences(self) -> Dict[str, List[str]]:
        """사용 가능한 정적/동적 시퀀스 이름"""
        return {
            "static": list_static_sequences(),
            "dynamic": self.parser.list_workflows(),
        }

    def get_system_health(self) -> Dict[str, Any]:
        """상태 요약"""
        active = self.engine.get_active_workflows() if self.initialized else []
        return {
            "status": "healthy" if self.initialized else "initializing",
            "initialized": self.initialized,
            "agents_loaded": len(self.registry),
            "active_workflows": len(active),
            "message_channels": self.channel.channel_count(),
            "pending_broadcasts": self._broadcast_queue.qsize() if self._broadcast_queue else 0,
            "executor": repr(self.executor),
            "metrics": dict(self._metrics),
        }

    # ─────────────────────────────────────────────────────────────────
    # 구독
    # ─────────────────────────────────────────────────────────────────

    def subscribe_to_workflow(
        self,
        workflow_id: str,
        callbacks: Optional[Dict[str, Callable[[Message], Any]]] = None,
    ) -> Callable[[], None]:
        """
        워크플로우 채널 이벤트 구독

        각 이벤트는 상태 저장소 액션으로 전달되고, 같은 이름의 콜백이
        있으면 함께 호출됩니다.

        Args:
            workflow_id: 워크플로우 ID
            callbacks: 이벤트 이름 -> 콜백

        Returns:
            구독 해제 함수
        """
        self._ensure_initialized()
        callbacks = callbacks or {}

        def make_handler(event_name: str, action: str):
            async def handler(message: Message) -> None:
                await self._dispatch(
                    action, {"workflow_id": workflow_id, "message": message.to_dict()}
                )
                callback = callbacks.get(event_name)
                if callback is not None:
                    result = callback(message)
                    if asyncio.iscoroutine(result):
                        await result

            return handler

        handlers = {
            event_name: make_handler(event_name, action)
            for event_name, action in STORE_ACTIONS.items()
        }
        unsubscribe = self.channel.subscribe(workflow_id, handlers)
        self._subscriptions.setdefault(workflow_id, []).append(unsubscribe)
        return unsubscribe

    def unsubscribe_from_workflow(self, workflow_id: str) -> None:
        for unsubscribe in self._subscriptions.pop(workflow_id, []):
            unsubscribe()

    # ─────────────────────────────────────────────────────────────────
    # 정리
    # ─────────────────────────────────────────────────────────────────

    async def cleanup(self) -> int:
        """
        종료된 워크플로우의 채널과 구독을 닫고 메모리에서 제거

        Returns:
            정리된 워크플로우 수
        """
        cleaned = 0
        for workflow in self.engine.resident_workflows():
            if not workflow.is_terminal:
                continue
            if self.engine.evict(workflow.id):
                self.unsubscribe_from_workflow(workflow.id)
                self.channel.close_channel(workflow.id)
                cleaned += 1
        if cleaned:
            self.logger.info(f"Cleaned up {cleaned} finished workflows")
        return cleaned

    # ─────────────────────────────────────────────────────────────────
    # 내부 헬퍼
    # ─────────────────────────────────────────────────────────────────

    async def _forward(self, message: Message) -> None:
        """
        모든 채널 메시지를 브로드캐스트 큐에 넣음

        전송은 기다리지 않습니다. 큐가 가득 차면 메시지를 버리고 경고만 남깁니다.
        """
        if self.broadcaster is None or self._broadcast_queue is None:
            return
        event = BROADCAST_EVENTS.get(message.type, "workflow-message")
        item = (f"workflow-{message.workflow_id}", event, message.to_dict())
        try:
            self._broadcast_queue.put_nowait(item)
        except asyncio.QueueFull:
            self.logger.warning(
                f"Broadcast queue full - dropping {event} for {message.workflow_id}"
            )

    async def _broadcast_worker(self) -> None:
        """큐의 이벤트를 순서대로 브로드캐스터에 전송"""
        queue = self._broadcast_queue
        while True:
            channel, event, payload = await queue.get()
            try:
                if self.broadcaster is not None:
                    await self.broadcaster.publish(channel, event, payload)
            except Exception as e:
                self.logger.warning(f"Broadcast failed for {channel}: {e}")
            finally:
                queue.task_done()

    async def drain_broadcasts(self, timeout: Optional[float] = None) -> None:
        """대기 중인 브로드캐스트가 모두 전송될 때까지 대기"""
        if self._broadcast_queue is not None:
            await asyncio.wait_for(self._broadcast_queue.join(), timeout=timeout)

    async def _dispatch(self, action_type: str, payload: Dict[str, Any]) -> None:
        """상태 저장소 액션 전달 (실패는 로그만 남김)"""
        if self.store is None:
            return
        try:
            result = self.store.dispatch({"type": action_type, "payload": payload})
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            self.logger.warning(f"Store dispatch failed for {action_type}: {e}")

    def __repr__(self) -> str:
        return (
            f"Orchestrator(initialized={self.initialized}, "
            f"agents={len(self.registry)}, engine={self.engine!r})"
        )
