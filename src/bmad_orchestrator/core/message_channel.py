"""
MessageChannel - 워크플로우 단위 메시지 채널

워크플로우별 메시지 히스토리와 구독자를 관리하고, 메시지 타입에 따라
이름 있는 이벤트(agent:activated 등)를 구독자에게 순서대로 전달합니다.
"""

from collections import Counter, defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, List, Optional, Union
from uuid import uuid4
import asyncio
import logging

from .exceptions import InvalidMessageError
from .types import AgentChannelStatus, MessageType, utcnow


@dataclass
class Message:
    """
    채널 메시지

    Attributes:
        sender: 보낸 쪽 (에이전트 ID, "orchestrator", "user")
        recipient: 받는 쪽
        type: MessageType 값
        content: 본문 (문자열 또는 JSON 객체)
        workflow_id: 소속 워크플로우 ID (publish 시 설정)
        id: 메시지 고유 ID
        timestamp: 발행 시각
        metadata: 추가 메타데이터
    """

    sender: str
    recipient: str
    type: str
    content: Any
    workflow_id: Optional[str] = None
    id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: datetime = field(default_factory=utcnow)
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """딕셔너리 변환"""
        return {
            "id": self.id,
            "workflow_id": self.workflow_id,
            "from": self.sender,
            "to": self.recipient,
            "type": self.type,
            "content": self.content,
            "timestamp": self.timestamp.isoformat(),
            "metadata": self.metadata,
        }

    def __repr__(self) -> str:
        return f"Message(type={self.type}, {self.sender}->{self.recipient}, id={self.id[:8]}...)"


# 핸들러 타입 정의
MessageHandler = Callable[[Message], Union[None, Awaitable[None]]]

# 메시지 타입 -> 추가로 발생하는 이름 있는 이벤트
EVENT_BY_TYPE: Dict[str, str] = {
    MessageType.ACTIVATION.value: "agent:activated",
    MessageType.COMPLETION.value: "agent:completed",
    MessageType.INTER_AGENT.value: "agent:communication",
    MessageType.ERROR.value: "workflow:error",
    MessageType.ELICITATION_REQUEST.value: "elicitation:request",
    MessageType.WORKFLOW_COMPLETE.value: "workflow:complete",
}

VALID_TYPES = frozenset(t.value for t in MessageType)

SUMMARY_LENGTH = 100


class MessageChannel:
    """
    워크플로우 단위 Pub/Sub 채널

    사용법:
        channel = MessageChannel()

        async def on_completed(message: Message):
            ...

        unsubscribe = channel.subscribe(
            workflow_id, {"agent:completed": on_completed}
        )
        await channel.publish(workflow_id, Message(
            sender="analyst", recipient="orchestrator",
            type="completion", content={"step": 0},
        ))
        unsubscribe()

    Note:
        핸들러는 등록 순서대로 하나씩 await 됩니다. 한 워크플로우의
        메시지는 발행 순서대로 전달되며 핸들러 예외는 로그만 남깁니다.
    """

    def __init__(self, max_history: int = 1000):
        self._max_history = max_history
        self._history: Dict[str, List[Message]] = defaultdict(list)
        self._subscribers: Dict[str, List[Dict[str, MessageHandler]]] = defaultdict(list)
        self._all_subscribers: List[MessageHandler] = []
        self._type_counts: Dict[str, Counter] = defaultdict(Counter)
        self._total_counts: Dict[str, int] = defaultdict(int)
        self._agent_channels: Dict[str, Dict[str, Dict[str, Any]]] = defaultdict(dict)
        self.logger = logging.getLogger("message_channel")

    # ─────────────────────────────────────────────────────────────────
    # 발행
    # ─────────────────────────────────────────────────────────────────

    async def publish(self, workflow_id: str, message: Message) -> Message:
        """
        메시지 발행

        검증 후 히스토리에 추가하고 통계와 에이전트 채널 상태를 갱신한 뒤
        구독자에게 "message"와 타입별 이벤트를 전달합니다.

        Args:
            workflow_id: 워크플로우 ID
            message: 발행할 메시지

        Returns:
            workflow_id가 채워진 메시지

        Raises:
            InvalidMessageError: 필수 필드 누락 또는 알 수 없는 타입
        """
        self._validate(message)
        message.workflow_id = workflow_id

        history = self._history[workflow_id]
        history.append(message)
        if len(history) > self._max_history:
            del history[: len(history) - self._max_history]

        self._total_counts[workflow_id] += 1
        self._type_counts[workflow_id][message.type] += 1
        self._track_agent_channel(workflow_id, message)

        self.logger.debug(
            f"[{workflow_id}] {message.type}: {message.sender} -> {message.recipient}"
        )

        events = ["message"]
        if message.type in EVENT_BY_TYPE:
            events.append(EVENT_BY_TYPE[message.type])

        for handler_map in list(self._subscribers.get(workflow_id, [])):
            for event_name in events:
                handler = handler_map.get(event_name)
                if handler is not None:
                    await self._safe_call(handler, message, event_name)

        for handler in list(self._all_subscribers):
            await self._safe_call(handler, message, "*")

        return message

    async def send_inter_agent(
        self,
        workflow_id: str,
        sender: str,
        recipient: str,
        content: Any,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Message:
        """에이전트 간 메시지 발행"""
        return await self.publish(
            workflow_id,
            Message(
                sender=sender,
                recipient=recipient,
                type=MessageType.INTER_AGENT.value,
                content=content,
                metadata=metadata or {},
            ),
        )

    def _validate(self, message: Message) -> None:
        missing = [
            name
            for name in ("sender", "recipient", "type")
            if not getattr(message, name)
        ]
        if message.content is None:
            missing.append("content")
        if missing:
            raise InvalidMessageError(f"Message missing required fields: {missing}")
        if isinstance(message.type, MessageType):
            message.type = message.type.value
        if message.type not in VALID_TYPES:
            raise InvalidMessageError(f"Unknown message type: {message.type}")

    async def _safe_call(
        self, handler: MessageHandler, message: Message, event_name: str
    ) -> None:
        """예외 안전 핸들러 호출"""
        try:
            result = handler(message)
            if asyncio.iscoroutine(result):
                await result
        except Exception as e:
            self.logger.error(
                f"Message handler error for '{event_name}': {e}",
                exc_info=True,
            )

    def _track_agent_channel(self, workflow_id: str, message: Message) -> None:
        """메시지 타입에 따라 에이전트 채널 상태 갱신"""
        if message.type == MessageType.ACTIVATION.value:
            agent_id, status = message.recipient, AgentChannelStatus.ACTIVE
        elif message.type == MessageType.COMPLETION.value:
            agent_id, status = message.sender, AgentChannelStatus.COMPLETED
        elif message.type == MessageType.ERROR.value:
            agent_id, status = message.sender, AgentChannelStatus.ERROR
        elif message.type == MessageType.ELICITATION_REQUEST.value:
            agent_id, status = message.sender, AgentChannelStatus.WAITING_FOR_INPUT
        else:
            return

        channels = self._agent_channels[workflow_id]
        channel = channels.setdefault(
            agent_id,
            {"agent_id": agent_id, "status": None, "started_at": None,
             "ended_at": None, "message_count": 0},
        )
        channel["status"] = status.value
        channel["message_count"] += 1
        if status == AgentChannelStatus.ACTIVE:
            channel["started_at"] = message.timestamp.isoformat()
            channel["ended_at"] = None
        elif status in (AgentChannelStatus.COMPLETED, AgentChannelStatus.ERROR):
            channel["ended_at"] = message.timestamp.isoformat()

    # ─────────────────────────────────────────────────────────────────
    # 구독
    # ─────────────────────────────────────────────────────────────────

    def subscribe(
        self, workflow_id: str, handlers: Dict[str, MessageHandler]
    ) -> Callable[[], None]:
        """
        워크플로우 이벤트 구독

        Args:
            workflow_id: 워크플로우 ID
            handlers: 이벤트 이름 -> 핸들러 ("message", "agent:activated",
                "agent:completed", "agent:communication", "workflow:error",
                "elicitation:request", "workflow:complete")

        Returns:
            구독 해제 함수 (여러 번 호출해도 안전)
        """
        handler_map = dict(handlers)
        self._subscribers[workflow_id].append(handler_map)
        self.logger.debug(f"Subscribed to {workflow_id}: {list(handler_map)}")

        def unsubscribe() -> None:
            subscribers = self._subscribers.get(workflow_id)
            if subscribers and handler_map in subscribers:
                subscribers.remove(handler_map)
                if not subscribers:
                    del self._subscribers[workflow_id]

        return unsubscribe

    def subscribe_all(self, handler: MessageHandler) -> Callable[[], None]:
        """모든 워크플로우의 모든 메시지 구독"""
        self._all_subscribers.append(handler)

        def unsubscribe() -> None:
            if handler in self._all_subscribers:
                self._all_subscribers.remove(handler)

        return unsubscribe

    def get_subscriber_count(self, workflow_id: str) -> int:
        """워크플로우 구독자 수"""
        return len(self._subscribers.get(workflow_id, []))

    # ─────────────────────────────────────────────────────────────────
    # 조회
    # ─────────────────────────────────────────────────────────────────

    def get_history(
        self,
        workflow_id: str,
        limit: Optional[int] = None,
        message_type: Optional[str] = None,
        agent_id: Optional[str] = None,
    ) -> List[Message]:
        """
        메시지 히스토리 조회

        Args:
            workflow_id: 워크플로우 ID
            limit: 반환할 최대 개수 (최근 메시지 기준)
            message_type: 타입 필터
            agent_id: 보낸 쪽 또는 받는 쪽 필터

        Returns:
            메시지 목록 (발행순)
        """
        messages = self._history.get(workflow_id, [])
        if message_type:
            messages = [m for m in messages if m.type == message_type]
        if agent_id:
            messages = [
                m for m in messages if agent_id in (m.sender, m.recipient)
            ]
        if limit is not None:
            messages = messages[-limit:] if limit > 0 else []
        return list(messages)

    def get_timeline(self, workflow_id: str) -> List[Dict[str, Any]]:
        """발행순 타임라인 (요약 포함)"""
        return [
            {
                "id": m.id,
                "timestamp": m.timestamp.isoformat(),
                "from": m.sender,
                "to": m.recipient,
                "type": m.type,
                "summary": self._summarize(m),
            }
            for m in self._history.get(workflow_id, [])
        ]

    def get_statistics(self, workflow_id: str) -> Dict[str, Any]:
        """
        통신 통계

        Returns:
            total_messages, messages_by_type, communication_flow
            ("a → b" 별 건수), active_channels, timeline
        """
        flow: Counter = Counter(
            f"{m.sender} → {m.recipient}" for m in self._history.get(workflow_id, [])
        )
        active = [
            agent_id
            for agent_id, channel in self._agent_channels.get(workflow_id, {}).items()
            if channel["status"] == AgentChannelStatus.ACTIVE.value
        ]
        return {
            "total_messages": self._total_counts.get(workflow_id, 0),
            "messages_by_type": dict(self._type_counts.get(workflow_id, {})),
            "communication_flow": dict(flow),
            "active_channels": active,
            "timeline": self.get_timeline(workflow_id),
        }

    def get_agent_channels(self, workflow_id: str) -> Dict[str, Dict[str, Any]]:
        """에이전트별 채널 상태"""
        return {
            agent_id: dict(channel)
            for agent_id, channel in self._agent_channels.get(workflow_id, {}).items()
        }

    def has_channel(self, workflow_id: str) -> bool:
        return workflow_id in self._history or workflow_id in self._subscribers

    def channel_count(self) -> int:
        return len(set(self._history) | set(self._subscribers))

    def close_channel(self, workflow_id: str) -> None:
        """워크플로우 채널 정리 (구독, 히스토리, 통계)"""
        self._subscribers.pop(workflow_id, None)
        self._history.pop(workflow_id, None)
        self._type_counts.pop(workflow_id, None)
        self._total_counts.pop(workflow_id, None)
        self._agent_channels.pop(workflow_id, None)
        self.logger.info(f"Closed channel: {workflow_id}")

    @staticmethod
    def _summarize(message: Message) -> str:
        content = message.content
        if isinstance(content, dict):
            for key in ("summary", "message", "instruction", "action"):
                if content.get(key):
                    content = content[key]
                    break
            else:
                content = f"{message.type} from {message.sender}"
        text = str(content)
        if len(text) > SUMMARY_LENGTH:
            return text[: SUMMARY_LENGTH - 3] + "..."
        return text

    def __repr__(self) -> str:
        return (
            f"MessageChannel(channels={self.channel_count()}, "
            f"subscribers={sum(len(s) for s in self._subscribers.values())})"
        )
