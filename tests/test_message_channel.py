"""
MessageChannel 테스트

- 발행, 히스토리, 통계
- 구독/해제와 이벤트 라우팅
- 에이전트 채널 상태 추적
"""

import pytest

from bmad_orchestrator.core.exceptions import InvalidMessageError
from bmad_orchestrator.core.message_channel import Message, MessageChannel
from bmad_orchestrator.core.types import MessageType


def make_message(message_type=MessageType.SYSTEM, sender="orchestrator", recipient="all", content="hi"):
    return Message(sender=sender, recipient=recipient, type=message_type.value, content=content)


class TestPublish:
    """발행 테스트"""

    @pytest.mark.asyncio
    async def test_history_is_chronological(self):
        channel = MessageChannel()
        for text in ("one", "two", "three"):
            await channel.publish("wf-1", make_message(content=text))

        history = channel.get_history("wf-1")
        assert [m.content for m in history] == ["one", "two", "three"]
        assert all(m.workflow_id == "wf-1" for m in history)
        assert [m.content for m in channel.get_history("wf-1", limit=2)] == ["two", "three"]

    @pytest.mark.asyncio
    async def test_history_cap_keeps_counters(self):
        channel = MessageChannel(max_history=3)
        for index in range(5):
            await channel.publish("wf-1", make_message(content=str(index)))

        assert [m.content for m in channel.get_history("wf-1")] == ["2", "3", "4"]
        assert channel.get_statistics("wf-1")["total_messages"] == 5

    @pytest.mark.asyncio
    async def test_invalid_messages_rejected(self):
        channel = MessageChannel()

        with pytest.raises(InvalidMessageError):
            await channel.publish("wf-1", Message(sender="", recipient="pm", type="system", content="x"))
        with pytest.raises(InvalidMessageError):
            await channel.publish("wf-1", Message(sender="pm", recipient="qa", type="gossip", content="x"))
        with pytest.raises(InvalidMessageError):
            await channel.publish("wf-1", Message(sender="pm", recipient="qa", type="system", content=None))

        assert channel.get_history("wf-1") == []

    @pytest.mark.asyncio
    async def test_statistics_and_filters(self):
        channel = MessageChannel()
        await channel.publish("wf-1", make_message(MessageType.ACTIVATION, recipient="pm"))
        await channel.send_inter_agent("wf-1", "pm", "architect", {"summary": "prd ready"})
        await channel.publish("wf-1", make_message(MessageType.COMPLETION, sender="pm", recipient="orchestrator"))

        stats = channel.get_statistics("wf-1")
        assert stats["total_messages"] == 3
        assert stats["messages_by_type"]["inter_agent"] == 1
        assert stats["communication_flow"]["pm → architect"] == 1
        assert len(stats["timeline"]) == 3
        assert stats["timeline"][1]["summary"] == "prd ready"

        assert len(channel.get_history("wf-1", agent_id="architect")) == 1
        assert len(channel.get_history("wf-1", message_type="completion")) == 1

    @pytest.mark.asyncio
    async def test_long_summaries_truncated(self):
        channel = MessageChannel()
        await channel.publish("wf-1", make_message(content="x" * 250))

        summary = channel.get_timeline("wf-1")[0]["summary"]
        assert len(summary) == 100
        assert summary.endswith("...")


class TestSubscriptions:
    """구독 테스트"""

    @pytest.mark.asyncio
    async def test_named_events_follow_message_event(self):
        channel = MessageChannel()
        received = []
        channel.subscribe("wf-1", {
            "message": lambda m: received.append(("message", m.type)),
            "agent:activated": lambda m: received.append(("activated", m.recipient)),
            "workflow:complete": lambda m: received.append(("complete", m.type)),
        })

        await channel.publish("wf-1", make_message(MessageType.ACTIVATION, recipient="analyst"))
        await channel.publish("wf-2", make_message(MessageType.ACTIVATION, recipient="pm"))
        await channel.publish("wf-1", make_message(MessageType.WORKFLOW_COMPLETE, recipient="user"))

        assert received == [
            ("message", "activation"),
            ("activated", "analyst"),
            ("message", "workflow_complete"),
            ("complete", "workflow_complete"),
        ]

    @pytest.mark.asyncio
    async def test_async_handlers_and_unsubscribe(self):
        channel = MessageChannel()
        received = []

        async def on_message(message):
            received.append(message.content)

        unsubscribe = channel.subscribe("wf-1", {"message": on_message})
        await channel.publish("wf-1", make_message(content="first"))
        unsubscribe()
        unsubscribe()
        await channel.publish("wf-1", make_message(content="second"))

        assert received == ["first"]
        assert channel.get_subscriber_count("wf-1") == 0

    @pytest.mark.asyncio
    async def test_handler_errors_do_not_stop_delivery(self):
        channel = MessageChannel()
        received = []

        def broken(message):
            raise RuntimeError("handler bug")

        channel.subscribe("wf-1", {"message": broken})
        channel.subscribe("wf-1", {"message": lambda m: received.append(m.content)})
        channel.subscribe_all(lambda m: received.append(f"all:{m.content}"))

        await channel.publish("wf-1", make_message(content="ok"))

        assert received == ["ok", "all:ok"]


class TestAgentChannels:
    """에이전트 채널 상태 테스트"""

    @pytest.mark.asyncio
    async def test_status_follows_message_types(self):
        channel = MessageChannel()
        await channel.publish("wf-1", make_message(MessageType.ACTIVATION, recipient="analyst"))
        assert channel.get_agent_channels("wf-1")["analyst"]["status"] == "active"
        assert channel.get_statistics("wf-1")["active_channels"] == ["analyst"]

        await channel.publish(
            "wf-1", make_message(MessageType.ELICITATION_REQUEST, sender="analyst", recipient="user")
        )
        assert channel.get_agent_channels("wf-1")["analyst"]["status"] == "waiting_for_input"

        await channel.publish(
            "wf-1", make_message(MessageType.COMPLETION, sender="analyst", recipient="orchestrator")
        )
        analyst = channel.get_agent_channels("wf-1")["analyst"]
        assert analyst["status"] == "completed"
        assert analyst["ended_at"] is not None

    @pytest.mark.asyncio
    async def test_close_channel(self):
        channel = MessageChannel()
        channel.subscribe("wf-1", {"message": lambda m: None})
        await channel.publish("wf-1", make_message())
        assert channel.has_channel("wf-1")

        channel.close_channel("wf-1")

        assert not channel.has_channel("wf-1")
        assert channel.get_history("wf-1") == []
        assert channel.get_statistics("wf-1")["total_messages"] == 0
