"""Tests for the inbound message dispatcher."""

import asyncio
from datetime import timedelta

import pytest

from conftest import NOW, make_conversation, make_settings, text_response
from handoff_bot.ai.dispatcher import IncomingMessageDispatcher, is_simple_greeting
from handoff_bot.core.locks import ConversationLocks
from handoff_bot.core.models import Channel, HandoffMetadata, InboundMessage
from handoff_bot.core.types import ContentType, Direction, Handler, Intent, Platform


def _message(content="where is my order", direction=Direction.INBOUND, content_type=ContentType.TEXT):
    return InboundMessage(
        id="msg-1",
        conversation_id="conv-1",
        direction=direction,
        content_type=content_type,
        content=content,
    )


@pytest.fixture
def dispatcher(orchestrator, store, settings_source):
    return IncomingMessageDispatcher(
        orchestrator=orchestrator,
        store=store,
        settings_source=settings_source,
        sender=store,
    )


@pytest.fixture
def channel():
    return Channel(id="ch-1", platform=Platform.WHATSAPP, store_id="store-9")


class TestFilters:
    @pytest.mark.asyncio
    async def test_outbound_ignored(self, dispatcher, store, conversation, ai_client):
        await dispatcher.on_inbound_message(_message(direction=Direction.OUTBOUND), conversation)
        assert store.sent == []
        assert ai_client.calls == []

    @pytest.mark.asyncio
    async def test_human_handler_ignored(self, dispatcher, store, ai_client):
        conv = store.add(
            make_conversation(
                handler=Handler.HUMAN,
                handoff=HandoffMetadata(handoff_at=NOW - timedelta(days=2)),
            )
        )
        await dispatcher.on_inbound_message(_message(), conv)
        assert store.sent == []
        assert ai_client.calls == []

    @pytest.mark.asyncio
    async def test_non_text_ignored(self, dispatcher, store, conversation):
        await dispatcher.on_inbound_message(_message(content_type=ContentType.IMAGE), conversation)
        await dispatcher.on_inbound_message(_message(content="   "), conversation)
        assert store.sent == []

    @pytest.mark.asyncio
    async def test_disabled_ignored(self, dispatcher, store, conversation, settings_source):
        settings_source.settings = make_settings(enabled=False)
        await dispatcher.on_inbound_message(_message(), conversation, is_new_conversation=True)
        assert store.sent == []

    @pytest.mark.asyncio
    async def test_settings_resolved_from_channel_store(
        self, dispatcher, conversation, channel, settings_source, ai_client
    ):
        ai_client.responses = [text_response("ok")]
        await dispatcher.on_inbound_message(_message(), conversation, channel)
        assert settings_source.requests[0] == ("tenant-1", "store-9")


class TestReplies:
    @pytest.mark.asyncio
    async def test_reply_sent_with_metadata(self, dispatcher, store, conversation, ai_client):
        ai_client.responses = [text_response("It ships tomorrow.")]
        await dispatcher.on_inbound_message(_message(), conversation)
        assert len(store.sent) == 1
        conv_id, text, metadata = store.sent[0]
        assert conv_id == conversation.id
        assert text == "It ships tomorrow."
        assert metadata.intent == Intent.ORDER_INQUIRY
        assert metadata.confidence == 0.85
        assert metadata.processing_time_ms is not None

    @pytest.mark.asyncio
    async def test_welcome_then_greeting_skipped(self, dispatcher, store, conversation, settings, ai_client):
        await dispatcher.on_inbound_message(_message("مرحبا"), conversation, is_new_conversation=True)
        assert [s[1] for s in store.sent] == [settings.welcome_message]
        assert store.sent[0][2].intent == Intent.WELCOME
        assert ai_client.calls == []

    @pytest.mark.asyncio
    async def test_welcome_then_real_question_answered(self, dispatcher, store, conversation, ai_client):
        ai_client.responses = [text_response("Order 5 is on its way.")]
        await dispatcher.on_inbound_message(
            _message("hi, where is my order number 5 please?"), conversation, is_new_conversation=True
        )
        assert len(store.sent) == 2
        assert store.sent[1][1] == "Order 5 is on its way."

    @pytest.mark.asyncio
    async def test_handoff_reply_tagged(self, dispatcher, store, conversation, settings):
        await dispatcher.on_inbound_message(_message("أريد موظف"), conversation)
        _, text, metadata = store.sent[0]
        assert text == settings.handoff_message
        assert metadata.intent == Intent.HANDOFF
        assert store.conversations[conversation.id].handler == Handler.HUMAN

    @pytest.mark.asyncio
    async def test_failures_never_propagate(self, dispatcher, store, conversation, settings_source):
        async def _boom(tenant_id, store_id=None):
            raise RuntimeError("settings db down")

        settings_source.get_settings = _boom
        await dispatcher.on_inbound_message(_message(), conversation)
        assert store.sent == []


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_second_message_sees_handoff(self, dispatcher, store, conversation, ai_client):
        ai_client.responses = [text_response("should not be sent")]
        first = asyncio.create_task(dispatcher.on_inbound_message(_message("أريد موظف"), conversation))
        second = asyncio.create_task(
            dispatcher.on_inbound_message(_message("where is my order"), conversation)
        )
        await asyncio.gather(first, second)

        # The first message hands off; the second one reloads state and stays quiet
        assert [s[1] for s in store.sent] == [make_settings().handoff_message]


def test_simple_greeting():
    assert is_simple_greeting("السلام عليكم")
    assert is_simple_greeting("Hello!")
    assert is_simple_greeting("أهلاً")
    assert not is_simple_greeting("hello, I ordered a blue shirt last week and it never came")


def test_greeting_needs_whole_words():
    assert not is_simple_greeting("Do you ship?")
    assert not is_simple_greeting("which one?")
    assert not is_simple_greeting("this is it")


@pytest.mark.asyncio
async def test_short_question_after_welcome_is_answered(dispatcher, store, conversation, ai_client):
    ai_client.responses = [text_response("Yes, we ship everywhere.")]
    await dispatcher.on_inbound_message(_message("Do you ship?"), conversation, is_new_conversation=True)
    assert [s[1] for s in store.sent] == [make_settings().welcome_message, "Yes, we ship everywhere."]


@pytest.mark.asyncio
async def test_lock_shared_while_contended():
    locks = ConversationLocks()
    order = []

    async def cycle(name):
        async with locks.hold("a"):
            order.append(f"{name}-in")
            await asyncio.sleep(0)
            order.append(f"{name}-out")

    await asyncio.gather(cycle("first"), cycle("second"))
    assert order == ["first-in", "first-out", "second-in", "second-out"]
    assert len(locks) == 0


@pytest.mark.asyncio
async def test_locks_dropped_after_cycles(dispatcher, store, orchestrator, ai_client):
    conversations = [store.add(make_conversation(id=f"conv-{i}")) for i in range(20)]
    ai_client.responses = [text_response("ok") for _ in conversations]
    for conv in conversations:
        await dispatcher.on_inbound_message(_message(), conv)
    assert len(store.sent) == 20
    assert len(orchestrator.locks) == 0


@pytest.mark.asyncio
async def test_lock_released_when_cycle_fails(dispatcher, store, conversation, orchestrator):
    store.fail_load = True
    await dispatcher.on_inbound_message(_message(), conversation)
    assert len(orchestrator.locks) == 0
