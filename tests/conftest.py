"""Shared test fixtures and in-memory fakes."""

from __future__ import annotations

import copy
from datetime import datetime, timezone
from typing import Any, Optional

import pytest

from handoff_bot.ai.client import AIClient, AIResponse
from handoff_bot.ai.knowledge import KnowledgeRetriever
from handoff_bot.ai.orchestrator import ConversationOrchestrator
from handoff_bot.ai.prompt import PromptBuilder
from handoff_bot.ai.quality import ResponseQualityAnalyzer
from handoff_bot.ai.tool_runner import ToolExecutor
from handoff_bot.ai.tools.registry import ToolRegistry
from handoff_bot.config import AgentSettings
from handoff_bot.core.models import (
    ConversationState,
    HandoffEvent,
    KnowledgeEntry,
    Order,
    ReplyMetadata,
    ToolCall,
    Turn,
)
from handoff_bot.errors import DataAccessError
from handoff_bot.handoff.controller import HandoffController
from handoff_bot.handoff.events import HandoffEventBus
from handoff_bot.storage.base import (
    ConversationStore,
    KnowledgeSource,
    OrderLookup,
    ReplySender,
    SettingsSource,
)

NOW = datetime(2024, 5, 1, 12, 0, tzinfo=timezone.utc)


class FixedClock:
    def __init__(self, now: datetime = NOW):
        self.now = now

    def __call__(self) -> datetime:
        return self.now


class FakeAIClient(AIClient):
    """Returns scripted responses in order and records every request."""

    def __init__(self, responses: Optional[list[Any]] = None, configured: bool = True):
        self.responses = list(responses or [])
        self.configured = configured
        self.calls: list[dict[str, Any]] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def chat(self, system, messages, model="", max_tokens=1000, temperature=0.7, tools=None):
        self.calls.append(
            {
                "system": system,
                "messages": messages,
                "model": model,
                "max_tokens": max_tokens,
                "temperature": temperature,
                "tools": tools,
            }
        )
        if not self.responses:
            return AIResponse(text="")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response


class InMemoryConversationStore(ConversationStore, ReplySender):
    def __init__(self) -> None:
        self.conversations: dict[str, ConversationState] = {}
        self.turns: dict[str, list[Turn]] = {}
        self.sent: list[tuple[str, str, ReplyMetadata]] = []
        self.save_calls = 0
        self.fail_save = False
        self.fail_load = False
        self.log: list[str] = []

    def add(self, conversation: ConversationState) -> ConversationState:
        self.conversations[conversation.id] = copy.deepcopy(conversation)
        return conversation

    async def load(self, conversation_id: str) -> Optional[ConversationState]:
        if self.fail_load:
            raise DataAccessError("load failed")
        stored = self.conversations.get(conversation_id)
        return copy.deepcopy(stored) if stored is not None else None

    async def save_state(self, conversation: ConversationState) -> None:
        if self.fail_save:
            raise DataAccessError("save failed")
        self.save_calls += 1
        self.log.append("save_state")
        self.conversations[conversation.id] = copy.deepcopy(conversation)

    async def recent_turns(self, conversation_id, limit=10, exclude_message_id=None) -> list[Turn]:
        return list(self.turns.get(conversation_id, []))[-limit:]

    async def send_agent_reply(self, conversation_id: str, text: str, metadata: ReplyMetadata) -> None:
        self.sent.append((conversation_id, text, metadata))


class InMemoryKnowledge(KnowledgeSource):
    def __init__(self, entries: Optional[list[KnowledgeEntry]] = None, fail: bool = False):
        self.entries = list(entries or [])
        self.fail = fail
        self.calls = 0

    async def fetch_active_knowledge(self, tenant_id: str, limit: int = 30) -> list[KnowledgeEntry]:
        self.calls += 1
        if self.fail:
            raise DataAccessError("knowledge unavailable")
        active = [e for e in self.entries if e.tenant_id == tenant_id and e.is_active]
        return sorted(active, key=lambda e: e.priority)[:limit]


class InMemoryOrders(OrderLookup):
    def __init__(self, orders: Optional[list[Order]] = None):
        self.orders = list(orders or [])

    async def find_order(self, tenant_id, store_id, order_id) -> Optional[Order]:
        checks = [
            lambda o: o.tenant_id == tenant_id and o.external_order_id == order_id,
            lambda o: o.tenant_id == tenant_id and o.reference_id == order_id,
        ]
        if store_id:
            checks += [
                lambda o: o.store_id == store_id and o.external_order_id == order_id,
                lambda o: o.store_id == store_id and o.reference_id == order_id,
            ]
        for check in checks:
            for order in self.orders:
                if check(order):
                    return order
        return None


class StaticSettings(SettingsSource):
    def __init__(self, settings: AgentSettings):
        self.settings = settings
        self.requests: list[tuple[str, Optional[str]]] = []

    async def get_settings(self, tenant_id: str, store_id: Optional[str] = None) -> AgentSettings:
        self.requests.append((tenant_id, store_id))
        return self.settings


def make_settings(**overrides: Any) -> AgentSettings:
    values: dict[str, Any] = {"enabled": True, "store_name": "Test Store"}
    values.update(overrides)
    return AgentSettings(**values)


def make_conversation(**overrides: Any) -> ConversationState:
    values: dict[str, Any] = {
        "id": "conv-1",
        "tenant_id": "tenant-1",
        "customer_id": "cust-1",
        "store_id": "store-1",
        "channel_ref": "whatsapp-1",
        "customer_name": "Sara",
    }
    values.update(overrides)
    return ConversationState(**values)


def text_response(text: str) -> AIResponse:
    return AIResponse(text=text)


def tool_response(*calls: ToolCall, text: str = "") -> AIResponse:
    return AIResponse(text=text, tool_calls=list(calls))


@pytest.fixture
def clock():
    return FixedClock()


@pytest.fixture
def settings():
    return make_settings()


@pytest.fixture
def conversation():
    return make_conversation()


@pytest.fixture
def store(conversation):
    store = InMemoryConversationStore()
    store.add(conversation)
    return store


@pytest.fixture
def emitted():
    return []


@pytest.fixture
def events(emitted, store):
    bus = HandoffEventBus()

    async def _capture(event: HandoffEvent) -> None:
        store.log.append("emit")
        emitted.append(event)

    bus.subscribe(_capture)
    return bus


@pytest.fixture
def controller(store, events, clock):
    return HandoffController(store, events, clock=clock)


@pytest.fixture
def knowledge():
    return InMemoryKnowledge()


@pytest.fixture
def orders():
    return InMemoryOrders()


@pytest.fixture
def ai_client():
    return FakeAIClient()


@pytest.fixture
def settings_source(settings):
    return StaticSettings(settings)


@pytest.fixture
def orchestrator(ai_client, controller, knowledge, orders, store, settings_source):
    return ConversationOrchestrator(
        ai_client=ai_client,
        controller=controller,
        prompt_builder=PromptBuilder(KnowledgeRetriever(knowledge)),
        tool_executor=ToolExecutor(ToolRegistry.with_builtin_tools(orders, controller)),
        analyzer=ResponseQualityAnalyzer(),
        store=store,
        settings_source=settings_source,
    )
