"""Application wiring - builds the engine from configuration and manages lifecycle."""

from __future__ import annotations

from handoff_bot.ai.client import AIClient, AnthropicClient
from handoff_bot.ai.dispatcher import IncomingMessageDispatcher
from handoff_bot.ai.knowledge import KnowledgeRetriever
from handoff_bot.ai.orchestrator import ConversationOrchestrator
from handoff_bot.ai.prompt import PromptBuilder
from handoff_bot.ai.quality import ResponseQualityAnalyzer
from handoff_bot.ai.tool_runner import ToolExecutor
from handoff_bot.ai.tools.registry import ToolRegistry
from handoff_bot.config import AppConfig, build_default_settings
from handoff_bot.core.locks import ConversationLocks
from handoff_bot.handoff.controller import HandoffController
from handoff_bot.handoff.events import HandoffCallback, HandoffEventBus
from handoff_bot.log import get_logger
from handoff_bot.storage.conversation_repo import ConversationRepository
from handoff_bot.storage.database import Database
from handoff_bot.storage.knowledge_repo import KnowledgeRepository
from handoff_bot.storage.order_repo import OrderRepository
from handoff_bot.storage.settings_repo import SettingsRepository

logger = get_logger(__name__)


class HandoffBotApp:
    """Top-level application object.

    Callers feed stored inbound messages to ``dispatcher.on_inbound_message``
    and subscribe to handoff events for notification fan-out.
    """

    def __init__(self, config: AppConfig, ai_client: AIClient | None = None):
        self.config = config
        self.default_settings = build_default_settings(config)

        self.db = Database(config.storage.db_path)
        self.conversation_repo = ConversationRepository(self.db)
        self.knowledge_repo = KnowledgeRepository(self.db)
        self.order_repo = OrderRepository(self.db)
        self.settings_repo = SettingsRepository(self.db, self.default_settings)

        self.events = HandoffEventBus()
        self.controller = HandoffController(self.conversation_repo, self.events)
        self.ai_client = ai_client or AnthropicClient(config.anthropic)
        self.tool_registry = ToolRegistry.with_builtin_tools(self.order_repo, self.controller)

        engine = config.engine
        self.locks = ConversationLocks()
        self.orchestrator = ConversationOrchestrator(
            ai_client=self.ai_client,
            controller=self.controller,
            prompt_builder=PromptBuilder(
                KnowledgeRetriever(
                    self.knowledge_repo,
                    limit=engine.knowledge_limit,
                    budget_chars=engine.knowledge_budget_chars,
                )
            ),
            tool_executor=ToolExecutor(self.tool_registry),
            analyzer=ResponseQualityAnalyzer(),
            store=self.conversation_repo,
            settings_source=self.settings_repo,
            engine=engine,
            locks=self.locks,
        )
        self.dispatcher = IncomingMessageDispatcher(
            orchestrator=self.orchestrator,
            store=self.conversation_repo,
            settings_source=self.settings_repo,
            sender=self.conversation_repo,
            locks=self.locks,
            engine=engine,
        )

    def on_handoff(self, callback: HandoffCallback) -> None:
        self.events.subscribe(callback)

    async def start(self) -> None:
        await self.db.initialize()
        logger.info(
            "handoff_bot_started",
            ai_configured=self.ai_client.is_configured,
            default_model=self.default_settings.model,
        )

    async def stop(self) -> None:
        await self.db.close()
        logger.info("handoff_bot_stopped")
