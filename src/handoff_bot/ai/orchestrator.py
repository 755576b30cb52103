"""Per-message orchestration: silence gate, direct handoff, generation and bookkeeping."""

from __future__ import annotations

import asyncio
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from handoff_bot.ai.client import AIClient, AIResponse
from handoff_bot.ai.conversation import append_tool_round, build_messages
from handoff_bot.ai.prompt import PromptBuilder
from handoff_bot.ai.quality import ResponseQualityAnalyzer
from handoff_bot.ai.tool_runner import Continue, Terminate, ToolExecutor
from handoff_bot.config import AgentSettings, EngineConfig
from handoff_bot.core.locks import ConversationLocks
from handoff_bot.core.models import ConversationState, OrchestrationResult, Turn
from handoff_bot.core.types import HandoffReason
from handoff_bot.errors import DataAccessError, ProviderError
from handoff_bot.handoff.controller import HandoffController
from handoff_bot.log import get_logger
from handoff_bot.storage.base import ConversationStore, SettingsSource

logger = get_logger(__name__)

NOT_CONFIGURED_REPLY_AR = "خطأ: مفتاح واجهة نموذج الذكاء الاصطناعي غير مكوّن."
NOT_CONFIGURED_REPLY_EN = "Error: the AI model API key is not configured."
NO_REPLY_AR = "لم أتمكن من الرد"
NO_REPLY_EN = "I could not produce a reply"


@dataclass
class SandboxResult:
    reply: str
    processing_time_ms: int
    tools_used: list[str] = field(default_factory=list)
    intent: Optional[str] = None
    confidence: float = 0.0
    should_handoff: bool = False
    handoff_reason: Optional[str] = None


def _fallback(settings: AgentSettings, reason: str) -> OrchestrationResult:
    return OrchestrationResult(
        reply=settings.fallback_message,
        confidence=0.0,
        should_handoff=True,
        handoff_reason=reason,
    )


class ConversationOrchestrator:
    """Runs one cycle for one inbound message.

    ``process`` never raises: every failure resolves to a well-formed
    OrchestrationResult carrying the merchant's fallback or handoff text.
    """

    def __init__(
        self,
        ai_client: Optional[AIClient],
        controller: HandoffController,
        prompt_builder: PromptBuilder,
        tool_executor: ToolExecutor,
        analyzer: ResponseQualityAnalyzer,
        store: ConversationStore,
        settings_source: SettingsSource,
        engine: Optional[EngineConfig] = None,
        locks: Optional[ConversationLocks] = None,
    ):
        self._ai = ai_client
        self._controller = controller
        self._prompts = prompt_builder
        self._tools = tool_executor
        self._analyzer = analyzer
        self._store = store
        self._settings = settings_source
        self._engine = engine or EngineConfig()
        self._locks = locks or ConversationLocks()

    @property
    def locks(self) -> ConversationLocks:
        return self._locks

    @property
    def is_configured(self) -> bool:
        return self._ai is not None and self._ai.is_configured

    async def process(
        self,
        message_text: str,
        conversation: ConversationState,
        settings: AgentSettings,
        history: Optional[list[Turn]] = None,
    ) -> OrchestrationResult:
        if not settings.enabled:
            return OrchestrationResult.empty()

        if not self.is_configured:
            logger.error("ai_not_configured", conversation_id=conversation.id)
            return _fallback(settings, HandoffReason.AI_NOT_CONFIGURED)

        try:
            if self._controller.is_silenced(conversation, settings):
                logger.debug("conversation_silenced", conversation_id=conversation.id)
                return OrchestrationResult.silenced()
            await self._controller.expire_silence_if_due(conversation, settings)

            handoff, reason = self._controller.check_direct_handoff(message_text, conversation, settings)
            if handoff:
                await self._controller.trigger_handoff(conversation, settings, reason)
                return OrchestrationResult(
                    reply=settings.handoff_message,
                    confidence=1.0,
                    should_handoff=True,
                    handoff_reason=reason,
                )

            if history is None:
                history = await self._store.recent_turns(
                    conversation.id, limit=self._engine.history_turns
                )
            return await self._generate(message_text, conversation, settings, history)
        except (ProviderError, TimeoutError) as e:
            logger.error("ai_provider_failed", conversation_id=conversation.id, error=str(e))
            return _fallback(settings, HandoffReason.AI_ERROR)
        except Exception:
            logger.exception("orchestration_failed", conversation_id=conversation.id)
            return _fallback(settings, HandoffReason.AI_ERROR)

    async def _complete(self, system: str, messages: list[dict], settings: AgentSettings) -> AIResponse:
        return await asyncio.wait_for(
            self._ai.chat(
                system=system,
                messages=messages,
                model=settings.model,
                max_tokens=settings.max_tokens,
                temperature=settings.temperature,
                tools=self._tools.registry.to_api_list(),
            ),
            timeout=self._engine.completion_timeout,
        )

    async def _generate(
        self,
        message_text: str,
        conversation: ConversationState,
        settings: AgentSettings,
        history: list[Turn],
    ) -> OrchestrationResult:
        system = await self._prompts.build(settings, conversation)
        messages = build_messages(history, message_text, max_turns=self._engine.history_turns)

        response = await self._complete(system, messages, settings)
        reply = response.text
        tools_used: list[str] = []

        if response.tool_calls:
            tools_used = [call.name for call in response.tool_calls]
            outcome = await self._tools.execute(response.tool_calls, conversation, settings)
            match outcome:
                case Terminate(final_result=final):
                    logger.info(
                        "tool_handoff",
                        conversation_id=conversation.id,
                        tools=tools_used,
                    )
                    return final
                case Continue(results=results):
                    follow_up = await self._complete(
                        system,
                        append_tool_round(messages, response.text, response.tool_calls, results),
                        settings,
                    )
                    reply = follow_up.text or response.text

        report = self._analyzer.analyze(reply, message_text)
        await self._controller.record_outcome(conversation, report.confidence)
        if report.should_handoff:
            await self._controller.trigger_handoff(conversation, settings, HandoffReason.LOW_CONFIDENCE)

        logger.info(
            "reply_generated",
            conversation_id=conversation.id,
            confidence=report.confidence,
            intent=report.intent,
            tools=tools_used,
        )
        return OrchestrationResult(
            reply=reply,
            confidence=report.confidence,
            should_handoff=report.should_handoff,
            intent=report.intent,
            handoff_reason=report.handoff_reason,
            tools_used=tools_used,
        )

    async def generate_response(
        self, tenant_id: str, conversation_id: str, message: str
    ) -> OrchestrationResult:
        """Load the conversation and its settings, then run ``process``.

        Holds the conversation lock from load to the last save. Callers that
        already hold it (the dispatcher) call ``process`` directly.
        """
        async with self._locks.hold(conversation_id):
            try:
                conversation = await self._store.load(conversation_id)
                if conversation is None:
                    raise DataAccessError(f"Conversation {conversation_id} not found")
                settings = await self._settings.get_settings(tenant_id, conversation.store_id)
            except DataAccessError as e:
                logger.error("conversation_load_failed", conversation_id=conversation_id, error=str(e))
                return _fallback(AgentSettings(), HandoffReason.AI_ERROR)

            return await self.process(message, conversation, settings)

    async def test_response(
        self, tenant_id: str, message: str, store_id: Optional[str] = None
    ) -> SandboxResult:
        """Run *message* through the pipeline against a throwaway conversation.

        Nothing is persisted and no handoff events are emitted. Runs even when
        the tenant has the agent disabled.
        """
        started = time.monotonic()
        try:
            settings = await self._settings.get_settings(tenant_id, store_id)
        except DataAccessError as e:
            logger.error("sandbox_settings_failed", tenant_id=tenant_id, error=str(e))
            settings = AgentSettings()

        def elapsed() -> int:
            return int((time.monotonic() - started) * 1000)

        if not self.is_configured:
            reply = NOT_CONFIGURED_REPLY_EN if settings.is_english else NOT_CONFIGURED_REPLY_AR
            return SandboxResult(
                reply=reply,
                processing_time_ms=elapsed(),
                should_handoff=True,
                handoff_reason=HandoffReason.AI_NOT_CONFIGURED,
            )

        sandbox = ConversationState(
            id=f"sandbox-{uuid.uuid4().hex[:12]}",
            tenant_id=tenant_id,
            customer_id="",
            store_id=store_id,
            sandbox=True,
        )
        result = await self.process(
            message, sandbox, settings.model_copy(update={"enabled": True}), history=[]
        )
        return SandboxResult(
            reply=result.reply or (NO_REPLY_EN if settings.is_english else NO_REPLY_AR),
            processing_time_ms=elapsed(),
            tools_used=result.tools_used,
            intent=result.intent,
            confidence=result.confidence,
            should_handoff=result.should_handoff,
            handoff_reason=result.handoff_reason,
        )
