"""Inbound message listener deciding whether the agent answers."""

from __future__ import annotations

import re
import time
from typing import Optional

from handoff_bot.ai.orchestrator import ConversationOrchestrator
from handoff_bot.config import EngineConfig
from handoff_bot.core.locks import ConversationLocks
from handoff_bot.core.models import Channel, ConversationState, InboundMessage, ReplyMetadata
from handoff_bot.core.types import ContentType, Direction, Handler, Intent
from handoff_bot.log import conversation_context, get_logger
from handoff_bot.storage.base import ConversationStore, ReplySender, SettingsSource

logger = get_logger(__name__)

SIMPLE_GREETINGS = (
    "مرحبا",
    "السلام عليكم",
    "أهلا",
    "هلا",
    "هاي",
    "حياك",
    "يا هلا",
    "الو",
    "سلام",
    "هلو",
    "صباح الخير",
    "مساء الخير",
    "هلا والله",
    "السلام",
    "hello",
    "hi",
    "hey",
    "good morning",
    "good evening",
)
SIMPLE_GREETING_MAX_LEN = 30

_WORD = re.compile(r"\w+")


def is_simple_greeting(text: str) -> bool:
    """Short message containing a greeting as whole words ("hi" never matches "ship")."""
    lower = text.strip().lower()
    if len(lower) >= SIMPLE_GREETING_MAX_LEN:
        return False
    padded = f" {' '.join(_WORD.findall(lower))} "
    return any(f" {g} " in padded for g in SIMPLE_GREETINGS)


class IncomingMessageDispatcher:
    """Called once per stored inbound message.

    Failures are logged and swallowed here: automated replies must never
    break message ingestion.
    """

    def __init__(
        self,
        orchestrator: ConversationOrchestrator,
        store: ConversationStore,
        settings_source: SettingsSource,
        sender: ReplySender,
        locks: Optional[ConversationLocks] = None,
        engine: Optional[EngineConfig] = None,
    ):
        self._orchestrator = orchestrator
        self._store = store
        self._settings = settings_source
        self._sender = sender
        self._locks = locks or orchestrator.locks
        self._engine = engine or EngineConfig()

    async def on_inbound_message(
        self,
        message: InboundMessage,
        conversation: ConversationState,
        channel: Optional[Channel] = None,
        is_new_conversation: bool = False,
    ) -> None:
        # Our own replies come back through the same pipeline
        if message.direction != Direction.INBOUND:
            return

        started = time.monotonic()
        with conversation_context(conversation.id):
            try:
                async with self._locks.hold(conversation.id):
                    await self._handle(message, conversation, channel, is_new_conversation, started)
            except Exception:
                logger.exception("auto_response_failed", message_id=message.id)

    async def _handle(
        self,
        message: InboundMessage,
        conversation: ConversationState,
        channel: Optional[Channel],
        is_new_conversation: bool,
        started: float,
    ) -> None:
        # A message processed just before us may have changed the handler
        current = await self._store.load(conversation.id) or conversation

        if current.handler != Handler.AI:
            logger.debug("skip_not_ai_handler", handler=str(current.handler))
            return

        if message.content_type != ContentType.TEXT or not message.content.strip():
            logger.debug("skip_non_text", content_type=str(message.content_type))
            return

        store_id = channel.store_id if channel is not None else current.store_id
        settings = await self._settings.get_settings(current.tenant_id, store_id)
        if not settings.enabled:
            logger.debug("skip_agent_disabled", tenant_id=current.tenant_id)
            return
        if store_id and not current.store_id:
            current.store_id = store_id

        welcome_sent = False
        if is_new_conversation and settings.welcome_message:
            await self._sender.send_agent_reply(
                current.id,
                settings.welcome_message,
                ReplyMetadata(intent=Intent.WELCOME, confidence=1.0),
            )
            welcome_sent = True
            logger.info("welcome_sent")

        if welcome_sent and is_simple_greeting(message.content):
            logger.info("skip_greeting_after_welcome")
            return

        history = await self._store.recent_turns(
            current.id,
            limit=self._engine.history_turns,
            exclude_message_id=message.id,
        )
        result = await self._orchestrator.process(message.content, current, settings, history=history)
        processing_time_ms = int((time.monotonic() - started) * 1000)

        if not result.reply:
            if result.intent != Intent.SILENCED:
                logger.warning("empty_reply")
            return

        intent = result.intent
        if result.should_handoff and not intent:
            intent = Intent.HANDOFF

        await self._sender.send_agent_reply(
            current.id,
            result.reply,
            ReplyMetadata(
                intent=intent,
                confidence=result.confidence,
                tools_used=list(result.tools_used),
                processing_time_ms=processing_time_ms,
            ),
        )
        if result.should_handoff:
            logger.info("reply_sent_with_handoff", reason=result.handoff_reason)
        else:
            logger.info(
                "reply_sent",
                confidence=result.confidence,
                processing_time_ms=processing_time_ms,
            )
