"""Ownership of the AI/human handoff: silence window, counters and escalation."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Callable, Optional

from handoff_bot.config import AgentSettings
from handoff_bot.core.models import ConversationState, HandoffEvent
from handoff_bot.core.types import HandoffReason, Handler
from handoff_bot.handoff.events import HandoffEventBus, reason_label
from handoff_bot.handoff.state import AgentEvent, AgentState, classify, handler_for, transition
from handoff_bot.log import get_logger
from handoff_bot.storage.base import ConversationStore

logger = get_logger(__name__)

# Always checked, on top of the merchant-configured keywords
DIRECT_HANDOFF_KEYWORDS = (
    "أريد شخص",
    "أريد إنسان",
    "موظف",
    "دعم بشري",
    "تحدث مع شخص",
    "human",
    "agent",
    "real person",
)

FAILURE_THRESHOLD = 0.5
SUCCESS_THRESHOLD = 0.7


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class HandoffController:
    """The only component that mutates ``handler`` and the handoff metadata.

    Sandbox conversations are mutated in memory but never persisted and
    never produce events.
    """

    def __init__(
        self,
        store: ConversationStore,
        events: HandoffEventBus,
        clock: Callable[[], datetime] = _utc_now,
    ):
        self._store = store
        self._events = events
        self._clock = clock

    def state(self, conversation: ConversationState, settings: AgentSettings) -> AgentState:
        return classify(conversation, settings, self._clock())

    def is_silenced(self, conversation: ConversationState, settings: AgentSettings) -> bool:
        return self.state(conversation, settings) == AgentState.HANDED_OFF_SILENT

    async def expire_silence_if_due(
        self, conversation: ConversationState, settings: AgentSettings
    ) -> bool:
        """Hand a resumable conversation back to the agent. Returns True if it flipped."""
        current = self.state(conversation, settings)
        if current != AgentState.HANDED_OFF_RESUMABLE:
            return False

        conversation.handler = handler_for(transition(current, AgentEvent.MESSAGE_ARRIVED))
        if not conversation.sandbox:
            await self._store.save_state(conversation)
        logger.info(
            "silence_expired",
            conversation_id=conversation.id,
            handoff_at=conversation.handoff.handoff_at,
        )
        return True

    def check_direct_handoff(
        self, message: str, conversation: ConversationState, settings: AgentSettings
    ) -> tuple[bool, Optional[str]]:
        lower = message.lower()
        keywords = [*DIRECT_HANDOFF_KEYWORDS, *settings.handoff_keywords]
        if any(kw and kw.lower() in lower for kw in keywords):
            return True, HandoffReason.CUSTOMER_REQUEST

        if (
            settings.auto_handoff
            and conversation.handoff.failed_attempts >= settings.handoff_after_failures
        ):
            return True, HandoffReason.MAX_FAILURES

        return False, None

    async def trigger_handoff(
        self, conversation: ConversationState, settings: AgentSettings, reason: str
    ) -> None:
        """Transfer ownership to a human, persist, then notify.

        State is written before the event is emitted so a crash in between
        can at worst repeat a notification, never lose the handoff.
        """
        now = self._clock()
        next_state = transition(classify(conversation, settings, now), AgentEvent.HANDOFF_TRIGGERED)

        conversation.handler = handler_for(next_state)
        conversation.handoff.handoff_at = now
        conversation.handoff.handoff_reason = str(reason)
        conversation.handoff.failed_attempts = 0

        if conversation.sandbox:
            logger.info("sandbox_handoff", conversation_id=conversation.id, reason=str(reason))
            return

        await self._store.save_state(conversation)
        logger.info("handoff_triggered", conversation_id=conversation.id, reason=str(reason))

        await self._events.emit(
            HandoffEvent(
                conversation_id=conversation.id,
                tenant_id=conversation.tenant_id,
                customer_id=conversation.customer_id,
                customer_name=conversation.customer_name,
                channel_ref=conversation.channel_ref,
                reason=str(reason),
                reason_label=reason_label(str(reason), settings.is_english),
                handoff_at=now,
                notify_employee_ids=list(settings.handoff_notify_employee_ids),
                notify_phones=list(settings.handoff_notify_phones),
                notify_emails=list(settings.handoff_notify_emails),
            )
        )

    async def record_outcome(self, conversation: ConversationState, confidence: float) -> None:
        """Update the failed-attempt counter from one reply's confidence.

        Below 0.5 increments, 0.7 and above resets, anything in between
        leaves the counter alone.
        """
        if conversation.handler != Handler.AI:
            return

        previous = conversation.handoff.failed_attempts
        if confidence < FAILURE_THRESHOLD:
            conversation.handoff.failed_attempts = previous + 1
        elif confidence >= SUCCESS_THRESHOLD:
            conversation.handoff.failed_attempts = 0

        if conversation.handoff.failed_attempts == previous or conversation.sandbox:
            return

        try:
            await self._store.save_state(conversation)
        except Exception as e:
            logger.error(
                "failed_attempts_persist_error",
                conversation_id=conversation.id,
                failed_attempts=conversation.handoff.failed_attempts,
                error=str(e),
            )
            return
        logger.debug(
            "failed_attempts_updated",
            conversation_id=conversation.id,
            failed_attempts=conversation.handoff.failed_attempts,
        )
