"""Handoff event fan-out to external notification subscribers."""

from __future__ import annotations

from typing import Awaitable, Callable

from handoff_bot.core.models import HandoffEvent
from handoff_bot.log import get_logger

logger = get_logger(__name__)

REASON_LABELS_AR = {
    "CUSTOMER_REQUEST": "طلب العميل التحدث مع موظف",
    "MAX_FAILURES": "تجاوز عدد المحاولات الفاشلة",
    "KEYWORD_MATCH": "كلمة مفتاحية للتحويل",
    "TOOL_FAILURE": "فشل في تنفيذ الأداة",
    "LOW_CONFIDENCE": "ثقة منخفضة في الرد",
    "AI_ERROR": "خطأ في نظام الذكاء الاصطناعي",
    "AI_NOT_CONFIGURED": "نظام الذكاء الاصطناعي غير مُعدّ",
}

REASON_LABELS_EN = {
    "CUSTOMER_REQUEST": "Customer asked for a human agent",
    "MAX_FAILURES": "Too many failed attempts",
    "KEYWORD_MATCH": "Handoff keyword matched",
    "TOOL_FAILURE": "Tool execution failed",
    "LOW_CONFIDENCE": "Low confidence in reply",
    "AI_ERROR": "AI system error",
    "AI_NOT_CONFIGURED": "AI system is not configured",
}


def reason_label(reason: str, english: bool = False) -> str:
    """Human-readable label for a handoff reason; free-text reasons pass through."""
    labels = REASON_LABELS_EN if english else REASON_LABELS_AR
    if reason in labels:
        return labels[reason]
    if reason:
        return reason
    return "Automatic handoff" if english else "تحويل تلقائي"


HandoffCallback = Callable[[HandoffEvent], Awaitable[None]]


class HandoffEventBus:
    """In-process event sink. Subscribers do the actual notifying."""

    def __init__(self) -> None:
        self._subscribers: list[HandoffCallback] = []

    def subscribe(self, callback: HandoffCallback) -> None:
        self._subscribers.append(callback)

    async def emit(self, event: HandoffEvent) -> None:
        logger.info(
            "handoff_event_emitted",
            conversation_id=event.conversation_id,
            reason=event.reason,
            subscribers=len(self._subscribers),
        )
        for callback in self._subscribers:
            try:
                await callback(event)
            except Exception:
                logger.exception(
                    "handoff_subscriber_error",
                    conversation_id=event.conversation_id,
                    callback=getattr(callback, "__qualname__", repr(callback)),
                )
