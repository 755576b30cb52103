"""Heuristic reply scoring and message classification. No model calls."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

from handoff_bot.core.types import HandoffReason, Intent

BASE_CONFIDENCE = 0.85
HEDGING_CONFIDENCE = 0.30
HANDOFF_BELOW = 0.30

HEDGING_PHRASES = (
    "not sure",
    "don't know",
    "do not know",
    "i'm unable",
    "cannot help",
    "لست متأكد",
    "لا أعرف",
    "لا اعرف",
    "غير متأكد",
    "لا أستطيع",
    "لم أتمكن",
)

_INTENT_KEYWORDS: tuple[tuple[Intent, tuple[str, ...]], ...] = (
    (Intent.ORDER_INQUIRY, ("طلب", "order", "شحن", "shipping", "توصيل", "delivery", "track", "تتبع")),
    (Intent.PRODUCT_INQUIRY, ("منتج", "product", "سعر", "price", "بكم")),
    (Intent.COMPLAINT, ("مشكل", "problem", "شكوى", "complaint")),
)

_GREETING_PHRASES = ("مرحب", "السلام", "أهلا", "اهلا", "هلا", "good morning", "good evening")
_GREETING_WORDS = frozenset({"hello", "hi", "hey"})
_THANKS = ("شكر", "thank")

_WORD = re.compile(r"\w+")
_ARABIC_SCRIPT = re.compile(r"[\u0600-\u06FF]")


@dataclass(frozen=True, slots=True)
class QualityReport:
    confidence: float
    intent: Optional[str] = None
    should_handoff: bool = False
    handoff_reason: Optional[str] = None


@dataclass(frozen=True, slots=True)
class MessageInsight:
    intent: str
    sentiment: str
    language: str
    confidence: float = 0.8


def _is_greeting(lower: str) -> bool:
    if any(phrase in lower for phrase in _GREETING_PHRASES):
        return True
    return any(word in _GREETING_WORDS for word in _WORD.findall(lower))


def classify_intent(message: str) -> Optional[str]:
    """Coarse keyword classifier. Returns None when nothing matches."""
    lower = message.lower()
    for intent, keywords in _INTENT_KEYWORDS:
        if any(kw in lower for kw in keywords):
            return intent
    if _is_greeting(lower):
        return Intent.GREETING
    return None


def detect_language(text: str) -> str:
    return "ar" if _ARABIC_SCRIPT.search(text) else "en"


class ResponseQualityAnalyzer:
    def analyze(self, reply: str, original_message: str) -> QualityReport:
        lower = reply.lower()
        confidence = BASE_CONFIDENCE
        if any(phrase in lower for phrase in HEDGING_PHRASES):
            confidence = HEDGING_CONFIDENCE

        should_handoff = confidence < HANDOFF_BELOW
        return QualityReport(
            confidence=confidence,
            intent=classify_intent(original_message),
            should_handoff=should_handoff,
            handoff_reason=HandoffReason.LOW_CONFIDENCE if should_handoff else None,
        )


def analyze_message(message: str) -> MessageInsight:
    """Intent, sentiment and language of a customer message."""
    lower = message.lower()
    intent = classify_intent(message)
    sentiment = "neutral"
    if any(kw in lower for kw in _THANKS):
        sentiment = "positive"
        intent = intent or "THANKS"
    elif intent == Intent.COMPLAINT:
        sentiment = "negative"
    elif intent == Intent.GREETING:
        sentiment = "positive"
    return MessageInsight(
        intent=str(intent) if intent else "GENERAL",
        sentiment=sentiment,
        language=detect_language(message),
    )
