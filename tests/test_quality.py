"""Tests for reply scoring and message insight."""

import pytest

from handoff_bot.ai.quality import ResponseQualityAnalyzer, analyze_message, classify_intent, detect_language
from handoff_bot.core.types import Intent


@pytest.fixture
def analyzer():
    return ResponseQualityAnalyzer()


class TestAnalyze:
    def test_confident_reply(self, analyzer):
        report = analyzer.analyze("Your order ships tomorrow.", "where is my order")
        assert report.confidence == 0.85
        assert report.intent == Intent.ORDER_INQUIRY
        assert not report.should_handoff
        assert report.handoff_reason is None

    def test_hedging_english(self, analyzer):
        assert analyzer.analyze("I'm not sure about that.", "x").confidence == 0.30

    def test_hedging_arabic(self, analyzer):
        assert analyzer.analyze("عذراً، لا أعرف الإجابة", "x").confidence == 0.30

    def test_hedging_does_not_reach_handoff_threshold(self, analyzer):
        report = analyzer.analyze("I don't know", "x")
        assert not report.should_handoff


class TestIntent:
    @pytest.mark.parametrize(
        "message, intent",
        [
            ("وين طلبي", Intent.ORDER_INQUIRY),
            ("track my delivery", Intent.ORDER_INQUIRY),
            ("بكم هذا المنتج", Intent.PRODUCT_INQUIRY),
            ("what is the price", Intent.PRODUCT_INQUIRY),
            ("عندي مشكلة", Intent.COMPLAINT),
            ("السلام عليكم", Intent.GREETING),
            ("hi there", Intent.GREETING),
        ],
    )
    def test_keywords(self, message, intent):
        assert classify_intent(message) == intent

    def test_no_match(self):
        assert classify_intent("what time is it") is None

    def test_hi_inside_word_is_not_greeting(self):
        assert classify_intent("which one") is None


class TestInsight:
    def test_thanks_is_positive(self):
        insight = analyze_message("thank you so much")
        assert insight.sentiment == "positive"
        assert insight.language == "en"

    def test_complaint_is_negative_arabic(self):
        insight = analyze_message("عندي مشكلة في الدفع")
        assert insight.intent == "COMPLAINT"
        assert insight.sentiment == "negative"
        assert insight.language == "ar"

    def test_general(self):
        assert analyze_message("what time is it").intent == "GENERAL"

    def test_detect_language(self):
        assert detect_language("hello مرحبا") == "ar"
        assert detect_language("hello") == "en"
