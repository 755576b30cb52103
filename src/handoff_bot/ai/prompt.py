"""System prompt assembly."""

from __future__ import annotations

from handoff_bot.ai.knowledge import KnowledgeRetriever
from handoff_bot.config import AgentSettings
from handoff_bot.core.models import ConversationState
from handoff_bot.core.types import SearchPriority

TONES_AR = {
    "formal": "استخدم لغة رسمية ومهنية. لا تستخدم أي رموز تعبيرية (Emoji). خاطب العميل بصيغة الجمع المحترمة.",
    "friendly": "كن ودوداً ولطيفاً. يمكنك استخدام رموز تعبيرية بشكل معتدل.",
    "professional": "كن مهنياً ومفيداً. ردودك مختصرة ودقيقة.",
}

TONES_EN = {
    "formal": "Use formal, professional language. Do NOT use any emojis. Address the customer formally.",
    "friendly": "Be friendly and warm. You may use emojis moderately.",
    "professional": "Be professional and helpful. Keep responses concise and accurate.",
}

_KNOWLEDGE_PRIORITIES = (SearchPriority.LIBRARY_ONLY, SearchPriority.LIBRARY_THEN_PRODUCTS)


def _rules_ar(fallback: str) -> str:
    return (
        "=== قواعد صارمة (إلزامية) ===\n"
        "1. أجب فقط وحصرياً من المعلومات المتوفرة أعلاه. لا تختلق أو تفترض أي معلومة.\n"
        "2. إذا لم تجد الإجابة في المعلومات المتوفرة أعلاه، أجب حرفياً بهذا النص فقط:\n"
        f'"{fallback}"\n'
        "3. لا تذكر أسعاراً أو منتجات أو تفاصيل غير موجودة في المعلومات المتوفرة.\n"
        "4. إذا طلب العميل شخصاً بشرياً، استخدم أداة request_human_agent.\n"
        "5. للاستفسار عن حالة طلب، استخدم أداة get_order_status برقم الطلب.\n"
        "6. كن موجزاً ومفيداً. لا تتوسع خارج المعلومات المقدمة."
    )


def _rules_en(fallback: str) -> str:
    return (
        "=== Strict Rules (mandatory) ===\n"
        "1. ONLY answer from the information provided above. Never make up or assume any information.\n"
        "2. If the answer is NOT in the provided information, respond EXACTLY with:\n"
        f'"{fallback}"\n'
        "3. Do NOT mention prices, products, or details not in the provided information.\n"
        "4. If the customer asks for a human, use the request_human_agent tool.\n"
        "5. For order status questions, use the get_order_status tool with the order number.\n"
        "6. Be concise and helpful. Do not expand beyond provided information."
    )


class PromptBuilder:
    """Builds the system prompt for one cycle.

    Section order is fixed: persona, tone, store facts, knowledge,
    customer name, rules.
    """

    def __init__(self, retriever: KnowledgeRetriever):
        self._retriever = retriever

    async def build(self, settings: AgentSettings, conversation: ConversationState) -> str:
        en = settings.is_english
        parts: list[str] = []

        if en:
            parts.append(
                f'You are a helpful customer service assistant for "{settings.store_name or "Store"}".'
            )
        else:
            parts.append(f'أنت مساعد ذكي لخدمة العملاء في "{settings.store_name or "المتجر"}".')

        tones = TONES_EN if en else TONES_AR
        parts.append(tones.get(settings.tone, tones["friendly"]))

        facts = [
            ("About" if en else "عن المتجر", settings.store_description),
            ("Hours" if en else "أوقات العمل", settings.working_hours),
            ("Returns" if en else "سياسة الإرجاع", settings.return_policy),
            ("Shipping" if en else "الشحن", settings.shipping_info),
        ]
        parts.extend(f"{label}: {value}" for label, value in facts if value)

        if settings.search_priority in _KNOWLEDGE_PRIORITIES:
            selection = await self._retriever.retrieve(conversation.tenant_id)
            if selection:
                parts.append(
                    "\n=== Available Information (your ONLY source for answers) ==="
                    if en
                    else "\n=== معلومات متوفرة (مصدرك الوحيد للإجابة) ==="
                )
                parts.extend(selection.articles)
                if selection.qna:
                    parts.append("\n" + ("Frequently asked questions:" if en else "الأسئلة الشائعة:"))
                    parts.extend(selection.qna)

        if conversation.customer_name:
            parts.append(f"\n{'Customer' if en else 'اسم العميل'}: {conversation.customer_name}")

        rules = _rules_en if en else _rules_ar
        parts.append("\n" + rules(settings.fallback_message))
        return "\n".join(parts)
