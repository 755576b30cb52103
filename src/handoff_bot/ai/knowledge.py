"""Selection of knowledge entries for prompt injection."""

from __future__ import annotations

from dataclasses import dataclass, field

from handoff_bot.core.models import KnowledgeEntry
from handoff_bot.core.types import KnowledgeKind
from handoff_bot.log import get_logger
from handoff_bot.storage.base import KnowledgeSource

logger = get_logger(__name__)

DEFAULT_LIMIT = 30
DEFAULT_BUDGET_CHARS = 6000


@dataclass
class KnowledgeSelection:
    """Formatted entries, each group already fitted to its character budget."""

    articles: list[str] = field(default_factory=list)
    qna: list[str] = field(default_factory=list)

    def __bool__(self) -> bool:
        return bool(self.articles or self.qna)


def format_entry(entry: KnowledgeEntry) -> str:
    if entry.kind == KnowledgeKind.QNA:
        return f"Q: {entry.title}\nA: {entry.answer or entry.content}"
    return f"[{entry.title}]: {entry.content}"


def fit_to_budget(lines: list[str], budget: int) -> list[str]:
    """Longest prefix of *lines* whose newline-joined length stays within *budget*.

    Entries are never split; the first one that does not fit ends the group.
    """
    kept: list[str] = []
    used = 0
    for line in lines:
        cost = len(line) + (1 if kept else 0)
        if used + cost > budget:
            break
        kept.append(line)
        used += cost
    return kept


class KnowledgeRetriever:
    def __init__(
        self,
        source: KnowledgeSource,
        limit: int = DEFAULT_LIMIT,
        budget_chars: int = DEFAULT_BUDGET_CHARS,
    ):
        self._source = source
        self._limit = limit
        self._budget = budget_chars

    def select(self, entries: list[KnowledgeEntry]) -> KnowledgeSelection:
        ordered = sorted((e for e in entries if e.is_active), key=lambda e: e.priority)
        articles = [format_entry(e) for e in ordered if e.kind == KnowledgeKind.ARTICLE]
        qna = [format_entry(e) for e in ordered if e.kind == KnowledgeKind.QNA]
        return KnowledgeSelection(
            articles=fit_to_budget(articles, self._budget),
            qna=fit_to_budget(qna, self._budget),
        )

    async def retrieve(self, tenant_id: str) -> KnowledgeSelection:
        """Fetch and fit a tenant's knowledge. A failed fetch yields an empty selection."""
        try:
            entries = await self._source.fetch_active_knowledge(tenant_id, limit=self._limit)
        except Exception as e:
            logger.warning("knowledge_fetch_failed", tenant_id=tenant_id, error=str(e))
            return KnowledgeSelection()

        selection = self.select(entries)
        logger.debug(
            "knowledge_selected",
            tenant_id=tenant_id,
            fetched=len(entries),
            articles=len(selection.articles),
            qna=len(selection.qna),
        )
        return selection
