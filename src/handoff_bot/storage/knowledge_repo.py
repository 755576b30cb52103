"""Read access to the merchant knowledge library."""

from __future__ import annotations

import json

import aiosqlite

from handoff_bot.core.models import KnowledgeEntry
from handoff_bot.core.types import KnowledgeKind
from handoff_bot.errors import DataAccessError
from handoff_bot.storage.base import KnowledgeSource
from handoff_bot.storage.database import Database


class KnowledgeRepository(KnowledgeSource):
    def __init__(self, db: Database):
        self._db = db

    async def fetch_active_knowledge(self, tenant_id: str, limit: int = 30) -> list[KnowledgeEntry]:
        try:
            cursor = await self._db.conn.execute(
                """SELECT * FROM knowledge_entries
                   WHERE tenant_id = ? AND is_active = 1
                   ORDER BY priority ASC, id ASC
                   LIMIT ?""",
                (tenant_id, limit),
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise DataAccessError(f"Failed to fetch knowledge for {tenant_id}: {e}") from e
        return [self._row_to_entry(row) for row in rows]

    async def add_entry(self, entry: KnowledgeEntry) -> int:
        cursor = await self._db.conn.execute(
            """INSERT INTO knowledge_entries
               (tenant_id, title, content, answer, kind, category, priority, is_active, keywords_json)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                entry.tenant_id,
                entry.title,
                entry.content,
                entry.answer,
                entry.kind.value,
                entry.category,
                entry.priority,
                1 if entry.is_active else 0,
                json.dumps(entry.keywords, ensure_ascii=False),
            ),
        )
        await self._db.conn.commit()
        return cursor.lastrowid  # type: ignore[return-value]

    @staticmethod
    def _row_to_entry(row) -> KnowledgeEntry:
        try:
            keywords = json.loads(row["keywords_json"])
        except (json.JSONDecodeError, TypeError):
            keywords = []
        return KnowledgeEntry(
            id=row["id"],
            tenant_id=row["tenant_id"],
            title=row["title"],
            content=row["content"],
            answer=row["answer"],
            kind=KnowledgeKind(row["kind"]),
            category=row["category"],
            priority=row["priority"],
            is_active=bool(row["is_active"]),
            keywords=keywords if isinstance(keywords, list) else [],
        )
