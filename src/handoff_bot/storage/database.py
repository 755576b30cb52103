"""SQLite database connection manager with schema migration."""

from __future__ import annotations

from pathlib import Path

import aiosqlite

from handoff_bot.log import get_logger

logger = get_logger(__name__)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS conversations (
    id              TEXT    PRIMARY KEY,
    tenant_id       TEXT    NOT NULL,
    store_id        TEXT,
    customer_id     TEXT    NOT NULL,
    customer_name   TEXT,
    channel_id      TEXT    NOT NULL DEFAULT '',
    handler         TEXT    NOT NULL DEFAULT 'ai' CHECK(handler IN ('ai','human')),
    messages_count  INTEGER NOT NULL DEFAULT 0,
    ai_context_json TEXT    NOT NULL DEFAULT '{}',
    created_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now')),
    updated_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now'))
);

CREATE INDEX IF NOT EXISTS idx_conversations_tenant
    ON conversations(tenant_id, handler);

CREATE TABLE IF NOT EXISTS messages (
    id               TEXT    PRIMARY KEY,
    conversation_id  TEXT    NOT NULL REFERENCES conversations(id),
    direction        TEXT    NOT NULL CHECK(direction IN ('inbound','outbound')),
    content_type     TEXT    NOT NULL DEFAULT 'text',
    content          TEXT    NOT NULL DEFAULT '',
    sender           TEXT    NOT NULL DEFAULT 'customer',
    ai_metadata_json TEXT,
    seq              INTEGER NOT NULL,
    created_at       TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now'))
);

CREATE INDEX IF NOT EXISTS idx_messages_conversation
    ON messages(conversation_id, seq);

CREATE TABLE IF NOT EXISTS knowledge_entries (
    id              INTEGER PRIMARY KEY AUTOINCREMENT,
    tenant_id       TEXT    NOT NULL,
    title           TEXT    NOT NULL,
    content         TEXT    NOT NULL,
    answer          TEXT,
    kind            TEXT    NOT NULL DEFAULT 'article' CHECK(kind IN ('article','qna')),
    category        TEXT    NOT NULL DEFAULT 'general',
    priority        INTEGER NOT NULL DEFAULT 10,
    is_active       INTEGER NOT NULL DEFAULT 1,
    keywords_json   TEXT    NOT NULL DEFAULT '[]',
    created_at      TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now'))
);

CREATE INDEX IF NOT EXISTS idx_knowledge_tenant_active
    ON knowledge_entries(tenant_id, is_active, priority);

CREATE TABLE IF NOT EXISTS orders (
    id                  INTEGER PRIMARY KEY AUTOINCREMENT,
    tenant_id           TEXT,
    store_id            TEXT    NOT NULL,
    external_order_id   TEXT    NOT NULL,
    reference_id        TEXT,
    status              TEXT    NOT NULL,
    total_amount        REAL    NOT NULL DEFAULT 0,
    currency            TEXT    NOT NULL DEFAULT 'SAR',
    shipping_info_json  TEXT,
    items_json          TEXT    NOT NULL DEFAULT '[]',
    created_at          TEXT    NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now'))
);

CREATE INDEX IF NOT EXISTS idx_orders_tenant_external
    ON orders(tenant_id, external_order_id);

CREATE INDEX IF NOT EXISTS idx_orders_store_external
    ON orders(store_id, external_order_id);

CREATE TABLE IF NOT EXISTS store_settings (
    tenant_id       TEXT NOT NULL,
    store_id        TEXT NOT NULL DEFAULT '',
    settings_key    TEXT NOT NULL,
    settings_json   TEXT NOT NULL DEFAULT '{}',
    updated_at      TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now')),
    PRIMARY KEY (tenant_id, store_id, settings_key)
);
"""


class Database:
    """Async SQLite database manager."""

    def __init__(self, db_path: str):
        self._db_path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        """Open connection and run migrations."""
        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)
        self._conn = await aiosqlite.connect(self._db_path)
        self._conn.row_factory = aiosqlite.Row
        await self._conn.execute("PRAGMA journal_mode=WAL")
        await self._conn.execute("PRAGMA foreign_keys=ON")
        await self._conn.executescript(SCHEMA_SQL)
        await self._conn.commit()
        logger.info("database_initialized", path=self._db_path)

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._conn

    async def close(self) -> None:
        if self._conn:
            await self._conn.close()
            self._conn = None
            logger.info("database_closed")
