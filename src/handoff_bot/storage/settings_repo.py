"""Read-only access to per-tenant agent settings."""

from __future__ import annotations

import json
from typing import Any, Optional

import aiosqlite
from pydantic import ValidationError

from handoff_bot.config import AgentSettings, merge_settings
from handoff_bot.errors import DataAccessError
from handoff_bot.log import get_logger
from handoff_bot.storage.base import SettingsSource
from handoff_bot.storage.database import Database

logger = get_logger(__name__)

SETTINGS_KEY = "ai"


class SettingsRepository(SettingsSource):
    """Merges stored overrides over the process-wide defaults."""

    def __init__(self, db: Database, defaults: AgentSettings):
        self._db = db
        self._defaults = defaults

    @property
    def defaults(self) -> AgentSettings:
        return self._defaults

    async def get_settings(self, tenant_id: str, store_id: Optional[str] = None) -> AgentSettings:
        stored = await self._load_row(tenant_id, store_id or "")
        if stored is None and store_id:
            stored = await self._load_row(tenant_id, "")
        if not stored:
            return self._defaults
        try:
            return merge_settings(self._defaults, stored)
        except ValidationError as e:
            logger.warning(
                "invalid_stored_settings",
                tenant_id=tenant_id,
                store_id=store_id,
                errors=e.error_count(),
            )
            return self._defaults

    async def put_settings(
        self, tenant_id: str, store_id: Optional[str], values: dict[str, Any]
    ) -> None:
        """Store raw overrides (seeding and tests)."""
        await self._db.conn.execute(
            """INSERT INTO store_settings (tenant_id, store_id, settings_key, settings_json)
               VALUES (?, ?, ?, ?)
               ON CONFLICT(tenant_id, store_id, settings_key)
               DO UPDATE SET settings_json = excluded.settings_json,
                             updated_at = strftime('%Y-%m-%dT%H:%M:%f','now')""",
            (tenant_id, store_id or "", SETTINGS_KEY, json.dumps(values, ensure_ascii=False)),
        )
        await self._db.conn.commit()

    async def _load_row(self, tenant_id: str, store_id: str) -> Optional[dict[str, Any]]:
        try:
            cursor = await self._db.conn.execute(
                """SELECT settings_json FROM store_settings
                   WHERE tenant_id = ? AND store_id = ? AND settings_key = ?""",
                (tenant_id, store_id, SETTINGS_KEY),
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise DataAccessError(f"Failed to load settings for {tenant_id}: {e}") from e
        if row is None:
            return None
        try:
            value = json.loads(row["settings_json"])
        except json.JSONDecodeError:
            logger.warning("unreadable_stored_settings", tenant_id=tenant_id, store_id=store_id)
            return None
        return value if isinstance(value, dict) else None
