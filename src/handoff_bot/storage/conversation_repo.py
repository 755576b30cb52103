"""Conversation repository: handler state, handoff side-channel and message log."""

from __future__ import annotations

import json
import uuid
from typing import Optional

import aiosqlite

from handoff_bot.core.models import ConversationState, HandoffMetadata, InboundMessage, ReplyMetadata, Turn
from handoff_bot.core.types import Direction, Handler, Sender
from handoff_bot.errors import DataAccessError
from handoff_bot.log import get_logger
from handoff_bot.storage.base import ConversationStore, ReplySender
from handoff_bot.storage.database import Database

logger = get_logger(__name__)

_NEXT_SEQ_SQL = "(SELECT COALESCE(MAX(seq), 0) + 1 FROM messages WHERE conversation_id = ?)"


class ConversationRepository(ConversationStore, ReplySender):
    """CRUD over conversations and their messages."""

    def __init__(self, db: Database):
        self._db = db

    async def create_conversation(self, conversation: ConversationState) -> None:
        try:
            await self._db.conn.execute(
                """INSERT INTO conversations
                   (id, tenant_id, store_id, customer_id, customer_name, channel_id,
                    handler, messages_count, ai_context_json)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    conversation.id,
                    conversation.tenant_id,
                    conversation.store_id,
                    conversation.customer_id,
                    conversation.customer_name,
                    conversation.channel_ref,
                    conversation.handler.value,
                    conversation.message_count,
                    json.dumps(conversation.handoff.to_json()),
                ),
            )
            await self._db.conn.commit()
        except aiosqlite.Error as e:
            raise DataAccessError(f"Failed to create conversation {conversation.id}: {e}") from e

    async def load(self, conversation_id: str) -> Optional[ConversationState]:
        try:
            cursor = await self._db.conn.execute(
                "SELECT * FROM conversations WHERE id = ?", (conversation_id,)
            )
            row = await cursor.fetchone()
        except aiosqlite.Error as e:
            raise DataAccessError(f"Failed to load conversation {conversation_id}: {e}") from e
        if row is None:
            return None
        return self._row_to_state(row)

    async def save_state(self, conversation: ConversationState) -> None:
        """Write handler + handoff metadata, keeping unrelated keys of the JSON blob."""
        try:
            cursor = await self._db.conn.execute(
                "SELECT ai_context_json FROM conversations WHERE id = ?", (conversation.id,)
            )
            row = await cursor.fetchone()
            if row is None:
                raise DataAccessError(f"Conversation {conversation.id} does not exist")
            ai_context = _loads_object(row["ai_context_json"])
            ai_context.update(conversation.handoff.to_json())
            await self._db.conn.execute(
                """UPDATE conversations
                   SET handler = ?, ai_context_json = ?,
                       updated_at = strftime('%Y-%m-%dT%H:%M:%f','now')
                   WHERE id = ?""",
                (conversation.handler.value, json.dumps(ai_context), conversation.id),
            )
            await self._db.conn.commit()
        except aiosqlite.Error as e:
            raise DataAccessError(f"Failed to save conversation {conversation.id}: {e}") from e

    async def save_inbound(self, message: InboundMessage) -> None:
        """Store a customer message (normally done by the ingestion pipeline)."""
        try:
            await self._db.conn.execute(
                f"""INSERT INTO messages
                   (id, conversation_id, direction, content_type, content, sender, seq)
                   VALUES (?, ?, ?, ?, ?, ?, {_NEXT_SEQ_SQL})""",
                (
                    message.id,
                    message.conversation_id,
                    message.direction.value,
                    message.content_type.value,
                    message.content,
                    Sender.CUSTOMER.value,
                    message.conversation_id,
                ),
            )
            await self._bump_message_count(message.conversation_id)
            await self._db.conn.commit()
        except aiosqlite.Error as e:
            raise DataAccessError(f"Failed to save message {message.id}: {e}") from e

    async def send_agent_reply(
        self, conversation_id: str, text: str, metadata: ReplyMetadata
    ) -> None:
        """Persist an outbound agent message. Channel delivery picks it up from here."""
        message_id = uuid.uuid4().hex
        try:
            await self._db.conn.execute(
                f"""INSERT INTO messages
                   (id, conversation_id, direction, content_type, content, sender,
                    ai_metadata_json, seq)
                   VALUES (?, ?, ?, 'text', ?, ?, ?, {_NEXT_SEQ_SQL})""",
                (
                    message_id,
                    conversation_id,
                    Direction.OUTBOUND.value,
                    text,
                    Sender.AGENT.value,
                    json.dumps(metadata.to_json(), ensure_ascii=False),
                    conversation_id,
                ),
            )
            await self._bump_message_count(conversation_id)
            await self._db.conn.commit()
        except aiosqlite.Error as e:
            raise DataAccessError(f"Failed to store reply for {conversation_id}: {e}") from e
        logger.debug("agent_reply_stored", conversation_id=conversation_id, message_id=message_id)

    async def recent_turns(
        self,
        conversation_id: str,
        limit: int = 10,
        exclude_message_id: Optional[str] = None,
    ) -> list[Turn]:
        try:
            cursor = await self._db.conn.execute(
                """SELECT direction, content FROM messages
                   WHERE conversation_id = ? AND content_type = 'text' AND id != ?
                   ORDER BY seq DESC
                   LIMIT ?""",
                (conversation_id, exclude_message_id or "", limit),
            )
            rows = await cursor.fetchall()
        except aiosqlite.Error as e:
            raise DataAccessError(f"Failed to load history for {conversation_id}: {e}") from e
        return [
            Turn(
                role="assistant" if row["direction"] == Direction.OUTBOUND.value else "user",
                content=row["content"] or "",
            )
            for row in reversed(rows)
        ]

    async def list_outbound(self, conversation_id: str) -> list[tuple[str, dict]]:
        """Return (content, metadata) for every outbound message, oldest first."""
        cursor = await self._db.conn.execute(
            """SELECT content, ai_metadata_json FROM messages
               WHERE conversation_id = ? AND direction = 'outbound'
               ORDER BY seq ASC""",
            (conversation_id,),
        )
        rows = await cursor.fetchall()
        return [(row["content"], _loads_object(row["ai_metadata_json"])) for row in rows]

    async def _bump_message_count(self, conversation_id: str) -> None:
        await self._db.conn.execute(
            "UPDATE conversations SET messages_count = messages_count + 1 WHERE id = ?",
            (conversation_id,),
        )

    @staticmethod
    def _row_to_state(row) -> ConversationState:
        try:
            handler = Handler(row["handler"])
        except ValueError:
            handler = Handler.AI
        return ConversationState(
            id=row["id"],
            tenant_id=row["tenant_id"],
            store_id=row["store_id"],
            customer_id=row["customer_id"],
            customer_name=row["customer_name"],
            channel_ref=row["channel_id"],
            handler=handler,
            message_count=row["messages_count"],
            handoff=HandoffMetadata.from_json(_loads_object(row["ai_context_json"])),
        )


def _loads_object(raw: Optional[str]) -> dict:
    if not raw:
        return {}
    try:
        value = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        return {}
    return value if isinstance(value, dict) else {}
