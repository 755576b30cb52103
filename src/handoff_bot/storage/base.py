"""Abstract boundary contracts the engine depends on.

The sqlite repositories in this package implement them; any other
datastore can be plugged in by subclassing.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

from handoff_bot.config import AgentSettings
from handoff_bot.core.models import ConversationState, KnowledgeEntry, Order, ReplyMetadata, Turn


class ConversationStore(ABC):
    """Load/save of the conversation handler and its handoff side-channel."""

    @abstractmethod
    async def load(self, conversation_id: str) -> Optional[ConversationState]:
        ...

    @abstractmethod
    async def save_state(self, conversation: ConversationState) -> None:
        """Durably write ``handler`` and the handoff metadata."""
        ...

    @abstractmethod
    async def recent_turns(
        self,
        conversation_id: str,
        limit: int = 10,
        exclude_message_id: Optional[str] = None,
    ) -> list[Turn]:
        """Return up to *limit* most recent turns, oldest first."""
        ...


class KnowledgeSource(ABC):
    @abstractmethod
    async def fetch_active_knowledge(self, tenant_id: str, limit: int = 30) -> list[KnowledgeEntry]:
        """Active entries for a tenant ordered by priority ascending."""
        ...


class OrderLookup(ABC):
    @abstractmethod
    async def find_order(
        self, tenant_id: str, store_id: Optional[str], order_id: str
    ) -> Optional[Order]:
        ...


class ReplySender(ABC):
    @abstractmethod
    async def send_agent_reply(
        self, conversation_id: str, text: str, metadata: ReplyMetadata
    ) -> None:
        ...


class SettingsSource(ABC):
    @abstractmethod
    async def get_settings(self, tenant_id: str, store_id: Optional[str] = None) -> AgentSettings:
        ...
