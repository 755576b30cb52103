"""Per-conversation locks serializing orchestration cycles."""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from handoff_bot.log import get_logger

logger = get_logger(__name__)


class ConversationLocks:
    """Hands out one asyncio.Lock per conversation id.

    Two inbound messages for the same conversation must not interleave their
    read-modify-write of ``handler`` and ``failedAttempts``. A lock lives only
    while some task holds or waits on it.
    """

    def __init__(self) -> None:
        self._locks: dict[str, asyncio.Lock] = {}
        self._users: dict[str, int] = {}

    @asynccontextmanager
    async def hold(self, conversation_id: str) -> AsyncIterator[None]:
        lock = self._locks.get(conversation_id)
        if lock is None:
            lock = self._locks[conversation_id] = asyncio.Lock()
        self._users[conversation_id] = self._users.get(conversation_id, 0) + 1
        try:
            async with lock:
                yield
        finally:
            self._release(conversation_id)

    def _release(self, conversation_id: str) -> None:
        remaining = self._users[conversation_id] - 1
        if remaining:
            self._users[conversation_id] = remaining
            return
        del self._users[conversation_id]
        del self._locks[conversation_id]
        logger.debug("conversation_lock_dropped", conversation_id=conversation_id)

    def __len__(self) -> int:
        return len(self._locks)
