"""Explicit handler state machine.

The persisted ``handler`` field only says who owns replies. Together with
the silence settings and the handoff timestamp it yields one of three
states, and each event moves between them through a single transition
table so illegal moves are rejected in one place.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from enum import StrEnum
from typing import Optional

from handoff_bot.config import AgentSettings
from handoff_bot.core.models import ConversationState
from handoff_bot.core.types import Handler
from handoff_bot.errors import InvalidTransitionError

# A zero-minute window would disable silencing entirely; fall back to an hour.
DEFAULT_SILENCE_MINUTES = 60


class AgentState(StrEnum):
    AI_ACTIVE = "ai_active"
    HANDED_OFF_SILENT = "handed_off_silent"
    HANDED_OFF_RESUMABLE = "handed_off_resumable"


class AgentEvent(StrEnum):
    MESSAGE_ARRIVED = "message_arrived"
    HANDOFF_TRIGGERED = "handoff_triggered"
    SILENCE_EXPIRED = "silence_expired"


_TRANSITIONS: dict[tuple[AgentState, AgentEvent], AgentState] = {
    (AgentState.AI_ACTIVE, AgentEvent.MESSAGE_ARRIVED): AgentState.AI_ACTIVE,
    (AgentState.HANDED_OFF_SILENT, AgentEvent.MESSAGE_ARRIVED): AgentState.HANDED_OFF_SILENT,
    (AgentState.HANDED_OFF_RESUMABLE, AgentEvent.MESSAGE_ARRIVED): AgentState.AI_ACTIVE,
    (AgentState.AI_ACTIVE, AgentEvent.HANDOFF_TRIGGERED): AgentState.HANDED_OFF_SILENT,
    (AgentState.HANDED_OFF_RESUMABLE, AgentEvent.HANDOFF_TRIGGERED): AgentState.HANDED_OFF_SILENT,
    (AgentState.HANDED_OFF_SILENT, AgentEvent.SILENCE_EXPIRED): AgentState.HANDED_OFF_RESUMABLE,
}


def transition(state: AgentState, event: AgentEvent) -> AgentState:
    """Return the state reached by applying *event* to *state*."""
    try:
        return _TRANSITIONS[(state, event)]
    except KeyError:
        raise InvalidTransitionError(f"Cannot apply {event} in state {state}") from None


def silence_window(settings: AgentSettings) -> timedelta:
    minutes = settings.silence_duration_minutes or DEFAULT_SILENCE_MINUTES
    return timedelta(minutes=minutes)


def silence_ends_at(conversation: ConversationState, settings: AgentSettings) -> Optional[datetime]:
    handoff_at = conversation.handoff.handoff_at
    if handoff_at is None:
        return None
    return handoff_at + silence_window(settings)


def classify(conversation: ConversationState, settings: AgentSettings, now: datetime) -> AgentState:
    """Derive the current state.

    A human-owned conversation whose handoff time is unknown counts as
    resumable, so a bad timestamp never silences the agent forever.
    """
    if conversation.handler == Handler.AI:
        return AgentState.AI_ACTIVE
    if not settings.silence_on_handoff:
        return AgentState.HANDED_OFF_RESUMABLE
    ends_at = silence_ends_at(conversation, settings)
    if ends_at is None or now >= ends_at:
        return AgentState.HANDED_OFF_RESUMABLE
    return AgentState.HANDED_OFF_SILENT


def handler_for(state: AgentState) -> Handler:
    return Handler.AI if state == AgentState.AI_ACTIVE else Handler.HUMAN
