"""Exception hierarchy for the handoff engine."""

from __future__ import annotations


class HandoffBotError(Exception):
    """Base class for all engine errors."""


class ConfigurationError(HandoffBotError):
    """The model provider (or another required collaborator) is not configured."""


class ProviderError(HandoffBotError):
    """The model provider call failed or timed out."""


class ToolExecutionError(HandoffBotError):
    """A single tool call failed. Isolated to that tool's result."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(message)
        self.tool_name = tool_name


class DataAccessError(HandoffBotError):
    """Reading or writing conversation, order, knowledge or settings data failed."""


class InvalidTransitionError(HandoffBotError):
    """Raised when a handler-state transition is not valid from the current state."""
