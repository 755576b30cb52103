"""Abstract tool interface for model function calling."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any

from handoff_bot.config import AgentSettings
from handoff_bot.core.models import ConversationState


@dataclass(frozen=True, slots=True)
class ToolContext:
    """What a tool may see about the cycle that invoked it."""

    conversation: ConversationState
    settings: AgentSettings


class Tool(ABC):
    """Base class for all model-callable tools."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Unique tool name sent to the model provider."""
        ...

    @property
    @abstractmethod
    def description(self) -> str:
        ...

    @property
    @abstractmethod
    def input_schema(self) -> dict[str, Any]:
        """JSON Schema dict describing accepted parameters."""
        ...

    @property
    def terminates_cycle(self) -> bool:
        """True if calling this tool ends the cycle without a follow-up completion."""
        return False

    @abstractmethod
    async def execute(self, args: dict[str, Any], context: ToolContext) -> dict[str, Any]:
        """Run the tool and return a JSON-serializable result for the model."""
        ...

    def to_api_dict(self) -> dict[str, Any]:
        """Serialize to the Anthropic API tool definition format."""
        return {
            "name": self.name,
            "description": self.description,
            "input_schema": self.input_schema,
        }
