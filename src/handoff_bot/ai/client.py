"""Model provider abstraction with an Anthropic API backend."""

from __future__ import annotations

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from handoff_bot.config import AnthropicConfig
from handoff_bot.core.models import ToolCall
from handoff_bot.errors import ConfigurationError, ProviderError
from handoff_bot.log import get_logger

logger = get_logger(__name__)


@dataclass
class AIResponse:
    """Unified response from any model backend."""

    text: str
    tool_calls: list[ToolCall] = field(default_factory=list)
    input_tokens: int = 0
    output_tokens: int = 0
    raw: Any = None  # Backend-specific raw response


class AIClient(ABC):
    """Abstract base class for model backends."""

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        """Whether credentials are present. Unconfigured clients are never called."""
        ...

    @abstractmethod
    async def chat(
        self,
        system: str,
        messages: list[dict[str, Any]],
        model: str = "",
        max_tokens: int = 1000,
        temperature: float = 0.7,
        tools: list[dict[str, Any]] | None = None,
    ) -> AIResponse:
        """Send a conversation to the model and return text and/or tool calls.

        Raises ProviderError when the call fails.
        """
        ...


class AnthropicClient(AIClient):
    """Anthropic API backend using the official SDK."""

    def __init__(self, config: Optional[AnthropicConfig]):
        self._config = config
        self._client = None
        if config is not None and config.api_key:
            import anthropic

            self._client = anthropic.AsyncAnthropic(
                api_key=config.api_key,
                base_url=config.base_url,
                max_retries=config.max_retries,
                timeout=config.timeout,
            )

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    async def chat(
        self,
        system: str,
        messages: list[dict[str, Any]],
        model: str = "",
        max_tokens: int = 1000,
        temperature: float = 0.7,
        tools: list[dict[str, Any]] | None = None,
    ) -> AIResponse:
        import anthropic

        if self._client is None:
            raise ConfigurationError("Anthropic API key is not configured")

        kwargs: dict[str, Any] = {
            "model": model or self._config.default_model,
            "max_tokens": max_tokens,
            "system": system,
            "messages": messages,
            "temperature": temperature,
        }
        if tools:
            kwargs["tools"] = tools

        logger.debug("api_request", model=kwargs["model"], message_count=len(messages))
        try:
            response = await self._client.messages.create(**kwargs)
        except anthropic.APIError as e:
            logger.error("api_error", model=kwargs["model"], error=str(e))
            raise ProviderError(f"Anthropic request failed: {e}") from e

        logger.debug(
            "api_response",
            model=kwargs["model"],
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            stop_reason=response.stop_reason,
        )

        text_parts: list[str] = []
        tool_calls: list[ToolCall] = []
        for block in response.content:
            if block.type == "text":
                text_parts.append(block.text)
            elif block.type == "tool_use":
                tool_calls.append(
                    ToolCall(
                        id=block.id,
                        name=block.name,
                        arguments=json.dumps(block.input, ensure_ascii=False),
                    )
                )

        return AIResponse(
            text="\n".join(text_parts).strip(),
            tool_calls=tool_calls,
            input_tokens=response.usage.input_tokens,
            output_tokens=response.usage.output_tokens,
            raw=response,
        )
