"""Execution of model-requested tool calls."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Union

from handoff_bot.ai.tools.base import ToolContext
from handoff_bot.ai.tools.registry import ToolRegistry
from handoff_bot.config import AgentSettings
from handoff_bot.core.models import ConversationState, OrchestrationResult, ToolCall, ToolResult
from handoff_bot.core.types import HandoffReason, Intent
from handoff_bot.log import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class Continue:
    """Feed ``results`` back to the model for a follow-up completion."""

    results: list[ToolResult]


@dataclass(frozen=True, slots=True)
class Terminate:
    """A terminating tool fired; ``final_result`` is the reply for this cycle."""

    final_result: OrchestrationResult
    results: list[ToolResult] = field(default_factory=list)


ToolOutcome = Union[Continue, Terminate]


def _parse_arguments(raw: str) -> dict[str, Any]:
    try:
        args = json.loads(raw) if raw else {}
    except (json.JSONDecodeError, TypeError):
        return {}
    return args if isinstance(args, dict) else {}


class ToolExecutor:
    """Runs a batch of tool calls against the registry.

    Every call in the batch is executed even if an earlier one failed or
    requested a handoff; a failure only shapes that call's own result.
    """

    def __init__(self, registry: ToolRegistry):
        self._registry = registry

    @property
    def registry(self) -> ToolRegistry:
        return self._registry

    async def execute(
        self,
        tool_calls: list[ToolCall],
        conversation: ConversationState,
        settings: AgentSettings,
    ) -> ToolOutcome:
        context = ToolContext(conversation=conversation, settings=settings)
        results: list[ToolResult] = []
        terminate = False

        for call in tool_calls:
            tool = self._registry.get(call.name)
            if tool is None:
                logger.warning("unknown_tool_requested", tool=call.name)
                result: dict[str, Any] = {"error": "Unknown function"}
            else:
                terminate = terminate or tool.terminates_cycle
                try:
                    result = await tool.execute(_parse_arguments(call.arguments), context)
                except Exception as e:
                    logger.error("tool_execution_error", tool=call.name, error=str(e))
                    result = {"error": str(e) or type(e).__name__}
            results.append(ToolResult(tool_call_id=call.id, name=call.name, result=result))

        logger.info(
            "tools_executed",
            tools=[c.name for c in tool_calls],
            terminate=terminate,
        )
        if terminate:
            return Terminate(
                final_result=OrchestrationResult(
                    reply=settings.handoff_message,
                    confidence=1.0,
                    should_handoff=True,
                    intent=Intent.HANDOFF,
                    handoff_reason=HandoffReason.CUSTOMER_REQUEST,
                    tools_used=[c.name for c in tool_calls],
                ),
                results=results,
            )
        return Continue(results=results)
