"""Handoff tool: lets the model transfer the conversation to a human."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from handoff_bot.ai.tools.base import Tool, ToolContext
from handoff_bot.core.types import HandoffReason

if TYPE_CHECKING:
    from handoff_bot.handoff.controller import HandoffController


class HumanAgentTool(Tool):
    def __init__(self, controller: HandoffController):
        self._controller = controller

    @property
    def name(self) -> str:
        return "request_human_agent"

    @property
    def description(self) -> str:
        return "Transfer the conversation to a human agent"

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "reason": {
                    "type": "string",
                    "description": "Reason for handoff",
                },
            },
            "required": ["reason"],
        }

    @property
    def terminates_cycle(self) -> bool:
        return True

    async def execute(self, args: dict[str, Any], context: ToolContext) -> dict[str, Any]:
        reason = str(args.get("reason") or "").strip() or HandoffReason.CUSTOMER_REQUEST
        await self._controller.trigger_handoff(context.conversation, context.settings, reason)
        return {"success": True, "message": "Handoff initiated"}
