"""Tool registry for the functions advertised to the model."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from handoff_bot.ai.tools.base import Tool
from handoff_bot.log import get_logger

if TYPE_CHECKING:
    from handoff_bot.handoff.controller import HandoffController
    from handoff_bot.storage.base import OrderLookup

logger = get_logger(__name__)


class ToolRegistry:
    """Registry of all available tools."""

    def __init__(self) -> None:
        self._tools: dict[str, Tool] = {}

    def register(self, tool: Tool) -> None:
        self._tools[tool.name] = tool
        logger.debug("tool_registered", tool_name=tool.name)

    def get(self, name: str) -> Tool | None:
        return self._tools.get(name)

    def to_api_list(self) -> list[dict[str, Any]]:
        return [t.to_api_dict() for t in self._tools.values()]

    @classmethod
    def with_builtin_tools(cls, orders: OrderLookup, controller: HandoffController) -> ToolRegistry:
        """Registry holding exactly get_order_status and request_human_agent."""
        from handoff_bot.ai.tools.human_agent import HumanAgentTool
        from handoff_bot.ai.tools.order_status import OrderStatusTool

        registry = cls()
        registry.register(OrderStatusTool(orders))
        registry.register(HumanAgentTool(controller))
        return registry
