"""Order status lookup tool."""

from __future__ import annotations

from typing import Any

from handoff_bot.ai.tools.base import Tool, ToolContext
from handoff_bot.errors import ToolExecutionError
from handoff_bot.storage.base import OrderLookup

STATUS_LABELS_AR = {
    "created": "تم الإنشاء",
    "processing": "قيد المعالجة",
    "pending_payment": "بانتظار الدفع",
    "paid": "تم الدفع",
    "ready_to_ship": "جاهز للشحن",
    "shipped": "تم الشحن",
    "delivered": "تم التسليم",
    "completed": "مكتمل",
    "cancelled": "ملغي",
    "refunded": "مسترد",
}

STATUS_LABELS_EN = {
    "created": "Created",
    "processing": "Processing",
    "pending_payment": "Awaiting payment",
    "paid": "Paid",
    "ready_to_ship": "Ready to ship",
    "shipped": "Shipped",
    "delivered": "Delivered",
    "completed": "Completed",
    "cancelled": "Cancelled",
    "refunded": "Refunded",
}

_NOT_FOUND_AR = "لم يتم العثور على طلب بهذا الرقم"
_NOT_FOUND_EN = "No order was found with this number"


def status_label(status: str, english: bool = False) -> str:
    """Localized label for an order status. Unknown statuses are returned as-is."""
    labels = STATUS_LABELS_EN if english else STATUS_LABELS_AR
    return labels.get(status, status)


class OrderStatusTool(Tool):
    """Looks up an order by external id or reference number."""

    def __init__(self, orders: OrderLookup):
        self._orders = orders

    @property
    def name(self) -> str:
        return "get_order_status"

    @property
    def description(self) -> str:
        return "Get order status by order ID or reference number"

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "order_id": {
                    "type": "string",
                    "description": "Order ID or reference",
                },
            },
            "required": ["order_id"],
        }

    async def execute(self, args: dict[str, Any], context: ToolContext) -> dict[str, Any]:
        order_id = str(args.get("order_id") or "").strip()
        if not order_id:
            raise ToolExecutionError(self.name, "order_id is required")

        conversation = context.conversation
        english = context.settings.is_english
        order = await self._orders.find_order(conversation.tenant_id, conversation.store_id, order_id)
        if order is None:
            return {"found": False, "message": _NOT_FOUND_EN if english else _NOT_FOUND_AR}

        return {
            "found": True,
            "order_id": order.external_order_id,
            "status": order.status,
            "status_label": status_label(order.status, english),
            "total": order.total_amount,
            "currency": order.currency,
            "has_shipping_info": bool(order.shipping_info),
            "shipping_info": order.shipping_info or None,
            "items_count": len(order.items),
        }
