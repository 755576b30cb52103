"""Order lookup used by the get_order_status tool."""

from __future__ import annotations

import json
from typing import Optional

import aiosqlite

from handoff_bot.core.models import Order
from handoff_bot.errors import DataAccessError
from handoff_bot.storage.base import OrderLookup
from handoff_bot.storage.database import Database


class OrderRepository(OrderLookup):
    def __init__(self, db: Database):
        self._db = db

    async def find_order(
        self, tenant_id: str, store_id: Optional[str], order_id: str
    ) -> Optional[Order]:
        """Find an order by external id or reference id.

        Lookups run in preference order and the first match wins:
        tenant+external id, tenant+reference id, then (when a store is
        known) store+external id, store+reference id. Orders synced from a
        store may have no tenant id, hence the store fallbacks.
        """
        lookups = [
            ("tenant_id", tenant_id, "external_order_id"),
            ("tenant_id", tenant_id, "reference_id"),
        ]
        if store_id:
            lookups += [
                ("store_id", store_id, "external_order_id"),
                ("store_id", store_id, "reference_id"),
            ]

        try:
            for owner_column, owner_value, id_column in lookups:
                cursor = await self._db.conn.execute(
                    f"SELECT * FROM orders WHERE {owner_column} = ? AND {id_column} = ? "
                    "ORDER BY id ASC LIMIT 1",
                    (owner_value, order_id),
                )
                row = await cursor.fetchone()
                if row is not None:
                    return self._row_to_order(row)
        except aiosqlite.Error as e:
            raise DataAccessError(f"Order lookup failed for {order_id}: {e}") from e
        return None

    async def add_order(self, order: Order) -> int:
        cursor = await self._db.conn.execute(
            """INSERT INTO orders
               (tenant_id, store_id, external_order_id, reference_id, status,
                total_amount, currency, shipping_info_json, items_json)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                order.tenant_id,
                order.store_id,
                order.external_order_id,
                order.reference_id,
                order.status,
                order.total_amount,
                order.currency,
                json.dumps(order.shipping_info, ensure_ascii=False) if order.shipping_info else None,
                json.dumps(order.items, ensure_ascii=False),
            ),
        )
        await self._db.conn.commit()
        return cursor.lastrowid  # type: ignore[return-value]

    @staticmethod
    def _row_to_order(row) -> Order:
        shipping = json.loads(row["shipping_info_json"]) if row["shipping_info_json"] else None
        return Order(
            id=row["id"],
            tenant_id=row["tenant_id"],
            store_id=row["store_id"],
            external_order_id=row["external_order_id"],
            reference_id=row["reference_id"],
            status=row["status"],
            total_amount=row["total_amount"],
            currency=row["currency"],
            shipping_info=shipping,
            items=json.loads(row["items_json"] or "[]"),
        )
