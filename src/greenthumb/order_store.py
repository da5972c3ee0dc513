"""Order storage for greenthumb."""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

from sqlalchemy import func, insert, select, update
from sqlalchemy.engine import Connection

from .database import order_items, orders, plants
from .errors import OrderNotFoundError
from .lifecycle import OrderStatus
from .models import ZERO, Order, OrderItem, Plant, to_money


def _as_utc(value: datetime) -> datetime:
    # SQLite drops the offset on the way back out.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def _row_to_item(row: Any) -> OrderItem:
    item = OrderItem(
        order_item_id=row.order_item_id,
        order_id=row.order_id,
        plant_id=row.plant_id,
        quantity=row.quantity,
        subtotal=row.subtotal,
    )
    if row.name is not None:
        item.cache_plant(
            Plant(
                plant_id=row.plant_id,
                name=row.name,
                type=row.type,
                price=row.price,
                quantity=row.stock,
                description=row.description or "",
            )
        )
    return item


def _row_to_order(row: Any, items: list[OrderItem]) -> Order:
    return Order(
        order_id=row.order_id,
        customer_id=row.customer_id,
        order_date=_as_utc(row.order_date),
        total_amount=row.total_amount,
        status=row.status,
        order_items=items,
    )


class OrderStore:
    """Reads and writes the orders and order_items tables on one connection."""

    def __init__(self, conn: Connection):
        self.conn = conn

    # --- Reads ---

    def _items_for(self, order_ids: list[str]) -> dict[str, list[OrderItem]]:
        """Load line items (with plant snapshots) for several orders at once."""
        grouped: dict[str, list[OrderItem]] = {order_id: [] for order_id in order_ids}
        if not order_ids:
            return grouped
        stmt = (
            select(
                order_items,
                plants.c.name,
                plants.c.type,
                plants.c.price,
                plants.c.quantity.label("stock"),
                plants.c.description,
            )
            .select_from(order_items.outerjoin(plants))
            .where(order_items.c.order_id.in_(order_ids))
            .order_by(order_items.c.order_id, order_items.c.order_item_id)
        )
        for row in self.conn.execute(stmt):
            grouped[row.order_id].append(_row_to_item(row))
        return grouped

    def _load(self, stmt) -> list[Order]:
        rows = self.conn.execute(stmt).all()
        items = self._items_for([row.order_id for row in rows])
        return [_row_to_order(row, items[row.order_id]) for row in rows]

    def get_order(self, order_id: str, for_update: bool = False) -> Order | None:
        """Get an order with its line items, or None."""
        stmt = select(orders).where(orders.c.order_id == order_id)
        if for_update:
            stmt = stmt.with_for_update()
        found = self._load(stmt)
        return found[0] if found else None

    def require_order(self, order_id: str, for_update: bool = False) -> Order:
        """
        Get an order by ID.

        Raises:
            OrderNotFoundError: If order doesn't exist.
        """
        order = self.get_order(order_id, for_update=for_update)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    def list_orders(
        self,
        status: OrderStatus | None = None,
        customer_id: str | None = None,
        since: datetime | None = None,
    ) -> list[Order]:
        """List orders, newest first."""
        stmt = select(orders)
        if status is not None:
            stmt = stmt.where(orders.c.status == status.value)
        if customer_id is not None:
            stmt = stmt.where(orders.c.customer_id == customer_id)
        if since is not None:
            stmt = stmt.where(orders.c.order_date >= since)
        stmt = stmt.order_by(orders.c.order_date.desc(), orders.c.order_id)
        return self._load(stmt)

    def status_counts(self) -> dict[OrderStatus, int]:
        counts = {status: 0 for status in OrderStatus}
        stmt = select(orders.c.status, func.count()).group_by(orders.c.status)
        for status, count in self.conn.execute(stmt):
            counts[OrderStatus(status)] = count
        return counts

    def count_orders(self, since: datetime | None = None) -> int:
        stmt = select(func.count()).select_from(orders)
        if since is not None:
            stmt = stmt.where(orders.c.order_date >= since)
        return self.conn.execute(stmt).scalar_one()

    def total_sales(self) -> Decimal:
        """Sum of order totals, excluding cancelled orders."""
        stmt = select(orders.c.total_amount).where(
            orders.c.status != OrderStatus.CANCELLED.value
        )
        return sum((to_money(amount) for amount in self.conn.execute(stmt).scalars()), ZERO)

    # --- Writes ---

    def insert_order(self, order: Order) -> None:
        """Insert the order row only; items go through insert_order_item."""
        self.conn.execute(
            insert(orders).values(
                order_id=order.order_id,
                customer_id=order.customer_id,
                order_date=order.order_date,
                total_amount=order.total_amount,
                status=order.status.value,
            )
        )

    def insert_order_item(self, item: OrderItem) -> None:
        self.conn.execute(
            insert(order_items).values(
                order_item_id=item.order_item_id,
                order_id=item.order_id,
                plant_id=item.plant_id,
                quantity=item.quantity,
                subtotal=item.subtotal,
            )
        )

    def set_status(self, order_id: str, status: OrderStatus) -> bool:
        result = self.conn.execute(
            update(orders).where(orders.c.order_id == order_id).values(status=status.value)
        )
        return result.rowcount > 0
