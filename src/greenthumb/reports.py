"""Management reports as plain dictionaries."""

from datetime import datetime, timedelta, timezone
from typing import Any

from .config import DEFAULT_LOW_STOCK_THRESHOLD
from .database import Database
from .errors import ValidationError
from .order_store import OrderStore
from .plant_store import PlantStore
from .user_store import UserStore


def _since(days: int) -> datetime:
    if days < 0:
        raise ValidationError(f"Days cannot be negative, got {days}")
    return datetime.now(timezone.utc) - timedelta(days=days)


def inventory_report(db: Database, threshold: int = DEFAULT_LOW_STOCK_THRESHOLD) -> dict[str, Any]:
    """
    Stock overview.

    Returns dict with:
    - total_plants / available_plants: catalogue counts
    - low_stock_threshold and low_stock: plants below it (name, quantity)
    - total_stock_value: sum of price x quantity, as a string
    """
    with db.transaction("inventory report") as conn:
        store = PlantStore(conn)
        low = store.low_stock(threshold)
        report = {
            "total_plants": store.count_plants(),
            "available_plants": store.count_plants(available_only=True),
            "low_stock_threshold": threshold,
            "low_stock": [
                {"plant_id": p.plant_id, "name": p.name, "quantity": p.quantity} for p in low
            ],
            "total_stock_value": str(store.stock_value()),
        }
    return report


def order_report(db: Database, recent_days: int = 7) -> dict[str, Any]:
    """Order counts per status plus the number placed in the last `recent_days`."""
    since = _since(recent_days)
    with db.transaction("order report") as conn:
        store = OrderStore(conn)
        counts = store.status_counts()
        recent = store.count_orders(since=since)
    return {
        "total_orders": sum(counts.values()),
        "by_status": {status.value: count for status, count in counts.items()},
        "recent_days": recent_days,
        "recent_orders": recent,
    }


def sales_report(db: Database, recent_days: int = 30) -> dict[str, Any]:
    since = _since(recent_days)
    with db.transaction("sales report") as conn:
        store = OrderStore(conn)
        return {
            "total_orders": store.count_orders(),
            "recent_days": recent_days,
            "recent_orders": store.count_orders(since=since),
            # Cancelled orders never earned anything
            "total_sales": str(store.total_sales()),
        }


def user_report(db: Database) -> dict[str, Any]:
    with db.transaction("user report") as conn:
        counts = UserStore(conn).role_counts()
    return {
        "total_users": sum(counts.values()),
        "by_role": {role.value: count for role, count in counts.items()},
    }


REPORTS = {
    "inventory": inventory_report,
    "orders": order_report,
    "sales": sales_report,
    "users": user_report,
}
