"""Order processing and status management."""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy.engine import Connection

from .database import Database
from .errors import (
    AccessDeniedError,
    InsufficientStockError,
    InvalidStatusError,
    InvalidTransitionError,
    OrderNotCancellableError,
    OrderNotReturnableError,
    ValidationError,
)
from .inventory import InventoryLedger
from .lifecycle import OrderStatus, parse_status
from .models import Order
from .order_store import OrderStore
from .utils import is_valid_order_id

logger = logging.getLogger(__name__)


def _check_order_id(order_id: str) -> None:
    if not is_valid_order_id(order_id):
        raise ValidationError(f"Invalid order ID: {order_id!r}")


class OrderService:
    """
    Moves orders through their lifecycle.

    Every status change is one transaction: the order row is re-read under
    lock, the state machine decides, and any stock movement that goes with
    the change commits or rolls back together with the new status.
    """

    def __init__(self, db: Database, ledger: InventoryLedger | None = None):
        self.db = db
        self.ledger = ledger or InventoryLedger(db)

    # --- Queries ---

    def get_order(self, order_id: str) -> Order:
        """
        Get an order with its items and plant details.

        Raises:
            ValidationError: If order_id is not an order ID.
            OrderNotFoundError: If order doesn't exist.
        """
        _check_order_id(order_id)
        with self.db.transaction("get order") as conn:
            return OrderStore(conn).require_order(order_id)

    def list_orders(
        self, status: "OrderStatus | str | None" = None, customer_id: str | None = None
    ) -> list[Order]:
        """List orders newest first, optionally filtered."""
        wanted = None
        if status is not None:
            wanted = parse_status(status)
            if wanted is None:
                raise ValidationError(f"Unknown order status: {status!r}")
        with self.db.transaction("list orders") as conn:
            return OrderStore(conn).list_orders(status=wanted, customer_id=customer_id)

    def order_history(self, customer_id: str) -> list[Order]:
        return self.list_orders(customer_id=customer_id)

    def orders_by_status(self, status: "OrderStatus | str") -> list[Order]:
        return self.list_orders(status=status)

    def recent_orders(self, days: int = 7) -> list[Order]:
        since = datetime.now(timezone.utc) - timedelta(days=days)
        with self.db.transaction("recent orders") as conn:
            return OrderStore(conn).list_orders(since=since)

    # --- Lifecycle ---

    def process_order(self, order_id: str) -> Order:
        """
        Move a Pending order to Processing and take its items out of stock.

        Stock for every line is checked before anything is written; if any
        plant falls short the order stays Pending and no stock changes.

        Raises:
            ValidationError: If order_id is not an order ID.
            OrderNotFoundError: If order doesn't exist.
            InvalidStatusError: If the order is not Pending.
            InsufficientStockError: If a plant cannot cover its line.
        """
        _check_order_id(order_id)
        try:
            with self.db.transaction("process order") as conn:
                order = OrderStore(conn).require_order(order_id, for_update=True)
                if order.status is not OrderStatus.PENDING:
                    raise InvalidStatusError(
                        order_id, order.status.value, "Only pending orders can be processed"
                    )
                self._enter_processing(conn, order)
        except InsufficientStockError as e:
            logger.warning("Order %s not processed: %s", order_id, e)
            raise
        logger.info("Order %s processed", order_id)
        return order

    def update_order_status(self, order_id: str, status: "OrderStatus | str") -> Order:
        """
        Apply a staff/admin status change.

        A move to Processing takes stock exactly like process_order. Cancelling
        a Processing order puts its stock back.

        Raises:
            ValidationError: If `status` is not a known status.
            OrderNotFoundError: If order doesn't exist.
            InvalidTransitionError: If the state machine rejects the change.
            InsufficientStockError: On a move to Processing without stock.
        """
        target = parse_status(status)
        if target is None:
            raise ValidationError(f"Unknown order status: {status!r}")
        _check_order_id(order_id)

        with self.db.transaction("update order status") as conn:
            store = OrderStore(conn)
            order = store.require_order(order_id, for_update=True)
            current = order.status
            if target is OrderStatus.PROCESSING and current is OrderStatus.PENDING:
                self._enter_processing(conn, order)
            else:
                if not order.request_transition(target):
                    logger.warning(
                        "Rejected status change for order %s: %s -> %s", order_id, current, target
                    )
                    raise InvalidTransitionError(current.value, target.value)
                if target is OrderStatus.CANCELLED and current is OrderStatus.PROCESSING:
                    self.ledger.release(conn, order.order_items)
                store.set_status(order_id, order.status)
        logger.info("Order %s status changed from %s to %s", order_id, current, target)
        return order

    def cancel_order(self, order_id: str, customer_id: str | None = None) -> Order:
        """
        Cancel a Pending or Processing order.

        Args:
            order_id: Order ID.
            customer_id: When given, the order must belong to this customer.

        Raises:
            OrderNotFoundError: If order doesn't exist.
            AccessDeniedError: If the order belongs to someone else.
            OrderNotCancellableError: If the order is past Processing.
        """
        _check_order_id(order_id)
        with self.db.transaction("cancel order") as conn:
            store = OrderStore(conn)
            order = store.require_order(order_id, for_update=True)
            self._check_owner(order, customer_id)
            if not order.can_be_cancelled():
                raise OrderNotCancellableError(order_id, order.status.value)
            previous = order.status
            order.request_transition(OrderStatus.CANCELLED)
            if previous is OrderStatus.PROCESSING:
                self.ledger.release(conn, order.order_items)
            store.set_status(order_id, order.status)
        logger.info("Order %s cancelled (was %s)", order_id, previous)
        return order

    def return_order(self, order_id: str, customer_id: str | None = None) -> Order:
        """
        Mark a Delivered order as Returned. Stock is not restored.

        Raises:
            OrderNotFoundError: If order doesn't exist.
            AccessDeniedError: If the order belongs to someone else.
            OrderNotReturnableError: If the order is not Delivered.
        """
        _check_order_id(order_id)
        with self.db.transaction("return order") as conn:
            store = OrderStore(conn)
            order = store.require_order(order_id, for_update=True)
            self._check_owner(order, customer_id)
            if not order.can_be_returned():
                raise OrderNotReturnableError(order_id, order.status.value)
            order.request_transition(OrderStatus.RETURNED)
            store.set_status(order_id, order.status)
        logger.info("Order %s returned", order_id)
        return order

    def _enter_processing(self, conn: Connection, order: Order) -> None:
        # Check every line first so a shortfall leaves nothing half-applied.
        self.ledger.check_availability(conn, order.order_items)
        current = order.status
        if not order.request_transition(OrderStatus.PROCESSING):
            raise InvalidTransitionError(current.value, OrderStatus.PROCESSING.value)
        OrderStore(conn).set_status(order.order_id, order.status)
        self.ledger.decrement(conn, order.order_items)

    @staticmethod
    def _check_owner(order: Order, customer_id: str | None) -> None:
        if customer_id is not None and order.customer_id != customer_id:
            logger.warning(
                "Customer %s denied access to order %s", customer_id, order.order_id
            )
            raise AccessDeniedError("You can only manage your own orders.")
