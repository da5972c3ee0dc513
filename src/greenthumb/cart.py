"""Customer shopping carts and checkout."""

import logging
import threading
from decimal import Decimal

from .database import Database
from .errors import (
    CartItemNotFoundError,
    EmptyCartError,
    InsufficientStockError,
)
from .inventory import InventoryLedger
from .models import ZERO, Order, OrderItem, Plant, to_money
from .order_store import OrderStore
from .plant_store import PlantStore
from .utils import parse_int, parse_quantity

logger = logging.getLogger(__name__)


class ShoppingCart:
    """
    In-memory staging area for one customer's order.

    Lines are kept per plant; adding a plant that is already in the cart
    adds to its quantity. Nothing touches the database until place_order.
    """

    def __init__(self, db: Database, customer_id: str, ledger: InventoryLedger | None = None):
        self.db = db
        self.customer_id = customer_id
        self.ledger = ledger or InventoryLedger(db)
        self._lines: dict[str, OrderItem] = {}
        self._lock = threading.RLock()

    def _load_plant(self, plant_id: str) -> Plant:
        with self.db.transaction("load plant") as conn:
            return PlantStore(conn).require_plant(plant_id)

    def add_to_cart(self, plant_id: str, quantity: int) -> OrderItem:
        """
        Add `quantity` units of a plant.

        Raises:
            ValidationError: If quantity is not positive.
            PlantNotFoundError: If plant doesn't exist.
            InsufficientStockError: If stock can't cover the cart's total
                quantity for this plant.
        """
        quantity = parse_quantity(quantity, allow_zero=False)
        plant = self._load_plant(plant_id)
        with self._lock:
            line = self._lines.get(plant_id)
            wanted = quantity + (line.quantity if line else 0)
            if not plant.is_available(wanted):
                raise InsufficientStockError(
                    plant_id, wanted, available=plant.quantity, plant_name=plant.name
                )
            if line is None:
                line = OrderItem.for_plant(plant, quantity)
                self._lines[plant_id] = line
            else:
                line.plant = plant
                line.quantity = wanted
        logger.debug("Cart %s: %s x%d", self.customer_id, plant_id, line.quantity)
        return line

    def remove_from_cart(self, plant_id: str) -> OrderItem:
        """
        Raises:
            CartItemNotFoundError: If the plant isn't in the cart.
        """
        with self._lock:
            try:
                return self._lines.pop(plant_id)
            except KeyError:
                raise CartItemNotFoundError(plant_id)

    def update_cart_item_quantity(self, plant_id: str, quantity: int) -> OrderItem | None:
        """
        Set a line's quantity. Zero or less removes the line and returns None.

        Raises:
            ValidationError: If quantity is not a whole number.
            CartItemNotFoundError: If the plant isn't in the cart.
            InsufficientStockError: If stock can't cover the new quantity.
        """
        quantity = parse_int(quantity)
        with self._lock:
            if plant_id not in self._lines:
                raise CartItemNotFoundError(plant_id)
            if quantity <= 0:
                del self._lines[plant_id]
                return None
        plant = self._load_plant(plant_id)
        if not plant.is_available(quantity):
            raise InsufficientStockError(
                plant_id, quantity, available=plant.quantity, plant_name=plant.name
            )
        with self._lock:
            line = self._lines.get(plant_id)
            if line is None:
                raise CartItemNotFoundError(plant_id)
            line.plant = plant
            line.quantity = quantity
            return line

    @property
    def items(self) -> list[OrderItem]:
        with self._lock:
            return list(self._lines.values())

    def total(self) -> Decimal:
        return to_money(sum((line.subtotal for line in self.items), ZERO))

    def clear(self) -> None:
        with self._lock:
            self._lines.clear()

    @property
    def is_empty(self) -> bool:
        return not self._lines

    @property
    def item_count(self) -> int:
        return len(self._lines)

    def place_order(self) -> Order:
        """
        Turn the cart into a Pending order.

        Stock is re-checked and the order and all of its items are written in
        one transaction. The cart is cleared only after the commit; on any
        failure nothing is stored and the cart is left as it was.

        Raises:
            EmptyCartError: If the cart has no lines.
            InsufficientStockError: If stock ran out since items were added.
        """
        with self._lock:
            if self.is_empty:
                raise EmptyCartError()
            lines = [line.copy() for line in self._lines.values()]
            order = Order.create(self.customer_id)
            try:
                with self.db.transaction("place order") as conn:
                    self.ledger.check_availability(conn, lines)
                    store = OrderStore(conn)
                    for line in lines:
                        order.add_order_item(line)
                    store.insert_order(order)
                    for item in order.order_items:
                        store.insert_order_item(item)
            except InsufficientStockError as e:
                logger.warning("Checkout failed for customer %s: %s", self.customer_id, e)
                raise
            self._lines.clear()
        logger.info(
            "Order %s placed by customer %s (total %s)",
            order.order_id,
            self.customer_id,
            order.total_amount,
        )
        return order

    def to_dict(self) -> dict:
        return {
            "customer_id": self.customer_id,
            "items": [line.to_dict() for line in self.items],
            "total": str(self.total()),
        }


class CartRegistry:
    """One cart per customer, shared across API worker threads."""

    def __init__(self, db: Database):
        self.db = db
        self._carts: dict[str, ShoppingCart] = {}
        self._lock = threading.Lock()

    def cart_for(self, customer_id: str) -> ShoppingCart:
        with self._lock:
            cart = self._carts.get(customer_id)
            if cart is None:
                cart = ShoppingCart(self.db, customer_id)
                self._carts[customer_id] = cart
            return cart

    def discard(self, customer_id: str) -> None:
        with self._lock:
            self._carts.pop(customer_id, None)

    def release(self, customer_id: str) -> bool:
        """Drop a customer's cart if it is empty, e.g. after checkout."""
        with self._lock:
            cart = self._carts.get(customer_id)
            if cart is None or not cart.is_empty:
                return False
            del self._carts[customer_id]
            return True

    def __len__(self) -> int:
        return len(self._carts)
