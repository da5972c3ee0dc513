"""Stock availability, decrement and restock."""

import logging
from collections import Counter
from typing import Iterable

from sqlalchemy.engine import Connection

from .config import DEFAULT_LOW_STOCK_THRESHOLD
from .database import Database
from .errors import InsufficientStockError, ValidationError
from .models import OrderItem, Plant
from .plant_store import PlantStore
from .utils import parse_int

logger = logging.getLogger(__name__)


def _demand(items: Iterable[OrderItem]) -> Counter:
    """Total requested units per plant; two lines for one plant add up."""
    demand: Counter = Counter()
    for item in items:
        demand[item.plant_id] += item.quantity
    return demand


class InventoryLedger:
    """
    Owns every change to plants.quantity.

    The methods taking a `conn` run inside a transaction the caller already
    holds, so a stock check and the decrement that follows it commit or roll
    back together with the caller's other writes.
    """

    def __init__(self, db: Database, low_stock_threshold: int = DEFAULT_LOW_STOCK_THRESHOLD):
        self.db = db
        self.low_stock_threshold = low_stock_threshold

    # --- Inside a caller transaction ---

    def check_availability(self, conn: Connection, items: Iterable[OrderItem]) -> dict[str, Plant]:
        """
        Lock and read every plant the items need.

        Returns:
            Locked plants by ID.

        Raises:
            InsufficientStockError: For the first plant that is missing or
                cannot cover its requested quantity. Nothing is changed.
        """
        store = PlantStore(conn)
        locked: dict[str, Plant] = {}
        for plant_id, requested in _demand(items).items():
            plant = store.get_plant(plant_id, for_update=True)
            if plant is None:
                raise InsufficientStockError(plant_id, requested)
            if not plant.is_available(requested):
                raise InsufficientStockError(
                    plant_id, requested, available=plant.quantity, plant_name=plant.name
                )
            locked[plant_id] = plant
        return locked

    def decrement(self, conn: Connection, items: Iterable[OrderItem]) -> None:
        """
        Take the items' quantities out of stock.

        Raises:
            InsufficientStockError: If a guarded UPDATE matched no row. The
                caller's transaction must then be rolled back.
        """
        store = PlantStore(conn)
        for plant_id, amount in _demand(items).items():
            if not store.decrement(plant_id, amount):
                plant = store.get_plant(plant_id)
                raise InsufficientStockError(
                    plant_id,
                    amount,
                    available=plant.quantity if plant else None,
                    plant_name=plant.name if plant else None,
                )
            logger.info("Stock for %s decremented by %d", plant_id, amount)

    def release(self, conn: Connection, items: Iterable[OrderItem]) -> None:
        """Put the items' quantities back into stock."""
        store = PlantStore(conn)
        for plant_id, amount in _demand(items).items():
            if store.increment(plant_id, amount):
                logger.info("Stock for %s restored by %d", plant_id, amount)
            else:
                logger.warning("Cannot restore stock for missing plant %s", plant_id)

    # --- Standalone operations ---

    def is_available(self, plant_id: str, requested: int) -> bool:
        with self.db.transaction("check availability") as conn:
            plant = PlantStore(conn).get_plant(plant_id)
        return plant is not None and plant.is_available(requested)

    def restock(self, plant_id: str, amount: int) -> Plant:
        """
        Add `amount` units to a plant.

        Raises:
            ValidationError: If amount is not positive.
            PlantNotFoundError: If plant doesn't exist.
        """
        amount = parse_int(amount, "restock amount")
        if amount <= 0:
            raise ValidationError(f"Restock amount must be greater than 0, got {amount}")
        with self.db.transaction("restock") as conn:
            store = PlantStore(conn)
            store.require_plant(plant_id, for_update=True)
            store.increment(plant_id, amount)
            plant = store.require_plant(plant_id)
        logger.info("Restocked %s by %d (now %d)", plant_id, amount, plant.quantity)
        return plant

    def set_quantity(self, plant_id: str, quantity: int) -> Plant:
        """
        Overwrite a plant's stock level.

        Raises:
            ValidationError: If quantity is negative.
            PlantNotFoundError: If plant doesn't exist.
        """
        quantity = parse_int(quantity)
        if quantity < 0:
            raise ValidationError(f"Quantity cannot be negative, got {quantity}")
        with self.db.transaction("set quantity") as conn:
            store = PlantStore(conn)
            plant = store.require_plant(plant_id, for_update=True)
            store.set_quantity(plant_id, quantity)
        plant.quantity = quantity
        logger.info("Stock for %s set to %d", plant_id, quantity)
        return plant

    def low_stock(self, threshold: int | None = None) -> list[Plant]:
        """Plants below `threshold` units (defaults to the configured threshold)."""
        if threshold is None:
            threshold = self.low_stock_threshold
        threshold = parse_int(threshold, "threshold")
        if threshold < 0:
            raise ValidationError(f"Threshold cannot be negative, got {threshold}")
        with self.db.transaction("low stock") as conn:
            return PlantStore(conn).low_stock(threshold)
