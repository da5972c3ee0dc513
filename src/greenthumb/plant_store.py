"""Plant storage for greenthumb."""

from decimal import Decimal
from typing import Any

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.engine import Connection

from .database import order_items, plants
from .errors import PlantNotFoundError
from .models import ZERO, Plant


def _row_to_plant(row: Any) -> Plant:
    return Plant(
        plant_id=row.plant_id,
        name=row.name,
        type=row.type,
        price=row.price,
        quantity=row.quantity,
        description=row.description or "",
    )


class PlantStore:
    """Reads and writes the plants table on one connection."""

    def __init__(self, conn: Connection):
        self.conn = conn

    def get_plant(self, plant_id: str, for_update: bool = False) -> Plant | None:
        """
        Get a plant by ID.

        Args:
            plant_id: Plant ID.
            for_update: Lock the row until the transaction ends (ignored on
                SQLite, where the transaction already holds the write lock).
        """
        stmt = select(plants).where(plants.c.plant_id == plant_id)
        if for_update:
            stmt = stmt.with_for_update()
        row = self.conn.execute(stmt).first()
        return _row_to_plant(row) if row is not None else None

    def require_plant(self, plant_id: str, for_update: bool = False) -> Plant:
        """
        Get a plant by ID.

        Raises:
            PlantNotFoundError: If plant doesn't exist.
        """
        plant = self.get_plant(plant_id, for_update=for_update)
        if plant is None:
            raise PlantNotFoundError(plant_id)
        return plant

    def exists(self, plant_id: str) -> bool:
        stmt = select(plants.c.plant_id).where(plants.c.plant_id == plant_id)
        return self.conn.execute(stmt).first() is not None

    def list_plants(self) -> list[Plant]:
        stmt = select(plants).order_by(plants.c.name, plants.c.plant_id)
        return [_row_to_plant(row) for row in self.conn.execute(stmt)]

    def available_plants(self) -> list[Plant]:
        stmt = select(plants).where(plants.c.quantity > 0).order_by(plants.c.name)
        return [_row_to_plant(row) for row in self.conn.execute(stmt)]

    def search(
        self,
        name: str | None = None,
        plant_type: str | None = None,
        min_price: Decimal | None = None,
        max_price: Decimal | None = None,
    ) -> list[Plant]:
        """Filter plants; name and type match case-insensitive substrings."""
        stmt = select(plants)
        if name:
            stmt = stmt.where(func.lower(plants.c.name).contains(name.lower()))
        if plant_type:
            stmt = stmt.where(func.lower(plants.c.type).contains(plant_type.lower()))
        if min_price is not None:
            stmt = stmt.where(plants.c.price >= min_price)
        if max_price is not None:
            stmt = stmt.where(plants.c.price <= max_price)
        stmt = stmt.order_by(plants.c.name)
        return [_row_to_plant(row) for row in self.conn.execute(stmt)]

    def by_type(self, plant_type: str) -> list[Plant]:
        stmt = (
            select(plants)
            .where(func.lower(plants.c.type) == plant_type.lower())
            .order_by(plants.c.name)
        )
        return [_row_to_plant(row) for row in self.conn.execute(stmt)]

    def low_stock(self, threshold: int) -> list[Plant]:
        """Plants with quantity strictly below `threshold`, lowest first."""
        stmt = (
            select(plants)
            .where(plants.c.quantity < threshold)
            .order_by(plants.c.quantity, plants.c.name)
        )
        return [_row_to_plant(row) for row in self.conn.execute(stmt)]

    def insert_plant(self, plant: Plant) -> None:
        self.conn.execute(insert(plants).values(**self._values(plant)))

    def update_plant(self, plant: Plant) -> bool:
        values = self._values(plant)
        del values["plant_id"]
        result = self.conn.execute(
            update(plants).where(plants.c.plant_id == plant.plant_id).values(**values)
        )
        return result.rowcount > 0

    def delete_plant(self, plant_id: str) -> bool:
        result = self.conn.execute(delete(plants).where(plants.c.plant_id == plant_id))
        return result.rowcount > 0

    def set_quantity(self, plant_id: str, quantity: int) -> bool:
        result = self.conn.execute(
            update(plants).where(plants.c.plant_id == plant_id).values(quantity=quantity)
        )
        return result.rowcount > 0

    def decrement(self, plant_id: str, amount: int) -> bool:
        """
        Take `amount` units from stock.

        The UPDATE only matches while enough stock remains, so the quantity can
        never go negative. Returns False when no row was changed.
        """
        result = self.conn.execute(
            update(plants)
            .where(plants.c.plant_id == plant_id)
            .where(plants.c.quantity >= amount)
            .values(quantity=plants.c.quantity - amount)
        )
        return result.rowcount == 1

    def increment(self, plant_id: str, amount: int) -> bool:
        result = self.conn.execute(
            update(plants)
            .where(plants.c.plant_id == plant_id)
            .values(quantity=plants.c.quantity + amount)
        )
        return result.rowcount == 1

    def count_references(self, plant_id: str) -> int:
        """Number of order items pointing at this plant."""
        stmt = select(func.count()).select_from(order_items).where(
            order_items.c.plant_id == plant_id
        )
        return self.conn.execute(stmt).scalar_one()

    def stock_value(self) -> Decimal:
        """Sum of price x quantity over the whole catalogue."""
        # Summed here rather than in SQL; SQLite would hand back a float.
        return sum((p.total_price(p.quantity) for p in self.list_plants()), ZERO)

    def count_plants(self, available_only: bool = False) -> int:
        stmt = select(func.count()).select_from(plants)
        if available_only:
            stmt = stmt.where(plants.c.quantity > 0)
        return self.conn.execute(stmt).scalar_one()

    @staticmethod
    def _values(plant: Plant) -> dict[str, Any]:
        return {
            "plant_id": plant.plant_id,
            "name": plant.name,
            "type": plant.type,
            "price": plant.price,
            "quantity": plant.quantity,
            "description": plant.description,
        }
