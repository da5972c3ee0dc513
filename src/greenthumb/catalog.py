"""Plant catalogue management."""

import logging
from decimal import Decimal, InvalidOperation
from typing import Any

from .database import Database
from .errors import PlantInUseError, PlantNotFoundError, ValidationError
from .models import Plant
from .plant_store import PlantStore
from .utils import parse_price, parse_quantity, validate_plant_fields

logger = logging.getLogger(__name__)


class PlantCatalog:
    """Create, edit, remove and look up plants."""

    def __init__(self, db: Database):
        self.db = db

    def create_plant(
        self,
        plant_id: str,
        name: str,
        plant_type: str,
        price: Any,
        quantity: Any = 0,
        description: str = "",
    ) -> Plant:
        """
        Add a plant to the catalogue.

        Raises:
            ValidationError: If a field is malformed or the ID is taken.
        """
        validate_plant_fields(plant_id, name, plant_type, description)
        plant = Plant(
            plant_id=plant_id.strip(),
            name=name.strip(),
            type=plant_type.strip(),
            price=parse_price(price),
            quantity=parse_quantity(quantity),
            description=(description or "").strip(),
        )
        with self.db.transaction("create plant") as conn:
            store = PlantStore(conn)
            if store.exists(plant.plant_id):
                raise ValidationError(f"Plant ID already exists: {plant.plant_id}")
            store.insert_plant(plant)
        logger.info("Created plant %s (%s)", plant.plant_id, plant.name)
        return plant

    def update_plant(
        self,
        plant_id: str,
        name: str | None = None,
        plant_type: str | None = None,
        price: Any = None,
        quantity: Any = None,
        description: str | None = None,
    ) -> Plant:
        """
        Change the given fields of a plant; None leaves a field as is.

        Raises:
            PlantNotFoundError: If plant doesn't exist.
            ValidationError: If a new value is malformed.
        """
        with self.db.transaction("update plant") as conn:
            store = PlantStore(conn)
            plant = store.require_plant(plant_id, for_update=True)
            if name is not None:
                plant.name = name.strip()
            if plant_type is not None:
                plant.type = plant_type.strip()
            if description is not None:
                plant.description = description.strip()
            validate_plant_fields(plant.plant_id, plant.name, plant.type, plant.description)
            if price is not None:
                plant.price = parse_price(price)
            if quantity is not None:
                plant.quantity = parse_quantity(quantity)
            store.update_plant(plant)
        logger.info("Updated plant %s", plant_id)
        return plant

    def delete_plant(self, plant_id: str) -> None:
        """
        Remove a plant.

        Raises:
            PlantNotFoundError: If plant doesn't exist.
            PlantInUseError: If order items still reference it.
        """
        with self.db.transaction("delete plant") as conn:
            store = PlantStore(conn)
            if not store.exists(plant_id):
                raise PlantNotFoundError(plant_id)
            references = store.count_references(plant_id)
            if references:
                raise PlantInUseError(plant_id, references)
            store.delete_plant(plant_id)
        logger.info("Deleted plant %s", plant_id)

    def get_plant(self, plant_id: str) -> Plant:
        with self.db.transaction("get plant") as conn:
            return PlantStore(conn).require_plant(plant_id)

    def list_plants(self) -> list[Plant]:
        with self.db.transaction("list plants") as conn:
            return PlantStore(conn).list_plants()

    def available_plants(self) -> list[Plant]:
        """Plants with at least one unit in stock."""
        with self.db.transaction("available plants") as conn:
            return PlantStore(conn).available_plants()

    def search_plants(
        self,
        name: str | None = None,
        plant_type: str | None = None,
        min_price: Any = None,
        max_price: Any = None,
    ) -> list[Plant]:
        low = self._price_bound(min_price)
        high = self._price_bound(max_price)
        if low is not None and high is not None and low > high:
            raise ValidationError("Minimum price cannot exceed maximum price")
        with self.db.transaction("search plants") as conn:
            return PlantStore(conn).search(name, plant_type, low, high)

    def plants_by_type(self, plant_type: str) -> list[Plant]:
        with self.db.transaction("plants by type") as conn:
            return PlantStore(conn).by_type(plant_type)

    @staticmethod
    def _price_bound(value: Any) -> Decimal | None:
        if value is None or value == "":
            return None
        try:
            bound = Decimal(str(value))
        except InvalidOperation:
            raise ValidationError(f"Invalid price filter: {value!r}")
        if not bound.is_finite() or bound < 0:
            raise ValidationError(f"Invalid price filter: {value!r}")
        return bound
