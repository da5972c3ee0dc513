"""Data models for greenthumb."""

import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal, ROUND_HALF_UP
from enum import Enum
from typing import Any, ClassVar

from .errors import ValidationError
from .lifecycle import (
    CANCELLABLE_STATUSES,
    INITIAL_STATUS,
    RETURNABLE_STATUSES,
    OrderStatus,
    allowed_next,
    parse_status,
)

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")
ZERO = Decimal("0.00")


def _utc_now() -> datetime:
    """Return the current UTC time."""
    return datetime.now(timezone.utc)


def generate_id(prefix: str) -> str:
    """Generate an opaque record ID such as 'order_1a2b3c4d'."""
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


def to_money(value: Any) -> Decimal:
    """Convert a price/amount to a two-place Decimal."""
    if isinstance(value, float):
        value = repr(value)
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


@dataclass
class Plant:
    """A plant stocked by the nursery."""

    plant_id: str
    name: str
    type: str
    price: Decimal
    quantity: int = 0  # on hand, never negative
    description: str = ""

    def __post_init__(self) -> None:
        self.price = to_money(self.price)

    def is_available(self, requested: int) -> bool:
        """True if `requested` units can be taken from stock."""
        return requested > 0 and self.quantity >= requested

    def update_quantity(self, amount: int) -> bool:
        """Add (or subtract, if negative) stock. Refuses to go below zero."""
        if self.quantity + amount < 0:
            return False
        self.quantity += amount
        return True

    def total_price(self, requested: int) -> Decimal:
        return to_money(self.price * requested)

    def snapshot(self) -> "Plant":
        """Copy used as the cached plant on order items."""
        return Plant(
            plant_id=self.plant_id,
            name=self.name,
            type=self.type,
            price=self.price,
            quantity=self.quantity,
            description=self.description,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "plant_id": self.plant_id,
            "name": self.name,
            "type": self.type,
            "price": str(self.price),
            "quantity": self.quantity,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Plant":
        return cls(
            plant_id=data["plant_id"],
            name=data["name"],
            type=data["type"],
            price=data["price"],
            quantity=data.get("quantity", 0),
            description=data.get("description") or "",
        )


class OrderItem:
    """
    One plant/quantity/subtotal line.

    The subtotal is recomputed from the attached plant whenever quantity or
    plant changes. Without a plant (e.g. a row loaded from storage) the last
    stored subtotal is kept. An item bound to an Order asks it to recompute
    its total after every such change.
    """

    def __init__(
        self,
        order_item_id: str,
        order_id: str | None,
        plant_id: str | None = None,
        quantity: int = 1,
        subtotal: Any = ZERO,
        plant: Plant | None = None,
    ):
        if quantity <= 0:
            raise ValidationError(f"Quantity must be greater than 0, got {quantity}")
        self.order_item_id = order_item_id
        self.order_id = order_id
        self.plant_id = plant.plant_id if plant is not None else plant_id
        self._quantity = quantity
        self._subtotal = to_money(subtotal)
        self._plant = plant
        self._owner: "Order | None" = None
        if plant is not None:
            self.calculate_subtotal()

    @classmethod
    def for_plant(cls, plant: Plant, quantity: int, order_id: str | None = None) -> "OrderItem":
        """Create a new line for `plant` with a generated item ID."""
        return cls(
            order_item_id=generate_id("item"),
            order_id=order_id,
            quantity=quantity,
            plant=plant.snapshot(),
        )

    @property
    def quantity(self) -> int:
        return self._quantity

    @quantity.setter
    def quantity(self, value: int) -> None:
        if value <= 0:
            raise ValidationError(f"Quantity must be greater than 0, got {value}")
        self._quantity = value
        self._changed()

    @property
    def plant(self) -> Plant | None:
        return self._plant

    @plant.setter
    def plant(self, plant: Plant | None) -> None:
        self._plant = plant
        if plant is not None:
            self.plant_id = plant.plant_id
        self._changed()

    @property
    def subtotal(self) -> Decimal:
        return self._subtotal

    @subtotal.setter
    def subtotal(self, value: Any) -> None:
        self._subtotal = to_money(value)
        self._notify_owner()

    @property
    def unit_price(self) -> Decimal:
        if self._plant is not None:
            return self._plant.price
        return to_money(self._subtotal / self._quantity)

    def cache_plant(self, plant: Plant) -> None:
        """Attach plant details for display without touching the stored subtotal."""
        self._plant = plant
        self.plant_id = plant.plant_id

    def calculate_subtotal(self) -> Decimal:
        """Recompute subtotal from the attached plant, if any."""
        if self._plant is not None:
            self._subtotal = to_money(self._plant.price * self._quantity)
        return self._subtotal

    def update_quantity(self, new_quantity: int) -> bool:
        """Set a new positive quantity. Returns False for zero or negative values."""
        if new_quantity <= 0:
            return False
        self.quantity = new_quantity
        return True

    def is_valid(self) -> bool:
        return bool(
            self.order_item_id
            and self.order_id
            and self.plant_id
            and self._quantity > 0
            and self._subtotal >= 0
        )

    def copy(self) -> "OrderItem":
        """Unbound copy with the same values."""
        item = OrderItem(
            order_item_id=self.order_item_id,
            order_id=self.order_id,
            plant_id=self.plant_id,
            quantity=self._quantity,
            subtotal=self._subtotal,
        )
        item._plant = self._plant
        return item

    def _changed(self) -> None:
        self.calculate_subtotal()
        self._notify_owner()

    def _notify_owner(self) -> None:
        if self._owner is not None:
            self._owner.calculate_total()

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "order_item_id": self.order_item_id,
            "order_id": self.order_id,
            "plant_id": self.plant_id,
            "quantity": self._quantity,
            "subtotal": str(self._subtotal),
            "unit_price": str(self.unit_price),
        }
        if self._plant is not None:
            result["plant_name"] = self._plant.name
        return result

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "OrderItem":
        return cls(
            order_item_id=data["order_item_id"],
            order_id=data.get("order_id"),
            plant_id=data["plant_id"],
            quantity=data["quantity"],
            subtotal=data.get("subtotal", ZERO),
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, OrderItem):
            return NotImplemented
        return self.order_item_id == other.order_item_id

    def __hash__(self) -> int:
        return hash(self.order_item_id)

    def __repr__(self) -> str:
        return (
            f"OrderItem(order_item_id={self.order_item_id!r}, plant_id={self.plant_id!r}, "
            f"quantity={self._quantity}, subtotal={self._subtotal})"
        )


@dataclass(eq=False)
class Order:
    """A customer order and its line items."""

    order_id: str
    customer_id: str
    order_date: datetime = field(default_factory=_utc_now)
    total_amount: Decimal = ZERO  # derived from items, not authoritative
    status: OrderStatus = INITIAL_STATUS
    order_items: list[OrderItem] = field(default_factory=list)

    def __post_init__(self) -> None:
        status = parse_status(self.status)
        if status is None:
            raise ValidationError(f"Unknown order status: {self.status!r}")
        self.status = status
        self.total_amount = to_money(self.total_amount)
        # Items loaded with the order keep the stored total until something changes.
        for item in self.order_items:
            item._owner = self

    @classmethod
    def create(cls, customer_id: str, items: list[OrderItem] | None = None) -> "Order":
        """Create a new Pending order with a generated ID."""
        order = cls(order_id=generate_id("order"), customer_id=customer_id)
        for item in items or []:
            order.add_order_item(item)
        return order

    def request_transition(self, new_status: "OrderStatus | str | None") -> bool:
        """
        Move to `new_status` if the transition table allows it.

        Returns False and leaves the order untouched for illegal jumps,
        same-status requests and values outside the status set.
        """
        target = parse_status(new_status)
        if target is None or target not in allowed_next(self.status):
            logger.debug(
                "Rejected transition %s -> %r for order %s", self.status, new_status, self.order_id
            )
            return False
        self.status = target
        return True

    def can_be_cancelled(self) -> bool:
        return self.status in CANCELLABLE_STATUSES

    def can_be_returned(self) -> bool:
        return self.status in RETURNABLE_STATUSES

    def add_order_item(self, item: OrderItem | None) -> None:
        """Attach an item. An item bound to another order is moved off it first."""
        if item is None or item._owner is self:
            return
        if item._owner is not None:
            item._owner.remove_order_item(item)
            item.order_id = self.order_id
        elif item.order_id is None:
            item.order_id = self.order_id
        item._owner = self
        self.order_items.append(item)
        self.calculate_total()

    def remove_order_item(self, item: OrderItem) -> bool:
        try:
            self.order_items.remove(item)
        except ValueError:
            return False
        item._owner = None
        self.calculate_total()
        return True

    def calculate_total(self) -> Decimal:
        total = sum((item.subtotal for item in self.order_items), ZERO)
        self.total_amount = to_money(total)
        return self.total_amount

    @property
    def item_count(self) -> int:
        return len(self.order_items)

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "customer_id": self.customer_id,
            "order_date": self.order_date.isoformat(),
            "total_amount": str(self.total_amount),
            "status": self.status.value,
            "order_items": [item.to_dict() for item in self.order_items],
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Order):
            return NotImplemented
        return self.order_id == other.order_id

    def __hash__(self) -> int:
        return hash(self.order_id)


# Users


class Role(str, Enum):
    ADMIN = "Admin"
    STAFF = "Staff"
    CUSTOMER = "Customer"

    def __str__(self) -> str:
        return self.value


def parse_role(value: "Role | str | None") -> Role | None:
    if isinstance(value, Role):
        return value
    if not isinstance(value, str):
        return None
    wanted = value.strip().lower()
    for role in Role:
        if role.value.lower() == wanted:
            return role
    return None


@dataclass
class CustomerProfile:
    """Customer-only details stored in the customers table."""

    customer_id: str
    address: str | None = None
    phone: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "customer_id": self.customer_id,
            "address": self.address,
            "phone": self.phone,
        }


@dataclass
class AdminUser:
    role: ClassVar[Role] = Role.ADMIN

    user_id: str
    username: str
    password_hash: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"user_id": self.user_id, "username": self.username, "role": self.role.value}


@dataclass
class StaffUser:
    role: ClassVar[Role] = Role.STAFF

    user_id: str
    username: str
    password_hash: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {"user_id": self.user_id, "username": self.username, "role": self.role.value}


@dataclass
class CustomerUser:
    role: ClassVar[Role] = Role.CUSTOMER

    user_id: str
    username: str
    password_hash: str = ""
    profile: CustomerProfile | None = None

    @property
    def customer_id(self) -> str | None:
        return self.profile.customer_id if self.profile else None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "user_id": self.user_id,
            "username": self.username,
            "role": self.role.value,
        }
        if self.profile is not None:
            result["profile"] = self.profile.to_dict()
        return result


User = AdminUser | StaffUser | CustomerUser


def make_user(
    role: "Role | str",
    user_id: str,
    username: str,
    password_hash: str = "",
    profile: CustomerProfile | None = None,
) -> User:
    """Build the user variant for `role`."""
    parsed = parse_role(role)
    match parsed:
        case Role.ADMIN:
            return AdminUser(user_id=user_id, username=username, password_hash=password_hash)
        case Role.STAFF:
            return StaffUser(user_id=user_id, username=username, password_hash=password_hash)
        case Role.CUSTOMER:
            return CustomerUser(
                user_id=user_id,
                username=username,
                password_hash=password_hash,
                profile=profile,
            )
        case _:
            raise ValidationError(f"Invalid user role: {role}")
