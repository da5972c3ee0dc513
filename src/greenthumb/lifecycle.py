"""Order status state machine."""

from enum import Enum


class OrderStatus(str, Enum):
    """Closed set of order statuses."""

    PENDING = "Pending"
    PROCESSING = "Processing"
    SHIPPED = "Shipped"
    DELIVERED = "Delivered"
    CANCELLED = "Cancelled"
    RETURNED = "Returned"

    def __str__(self) -> str:
        return self.value


INITIAL_STATUS = OrderStatus.PENDING

# current -> allowed next
ALLOWED_TRANSITIONS: dict[OrderStatus, frozenset[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.PROCESSING, OrderStatus.CANCELLED}),
    OrderStatus.PROCESSING: frozenset({OrderStatus.SHIPPED, OrderStatus.CANCELLED}),
    OrderStatus.SHIPPED: frozenset({OrderStatus.DELIVERED, OrderStatus.RETURNED}),
    OrderStatus.DELIVERED: frozenset({OrderStatus.RETURNED}),
    OrderStatus.CANCELLED: frozenset(),
    OrderStatus.RETURNED: frozenset(),
}

TERMINAL_STATUSES: frozenset[OrderStatus] = frozenset(
    status for status, allowed in ALLOWED_TRANSITIONS.items() if not allowed
)

CANCELLABLE_STATUSES = frozenset({OrderStatus.PENDING, OrderStatus.PROCESSING})
RETURNABLE_STATUSES = frozenset({OrderStatus.DELIVERED})


def parse_status(value: "OrderStatus | str | None") -> OrderStatus | None:
    """
    Coerce a status value to OrderStatus.

    Accepts enum members and their string values ("Pending"), case-insensitively.
    Returns None for None or anything outside the closed set.
    """
    if value is None:
        return None
    if isinstance(value, OrderStatus):
        return value
    if not isinstance(value, str):
        return None
    wanted = value.strip().lower()
    for status in OrderStatus:
        if status.value.lower() == wanted:
            return status
    return None


def allowed_next(current: OrderStatus) -> frozenset[OrderStatus]:
    """Statuses reachable from `current` in one step."""
    return ALLOWED_TRANSITIONS.get(current, frozenset())


def is_valid_transition(
    current: "OrderStatus | str | None", new: "OrderStatus | str | None"
) -> bool:
    """True if the table allows moving from `current` to `new`."""
    current_status = parse_status(current)
    new_status = parse_status(new)
    if current_status is None or new_status is None:
        return False
    return new_status in allowed_next(current_status)


def is_terminal(status: "OrderStatus | str | None") -> bool:
    parsed = parse_status(status)
    return parsed in TERMINAL_STATUSES
