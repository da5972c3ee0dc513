"""Input validation helpers for greenthumb."""

import re
from decimal import Decimal, InvalidOperation
from typing import Any

from .errors import ValidationError

USERNAME_PATTERN = re.compile(r"^[a-zA-Z0-9_]{3,20}$")
PLANT_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{1,20}$")
ORDER_ID_PATTERN = re.compile(r"^order_[a-zA-Z0-9_-]{1,20}$")
PHONE_PATTERN = re.compile(r"^[+]?[0-9]{10,15}$")

MIN_PRICE = Decimal("0.01")
MAX_PRICE = Decimal("99999.99")


def is_not_empty(value: str | None) -> bool:
    return value is not None and value.strip() != ""


def is_valid_length(value: str | None, min_length: int, max_length: int) -> bool:
    """Length check on the stripped value."""
    if value is None:
        return False
    return min_length <= len(value.strip()) <= max_length


def is_valid_username(username: str | None) -> bool:
    return is_not_empty(username) and bool(USERNAME_PATTERN.match(username.strip()))


def is_valid_password(password: str | None) -> bool:
    """6-50 characters with at least one letter or digit."""
    if not is_not_empty(password):
        return False
    trimmed = password.strip()
    if not 6 <= len(trimmed) <= 50:
        return False
    return re.search(r"[a-zA-Z0-9]", trimmed) is not None


def is_valid_phone(phone: str | None) -> bool:
    """Spaces and dashes are ignored: '+1 555-123-4567' is valid."""
    if not is_not_empty(phone):
        return False
    return bool(PHONE_PATTERN.match(re.sub(r"[\s-]", "", phone)))


def is_valid_plant_id(plant_id: str | None) -> bool:
    return is_not_empty(plant_id) and bool(PLANT_ID_PATTERN.match(plant_id.strip()))


def is_valid_order_id(order_id: str | None) -> bool:
    return is_not_empty(order_id) and bool(ORDER_ID_PATTERN.match(order_id.strip()))


def parse_price(value: Any) -> Decimal:
    """
    Parse and range-check a unit price.

    Accepts Decimal, int, float or a numeric string. Prices must lie in
    0.01-99999.99 and carry at most two decimal places.

    Raises:
        ValidationError: If the value is not a valid price.
    """
    try:
        price = Decimal(repr(value) if isinstance(value, float) else str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid price: {value!r}")
    if not price.is_finite():
        raise ValidationError(f"Invalid price: {value!r}")
    if price < MIN_PRICE or price > MAX_PRICE:
        raise ValidationError(f"Price must be between {MIN_PRICE} and {MAX_PRICE}")
    if price != price.quantize(MIN_PRICE):
        raise ValidationError("Price can have at most 2 decimal places")
    return price


def parse_int(value: Any, label: str = "quantity") -> int:
    """
    Parse a whole number from an int or a numeric string such as " 3".

    Raises:
        ValidationError: For bools, floats, non-numeric text and None.
    """
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {label}: {value!r}")
    try:
        return int(str(value).strip())
    except ValueError:
        raise ValidationError(f"Invalid {label}: {value!r}")


def parse_quantity(value: Any, allow_zero: bool = True) -> int:
    """
    Parse a stock or order quantity.

    Raises:
        ValidationError: If the value is not a whole number in range.
    """
    quantity = parse_int(value)
    if quantity < 0 or (quantity == 0 and not allow_zero):
        bound = "0 or more" if allow_zero else "greater than 0"
        raise ValidationError(f"Quantity must be {bound}, got {quantity}")
    return quantity


def validate_plant_fields(
    plant_id: str,
    name: str,
    plant_type: str,
    description: str | None = None,
) -> None:
    """
    Check the text fields of a plant record.

    Raises:
        ValidationError: On the first field that fails.
    """
    if not is_valid_plant_id(plant_id):
        raise ValidationError(
            "Plant ID must be 1-20 characters of letters, digits, '_' or '-'"
        )
    if not is_valid_length(name, 2, 100):
        raise ValidationError("Plant name must be between 2 and 100 characters")
    if not is_valid_length(plant_type, 2, 50):
        raise ValidationError("Plant type must be between 2 and 50 characters")
    if description is not None and len(description) > 1000:
        raise ValidationError("Description must be 1000 characters or fewer")
