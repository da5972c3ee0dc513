"""Pytest fixtures for greenthumb tests."""

import logging
import tempfile
from pathlib import Path

import pytest

from greenthumb.cart import ShoppingCart
from greenthumb.catalog import PlantCatalog
from greenthumb.database import Database
from greenthumb.models import Order
from greenthumb.plant_store import PlantStore
from greenthumb.users import UserService


@pytest.fixture
def temp_dir():
    """Create a temporary directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch):
    """Keep PBKDF2 cheap in tests."""
    monkeypatch.setattr("greenthumb.users.PASSWORD_HASH_ITERATIONS", 1000)


@pytest.fixture(autouse=True)
def reset_logging():
    """Undo configure_logging() so handlers don't outlive a test's capture streams."""
    yield
    logger = logging.getLogger("greenthumb")
    logger.handlers.clear()
    logger.propagate = True
    logger.setLevel(logging.NOTSET)


@pytest.fixture
def database_url(temp_dir):
    return f"sqlite:///{temp_dir / 'greenthumb.db'}"


@pytest.fixture
def database(database_url):
    """File-backed SQLite database with the schema created."""
    db = Database(database_url, timeout=2.0)
    db.create_schema()
    yield db
    db.dispose()


@pytest.fixture
def plants(database):
    """
    Catalogue used across tests:
    - rose:   10.00, 20 in stock
    - basil:   5.00, 10 in stock
    - bonsai: 25.00,  2 in stock
    """
    catalog = PlantCatalog(database)
    return {
        "rose": catalog.create_plant("rose", "Rose", "Flower", "10.00", 20, "Red rose"),
        "basil": catalog.create_plant("basil", "Basil", "Herb", "5.00", 10),
        "bonsai": catalog.create_plant("bonsai", "Bonsai", "Tree", "25.00", 2),
    }


@pytest.fixture
def users(database):
    """One user per role. The customer's customer_id is 'cust_c001'."""
    service = UserService(database)
    return {
        "admin": service.create_user("a001", "admin", "admin123", "Admin"),
        "staff": service.create_user("s001", "staff", "staff123", "Staff"),
        "customer": service.create_user(
            "c001", "alice", "alice123", "Customer", address="1 Garden Way"
        ),
    }


@pytest.fixture
def customer_id(users):
    return users["customer"].customer_id


def place_order(db: Database, customer_id: str, *lines: tuple[str, int]) -> Order:
    """Check out a cart holding the given (plant_id, quantity) lines."""
    cart = ShoppingCart(db, customer_id)
    for plant_id, quantity in lines:
        cart.add_to_cart(plant_id, quantity)
    return cart.place_order()


def stock_of(db: Database, plant_id: str) -> int:
    """Current stock level straight from the database."""
    with db.transaction("test stock") as conn:
        return PlantStore(conn).require_plant(plant_id).quantity
