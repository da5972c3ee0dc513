"""Sample data for a fresh nursery database."""

import logging

from .catalog import PlantCatalog
from .database import Database
from .plant_store import PlantStore
from .users import UserService

logger = logging.getLogger(__name__)

SAMPLE_PLANTS = [
    ("P001", "Rose", "Flower", "15.99", 50, "Beautiful red roses perfect for gardens"),
    ("P002", "Tulip", "Flower", "12.50", 30, "Colorful spring tulips"),
    ("P003", "Oak Tree", "Tree", "89.99", 10, "Young oak sapling"),
    ("P004", "Basil", "Herb", "4.99", 100, "Fresh aromatic basil"),
    ("P005", "Fern", "Foliage", "19.99", 25, "Boston fern, great for shade"),
    ("P006", "Cactus", "Succulent", "9.99", 5, "Low-maintenance desert cactus"),
]

# (user_id, username, password, role)
SAMPLE_USERS = [
    ("admin001", "admin", "admin123", "Admin"),
    ("staff001", "staff", "staff123", "Staff"),
    ("customer001", "customer", "customer123", "Customer"),
]


def seed_database(db: Database) -> dict[str, int]:
    """
    Insert the sample plants and users that are not there yet.

    Returns counts of what was added.
    """
    catalog = PlantCatalog(db)
    users = UserService(db)
    added = {"plants": 0, "users": 0}

    with db.transaction("seed check") as conn:
        store = PlantStore(conn)
        missing_plants = [p for p in SAMPLE_PLANTS if not store.exists(p[0])]
    for plant_id, name, plant_type, price, quantity, description in missing_plants:
        catalog.create_plant(plant_id, name, plant_type, price, quantity, description)
        added["plants"] += 1

    existing = {user.username for user in users.list_users()}
    for user_id, username, password, role in SAMPLE_USERS:
        if username not in existing:
            users.create_user(user_id, username, password, role)
            added["users"] += 1

    logger.info("Seeded %d plants and %d users", added["plants"], added["users"])
    return added
