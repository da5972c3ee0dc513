"""Database engine, schema and transaction handling for greenthumb."""

import logging
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import (
    CheckConstraint,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    create_engine,
    event,
)
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.pool import StaticPool

from .config import DEFAULT_TRANSACTION_TIMEOUT, Settings
from .errors import ContentionError, StorageError

logger = logging.getLogger(__name__)

metadata = MetaData()

users = Table(
    "users",
    metadata,
    Column("user_id", String(50), primary_key=True),
    Column("username", String(50), nullable=False, unique=True),
    Column("password_hash", String(255), nullable=False),
    Column("role", String(20), nullable=False),
)

customers = Table(
    "customers",
    metadata,
    Column("customer_id", String(50), primary_key=True),
    Column(
        "user_id",
        String(50),
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    ),
    Column("address", String(255)),
    Column("phone", String(20)),
)

plants = Table(
    "plants",
    metadata,
    Column("plant_id", String(20), primary_key=True),
    Column("name", String(100), nullable=False),
    Column("type", String(50), nullable=False),
    Column("price", Numeric(10, 2), nullable=False),
    Column("quantity", Integer, nullable=False, default=0),
    Column("description", Text),
    CheckConstraint("quantity >= 0", name="ck_plants_quantity_non_negative"),
)

orders = Table(
    "orders",
    metadata,
    Column("order_id", String(50), primary_key=True),
    Column("customer_id", String(50), nullable=False, index=True),
    Column("order_date", DateTime(timezone=True), nullable=False),
    Column("total_amount", Numeric(10, 2), nullable=False),
    Column("status", String(20), nullable=False, index=True),
)

order_items = Table(
    "order_items",
    metadata,
    Column("order_item_id", String(50), primary_key=True),
    Column(
        "order_id",
        String(50),
        ForeignKey("orders.order_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("plant_id", String(20), ForeignKey("plants.plant_id"), nullable=False),
    Column("quantity", Integer, nullable=False),
    Column("subtotal", Numeric(10, 2), nullable=False),
    CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
)

# Substrings drivers use for lock waits that ran out of time
_LOCK_TIMEOUT_MARKERS = (
    "database is locked",
    "lock timeout",
    "lock wait timeout",
    "could not serialize",
    "deadlock",
)


def _is_lock_timeout(exc: OperationalError) -> bool:
    message = str(exc.orig if exc.orig is not None else exc).lower()
    return any(marker in message for marker in _LOCK_TIMEOUT_MARKERS)


def _create_sqlite_engine(url: str, timeout: float) -> Engine:
    kwargs: dict = {"connect_args": {"timeout": timeout, "check_same_thread": False}}
    if url in ("sqlite://", "sqlite:///:memory:"):
        kwargs["poolclass"] = StaticPool
    engine = create_engine(url, **kwargs)

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        # Let SQLAlchemy emit BEGIN itself instead of pysqlite's deferred one.
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _on_begin(conn):
        # Take the write lock up front so check-then-decrement is serialized.
        conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


def _create_engine(url: str, timeout: float) -> Engine:
    if url.startswith("sqlite"):
        return _create_sqlite_engine(url, timeout)
    connect_args = {}
    if url.startswith("postgresql"):
        connect_args["options"] = f"-c lock_timeout={int(timeout * 1000)}"
    return create_engine(
        url,
        pool_pre_ping=True,
        pool_timeout=timeout,
        connect_args=connect_args,
    )


class Database:
    """
    Explicit storage handle.

    Services receive a Database and open one transaction per logical
    operation; there is no process-wide connection.
    """

    def __init__(self, url: str, timeout: float = DEFAULT_TRANSACTION_TIMEOUT):
        self.url = url
        self.timeout = timeout
        self.engine = _create_engine(url, timeout)

    @classmethod
    def from_settings(cls, settings: Settings) -> "Database":
        if settings.is_sqlite:
            settings.data_dir.mkdir(parents=True, exist_ok=True)
        return cls(settings.database_url, timeout=settings.transaction_timeout)

    def create_schema(self) -> None:
        """Create all tables that don't exist yet."""
        try:
            metadata.create_all(self.engine)
        except SQLAlchemyError as e:
            logger.error("Schema creation failed: %s", e)
            raise StorageError("create schema", str(e)) from e

    def drop_schema(self) -> None:
        try:
            metadata.drop_all(self.engine)
        except SQLAlchemyError as e:
            raise StorageError("drop schema", str(e)) from e

    @contextmanager
    def transaction(self, operation: str = "transaction") -> Iterator[Connection]:
        """
        Run a block inside one database transaction.

        Commits when the block exits normally and rolls back on any exception.
        Driver errors are converted to StorageError, lock timeouts to the
        retryable ContentionError. Other exceptions pass through unchanged.
        """
        try:
            with self.engine.begin() as conn:
                yield conn
        except OperationalError as e:
            if _is_lock_timeout(e):
                logger.warning("Transaction '%s' timed out waiting for a lock", operation)
                raise ContentionError(operation) from e
            logger.error("Transaction '%s' failed: %s", operation, e)
            raise StorageError(operation, str(e.orig or e)) from e
        except SQLAlchemyError as e:
            logger.error("Transaction '%s' failed: %s", operation, e)
            raise StorageError(operation, str(e)) from e

    def dispose(self) -> None:
        self.engine.dispose()
