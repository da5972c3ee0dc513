"""Runtime configuration for greenthumb.

Settings come from environment variables so the CLI, the API server and the
tests can point at different databases without code changes.
"""

import os
from pathlib import Path

from pydantic import BaseModel, Field
from pydantic import ValidationError as PydanticValidationError

from .errors import ValidationError

# Can be overridden via GREENTHUMB_DATA_DIR environment variable
_default_data_dir = Path(__file__).parent.parent.parent / "data"
DATABASE_FILE = "greenthumb.db"

DEFAULT_TRANSACTION_TIMEOUT = 5.0
DEFAULT_LOW_STOCK_THRESHOLD = 10


class Settings(BaseModel):
    """Resolved settings for one process."""

    data_dir: Path
    database_url: str
    transaction_timeout: float = Field(default=DEFAULT_TRANSACTION_TIMEOUT, gt=0)
    low_stock_threshold: int = Field(default=DEFAULT_LOW_STOCK_THRESHOLD, ge=0)
    environment: str = "development"
    log_level: str = "INFO"

    @property
    def is_sqlite(self) -> bool:
        return self.database_url.startswith("sqlite")


def _env_number(name: str, default: str, parse):
    raw = os.environ.get(name, default)
    try:
        return parse(raw)
    except ValueError:
        raise ValidationError(f"{name} must be a number, got {raw!r}")


def load_settings(database_url: str | None = None) -> Settings:
    """
    Build Settings from the environment.

    Args:
        database_url: Explicit URL (e.g. from --database); wins over
            GREENTHUMB_DATABASE_URL.
    """
    data_dir = Path(os.environ.get("GREENTHUMB_DATA_DIR", _default_data_dir))
    url = (
        database_url
        or os.environ.get("GREENTHUMB_DATABASE_URL")
        or f"sqlite:///{data_dir / DATABASE_FILE}"
    )
    transaction_timeout = _env_number(
        "GREENTHUMB_TRANSACTION_TIMEOUT", str(DEFAULT_TRANSACTION_TIMEOUT), float
    )
    low_stock_threshold = _env_number(
        "GREENTHUMB_LOW_STOCK_THRESHOLD", str(DEFAULT_LOW_STOCK_THRESHOLD), int
    )
    try:
        return Settings(
            data_dir=data_dir,
            database_url=url,
            transaction_timeout=transaction_timeout,
            low_stock_threshold=low_stock_threshold,
            environment=os.environ.get("GREENTHUMB_ENVIRONMENT", "development").lower(),
            log_level=os.environ.get("LOG_LEVEL", "INFO").upper(),
        )
    except PydanticValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ValidationError(f"Invalid settings: {problems}") from e
