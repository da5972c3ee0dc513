"""greenthumb - nursery order and inventory management."""

__version__ = "0.1.0"
