"""Logging setup for greenthumb.

- development: short human-readable lines
- staging/production: one JSON object per line for log aggregation
"""

import json
import logging
import sys
from datetime import datetime

ROOT_LOGGER = "greenthumb"


class DevelopmentFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        timestamp = datetime.fromtimestamp(record.created).strftime("%H:%M:%S")
        line = f"[{timestamp}] {record.levelname:8s} [{record.name}] {record.getMessage()}"
        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


class JsonFormatter(logging.Formatter):
    def __init__(self, environment: str):
        super().__init__()
        self.environment = environment

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "module": record.name,
            "message": record.getMessage(),
            "environment": self.environment,
        }
        if record.exc_info:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry)


def configure_logging(level: str = "INFO", environment: str = "development") -> logging.Logger:
    """
    Install a single stderr handler on the package logger.

    Safe to call more than once; earlier handlers are replaced.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.handlers.clear()
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    handler = logging.StreamHandler(sys.stderr)
    if environment in ("production", "prod", "staging"):
        handler.setFormatter(JsonFormatter(environment))
    else:
        handler.setFormatter(DevelopmentFormatter())
    logger.addHandler(handler)
    logger.propagate = False
    return logger
