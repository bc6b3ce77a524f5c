import logging
import json
import os
import sys
from pathlib import Path
from datetime import datetime, timezone
import contextvars
from logging.handlers import RotatingFileHandler

from app.config import get_settings

# Set per request by the correlation middleware
correlation_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("correlation_id", default="")


# Fields passed via logger.info("msg", extra={...}) that end up in the JSON entry
STRUCTURED_FIELDS = (
    "method", "path", "status", "duration_ms", "client_ip",
    "error", "error_type", "error_kind", "service", "circuit_state",
    "state", "query", "result_count", "step_count", "record_id", "operation",
)


class StructuredFormatter(logging.Formatter):
    """JSON structured log formatter with correlation ID injection"""

    def format(self, record: logging.LogRecord) -> str:
        entry = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "message": record.getMessage(),
            "logger": record.name,
        }

        # Set by the correlation middleware
        if getattr(record, "correlation_id", None):
            entry["correlation_id"] = record.correlation_id
        if getattr(record, "user_id", None):
            entry["user_id"] = record.user_id

        for key in STRUCTURED_FIELDS:
            if hasattr(record, key):
                entry[key] = getattr(record, key)

        if record.levelno >= logging.WARNING:
            entry["source"] = f"{record.filename}:{record.lineno}"

        if record.exc_info and record.exc_info[1]:
            entry["exception"] = {
                "type": type(record.exc_info[1]).__name__,
                "message": str(record.exc_info[1]),
            }

        return json.dumps(entry, default=str)


class CorrelationFilter(logging.Filter):
    """Stamp records with the current request's correlation ID"""

    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "correlation_id", None):
            record.correlation_id = correlation_id_var.get("")
        return True


class SimpleFormatter(logging.Formatter):
    """Human-readable formatter for local development"""

    def __init__(self):
        super().__init__(
            '%(asctime)s - %(levelname)s - %(message)s',
            datefmt='%H:%M:%S'
        )


def setup_logger(name: str = "roadmap", level: str = None) -> logging.Logger:
    """
    Setup application logger.

    JSON to stdout when running on Railway (or LOG_FORMAT=json), readable
    lines plus a rotating JSON file otherwise.
    """
    logger = logging.getLogger(name)

    # Don't add handlers if they already exist
    if logger.handlers:
        return logger

    level = level or get_settings().log_level
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))

    is_production = bool(os.getenv("RAILWAY_ENVIRONMENT")) or os.getenv("LOG_FORMAT") == "json"

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(logging.INFO)
    if is_production:
        console_handler.setFormatter(StructuredFormatter())
    else:
        console_handler.setFormatter(SimpleFormatter())
    console_handler.addFilter(CorrelationFilter())
    logger.addHandler(console_handler)

    if not is_production and os.getenv("LOG_TO_FILE", "true").lower() == "true":
        try:
            log_dir = Path("logs")
            log_dir.mkdir(exist_ok=True)

            file_handler = RotatingFileHandler(
                log_dir / "roadmap.log",
                maxBytes=10 * 1024 * 1024,  # 10MB
                backupCount=5,
                encoding='utf-8'
            )
            file_handler.setLevel(logging.DEBUG)
            file_handler.setFormatter(StructuredFormatter())
            file_handler.addFilter(CorrelationFilter())
            logger.addHandler(file_handler)
        except OSError as e:
            # Railway has read-only filesystem
            logger.warning(f"Could not setup file logging: {e}")

    return logger


# Create default logger instance
logger = setup_logger()


def get_logger(name: str = None) -> logging.Logger:
    """Get logger instance"""
    if name:
        return setup_logger(name)
    return logger
