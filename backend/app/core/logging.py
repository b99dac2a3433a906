"""
Logging configuration with field masking for sensitive data
"""
import logging
import re
from typing import Any

from app.core.config import settings


LOGGER_NAME = "policyadmin"

# Patterns to mask in logs
MASK_PATTERNS = [
    (r"""(['"]holder_email['"]:\s*)['"][^'"]*['"]""", r"\1'***@***'"),
    (r"""(['"]holder_rfc['"]:\s*)['"][^'"]*['"]""", r"\1'****'"),
    (r"""(['"]holder_phone['"]:\s*)['"][^'"]*['"]""", r"\1'***'"),
    (r"\b[A-Z&Ñ]{4}\d{6}[A-Z0-9]{3}\b", "****"),  # bare RFCs
]


class MaskingFormatter(logging.Formatter):
    """Custom formatter that masks sensitive fields."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        for pattern, replacement in MASK_PATTERNS:
            message = re.sub(pattern, replacement, message, flags=re.IGNORECASE)
        return message


def setup_logging() -> logging.Logger:
    """Configure application logging."""
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)

    # Module reloads must not stack handlers
    if logger.handlers:
        return logger

    # Console handler
    console_handler = logging.StreamHandler()
    console_handler.setLevel(logging.DEBUG if settings.DEBUG else logging.INFO)

    # Format with masking
    formatter = MaskingFormatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )
    console_handler.setFormatter(formatter)

    logger.addHandler(console_handler)

    return logger


# Global logger instance
logger = setup_logging()


def get_logger(name: str) -> logging.Logger:
    """Get a child of the application logger for a module."""
    if name.startswith("app."):
        name = name[len("app."):]
    return logger.getChild(name)


def log_audit_event(
    event_type: str,
    actor_id: str,
    actor_type: str,
    details: dict[str, Any],
) -> None:
    """Log an audit event (also persisted to database separately)."""
    logger.info(
        f"AUDIT: {event_type} | actor={actor_id} ({actor_type}) | details={details}"
    )
