"""
Core module exports
"""
from app.core.config import settings, get_settings
from app.core.logging import logger, get_logger, log_audit_event
from app.core.exceptions import (
    WorkflowError,
    ValidationError,
    DuplicateKeyError,
    TransactionError,
    SideEffectError,
)

__all__ = [
    "settings",
    "get_settings",
    "logger",
    "get_logger",
    "log_audit_event",
    "WorkflowError",
    "ValidationError",
    "DuplicateKeyError",
    "TransactionError",
    "SideEffectError",
]
