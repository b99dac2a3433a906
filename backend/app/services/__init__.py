"""
Services package
"""
from app.services.conversion import ConversionWorkflow, ConversionRequest, ConversionResult
from app.services.duplicate_guard import DuplicateGuard
from app.services.session_store import SessionStore, create_session_store
from app.services.side_effects import SideEffectProcessor

__all__ = [
    "ConversionWorkflow",
    "ConversionRequest",
    "ConversionResult",
    "DuplicateGuard",
    "SessionStore",
    "create_session_store",
    "SideEffectProcessor",
]
