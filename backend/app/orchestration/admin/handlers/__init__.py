"""
Admin protocol handlers
"""
from app.orchestration.admin.handlers.search import PolicySearchHandler, search_policies
from app.orchestration.admin.handlers.field_edit import FieldEditHandler
from app.orchestration.admin.handlers.deletion import PolicyDeletionHandler, DELETION_REASONS
from app.orchestration.admin.handlers.registration import VehicleRegistrationHandler

__all__ = [
    "PolicySearchHandler",
    "search_policies",
    "FieldEditHandler",
    "PolicyDeletionHandler",
    "DELETION_REASONS",
    "VehicleRegistrationHandler",
]
