"""
Orchestration package - multi-turn admin workflows driven by chat events
"""
from app.orchestration.admin import OperationDispatcher, AdminModule, create_admin_module

__all__ = [
    "OperationDispatcher",
    "AdminModule",
    "create_admin_module",
]
