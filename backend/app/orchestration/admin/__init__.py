"""
Admin Workflow Orchestration Module

Multi-turn admin protocols (search, field edit, deletion, restore, vehicle
registration) driven by stateless chat events and a per-chat session store.
"""
from app.orchestration.admin.dispatcher import OperationDispatcher
from app.orchestration.admin.module import AdminModule, create_admin_module

__all__ = [
    "OperationDispatcher",
    "AdminModule",
    "create_admin_module",
]
