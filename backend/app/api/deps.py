"""
API dependencies
"""
from fastapi import Request

from app.db import get_db
from app.orchestration.admin import AdminModule


def get_admin_module(request: Request) -> AdminModule:
    """The admin engine built at startup."""
    return request.app.state.admin


__all__ = [
    "get_db",
    "get_admin_module",
]
