"""
API routes package
"""
from app.api.routes import bot, vehicles, admin

__all__ = [
    "bot",
    "vehicles",
    "admin",
]
