"""
Database package
"""
from app.db.base import Base
from app.db.session import engine, SessionLocal, get_db, create_db_engine
from app.db.models import *

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "get_db",
    "create_db_engine",
]
