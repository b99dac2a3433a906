"""
Database session and engine configuration
"""
from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session
from typing import Generator

from app.core.config import settings


def create_db_engine(database_url: str, echo: bool = False) -> Engine:
    """Create an engine, applying SQLite connection options where needed."""
    connect_args = {}
    if database_url.startswith("sqlite"):
        # Sessions are used from worker threads; concurrent writers wait on the file lock
        connect_args = {"check_same_thread": False, "timeout": 30}

    return create_engine(
        database_url,
        echo=echo,
        pool_pre_ping=True,
        connect_args=connect_args,
    )


# Create engine
engine = create_db_engine(settings.DATABASE_URL, echo=settings.DATABASE_ECHO)

# Session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def get_db() -> Generator[Session, None, None]:
    """Dependency for database session."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
