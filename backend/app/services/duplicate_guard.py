"""
Duplicate Guard - serial availability checks for vehicle registration.

The check runs twice per conversion: once on its own short session to reject known
duplicates cheaply, and once inside the conversion transaction right before the insert.
The unique constraint on vehicles.serial remains the final authority.
"""
from typing import Callable, Optional

from sqlalchemy import exists, or_
from sqlalchemy.orm import Session

from app.core.logging import get_logger
from app.db.models import Policy, Vehicle

logger = get_logger(__name__)


def normalize_serial(serial: str) -> str:
    return (serial or "").strip().upper()


class DuplicateGuard:
    """Answers whether a serial is still free. Never writes."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    def is_serial_available(self, serial: str, db: Optional[Session] = None) -> bool:
        """
        Check that no vehicle carries the serial and no policy uses it as its number.

        Args:
            serial: Vehicle serial (normalized here)
            db: Session of an open transaction. When omitted, a short-lived
                session is opened, used for this single read, and closed.
        """
        serial = normalize_serial(serial)
        if db is not None:
            return not self._serial_taken(db, serial)

        own = self._session_factory()
        try:
            return not self._serial_taken(own, serial)
        finally:
            own.close()

    def _serial_taken(self, db: Session, serial: str) -> bool:
        taken = db.query(
            or_(
                exists().where(Vehicle.serial == serial),
                exists().where(Policy.policy_number == serial),
            )
        ).scalar()
        if taken:
            logger.info(f"Serial already registered: {serial}")
        return bool(taken)
