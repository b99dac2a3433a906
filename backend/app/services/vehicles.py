"""
Plain vehicle registration for vehicles outside the conversion window.
"""
import asyncio
from typing import Callable
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import DuplicateKeyError, TransactionError
from app.core.logging import get_logger
from app.db.models import Vehicle, VehicleStatus
from app.services.conversion import ConversionRequest, is_unique_violation
from app.services.duplicate_guard import DuplicateGuard, normalize_serial
from app.services.side_effects import SideEffectProcessor

logger = get_logger(__name__)


class VehicleRegistry:
    """Registers a vehicle without a policy. It waits in the unlinked state for one."""

    def __init__(
        self,
        session_factory: Callable[[], Session],
        guard: DuplicateGuard,
        side_effects: SideEffectProcessor,
    ):
        self._session_factory = session_factory
        self.guard = guard
        self.side_effects = side_effects

    async def register(self, request: ConversionRequest) -> UUID:
        serial = normalize_serial(request.serial)
        try:
            available = await asyncio.to_thread(self.guard.is_serial_available, serial)
        except SQLAlchemyError as e:
            logger.error(f"Serial pre-check failed for {serial}: {e}")
            raise TransactionError("Registration failed, nothing was created", original_error=e) from e
        if not available:
            raise DuplicateKeyError(serial)

        vehicle_id = await asyncio.to_thread(self._insert, request, serial)

        if request.assets:
            self.side_effects.schedule(
                self.side_effects.attach_assets(vehicle_id, request.assets),
                label="attach_assets",
            )
        return vehicle_id

    def _insert(self, request: ConversionRequest, serial: str) -> UUID:
        db = self._session_factory()
        try:
            vehicle = Vehicle(
                serial=serial,
                make=request.make.strip(),
                model=request.model.strip(),
                year=request.year,
                color=request.color.strip(),
                plate=(request.plate or "").strip().upper() or None,
                status=VehicleStatus.UNLINKED,
                created_by=request.actor_id,
            )
            db.add(vehicle)
            db.flush()
            vehicle_id = vehicle.vehicle_id
            db.commit()
            logger.info(f"Registered vehicle {serial} without policy: {vehicle_id}")
            return vehicle_id
        except IntegrityError as e:
            db.rollback()
            if is_unique_violation(e):
                raise DuplicateKeyError(serial) from e
            raise TransactionError("Registration failed, nothing was created", original_error=e) from e
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Registration of {serial} failed: {e}")
            raise TransactionError("Registration failed, nothing was created", original_error=e) from e
        finally:
            db.close()
