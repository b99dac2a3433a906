"""
Asset attachment for vehicles (photos collected during registration).
"""
import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, List, Sequence
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.logging import get_logger
from app.db.models import Vehicle, VehicleFile
from app.services.bot_schemas import Asset

logger = get_logger(__name__)


@dataclass
class AttachResult:
    succeeded: List[Asset] = field(default_factory=list)
    failed: List[Asset] = field(default_factory=list)

    @property
    def soft_failure(self) -> bool:
        """True when at least one asset could not be attached."""
        return bool(self.failed)


class AssetService(ABC):
    """Links already-uploaded assets to an owning record."""

    @abstractmethod
    async def attach(self, owner_id: UUID, assets: Sequence[Asset]) -> AttachResult:
        pass


class VehicleFileAssetService(AssetService):
    """Stores one vehicle_files row per asset, each in its own transaction."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    async def attach(self, owner_id: UUID, assets: Sequence[Asset]) -> AttachResult:
        return await asyncio.to_thread(self._attach_sync, owner_id, list(assets))

    def _attach_sync(self, vehicle_id: UUID, assets: List[Asset]) -> AttachResult:
        result = AttachResult()

        for asset in assets:
            db = self._session_factory()
            try:
                if db.get(Vehicle, vehicle_id) is None:
                    logger.warning(f"Cannot attach {asset.storage_key}: vehicle {vehicle_id} not found")
                    result.failed.append(asset)
                    continue

                db.add(VehicleFile(
                    vehicle_id=vehicle_id,
                    url=asset.url,
                    storage_key=asset.storage_key,
                    size=asset.size,
                    content_type=asset.content_type,
                ))
                db.commit()
                result.succeeded.append(asset)
            except SQLAlchemyError as e:
                db.rollback()
                logger.warning(f"Failed to attach {asset.storage_key} to vehicle {vehicle_id}: {e}")
                result.failed.append(asset)
            finally:
                db.close()

        return result
