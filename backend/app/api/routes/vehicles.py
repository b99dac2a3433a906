"""
Vehicle API routes
"""
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.deps import get_admin_module, get_db
from app.core import logger
from app.core.exceptions import DuplicateKeyError, TransactionError, ValidationError
from app.db.models import Vehicle
from app.orchestration.admin import AdminModule
from app.services.audit import AuditService
from app.services.bot_schemas import Asset
from app.services.conversion import ConversionRequest

router = APIRouter()


# Request/Response schemas
class ConversionRequestBody(BaseModel):
    serial: str = Field(..., min_length=1)
    make: str
    model: str
    year: int
    color: str
    plate: str = ""
    assets: List[Asset] = []
    actor_id: str = "api"
    conversation_id: Optional[str] = None


class ConversionResponse(BaseModel):
    vehicle_id: str
    policy_id: str
    policy_number: str
    serial: str


@router.post("/convert", response_model=ConversionResponse, status_code=status.HTTP_201_CREATED)
async def convert_vehicle(
    body: ConversionRequestBody,
    admin: AdminModule = Depends(get_admin_module),
    db: Session = Depends(get_db),
):
    """Create a vehicle and its auto-generated policy in one transaction."""
    try:
        result = await admin.workflow.convert(ConversionRequest(**body.model_dump(exclude={"assets"}), assets=body.assets))
    except ValidationError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=e.message)
    except DuplicateKeyError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=e.message)
    except TransactionError as e:
        logger.error(f"Conversion via API failed: {e.message}")
        raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail=e.message)

    AuditService(db).log_after_commit(
        event_type="vehicle.converted",
        actor_type="system",
        actor_id=body.actor_id,
        resource_type="vehicle",
        resource_id=str(result.vehicle_id),
        action="create",
        details={"serial": result.serial, "policy_number": result.policy_number},
    )

    return ConversionResponse(
        vehicle_id=str(result.vehicle_id),
        policy_id=str(result.policy_id),
        policy_number=result.policy_number,
        serial=result.serial,
    )


@router.get("/{serial}")
async def get_vehicle(serial: str, db: Session = Depends(get_db)):
    """Look up a vehicle by serial."""
    vehicle = db.query(Vehicle).filter(Vehicle.serial == serial.strip().upper()).first()
    if vehicle is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Vehicle not found")
    return vehicle.to_dict()
