"""
Admin API routes
"""
from typing import Dict, List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.orm import Session

from app.api.deps import get_admin_module, get_db
from app.orchestration.admin import AdminModule
from app.services.audit import AuditService

router = APIRouter()


# Request/Response schemas
class SessionStatsResponse(BaseModel):
    active_sessions: int
    operations: Dict[str, int]
    pending_side_effects: int
    recent_side_effect_failures: int


class AuditLogResponse(BaseModel):
    log_id: str
    event_type: str
    actor_id: Optional[str]
    action: str
    details: dict
    timestamp: str


@router.get("/sessions/stats", response_model=SessionStatsResponse)
async def get_session_stats(admin: AdminModule = Depends(get_admin_module)):
    """Active admin sessions per operation."""
    return SessionStatsResponse(
        active_sessions=admin.sessions.count(),
        operations=admin.sessions.stats(),
        pending_side_effects=admin.side_effects.pending,
        recent_side_effect_failures=len(admin.side_effects.failures),
    )


@router.get("/audit/{resource_type}/{resource_id}", response_model=List[AuditLogResponse])
async def get_audit_history(
    resource_type: str,
    resource_id: str,
    limit: int = 50,
    db: Session = Depends(get_db),
):
    """Audit history of a policy, service or vehicle."""
    logs = AuditService(db).get_resource_history(resource_type, resource_id, limit=limit)
    return [
        AuditLogResponse(
            log_id=str(log.log_id),
            event_type=log.event_type,
            actor_id=log.actor_id,
            action=log.action,
            details=log.details or {},
            timestamp=log.timestamp.isoformat(),
        )
        for log in logs
    ]
