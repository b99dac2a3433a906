"""
Audit service for PolicyAdminBot.
Records admin changes to policies, services and vehicles with data classification.
"""

from datetime import datetime
from typing import Any, Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.db.models import AuditLog
from app.core.data_classification import (
    sanitize_for_logging,
    highest_classification,
)
from app.core.logging import get_logger, log_audit_event

logger = get_logger(__name__)


class AuditService:
    """Service for creating and querying audit logs."""

    def __init__(self, db: Session):
        self.db = db

    def log(
        self,
        event_type: str,
        actor_type: str,
        actor_id: Optional[str],
        resource_type: str,
        resource_id: str,
        action: str,
        details: Optional[dict[str, Any]] = None,
    ) -> AuditLog:
        """
        Create an audit log entry.

        Args:
            event_type: Type of event (e.g., "policy.deleted", "vehicle.converted")
            actor_type: Who performed the action ("admin", "system")
            actor_id: Chat user id of the actor
            resource_type: Type of resource affected
            resource_id: ID of the resource
            action: Verb recorded for the change ("create", "update", "delete", "restore")
            details: Additional event details (will be sanitized)
        """
        # Sanitize details to remove sensitive data
        sanitized_details = sanitize_for_logging(details or {})

        sanitized_details["_metadata"] = {
            "timestamp": datetime.utcnow().isoformat(),
            "data_classification": highest_classification(details or {}).value,
        }

        audit_log = AuditLog(
            event_type=event_type,
            actor_type=actor_type,
            actor_id=actor_id,
            resource_type=resource_type,
            resource_id=str(resource_id),
            action=action,
            details=sanitized_details,
        )

        self.db.add(audit_log)
        self.db.commit()
        self.db.refresh(audit_log)

        # Log to application logs as well for real-time monitoring
        log_audit_event(event_type, actor_id, actor_type, {"resource": f"{resource_type}:{resource_id}", "action": action})

        return audit_log

    def log_after_commit(self, **entry: Any) -> Optional[AuditLog]:
        """
        Audit a change that is already committed.

        Takes the same arguments as log(). A store failure is logged and rolled back,
        never raised: the audited change stands either way.
        """
        try:
            return self.log(**entry)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(
                f"Audit entry {entry.get('event_type')} for "
                f"{entry.get('resource_type')}:{entry.get('resource_id')} not written: {e}"
            )
            return None

    def log_admin_event(
        self,
        event_type: str,
        admin_id: str,
        resource_type: str,
        resource_id: str,
        action: str,
        details: Optional[dict] = None,
    ) -> Optional[AuditLog]:
        """Audit a committed admin change made through the chat bot."""
        return self.log_after_commit(
            event_type=event_type,
            actor_type="admin",
            actor_id=admin_id,
            resource_type=resource_type,
            resource_id=resource_id,
            action=action,
            details=details,
        )

    def get_resource_history(
        self,
        resource_type: str,
        resource_id: str,
        limit: int = 50,
    ) -> list[AuditLog]:
        """Get audit history for a specific resource."""
        return (
            self.db.query(AuditLog)
            .filter(
                AuditLog.resource_type == resource_type,
                AuditLog.resource_id == str(resource_id),
            )
            .order_by(AuditLog.timestamp.desc())
            .limit(limit)
            .all()
        )
