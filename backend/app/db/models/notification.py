"""
Scheduled notification model for service follow-up calls
"""
import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import Column, DateTime, Enum, ForeignKey, Uuid
from sqlalchemy.orm import relationship

from app.db.base import Base


class NotificationKind(str, PyEnum):
    CONTACT = "contact"
    COMPLETION = "completion"


class NotificationStatus(str, PyEnum):
    PENDING = "pending"
    SENT = "sent"
    CANCELLED = "cancelled"
    FAILED = "failed"


class ScheduledNotification(Base):
    """A reminder sent to the admin group when a service reaches a scheduled time."""

    __tablename__ = "scheduled_notifications"

    notification_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    service_id = Column(Uuid, ForeignKey("policy_services.service_id"), nullable=False, index=True)
    kind = Column(
        Enum(NotificationKind, values_callable=lambda obj: [e.value for e in obj]),
        nullable=False,
    )
    status = Column(
        Enum(NotificationStatus, values_callable=lambda obj: [e.value for e in obj]),
        default=NotificationStatus.PENDING,
        nullable=False,
    )
    scheduled_for = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    service = relationship("PolicyService", back_populates="notifications")

    def __repr__(self) -> str:
        return f"<ScheduledNotification {self.kind.value} at {self.scheduled_for}>"
