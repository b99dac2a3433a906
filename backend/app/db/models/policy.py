"""
Policy and PolicyService database models
"""
import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import Column, String, Date, DateTime, Enum, ForeignKey, Numeric, Integer, Uuid
from sqlalchemy.orm import relationship

from app.db.base import Base


class PolicyKind(str, PyEnum):
    REGULAR = "regular"
    AUTO_GENERATED = "auto_generated"


class PolicyStatus(str, PyEnum):
    ACTIVE = "active"
    EXPIRED = "expired"
    DELETED = "deleted"


class Policy(Base):
    """Insurance policy model."""

    __tablename__ = "policies"

    policy_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    policy_number = Column(String(50), unique=True, nullable=False, index=True)
    kind = Column(
        Enum(PolicyKind, values_callable=lambda obj: [e.value for e in obj]),
        default=PolicyKind.REGULAR,
        nullable=False,
    )
    status = Column(
        Enum(PolicyStatus, values_callable=lambda obj: [e.value for e in obj]),
        default=PolicyStatus.ACTIVE,
        nullable=False,
    )
    vehicle_id = Column(Uuid, ForeignKey("vehicles.vehicle_id"), nullable=True, index=True)

    # Policyholder information
    holder_name = Column(String(200))
    holder_rfc = Column(String(13))
    holder_phone = Column(String(20))
    holder_email = Column(String(255))
    street = Column(String(200))
    neighborhood = Column(String(100))
    municipality = Column(String(100))
    region = Column(String(100))
    postal_code = Column(String(10))

    # Insured vehicle as written on the policy
    serial = Column(String(17), index=True)
    make = Column(String(100))
    model = Column(String(100))
    year = Column(Integer)
    color = Column(String(50))
    plate = Column(String(20))

    insurer = Column(String(100))
    agent = Column(String(100))
    issued_at = Column(Date)
    coverage_end = Column(Date, nullable=True)
    rating = Column(Integer, default=0, nullable=False)  # 0-100
    service_count = Column(Integer, default=0, nullable=False)

    # Soft delete
    deleted_at = Column(DateTime, nullable=True)
    deletion_reason = Column(String(200), nullable=True)

    created_by = Column(String(100))
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    vehicle = relationship("Vehicle", foreign_keys=[vehicle_id])
    services = relationship(
        "PolicyService",
        back_populates="policy",
        cascade="all, delete-orphan",
        order_by="PolicyService.service_date",
    )

    def __repr__(self) -> str:
        return f"<Policy {self.policy_number} ({self.status.value})>"

    def is_deleted(self) -> bool:
        """Check if the policy has been soft-deleted."""
        return self.status == PolicyStatus.DELETED


class PolicyService(Base):
    """A roadside/assistance service charged against a policy."""

    __tablename__ = "policy_services"

    service_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    policy_id = Column(Uuid, ForeignKey("policies.policy_id"), nullable=False, index=True)
    file_number = Column(String(50))
    cost = Column(Numeric(12, 2), default=0)
    service_date = Column(Date)
    route = Column(String(500))  # origin - destination

    # Follow-up calls; kept in step by the field-edit flow
    scheduled_contact_at = Column(DateTime, nullable=True)
    scheduled_completion_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    policy = relationship("Policy", back_populates="services")
    notifications = relationship(
        "ScheduledNotification",
        back_populates="service",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<PolicyService {self.file_number} cost={self.cost}>"
