"""
Vehicle and VehicleFile database models
"""
import uuid
from datetime import datetime
from enum import Enum as PyEnum

from sqlalchemy import Column, String, DateTime, Enum, ForeignKey, Integer, UniqueConstraint, Uuid
from sqlalchemy.orm import relationship

from app.db.base import Base


class VehicleStatus(str, PyEnum):
    UNLINKED = "unlinked"
    CONVERTED_PENDING_LINK = "converted_pending_link"
    LINKED_TO_POLICY = "linked_to_policy"
    ARCHIVED = "archived"


class Vehicle(Base):
    """Registered vehicle, optionally linked to the policy generated for it."""

    __tablename__ = "vehicles"

    vehicle_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    serial = Column(String(17), unique=True, nullable=False, index=True)
    make = Column(String(100), nullable=False)
    model = Column(String(100), nullable=False)
    year = Column(Integer, nullable=False)
    color = Column(String(50), nullable=False)
    plate = Column(String(20))
    status = Column(
        Enum(VehicleStatus, values_callable=lambda obj: [e.value for e in obj]),
        default=VehicleStatus.UNLINKED,
        nullable=False,
    )
    # No FK: policies.vehicle_id already points here and both halves are written in one transaction
    policy_id = Column(Uuid, nullable=True, index=True)

    # Holder placeholder data
    holder_name = Column(String(200))
    holder_rfc = Column(String(13))
    holder_phone = Column(String(20))
    holder_email = Column(String(255))
    street = Column(String(200))
    neighborhood = Column(String(100))
    municipality = Column(String(100))
    region = Column(String(100))
    postal_code = Column(String(10))

    created_by = Column(String(100))
    created_via = Column(String(50), default="chat_bot")
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    files = relationship("VehicleFile", back_populates="vehicle", cascade="all, delete-orphan")

    def __repr__(self) -> str:
        return f"<Vehicle {self.serial} {self.year} {self.make} {self.model}>"

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses."""
        return {
            "vehicleId": str(self.vehicle_id),
            "serial": self.serial,
            "year": self.year,
            "make": self.make,
            "model": self.model,
            "color": self.color,
            "plate": self.plate,
            "status": self.status.value if self.status else None,
            "policyId": str(self.policy_id) if self.policy_id else None,
            "displayName": f"{self.year} {self.make} {self.model}",
        }


class VehicleFile(Base):
    """Binary asset (photo) attached to a vehicle."""

    __tablename__ = "vehicle_files"
    __table_args__ = (
        UniqueConstraint("vehicle_id", "storage_key", name="uq_vehicle_files_vehicle_key"),
    )

    file_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    vehicle_id = Column(Uuid, ForeignKey("vehicles.vehicle_id"), nullable=False, index=True)
    kind = Column(String(20), default="photo", nullable=False)
    url = Column(String(1000), nullable=False)
    storage_key = Column(String(500), nullable=False)
    size = Column(Integer, default=0)
    content_type = Column(String(100), default="image/jpeg")
    uploaded_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    vehicle = relationship("Vehicle", back_populates="files")

    def __repr__(self) -> str:
        return f"<VehicleFile {self.storage_key}>"
