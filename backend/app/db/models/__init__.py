"""
Database models package
"""
from app.db.models.policy import Policy, PolicyService, PolicyKind, PolicyStatus
from app.db.models.vehicle import Vehicle, VehicleFile, VehicleStatus
from app.db.models.notification import ScheduledNotification, NotificationKind, NotificationStatus
from app.db.models.audit import AuditLog

__all__ = [
    # Policy
    "Policy",
    "PolicyService",
    "PolicyKind",
    "PolicyStatus",
    # Vehicle
    "Vehicle",
    "VehicleFile",
    "VehicleStatus",
    # Notifications
    "ScheduledNotification",
    "NotificationKind",
    "NotificationStatus",
    # Audit
    "AuditLog",
]
