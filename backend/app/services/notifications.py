"""
Notification scheduling for service follow-up calls.

Each service may carry a contact reminder and a completion reminder. When an admin edits
either scheduled time, the pending reminders are moved to the new times.
"""
import asyncio
from abc import ABC, abstractmethod
from datetime import datetime, timedelta
from typing import Callable, Optional, Tuple
from uuid import UUID

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import SideEffectError
from app.core.logging import get_logger
from app.db.models import NotificationKind, NotificationStatus, ScheduledNotification

logger = get_logger(__name__)


def shift_paired_times(
    prior_contact: Optional[datetime],
    prior_completion: Optional[datetime],
    new_contact: Optional[datetime] = None,
    new_completion: Optional[datetime] = None,
) -> Tuple[Optional[datetime], Optional[datetime]]:
    """
    Recompute a contact/completion pair after one side moved.

    The gap between the previous contact and completion times is preserved. When
    either previous time is missing there is no gap to keep, and only the edited
    side changes.

    Returns:
        (contact, completion) to persist
    """
    if new_contact is not None and new_completion is not None:
        return new_contact, new_completion

    delta: Optional[timedelta] = None
    if prior_contact is not None and prior_completion is not None:
        delta = prior_completion - prior_contact

    if new_contact is not None:
        return new_contact, (new_contact + delta) if delta is not None else prior_completion
    if new_completion is not None:
        return (new_completion - delta) if delta is not None else prior_contact, new_completion
    return prior_contact, prior_completion


class NotificationScheduler(ABC):
    """Moves pending reminders for a service."""

    @abstractmethod
    async def reschedule(
        self,
        owner_id: UUID,
        new_contact_time: Optional[datetime] = None,
        new_completion_time: Optional[datetime] = None,
    ) -> None:
        pass


class DatabaseNotificationScheduler(NotificationScheduler):
    """Keeps scheduled_notifications rows in step with a service's scheduled times."""

    def __init__(self, session_factory: Callable[[], Session]):
        self._session_factory = session_factory

    async def reschedule(
        self,
        owner_id: UUID,
        new_contact_time: Optional[datetime] = None,
        new_completion_time: Optional[datetime] = None,
    ) -> None:
        await asyncio.to_thread(self._reschedule_sync, owner_id, new_contact_time, new_completion_time)

    def _reschedule_sync(
        self,
        service_id: UUID,
        new_contact_time: Optional[datetime],
        new_completion_time: Optional[datetime],
    ) -> None:
        targets = {
            NotificationKind.CONTACT: new_contact_time,
            NotificationKind.COMPLETION: new_completion_time,
        }
        db = self._session_factory()
        try:
            for kind, when in targets.items():
                if when is None:
                    continue
                pending = (
                    db.query(ScheduledNotification)
                    .filter(
                        ScheduledNotification.service_id == service_id,
                        ScheduledNotification.kind == kind,
                        ScheduledNotification.status == NotificationStatus.PENDING,
                    )
                    .all()
                )
                if not pending:
                    db.add(ScheduledNotification(service_id=service_id, kind=kind, scheduled_for=when))
                    continue
                for notification in pending:
                    notification.scheduled_for = when

            db.commit()
            logger.info(
                f"Rescheduled reminders for service {service_id}: "
                f"contact={new_contact_time} completion={new_completion_time}"
            )
        except SQLAlchemyError as e:
            db.rollback()
            raise SideEffectError("reschedule", f"service {service_id}: {e}", original_error=e) from e
        finally:
            db.close()
