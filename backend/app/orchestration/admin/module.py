"""
Assembly of the admin workflow engine.
"""
from dataclasses import dataclass
from typing import Callable, Optional

from sqlalchemy.orm import Session

from app.orchestration.admin.dispatcher import OperationDispatcher
from app.orchestration.admin.handlers import (
    FieldEditHandler,
    PolicyDeletionHandler,
    PolicySearchHandler,
    VehicleRegistrationHandler,
)
from app.services.assets import AssetService, VehicleFileAssetService
from app.services.conversion import ConversionWorkflow
from app.services.duplicate_guard import DuplicateGuard
from app.services.notifications import DatabaseNotificationScheduler, NotificationScheduler
from app.services.session_store import SessionStore, create_session_store
from app.services.side_effects import SideEffectProcessor
from app.services.transport import ChatTransport, create_chat_transport
from app.services.vehicles import VehicleRegistry


@dataclass
class AdminModule:
    sessions: SessionStore
    dispatcher: OperationDispatcher
    workflow: ConversionWorkflow
    registry: VehicleRegistry
    side_effects: SideEffectProcessor
    guard: DuplicateGuard


def create_admin_module(
    settings,
    session_factory: Callable[[], Session],
    sessions: Optional[SessionStore] = None,
    asset_service: Optional[AssetService] = None,
    transport: Optional[ChatTransport] = None,
    scheduler: Optional[NotificationScheduler] = None,
) -> AdminModule:
    """Wire the engine. Collaborators not passed in are built from settings."""
    sessions = sessions or create_session_store(settings)
    side_effects = SideEffectProcessor(
        asset_service or VehicleFileAssetService(session_factory),
        transport or create_chat_transport(settings),
    )
    guard = DuplicateGuard(session_factory)
    workflow = ConversionWorkflow.from_settings(settings, session_factory, guard, side_effects)
    registry = VehicleRegistry(session_factory, guard, side_effects)

    dispatcher = OperationDispatcher(sessions, [
        PolicySearchHandler(),
        FieldEditHandler(
            side_effects,
            scheduler or DatabaseNotificationScheduler(session_factory),
            max_retries=settings.DB_RETRY_ATTEMPTS,
        ),
        PolicyDeletionHandler(
            min_reason_length=settings.MIN_FREE_TEXT_LENGTH,
            max_retries=settings.DB_RETRY_ATTEMPTS,
        ),
        VehicleRegistrationHandler(workflow, registry),
    ])

    return AdminModule(
        sessions=sessions,
        dispatcher=dispatcher,
        workflow=workflow,
        registry=registry,
        side_effects=side_effects,
        guard=guard,
    )
