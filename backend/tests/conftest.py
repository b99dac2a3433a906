"""
Test configuration and fixtures for PolicyAdminBot backend tests.
"""

import asyncio
from datetime import date, datetime
from decimal import Decimal
from typing import Generator, List, Optional, Sequence

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import sessionmaker, Session

from main import app
from app.api.deps import get_admin_module
from app.core.config import get_settings
from app.db.base import Base
from app.db.session import get_db, create_db_engine
from app.orchestration.admin import create_admin_module
from app.services.assets import AssetService, AttachResult
from app.services.bot_schemas import Asset, Directive, FreeformInput, RenderRequest
from app.services.notifications import NotificationScheduler
from app.services.session_store import InMemorySessionStore
from app.services.transport import ChatTransport


ACTOR_ID = "1001"
CHAT_ID = "-2002"


def directive(action: str, target_id: Optional[str] = None, actor_id: str = ACTOR_ID, chat_id: str = CHAT_ID) -> Directive:
    return Directive(actor_id=actor_id, conversation_id=chat_id, action=action, target_id=target_id)


def message(text: str, assets: Sequence[Asset] = (), actor_id: str = ACTOR_ID, chat_id: str = CHAT_ID) -> FreeformInput:
    return FreeformInput(actor_id=actor_id, conversation_id=chat_id, text=text, assets=list(assets))


class RecordingAssetService(AssetService):
    """Asset service fake. Assets whose storage key is in fail_keys are reported failed."""

    def __init__(self):
        self.calls: List[tuple] = []
        self.fail_keys: set = set()
        self.gate: Optional[asyncio.Event] = None

    async def attach(self, owner_id, assets: Sequence[Asset]) -> AttachResult:
        if self.gate is not None:
            await self.gate.wait()
        self.calls.append((owner_id, [a.storage_key for a in assets]))
        result = AttachResult()
        for asset in assets:
            (result.failed if asset.storage_key in self.fail_keys else result.succeeded).append(asset)
        return result


class RecordingTransport(ChatTransport):
    def __init__(self):
        self.sent: List[tuple] = []
        self.fail = False

    async def send(self, conversation_id: str, render: RenderRequest) -> None:
        if self.fail:
            raise ConnectionError("transport unavailable")
        self.sent.append((conversation_id, render))


class RecordingScheduler(NotificationScheduler):
    def __init__(self):
        self.calls: List[tuple] = []
        self.fail = False

    async def reschedule(self, owner_id, new_contact_time=None, new_completion_time=None) -> None:
        if self.fail:
            raise RuntimeError("scheduler unavailable")
        self.calls.append((owner_id, new_contact_time, new_completion_time))


@pytest.fixture(scope="function")
def engine(tmp_path):
    """File-backed SQLite so worker threads contend on real locks."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'policy_admin_test.db'}")
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db(session_factory) -> Generator[Session, None, None]:
    """Create a fresh database session for each test."""
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def settings():
    return get_settings()


@pytest.fixture
def sessions() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture
def asset_service() -> RecordingAssetService:
    return RecordingAssetService()


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def scheduler() -> RecordingScheduler:
    return RecordingScheduler()


@pytest.fixture
def admin(settings, session_factory, sessions, asset_service, transport, scheduler):
    """Admin engine wired with fakes for everything outside the database."""
    return create_admin_module(
        settings,
        session_factory,
        sessions=sessions,
        asset_service=asset_service,
        transport=transport,
        scheduler=scheduler,
    )


@pytest.fixture(scope="function")
def client(db: Session, admin) -> Generator[TestClient, None, None]:
    """Create a test client with database and engine overrides."""
    app.dependency_overrides[get_db] = lambda: db
    app.dependency_overrides[get_admin_module] = lambda: admin
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def test_policy(db: Session):
    """Create a regular, active policy."""
    from app.db.models import Policy, PolicyKind, PolicyStatus

    policy = Policy(
        policy_number="POL-2024-0001",
        kind=PolicyKind.REGULAR,
        status=PolicyStatus.ACTIVE,
        holder_name="María López Torres",
        holder_rfc="LOTM800101AB1",
        holder_phone="3312345678",
        holder_email="maria.lopez@example.com",
        serial="3VWFE21C04M000001",
        make="VOLKSWAGEN",
        model="JETTA",
        year=2018,
        color="Blanco",
        insurer="QUALITAS",
        agent="Agente Uno",
        issued_at=date(2024, 1, 15),
        rating=50,
        service_count=1,
    )
    db.add(policy)
    db.commit()
    db.refresh(policy)
    return policy


@pytest.fixture
def test_service(db: Session, test_policy):
    """Create a service with both follow-up times scheduled two hours apart."""
    from app.db.models import PolicyService

    service = PolicyService(
        policy_id=test_policy.policy_id,
        file_number="EXP-001",
        cost=Decimal("1500.00"),
        service_date=date(2024, 5, 10),
        route="Guadalajara - Zapopan",
        scheduled_contact_at=datetime(2024, 5, 10, 10, 0),
        scheduled_completion_at=datetime(2024, 5, 10, 12, 0),
    )
    db.add(service)
    db.commit()
    db.refresh(service)
    return service
