"""
Tests for the vehicle conversion workflow.
"""

import asyncio
import random

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker

from app.core.exceptions import DuplicateKeyError, TransactionError, ValidationError
from app.db.models import Policy, PolicyKind, PolicyStatus, Vehicle, VehicleStatus
from app.services.bot_schemas import Asset
from app.services.conversion import (
    ConversionRequest,
    ConversionResult,
    ConversionStage,
    ConversionWorkflow,
)
from app.services.duplicate_guard import DuplicateGuard
from app.services.placeholder_data import HolderData, PlaceholderDataGenerator


SERIAL = "1HGBH41JXMN109186"


def make_request(**overrides) -> ConversionRequest:
    data = dict(serial=SERIAL, make="HONDA", model="CIVIC", year=2024, color="Rojo", plate="abc-123")
    data.update(overrides)
    return ConversionRequest(**data)


def photo(key: str) -> Asset:
    return Asset(url=f"https://files.example.com/{key}", storage_key=key, size=2048)


def tracking_factory(engine, fail_commit: bool = False):
    """Session factory whose sessions record rollbacks and can fail on commit."""
    events = []

    class TrackingSession(Session):
        def rollback(self):
            events.append("rollback")
            super().rollback()

        def commit(self):
            if fail_commit:
                raise OperationalError("COMMIT", {}, Exception("database is locked"))
            super().commit()

    return sessionmaker(bind=engine, class_=TrackingSession, autoflush=False), events


class PreCheckMissesGuard(DuplicateGuard):
    """Reports every serial free outside a transaction, as if a concurrent insert landed after the read."""

    def is_serial_available(self, serial, db=None):
        if db is None:
            return True
        return super().is_serial_available(serial, db=db)


class AlwaysFreeGuard(DuplicateGuard):
    def is_serial_available(self, serial, db=None):
        return True


def counts(db):
    db.expire_all()
    return db.query(Vehicle).count(), db.query(Policy).count()


class TestConversion:
    """Test a successful conversion."""

    @pytest.mark.asyncio
    async def test_creates_linked_vehicle_and_policy(self, admin, db):
        """Test both records are created and reference each other."""
        result = await admin.workflow.convert(make_request(serial=SERIAL.lower()))

        assert result.serial == SERIAL
        assert result.policy_number == SERIAL
        assert result.stages == [
            ConversionStage.INITIATED,
            ConversionStage.VALIDATING,
            ConversionStage.TRANSACTION_OPEN,
            ConversionStage.PERSISTING,
            ConversionStage.COMMITTED,
            ConversionStage.SIDE_EFFECTS_SCHEDULED,
        ]

        vehicle = db.get(Vehicle, result.vehicle_id)
        policy = db.get(Policy, result.policy_id)
        assert vehicle.status == VehicleStatus.LINKED_TO_POLICY
        assert vehicle.policy_id == policy.policy_id
        assert vehicle.plate == "ABC-123"
        assert policy.vehicle_id == vehicle.vehicle_id
        assert policy.kind == PolicyKind.AUTO_GENERATED
        assert policy.status == PolicyStatus.ACTIVE
        assert policy.service_count == 0
        assert policy.insurer == "NIP_AUTOMATICO"
        assert policy.agent == "SISTEMA_AUTOMATIZADO"
        assert policy.serial == SERIAL
        assert policy.year == 2024

    @pytest.mark.asyncio
    async def test_placeholder_holder_is_written_to_both_records(self, admin, db):
        result = await admin.workflow.convert(make_request())

        vehicle = db.get(Vehicle, result.vehicle_id)
        policy = db.get(Policy, result.policy_id)
        assert policy.holder_name
        assert len(policy.holder_rfc) == 13
        assert "@" in policy.holder_email
        assert len(policy.postal_code) == 5
        assert vehicle.holder_rfc == policy.holder_rfc

    @pytest.mark.asyncio
    async def test_explicit_holder_is_used(self, admin, db):
        holder = HolderData(
            holder_name="Ana Ruiz Ortiz",
            holder_rfc="RUOA900202XY9",
            holder_phone="3311122233",
            holder_email="ana.ruiz@example.com",
            street="Av. Patria 100",
            neighborhood="Centro",
            municipality="Zapopan",
            region="Jalisco",
            postal_code="45100",
        )
        result = await admin.workflow.convert(make_request(holder=holder))

        policy = db.get(Policy, result.policy_id)
        assert policy.holder_name == "Ana Ruiz Ortiz"
        assert policy.holder_rfc == "RUOA900202XY9"

    def test_seeded_placeholder_data_is_reproducible(self):
        first = PlaceholderDataGenerator(random.Random(7)).generate()
        second = PlaceholderDataGenerator(random.Random(7)).generate()
        assert first == second
        assert first.holder_phone.isdigit()


class TestConversionValidation:
    """Test input is rejected before any transaction is opened."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("overrides,field", [
        ({"year": 2019}, "year"),
        ({"year": 2027}, "year"),
        ({"serial": "1HGBH41JX"}, "serial"),
        ({"serial": "1HGBH41JXMN10918!"}, "serial"),
        ({"color": "  "}, "color"),
        ({"make": ""}, "make"),
    ])
    async def test_rejected(self, admin, db, overrides, field):
        with pytest.raises(ValidationError) as exc_info:
            await admin.workflow.convert(make_request(**overrides))

        assert exc_info.value.field == field
        assert counts(db) == (0, 0)

    @pytest.mark.asyncio
    async def test_window_edges_are_inclusive(self, admin):
        assert admin.workflow.in_conversion_window(2023)
        assert admin.workflow.in_conversion_window(2026)
        assert not admin.workflow.in_conversion_window(2022)


class TestDuplicateDetection:
    """Test each layer of duplicate detection."""

    @pytest.mark.asyncio
    async def test_existing_vehicle_serial(self, admin, db):
        db.add(Vehicle(serial=SERIAL, make="HONDA", model="CIVIC", year=2021, color="Gris"))
        db.commit()

        with pytest.raises(DuplicateKeyError) as exc_info:
            await admin.workflow.convert(make_request())

        assert exc_info.value.serial == SERIAL
        assert counts(db) == (1, 0)

    @pytest.mark.asyncio
    async def test_existing_policy_number(self, admin, db):
        """Test a policy numbered with the serial also blocks the conversion."""
        db.add(Policy(policy_number=SERIAL, holder_name="Titular Previo"))
        db.commit()

        with pytest.raises(DuplicateKeyError):
            await admin.workflow.convert(make_request())
        assert counts(db) == (0, 1)

    @pytest.mark.asyncio
    async def test_recheck_inside_transaction(self, admin, engine, db):
        """Test a duplicate missed by the pre-check is caught in the transaction and rolled back."""
        db.add(Vehicle(serial=SERIAL, make="HONDA", model="CIVIC", year=2021, color="Gris"))
        db.commit()

        factory, events = tracking_factory(engine)
        workflow = ConversionWorkflow(factory, PreCheckMissesGuard(factory), admin.side_effects)

        with pytest.raises(DuplicateKeyError):
            await workflow.convert(make_request())

        assert "rollback" in events
        assert counts(db) == (1, 0)

    @pytest.mark.asyncio
    async def test_unique_constraint_is_final_authority(self, admin, engine, db, session_factory):
        """Test the unique index rejects a duplicate both guard checks missed."""
        db.add(Vehicle(serial=SERIAL, make="HONDA", model="CIVIC", year=2021, color="Gris"))
        db.commit()

        workflow = ConversionWorkflow(session_factory, AlwaysFreeGuard(session_factory), admin.side_effects)

        with pytest.raises(DuplicateKeyError):
            await workflow.convert(make_request())
        assert counts(db) == (1, 0)

    @pytest.mark.asyncio
    async def test_concurrent_conversions_of_one_serial(self, admin, db):
        """Test two simultaneous conversions of the same serial produce exactly one vehicle."""
        outcomes = await asyncio.gather(
            admin.workflow.convert(make_request()),
            admin.workflow.convert(make_request(color="Azul")),
            return_exceptions=True,
        )

        successes = [o for o in outcomes if isinstance(o, ConversionResult)]
        duplicates = [o for o in outcomes if isinstance(o, DuplicateKeyError)]
        assert len(successes) == 1
        assert len(duplicates) == 1
        assert counts(db) == (1, 1)


class TestConversionRollback:
    """Test failures inside the transaction leave nothing behind."""

    @pytest.mark.asyncio
    async def test_policy_write_failure(self, admin, db, session_factory):
        """Test a failed policy insert also removes the already flushed vehicle."""

        class BrokenPolicyWorkflow(ConversionWorkflow):
            def _build_policy(self, request, serial, holder, vehicle_id):
                policy = super()._build_policy(request, serial, holder, vehicle_id)
                policy.policy_number = None
                return policy

        workflow = BrokenPolicyWorkflow(session_factory, admin.guard, admin.side_effects)

        with pytest.raises(TransactionError) as exc_info:
            await workflow.convert(make_request())

        assert exc_info.value.stage == "persisting"
        assert counts(db) == (0, 0)

    @pytest.mark.asyncio
    async def test_commit_failure(self, admin, engine, db):
        factory, events = tracking_factory(engine, fail_commit=True)
        workflow = ConversionWorkflow(factory, DuplicateGuard(factory), admin.side_effects)

        with pytest.raises(TransactionError) as exc_info:
            await workflow.convert(make_request(assets=[photo("a.jpg")], conversation_id="-2002"))

        assert isinstance(exc_info.value.original_error, OperationalError)
        assert "rollback" in events
        assert counts(db) == (0, 0)
        # Nothing is scheduled for a conversion that did not commit
        assert admin.side_effects.pending == 0

    @pytest.mark.asyncio
    async def test_serial_can_be_converted_after_failed_attempt(self, admin, db, session_factory):
        class BrokenPolicyWorkflow(ConversionWorkflow):
            def _build_policy(self, request, serial, holder, vehicle_id):
                policy = super()._build_policy(request, serial, holder, vehicle_id)
                policy.policy_number = None
                return policy

        with pytest.raises(TransactionError):
            await BrokenPolicyWorkflow(session_factory, admin.guard, admin.side_effects).convert(make_request())

        result = await admin.workflow.convert(make_request())
        assert result.policy_number == SERIAL


class TestConversionSideEffects:
    """Test side effects run after commit and never change the outcome."""

    @pytest.mark.asyncio
    async def test_assets_and_notice(self, admin, asset_service, transport):
        result = await admin.workflow.convert(
            make_request(assets=[photo("front.jpg"), photo("back.jpg")], conversation_id="-2002")
        )
        await admin.side_effects.drain()

        assert asset_service.calls == [(result.vehicle_id, ["front.jpg", "back.jpg"])]
        assert len(transport.sent) == 1
        conversation_id, render = transport.sent[0]
        assert conversation_id == "-2002"
        assert SERIAL in render.text

    @pytest.mark.asyncio
    async def test_no_assets_no_notice(self, admin, asset_service, transport):
        await admin.workflow.convert(make_request())
        await admin.side_effects.drain()

        assert asset_service.calls == []
        assert transport.sent == []

    @pytest.mark.asyncio
    async def test_failures_are_recorded_not_raised(self, admin, db, asset_service, transport):
        """Test a partial attach and a failed notice leave the conversion successful."""
        asset_service.fail_keys = {"back.jpg"}
        transport.fail = True

        result = await admin.workflow.convert(
            make_request(assets=[photo("front.jpg"), photo("back.jpg")], conversation_id="-2002")
        )
        await admin.side_effects.drain()

        assert db.get(Vehicle, result.vehicle_id) is not None
        assert sorted(f.label for f in admin.side_effects.failures) == ["attach_assets", "confirmation_notice"]

    @pytest.mark.asyncio
    async def test_returns_before_side_effects_finish(self, admin, asset_service):
        """Test the caller gets the result while attachments are still running."""
        asset_service.gate = asyncio.Event()

        result = await admin.workflow.convert(make_request(assets=[photo("front.jpg")]))

        assert result.vehicle_id is not None
        assert admin.side_effects.pending == 1
        assert asset_service.calls == []

        asset_service.gate.set()
        await admin.side_effects.drain()
        assert len(asset_service.calls) == 1
        assert admin.side_effects.pending == 0
