"""
Vehicle Conversion Workflow.

Creates a vehicle and its auto-generated policy as one atomic unit:

    initiated -> validating -> transaction_open -> persisting -> committed -> side_effects_scheduled

with `aborted` reachable from validating, transaction_open or persisting. Nothing is
visible to other readers unless both records and their cross references commit
together. Photo linking and the confirmation notice run afterwards and cannot change
the reported outcome.
"""
import asyncio
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Callable, List, Optional
from uuid import UUID

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.core.exceptions import DuplicateKeyError, TransactionError, ValidationError
from app.core.logging import get_logger
from app.db.models import Policy, PolicyKind, PolicyStatus, Vehicle, VehicleStatus
from app.services.bot_schemas import Asset, RenderRequest
from app.services.duplicate_guard import DuplicateGuard, normalize_serial
from app.services.placeholder_data import HolderData, PlaceholderDataGenerator
from app.services.side_effects import SideEffectProcessor

logger = get_logger(__name__)


class ConversionStage(str, Enum):
    INITIATED = "initiated"
    VALIDATING = "validating"
    TRANSACTION_OPEN = "transaction_open"
    PERSISTING = "persisting"
    COMMITTED = "committed"
    SIDE_EFFECTS_SCHEDULED = "side_effects_scheduled"
    ABORTED = "aborted"


@dataclass
class ConversionRequest:
    serial: str
    make: str
    model: str
    year: int
    color: str
    plate: str = ""
    holder: Optional[HolderData] = None
    assets: List[Asset] = field(default_factory=list)
    actor_id: str = "system"
    conversation_id: Optional[str] = None


@dataclass
class ConversionResult:
    vehicle_id: UUID
    policy_id: UUID
    policy_number: str
    serial: str
    stages: List[ConversionStage] = field(default_factory=list)


def is_unique_violation(error: IntegrityError) -> bool:
    """Tell unique-constraint violations apart from NOT NULL / FK failures."""
    orig = getattr(error, "orig", None)
    if getattr(orig, "pgcode", None) == "23505":
        return True
    message = str(orig or error).lower()
    return "unique" in message or "duplicate" in message


class ConversionWorkflow:
    """Converts a registered-in-chat vehicle into a vehicle plus auto-generated policy."""

    REQUIRED_FIELDS = ("serial", "make", "model", "color")

    def __init__(
        self,
        session_factory: Callable[[], Session],
        guard: DuplicateGuard,
        side_effects: SideEffectProcessor,
        year_min: int = 2023,
        year_max: int = 2026,
        serial_length: int = 17,
        insurer: str = "NIP_AUTOMATICO",
        agent: str = "SISTEMA_AUTOMATIZADO",
        placeholder_data: Optional[PlaceholderDataGenerator] = None,
    ):
        self._session_factory = session_factory
        self.guard = guard
        self.side_effects = side_effects
        self.year_min = year_min
        self.year_max = year_max
        self.serial_length = serial_length
        self.insurer = insurer
        self.agent = agent
        self.placeholder_data = placeholder_data or PlaceholderDataGenerator()

    @classmethod
    def from_settings(
        cls,
        settings,
        session_factory: Callable[[], Session],
        guard: DuplicateGuard,
        side_effects: SideEffectProcessor,
    ) -> "ConversionWorkflow":
        return cls(
            session_factory,
            guard,
            side_effects,
            year_min=settings.CONVERSION_YEAR_MIN,
            year_max=settings.CONVERSION_YEAR_MAX,
            serial_length=settings.SERIAL_LENGTH,
            insurer=settings.AUTO_POLICY_INSURER,
            agent=settings.AUTO_POLICY_AGENT,
        )

    def in_conversion_window(self, year: int) -> bool:
        return self.year_min <= year <= self.year_max

    def validate(self, request: ConversionRequest) -> None:
        """Reject incomplete input or a year outside the window. Opens no transaction."""
        for name in self.REQUIRED_FIELDS:
            value = getattr(request, name)
            if value is None or not str(value).strip():
                raise ValidationError(f"{name} is required", field=name)

        serial = normalize_serial(request.serial)
        if len(serial) != self.serial_length or not serial.isalnum():
            raise ValidationError(
                f"serial must be {self.serial_length} letters or digits", field="serial"
            )

        if not isinstance(request.year, int) or not self.in_conversion_window(request.year):
            raise ValidationError(
                f"year must be between {self.year_min} and {self.year_max}", field="year"
            )

    async def convert(self, request: ConversionRequest) -> ConversionResult:
        """
        Run the conversion.

        Raises:
            ValidationError: input rejected before any store access
            DuplicateKeyError: the serial is already registered
            TransactionError: the store failed; nothing was created
        """
        stages = [ConversionStage.INITIATED, ConversionStage.VALIDATING]
        serial = normalize_serial(request.serial)

        try:
            self.validate(request)
            # Fast rejection outside any transaction
            available = await asyncio.to_thread(self.guard.is_serial_available, serial)
        except ValidationError as e:
            stages.append(ConversionStage.ABORTED)
            logger.info(f"Conversion rejected for {serial}: {e.message}")
            raise
        except SQLAlchemyError as e:
            stages.append(ConversionStage.ABORTED)
            logger.error(f"Serial pre-check failed for {serial}: {e}")
            raise TransactionError(
                "Conversion failed, nothing was created",
                stage=ConversionStage.VALIDATING.value,
                original_error=e,
            ) from e
        if not available:
            stages.append(ConversionStage.ABORTED)
            raise DuplicateKeyError(serial)

        holder = request.holder or self.placeholder_data.generate()
        result = await asyncio.to_thread(self._persist, request, serial, holder, stages)

        self._schedule_side_effects(request, result)
        stages.append(ConversionStage.SIDE_EFFECTS_SCHEDULED)
        return result

    def _persist(
        self,
        request: ConversionRequest,
        serial: str,
        holder: HolderData,
        stages: List[ConversionStage],
    ) -> ConversionResult:
        db = self._session_factory()
        stage = ConversionStage.TRANSACTION_OPEN
        try:
            db.begin()
            stages.append(stage)

            if not self.guard.is_serial_available(serial, db=db):
                raise DuplicateKeyError(serial)

            stage = ConversionStage.PERSISTING
            stages.append(stage)

            vehicle = self._build_vehicle(request, serial, holder)
            db.add(vehicle)
            db.flush()

            policy = self._build_policy(request, serial, holder, vehicle.vehicle_id)
            db.add(policy)
            db.flush()

            vehicle.policy_id = policy.policy_id
            vehicle.status = VehicleStatus.LINKED_TO_POLICY
            db.flush()

            result = ConversionResult(
                vehicle_id=vehicle.vehicle_id,
                policy_id=policy.policy_id,
                policy_number=policy.policy_number,
                serial=serial,
                stages=stages,
            )
            db.commit()
            stages.append(ConversionStage.COMMITTED)
            logger.info(
                f"Converted vehicle {serial}: vehicle={result.vehicle_id} policy={result.policy_id}"
            )
            return result

        except DuplicateKeyError:
            db.rollback()
            stages.append(ConversionStage.ABORTED)
            raise
        except IntegrityError as e:
            db.rollback()
            stages.append(ConversionStage.ABORTED)
            if is_unique_violation(e):
                logger.info(f"Concurrent conversion claimed serial {serial} first")
                raise DuplicateKeyError(serial) from e
            logger.error(f"Conversion of {serial} failed at {stage.value}: {e.orig}")
            raise TransactionError(
                "Conversion failed, nothing was created", stage=stage.value, original_error=e
            ) from e
        except SQLAlchemyError as e:
            db.rollback()
            stages.append(ConversionStage.ABORTED)
            logger.error(f"Conversion of {serial} failed at {stage.value}: {e}")
            raise TransactionError(
                "Conversion failed, nothing was created", stage=stage.value, original_error=e
            ) from e
        except Exception as e:
            db.rollback()
            stages.append(ConversionStage.ABORTED)
            logger.exception(f"Unexpected error converting {serial} at {stage.value}")
            raise TransactionError(
                "Conversion failed, nothing was created", stage=stage.value, original_error=e
            ) from e
        finally:
            db.close()

    def _build_vehicle(self, request: ConversionRequest, serial: str, holder: HolderData) -> Vehicle:
        return Vehicle(
            serial=serial,
            make=request.make.strip(),
            model=request.model.strip(),
            year=request.year,
            color=request.color.strip(),
            plate=(request.plate or "").strip().upper() or None,
            status=VehicleStatus.CONVERTED_PENDING_LINK,
            created_by=request.actor_id,
            created_via="chat_bot",
            **holder.to_dict(),
        )

    def _build_policy(
        self,
        request: ConversionRequest,
        serial: str,
        holder: HolderData,
        vehicle_id: UUID,
    ) -> Policy:
        return Policy(
            policy_number=serial,
            kind=PolicyKind.AUTO_GENERATED,
            status=PolicyStatus.ACTIVE,
            vehicle_id=vehicle_id,
            serial=serial,
            make=request.make.strip(),
            model=request.model.strip(),
            year=request.year,
            color=request.color.strip(),
            plate=(request.plate or "").strip().upper() or None,
            insurer=self.insurer,
            agent=self.agent,
            issued_at=date.today(),
            service_count=0,
            created_by=request.actor_id,
            **holder.to_dict(),
        )

    def _schedule_side_effects(self, request: ConversionRequest, result: ConversionResult) -> None:
        if request.assets:
            self.side_effects.schedule(
                self.side_effects.attach_assets(result.vehicle_id, request.assets),
                label="attach_assets",
            )
        if request.conversation_id:
            notice = RenderRequest(
                text=(
                    f"Vehicle {result.serial} registered and policy {result.policy_number} "
                    f"generated automatically."
                )
            )
            self.side_effects.schedule(
                self.side_effects.send_confirmation(request.conversation_id, notice),
                label="confirmation_notice",
            )
