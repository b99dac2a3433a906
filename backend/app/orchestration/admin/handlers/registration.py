"""
Vehicle registration protocol.

Collects serial, make, model, year, color and plate one message at a time, then photos.
Finishing converts the vehicle (vehicle + auto-generated policy) when its year is inside
the conversion window, and registers it without a policy otherwise.
"""
import asyncio
from datetime import date
from typing import Any, Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from app.core.exceptions import DuplicateKeyError, TransactionError, ValidationError
from app.core.logging import get_logger
from app.orchestration.admin.base import AdminContext, cancel_row, reply
from app.services.audit import AuditService
from app.services.bot_schemas import Asset, Button, Directive, FreeformInput, RenderRequest
from app.services.conversion import ConversionRequest, ConversionWorkflow
from app.services.duplicate_guard import normalize_serial
from app.services.session_store import Operation
from app.services.vehicles import VehicleRegistry

logger = get_logger(__name__)

STEPS = ["serial", "make", "model", "year", "color", "plate", "photos"]

PROMPTS = {
    "serial": "Send the vehicle serial (VIN).",
    "make": "Send the make.",
    "model": "Send the model.",
    "year": "Send the model year.",
    "color": "Send the color.",
    "plate": "Send the plate, or '-' if it has none.",
    "photos": "Send the vehicle photos, then press Finish.",
}

NO_PLATE = {"-", "none", "n/a", "sin placas"}


def _finish_row() -> List[Button]:
    return [Button(label="Finish", action="vehicle_finish"), Button(label="Cancel", action="cancel")]


class VehicleRegistrationHandler:
    """vehicle-registration protocol and the finish directive."""

    def __init__(self, workflow: ConversionWorkflow, registry: VehicleRegistry):
        self.workflow = workflow
        self.registry = registry

    def directives(self) -> Dict[str, Any]:
        return {
            "vehicle_register": self.start,
            "vehicle_finish": self.finish,
        }

    def continuations(self) -> Dict[Operation, Any]:
        return {Operation.VEHICLE_REGISTRATION: self.on_input}

    async def start(self, ctx: AdminContext, directive: Directive) -> RenderRequest:
        ctx.sessions.create(ctx.identity, Operation.VEHICLE_REGISTRATION, {"step": "serial", "assets": []})
        return reply(PROMPTS["serial"], cancel_row())

    async def on_input(self, ctx: AdminContext, event: FreeformInput, payload: Dict[str, Any]) -> RenderRequest:
        step = payload.get("step", "serial")

        if step == "photos":
            if not event.assets:
                return reply(PROMPTS["photos"], _finish_row())
            assets = payload.get("assets", []) + [asset.model_dump() for asset in event.assets]
            ctx.sessions.update(ctx.identity, {"assets": assets})
            return reply(f"{len(assets)} photo(s) received. Send more or press Finish.", _finish_row())

        value = await self._parse_step(step, event.text)
        next_step = STEPS[STEPS.index(step) + 1]
        ctx.sessions.update(ctx.identity, {step: value, "step": next_step})

        if next_step == "photos":
            return reply(PROMPTS["photos"], _finish_row())
        return reply(PROMPTS[next_step], cancel_row())

    async def _parse_step(self, step: str, raw: str) -> Any:
        text = (raw or "").strip()

        if step == "serial":
            serial = normalize_serial(text)
            if len(serial) != self.workflow.serial_length or not serial.isalnum():
                raise ValidationError(
                    f"The serial must have {self.workflow.serial_length} letters or digits", field="serial"
                )
            try:
                available = await asyncio.to_thread(self.workflow.guard.is_serial_available, serial)
            except SQLAlchemyError as e:
                logger.warning(f"Serial check for {serial} failed: {e}")
                raise ValidationError(
                    "The serial could not be checked right now. Send it again.", field="serial"
                ) from e
            if not available:
                raise ValidationError(
                    f"A vehicle with serial {serial} is already registered. Send another serial.",
                    field="serial",
                )
            return serial

        if step == "year":
            max_year = date.today().year + 2
            if not text.isdigit() or not 1900 <= int(text) <= max_year:
                raise ValidationError(f"The year must be a number between 1900 and {max_year}", field="year")
            return int(text)

        if step == "plate":
            return "" if text.lower() in NO_PLATE else text.upper()

        if not text:
            raise ValidationError(f"The {step} cannot be empty", field=step)
        return text.upper() if step in ("make", "model") else text

    async def finish(self, ctx: AdminContext, directive: Directive) -> RenderRequest:
        state = ctx.sessions.get(ctx.identity)
        if (
            state is None
            or state.operation != Operation.VEHICLE_REGISTRATION
            or state.payload.get("step") != "photos"
        ):
            return reply("There is no vehicle registration ready to finish.", [Button(label="Main menu", action="menu")])

        data = state.payload
        request = ConversionRequest(
            serial=data["serial"],
            make=data["make"],
            model=data["model"],
            year=data["year"],
            color=data["color"],
            plate=data.get("plate", ""),
            assets=[Asset(**asset) for asset in data.get("assets", [])],
            actor_id=ctx.identity.user_id,
            conversation_id=ctx.identity.chat_id,
        )

        try:
            if self.workflow.in_conversion_window(request.year):
                return await self._convert(ctx, request)
            return await self._register(ctx, request)
        except DuplicateKeyError as e:
            ctx.sessions.clear(ctx.identity)
            return reply(f"{e.message}. Nothing was created.", [Button(label="Main menu", action="menu")])
        except TransactionError as e:
            logger.warning(f"Registration of {request.serial} failed: {e.message}")
            return reply(
                "The vehicle could not be saved. Nothing was created. Try again.",
                _finish_row(),
            )

    async def _convert(self, ctx: AdminContext, request: ConversionRequest) -> RenderRequest:
        result = await self.workflow.convert(request)
        ctx.sessions.clear(ctx.identity)
        self._audit(ctx, "vehicle.converted", result.vehicle_id, {
            "serial": result.serial,
            "policy_id": str(result.policy_id),
            "policy_number": result.policy_number,
        })
        return reply(
            f"Vehicle {request.year} {request.make} {request.model} registered.\n"
            f"Policy {result.policy_number} was generated automatically.",
            [Button(label="Open policy", action="policy_select", target_id=str(result.policy_id))],
            [Button(label="Main menu", action="menu")],
        )

    async def _register(self, ctx: AdminContext, request: ConversionRequest) -> RenderRequest:
        vehicle_id = await self.registry.register(request)
        ctx.sessions.clear(ctx.identity)
        self._audit(ctx, "vehicle.registered", vehicle_id, {"serial": normalize_serial(request.serial)})
        return reply(
            f"Vehicle {request.year} {request.make} {request.model} registered without a policy.",
            [Button(label="Main menu", action="menu")],
        )

    def _audit(self, ctx: AdminContext, event_type: str, vehicle_id, details: Optional[dict]) -> None:
        AuditService(ctx.db).log_admin_event(
            event_type=event_type,
            admin_id=ctx.identity.user_id,
            resource_type="vehicle",
            resource_id=str(vehicle_id),
            action="create",
            details=details,
        )
