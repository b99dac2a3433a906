"""
Field edit protocol.

Turn 1 (directive field_edit): remember the target and prompt for a value.
Turn 2 (free text): validate against the field's kind and ask for confirmation.
Turn 3 (directive edit_confirm / edit_cancel): write the value, or drop it.
"""
from typing import Any, Dict, Optional

from app.db.models import Policy, PolicyService
from app.orchestration.admin.base import AdminContext, cancel_row, parse_uuid, reply, split_target
from app.orchestration.admin.fields import PAIRED_SCHEDULE_FIELDS, FieldSpec, get_field
from app.core.exceptions import ValidationError
from app.core.logging import get_logger
from app.services.audit import AuditService
from app.services.bot_schemas import Button, Directive, FreeformInput, RenderRequest
from app.services.db_utils import update_record_with_retry
from app.services.notifications import NotificationScheduler, shift_paired_times
from app.services.session_store import Operation
from app.services.side_effects import SideEffectProcessor

logger = get_logger(__name__)

MODELS = {"policy": Policy, "service": PolicyService}


def _back_button(target_kind: str, record: Any) -> Button:
    if target_kind == "service":
        return Button(label="Back to service", action="service_select", target_id=str(record.service_id))
    return Button(label="Back to policy", action="policy_select", target_id=str(record.policy_id))


class FieldEditHandler:
    """Edits one column of a policy or service."""

    def __init__(
        self,
        side_effects: SideEffectProcessor,
        scheduler: Optional[NotificationScheduler] = None,
        max_retries: int = 3,
    ):
        self.side_effects = side_effects
        self.scheduler = scheduler
        self.max_retries = max_retries

    def directives(self) -> Dict[str, Any]:
        return {
            "field_edit": self.start,
            "edit_confirm": self.confirm,
            "edit_cancel": self.cancel,
        }

    def continuations(self) -> Dict[Operation, Any]:
        return {
            Operation.FIELD_EDIT: self.on_value,
            # A new value typed at the confirmation step replaces the candidate
            Operation.FIELD_EDIT_CONFIRMATION: self.on_value,
        }

    def _resolve(self, target_kind: str, field_name: str) -> FieldSpec:
        field_def = get_field(target_kind, field_name)
        if field_def is None:
            raise ValidationError(f"Field {field_name} cannot be edited")
        return field_def

    async def start(self, ctx: AdminContext, directive: Directive) -> RenderRequest:
        target_kind, raw_id, field_name = split_target(directive.target_id, 3)
        field_def = self._resolve(target_kind, field_name)
        record = ctx.db.get(MODELS[target_kind], parse_uuid(raw_id, target_kind))
        if record is None:
            return reply(f"{target_kind.capitalize()} not found.", [Button(label="Main menu", action="menu")])
        if target_kind == "policy" and record.is_deleted():
            return reply("Deleted policies cannot be edited. Restore it first.", [Button(label="Main menu", action="menu")])

        prior = getattr(record, field_def.name)
        ctx.sessions.create(ctx.identity, Operation.FIELD_EDIT, {
            "target_kind": target_kind,
            "target_id": raw_id,
            "field_name": field_def.name,
            "prior_value": field_def.to_storage(prior),
        })
        return reply(
            f"Current {field_def.label}: {field_def.display(prior)}\nSend the new value.",
            cancel_row("edit_cancel"),
        )

    async def on_value(self, ctx: AdminContext, event: FreeformInput, payload: Dict[str, Any]) -> RenderRequest:
        field_def = self._resolve(payload["target_kind"], payload["field_name"])
        # Raises ValidationError; the session stays where it is
        candidate = field_def.parse(event.text)

        ctx.sessions.create(ctx.identity, Operation.FIELD_EDIT_CONFIRMATION, {
            "target_kind": payload["target_kind"],
            "target_id": payload["target_id"],
            "field_name": field_def.name,
            "prior_value": payload.get("prior_value"),
            "candidate_value": field_def.to_storage(candidate),
        })
        prior = field_def.from_storage(payload.get("prior_value"))
        return reply(
            f"{field_def.label}: {field_def.display(prior)} -> {field_def.display(candidate)}\nSave this change?",
            [Button(label="Confirm", action="edit_confirm"), Button(label="Cancel", action="edit_cancel")],
        )

    async def confirm(self, ctx: AdminContext, directive: Directive) -> RenderRequest:
        state = ctx.sessions.get(ctx.identity)
        if state is None or state.operation != Operation.FIELD_EDIT_CONFIRMATION:
            return reply("There is no pending change to confirm.", [Button(label="Main menu", action="menu")])

        payload = state.payload
        target_kind = payload["target_kind"]
        field_def = self._resolve(target_kind, payload["field_name"])
        model = MODELS[target_kind]
        record_id = parse_uuid(payload["target_id"], target_kind)
        candidate = field_def.from_storage(payload["candidate_value"])

        record = ctx.db.get(model, record_id)
        if record is None:
            ctx.sessions.clear(ctx.identity)
            return reply(f"{target_kind.capitalize()} not found.", [Button(label="Main menu", action="menu")])

        updates = {field_def.name: candidate}
        if target_kind == "service" and field_def.name in PAIRED_SCHEDULE_FIELDS:
            contact, completion = shift_paired_times(
                record.scheduled_contact_at,
                record.scheduled_completion_at,
                new_contact=candidate if field_def.name == "scheduled_contact_at" else None,
                new_completion=candidate if field_def.name == "scheduled_completion_at" else None,
            )
            updates = {"scheduled_contact_at": contact, "scheduled_completion_at": completion}

        failure = update_record_with_retry(ctx.db, model, record_id, updates, max_retries=self.max_retries)
        if failure == "conflict":
            return reply(
                f"{field_def.display(candidate)} is already used by another record. Send a different value or cancel.",
                cancel_row("edit_cancel"),
            )
        if failure == "not_found":
            ctx.sessions.clear(ctx.identity)
            return reply(f"{target_kind.capitalize()} not found.", [Button(label="Main menu", action="menu")])
        if failure is not None:
            return reply(
                "The change could not be saved right now. Try again.",
                [Button(label="Retry", action="edit_confirm"), Button(label="Cancel", action="edit_cancel")],
            )

        ctx.sessions.clear(ctx.identity)
        AuditService(ctx.db).log_admin_event(
            event_type=f"{target_kind}.field_updated",
            admin_id=ctx.identity.user_id,
            resource_type=target_kind,
            resource_id=str(record_id),
            action="update",
            details={
                "field": field_def.name,
                "previous": payload.get("prior_value"),
                "new": payload["candidate_value"],
            },
        )

        if "scheduled_contact_at" in updates and self.scheduler is not None:
            self.side_effects.schedule(
                self.scheduler.reschedule(
                    record_id,
                    new_contact_time=updates["scheduled_contact_at"],
                    new_completion_time=updates["scheduled_completion_at"],
                ),
                label="reschedule",
            )

        prior = field_def.from_storage(payload.get("prior_value"))
        record = ctx.db.get(model, record_id)
        return reply(
            f"{field_def.label} updated: {field_def.display(prior)} -> {field_def.display(candidate)}",
            [_back_button(target_kind, record)],
        )

    async def cancel(self, ctx: AdminContext, directive: Directive) -> RenderRequest:
        ctx.sessions.clear(ctx.identity)
        return reply("Change discarded.", [Button(label="Main menu", action="menu")])
