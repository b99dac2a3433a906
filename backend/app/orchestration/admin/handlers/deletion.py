"""
Policy soft deletion and restore.
"""
from datetime import datetime
from typing import Any, Dict

from app.core.data_classification import detect_and_mask_pii
from app.core.exceptions import ValidationError
from app.core.logging import get_logger
from app.db.models import Policy, PolicyStatus
from app.orchestration.admin import menus
from app.orchestration.admin.base import AdminContext, cancel_row, parse_uuid, reply, split_target
from app.orchestration.admin.handlers.search import search_policies
from app.services.audit import AuditService
from app.services.bot_schemas import Button, Directive, FreeformInput, RenderRequest
from app.services.db_utils import update_record_with_retry
from app.services.session_store import Operation

logger = get_logger(__name__)

DELETION_REASONS = {
    "expired": "Expired policy",
    "client_request": "Client request",
    "incorrect_info": "Incorrect information",
    "duplicate": "Duplicate policy",
}

MENU_ROW = [Button(label="Main menu", action="menu")]


class PolicyDeletionHandler:
    """awaiting-deletion-reason and search-for-restore protocols."""

    def __init__(self, min_reason_length: int = 3, max_retries: int = 3):
        self.min_reason_length = min_reason_length
        self.max_retries = max_retries

    def directives(self) -> Dict[str, Any]:
        return {
            "policy_delete": self.start_delete,
            "delete_reason": self.on_reason_code,
            "policy_restore_search": self.start_restore_search,
            "policy_restore": self.restore,
        }

    def continuations(self) -> Dict[Operation, Any]:
        return {
            Operation.AWAITING_DELETION_REASON: self.on_reason_text,
            Operation.RESTORE_SEARCH: self.on_restore_term,
        }

    async def start_delete(self, ctx: AdminContext, directive: Directive) -> RenderRequest:
        policy = ctx.db.get(Policy, parse_uuid(directive.target_id, "policy"))
        if policy is None:
            return reply("Policy not found.", MENU_ROW)
        if policy.is_deleted():
            return reply(f"Policy {policy.policy_number} is already deleted.", MENU_ROW)

        ctx.sessions.create(ctx.identity, Operation.AWAITING_DELETION_REASON, {
            "policy_id": str(policy.policy_id),
            "policy_number": policy.policy_number,
        })
        rows = [
            [Button(label=label, action="delete_reason", target_id=f"{policy.policy_id}:{code}")]
            for code, label in DELETION_REASONS.items()
        ]
        return reply(
            f"Why is policy {policy.policy_number} being deleted? Pick a reason or type one.",
            *rows,
            cancel_row(),
        )

    async def on_reason_code(self, ctx: AdminContext, directive: Directive) -> RenderRequest:
        raw_id, code = split_target(directive.target_id, 2)
        reason = DELETION_REASONS.get(code)
        if reason is None:
            raise ValidationError("Unknown deletion reason")
        return self._soft_delete(ctx, parse_uuid(raw_id, "policy"), reason)

    async def on_reason_text(self, ctx: AdminContext, event: FreeformInput, payload: Dict[str, Any]) -> RenderRequest:
        reason = event.text.strip()
        if len(reason) < self.min_reason_length:
            raise ValidationError(
                f"The reason must have at least {self.min_reason_length} characters"
            )
        return self._soft_delete(ctx, parse_uuid(payload["policy_id"], "policy"), reason[:200])

    def _soft_delete(self, ctx: AdminContext, policy_id, reason: str) -> RenderRequest:
        policy = ctx.db.get(Policy, policy_id)
        if policy is None or policy.is_deleted():
            ctx.sessions.clear(ctx.identity)
            return reply("Policy not found or already deleted.", MENU_ROW)

        policy_number = policy.policy_number
        failure = update_record_with_retry(ctx.db, Policy, policy_id, {
            "status": PolicyStatus.DELETED,
            "deleted_at": datetime.utcnow(),
            "deletion_reason": reason,
        }, max_retries=self.max_retries)
        if failure is not None:
            return reply("The policy could not be deleted right now. Try again.", cancel_row())

        ctx.sessions.clear(ctx.identity)
        AuditService(ctx.db).log_admin_event(
            event_type="policy.deleted",
            admin_id=ctx.identity.user_id,
            resource_type="policy",
            resource_id=str(policy_id),
            action="delete",
            # Typed reasons may quote holder contact data
            details={"policy_number": policy_number, "reason": detect_and_mask_pii(reason)},
        )
        return reply(f"Policy {policy_number} deleted. Reason: {reason}", MENU_ROW)

    async def start_restore_search(self, ctx: AdminContext, directive: Directive) -> RenderRequest:
        ctx.sessions.create(ctx.identity, Operation.RESTORE_SEARCH)
        return reply(
            "Send the policy number, serial, RFC or holder name of the deleted policy.",
            cancel_row(),
        )

    async def on_restore_term(self, ctx: AdminContext, event: FreeformInput, payload: Dict[str, Any]) -> RenderRequest:
        policies = search_policies(ctx.db, event.text, deleted=True)
        if not policies:
            return reply(
                f"No deleted policy matches '{event.text.strip()}'. Send another term to try again.",
                cancel_row(),
            )
        return menus.search_results(policies, "policy_restore", "Pick the policy to restore:")

    async def restore(self, ctx: AdminContext, directive: Directive) -> RenderRequest:
        policy_id = parse_uuid(directive.target_id, "policy")
        policy = ctx.db.get(Policy, policy_id)
        if policy is None or not policy.is_deleted():
            return reply("Policy not found or not deleted.", MENU_ROW)

        policy_number = policy.policy_number
        failure = update_record_with_retry(ctx.db, Policy, policy_id, {
            "status": PolicyStatus.ACTIVE,
            "deleted_at": None,
            "deletion_reason": None,
        }, max_retries=self.max_retries)
        if failure is not None:
            return reply("The policy could not be restored right now. Try again.", MENU_ROW)

        ctx.sessions.clear(ctx.identity)
        AuditService(ctx.db).log_admin_event(
            event_type="policy.restored",
            admin_id=ctx.identity.user_id,
            resource_type="policy",
            resource_id=str(policy_id),
            action="restore",
            details={"policy_number": policy_number},
        )
        return reply(f"Policy {policy_number} restored.", MENU_ROW)
