"""
Policy search: find a policy, then open its card or one of its services.
"""
from typing import Any, Dict, List

from sqlalchemy import or_
from sqlalchemy.orm import Session

from app.core.exceptions import ValidationError
from app.db.models import Policy, PolicyService, PolicyStatus
from app.orchestration.admin.base import AdminContext, cancel_row, parse_uuid, reply
from app.orchestration.admin import menus
from app.services.bot_schemas import Button, Directive, FreeformInput, RenderRequest
from app.services.db_utils import with_db_retry
from app.services.session_store import Operation

MIN_TERM_LENGTH = 3


@with_db_retry(max_retries=2, retry_delay=0.2)
def search_policies(db: Session, term: str, deleted: bool = False, limit: int = 10) -> List[Policy]:
    """
    Match a term against policy number, serial, RFC or holder name.

    Args:
        db: Database session
        term: Admin input
        deleted: Search soft-deleted policies instead of live ones
        limit: Maximum number of matches
    """
    term = term.strip()
    if len(term) < MIN_TERM_LENGTH:
        raise ValidationError(f"Send at least {MIN_TERM_LENGTH} characters to search")

    upper = term.upper()
    query = db.query(Policy).filter(
        or_(
            Policy.policy_number == upper,
            Policy.serial == upper,
            Policy.holder_rfc == upper,
            Policy.holder_name.ilike(f"%{term}%"),
        )
    )
    if deleted:
        query = query.filter(Policy.status == PolicyStatus.DELETED)
    else:
        query = query.filter(Policy.status != PolicyStatus.DELETED)

    return query.order_by(Policy.created_at.desc()).limit(limit).all()


class PolicySearchHandler:
    """search-for-edit protocol: prompt, match, pick."""

    def directives(self) -> Dict[str, Any]:
        return {
            "policy_search": self.start,
            "policy_select": self.select_policy,
            "service_select": self.select_service,
        }

    def continuations(self) -> Dict[Operation, Any]:
        return {Operation.POLICY_SEARCH: self.on_term}

    async def start(self, ctx: AdminContext, directive: Directive) -> RenderRequest:
        ctx.sessions.create(ctx.identity, Operation.POLICY_SEARCH, {"attempts": 0})
        return reply(
            "Send the policy number, serial, RFC or holder name to search for.",
            cancel_row(),
        )

    async def on_term(self, ctx: AdminContext, event: FreeformInput, payload: Dict[str, Any]) -> RenderRequest:
        policies = search_policies(ctx.db, event.text)
        ctx.sessions.update(ctx.identity, {"attempts": payload.get("attempts", 0) + 1})

        if not policies:
            return reply(
                f"No policy matches '{event.text.strip()}'. Send another term to try again.",
                cancel_row(),
            )

        ctx.sessions.clear(ctx.identity)
        if len(policies) == 1:
            return menus.policy_card(policies[0])
        return menus.search_results(
            policies, "policy_select", f"{len(policies)} policies found. Pick one:"
        )

    async def select_policy(self, ctx: AdminContext, directive: Directive) -> RenderRequest:
        policy = ctx.db.get(Policy, parse_uuid(directive.target_id, "policy"))
        if policy is None or policy.is_deleted():
            return reply("Policy not found.", [Button(label="Main menu", action="menu")])
        return menus.policy_card(policy)

    async def select_service(self, ctx: AdminContext, directive: Directive) -> RenderRequest:
        service = ctx.db.get(PolicyService, parse_uuid(directive.target_id, "service"))
        if service is None:
            return reply("Service not found.", [Button(label="Main menu", action="menu")])
        return menus.service_card(service)
