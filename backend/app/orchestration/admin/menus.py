"""
Menus and record cards shown to admins.
"""
from typing import Iterable, List

from app.db.models import Policy, PolicyService
from app.orchestration.admin.base import reply
from app.orchestration.admin.fields import POLICY_FIELDS, SERVICE_FIELDS, FieldSpec
from app.services.bot_schemas import Button, RenderRequest


def main_menu(text: str = "Policy administration. Choose an option:") -> RenderRequest:
    return reply(
        text,
        [Button(label="Search policy", action="policy_search")],
        [Button(label="Restore deleted policy", action="policy_restore_search")],
        [Button(label="Register vehicle", action="vehicle_register")],
    )


def _field_buttons(entity: str, record_id: str, field_defs: Iterable[FieldSpec], per_row: int = 2) -> List[List[Button]]:
    buttons = [
        Button(label=field_def.label, action="field_edit", target_id=f"{entity}:{record_id}:{field_def.name}")
        for field_def in field_defs
    ]
    return [buttons[i:i + per_row] for i in range(0, len(buttons), per_row)]


def policy_card(policy: Policy) -> RenderRequest:
    lines = [f"Policy {policy.policy_number} ({policy.status.value})"]
    for field_def in POLICY_FIELDS.values():
        if field_def.name in ("policy_number", "status"):
            continue
        lines.append(f"{field_def.label}: {field_def.display(getattr(policy, field_def.name))}")
    lines.append(f"Services: {policy.service_count}")

    rows = _field_buttons("policy", str(policy.policy_id), POLICY_FIELDS.values())
    for service in policy.services:
        rows.append([Button(
            label=f"Service {service.file_number or service.service_date or ''}".strip(),
            action="service_select",
            target_id=str(service.service_id),
        )])
    rows.append([Button(label="Delete policy", action="policy_delete", target_id=str(policy.policy_id))])
    rows.append([Button(label="Main menu", action="menu")])
    return reply("\n".join(lines), *rows)


def service_card(service: PolicyService) -> RenderRequest:
    lines = [f"Service {service.file_number or ''} of policy {service.policy.policy_number}"]
    for field_def in SERVICE_FIELDS.values():
        lines.append(f"{field_def.label}: {field_def.display(getattr(service, field_def.name))}")

    rows = _field_buttons("service", str(service.service_id), SERVICE_FIELDS.values())
    rows.append([Button(label="Back to policy", action="policy_select", target_id=str(service.policy_id))])
    return reply("\n".join(lines), *rows)


def search_results(policies: List[Policy], action: str, header: str) -> RenderRequest:
    rows = [
        [Button(
            label=f"{policy.policy_number} - {policy.holder_name or 'no holder'}",
            action=action,
            target_id=str(policy.policy_id),
        )]
        for policy in policies
    ]
    rows.append([Button(label="Cancel", action="cancel")])
    return reply(header, *rows)
