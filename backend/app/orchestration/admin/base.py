"""
Base utilities for admin workflow handlers.

Provides common functions for:
- The per-event handler context
- Parsing directive targets
- Building replies
"""
from dataclasses import dataclass
from typing import List, Optional, Tuple
from uuid import UUID

from sqlalchemy.orm import Session

from app.core.exceptions import ValidationError
from app.services.bot_schemas import Button, RenderRequest
from app.services.session_store import SessionIdentity, SessionStore


@dataclass
class AdminContext:
    """What a handler needs to serve one inbound event."""
    identity: SessionIdentity
    db: Session
    sessions: SessionStore


def parse_uuid(value: Optional[str], what: str = "record") -> UUID:
    """Parse a directive target id, or raise ValidationError."""
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        raise ValidationError(f"Invalid {what} selection")


def split_target(value: Optional[str], parts: int) -> Tuple[str, ...]:
    """Split a compound target such as "policy:<id>:<field>"."""
    pieces = tuple((value or "").split(":"))
    if len(pieces) != parts or not all(pieces):
        raise ValidationError("Invalid selection")
    return pieces


def cancel_row(action: str = "cancel") -> List[Button]:
    return [Button(label="Cancel", action=action)]


def reply(text: str, *rows: List[Button]) -> RenderRequest:
    """Build a render request from text and button rows."""
    return RenderRequest(text=text, buttons=[list(row) for row in rows if row])
