"""
Editable field catalogue for policies and services.

Each field declares how admin input is parsed and validated, and how the parsed value
is kept in the session between the "new value" and "confirm" turns.
"""
import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from app.core.exceptions import ValidationError
from app.db.models import PolicyStatus


class FieldKind(str, Enum):
    DATE = "date"
    TIMESTAMP = "timestamp"
    CURRENCY = "currency"
    BOUNDED_INT = "bounded_int"
    ENUM = "enum"
    TEXT = "text"


DATE_PATTERN = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")
TIMESTAMP_PATTERN = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})\s+(\d{1,2}):(\d{2})$")
CURRENCY_PATTERN = re.compile(r"^\d+(\.\d{1,2})?$")


@dataclass(frozen=True)
class FieldSpec:
    """Declared kind and constraints of one editable column."""
    name: str
    label: str
    entity: str  # "policy" or "service"
    kind: FieldKind
    min_value: Optional[int] = None
    max_value: Optional[int] = None
    choices: Tuple[str, ...] = field(default_factory=tuple)
    min_length: int = 1
    max_length: int = 200
    uppercase: bool = False
    enum_class: Optional[type] = None

    def parse(self, raw: str) -> Any:
        """Parse admin input into a column value, or raise ValidationError."""
        text = (raw or "").strip()
        if not text:
            raise ValidationError(f"{self.label} cannot be empty", field=self.name)

        if self.kind == FieldKind.DATE:
            return self._parse_date(text)
        if self.kind == FieldKind.TIMESTAMP:
            return self._parse_timestamp(text)
        if self.kind == FieldKind.CURRENCY:
            return self._parse_currency(text)
        if self.kind == FieldKind.BOUNDED_INT:
            return self._parse_int(text)
        if self.kind == FieldKind.ENUM:
            return self._parse_choice(text)
        return self._parse_text(text)

    def _parse_date(self, text: str) -> date:
        match = DATE_PATTERN.match(text)
        if not match:
            raise ValidationError(f"{self.label} must use the format DD/MM/YYYY", field=self.name)
        day, month, year = (int(g) for g in match.groups())
        try:
            return date(year, month, day)
        except ValueError:
            raise ValidationError(f"{text} is not a valid date", field=self.name)

    def _parse_timestamp(self, text: str) -> datetime:
        match = TIMESTAMP_PATTERN.match(text)
        if not match:
            raise ValidationError(f"{self.label} must use the format DD/MM/YYYY HH:MM", field=self.name)
        day, month, year, hour, minute = (int(g) for g in match.groups())
        try:
            return datetime(year, month, day, hour, minute)
        except ValueError:
            raise ValidationError(f"{text} is not a valid date and time", field=self.name)

    def _parse_currency(self, text: str) -> Decimal:
        cleaned = text.replace("$", "").replace(",", "").strip()
        if not CURRENCY_PATTERN.match(cleaned):
            raise ValidationError(f"{self.label} must be an amount such as 1500.50", field=self.name)
        try:
            return Decimal(cleaned).quantize(Decimal("0.01"))
        except InvalidOperation:
            raise ValidationError(f"{self.label} must be an amount such as 1500.50", field=self.name)

    def _parse_int(self, text: str) -> int:
        if not re.match(r"^-?\d+$", text):
            raise ValidationError(f"{self.label} must be a whole number", field=self.name)
        value = int(text)
        if (self.min_value is not None and value < self.min_value) or (
            self.max_value is not None and value > self.max_value
        ):
            raise ValidationError(
                f"{self.label} must be between {self.min_value} and {self.max_value}",
                field=self.name,
            )
        return value

    def _parse_choice(self, text: str) -> str:
        lowered = text.lower()
        for choice in self.choices:
            if choice.lower() == lowered:
                return self.enum_class(choice) if self.enum_class else choice
        raise ValidationError(
            f"{self.label} must be one of: {', '.join(self.choices)}", field=self.name
        )

    def _parse_text(self, text: str) -> str:
        if len(text) < self.min_length:
            raise ValidationError(
                f"{self.label} must have at least {self.min_length} characters", field=self.name
            )
        if len(text) > self.max_length:
            raise ValidationError(
                f"{self.label} must have at most {self.max_length} characters", field=self.name
            )
        return text.upper() if self.uppercase else text

    def to_storage(self, value: Any) -> Any:
        """JSON-safe form of a parsed value, for the session payload."""
        if value is None:
            return None
        if isinstance(value, (date, datetime)):
            return value.isoformat()
        if isinstance(value, Decimal):
            return str(value)
        if isinstance(value, Enum):
            return value.value
        return value

    def from_storage(self, stored: Any) -> Any:
        """Inverse of to_storage."""
        if stored is None:
            return None
        if self.kind == FieldKind.DATE:
            return date.fromisoformat(stored)
        if self.kind == FieldKind.TIMESTAMP:
            return datetime.fromisoformat(stored)
        if self.kind == FieldKind.CURRENCY:
            return Decimal(stored)
        if self.enum_class is not None:
            return self.enum_class(stored)
        return stored

    def display(self, value: Any) -> str:
        """Render a column value the way the admin types it."""
        if value is None or value == "":
            return "(empty)"
        if isinstance(value, Enum):
            value = value.value
        if self.kind == FieldKind.TIMESTAMP and isinstance(value, datetime):
            return value.strftime("%d/%m/%Y %H:%M")
        if self.kind == FieldKind.DATE and isinstance(value, date):
            return value.strftime("%d/%m/%Y")
        if self.kind == FieldKind.CURRENCY:
            return f"${Decimal(value):,.2f}"
        return str(value)


POLICY_FIELDS: Dict[str, FieldSpec] = {
    field_def.name: field_def for field_def in [
        FieldSpec("holder_name", "Holder", "policy", FieldKind.TEXT, min_length=3),
        FieldSpec("holder_rfc", "RFC", "policy", FieldKind.TEXT, min_length=12, max_length=13, uppercase=True),
        FieldSpec("holder_email", "E-mail", "policy", FieldKind.TEXT, min_length=5, max_length=255),
        FieldSpec("holder_phone", "Phone", "policy", FieldKind.TEXT, min_length=10, max_length=20),
        FieldSpec("street", "Street", "policy", FieldKind.TEXT, min_length=3),
        FieldSpec("neighborhood", "Neighborhood", "policy", FieldKind.TEXT, min_length=3),
        FieldSpec("municipality", "Municipality", "policy", FieldKind.TEXT, min_length=3),
        FieldSpec("region", "State", "policy", FieldKind.TEXT, min_length=3),
        FieldSpec("postal_code", "Postal code", "policy", FieldKind.TEXT, min_length=5, max_length=5),
        FieldSpec("make", "Make", "policy", FieldKind.TEXT, min_length=2),
        FieldSpec("model", "Model", "policy", FieldKind.TEXT, min_length=1),
        FieldSpec("year", "Year", "policy", FieldKind.BOUNDED_INT, min_value=1900, max_value=2100),
        FieldSpec("color", "Color", "policy", FieldKind.TEXT, min_length=3),
        FieldSpec("plate", "Plate", "policy", FieldKind.TEXT, min_length=3, max_length=20, uppercase=True),
        FieldSpec("policy_number", "Policy number", "policy", FieldKind.TEXT, min_length=3, max_length=50, uppercase=True),
        FieldSpec("insurer", "Insurer", "policy", FieldKind.TEXT, min_length=2),
        FieldSpec("agent", "Agent", "policy", FieldKind.TEXT, min_length=2),
        FieldSpec("issued_at", "Issue date", "policy", FieldKind.DATE),
        FieldSpec("coverage_end", "Coverage end", "policy", FieldKind.DATE),
        FieldSpec("status", "Status", "policy", FieldKind.ENUM,
                  choices=("active", "expired"), enum_class=PolicyStatus),
        FieldSpec("rating", "Rating", "policy", FieldKind.BOUNDED_INT, min_value=0, max_value=100),
    ]
}

SERVICE_FIELDS: Dict[str, FieldSpec] = {
    field_def.name: field_def for field_def in [
        FieldSpec("file_number", "File number", "service", FieldKind.TEXT, min_length=1, max_length=50),
        FieldSpec("cost", "Cost", "service", FieldKind.CURRENCY),
        FieldSpec("service_date", "Service date", "service", FieldKind.DATE),
        FieldSpec("route", "Origin - destination", "service", FieldKind.TEXT, min_length=5, max_length=500),
        FieldSpec("scheduled_contact_at", "Scheduled contact", "service", FieldKind.TIMESTAMP),
        FieldSpec("scheduled_completion_at", "Scheduled completion", "service", FieldKind.TIMESTAMP),
    ]
}

# Editing one of these moves the other by the same amount
PAIRED_SCHEDULE_FIELDS = ("scheduled_contact_at", "scheduled_completion_at")


def get_field(entity: str, name: str) -> Optional[FieldSpec]:
    catalogue = POLICY_FIELDS if entity == "policy" else SERVICE_FIELDS if entity == "service" else {}
    return catalogue.get(name)
