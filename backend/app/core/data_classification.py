"""
Data classification and PII handling for PolicyAdminBot.
Defines sensitivity levels for policy holder data and provides masking utilities.
"""

from enum import Enum
from typing import Any
import re


class DataClassification(Enum):
    """Data sensitivity classification levels."""
    PUBLIC = "public"
    INTERNAL = "internal"
    CONFIDENTIAL = "confidential"
    RESTRICTED = "restricted"  # tax ids, contact data


# Field classifications for holder and vehicle data
FIELD_CLASSIFICATIONS: dict[str, DataClassification] = {
    # Holder fields
    "holder_name": DataClassification.CONFIDENTIAL,
    "holder_email": DataClassification.CONFIDENTIAL,
    "holder_phone": DataClassification.CONFIDENTIAL,
    "holder_rfc": DataClassification.RESTRICTED,
    "street": DataClassification.CONFIDENTIAL,
    "postal_code": DataClassification.CONFIDENTIAL,

    # Policy fields
    "policy_number": DataClassification.INTERNAL,
    "cost": DataClassification.CONFIDENTIAL,

    # Vehicle fields
    "serial": DataClassification.INTERNAL,
    "plate": DataClassification.INTERNAL,
}


# Regex patterns for detecting sensitive data
SENSITIVE_PATTERNS = {
    "rfc": re.compile(r"\b[A-Z&Ñ]{4}\d{6}[A-Z0-9]{3}\b", re.IGNORECASE),
    "email": re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
    "phone": re.compile(r"\b\d{2,3}[-. ]?\d{3,4}[-. ]?\d{4}\b"),
}


def get_field_classification(field_name: str) -> DataClassification:
    """Get the classification level for a field."""
    return FIELD_CLASSIFICATIONS.get(
        field_name.lower(),
        DataClassification.INTERNAL
    )


def mask_value(value: str, classification: DataClassification) -> str:
    """Mask a value based on its classification."""
    if classification in (DataClassification.PUBLIC, DataClassification.INTERNAL):
        return value
    elif classification == DataClassification.CONFIDENTIAL:
        # Show first and last characters
        if len(value) <= 4:
            return "*" * len(value)
        return f"{value[0]}{'*' * (len(value) - 2)}{value[-1]}"
    else:  # RESTRICTED
        return "*" * min(len(value), 8)


def detect_and_mask_pii(text: str) -> str:
    """Detect and mask PII in free-form text."""
    masked = SENSITIVE_PATTERNS["rfc"].sub("*************", text)

    # Mask emails (keep domain visible)
    def mask_email(match: re.Match) -> str:
        local, domain = match.group().rsplit("@", 1)
        return f"{local[0]}***@{domain}"
    masked = SENSITIVE_PATTERNS["email"].sub(mask_email, masked)

    def mask_phone(match: re.Match) -> str:
        return f"***-***-{match.group()[-4:]}"
    masked = SENSITIVE_PATTERNS["phone"].sub(mask_phone, masked)

    return masked


def sanitize_for_logging(data: dict[str, Any]) -> dict[str, Any]:
    """Sanitize a dictionary for safe logging."""
    sanitized = {}

    for key, value in data.items():
        classification = get_field_classification(key)

        if value is None:
            sanitized[key] = None
        elif isinstance(value, str):
            if classification in [DataClassification.CONFIDENTIAL, DataClassification.RESTRICTED]:
                sanitized[key] = mask_value(value, classification)
            else:
                sanitized[key] = value
        elif isinstance(value, dict):
            sanitized[key] = sanitize_for_logging(value)
        elif isinstance(value, list):
            sanitized[key] = [
                sanitize_for_logging(item) if isinstance(item, dict) else item
                for item in value
            ]
        else:
            sanitized[key] = value

    return sanitized


def highest_classification(data: dict[str, Any]) -> DataClassification:
    """Determine the highest classification level among the keys of a payload."""
    order = list(DataClassification)
    highest = DataClassification.PUBLIC

    for key, value in data.items():
        field_class = get_field_classification(key)
        if order.index(field_class) > order.index(highest):
            highest = field_class
        if isinstance(value, dict):
            nested = highest_classification(value)
            if order.index(nested) > order.index(highest):
                highest = nested

    return highest
