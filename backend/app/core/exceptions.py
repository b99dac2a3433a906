"""
Workflow error kinds shared by the admin dispatcher and the conversion workflow.
"""
from typing import Optional


class WorkflowError(Exception):
    """Base class for errors raised by admin workflows."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(WorkflowError):
    """Malformed or out-of-range input. Recovered locally by re-prompting."""

    def __init__(self, message: str, field: Optional[str] = None):
        self.field = field
        super().__init__(message)


class DuplicateKeyError(WorkflowError):
    """A vehicle serial is already claimed by another record."""

    def __init__(self, serial: str):
        self.serial = serial
        super().__init__(f"Vehicle already registered with serial {serial}")


class TransactionError(WorkflowError):
    """The store failed before commit. Nothing was created."""

    def __init__(self, message: str, stage: Optional[str] = None, original_error: Exception = None):
        self.stage = stage
        self.original_error = original_error
        super().__init__(message)


class SideEffectError(WorkflowError):
    """A post-commit side effect failed. Logged only, never surfaced as a workflow failure."""

    def __init__(self, label: str, message: str, original_error: Exception = None):
        self.label = label
        self.original_error = original_error
        super().__init__(f"{label}: {message}")
