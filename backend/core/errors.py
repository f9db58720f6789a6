"""
Error Types
Typed errors shared by every engine component.

Callers tell "nothing happened because of policy" apart from
"something went wrong" by looking at `kind`.
"""

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    VALIDATION = "validation"
    COOLDOWN_SKIP = "cooldown_skip"
    TRANSIENT = "transient"
    EVALUATION = "evaluation"


class MonitoringError(Exception):
    """Base class. Subclasses pin `kind`."""

    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(self, message: str, *, detail: Optional[dict] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message, **self.detail}


class NotFoundError(MonitoringError):
    """Unknown rule, alert or suppression id."""
    kind = ErrorKind.NOT_FOUND


class ValidationError(MonitoringError):
    """Malformed input: empty metric name, bad operator, illegal transition."""
    kind = ErrorKind.VALIDATION


class TransientIOError(MonitoringError):
    """Persistence side channel failure. Logged, never fatal."""
    kind = ErrorKind.TRANSIENT


class EvaluationError(MonitoringError):
    """A single rule's metric lookup failed."""
    kind = ErrorKind.EVALUATION
