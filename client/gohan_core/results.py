"""
Result values that cross the network boundary.

Transport and RemoteService never raise to their callers. Every outcome is a
RemoteCallResult; callers branch on ``ok`` and, where it matters, ``kind``.
Only client-side validation uses an exception, and it never leaves the
controller that raised it.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    NETWORK = "network"          # unreachable, timed out, or unreadable
    MALFORMED = "malformed"      # body is not a well-formed keyed record
    APPLICATION = "application"  # backend answered success: false
    VALIDATION = "validation"    # rejected before any call was made


@dataclass(frozen=True)
class RemoteCallResult:
    ok: bool
    payload: Optional[dict] = None
    value: Any = None
    error_message: str = ""
    kind: Optional[ErrorKind] = None

    @classmethod
    def success(cls, payload, value=None):
        return cls(ok=True, payload=payload, value=value)

    @classmethod
    def failure(cls, error_message, kind=ErrorKind.NETWORK, payload=None):
        return cls(ok=False, payload=payload, error_message=error_message, kind=kind)

    def with_value(self, value):
        """Copy of a successful result carrying the decoded operation value."""
        return RemoteCallResult(ok=True, payload=self.payload, value=value)


class ValidationFailure(Exception):
    """Raised when a required form field is missing before any call is made.

    Attributes:
        field: name of the offending input ("user_id" or "password")
        message: human-readable message shown inline
    """

    kind = ErrorKind.VALIDATION

    def __init__(self, field: str, message: str):
        super().__init__(message)
        self.field = field
        self.message = message

    def __str__(self) -> str:
        return self.message
