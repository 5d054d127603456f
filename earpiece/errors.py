"""
Error taxonomy and the result type returned at every I/O boundary.

Operations on the controller's external surface never raise; they return an
OperationResult. Unexpected failures are logged by the caller and reported as
TRANSIENT_DISCONNECT (non-fatal).
"""
from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

# Phrases the live backend uses when credentials are rejected
AUTH_FAILURE_PATTERNS = (
    "api key not valid",
    "invalid api key",
    "authentication failed",
    "unauthorized",
)


class ErrorKind(str, Enum):
    AUTHENTICATION_FAILURE = "authentication_failure"  # permanent: params cleared, no reconnection
    TRANSIENT_DISCONNECT = "transient_disconnect"  # bounded reconnection
    ALREADY_IN_FLIGHT = "already_in_flight"  # single-flight rejection, no side effects
    INVALID_INPUT = "invalid_input"  # rejected at the boundary, no retry
    TIMEOUT = "timeout"  # manual response deadline exceeded
    NO_SESSION = "no_session"  # no live session to talk to


@dataclass
class OperationResult:
    success: bool
    error: str | None = None
    kind: ErrorKind | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def ok(cls, **data: Any) -> "OperationResult":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, kind: ErrorKind, error: str) -> "OperationResult":
        return cls(success=False, error=error, kind=kind)

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"success": self.success}
        if self.error is not None:
            payload["error"] = self.error
        if self.kind is not None:
            payload["kind"] = self.kind.value
        payload.update(self.data)
        return payload


def is_authentication_failure(message: str | None) -> bool:
    """True if a close reason / error message means the credentials were rejected."""
    if not message:
        return False
    lowered = message.lower()
    return any(p in lowered for p in AUTH_FAILURE_PATTERNS)
