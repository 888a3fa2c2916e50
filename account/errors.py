"""
Account Errors and Operation Results

Every account operation returns an OperationResult instead of raising.
GatewayError is the only exception that crosses module boundaries, and it
is caught by the service that made the gateway call.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
    """Recoverable failure categories surfaced to the UI layer"""
    NOT_AUTHENTICATED = "not_authenticated"
    NETWORK_ERROR = "network_error"          # Gateway unreachable or 5xx
    INSUFFICIENT_BALANCE = "insufficient_balance"
    AD_LOAD_FAILED = "ad_load_failed"
    AD_FAILED = "ad_failed"                  # Playback failed, reason from provider
    USER_CANCELED = "user_canceled"
    NO_ACTIVE_SUBSCRIPTION = "no_active_subscription"
    SERVER_REJECTED = "server_rejected"      # 4xx with the server's reason
    OPERATION_IN_PROGRESS = "operation_in_progress"
    INVALID_REQUEST = "invalid_request"


class GatewayError(Exception):
    """Raised by the session gateway when a request does not succeed"""

    def __init__(self, kind: ErrorKind, message: str, status_code: Optional[int] = None):
        self.kind = kind
        self.message = message
        self.status_code = status_code
        super().__init__(message)


@dataclass(frozen=True)
class OperationResult:
    """Outcome of an account operation"""
    ok: bool
    message: str = ""
    error: Optional[ErrorKind] = None
    value: Any = None

    @classmethod
    def success(cls, message: str = "", value: Any = True) -> 'OperationResult':
        return cls(ok=True, message=message, value=value)

    @classmethod
    def failure(cls, error: ErrorKind, message: str) -> 'OperationResult':
        return cls(ok=False, message=message, error=error, value=False)

    @classmethod
    def from_gateway_error(cls, exc: GatewayError) -> 'OperationResult':
        return cls.failure(exc.kind, exc.message)

    def to_dict(self) -> dict:
        return {
            "ok": self.ok,
            "message": self.message,
            "error": self.error.value if self.error else None,
        }
