from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Optional


class FailureReason(str, Enum):
    INSUFFICIENT_FUNDS = "insufficient_funds"
    ACCOUNT_NOT_FOUND = "account_not_found"
    STORE_FAILURE = "store_failure"
    SAME_ACCOUNT = "same_account"


@dataclass(frozen=True)
class Outcome:
    """Result of a store or money operation.

    Failures are returned, not raised, so callers always see which step did
    not go through and why.
    """

    ok: bool
    value: Any = None
    reason: Optional[FailureReason] = None
    detail: Optional[str] = None

    @classmethod
    def success(cls, value: Any = None) -> "Outcome":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, reason: FailureReason, detail: Optional[str] = None) -> "Outcome":
        return cls(ok=False, reason=reason, detail=detail)

    def __bool__(self) -> bool:
        return self.ok


class TellerError(Exception):
    """Base class for errors raised by the teller layer."""


class AuthenticationRequiredError(TellerError):
    """Raised when an anonymous caller reaches a page that needs an account."""
