"""
Result values returned by the verification engine.

IssuedCode        returned by issue(); carries the code for out-of-band delivery
RedemptionResult  returned by redeem(); Success(target) or Rejected(reason)

Rejections are values the caller branches on. raise_for_rejection() is a
convenience for HTTP handlers that prefer the AppError path.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional

from errors import RateLimitError, ValidationError

# Same message for both so responses do not reveal whether a code existed
INVALID_CODE_MESSAGE = "Invalid or expired verification code"
RATE_LIMITED_MESSAGE = "Too many attempts. Please try again later."


class RejectionReason(str, Enum):
    RATE_LIMITED = "rate_limited"
    NO_ACTIVE_CODE = "no_active_code"
    CODE_MISMATCH = "code_mismatch"


@dataclass(frozen=True)
class IssuedCode:
    code: str
    request_id: str
    purpose: str
    target: str
    expires_at: datetime
    verify_url: Optional[str] = None
    # otpauth:// URI, only for 2FA onboarding
    provisioning_uri: Optional[str] = None


@dataclass(frozen=True)
class RedemptionResult:
    success: bool
    target: Optional[str] = None
    reason: Optional[RejectionReason] = None
    consumed: bool = False

    @classmethod
    def accepted(cls, target: str, *, consumed: bool = True) -> "RedemptionResult":
        return cls(success=True, target=target, consumed=consumed)

    @classmethod
    def rejected(cls, reason: RejectionReason) -> "RedemptionResult":
        return cls(success=False, reason=reason)

    def raise_for_rejection(self) -> None:
        """Raise the matching AppError when this result is a rejection."""
        if self.success:
            return
        if self.reason == RejectionReason.RATE_LIMITED:
            raise RateLimitError(RATE_LIMITED_MESSAGE)
        raise ValidationError(INVALID_CODE_MESSAGE, field="code")
