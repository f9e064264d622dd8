"""Expiry decision for verification requests.

Single use is not decided here: a consumed request is deleted, so it is
simply absent.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from schemas.models.verification import VerificationRequestDoc


class ExpiryStatus(str, Enum):
    VALID = "valid"
    EXPIRED = "expired"


def evaluate(record: VerificationRequestDoc, now: datetime) -> ExpiryStatus:
    if record.is_expired(now):
        return ExpiryStatus.EXPIRED
    return ExpiryStatus.VALID
