"""
Verification request document model.

Maps to the `verification-requests` MongoDB collection.

One document per (purpose, target) pair; a unique index enforces it and a
new issuance overwrites the document in place. request_id changes on every
issuance so a delete aimed at an earlier code can never remove its
replacement.

secret holds SHA-256(code) for random codes and the base32 seed for totp
codes. The issued code itself is never stored.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import Field, field_validator, model_validator

from schemas.models.base import MongoBaseModel
from shared.datetime_utils import as_utc


class Purpose(str, Enum):
    """Why a code was issued. Scopes uniqueness and invalidation."""

    EMAIL_VERIFY = "email-verify"
    RESET_PASSWORD = "reset-password"
    ONBOARDING_2FA = "onboarding-2fa"
    LOGIN_2FA = "login-2fa"
    CHANGE_EMAIL = "change-email"
    DELETE_ACCOUNT = "delete-account"


class CodeAlgorithm(str, Enum):
    """How the code is produced and checked."""

    RANDOM = "random"  # independent random code, stored as a hash
    TOTP = "totp"  # derived from a stored seed and the current time bucket


class VerificationRequestDoc(MongoBaseModel):
    """Document model for the `verification-requests` collection."""

    request_id: str
    purpose: Purpose
    target: str
    secret: str
    algorithm: CodeAlgorithm = Field(
        default=CodeAlgorithm.RANDOM, validate_default=True
    )
    char_set: str
    code_length: int = Field(ge=1)
    period: Optional[int] = Field(default=None, ge=1)
    digest: Optional[str] = None
    multi_use: bool = False
    # Set for codes delivered out of band: totp buckets count from here
    # instead of from the Unix epoch. None for authenticator-app seeds.
    bucket_origin: Optional[datetime] = None
    created_at: datetime
    expires_at: datetime

    @field_validator("created_at", "expires_at", "bucket_origin")
    @classmethod
    def _normalise_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @model_validator(mode="after")
    def _check_window(self) -> "VerificationRequestDoc":
        if self.expires_at <= self.created_at:
            raise ValueError("expires_at must be after created_at")
        if self.algorithm == CodeAlgorithm.TOTP and self.period is None:
            raise ValueError("totp requests need a period")
        return self

    def is_expired(self, now: datetime) -> bool:
        return as_utc(now) >= self.expires_at


class AuthenticatorSeedDoc(MongoBaseModel):
    """Document model for the `authenticator-seeds` collection.

    One document per target: the base32 seed its authenticator app was
    enrolled with through onboarding-2fa.
    """

    target: str
    secret: str
    enrolled_at: datetime

    @field_validator("enrolled_at")
    @classmethod
    def _normalise_utc(cls, value: datetime) -> datetime:
        return as_utc(value)
