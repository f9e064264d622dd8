"""
Per-purpose code policies.

Each purpose has a default code shape, lifetime and algorithm. Callers can
override any of them per issuance through IssueOptions; resolve_policy()
merges the two and rejects shapes that cannot work.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional

from errors import ConfigurationError
from schemas.dto.requests.verification import IssueOptions
from schemas.models.verification import CodeAlgorithm, Purpose
from services.code_generator import check_derivable, validate_shape


class SeedSource(str, Enum):
    """Where a totp request gets its base secret."""

    PER_REQUEST = "per_request"  # fresh seed; the code is delivered out of band
    ENROLL = "enroll"  # fresh seed for an authenticator app, enrolled on success
    ENROLLED = "enrolled"  # the seed the target enrolled earlier


@dataclass(frozen=True)
class PurposePolicy:
    ttl_seconds: int = 600
    code_length: int = 6
    char_set: str = "digits"
    algorithm: CodeAlgorithm = CodeAlgorithm.RANDOM
    period: Optional[int] = None
    digest: str = "sha1"
    # Only honoured for totp: a match leaves the request in place so the
    # same code keeps working until its bucket rolls over.
    multi_use: bool = False
    seed: SeedSource = SeedSource.PER_REQUEST


DEFAULT_POLICIES: dict[Purpose, PurposePolicy] = {
    Purpose.EMAIL_VERIFY: PurposePolicy(ttl_seconds=600, char_set="upper_alnum"),
    Purpose.RESET_PASSWORD: PurposePolicy(ttl_seconds=600),
    Purpose.CHANGE_EMAIL: PurposePolicy(ttl_seconds=600),
    Purpose.DELETE_ACCOUNT: PurposePolicy(ttl_seconds=300),
    Purpose.ONBOARDING_2FA: PurposePolicy(
        ttl_seconds=600,
        algorithm=CodeAlgorithm.TOTP,
        period=30,
        seed=SeedSource.ENROLL,
    ),
    Purpose.LOGIN_2FA: PurposePolicy(
        ttl_seconds=300,
        algorithm=CodeAlgorithm.TOTP,
        period=30,
        multi_use=True,
        seed=SeedSource.ENROLLED,
    ),
}


def default_policies(
    ttl_seconds: Optional[int] = None,
    code_length: Optional[int] = None,
    totp_period: Optional[int] = None,
) -> dict[Purpose, PurposePolicy]:
    """DEFAULT_POLICIES with settings-level overrides applied to every purpose."""
    policies = {}
    for purpose, policy in DEFAULT_POLICIES.items():
        changes = {}
        if ttl_seconds is not None:
            changes["ttl_seconds"] = ttl_seconds
        if code_length is not None:
            changes["code_length"] = code_length
        if totp_period is not None and policy.algorithm == CodeAlgorithm.TOTP:
            changes["period"] = totp_period
        policies[purpose] = replace(policy, **changes)
    return policies


def resolve_policy(
    base: PurposePolicy, options: Optional[IssueOptions] = None
) -> PurposePolicy:
    """Apply *options* on top of *base* and validate the result.

    Derived codes with a per-request seed take their period from the ttl.

    Raises:
        ConfigurationError: if the merged policy cannot produce usable codes.
    """
    policy = base
    if options is not None:
        overrides = options.model_dump(exclude_none=True)
        policy = replace(base, **overrides)

    if policy.ttl_seconds is None or policy.ttl_seconds <= 0:
        raise ConfigurationError("ttl must be positive", field="ttl_seconds")
    validate_shape(policy.char_set, policy.code_length)

    if policy.algorithm == CodeAlgorithm.TOTP:
        check_derivable(policy.char_set, policy.code_length)
        if policy.seed == SeedSource.PER_REQUEST:
            # A delivered code gets a single bucket spanning the request
            policy = replace(policy, period=policy.ttl_seconds)
        elif not policy.period or policy.period <= 0:
            raise ConfigurationError(
                "Derived codes need a positive period", field="period"
            )
    elif policy.multi_use:
        raise ConfigurationError(
            "Only derived codes can be multi-use", field="multi_use"
        )
    return policy
