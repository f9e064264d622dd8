"""
Verification code issuance and redemption.

issue()   create (or replace) the pending request for (purpose, target) and
          return the code for out-of-band delivery.
redeem()  run one attempt through the limiter, the record lookup and the
          code comparison; consume the request on success.
cancel()  drop the pending request for (purpose, target).

Derived (totp) codes for 2FA come from an authenticator seed: onboarding-2fa
issues a fresh one and enrolls it on success, login-2fa derives from the
enrolled one.

Redemption order is fixed: the limiter is consulted before the record is
read, so a throttled caller learns nothing about whether a code exists. Every
attempt counts against the limit, including attempts against missing or
expired codes.

Rejections are returned as RedemptionResult values. StorageUnavailableError
propagates: an attempt that could not be checked is never accepted.
"""

from __future__ import annotations

from datetime import timedelta
from typing import Optional, Union

from errors import ConfigurationError, ValidationError
from infrastructure.seed_store import SeedStore
from infrastructure.verification_store import VerificationStore
from schemas.dto.requests.verification import IssueOptions
from schemas.dto.responses.verification import (
    IssuedCode,
    RedemptionResult,
    RejectionReason,
)
from schemas.models.verification import (
    CodeAlgorithm,
    Purpose,
    VerificationRequestDoc,
)
from services.code_generator import CodeGenerator
from services.expiry_policy import ExpiryStatus, evaluate
from services.purpose_policies import (
    DEFAULT_POLICIES,
    PurposePolicy,
    SeedSource,
    resolve_policy,
)
from services.rate_limiter import AttemptLimiter, LimitDecision
from shared.crypto import hash_token, token_matches
from shared.datetime_utils import Clock, as_utc, to_bson_datetime, utc_now
from shared.generators import resolve_char_set
from shared.links import build_verify_url
from shared.logging import get_logger, hash_target

log = get_logger(__name__)


def coerce_purpose(purpose: Union[Purpose, str]) -> Purpose:
    try:
        return Purpose(purpose)
    except ValueError:
        raise ValidationError(
            f"Unknown verification purpose {purpose!r}", field="purpose"
        ) from None


class VerificationService:
    def __init__(
        self,
        store: VerificationStore,
        limiter: AttemptLimiter,
        generator: Optional[CodeGenerator] = None,
        *,
        seeds: Optional[SeedStore] = None,
        policies: Optional[dict[Purpose, PurposePolicy]] = None,
        clock: Clock = utc_now,
        verify_base_url: Optional[str] = None,
        issuer_name: str = "verification",
    ) -> None:
        self._store = store
        self._limiter = limiter
        self._seeds = seeds
        self._clock = clock
        self._generator = generator or CodeGenerator(clock)
        self._policies = policies or DEFAULT_POLICIES
        self._verify_base_url = verify_base_url
        self._issuer_name = issuer_name

    def policy_for(self, purpose: Union[Purpose, str]) -> PurposePolicy:
        return self._policies.get(coerce_purpose(purpose), PurposePolicy())

    # ── Issuance ─────────────────────────────────────────────────────────────

    def issue(
        self,
        purpose: Union[Purpose, str],
        target: str,
        options: Optional[IssueOptions] = None,
    ) -> IssuedCode:
        """Create a pending request for (purpose, target) and return its code.

        Any earlier request for the same pair stops validating immediately.
        Requests for other purposes on the same target are left alone.

        Raises:
            ConfigurationError: the merged policy cannot produce codes.
            StorageUnavailableError: the request could not be stored.
        """
        purpose = coerce_purpose(purpose)
        if not target:
            raise ValidationError("target is required", field="target")
        policy = resolve_policy(self.policy_for(purpose), options)
        # Millisecond precision so the stored timestamps match what was used
        issued_at = as_utc(to_bson_datetime(self._clock()))

        provisioning_uri = None
        bucket_origin = None
        derived = policy.algorithm == CodeAlgorithm.TOTP
        if derived:
            secret = self._seed_for(policy, target)
            if policy.seed == SeedSource.PER_REQUEST:
                bucket_origin = issued_at
            code = self._generator.derive(
                secret,
                policy.code_length,
                policy.period,
                policy.digest,
                for_time=issued_at,
                origin=bucket_origin,
            )
            if policy.seed == SeedSource.ENROLL:
                provisioning_uri = self._generator.provisioning_uri(
                    secret,
                    target,
                    self._issuer_name,
                    policy.code_length,
                    policy.period,
                    policy.digest,
                )
        else:
            code = self._generator.generate(
                purpose.value, policy.char_set, policy.code_length
            )
            secret = hash_token(code)

        record = self._store.create(
            purpose.value,
            target,
            secret,
            timedelta(seconds=policy.ttl_seconds),
            algorithm=policy.algorithm,
            char_set=policy.char_set,
            code_length=policy.code_length,
            period=policy.period if derived else None,
            digest=policy.digest if derived else None,
            multi_use=policy.multi_use,
            bucket_origin=bucket_origin,
            issued_at=issued_at,
        )

        verify_url = None
        if self._verify_base_url:
            verify_url = build_verify_url(
                self._verify_base_url, purpose.value, target, code
            )

        log.info(
            "verification_issued",
            purpose=purpose.value,
            target=hash_target(target),
            request_id=record.request_id,
            algorithm=record.algorithm,
            ttl_seconds=policy.ttl_seconds,
        )
        return IssuedCode(
            code=code,
            request_id=record.request_id,
            purpose=purpose.value,
            target=target,
            expires_at=record.expires_at,
            verify_url=verify_url,
            provisioning_uri=provisioning_uri,
        )

    def _seed_for(self, policy: PurposePolicy, target: str) -> str:
        if policy.seed == SeedSource.PER_REQUEST:
            return self._generator.new_base_secret()
        seeds = self._require_seeds()
        if policy.seed == SeedSource.ENROLL:
            return self._generator.new_base_secret()
        secret = seeds.get(target)
        if secret is None:
            raise ValidationError(
                "No authenticator is enrolled for this target", field="target"
            )
        return secret

    def _require_seeds(self) -> SeedStore:
        if self._seeds is None:
            raise ConfigurationError(
                "Authenticator purposes need a seed store", field="seeds"
            )
        return self._seeds

    # ── Redemption ───────────────────────────────────────────────────────────

    def redeem(
        self,
        purpose: Union[Purpose, str],
        target: str,
        code: str,
        client_address: Optional[str] = None,
    ) -> RedemptionResult:
        """Check *code* for (purpose, target) and consume it on success.

        Returns:
            ``RedemptionResult.accepted(target)`` or
            ``RedemptionResult.rejected(reason)``.

        Raises:
            StorageUnavailableError: the limiter or the store could not be
                reached. The code is not accepted.
        """
        purpose = coerce_purpose(purpose)
        keys = self._limiter.keys_for(purpose.value, target, client_address)

        if self._limiter.check_all(keys) is LimitDecision.DENIED:
            return self._reject(purpose, target, RejectionReason.RATE_LIMITED)

        record = self._store.find(purpose.value, target)
        now = self._clock()
        if record is None or evaluate(record, now) is ExpiryStatus.EXPIRED:
            return self._reject(purpose, target, RejectionReason.NO_ACTIVE_CODE)

        if not self._matches(record, code, now):
            return self._reject(purpose, target, RejectionReason.CODE_MISMATCH)

        consumed = not (record.multi_use and record.algorithm == CodeAlgorithm.TOTP)
        if consumed and not self._store.delete(record.request_id):
            # Another attempt consumed it between our read and our delete
            return self._reject(purpose, target, RejectionReason.NO_ACTIVE_CODE)

        if (
            record.algorithm == CodeAlgorithm.TOTP
            and self.policy_for(purpose).seed == SeedSource.ENROLL
        ):
            self._require_seeds().enroll(target, record.secret)

        self._limiter.record_success(keys)
        log.info(
            "verification_redeemed",
            purpose=purpose.value,
            target=hash_target(target),
            request_id=record.request_id,
            consumed=consumed,
        )
        return RedemptionResult.accepted(target, consumed=consumed)

    def _matches(self, record: VerificationRequestDoc, code: str, now) -> bool:
        supplied = _normalise_code(record, code)
        if supplied is None:
            return False
        if record.algorithm == CodeAlgorithm.TOTP:
            return self._generator.verify_derived(
                record.secret,
                supplied,
                record.code_length,
                record.period,
                record.digest or "sha1",
                for_time=now,
                origin=record.bucket_origin,
            )
        return token_matches(supplied, record.secret)

    def _reject(
        self, purpose: Purpose, target: str, reason: RejectionReason
    ) -> RedemptionResult:
        log.warning(
            "verification_rejected",
            purpose=purpose.value,
            target=hash_target(target),
            reason=reason.value,
        )
        return RedemptionResult.rejected(reason)

    # ── Maintenance ──────────────────────────────────────────────────────────

    def cancel(self, purpose: Union[Purpose, str], target: str) -> bool:
        """Invalidate the pending request for (purpose, target), if any."""
        purpose = coerce_purpose(purpose)
        removed = self._store.delete_for(purpose.value, target)
        log.info(
            "verification_cancelled",
            purpose=purpose.value,
            target=hash_target(target),
            removed=removed,
        )
        return removed

    def has_pending(self, purpose: Union[Purpose, str], target: str) -> bool:
        """Whether an unexpired request exists. Does not count as an attempt."""
        purpose = coerce_purpose(purpose)
        return self._store.find(purpose.value, target) is not None

    def revoke_authenticator(self, target: str) -> bool:
        """Forget the target's enrolled seed; login-2fa issuance stops until re-onboarding."""
        return self._require_seeds().revoke(target)

    def sweep_expired(self) -> int:
        return self._store.sweep_expired()


def _normalise_code(record: VerificationRequestDoc, code: Optional[str]) -> Optional[str]:
    """Strip whitespace and fold case for upper-case-only alphabets.

    Returns None for input that can never match, without short-circuiting
    on content.
    """
    if code is None:
        return None
    supplied = code.strip()
    alphabet = resolve_char_set(record.char_set)
    if alphabet == alphabet.upper():
        supplied = supplied.upper()
    return supplied
