"""
Code generation for verification requests.

Two algorithms:

- random: an independent code drawn uniformly from ``alphabet ** length``
  on every call. Only its SHA-256 digest is stored.
- totp: a code derived from a stored base32 seed and the current time
  bucket (RFC 6238 via pyotp). Any number of checks inside one bucket
  need no extra database write, and the seed can be handed to an
  authenticator app during 2FA onboarding. Codes delivered out of band
  count buckets from their issuance time instead of the epoch, so such a
  code is good for one full period.
"""

from __future__ import annotations

import hashlib
from datetime import datetime
from typing import Optional

import pyotp
from pyotp.utils import strings_equal

from errors import ConfigurationError
from shared.datetime_utils import Clock, as_utc, utc_now
from shared.generators import DIGITS, generate_code, resolve_char_set
from shared.logging import get_logger

log = get_logger(__name__)

DIGESTS = {
    "sha1": hashlib.sha1,
    "sha256": hashlib.sha256,
    "sha512": hashlib.sha512,
}

# pyotp refuses to derive more than 10 digits
MAX_TOTP_DIGITS = 10


def validate_shape(char_set: str, length: int) -> str:
    """Check a code shape and return its resolved alphabet.

    Raises:
        ConfigurationError: zero or negative length, an alphabet with fewer
            than two symbols, or repeated symbols (which would skew the
            distribution).
    """
    if length is None or length < 1:
        raise ConfigurationError(
            "Code length must be at least 1", field="code_length"
        )
    alphabet = resolve_char_set(char_set or "")
    if len(alphabet) < 2:
        raise ConfigurationError(
            "Character set must contain at least two symbols", field="char_set"
        )
    if len(set(alphabet)) != len(alphabet):
        raise ConfigurationError(
            "Character set must not repeat symbols", field="char_set"
        )
    return alphabet


class CodeGenerator:
    def __init__(self, clock: Clock = utc_now) -> None:
        self._clock = clock

    def generate(self, purpose: str, char_set: str, length: int) -> str:
        """Return a fresh random code for *purpose*."""
        alphabet = validate_shape(char_set, length)
        log.debug("code_generated", purpose=purpose, length=length)
        return generate_code(alphabet, length)

    def new_base_secret(self) -> str:
        """Return a new base32 seed for a totp request."""
        return pyotp.random_base32()

    def _totp(
        self, base_secret: str, length: int, period: int, digest: str
    ) -> pyotp.TOTP:
        if length < 1 or length > MAX_TOTP_DIGITS:
            raise ConfigurationError(
                f"Derived codes must have 1 to {MAX_TOTP_DIGITS} digits",
                field="code_length",
            )
        if period is None or period < 1:
            raise ConfigurationError(
                "Derived codes need a positive period", field="period"
            )
        if digest not in DIGESTS:
            raise ConfigurationError(f"Unsupported digest {digest!r}", field="digest")
        return pyotp.TOTP(
            base_secret, digits=length, digest=DIGESTS[digest], interval=period
        )

    def derive(
        self,
        base_secret: str,
        length: int,
        period: int,
        digest: str = "sha1",
        for_time: Optional[datetime] = None,
        origin: Optional[datetime] = None,
    ) -> str:
        """Return the code for the time bucket containing *for_time*.

        Buckets count from the Unix epoch, as authenticator apps do, unless
        *origin* is given.
        """
        totp = self._totp(base_secret, length, period, digest)
        when = for_time or self._clock()
        if origin is None:
            return totp.at(when)
        return totp.generate_otp(max(_bucket_index(when, origin, period), 0))

    def verify_derived(
        self,
        base_secret: str,
        code: str,
        length: int,
        period: int,
        digest: str = "sha1",
        for_time: Optional[datetime] = None,
        origin: Optional[datetime] = None,
    ) -> bool:
        """Check *code* against the current bucket only.

        No neighbouring buckets are accepted, so a code stops working as soon
        as its bucket rolls over. Comparison is constant time.
        """
        totp = self._totp(base_secret, length, period, digest)
        when = for_time or self._clock()
        if origin is None:
            return totp.verify(code, for_time=when, valid_window=0)
        index = _bucket_index(when, origin, period)
        if index < 0:
            return False
        return strings_equal(str(code), totp.generate_otp(index))

    def provisioning_uri(
        self,
        base_secret: str,
        account_name: str,
        issuer_name: str,
        length: int,
        period: int,
        digest: str = "sha1",
    ) -> str:
        """otpauth:// URI for enrolling the seed in an authenticator app."""
        totp = self._totp(base_secret, length, period, digest)
        return totp.provisioning_uri(name=account_name, issuer_name=issuer_name)


def check_derivable(char_set: str, length: int) -> None:
    """Derived codes are decimal; reject any other alphabet up front."""
    if resolve_char_set(char_set) != DIGITS:
        raise ConfigurationError(
            "Derived codes only support the digits character set", field="char_set"
        )
    if length < 1 or length > MAX_TOTP_DIGITS:
        raise ConfigurationError(
            f"Derived codes must have 1 to {MAX_TOTP_DIGITS} digits",
            field="code_length",
        )


def _bucket_index(when: datetime, origin: datetime, period: int) -> int:
    elapsed = (as_utc(when) - as_utc(origin)).total_seconds()
    return int(elapsed // period)
