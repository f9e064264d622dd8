"""
Attempt limiter for code redemption.

Two independent key kinds, combinable per call:

- target: (purpose, target). Bounds guesses against one code.
- client: (purpose, client address). Bounds one client spraying guesses
  across many targets.

Every redemption attempt is counted up front with an atomic
increment-and-check; an attempt is denied once its count passes the key's
threshold, whatever the code would have done. Success resets the target
key and refunds the attempt on the client key, so a client key only ever
holds that client's failures and cannot be cleared by succeeding once.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from infrastructure.rate_limit.protocol import CounterStore
from shared.crypto import hash_token
from shared.logging import get_logger

log = get_logger(__name__)


class LimitDecision(str, Enum):
    ALLOWED = "allowed"
    DENIED = "denied"


@dataclass(frozen=True)
class LimitKey:
    name: str
    max_attempts: int
    kind: str = "target"


class AttemptLimiter:
    def __init__(
        self,
        store: CounterStore,
        *,
        max_attempts_per_target: int = 5,
        max_attempts_per_client: int = 20,
        window_seconds: int = 600,
    ) -> None:
        self._store = store
        self.max_attempts_per_target = max_attempts_per_target
        self.max_attempts_per_client = max_attempts_per_client
        self.window_seconds = window_seconds

    def target_key(self, purpose: str, target: str) -> LimitKey:
        # Hashed so addresses never appear as counter keys
        return LimitKey(
            name=f"{purpose}:target:{hash_token(target)[:32]}",
            max_attempts=self.max_attempts_per_target,
        )

    def client_key(self, purpose: str, client_address: str) -> LimitKey:
        return LimitKey(
            name=f"{purpose}:client:{client_address}",
            max_attempts=self.max_attempts_per_client,
            kind="client",
        )

    def keys_for(
        self, purpose: str, target: str, client_address: Optional[str] = None
    ) -> list[LimitKey]:
        keys = [self.target_key(purpose, target)]
        if client_address:
            keys.append(self.client_key(purpose, client_address))
        return keys

    def check_and_increment(self, key: LimitKey) -> LimitDecision:
        count = self._store.increment(key.name, self.window_seconds)
        if count > key.max_attempts:
            log.warning(
                "attempt_limit_exceeded",
                kind=key.kind,
                count=count,
                max_attempts=key.max_attempts,
            )
            return LimitDecision.DENIED
        return LimitDecision.ALLOWED

    def check_all(self, keys: list[LimitKey]) -> LimitDecision:
        """Count the attempt against every key; denied if any key is over."""
        decisions = [self.check_and_increment(key) for key in keys]
        if LimitDecision.DENIED in decisions:
            return LimitDecision.DENIED
        return LimitDecision.ALLOWED

    def reset(self, key: LimitKey) -> None:
        self._store.reset(key.name)

    def release(self, key: LimitKey) -> None:
        """Take back the attempt just counted on *key*."""
        self._store.decrement(key.name, self.window_seconds)

    def record_success(self, keys: list[LimitKey]) -> None:
        """Reset target keys; refund the successful attempt on client keys."""
        for key in keys:
            if key.kind == "client":
                self.release(key)
            else:
                self.reset(key)
