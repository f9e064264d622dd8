"""
Enrolled authenticator seeds (MongoDB).

A successful onboarding-2fa redemption enrolls the seed it was issued with;
login-2fa requests derive their codes from it. One seed per target, enforced
by a unique index; enrolling again replaces it.
"""

from __future__ import annotations

from typing import Optional, Protocol, runtime_checkable

from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError

from errors import StorageUnavailableError
from schemas.models.verification import AuthenticatorSeedDoc
from shared.datetime_utils import Clock, utc_now
from shared.logging import get_logger, hash_target

log = get_logger(__name__)


@runtime_checkable
class SeedStore(Protocol):
    def get(self, target: str) -> Optional[str]: ...

    def enroll(self, target: str, secret: str) -> None: ...

    def revoke(self, target: str) -> bool: ...


class MongoSeedStore:
    def __init__(self, collection: Collection, clock: Clock = utc_now) -> None:
        self._collection = collection
        self._clock = clock

    def _unavailable(self, operation: str, e: Exception) -> StorageUnavailableError:
        log.error(
            "seed_store_error",
            operation=operation,
            error=str(e),
            error_type=type(e).__name__,
        )
        return StorageUnavailableError("Authenticator seed storage is unavailable")

    def ensure_indexes(self) -> None:
        try:
            self._collection.create_index("target", unique=True, name="target_unique")
        except PyMongoError as e:
            raise self._unavailable("ensure_indexes", e) from e

    def get(self, target: str) -> Optional[str]:
        try:
            raw = self._collection.find_one({"target": target})
        except PyMongoError as e:
            raise self._unavailable("get", e) from e
        doc = AuthenticatorSeedDoc.from_mongo(raw)
        return doc.secret if doc is not None else None

    def enroll(self, target: str, secret: str) -> None:
        doc = AuthenticatorSeedDoc(
            target=target, secret=secret, enrolled_at=self._clock()
        )
        for attempt in range(2):
            try:
                self._collection.replace_one(
                    {"target": target}, doc.to_mongo(), upsert=True
                )
                break
            except DuplicateKeyError as e:
                if attempt == 1:
                    raise self._unavailable("enroll", e) from e
            except PyMongoError as e:
                raise self._unavailable("enroll", e) from e
        log.info("authenticator_enrolled", target=hash_target(target))

    def revoke(self, target: str) -> bool:
        try:
            result = self._collection.delete_one({"target": target})
        except PyMongoError as e:
            raise self._unavailable("revoke", e) from e
        if result.deleted_count:
            log.info("authenticator_revoked", target=hash_target(target))
        return result.deleted_count == 1
