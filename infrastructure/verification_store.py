"""
Durable storage for pending verification requests (MongoDB).

The (purpose, target) unique index is what guarantees at most one active
request per pair. create() overwrites the existing document for the pair in
a single find_one_and_replace, so concurrent issuers resolve to last writer
wins and no reader ever sees two documents for one pair.

Every pymongo failure surfaces as StorageUnavailableError.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional, Protocol, runtime_checkable

from bson import ObjectId
from pymongo import ASCENDING
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError

from errors import ConfigurationError, StorageUnavailableError
from schemas.models.verification import CodeAlgorithm, VerificationRequestDoc
from services.expiry_policy import ExpiryStatus, evaluate
from shared.datetime_utils import Clock, to_bson_datetime, utc_now
from shared.logging import get_logger, hash_target

log = get_logger(__name__)

MIN_TTL = timedelta(milliseconds=1)


def _purpose_value(purpose) -> str:
    return getattr(purpose, "value", purpose)


@runtime_checkable
class VerificationStore(Protocol):
    def create(
        self, purpose: str, target: str, secret: str, ttl: timedelta, **shape
    ) -> VerificationRequestDoc: ...

    def find(self, purpose: str, target: str) -> Optional[VerificationRequestDoc]: ...

    def delete(self, request_id: str) -> bool: ...

    def delete_for(self, purpose: str, target: str) -> bool: ...

    def sweep_expired(self) -> int: ...


class MongoVerificationStore:
    def __init__(self, collection: Collection, clock: Clock = utc_now) -> None:
        self._collection = collection
        self._clock = clock

    def _unavailable(self, operation: str, e: Exception) -> StorageUnavailableError:
        log.error(
            "verification_store_error",
            operation=operation,
            error=str(e),
            error_type=type(e).__name__,
        )
        return StorageUnavailableError("Verification storage is unavailable")

    def ensure_indexes(self) -> None:
        try:
            self._collection.create_index(
                [("purpose", ASCENDING), ("target", ASCENDING)],
                unique=True,
                name="purpose_target_unique",
            )
            self._collection.create_index(
                "request_id", unique=True, name="request_id_unique"
            )
            # Storage-side sweep; find() does not depend on it
            self._collection.create_index(
                "expires_at", expireAfterSeconds=0, name="expires_at_ttl"
            )
        except PyMongoError as e:
            raise self._unavailable("ensure_indexes", e) from e

    def create(
        self,
        purpose: str,
        target: str,
        secret: str,
        ttl: timedelta,
        *,
        algorithm: CodeAlgorithm = CodeAlgorithm.RANDOM,
        char_set: str,
        code_length: int,
        period: Optional[int] = None,
        digest: Optional[str] = None,
        multi_use: bool = False,
        bucket_origin: Optional[datetime] = None,
        issued_at: Optional[datetime] = None,
    ) -> VerificationRequestDoc:
        """Replace any request for (purpose, target) with a new one.

        Requests for other purposes on the same target are untouched.
        *issued_at* defaults to the store clock.
        """
        # Stored timestamps have millisecond precision
        if ttl < MIN_TTL:
            raise ConfigurationError("ttl must be at least 1ms", field="ttl")

        now = issued_at or self._clock()
        record = VerificationRequestDoc(
            request_id=str(ObjectId()),
            purpose=purpose,
            target=target,
            secret=secret,
            algorithm=algorithm,
            char_set=char_set,
            code_length=code_length,
            period=period,
            digest=digest,
            multi_use=multi_use,
            bucket_origin=bucket_origin,
            created_at=now,
            expires_at=now + ttl,
        )
        document = record.to_mongo()
        key = {"purpose": record.purpose, "target": target}

        # Two first-time upserts for the same pair can collide on the unique
        # index; the loser retries as a plain replace.
        for attempt in range(2):
            try:
                self._collection.find_one_and_replace(key, document, upsert=True)
                break
            except DuplicateKeyError as e:
                if attempt == 1:
                    raise self._unavailable("create", e) from e
            except PyMongoError as e:
                raise self._unavailable("create", e) from e

        log.info(
            "verification_request_stored",
            purpose=record.purpose,
            target=hash_target(target),
            request_id=record.request_id,
            algorithm=record.algorithm,
            expires_at=record.expires_at.isoformat(),
        )
        return record

    def find(self, purpose: str, target: str) -> Optional[VerificationRequestDoc]:
        """Return the active request for the pair, treating expired as absent."""
        try:
            raw = self._collection.find_one(
                {"purpose": _purpose_value(purpose), "target": target}
            )
        except PyMongoError as e:
            raise self._unavailable("find", e) from e

        record = VerificationRequestDoc.from_mongo(raw)
        if record is None:
            return None
        if evaluate(record, self._clock()) is ExpiryStatus.EXPIRED:
            return None
        return record

    def delete(self, request_id: str) -> bool:
        """Delete by id. Returns True only for the call that removed it."""
        try:
            result = self._collection.delete_one({"request_id": request_id})
        except PyMongoError as e:
            raise self._unavailable("delete", e) from e
        return result.deleted_count == 1

    def delete_for(self, purpose: str, target: str) -> bool:
        try:
            result = self._collection.delete_one(
                {"purpose": _purpose_value(purpose), "target": target}
            )
        except PyMongoError as e:
            raise self._unavailable("delete_for", e) from e
        return result.deleted_count == 1

    def sweep_expired(self) -> int:
        """Physically remove expired requests. Returns how many were removed."""
        cutoff = to_bson_datetime(self._clock())
        try:
            result = self._collection.delete_many({"expires_at": {"$lte": cutoff}})
        except PyMongoError as e:
            raise self._unavailable("sweep_expired", e) from e
        if result.deleted_count:
            log.info("verification_requests_swept", count=result.deleted_count)
        return result.deleted_count
