"""
Fixed-window attempt counters in MongoDB, for deployments without Redis.

One document per (key, window): _id is "<key>:<window index>", incremented
with an upserting $inc. A TTL index on expires_at removes finished windows.
"""

from datetime import datetime, timezone

from pymongo import ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError

from errors import StorageUnavailableError
from shared.datetime_utils import Clock, to_bson_datetime, utc_now
from shared.logging import get_logger

log = get_logger(__name__)


class MongoCounterStore:
    def __init__(self, collection: Collection, clock: Clock = utc_now) -> None:
        self._collection = collection
        self._clock = clock

    def _unavailable(self, operation: str, e: Exception) -> StorageUnavailableError:
        log.error(
            "attempt_counter_error",
            operation=operation,
            error=str(e),
            error_type=type(e).__name__,
        )
        return StorageUnavailableError("Attempt counter storage is unavailable")

    def ensure_indexes(self) -> None:
        try:
            self._collection.create_index("key", name="key")
            self._collection.create_index(
                "expires_at", expireAfterSeconds=0, name="expires_at_ttl"
            )
        except PyMongoError as e:
            raise self._unavailable("ensure_indexes", e) from e

    def increment(self, key: str, window_seconds: int) -> int:
        window_index, window_end = _window(self._clock(), window_seconds)

        # Concurrent first increments can race on the upsert; the retry
        # lands on the document the winner created.
        for attempt in range(2):
            try:
                doc = self._collection.find_one_and_update(
                    {"_id": f"{key}:{window_index}"},
                    {
                        "$inc": {"count": 1},
                        "$setOnInsert": {
                            "key": key,
                            "expires_at": to_bson_datetime(window_end),
                        },
                    },
                    upsert=True,
                    return_document=ReturnDocument.AFTER,
                )
                return int(doc["count"])
            except DuplicateKeyError as e:
                if attempt == 1:
                    raise self._unavailable("increment", e) from e
            except PyMongoError as e:
                raise self._unavailable("increment", e) from e

    def decrement(self, key: str, window_seconds: int) -> None:
        window_index, _ = _window(self._clock(), window_seconds)
        try:
            self._collection.update_one(
                {"_id": f"{key}:{window_index}", "count": {"$gt": 0}},
                {"$inc": {"count": -1}},
            )
        except PyMongoError as e:
            raise self._unavailable("decrement", e) from e

    def reset(self, key: str) -> None:
        try:
            self._collection.delete_many({"key": key})
        except PyMongoError as e:
            raise self._unavailable("reset", e) from e


def _window(now: datetime, window_seconds: int) -> tuple[int, datetime]:
    """Index of the window containing *now*, and when that window ends."""
    index = int(now.timestamp()) // window_seconds
    end = datetime.fromtimestamp((index + 1) * window_seconds, tz=timezone.utc)
    return index, end
