"""
Fixed-window attempt counters in Redis.

INCR and EXPIRE NX run in one MULTI/EXEC pipeline: the first increment of a
window sets its expiry and later increments never extend it, so the window
rolls over exactly window_seconds after the first attempt. Requires Redis 7+
for EXPIRE NX.
"""

import redis
from redis.exceptions import RedisError

from errors import StorageUnavailableError
from shared.logging import get_logger

log = get_logger(__name__)


class RedisCounterStore:
    def __init__(self, redis_client: redis.Redis, prefix: str = "verify_attempts") -> None:
        self._redis = redis_client
        self._prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self._prefix}:{key}"

    def increment(self, key: str, window_seconds: int) -> int:
        name = self._key(key)
        try:
            pipe = self._redis.pipeline(transaction=True)
            pipe.incr(name)
            pipe.expire(name, window_seconds, nx=True)
            count, _ = pipe.execute()
        except RedisError as e:
            log.error(
                "attempt_counter_error",
                operation="increment",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise StorageUnavailableError("Attempt counter storage is unavailable") from e
        return int(count)

    def decrement(self, key: str, window_seconds: int) -> None:
        name = self._key(key)
        try:
            pipe = self._redis.pipeline(transaction=True)
            pipe.decr(name)
            # A window that lapsed in between restarts at -1 and still expires
            pipe.expire(name, window_seconds, nx=True)
            pipe.execute()
        except RedisError as e:
            log.error(
                "attempt_counter_error",
                operation="decrement",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise StorageUnavailableError("Attempt counter storage is unavailable") from e

    def reset(self, key: str) -> None:
        try:
            self._redis.delete(self._key(key))
        except RedisError as e:
            log.error(
                "attempt_counter_error",
                operation="reset",
                error=str(e),
                error_type=type(e).__name__,
            )
            raise StorageUnavailableError("Attempt counter storage is unavailable") from e
