"""Redis connection factory.

Returns a redis.Redis client, or None if Redis is not configured or the
connection fails. Callers fall back to the MongoDB counter store on None.
"""

from typing import Optional

import redis
from redis.exceptions import RedisError

from shared.logging import get_logger

log = get_logger(__name__)


def create_redis_client(redis_uri: Optional[str]) -> Optional[redis.Redis]:
    """Connect to Redis and return a client, or None on failure."""
    if not redis_uri:
        log.info("redis_not_configured")
        return None
    try:
        client = redis.Redis.from_url(redis_uri, decode_responses=True)
        client.ping()
        log.info("redis_connected", uri=redis_uri.split("@")[-1])  # mask credentials
        return client
    except RedisError as e:
        log.warning(
            "redis_connection_failed", error=str(e), error_type=type(e).__name__
        )
        return None
