"""
Wires a VerificationService from AppSettings.

Attempt counters go to Redis when REDIS_URI is set and reachable, otherwise
to a MongoDB collection next to the verification requests. Enrolled
authenticator seeds always live in MongoDB.
"""

from __future__ import annotations

from typing import Optional

import redis
from pymongo import MongoClient

from config import AppSettings
from infrastructure.mongo_client import create_mongo_client, get_database
from infrastructure.rate_limit.mongo_counter import MongoCounterStore
from infrastructure.rate_limit.redis_counter import RedisCounterStore
from infrastructure.redis_client import create_redis_client
from infrastructure.seed_store import MongoSeedStore
from infrastructure.verification_store import MongoVerificationStore
from services.code_generator import CodeGenerator
from services.purpose_policies import default_policies
from services.rate_limiter import AttemptLimiter
from services.verification_service import VerificationService
from shared.datetime_utils import Clock, utc_now
from shared.logging import get_logger

log = get_logger(__name__)


def build_verification_service(
    settings: AppSettings,
    *,
    mongo_client: Optional[MongoClient] = None,
    redis_client: Optional[redis.Redis] = None,
    clock: Clock = utc_now,
    ensure_indexes: bool = True,
) -> VerificationService:
    mongo_client = mongo_client or create_mongo_client(settings.db)
    db = get_database(mongo_client, settings.db)

    store = MongoVerificationStore(db[settings.db.verification_collection], clock)
    seeds = MongoSeedStore(db[settings.db.seed_collection], clock)
    if ensure_indexes:
        store.ensure_indexes()
        seeds.ensure_indexes()

    if redis_client is None:
        redis_client = create_redis_client(settings.redis.redis_uri)
    if redis_client is not None:
        counters = RedisCounterStore(redis_client, settings.redis.redis_key_prefix)
        backend = "redis"
    else:
        counters = MongoCounterStore(db[settings.db.rate_limit_collection], clock)
        if ensure_indexes:
            counters.ensure_indexes()
        backend = "mongodb"

    limiter = AttemptLimiter(
        counters,
        max_attempts_per_target=settings.rate_limit.max_attempts_per_target,
        max_attempts_per_client=settings.rate_limit.max_attempts_per_client,
        window_seconds=settings.rate_limit.window_seconds,
    )
    verification = settings.verification
    policies = default_policies(
        ttl_seconds=verification.default_ttl_seconds,
        code_length=verification.default_code_length,
        totp_period=verification.totp_period_seconds,
    )

    log.info("verification_service_built", counter_backend=backend)
    return VerificationService(
        store,
        limiter,
        CodeGenerator(clock),
        seeds=seeds,
        policies=policies,
        clock=clock,
        verify_base_url=verification.verify_base_url,
        issuer_name=settings.app_name,
    )
