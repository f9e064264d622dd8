"""MongoDB connection factory for the verification collections."""

from pymongo import MongoClient
from pymongo.database import Database

from config import DatabaseSettings
from shared.logging import get_logger

log = get_logger(__name__)


def create_mongo_client(settings: DatabaseSettings) -> MongoClient:
    client: MongoClient = MongoClient(
        settings.mongodb_uri,
        serverSelectionTimeoutMS=settings.server_selection_timeout_ms,
        tz_aware=False,
    )
    log.info("mongodb_client_created", db_name=settings.db_name)
    return client


def get_database(client: MongoClient, settings: DatabaseSettings) -> Database:
    return client[settings.db_name]
