"""MongoDB Client - Connection and Collection Management"""
from typing import Any, Dict, Optional
from pymongo import MongoClient as PyMongoClient
from pymongo.database import Database
from pymongo.collection import Collection
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import ConnectionFailure, PyMongoError

from ..config.settings import settings
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Global client instance
_client: Optional[PyMongoClient] = None
_database: Optional[Database] = None

REQUESTS = "requests"
AUDIT_LOGS = "audit_logs"
NOTIFICATIONS = "notifications"
USERS = "users"


def get_client() -> PyMongoClient:
    """Get or create MongoDB client"""
    global _client
    if _client is None:
        logger.info(f"Connecting to MongoDB: {settings.mongo_uri}")
        _client = PyMongoClient(
            settings.mongo_uri,
            serverSelectionTimeoutMS=5000,
            connectTimeoutMS=5000,
            socketTimeoutMS=30000,
            tz_aware=True,
        )
        try:
            _client.admin.command("ping")
            logger.info("MongoDB connection successful")
        except ConnectionFailure as e:
            logger.error(f"MongoDB connection failed: {e}")
            raise
    return _client


def get_database() -> Database:
    """Get the application database"""
    global _database
    if _database is None:
        client = get_client()
        _database = client[settings.mongo_db]
        logger.info(f"Using database: {settings.mongo_db}")
    return _database


def get_collection(name: str) -> Collection:
    """Get a collection from the database"""
    db = get_database()
    return db[name]


def close_connection() -> None:
    """Close MongoDB connection"""
    global _client, _database
    if _client is not None:
        _client.close()
        _client = None
        _database = None
        logger.info("MongoDB connection closed")


def create_indexes() -> None:
    """Create all required indexes"""
    db = get_database()
    logger.info("Creating MongoDB indexes...")

    requests = db[REQUESTS]
    requests.create_index("request_id", unique=True)
    requests.create_index([("requester_id", ASCENDING), ("status", ASCENDING)])
    requests.create_index([("assignee_id", ASCENDING), ("status", ASCENDING)])
    requests.create_index("watcher_ids")
    requests.create_index("updated_at", background=True)

    audit_logs = db[AUDIT_LOGS]
    audit_logs.create_index("audit_id", unique=True)
    audit_logs.create_index([("entity_id", ASCENDING), ("created_at", ASCENDING)])
    audit_logs.create_index("actor_id")
    audit_logs.create_index("metadata.correlation_id", sparse=True)

    notifications = db[NOTIFICATIONS]
    notifications.create_index("notification_id", unique=True)
    notifications.create_index([("recipient_id", ASCENDING), ("created_at", DESCENDING)])
    notifications.create_index([("recipient_id", ASCENDING), ("is_read", ASCENDING)])
    notifications.create_index(
        [("source_event_id", ASCENDING), ("recipient_id", ASCENDING)],
        unique=True,
        partialFilterExpression={"source_event_id": {"$type": "string"}},
    )

    users = db[USERS]
    users.create_index("user_id", unique=True)

    logger.info("MongoDB indexes created successfully")


def health_check() -> Dict[str, Any]:
    """Check MongoDB health"""
    try:
        client = get_client()
        client.admin.command("ping")
        return {
            "status": "healthy",
            "backend": "mongo",
            "database": settings.mongo_db,
            "connection": "ok"
        }
    except PyMongoError as e:
        logger.error(f"MongoDB health check failed: {e}")
        return {
            "status": "unhealthy",
            "backend": "mongo",
            "database": settings.mongo_db,
            "error": str(e)
        }
