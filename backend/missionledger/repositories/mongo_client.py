"""MongoDB Client - Connection and Collection Management"""
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional
from pymongo import MongoClient as PyMongoClient
from pymongo.database import Database
from pymongo.collection import Collection
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import ConnectionFailure, PyMongoError

from ..config.settings import settings
from ..domain.errors import StorageUnavailableError
from ..utils.logger import get_logger

logger = get_logger(__name__)

# Global client instance
_client: Optional[PyMongoClient] = None
_database: Optional[Database] = None


def get_client() -> PyMongoClient:
    """Get or create MongoDB client"""
    global _client
    if _client is None:
        logger.info(f"Connecting to MongoDB: {settings.mongo_uri}")
        _client = PyMongoClient(
            settings.mongo_uri,
            tz_aware=True,
            serverSelectionTimeoutMS=5000,
            connectTimeoutMS=5000,
            socketTimeoutMS=30000,
        )
        # Test connection
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


@contextmanager
def storage_errors(operation: str) -> Iterator[None]:
    """
    Translate driver failures into StorageUnavailableError

    Repositories wrap every driver call with this; errors they handle
    themselves (duplicate keys) must be caught inside the block.
    """
    try:
        yield
    except PyMongoError as e:
        logger.error(f"Storage failure during {operation}: {e}")
        raise StorageUnavailableError(
            f"Storage unavailable during {operation}",
            details={"operation": operation}
        ) from e


def next_sequence(counter_name: str) -> int:
    """Atomically increment and return a named counter (starts at 1)"""
    with storage_errors(f"next_sequence:{counter_name}"):
        doc = get_collection("counters").find_one_and_update(
            {"_id": counter_name},
            {"$inc": {"value": 1}},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )
    return int(doc["value"])


def create_indexes() -> None:
    """Create all required indexes"""
    db = get_database()
    logger.info("Creating MongoDB indexes...")

    # Workflow definitions (immutable, versioned per organization + name)
    definitions = db["workflow_definitions"]
    definitions.create_index("definition_id", unique=True)
    definitions.create_index(
        [("organization_id", ASCENDING), ("name", ASCENDING), ("version_number", DESCENDING)],
        unique=True
    )
    definitions.create_index("published_at", background=True)

    # Workflow instances
    instances = db["workflow_instances"]
    instances.create_index("instance_id", unique=True)
    instances.create_index("mission_id", unique=True)
    instances.create_index("outbox.entry_id", sparse=True)

    # Transition history
    transitions = db["workflow_transitions"]
    transitions.create_index("transition_id", unique=True)
    transitions.create_index([("instance_id", ASCENDING), ("sequence", ASCENDING)], unique=True)
    transitions.create_index([("mission_id", ASCENDING), ("sequence", ASCENDING)])

    # Evidence ledger
    evidence = db["evidence_items"]
    evidence.create_index("evidence_id", unique=True)
    evidence.create_index([("mission_id", ASCENDING), ("sequence", ASCENDING)], unique=True)
    evidence.create_index("source_run_id", sparse=True)

    # Audit events collection
    audit_events = db["audit_events"]
    audit_events.create_index("audit_event_id", unique=True)
    audit_events.create_index([("sequence", DESCENDING)])
    audit_events.create_index([("mission_id", ASCENDING), ("sequence", DESCENDING)])
    audit_events.create_index([("entity_type", ASCENDING), ("entity_id", ASCENDING)])
    audit_events.create_index("timestamp", background=True)
    audit_events.create_index("correlation_id")

    # Missions and tasks
    missions = db["missions"]
    missions.create_index("mission_id", unique=True)
    missions.create_index([("organization_id", ASCENDING), ("status", ASCENDING)])
    missions.create_index("outbox.entry_id", sparse=True)

    tasks = db["tasks"]
    tasks.create_index("task_id", unique=True)
    tasks.create_index("mission_id")

    # Probe telemetry
    telemetry = db["telemetry_events"]
    telemetry.create_index("telemetry_event_id", unique=True)
    telemetry.create_index([("timestamp", DESCENDING)])
    telemetry.create_index("probe_run_id")
    telemetry.create_index("outbox.entry_id", sparse=True)

    # Recommendations
    recommendations = db["recommendations"]
    recommendations.create_index("recommendation_id", unique=True)
    recommendations.create_index([("status", ASCENDING), ("created_at", DESCENDING)])
    recommendations.create_index("outbox.entry_id", sparse=True)

    logger.info("MongoDB indexes created successfully")


def health_check() -> Dict[str, Any]:
    """Check MongoDB health"""
    try:
        client = get_client()
        client.admin.command("ping")
        return {
            "status": "healthy",
            "database": settings.mongo_db,
            "connection": "ok"
        }
    except Exception as e:
        logger.error(f"MongoDB health check failed: {e}")
        return {
            "status": "unhealthy",
            "database": settings.mongo_db,
            "error": str(e)
        }
