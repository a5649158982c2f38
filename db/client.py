"""MongoDB connection and database access."""
import os

from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

from config import settings
from utils.logging import get_logger

logger = get_logger(__name__)

_client: MongoClient | None = None


def get_client() -> MongoClient:
    global _client
    if _client is None:
        kwargs = {"serverSelectionTimeoutMS": 10000}
        uri = settings.MONGODB_URI or ""
        if "mongodb+srv://" in uri:
            import certifi
            ca_path = certifi.where()
            os.environ.setdefault("SSL_CERT_FILE", ca_path)
            os.environ.setdefault("REQUESTS_CA_BUNDLE", ca_path)
            kwargs["tlsCAFile"] = ca_path
        _client = MongoClient(uri, **kwargs)
        logger.info("MongoDB client connected to %s", uri)
    return _client


def get_db() -> Database:
    return get_client()[settings.MONGODB_DB]


def ping() -> bool:
    """True when MongoDB answers; used by the health endpoint."""
    try:
        get_client().admin.command("ping")
        return True
    except PyMongoError as e:
        logger.warning("MongoDB ping failed: %s", e)
        return False


def ensure_indexes() -> None:
    """Create indexes for all collections. Run once at startup or via script."""
    db = get_db()

    db.profiles.create_index("codeforces_handle", unique=True)
    db.profiles.create_index("email", unique=True)
    db.profiles.create_index("current_rating")
    db.notification_log.create_index("sent_at")
    db.notification_log.create_index([("event_type", 1), ("ref", 1)])

    logger.info("MongoDB indexes ensured")
