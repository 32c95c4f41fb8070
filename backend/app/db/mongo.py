"""MongoDB client for the PDF catalog."""

import logging

from pymongo import MongoClient
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import PyMongoError

from app.core.config import settings

logger = logging.getLogger(__name__)

# Singleton client instance
_mongo_client: MongoClient | None = None


def get_mongo_client() -> MongoClient:
    """
    Get the MongoDB client singleton.

    MongoClient connects lazily and pools connections itself, so one instance
    is shared by every request in the process.
    """
    global _mongo_client

    if _mongo_client is None:
        _mongo_client = MongoClient(
            settings.MONGODB_URI,
            maxPoolSize=settings.MONGODB_MAX_POOL_SIZE,
            minPoolSize=settings.MONGODB_MIN_POOL_SIZE,
            serverSelectionTimeoutMS=settings.MONGODB_SERVER_SELECTION_TIMEOUT_MS,
            socketTimeoutMS=settings.MONGODB_SOCKET_TIMEOUT_MS,
            tz_aware=True,
            appname=settings.PROJECT_NAME,
        )
        logger.debug("MongoDB client initialized")

    return _mongo_client


def get_mongo_db() -> Database:
    return get_mongo_client()[settings.MONGODB_DB]


def get_pdf_collection() -> Collection:
    """Dependency to get the PDF collection."""
    return get_mongo_db()[settings.MONGODB_PDF_COLLECTION]


def ping() -> bool:
    """
    Ping MongoDB to check connectivity.

    Never raises; returns False when the server cannot be reached.
    """
    try:
        get_mongo_client().admin.command("ping")
        return True
    except PyMongoError as e:
        logger.warning(f"MongoDB ping failed: {e}")
        return False


def close_client() -> None:
    """Close the client on shutdown."""
    global _mongo_client
    if _mongo_client is not None:
        _mongo_client.close()
        _mongo_client = None
