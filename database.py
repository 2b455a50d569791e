import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from bson import ObjectId
from fastapi import Request
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database
from pymongo.errors import PyMongoError

import config

logger = logging.getLogger(__name__)


def connect(url: str = config.DATABASE_URL, name: str = config.DATABASE_NAME) -> Database:
    """Create the process-wide client. MongoClient connects lazily, so this never blocks."""
    client = MongoClient(url, tz_aware=True)
    logger.info("MongoDB client created for database %s", name)
    return client[name]


def get_db(request: Request) -> Database:
    """FastAPI dependency: the handle stored on app.state at startup."""
    return request.app.state.db


def ensure_indexes(db: Database):
    db["user"].create_index([("email", ASCENDING)], unique=True)
    db["product"].create_index([("category", ASCENDING)])
    db["product"].create_index([("createdAt", DESCENDING)])


def ping(db: Optional[Database]) -> bool:
    if db is None:
        return False
    try:
        db.command("ping")
        return True
    except PyMongoError:
        return False


def now() -> datetime:
    return datetime.now(timezone.utc)


def parse_object_id(value: str) -> Optional[ObjectId]:
    if not ObjectId.is_valid(value):
        return None
    return ObjectId(value)


def create_document(db: Database, collection: str, data: Dict[str, Any]) -> Dict[str, Any]:
    """Insert with createdAt/updatedAt stamped and return the document as read back."""
    doc = dict(data)
    stamp = now()
    doc.setdefault("createdAt", stamp)
    doc.setdefault("updatedAt", stamp)
    result = db[collection].insert_one(doc)
    return db[collection].find_one({"_id": result.inserted_id})

