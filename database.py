import logging
from datetime import datetime, timezone
from typing import Optional

from bson import ObjectId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

from config import get_settings
from errors import NotFoundError

logger = logging.getLogger(__name__)

settings = get_settings()

# MongoClient connects lazily, so importing this module never blocks
client = MongoClient(settings.mongodb_url, tz_aware=True, serverSelectionTimeoutMS=5000)
db = client[settings.database_name]


def get_db() -> Database:
    return db


def create_document(database: Database, collection_name: str, data: BaseModel) -> str:
    result = database[collection_name].insert_one(data.model_dump())
    return str(result.inserted_id)


def parse_object_id(value: Optional[str], what: str = "Object") -> ObjectId:
    """Parse an id coming from a path or body; anything malformed cannot exist."""
    if not value or not ObjectId.is_valid(value):
        raise NotFoundError(f"{what} not found")
    return ObjectId(value)


def as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def ensure_indexes(database: Database) -> None:
    database["user"].create_index([("email", ASCENDING)], unique=True)
    database["task"].create_index([("parent_task_id", ASCENDING)])
    database["task"].create_index([("assignee_id", ASCENDING)])
    database["message"].create_index([("receiver_id", ASCENDING), ("created_at", DESCENDING)])
    logger.info("Indexes ensured on database %s", database.name)
