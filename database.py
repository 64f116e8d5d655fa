"""
MongoDB access for the VideoTube backend.

The client is created once at import time. Connection is lazy, so importing this
module never touches the network. When DATABASE_URL is not set, ``db`` is None and
every endpoint that needs the database answers with a 500.
"""

import logging
from datetime import datetime
from typing import Optional, Union

from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

from config import settings

logger = logging.getLogger(__name__)

client: Optional[MongoClient] = None
db: Optional[Database] = None

if settings.DATABASE_URL:
    client = MongoClient(settings.DATABASE_URL)
    db = client[settings.DATABASE_NAME]


def get_db() -> Database:
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return db


def create_document(database: Database, collection_name: str, data: Union[BaseModel, dict]) -> dict:
    """Insert one document stamped with created_at/updated_at and return it with its _id."""
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    now = datetime.utcnow()
    doc["created_at"] = now
    doc["updated_at"] = now
    result = database[collection_name].insert_one(doc)
    if not result.inserted_id:
        raise HTTPException(status_code=500, detail=f"Failed to create {collection_name}")
    doc["_id"] = result.inserted_id
    return doc


def ensure_indexes(database: Database):
    """Unique indexes that back the uniqueness invariants of users, likes and subscriptions."""
    database["user"].create_index([("username", ASCENDING)], unique=True)
    database["user"].create_index([("email", ASCENDING)], unique=True)
    database["like"].create_index(
        [("liked_by", ASCENDING), ("kind", ASCENDING), ("target", ASCENDING)], unique=True
    )
    database["subscription"].create_index(
        [("subscriber", ASCENDING), ("channel", ASCENDING)], unique=True
    )
    database["comment"].create_index([("video", ASCENDING), ("created_at", ASCENDING)])
    database["video"].create_index([("owner", ASCENDING), ("created_at", ASCENDING)])
    database["playlist"].create_index([("owner", ASCENDING)])
    logger.info("Database indexes ensured")
