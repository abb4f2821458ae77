"""
MongoDB access helpers

A single MongoClient is created on first use and shared by every request.
Handlers receive the database through the `get_db` dependency so tests can
swap in an in-memory database.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException
from pydantic import BaseModel
from pymongo import MongoClient
from pymongo.database import Database
from pymongo.errors import ConfigurationError, PyMongoError

import config

logger = logging.getLogger(__name__)

_client: Optional[MongoClient] = None
_db: Optional[Database] = None


def init_db(url: Optional[str] = None, name: Optional[str] = None) -> Database:
    """Connect once; later calls return the same handle."""
    global _client, _db
    if _db is not None:
        return _db
    url = url or config.DATABASE_URL
    if not url:
        raise ConfigurationError("DATABASE_URL is not set")
    _client = MongoClient(url, maxPoolSize=5, minPoolSize=1, serverSelectionTimeoutMS=5000)
    _db = _client[name or config.DATABASE_NAME]
    logger.info("MongoDB client initialised for database %s", _db.name)
    return _db


def close_db():
    global _client, _db
    if _client is not None:
        _client.close()
    _client = None
    _db = None


def get_db() -> Database:
    try:
        return init_db()
    except PyMongoError as e:
        logger.error("Database initialisation failed: %s", e)
        raise HTTPException(status_code=503, detail="Database not ready")


def to_object_id(id_str: str) -> ObjectId:
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise HTTPException(status_code=400, detail="Invalid id format")


def serialize_doc(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if doc is None:
        return None
    d = dict(doc)
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    return d


def create_document(db: Database, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
    if isinstance(data, BaseModel):
        data = data.model_dump(exclude_none=True)
    else:
        data = dict(data)
    result = db[collection_name].insert_one(data)
    return str(result.inserted_id)


def get_documents(
    db: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    sort: Optional[Sequence[Tuple[str, int]]] = None,
) -> List[Dict[str, Any]]:
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(list(sort))
    return [serialize_doc(doc) for doc in cursor]


def update_result(result) -> Dict[str, int]:
    return {"matchedCount": result.matched_count, "modifiedCount": result.modified_count}


def delete_result(result) -> Dict[str, int]:
    return {"deletedCount": result.deleted_count}
