"""
MongoDB access helpers.

The ``db`` handle is created once from DATABASE_URL / DATABASE_NAME. Route
handlers receive it through the ``get_db`` dependency so tests can swap in an
in-memory database.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Optional, Union

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pydantic.alias_generators import to_camel
from pymongo import ASCENDING, TEXT, MongoClient

from config import DATABASE_NAME, DATABASE_URL
from errors import Internal, NotFound

logger = logging.getLogger(__name__)

_client = None
db = None

if DATABASE_URL and DATABASE_NAME:
    _client = MongoClient(DATABASE_URL)
    db = _client[DATABASE_NAME]


def get_db():
    if db is None:
        raise Internal("Database not configured")
    return db


def ensure_indexes(database) -> None:
    database["product"].create_index(
        [("name", TEXT), ("description", TEXT), ("brand", TEXT)],
        name="product_text",
    )
    database["cart"].create_index([("user", ASCENDING)], unique=True)
    database["user"].create_index([("email", ASCENDING)], unique=True)
    logger.info("Indexes ensured on %s", database.name)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_document(database, collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document stamped with created_at/updated_at, returning its id."""
    if isinstance(data, BaseModel):
        data_dict = data.model_dump()
    else:
        data_dict = dict(data)
    now = utcnow()
    data_dict["created_at"] = now
    data_dict["updated_at"] = now
    result = database[collection_name].insert_one(data_dict)
    return str(result.inserted_id)


def get_documents(
    database,
    collection_name: str,
    filter_dict: Optional[dict] = None,
    limit: Optional[int] = None,
    sort: Optional[list] = None,
    projection: Optional[dict] = None,
):
    cursor = database[collection_name].find(filter_dict or {}, projection)
    if sort:
        cursor = cursor.sort(sort)
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)


def to_object_id(value: Any, what: str = "Resource") -> ObjectId:
    """Parse an id from the request; malformed ids cannot match anything."""
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(str(value))
    except (InvalidId, TypeError):
        raise NotFound(f"{what} not found")


def to_dict(doc):
    """Shape a stored document for the client.

    Keys are stored snake_case and sent camelCase; ``_id`` is kept as is and
    ObjectIds become strings.
    """
    if isinstance(doc, ObjectId):
        return str(doc)
    if isinstance(doc, list):
        return [to_dict(v) for v in doc]
    if not isinstance(doc, dict):
        return doc
    d = {}
    for key, value in doc.items():
        d[key if key.startswith("_") else to_camel(key)] = to_dict(value)
    return d
