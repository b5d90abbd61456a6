"""
Document store

Thin wrapper over a MongoDB database. Every collection-level operation the
API needs goes through here so that driver errors surface as PersistenceError
and document ids leave as plain strings under the "id" key.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import DESCENDING, MongoClient
from pymongo.errors import PyMongoError

from errors import PersistenceError

logger = logging.getLogger(__name__)

CONVERSATIONS = "conversations"
USAGE_EVENTS = "usageEvents"
USERS = "users"


def _doc_id(value: str) -> Any:
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return value


def _out(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if doc is None:
        return None
    doc = dict(doc)
    doc["id"] = str(doc.pop("_id"))
    return doc


class DocumentStore:
    def __init__(self, db):
        self.db = db

    @classmethod
    def connect(cls, url: str, name: str) -> "DocumentStore":
        client = MongoClient(url, tz_aware=True, serverSelectionTimeoutMS=5000)
        return cls(client[name])

    def _error(self, action: str, collection: str, exc: Exception) -> PersistenceError:
        logger.error("Document store %s on %s failed: %s", action, collection, exc)
        return PersistenceError(f"Failed to {action} {collection}")

    def add(self, collection: str, data: Dict[str, Any]) -> str:
        try:
            result = self.db[collection].insert_one(dict(data))
        except PyMongoError as e:
            raise self._error("write", collection, e) from e
        return str(result.inserted_id)

    def set(self, collection: str, doc_id: str, data: Dict[str, Any]) -> None:
        try:
            self.db[collection].replace_one({"_id": _doc_id(doc_id)}, dict(data), upsert=True)
        except PyMongoError as e:
            raise self._error("write", collection, e) from e

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        try:
            return _out(self.db[collection].find_one({"_id": _doc_id(doc_id)}))
        except PyMongoError as e:
            raise self._error("read", collection, e) from e

    def update(self, collection: str, doc_id: str, fields: Dict[str, Any]) -> bool:
        try:
            result = self.db[collection].update_one({"_id": _doc_id(doc_id)}, {"$set": fields})
        except PyMongoError as e:
            raise self._error("update", collection, e) from e
        return result.matched_count > 0

    def delete(self, collection: str, doc_id: str) -> bool:
        try:
            result = self.db[collection].delete_one({"_id": _doc_id(doc_id)})
        except PyMongoError as e:
            raise self._error("delete", collection, e) from e
        return result.deleted_count > 0

    def query(
        self,
        collection: str,
        filter_dict: Optional[Dict[str, Any]] = None,
        sort: Optional[List[Tuple[str, int]]] = None,
        limit: Optional[int] = None,
    ) -> List[Dict[str, Any]]:
        try:
            cursor = self.db[collection].find(filter_dict or {})
            if sort:
                cursor = cursor.sort(sort)
            if limit:
                cursor = cursor.limit(limit)
            return [_out(doc) for doc in cursor]
        except PyMongoError as e:
            raise self._error("read", collection, e) from e

    def find_all(self, collection: str) -> List[Dict[str, Any]]:
        return self.query(collection)

    def count(self, collection: str) -> int:
        try:
            return self.db[collection].count_documents({})
        except PyMongoError as e:
            raise self._error("count", collection, e) from e

    def latest_for_user(self, collection: str, user_id: str, limit: int = 50) -> List[Dict[str, Any]]:
        return self.query(collection, {"userId": user_id}, sort=[("createdAt", DESCENDING)], limit=limit)
