"""
MongoDB access for Store Hub

One MongoClient is shared by the whole process. RecordStore wraps the database
handle with the handful of keyed-document operations the services need.
"""
import logging
import os
import threading
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bson import ObjectId
from pymongo import MongoClient
from pymongo.database import Database

from errors import UpdateFailed

logger = logging.getLogger(__name__)

DATABASE_URL = os.getenv("DATABASE_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "storehub")

USERS = "users"
STORES = "stores"
PRODUCTS = "products"

# Used in UpdateFailed messages
KINDS = {USERS: "user", STORES: "store", PRODUCTS: "product"}

_client: Optional[MongoClient] = None
_lock = threading.Lock()


def get_database() -> Database:
    global _client
    with _lock:
        if _client is None:
            logger.info("Connecting to MongoDB database %s", DATABASE_NAME)
            _client = MongoClient(DATABASE_URL)
    return _client[DATABASE_NAME]


def close_database() -> None:
    global _client
    with _lock:
        if _client is not None:
            _client.close()
            _client = None


def new_id() -> str:
    return str(ObjectId())


class RecordStore:
    def __init__(self, db: Database):
        self.db = db

    def find_all(self, collection: str) -> List[Dict[str, Any]]:
        return list(self.db[collection].find({}))

    def find_by_id(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        return self.db[collection].find_one({"_id": doc_id})

    def find_one(self, collection: str, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return self.db[collection].find_one(query)

    def find_many(
        self,
        collection: str,
        query: Dict[str, Any],
        sort: Optional[Sequence[Tuple[str, int]]] = None,
    ) -> List[Dict[str, Any]]:
        cursor = self.db[collection].find(query)
        if sort:
            cursor = cursor.sort(list(sort))
        return list(cursor)

    def insert(self, collection: str, doc: Dict[str, Any]) -> str:
        if not doc.get("_id"):
            doc["_id"] = new_id()
        self.db[collection].insert_one(doc)
        return doc["_id"]

    def delete_by_id(self, collection: str, doc_id: str) -> int:
        return self.db[collection].delete_one({"_id": doc_id}).deleted_count

    def update_fields(
        self,
        collection: str,
        doc_id: str,
        fields: Dict[str, Any],
        expected: Optional[Dict[str, Any]] = None,
    ) -> int:
        """Apply a $set of dotted-path fields to one document.

        ``expected`` is merged into the filter so the write only lands if the
        document still holds those values. Raises UpdateFailed when nothing
        matched; returns the modified count otherwise.
        """
        query = {"_id": doc_id, **(expected or {})}
        res = self.db[collection].update_one(query, {"$set": fields})
        if res.matched_count == 0:
            raise UpdateFailed(KINDS.get(collection, collection), doc_id)
        return res.modified_count
