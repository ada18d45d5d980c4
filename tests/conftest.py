import copy
import re
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from database import RecordStore
from main import app, attach_services
from schemas import Store, User
from services import ProductService, StoreService, UserService

_MISSING = object()


# ---------- fakes ----------
def _get(doc, path):
    cur = doc
    for part in path.split("."):
        if not isinstance(cur, dict) or part not in cur:
            return _MISSING
        cur = cur[part]
    return cur


def _set(doc, path, value):
    parts = path.split(".")
    cur = doc
    for part in parts[:-1]:
        cur = cur.setdefault(part, {})
    cur[parts[-1]] = value


def _match_value(value, cond):
    if isinstance(cond, dict) and any(k.startswith("$") for k in cond):
        for op, arg in cond.items():
            if op == "$options":
                continue
            if op == "$regex":
                flags = re.IGNORECASE if "i" in cond.get("$options", "") else 0
                if not isinstance(value, str) or not re.search(arg, value, flags):
                    return False
            elif op in ("$gte", "$lte"):
                if value is _MISSING or value is None:
                    return False
                if op == "$gte" and value < arg:
                    return False
                if op == "$lte" and value > arg:
                    return False
            else:
                raise NotImplementedError(op)
        return True
    if value is _MISSING:
        return cond is None
    return value == cond


def _matches(doc, query):
    return all(_match_value(_get(doc, k), v) for k, v in query.items())


class FakeCursor(list):
    def sort(self, keys):
        for key, direction in reversed(keys):
            def sort_key(doc, key=key):
                v = _get(doc, key)
                v = None if v is _MISSING else v
                return (v is not None, v)
            super().sort(key=sort_key, reverse=direction < 0)
        return self


class FakeCollection:
    """Just enough of pymongo's Collection for the services."""

    def __init__(self):
        self.docs = []

    def insert_one(self, doc):
        if any(d["_id"] == doc["_id"] for d in self.docs):
            raise ValueError(f"duplicate _id {doc['_id']}")
        self.docs.append(copy.deepcopy(doc))
        return SimpleNamespace(inserted_id=doc["_id"])

    def find(self, query=None):
        return FakeCursor(copy.deepcopy(d) for d in self.docs if _matches(d, query or {}))

    def find_one(self, query=None):
        found = self.find(query)
        return found[0] if found else None

    def update_one(self, query, update):
        for doc in self.docs:
            if _matches(doc, query):
                before = copy.deepcopy(doc)
                for path, value in update["$set"].items():
                    _set(doc, path, value)
                return SimpleNamespace(matched_count=1, modified_count=int(before != doc))
        return SimpleNamespace(matched_count=0, modified_count=0)

    def delete_one(self, query):
        for i, doc in enumerate(self.docs):
            if _matches(doc, query):
                del self.docs[i]
                return SimpleNamespace(deleted_count=1)
        return SimpleNamespace(deleted_count=0)


class FakeDatabase:
    def __init__(self):
        self.collections = {}

    def __getitem__(self, name):
        return self.collections.setdefault(name, FakeCollection())

    def list_collection_names(self):
        return list(self.collections)


# ---------- fixtures ----------
@pytest.fixture
def db():
    return FakeDatabase()


@pytest.fixture
def records(db):
    return RecordStore(db)


@pytest.fixture
def users(records):
    return UserService(records)


@pytest.fixture
def stores(records):
    return StoreService(records)


@pytest.fixture
def products(records):
    return ProductService(records)


@pytest.fixture
def alice(users):
    return users.signup(User(username="alice", email="alice@storehub.ps", passwordHash="a1b2c3"))


@pytest.fixture
def bakery(stores, alice):
    return stores.create_store(
        Store(
            name="Nablus Bakery",
            email="bakery@storehub.ps",
            ownerName="alice",
            location={"address": "Old City", "city": "Nablus", "zipCode": "400",
                      "coordinates": {"latitude": 32.22, "longitude": 35.26}},
        )
    )


@pytest.fixture
def client(db):
    attach_services(app, db)
    with TestClient(app) as c:
        yield c
