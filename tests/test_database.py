import pytest
from bson import ObjectId

from database import PRODUCTS, STORES, USERS, RecordStore
from errors import UpdateFailed


def test_insert_generates_id(records):
    doc = {"name": "Shop"}
    store_id = records.insert(STORES, doc)
    assert ObjectId.is_valid(store_id)
    assert records.find_by_id(STORES, store_id)["name"] == "Shop"


def test_insert_keeps_given_id(records):
    assert records.insert(USERS, {"_id": "alice"}) == "alice"


def test_find_one_and_many(records):
    records.insert(PRODUCTS, {"storeId": "s1", "productName": "Olive oil"})
    records.insert(PRODUCTS, {"storeId": "s1", "productName": "Soap"})
    records.insert(PRODUCTS, {"storeId": "s2", "productName": "Soap"})
    assert records.find_one(PRODUCTS, {"productName": "Olive oil"})["storeId"] == "s1"
    assert records.find_one(PRODUCTS, {"productName": "Tea"}) is None
    assert len(records.find_many(PRODUCTS, {"storeId": "s1"})) == 2
    assert len(records.find_all(PRODUCTS)) == 3


def test_delete_missing_is_noop(records):
    assert records.delete_by_id(STORES, "nope") == 0


def test_update_fields_sets_dotted_paths(records):
    records.insert(STORES, {"_id": "s1", "location": {"city": "Hebron", "address": "Main"}})
    assert records.update_fields(STORES, "s1", {"location.city": "Jericho"}) == 1
    assert records.find_by_id(STORES, "s1")["location"] == {"city": "Jericho", "address": "Main"}


def test_update_fields_same_value_modifies_nothing(records):
    records.insert(STORES, {"_id": "s1", "name": "Shop"})
    assert records.update_fields(STORES, "s1", {"name": "Shop"}) == 0


def test_update_fields_missing_raises(records):
    with pytest.raises(UpdateFailed) as err:
        records.update_fields(STORES, "missing", {"name": "x"})
    assert err.value.kind == "store"
    assert err.value.entity_id == "missing"


def test_update_fields_expected_mismatch_raises(records):
    records.insert(STORES, {"_id": "s1", "ratingCounter": 2})
    with pytest.raises(UpdateFailed):
        records.update_fields(STORES, "s1", {"ratingCounter": 3}, expected={"ratingCounter": 1})
    assert records.find_by_id(STORES, "s1")["ratingCounter"] == 2


def test_records_share_one_handle(db):
    a, b = RecordStore(db), RecordStore(db)
    a.insert(USERS, {"_id": "alice"})
    assert b.find_by_id(USERS, "alice") is not None
