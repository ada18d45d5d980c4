"""
Per-entity services for users, stores and products.

Every service gets the shared RecordStore at construction time. Reads return
None or an empty list when nothing matches; writes raise one of the errors
in errors.py.
"""
import logging
from typing import Any, Dict, List, Optional

from bson import ObjectId

from database import PRODUCTS, STORES, USERS, RecordStore
from errors import Conflict, InvalidCredentials, InvalidInput, MissingRequiredField, NotFound, UpdateFailed
from geo import closest_stores, next_rating, recommended_stores
from queries import PRODUCT_SORT_FIELDS, parse_sort, product_query, store_name_query
from schemas import Product, ProductPatch, Store, StorePatch, User, UserPatch, utcnow
from updates import product_update, store_update, user_update
from validators import (
    ensure_email_free,
    ensure_image,
    ensure_owner_exists,
    ensure_rating_in_range,
    ensure_store_exists,
    ensure_text,
    ensure_unique_user,
)

logger = logging.getLogger(__name__)

Doc = Dict[str, Any]

# Conditional rating writes retried this many times under contention
RATING_ATTEMPTS = 3


def _client_id(records: RecordStore, collection: str, doc_id: Optional[str]) -> Optional[str]:
    if not doc_id:
        return None
    if not ObjectId.is_valid(doc_id):
        raise InvalidInput("ID isn't valid.")
    if records.find_by_id(collection, doc_id) is not None:
        raise Conflict(f"An element with ID {doc_id} already exists.")
    return doc_id


class UserService:
    def __init__(self, records: RecordStore):
        self.records = records

    def list_users(self) -> List[Doc]:
        return self.records.find_all(USERS)

    def get_user(self, username: str) -> Optional[Doc]:
        return self.records.find_by_id(USERS, username)

    def signup(self, user: User) -> Doc:
        ensure_text("username", user.username)
        ensure_unique_user(self.records, user.username, user.email)
        ensure_image(user.profile.image)

        now = utcnow()
        doc = user.model_dump(by_alias=True, exclude={"username"})
        doc.update({"_id": user.username, "createdAt": now, "updatedAt": now})
        self.records.insert(USERS, doc)
        logger.info("Registered user %s", user.username)
        return doc

    def login(self, username: str, password: str) -> Doc:
        # The stored credential is compared as sent by the client
        if not username or not username.strip() or not password or not password.strip():
            raise MissingRequiredField("username", "Username and password must be provided.")
        user = self.get_user(username)
        if user is None:
            raise NotFound("User with this username not found.")
        if user.get("passwordHash") != password:
            logger.info("Rejected login for %s", username)
            raise InvalidCredentials()

        now = utcnow()
        self.records.update_fields(USERS, username, {"lastLogin": now})
        user["lastLogin"] = now
        return user

    def update_user(self, username: str, patch: UserPatch) -> Doc:
        if self.get_user(username) is None:
            raise NotFound(f"User with username '{username}' is not found.")

        def check_email(email: str) -> None:
            ensure_email_free(self.records, USERS, email, username)

        fields = user_update(patch, check_email)
        if fields:
            self.records.update_fields(USERS, username, fields)
            logger.info("Updated user %s: %s", username, ", ".join(sorted(fields)))
        return self.get_user(username)

    def delete_user(self, username: str) -> Doc:
        user = self.get_user(username)
        if user is None:
            raise NotFound(f"User with username '{username}' is not found.")
        self.records.delete_by_id(USERS, username)
        logger.info("Deleted user %s", username)
        return user


class StoreService:
    def __init__(self, records: RecordStore):
        self.records = records

    def list_stores(self) -> List[Doc]:
        return self.records.find_all(STORES)

    def get_store(self, store_id: str) -> Optional[Doc]:
        return self.records.find_by_id(STORES, store_id)

    def search_stores(self, name: str) -> List[Doc]:
        if not name or not name.strip():
            raise MissingRequiredField("name", "Store name cannot be empty.")
        return self.records.find_many(STORES, store_name_query(name))

    def stores_by_owner(self, owner_name: str) -> List[Doc]:
        return self.records.find_many(STORES, {"ownerName": owner_name})

    def stores_by_city(self, city: str) -> List[Doc]:
        return self.records.find_many(STORES, {"location.city": city})

    def closest_stores(self, latitude: float, longitude: float, top: int) -> List[Doc]:
        return closest_stores(self.list_stores(), (latitude, longitude), top)

    def recommended_stores(self, city: str, top: int) -> List[Doc]:
        return recommended_stores(self.stores_by_city(city), top)

    def create_store(self, store: Store) -> Doc:
        ensure_text("name", store.name)
        ensure_owner_exists(self.records, store.owner_name)
        ensure_image(store.image)
        if store.email:
            ensure_email_free(self.records, STORES, store.email)
        store_id = _client_id(self.records, STORES, store.id)

        doc = store.model_dump(by_alias=True, exclude={"id"})
        # A new store always starts unrated
        doc.update({"rating": 0.0, "ratingCounter": 0})
        if store_id:
            doc["_id"] = store_id
        self.records.insert(STORES, doc)
        logger.info("Created store %s (%s) for %s", doc["_id"], store.name, store.owner_name)
        return doc

    def update_store(self, store_id: str, patch: StorePatch) -> Doc:
        if self.get_store(store_id) is None:
            raise NotFound(f"Element with ID {store_id} not found")

        def check_email(email: str) -> None:
            ensure_email_free(self.records, STORES, email, store_id)

        fields = store_update(patch, check_email)
        if fields:
            self.records.update_fields(STORES, store_id, fields)
            logger.info("Updated store %s: %s", store_id, ", ".join(sorted(fields)))
        return self.get_store(store_id)

    def rate_store(self, store_id: str, rating: float) -> Doc:
        """Fold ``rating`` into the store's running mean.

        The write is conditional on the rating and counter that were read, so
        a concurrent rating forces a re-read instead of being lost.
        """
        ensure_rating_in_range(rating)
        for _ in range(RATING_ATTEMPTS):
            store = self.get_store(store_id)
            if store is None:
                raise NotFound(f"Store with ID {store_id} does not exist.")
            seen = {k: store[k] for k in ("rating", "ratingCounter") if k in store}
            mean, counter = next_rating(store.get("rating") or 0.0, store.get("ratingCounter") or 0, rating)
            try:
                self.records.update_fields(STORES, store_id, {"rating": mean, "ratingCounter": counter}, expected=seen)
            except UpdateFailed:
                logger.warning("Store %s changed while rating, retrying", store_id)
                continue
            store.update({"rating": mean, "ratingCounter": counter})
            return store
        raise UpdateFailed("store", store_id)

    def delete_store(self, store_id: str) -> Doc:
        store = self.get_store(store_id)
        if store is None:
            raise NotFound(f"Element with ID {store_id} not found")
        # Products of the store are left in place
        self.records.delete_by_id(STORES, store_id)
        logger.info("Deleted store %s", store_id)
        return store


class ProductService:
    def __init__(self, records: RecordStore):
        self.records = records

    def list_products(self) -> List[Doc]:
        return self.records.find_all(PRODUCTS)

    def get_product(self, product_id: str) -> Optional[Doc]:
        return self.records.find_by_id(PRODUCTS, product_id)

    def store_products(self, store_id: str) -> List[Doc]:
        return self.records.find_many(PRODUCTS, {"storeId": store_id})

    def search_products(
        self,
        store_id: str,
        product_name: Optional[str] = None,
        min_price: Optional[float] = None,
        max_price: Optional[float] = None,
        sort_by: Optional[str] = None,
    ) -> List[Doc]:
        if not store_id or not store_id.strip():
            raise MissingRequiredField("storeId", "Store ID cannot be empty.")
        sort = parse_sort(sort_by, PRODUCT_SORT_FIELDS, "productName")
        query = product_query(store_id, product_name, min_price, max_price)
        return self.records.find_many(PRODUCTS, query, sort)

    def create_product(self, product: Product) -> Doc:
        ensure_text("productName", product.product_name)
        ensure_store_exists(self.records, product.store_id)
        ensure_image(product.image)
        product_id = _client_id(self.records, PRODUCTS, product.id)

        doc = product.model_dump(by_alias=True, exclude={"id"})
        if product_id:
            doc["_id"] = product_id
        self.records.insert(PRODUCTS, doc)
        logger.info("Created product %s in store %s", doc["_id"], product.store_id)
        return doc

    def update_product(self, product_id: str, patch: ProductPatch) -> Doc:
        if self.get_product(product_id) is None:
            raise NotFound(f"Product with ID {product_id} not found")
        fields = product_update(patch)
        if fields:
            self.records.update_fields(PRODUCTS, product_id, fields)
            logger.info("Updated product %s: %s", product_id, ", ".join(sorted(fields)))
        return self.get_product(product_id)

    def delete_product(self, product_id: str) -> Doc:
        product = self.get_product(product_id)
        if product is None:
            raise NotFound(f"Product with ID {product_id} not found")
        self.records.delete_by_id(PRODUCTS, product_id)
        logger.info("Deleted product %s", product_id)
        return product
