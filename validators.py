"""Checks that run before a write touches the database."""
import base64
from typing import Optional

from database import STORES, USERS, RecordStore
from errors import (
    Conflict,
    InvalidImage,
    InvalidReference,
    MissingRequiredField,
    RatingOutOfRange,
)

MIN_RATING = 0.0
MAX_RATING = 5.0


def is_valid_base64(value: Optional[str]) -> bool:
    # Empty means "no image"
    if not value:
        return True
    try:
        # Line breaks and other whitespace are ignored
        base64.b64decode("".join(value.split()), validate=True)
    except ValueError:
        return False
    return True


def ensure_image(value: Optional[str]) -> None:
    if not is_valid_base64(value):
        raise InvalidImage()


def ensure_text(field: str, value: Optional[str]) -> str:
    if value is None or not value.strip():
        raise MissingRequiredField(field)
    return value


def ensure_rating_in_range(rating: float) -> None:
    if not MIN_RATING <= rating <= MAX_RATING:
        raise RatingOutOfRange(rating)


def ensure_unique_user(records: RecordStore, username: str, email: str) -> None:
    if records.find_by_id(USERS, username) is not None:
        raise Conflict("Username already exists.")
    if records.find_one(USERS, {"email": email}) is not None:
        raise Conflict("Email already exists.")


def ensure_email_free(records: RecordStore, collection: str, email: str, owner_id: Optional[str] = None) -> None:
    """Fail if another document in ``collection`` already uses ``email``."""
    existing = records.find_one(collection, {"email": email})
    if existing is not None and existing["_id"] != owner_id:
        raise Conflict("Email is already in use.")


def ensure_owner_exists(records: RecordStore, owner_name: Optional[str]) -> None:
    if owner_name is None or not owner_name.strip():
        raise MissingRequiredField("ownerName", "Cannot create store: StoreOwner Name must be inserted.")
    if records.find_by_id(USERS, owner_name) is None:
        raise InvalidReference("Cannot create store: StoreOwner does not exist.")


def ensure_store_exists(records: RecordStore, store_id: Optional[str]) -> None:
    if store_id is None or not store_id.strip():
        raise MissingRequiredField("storeId")
    if records.find_by_id(STORES, store_id) is None:
        raise InvalidReference(f"Store with ID {store_id} does not exist.")
