"""
Database Schemas for Store Hub

MongoDB collections are defined below using Pydantic models. Fields are
snake_case in Python and camelCase in the stored documents and JSON bodies.

We will use these collections:
- users: registered users, keyed by username
- stores: stores with a location, an owner and a running rating
- products: products listed by a store

The *Patch models describe partial updates: a field left out, null or blank
means "do not change".
"""
from datetime import datetime, timezone
from typing import Annotated, List, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, EmailStr, Field, field_validator
from pydantic.alias_generators import to_camel


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


# Blank strings count as "not given"
OptionalEmail = Annotated[Optional[EmailStr], BeforeValidator(_blank_to_none)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------- Users ----------------------

class Profile(CamelModel):
    first_name: str = ""
    last_name: str = ""
    bio: str = ""
    date_of_birth: Optional[datetime] = None
    location: str = ""
    image: Optional[str] = Field("", description="Base64 encoded picture")


class User(CamelModel):
    username: str = Field(..., description="Unique, stored as _id")
    email: EmailStr
    password_hash: Optional[str] = Field("", description="Credential as sent by the client")
    phone: str = ""
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)
    profile: Profile = Field(default_factory=Profile)
    roles: List[str] = Field(default_factory=lambda: ["user"])
    is_active: bool = True
    last_login: Optional[datetime] = None

    @field_validator("roles")
    @classmethod
    def default_roles(cls, v: List[str]) -> List[str]:
        return v or ["user"]


class ProfilePatch(CamelModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    bio: Optional[str] = None
    date_of_birth: Optional[datetime] = None
    location: Optional[str] = None
    image: Optional[str] = None


class UserPatch(CamelModel):
    email: OptionalEmail = None
    password_hash: Optional[str] = None
    phone: Optional[str] = None
    roles: Optional[List[str]] = None
    profile: Optional[ProfilePatch] = None


# ---------------------- Stores ----------------------

class Coordinates(CamelModel):
    latitude: float = 0.0
    longitude: float = 0.0


class Location(CamelModel):
    address: str = ""
    city: str = ""
    zip_code: str = ""
    coordinates: Coordinates = Field(default_factory=Coordinates)


class Store(CamelModel):
    id: Optional[str] = None
    name: Optional[str] = None
    rating: float = Field(0.0, ge=0, le=5)
    rating_counter: int = Field(0, ge=0)
    location: Location = Field(default_factory=Location)
    email: OptionalEmail = None
    owner_name: Optional[str] = Field(None, description="Username of the owning user")
    image: Optional[str] = Field("", description="Base64 encoded picture")


class CoordinatesPatch(CamelModel):
    latitude: Optional[float] = None
    longitude: Optional[float] = None


class LocationPatch(CamelModel):
    address: Optional[str] = None
    city: Optional[str] = None
    zip_code: Optional[str] = None
    coordinates: Optional[CoordinatesPatch] = None


class StorePatch(CamelModel):
    name: Optional[str] = None
    email: OptionalEmail = None
    image: Optional[str] = None
    location: Optional[LocationPatch] = None


# ---------------------- Products ----------------------

class Product(CamelModel):
    id: Optional[str] = None
    store_id: str = ""
    product_name: str = ""
    description: str = ""
    price: Optional[float] = Field(0.0, ge=0)
    image: Optional[str] = Field("", description="Base64 encoded picture")


class ProductPatch(CamelModel):
    product_name: Optional[str] = None
    description: Optional[str] = None
    price: Optional[float] = Field(None, ge=0)
    image: Optional[str] = None
