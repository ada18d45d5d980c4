"""
Partial updates

A patch only names the fields that should change. The builders below turn a
patch model into the flat {dotted.path: value} mapping that goes into a single
$set, skipping anything left out, null or blank.
"""
import math
from typing import Any, Callable, Dict, List, Optional

from schemas import ProductPatch, StorePatch, UserPatch, utcnow
from validators import ensure_image


class UpdateBuilder:
    def __init__(self):
        self.fields: Dict[str, Any] = {}

    def text(self, path: str, value: Optional[str], check: Optional[Callable[[str], None]] = None) -> "UpdateBuilder":
        if value is None or not value.strip():
            return self
        if check is not None:
            check(value)
        self.fields[path] = value
        return self

    def number(self, path: str, value: Optional[float]) -> "UpdateBuilder":
        # 0 is a real value, only None/NaN mean "not given"
        if value is None or (isinstance(value, float) and math.isnan(value)):
            return self
        self.fields[path] = value
        return self

    def value(self, path: str, value: Any) -> "UpdateBuilder":
        if value is not None:
            self.fields[path] = value
        return self

    def items(self, path: str, values: Optional[List[Any]]) -> "UpdateBuilder":
        if values:
            self.fields[path] = list(values)
        return self

    def __bool__(self) -> bool:
        return bool(self.fields)


def user_update(patch: UserPatch, check_email: Optional[Callable[[str], None]] = None) -> Dict[str, Any]:
    b = UpdateBuilder()
    b.text("email", patch.email, check_email)
    b.text("passwordHash", patch.password_hash)
    b.text("phone", patch.phone)
    b.items("roles", [r for r in patch.roles or [] if r and r.strip()])
    if patch.profile is not None:
        p = patch.profile
        b.text("profile.firstName", p.first_name)
        b.text("profile.lastName", p.last_name)
        b.text("profile.location", p.location)
        b.text("profile.bio", p.bio)
        b.value("profile.dateOfBirth", p.date_of_birth)
        b.text("profile.image", p.image, ensure_image)
    if b:
        b.value("updatedAt", utcnow())
    return b.fields


def store_update(patch: StorePatch, check_email: Optional[Callable[[str], None]] = None) -> Dict[str, Any]:
    b = UpdateBuilder()
    b.text("name", patch.name)
    b.text("email", patch.email, check_email)
    b.text("image", patch.image, ensure_image)
    if patch.location is not None:
        loc = patch.location
        b.text("location.address", loc.address)
        b.text("location.city", loc.city)
        b.text("location.zipCode", loc.zip_code)
        if loc.coordinates is not None:
            b.number("location.coordinates.latitude", loc.coordinates.latitude)
            b.number("location.coordinates.longitude", loc.coordinates.longitude)
    return b.fields


def product_update(patch: ProductPatch) -> Dict[str, Any]:
    b = UpdateBuilder()
    b.text("productName", patch.product_name)
    b.text("description", patch.description)
    b.number("price", patch.price)
    b.text("image", patch.image, ensure_image)
    return b.fields
