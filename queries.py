"""Builds Mongo filters and sort specs from request parameters."""
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pymongo import ASCENDING, DESCENDING

from errors import InvalidInput

PRODUCT_SORT_FIELDS = ("productName", "description", "price")


def contains(text: str) -> Dict[str, str]:
    # Literal, case-insensitive substring match
    return {"$regex": re.escape(text), "$options": "i"}


def store_name_query(name: str) -> Dict[str, Any]:
    return {"name": contains(name)}


def product_query(
    store_id: str,
    product_name: Optional[str] = None,
    min_price: Optional[float] = None,
    max_price: Optional[float] = None,
) -> Dict[str, Any]:
    q: Dict[str, Any] = {"storeId": store_id}
    if product_name and product_name.strip():
        q["productName"] = contains(product_name)
    price: Dict[str, float] = {}
    if min_price is not None:
        price["$gte"] = min_price
    if max_price is not None:
        price["$lte"] = max_price
    if price:
        q["price"] = price
    return q


def parse_sort(sort_by: Optional[str], allowed: Iterable[str], default: str) -> List[Tuple[str, int]]:
    """'-price' sorts price descending, 'price' ascending."""
    key = (sort_by or "").strip() or default
    direction = ASCENDING
    if key.startswith("-"):
        key = key[1:]
        direction = DESCENDING
    if key not in allowed:
        raise InvalidInput(f"Cannot sort by '{key}'.")
    return [(key, direction)]
