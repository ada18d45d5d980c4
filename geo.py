"""Distance ranking, city recommendations and the running store rating."""
import math
from typing import Any, Dict, List, Tuple

EARTH_RADIUS_KM = 6371.0


def haversine_km(origin: Tuple[float, float], destination: Tuple[float, float]) -> float:
    """Great-circle distance in km between two (latitude, longitude) points."""
    lat1, lon1 = origin
    lat2, lon2 = destination
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def store_point(store: Dict[str, Any]) -> Tuple[float, float]:
    coords = (store.get("location") or {}).get("coordinates") or {}
    return float(coords.get("latitude") or 0.0), float(coords.get("longitude") or 0.0)


def closest_stores(stores: List[Dict[str, Any]], origin: Tuple[float, float], top: int) -> List[Dict[str, Any]]:
    if top <= 0:
        return []
    # sorted() is stable, ties keep scan order
    ranked = sorted(stores, key=lambda s: haversine_km(origin, store_point(s)))
    return ranked[:top]


def recommended_stores(stores: List[Dict[str, Any]], top: int) -> List[Dict[str, Any]]:
    if top <= 0:
        return []
    ranked = sorted(stores, key=lambda s: s.get("rating") or 0.0, reverse=True)
    return ranked[:top]


def next_rating(rating: float, counter: int, new_rating: float) -> Tuple[float, int]:
    """Fold one more rating into a running mean. Returns (mean, counter)."""
    total = rating * counter + new_rating
    counter += 1
    return total / counter, counter
