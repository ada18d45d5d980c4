import math

import pytest

from geo import EARTH_RADIUS_KM, closest_stores, haversine_km, next_rating, recommended_stores


def km_east(km):
    """Longitude (degrees) that lies ``km`` east of (0, 0) along the equator."""
    return km / (EARTH_RADIUS_KM * math.pi / 180)


def store_at(name, km):
    return {"name": name, "location": {"coordinates": {"latitude": 0.0, "longitude": km_east(km)}}}


def test_haversine_same_point_is_zero():
    assert haversine_km((31.9, 35.2), (31.9, 35.2)) == 0.0


def test_haversine_one_degree_on_equator():
    assert haversine_km((0, 0), (0, 1)) == pytest.approx(111.195, abs=0.01)


def test_haversine_is_symmetric():
    ramallah, gaza = (31.9038, 35.2034), (31.5017, 34.4668)
    assert haversine_km(ramallah, gaza) == pytest.approx(haversine_km(gaza, ramallah))
    assert haversine_km(ramallah, gaza) == pytest.approx(82.0, abs=2.0)


def test_closest_stores_picks_nearest_in_order():
    stores = [store_at("ten", 10), store_at("three", 3), store_at("seven", 7)]
    assert [s["name"] for s in closest_stores(stores, (0.0, 0.0), 2)] == ["three", "seven"]


def test_closest_stores_ties_keep_scan_order():
    stores = [store_at("a", 5), store_at("b", 1), store_at("c", 5)]
    assert [s["name"] for s in closest_stores(stores, (0.0, 0.0), 3)] == ["b", "a", "c"]


def test_closest_stores_top_larger_than_store_count():
    stores = [store_at("a", 2), store_at("b", 1)]
    assert [s["name"] for s in closest_stores(stores, (0.0, 0.0), 10)] == ["b", "a"]


def test_closest_stores_zero_top():
    assert closest_stores([store_at("a", 1)], (0.0, 0.0), 0) == []


def test_closest_stores_missing_coordinates_count_as_origin():
    stores = [store_at("far", 50), {"name": "bare"}]
    assert [s["name"] for s in closest_stores(stores, (0.0, 0.0), 2)] == ["bare", "far"]


def test_recommended_stores_by_rating_desc_stable():
    stores = [
        {"name": "a", "rating": 3.0},
        {"name": "b", "rating": 4.5},
        {"name": "c", "rating": 3.0},
        {"name": "d", "rating": 1.0},
    ]
    assert [s["name"] for s in recommended_stores(stores, 3)] == ["b", "a", "c"]


def test_running_rating_sequence():
    rating, counter = 0.0, 0
    seen = []
    for new in (4, 5, 3):
        rating, counter = next_rating(rating, counter, new)
        seen.append((rating, counter))
    assert seen == [(4.0, 1), (4.5, 2), (4.0, 3)]


def test_running_rating_stays_exact_over_many_updates():
    rating, counter = 0.0, 0
    for _ in range(10000):
        rating, counter = next_rating(rating, counter, 5)
    assert counter == 10000
    assert rating == pytest.approx(5.0)
