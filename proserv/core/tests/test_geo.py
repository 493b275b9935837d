import pytest

from proserv.core.geo import bounding_box
from proserv.core.geo import haversine_km
from proserv.core.geo import within_radius

BOGOTA = (4.711, -74.0721)
MEDELLIN = (6.2442, -75.5812)


def test_haversine_between_cities():
    assert haversine_km(*BOGOTA, *MEDELLIN) == pytest.approx(240, abs=5)
    assert haversine_km(*BOGOTA, *BOGOTA) == 0


def test_bounding_box_contains_centre():
    min_lat, max_lat, min_lng, max_lng = bounding_box(*BOGOTA, 10)
    assert min_lat < BOGOTA[0] < max_lat
    assert min_lng < BOGOTA[1] < max_lng


def test_within_radius_skips_missing_coordinates():
    items = [("bogota", BOGOTA), ("medellin", MEDELLIN), ("unknown", None)]
    matched = list(within_radius(items, *BOGOTA, 50, lambda item: item[1]))
    assert [(item[0], distance) for item, distance in matched] == [("bogota", 0)]
