from __future__ import annotations

import math

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two points, in kilometres."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(a))


def bounding_box(lat: float, lng: float, radius_km: float) -> tuple[float, ...]:
    """(min_lat, max_lat, min_lng, max_lng) enclosing a circle of radius_km.

    Used as a cheap SQL prefilter before the exact haversine check.
    """
    d_lat = math.degrees(radius_km / EARTH_RADIUS_KM)
    cos_lat = max(math.cos(math.radians(lat)), 1e-6)
    d_lng = math.degrees(radius_km / (EARTH_RADIUS_KM * cos_lat))
    return lat - d_lat, lat + d_lat, lng - d_lng, lng + d_lng


def within_radius(items, lat: float, lng: float, radius_km: float, coords):
    """Yield ``(item, distance_km)`` for items within ``radius_km``.

    ``coords`` maps an item to its ``(lat, lng)`` or ``None``.
    """
    for item in items:
        point = coords(item)
        if point is None or None in point:
            continue
        distance = haversine_km(lat, lng, float(point[0]), float(point[1]))
        if distance <= radius_km:
            yield item, round(distance, 2)
