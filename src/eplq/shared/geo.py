"""
Geometry helpers: great-circle distance, coarse regions and search boxes.
"""
import math
from decimal import Decimal, ROUND_HALF_UP

from eplq.shared.protocol import BoundingBox, Region


EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE = 111.0
# 0.1 degree (~11 km) is the finest location stored in the clear
REGION_PRECISION = 1
REGION_CELL_DEGREES = 10 ** -REGION_PRECISION


def haversine_distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """
    Great-circle distance between two points.

    Args:
        lat1, lon1: First point in degrees
        lat2, lon2: Second point in degrees

    Returns:
        Distance in kilometers
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def _round_half_away(value: float, places: int = REGION_PRECISION) -> float:
    quantum = Decimal(1).scaleb(-places)
    return float(Decimal(repr(float(value))).quantize(quantum, rounding=ROUND_HALF_UP))


def approximate_region(lat: float, lon: float) -> Region:
    """
    Round coordinates to the 0.1 degree grid.

    Halves round away from zero on the decimal value (51.05 -> 51.1,
    -0.15 -> -0.2), so the result does not depend on binary float noise.
    """
    return Region(_round_half_away(lat), _round_half_away(lon))


def bounding_box(lat: float, lon: float, radius_km: float) -> BoundingBox:
    """
    Degree box approximating a radius around a center.

    Uses 1/111 degrees per km of latitude and 1/(111 * cos(lat)) per km of
    longitude. The box is a hint for narrowing candidates; the haversine
    test is what decides membership.
    """
    lat_degrees_per_km = 1 / KM_PER_DEGREE
    lng_degrees_per_km = 1 / (KM_PER_DEGREE * math.cos(math.radians(lat)))

    return BoundingBox(
        min_lat=lat - radius_km * lat_degrees_per_km,
        max_lat=lat + radius_km * lat_degrees_per_km,
        min_lng=lon - radius_km * abs(lng_degrees_per_km),
        max_lng=lon + radius_km * abs(lng_degrees_per_km),
    )


def format_distance(distance_km: float) -> str:
    """Human readable distance: meters below 1 km, else km with 2 decimals."""
    if distance_km < 1:
        return f"{round(distance_km * 1000)}m"
    return f"{distance_km:.2f}km"
