"""Great-circle distance between two coordinates."""

import math
from typing import Tuple, Union

from .errors import InvalidCoordinateError
from .models import Location

EARTH_RADIUS_KM = 6371.0

Coordinate = Union[Location, Tuple[float, float]]


def _lat_lon(point: Coordinate) -> Tuple[float, float]:
    if isinstance(point, Location):
        lat, lon = point.lat, point.lon
    else:
        lat, lon = point
    try:
        lat, lon = float(lat), float(lon)
    except (TypeError, ValueError):
        raise InvalidCoordinateError(f"Coordinate is not numeric: ({lat}, {lon})")
    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise InvalidCoordinateError(f"Coordinate is not finite: ({lat}, {lon})")
    if abs(lat) > 90:
        raise InvalidCoordinateError(f"Latitude out of range: {lat}")
    if abs(lon) > 180:
        raise InvalidCoordinateError(f"Longitude out of range: {lon}")
    return lat, lon


def distance_km(a: Coordinate, b: Coordinate) -> float:
    """
    Haversine distance in kilometers.

    Args:
        a: Location or (lat, lon) pair
        b: Location or (lat, lon) pair

    Returns:
        Non-negative distance; distance_km(a, b) == distance_km(b, a)

    Raises:
        InvalidCoordinateError: If |lat| > 90 or |lon| > 180
    """
    lat1, lon1 = _lat_lon(a)
    lat2, lon2 = _lat_lon(b)

    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlmb = math.radians(lon2 - lon1)

    h = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlmb / 2) ** 2
    # Rounding can push h fractionally past 1 for antipodal points
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_KM * math.asin(math.sqrt(h))
