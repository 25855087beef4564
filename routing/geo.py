#Purpose: Great-circle distance between two coordinates (GeoEstimator).
#Pure functions, no I/O. Callers validate coordinates first
#(validate_coordinates); an out-of-range point is a caller error,
#not something distance() tries to compute around.

import math
from typing import Dict, Optional, Tuple

from orders.errors import ValidationError

#internal coordinate type :(lat,lng)
LatLng = Tuple[float, float]

EARTH_RADIUS_KM = 6371


def distance(origin: LatLng, destination: LatLng) -> float:
    """
    Haversine distance in kilometres, rounded to 2 decimal places.

    Symmetric, and distance(p, p) == 0.0 for every point.
    """
    origin_lat, origin_lng = origin
    destination_lat, destination_lng = destination

    delta_lat = math.radians(destination_lat - origin_lat)
    delta_lng = math.radians(destination_lng - origin_lng)

    a = (
        math.sin(delta_lat / 2) ** 2
        + math.cos(math.radians(origin_lat))
        * math.cos(math.radians(destination_lat))
        * math.sin(delta_lng / 2) ** 2
    )
    # clamp guards against a drifting a few ulps above 1 for antipodal points
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(max(0.0, 1 - a)))

    return round(EARTH_RADIUS_KM * c, 2)


def coordinate_errors(coordinates: Optional[LatLng], field_name: str) -> Dict[str, str]:
    """
    Range check for one (lat, lng) pair. Returns {field: reason}, empty when valid.
    None is valid: coordinates are optional on a request.
    """
    if coordinates is None:
        return {}

    try:
        lat, lng = (float(value) for value in coordinates)
    except (TypeError, ValueError):
        return {field_name: "coordinates must be a (lat, lng) pair of numbers"}

    if not (math.isfinite(lat) and math.isfinite(lng)):
        return {field_name: "coordinates must be finite"}
    if not -90 <= lat <= 90:
        return {field_name: "latitude must be within [-90, 90]"}
    if not -180 <= lng <= 180:
        return {field_name: "longitude must be within [-180, 180]"}
    return {}


def validate_coordinates(coordinates: LatLng, field_name: str = "coordinates") -> LatLng:
    """Raise ValidationError for an out-of-range pair, return it as floats otherwise."""
    errors = coordinate_errors(coordinates, field_name)
    if errors:
        raise ValidationError(f"Invalid {field_name}", errors)
    lat, lng = coordinates
    return (float(lat), float(lng))
