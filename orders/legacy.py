"""
Purpose: Adapter from the older request/bid payload shapes to the canonical field set.

Two generations of the booking forms wrote the same entity with different
names (pickup_address vs pickup_location, weight vs package_weight,
delivery_type vs vehicle_class, sender_* vs pickup_contact_*, ...). Only the
canonical names are live; everything else is translated here on the way in.
"""

from typing import Any, Dict, Mapping, Optional, Tuple

from .errors import ValidationError

# legacy name -> canonical name
REQUEST_FIELD_ALIASES: Dict[str, str] = {
    "user_id": "requester_id",
    "delivery_type": "vehicle_class",
    "pickup_location": "pickup_address",
    "dropoff_location": "dropoff_address",
    "pickupAddress": "pickup_address",
    "dropoffAddress": "dropoff_address",
    "package_weight": "weight",
    "sender_name": "pickup_contact_name",
    "senderName": "pickup_contact_name",
    "sender_phone": "pickup_contact_phone",
    "senderPhone": "pickup_contact_phone",
    "receiver_name": "dropoff_contact_name",
    "recipientName": "dropoff_contact_name",
    "receiver_phone": "dropoff_contact_phone",
    "recipientPhone": "dropoff_contact_phone",
}

BID_FIELD_ALIASES: Dict[str, str] = {
    "delivery_request_id": "request_id",
    "rider_id": "bidder_id",
    "user_id": "bidder_id",
    "delivery_time": "estimated_time",
}

COORDINATE_FIELDS = ("pickup_coordinates", "dropoff_coordinates")


def _coordinates(value: Any) -> Optional[Tuple[float, float]]:
    """Accept {"lat", "lng"} dicts (what the map widget stores) or (lat, lng) pairs."""
    if value is None:
        return None
    if isinstance(value, Mapping):
        lng = value.get("lng", value.get("lon"))
        if value.get("lat") is None or lng is None:
            return None
        return (value["lat"], lng)
    try:
        return tuple(value)
    except TypeError:
        # left as-is so validation reports it against the field
        return value


def _translate(payload: Mapping[str, Any], aliases: Mapping[str, str]) -> Dict[str, Any]:
    canonical: Dict[str, Any] = {}
    conflicts: Dict[str, str] = {}

    for key, value in payload.items():
        target = aliases.get(key, key)
        if value is None:
            canonical.setdefault(target, None)
            continue
        existing = canonical.get(target)
        if existing is not None and existing != value:
            conflicts[target] = f"given twice with different values (via {key})"
            continue
        canonical[target] = value

    if conflicts:
        raise ValidationError("Conflicting legacy and canonical fields", conflicts)
    return canonical


def normalize_request_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    """
    Translate a request payload written with any known field spelling into
    the canonical names consumed by orders.validation.build_request.
    """
    canonical = _translate(payload, REQUEST_FIELD_ALIASES)
    for key in COORDINATE_FIELDS:
        if key in canonical:
            canonical[key] = _coordinates(canonical[key])
    return canonical


def normalize_bid_payload(payload: Mapping[str, Any]) -> Dict[str, Any]:
    return _translate(payload, BID_FIELD_ALIASES)
