"""
Purpose: Input validation for new delivery requests.
What it does:
- Checks required text fields (addresses, item description, contact names)
- Validates phone numbers with `phonenumbers` (default region NG) and
  normalizes them to E.164
- Range-checks optional coordinates
- Checks weight (>= 0) and the bike weight cap
- Builds the DeliveryRequest record (state CREATED)

Every problem found in one payload is reported together in a single
ValidationError so the form can highlight all fields at once.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Mapping, Optional

import phonenumbers

from routing.geo import coordinate_errors

from .errors import ValidationError
from .models import Contact, DeliveryRequest, Location, VehicleClass
from .policy import MarketplacePolicy, default_policy

REQUIRED_TEXT_FIELDS = (
    "pickup_address",
    "dropoff_address",
    "item_description",
    "pickup_contact_name",
    "dropoff_contact_name",
)


def normalize_phone(raw: Any, region: str) -> str:
    """
    Parse and validate a phone number. Returns E.164 ("+2348031234567").
    Raises ValueError with a user-facing reason.
    """
    if raw is None or not str(raw).strip():
        raise ValueError("required")
    try:
        number = phonenumbers.parse(str(raw).strip(), region)
    except phonenumbers.NumberParseException:
        raise ValueError("not a phone number")
    if not phonenumbers.is_valid_number(number):
        raise ValueError(f"not a valid {region} phone number")
    return phonenumbers.format_number(number, phonenumbers.PhoneNumberFormat.E164)


def _text(payload: Mapping[str, Any], key: str) -> str:
    value = payload.get(key)
    return str(value).strip() if value is not None else ""


def build_request(requester_id: str, payload: Mapping[str, Any], now: datetime,
                  policy: Optional[MarketplacePolicy] = None) -> DeliveryRequest:
    """
    Validate a canonical payload (see orders.legacy for field names) and
    build a new DeliveryRequest in state CREATED.
    """
    policy = policy or default_policy()
    errors: Dict[str, str] = {}

    if not requester_id or not str(requester_id).strip():
        errors["requester_id"] = "required"

    for key in REQUIRED_TEXT_FIELDS:
        if not _text(payload, key):
            errors[key] = "required"

    vehicle_class: Optional[VehicleClass] = None
    try:
        vehicle_class = VehicleClass(_text(payload, "vehicle_class").lower())
    except ValueError:
        allowed = ", ".join(vc.value for vc in VehicleClass)
        errors["vehicle_class"] = f"must be one of: {allowed}"

    phones: Dict[str, str] = {}
    for key in ("pickup_contact_phone", "dropoff_contact_phone"):
        try:
            phones[key] = normalize_phone(payload.get(key), policy.phone_region)
        except ValueError as e:
            errors[key] = str(e)

    for key in ("pickup_coordinates", "dropoff_coordinates"):
        errors.update(coordinate_errors(payload.get(key), key))

    weight: Optional[Decimal] = None
    raw_weight = payload.get("weight")
    if raw_weight is not None and str(raw_weight).strip() != "":
        try:
            weight = Decimal(str(raw_weight).strip())
        except ArithmeticError:
            errors["weight"] = "must be a number"
        else:
            if not weight.is_finite() or weight < 0:
                errors["weight"] = "must be a non-negative number"
            elif vehicle_class is VehicleClass.BIKE and weight > policy.bike_max_weight_kg:
                errors["weight"] = f"bike delivery is limited to items up to {policy.bike_max_weight_kg}kg"

    if errors:
        raise ValidationError("Invalid delivery request", errors)

    def _coords(key):
        value = payload.get(key)
        return (float(value[0]), float(value[1])) if value is not None else None

    return DeliveryRequest.new(
        requester_id=str(requester_id).strip(),
        vehicle_class=vehicle_class,
        pickup=Location(_text(payload, "pickup_address"), _coords("pickup_coordinates")),
        dropoff=Location(_text(payload, "dropoff_address"), _coords("dropoff_coordinates")),
        item_description=_text(payload, "item_description"),
        pickup_contact=Contact(_text(payload, "pickup_contact_name"), phones["pickup_contact_phone"]),
        dropoff_contact=Contact(_text(payload, "dropoff_contact_name"), phones["dropoff_contact_phone"]),
        weight_kg=weight,
        created_at=now,
    )
