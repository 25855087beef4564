import pytest

from orders.errors import ValidationError
from orders.legacy import normalize_bid_payload, normalize_request_payload


def test_older_request_spellings_are_translated():
    payload = normalize_request_payload({
        "user_id": "user_9",
        "delivery_type": "van",
        "pickup_location": "Yaba",
        "dropoff_location": "Ikeja",
        "package_weight": 40,
        "sender_name": "Ada",
        "sender_phone": "+2348031234567",
        "receiver_name": "Tunde",
        "receiver_phone": "+2348061234567",
        "pickup_coordinates": {"lat": 6.5095, "lng": 3.3711},
        "dropoff_coordinates": {"lat": 6.6018, "lon": 3.3515},
    })

    assert payload == {
        "requester_id": "user_9",
        "vehicle_class": "van",
        "pickup_address": "Yaba",
        "dropoff_address": "Ikeja",
        "weight": 40,
        "pickup_contact_name": "Ada",
        "pickup_contact_phone": "+2348031234567",
        "dropoff_contact_name": "Tunde",
        "dropoff_contact_phone": "+2348061234567",
        "pickup_coordinates": (6.5095, 3.3711),
        "dropoff_coordinates": (6.6018, 3.3515),
    }


def test_canonical_payload_passes_through(valid_payload):
    assert normalize_request_payload(valid_payload) == valid_payload


def test_same_value_under_both_names_is_accepted():
    payload = normalize_request_payload({"weight": 3, "package_weight": 3})
    assert payload == {"weight": 3}


def test_conflicting_spellings_rejected():
    with pytest.raises(ValidationError) as excinfo:
        normalize_request_payload({"pickup_address": "Yaba", "pickup_location": "Surulere"})
    assert "pickup_address" in excinfo.value.fields


def test_incomplete_coordinate_dict_is_treated_as_missing():
    payload = normalize_request_payload({"pickup_coordinates": {"lat": 6.5}})
    assert payload["pickup_coordinates"] is None


def test_bid_spellings_are_translated():
    payload = normalize_bid_payload({
        "delivery_request_id": "r_1",
        "rider_id": "rider_7",
        "amount": 1500,
        "delivery_time": "25 mins",
    })
    assert payload == {"request_id": "r_1", "bidder_id": "rider_7", "amount": 1500, "estimated_time": "25 mins"}
