import pytest
from datetime import timedelta

from dispatch.service import MarketplaceService
from orders.errors import ExternalServiceError
from routing.geocoding_client import PlaceCandidate

from conftest import fixed_codes

LEGACY_PAYLOAD = {
    "user_id": "user_42",
    "delivery_type": "bike",
    "pickup_location": "12 Marina Road, Lagos Island",
    "dropoff_location": "4 Admiralty Way, Lekki Phase 1",
    "item_description": "Documents",
    "package_weight": 2,
    "sender_name": "Ada Obi",
    "sender_phone": "+2348031234567",
    "receiver_name": "Tunde Bello",
    "receiver_phone": "+2348061234567",
}


class FakeGeocoder:
    def __init__(self, places=None, error=None):
        self.places = places or {}
        self.error = error
        self.calls = []

    def first_match(self, address):
        self.calls.append(address)
        if self.error:
            raise self.error
        coordinates = self.places.get(address)
        return PlaceCandidate(address, coordinates) if coordinates else None


@pytest.fixture
def service(store, policy, clock):
    return MarketplaceService(store, policy=policy, clock=clock, code_generator=fixed_codes)


def _create(service, payload=None):
    result = service.create_request("user_1", payload)
    assert result["success"], result
    return result["data"]


def test_create_request_returns_record(service, valid_payload):
    data = _create(service, valid_payload)

    assert data["state"] == "open_for_bids"
    assert data["pickup"]["coordinates"] == {"lat": 6.5244, "lng": 3.3792}
    assert data["dropoff_contact"]["phone"] == "+2348061234567"
    assert data["weight"] == "2.5"
    assert data["bids"] == []


def test_create_request_from_legacy_payload(service):
    result = service.create_request(None, LEGACY_PAYLOAD)

    assert result["success"]
    assert result["data"]["requester_id"] == "user_42"
    assert result["data"]["pickup"]["address"] == "12 Marina Road, Lagos Island"


def test_validation_failure_is_a_result(service, valid_payload):
    result = service.create_request("user_1", dict(valid_payload, pickup_contact_phone="123"))

    assert result["success"] is False
    assert result["error"]["type"] == "ValidationError"
    assert "pickup_contact_phone" in result["error"]["fields"]
    assert result["error"]["retryable"] is False


def test_geocoder_fills_missing_coordinates(store, policy, clock):
    geocoder = FakeGeocoder({
        "12 Marina Road, Lagos Island": (6.5244, 3.3792),
        "4 Admiralty Way, Lekki Phase 1": (6.4281, 3.4219),
    })
    service = MarketplaceService(store, policy=policy, clock=clock, geocoder=geocoder)

    data = service.create_request(None, LEGACY_PAYLOAD)["data"]
    estimate = service.estimate_trip(data["id"])["data"]

    assert data["dropoff"]["coordinates"] == {"lat": 6.4281, "lng": 3.4219}
    assert estimate["is_fallback"] is False
    assert estimate["eta_minutes"] == 48


def test_geocoder_failure_does_not_block_creation(store, policy, clock, caplog):
    geocoder = FakeGeocoder(error=ExternalServiceError("Geocoding request failed: timeout"))
    service = MarketplaceService(store, policy=policy, clock=clock, geocoder=geocoder)

    result = service.create_request(None, LEGACY_PAYLOAD)
    estimate = service.estimate_trip(result["data"]["id"])["data"]

    assert result["success"]
    assert result["data"]["pickup"]["coordinates"] is None
    assert len(geocoder.calls) == 2
    assert "Geocoding failed" in caplog.text
    assert estimate == {"distance_km": 5.3, "eta_minutes": None, "eta_label": "30–45 minutes", "is_fallback": True}


def test_geocoder_not_called_when_coordinates_given(store, policy, clock, valid_payload):
    geocoder = FakeGeocoder()
    service = MarketplaceService(store, policy=policy, clock=clock, geocoder=geocoder)

    _create(service, valid_payload)

    assert geocoder.calls == []


def test_full_booking_flow(service, valid_payload):
    request_id = _create(service, valid_payload)["id"]
    high = service.submit_bid(request_id, {"bidder_id": "rider_1", "amount": 2000, "estimated_time": "20 mins"})["data"]
    low = service.submit_bid(None, {"delivery_request_id": request_id, "rider_id": "rider_2", "amount": "1500", "delivery_time": "25 mins"})["data"]

    open_bids = service.list_open_bids(request_id)["data"]
    assert [b["id"] for b in open_bids] == [low["id"], high["id"]]

    accepted = service.accept_bid(request_id, low["id"], "user_1")["data"]
    assert accepted["request"]["total_amount"] == "2700"
    assert accepted["request"]["pickup_code"] == "PU1234"
    assert [b["id"] for b in accepted["rejected_bids"]] == [high["id"]]
    assert accepted["replayed"] is False

    assert service.query_state(request_id)["data"] == {
        "state": "payment_pending",
        "legacy": {"status": "accepted", "delivery_status": None, "order_status": None, "payment_status": "pending"},
    }

    assert service.confirm_payment(request_id, "TRIPPA-1-1", amount="2700")["success"]
    assert service.confirm_payment(request_id, "TRIPPA-1-1")["success"]
    assert service.assign_rider(request_id)["data"]["rider_id"] == "rider_2"
    assert service.mark_pickup_ready(request_id)["success"]
    assert service.mark_in_transit(request_id)["success"]
    assert service.mark_delivered(request_id)["data"]["state"] == "delivered"

    order_view = service.query_state(request_id, shape="order")["data"]
    assert order_view["legacy"]["order_status"] == "completed"


def test_second_accept_is_a_conflict_result(service, valid_payload):
    request_id = _create(service, valid_payload)["id"]
    first = service.submit_bid(request_id, {"bidder_id": "rider_1", "amount": 1500, "estimated_time": "20 mins"})["data"]
    second = service.submit_bid(request_id, {"bidder_id": "rider_2", "amount": 1400, "estimated_time": "20 mins"})["data"]
    service.accept_bid(request_id, first["id"], "user_1")

    result = service.accept_bid(request_id, second["id"], "user_1")

    assert result["success"] is False
    assert result["error"]["type"] == "ConflictError"


def test_invalid_transition_result(service, valid_payload):
    request_id = _create(service, valid_payload)["id"]
    service.cancel_request(request_id, "user_1", reason="no longer needed")

    result = service.assign_rider(request_id)

    assert result["success"] is False
    assert result["error"]["type"] == "InvalidTransitionError"


def test_unknown_request_result(service):
    result = service.get_request("missing")
    assert result["error"]["type"] == "NotFoundError"


def test_project_legacy(service):
    assert service.project_legacy({"status": "accepted", "payment_status": "paid"}) == {"success": True, "data": "payment_confirmed"}

    result = service.project_legacy({"status": "pending", "payment_status": "paid"})
    assert result["success"] is False
    assert result["error"]["type"] == "InconsistentStateError"


def test_expire_stale_requests(service, valid_payload, clock):
    request_id = _create(service, valid_payload)["id"]

    expired = service.expire_stale_requests(clock() + timedelta(minutes=16))["data"]

    assert [r["id"] for r in expired] == [request_id]
    assert expired[0]["cancel_reason"] == "bidding_expired"


def test_context_manager_closes_store(store, policy, clock):
    with MarketplaceService(store, policy=policy, clock=clock) as service:
        pass

    assert store.closed
    # not a MarketplaceError: propagates instead of becoming a result
    with pytest.raises(RuntimeError):
        service.get_request("anything")


def test_query_state_rejects_unknown_shape(service, valid_payload):
    request_id = _create(service, valid_payload)["id"]

    bid = service.submit_bid(request_id, {"bidder_id": "rider_1", "amount": 1500, "estimated_time": "20 mins"})["data"]
    before = service.query_state(request_id, shape="bogus")
    service.accept_bid(request_id, bid["id"], "user_1")
    after = service.query_state(request_id, shape="bogus")

    for result in (before, after):
        assert result["success"] is False
        assert result["error"]["type"] == "ValidationError"
        assert "shape" in result["error"]["fields"]

    assert service.query_state(request_id, shape="order")["success"] is True


def test_open_request_has_no_order_view(service, valid_payload):
    request_id = _create(service, valid_payload)["id"]

    assert service.query_state(request_id, shape="order")["data"] == {"state": "open_for_bids", "legacy": None}


def test_foreign_requester_cannot_accept_or_cancel(service, valid_payload):
    request_id = _create(service, valid_payload)["id"]
    bid = service.submit_bid(request_id, {"bidder_id": "rider_1", "amount": 1500, "estimated_time": "20 mins"})["data"]

    for result in (service.accept_bid(request_id, bid["id"], "user_2"), service.cancel_request(request_id, "user_2")):
        assert result["success"] is False
        assert result["error"]["type"] == "ValidationError"
        assert "requester_id" in result["error"]["fields"]
    assert service.get_request(request_id)["data"]["state"] == "open_for_bids"


def test_list_requests_newest_first(service, valid_payload, clock):
    older = _create(service, valid_payload)["id"]
    clock.advance(minutes=1)
    newer = _create(service, valid_payload)["id"]
    service.create_request("user_2", valid_payload)
    service.cancel_request(older, "user_1")

    listed = service.list_requests("user_1")["data"]
    assert [r["id"] for r in listed] == [newer, older]
    assert "bids" not in listed[0]

    open_only = service.list_requests("user_1", state="open_for_bids")["data"]
    assert [r["id"] for r in open_only] == [newer]


def test_list_requests_unknown_state(service):
    result = service.list_requests("user_1", state="lost_in_post")

    assert result["success"] is False
    assert result["error"]["type"] == "ValidationError"
    assert "state" in result["error"]["fields"]


def test_accept_conflict_is_logged(service, valid_payload, caplog):
    request_id = _create(service, valid_payload)["id"]
    first = service.submit_bid(request_id, {"bidder_id": "rider_1", "amount": 1500, "estimated_time": "20 mins"})["data"]
    second = service.submit_bid(request_id, {"bidder_id": "rider_2", "amount": 1400, "estimated_time": "20 mins"})["data"]
    service.accept_bid(request_id, first["id"], "user_1")

    service.accept_bid(request_id, second["id"], "user_1")

    assert f"Bid {second['id']} on request {request_id} not accepted" in caplog.text
