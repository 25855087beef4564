import pytest

from dispatch.status_projector import LegacyStatus, project, to_legacy
from orders.errors import InconsistentStateError
from orders.models import RESTING_STATES, LifecycleState


@pytest.mark.parametrize("state", RESTING_STATES)
def test_request_shape_round_trip(state):
    assert project(to_legacy(state, "request")) is state


@pytest.mark.parametrize("state", [s for s in RESTING_STATES if s is not LifecycleState.OPEN_FOR_BIDS])
def test_order_shape_round_trip(state):
    legacy = to_legacy(state, "order")
    assert legacy.is_order_shape
    assert project(legacy) is state


def test_transient_states_have_no_legacy_form():
    with pytest.raises(ValueError):
        to_legacy(LifecycleState.CREATED)
    with pytest.raises(ValueError):
        to_legacy(LifecycleState.BID_ACCEPTED)
    with pytest.raises(ValueError):
        to_legacy(LifecycleState.OPEN_FOR_BIDS, "order")


def test_cancelled_anywhere_wins():
    fields = {"status": "accepted", "delivery_status": "cancelled", "payment_status": "paid"}
    assert project(fields) is LifecycleState.CANCELLED


def test_raw_record_values_are_normalized():
    fields = {"status": " Accepted ", "delivery_status": "IN_TRANSIT", "payment_status": "Paid", "extra": 1}
    assert project(fields) is LifecycleState.IN_TRANSIT


def test_order_shape_assigned_without_payment_is_payment_pending():
    fields = {"status": "assigned", "order_status": "assigned", "payment_status": "pending"}
    assert project(fields) is LifecycleState.PAYMENT_PENDING


def test_most_progressed_flag_wins():
    fields = {"status": "accepted", "delivery_status": "pickup_complete", "order_status": "delivering", "payment_status": "paid"}
    assert project(fields) is LifecycleState.IN_TRANSIT


@pytest.mark.parametrize("fields", [
    # paid but the request never left bidding
    {"status": "pending", "payment_status": "paid"},
    # delivery progress without a payment
    {"status": "accepted", "delivery_status": "in_transit"},
    {"status": "in_progress", "order_status": "in_progress", "payment_status": "pending"},
    # values outside the vocabulary
    {"status": "lost_in_space"},
    {"status": "accepted", "payment_status": "refunded"},
    # nothing to go on
    {"payment_status": "paid"},
    {},
])
def test_unreachable_combinations_raise(fields):
    with pytest.raises(InconsistentStateError):
        project(fields)


def test_inconsistent_error_names_fields():
    with pytest.raises(InconsistentStateError) as excinfo:
        project(LegacyStatus(status="pending", payment_status="paid"))
    assert excinfo.value.fields == {"status": "pending", "payment_status": "paid"}


def test_unknown_shape_rejected():
    with pytest.raises(ValueError):
        to_legacy(LifecycleState.DELIVERED, "invoice")
