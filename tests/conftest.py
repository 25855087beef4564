import pytest
from datetime import datetime, timedelta, timezone

from dispatch.lifecycle import RequestLifecycle
from orders.policy import default_policy
from orders.store import InMemoryRequestStore


class FixedClock:
    """Clock the tests move by hand."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


def fixed_codes(policy):
    return ("PU1234", "DO5678")


@pytest.fixture
def policy():
    return default_policy()


@pytest.fixture
def clock():
    return FixedClock(datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc))


@pytest.fixture
def store():
    return InMemoryRequestStore()


@pytest.fixture
def lifecycle(store, policy, clock):
    return RequestLifecycle(store, policy=policy, clock=clock, code_generator=fixed_codes)


@pytest.fixture
def valid_payload():
    # Marina (Lagos Island) -> Lekki
    return {
        "vehicle_class": "bike",
        "pickup_address": "12 Marina Road, Lagos Island",
        "dropoff_address": "4 Admiralty Way, Lekki Phase 1",
        "pickup_coordinates": (6.5244, 3.3792),
        "dropoff_coordinates": (6.4281, 3.4219),
        "item_description": "Documents",
        "weight": "2.5",
        "pickup_contact_name": "Ada Obi",
        "pickup_contact_phone": "+2348031234567",
        "dropoff_contact_name": "Tunde Bello",
        "dropoff_contact_phone": "08061234567",
    }


@pytest.fixture
def open_request(lifecycle, valid_payload):
    return lifecycle.create("user_1", valid_payload)
