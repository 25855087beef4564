import pytest

from dispatch.expiry import EXPIRY_REASON, BiddingWindowSweeper
from orders.models import BidState, LifecycleState


@pytest.fixture
def sweeper(lifecycle):
    return BiddingWindowSweeper(lifecycle)


def test_request_inside_window_is_left_open(sweeper, lifecycle, open_request, clock):
    clock.advance(minutes=14)

    assert sweeper.run_cycle() == []
    assert lifecycle.get(open_request.id).state is LifecycleState.OPEN_FOR_BIDS


def test_expired_request_is_cancelled(sweeper, lifecycle, open_request, clock):
    lifecycle.submit_bid(open_request.id, "rider_1", 1500, "30 mins")
    clock.advance(minutes=15, seconds=1)

    cancelled = sweeper.run_cycle()

    assert [r.id for r in cancelled] == [open_request.id]
    record = lifecycle.get(open_request.id)
    assert record.state is LifecycleState.CANCELLED
    assert record.cancel_reason == EXPIRY_REASON
    assert all(b.state is BidState.REJECTED for b in record.bids)


def test_accepted_request_is_not_expired(sweeper, lifecycle, open_request, clock):
    _, bid = lifecycle.submit_bid(open_request.id, "rider_1", 1500, "30 mins")
    lifecycle.accept_bid(open_request.id, bid.id)
    clock.advance(hours=2)

    assert sweeper.run_cycle() == []
    assert lifecycle.get(open_request.id).state is LifecycleState.PAYMENT_PENDING


def test_request_accepted_after_listing_is_skipped(sweeper, lifecycle, open_request, clock, monkeypatch):
    _, bid = lifecycle.submit_bid(open_request.id, "rider_1", 1500, "30 mins")
    clock.advance(minutes=30)
    stale = sweeper.expired()
    # the requester accepts between the sweep's listing and its cancel
    lifecycle.accept_bid(open_request.id, bid.id)
    monkeypatch.setattr(sweeper, "expired", lambda now=None: stale)

    assert sweeper.run_cycle() == []
    assert lifecycle.get(open_request.id).state is LifecycleState.PAYMENT_PENDING
