"""
Pure transition functions for a DeliveryRequest.

Each function takes an immutable snapshot and returns the next one (plus
whatever the caller needs to report). None of them touch storage: the
lifecycle commits the returned snapshot with a conditional write keyed on
the version it was computed from.
"""

from __future__ import annotations

import secrets
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Callable, Dict, List, Optional, Tuple

from orders.errors import (
    ConflictError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from orders.models import (
    Acceptance,
    Bid,
    BidState,
    DeliveryRequest,
    LifecycleState,
    RiderAssignment,
)
from orders.policy import MarketplacePolicy, default_policy
from payments.fees import to_amount, total_amount

CodeGenerator = Callable[[MarketplacePolicy], Tuple[str, str]]

# Each delivery step may only be entered from the one before it.
PREVIOUS_STATE: Dict[LifecycleState, LifecycleState] = {
    LifecycleState.RIDER_ASSIGNED: LifecycleState.PAYMENT_CONFIRMED,
    LifecycleState.PICKUP_READY: LifecycleState.RIDER_ASSIGNED,
    LifecycleState.IN_TRANSIT: LifecycleState.PICKUP_READY,
    LifecycleState.DELIVERED: LifecycleState.IN_TRANSIT,
}


def generate_handoff_codes(policy: MarketplacePolicy) -> Tuple[str, str]:
    """Random pickup/dropoff codes, e.g. ("PU4821", "DO0937")."""
    upper = 10 ** policy.code_digits
    width = policy.code_digits
    pickup = f"{policy.pickup_code_prefix}{secrets.randbelow(upper):0{width}d}"
    dropoff = f"{policy.dropoff_code_prefix}{secrets.randbelow(upper):0{width}d}"
    return pickup, dropoff


def open_for_bids(request: DeliveryRequest, now: datetime) -> DeliveryRequest:
    if request.state is not LifecycleState.CREATED:
        raise InvalidTransitionError(
            f"Cannot open request {request.id} for bids from {request.state.value}"
        )
    return replace(request, state=LifecycleState.OPEN_FOR_BIDS, updated_at=now)


def add_bid(request: DeliveryRequest, bidder_id: str, amount, estimated_time: str,
            now: datetime) -> Tuple[DeliveryRequest, Bid]:
    """
    Append a pending bid. Only an OPEN_FOR_BIDS request takes bids.
    """
    errors: Dict[str, str] = {}
    if request.state is not LifecycleState.OPEN_FOR_BIDS:
        errors["request_id"] = f"request is {request.state.value}, not open for bids"
    if not bidder_id or not str(bidder_id).strip():
        errors["bidder_id"] = "required"
    if estimated_time is None or not str(estimated_time).strip():
        errors["estimated_time"] = "required"

    try:
        parsed_amount: Optional[Decimal] = to_amount(amount, "amount")
    except ValidationError as e:
        errors.update(e.fields)
        parsed_amount = None
    if parsed_amount is not None and parsed_amount <= 0:
        errors["amount"] = "must be greater than 0"

    if errors:
        raise ValidationError(f"Bid rejected for request {request.id}", errors)

    bid = Bid.new(
        request_id=request.id,
        bidder_id=str(bidder_id).strip(),
        amount=parsed_amount,
        estimated_time=str(estimated_time).strip(),
        sequence=len(request.bids),
        created_at=now,
    )
    return replace(request, bids=request.bids + (bid,), updated_at=now), bid


def accept_bid(request: DeliveryRequest, bid_id: str, now: datetime,
               policy: Optional[MarketplacePolicy] = None,
               code_generator: Optional[CodeGenerator] = None
               ) -> Tuple[DeliveryRequest, Bid, List[Bid], bool]:
    """
    Accept one bid and reject its siblings as a single set transition.

    Sets the acceptance (bid id, handoff codes, total_amount) and moves the
    request straight through BID_ACCEPTED to PAYMENT_PENDING.

    Returns (snapshot, accepted_bid, rejected_siblings, changed). Replaying an
    acceptance that already happened for the same bid returns changed=False.
    """
    policy = policy or default_policy()
    code_generator = code_generator or generate_handoff_codes

    bid = request.get_bid(bid_id)
    if bid is None:
        raise NotFoundError(f"Bid {bid_id} not found on request {request.id}", {"bid_id": "not found"})

    # idempotent replay of a committed acceptance
    if request.accepted_bid_id == bid_id and request.state is not LifecycleState.CANCELLED:
        siblings = [b for b in request.bids if b.id != bid_id]
        return request, bid, siblings, False

    if request.state is not LifecycleState.OPEN_FOR_BIDS:
        raise ConflictError(
            f"Request {request.id} is {request.state.value}; bid {bid_id} can no longer be accepted",
            {"bid_id": "request is not open for bids"},
        )
    if request.bids_in_state(BidState.ACCEPTED):
        raise ConflictError(f"Request {request.id} already has an accepted bid", {"bid_id": "already accepted"})
    if bid.state is not BidState.PENDING:
        raise ConflictError(f"Bid {bid_id} is {bid.state.value}", {"bid_id": f"bid is {bid.state.value}"})

    accepted = replace(bid, state=BidState.ACCEPTED)
    bids: List[Bid] = []
    rejected: List[Bid] = []
    for current in request.bids:
        if current.id == bid_id:
            bids.append(accepted)
        else:
            frozen = replace(current, state=BidState.REJECTED)
            bids.append(frozen)
            rejected.append(frozen)

    pickup_code, dropoff_code = code_generator(policy)
    acceptance = Acceptance(
        bid_id=bid.id,
        bidder_id=bid.bidder_id,
        bid_amount=bid.amount,
        total_amount=total_amount(bid.amount, policy),
        pickup_code=pickup_code,
        dropoff_code=dropoff_code,
        accepted_at=now,
    )

    # BID_ACCEPTED -> PAYMENT_PENDING is bundled: payment is the only next step
    snapshot = replace(
        request,
        bids=tuple(bids),
        acceptance=acceptance,
        state=LifecycleState.PAYMENT_PENDING,
        updated_at=now,
    )
    return snapshot, accepted, rejected, True


def advance(request: DeliveryRequest, target: LifecycleState, now: datetime,
            rider_id: Optional[str] = None) -> DeliveryRequest:
    """
    Move one step along the delivery part of the lifecycle
    (PAYMENT_CONFIRMED -> RIDER_ASSIGNED -> PICKUP_READY -> IN_TRANSIT -> DELIVERED).
    """
    expected = PREVIOUS_STATE.get(target)
    if expected is None:
        raise InvalidTransitionError(f"{target.value} is not reachable through advance()")
    if request.state is not expected:
        raise InvalidTransitionError(
            f"Cannot move request {request.id} to {target.value} from {request.state.value}; "
            f"expected {expected.value}"
        )

    changes = {"state": target, "updated_at": now}
    if target is LifecycleState.RIDER_ASSIGNED:
        # the rider is the carrier whose bid won unless dispatch says otherwise
        assigned = rider_id or request.acceptance.bidder_id
        changes["rider"] = RiderAssignment(rider_id=assigned, assigned_at=now)
    return replace(request, **changes)


def cancel_request(request: DeliveryRequest, now: datetime, reason: Optional[str] = None
                   ) -> Tuple[DeliveryRequest, List[Bid]]:
    """
    Cancel from any non-terminal state and freeze every bid to REJECTED.

    The acceptance record (codes, total_amount) is kept for the audit trail.
    Returns (snapshot, bids_that_changed).
    """
    if request.state.is_terminal:
        raise InvalidTransitionError(
            f"Cannot cancel request {request.id}: already {request.state.value}"
        )

    bids: List[Bid] = []
    changed: List[Bid] = []
    for bid in request.bids:
        if bid.state is BidState.REJECTED:
            bids.append(bid)
            continue
        frozen = replace(bid, state=BidState.REJECTED)
        bids.append(frozen)
        changed.append(frozen)

    snapshot = replace(
        request,
        bids=tuple(bids),
        state=LifecycleState.CANCELLED,
        cancel_reason=reason,
        updated_at=now,
    )
    return snapshot, changed
