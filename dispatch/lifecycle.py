"""
Purpose: RequestLifecycle, the owner of every state change on a delivery request.
What it does:
Reads the current snapshot, applies a pure transition from
dispatch.state_machines.request_state, and commits the result with a
conditional write keyed on the snapshot's version.

If the write loses (someone committed in between) the transition is re-run
against the fresh snapshot, so the state check and the write always refer
to the same version. That is what makes bid acceptance first-commit-wins:
the loser re-reads, finds the request no longer OPEN_FOR_BIDS, and gets a
ConflictError.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Callable, List, Mapping, Optional, Tuple, TypeVar

from orders.errors import ConflictError, InvalidTransitionError, NotFoundError, ValidationError
from orders.models import Bid, DeliveryRequest, LifecycleState, utc_now
from orders.policy import MarketplacePolicy, default_policy
from orders.store import RequestStore
from orders.validation import build_request
from payments.settlement import settle

from .state_machines import request_state
from .state_machines.request_state import CodeGenerator

logger = logging.getLogger(__name__)

T = TypeVar("T")
Transition = Callable[[DeliveryRequest], Tuple[DeliveryRequest, T]]


def _check_owner(request: DeliveryRequest, requester_id: Optional[str]) -> None:
    if requester_id is not None and request.requester_id != requester_id:
        raise ValidationError(
            f"Request {request.id} does not belong to {requester_id}",
            {"requester_id": "you do not have permission to change this request"},
        )


@dataclass(frozen=True)
class AcceptanceOutcome:
    request: DeliveryRequest
    accepted_bid: Bid
    rejected_bids: List[Bid]
    replayed: bool = False


@dataclass(frozen=True)
class CancellationOutcome:
    request: DeliveryRequest
    rejected_bids: List[Bid]


class RequestLifecycle:
    """
    State machine service over a RequestStore.

    Created -> OpenForBids -> BidAccepted -> PaymentPending -> PaymentConfirmed
    -> RiderAssigned -> PickupReady -> InTransit -> Delivered, and Cancelled
    from anything before Delivered.
    """

    def __init__(self, store: RequestStore, policy: Optional[MarketplacePolicy] = None,
                 clock: Optional[Callable[[], datetime]] = None,
                 code_generator: Optional[CodeGenerator] = None,
                 max_write_attempts: int = 32):
        self.store = store
        self.policy = policy or default_policy()
        self.clock = clock or utc_now
        self.code_generator = code_generator or request_state.generate_handoff_codes
        self.max_write_attempts = max_write_attempts

    # --- reads ---

    def get(self, request_id: str) -> DeliveryRequest:
        record = self.store.get(request_id)
        if record is None:
            raise NotFoundError(f"Request {request_id} not found", {"request_id": "not found"})
        return record

    # --- transitions ---

    def create(self, requester_id: str, payload: Mapping[str, Any]) -> DeliveryRequest:
        """
        Validate and store a new request. It is opened for bids in the same
        write: there is no separate "open" action.
        """
        now = self.clock()
        record = build_request(requester_id, payload, now, self.policy)
        record = request_state.open_for_bids(record, now)
        stored = self.store.insert(record)
        logger.info(f"Request {stored.id} created by {stored.requester_id} ({stored.vehicle_class.value}), open for bids")
        return stored

    def submit_bid(self, request_id: str, bidder_id: str, amount, estimated_time: str) -> Tuple[DeliveryRequest, Bid]:
        def transition(current: DeliveryRequest):
            return request_state.add_bid(current, bidder_id, amount, estimated_time, self.clock())

        return self._commit(request_id, transition)

    def accept_bid(self, request_id: str, bid_id: str, requester_id: Optional[str] = None) -> AcceptanceOutcome:
        """
        requester_id, when given, must own the request.
        """
        def transition(current: DeliveryRequest):
            _check_owner(current, requester_id)
            snapshot, accepted, rejected, changed = request_state.accept_bid(
                current, bid_id, self.clock(), self.policy, self.code_generator
            )
            return snapshot, (accepted, rejected, changed)

        stored, (accepted, rejected, changed) = self._commit(request_id, transition)
        if changed:
            logger.info(
                f"Request {request_id}: bid {bid_id} accepted at {accepted.amount}, "
                f"{len(rejected)} sibling bid(s) rejected, total {stored.total_amount}"
            )
        return AcceptanceOutcome(request=stored, accepted_bid=accepted, rejected_bids=rejected, replayed=not changed)

    def confirm_payment(self, request_id: str, reference: str, amount: Optional[Decimal] = None) -> DeliveryRequest:
        """
        Idempotent: the same reference twice is a no-op, a different one after
        confirmation is a ConflictError.
        """
        def transition(current: DeliveryRequest):
            snapshot, changed = settle(current, reference, self.clock(), amount)
            return snapshot, changed

        stored, changed = self._commit(request_id, transition)
        if changed:
            logger.info(f"Request {request_id}: payment {reference} confirmed for {stored.total_amount}")
        else:
            logger.info(f"Request {request_id}: duplicate payment confirmation {reference} absorbed")
        return stored

    def assign_rider(self, request_id: str, rider_id: Optional[str] = None) -> DeliveryRequest:
        return self._advance(request_id, LifecycleState.RIDER_ASSIGNED, rider_id=rider_id)

    def mark_pickup_ready(self, request_id: str) -> DeliveryRequest:
        return self._advance(request_id, LifecycleState.PICKUP_READY)

    def mark_in_transit(self, request_id: str) -> DeliveryRequest:
        return self._advance(request_id, LifecycleState.IN_TRANSIT)

    def mark_delivered(self, request_id: str) -> DeliveryRequest:
        return self._advance(request_id, LifecycleState.DELIVERED)

    def cancel(self, request_id: str, reason: Optional[str] = None,
               expected_state: Optional[LifecycleState] = None,
               requester_id: Optional[str] = None) -> CancellationOutcome:
        """
        expected_state makes the cancel conditional: it only applies if the
        request is still in that state at commit time. requester_id, when
        given, must own the request (the sweep cancels without one).
        """
        def transition(current: DeliveryRequest):
            _check_owner(current, requester_id)
            if expected_state is not None and current.state is not expected_state:
                raise InvalidTransitionError(
                    f"Request {request_id} is {current.state.value}, not {expected_state.value}"
                )
            return request_state.cancel_request(current, self.clock(), reason)

        stored, rejected = self._commit(request_id, transition)
        logger.info(f"Request {request_id} cancelled ({reason or 'no reason given'}), {len(rejected)} bid(s) rejected")
        return CancellationOutcome(request=stored, rejected_bids=rejected)

    # --- internals ---

    def _advance(self, request_id: str, target: LifecycleState, rider_id: Optional[str] = None) -> DeliveryRequest:
        def transition(current: DeliveryRequest):
            return request_state.advance(current, target, self.clock(), rider_id=rider_id), None

        stored, _ = self._commit(request_id, transition)
        logger.info(f"Request {request_id} -> {target.value}")
        return stored

    def _commit(self, request_id: str, transition: Transition) -> Tuple[DeliveryRequest, T]:
        """
        Optimistic read-transition-write loop.

        A transition returning the very snapshot it was given means "nothing to
        write" (idempotent replay) and is returned without touching the store.
        """
        for attempt in range(1, self.max_write_attempts + 1):
            current = self.get(request_id)
            snapshot, result = transition(current)
            if snapshot is current:
                return current, result

            stored = self.store.compare_and_set(snapshot, expected_version=current.version)
            if stored is not None:
                return stored, result

            logger.warning(
                f"Request {request_id}: write lost at version {current.version} "
                f"(attempt {attempt}), re-reading"
            )

        raise ConflictError(
            f"Request {request_id} is being modified concurrently, gave up after {self.max_write_attempts} attempts"
        )
