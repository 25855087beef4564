"""
Purpose: Domain models for the Orders capability.
What it does:
- Defines core data structures:
- DeliveryRequest (id, requester, vehicle class, pickup/dropoff, contacts,
  lifecycle state, acceptance, payment, rider, bids)
- Bid (id, request_id, bidder_id, amount, estimated time, state)
- Location / Contact value objects

Defines enums/constants:
- VehicleClass = bike | truck | van | fuel
- LifecycleState = CREATED → OPEN_FOR_BIDS → BID_ACCEPTED → PAYMENT_PENDING →
  PAYMENT_CONFIRMED → RIDER_ASSIGNED → PICKUP_READY → IN_TRANSIT → DELIVERED,
  plus the absorbing CANCELLED
- BidState = pending | accepted | rejected
- PaymentState = pending | confirmed

Cross references that may not exist yet (accepted bid, payment, rider) are
explicit variants (NOT_ACCEPTED / Acceptance, UNPAID / PaymentConfirmation,
UNASSIGNED / RiderAssignment) instead of bare None fields.

Rule: No storage, no transition logic. Models only. Records are frozen;
transitions build new snapshots with dataclasses.replace.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, Tuple, Union
import uuid

LatLng = Tuple[float, float]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class VehicleClass(str, Enum):
    BIKE = "bike"
    TRUCK = "truck"
    VAN = "van"
    FUEL = "fuel"


class LifecycleState(str, Enum):
    CREATED = "created"
    OPEN_FOR_BIDS = "open_for_bids"
    BID_ACCEPTED = "bid_accepted"
    PAYMENT_PENDING = "payment_pending"
    PAYMENT_CONFIRMED = "payment_confirmed"
    RIDER_ASSIGNED = "rider_assigned"
    PICKUP_READY = "pickup_ready"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (LifecycleState.DELIVERED, LifecycleState.CANCELLED)


FORWARD_ORDER: Tuple[LifecycleState, ...] = (
    LifecycleState.CREATED,
    LifecycleState.OPEN_FOR_BIDS,
    LifecycleState.BID_ACCEPTED,
    LifecycleState.PAYMENT_PENDING,
    LifecycleState.PAYMENT_CONFIRMED,
    LifecycleState.RIDER_ASSIGNED,
    LifecycleState.PICKUP_READY,
    LifecycleState.IN_TRANSIT,
    LifecycleState.DELIVERED,
)

# States a stored record can rest in. CREATED and BID_ACCEPTED are always
# bundled with the next step, so no committed snapshot holds them.
RESTING_STATES: Tuple[LifecycleState, ...] = tuple(
    s for s in FORWARD_ORDER if s not in (LifecycleState.CREATED, LifecycleState.BID_ACCEPTED)
) + (LifecycleState.CANCELLED,)


class BidState(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class PaymentState(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"


@dataclass(frozen=True)
class Location:
    """Free-text address plus optional (lat, lng) from the geocoder."""

    address: str
    coordinates: Optional[LatLng] = None


@dataclass(frozen=True)
class Contact:
    name: str
    phone: str  # E.164


@dataclass(frozen=True)
class Bid:
    """
    A carrier's offer on a request. Owned by the request it targets;
    immutable once the request has left OPEN_FOR_BIDS.
    """

    id: str
    request_id: str
    bidder_id: str
    amount: Decimal
    estimated_time: str
    state: BidState = BidState.PENDING
    created_at: datetime = field(default_factory=utc_now)

    # submission order within the request, last tie-break for display sorting
    sequence: int = 0

    @staticmethod
    def new(request_id: str, bidder_id: str, amount: Decimal, estimated_time: str,
            *, sequence: int = 0, created_at: Optional[datetime] = None) -> Bid:
        return Bid(
            id=str(uuid.uuid4()),
            request_id=request_id,
            bidder_id=bidder_id,
            amount=amount,
            estimated_time=estimated_time,
            created_at=created_at or utc_now(),
            sequence=sequence,
        )


# --- explicit "not yet set" variants ---

@dataclass(frozen=True)
class NotAccepted:
    """No bid has been accepted for the request."""


@dataclass(frozen=True)
class Acceptance:
    """
    Written exactly once, by the transition that accepts a bid.
    Codes and total_amount are never regenerated afterwards.
    """

    bid_id: str
    bidder_id: str
    bid_amount: Decimal
    total_amount: Decimal
    pickup_code: str
    dropoff_code: str
    accepted_at: datetime


@dataclass(frozen=True)
class Unpaid:
    """No payment confirmation recorded."""


@dataclass(frozen=True)
class PaymentConfirmation:
    reference: str
    amount: Decimal
    confirmed_at: datetime


@dataclass(frozen=True)
class Unassigned:
    """No rider assigned."""


@dataclass(frozen=True)
class RiderAssignment:
    rider_id: str
    assigned_at: datetime


NOT_ACCEPTED = NotAccepted()
UNPAID = Unpaid()
UNASSIGNED = Unassigned()

AcceptanceStatus = Union[NotAccepted, Acceptance]
PaymentStatus = Union[Unpaid, PaymentConfirmation]
RiderStatus = Union[Unassigned, RiderAssignment]


@dataclass(frozen=True)
class DeliveryRequest:
    """
    A delivery job posted by a requester. Owns its lifecycle state and its bids.

    `version` is bumped by the store on every committed write and is the key
    for optimistic conditional updates.
    """

    id: str
    requester_id: str
    vehicle_class: VehicleClass
    pickup: Location
    dropoff: Location
    item_description: str
    pickup_contact: Contact
    dropoff_contact: Contact
    weight_kg: Optional[Decimal] = None

    state: LifecycleState = LifecycleState.CREATED
    acceptance: AcceptanceStatus = NOT_ACCEPTED
    payment: PaymentStatus = UNPAID
    rider: RiderStatus = UNASSIGNED
    bids: Tuple[Bid, ...] = ()

    created_at: datetime = field(default_factory=utc_now)
    updated_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None
    version: int = 0

    @staticmethod
    def new(requester_id: str, vehicle_class: VehicleClass, pickup: Location, dropoff: Location,
            item_description: str, pickup_contact: Contact, dropoff_contact: Contact,
            weight_kg: Optional[Decimal] = None, created_at: Optional[datetime] = None) -> DeliveryRequest:
        return DeliveryRequest(
            id=str(uuid.uuid4()),
            requester_id=requester_id,
            vehicle_class=vehicle_class,
            pickup=pickup,
            dropoff=dropoff,
            item_description=item_description,
            pickup_contact=pickup_contact,
            dropoff_contact=dropoff_contact,
            weight_kg=weight_kg,
            created_at=created_at or utc_now(),
        )

    # --- record fields derived from the tagged variants ---

    @property
    def accepted_bid_id(self) -> Optional[str]:
        return self.acceptance.bid_id if isinstance(self.acceptance, Acceptance) else None

    @property
    def pickup_code(self) -> Optional[str]:
        return self.acceptance.pickup_code if isinstance(self.acceptance, Acceptance) else None

    @property
    def dropoff_code(self) -> Optional[str]:
        return self.acceptance.dropoff_code if isinstance(self.acceptance, Acceptance) else None

    @property
    def total_amount(self) -> Optional[Decimal]:
        return self.acceptance.total_amount if isinstance(self.acceptance, Acceptance) else None

    @property
    def payment_state(self) -> PaymentState:
        if isinstance(self.payment, PaymentConfirmation):
            return PaymentState.CONFIRMED
        return PaymentState.PENDING

    @property
    def payment_reference(self) -> Optional[str]:
        return self.payment.reference if isinstance(self.payment, PaymentConfirmation) else None

    @property
    def rider_id(self) -> Optional[str]:
        return self.rider.rider_id if isinstance(self.rider, RiderAssignment) else None

    def get_bid(self, bid_id: str) -> Optional[Bid]:
        for bid in self.bids:
            if bid.id == bid_id:
                return bid
        return None

    def bids_in_state(self, state: BidState) -> Tuple[Bid, ...]:
        return tuple(bid for bid in self.bids if bid.state is state)
