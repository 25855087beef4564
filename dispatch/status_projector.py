"""
Purpose: StatusProjector, read-side compatibility with the legacy status columns.
What it does:
Older records describe progress through several independently-set fields
instead of one lifecycle state, in two shapes:

- request shape: status, delivery_status, payment_status
- order shape:   status, order_status, delivery_status, payment_status

project() maps any combination a real transition sequence can produce onto
the canonical LifecycleState; to_legacy() is the inverse used when writing
read models. Combinations no transition can produce raise
InconsistentStateError instead of being coerced.

Rules, in order:
1. "cancelled" on any field -> CANCELLED
2. payment not confirmed and an accepted/assigned/pending signal -> PAYMENT_PENDING
   (a request-shape "pending" with no payment yet is OPEN_FOR_BIDS)
3. payment confirmed -> most progressed of rider_assigned < pickup_ready <
   in_transit < completed, default PAYMENT_CONFIRMED
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from orders.errors import InconsistentStateError
from orders.models import LifecycleState

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LegacyStatus:
    status: Optional[str] = None
    delivery_status: Optional[str] = None
    order_status: Optional[str] = None
    payment_status: Optional[str] = None

    @property
    def is_order_shape(self) -> bool:
        return self.order_status is not None

    @classmethod
    def from_record(cls, record: Mapping[str, Any]) -> LegacyStatus:
        def clean(key):
            value = record.get(key)
            if value is None or str(value).strip() == "":
                return None
            return str(value).strip().lower()

        return cls(
            status=clean("status"),
            delivery_status=clean("delivery_status"),
            order_status=clean("order_status"),
            payment_status=clean("payment_status"),
        )

    def to_dict(self) -> Dict[str, Optional[str]]:
        return asdict(self)


class _Signal(Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    ASSIGNED = "assigned"  # accepted in the order shape until payment lands
    RIDER_ASSIGNED = "rider_assigned"
    PICKUP_READY = "pickup_ready"
    IN_TRANSIT = "in_transit"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class _Payment(Enum):
    NONE = "none"
    PENDING = "pending"
    CONFIRMED = "confirmed"


# values of status / order_status
STATUS_VOCABULARY: Dict[str, _Signal] = {
    "pending": _Signal.PENDING,
    "accepted": _Signal.ACCEPTED,
    "confirmed": _Signal.ACCEPTED,
    "assigned": _Signal.ASSIGNED,
    "in_progress": _Signal.RIDER_ASSIGNED,
    "pickup_ready": _Signal.PICKUP_READY,
    "delivering": _Signal.IN_TRANSIT,
    "in_transit": _Signal.IN_TRANSIT,
    "completed": _Signal.COMPLETED,
    "cancelled": _Signal.CANCELLED,
    "canceled": _Signal.CANCELLED,
}

# values of delivery_status
DELIVERY_VOCABULARY: Dict[str, _Signal] = {
    "rider_assigned": _Signal.RIDER_ASSIGNED,
    "pickup_ready": _Signal.PICKUP_READY,
    "pickup_complete": _Signal.PICKUP_READY,
    "in_transit": _Signal.IN_TRANSIT,
    "delivered": _Signal.COMPLETED,
    "completed": _Signal.COMPLETED,
    "cancelled": _Signal.CANCELLED,
    "canceled": _Signal.CANCELLED,
}

PAYMENT_VOCABULARY: Dict[str, _Payment] = {
    "pending": _Payment.PENDING,
    "unpaid": _Payment.PENDING,
    "paid": _Payment.CONFIRMED,
    "confirmed": _Payment.CONFIRMED,
}

# delivery progress in increasing order
PROGRESS: List[_Signal] = [
    _Signal.RIDER_ASSIGNED,
    _Signal.PICKUP_READY,
    _Signal.IN_TRANSIT,
    _Signal.COMPLETED,
]

PROGRESS_STATE: Dict[_Signal, LifecycleState] = {
    _Signal.RIDER_ASSIGNED: LifecycleState.RIDER_ASSIGNED,
    _Signal.PICKUP_READY: LifecycleState.PICKUP_READY,
    _Signal.IN_TRANSIT: LifecycleState.IN_TRANSIT,
    _Signal.COMPLETED: LifecycleState.DELIVERED,
}


def _inconsistent(legacy: LegacyStatus, reason: str) -> InconsistentStateError:
    logger.error(f"Inconsistent legacy status {legacy.to_dict()}: {reason}")
    return InconsistentStateError(
        f"Unreachable status combination: {reason}",
        {key: str(value) for key, value in legacy.to_dict().items() if value is not None},
    )


def _lookup(legacy: LegacyStatus, field_name: str, vocabulary: Mapping[str, Any]):
    value = getattr(legacy, field_name)
    if value is None:
        return None
    if value not in vocabulary:
        raise _inconsistent(legacy, f"unknown {field_name} '{value}'")
    return vocabulary[value]


def project(fields: Union[LegacyStatus, Mapping[str, Any]]) -> LifecycleState:
    """
    Canonical state for a legacy status combination.
    """
    legacy = fields if isinstance(fields, LegacyStatus) else LegacyStatus.from_record(fields)

    raw = [legacy.status, legacy.delivery_status, legacy.order_status, legacy.payment_status]
    if any(value in ("cancelled", "canceled") for value in raw):
        return LifecycleState.CANCELLED

    status_signals = [
        signal
        for signal in (
            _lookup(legacy, "status", STATUS_VOCABULARY),
            _lookup(legacy, "order_status", STATUS_VOCABULARY),
        )
        if signal is not None
    ]
    delivery_signal = _lookup(legacy, "delivery_status", DELIVERY_VOCABULARY)
    payment = _lookup(legacy, "payment_status", PAYMENT_VOCABULARY) or _Payment.NONE

    if not status_signals and delivery_signal is None:
        raise _inconsistent(legacy, "no lifecycle field set")

    if payment is not _Payment.CONFIRMED:
        progressed = [s for s in status_signals if s in PROGRESS and s is not _Signal.RIDER_ASSIGNED]
        if delivery_signal is not None or progressed or _Signal.RIDER_ASSIGNED in status_signals:
            raise _inconsistent(legacy, "delivery progress without a confirmed payment")

        if _Signal.ACCEPTED in status_signals or _Signal.ASSIGNED in status_signals:
            return LifecycleState.PAYMENT_PENDING
        # only PENDING signals remain
        if legacy.is_order_shape or payment is _Payment.PENDING:
            return LifecycleState.PAYMENT_PENDING
        return LifecycleState.OPEN_FOR_BIDS

    # payment confirmed
    if not legacy.is_order_shape and status_signals == [_Signal.PENDING]:
        raise _inconsistent(legacy, "payment confirmed on a request that never accepted a bid")

    flags = set(status_signals)
    if delivery_signal is not None:
        flags.add(delivery_signal)
    if _Signal.ASSIGNED in flags:
        flags.add(_Signal.RIDER_ASSIGNED)

    progress = [signal for signal in PROGRESS if signal in flags]
    if not progress:
        return LifecycleState.PAYMENT_CONFIRMED
    return PROGRESS_STATE[progress[-1]]


# canonical -> (status, delivery_status, payment_status) for the request shape
_REQUEST_SHAPE: Dict[LifecycleState, tuple] = {
    LifecycleState.OPEN_FOR_BIDS: ("pending", None, None),
    LifecycleState.PAYMENT_PENDING: ("accepted", None, "pending"),
    LifecycleState.PAYMENT_CONFIRMED: ("accepted", None, "paid"),
    LifecycleState.RIDER_ASSIGNED: ("accepted", "rider_assigned", "paid"),
    LifecycleState.PICKUP_READY: ("accepted", "pickup_complete", "paid"),
    LifecycleState.IN_TRANSIT: ("accepted", "in_transit", "paid"),
    LifecycleState.DELIVERED: ("completed", "delivered", "paid"),
    LifecycleState.CANCELLED: ("cancelled", None, None),
}

# canonical -> (status/order_status, delivery_status, payment_status) for the order shape
_ORDER_SHAPE: Dict[LifecycleState, tuple] = {
    LifecycleState.PAYMENT_PENDING: ("pending", None, "pending"),
    LifecycleState.PAYMENT_CONFIRMED: ("confirmed", None, "paid"),
    LifecycleState.RIDER_ASSIGNED: ("assigned", "rider_assigned", "paid"),
    LifecycleState.PICKUP_READY: ("pickup_ready", "pickup_complete", "paid"),
    LifecycleState.IN_TRANSIT: ("delivering", "in_transit", "paid"),
    LifecycleState.DELIVERED: ("completed", "delivered", "paid"),
    LifecycleState.CANCELLED: ("cancelled", None, None),
}


def to_legacy(state: LifecycleState, shape: str = "request") -> LegacyStatus:
    """
    Legacy fields for a canonical state. Only resting states have a legacy
    form; the order shape exists only once a bid has been accepted.
    """
    if shape == "request":
        table = _REQUEST_SHAPE
    elif shape == "order":
        table = _ORDER_SHAPE
    else:
        raise ValueError(f"unknown legacy shape '{shape}'")

    if state not in table:
        raise ValueError(f"{state.value} has no {shape}-shape legacy representation")

    status, delivery_status, payment_status = table[state]
    return LegacyStatus(
        status=status,
        delivery_status=delivery_status,
        order_status=status if shape == "order" else None,
        payment_status=payment_status,
    )
