"""
Purpose: PaymentSettlement.
What it does:
- Records the payment confirmation on a request exactly once
- Absorbs duplicate gateway callbacks that carry the same reference
- Rejects a second, different reference after confirmation (ConflictError)
- Generates merchant references for checkout (TRIPPA-<millis>-<random>)

Rule: pure functions over DeliveryRequest snapshots. Persisting the result
is the lifecycle's job.
"""

from __future__ import annotations

import secrets
import time
from dataclasses import replace
from datetime import datetime
from decimal import Decimal
from typing import Optional, Tuple

from orders.errors import ConflictError, InvalidTransitionError, ValidationError
from orders.models import (
    DeliveryRequest,
    LifecycleState,
    PaymentConfirmation,
)

from .fees import to_amount

REFERENCE_PREFIX = "TRIPPA"


def new_payment_reference(prefix: str = REFERENCE_PREFIX) -> str:
    millis = int(time.time() * 1000)
    return f"{prefix}-{millis}-{secrets.randbelow(1_000_000)}"


def settle(request: DeliveryRequest, reference: str, now: datetime,
           amount: Optional[Decimal] = None) -> Tuple[DeliveryRequest, bool]:
    """
    Apply a payment confirmation to `request`.

    Returns (snapshot, changed). changed is False when the confirmation is a
    replay of one already recorded; the snapshot is then the input unchanged.
    """
    reference = (reference or "").strip()
    if not reference:
        raise ValidationError("Payment reference is required", {"reference": "required"})

    if amount is not None:
        amount = to_amount(amount, "amount")
        if request.total_amount is not None and amount != request.total_amount:
            raise ConflictError(
                f"Payment amount {amount} does not match total {request.total_amount} for request {request.id}",
                {"amount": f"expected {request.total_amount}"},
            )

    if isinstance(request.payment, PaymentConfirmation):
        if request.payment.reference == reference:
            return request, False
        raise ConflictError(
            f"Request {request.id} already paid with a different reference",
            {"reference": "payment already confirmed with another reference"},
        )

    if request.state is not LifecycleState.PAYMENT_PENDING:
        raise InvalidTransitionError(
            f"Cannot confirm payment for request {request.id} in state {request.state.value}"
        )

    confirmation = PaymentConfirmation(
        reference=reference,
        amount=request.total_amount,
        confirmed_at=now,
    )
    return replace(
        request,
        payment=confirmation,
        state=LifecycleState.PAYMENT_CONFIRMED,
        updated_at=now,
    ), True
