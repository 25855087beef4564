"""
Purpose: FeeCalculator.
The amount a requester pays is the accepted bid plus the fixed platform
service fee. It is computed once, when the bid is accepted, and stored on the
request; nothing recomputes it from live bid data afterwards.
"""

from decimal import Decimal, InvalidOperation
from typing import Optional, Union

from orders.errors import ValidationError
from orders.policy import MarketplacePolicy, default_policy

Amount = Union[Decimal, int, str, float]

SERVICE_FEE = Decimal("1200")


def to_amount(value: Amount, field_name: str = "amount") -> Decimal:
    """Coerce user input to Decimal. Floats go through str() so 0.1 stays 0.1."""
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field_name}", {field_name: "must be a number"})
    try:
        amount = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid {field_name}", {field_name: "must be a number"})
    if not amount.is_finite():
        raise ValidationError(f"Invalid {field_name}", {field_name: "must be finite"})
    return amount


def total_amount(bid_amount: Amount, policy: Optional[MarketplacePolicy] = None) -> Decimal:
    """bid_amount + service fee."""
    fee = policy.service_fee if policy is not None else SERVICE_FEE
    return to_amount(bid_amount, "bid_amount") + fee
