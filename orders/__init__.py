"""
Purpose: Package entry + stable exports.
What it does:

Marks orders as a Python package and re-exports the request records, the
error taxonomy and the policy so other modules can do:

from orders import DeliveryRequest, LifecycleState, ValidationError

Should not contain business logic.
"""
from .errors import (
    ConflictError,
    ExternalServiceError,
    InconsistentStateError,
    InvalidTransitionError,
    MarketplaceError,
    NotFoundError,
    ValidationError,
)
from .models import Bid, BidState, DeliveryRequest, LifecycleState, PaymentState, VehicleClass
from .policy import MarketplacePolicy, default_policy
from .store import InMemoryRequestStore, RequestStore

__all__ = [
    "Bid",
    "BidState",
    "ConflictError",
    "DeliveryRequest",
    "ExternalServiceError",
    "InMemoryRequestStore",
    "InconsistentStateError",
    "InvalidTransitionError",
    "LifecycleState",
    "MarketplaceError",
    "MarketplacePolicy",
    "NotFoundError",
    "PaymentState",
    "RequestStore",
    "ValidationError",
    "VehicleClass",
    "default_policy",
]
