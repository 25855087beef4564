"""
Purpose: Error taxonomy shared by every capability.
What it does:
- ValidationError: malformed input, carries the offending fields
- ConflictError: invariant violated by a concurrent mutation
- InvalidTransitionError: operation not allowed from the current state
- InconsistentStateError: legacy status fields outside the reachable set
- ExternalServiceError: geocoding / payment gateway failures (retryable)
- NotFoundError: unknown request or bid id

The service boundary converts these into result dicts; anything that is
not a MarketplaceError is a programming error and propagates.
"""

from __future__ import annotations

from typing import Dict, Optional


class MarketplaceError(Exception):
    """Base class for every error the core reports to its callers."""

    retryable: bool = False

    def __init__(self, message: str, fields: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.message = message
        self.fields: Dict[str, str] = dict(fields or {})

    def to_dict(self) -> Dict[str, object]:
        return {
            "type": type(self).__name__,
            "message": self.message,
            "fields": dict(self.fields),
            "retryable": self.retryable,
        }


class ValidationError(MarketplaceError):
    """Raised when input is malformed. `fields` maps field name -> reason."""


class NotFoundError(MarketplaceError):
    """Raised when a request or bid id does not exist."""


class ConflictError(MarketplaceError):
    """
    Raised when a concurrent mutation already won (second bid acceptance,
    payment reference mismatch). Never retried by the core: the caller
    re-reads the current state and decides.
    """


class InvalidTransitionError(MarketplaceError):
    """Raised when an operation is attempted from a state that does not permit it."""


class InconsistentStateError(MarketplaceError):
    """Raised by the status projector for field combinations no transition can produce."""


class ExternalServiceError(MarketplaceError):
    """Raised when a collaborator (geocoder, payment gateway) is unavailable."""

    retryable = True
