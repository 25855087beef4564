"""
Purpose: MarketplaceService, the UI/API boundary of the marketplace.
What it does:
- Wires one RequestStore into the lifecycle, the bid registry and the
  bidding-window sweep
- Translates legacy payload spellings and fills in missing coordinates from
  the geocoder before a request is created
- Returns result dicts instead of raising:
    {"success": True, "data": ...}
    {"success": False, "error": {"type", "message", "fields", "retryable"}}

Only MarketplaceError is converted. Anything else is a bug and propagates.

The service is constructed explicitly and owns the store it is given:
close() (or leaving the `with` block) tears it down.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Dict, Mapping, Optional, Union

from orders.errors import (
    ConflictError,
    ExternalServiceError,
    InconsistentStateError,
    MarketplaceError,
    ValidationError,
)
from orders.legacy import normalize_bid_payload, normalize_request_payload
from orders.models import LifecycleState
from orders.policy import MarketplacePolicy
from orders.serializers import bid_to_dict, request_to_dict
from orders.store import RequestStore
from routing.eta_service import estimate_trip
from routing.geocoding_client import GeocodingClient

from .bidding import BidRegistry
from .expiry import BiddingWindowSweeper
from .lifecycle import RequestLifecycle
from .state_machines.request_state import CodeGenerator
from .status_projector import LegacyStatus, project, to_legacy

logger = logging.getLogger(__name__)

Result = Dict[str, Any]

LEGACY_SHAPES = ("request", "order")

# address field -> coordinate field filled from the geocoder
GEOCODED_FIELDS = {
    "pickup_address": "pickup_coordinates",
    "dropoff_address": "dropoff_coordinates",
}


def ok(data: Any) -> Result:
    return {"success": True, "data": data}


def failed(error: MarketplaceError) -> Result:
    return {"success": False, "error": error.to_dict()}


class MarketplaceService:
    def __init__(self, store: RequestStore, policy: Optional[MarketplacePolicy] = None,
                 geocoder: Optional[GeocodingClient] = None,
                 clock: Optional[Callable[[], datetime]] = None,
                 code_generator: Optional[CodeGenerator] = None):
        self.store = store
        self.geocoder = geocoder
        self.lifecycle = RequestLifecycle(store, policy=policy, clock=clock, code_generator=code_generator)
        self.policy = self.lifecycle.policy
        self.bids = BidRegistry(self.lifecycle)
        self.sweeper = BiddingWindowSweeper(self.lifecycle)

    # --- lifecycle of the handle itself ---

    def close(self) -> None:
        self.store.close()

    def __enter__(self) -> MarketplaceService:
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --- requests ---

    def create_request(self, requester_id: Optional[str], payload: Mapping[str, Any]) -> Result:
        """
        requester_id may be None when the payload carries it (user_id in the
        older forms).
        """
        def run():
            canonical = normalize_request_payload(payload)
            owner = requester_id or canonical.pop("requester_id", None)
            canonical.pop("requester_id", None)
            self._geocode_missing(canonical)
            record = self.lifecycle.create(owner, canonical)
            return request_to_dict(record)

        return self._run("create_request", run)

    def get_request(self, request_id: str) -> Result:
        return self._run("get_request", lambda: request_to_dict(self.lifecycle.get(request_id)))

    def list_requests(self, requester_id: str, state: Union[LifecycleState, str, None] = None) -> Result:
        """
        The requester's own requests, newest first, optionally filtered by state.
        """
        def run():
            wanted = None
            if state is not None:
                try:
                    wanted = LifecycleState(state)
                except ValueError:
                    allowed = ", ".join(s.value for s in LifecycleState)
                    raise ValidationError(f"Unknown state '{state}'", {"state": f"must be one of: {allowed}"})
            records = self.store.list_requests(wanted, requester_id=requester_id)
            return [request_to_dict(record, include_bids=False) for record in reversed(records)]

        return self._run("list_requests", run)

    def cancel_request(self, request_id: str, requester_id: str, reason: Optional[str] = None) -> Result:
        def run():
            outcome = self.lifecycle.cancel(request_id, reason=reason, requester_id=requester_id)
            return {
                "request": request_to_dict(outcome.request),
                "rejected_bids": [bid_to_dict(bid) for bid in outcome.rejected_bids],
            }

        return self._run("cancel_request", run)

    def estimate_trip(self, request_id: str) -> Result:
        def run():
            record = self.lifecycle.get(request_id)
            estimate = estimate_trip(record.pickup, record.dropoff, record.vehicle_class, self.policy)
            return {
                "distance_km": estimate.distance_km,
                "eta_minutes": estimate.eta_minutes,
                "eta_label": estimate.eta_label,
                "is_fallback": estimate.is_fallback,
            }

        return self._run("estimate_trip", run)

    # --- bids ---

    def submit_bid(self, request_id: Optional[str], payload: Mapping[str, Any]) -> Result:
        """
        payload: bidder_id, amount, estimated_time (older spellings accepted).
        """
        def run():
            canonical = normalize_bid_payload(payload)
            target = request_id or canonical.get("request_id")
            bid = self.bids.submit(
                target,
                canonical.get("bidder_id"),
                canonical.get("amount"),
                canonical.get("estimated_time"),
            )
            return bid_to_dict(bid)

        return self._run("submit_bid", run)

    def list_open_bids(self, request_id: str) -> Result:
        return self._run(
            "list_open_bids",
            lambda: [bid_to_dict(bid) for bid in self.bids.list_open_bids(request_id)],
        )

    def list_bids(self, request_id: str) -> Result:
        return self._run(
            "list_bids",
            lambda: [bid_to_dict(bid) for bid in self.bids.list_bids(request_id)],
        )

    def accept_bid(self, request_id: str, bid_id: str, requester_id: str) -> Result:
        """
        requester_id is the signed-in user; only the request's owner may accept.
        """
        def run():
            outcome = self.bids.accept(request_id, bid_id, requester_id=requester_id)
            return {
                "request": request_to_dict(outcome.request),
                "accepted_bid": bid_to_dict(outcome.accepted_bid),
                "rejected_bids": [bid_to_dict(bid) for bid in outcome.rejected_bids],
                "replayed": outcome.replayed,
            }

        return self._run("accept_bid", run)

    # --- payment and delivery ---

    def confirm_payment(self, request_id: str, reference: str, amount=None) -> Result:
        return self._run(
            "confirm_payment",
            lambda: request_to_dict(self.lifecycle.confirm_payment(request_id, reference, amount=amount)),
        )

    def assign_rider(self, request_id: str, rider_id: Optional[str] = None) -> Result:
        return self._run(
            "assign_rider",
            lambda: request_to_dict(self.lifecycle.assign_rider(request_id, rider_id=rider_id)),
        )

    def mark_pickup_ready(self, request_id: str) -> Result:
        return self._run("mark_pickup_ready", lambda: request_to_dict(self.lifecycle.mark_pickup_ready(request_id)))

    def mark_in_transit(self, request_id: str) -> Result:
        return self._run("mark_in_transit", lambda: request_to_dict(self.lifecycle.mark_in_transit(request_id)))

    def mark_delivered(self, request_id: str) -> Result:
        return self._run("mark_delivered", lambda: request_to_dict(self.lifecycle.mark_delivered(request_id)))

    # --- status ---

    def query_state(self, request_id: str, shape: str = "request") -> Result:
        """
        Canonical state plus its legacy read-model fields. The legacy fields
        are projected back and must land on the same state.
        """
        def run():
            if shape not in LEGACY_SHAPES:
                raise ValidationError(f"Unknown legacy shape '{shape}'", {"shape": "must be request or order"})
            state = self.lifecycle.get(request_id).state
            legacy = None
            if shape == "request" or state is not LifecycleState.OPEN_FOR_BIDS:
                legacy = to_legacy(state, shape)
                projected = project(legacy)
                if projected is not state:
                    raise InconsistentStateError(
                        f"Request {request_id} is {state.value} but its legacy fields read as {projected.value}"
                    )
            return {"state": state.value, "legacy": legacy.to_dict() if legacy else None}

        return self._run("query_state", run)

    def project_legacy(self, fields: Mapping[str, Any]) -> Result:
        return self._run("project_legacy", lambda: project(LegacyStatus.from_record(fields)).value)

    # --- scheduled ---

    def expire_stale_requests(self, now: Optional[datetime] = None) -> Result:
        return self._run(
            "expire_stale_requests",
            lambda: [request_to_dict(record, include_bids=False) for record in self.sweeper.run_cycle(now)],
        )

    # --- internals ---

    def _geocode_missing(self, payload: Dict[str, Any]) -> None:
        """
        Fill missing coordinates from the geocoder. Coordinates are optional,
        so a failed or empty lookup is logged and the request goes ahead.
        """
        if self.geocoder is None:
            return
        for address_field, coordinate_field in GEOCODED_FIELDS.items():
            address = payload.get(address_field)
            if payload.get(coordinate_field) is not None or not address:
                continue
            try:
                match = self.geocoder.first_match(str(address))
            except ExternalServiceError as e:
                logger.warning(f"Geocoding failed for {address_field} '{address}': {e.message}")
                continue
            if match is None or match.coordinates is None:
                logger.warning(f"No coordinates found for {address_field} '{address}'")
                continue
            payload[coordinate_field] = match.coordinates

    def _run(self, operation: str, fn: Callable[[], Any]) -> Result:
        try:
            return ok(fn())
        except InconsistentStateError as e:
            logger.error(f"{operation}: {e.message} {e.fields}")
            return failed(e)
        except ConflictError as e:
            logger.warning(f"{operation}: {e.message}")
            return failed(e)
        except MarketplaceError as e:
            logger.info(f"{operation} rejected: {type(e).__name__}: {e.message}")
            return failed(e)
