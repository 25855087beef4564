"""
Plain-dict projections of records for the UI/API boundary.
Decimals are rendered as strings and datetimes as ISO 8601.
"""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from .models import Bid, DeliveryRequest, Location


def _amount(value: Optional[Decimal]) -> Optional[str]:
    return str(value) if value is not None else None


def _timestamp(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _location(location: Location) -> Dict[str, Any]:
    coordinates = None
    if location.coordinates is not None:
        lat, lng = location.coordinates
        coordinates = {"lat": lat, "lng": lng}
    return {"address": location.address, "coordinates": coordinates}


def bid_to_dict(bid: Bid) -> Dict[str, Any]:
    return {
        "id": bid.id,
        "request_id": bid.request_id,
        "bidder_id": bid.bidder_id,
        "amount": _amount(bid.amount),
        "estimated_time": bid.estimated_time,
        "state": bid.state.value,
        "created_at": _timestamp(bid.created_at),
    }


def request_to_dict(request: DeliveryRequest, include_bids: bool = True) -> Dict[str, Any]:
    data = {
        "id": request.id,
        "requester_id": request.requester_id,
        "vehicle_class": request.vehicle_class.value,
        "state": request.state.value,
        "pickup": _location(request.pickup),
        "dropoff": _location(request.dropoff),
        "item_description": request.item_description,
        "weight": _amount(request.weight_kg),
        "pickup_contact": asdict(request.pickup_contact),
        "dropoff_contact": asdict(request.dropoff_contact),
        "accepted_bid_id": request.accepted_bid_id,
        "total_amount": _amount(request.total_amount),
        "pickup_code": request.pickup_code,
        "dropoff_code": request.dropoff_code,
        "payment_state": request.payment_state.value,
        "payment_reference": request.payment_reference,
        "rider_id": request.rider_id,
        "cancel_reason": request.cancel_reason,
        "created_at": _timestamp(request.created_at),
        "updated_at": _timestamp(request.updated_at),
        "version": request.version,
    }
    if include_bids:
        data["bids"] = [bid_to_dict(bid) for bid in request.bids]
    return data
