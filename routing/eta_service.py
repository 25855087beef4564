#Purpose: ETA estimation policy.
#Converts a straight-line distance into the customer-facing estimate:
#minutes = distance / average speed of the vehicle class * 60
#          + fixed pickup/dropoff handling overhead
#When either end of a trip has no coordinates (geocoder failed or was never
#asked) the estimate degrades to the policy's fixed fallback, and says so.

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Optional

from orders.models import Location, VehicleClass
from orders.policy import MarketplacePolicy, default_policy

from .geo import distance, validate_coordinates

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TripEstimate:
    """
    Distance/ETA shown to the requester.
    eta_minutes is None only for the fallback estimate.
    """

    distance_km: float
    eta_minutes: Optional[int]
    eta_label: str
    is_fallback: bool = False


def eta(distance_km: float, vehicle_class: VehicleClass, policy: Optional[MarketplacePolicy] = None) -> int:
    """
    Minutes for a trip of `distance_km`, rounded half up to the nearest minute.
    """
    policy = policy or default_policy()
    speed_kmh = policy.average_speed_kmh[VehicleClass(vehicle_class)]
    minutes = distance_km / speed_kmh * 60 + policy.handling_overhead_min
    return int(math.floor(minutes + 0.5))


def format_minutes(minutes: int) -> str:
    if minutes < 60:
        return f"{minutes} minute{'s' if minutes != 1 else ''}"
    hours, rest = divmod(minutes, 60)
    label = f"{hours} hour{'s' if hours > 1 else ''}"
    if rest:
        label += f" {rest} minute{'s' if rest > 1 else ''}"
    return label


def fallback_estimate(policy: Optional[MarketplacePolicy] = None, reason: str = "coordinates unavailable") -> TripEstimate:
    policy = policy or default_policy()
    logger.warning(
        f"Using fallback trip estimate ({policy.fallback_distance_km} km, "
        f"{policy.fallback_eta_label}): {reason}"
    )
    return TripEstimate(
        distance_km=policy.fallback_distance_km,
        eta_minutes=None,
        eta_label=policy.fallback_eta_label,
        is_fallback=True,
    )


def estimate_trip(pickup: Location, dropoff: Location, vehicle_class: VehicleClass,
                  policy: Optional[MarketplacePolicy] = None) -> TripEstimate:
    """
    Haversine distance + speed-table ETA when both ends have coordinates,
    otherwise the logged fallback estimate.
    """
    policy = policy or default_policy()

    if pickup.coordinates is None or dropoff.coordinates is None:
        missing = [name for name, loc in (("pickup", pickup), ("dropoff", dropoff)) if loc.coordinates is None]
        return fallback_estimate(policy, reason=f"missing coordinates for {', '.join(missing)}")

    origin = validate_coordinates(pickup.coordinates, "pickup_coordinates")
    destination = validate_coordinates(dropoff.coordinates, "dropoff_coordinates")

    distance_km = distance(origin, destination)
    minutes = eta(distance_km, vehicle_class, policy)
    return TripEstimate(
        distance_km=distance_km,
        eta_minutes=minutes,
        eta_label=format_minutes(minutes),
    )
