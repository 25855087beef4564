"""
Purpose: Central configuration for the marketplace (single source of truth).
What it does:

Stores all tunable thresholds/constants:

SERVICE_FEE = 1200 (naira, added to the accepted bid)

AVERAGE_SPEED_KMH = bike 25, truck 30, van 35, fuel 30

HANDLING_OVERHEAD_MIN = 20 (10 min pickup + 10 min dropoff)

FALLBACK_DISTANCE_KM = 5.3 / FALLBACK_ETA_LABEL = "30–45 minutes"

BIDDING_WINDOW_SEC = 900 (the 15 minute countdown shown to requesters)

Rule: No logic here, just parameters so you can tune without rewriting code.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Dict

from .models import VehicleClass


@dataclass(frozen=True)
class MarketplacePolicy:
    """
    Central configuration for bidding, pricing and estimation.

    Notes:
    - service_fee is added once, at bid acceptance, and persisted as
      total_amount. Changing it never affects requests already accepted.
    - the fallback distance/ETA is only used when a request is missing
      coordinates for either end.
    """

    # --- Pricing ---
    service_fee: Decimal = Decimal("1200")

    # --- ETA estimation ---
    # Average urban speeds in km/h by vehicle class.
    average_speed_kmh: Dict[VehicleClass, float] = field(
        default_factory=lambda: {
            VehicleClass.BIKE: 25.0,
            VehicleClass.TRUCK: 30.0,
            VehicleClass.VAN: 35.0,
            VehicleClass.FUEL: 30.0,
        }
    )
    handling_overhead_min: int = 20

    # --- Degraded estimate (no coordinates) ---
    fallback_distance_km: float = 5.3
    fallback_eta_label: str = "30–45 minutes"

    # --- Bidding ---
    # Requests left in OPEN_FOR_BIDS longer than this are cancelled by the sweep.
    bidding_window_sec: int = 15 * 60

    # --- Request validation ---
    bike_max_weight_kg: Decimal = Decimal("20")
    phone_region: str = "NG"

    # --- Handoff codes ---
    pickup_code_prefix: str = "PU"
    dropoff_code_prefix: str = "DO"
    code_digits: int = 4

    def validate(self) -> None:
        """
        Basic sanity checks.
        """
        if self.service_fee < 0:
            raise ValueError("service_fee must be >= 0")

        missing = [vc.value for vc in VehicleClass if vc not in self.average_speed_kmh]
        if missing:
            raise ValueError(f"average_speed_kmh missing vehicle classes: {missing}")

        if any(speed <= 0 for speed in self.average_speed_kmh.values()):
            raise ValueError("average speeds must be > 0")

        if self.handling_overhead_min < 0:
            raise ValueError("handling_overhead_min must be >= 0")

        if self.fallback_distance_km < 0:
            raise ValueError("fallback_distance_km must be >= 0")

        if self.bidding_window_sec <= 0:
            raise ValueError("bidding_window_sec must be > 0")

        if self.code_digits < 4:
            raise ValueError("code_digits must be >= 4")

        if self.pickup_code_prefix == self.dropoff_code_prefix:
            raise ValueError("pickup and dropoff code prefixes must differ")


def default_policy() -> MarketplacePolicy:
    """
    Convenience factory for the default policy.
    """
    p = MarketplacePolicy()
    p.validate()
    return p
