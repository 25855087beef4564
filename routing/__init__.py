#Marks routing as a package.
#Re-exports the GeoEstimator pieces (distance, eta, estimate_trip) and the
#geocoding client so other modules import from routing without knowing internal file names.
#No business logic.

from .geo import distance, validate_coordinates
from .eta_service import TripEstimate, eta, estimate_trip
from .geocoding_client import GeocodingClient, PlaceCandidate

__all__ = [
    "distance",
    "validate_coordinates",
    "eta",
    "estimate_trip",
    "TripEstimate",
    "GeocodingClient",
    "PlaceCandidate",
]
