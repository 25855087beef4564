#Purpose: The geocoding "adapter/client".
#Sole responsibility: turn free-text addresses into candidate places via the
#Google Geocoding HTTP API and return normalized outputs.
#Encapsulates provider-specific details:
#URL construction and API key
#timeouts / error handling
#parsing response JSON into PlaceCandidate
#It never blocks request creation: callers catch ExternalServiceError and
#create the request without coordinates.


from dotenv import load_dotenv
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple
import requests

from orders.errors import ExternalServiceError

# Read provider settings from environment
# Example in .env:
# GOOGLE_MAPS_API_KEY=...
# GEOCODING_BASE_URL=https://maps.googleapis.com/maps/api/geocode/json
load_dotenv()
DEFAULT_BASE_URL = "https://maps.googleapis.com/maps/api/geocode/json"

# Internal coordinate type: (lat, lng)
LatLng = Tuple[float, float]

# provider statuses that mean "the request was fine, there is just nothing to return"
EMPTY_STATUSES = {"ZERO_RESULTS"}


@dataclass(frozen=True)
class PlaceCandidate:
    formatted_address: str
    coordinates: Optional[LatLng] = None
    place_id: Optional[str] = None


class GeocodingClient:
    """
    Geocoding Adapter / Client

    Sole responsibility:
    - Talk to the geocoding provider via HTTP
    - Return zero or more PlaceCandidates for an address
    - Raise ExternalServiceError for transport failures and provider errors
    """
    def __init__(self, api_key: Optional[str] = None, base_url: Optional[str] = None,
                 timeout: int = 5, region: str = "ng"):
        self.api_key = api_key or os.getenv("GOOGLE_MAPS_API_KEY")
        self.base_url = base_url or os.getenv("GEOCODING_BASE_URL", DEFAULT_BASE_URL)
        self.timeout = timeout #seconds to wait for the provider before giving up
        self.region = region #biases results towards this country code

        if not self.api_key:
            raise ValueError("Geocoding API key not set. Please set GOOGLE_MAPS_API_KEY in the .env file.")

    def geocode(self, address: str) -> List[PlaceCandidate]:
        """
        calls the geocode endpoint for a free-text address.

        Returns:
            list of PlaceCandidate, possibly empty
        """
        if not address or not address.strip():
            return []

        try:
            response = requests.get(
                self.base_url,
                params={
                    "address": address.strip(),
                    "region": self.region,
                    "key": self.api_key,
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
            data = response.json()
        except requests.RequestException as e:
            raise ExternalServiceError(f"Geocoding request failed: {e}") from e
        except ValueError as e:
            raise ExternalServiceError(f"Geocoding returned invalid JSON: {e}") from e

        status = data.get("status")
        if status in EMPTY_STATUSES:
            return []
        if status != "OK":
            raise ExternalServiceError(
                f"Geocoding error: {status} {data.get('error_message', '')}".strip()
            )

        try:
            return [self._parse_result(result) for result in data.get("results", [])]
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise ExternalServiceError(f"Geocoding returned a malformed result: {e}") from e

    def first_match(self, address: str) -> Optional[PlaceCandidate]:
        candidates = self.geocode(address)
        return candidates[0] if candidates else None

    #----------------
    # Internal helpers
    #----------------
    @staticmethod
    def _parse_result(result: Dict[str, Any]) -> PlaceCandidate:
        location = (result.get("geometry") or {}).get("location") or {}
        coordinates = None
        if "lat" in location and "lng" in location:
            coordinates = (float(location["lat"]), float(location["lng"]))
        return PlaceCandidate(
            formatted_address=result.get("formatted_address", ""),
            coordinates=coordinates,
            place_id=result.get("place_id"),
        )
