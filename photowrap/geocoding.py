import ssl
import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

from geopy.exc import GeopyError
from geopy.geocoders import Nominatim

from photowrap.config import (
    GEOCODER_MIN_INTERVAL,
    GEOCODER_TIMEOUT,
    GEOCODER_USER_AGENT,
    TOP_PLACES,
)
from photowrap.models import LabelConfidence, PlaceCluster
from photowrap.error_handling import GeocodingError, logger

# Most specific first
LABEL_PRECEDENCE = ("sub_locality", "district", "subregion", "city", "region", "country")

# Nominatim address keys feeding each Address field, in order of preference
NOMINATIM_FIELDS = {
    "sub_locality": ("neighbourhood", "suburb", "quarter"),
    "district": ("city_district", "district", "borough"),
    "subregion": ("county",),
    "city": ("city", "town", "village", "municipality"),
    "region": ("state",),
    "country": ("country",),
}

@dataclass(frozen=True)
class Address:
    sub_locality: Optional[str] = None
    district: Optional[str] = None
    subregion: Optional[str] = None
    city: Optional[str] = None
    region: Optional[str] = None
    country: Optional[str] = None

class Geocoder(Protocol):
    def reverse_geocode(self, latitude: float, longitude: float) -> List[Address]:
        ...

def resolve_label(addresses: List[Address]) -> Optional[str]:
    """Most specific place name found in the address candidates."""
    for address in addresses:
        for name in LABEL_PRECEDENCE:
            value = getattr(address, name)
            if value and value.strip():
                return value.strip()
    return None

def address_from_nominatim(raw_address: Dict[str, Any]) -> Address:
    values = {}
    for name, keys in NOMINATIM_FIELDS.items():
        values[name] = next((raw_address[k] for k in keys if raw_address.get(k)), None)
    return Address(**values)

class NominatimGeocoder:
    """Reverse geocoding through OpenStreetMap Nominatim with request spacing."""

    def __init__(self, user_agent: str = GEOCODER_USER_AGENT, timeout: float = GEOCODER_TIMEOUT,
                 min_interval: float = GEOCODER_MIN_INTERVAL, geocoder=None):
        self.geocoder = geocoder or Nominatim(
            user_agent=user_agent,
            timeout=timeout,
            ssl_context=ssl.create_default_context(),
        )
        self.min_interval = min_interval
        self.last_api_call = 0.0

    def enforce_rate_limit(self):
        """Nominatim's usage policy allows one request per second."""
        time_since_last = time.time() - self.last_api_call

        if time_since_last < self.min_interval:
            sleep_time = self.min_interval - time_since_last
            logger.debug(f"Rate limiting: sleeping {sleep_time:.2f} seconds")
            time.sleep(sleep_time)

        self.last_api_call = time.time()

    def reverse_geocode(self, latitude: float, longitude: float) -> List[Address]:
        self.enforce_rate_limit()

        try:
            location = self.geocoder.reverse((latitude, longitude), exactly_one=True, language='en')
        except GeopyError as e:
            raise GeocodingError(f"Reverse geocoding failed for {latitude}, {longitude}: {e}") from e

        if not location or not location.raw.get('address'):
            return []
        return [address_from_nominatim(location.raw['address'])]

def enrich_labels(places: List[PlaceCluster], geocoder: Geocoder, db) -> int:
    """Name the top places by reverse geocoding their centroids.

    A failed or empty lookup leaves the place with its placeholder label.
    Returns the number of places that were labeled.
    """
    labeled = 0

    for place in places[:TOP_PLACES]:
        if place.label_confidence != LabelConfidence.LOW:
            continue
        if place.centroid_lat is None or place.centroid_lon is None:
            continue

        try:
            addresses = geocoder.reverse_geocode(place.centroid_lat, place.centroid_lon)
        except Exception as e:
            logger.warning(f"Geocoding failed for place {place.id}: {e}")
            continue

        label = resolve_label(addresses)
        if label is None:
            logger.info(f"No usable address fields for place {place.id}")
            continue

        place.label = label
        place.label_confidence = LabelConfidence.MEDIUM
        db.save_place_cluster(place)
        labeled += 1

    logger.info(f"Labeled {labeled} of {min(len(places), TOP_PLACES)} places")
    return labeled
