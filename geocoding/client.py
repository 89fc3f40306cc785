"""Geocoding client resolving free-text locations to venue names."""
import logging
import threading
import time
from typing import Any, Dict, List, Optional, Tuple

import requests

from exceptions import GeocodeError, StoreError
from geocoding.place_names import PlaceNameStrategy
from processor.models import GeocodeResult

logger = logging.getLogger(__name__)


def normalize_address(address: str) -> str:
    """Normalize an address string for cache lookups (trim, lowercase)."""
    return ' '.join((address or '').split()).lower()


def mask_api_key(key: Optional[str]) -> str:
    if not key or len(key) < 8:
        return '[INVALID_KEY]'
    return f"{key[:4]}...{key[-4:]}"


class GeocodingClient:
    """
    Cache-first client for the Google Geocoding and Places APIs.

    Lookups consult the geocode cache before any outbound call. Only
    resolved names are cached, so failures are retried on later syncs.
    """

    GEOCODE_URL = 'https://maps.googleapis.com/maps/api/geocode/json'
    NEARBY_SEARCH_URL = 'https://maps.googleapis.com/maps/api/place/nearbysearch/json'

    def __init__(
        self,
        api_key: Optional[str],
        cache=None,
        strategy: Optional[PlaceNameStrategy] = None,
        timeout: int = 10,
        nearby_radius_meters: int = 50,
        proximity_radius_meters: int = 50,
        max_concurrent_requests: int = 4,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize the geocoding client.

        Args:
            api_key: Google Maps API key; without one no outbound calls are made
            cache: GeocodeCacheStore (or compatible) for cached results
            strategy: Venue-name heuristics
            timeout: HTTP timeout in seconds
            nearby_radius_meters: Radius of the nearby-places fallback search
            proximity_radius_meters: Distance within which a cached venue is reused
            max_concurrent_requests: Upper bound on in-flight outbound calls
            session: Optional requests session
        """
        self.api_key = api_key
        self.cache = cache
        self.strategy = strategy or PlaceNameStrategy()
        self.timeout = timeout
        self.nearby_radius_meters = nearby_radius_meters
        self.proximity_radius_meters = proximity_radius_meters
        self.session = session or requests.Session()
        self._request_slots = threading.BoundedSemaphore(max(1, max_concurrent_requests))

    @property
    def enabled(self) -> bool:
        return bool(self.api_key and self.api_key.strip())

    def lookup(self, address: str) -> GeocodeResult:
        """
        Resolve an address to a venue name.

        Args:
            address: Free-text location from a feed

        Returns:
            GeocodeResult; location_name and formatted_address are None if
            the address could not be resolved
        """
        if not address or not address.strip():
            return GeocodeResult()

        cache_key = normalize_address(address)

        cached = self._read_cache(cache_key)
        if cached is not None:
            logger.info(
                f"Geocode cache hit for '{cache_key}': '{cached.location_name}'",
                extra={'api_type': 'geocoding', 'cache_hit': True}
            )
            return cached

        if not self.enabled:
            logger.warning("Geocoding API key missing, skipping lookup")
            return GeocodeResult()

        started = time.time()
        try:
            with self._request_slots:
                result = self._resolve(address)
        except GeocodeError as e:
            logger.warning(f"Geocoding failed for '{address}': {e}")
            return GeocodeResult()

        logger.info(
            f"Geocoded '{address}' -> '{result.location_name}' "
            f"({int((time.time() - started) * 1000)}ms)"
        )

        if result.resolved:
            self._write_cache(cache_key, result)
            return result

        return GeocodeResult()

    def _resolve(self, address: str) -> GeocodeResult:
        data = self._get_json(self.GEOCODE_URL, {'address': address}, 'geocoding')

        status = data.get('status')
        if status == 'ZERO_RESULTS':
            return GeocodeResult()
        if status != 'OK':
            message = data.get('error_message') or ''
            raise GeocodeError(f"Geocoding API returned status {status} {message}".strip())

        results = self._dicts(data.get('results'))
        if not results:
            return GeocodeResult()

        top = results[0]
        formatted_address = self._string(top.get('formatted_address'))
        latitude, longitude = self._coordinates(top)

        name = self.strategy.pick_component_name(self._dicts(top.get('address_components')))
        if name and self.strategy.is_valid_place_name(name, address):
            return GeocodeResult(name, formatted_address, latitude, longitude)

        if latitude is None or longitude is None:
            return GeocodeResult()

        nearby = self._read_nearby_cache(latitude, longitude)
        if nearby is not None:
            logger.info(
                f"Proximity cache hit for '{address}': '{nearby.location_name}'",
                extra={'api_type': 'geocoding', 'cache_hit': True}
            )
            return nearby

        candidate = self._find_nearby_place(latitude, longitude, address)
        if candidate is None:
            return GeocodeResult()

        place_latitude, place_longitude = self._coordinates(candidate)
        return GeocodeResult(
            location_name=candidate['name'].strip(),
            formatted_address=formatted_address or self._string(candidate.get('vicinity')),
            latitude=latitude if place_latitude is None else place_latitude,
            longitude=longitude if place_longitude is None else place_longitude
        )

    def _find_nearby_place(self, latitude: float, longitude: float, address: str) -> Optional[dict]:
        data = self._get_json(
            self.NEARBY_SEARCH_URL,
            {
                'location': f"{latitude},{longitude}",
                'radius': self.nearby_radius_meters,
            },
            'places'
        )

        status = data.get('status')
        if status == 'ZERO_RESULTS':
            return None
        if status != 'OK':
            raise GeocodeError(f"Places nearby search returned status {status}")

        return self.strategy.pick_nearby_candidate(self._dicts(data.get('results')), address)

    @staticmethod
    def _dicts(value) -> List[dict]:
        """Keep the object entries of a JSON array; anything else is dropped."""
        if not isinstance(value, list):
            return []
        return [entry for entry in value if isinstance(entry, dict)]

    @staticmethod
    def _string(value) -> Optional[str]:
        return value if isinstance(value, str) and value.strip() else None

    @staticmethod
    def _coordinates(entry: dict) -> Tuple[Optional[float], Optional[float]]:
        geometry = entry.get('geometry')
        location = geometry.get('location') if isinstance(geometry, dict) else None
        if not isinstance(location, dict):
            return None, None

        coordinates = []
        for key in ('lat', 'lng'):
            value = location.get(key)
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                return None, None
            coordinates.append(float(value))
        return coordinates[0], coordinates[1]

    def _get_json(self, url: str, params: Dict[str, Any], api_type: str) -> Dict[str, Any]:
        query = dict(params, key=self.api_key)
        try:
            response = self.session.get(url, params=query, timeout=self.timeout)
        except requests.RequestException as e:
            raise GeocodeError(f"{api_type} request failed: {e}") from e

        if not response.ok:
            raise GeocodeError(f"{api_type} request failed: HTTP {response.status_code}")

        try:
            data = response.json()
        except ValueError as e:
            raise GeocodeError(f"{api_type} response is not JSON") from e

        if not isinstance(data, dict):
            raise GeocodeError(f"{api_type} response has unexpected shape")

        logger.info(
            f"Google API call: {api_type} status={data.get('status')}",
            extra={
                'api_type': api_type,
                'response_status': data.get('status'),
                'cache_hit': False,
                'api_key': mask_api_key(self.api_key),
            }
        )
        return data

    def _read_cache(self, cache_key: str) -> Optional[GeocodeResult]:
        if self.cache is None:
            return None
        try:
            return self.cache.get(cache_key)
        except StoreError as e:
            logger.error(f"Geocode cache lookup error: {e}")
            return None

    def _write_cache(self, cache_key: str, result: GeocodeResult) -> None:
        if self.cache is None:
            return
        try:
            self.cache.put(cache_key, result)
        except StoreError as e:
            logger.error(f"Geocode cache write error: {e}")

    def _read_nearby_cache(self, latitude: float, longitude: float) -> Optional[GeocodeResult]:
        if self.cache is None:
            return None
        try:
            return self.cache.find_nearby(latitude, longitude, self.proximity_radius_meters)
        except StoreError as e:
            logger.error(f"Proximity cache lookup error: {e}")
            return None
