"""Heuristics for picking a human-recognizable venue name."""
import logging
import re
from typing import Iterable, Optional, Sequence

logger = logging.getLogger(__name__)


POINT_OF_INTEREST_TYPES = frozenset({
    'establishment',
    'point_of_interest',
    'stadium',
    'park',
    'gym',
    'school',
    'primary_school',
    'secondary_school',
    'university',
    'sports_complex',
    'recreation_center',
    'community_center',
    'playground',
    'athletic_field',
})

GENERIC_PLACE_TYPES = frozenset({
    'street_address',
    'premise',
    'subpremise',
    'route',
    'neighborhood',
    'locality',
    'sublocality',
    'postal_code',
    'geocode',
    'political',
})

ADDRESS_PATTERNS = (
    re.compile(
        r'^\d+[\s-]+\w+[\s-]+(?:st|street|rd|road|ave|avenue|ln|lane|dr|drive|'
        r'blvd|boulevard|way|ct|court|pl|place)\b',
        re.IGNORECASE
    ),
    re.compile(r'^[news]\d+[news]\d+', re.IGNORECASE),
    re.compile(r'^\d+\s*[news]\s*\d+(?:st|nd|rd|th)?', re.IGNORECASE),
    re.compile(r'^(?:wi|us|state|county|highway|hwy|route|rt)[\s-]?\d+', re.IGNORECASE),
)

GENERIC_CITY_NAMES = (
    'grafton',
    'mequon',
    'milwaukee',
    'wisconsin',
    'port washington',
    'germantown',
    'brookfield',
    'brown deer',
)


class PlaceNameStrategy:
    """
    Decides which geocoder candidates are usable venue names.

    Subclass or pass different pattern sets to tune the heuristics without
    touching the geocoding client.
    """

    def __init__(
        self,
        poi_types: Iterable[str] = POINT_OF_INTEREST_TYPES,
        generic_types: Iterable[str] = GENERIC_PLACE_TYPES,
        address_patterns: Sequence[re.Pattern] = ADDRESS_PATTERNS,
        generic_city_names: Iterable[str] = GENERIC_CITY_NAMES
    ):
        self.poi_types = frozenset(poi_types)
        self.generic_types = frozenset(generic_types)
        self.address_patterns = tuple(address_patterns)
        self.generic_city_names = tuple(name.lower() for name in generic_city_names)

    def is_point_of_interest(self, types: Iterable[str]) -> bool:
        return any(t in self.poi_types for t in types or ())

    def is_generic(self, types: Iterable[str]) -> bool:
        types = list(types or ())
        return not types or all(t in self.generic_types for t in types)

    def is_valid_place_name(self, name: Optional[str], address: str) -> bool:
        """
        Reject names that merely restate the address or a bare city.

        Args:
            name: Candidate place name
            address: The address that was looked up

        Returns:
            True if the name is a usable venue label
        """
        if not isinstance(name, str) or not name.strip():
            return False

        lower_name = name.strip().lower()
        lower_address = (address or '').strip().lower()

        for pattern in self.address_patterns:
            if pattern.search(lower_name):
                logger.debug(f"Rejected '{name}' - matches address pattern")
                return False

        for city in self.generic_city_names:
            if lower_name == city and city in lower_address:
                logger.debug(f"Rejected '{name}' - generic city/location name")
                return False

        if lower_name == lower_address:
            logger.debug(f"Rejected '{name}' - same as address")
            return False

        return True

    def pick_component_name(self, components: Iterable[dict]) -> Optional[str]:
        """Return the first address component typed as a point of interest."""
        for component in components or ():
            if not isinstance(component, dict):
                continue
            if self.is_point_of_interest(self._types(component)):
                name = component.get('long_name')
                if isinstance(name, str) and name.strip():
                    return name.strip()
        return None

    def pick_nearby_candidate(self, candidates: Iterable[dict], address: str) -> Optional[dict]:
        """Return the first nearby place whose name is a real venue name."""
        for candidate in candidates or ():
            if not isinstance(candidate, dict):
                continue
            if self.is_generic(self._types(candidate)):
                continue
            if self.is_valid_place_name(candidate.get('name'), address):
                return candidate
        return None

    @staticmethod
    def _types(entry: dict) -> list:
        types = entry.get('types')
        if not isinstance(types, list):
            return []
        return [t for t in types if isinstance(t, str)]
