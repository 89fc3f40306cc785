"""DynamoDB-backed geocode cache."""
import logging
import math
from typing import Optional

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

from exceptions import StoreError
from processor.models import GeocodeResult
from storage.dynamodb_manager import (
    DynamoDBManager,
    format_timestamp,
    from_decimal,
    to_decimal,
    utc_now,
)

logger = logging.getLogger(__name__)

EARTH_RADIUS_METERS = 6371000
METERS_PER_DEGREE = 111320


def distance_meters(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle (haversine) distance between two points."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lng2 - lng1)
    a = (
        math.sin(d_phi / 2) ** 2
        + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    )
    return 2 * EARTH_RADIUS_METERS * math.asin(math.sqrt(a))


class GeocodeCacheStore(DynamoDBManager):
    """
    Address -> venue name cache, keyed by normalized address.

    Entries are only written for resolved names and never expire.
    """

    def get(self, address_key: str) -> Optional[GeocodeResult]:
        """
        Look up a cached result.

        Returns:
            GeocodeResult, or None on a miss
        """
        item = self.get_item({'address': address_key})
        if not item or not item.get('location_name'):
            return None

        return self._item_to_result(item)

    def find_nearby(
        self,
        latitude: float,
        longitude: float,
        max_distance_meters: float = 50
    ) -> Optional[GeocodeResult]:
        """
        Find the closest cached venue within a distance of a point.

        Candidates are scanned inside a bounding box around the point and
        ranked by great-circle distance.

        Returns:
            GeocodeResult of the nearest venue, or None if none is in range

        Raises:
            StoreError: If the scan fails
        """
        lat_delta = max_distance_meters / METERS_PER_DEGREE
        lng_delta = max_distance_meters / (
            METERS_PER_DEGREE * max(math.cos(math.radians(latitude)), 0.01)
        )

        items = self._scan_all(
            FilterExpression=(
                Attr('location_name').exists()
                & Attr('latitude').between(
                    to_decimal(round(latitude - lat_delta, 7)),
                    to_decimal(round(latitude + lat_delta, 7))
                )
                & Attr('longitude').between(
                    to_decimal(round(longitude - lng_delta, 7)),
                    to_decimal(round(longitude + lng_delta, 7))
                )
            )
        )

        nearest = None
        nearest_distance = None
        for item in items:
            distance = distance_meters(
                latitude, longitude,
                from_decimal(item['latitude']), from_decimal(item['longitude'])
            )
            if distance <= max_distance_meters and (
                nearest_distance is None or distance < nearest_distance
            ):
                nearest, nearest_distance = item, distance

        if nearest is None:
            return None

        logger.debug(
            f"Nearby cached venue '{nearest['location_name']}' at {nearest_distance:.1f}m"
        )
        return self._item_to_result(nearest)

    def put(self, address_key: str, result: GeocodeResult) -> None:
        """
        Store a resolved result.

        Raises:
            StoreError: If the write fails
        """
        if not result.resolved:
            return

        item = self._drop_empty(
            {
                'address': address_key,
                'location_name': result.location_name,
                'formatted_address': result.formatted_address,
                'latitude': to_decimal(result.latitude),
                'longitude': to_decimal(result.longitude),
                'created_at': format_timestamp(utc_now()),
            },
            ('formatted_address', 'latitude', 'longitude')
        )

        try:
            self.table.put_item(Item=item)
        except ClientError as e:
            logger.error(f"Error caching geocode result for '{address_key}': {e}")
            raise StoreError(f"Failed to write {self.table_name}: {e}") from e

        logger.debug(f"Cached geocode result for '{address_key}'")

    @staticmethod
    def _item_to_result(item) -> GeocodeResult:
        return GeocodeResult(
            location_name=item['location_name'],
            formatted_address=item.get('formatted_address'),
            latitude=from_decimal(item.get('latitude')),
            longitude=from_decimal(item.get('longitude'))
        )
