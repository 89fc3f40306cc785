"""Backfill of venue names for stored events that have none."""
import logging
from datetime import timedelta
from typing import Any, Dict, Optional

from exceptions import GeocodeError, StoreError
from geocoding.client import GeocodingClient
from storage.dynamodb_manager import utc_now
from storage.event_store import EventStore

logger = logging.getLogger(__name__)


class LocationEnricher:
    """
    Geocodes recently written events whose venue name is still missing.

    Syncs never retry a location whose lookup already failed; this batch
    job is the path that does.
    """

    DEFAULT_BATCH_SIZE = 50
    DEFAULT_RECENT_HOURS = 24

    def __init__(self, event_store: EventStore, geocoder: Optional[GeocodingClient]):
        self.event_store = event_store
        self.geocoder = geocoder

    def enrich(
        self,
        batch_size: int = DEFAULT_BATCH_SIZE,
        recent_hours: int = DEFAULT_RECENT_HOURS,
        dry_run: bool = False
    ) -> Dict[str, Any]:
        """
        Fill in venue names for one batch of events.

        Args:
            batch_size: Maximum number of events looked at
            recent_hours: Only events written within this many hours
            dry_run: Look names up without writing them

        Returns:
            {'success': True, 'message': ..., 'results': {...}, 'dryRun': bool}

        Raises:
            GeocodeError: If no geocoding API key is configured
            StoreError: If the candidate events cannot be read
        """
        if self.geocoder is None or not self.geocoder.enabled:
            raise GeocodeError('Google Maps API key not configured')

        cutoff = utc_now() - timedelta(hours=recent_hours)
        events = self.event_store.find_missing_location_names(cutoff, limit=batch_size)
        logger.info(f"Found {len(events)} events without a venue name since {cutoff.isoformat()}")

        results = {'processed': 0, 'enriched': 0, 'failed': 0, 'skipped': 0}

        for event in events:
            location = (event.location or '').strip()
            if not location or event.location_name:
                results['skipped'] += 1
                continue

            result = self.geocoder.lookup(location)
            results['processed'] += 1

            if not result.resolved:
                logger.warning(f"Event {event.event_id}: no venue name found for '{location}'")
                continue

            if dry_run:
                logger.info(f"Event {event.event_id}: would set venue name '{result.location_name}'")
                results['enriched'] += 1
                continue

            try:
                self.event_store.update_location_name(
                    event.event_id, result.location_name, result.formatted_address
                )
            except StoreError as e:
                logger.error(f"Event {event.event_id}: venue name update failed: {e}")
                results['failed'] += 1
                continue

            logger.info(f"Event {event.event_id}: '{location}' -> '{result.location_name}'")
            results['enriched'] += 1

        logger.info(
            f"Location enrichment finished: {results['processed']} processed, "
            f"{results['enriched']} enriched, {results['failed']} failed, "
            f"{results['skipped']} skipped"
        )

        return {
            'success': True,
            'message': f"Processed {results['processed']} events",
            'results': results,
            'dryRun': dry_run,
        }
