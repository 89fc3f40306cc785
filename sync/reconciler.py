"""Reconciliation of one sync tuple's stored events against a fresh feed."""
import logging
import uuid
from datetime import timezone, tzinfo
from typing import Dict, List, Optional

from exceptions import NormalizationError, StoreError
from feeds.platforms import PlatformAdapter
from geocoding.client import GeocodingClient
from processor.event_processor import EventProcessor
from processor.models import (
    GeocodingStats,
    NormalizedEvent,
    ParsedFeed,
    SourceTeam,
    SyncResult,
)
from processor.timezone_normalizer import resolve_zone
from storage.event_store import EventStore
from storage.user_directory import UserDirectory

logger = logging.getLogger(__name__)


class ReconciliationEngine:
    """
    Makes the stored events of a (platform, team, profile) tuple mirror a feed.

    Every fresh event is upserted, reusing the row id of a stored event with
    the same external id; stored events missing from the feed are deleted.
    """

    def __init__(
        self,
        event_store: EventStore,
        geocoder: Optional[GeocodingClient] = None,
        user_directory: Optional[UserDirectory] = None,
        processor: Optional[EventProcessor] = None
    ):
        self.event_store = event_store
        self.geocoder = geocoder
        self.user_directory = user_directory
        self.processor = processor or EventProcessor()

    def reconcile(
        self,
        source: SourceTeam,
        profile_id: str,
        parsed_feed: ParsedFeed,
        adapter: PlatformAdapter
    ) -> SyncResult:
        """
        Synchronize one profile's copy of a source's events.

        No write happens until every event has been normalized, classified
        and geocoded. Upserts are written before deletes.

        Args:
            source: Source the feed belongs to
            profile_id: Profile the events are stored for
            parsed_feed: Feed parsed once for the source
            adapter: Platform adapter of the source

        Returns:
            SyncResult with counts of the applied changes

        Raises:
            NormalizationError: If the feed had events but none were usable
            StoreError: If reading or writing the event store fails
        """
        viewer_tz = self._viewer_timezone(profile_id)

        errors: List[str] = []
        fresh_events = self.processor.process_events(
            parsed_feed.events, source, profile_id, adapter, viewer_tz, errors=errors
        )
        if parsed_feed.events and not fresh_events:
            raise NormalizationError(
                f"None of the {len(parsed_feed.events)} feed events could be processed"
            )

        fresh_events = self._deduplicate(fresh_events)

        existing_events = self.event_store.get_tuple_events(
            adapter.name, source.source_id, profile_id
        )

        stats = GeocodingStats()
        for event in fresh_events:
            self._apply_geocoding(event, existing_events.get(event.external_id), stats)

        events_to_add = []
        events_to_update = []
        unchanged = 0
        for event in fresh_events:
            existing = existing_events.get(event.external_id)
            if existing is None:
                event.event_id = str(uuid.uuid4())
                events_to_add.append(event)
            else:
                event.event_id = existing.event_id
                if self._events_differ(event, existing):
                    events_to_update.append(event)
                else:
                    unchanged += 1

        fresh_ids = {event.external_id for event in fresh_events}
        event_ids_to_delete = [
            existing.event_id
            for external_id, existing in existing_events.items()
            if external_id not in fresh_ids
        ]

        logger.info(
            f"Sync plan for {source.source_id}/{profile_id}: "
            f"{len(events_to_add)} to add, {len(events_to_update)} to update, "
            f"{unchanged} unchanged, {len(event_ids_to_delete)} to delete, "
            f"{len(errors)} unusable"
        )

        self.event_store.batch_upsert(events_to_add + events_to_update)
        deleted_count = self.event_store.batch_delete(event_ids_to_delete)

        logger.info(
            f"Geocoding for {source.source_id}/{profile_id}: "
            f"{stats.needs_geocode} needed, {stats.geocoded} geocoded, "
            f"{stats.preserved} preserved, {stats.failed} failed, "
            f"{stats.skipped_already_attempted} skipped, {stats.no_api_key} without API key"
        )

        return SyncResult(
            added=len(events_to_add),
            updated=len(events_to_update),
            deleted=deleted_count,
            errors=errors,
            unchanged=unchanged,
            event_count=len(fresh_events),
            team_name=parsed_feed.calendar_name,
            geocoding=stats
        )

    def _viewer_timezone(self, profile_id: str) -> tzinfo:
        if self.user_directory is None:
            return timezone.utc

        try:
            name = self.user_directory.get_profile_timezone(profile_id)
        except StoreError as e:
            logger.warning(f"Could not load timezone for profile {profile_id}, using UTC: {e}")
            return timezone.utc

        zone = resolve_zone(name)
        if zone is None:
            if name:
                logger.warning(f"Invalid timezone '{name}' for profile {profile_id}, using UTC")
            return timezone.utc
        return zone

    @staticmethod
    def _deduplicate(events: List[NormalizedEvent]) -> List[NormalizedEvent]:
        """Collapse events sharing an external id; the first occurrence wins."""
        unique: Dict[str, NormalizedEvent] = {}
        for event in events:
            if event.external_id in unique:
                logger.debug(f"Dropping duplicate feed event {event.external_id}")
                continue
            unique[event.external_id] = event
        return list(unique.values())

    def _apply_geocoding(
        self,
        event: NormalizedEvent,
        existing: Optional[NormalizedEvent],
        stats: GeocodingStats
    ) -> None:
        """
        Fill in the venue name of an event.

        A stored name is reused while the location text is unchanged. An
        unchanged location whose earlier lookup failed is not retried.
        """
        location = (event.location or '').strip()
        if not location:
            event.location_name = None
            event.formatted_address = None
            event.geocoding_attempted = False
            return

        if existing is not None and (existing.location or '').strip() == location:
            if existing.location_name:
                event.location_name = existing.location_name
                event.formatted_address = existing.formatted_address
                event.geocoding_attempted = True
                stats.preserved += 1
                return
            if existing.geocoding_attempted:
                event.location_name = None
                event.formatted_address = existing.formatted_address
                event.geocoding_attempted = True
                stats.skipped_already_attempted += 1
                return

        stats.needs_geocode += 1

        if self.geocoder is None:
            event.geocoding_attempted = False
            stats.no_api_key += 1
            return

        result = self.geocoder.lookup(location)
        if result.resolved:
            event.location_name = result.location_name
            event.formatted_address = result.formatted_address
            event.geocoding_attempted = True
            stats.geocoded += 1
        elif not self.geocoder.enabled:
            event.location_name = None
            event.geocoding_attempted = False
            stats.no_api_key += 1
        else:
            event.location_name = None
            event.formatted_address = None
            event.geocoding_attempted = True
            stats.failed += 1

    @staticmethod
    def _events_differ(event1: NormalizedEvent, event2: NormalizedEvent) -> bool:
        """
        Compare a fresh event with its stored row.

        Compares all stored fields except ids and the updated_at timestamp.
        """
        return (
            event1.title != event2.title or
            event1.description != event2.description or
            event1.start_time != event2.start_time or
            event1.end_time != event2.end_time or
            event1.location != event2.location or
            event1.location_name != event2.location_name or
            event1.formatted_address != event2.formatted_address or
            event1.geocoding_attempted != event2.geocoding_attempted or
            event1.sport != event2.sport or
            event1.color != event2.color or
            event1.platform_color != event2.platform_color or
            event1.visibility != event2.visibility or
            event1.is_cancelled != event2.is_cancelled or
            event1.all_day != event2.all_day
        )
