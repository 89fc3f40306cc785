"""Event processor turning raw feed events into normalized events."""
import logging
from datetime import tzinfo
from typing import List, Optional

from feeds.platforms import PlatformAdapter
from processor.event_classifier import EventClassifier
from processor.models import (
    TIME_KIND_DATE,
    NormalizedEvent,
    RawCalendarEvent,
    SourceTeam,
)
from processor.timezone_normalizer import TimezoneNormalizer

logger = logging.getLogger(__name__)


class EventProcessor:
    """Normalizes and classifies raw events for one sync tuple."""

    MAX_TITLE_LENGTH = 200
    MAX_DESCRIPTION_LENGTH = 4000

    def __init__(
        self,
        normalizer: Optional[TimezoneNormalizer] = None,
        classifier: Optional[EventClassifier] = None
    ):
        self.normalizer = normalizer or TimezoneNormalizer()
        self.classifier = classifier or EventClassifier()

    def process_events(
        self,
        raw_events: List[RawCalendarEvent],
        source: SourceTeam,
        profile_id: str,
        adapter: PlatformAdapter,
        viewer_tz: Optional[tzinfo] = None,
        errors: Optional[List[str]] = None
    ) -> List[NormalizedEvent]:
        """
        Process raw events into normalized events.

        Events that fail normalization are logged and dropped; the rest of
        the feed is still processed.

        Args:
            raw_events: Events from the feed parser
            source: Source the feed belongs to
            profile_id: Profile the events are stored for
            adapter: Platform adapter of the source
            viewer_tz: Owning user's timezone, used for floating times
            errors: If given, receives one message per dropped event

        Returns:
            List of NormalizedEvent objects (geocoding not yet applied)
        """
        processed_events = []

        for event in raw_events:
            try:
                processed_events.append(
                    self._process_single_event(event, source, profile_id, adapter, viewer_tz)
                )
            except Exception as e:
                logger.warning(
                    f"Failed to process event '{event.summary}': {e}"
                )
                if errors is not None:
                    errors.append(f"Event {event.external_id}: {e}")
                continue

        logger.info(
            f"Processed {len(processed_events)} valid events out of "
            f"{len(raw_events)} total events"
        )
        return processed_events

    def _process_single_event(
        self,
        event: RawCalendarEvent,
        source: SourceTeam,
        profile_id: str,
        adapter: PlatformAdapter,
        viewer_tz: Optional[tzinfo]
    ) -> NormalizedEvent:
        start_time, end_time = self.normalizer.normalize(event, viewer_tz)

        classification = self.classifier.classify(
            event.summary,
            event.description,
            status=event.status,
            compose_title=adapter.compose_titles
        )
        if classification.is_cancelled:
            logger.info(f"Event {event.external_id}: Detected as CANCELLED")

        return NormalizedEvent(
            external_id=event.external_id,
            title=classification.title[:self.MAX_TITLE_LENGTH],
            description=classification.description[:self.MAX_DESCRIPTION_LENGTH],
            start_time=start_time,
            end_time=end_time,
            location=event.location,
            location_name=None,
            geocoding_attempted=False,
            sport=adapter.resolve_sport(source.sport),
            color=adapter.resolve_color(source.sport, source.sport_color),
            platform=adapter.name,
            platform_color=adapter.platform_color,
            profile_id=profile_id,
            source_team_id=source.source_id,
            visibility='public',
            is_cancelled=classification.is_cancelled,
            all_day=event.time_kind == TIME_KIND_DATE
        )
