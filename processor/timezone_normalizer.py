"""Resolution of feed date-times to absolute UTC instants."""
import logging
from datetime import date, datetime, time, timedelta, timezone, tzinfo
from typing import Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from exceptions import NormalizationError
from processor.models import (
    TIME_KIND_DATE,
    TIME_KIND_FLOATING,
    TIME_KIND_NAMED,
    TIME_KIND_UTC,
    RawCalendarEvent,
)

logger = logging.getLogger(__name__)


def resolve_zone(name: Optional[str]) -> Optional[tzinfo]:
    """
    Look up an IANA zone by name.

    Returns:
        tzinfo, or None if the name is empty or unknown
    """
    if not name or not str(name).strip():
        return None
    try:
        return ZoneInfo(str(name).strip())
    except (ZoneInfoNotFoundError, ValueError):
        return None


class TimezoneNormalizer:
    """Converts raw event start/end values to UTC."""

    DEFAULT_DURATION = timedelta(hours=1)
    ALL_DAY_DURATION = timedelta(days=1)
    # All-day events are anchored at noon UTC so every viewer zone sees the same date
    ALL_DAY_ANCHOR = time(12, 0)

    def normalize(
        self,
        event: RawCalendarEvent,
        viewer_tz: Optional[tzinfo] = None
    ) -> Tuple[datetime, datetime]:
        """
        Resolve an event's start and end to UTC.

        Args:
            event: Raw event from the feed parser
            viewer_tz: Timezone of the owning user, used for floating times

        Returns:
            Tuple of (start_time, end_time), both timezone-aware UTC, with
            end_time >= start_time

        Raises:
            NormalizationError: If the start cannot be resolved
        """
        viewer_tz = viewer_tz or timezone.utc

        if event.time_kind == TIME_KIND_DATE:
            return self._normalize_all_day(event)

        start = self._to_utc(event.start, event.time_kind, event.tzid, viewer_tz)
        if start is None:
            raise NormalizationError(
                f"Invalid start date-time for event: {event.summary}"
            )

        end = None
        if event.end is not None:
            end_kind = self._kind_for_end(event)
            end_value = event.end
            if (
                end_kind == TIME_KIND_NAMED
                and isinstance(end_value, datetime)
                and end_value.tzinfo is None
                and isinstance(event.start, datetime)
            ):
                # Floating end of a zoned start shares the start's zone
                end_value = end_value.replace(tzinfo=event.start.tzinfo)
            end = self._to_utc(
                end_value, end_kind, event.end_tzid or event.tzid, viewer_tz
            )

        if end is None:
            logger.debug(
                f"Missing or invalid end for event '{event.summary}', "
                f"defaulting to 1 hour after start"
            )
            end = start + self.DEFAULT_DURATION
        elif end < start:
            logger.warning(
                f"End precedes start for event '{event.summary}', "
                f"defaulting to 1 hour after start"
            )
            end = start + self.DEFAULT_DURATION

        return start, end

    def _normalize_all_day(self, event: RawCalendarEvent) -> Tuple[datetime, datetime]:
        start_day = self._as_date(event.start)
        if start_day is None:
            raise NormalizationError(
                f"Invalid start date for all-day event: {event.summary}"
            )

        start = datetime.combine(start_day, self.ALL_DAY_ANCHOR, tzinfo=timezone.utc)

        end_day = self._as_date(event.end) if event.end is not None else None
        if end_day is None:
            end = start + self.ALL_DAY_DURATION
        else:
            end = datetime.combine(end_day, self.ALL_DAY_ANCHOR, tzinfo=timezone.utc)
            if end < start:
                end = start + self.ALL_DAY_DURATION

        return start, end

    def _kind_for_end(self, event: RawCalendarEvent) -> str:
        """A floating end is read the way its start is."""
        if not isinstance(event.end, datetime):
            return TIME_KIND_DATE
        if event.end_tzid or event.time_kind == TIME_KIND_NAMED:
            return TIME_KIND_NAMED
        if event.end.tzinfo is not None or event.time_kind == TIME_KIND_UTC:
            return TIME_KIND_UTC
        return TIME_KIND_FLOATING

    def _to_utc(
        self,
        value,
        kind: str,
        tzid: Optional[str],
        viewer_tz: tzinfo
    ) -> Optional[datetime]:
        if not isinstance(value, datetime):
            if isinstance(value, date):
                # Date-only end paired with a timed start
                return datetime.combine(value, time(0, 0), tzinfo=viewer_tz).astimezone(
                    timezone.utc
                )
            return None

        wall_clock = value.replace(tzinfo=None)

        if kind == TIME_KIND_UTC:
            if value.tzinfo is not None:
                return value.astimezone(timezone.utc)
            return wall_clock.replace(tzinfo=timezone.utc)

        if kind == TIME_KIND_NAMED:
            zone = resolve_zone(tzid)
            if zone is not None:
                return wall_clock.replace(tzinfo=zone).astimezone(timezone.utc)
            if value.tzinfo is not None:
                # Zone defined by the feed's own VTIMEZONE block
                return value.astimezone(timezone.utc)
            logger.warning(
                f"Unknown timezone '{tzid}', interpreting in viewer timezone"
            )
            return wall_clock.replace(tzinfo=viewer_tz).astimezone(timezone.utc)

        return wall_clock.replace(tzinfo=viewer_tz).astimezone(timezone.utc)

    @staticmethod
    def _as_date(value) -> Optional[date]:
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        return None
