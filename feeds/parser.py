"""Parser turning iCalendar feed bytes into raw calendar events."""
import hashlib
import logging
import re
from datetime import date, datetime
from typing import List, Optional, Union
from urllib.parse import unquote, urlparse

from icalendar import Calendar

from exceptions import ParseError
from feeds.platforms import PlatformAdapter
from processor.models import (
    TIME_KIND_DATE,
    TIME_KIND_FLOATING,
    TIME_KIND_NAMED,
    TIME_KIND_UTC,
    ParsedFeed,
    RawCalendarEvent,
)

logger = logging.getLogger(__name__)


class FeedParser:
    """Parser for calendar feeds published by team scheduling platforms."""

    CALENDAR_NAME_PROPERTIES = ('X-WR-CALNAME', 'NAME')
    TEAM_VS_PATTERN = re.compile(r'^\s*(.+?)\s+(?:vs\.?|versus)\s+\S', re.IGNORECASE)
    VENUE_PATTERN = re.compile(r'^\s*(.+?)\s+(?:field|court|gym)\b', re.IGNORECASE)
    GENERIC_NAME_WORDS = re.compile(r'\b(?:calendar|schedule)s?\b', re.IGNORECASE)

    def parse(
        self,
        data: Union[bytes, str],
        feed_url: Optional[str] = None,
        adapter: Optional[PlatformAdapter] = None
    ) -> ParsedFeed:
        """
        Parse a calendar feed document.

        Args:
            data: Raw feed content
            feed_url: URL the feed was fetched from (used for the name fallback)
            adapter: Platform adapter supplying the fallback name prefix

        Returns:
            ParsedFeed with the usable events and a display name

        Raises:
            ParseError: If the document is not an iCalendar feed
        """
        calendar = self._load_calendar(data)

        events = []
        skipped = 0
        for component in calendar.walk('VEVENT'):
            try:
                event = self._parse_event_component(component)
            except Exception as e:
                logger.warning(f"Failed to parse calendar event: {e}")
                event = None

            if event:
                events.append(event)
            else:
                skipped += 1

        prefix = adapter.display_name_prefix if adapter else 'Team'
        calendar_name = self.resolve_calendar_name(calendar, events, feed_url, prefix)

        logger.info(
            f"Parsed {len(events)} events from calendar '{calendar_name}' "
            f"({skipped} skipped)"
        )
        return ParsedFeed(events=events, calendar_name=calendar_name)

    def _load_calendar(self, data: Union[bytes, str]) -> Calendar:
        if isinstance(data, bytes):
            try:
                text = data.decode('utf-8-sig')
            except UnicodeDecodeError:
                text = data.decode('latin-1')
        else:
            text = data

        if 'BEGIN:VCALENDAR' not in text.upper():
            raise ParseError('Invalid calendar format - not a valid ICS file')

        try:
            return Calendar.from_ical(text)
        except (ValueError, IndexError, KeyError) as e:
            raise ParseError(f"Failed to parse calendar data: {e}") from e

    def _parse_event_component(self, component) -> Optional[RawCalendarEvent]:
        """
        Extract one raw event from a VEVENT component.

        Returns:
            RawCalendarEvent, or None if the start time is missing or invalid
        """
        summary = self._text(component.get('SUMMARY'))
        dtstart = component.get('DTSTART')
        start = self._decoded(dtstart)

        if not isinstance(start, date):
            logger.warning(f"Skipping event with invalid start date: '{summary}'")
            return None

        tzid = self._tzid(dtstart)
        time_kind = self.detect_time_kind(start, tzid)

        # A malformed end or duration leaves the end unset for the normalizer's default
        end = None
        end_tzid = None
        dtend = component.get('DTEND')
        end_value = self._decoded(dtend)
        if isinstance(end_value, date):
            end = end_value
            end_tzid = self._tzid(dtend)
        else:
            duration = self._decoded(component.get('DURATION'))
            if duration is not None:
                try:
                    end = start + duration
                    end_tzid = tzid
                except TypeError:
                    end = None

        uid = self._text(component.get('UID')).strip()
        external_id = uid or self.generate_external_id(summary, start)

        status = self._text(component.get('STATUS')).strip().upper() or None

        return RawCalendarEvent(
            external_id=external_id,
            summary=summary,
            description=self._text(component.get('DESCRIPTION')),
            location=self._text(component.get('LOCATION')).strip(),
            start=start,
            end=end,
            time_kind=time_kind,
            tzid=tzid,
            end_tzid=end_tzid,
            status=status
        )

    @staticmethod
    def detect_time_kind(value: date, tzid: Optional[str]) -> str:
        """
        Classify how a DTSTART/DTEND value encodes its timezone.

        Args:
            value: Decoded date or datetime
            tzid: TZID parameter of the property, if any

        Returns:
            One of the TIME_KIND_* constants
        """
        if not isinstance(value, datetime):
            return TIME_KIND_DATE
        if tzid:
            return TIME_KIND_NAMED
        if value.tzinfo is not None:
            return TIME_KIND_UTC
        return TIME_KIND_FLOATING

    @staticmethod
    def generate_external_id(summary: str, start: date) -> str:
        """
        Build a stable identifier for events published without a UID.

        Args:
            summary: Event summary
            start: Event start as published

        Returns:
            SHA256 hex digest of summary + start
        """
        composite = f"{summary}|{start.isoformat()}"
        return hashlib.sha256(composite.encode('utf-8')).hexdigest()

    def resolve_calendar_name(
        self,
        calendar: Calendar,
        events: List[RawCalendarEvent],
        feed_url: Optional[str],
        prefix: str = 'Team'
    ) -> str:
        """
        Pick a display name for the calendar.

        Order: explicit calendar name property, a team fragment from the
        first event, then a name derived from the feed URL.
        """
        name = None
        for prop in self.CALENDAR_NAME_PROPERTIES:
            value = self._text(calendar.get(prop)).strip()
            if value:
                name = value
                break

        if not name and events:
            name = self._name_from_event(events[0])

        if name:
            name = self.clean_calendar_name(name)

        if not name:
            name = self._name_from_url(feed_url, prefix)

        return name

    def _name_from_event(self, event: RawCalendarEvent) -> Optional[str]:
        match = self.TEAM_VS_PATTERN.search(event.summary or '')
        if not match and event.location:
            match = self.VENUE_PATTERN.search(event.location)
        if match:
            return match.group(1).strip()
        return None

    def clean_calendar_name(self, name: str) -> str:
        """Drop generic words such as 'calendar' and 'schedule'."""
        cleaned = self.GENERIC_NAME_WORDS.sub('', name)
        cleaned = re.sub(r'\s{2,}', ' ', cleaned)
        return cleaned.strip(' -_:|')

    @staticmethod
    def _name_from_url(feed_url: Optional[str], prefix: str) -> str:
        if not feed_url:
            return prefix

        path = urlparse(feed_url).path
        segment = unquote(path.rstrip('/').split('/')[-1]) if path else ''
        if segment.lower().endswith('.ics'):
            segment = segment[:-4]

        return f"{prefix} {segment}".strip()

    @staticmethod
    def _tzid(prop) -> Optional[str]:
        params = getattr(prop, 'params', None) or {}
        tzid = params.get('TZID')
        return str(tzid) if tzid else None

    @staticmethod
    def _text(value) -> str:
        if value is None:
            return ''
        if isinstance(value, list):
            value = value[0] if value else ''
        return str(value)

    @staticmethod
    def _decoded(prop):
        """Return a date/time property's value, or None if it is absent or malformed."""
        if prop is None or isinstance(prop, list):
            return None
        try:
            return prop.dt
        except Exception as e:
            logger.debug(f"Ignoring malformed property: {e}")
            return None
