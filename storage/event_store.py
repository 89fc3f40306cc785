"""DynamoDB store for normalized team events."""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from exceptions import StoreError
from processor.models import NormalizedEvent
from storage.dynamodb_manager import (
    DynamoDBManager,
    format_timestamp,
    parse_timestamp,
    utc_now,
)

logger = logging.getLogger(__name__)

OPTIONAL_ATTRIBUTES = ('location_name', 'formatted_address', 'updated_at')


def sync_tuple_key(platform: str, source_team_id: str, profile_id: str) -> str:
    """Partition value grouping the rows of one (platform, team, profile) tuple."""
    return f"{platform}#{source_team_id}#{profile_id}"


class EventStore(DynamoDBManager):
    """
    Events table.

    Rows are keyed by ``event_id``. The ``tuple-index`` GSI (HASH
    ``sync_tuple``, RANGE ``external_id``) selects the rows of one
    sync tuple.
    """

    TUPLE_INDEX = 'tuple-index'

    def get_tuple_events(
        self,
        platform: str,
        source_team_id: str,
        profile_id: str
    ) -> Dict[str, NormalizedEvent]:
        """
        Load the stored events of one sync tuple.

        Returns:
            Dictionary mapping external_id to NormalizedEvent

        Raises:
            StoreError: If the query fails
        """
        items = self._query_all(
            IndexName=self.TUPLE_INDEX,
            KeyConditionExpression=Key('sync_tuple').eq(
                sync_tuple_key(platform, source_team_id, profile_id)
            )
        )

        events = {}
        for item in items:
            try:
                event = self._item_to_event(item)
                events[event.external_id] = event
            except (KeyError, ValueError) as e:
                logger.warning(f"Skipping malformed event row {item.get('event_id')}: {e}")

        logger.info(
            f"Retrieved {len(events)} existing events for "
            f"{sync_tuple_key(platform, source_team_id, profile_id)}"
        )
        return events

    def batch_upsert(self, events: List[NormalizedEvent]) -> int:
        """
        Write events, replacing rows with the same event_id.

        Every event must already carry its event_id.

        Raises:
            StoreError: If a batch is rejected
        """
        if not events:
            return 0

        now = format_timestamp(utc_now())
        items = []
        for event in events:
            event.updated_at = now
            items.append(self._event_to_item(event))

        written = self._batch_put(items)
        logger.info(f"Wrote {written} events to {self.table_name}")
        return written

    def batch_delete(self, event_ids: List[str]) -> int:
        """
        Delete rows by event_id.

        Raises:
            StoreError: If a batch is rejected
        """
        if not event_ids:
            return 0

        deleted = self._batch_delete([{'event_id': event_id} for event_id in event_ids])
        logger.info(f"Deleted {deleted} events from {self.table_name}")
        return deleted

    def delete_recurring_series(self, recurring_group_id: str, from_time: datetime) -> int:
        """
        Delete the occurrences of a recurring group starting at or after a cutoff.

        Args:
            recurring_group_id: Group shared by the occurrences of one series
            from_time: Occurrences starting before this instant are kept

        Returns:
            Number of deleted rows
        """
        items = self._scan_all(
            FilterExpression=(
                Attr('recurring_group_id').eq(recurring_group_id)
                & Attr('start_time').gte(format_timestamp(from_time))
            ),
            ProjectionExpression='event_id'
        )

        deleted = self.batch_delete([item['event_id'] for item in items])
        logger.info(
            f"Deleted {deleted} occurrences of recurring group {recurring_group_id} "
            f"from {format_timestamp(from_time)}"
        )
        return deleted

    def find_missing_location_names(
        self,
        updated_since: datetime,
        limit: int = 50
    ) -> List[NormalizedEvent]:
        """
        Find recently written events that have a location but no venue name.

        Args:
            updated_since: Only rows written at or after this instant
            limit: Maximum number of events returned, most recent first

        Raises:
            StoreError: If the scan fails
        """
        items = self._scan_all(
            FilterExpression=(
                Attr('location').exists()
                & Attr('location').ne('')
                & Attr('location_name').not_exists()
                & Attr('updated_at').gte(format_timestamp(updated_since))
            )
        )

        events = []
        for item in items:
            try:
                events.append(self._item_to_event(item))
            except (KeyError, ValueError) as e:
                logger.warning(f"Skipping malformed event row {item.get('event_id')}: {e}")

        events.sort(key=lambda event: event.updated_at or '', reverse=True)
        return events[:limit]

    def update_location_name(
        self,
        event_id: str,
        location_name: str,
        formatted_address: Optional[str] = None
    ) -> None:
        """
        Set the venue name of one stored event.

        Raises:
            StoreError: If the row is gone or the write fails
        """
        expression = (
            'SET location_name = :name, geocoding_attempted = :attempted, '
            'updated_at = :updated'
        )
        values: Dict[str, Any] = {
            ':name': location_name,
            ':attempted': True,
            ':updated': format_timestamp(utc_now()),
        }
        if formatted_address:
            expression += ', formatted_address = :address'
            values[':address'] = formatted_address

        try:
            self.table.update_item(
                Key={'event_id': event_id},
                UpdateExpression=expression,
                ConditionExpression=Attr('event_id').exists(),
                ExpressionAttributeValues=values
            )
        except ClientError as e:
            logger.error(f"Error updating location name of event {event_id}: {e}")
            raise StoreError(f"Failed to update event {event_id}: {e}") from e

    def _event_to_item(self, event: NormalizedEvent) -> Dict[str, Any]:
        item = {
            'event_id': event.event_id,
            'sync_tuple': sync_tuple_key(event.platform, event.source_team_id, event.profile_id),
            'external_id': event.external_id,
            'title': event.title,
            'description': event.description,
            'start_time': format_timestamp(event.start_time),
            'end_time': format_timestamp(event.end_time),
            'location': event.location,
            'location_name': event.location_name,
            'formatted_address': event.formatted_address,
            'geocoding_attempted': event.geocoding_attempted,
            'sport': event.sport,
            'color': event.color,
            'platform': event.platform,
            'platform_color': event.platform_color,
            'profile_id': event.profile_id,
            'source_team_id': event.source_team_id,
            'visibility': event.visibility,
            'is_cancelled': event.is_cancelled,
            'all_day': event.all_day,
            'updated_at': event.updated_at,
        }
        return self._drop_empty(item, OPTIONAL_ATTRIBUTES)

    @staticmethod
    def _item_to_event(item: Dict[str, Any]) -> NormalizedEvent:
        return NormalizedEvent(
            external_id=item['external_id'],
            title=item.get('title', ''),
            description=item.get('description', ''),
            start_time=parse_timestamp(item['start_time']),
            end_time=parse_timestamp(item['end_time']),
            location=item.get('location', ''),
            location_name=item.get('location_name'),
            geocoding_attempted=bool(item.get('geocoding_attempted', False)),
            sport=item.get('sport', ''),
            color=item.get('color', ''),
            platform=item['platform'],
            platform_color=item.get('platform_color', ''),
            profile_id=item['profile_id'],
            source_team_id=item['source_team_id'],
            visibility=item.get('visibility', 'public'),
            is_cancelled=bool(item.get('is_cancelled', False)),
            all_day=bool(item.get('all_day', False)),
            formatted_address=item.get('formatted_address'),
            event_id=item['event_id'],
            updated_at=item.get('updated_at')
        )
