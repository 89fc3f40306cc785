"""Registry of external calendar sources and their sync state."""
import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

from exceptions import StoreError, SyncInProgressError
from processor.models import SYNC_STATUS_ERROR, SYNC_STATUS_PENDING, SourceTeam
from storage.dynamodb_manager import DynamoDBManager, format_timestamp, utc_now

logger = logging.getLogger(__name__)


class SourceRegistry(DynamoDBManager):
    """Sources table, keyed by ``source_id``."""

    def list_sources(self) -> List[SourceTeam]:
        """
        Enumerate every registered source across all users.

        Raises:
            StoreError: If the scan fails
        """
        sources = []
        for item in self._scan_all():
            try:
                sources.append(self._item_to_source(item))
            except KeyError as e:
                logger.warning(f"Skipping malformed source row {item.get('source_id')}: missing {e}")

        logger.info(f"Found {len(sources)} registered sources")
        return sources

    def get_source(self, source_id: str) -> Optional[SourceTeam]:
        item = self.get_item({'source_id': source_id})
        if item is None:
            return None
        return self._item_to_source(item)

    def acquire_sync(self, source_id: str, lock_timeout_seconds: int = 900) -> None:
        """
        Mark a source as pending unless another sync is running.

        A pending status older than the lock timeout is treated as stale
        and taken over.

        Raises:
            SyncInProgressError: If a fresh pending sync exists
            StoreError: On any other write failure
        """
        now = utc_now()
        stale_before = format_timestamp(now - timedelta(seconds=lock_timeout_seconds))

        try:
            self.table.update_item(
                Key={'source_id': source_id},
                UpdateExpression='SET sync_status = :pending, sync_started_at = :now',
                ConditionExpression=(
                    Attr('source_id').exists()
                    & (
                        Attr('sync_status').not_exists()
                        | Attr('sync_status').ne(SYNC_STATUS_PENDING)
                        | Attr('sync_started_at').not_exists()
                        | Attr('sync_started_at').lt(stale_before)
                    )
                ),
                ExpressionAttributeValues={
                    ':pending': SYNC_STATUS_PENDING,
                    ':now': format_timestamp(now),
                }
            )
        except ClientError as e:
            if e.response.get('Error', {}).get('Code') == 'ConditionalCheckFailedException':
                raise SyncInProgressError(
                    f"Sync already in progress for source {source_id}"
                ) from e
            logger.error(f"Error marking source {source_id} as pending: {e}")
            raise StoreError(f"Failed to update {self.table_name}: {e}") from e

        logger.debug(f"Acquired sync for source {source_id}")

    def complete_sync(
        self,
        source_id: str,
        status: str,
        error_message: Optional[str] = None
    ) -> None:
        """
        Record the final sync status of a source and stamp last_synced.

        Raises:
            StoreError: If the write fails
        """
        values: Dict[str, Any] = {
            ':status': status,
            ':synced': format_timestamp(utc_now()),
        }
        if status == SYNC_STATUS_ERROR:
            expression = 'SET sync_status = :status, last_synced = :synced, error_message = :message'
            values[':message'] = error_message or 'Unknown error'
        else:
            expression = 'SET sync_status = :status, last_synced = :synced REMOVE error_message'

        self._update(source_id, expression, values)
        logger.info(f"Source {source_id} sync finished with status {status}")

    def update_team_name(self, source_id: str, team_name: str) -> None:
        self._update(source_id, 'SET team_name = :name', {':name': team_name})
        logger.info(f"Updated team name for source {source_id}: {team_name}")

    def _update(self, source_id: str, expression: str, values: Dict[str, Any]) -> None:
        try:
            self.table.update_item(
                Key={'source_id': source_id},
                UpdateExpression=expression,
                ExpressionAttributeValues=values
            )
        except ClientError as e:
            logger.error(f"Error updating source {source_id}: {e}")
            raise StoreError(f"Failed to update {self.table_name}: {e}") from e

    @staticmethod
    def _item_to_source(item: Dict[str, Any]) -> SourceTeam:
        return SourceTeam(
            source_id=item['source_id'],
            platform=item['platform'],
            team_name=item.get('team_name', ''),
            feed_url=item.get('feed_url'),
            user_id=item['user_id'],
            sport=item.get('sport'),
            sport_color=item.get('sport_color'),
            profile_ids=list(item.get('profile_ids') or []),
            sync_status=item.get('sync_status'),
            last_synced=item.get('last_synced'),
            error_message=item.get('error_message')
        )
