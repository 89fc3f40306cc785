"""Audit rows for bulk sync runs."""
import logging
import uuid
from typing import Any, Dict, List, Optional

from botocore.exceptions import ClientError

from exceptions import StoreError
from processor.models import RunSummary
from storage.dynamodb_manager import DynamoDBManager, format_timestamp, utc_now

logger = logging.getLogger(__name__)

RUN_STATUS_RUNNING = 'running'
RUN_STATUS_COMPLETED = 'completed'
RUN_STATUS_FAILED = 'failed'


class RunLogStore(DynamoDBManager):
    """Run log table, keyed by ``log_id``."""

    def create(self) -> str:
        """
        Insert the row for a run that is starting.

        Returns:
            The new log_id

        Raises:
            StoreError: If the write fails
        """
        log_id = str(uuid.uuid4())
        try:
            self.table.put_item(Item={
                'log_id': log_id,
                'started_at': format_timestamp(utc_now()),
                'status': RUN_STATUS_RUNNING,
            })
        except ClientError as e:
            logger.error(f"Error creating run log: {e}")
            raise StoreError(f"Failed to write {self.table_name}: {e}") from e

        logger.info(f"Created run log {log_id}")
        return log_id

    def complete(self, log_id: str, summary: RunSummary, results: List[Dict[str, Any]]) -> None:
        self._finish(log_id, RUN_STATUS_COMPLETED, summary, {'results': results})

    def fail(
        self,
        log_id: str,
        partial: RunSummary,
        error: BaseException,
        results: Optional[List[Dict[str, Any]]] = None
    ) -> None:
        """Record a run that aborted, keeping whatever counts were reached."""
        self._finish(
            log_id,
            RUN_STATUS_FAILED,
            partial,
            {
                'error_details': {
                    'type': type(error).__name__,
                    'message': str(error),
                },
                'results': results or [],
            }
        )

    def _finish(
        self,
        log_id: str,
        status: str,
        summary: RunSummary,
        fields: Dict[str, Any]
    ) -> None:
        attributes = dict(summary.as_record(), **fields)
        attributes['status'] = status
        attributes['completed_at'] = format_timestamp(utc_now())

        names = {f"#{name}": name for name in attributes}
        values = {f":{name}": value for name, value in attributes.items()}
        expression = 'SET ' + ', '.join(f"#{name} = :{name}" for name in attributes)

        try:
            self.table.update_item(
                Key={'log_id': log_id},
                UpdateExpression=expression,
                ExpressionAttributeNames=names,
                ExpressionAttributeValues=values
            )
        except ClientError as e:
            logger.error(f"Error updating run log {log_id}: {e}")
            raise StoreError(f"Failed to update {self.table_name}: {e}") from e

        logger.info(f"Run log {log_id} marked {status}")
