"""Shared DynamoDB plumbing for the pipeline's stores."""
import logging
import threading
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Optional

import boto3
from botocore.exceptions import ClientError

from exceptions import StoreError

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def format_timestamp(value: datetime) -> str:
    """Render a datetime as an ISO 8601 UTC string (YYYY-MM-DDTHH:MM:SSZ)."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).strftime('%Y-%m-%dT%H:%M:%SZ')


def parse_timestamp(value: Optional[str]) -> Optional[datetime]:
    """Parse a stored ISO 8601 timestamp back into an aware datetime."""
    if not value:
        return None
    parsed = datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def to_decimal(value: Optional[float]) -> Optional[Decimal]:
    if value is None:
        return None
    return Decimal(str(value))


def from_decimal(value: Any) -> Optional[float]:
    if value is None:
        return None
    return float(value)


class DynamoDBManager:
    """Base class for a store backed by one DynamoDB table."""

    BATCH_SIZE = 25  # DynamoDB batch operation limit

    def __init__(self, table_name: str, region_name: Optional[str] = None):
        """
        Initialize the table reference.

        boto3 resources are not thread-safe, so each thread gets its own.

        Args:
            table_name: Name of the DynamoDB table
            region_name: Optional AWS region override
        """
        self.table_name = table_name
        self.region_name = region_name
        self._local = threading.local()
        logger.debug(f"Initialized {type(self).__name__} for table: {table_name}")

    @property
    def table(self):
        table = getattr(self._local, 'table', None)
        if table is None:
            session = boto3.session.Session()
            dynamodb = session.resource('dynamodb', region_name=self.region_name)
            table = dynamodb.Table(self.table_name)
            self._local.table = table
        return table

    def _scan_all(self, **kwargs) -> List[Dict[str, Any]]:
        """Scan the table, following pagination."""
        try:
            response = self.table.scan(**kwargs)
            items = response.get('Items', [])

            while 'LastEvaluatedKey' in response:
                response = self.table.scan(
                    ExclusiveStartKey=response['LastEvaluatedKey'], **kwargs
                )
                items.extend(response.get('Items', []))

            return items
        except ClientError as e:
            logger.error(f"Error scanning DynamoDB table {self.table_name}: {e}")
            raise StoreError(f"Failed to scan {self.table_name}: {e}") from e

    def _query_all(self, **kwargs) -> List[Dict[str, Any]]:
        """Query the table or an index, following pagination."""
        try:
            response = self.table.query(**kwargs)
            items = response.get('Items', [])

            while 'LastEvaluatedKey' in response:
                response = self.table.query(
                    ExclusiveStartKey=response['LastEvaluatedKey'], **kwargs
                )
                items.extend(response.get('Items', []))

            return items
        except ClientError as e:
            logger.error(f"Error querying DynamoDB table {self.table_name}: {e}")
            raise StoreError(f"Failed to query {self.table_name}: {e}") from e

    def get_item(self, key: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        try:
            return self.table.get_item(Key=key).get('Item')
        except ClientError as e:
            logger.error(f"Error reading from {self.table_name}: {e}")
            raise StoreError(f"Failed to read {self.table_name}: {e}") from e

    def _batch_put(self, items: List[Dict[str, Any]]) -> int:
        """
        Write items in batches of 25.

        Raises:
            StoreError: On the first rejected batch
        """
        written = 0
        for i in range(0, len(items), self.BATCH_SIZE):
            batch = items[i:i + self.BATCH_SIZE]
            try:
                with self.table.batch_writer() as writer:
                    for item in batch:
                        writer.put_item(Item=item)
            except ClientError as e:
                logger.error(
                    f"Error writing batch {i // self.BATCH_SIZE + 1} "
                    f"to {self.table_name}: {e}"
                )
                raise StoreError(f"Failed to write to {self.table_name}: {e}") from e
            written += len(batch)

        return written

    def _batch_delete(self, keys: List[Dict[str, Any]]) -> int:
        """
        Delete items in batches of 25.

        Raises:
            StoreError: On the first rejected batch
        """
        deleted = 0
        for i in range(0, len(keys), self.BATCH_SIZE):
            batch = keys[i:i + self.BATCH_SIZE]
            try:
                with self.table.batch_writer() as writer:
                    for key in batch:
                        writer.delete_item(Key=key)
            except ClientError as e:
                logger.error(
                    f"Error deleting batch {i // self.BATCH_SIZE + 1} "
                    f"from {self.table_name}: {e}"
                )
                raise StoreError(f"Failed to delete from {self.table_name}: {e}") from e
            deleted += len(batch)

        return deleted

    @staticmethod
    def _drop_empty(item: Dict[str, Any], optional: Iterable[str]) -> Dict[str, Any]:
        """Remove optional attributes that have no value."""
        for name in optional:
            if item.get(name) is None:
                item.pop(name, None)
        return item
