"""Lookups of profile owners and user settings."""
import logging
from datetime import datetime
from typing import Optional

from botocore.exceptions import ClientError

from exceptions import StoreError
from storage.dynamodb_manager import DynamoDBManager, format_timestamp

logger = logging.getLogger(__name__)


class UserDirectory:
    """Reads the profiles and user-settings tables."""

    def __init__(self, profiles_table: str, user_settings_table: str, region_name: Optional[str] = None):
        self.profiles = DynamoDBManager(profiles_table, region_name)
        self.settings = DynamoDBManager(user_settings_table, region_name)

    def get_user_id(self, profile_id: str) -> Optional[str]:
        item = self.profiles.get_item({'profile_id': profile_id})
        return item.get('user_id') if item else None

    def get_timezone(self, user_id: str) -> Optional[str]:
        item = self.settings.get_item({'user_id': user_id})
        return item.get('timezone') if item else None

    def get_profile_timezone(self, profile_id: str) -> Optional[str]:
        """Resolve profile -> user -> saved timezone name."""
        user_id = self.get_user_id(profile_id)
        if not user_id:
            logger.debug(f"No owner found for profile {profile_id}")
            return None
        return self.get_timezone(user_id)

    def stamp_last_refresh(self, user_id: str, refreshed_at: datetime) -> None:
        """
        Record when a user's dashboard data last changed.

        Raises:
            StoreError: If the write fails
        """
        try:
            self.settings.table.update_item(
                Key={'user_id': user_id},
                UpdateExpression='SET last_dashboard_refresh = :ts',
                ExpressionAttributeValues={':ts': format_timestamp(refreshed_at)}
            )
        except ClientError as e:
            logger.error(f"Error stamping refresh time for user {user_id}: {e}")
            raise StoreError(f"Failed to update {self.settings.table_name}: {e}") from e
