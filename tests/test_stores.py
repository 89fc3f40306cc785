"""Unit tests for the geocode cache, source registry, user directory and run log."""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest

from conftest import (
    GEOCODE_CACHE_TABLE,
    PROFILES_TABLE,
    RUN_LOG_TABLE,
    SOURCES_TABLE,
    USER_SETTINGS_TABLE,
)
from exceptions import SyncInProgressError
from processor.models import (
    SYNC_STATUS_ERROR,
    SYNC_STATUS_PENDING,
    SYNC_STATUS_SUCCESS,
    GeocodeResult,
    RunSummary,
)
from storage.dynamodb_manager import format_timestamp, parse_timestamp
from storage.geocode_cache import GeocodeCacheStore, distance_meters
from storage.run_log import RunLogStore
from storage.source_registry import SourceRegistry
from storage.user_directory import UserDirectory


@pytest.fixture
def registry(dynamodb):
    table = dynamodb.Table(SOURCES_TABLE)
    table.put_item(Item={
        'source_id': 'team-1',
        'platform': 'sportsengine',
        'team_name': 'Eagles',
        'feed_url': 'https://example.com/eagles.ics',
        'user_id': 'user-1',
        'sport': 'Baseball',
        'profile_ids': ['profile-1', 'profile-2'],
    })
    table.put_item(Item={
        'source_id': 'team-2',
        'platform': 'playmetrics',
        'team_name': 'Hawks',
        'feed_url': 'https://example.com/hawks.ics',
        'user_id': 'user-2',
    })
    return SourceRegistry(SOURCES_TABLE)


class TestGeocodeCacheStore:
    """Test cases for GeocodeCacheStore."""

    def test_miss(self, dynamodb):
        """Test an unknown address is a miss."""
        assert GeocodeCacheStore(GEOCODE_CACHE_TABLE).get('unknown') is None

    def test_put_and_get(self, dynamodb):
        """Test a resolved result is stored with coordinates."""
        cache = GeocodeCacheStore(GEOCODE_CACHE_TABLE)
        cache.put('lincoln park', GeocodeResult('Lincoln Park', '1200 W Lincoln Ave', 43.06, -87.93))

        result = cache.get('lincoln park')

        assert result == GeocodeResult('Lincoln Park', '1200 W Lincoln Ave', 43.06, -87.93)
        item = dynamodb.Table(GEOCODE_CACHE_TABLE).get_item(Key={'address': 'lincoln park'})['Item']
        assert item['latitude'] == Decimal('43.06')
        assert 'created_at' in item

    def test_unresolved_result_not_stored(self, dynamodb):
        """Test a null name is never cached."""
        cache = GeocodeCacheStore(GEOCODE_CACHE_TABLE)
        cache.put('nowhere', GeocodeResult())

        assert dynamodb.Table(GEOCODE_CACHE_TABLE).scan()['Items'] == []

    def test_find_nearby_returns_closest_venue(self, dynamodb):
        """Test the nearest cached venue within the radius is returned."""
        cache = GeocodeCacheStore(GEOCODE_CACHE_TABLE)
        cache.put('kern park', GeocodeResult('Kern Park', '3614 N Humboldt Blvd', 43.0800, -87.8960))
        cache.put('kern park pavilion', GeocodeResult('Kern Pavilion', None, 43.0802, -87.8960))
        cache.put('lincoln park', GeocodeResult('Lincoln Park', None, 43.0600, -87.9300))

        # about 22m from Kern Park and 44m from the pavilion
        result = cache.find_nearby(43.0798, -87.8960, 50)

        assert result == GeocodeResult('Kern Park', '3614 N Humboldt Blvd', 43.08, -87.896)

    def test_find_nearby_outside_radius(self, dynamodb):
        """Test a venue further than the radius is not returned."""
        cache = GeocodeCacheStore(GEOCODE_CACHE_TABLE)
        cache.put('kern park', GeocodeResult('Kern Park', None, 43.0800, -87.8960))

        # about 110m north
        assert cache.find_nearby(43.0810, -87.8960, 50) is None

    def test_find_nearby_empty_cache(self, dynamodb):
        """Test a lookup against an empty cache finds nothing."""
        assert GeocodeCacheStore(GEOCODE_CACHE_TABLE).find_nearby(43.08, -87.896) is None


def test_distance_meters():
    """Test the great-circle distance of a known short hop."""
    assert distance_meters(43.08, -87.896, 43.08, -87.896) == 0
    assert distance_meters(43.0800, -87.8960, 43.0810, -87.8960) == pytest.approx(111.2, abs=0.5)


class TestSourceRegistry:
    """Test cases for SourceRegistry."""

    def test_list_sources(self, registry):
        """Test all sources are listed with their profile mappings."""
        sources = {s.source_id: s for s in registry.list_sources()}

        assert set(sources) == {'team-1', 'team-2'}
        assert sources['team-1'].profile_ids == ['profile-1', 'profile-2']
        assert sources['team-2'].profile_ids == []

    def test_get_source_missing(self, registry):
        """Test an unknown source id returns None."""
        assert registry.get_source('missing') is None

    def test_acquire_sync_sets_pending(self, registry):
        """Test acquiring marks the source pending."""
        registry.acquire_sync('team-1')

        assert registry.get_source('team-1').sync_status == SYNC_STATUS_PENDING

    def test_acquire_sync_rejects_concurrent_run(self, registry):
        """Test a fresh pending sync blocks a second one."""
        registry.acquire_sync('team-1')

        with pytest.raises(SyncInProgressError):
            registry.acquire_sync('team-1')

    def test_acquire_sync_takes_over_stale_lock(self, registry, dynamodb):
        """Test a pending status older than the timeout is taken over."""
        stale = datetime.now(timezone.utc) - timedelta(hours=2)
        dynamodb.Table(SOURCES_TABLE).update_item(
            Key={'source_id': 'team-1'},
            UpdateExpression='SET sync_status = :p, sync_started_at = :t',
            ExpressionAttributeValues={':p': SYNC_STATUS_PENDING, ':t': format_timestamp(stale)}
        )

        registry.acquire_sync('team-1', lock_timeout_seconds=900)

        assert registry.get_source('team-1').sync_status == SYNC_STATUS_PENDING

    def test_complete_sync_error_and_recovery(self, registry):
        """Test error messages are stored and cleared on success."""
        registry.acquire_sync('team-1')
        registry.complete_sync('team-1', SYNC_STATUS_ERROR, 'Failed to fetch calendar: 500')

        failed = registry.get_source('team-1')
        assert failed.sync_status == SYNC_STATUS_ERROR
        assert failed.error_message == 'Failed to fetch calendar: 500'
        assert failed.last_synced is not None

        registry.acquire_sync('team-1')
        registry.complete_sync('team-1', SYNC_STATUS_SUCCESS)

        recovered = registry.get_source('team-1')
        assert recovered.sync_status == SYNC_STATUS_SUCCESS
        assert recovered.error_message is None

    def test_update_team_name(self, registry):
        """Test the team name can be refreshed."""
        registry.update_team_name('team-1', 'Eagles 12U')

        assert registry.get_source('team-1').team_name == 'Eagles 12U'


class TestUserDirectory:
    """Test cases for UserDirectory."""

    @pytest.fixture
    def directory(self, dynamodb):
        dynamodb.Table(PROFILES_TABLE).put_item(Item={'profile_id': 'profile-1', 'user_id': 'user-1'})
        dynamodb.Table(USER_SETTINGS_TABLE).put_item(
            Item={'user_id': 'user-1', 'timezone': 'America/Chicago'}
        )
        return UserDirectory(PROFILES_TABLE, USER_SETTINGS_TABLE)

    def test_profile_timezone(self, directory):
        """Test profile -> user -> timezone resolution."""
        assert directory.get_profile_timezone('profile-1') == 'America/Chicago'

    def test_unknown_profile(self, directory):
        """Test an unknown profile has no timezone."""
        assert directory.get_profile_timezone('missing') is None

    def test_stamp_last_refresh(self, directory, dynamodb):
        """Test the dashboard refresh stamp is written."""
        refreshed = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)

        directory.stamp_last_refresh('user-1', refreshed)

        item = dynamodb.Table(USER_SETTINGS_TABLE).get_item(Key={'user_id': 'user-1'})['Item']
        assert item['last_dashboard_refresh'] == '2025-06-01T12:00:00Z'
        assert item['timezone'] == 'America/Chicago'


class TestRunLogStore:
    """Test cases for RunLogStore."""

    def test_create_and_complete(self, dynamodb):
        """Test a run row is created and completed with counts and results."""
        store = RunLogStore(RUN_LOG_TABLE)
        log_id = store.create()

        summary = RunSummary(total_teams=2, successful=1, errors=1, total_events=7)
        store.complete(log_id, summary, [{'teamId': 'team-1', 'status': 'success'}])

        item = dynamodb.Table(RUN_LOG_TABLE).get_item(Key={'log_id': log_id})['Item']
        assert item['status'] == 'completed'
        assert item['total_teams'] == 2
        assert item['errors'] == 1
        assert item['results'] == [{'teamId': 'team-1', 'status': 'success'}]
        assert parse_timestamp(item['completed_at']) >= parse_timestamp(item['started_at'])

    def test_fail_records_error_details(self, dynamodb):
        """Test a failed run keeps partial counts and the error."""
        store = RunLogStore(RUN_LOG_TABLE)
        log_id = store.create()

        store.fail(log_id, RunSummary(total_teams=3, successful=1), RuntimeError('boom'))

        item = dynamodb.Table(RUN_LOG_TABLE).get_item(Key={'log_id': log_id})['Item']
        assert item['status'] == 'failed'
        assert item['successful'] == 1
        assert item['error_details'] == {'type': 'RuntimeError', 'message': 'boom'}
