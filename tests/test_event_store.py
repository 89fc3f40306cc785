"""Unit tests for EventStore."""
from datetime import datetime, timezone

import pytest

from conftest import EVENTS_TABLE
from exceptions import StoreError
from processor.models import NormalizedEvent
from storage.event_store import EventStore, sync_tuple_key


@pytest.fixture
def event_store(dynamodb):
    """Create EventStore instance with mock table."""
    return EventStore(EVENTS_TABLE)


def make_event(external_id='evt-1', event_id='row-1', profile_id='profile-1', **overrides):
    values = dict(
        external_id=external_id,
        title='Game vs Hawks',
        description='Eagles vs Hawks',
        start_time=datetime(2025, 6, 1, 21, 0, tzinfo=timezone.utc),
        end_time=datetime(2025, 6, 1, 22, 30, tzinfo=timezone.utc),
        location='Lincoln Park',
        location_name=None,
        geocoding_attempted=False,
        sport='Baseball',
        color='#DC2626',
        platform='SportsEngine',
        platform_color='#2563EB',
        profile_id=profile_id,
        source_team_id='team-1',
        event_id=event_id
    )
    values.update(overrides)
    return NormalizedEvent(**values)


def test_get_tuple_events_empty(event_store):
    """Test an empty tuple returns an empty dict."""
    assert event_store.get_tuple_events('SportsEngine', 'team-1', 'profile-1') == {}


def test_batch_upsert_round_trip(event_store):
    """Test written events are read back with their fields intact."""
    event = make_event(location_name='Lincoln Park', geocoding_attempted=True,
                       formatted_address='1200 W Lincoln Ave')

    assert event_store.batch_upsert([event]) == 1

    stored = event_store.get_tuple_events('SportsEngine', 'team-1', 'profile-1')
    assert list(stored) == ['evt-1']
    row = stored['evt-1']
    assert row.event_id == 'row-1'
    assert row.start_time == event.start_time
    assert row.end_time == event.end_time
    assert row.location_name == 'Lincoln Park'
    assert row.formatted_address == '1200 W Lincoln Ave'
    assert row.geocoding_attempted is True
    assert row.updated_at is not None


def test_null_location_name_omitted(event_store, dynamodb):
    """Test empty optional attributes are not written."""
    event_store.batch_upsert([make_event()])

    item = dynamodb.Table(EVENTS_TABLE).get_item(Key={'event_id': 'row-1'})['Item']
    assert 'location_name' not in item
    assert item['sync_tuple'] == sync_tuple_key('SportsEngine', 'team-1', 'profile-1')
    assert item['start_time'] == '2025-06-01T21:00:00Z'


def test_tuples_are_isolated(event_store):
    """Test a tuple query only returns that profile's rows."""
    event_store.batch_upsert([
        make_event('evt-1', 'row-1', 'profile-1'),
        make_event('evt-1', 'row-2', 'profile-2'),
    ])

    profile_1 = event_store.get_tuple_events('SportsEngine', 'team-1', 'profile-1')
    profile_2 = event_store.get_tuple_events('SportsEngine', 'team-1', 'profile-2')

    assert profile_1['evt-1'].event_id == 'row-1'
    assert profile_2['evt-1'].event_id == 'row-2'


def test_batch_upsert_many(event_store):
    """Test more events than one batch are all written."""
    events = [make_event(f'evt-{i}', f'row-{i}') for i in range(30)]

    assert event_store.batch_upsert(events) == 30
    assert len(event_store.get_tuple_events('SportsEngine', 'team-1', 'profile-1')) == 30


def test_batch_upsert_replaces_row(event_store):
    """Test writing the same event_id updates in place."""
    event_store.batch_upsert([make_event()])
    event_store.batch_upsert([make_event(title='Game vs Lions')])

    stored = event_store.get_tuple_events('SportsEngine', 'team-1', 'profile-1')
    assert len(stored) == 1
    assert stored['evt-1'].title == 'Game vs Lions'


def test_batch_delete(event_store):
    """Test rows are deleted by event_id."""
    event_store.batch_upsert([make_event('evt-1', 'row-1'), make_event('evt-2', 'row-2')])

    assert event_store.batch_delete(['row-1']) == 1

    stored = event_store.get_tuple_events('SportsEngine', 'team-1', 'profile-1')
    assert list(stored) == ['evt-2']


def test_batch_delete_empty(event_store):
    """Test deleting nothing is a no-op."""
    assert event_store.batch_delete([]) == 0


def test_delete_recurring_series(event_store, dynamodb):
    """Test only occurrences of the group at or after the cutoff are removed."""
    table = dynamodb.Table(EVENTS_TABLE)
    event_store.batch_upsert([
        make_event('occ-1', 'row-1', start_time=datetime(2025, 6, 1, 21, tzinfo=timezone.utc)),
        make_event('occ-2', 'row-2', start_time=datetime(2025, 6, 8, 21, tzinfo=timezone.utc)),
        make_event('occ-3', 'row-3', start_time=datetime(2025, 6, 15, 21, tzinfo=timezone.utc)),
        make_event('other', 'row-4', start_time=datetime(2025, 6, 15, 21, tzinfo=timezone.utc)),
    ])
    for event_id in ('row-1', 'row-2', 'row-3'):
        table.update_item(
            Key={'event_id': event_id},
            UpdateExpression='SET recurring_group_id = :g',
            ExpressionAttributeValues={':g': 'series-1'}
        )

    deleted = event_store.delete_recurring_series(
        'series-1', datetime(2025, 6, 8, 0, 0, tzinfo=timezone.utc)
    )

    assert deleted == 2
    remaining = event_store.get_tuple_events('SportsEngine', 'team-1', 'profile-1')
    assert sorted(remaining) == ['occ-1', 'other']


def test_find_missing_location_names(event_store, dynamodb):
    """Test only recent rows with a location and no venue name are returned."""
    event_store.batch_upsert([
        make_event('evt-1', 'row-1'),
        make_event('evt-2', 'row-2', location_name='Lincoln Park', geocoding_attempted=True),
        make_event('evt-3', 'row-3', location=''),
        make_event('evt-4', 'row-4'),
    ])
    dynamodb.Table(EVENTS_TABLE).update_item(
        Key={'event_id': 'row-4'},
        UpdateExpression='SET updated_at = :t',
        ExpressionAttributeValues={':t': '2020-01-01T00:00:00Z'}
    )

    events = event_store.find_missing_location_names(datetime(2024, 1, 1, tzinfo=timezone.utc))

    assert [e.event_id for e in events] == ['row-1']


def test_find_missing_location_names_limit(event_store):
    """Test the batch size caps the number of returned events."""
    event_store.batch_upsert([make_event(f"evt-{i}", f"row-{i}") for i in range(5)])

    events = event_store.find_missing_location_names(
        datetime(2024, 1, 1, tzinfo=timezone.utc), limit=2
    )

    assert len(events) == 2


def test_update_location_name(event_store):
    """Test a venue name is written to an existing row."""
    event_store.batch_upsert([make_event()])

    event_store.update_location_name('row-1', 'Lincoln Park', '1200 W Lincoln Ave')

    row = event_store.get_tuple_events('SportsEngine', 'team-1', 'profile-1')['evt-1']
    assert row.location_name == 'Lincoln Park'
    assert row.formatted_address == '1200 W Lincoln Ave'
    assert row.geocoding_attempted is True


def test_update_location_name_missing_row(event_store):
    """Test updating a deleted row fails instead of creating a stub."""
    with pytest.raises(StoreError):
        event_store.update_location_name('gone', 'Lincoln Park')

    assert event_store.table.scan()['Items'] == []
