"""Shared fixtures for the calendar sync tests."""
import os
from unittest.mock import patch

import boto3
import pytest
from moto import mock_aws

EVENTS_TABLE = 'test-team-events'
SOURCES_TABLE = 'test-platform-teams'
PROFILES_TABLE = 'test-profiles'
USER_SETTINGS_TABLE = 'test-user-settings'
GEOCODE_CACHE_TABLE = 'test-location-cache'
RUN_LOG_TABLE = 'test-schedule-refresh-logs'


@pytest.fixture(autouse=True)
def aws_credentials():
    """Fake AWS credentials so nothing can reach a real account."""
    env_vars = {
        'AWS_ACCESS_KEY_ID': 'testing',
        'AWS_SECRET_ACCESS_KEY': 'testing',
        'AWS_SECURITY_TOKEN': 'testing',
        'AWS_SESSION_TOKEN': 'testing',
        'AWS_DEFAULT_REGION': 'us-east-1',
    }
    with patch.dict(os.environ, env_vars):
        yield


def _create_table(dynamodb, name, hash_key, extra_attributes=None, indexes=None):
    attributes = [{'AttributeName': hash_key, 'AttributeType': 'S'}]
    attributes.extend(extra_attributes or [])

    kwargs = {
        'TableName': name,
        'KeySchema': [{'AttributeName': hash_key, 'KeyType': 'HASH'}],
        'AttributeDefinitions': attributes,
        'BillingMode': 'PAY_PER_REQUEST',
    }
    if indexes:
        kwargs['GlobalSecondaryIndexes'] = indexes

    return dynamodb.create_table(**kwargs)


@pytest.fixture
def dynamodb():
    """Mocked DynamoDB with every table the pipeline uses."""
    with mock_aws():
        resource = boto3.resource('dynamodb', region_name='us-east-1')

        _create_table(
            resource,
            EVENTS_TABLE,
            'event_id',
            extra_attributes=[
                {'AttributeName': 'sync_tuple', 'AttributeType': 'S'},
                {'AttributeName': 'external_id', 'AttributeType': 'S'},
            ],
            indexes=[
                {
                    'IndexName': 'tuple-index',
                    'KeySchema': [
                        {'AttributeName': 'sync_tuple', 'KeyType': 'HASH'},
                        {'AttributeName': 'external_id', 'KeyType': 'RANGE'},
                    ],
                    'Projection': {'ProjectionType': 'ALL'},
                }
            ]
        )
        _create_table(resource, SOURCES_TABLE, 'source_id')
        _create_table(resource, PROFILES_TABLE, 'profile_id')
        _create_table(resource, USER_SETTINGS_TABLE, 'user_id')
        _create_table(resource, GEOCODE_CACHE_TABLE, 'address')
        _create_table(resource, RUN_LOG_TABLE, 'log_id')

        yield resource


def build_ics(*events, calendar_name=None):
    """Assemble an iCalendar document from VEVENT bodies."""
    lines = [
        'BEGIN:VCALENDAR',
        'VERSION:2.0',
        'PRODID:-//Test//Team Calendar//EN',
    ]
    if calendar_name:
        lines.append(f'X-WR-CALNAME:{calendar_name}')

    for event in events:
        lines.append('BEGIN:VEVENT')
        lines.extend(line.strip() for line in event.strip().splitlines())
        lines.append('END:VEVENT')

    lines.append('END:VCALENDAR')
    return ('\r\n'.join(lines) + '\r\n').encode('utf-8')


def vevent(uid, summary, start='20250601T210000Z', end='20250601T223000Z',
           location='', description='', extra=''):
    """Body of one VEVENT using UTC start/end values."""
    lines = [
        f'UID:{uid}',
        f'SUMMARY:{summary}',
        f'DTSTART:{start}',
        f'DTEND:{end}',
    ]
    if location:
        lines.append(f'LOCATION:{location}')
    if description:
        lines.append(f'DESCRIPTION:{description}')
    if extra:
        lines.append(extra)
    return '\n'.join(lines)
