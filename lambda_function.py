"""AWS Lambda handler for Team Calendar Sync."""
import json
import logging
import time
from typing import Dict, Any

from config import SyncConfig
from feeds.parser import FeedParser
from feeds.retriever import FeedRetriever
from geocoding.client import GeocodingClient
from storage.event_store import EventStore
from storage.geocode_cache import GeocodeCacheStore
from storage.run_log import RunLogStore
from storage.source_registry import SourceRegistry
from storage.user_directory import UserDirectory
from sync.enricher import LocationEnricher
from sync.orchestrator import SyncOrchestrator
from sync.reconciler import ReconciliationEngine

ACTION_SYNC_SOURCE = 'sync_source'
ACTION_SYNC_ALL = 'sync_all'
ACTION_ENRICH_LOCATIONS = 'enrich_locations'

# Attributes every LogRecord has; anything else was passed via ``extra``
_RESERVED_ATTRS = frozenset(
    vars(logging.LogRecord('', logging.INFO, '', 0, '', (), None))
) | {'message', 'asctime'}


# Configure JSON logging
class JsonFormatter(logging.Formatter):
    """Custom JSON formatter for structured logging."""

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON, including any ``extra`` fields."""
        log_data = {
            'timestamp': self.formatTime(record),
            'level': record.levelname,
            'message': record.getMessage(),
            'logger': record.name
        }

        for key, value in record.__dict__.items():
            if key not in _RESERVED_ATTRS and not key.startswith('_'):
                log_data[key] = value

        if record.exc_info:
            log_data['exception'] = self.formatException(record.exc_info)

        return json.dumps(log_data, default=str)


def setup_logging(log_level: str = 'INFO') -> None:
    """
    Configure logging with JSON formatter.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR)
    """
    root_logger = logging.getLogger()

    # Remove existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler()
    handler.setFormatter(JsonFormatter())
    root_logger.addHandler(handler)

    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))


def build_geocoder(config: SyncConfig) -> GeocodingClient:
    return GeocodingClient(
        api_key=config.google_maps_api_key,
        cache=GeocodeCacheStore(config.geocode_cache_table),
        timeout=config.geocode_timeout_seconds,
        nearby_radius_meters=config.nearby_search_radius_meters,
        proximity_radius_meters=config.nearby_search_radius_meters,
        max_concurrent_requests=config.max_concurrent_geocodes
    )


def build_orchestrator(config: SyncConfig) -> SyncOrchestrator:
    """Wire the pipeline components from configuration."""
    user_directory = UserDirectory(config.profiles_table, config.user_settings_table)

    engine = ReconciliationEngine(
        event_store=EventStore(config.events_table),
        geocoder=build_geocoder(config),
        user_directory=user_directory
    )

    return SyncOrchestrator(
        sources=SourceRegistry(config.sources_table),
        engine=engine,
        run_log=RunLogStore(config.run_log_table),
        retriever=FeedRetriever(timeout=config.fetch_timeout_seconds),
        parser=FeedParser(),
        user_directory=user_directory,
        max_workers=config.max_workers,
        lock_timeout_seconds=config.sync_lock_timeout_seconds
    )


def build_enricher(config: SyncConfig) -> LocationEnricher:
    return LocationEnricher(EventStore(config.events_table), build_geocoder(config))


def _response(status_code: int, body: Dict[str, Any]) -> Dict[str, Any]:
    return {'statusCode': status_code, 'body': json.dumps(body, default=str)}


def lambda_handler(event: Dict[str, Any], context: Any) -> Dict[str, Any]:
    """
    Main Lambda handler function for Team Calendar Sync.

    Args:
        event: {"action": "sync_source", "source_id": ..., "feed_url"?: ...,
            "profile_id"?: ...} for a single source, {} / {"action": "sync_all"}
            for every source, or {"action": "enrich_locations", "batch_size"?: ...,
            "recent_hours"?: ..., "dry_run"?: ...} to backfill venue names
        context: Lambda context object

    Returns:
        Response dict with statusCode and a JSON body
    """
    config = SyncConfig.from_env()

    setup_logging(config.log_level)
    logger = logging.getLogger(__name__)

    event = event or {}
    action = event.get('action') or ACTION_SYNC_ALL

    start_time = time.time()
    logger.info(
        "Lambda execution started",
        extra={
            'action': action,
            'events_table': config.events_table,
            'max_workers': config.max_workers
        }
    )

    if action not in (ACTION_SYNC_SOURCE, ACTION_SYNC_ALL, ACTION_ENRICH_LOCATIONS):
        logger.error(f"Unknown action: {action}")
        return _response(400, {'success': False, 'error': f"Unknown action: {action}"})

    if action == ACTION_SYNC_SOURCE and not event.get('source_id'):
        return _response(400, {'success': False, 'error': 'source_id is required'})

    if action == ACTION_ENRICH_LOCATIONS:
        try:
            batch_size = int(event.get('batch_size', LocationEnricher.DEFAULT_BATCH_SIZE))
            recent_hours = int(event.get('recent_hours', LocationEnricher.DEFAULT_RECENT_HOURS))
        except (TypeError, ValueError):
            batch_size = recent_hours = 0
        if batch_size <= 0 or recent_hours <= 0:
            return _response(400, {
                'success': False,
                'error': 'batch_size and recent_hours must be positive integers'
            })

    try:
        if action == ACTION_SYNC_SOURCE:
            result = build_orchestrator(config).sync_source(
                event['source_id'],
                feed_url=event.get('feed_url'),
                profile_id=event.get('profile_id')
            )
        elif action == ACTION_ENRICH_LOCATIONS:
            result = build_enricher(config).enrich(
                batch_size=batch_size,
                recent_hours=recent_hours,
                dry_run=event.get('dry_run') in (True, 'true')
            )
        else:
            result = build_orchestrator(config).sync_all()

    except Exception as e:
        duration = time.time() - start_time
        logger.error(
            f"Lambda execution failed: {str(e)}",
            extra={
                'duration_seconds': round(duration, 2),
                'error_type': type(e).__name__
            },
            exc_info=True
        )
        return _response(500, {
            'success': False,
            'error': str(e),
            'error_type': type(e).__name__
        })

    duration = time.time() - start_time
    logger.info(
        "Lambda execution completed",
        extra={
            'duration_seconds': round(duration, 2),
            'success': result.get('success')
        }
    )

    return _response(200 if result.get('success') else 500, result)
