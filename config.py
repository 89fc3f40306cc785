"""Runtime configuration for the calendar sync pipeline."""
import os
from dataclasses import dataclass
from typing import Mapping, Optional


@dataclass
class SyncConfig:
    """Settings passed explicitly into the pipeline entry points."""
    events_table: str = 'team-events'
    sources_table: str = 'platform-teams'
    profiles_table: str = 'profiles'
    user_settings_table: str = 'user-settings'
    geocode_cache_table: str = 'location-cache'
    run_log_table: str = 'schedule-refresh-logs'
    google_maps_api_key: Optional[str] = None
    log_level: str = 'INFO'
    fetch_timeout_seconds: int = 30
    geocode_timeout_seconds: int = 10
    max_workers: int = 4
    max_concurrent_geocodes: int = 4
    nearby_search_radius_meters: int = 50
    sync_lock_timeout_seconds: int = 900

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> 'SyncConfig':
        """
        Build configuration from environment variables.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            SyncConfig populated from the environment with defaults applied
        """
        env = os.environ if environ is None else environ
        defaults = cls()

        return cls(
            events_table=env.get('EVENTS_TABLE', defaults.events_table),
            sources_table=env.get('SOURCES_TABLE', defaults.sources_table),
            profiles_table=env.get('PROFILES_TABLE', defaults.profiles_table),
            user_settings_table=env.get(
                'USER_SETTINGS_TABLE', defaults.user_settings_table
            ),
            geocode_cache_table=env.get(
                'GEOCODE_CACHE_TABLE', defaults.geocode_cache_table
            ),
            run_log_table=env.get('RUN_LOG_TABLE', defaults.run_log_table),
            google_maps_api_key=env.get('GOOGLE_MAPS_API_KEY') or None,
            log_level=env.get('LOG_LEVEL', defaults.log_level),
            fetch_timeout_seconds=int(
                env.get('FETCH_TIMEOUT_SECONDS', defaults.fetch_timeout_seconds)
            ),
            geocode_timeout_seconds=int(
                env.get('GEOCODE_TIMEOUT_SECONDS', defaults.geocode_timeout_seconds)
            ),
            max_workers=int(env.get('MAX_WORKERS', defaults.max_workers)),
            max_concurrent_geocodes=int(
                env.get('MAX_CONCURRENT_GEOCODES', defaults.max_concurrent_geocodes)
            ),
            nearby_search_radius_meters=int(
                env.get(
                    'NEARBY_SEARCH_RADIUS_METERS',
                    defaults.nearby_search_radius_meters
                )
            ),
            sync_lock_timeout_seconds=int(
                env.get(
                    'SYNC_LOCK_TIMEOUT_SECONDS', defaults.sync_lock_timeout_seconds
                )
            ),
        )
