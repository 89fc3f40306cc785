"""Data models for calendar feed processing."""
from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


# Encodings a feed can use for an event's start/end
TIME_KIND_UTC = 'utc'
TIME_KIND_NAMED = 'named'
TIME_KIND_FLOATING = 'floating'
TIME_KIND_DATE = 'date'

SYNC_STATUS_PENDING = 'pending'
SYNC_STATUS_SUCCESS = 'success'
SYNC_STATUS_ERROR = 'error'
SYNC_STATUS_SKIPPED = 'skipped'


@dataclass
class RawCalendarEvent:
    """Event as extracted from a calendar feed."""
    external_id: str
    summary: str
    description: str
    location: str
    start: Any
    end: Optional[Any]
    time_kind: str
    tzid: Optional[str] = None
    end_tzid: Optional[str] = None
    status: Optional[str] = None


@dataclass
class ParsedFeed:
    """Result of parsing one feed document."""
    events: List[RawCalendarEvent]
    calendar_name: str


@dataclass
class NormalizedEvent:
    """Validated, classified event ready for storage."""
    external_id: str
    title: str
    description: str
    start_time: datetime
    end_time: datetime
    location: str
    location_name: Optional[str]
    geocoding_attempted: bool
    sport: str
    color: str
    platform: str
    platform_color: str
    profile_id: str
    source_team_id: str
    visibility: str = 'public'
    is_cancelled: bool = False
    all_day: bool = False
    formatted_address: Optional[str] = None
    event_id: Optional[str] = None
    updated_at: Optional[str] = None


@dataclass
class GeocodeResult:
    """Resolved place name for an address."""
    location_name: Optional[str] = None
    formatted_address: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None

    @property
    def resolved(self) -> bool:
        return bool(self.location_name)


@dataclass
class SourceTeam:
    """External calendar source registered for a user."""
    source_id: str
    platform: str
    team_name: str
    feed_url: Optional[str]
    user_id: str
    sport: Optional[str] = None
    sport_color: Optional[str] = None
    profile_ids: List[str] = field(default_factory=list)
    sync_status: Optional[str] = None
    last_synced: Optional[str] = None
    error_message: Optional[str] = None


@dataclass
class GeocodingStats:
    """Counters describing the geocoding decisions of one reconciliation."""
    needs_geocode: int = 0
    geocoded: int = 0
    preserved: int = 0
    failed: int = 0
    no_api_key: int = 0
    skipped_already_attempted: int = 0


@dataclass
class SyncResult:
    """Result of reconciling one (platform, team, profile) tuple."""
    added: int
    updated: int
    deleted: int
    errors: list[str]
    unchanged: int = 0
    event_count: int = 0
    team_name: Optional[str] = None
    geocoding: GeocodingStats = field(default_factory=GeocodingStats)


@dataclass
class SourceSyncResult:
    """Outcome of syncing one source across all its mapped profiles."""
    team_id: str
    team_name: str
    platform: str
    user_id: str
    status: str
    message: Optional[str] = None
    profile_count: int = 0
    event_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'teamId': self.team_id,
            'teamName': self.team_name,
            'platform': self.platform,
            'userId': self.user_id,
            'status': self.status,
            'message': self.message,
            'profileCount': self.profile_count,
            'eventCount': self.event_count,
        }


@dataclass
class RunSummary:
    """Aggregate counters for one bulk sync run."""
    total_teams: int = 0
    successful: int = 0
    errors: int = 0
    skipped: int = 0
    total_events: int = 0
    total_users_affected: int = 0
    execution_duration_ms: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {
            'totalTeams': self.total_teams,
            'successful': self.successful,
            'errors': self.errors,
            'skipped': self.skipped,
            'totalEvents': self.total_events,
            'totalUsersAffected': self.total_users_affected,
            'executionDurationMs': self.execution_duration_ms,
        }

    def as_record(self) -> Dict[str, int]:
        return asdict(self)
