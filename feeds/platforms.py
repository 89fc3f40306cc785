"""Per-platform settings for calendar feed sources."""
from dataclasses import dataclass
from typing import Dict, Optional


DEFAULT_SPORT = 'Unknown'
DEFAULT_SPORT_COLOR = '#64748B'

SPORT_COLORS = {
    'Soccer': '#10B981',
    'Baseball': '#F59E0B',
    'Basketball': '#EF4444',
    'Swimming': '#3B82F6',
    'Tennis': '#8B5CF6',
    'Volleyball': '#EC4899',
    'Football': '#6366F1',
    'Hockey': '#14B8A6',
    'Lacrosse': '#F97316',
    'Track': '#06B6D4',
    'Golf': '#84CC16',
    'Gymnastics': '#F43F5E',
    'Wrestling': '#8B5CF6',
    'Cross Country': '#059669',
    'Unknown': DEFAULT_SPORT_COLOR,
    'Other': DEFAULT_SPORT_COLOR,
    'General': '#3B82F6',
}


def sport_color(sport: Optional[str]) -> str:
    """
    Look up the display color for a sport.

    Args:
        sport: Sport name (case-insensitive)

    Returns:
        Hex color, or the neutral fallback for unknown sports
    """
    if not sport:
        return DEFAULT_SPORT_COLOR

    for name, color in SPORT_COLORS.items():
        if name.lower() == sport.strip().lower():
            return color

    return DEFAULT_SPORT_COLOR


@dataclass(frozen=True)
class PlatformAdapter:
    """Feed quirks and display defaults of one scheduling platform."""
    name: str
    platform_color: str
    default_sport: str = DEFAULT_SPORT
    display_name_prefix: str = 'Team'
    compose_titles: bool = True

    def resolve_sport(self, team_sport: Optional[str]) -> str:
        return team_sport or self.default_sport

    def resolve_color(self, team_sport: Optional[str], team_color: Optional[str]) -> str:
        if team_color:
            return team_color
        return sport_color(self.resolve_sport(team_sport))


PLATFORMS: Dict[str, PlatformAdapter] = {
    'sportsengine': PlatformAdapter(
        name='SportsEngine',
        platform_color='#2563EB',
        display_name_prefix='SportsEngine Team',
    ),
    'playmetrics': PlatformAdapter(
        name='Playmetrics',
        platform_color='#10B981',
        default_sport='Soccer',
        display_name_prefix='Playmetrics Team',
    ),
    'gamechanger': PlatformAdapter(
        name='GameChanger',
        platform_color='#F97316',
        display_name_prefix='GameChanger Team',
    ),
    'imported': PlatformAdapter(
        name='Imported',
        platform_color='#8B5CF6',
        default_sport='General',
        display_name_prefix='Imported Calendar',
        compose_titles=False,
    ),
}


def get_adapter(platform: str) -> PlatformAdapter:
    """
    Resolve the adapter for a platform name.

    Unknown platforms get a generic adapter so that any standard feed can
    still be synced.
    """
    adapter = PLATFORMS.get((platform or '').strip().lower())
    if adapter:
        return adapter

    return PlatformAdapter(
        name=platform or 'Imported',
        platform_color='#8B5CF6',
        display_name_prefix=f"{platform or 'Imported'} Team",
    )
