"""Classification and text enrichment of calendar events."""
import re
from dataclasses import dataclass
from typing import Optional

EVENT_TYPE_GAME = 'Game'
EVENT_TYPE_PRACTICE = 'Practice'
EVENT_TYPE_TOURNAMENT = 'Tournament'
EVENT_TYPE_EVENT = 'Event'


@dataclass
class Classification:
    """Derived event type, opponent and display text."""
    event_type: str
    opponent: Optional[str]
    title: str
    description: str
    is_cancelled: bool


class EventClassifier:
    """Derives type, opponent and cancellation state from free-text fields."""

    VS_PATTERN = re.compile(r'\b(?:vs\.?|versus)\s+([^,]+)', re.IGNORECASE)
    HOME_AWAY_PATTERN = re.compile(
        r'\((?:home|away)\)\s*(?:vs\.?|versus)\s+([^,]+)', re.IGNORECASE
    )
    AT_PATTERN = re.compile(r'\b([^@]+?)\s+(?:at|@)\s+([^,]+)', re.IGNORECASE)
    GAME_KEYWORDS = re.compile(r'\b(?:game|match|scrimmage)\b', re.IGNORECASE)
    PRACTICE_KEYWORDS = re.compile(r'\bpractice\b', re.IGNORECASE)
    TOURNAMENT_KEYWORDS = re.compile(r'\btournament\b', re.IGNORECASE)
    CANCELLATION_KEYWORDS = re.compile(
        r'\b(?:cancel+ed|cancel|postponed?|rescheduled?)\b', re.IGNORECASE
    )
    TRAILING_QUALIFIER = re.compile(r'\s*\((?:home|away)\)\s*$', re.IGNORECASE)

    def classify(
        self,
        summary: str,
        description: str = '',
        status: Optional[str] = None,
        compose_title: bool = True
    ) -> Classification:
        """
        Classify one event.

        Args:
            summary: Event summary from the feed
            description: Event description from the feed
            status: iCalendar STATUS value, if any
            compose_title: Whether to build "Game vs X" titles and fold the
                summary into the description

        Returns:
            Classification for the event
        """
        summary = (summary or '').strip()
        description = (description or '').strip()

        event_type, opponent = self.detect_type(summary)

        if compose_title:
            title = self.compose_title(summary, event_type, opponent)
            full_description = self.compose_description(summary, description, opponent)
        else:
            title = summary or 'Untitled Event'
            full_description = description

        is_cancelled = (
            (status or '').upper() == 'CANCELLED'
            or self.is_cancelled(title, full_description, summary)
        )

        return Classification(
            event_type=event_type,
            opponent=opponent,
            title=title,
            description=full_description,
            is_cancelled=is_cancelled
        )

    def detect_type(self, summary: str):
        """
        Determine the event type and opponent from a summary.

        Returns:
            Tuple of (event_type, opponent or None)
        """
        vs_match = self.VS_PATTERN.search(summary)
        home_away_match = self.HOME_AWAY_PATTERN.search(summary)

        if vs_match or home_away_match or self.GAME_KEYWORDS.search(summary):
            opponent = None
            if vs_match:
                opponent = vs_match.group(1)
            elif home_away_match:
                opponent = home_away_match.group(1)
            else:
                at_match = self.AT_PATTERN.search(summary)
                if at_match:
                    opponent = at_match.group(2)
            return EVENT_TYPE_GAME, self._clean_opponent(opponent)

        if self.PRACTICE_KEYWORDS.search(summary):
            return EVENT_TYPE_PRACTICE, None

        if self.TOURNAMENT_KEYWORDS.search(summary):
            return EVENT_TYPE_TOURNAMENT, None

        at_match = self.AT_PATTERN.search(summary)
        if at_match:
            return EVENT_TYPE_GAME, self._clean_opponent(at_match.group(2))

        return EVENT_TYPE_EVENT, None

    @staticmethod
    def compose_title(summary: str, event_type: str, opponent: Optional[str]) -> str:
        if event_type == EVENT_TYPE_GAME and opponent:
            return f"Game vs {opponent}"
        return summary or event_type

    @staticmethod
    def compose_description(summary: str, description: str, opponent: Optional[str]) -> str:
        """Fold the summary and opponent into the description without repeating text."""
        result = description
        if summary and summary not in result:
            result = f"{summary}\n\n{result}" if result else summary

        if opponent and 'opponent' not in result.lower() and opponent not in result:
            result = f"{result}\n\nOpponent: {opponent}" if result else f"Opponent: {opponent}"

        return result

    def is_cancelled(self, *fields: str) -> bool:
        """Check free-text fields for a whole-word cancellation keyword."""
        return any(
            field and self.CANCELLATION_KEYWORDS.search(field)
            for field in fields
        )

    def _clean_opponent(self, opponent: Optional[str]) -> Optional[str]:
        if not opponent:
            return None
        opponent = self.TRAILING_QUALIFIER.sub('', opponent).strip(' -')
        return opponent or None
