"""Unit tests for EventClassifier."""
import pytest

from processor.event_classifier import (
    EVENT_TYPE_EVENT,
    EVENT_TYPE_GAME,
    EVENT_TYPE_PRACTICE,
    EVENT_TYPE_TOURNAMENT,
    EventClassifier,
)


@pytest.fixture
def classifier():
    return EventClassifier()


@pytest.mark.parametrize('summary,event_type,opponent', [
    ('Eagles vs Hawks', EVENT_TYPE_GAME, 'Hawks'),
    ('Eagles vs. Hawks', EVENT_TYPE_GAME, 'Hawks'),
    ('Eagles versus Hawks, Field 2', EVENT_TYPE_GAME, 'Hawks'),
    ('(Home) vs Lions', EVENT_TYPE_GAME, 'Lions'),
    ('Scrimmage', EVENT_TYPE_GAME, None),
    ('Game at Lincoln Park', EVENT_TYPE_GAME, 'Lincoln Park'),
    ('Eagles at Tigers', EVENT_TYPE_GAME, 'Tigers'),
    ('Team Practice', EVENT_TYPE_PRACTICE, None),
    ('Practice at Lincoln Park', EVENT_TYPE_PRACTICE, None),
    ('Spring Tournament', EVENT_TYPE_TOURNAMENT, None),
    ('Team Photos', EVENT_TYPE_EVENT, None),
])
def test_detect_type(classifier, summary, event_type, opponent):
    """Test event type and opponent detection."""
    assert classifier.detect_type(summary) == (event_type, opponent)


class TestEventClassifier:
    """Test cases for EventClassifier.classify."""

    def test_game_title_composed(self, classifier):
        """Test games with an opponent get a 'Game vs X' title."""
        result = classifier.classify('Eagles vs Hawks', 'Bring water')

        assert result.title == 'Game vs Hawks'
        assert result.event_type == EVENT_TYPE_GAME
        assert result.opponent == 'Hawks'

    def test_description_gets_summary_and_opponent(self, classifier):
        """Test the summary and opponent are folded into the description."""
        result = classifier.classify('Eagles vs Hawks', 'Bring water')

        assert result.description == 'Eagles vs Hawks\n\nBring water'

    def test_opponent_line_added_when_absent(self, classifier):
        """Test an 'Opponent:' line is appended when not mentioned."""
        description = classifier.compose_description('', 'Bring water', 'Hawks')

        assert description == 'Bring water\n\nOpponent: Hawks'

    def test_opponent_line_not_repeated(self, classifier):
        """Test no 'Opponent:' line when the description already has one."""
        description = classifier.compose_description('', 'Opponent: Hawks FC', 'Hawks')

        assert description == 'Opponent: Hawks FC'

    def test_non_game_keeps_summary(self, classifier):
        """Test non-game events keep their summary as title."""
        result = classifier.classify('Team Practice', 'Cones and balls')

        assert result.title == 'Team Practice'
        assert result.description == 'Team Practice\n\nCones and balls'

    def test_empty_summary_uses_type(self, classifier):
        """Test an empty summary falls back to the event type."""
        result = classifier.classify('', '')

        assert result.title == EVENT_TYPE_EVENT

    def test_compose_title_disabled(self, classifier):
        """Test platforms can keep raw titles and descriptions."""
        result = classifier.classify('Eagles vs Hawks', 'Bring water', compose_title=False)

        assert result.title == 'Eagles vs Hawks'
        assert result.description == 'Bring water'

    @pytest.mark.parametrize('summary,description', [
        ('CANCELLED - Eagles vs Hawks', ''),
        ('Practice', 'Postponed due to weather'),
        ('Game', 'This game was rescheduled'),
        ('Practice canceled', ''),
    ])
    def test_cancellation_keywords(self, classifier, summary, description):
        """Test cancellation keywords set is_cancelled."""
        assert classifier.classify(summary, description).is_cancelled is True

    @pytest.mark.parametrize('summary,description', [
        ('Eagles vs Hawks', 'Regular season game'),
        ('Practice', 'Cancellation policy applies'),
    ])
    def test_no_cancellation_keyword(self, classifier, summary, description):
        """Test text without a whole-word keyword is not cancelled."""
        assert classifier.classify(summary, description).is_cancelled is False

    def test_status_cancelled(self, classifier):
        """Test STATUS:CANCELLED marks the event cancelled."""
        result = classifier.classify('Eagles vs Hawks', '', status='CANCELLED')

        assert result.is_cancelled is True

    def test_cancellation_detected_without_title_composition(self, classifier):
        """Test cancellation detection runs for raw-title platforms."""
        result = classifier.classify('Cancelled: Picnic', '', compose_title=False)

        assert result.is_cancelled is True
