"""Unit tests for PlaceNameStrategy."""
import pytest

from geocoding.place_names import PlaceNameStrategy


@pytest.fixture
def strategy():
    return PlaceNameStrategy()


@pytest.mark.parametrize('name,address,valid', [
    ('Lincoln Park', '1200 W Lincoln Ave Milwaukee', True),
    ('Homestead High School', '5000 W Mequon Rd Mequon', True),
    ('123 Main Street', '123 Main St Grafton', False),
    ('W62N570 Washington Ave', 'W62N570 Washington Ave Cedarburg', False),
    ('Hwy 60', 'Hwy 60 Grafton', False),
    ('Grafton', '1200 Beech St Grafton WI', False),
    ('Grafton', 'Lincoln Park Milwaukee', True),
    ('Lincoln Park', 'lincoln park', False),
    ('', 'anything', False),
    (None, 'anything', False),
])
def test_is_valid_place_name(strategy, name, address, valid):
    """Test address-like and generic names are rejected."""
    assert strategy.is_valid_place_name(name, address) is valid


def test_pick_component_name(strategy):
    """Test the first point-of-interest component is chosen."""
    components = [
        {'long_name': '1200', 'types': ['street_number']},
        {'long_name': 'Lincoln Park', 'types': ['park', 'point_of_interest']},
        {'long_name': 'Milwaukee', 'types': ['locality', 'political']},
    ]

    assert strategy.pick_component_name(components) == 'Lincoln Park'


def test_pick_component_name_none(strategy):
    """Test components without a point of interest give no name."""
    components = [{'long_name': 'Milwaukee', 'types': ['locality', 'political']}]

    assert strategy.pick_component_name(components) is None


def test_pick_nearby_candidate_skips_generic(strategy):
    """Test generic-typed and address-like candidates are skipped."""
    candidates = [
        {'name': 'Milwaukee', 'types': ['locality', 'political']},
        {'name': '123 Main Street', 'types': ['establishment']},
        {'name': 'Kern Park', 'types': ['park', 'establishment']},
    ]

    chosen = strategy.pick_nearby_candidate(candidates, '3500 N Humboldt Blvd Milwaukee')

    assert chosen['name'] == 'Kern Park'


def test_custom_city_list():
    """Test the strategy can be tuned with a different city list."""
    strategy = PlaceNameStrategy(generic_city_names=['springfield'])

    assert strategy.is_valid_place_name('Springfield', '10 Elm St Springfield') is False
    assert strategy.is_valid_place_name('Grafton', '10 Elm St Grafton') is True
