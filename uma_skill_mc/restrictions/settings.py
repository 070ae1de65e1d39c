"""
Scenario value parsing and derivation of the static settings that skill
restrictions are evaluated against.
"""

from typing import Any, List, Optional

from ..config import (
    CONDITION_MAP,
    DISTANCE_CATEGORIES,
    RANDOM_VALUE,
    SEASON_MAP,
    STRATEGY_ALIASES,
    STRATEGY_TO_RUNNING_STYLE,
    SURFACE_MAP,
    TRACK_NAME_TO_ID,
    WEATHER_MAP,
)
from ..types import CourseInfo, CurrentSettings, ScenarioConfig, ScenarioError


def is_random_value(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    return value.strip().lower() == RANDOM_VALUE.lower()


def parse_distance_category(distance: Any) -> Optional[int]:
    """Distance type of '<Sprint>'..'<Long>', None for anything else."""
    if not isinstance(distance, str):
        return None
    return DISTANCE_CATEGORIES.get(distance.strip().lower())


def parse_distance_meters(distance: Any) -> Optional[int]:
    """Concrete distance in meters, None for categories, '<Random>' and blanks."""
    if distance is None or isinstance(distance, bool):
        return None
    if isinstance(distance, (int, float)):
        return int(distance)
    text = str(distance).strip().lower().rstrip('m')
    if text.isdigit():
        return int(text)
    return None


def distance_type_for(meters: int) -> int:
    """1=sprint (<=1400), 2=mile (<=1800), 3=medium (<=2400), 4=long."""
    if meters <= 1400:
        return 1
    if meters <= 1800:
        return 2
    if meters <= 2400:
        return 3
    return 4


def is_basis_distance(meters: int) -> bool:
    return meters % 400 == 0


def _lookup(mapping, value: Optional[str], label: str) -> int:
    key = (value or '').strip().lower()
    if key not in mapping:
        raise ScenarioError(
            f"Unknown {label} '{value}'. Expected one of: {', '.join(sorted(mapping))}"
        )
    return mapping[key]


def parse_ground_condition(value: str) -> int:
    return _lookup(CONDITION_MAP, value, 'ground condition')


def parse_weather(value: str) -> int:
    return _lookup(WEATHER_MAP, value, 'weather')


def parse_season(value: str) -> int:
    return _lookup(SEASON_MAP, value, 'season')


def parse_surface(value: Optional[str]) -> Optional[int]:
    """1=turf, 2=dirt; None when unset, random or unrecognised."""
    if not value or is_random_value(value):
        return None
    return SURFACE_MAP.get(value.strip().lower())


def parse_strategy_name(value: str) -> str:
    """Canonical engine strategy name ('Nige', 'Senkou', ...) for any alias."""
    return STRATEGY_ALIASES.get((value or '').strip().lower(), value)


def running_style_for(strategy: Optional[str]) -> int:
    if not strategy:
        return 3
    return STRATEGY_TO_RUNNING_STYLE.get(parse_strategy_name(strategy), 3)


def _consensus(values: List[Optional[int]]) -> Optional[int]:
    distinct = set(values)
    if len(distinct) == 1:
        return distinct.pop()
    return None


def settings_from_scenario(
    scenario: ScenarioConfig,
    courses: Optional[List[CourseInfo]] = None,
) -> CurrentSettings:
    """
    Derive the statically-known facts of a scenario.

    Course facts (distance type, basis distance, surface, rotation, track) come
    from the resolved courses when they all agree, else from the track config
    where it is concrete. Random race conditions map to None.

    Args:
        scenario: Scenario being simulated
        courses: Courses the run will sample from

    Returns:
        CurrentSettings for restriction checks
    """
    track = scenario.track
    courses = courses or []

    category = parse_distance_category(track.distance)
    meters = parse_distance_meters(track.distance)

    if courses:
        distance_type = _consensus([distance_type_for(c.distance) for c in courses])
        basis = _consensus([int(is_basis_distance(c.distance)) for c in courses])
        basis_distance = None if basis is None else bool(basis)
        ground_type = _consensus([c.surface for c in courses])
        rotation = _consensus([c.turn for c in courses])
        track_id = _consensus([c.track_id for c in courses])
    else:
        distance_type = category if category is not None else (
            distance_type_for(meters) if meters is not None else None
        )
        basis_distance = is_basis_distance(meters) if meters is not None else None
        ground_type = parse_surface(track.surface)
        rotation = None
        track_id = None
        if track.track_name and not is_random_value(track.track_name):
            track_id = TRACK_NAME_TO_ID.get(track.track_name)

    if distance_type is None and category is not None:
        distance_type = category

    def _condition(value, parse):
        if not value or is_random_value(value):
            return None
        return parse(value)

    return CurrentSettings(
        distance_type=distance_type,
        ground_condition=_condition(track.ground_condition, parse_ground_condition),
        ground_type=ground_type,
        is_basis_distance=basis_distance,
        rotation=rotation,
        running_style=running_style_for(scenario.uma.strategy),
        season=_condition(track.season, parse_season),
        track_id=track_id,
        weather=_condition(track.weather, parse_weather),
    )
