"""
Configuration management for the skill benefit estimator.

Game constant maps, default occurrence tables for random race conditions,
and scenario JSON loading utilities.
"""

import json
from typing import Dict, Any, List, Optional

from .types import ScenarioConfig, SkillConfig, TrackConfig, UmaConfig, WeightedPool


# =============================================================================
# Game Constants
# =============================================================================

# 1=Front Runner (Nige), 2=Pace Chaser (Senkou), 3=Late Surger (Sasi),
# 4=End Closer (Oikomi), 5=Runaway (Oonige)
STRATEGY_TO_RUNNING_STYLE: Dict[str, int] = {
    'Front Runner': 1,
    'Nige': 1,
    'Pace Chaser': 2,
    'Senkou': 2,
    'Late Surger': 3,
    'Sasi': 3,
    'End Closer': 4,
    'Oikomi': 4,
    'Runaway': 5,
    'Oonige': 5,
}

# Canonical engine strategy name for each accepted alias
STRATEGY_ALIASES: Dict[str, str] = {
    'front runner': 'Nige',
    'nige': 'Nige',
    'pace chaser': 'Senkou',
    'senkou': 'Senkou',
    'late surger': 'Sasi',
    'sasi': 'Sasi',
    'end closer': 'Oikomi',
    'oikomi': 'Oikomi',
    'runaway': 'Oonige',
    'oonige': 'Oonige',
}

TRACK_NAME_TO_ID: Dict[str, int] = {
    'Sapporo': 10001,
    'Hakodate': 10002,
    'Niigata': 10003,
    'Fukushima': 10004,
    'Nakayama': 10005,
    'Tokyo': 10006,
    'Chukyo': 10007,
    'Kyoto': 10008,
    'Hanshin': 10009,
    'Kokura': 10010,
    'Ooi': 10101,
}

CONDITION_MAP: Dict[str, int] = {
    'firm': 1,
    'good': 2,
    'soft': 3,
    'heavy': 4,
}

WEATHER_MAP: Dict[str, int] = {
    'sunny': 1,
    'cloudy': 2,
    'rainy': 3,
    'snowy': 4,
}

SEASON_MAP: Dict[str, int] = {
    'spring': 1,
    'summer': 2,
    'autumn': 3,
    'fall': 3,
    'winter': 4,
    'sakura': 5,
}

SURFACE_MAP: Dict[str, int] = {
    'turf': 1,
    'dirt': 2,
}

# Largest enumerable value per restriction field; track_id never expands
FIELD_MAX_VALUES: Dict[str, int] = {
    'distance_type': 4,
    'ground_condition': 4,
    'ground_type': 2,
    'is_basis_distance': 1,
    'rotation': 4,
    'running_style': 5,
    'season': 5,
    'weather': 4,
}

RANDOM_VALUE = '<Random>'
DISTANCE_CATEGORIES: Dict[str, int] = {
    '<sprint>': 1,
    '<mile>': 2,
    '<medium>': 3,
    '<long>': 4,
}

# Skills never counted as prerequisites when pricing an upgrade
SKILLS_TO_IGNORE: List[str] = [
    '99 Problems',
    'G1 Averseness',
    'Gatekept',
    'Inner Post Averseness',
    'Outer Post Averseness',
    'Paddock Fright',
    'Wallflower',
    "You're Not the Boss of Me!",
    '♡ 3D Nail Art',
]

DEFAULT_BASE_COST = 200
DEFAULT_NUM_UMAS = 18
DEFAULT_CONFIDENCE_INTERVAL = 95.0
MOODS: List[int] = [-2, -1, 0, 1, 2]

DEFAULT_UMA_STATS: Dict[str, Any] = {
    'speed': 1200,
    'stamina': 1200,
    'power': 800,
    'guts': 400,
    'wisdom': 400,
    'distance_aptitude': 'A',
    'surface_aptitude': 'A',
    'style_aptitude': 'A',
}


# =============================================================================
# Allocation Defaults
# =============================================================================

# Floor on samples per course and per combo
MIN_SAMPLES = 25

# Floor on iterations of any single engine call; a single iteration samples
# the trigger position only once
MIN_SAMPLES_PER_CALL = 2

WORKER_TIMEOUT_S = 300.0


# =============================================================================
# Occurrence Tables
# =============================================================================

SEASON_OCCURRENCE: Dict[int, float] = {
    1: 40,  # spring
    2: 22,  # summer
    3: 12,  # autumn
    4: 26,  # winter
}

WEATHER_OCCURRENCE: Dict[int, float] = {
    1: 58,  # sunny
    2: 30,  # cloudy
    3: 11,  # rainy
    4: 1,   # snowy
}

GROUND_CONDITION_OCCURRENCE: Dict[int, float] = {
    1: 60,  # firm
    2: 20,  # good
    3: 12,  # soft
    4: 8,   # heavy
}


def default_pool(dimension: str) -> WeightedPool:
    """
    Weighted pool used for a random race condition.

    Args:
        dimension: 'season', 'weather', 'ground_condition' or 'mood'

    Returns:
        Fresh WeightedPool (mood is uniform over -2..2)

    Raises:
        ValueError: If dimension is not a known race condition
    """
    if dimension == 'season':
        return WeightedPool.from_counts(SEASON_OCCURRENCE)
    if dimension == 'weather':
        return WeightedPool.from_counts(WEATHER_OCCURRENCE)
    if dimension == 'ground_condition':
        return WeightedPool.from_counts(GROUND_CONDITION_OCCURRENCE)
    if dimension == 'mood':
        return WeightedPool(values=list(MOODS))
    raise ValueError(f"Unknown race condition '{dimension}'")


# =============================================================================
# JSON Loading Utilities
# =============================================================================

def scenario_from_dict(data: Dict[str, Any]) -> ScenarioConfig:
    """
    Build a ScenarioConfig from the camelCase scenario dict.

    Expected format:
    {
        "skills": {"Corner Adept": {"discount": 10}, ...},
        "track": {
            "trackName": "Tokyo", "distance": 2400, "surface": "Turf",
            "groundCondition": "Firm", "weather": "<Random>", "season": "Spring"
        },
        "uma": {
            "speed": 1200, "stamina": 1000, ..., "strategy": "Pace Chaser",
            "skills": ["Professor of Curvature"], "unique": "..."
        },
        "deterministic": false,
        "confidenceInterval": 95
    }
    """
    track = data.get('track') or {}
    uma = data.get('uma') or {}

    skills = {
        name: SkillConfig(
            discount=(entry or {}).get('discount'),
            default=(entry or {}).get('default'),
        )
        for name, entry in (data.get('skills') or {}).items()
    }

    return ScenarioConfig(
        skills=skills,
        track=TrackConfig(
            course_id=_optional_str(track.get('courseId')),
            track_name=track.get('trackName'),
            distance=track.get('distance'),
            surface=track.get('surface'),
            ground_condition=track.get('groundCondition'),
            weather=track.get('weather'),
            season=track.get('season'),
            num_umas=track.get('numUmas'),
        ),
        uma=UmaConfig(
            speed=uma.get('speed'),
            stamina=uma.get('stamina'),
            power=uma.get('power'),
            guts=uma.get('guts'),
            wisdom=uma.get('wisdom'),
            strategy=uma.get('strategy'),
            distance_aptitude=uma.get('distanceAptitude'),
            surface_aptitude=uma.get('surfaceAptitude'),
            style_aptitude=uma.get('styleAptitude'),
            mood=uma.get('mood'),
            skills=list(uma.get('skills') or []),
            unique=uma.get('unique'),
        ),
        deterministic=bool(data.get('deterministic', False)),
        confidence_interval=float(
            data.get('confidenceInterval', DEFAULT_CONFIDENCE_INTERVAL)
        ),
    )


def scenario_to_dict(scenario: ScenarioConfig) -> Dict[str, Any]:
    """Inverse of scenario_from_dict; None fields are omitted."""
    track = scenario.track
    uma = scenario.uma

    def _compact(d: Dict[str, Any]) -> Dict[str, Any]:
        return {k: v for k, v in d.items() if v is not None}

    return {
        'skills': {
            name: _compact({'discount': cfg.discount, 'default': cfg.default})
            for name, cfg in scenario.skills.items()
        },
        'track': _compact({
            'courseId': track.course_id,
            'trackName': track.track_name,
            'distance': track.distance,
            'surface': track.surface,
            'groundCondition': track.ground_condition,
            'weather': track.weather,
            'season': track.season,
            'numUmas': track.num_umas,
        }),
        'uma': _compact({
            'speed': uma.speed,
            'stamina': uma.stamina,
            'power': uma.power,
            'guts': uma.guts,
            'wisdom': uma.wisdom,
            'strategy': uma.strategy,
            'distanceAptitude': uma.distance_aptitude,
            'surfaceAptitude': uma.surface_aptitude,
            'styleAptitude': uma.style_aptitude,
            'mood': uma.mood,
            'skills': list(uma.skills),
            'unique': uma.unique,
        }),
        'deterministic': scenario.deterministic,
        'confidenceInterval': scenario.confidence_interval,
    }


def load_scenario_from_json(path: str) -> ScenarioConfig:
    """Load a scenario from a JSON file (see scenario_from_dict for the format)."""
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    return scenario_from_dict(data)


def save_scenario_to_json(scenario: ScenarioConfig, path: str):
    """Save scenario to JSON file."""
    with open(path, 'w', encoding='utf-8') as f:
        json.dump(scenario_to_dict(scenario), f, indent=2, ensure_ascii=False)


def create_sample_scenario_json(path: str = 'scenario_sample.json'):
    """Create a sample scenario JSON file for reference."""
    sample = {
        'skills': {
            'Corner Adept ○': {'discount': 10},
            'Straightaway Adept': {'discount': 0},
            'Right-Handed ○': {'discount': 30},
        },
        'track': {
            'trackName': 'Tokyo',
            'distance': 2400,
            'surface': 'Turf',
            'groundCondition': 'Firm',
            'weather': RANDOM_VALUE,
            'season': RANDOM_VALUE,
            'numUmas': 18,
        },
        'uma': {
            'speed': 1200,
            'stamina': 1000,
            'power': 900,
            'guts': 400,
            'wisdom': 600,
            'strategy': 'Pace Chaser',
            'distanceAptitude': 'A',
            'surfaceAptitude': 'A',
            'styleAptitude': 'A',
            'skills': [],
        },
        'deterministic': False,
        'confidenceInterval': 95,
    }

    with open(path, 'w', encoding='utf-8') as f:
        json.dump(sample, f, indent=2, ensure_ascii=False)

    print(f"Sample scenario JSON saved to {path}")


def _optional_str(value: Optional[Any]) -> Optional[str]:
    if value is None or value == '':
        return None
    return str(value)
