"""
Named run profiles.

Three profiles mapping directly to RunnerSettings kwargs, trading run time
for tighter confidence intervals. Passes accumulate: a skill evaluated with
(100, 400) ends with 500 samples, and the early pass gives a quick first
ranking.
"""

import json
from typing import Dict, Any
from copy import deepcopy


# =============================================================================
# Profile Definitions
# =============================================================================

PROFILES: Dict[str, Dict[str, Any]] = {
    'quick': {
        'pass_budgets': [100],
        'timeout_s': 120.0,
        'min_samples': 25,
    },
    'standard': {
        'pass_budgets': [500],
        'timeout_s': 300.0,
        'min_samples': 25,
    },
    'thorough': {
        'pass_budgets': [100, 900, 2000],
        'timeout_s': 600.0,
        'min_samples': 25,
    },
}

PROFILE_NAMES = list(PROFILES.keys())


def get_profile(name: str) -> Dict[str, Any]:
    """
    Get a named profile as a dict of RunnerSettings kwargs.

    Args:
        name: Profile name (quick, standard, thorough)

    Returns:
        Dict of kwargs suitable for RunnerSettings.from_dict()

    Raises:
        ValueError: If profile name is not recognized
    """
    if name not in PROFILES:
        raise ValueError(
            f"Unknown profile '{name}'. Available: {', '.join(PROFILE_NAMES)}"
        )
    return deepcopy(PROFILES[name])


def apply_profile_overrides(
    profile: Dict[str, Any],
    overrides: Dict[str, Any],
) -> Dict[str, Any]:
    """
    Merge explicit overrides into a profile.

    Only non-None override values are applied.
    """
    merged = deepcopy(profile)
    for key, value in overrides.items():
        if value is not None:
            merged[key] = value
    return merged


def load_profile_from_json(path: str) -> Dict[str, Any]:
    """
    Load a custom profile from a JSON file.

    The JSON should contain RunnerSettings kwargs directly:
    {
        "pass_budgets": [200, 800],
        "concurrency": 4,
        "timeout_s": 300
    }
    """
    with open(path, 'r') as f:
        return json.load(f)
