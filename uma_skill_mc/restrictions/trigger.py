"""Static trigger check of a restriction set against scenario settings."""

from typing import Any, Dict, Optional

from ..types import CurrentSettings, RestrictionSet
from .parser import extract_skill_restrictions

FRONT_RUNNER = 1
RUNAWAY = 5


def can_trigger(restrictions: RestrictionSet, settings: CurrentSettings) -> bool:
    """
    Return False only when the skill provably cannot fire.

    An empty allowed set is impossible regardless of settings. A setting of
    None (random dimension) never refutes a restriction. Runaway horses can
    use front-runner skills because no runaway-specific skills exist.
    """
    for field_name, allowed in restrictions.allowed.items():
        if not allowed:
            return False
        current = settings.value_for(field_name)
        if current is None or current in allowed:
            continue
        if field_name == 'running_style' and current == RUNAWAY and FRONT_RUNNER in allowed:
            continue
        return False
    return True


def can_skill_trigger(entry: Optional[Dict[str, Any]], settings: CurrentSettings) -> bool:
    """can_trigger for a raw skill data entry; skills without data always pass."""
    if not entry:
        return True
    return can_trigger(extract_skill_restrictions(entry), settings)
