"""Restriction algebra over static skill trigger conditions."""

from .parser import (
    parse_condition_term,
    parse_and_branch,
    merge_restrictions,
    intersect_restrictions,
    extract_condition,
    extract_skill_restrictions,
)
from .trigger import can_trigger, can_skill_trigger
from .settings import (
    settings_from_scenario,
    distance_type_for,
    is_basis_distance,
    is_random_value,
    parse_distance_category,
)

__all__ = [
    "parse_condition_term",
    "parse_and_branch",
    "merge_restrictions",
    "intersect_restrictions",
    "extract_condition",
    "extract_skill_restrictions",
    "can_trigger",
    "can_skill_trigger",
    "settings_from_scenario",
    "distance_type_for",
    "is_basis_distance",
    "is_random_value",
    "parse_distance_category",
]
