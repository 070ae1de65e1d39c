"""Static data loading, course lookup and the skill catalog."""

from .loader import (
    load_static_data,
    build_course_table,
    find_matching_courses,
    process_course,
    resolve_track_id,
)
from .skills import SkillCatalog, discounted_cost, normalize_skill_name

__all__ = [
    "load_static_data",
    "build_course_table",
    "find_matching_courses",
    "process_course",
    "resolve_track_id",
    "SkillCatalog",
    "discounted_cost",
    "normalize_skill_name",
]
