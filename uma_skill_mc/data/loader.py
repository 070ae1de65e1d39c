"""
JSON loader for the static game tables.

Reads skill metadata, skill names, skill trigger data, course data and track
names from a data directory, and exposes the courses as a pandas table for
filtering.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import pandas as pd

from ..config import TRACK_NAME_TO_ID
from ..restrictions.settings import (
    distance_type_for,
    is_random_value,
    parse_distance_category,
    parse_distance_meters,
    parse_surface,
)
from ..types import CourseInfo, StaticData

logger = logging.getLogger(__name__)


# File name for each StaticData table
DATA_FILES = {
    'skill_meta': 'skill_meta.json',
    'skill_names': 'skillnames.json',
    'skill_data': 'skill_data.json',
    'course_data': 'course_data.json',
    'track_names': 'tracknames.json',
}

OPTIONAL_FILES = {'track_names'}

COURSE_COLUMNS = ['course_id', 'track_id', 'distance', 'surface', 'turn']


def _read_json(path: Path) -> Dict[str, Any]:
    with open(path, 'r', encoding='utf-8') as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError(f"{path.name} must contain a JSON object")
    return data


def load_static_data(data_dir: str) -> StaticData:
    """
    Load every static table from a directory.

    Args:
        data_dir: Directory holding skill_meta.json, skillnames.json,
            skill_data.json, course_data.json and optionally tracknames.json

    Returns:
        StaticData

    Raises:
        FileNotFoundError: If a required table is missing
    """
    root = Path(data_dir)
    tables: Dict[str, Dict[str, Any]] = {}

    for key, filename in DATA_FILES.items():
        path = root / filename
        if not path.exists():
            if key in OPTIONAL_FILES:
                tables[key] = {}
                continue
            raise FileNotFoundError(f"Missing static data file: {path}")
        tables[key] = _read_json(path)

    logger.info(
        f"Loaded static data from {root}: {len(tables['skill_meta'])} skills, "
        f"{len(tables['course_data'])} courses"
    )

    return StaticData(**tables)


def process_course(course_id: str, raw: Dict[str, Any]) -> CourseInfo:
    """Build a CourseInfo from a raw course record."""
    track_id = raw.get('raceTrackId')
    turn = raw.get('turn')
    return CourseInfo(
        course_id=str(course_id),
        track_id=int(track_id) if track_id not in (None, '') else None,
        distance=int(raw.get('distance') or 0),
        surface=int(raw.get('surface') or 0),
        turn=int(turn) if turn is not None else None,
        raw=dict(raw),
    )


def build_course_table(static_data: StaticData) -> pd.DataFrame:
    """
    Course table with one row per course.

    Returns:
        DataFrame with columns course_id, track_id, distance, surface, turn
        (track_id and turn are nullable integers)
    """
    rows = [
        {
            'course_id': info.course_id,
            'track_id': info.track_id,
            'distance': info.distance,
            'surface': info.surface,
            'turn': info.turn,
        }
        for info in (
            process_course(cid, raw)
            for cid, raw in static_data.course_data.items()
            if isinstance(raw, dict)
        )
    ]
    df = pd.DataFrame(rows, columns=COURSE_COLUMNS)
    df['track_id'] = df['track_id'].astype('Int64')
    df['turn'] = df['turn'].astype('Int64')
    return df


def resolve_track_id(track_name: str, static_data: Optional[StaticData] = None) -> Optional[int]:
    """
    Racecourse id for a track name (case-insensitive).

    Looks in the loaded track name table first, then the built-in map.
    """
    wanted = track_name.strip().lower()
    if static_data is not None:
        for track_id, names in static_data.track_names.items():
            if any(isinstance(n, str) and n.strip().lower() == wanted for n in names):
                return int(track_id)
    for name, track_id in TRACK_NAME_TO_ID.items():
        if name.lower() == wanted:
            return track_id
    return None


def find_matching_courses(
    static_data: StaticData,
    track_name: str,
    distance: Any,
    surface: Optional[str] = None,
    course_table: Optional[pd.DataFrame] = None,
) -> List[CourseInfo]:
    """
    Courses matching a track/distance/surface selection.

    Args:
        static_data: Loaded static tables
        track_name: Track name or '<Random>' for any track
        distance: Meters, a distance category ('<Sprint>'...) or '<Random>'
        surface: 'Turf', 'Dirt', '<Random>' or None for any surface
        course_table: Pre-built table from build_course_table

    Returns:
        Matching courses sorted by course id (empty when nothing matches)
    """
    df = course_table if course_table is not None else build_course_table(static_data)
    mask = pd.Series(True, index=df.index)

    if not is_random_value(track_name):
        track_id = resolve_track_id(track_name, static_data)
        if track_id is None:
            logger.warning(f"Unknown track name '{track_name}'")
            return []
        mask &= df['track_id'] == track_id

    category = parse_distance_category(distance)
    if category is not None:
        mask &= df['distance'].map(distance_type_for) == category
    elif not is_random_value(distance):
        meters = parse_distance_meters(distance)
        if meters is None:
            logger.warning(f"Unrecognised distance '{distance}'")
            return []
        mask &= df['distance'] == meters

    surface_value = parse_surface(surface)
    if surface_value is not None:
        mask &= df['surface'] == surface_value

    matched = df[mask.fillna(False).astype(bool)].sort_values('course_id')
    return [
        process_course(cid, static_data.course_data[cid])
        for cid in matched['course_id']
    ]
