"""Shared fixtures: a small static data set, scenarios and task builders."""

import json
from copy import deepcopy

import pytest

from uma_skill_mc.config import scenario_from_dict
from uma_skill_mc.types import (
    Combo,
    CourseInfo,
    HorseDefinition,
    RaceParameters,
    SimOptions,
    SimulationTask,
    StaticData,
)


SKILL_META = {
    '200011': {'baseCost': 170, 'groupId': '20001', 'order': 1},
    '200012': {'baseCost': 170, 'groupId': '20001', 'order': 2},
    '200031': {'baseCost': 120, 'groupId': '20003', 'order': 1},
    '200041': {'baseCost': 110, 'groupId': '20004', 'order': 1},
    '200051': {'baseCost': 100, 'groupId': '20005', 'order': 1},
    '200061': {'baseCost': 130, 'groupId': '20006', 'order': 1},
    '200071': {'baseCost': 160, 'groupId': '20007', 'order': 1},
    '200081': {'groupId': '20008', 'order': 1},
    '200091': {'baseCost': 50, 'groupId': '20001', 'order': 3},
    '100011': {'baseCost': 0, 'groupId': '10001', 'order': 1},
    '900011': {'baseCost': 200, 'groupId': '90001', 'order': 1},
}

SKILL_NAMES = {
    '200011': ['Corner Adept ◎'],
    '200012': ['Corner Adept ○'],
    '200031': ['Dirt Runner'],
    '200041': ['Rainy Days ○'],
    '200051': ['Right-Handed ○'],
    '200061': ['Leader\'s Pride'],
    '200071': ['Long Shot'],
    '200081': ['Straightaway Adept'],
    '200091': ['Corner Averse ×'],
    '100011': ['Blazing Unique'],
    '900011': ['Blazing Unique'],
}

SKILL_DATA = {
    '200011': {'alternatives': [{'condition': 'is_finalcorner==1&corner!=0', 'precondition': ''}]},
    '200012': {'alternatives': [{'condition': 'is_finalcorner==1&corner!=0', 'precondition': ''}]},
    '200031': {'alternatives': [{'condition': 'ground_type==2', 'precondition': ''}]},
    '200041': {'alternatives': [{'condition': 'weather==3', 'precondition': ''}]},
    '200051': {'alternatives': [{'condition': 'rotation==1', 'precondition': ''}]},
    '200061': {'alternatives': [{'condition': 'running_style==1&phase==0', 'precondition': ''}]},
    '200071': {'alternatives': [
        {'condition': 'distance_type==4&ground_type==1@distance_type==4&ground_type==2',
         'precondition': ''},
    ]},
    '200081': {'alternatives': [{'condition': 'straight_random==1', 'precondition': ''}]},
}

COURSE_DATA = {
    '10101': {'raceTrackId': 10006, 'distance': 2400, 'surface': 1, 'turn': 2},
    '10102': {'raceTrackId': 10006, 'distance': 1600, 'surface': 1, 'turn': 2},
    '10201': {'raceTrackId': 10005, 'distance': 2500, 'surface': 1, 'turn': 1},
    '10202': {'raceTrackId': 10005, 'distance': 1200, 'surface': 2, 'turn': 1},
    '10301': {'raceTrackId': 10008, 'distance': 3000, 'surface': 1},
    '10401': {'raceTrackId': 10009, 'distance': 2400, 'surface': 1, 'turn': 1},
}

TRACK_NAMES = {
    '10005': ['中山', 'Nakayama'],
    '10006': ['東京', 'Tokyo'],
    '10008': ['京都', 'Kyoto'],
    '10009': ['阪神', 'Hanshin'],
}

BASE_SCENARIO = {
    'skills': {
        'Corner Adept ○': {'discount': 10},
        'Straightaway Adept': {'discount': 0},
    },
    'track': {
        'trackName': 'Tokyo',
        'distance': 2400,
        'surface': 'Turf',
        'groundCondition': 'Firm',
        'weather': 'Sunny',
        'season': 'Spring',
        'numUmas': 18,
    },
    'uma': {
        'speed': 1200,
        'stamina': 1000,
        'power': 900,
        'guts': 400,
        'wisdom': 600,
        'strategy': 'Pace Chaser',
        'mood': 2,
        'skills': [],
    },
    'deterministic': False,
    'confidenceInterval': 95,
}


@pytest.fixture
def static_tables():
    """Raw static tables keyed like StaticData fields."""
    return {
        'skill_meta': deepcopy(SKILL_META),
        'skill_names': deepcopy(SKILL_NAMES),
        'skill_data': deepcopy(SKILL_DATA),
        'course_data': deepcopy(COURSE_DATA),
        'track_names': deepcopy(TRACK_NAMES),
    }


@pytest.fixture
def static_data(static_tables):
    return StaticData(**static_tables)


@pytest.fixture
def data_dir(tmp_path, static_tables):
    """Directory with the static tables written as JSON files."""
    files = {
        'skill_meta': 'skill_meta.json',
        'skill_names': 'skillnames.json',
        'skill_data': 'skill_data.json',
        'course_data': 'course_data.json',
        'track_names': 'tracknames.json',
    }
    for key, filename in files.items():
        (tmp_path / filename).write_text(
            json.dumps(static_tables[key], ensure_ascii=False), encoding='utf-8'
        )
    return tmp_path


@pytest.fixture
def scenario_dict():
    return deepcopy(BASE_SCENARIO)


@pytest.fixture
def make_scenario():
    """Build a ScenarioConfig from the base scenario with track/uma/top-level overrides."""
    def _make(track=None, uma=None, skills=None, **top):
        data = deepcopy(BASE_SCENARIO)
        if track:
            data['track'].update(track)
        if uma:
            data['uma'].update(uma)
        if skills is not None:
            data['skills'] = skills
        data.update(top)
        return scenario_from_dict(data)
    return _make


@pytest.fixture
def make_task():
    """Build a SimulationTask over one or more simple combos."""
    def _make(skill_name='Test Skill', skill_id='200012', combos=None, seed=7,
              base_skills=None, group_ids=None, group_id='20001'):
        course = CourseInfo(
            course_id='10101', track_id=10006, distance=2400, surface=1, turn=2,
            raw=dict(COURSE_DATA['10101']),
        )
        if combos is None:
            combos = [Combo(0, 2, 1, 1, 1, samples=5, weight=1.0)]
        return SimulationTask(
            skill_id=skill_id,
            skill_name=skill_name,
            group_id=group_id,
            courses=[course],
            race_params=RaceParameters(mood=2, ground_condition=1, weather=1, season=1),
            base_uma=HorseDefinition(
                speed=1200, stamina=1000, power=900, guts=400, wisdom=600,
                strategy='Senkou', distance_aptitude='A', surface_aptitude='A',
                strategy_aptitude='A', skills=list(base_skills or []),
            ),
            sim_options=SimOptions.for_mode(False, seed=seed),
            combos=combos,
            group_ids=dict(group_ids or {}),
        )
    return _make
