"""
Worker-side execution of one skill task.

Runs inside a child process: builds the actor pair, calls the race engine
once per combo and reports back over a pipe. The coordinator never calls
the engine itself.

Message protocol (child -> parent), each a dict with a 'kind' key:
- partial: {'kind', 'skill', 'combo_index', 'values', 'weight'} after each combo
- done:    {'kind', 'skill', 'values', 'weights'} (or 'summary' when raw
           results were not requested)
- error:   {'kind', 'skill', 'error'}
"""

import importlib
import logging
import time
from dataclasses import replace
from typing import Any, Callable, Dict, List, Optional, Union

from ..config import MIN_SAMPLES_PER_CALL
from ..metrics.stats import compute_stats
from ..types import (
    CourseInfo,
    HorseDefinition,
    RaceParameters,
    RawResultSet,
    SimOptions,
    SimulationTask,
)

logger = logging.getLogger(__name__)

# compare(samples, course, race_params, base_actor, actor_with_skill, options) -> deltas
EngineFn = Callable[
    [int, CourseInfo, RaceParameters, HorseDefinition, HorseDefinition, SimOptions],
    List[float],
]
EngineRef = Union[EngineFn, str]


def resolve_engine(engine: EngineRef) -> EngineFn:
    """
    Resolve an engine reference to a callable.

    Args:
        engine: A callable, or an import path 'package.module:function'

    Returns:
        Engine callable

    Raises:
        ValueError: If a string reference is malformed or does not name a callable
    """
    if callable(engine):
        return engine
    if not isinstance(engine, str) or ':' not in engine:
        raise ValueError(
            f"Engine must be a callable or 'module:function' path, got {engine!r}"
        )
    module_name, _, attr = engine.partition(':')
    module = importlib.import_module(module_name)
    fn = getattr(module, attr, None)
    if not callable(fn):
        raise ValueError(f"Engine '{engine}' does not name a callable")
    return fn


def actor_with_skill(task: SimulationTask) -> HorseDefinition:
    """
    Base actor with the candidate substituted into its ability group.

    Owned skills sharing the candidate's group are removed before the
    candidate is appended.
    """
    kept = [
        skill_id for skill_id in task.base_uma.skills
        if skill_id != task.skill_id
        and (task.group_id is None or task.group_ids.get(skill_id) != task.group_id)
    ]
    kept.append(task.skill_id)
    return task.base_uma.with_skills(kept)


def run_skill_task(
    task: SimulationTask,
    engine: EngineFn,
    on_partial: Optional[Callable[[int, List[float], float], None]] = None,
) -> RawResultSet:
    """
    Evaluate one skill over all of its combos.

    Each combo is one engine call with at least MIN_SAMPLES_PER_CALL
    iterations. When a seed is set, each call's seed is offset by the samples
    already issued so no two calls reuse a seed sequence.

    Args:
        task: Task to run
        engine: Race engine
        on_partial: Called with (combo_index, values, weight) after each combo

    Returns:
        RawResultSet of all runs, weighted by combo

    Raises:
        ValueError: If the engine returns no values for a call
    """
    base = task.base_uma
    with_skill = actor_with_skill(task)
    results = RawResultSet()
    seed_offset = 0

    for combo_index, combo in enumerate(task.combos):
        race_params = replace(
            task.race_params,
            mood=combo.mood,
            season=combo.season,
            weather=combo.weather,
            ground_condition=combo.ground_condition,
        )
        samples = max(combo.samples, MIN_SAMPLES_PER_CALL)
        options = task.sim_options
        if options.seed is not None:
            options = options.with_seed(options.seed + seed_offset)
        seed_offset += samples

        values = [
            float(v) for v in engine(
                samples,
                task.courses[combo.course_index],
                race_params,
                base,
                with_skill,
                options,
            )
        ]
        if not values:
            raise ValueError(
                f"Engine returned no results for combo {combo_index} of '{task.skill_name}'"
            )

        results.extend(values, combo.weight)
        if on_partial is not None:
            on_partial(combo_index, values, combo.weight)

    return results


def worker_main(conn, task: SimulationTask, engine_ref: EngineRef) -> None:
    """
    Child-process entry point: run the task and report over conn.

    Any exception is reported as an error message so the parent can attribute
    it to the skill.
    """
    start = time.perf_counter()
    try:
        engine = resolve_engine(engine_ref)

        def _send_partial(combo_index: int, values: List[float], weight: float) -> None:
            conn.send({
                'kind': 'partial',
                'skill': task.skill_name,
                'combo_index': combo_index,
                'values': values,
                'weight': weight,
            })

        results = run_skill_task(task, engine, on_partial=_send_partial)

        message: Dict[str, Any] = {'kind': 'done', 'skill': task.skill_name}
        if task.return_raw:
            message['values'] = results.values
            message['weights'] = results.weights
        else:
            summary = compute_stats(
                results.values,
                results.weights,
                confidence_level=task.confidence_interval,
                skill=task.skill_name,
            )
            message['summary'] = summary.to_dict()
        message['elapsed_s'] = time.perf_counter() - start
        conn.send(message)
    except Exception as e:
        conn.send({
            'kind': 'error',
            'skill': task.skill_name,
            'error': f"{type(e).__name__}: {e}",
        })
    finally:
        conn.close()
