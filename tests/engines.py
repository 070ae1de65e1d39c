"""Fake race engines for tests.

Module-level so worker processes can import them by reference.
All follow compare(samples, course, race_params, base, with_skill, options).
"""

import os
import time

import numpy as np


def constant_engine(samples, course, race_params, base, with_skill, options):
    """Every run gains exactly one length."""
    return [1.0] * samples


def linear_engine(samples, course, race_params, base, with_skill, options):
    """Seeded noise around a gain that depends on weather and course length."""
    rng = np.random.default_rng(options.seed)
    center = 0.5 + 0.1 * race_params.weather + course.distance / 10000.0
    return (center + rng.normal(0.0, 0.2, size=samples)).tolist()


def seed_echo_engine(samples, course, race_params, base, with_skill, options):
    """Returns the seed it was called with (-1 when unseeded)."""
    seed = -1 if options.seed is None else options.seed
    return [float(seed)] * samples


def spurt_flag_engine(samples, course, race_params, base, with_skill, options):
    """1.0 when randomised mechanics are enabled, else 0.0."""
    return [1.0 if options.use_enhanced_spurt else 0.0] * samples


def skill_count_engine(samples, course, race_params, base, with_skill, options):
    """Difference in skill count between the two actors."""
    return [float(len(with_skill.skills) - len(base.skills))] * samples


def slow_engine(samples, course, race_params, base, with_skill, options):
    time.sleep(0.3)
    return [1.0] * samples


def sleepy_engine(samples, course, race_params, base, with_skill, options):
    time.sleep(60)
    return [1.0] * samples


def raising_engine(samples, course, race_params, base, with_skill, options):
    raise RuntimeError("engine exploded")


def crashing_engine(samples, course, race_params, base, with_skill, options):
    os._exit(3)


def empty_engine(samples, course, race_params, base, with_skill, options):
    return []


def corner_failing_engine(samples, course, race_params, base, with_skill, options):
    """Fails only when evaluating skill 200012."""
    if '200012' in with_skill.skills and '200012' not in base.skills:
        raise RuntimeError("cannot simulate corner skill")
    return [0.5] * samples


def corner_sleepy_engine(samples, course, race_params, base, with_skill, options):
    """Stalls only when evaluating skill 200012."""
    if '200012' in with_skill.skills and '200012' not in base.skills:
        time.sleep(60)
    return [0.5] * samples


def second_task_engine(samples, course, race_params, base, with_skill, options):
    """1.0 for calls seeded from task seed 1 with 25-sample calls, else 0.0."""
    return [1.0 if options.seed % 25 == 1 else 0.0] * samples


not_callable = 42
