"""
Sampling and budget allocation.

Turns a sample budget, a course count and the pools of the random race
conditions into a bounded list of engine calls (combos). The number of calls
depends on the budget, never on how many dimensions are randomised.

Key design:
- Every course gets its own share of the budget (floored at MIN_SAMPLES)
- Combos per course never exceed the distinct condition space, nor the
  number of MIN_SAMPLES-sized calls the share can pay for
- Representatives cover every pool value when there are enough slots, then
  fill the rest proportionally to occurrence weight
- Combo weights restore the pool distribution across all slots; weights sum to 1
"""

import logging
from collections import Counter
from typing import Dict, List, Optional

import numpy as np

from ..config import MIN_SAMPLES, MIN_SAMPLES_PER_CALL
from ..types import AllocationPlan, Combo, WeightedPool

logger = logging.getLogger(__name__)


# Dimension order used for combo construction
DIMENSIONS = ('mood', 'season', 'weather', 'ground_condition')


def _ranked_values(pool: WeightedPool) -> List[tuple]:
    """(value, probability) pairs, highest probability first, ties in pool order."""
    probs = pool.probabilities
    order = {v: i for i, v in reversed(list(enumerate(pool.values)))}
    return sorted(probs.items(), key=lambda kv: (-kv[1], order[kv[0]]))


def generate_representatives(
    pool: WeightedPool,
    n_slots: int,
    rng: Optional[np.random.Generator] = None,
) -> List[int]:
    """
    Pick one pool value for each of n_slots slots.

    When n_slots >= distinct values, every value appears at least once and
    the remaining slots go to values by largest-remainder rounding on their
    probability. With fewer slots, only the highest-weight values are used.
    The result is shuffled.

    Args:
        pool: Weighted pool of the dimension
        n_slots: Number of slots to fill
        rng: Randomness source for the shuffle

    Returns:
        List of n_slots values
    """
    if n_slots <= 0:
        return []
    if rng is None:
        rng = np.random.default_rng()

    ranked = _ranked_values(pool)
    n_distinct = len(ranked)

    if n_slots < n_distinct:
        reps = [value for value, _ in ranked[:n_slots]]
    else:
        reps = [value for value, _ in ranked]
        remaining = n_slots - n_distinct
        if remaining > 0:
            probs = np.array([p for _, p in ranked], dtype=float)
            quotas = probs * remaining
            counts = np.floor(quotas).astype(int)
            shortfall = remaining - int(counts.sum())
            if shortfall > 0:
                # Stable sort keeps higher-weight values first on equal remainders
                by_remainder = np.argsort(-(quotas - counts), kind='stable')
                counts[by_remainder[:shortfall]] += 1
            for (value, _), extra in zip(ranked, counts):
                reps.extend([value] * int(extra))

    return rng.permutation(np.array(reps, dtype=np.int64)).tolist()


def distinct_combo_count(pools: Dict[str, WeightedPool]) -> int:
    """Size of the product space of the random dimensions."""
    total = 1
    for pool in pools.values():
        total *= len(set(pool.values))
    return total


def allocate(
    budget: int,
    n_courses: int,
    pools: Dict[str, WeightedPool],
    fixed: Dict[str, Optional[int]],
    rng: Optional[np.random.Generator] = None,
    min_samples: int = MIN_SAMPLES,
) -> AllocationPlan:
    """
    Allocate a sample budget across courses and random race conditions.

    Args:
        budget: Total samples requested
        n_courses: Number of candidate courses (>= 1)
        pools: Random dimension name -> WeightedPool
        fixed: Dimension name -> configured value for non-random dimensions
        rng: Randomness source for representative shuffling
        min_samples: Floor on samples per course and per combo

    Returns:
        AllocationPlan whose combo weights sum to 1

    Raises:
        ValueError: On non-positive budget or course count, or an unknown dimension
    """
    if budget <= 0:
        raise ValueError(f"budget must be positive, got {budget}")
    if n_courses < 1:
        raise ValueError(f"n_courses must be at least 1, got {n_courses}")
    unknown = set(pools) - set(DIMENSIONS)
    if unknown:
        raise ValueError(f"Unknown random dimension(s): {', '.join(sorted(unknown))}")
    if rng is None:
        rng = np.random.default_rng()

    # === FAST PATH ===
    if not pools and n_courses == 1:
        combo = Combo(
            course_index=0,
            mood=fixed.get('mood'),
            season=fixed.get('season'),
            weather=fixed.get('weather'),
            ground_condition=fixed.get('ground_condition'),
            samples=max(budget, MIN_SAMPLES_PER_CALL),
            weight=1.0,
        )
        return AllocationPlan(
            combos=[combo],
            budget=budget,
            n_courses=1,
            sims_per_track=budget,
            combos_per_track=1,
            samples_per_combo=combo.samples,
            distinct_combos=1,
            fast_path=True,
        )

    # === BUDGET SPLIT ===
    sims_per_track = max(budget // n_courses, min_samples)
    distinct = distinct_combo_count(pools)
    if distinct <= 1:
        combos_per_track = 1
    else:
        combos_per_track = min(distinct, max(sims_per_track // min_samples, 1))
    samples_per_combo = max(sims_per_track // combos_per_track, MIN_SAMPLES_PER_CALL)

    # === REPRESENTATIVES ===
    n_slots = n_courses * combos_per_track
    assignments: Dict[str, List[Optional[int]]] = {}
    for name in DIMENSIONS:
        if name in pools:
            assignments[name] = generate_representatives(pools[name], n_slots, rng)
        else:
            assignments[name] = [fixed.get(name)] * n_slots

    # === WEIGHTS ===
    # A value repeated across slots shares its probability between them
    raw_weights = np.full(n_slots, 1.0 / n_courses, dtype=float)
    for name, pool in pools.items():
        probs = pool.probabilities
        values = assignments[name]
        counts = Counter(values)
        for slot, value in enumerate(values):
            raw_weights[slot] *= probs[value] / counts[value]

    total = raw_weights.sum()
    if total > 0:
        weights = raw_weights / total
    else:
        weights = np.full(n_slots, 1.0 / n_slots, dtype=float)

    combos = [
        Combo(
            course_index=slot // combos_per_track,
            mood=assignments['mood'][slot],
            season=assignments['season'][slot],
            weather=assignments['weather'][slot],
            ground_condition=assignments['ground_condition'][slot],
            samples=samples_per_combo,
            weight=float(weights[slot]),
        )
        for slot in range(n_slots)
    ]

    logger.debug(
        f"Allocated {len(combos)} combos ({combos_per_track}/course x {n_courses} "
        f"courses, {samples_per_combo} samples each) from budget {budget}; "
        f"{distinct} distinct condition combos"
    )

    return AllocationPlan(
        combos=combos,
        budget=budget,
        n_courses=n_courses,
        sims_per_track=sims_per_track,
        combos_per_track=combos_per_track,
        samples_per_combo=samples_per_combo,
        distinct_combos=distinct,
    )
