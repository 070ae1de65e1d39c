"""
Allocator validation diagnostic.

Sweeps budgets, course counts and random-dimension mixes through the
allocator and reports the invariants that matter for result quality:
total samples vs budget, combos per course vs the distinct space, pool
coverage and weight normalisation.

No pipeline changes. Diagnostic script only.

Usage:
    python -m scripts.validate_allocation --budgets 100 500 2000 --max-courses 12 --seed 42
"""

import argparse
import sys
from itertools import combinations

import numpy as np

from uma_skill_mc.config import MIN_SAMPLES, default_pool
from uma_skill_mc.simulation.allocator import DIMENSIONS, allocate

FIXED = {'mood': 2, 'season': 1, 'weather': 1, 'ground_condition': 1}


def dimension_mixes():
    """Every subset of the random dimensions."""
    for k in range(len(DIMENSIONS) + 1):
        for combo in combinations(DIMENSIONS, k):
            yield combo


def check_plan(plan, budget, n_courses, pools):
    """Return a list of violated invariants for one plan."""
    problems = []
    total = plan.total_samples
    if budget >= n_courses * MIN_SAMPLES and not (budget * 0.5 <= total <= budget):
        problems.append(f"total samples {total} outside [{budget * 0.5:.0f}, {budget}]")
    if plan.combos_per_track > max(plan.distinct_combos, 1):
        problems.append(
            f"combos/track {plan.combos_per_track} > distinct {plan.distinct_combos}"
        )
    weight_sum = sum(c.weight for c in plan.combos)
    if abs(weight_sum - 1.0) > 1e-9:
        problems.append(f"weights sum to {weight_sum:.12f}")
    slots = plan.n_courses * plan.combos_per_track
    for name, pool in pools.items():
        distinct_values = set(pool.values)
        if slots >= len(distinct_values):
            seen = {getattr(c, name) for c in plan.combos}
            missing = distinct_values - seen
            if missing:
                problems.append(f"{name} missing values {sorted(missing)}")
    return problems


def main():
    parser = argparse.ArgumentParser(description="Validate allocator invariants")
    parser.add_argument("--budgets", type=int, nargs='+', default=[50, 100, 500, 2000])
    parser.add_argument("--max-courses", type=int, default=8)
    parser.add_argument("--seed", type=int, default=42)
    args = parser.parse_args()

    rng = np.random.default_rng(args.seed)
    n_checked = 0
    failures = []

    print(f"{'budget':>7} {'courses':>7} {'dims':<40} {'calls':>6} {'samples':>8}")
    for budget in args.budgets:
        for n_courses in range(1, args.max_courses + 1):
            for mix in dimension_mixes():
                pools = {name: default_pool(name) for name in mix}
                plan = allocate(budget, n_courses, pools, FIXED, rng=rng)
                problems = check_plan(plan, budget, n_courses, pools)
                n_checked += 1
                if problems:
                    failures.append((budget, n_courses, mix, problems))
                if n_courses in (1, args.max_courses) and len(mix) in (0, len(DIMENSIONS)):
                    print(
                        f"{budget:>7} {n_courses:>7} {','.join(mix) or '-':<40} "
                        f"{plan.n_calls:>6} {plan.total_samples:>8}"
                    )

    print(f"\nChecked {n_checked} plans, {len(failures)} with violations")
    for budget, n_courses, mix, problems in failures[:20]:
        print(f"  budget={budget} courses={n_courses} dims={mix}: {'; '.join(problems)}")

    sys.exit(1 if failures else 0)


if __name__ == '__main__':
    main()
