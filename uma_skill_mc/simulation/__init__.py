"""Monte Carlo sampling, task execution and the worker pool."""

from .allocator import allocate, generate_representatives, distinct_combo_count
from .worker import run_skill_task, resolve_engine, actor_with_skill
from .pool import WorkerPool, PoolEvent

__all__ = [
    "allocate",
    "generate_representatives",
    "distinct_combo_count",
    "run_skill_task",
    "resolve_engine",
    "actor_with_skill",
    "WorkerPool",
    "PoolEvent",
]
