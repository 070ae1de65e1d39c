"""
Bounded process pool for skill tasks.

Each task runs in its own multiprocessing.Process and talks to the
coordinator over a Pipe. The coordinator waits on every running pipe and
process sentinel at once, so a slot is refilled as soon as any task settles.
A task that exceeds its timeout is terminated; its partial results are not
committed. Failures are reported per task and never stop sibling tasks.
"""

import logging
import multiprocessing as mp
import os
import time
from collections import deque
from dataclasses import dataclass, field
from multiprocessing.connection import wait
from typing import Any, Dict, Iterator, List, Optional

from ..config import WORKER_TIMEOUT_S
from ..types import SimulationTask
from .worker import EngineRef, worker_main

logger = logging.getLogger(__name__)


@dataclass
class PoolEvent:
    """
    One message from the pool.

    Attributes:
        kind: 'partial', 'done' or 'error'
        task_index: Index of the task in the submitted list
        skill: Skill name of the task
        payload: Worker message for partial/done
        error: Error text for error events
    """
    kind: str
    task_index: int
    skill: str
    payload: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None


@dataclass
class _RunningTask:
    index: int
    task: SimulationTask
    process: Any
    conn: Any
    deadline: float
    settled: bool = False


class WorkerPool:
    """
    Run SimulationTasks in isolated worker processes, at most `concurrency` at a time.

    Args:
        engine: Race engine callable (module-level, picklable) or 'module:function' path
        concurrency: Max simultaneous workers (None = CPU count)
        timeout_s: Per-task wall-clock limit
        start_method: multiprocessing start method (None = platform default)
    """

    def __init__(
        self,
        engine: EngineRef,
        concurrency: Optional[int] = None,
        timeout_s: float = WORKER_TIMEOUT_S,
        start_method: Optional[str] = None,
    ):
        if concurrency is not None and concurrency < 1:
            raise ValueError(f"concurrency must be at least 1, got {concurrency}")
        if timeout_s <= 0:
            raise ValueError(f"timeout_s must be positive, got {timeout_s}")
        self.engine = engine
        self.concurrency = concurrency
        self.timeout_s = timeout_s
        self._ctx = mp.get_context(start_method)
        self.peak_running = 0

    def effective_concurrency(self, n_tasks: int) -> int:
        limit = self.concurrency or os.cpu_count() or 1
        return max(1, min(limit, n_tasks))

    def _start(self, index: int, task: SimulationTask) -> _RunningTask:
        parent_conn, child_conn = self._ctx.Pipe(duplex=False)
        process = self._ctx.Process(
            target=worker_main,
            args=(child_conn, task, self.engine),
            name=f"skill-worker-{index}",
            daemon=True,
        )
        process.start()
        # Parent keeps only the receiving end so EOF is seen when the child dies
        child_conn.close()
        logger.debug(f"Started worker pid={process.pid} for '{task.skill_name}'")
        return _RunningTask(
            index=index,
            task=task,
            process=process,
            conn=parent_conn,
            deadline=time.monotonic() + self.timeout_s,
        )

    def _finish(self, running: _RunningTask, terminate: bool = False) -> None:
        running.settled = True
        if terminate and running.process.is_alive():
            running.process.terminate()
        running.process.join(timeout=5)
        if running.process.is_alive():
            running.process.kill()
            running.process.join()
        running.conn.close()

    def _drain(self, running: _RunningTask) -> Iterator[PoolEvent]:
        """Yield every pending message of a task; settle it on done/error/EOF."""
        skill = running.task.skill_name
        while not running.settled and running.conn.poll():
            try:
                message = running.conn.recv()
            except (EOFError, OSError):
                # Pipe closed without a terminal message; let the process finish exiting
                running.process.join(timeout=1)
                break
            kind = message.get('kind')
            if kind == 'partial':
                yield PoolEvent('partial', running.index, skill, payload=message)
            elif kind == 'done':
                self._finish(running)
                yield PoolEvent('done', running.index, skill, payload=message)
            elif kind == 'error':
                self._finish(running)
                yield PoolEvent('error', running.index, skill, error=message.get('error'))
            else:
                logger.warning(f"Ignoring unknown worker message kind {kind!r} for '{skill}'")

        if not running.settled and not running.process.is_alive():
            running.process.join()
            code = running.process.exitcode
            self._finish(running)
            yield PoolEvent(
                'error', running.index, skill,
                error=f"Worker for skill '{skill}' exited unexpectedly (exit code {code})",
            )

    def run(self, tasks: List[SimulationTask]) -> Iterator[PoolEvent]:
        """
        Execute tasks and yield PoolEvents as they arrive.

        Every task yields exactly one terminal event (done or error), preceded
        by zero or more partial events. Arrival order across tasks is not defined.
        """
        self.peak_running = 0
        if not tasks:
            return

        limit = self.effective_concurrency(len(tasks))
        pending = deque(enumerate(tasks))
        running: Dict[int, _RunningTask] = {}

        logger.info(f"Dispatching {len(tasks)} task(s) with concurrency {limit}")

        try:
            while pending or running:
                while pending and len(running) < limit:
                    index, task = pending.popleft()
                    running[index] = self._start(index, task)
                self.peak_running = max(self.peak_running, len(running))

                now = time.monotonic()
                next_deadline = min(r.deadline for r in running.values())
                waitables = {}
                for r in running.values():
                    waitables[r.conn] = r
                    waitables[r.process.sentinel] = r

                ready = wait(list(waitables), timeout=max(0.0, next_deadline - now))

                touched: Dict[int, _RunningTask] = {}
                for obj in ready:
                    r = waitables[obj]
                    touched[r.index] = r
                for r in touched.values():
                    yield from self._drain(r)

                now = time.monotonic()
                for r in list(running.values()):
                    if not r.settled and now >= r.deadline:
                        self._finish(r, terminate=True)
                        logger.warning(
                            f"Worker timeout after {self.timeout_s:g}s for skill: {r.task.skill_name}"
                        )
                        yield PoolEvent(
                            'error', r.index, r.task.skill_name,
                            error=f"Worker timeout after {self.timeout_s:g}s for skill: {r.task.skill_name}",
                        )

                for index in [i for i, r in running.items() if r.settled]:
                    del running[index]
        finally:
            for r in running.values():
                if not r.settled:
                    self._finish(r, terminate=True)
