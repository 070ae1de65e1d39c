"""
Full run orchestration for skill benefit estimation.

Wires scenario validation, course resolution, candidate filtering, budget
allocation, the worker pool and statistics aggregation together, and
reports progress as a stream of events.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence

import numpy as np

from .config import DEFAULT_NUM_UMAS, DEFAULT_UMA_STATS, default_pool
from .data.loader import build_course_table, find_matching_courses, process_course
from .data.skills import SkillCatalog
from .events import ProgressEvent
from .metrics.stats import compute_stats
from .restrictions.settings import (
    is_random_value,
    parse_distance_category,
    parse_ground_condition,
    parse_season,
    parse_strategy_name,
    parse_weather,
    settings_from_scenario,
)
from .restrictions.trigger import can_skill_trigger
from .simulation.allocator import allocate
from .simulation.pool import WorkerPool
from .simulation.worker import EngineRef
from .types import (
    CourseInfo,
    CurrentSettings,
    HorseDefinition,
    ParsedRaceConditions,
    RaceCondition,
    RaceParameters,
    RawResultSet,
    RunnerSettings,
    ScenarioConfig,
    ScenarioError,
    SimOptions,
    SimulationTask,
    SkillResult,
    StaticData,
    TrackConfig,
    UmaConfig,
    sort_by_efficiency,
)

logger = logging.getLogger(__name__)

NO_SKILLS_ERROR = 'No available skills specified in config'

# Engine values used for a random dimension before per-combo override
_RANDOM_PLACEHOLDERS = {'season': 1, 'weather': 1, 'ground_condition': 2}


@dataclass
class SkillCandidate:
    """A skill variant that survived filtering, with its cost."""
    name: str
    skill_id: str
    config_key: str
    discount: float
    cost: int
    group_id: Optional[str]


@dataclass
class PreparedRun:
    """Everything resolved before any worker is started."""
    courses: List[CourseInfo]
    conditions: ParsedRaceConditions
    race_params: RaceParameters
    base_uma: HorseDefinition
    owned_ids: List[str]
    settings: CurrentSettings
    candidates: List[SkillCandidate]
    notices: List[str] = field(default_factory=list)


# =============================================================================
# Scenario Parsing
# =============================================================================

def _parse_condition(value: Optional[str], dimension: str, parse) -> RaceCondition:
    if is_random_value(value):
        return RaceCondition(
            is_random=True,
            value=_RANDOM_PLACEHOLDERS[dimension],
            for_filtering=None,
            display='<Random>',
            pool=default_pool(dimension),
        )
    parsed = parse(value)
    return RaceCondition(is_random=False, value=parsed, for_filtering=parsed, display=str(value))


def parse_race_conditions(track: TrackConfig, uma: UmaConfig) -> ParsedRaceConditions:
    """Parse season/weather/ground condition/mood into fixed or random conditions."""
    mood_random = uma.mood is None
    return ParsedRaceConditions(
        season=_parse_condition(track.season, 'season', parse_season),
        weather=_parse_condition(track.weather, 'weather', parse_weather),
        ground_condition=_parse_condition(
            track.ground_condition, 'ground_condition', parse_ground_condition
        ),
        mood=RaceCondition(
            is_random=mood_random,
            value=None if mood_random else int(uma.mood),
            for_filtering=None if mood_random else int(uma.mood),
            display='<Random>' if mood_random else str(uma.mood),
            pool=default_pool('mood') if mood_random else None,
        ),
    )


def validate_scenario(scenario: ScenarioConfig) -> None:
    """
    Check the fields every run needs.

    Raises:
        ScenarioError: On the first missing field
    """
    if not scenario.track.ground_condition:
        raise ScenarioError('config.track.groundCondition must be specified')
    if not scenario.track.weather:
        raise ScenarioError('config.track.weather must be specified')
    if not scenario.track.season:
        raise ScenarioError('config.track.season must be specified')
    if not scenario.uma.strategy:
        raise ScenarioError('config.uma.strategy must be specified')


def resolve_courses(scenario: ScenarioConfig, static_data: StaticData):
    """
    Resolve the courses a scenario runs on.

    Returns:
        (courses sorted by course id, notices)

    Raises:
        ScenarioError: If the course cannot be resolved or lacks a turn
    """
    track = scenario.track
    notices: List[str] = []

    if track.course_id:
        raw = static_data.course_data.get(str(track.course_id))
        if raw is None:
            raise ScenarioError(f"Course {track.course_id} not found")
        courses = [process_course(str(track.course_id), raw)]
    elif track.track_name and track.distance is not None:
        random_track = is_random_value(track.track_name)
        category = parse_distance_category(track.distance)
        multiple = random_track or category is not None or is_random_value(track.distance)

        matches = find_matching_courses(
            static_data,
            track.track_name,
            track.distance,
            track.surface,
            course_table=build_course_table(static_data),
        )
        if not matches:
            location = '<Random>' if random_track else track.track_name
            distance = track.distance if (category is not None or is_random_value(track.distance)) \
                else f"{track.distance}m"
            surface = f" and surface {track.surface}" if track.surface else ''
            raise ScenarioError(
                f'No courses found matching track "{location}" with distance {distance}{surface}'
            )

        if multiple:
            courses = matches
            notices.append(f"Found {len(matches)} matching course(s) for random selection")
        else:
            courses = matches[:1]
    else:
        raise ScenarioError(
            'Config must specify either track.courseId or both track.trackName and track.distance'
        )

    for course in courses:
        if course.turn is None:
            raise ScenarioError(f"Course {course.course_id} is missing turn field")

    return courses, notices


# =============================================================================
# Runner
# =============================================================================

class SimulationRunner:
    """
    Estimate the benefit of each candidate skill for one scenario.

    Args:
        scenario: Race scenario and candidate skill table
        static_data: Game tables
        engine: Race engine callable or 'module:function' path
        settings: Orchestration settings (passes, concurrency, timeout)
        rng: Randomness for combo shuffling and random-mode seeds
    """

    def __init__(
        self,
        scenario: ScenarioConfig,
        static_data: StaticData,
        engine: EngineRef,
        settings: Optional[RunnerSettings] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        self.scenario = scenario
        self.static_data = static_data
        self.engine = engine
        self.settings = settings or RunnerSettings()
        self.rng = rng if rng is not None else np.random.default_rng(self.settings.seed)
        self.catalog = SkillCatalog(static_data)
        self._seed_counter = 0
        self.pool: Optional[WorkerPool] = None

    # === PREPARATION ===

    def _resolve_owned_skills(self) -> List[str]:
        owned: List[str] = []
        for name in self.scenario.uma.skills:
            skill_id = self.catalog.find_skill_id(name, prefer_inherited=True)
            if skill_id is None:
                logger.warning(f"Owned skill '{name}' not found; ignoring")
                continue
            owned.append(skill_id)
        if self.scenario.uma.unique:
            unique_id = self.catalog.find_skill_id(self.scenario.uma.unique, prefer_inherited=False)
            if unique_id is None:
                logger.warning(f"Unique skill '{self.scenario.uma.unique}' not found; ignoring")
            else:
                owned.append(unique_id)
        return owned

    def _build_candidates(
        self,
        owned_ids: List[str],
        settings: CurrentSettings,
    ) -> List[SkillCandidate]:
        candidates: Dict[str, SkillCandidate] = {}
        config_skills = self.scenario.skills

        for config_key, skill_config in config_skills.items():
            discount = skill_config.discount
            if isinstance(discount, bool) or not isinstance(discount, (int, float)):
                continue

            variants = self.catalog.find_variants(config_key)
            if not variants:
                logger.warning(f"Skill '{config_key}' not found in skill names")
                continue

            for skill_id, variant_name in variants:
                if skill_id in owned_ids:
                    continue
                if self.catalog.has_upgraded_version(skill_id, owned_ids):
                    continue
                if not can_skill_trigger(self.static_data.skill_data.get(skill_id), settings):
                    logger.info(f"Skipping '{variant_name}': cannot trigger in this scenario")
                    continue

                candidates[variant_name] = SkillCandidate(
                    name=variant_name,
                    skill_id=skill_id,
                    config_key=config_key,
                    discount=float(discount),
                    cost=self.catalog.calculate_skill_cost(
                        skill_id, discount, owned_ids, config_skills
                    ),
                    group_id=self.catalog.group_id(skill_id),
                )

        return list(candidates.values())

    def prepare(self) -> PreparedRun:
        """
        Validate the scenario and resolve everything needed for dispatch.

        Raises:
            ScenarioError: If the scenario is incomplete or its course cannot be resolved
        """
        scenario = self.scenario
        uma = scenario.uma

        # === VALIDATE SCENARIO ===
        validate_scenario(scenario)

        # === RESOLVE COURSES ===
        courses, notices = resolve_courses(scenario, self.static_data)
        logger.info(f"Resolved {len(courses)} course(s): {', '.join(c.course_id for c in courses)}")

        # === RACE CONDITIONS ===
        conditions = parse_race_conditions(scenario.track, uma)
        num_umas = scenario.track.num_umas or DEFAULT_NUM_UMAS
        race_params = RaceParameters(
            mood=conditions.mood.value,
            ground_condition=conditions.ground_condition.value,
            weather=conditions.weather.value,
            season=conditions.season.value,
            num_umas=num_umas,
            order_range=(1, num_umas),
        )

        # === BASE ACTOR ===
        owned_ids = self._resolve_owned_skills()

        def _stat(name: str):
            value = getattr(uma, name)
            return value if value is not None else DEFAULT_UMA_STATS[name]

        base_uma = HorseDefinition(
            speed=_stat('speed'),
            stamina=_stat('stamina'),
            power=_stat('power'),
            guts=_stat('guts'),
            wisdom=_stat('wisdom'),
            strategy=parse_strategy_name(uma.strategy),
            distance_aptitude=_stat('distance_aptitude'),
            surface_aptitude=_stat('surface_aptitude'),
            strategy_aptitude=_stat('style_aptitude'),
            skills=list(owned_ids),
        )

        # === CANDIDATES ===
        settings = settings_from_scenario(scenario, courses)
        candidates = self._build_candidates(owned_ids, settings)
        logger.info(f"{len(candidates)} candidate skill(s) after filtering")

        return PreparedRun(
            courses=courses,
            conditions=conditions,
            race_params=race_params,
            base_uma=base_uma,
            owned_ids=owned_ids,
            settings=settings,
            candidates=candidates,
            notices=notices,
        )

    # === DISPATCH ===

    def _next_seed(self) -> int:
        if self.scenario.deterministic:
            seed = self._seed_counter
            self._seed_counter += 1
            return seed
        return int(self.rng.integers(0, 1_000_000_000))

    def _build_task(self, candidate: SkillCandidate, prepared: PreparedRun, combos) -> SimulationTask:
        return SimulationTask(
            skill_id=candidate.skill_id,
            skill_name=candidate.name,
            group_id=candidate.group_id,
            courses=prepared.courses,
            race_params=prepared.race_params,
            base_uma=prepared.base_uma,
            sim_options=SimOptions.for_mode(self.scenario.deterministic, seed=self._next_seed()),
            combos=combos,
            group_ids=self.catalog.group_map(prepared.base_uma.skills),
            confidence_interval=self.scenario.confidence_interval,
            return_raw=True,
        )

    def _stats(self, candidate: SkillCandidate, raw: RawResultSet, status: str) -> SkillResult:
        return compute_stats(
            raw.values,
            raw.weights,
            cost=candidate.cost,
            confidence_level=self.scenario.confidence_interval,
            skill=candidate.name,
            discount=candidate.discount,
            include_raw=True,
            status=status,
        )

    def _queued(self, candidate: SkillCandidate, raw: RawResultSet) -> SkillResult:
        if len(raw) > 0:
            return self._stats(candidate, raw, 'pending')
        return SkillResult.placeholder(candidate.name, candidate.cost, candidate.discount)

    def _failed(self, candidate: SkillCandidate, raw: RawResultSet, error: Optional[str]) -> SkillResult:
        if len(raw) > 0:
            return replace(self._stats(candidate, raw, 'error'), error_message=error)
        return SkillResult.placeholder(
            candidate.name, candidate.cost, candidate.discount,
            status='error', error_message=error,
        )

    def iter_events(self, skill_filter: Optional[Sequence[str]] = None) -> Iterator[ProgressEvent]:
        """
        Run the scenario and yield progress events.

        Scenario errors and an empty candidate list yield a single error event
        and stop before any worker starts. Each pass first yields a `pending`
        result per queued skill. Per-skill failures yield an `error` status
        result and an error event tagged with the skill; the run always ends
        with `complete` otherwise.

        Args:
            skill_filter: Only evaluate these candidate names (None/empty = all)
        """
        try:
            prepared = self.prepare()
        except ScenarioError as e:
            logger.error(str(e))
            yield ProgressEvent.error_event(str(e))
            return

        for notice in prepared.notices:
            yield ProgressEvent.info_event(notice)

        candidates = prepared.candidates
        if skill_filter:
            wanted = set(skill_filter)
            candidates = [c for c in candidates if c.name in wanted]

        if not candidates:
            logger.error(NO_SKILLS_ERROR)
            yield ProgressEvent.error_event(NO_SKILLS_ERROR)
            return

        conditions = prepared.conditions
        pools = {
            name: cond.pool for name, cond in conditions.random_dimensions().items()
        }
        fixed = {
            'mood': conditions.mood.value,
            'season': conditions.season.value,
            'weather': conditions.weather.value,
            'ground_condition': conditions.ground_condition.value,
        }

        self.pool = WorkerPool(
            self.engine,
            concurrency=self.settings.concurrency,
            timeout_s=self.settings.timeout_s,
            start_method=self.settings.start_method,
        )

        committed: Dict[str, RawResultSet] = {c.name: RawResultSet() for c in candidates}
        failed: set = set()

        for pass_index, budget in enumerate(self.settings.pass_budgets):
            active = [c for c in candidates if c.name not in failed]
            if not active:
                break

            # === ALLOCATE ===
            plan = allocate(
                budget,
                len(prepared.courses),
                pools,
                fixed,
                rng=self.rng,
                min_samples=self.settings.min_samples,
            )
            logger.info(
                f"Pass {pass_index + 1}: {plan.n_calls} engine call(s) x "
                f"{plan.samples_per_combo} samples per skill"
            )
            yield ProgressEvent.phase_event(
                f"Running {budget} simulations for {len(active)} skills..."
            )
            for candidate in active:
                yield ProgressEvent.result_event(
                    self._queued(candidate, committed[candidate.name])
                )

            # === DISPATCH ===
            # Weight x calls keeps the mean weight per run at 1 so passes pool by sample count
            combos = [replace(c, weight=c.weight * plan.n_calls) for c in plan.combos]
            tasks = [self._build_task(c, prepared, combos) for c in active]
            provisional: Dict[str, RawResultSet] = {c.name: RawResultSet() for c in active}

            for event in self.pool.run(tasks):
                candidate = active[event.task_index]
                name = candidate.name

                if event.kind == 'partial':
                    provisional[name].extend(event.payload['values'], event.payload['weight'])
                    running = RawResultSet()
                    running.merge(committed[name])
                    running.merge(provisional[name])
                    yield ProgressEvent.result_event(self._stats(candidate, running, 'partial'))

                elif event.kind == 'done':
                    committed[name].merge(RawResultSet(
                        values=list(event.payload['values']),
                        weights=list(event.payload['weights']),
                    ))
                    provisional.pop(name, None)
                    yield ProgressEvent.result_event(self._stats(candidate, committed[name], 'fresh'))

                else:
                    failed.add(name)
                    provisional.pop(name, None)
                    logger.warning(f"Skill '{name}' failed: {event.error}")
                    yield ProgressEvent.result_event(
                        self._failed(candidate, committed[name], event.error)
                    )
                    yield ProgressEvent.error_event(
                        f'Skill "{name}" failed: {event.error}', skill=name
                    )

        # === AGGREGATE ===
        final = [
            self._stats(c, committed[c.name], 'fresh')
            for c in candidates
            if len(committed[c.name]) > 0
        ]
        yield ProgressEvent.complete_event(sort_by_efficiency(final))

    def run(
        self,
        on_progress: Optional[Callable[[ProgressEvent], None]] = None,
        skill_filter: Optional[Sequence[str]] = None,
    ) -> List[SkillResult]:
        """
        Run to completion, pushing every event into on_progress.

        Returns:
            Final results sorted by efficiency (empty on scenario errors)
        """
        final: List[SkillResult] = []
        for event in self.iter_events(skill_filter):
            if on_progress is not None:
                on_progress(event)
            if event.type == 'complete':
                final = event.results or []
        return final


def run_skill_evaluation(
    scenario: ScenarioConfig,
    static_data: StaticData,
    engine: EngineRef,
    settings: Optional[RunnerSettings] = None,
    skill_filter: Optional[Sequence[str]] = None,
    on_progress: Optional[Callable[[ProgressEvent], None]] = None,
) -> Dict[str, Any]:
    """
    Full evaluation returning a summary dict.

    Returns:
        Dict with 'results' (sorted SkillResults), 'errors' (per-skill messages),
        'notices' and 'settings'; or {'error': message} when the run could not start
    """
    runner = SimulationRunner(scenario, static_data, engine, settings=settings)
    results: List[SkillResult] = []
    errors: List[str] = []
    notices: List[str] = []
    completed = False

    for event in runner.iter_events(skill_filter):
        if on_progress is not None:
            on_progress(event)
        if event.type == 'error':
            errors.append(event.error)
        elif event.type == 'info':
            notices.append(event.info)
        elif event.type == 'complete':
            results = event.results or []
            completed = True

    if not completed:
        return {'error': errors[0] if errors else 'Run did not complete'}

    return {
        'results': results,
        'errors': errors,
        'notices': notices,
        'settings': runner.settings.to_dict(),
        'peak_running': runner.pool.peak_running if runner.pool else 0,
    }
