"""
Core data structures for the skill benefit estimator.

Scenario, restriction, allocation, task and result records shared by every
stage of the run.
"""

from dataclasses import dataclass, field, replace
from typing import List, Tuple, Dict, Optional, Any, FrozenSet


# Restriction fields, in evaluation order
STATIC_FIELDS: Tuple[str, ...] = (
    'distance_type',
    'ground_condition',
    'ground_type',
    'is_basis_distance',
    'rotation',
    'running_style',
    'season',
    'track_id',
    'weather',
)

RESULT_STATUSES = ('pending', 'partial', 'fresh', 'error')


class ScenarioError(ValueError):
    """Scenario cannot be simulated (missing field, unresolved course)."""


# =============================================================================
# Restriction Algebra
# =============================================================================

@dataclass(frozen=True)
class RestrictionSet:
    """
    Static trigger restrictions of a skill.

    Maps restriction field -> allowed values. A field that is absent does not
    constrain anything. A field present with an empty set can never be
    satisfied, so the skill never triggers.
    """
    allowed: Dict[str, FrozenSet[int]] = field(default_factory=dict)

    def __contains__(self, field_name: str) -> bool:
        return field_name in self.allowed

    def get(self, field_name: str) -> Optional[FrozenSet[int]]:
        return self.allowed.get(field_name)

    @property
    def fields(self) -> List[str]:
        return [f for f in STATIC_FIELDS if f in self.allowed]

    @property
    def is_unconstrained(self) -> bool:
        return not self.allowed

    @property
    def is_impossible(self) -> bool:
        return any(len(values) == 0 for values in self.allowed.values())

    def to_dict(self) -> Dict[str, List[int]]:
        """Convert to serializable dict with sorted value lists."""
        return {f: sorted(self.allowed[f]) for f in self.fields}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RestrictionSet':
        return cls({name: frozenset(int(v) for v in values) for name, values in data.items()})


@dataclass
class CurrentSettings:
    """
    Scenario facts used to statically evaluate restrictions.

    None means the dimension is itself random (or spans several courses),
    so a restriction on it can only be decided during simulation.
    running_style is always concrete.
    """
    distance_type: Optional[int] = None
    ground_condition: Optional[int] = None
    ground_type: Optional[int] = None
    is_basis_distance: Optional[bool] = None
    rotation: Optional[int] = None
    running_style: int = 3
    season: Optional[int] = None
    track_id: Optional[int] = None
    weather: Optional[int] = None

    def value_for(self, field_name: str) -> Optional[int]:
        """Integer value of a restriction field (basis distance as 0/1)."""
        value = getattr(self, field_name)
        if field_name == 'is_basis_distance' and value is not None:
            return 1 if value else 0
        return value


# =============================================================================
# Scenario
# =============================================================================

@dataclass
class SkillConfig:
    """Per-skill entry of a scenario: discount percentage and UI default."""
    discount: Optional[float] = None
    default: Optional[float] = None


@dataclass
class TrackConfig:
    """
    Track half of a scenario.

    String fields accept '<Random>'. distance accepts meters or a distance
    category ('<Sprint>', '<Mile>', '<Medium>', '<Long>').
    """
    course_id: Optional[str] = None
    track_name: Optional[str] = None
    distance: Optional[Any] = None
    surface: Optional[str] = None
    ground_condition: Optional[str] = None
    weather: Optional[str] = None
    season: Optional[str] = None
    num_umas: Optional[int] = None


@dataclass
class UmaConfig:
    """
    Horse half of a scenario: stat block, strategy, aptitudes and skills.

    mood=None means random mood.
    """
    speed: Optional[int] = None
    stamina: Optional[int] = None
    power: Optional[int] = None
    guts: Optional[int] = None
    wisdom: Optional[int] = None
    strategy: Optional[str] = None
    distance_aptitude: Optional[str] = None
    surface_aptitude: Optional[str] = None
    style_aptitude: Optional[str] = None
    mood: Optional[int] = None
    skills: List[str] = field(default_factory=list)
    unique: Optional[str] = None


@dataclass
class ScenarioConfig:
    """
    A complete race scenario plus the candidate skill table.

    Attributes:
        skills: Candidate skill name -> SkillConfig. Only entries with a numeric
            discount are evaluated.
        track: Track selection and race conditions
        uma: Horse definition
        deterministic: Disable engine randomness flags and use a seed counter
        confidence_interval: Coverage percentage of the reported interval
    """
    skills: Dict[str, SkillConfig] = field(default_factory=dict)
    track: TrackConfig = field(default_factory=TrackConfig)
    uma: UmaConfig = field(default_factory=UmaConfig)
    deterministic: bool = False
    confidence_interval: float = 95.0


@dataclass
class WeightedPool:
    """
    Possible values of a random scenario dimension with occurrence weights.

    Equal weights are assumed when none are given.
    """
    values: List[int]
    weights: Optional[List[float]] = None

    def __post_init__(self) -> None:
        if self.weights is None:
            self.weights = [1.0] * len(self.values)
        if len(self.weights) != len(self.values):
            raise ValueError(
                f"WeightedPool has {len(self.values)} values but "
                f"{len(self.weights)} weights"
            )
        if any(w < 0 for w in self.weights):
            raise ValueError("WeightedPool weights must be non-negative")

    def __len__(self) -> int:
        return len(self.values)

    @property
    def probabilities(self) -> Dict[int, float]:
        """Value -> probability, duplicates accumulated."""
        total = float(sum(self.weights))
        probs: Dict[int, float] = {}
        for value, weight in zip(self.values, self.weights):
            share = weight / total if total > 0 else 1.0 / len(self.values)
            probs[value] = probs.get(value, 0.0) + share
        return probs

    @classmethod
    def from_counts(cls, counts: Dict[int, float]) -> 'WeightedPool':
        return cls(values=list(counts.keys()), weights=[float(c) for c in counts.values()])


@dataclass
class RaceCondition:
    """
    One parsed race condition.

    Attributes:
        is_random: Dimension is sampled per combo
        value: Concrete value passed to the engine when fixed (placeholder when random)
        for_filtering: Value used for restriction checks (None when random)
        display: Human-readable value
        pool: Weighted pool when random
    """
    is_random: bool
    value: Optional[int]
    for_filtering: Optional[int]
    display: str
    pool: Optional[WeightedPool] = None


@dataclass
class ParsedRaceConditions:
    season: RaceCondition
    weather: RaceCondition
    ground_condition: RaceCondition
    mood: RaceCondition

    def random_dimensions(self) -> Dict[str, RaceCondition]:
        return {
            name: cond
            for name, cond in (
                ('mood', self.mood),
                ('season', self.season),
                ('weather', self.weather),
                ('ground_condition', self.ground_condition),
            )
            if cond.is_random
        }


@dataclass
class RunnerSettings:
    """
    Orchestration settings for a run.

    Attributes:
        pass_budgets: Sample budget of each pass; raw results accumulate across passes
        concurrency: Max worker processes (None = CPU count)
        timeout_s: Per-task wall-clock limit in seconds
        min_samples: Floor on samples per course and per combo
        start_method: multiprocessing start method (None = platform default)
        seed: Base seed for random mode (None = fresh random seeds)
    """
    pass_budgets: Tuple[int, ...] = (500,)
    concurrency: Optional[int] = None
    timeout_s: float = 300.0
    min_samples: int = 25
    start_method: Optional[str] = None
    seed: Optional[int] = None

    def __post_init__(self) -> None:
        self.pass_budgets = tuple(int(b) for b in self.pass_budgets)
        if not self.pass_budgets:
            raise ValueError("RunnerSettings.pass_budgets must contain at least one budget")
        if any(b <= 0 for b in self.pass_budgets):
            raise ValueError("RunnerSettings.pass_budgets must be positive")
        if self.concurrency is not None and self.concurrency < 1:
            raise ValueError("RunnerSettings.concurrency must be at least 1")
        if self.timeout_s <= 0:
            raise ValueError("RunnerSettings.timeout_s must be positive")
        if self.min_samples < 1:
            raise ValueError("RunnerSettings.min_samples must be at least 1")

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'RunnerSettings':
        known = {k: v for k, v in data.items() if k in cls.__dataclass_fields__}
        if 'pass_budgets' in known:
            known['pass_budgets'] = tuple(known['pass_budgets'])
        return cls(**known)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'pass_budgets': list(self.pass_budgets),
            'concurrency': self.concurrency,
            'timeout_s': self.timeout_s,
            'min_samples': self.min_samples,
            'start_method': self.start_method,
            'seed': self.seed,
        }


# =============================================================================
# Static data
# =============================================================================

@dataclass
class CourseInfo:
    """
    A resolved course.

    Attributes:
        course_id: Key in the course table
        track_id: Racecourse id (e.g. 10006 for Tokyo)
        distance: Distance in meters
        surface: 1=turf, 2=dirt
        turn: Rotation (1=clockwise, 2=counterclockwise, 3=unused, 4=straight)
        raw: Full course record handed to the engine
    """
    course_id: str
    track_id: Optional[int]
    distance: int
    surface: int
    turn: Optional[int]
    raw: Dict[str, Any] = field(default_factory=dict)


@dataclass
class StaticData:
    """
    Read-only game tables.

    Attributes:
        skill_meta: skill id -> {baseCost, groupId, order}
        skill_names: skill id -> [display names]
        skill_data: skill id -> {alternatives: [{condition, precondition, ...}]}
        course_data: course id -> {surface, distance, raceTrackId, turn, ...}
        track_names: track id -> [names]
    """
    skill_meta: Dict[str, Dict[str, Any]]
    skill_names: Dict[str, List[str]]
    skill_data: Dict[str, Dict[str, Any]]
    course_data: Dict[str, Dict[str, Any]]
    track_names: Dict[str, List[str]] = field(default_factory=dict)


# =============================================================================
# Allocation and tasks
# =============================================================================

@dataclass
class Combo:
    """
    One concrete scenario assignment for a single engine call.

    Attributes:
        course_index: Index into the task's course list
        mood, season, weather, ground_condition: Concrete race conditions
        samples: Engine iterations for this combo
        weight: Importance weight (weights of one allocation sum to 1)
    """
    course_index: int
    mood: Optional[int]
    season: int
    weather: int
    ground_condition: int
    samples: int
    weight: float = 1.0


@dataclass
class AllocationPlan:
    """
    Output of the budget allocator.

    Attributes:
        combos: Engine calls to make, in dispatch order
        budget: Requested sample budget
        n_courses: Number of courses represented
        sims_per_track: Samples assigned to each course
        combos_per_track: Combos generated per course
        samples_per_combo: Iterations per engine call
        distinct_combos: Size of the random-dimension product space
        fast_path: True when the scenario needed no allocation
    """
    combos: List[Combo]
    budget: int
    n_courses: int
    sims_per_track: int
    combos_per_track: int
    samples_per_combo: int
    distinct_combos: int
    fast_path: bool = False

    @property
    def total_samples(self) -> int:
        return sum(c.samples for c in self.combos)

    @property
    def n_calls(self) -> int:
        return len(self.combos)


@dataclass
class HorseDefinition:
    """Base actor handed to the engine."""
    speed: int
    stamina: int
    power: int
    guts: int
    wisdom: int
    strategy: str
    distance_aptitude: str
    surface_aptitude: str
    strategy_aptitude: str
    skills: List[str] = field(default_factory=list)

    def with_skills(self, skills: List[str]) -> 'HorseDefinition':
        return replace(self, skills=list(skills))


@dataclass
class RaceParameters:
    """Race-level engine inputs; mood/season/weather/ground are overridden per combo."""
    mood: Optional[int]
    ground_condition: int
    weather: int
    season: int
    time: int = 0
    grade: int = 100
    popularity: int = 1
    num_umas: int = 18
    order_range: Optional[Tuple[int, int]] = None


@dataclass
class SimOptions:
    """
    Engine tuning flags and seed.

    All randomised mechanics are disabled in deterministic mode.
    """
    seed: Optional[int] = None
    use_enhanced_spurt: bool = True
    accuracy_mode: bool = True
    pacemaker_count: int = 1
    allow_rushed: bool = True
    allow_downhill: bool = True
    allow_section_modifier: bool = True
    skill_check_chance: bool = False

    @classmethod
    def for_mode(cls, deterministic: bool, seed: Optional[int] = None) -> 'SimOptions':
        randomised = not deterministic
        return cls(
            seed=seed,
            use_enhanced_spurt=randomised,
            accuracy_mode=randomised,
            allow_rushed=randomised,
            allow_downhill=randomised,
            allow_section_modifier=randomised,
        )

    def with_seed(self, seed: Optional[int]) -> 'SimOptions':
        return replace(self, seed=seed)


@dataclass
class SimulationTask:
    """
    Everything a worker needs to evaluate one skill.

    Attributes:
        skill_id: Candidate skill id
        skill_name: Candidate display name (used to tag results and errors)
        group_id: Ability group of the candidate (same-group skills are replaced)
        courses: Resolved courses; combos index into this list
        race_params: Base race parameters
        base_uma: Actor without the candidate
        sim_options: Engine options including the base seed
        combos: Engine calls to make
        group_ids: skill id -> ability group for the base actor's skills
        confidence_interval: Coverage percentage for summary statistics
        return_raw: Return raw arrays instead of summary statistics
    """
    skill_id: str
    skill_name: str
    group_id: Optional[str]
    courses: List[CourseInfo]
    race_params: RaceParameters
    base_uma: HorseDefinition
    sim_options: SimOptions
    combos: List[Combo]
    group_ids: Dict[str, Optional[str]] = field(default_factory=dict)
    confidence_interval: float = 95.0
    return_raw: bool = True

    @property
    def num_samples(self) -> int:
        return sum(c.samples for c in self.combos)


# =============================================================================
# Results
# =============================================================================

@dataclass
class RawResultSet:
    """Per-run outcomes of one skill, each tagged with its combo weight."""
    values: List[float] = field(default_factory=list)
    weights: List[float] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.values)

    def extend(self, values: List[float], weight: float = 1.0) -> None:
        self.values.extend(values)
        self.weights.extend([weight] * len(values))

    def merge(self, other: 'RawResultSet') -> None:
        self.values.extend(other.values)
        self.weights.extend(other.weights)

    @property
    def is_weighted(self) -> bool:
        return len(set(self.weights)) > 1


@dataclass
class SkillResult:
    """
    Reportable statistics for one skill.

    Lengths are in the engine's length unit (race-length deltas). mean_length_per_cost
    is mean_length / cost, or 0 when cost is not positive.
    """
    skill: str
    cost: float
    discount: float
    num_simulations: int
    mean_length: float
    median_length: float
    mean_length_per_cost: float
    min_length: float
    max_length: float
    ci_lower: float
    ci_upper: float
    std_error: float = 0.0
    status: str = 'fresh'
    error_message: Optional[str] = None
    raw_results: Optional[List[float]] = None

    def __post_init__(self) -> None:
        if self.status not in RESULT_STATUSES:
            raise ValueError(f"Unknown result status '{self.status}'")

    @classmethod
    def placeholder(
        cls,
        skill: str,
        cost: float,
        discount: float = 0.0,
        status: str = 'pending',
        error_message: Optional[str] = None,
    ) -> 'SkillResult':
        """Result with no runs behind it, for queued or failed skills."""
        return cls(
            skill=skill,
            cost=cost,
            discount=discount,
            num_simulations=0,
            mean_length=0.0,
            median_length=0.0,
            mean_length_per_cost=0.0,
            min_length=0.0,
            max_length=0.0,
            ci_lower=0.0,
            ci_upper=0.0,
            status=status,
            error_message=error_message,
        )

    def with_cost(self, cost: float) -> 'SkillResult':
        """Copy with a new cost and recomputed efficiency."""
        efficiency = self.mean_length / cost if cost > 0 else 0.0
        return replace(self, cost=cost, mean_length_per_cost=efficiency)

    def to_dict(self, include_raw: bool = False) -> Dict[str, Any]:
        """Convert to serializable dict."""
        data = {
            'skill': self.skill,
            'cost': self.cost,
            'discount': self.discount,
            'num_simulations': self.num_simulations,
            'mean_length': self.mean_length,
            'median_length': self.median_length,
            'mean_length_per_cost': self.mean_length_per_cost,
            'min_length': self.min_length,
            'max_length': self.max_length,
            'ci_lower': self.ci_lower,
            'ci_upper': self.ci_upper,
            'std_error': self.std_error,
            'status': self.status,
        }
        if self.error_message is not None:
            data['error_message'] = self.error_message
        if include_raw and self.raw_results is not None:
            data['raw_results'] = list(self.raw_results)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'SkillResult':
        return cls(
            skill=data['skill'],
            cost=data['cost'],
            discount=data.get('discount', 0),
            num_simulations=data['num_simulations'],
            mean_length=data['mean_length'],
            median_length=data['median_length'],
            mean_length_per_cost=data['mean_length_per_cost'],
            min_length=data['min_length'],
            max_length=data['max_length'],
            ci_lower=data['ci_lower'],
            ci_upper=data['ci_upper'],
            std_error=data.get('std_error', 0.0),
            status=data.get('status', 'fresh'),
            error_message=data.get('error_message'),
            raw_results=data.get('raw_results'),
        )


def sort_by_efficiency(results: List[SkillResult]) -> List[SkillResult]:
    """Sort results by mean length per cost, best first."""
    return sorted(results, key=lambda r: -r.mean_length_per_cost)


def reprice_results(results: List[SkillResult], costs: Dict[str, float]) -> List[SkillResult]:
    """
    Apply new costs to finished results and re-sort them.

    Skills missing from costs keep their current cost. Lengths are not
    touched, so a discount change needs no new simulations.
    """
    repriced = [
        r.with_cost(costs[r.skill]) if r.skill in costs else r
        for r in results
    ]
    return sort_by_efficiency(repriced)
