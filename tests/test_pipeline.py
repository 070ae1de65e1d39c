"""End-to-end tests for run orchestration."""

import numpy as np
import pytest

import engines
from uma_skill_mc.pipeline import (
    NO_SKILLS_ERROR,
    SimulationRunner,
    parse_race_conditions,
    resolve_courses,
    run_skill_evaluation,
    validate_scenario,
)
from uma_skill_mc.types import RunnerSettings, ScenarioError


def settings(*budgets, **kwargs):
    kwargs.setdefault('concurrency', 2)
    kwargs.setdefault('timeout_s', 30)
    return RunnerSettings(pass_budgets=budgets or (500,), **kwargs)


def collect(runner, **kwargs):
    events = []
    results = runner.run(on_progress=events.append, **kwargs)
    return results, events


def by_skill(results):
    return {r.skill: r for r in results}


RANDOM_TRACK = {'trackName': '<Random>', 'weather': '<Random>', 'season': '<Random>'}


class TestFixedScenario:
    """Tests for a single course with fixed conditions."""

    def test_full_budget_per_skill(self, make_scenario, static_data):
        """Test each skill gets exactly the budgeted number of runs."""
        runner = SimulationRunner(make_scenario(), static_data, engines.constant_engine,
                                  settings(500), rng=np.random.default_rng(0))
        results, _ = collect(runner)
        assert {r.skill for r in results} == {'Corner Adept ○', 'Straightaway Adept'}
        assert all(r.num_simulations == 500 for r in results)
        assert all(r.status == 'fresh' for r in results)

    def test_statistics_ordering(self, make_scenario, static_data):
        """Test reported statistics are internally consistent."""
        runner = SimulationRunner(make_scenario(), static_data, engines.linear_engine,
                                  settings(300), rng=np.random.default_rng(0))
        for r in runner.run():
            assert r.min_length <= r.ci_lower <= r.median_length <= r.ci_upper <= r.max_length
            assert r.mean_length_per_cost == pytest.approx(r.mean_length / r.cost)

    def test_costs_and_sorting(self, make_scenario, static_data):
        """Test discounted costs and efficiency ordering."""
        runner = SimulationRunner(make_scenario(), static_data, engines.constant_engine,
                                  settings(100), rng=np.random.default_rng(0))
        results = runner.run()
        assert [r.skill for r in results] == ['Corner Adept ○', 'Straightaway Adept']
        assert results[0].cost == 153
        assert results[1].cost == 200
        assert results[0].mean_length_per_cost > results[1].mean_length_per_cost

    def test_event_sequence(self, make_scenario, static_data):
        """Test a run reports its phase, per-skill results and completion."""
        runner = SimulationRunner(make_scenario(), static_data, engines.constant_engine,
                                  settings(100), rng=np.random.default_rng(0))
        _, events = collect(runner)
        assert events[0].type == 'phase'
        assert events[0].phase == 'Running 100 simulations for 2 skills...'
        assert events[-1].type == 'complete'
        statuses = [(e.skill, e.result.status) for e in events if e.type == 'result']
        for skill in ('Corner Adept ○', 'Straightaway Adept'):
            assert (skill, 'partial') in statuses
            assert (skill, 'fresh') in statuses

    def test_pending_results_when_queued(self, make_scenario, static_data):
        """Test each pass announces its queued skills before any run finishes."""
        runner = SimulationRunner(make_scenario(), static_data, engines.constant_engine,
                                  settings(100, 100), rng=np.random.default_rng(0))
        _, events = collect(runner)
        assert [e.type for e in events[:3]] == ['phase', 'result', 'result']
        first = [e.result for e in events[1:3]]
        assert {r.skill for r in first} == {'Corner Adept ○', 'Straightaway Adept'}
        assert all(r.status == 'pending' and r.num_simulations == 0 for r in first)

        second_phase = [i for i, e in enumerate(events) if e.type == 'phase'][1]
        queued = [e.result for e in events[second_phase + 1:second_phase + 3]]
        assert all(r.status == 'pending' and r.num_simulations == 100 for r in queued)

    def test_multiple_passes_accumulate(self, make_scenario, static_data):
        """Test results from successive passes are pooled."""
        runner = SimulationRunner(make_scenario(), static_data, engines.constant_engine,
                                  settings(100, 100), rng=np.random.default_rng(0))
        results, events = collect(runner)
        assert all(r.num_simulations == 200 for r in results)
        assert len([e for e in events if e.type == 'phase']) == 2

    def test_skill_filter(self, make_scenario, static_data):
        """Test only the requested skills are evaluated."""
        runner = SimulationRunner(make_scenario(), static_data, engines.constant_engine,
                                  settings(100), rng=np.random.default_rng(0))
        results = runner.run(skill_filter=['Straightaway Adept'])
        assert [r.skill for r in results] == ['Straightaway Adept']


class TestRandomScenario:
    """Tests for multi-course and random-condition scenarios."""

    def test_random_track_and_conditions(self, make_scenario, static_data):
        """Test a random track spreads the budget over every matching course."""
        scenario = make_scenario(track=RANDOM_TRACK)
        runner = SimulationRunner(scenario, static_data, engines.linear_engine,
                                  settings(100), rng=np.random.default_rng(3))
        results, events = collect(runner)
        infos = [e.info for e in events if e.type == 'info']
        assert infos == ['Found 2 matching course(s) for random selection']
        for r in results:
            assert 50 <= r.num_simulations <= 100
            assert r.min_length <= r.ci_lower <= r.median_length <= r.ci_upper <= r.max_length

    def test_partial_results_per_combo(self, make_scenario, static_data):
        """Test one partial result arrives per engine call before the final one."""
        scenario = make_scenario(track=RANDOM_TRACK, skills={'Straightaway Adept': {'discount': 0}})
        runner = SimulationRunner(scenario, static_data, engines.constant_engine,
                                  settings(100), rng=np.random.default_rng(3))
        _, events = collect(runner)
        results = [e.result for e in events if e.type == 'result']
        partial = [r.num_simulations for r in results if r.status == 'partial']
        assert partial == [25, 50, 75, 100]
        assert results[-1].status == 'fresh'

    def test_random_mood(self, make_scenario, static_data):
        """Test a missing mood is sampled per combo."""
        scenario = make_scenario(uma={'mood': None})
        runner = SimulationRunner(scenario, static_data, engines.constant_engine,
                                  settings(500), rng=np.random.default_rng(0))
        prepared = runner.prepare()
        assert prepared.conditions.mood.is_random
        assert prepared.race_params.mood is None
        results = runner.run()
        assert len(results) == 2
        assert all(r.num_simulations == 500 for r in results)


class TestCandidateFiltering:
    """Tests for which skills are evaluated and what they cost."""

    def test_untriggerable_skill_yields_no_skills_error(self, make_scenario, static_data):
        """Test a dirt-only skill on turf is dropped before any worker starts."""
        scenario = make_scenario(skills={'Dirt Runner': {'discount': 0}})
        runner = SimulationRunner(scenario, static_data, engines.constant_engine, settings(100))
        results, events = collect(runner)
        assert results == []
        assert [(e.type, e.error) for e in events] == [('error', NO_SKILLS_ERROR)]
        assert runner.pool is None

    def test_skills_without_numeric_discount_are_skipped(self, make_scenario, static_data):
        """Test only entries with a numeric discount are candidates."""
        scenario = make_scenario(skills={
            'Corner Adept ○': {'discount': None},
            'Straightaway Adept': {'discount': True},
            'Rainy Days ○': {'discount': 0},
        })
        prepared = SimulationRunner(scenario, static_data, engines.constant_engine).prepare()
        assert prepared.candidates == []

    def test_owned_upgrade_skips_basic_version(self, make_scenario, static_data):
        """Test owning the ◎ version excludes the ○ version."""
        scenario = make_scenario(uma={'skills': ['Corner Adept ◎']})
        prepared = SimulationRunner(scenario, static_data, engines.constant_engine).prepare()
        assert prepared.owned_ids == ['200011']
        assert [c.name for c in prepared.candidates] == ['Straightaway Adept']

    def test_upgrade_cost_includes_prerequisite(self, make_scenario, static_data):
        """Test the ◎ cost adds the unowned ○ at its own discount."""
        scenario = make_scenario(skills={
            'Corner Adept ◎': {'discount': 10},
            'Corner Adept ○': {'discount': 10},
        })
        prepared = SimulationRunner(scenario, static_data, engines.constant_engine).prepare()
        costs = {c.name: c.cost for c in prepared.candidates}
        assert costs == {'Corner Adept ◎': 306, 'Corner Adept ○': 153}

    def test_unmarked_name_expands_to_variants(self, make_scenario, static_data):
        """Test a base name evaluates both its ○ and ◎ versions."""
        scenario = make_scenario(skills={'Corner Adept': {'discount': 10}})
        prepared = SimulationRunner(scenario, static_data, engines.constant_engine).prepare()
        costs = {c.name: c.cost for c in prepared.candidates}
        assert costs == {'Corner Adept ○': 153, 'Corner Adept ◎': 153 + 170}

    def test_condition_filtering_uses_scenario(self, make_scenario, static_data):
        """Test weather-restricted skills survive only when the weather allows them."""
        skills = {'Rainy Days ○': {'discount': 0}, 'Straightaway Adept': {'discount': 0}}
        sunny = SimulationRunner(make_scenario(skills=skills), static_data,
                                 engines.constant_engine).prepare()
        random = SimulationRunner(make_scenario(skills=skills, track={'weather': '<Random>'}),
                                  static_data, engines.constant_engine).prepare()
        assert [c.name for c in sunny.candidates] == ['Straightaway Adept']
        assert {c.name for c in random.candidates} == {'Rainy Days ○', 'Straightaway Adept'}


class TestFailures:
    """Tests for scenario errors and per-skill failures."""

    @pytest.mark.parametrize('track,uma,message', [
        ({'groundCondition': None}, None, 'config.track.groundCondition must be specified'),
        ({'weather': ''}, None, 'config.track.weather must be specified'),
        ({'season': None}, None, 'config.track.season must be specified'),
        (None, {'strategy': None}, 'config.uma.strategy must be specified'),
        ({'courseId': '99999'}, None, 'Course 99999 not found'),
        ({'courseId': '10301'}, None, 'Course 10301 is missing turn field'),
        ({'trackName': 'Kyoto'}, None,
         'No courses found matching track "Kyoto" with distance 2400m and surface Turf'),
        ({'trackName': None}, None,
         'Config must specify either track.courseId or both track.trackName and track.distance'),
    ])
    def test_scenario_errors(self, make_scenario, static_data, track, uma, message):
        """Test invalid scenarios yield a single error event and no results."""
        runner = SimulationRunner(make_scenario(track=track, uma=uma), static_data,
                                  engines.constant_engine, settings(100))
        results, events = collect(runner)
        assert results == []
        assert [(e.type, e.error) for e in events] == [('error', message)]

    def test_failing_skill_is_isolated(self, make_scenario, static_data):
        """Test one skill's engine failure leaves the other skill's result intact."""
        runner = SimulationRunner(make_scenario(), static_data, engines.corner_failing_engine,
                                  settings(100), rng=np.random.default_rng(0))
        results, events = collect(runner)
        assert [r.skill for r in results] == ['Straightaway Adept']
        errors = [e for e in events if e.type == 'error']
        assert len(errors) == 1
        assert errors[0].skill == 'Corner Adept ○'
        assert errors[0].error == (
            'Skill "Corner Adept ○" failed: RuntimeError: cannot simulate corner skill'
        )
        assert events[-1].type == 'complete'

    def test_failed_skill_reports_error_result(self, make_scenario, static_data):
        """Test a failed skill gets an error-status result carrying the message."""
        runner = SimulationRunner(make_scenario(), static_data, engines.corner_failing_engine,
                                  settings(100), rng=np.random.default_rng(0))
        _, events = collect(runner)
        failed = [e.result for e in events if e.type == 'result' and e.result.status == 'error']
        assert len(failed) == 1
        assert failed[0].skill == 'Corner Adept ○'
        assert failed[0].num_simulations == 0
        assert failed[0].error_message == 'RuntimeError: cannot simulate corner skill'

    def test_failed_skill_skips_later_passes(self, make_scenario, static_data):
        """Test a failed skill is not dispatched again."""
        runner = SimulationRunner(make_scenario(), static_data, engines.corner_failing_engine,
                                  settings(100, 100), rng=np.random.default_rng(0))
        _, events = collect(runner)
        phases = [e.phase for e in events if e.type == 'phase']
        assert phases == [
            'Running 100 simulations for 2 skills...',
            'Running 100 simulations for 1 skills...',
        ]
        assert len([e for e in events if e.type == 'error']) == 1


class TestDeterministicMode:
    """Tests for reproducible runs."""

    def test_seed_counter(self, make_scenario, static_data):
        """Test deterministic runs seed tasks from a counter starting at zero."""
        scenario = make_scenario(deterministic=True, skills={'Corner Adept ○': {'discount': 10}})
        runner = SimulationRunner(scenario, static_data, engines.seed_echo_engine, settings(50))
        (result,) = runner.run()
        assert result.mean_length == 0.0

    def test_randomised_mechanics_disabled(self, make_scenario, static_data):
        """Test deterministic runs turn off the engine's random mechanics."""
        fixed = SimulationRunner(make_scenario(deterministic=True), static_data,
                                 engines.spurt_flag_engine, settings(50))
        randomised = SimulationRunner(make_scenario(), static_data,
                                      engines.spurt_flag_engine, settings(50))
        assert {r.mean_length for r in fixed.run()} == {0.0}
        assert {r.mean_length for r in randomised.run()} == {1.0}

    def test_passes_pool_by_sample_count(self, make_scenario, static_data):
        """Test a larger pass outweighs a smaller one in proportion to its runs."""
        scenario = make_scenario(
            deterministic=True,
            skills={'Straightaway Adept': {'discount': 0}},
            track={'weather': '<Random>', 'season': '<Random>', 'groundCondition': '<Random>'},
            uma={'mood': None},
        )
        runner = SimulationRunner(scenario, static_data, engines.second_task_engine,
                                  settings(100, 900))
        (result,) = runner.run()
        assert result.num_simulations == 1000
        assert result.mean_length == pytest.approx(0.9)

    def test_candidate_replaces_group_member(self, make_scenario, static_data):
        """Test the evaluated actor never holds two skills of one group."""
        scenario = make_scenario(
            uma={'skills': ['Corner Adept ○']},
            skills={'Corner Adept ◎': {'discount': 0}},
        )
        runner = SimulationRunner(scenario, static_data, engines.skill_count_engine, settings(50))
        (result,) = runner.run()
        assert result.skill == 'Corner Adept ◎'
        assert result.mean_length == 0.0
        assert result.cost == 170

    def test_candidate_added_alongside_other_groups(self, make_scenario, static_data):
        """Test skills from other groups stay on the evaluated actor."""
        scenario = make_scenario(
            uma={'skills': ['Dirt Runner']},
            skills={'Straightaway Adept': {'discount': 0}},
        )
        runner = SimulationRunner(scenario, static_data, engines.skill_count_engine, settings(50))
        (result,) = runner.run()
        assert result.mean_length == 1.0


class TestHelpers:
    """Tests for scenario parsing helpers."""

    def test_parse_race_conditions(self, make_scenario):
        """Test random conditions carry a pool and a placeholder value."""
        scenario = make_scenario(track={'weather': '<Random>'}, uma={'mood': None})
        conditions = parse_race_conditions(scenario.track, scenario.uma)
        assert conditions.weather.is_random
        assert conditions.weather.for_filtering is None
        assert conditions.weather.pool is not None
        assert not conditions.season.is_random
        assert conditions.season.value == 1
        assert set(conditions.random_dimensions()) == {'weather', 'mood'}

    def test_validate_scenario_passes(self, make_scenario):
        """Test a complete scenario validates."""
        validate_scenario(make_scenario())

    def test_resolve_courses_by_category(self, make_scenario, static_data):
        """Test a distance category selects every course of that length."""
        scenario = make_scenario(track={'trackName': 'Nakayama', 'distance': '<Long>'})
        courses, notices = resolve_courses(scenario, static_data)
        assert [c.course_id for c in courses] == ['10201']
        assert notices == ['Found 1 matching course(s) for random selection']

    def test_resolve_courses_error_type(self, make_scenario, static_data):
        """Test unresolved courses raise ScenarioError."""
        with pytest.raises(ScenarioError):
            resolve_courses(make_scenario(track={'courseId': '1'}), static_data)


class TestRunSkillEvaluation:
    """Tests for the summary entry point."""

    def test_summary(self, make_scenario, static_data):
        """Test the summary dict of a successful run."""
        summary = run_skill_evaluation(make_scenario(), static_data, engines.constant_engine,
                                       settings(100))
        assert [r.skill for r in summary['results']] == ['Corner Adept ○', 'Straightaway Adept']
        assert summary['errors'] == []
        assert summary['settings']['pass_budgets'] == [100]
        assert 1 <= summary['peak_running'] <= 2

    def test_error_summary(self, make_scenario, static_data):
        """Test a run that cannot start returns an error dict."""
        scenario = make_scenario(skills={'Dirt Runner': {'discount': 0}})
        summary = run_skill_evaluation(scenario, static_data, engines.constant_engine,
                                       settings(100))
        assert summary == {'error': NO_SKILLS_ERROR}

    def test_per_skill_errors_reported(self, make_scenario, static_data):
        """Test per-skill failures are listed alongside surviving results."""
        summary = run_skill_evaluation(make_scenario(), static_data,
                                       engines.corner_failing_engine, settings(100))
        assert len(summary['results']) == 1
        assert len(summary['errors']) == 1
