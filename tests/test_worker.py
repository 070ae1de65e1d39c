"""Tests for in-worker task execution."""

import pytest

import engines
from uma_skill_mc.simulation import actor_with_skill, resolve_engine, run_skill_task
from uma_skill_mc.types import Combo


class TestActorWithSkill:
    """Tests for candidate substitution into the base actor."""

    def test_appends_candidate(self, make_task):
        """Test the candidate is added to an actor without it."""
        task = make_task(base_skills=['200031'], group_ids={'200031': '20003'})
        assert actor_with_skill(task).skills == ['200031', '200012']
        assert task.base_uma.skills == ['200031']

    def test_replaces_same_group(self, make_task):
        """Test an owned skill from the candidate's group is removed."""
        task = make_task(
            base_skills=['200011', '200031'],
            group_ids={'200011': '20001', '200031': '20003'},
        )
        assert actor_with_skill(task).skills == ['200031', '200012']

    def test_no_duplicate_candidate(self, make_task):
        """Test an already present candidate is not added twice."""
        task = make_task(base_skills=['200012'], group_id=None)
        assert actor_with_skill(task).skills == ['200012']

    def test_ungrouped_candidate_keeps_ungrouped_skills(self, make_task):
        """Test a candidate without a group only replaces itself."""
        task = make_task(base_skills=['300001'], group_ids={}, group_id=None)
        assert actor_with_skill(task).skills == ['300001', '200012']


class TestRunSkillTask:
    """Tests for evaluating one task in-process."""

    def test_collects_every_combo(self, make_task):
        """Test values from all combos are collected with their weights."""
        combos = [
            Combo(0, 2, 1, 1, 1, samples=3, weight=0.25),
            Combo(0, 2, 1, 3, 1, samples=4, weight=0.75),
        ]
        results = run_skill_task(make_task(combos=combos), engines.constant_engine)
        assert len(results) == 7
        assert results.weights == [0.25] * 3 + [0.75] * 4
        assert results.is_weighted

    def test_seed_offsets(self, make_task):
        """Test each call's seed is offset by the samples already issued."""
        combos = [Combo(0, 2, 1, 1, 1, samples=5), Combo(0, 2, 1, 2, 1, samples=5)]
        results = run_skill_task(make_task(combos=combos, seed=7), engines.seed_echo_engine)
        assert results.values == [7.0] * 5 + [12.0] * 5

    def test_unseeded_stays_unseeded(self, make_task):
        """Test no seed is invented when the task has none."""
        results = run_skill_task(make_task(seed=None), engines.seed_echo_engine)
        assert set(results.values) == {-1.0}

    def test_minimum_samples_per_call(self, make_task):
        """Test a combo asking for one sample still runs two."""
        task = make_task(combos=[Combo(0, 2, 1, 1, 1, samples=1)])
        assert len(run_skill_task(task, engines.constant_engine)) == 2

    def test_race_params_follow_combo(self, make_task):
        """Test combo conditions override the base race parameters."""
        seen = []

        def recording_engine(samples, course, race_params, base, with_skill, options):
            seen.append((race_params.mood, race_params.season,
                         race_params.weather, race_params.ground_condition))
            return [0.0] * samples

        task = make_task(combos=[Combo(0, -1, 3, 2, 4, samples=2)])
        run_skill_task(task, recording_engine)
        assert seen == [(-1, 3, 2, 4)]

    def test_partial_callback(self, make_task):
        """Test the callback fires once per combo."""
        calls = []
        combos = [Combo(0, 2, 1, 1, 1, samples=2, weight=0.5)] * 3
        run_skill_task(make_task(combos=combos), engines.constant_engine,
                       on_partial=lambda i, v, w: calls.append((i, len(v), w)))
        assert calls == [(0, 2, 0.5), (1, 2, 0.5), (2, 2, 0.5)]

    def test_empty_engine_result_raises(self, make_task):
        """Test an engine returning nothing is an error."""
        with pytest.raises(ValueError, match='no results'):
            run_skill_task(make_task(), engines.empty_engine)


class TestResolveEngine:
    """Tests for engine reference resolution."""

    def test_callable_passthrough(self):
        """Test callables are returned unchanged."""
        assert resolve_engine(engines.constant_engine) is engines.constant_engine

    def test_import_path(self):
        """Test 'module:function' references are imported."""
        assert resolve_engine('engines:linear_engine') is engines.linear_engine

    @pytest.mark.parametrize('ref', ['engines', 'engines:not_callable', 'engines:missing', 42])
    def test_invalid_references(self, ref):
        """Test malformed or non-callable references raise ValueError."""
        with pytest.raises(ValueError):
            resolve_engine(ref)

    def test_missing_module(self):
        """Test an unknown module raises ImportError."""
        with pytest.raises(ImportError):
            resolve_engine('no_such_engine_module:compare')
