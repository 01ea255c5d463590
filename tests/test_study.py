"""Tests for study orchestration and best-trial selection."""

from concurrent.futures import ThreadPoolExecutor

import math
import time

import pytest

from hyperstudy import (
    InMemoryStorage,
    RandomSampler,
    Study,
    StudyConfig,
    StudyDirection,
    TrialState,
    create_study,
)


def _complete(storage, study, trial_id, value, **params):
    storage.create_trial(study.study_id, trial_id)
    for name, param in params.items():
        storage.set_trial_param(study.study_id, trial_id, name, param, "uniform")
    storage.set_trial_value(study.study_id, trial_id, value)


class TestBestTrial:
    def test_highest_complete_value_wins_over_running(self, study, storage):
        _complete(storage, study, 3, 10.0)
        _complete(storage, study, 7, 25.0)
        storage.set_trial_param(study.study_id, 2, "x", 1.0, "uniform")

        best = study.get_best_trial()
        assert best.trial_id == 7
        assert best.value == 25.0

    def test_only_running_trials_gives_none(self, study, storage):
        storage.create_trial(study.study_id, 0)
        storage.set_trial_param(study.study_id, 1, "x", 1, "uniform")
        assert study.get_best_trial() is None

    def test_empty_study_gives_none(self, study):
        assert study.get_best_trial() is None
        assert study.best_trial is None

    def test_failed_trials_are_not_candidates(self, study, storage):
        storage.set_trial_failed(study.study_id, 0, "ValueError: boom")
        assert study.get_best_trial() is None
        _complete(storage, study, 1, -100.0)
        assert study.get_best_trial().trial_id == 1

    def test_tie_goes_to_lowest_trial_id(self, study, storage):
        for trial_id in (4, 1, 6):
            _complete(storage, study, trial_id, 5.0)
        assert study.get_best_trial().trial_id == 1

    def test_nan_values_are_skipped(self, study, storage):
        _complete(storage, study, 0, math.nan)
        _complete(storage, study, 1, 2.0)
        assert study.get_best_trial().trial_id == 1

    def test_incomparable_values_never_displace(self, study, storage):
        _complete(storage, study, 0, 1.0)
        _complete(storage, study, 1, "high")
        assert study.get_best_trial().trial_id == 0

    def test_minimize_direction(self, storage):
        study = Study(storage=storage, direction="minimize")
        _complete(storage, study, 0, 3.0)
        _complete(storage, study, 1, -2.0)
        assert study.direction is StudyDirection.MINIMIZE
        assert study.get_best_trial().trial_id == 1

    def test_best_value_and_params(self, study, storage):
        _complete(storage, study, 0, 4.0, x=2, y=0.5)
        assert study.best_value == 4.0
        assert study.best_params == {"x": 2, "y": 0.5}

    def test_best_value_without_complete_trials(self, study):
        with pytest.raises(ValueError):
            study.best_value
        with pytest.raises(ValueError):
            study.best_params


class TestOptimize:
    def test_end_to_end_scenario(self, study):
        def objective(trial):
            x = trial.sample_uniform("x", 0, 10)
            y = trial.sample_uniform("y", -5.0, 5.0)
            return x * x + y

        records = study.optimize(objective, n_trials=50)

        assert [record.trial_id for record in records] == list(range(50))
        assert all(record.state is TrialState.COMPLETE for record in records)
        best = study.get_best_trial()
        assert best.state is TrialState.COMPLETE
        assert best.value == max(record.value for record in study.trials)
        assert set(best.params) == {"x", "y"}
        for record in study.trials:
            x, y = record.params["x"].value, record.params["y"].value
            assert type(x) is int and 0 <= x < 10
            assert -5.0 <= y < 5.0
            assert record.value == x * x + y

    def test_every_trial_is_terminal_when_optimize_returns(self, study):
        def objective(trial):
            time.sleep(0.001 * (trial.number % 5))
            return trial.sample_uniform("x", 0.0, 1.0)

        study.optimize(objective, 20, max_workers=8)
        trials = study.trials
        assert len(trials) == 20
        assert all(record.is_finished for record in trials)

    def test_objective_failure_is_recorded_not_raised(self, study):
        def objective(trial):
            trial.sample_uniform("x", 0, 10)
            if trial.number % 2:
                raise RuntimeError("diverged")
            return 1.0

        records = study.optimize(objective, 10)

        failed = [record for record in records if record.state is TrialState.FAIL]
        assert [record.trial_id for record in failed] == [1, 3, 5, 7, 9]
        assert all(record.error == "RuntimeError: diverged" for record in failed)
        assert all("x" in record.params for record in failed)
        assert study.get_best_trial().trial_id == 0

    def test_unwritable_value_fails_the_trial(self, study):
        records = study.optimize(lambda trial: object(), 2)
        assert all(record.state is TrialState.FAIL for record in records)
        assert all(record.error.startswith("TypeError") for record in records)
        assert study.get_best_trial() is None

    def test_objective_that_finishes_its_own_trial(self, study):
        def objective(trial):
            trial.storage.set_trial_value(trial.study_id, trial.trial_id, 3.0)
            return 1.0

        records = study.optimize(objective, 1)
        assert records[0].state is TrialState.COMPLETE
        assert records[0].value == 3.0

    def test_objective_without_sampling_completes(self, study):
        records = study.optimize(lambda trial: 2.5, 3)
        assert [record.value for record in records] == [2.5, 2.5, 2.5]
        assert all(record.params == {} for record in records)

    def test_trial_ids_continue_across_calls(self, study):
        study.optimize(lambda trial: 1.0, 3)
        second = study.optimize(lambda trial: 2.0, 2)
        assert [record.trial_id for record in second] == [3, 4]
        assert [record.trial_id for record in study.trials] == [0, 1, 2, 3, 4]

    def test_zero_and_negative_trials(self, study):
        assert study.optimize(lambda trial: 1.0, 0) == []
        with pytest.raises(ValueError):
            study.optimize(lambda trial: 1.0, -1)

    def test_callbacks_see_each_finished_trial(self, storage):
        seen = []
        study = Study(storage=storage, callbacks=[lambda s, record: seen.append(record.trial_id)])
        study.optimize(lambda trial: 1.0, 6)
        assert sorted(seen) == list(range(6))

    def test_studies_sharing_storage_stay_separate(self, storage):
        first = Study(storage=storage)
        second = Study(storage=storage)
        first.optimize(lambda trial: 1.0, 2)
        second.optimize(lambda trial: 5.0, 3)
        assert len(first.trials) == 2
        assert len(second.trials) == 3
        assert first.best_value == 1.0

    def test_reattached_study_continues_numbering(self, storage):
        first = Study(storage=storage)
        first.optimize(lambda trial: 1.0, 2)
        calls = []

        def objective(trial):
            calls.append(trial.number)
            return 5.0

        reattached = Study(storage=storage, study_id=first.study_id)
        records = reattached.optimize(objective, 2)

        assert [record.trial_id for record in records] == [2, 3]
        assert [record.value for record in records] == [5.0, 5.0]
        assert sorted(calls) == [2, 3]
        assert [record.value for record in first.trials] == [1.0, 1.0, 5.0, 5.0]

    def test_running_trial_of_another_study_object_is_untouched(self, storage, study_id):
        storage.create_trial(study_id, 0)
        records = Study(storage=storage, study_id=study_id).optimize(lambda trial: 1.0, 2)

        assert [record.trial_id for record in records] == [1, 2]
        assert storage.get_trial(study_id, 0).state is TrialState.RUNNING

    def test_concurrent_study_objects_sharing_an_id(self, storage, study_id):
        studies = [Study(storage=storage, study_id=study_id) for _ in range(2)]

        def run(index):
            return studies[index].optimize(lambda trial: float(index), 20, max_workers=4)

        with ThreadPoolExecutor(max_workers=2) as pool:
            runs = list(pool.map(run, range(2)))

        ids = sorted(record.trial_id for records in runs for record in records)
        assert ids == list(range(40))
        trials = storage.get_trials(study_id)
        assert all(record.state is TrialState.COMPLETE for record in trials)
        assert sorted(record.value for record in trials) == [0.0] * 20 + [1.0] * 20

    def test_corrupted_record_fails_only_its_trial(self, study_id):
        shared = {}
        storage = InMemoryStorage(records=shared)
        study = Study(storage=storage, study_id=study_id)

        def objective(trial):
            if trial.number == 1:
                shared[study_id][1] = "{broken"
            return 1.0

        records = study.optimize(objective, 3, max_workers=1)

        assert [record.trial_id for record in records] == [0, 1, 2]
        assert records[1].state is TrialState.FAIL
        assert records[1].error.startswith("DecodeError")
        assert records[0].state is TrialState.COMPLETE
        assert records[2].state is TrialState.COMPLETE


class TestCancellation:
    def test_stop_cancels_remaining_trials(self, study):
        def objective(trial):
            if trial.number == 0:
                study.stop()
            return 1.0

        records = study.optimize(objective, 4, max_workers=1)
        assert records[0].state is TrialState.COMPLETE
        assert all(record.state is TrialState.FAIL for record in records[1:])
        assert all(record.error == "TrialCancelledError: stopped" for record in records[1:])

    def test_max_failures_stops_the_run(self, storage):
        study = Study(storage=storage, config=StudyConfig(max_failures=2))

        def objective(trial):
            raise ValueError("bad config")

        records = study.optimize(objective, 5, max_workers=1)
        assert [record.error for record in records[:2]] == ["ValueError: bad config"] * 2
        assert all(record.error.startswith("TrialCancelledError") for record in records[2:])
        assert all(record.state is TrialState.FAIL for record in records)

    def test_failure_budget_resets_between_runs(self, storage):
        study = Study(storage=storage, config=StudyConfig(max_failures=2))

        def always_fails(trial):
            raise ValueError("bad config")

        def fails_once(trial):
            if trial.number == 2:
                raise ValueError("bad config")
            return 1.0

        study.optimize(always_fails, 2, max_workers=1)
        records = study.optimize(fails_once, 4, max_workers=1)

        assert [record.state for record in records] == [TrialState.FAIL] + [TrialState.COMPLETE] * 3

    def test_timeout_cancels_pending_trials(self, study):
        def objective(trial):
            time.sleep(0.3)
            return 1.0

        records = study.optimize(objective, 3, max_workers=1, timeout=0.05)
        assert records[0].state is TrialState.COMPLETE
        assert all(record.state is TrialState.FAIL for record in records[1:])
        assert all("timeout" in record.error for record in records[1:])

    def test_cancellation_interrupts_sampling(self, study):
        def objective(trial):
            study.stop()
            trial.sample_uniform("x", 0.0, 1.0)
            return 1.0

        records = study.optimize(objective, 1)
        assert records[0].state is TrialState.FAIL
        assert records[0].params == {}


class TestCreateStudy:
    def test_config_drives_defaults(self):
        study = create_study(config=StudyConfig(direction="minimize", seed=3, lock_stripes=8))
        assert study.direction is StudyDirection.MINIMIZE
        assert isinstance(study.storage, InMemoryStorage)
        assert study.sampler.seed == 3

    def test_direction_argument_overrides_config(self):
        study = create_study(direction="maximize", config=StudyConfig(direction="minimize"))
        assert study.direction is StudyDirection.MAXIMIZE

    def test_each_study_gets_its_own_storage(self):
        first, second = create_study(), create_study()
        assert first.storage is not second.storage
        assert first.study_id != second.study_id

    def test_seeded_sequential_runs_are_reproducible(self):
        def objective(trial):
            return trial.sample_uniform("x", 0.0, 1.0)

        runs = []
        for _ in range(2):
            study = create_study(sampler=RandomSampler(seed=9), config=StudyConfig(max_workers=1))
            study.optimize(objective, 5)
            runs.append([record.value for record in study.trials])
        assert runs[0] == runs[1]

    def test_run_log_written_to_log_path(self, tmp_path):
        log_path = tmp_path / "logs" / "run.log"
        study = create_study(config=StudyConfig(log_path=log_path))
        study.optimize(lambda trial: 1.0, 2)
        content = log_path.read_text(encoding="utf-8")
        assert "Starting study" in content
        assert "[trial 1] complete" in content
        assert "Completed study" in content

    def test_trials_dataframe(self, study):
        study.optimize(lambda trial: trial.sample_uniform("x", 0, 3), 4)
        table = study.trials_dataframe()
        assert list(table.columns) == ["trial_id", "state", "value", "error", "param_x"]
        assert len(table) == 4
