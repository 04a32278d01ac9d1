"""
Unit tests for the objective evaluator.

Tests evaluation of the black-box objective including:
- Scalar, sequence and mapping results
- Failures from exceptions, wrong arity and non-finite values
- Batch evaluation on worker threads with timeouts and cancellation
"""

import threading
import time

import pytest
import numpy as np

from smbo.experimental_design.parameters import TRANSFORMS, Parameter, ParameterSpace
from smbo.optimization.evaluator import ObjectiveEvaluator


@pytest.fixture
def log_space():
    """Single parameter on a log2 scale."""
    return ParameterSpace([Parameter.continuous("x", -3.0, 3.0, transform=TRANSFORMS["exp2"])])


class TestSingleEvaluation:
    """Test suite for single evaluations and result coercion."""

    def test_scalar_result(self):
        """Test a scalar result becomes a one-element outcome."""
        evaluator = ObjectiveEvaluator(lambda x: x["x"] ** 2)
        outcome = evaluator.evaluate({"x": 3.0})

        assert not outcome.failed
        assert outcome.outcome == (9.0,)
        assert outcome.execution_time >= 0.0
        assert evaluator.n_calls == 1

    def test_transforms_applied(self, log_space):
        """Test the objective sees transformed values while the outcome keeps the raw configuration."""
        seen = []

        def objective(x):
            seen.append(x["x"])
            return x["x"]

        evaluator = ObjectiveEvaluator(objective, parameter_space=log_space)
        outcome = evaluator.evaluate({"x": 2.0})

        assert seen == [4.0]
        assert outcome.configuration == {"x": 2.0}
        assert outcome.outcome == (4.0,)

    def test_sequence_and_mapping_results(self):
        """Test multi-objective results given as list or mapping."""
        as_list = ObjectiveEvaluator(lambda x: [1.0, 2.0], n_objectives=2)
        as_mapping = ObjectiveEvaluator(
            lambda x: {"loss": 1.0, "time": 2.0, "ignored": 3.0},
            n_objectives=2,
            objective_names=["loss", "time"],
        )

        assert as_list.evaluate({}).outcome == (1.0, 2.0)
        assert as_mapping.evaluate({}).outcome == (1.0, 2.0)
        assert as_list.objective_names == ["y1", "y2"]

    def test_exception_becomes_failure(self):
        """Test exceptions in the objective are reported as failed outcomes."""
        def objective(x):
            raise RuntimeError("solver diverged")

        outcome = ObjectiveEvaluator(objective).evaluate({"x": 1.0})

        assert outcome.failed
        assert outcome.outcome is None
        assert "RuntimeError" in outcome.error
        assert "solver diverged" in outcome.error

    def test_overflowing_transform_becomes_failure(self):
        """Test a transform that raises is a failed outcome, not an exception."""
        space = ParameterSpace([Parameter.continuous("x", 0.0, 2000.0, transform=TRANSFORMS["exp"])])
        evaluator = ObjectiveEvaluator(lambda x: x["x"], parameter_space=space)

        outcome = evaluator.evaluate({"x": 1500.0})

        assert outcome.failed
        assert "OverflowError" in outcome.error
        assert outcome.configuration == {"x": 1500.0}

    @pytest.mark.parametrize("result", [[1.0, 2.0], float("nan"), float("inf"), "abc"])
    def test_invalid_results_fail(self, result):
        """Test wrong arity and non-finite or non-numeric values fail."""
        outcome = ObjectiveEvaluator(lambda x: result).evaluate({})
        assert outcome.failed

    def test_missing_mapping_key_fails(self):
        """Test a mapping lacking an objective name fails."""
        evaluator = ObjectiveEvaluator(lambda x: {"loss": 1.0}, n_objectives=2, objective_names=["loss", "time"])
        outcome = evaluator.evaluate({})
        assert outcome.failed
        assert "time" in outcome.error

    def test_invalid_construction(self):
        """Test inconsistent objective names are rejected."""
        with pytest.raises(ValueError):
            ObjectiveEvaluator(lambda x: 0.0, n_objectives=2, objective_names=["a"])


class TestBatchEvaluation:
    """Test suite for batch evaluation."""

    def test_results_in_input_order(self):
        """Test results come back indexed by input position whatever the completion order."""
        def objective(x):
            time.sleep(0.05 * (3 - x["i"]))
            return float(x["i"])

        evaluator = ObjectiveEvaluator(objective, n_workers=3)
        results = evaluator.evaluate_many([{"i": 0}, {"i": 1}, {"i": 2}])

        assert [position for position, _ in results] == [0, 1, 2]
        assert [outcome.outcome for _, outcome in results] == [(0.0,), (1.0,), (2.0,)]

    def test_concurrent_execution(self):
        """Test worker threads evaluate a batch concurrently."""
        barrier = threading.Barrier(2, timeout=5)

        def objective(x):
            barrier.wait()
            return 1.0

        results = ObjectiveEvaluator(objective, n_workers=2).evaluate_many([{}, {}])
        assert all(not outcome.failed for _, outcome in results)

    def test_failures_do_not_abort_batch(self):
        """Test one failing evaluation leaves the others intact."""
        def objective(x):
            if x["i"] == 1:
                raise ValueError("bad point")
            return 0.0

        results = ObjectiveEvaluator(objective, n_workers=2).evaluate_many([{"i": 0}, {"i": 1}, {"i": 2}])

        assert len(results) == 3
        assert [outcome.failed for _, outcome in results] == [False, True, False]

    def test_timeout(self):
        """Test slow evaluations fail with a timeout message."""
        release = threading.Event()

        def objective(x):
            if x["slow"]:
                release.wait(5)
            return 1.0

        evaluator = ObjectiveEvaluator(objective, n_workers=2, timeout=0.2)
        results = evaluator.evaluate_many([{"slow": True}, {"slow": False}])
        release.set()

        slow, fast = results[0][1], results[1][1]
        assert slow.failed
        assert "timed out" in slow.error
        assert not fast.failed

    def test_hung_call_does_not_block_queued_work(self):
        """Test a batch larger than the worker count finishes soon after a hung call times out."""
        release = threading.Event()

        def objective(x):
            if x["i"] == 0:
                release.wait(10)
            return float(x["i"])

        evaluator = ObjectiveEvaluator(objective, n_workers=1, timeout=0.3)
        start = time.time()
        results = evaluator.evaluate_many([{"i": 0}, {"i": 1}, {"i": 2}])
        elapsed = time.time() - start
        release.set()

        assert elapsed < 3.0
        assert [position for position, _ in results] == [0, 1, 2]
        assert "timed out" in results[0][1].error
        assert [outcome.outcome for _, outcome in results[1:]] == [(1.0,), (2.0,)]
        assert evaluator.n_calls == 3

    def test_call_count_under_concurrency(self):
        """Test every started evaluation is counted exactly once."""
        evaluator = ObjectiveEvaluator(lambda x: 0.0, n_workers=4)
        evaluator.evaluate_many([{"i": i} for i in range(20)])
        assert evaluator.n_calls == 20

    def test_cancellation_sequential(self):
        """Test cancellation stops a sequential batch between evaluations."""
        cancel = threading.Event()

        def objective(x):
            cancel.set()
            return 0.0

        results = ObjectiveEvaluator(objective).evaluate_many([{}, {}, {}], cancel_event=cancel)

        assert len(results) == 1
        assert results[0][0] == 0

    def test_cancellation_threaded(self):
        """Test cancellation stops starting new evaluations on worker threads."""
        cancel = threading.Event()

        def objective(x):
            cancel.set()
            return 0.0

        evaluator = ObjectiveEvaluator(objective, n_workers=1, timeout=5.0)
        results = evaluator.evaluate_many([{}, {}, {}], cancel_event=cancel)

        assert evaluator.n_calls == 1
        assert all(position == 0 for position, _ in results)

    def test_empty_batch(self):
        """Test an empty batch needs no evaluation."""
        assert ObjectiveEvaluator(lambda x: 0.0).evaluate_many([]) == []

    def test_sequence_result_as_numpy(self):
        """Test numpy arrays are accepted as outcome vectors."""
        outcome = ObjectiveEvaluator(lambda x: np.array([1, 2]), n_objectives=2).evaluate({})
        assert outcome.outcome == (1.0, 2.0)
