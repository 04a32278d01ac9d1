"""
Unit tests for infill criteria.

Tests the candidate scoring functions including:
- Mean criterion for either objective direction
- Expected Improvement (EI) closed form and zero-dispersion limit
- Confidence bound with its lambda default
- Direct indicator based criterion with epsilon and SMS indicators
"""

import pytest
import numpy as np
from scipy.stats import norm

from smbo.core.exceptions import ConfigurationError
from smbo.core.types import DibIndicator, Evaluation, InfillCriterionType, ModelPrediction, ObjectiveKind
from smbo.experimental_design.parameters import Parameter, ParameterSpace
from smbo.optimization.infill import (
    ConfidenceBound,
    DirectIndicatorBased,
    ExpectedImprovement,
    InfillScores,
    MeanCriterion,
    create_infill_criterion,
    default_cb_lambda,
)


def make_archive(outcomes):
    kind = ObjectiveKind.SINGLE if len(outcomes[0]) == 1 else ObjectiveKind.MULTI
    return [
        Evaluation(index=i, configuration={"x": float(i)}, outcome=tuple(outcome), kind=kind)
        for i, outcome in enumerate(outcomes)
    ]


@pytest.fixture
def single_archive():
    """Single-objective archive with best value 1.0."""
    return make_archive([(3.0,), (1.0,), (2.0,)])


@pytest.fixture
def prediction():
    """Predictions for three candidates."""
    return ModelPrediction(mean=np.array([1.0, 0.0, 2.0]), std=np.array([0.0, 0.0, 1.0]))


class TestMeanCriterion:
    """Test suite for the mean criterion."""

    def test_minimize(self, prediction, single_archive):
        """Test lower means score higher when minimizing."""
        scores = MeanCriterion([True]).evaluate([prediction], single_archive)
        assert int(np.argmax(scores.score)) == 1

    def test_maximize(self, prediction, single_archive):
        """Test higher means score higher when maximizing."""
        scores = MeanCriterion([False]).evaluate([prediction], single_archive)
        assert int(np.argmax(scores.score)) == 2

    def test_without_dispersion(self, single_archive):
        """Test the mean criterion works for surrogates without dispersion."""
        scores = MeanCriterion([True]).evaluate([ModelPrediction(mean=np.array([0.5]))], single_archive)
        assert scores.std is None
        np.testing.assert_array_equal(scores.dispersion, [0.0])


class TestExpectedImprovement:
    """Test suite for Expected Improvement."""

    def test_closed_form(self, prediction, single_archive):
        """Test EI against the analytic expression."""
        scores = ExpectedImprovement([True]).evaluate([prediction], single_archive)

        assert scores.score[0] == pytest.approx(0.0)
        # Zero dispersion: EI is the plain improvement
        assert scores.score[1] == pytest.approx(1.0)
        assert scores.score[2] == pytest.approx(-1.0 * norm.cdf(-1.0) + norm.pdf(-1.0))

    def test_non_negative(self, single_archive):
        """Test EI is never negative."""
        rng = np.random.default_rng(0)
        pred = ModelPrediction(mean=rng.normal(size=50) * 5, std=rng.random(50))
        scores = ExpectedImprovement([True], xi=0.1).evaluate([pred], single_archive)
        assert np.all(scores.score >= 0.0)

    def test_maximize(self, single_archive):
        """Test EI measures improvement over the maximum when maximizing."""
        pred = ModelPrediction(mean=np.array([2.0, 4.0]), std=np.array([0.0, 0.0]))
        scores = ExpectedImprovement([False]).evaluate([pred], single_archive)
        np.testing.assert_allclose(scores.score, [0.0, 1.0])

    def test_requires_dispersion(self, single_archive):
        """Test EI rejects predictions without dispersion."""
        criterion = ExpectedImprovement([True])
        assert criterion.requires_dispersion
        with pytest.raises(ConfigurationError):
            criterion.evaluate([ModelPrediction(mean=np.array([0.0]))], single_archive)


class TestConfidenceBound:
    """Test suite for the confidence bound criterion."""

    def test_lower_bound(self, prediction, single_archive):
        """Test the score is the negated lower confidence bound."""
        scores = ConfidenceBound([True], cb_lambda=2.0).evaluate([prediction], single_archive)
        np.testing.assert_allclose(scores.score, [-1.0, 0.0, 0.0])

    def test_negative_lambda(self):
        """Test lambda must be non-negative."""
        with pytest.raises(ConfigurationError):
            ConfidenceBound([True], cb_lambda=-1.0)

    def test_default_lambda(self):
        """Test lambda defaults to 1 for numeric and 2 for mixed spaces."""
        numeric = ParameterSpace([Parameter.continuous("x", 0, 1)])
        mixed = ParameterSpace([Parameter.continuous("x", 0, 1), Parameter.categorical("c", ["a", "b"])])

        assert default_cb_lambda(numeric) == 1.0
        assert default_cb_lambda(mixed) == 2.0
        assert create_infill_criterion(InfillCriterionType.CONFIDENCE_BOUND, [True], mixed).cb_lambda == 2.0
        assert create_infill_criterion("cb", [True], mixed, params={"cb_lambda": 0.5}).cb_lambda == 0.5


class TestDirectIndicatorBased:
    """Test suite for the DIB criterion."""

    @pytest.fixture
    def archive(self):
        """Bi-objective archive whose front is (1, 2), (2, 1)."""
        return make_archive([(1.0, 2.0), (2.0, 1.0), (3.0, 3.0)])

    @staticmethod
    def predictions(points):
        points = np.asarray(points, dtype=float)
        zeros = np.zeros(len(points))
        return [ModelPrediction(mean=points[:, j], std=zeros) for j in range(points.shape[1])]

    def test_epsilon_prefers_improving_points(self, archive):
        """Test candidates beyond the front outscore dominated ones."""
        criterion = DirectIndicatorBased([True, True], indicator=DibIndicator.EPSILON)
        scores = criterion.evaluate(self.predictions([[0.5, 0.5], [2.5, 2.5]]), archive)

        assert scores.score[0] == pytest.approx(1.5)
        assert scores.score[1] == pytest.approx(-0.5)
        assert scores.mean.shape == (2, 2)

    def test_sms_uses_hypervolume_contribution(self, archive):
        """Test non-dominated candidates score their hypervolume contribution."""
        criterion = DirectIndicatorBased([True, True], indicator=DibIndicator.SMS, reference_offset=1.0)
        scores = criterion.evaluate(self.predictions([[1.5, 1.5], [2.5, 2.5]]), archive)

        # Reference point is (4, 4); (1.5, 1.5) adds a 0.5 x 0.5 square
        assert scores.score[0] == pytest.approx(0.25)
        assert scores.score[1] < 0

    def test_needs_two_objectives(self):
        """Test DIB is rejected for a single objective."""
        with pytest.raises(ConfigurationError):
            DirectIndicatorBased([True])

    def test_dispersion_averaged_for_ties(self):
        """Test multi-objective dispersion is averaged per candidate."""
        scores = InfillScores(score=np.zeros(2), mean=np.zeros((2, 2)), std=np.array([[1.0, 3.0], [0.0, 0.0]]))
        np.testing.assert_allclose(scores.dispersion, [2.0, 0.0])
