"""
Unit tests for surrogate models.

Tests the scikit-learn backed surrogates including:
- Fitting on encoded mixed and hierarchical configurations
- Predictions with and without dispersion
- Fit failures on insufficient data and prediction failures
"""

from dataclasses import replace

import pytest
import numpy as np

from smbo.core.exceptions import SurrogateFitFailure, SurrogatePredictionFailure
from smbo.core.types import Evaluation, EvaluationStatus
from smbo.experimental_design.parameters import Parameter, ParameterSpace, Requirement
from smbo.models import (
    GaussianProcessSurrogate,
    LinearSurrogate,
    RandomForestSurrogate,
    create_surrogate,
)


@pytest.fixture
def numeric_space():
    """Two continuous parameters."""
    return ParameterSpace([Parameter.continuous("x1", -2.0, 2.0), Parameter.continuous("x2", -2.0, 2.0)])


@pytest.fixture
def numeric_archive(numeric_space):
    """Sphere evaluations on a random sample."""
    configurations = numeric_space.sample(15, np.random.default_rng(0))
    return [
        Evaluation(index=i, configuration=c, outcome=(c["x1"] ** 2 + c["x2"] ** 2,))
        for i, c in enumerate(configurations)
    ]


@pytest.fixture
def hierarchical_space():
    """Mixed space with a conditional parameter."""
    return ParameterSpace([
        Parameter.categorical("kernel", ["linear", "radial"]),
        Parameter.continuous("cost", 0.0, 1.0),
        Parameter.continuous("gamma", 0.0, 1.0, requires=Requirement.equals("kernel", "radial")),
    ])


class TestRandomForestSurrogate:
    """Test suite for the random forest surrogate."""

    def test_fit_and_predict(self, numeric_space, numeric_archive):
        """Test predictions have means and non-negative dispersion."""
        surrogate = RandomForestSurrogate(numeric_space, n_estimators=20, random_state=0)
        state = surrogate.fit(numeric_archive)
        prediction = surrogate.predict(state, [{"x1": 0.0, "x2": 0.0}, {"x1": 2.0, "x2": 2.0}])

        assert state.n_train == 15
        assert state.y_best == pytest.approx(min(e.outcome[0] for e in numeric_archive))
        assert prediction.mean.shape == (2,)
        assert prediction.has_dispersion
        assert np.all(prediction.std >= 0)
        assert prediction.mean[0] < prediction.mean[1]

    def test_hierarchical_space(self, hierarchical_space):
        """Test fitting on configurations with inactive parameters."""
        rng = np.random.default_rng(1)
        configurations = hierarchical_space.sample(12, rng)
        archive = [
            Evaluation(index=i, configuration=c, outcome=(c["cost"] + c.get("gamma", 0.5),))
            for i, c in enumerate(configurations)
        ]
        surrogate = RandomForestSurrogate(hierarchical_space, n_estimators=10, random_state=0)
        prediction = surrogate.predict(surrogate.fit(archive), hierarchical_space.sample(5, rng))

        assert prediction.mean.shape == (5,)
        assert np.all(np.isfinite(prediction.mean))

    def test_failed_evaluations_ignored(self, numeric_space):
        """Test too few successful evaluations raise SurrogateFitFailure."""
        archive = [
            Evaluation(index=0, configuration={"x1": 0.0, "x2": 0.0}, outcome=(0.0,)),
            Evaluation(index=1, configuration={"x1": 1.0, "x2": 0.0}, outcome=None, status=EvaluationStatus.FAILED),
        ]
        with pytest.raises(SurrogateFitFailure):
            RandomForestSurrogate(numeric_space).fit(archive)


class TestGaussianProcessSurrogate:
    """Test suite for the Gaussian process surrogate."""

    def test_interpolates_training_data(self, numeric_space, numeric_archive):
        """Test the GP reproduces training targets with small dispersion."""
        surrogate = GaussianProcessSurrogate(numeric_space, random_state=0)
        state = surrogate.fit(numeric_archive)
        configurations = [e.configuration for e in numeric_archive[:3]]
        prediction = surrogate.predict(state, configurations)

        expected = [e.outcome[0] for e in numeric_archive[:3]]
        np.testing.assert_allclose(prediction.mean, expected, atol=0.1)
        assert np.all(prediction.std < 0.1)

    def test_noisy_kernel(self, numeric_space, numeric_archive):
        """Test the noisy variant fits and reports its kernel."""
        surrogate = GaussianProcessSurrogate(numeric_space, noisy=True, random_state=0)
        surrogate.fit(numeric_archive)
        assert surrogate.get_model_info()["noisy"] is True


class TestLinearSurrogate:
    """Test suite for the linear surrogate."""

    def test_no_dispersion(self, numeric_space, numeric_archive):
        """Test the linear surrogate predicts means only."""
        surrogate = LinearSurrogate(numeric_space)
        prediction = surrogate.predict(surrogate.fit(numeric_archive), [{"x1": 0.0, "x2": 0.0}])

        assert not surrogate.supports_dispersion
        assert prediction.std is None
        assert not prediction.has_dispersion

    def test_predict_failure_wrapped(self, numeric_space, numeric_archive):
        """Test estimator errors at prediction time raise SurrogatePredictionFailure."""
        surrogate = LinearSurrogate(numeric_space)
        state = replace(surrogate.fit(numeric_archive), estimator=None)

        with pytest.raises(SurrogatePredictionFailure, match="LinearSurrogate predict failed"):
            surrogate.predict(state, [{"x1": 0.0, "x2": 0.0}])


class TestFactory:
    """Test suite for surrogate lookup."""

    def test_create_by_name(self, numeric_space):
        """Test short names map to surrogate classes."""
        assert isinstance(create_surrogate("rf", numeric_space), RandomForestSurrogate)
        assert isinstance(create_surrogate("gp", numeric_space), GaussianProcessSurrogate)
        assert isinstance(create_surrogate("linear", numeric_space), LinearSurrogate)

    def test_unknown_name(self, numeric_space):
        """Test unknown names are rejected."""
        with pytest.raises(ValueError):
            create_surrogate("xgboost", numeric_space)
