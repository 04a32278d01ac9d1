"""
Unit tests for ParEGO scalarization.

Tests the multi-objective scalarization including:
- Simplex lattice weight vectors
- Augmented Tchebycheff scalarization with normalization
- Scalarized archive copies
"""

import pytest
import numpy as np

from smbo.core.types import Evaluation, EvaluationStatus, ObjectiveKind
from smbo.optimization.multi_objective import (
    ParEGOScalarizer,
    augmented_tchebycheff,
    default_lattice_resolution,
    sample_weights,
    weight_lattice,
)


@pytest.fixture
def archive():
    """Bi-objective archive with one failed evaluation."""
    return [
        Evaluation(index=0, configuration={"x": 0.0}, outcome=(0.0, 10.0), kind=ObjectiveKind.MULTI),
        Evaluation(index=1, configuration={"x": 0.5}, outcome=(5.0, 5.0), kind=ObjectiveKind.MULTI),
        Evaluation(index=2, configuration={"x": 0.7}, outcome=None, kind=ObjectiveKind.MULTI,
                   status=EvaluationStatus.FAILED),
        Evaluation(index=3, configuration={"x": 1.0}, outcome=(10.0, 0.0), kind=ObjectiveKind.MULTI),
    ]


class TestWeightLattice:
    """Test suite for weight vector generation."""

    def test_two_objectives(self):
        """Test the lattice for two objectives and resolution 4."""
        lattice = weight_lattice(2, 4)
        assert lattice.shape == (5, 2)
        np.testing.assert_allclose(lattice.sum(axis=1), 1.0)
        assert {tuple(row) for row in lattice} == {
            (0.0, 1.0), (0.25, 0.75), (0.5, 0.5), (0.75, 0.25), (1.0, 0.0)
        }

    def test_three_objectives(self):
        """Test the lattice size is (s + m - 1 choose m - 1)."""
        lattice = weight_lattice(3, 2)
        assert lattice.shape == (6, 3)
        assert np.all(lattice >= 0)
        np.testing.assert_allclose(lattice.sum(axis=1), 1.0)

    def test_single_objective_rejected(self):
        """Test a lattice needs two objectives."""
        with pytest.raises(ValueError):
            weight_lattice(1, 5)

    def test_sample_distinct(self):
        """Test sampled weights are distinct while the lattice allows it."""
        lattice = weight_lattice(2, 10)
        weights = sample_weights(lattice, 5, np.random.default_rng(0))
        assert len({tuple(w) for w in weights}) == 5

    def test_default_resolution(self):
        """Test the resolution shrinks with the number of objectives."""
        assert default_lattice_resolution(2) > default_lattice_resolution(3)
        assert default_lattice_resolution(9) == 5


class TestScalarization:
    """Test suite for the augmented Tchebycheff function."""

    def test_extreme_weights(self):
        """Test a one-hot weight reduces to the normalized objective plus augmentation."""
        Y = np.array([[0.0, 10.0], [10.0, 0.0]])
        values = augmented_tchebycheff(Y, np.array([1.0, 0.0]), rho=0.0)
        np.testing.assert_allclose(values, [0.0, 1.0])

    def test_balanced_point_preferred(self):
        """Test equal weights favour the compromise over the extremes."""
        Y = np.array([[0.0, 10.0], [5.0, 5.0], [10.0, 0.0]])
        values = augmented_tchebycheff(Y, np.array([0.5, 0.5]), rho=0.05)
        assert int(np.argmin(values)) == 1

    def test_scalarized_archive(self, archive):
        """Test the copy is single-objective and keeps failures."""
        scalarizer = ParEGOScalarizer(2, [True, True], s=10, rng=np.random.default_rng(0))
        scalarized = scalarizer.scalarize(archive, np.array([0.5, 0.5]))

        assert len(scalarized) == 4
        assert all(e.kind == ObjectiveKind.SINGLE for e in scalarized)
        assert scalarized[2].outcome is None
        assert scalarized[2].status == EvaluationStatus.FAILED
        assert len(scalarized[1].outcome) == 1
        assert scalarized[1].configuration == {"x": 0.5}
        # Originals are untouched
        assert archive[1].outcome == (5.0, 5.0)

    def test_maximized_objective_flipped(self, archive):
        """Test maximized objectives are flipped before scalarizing."""
        scalarizer = ParEGOScalarizer(2, [False, True], s=10)
        scalarized = scalarizer.scalarize(archive, np.array([1.0, 0.0]))
        # Maximizing f1: the largest f1 gets the smallest scalar
        assert scalarized[3].outcome[0] < scalarized[0].outcome[0]

    def test_draw(self):
        """Test drawn weights come from the lattice."""
        scalarizer = ParEGOScalarizer(3, [True, True, True], s=4, rng=np.random.default_rng(1))
        weights = scalarizer.draw(3)
        assert weights.shape == (3, 3)
        np.testing.assert_allclose(weights.sum(axis=1), 1.0)
