"""
Infill criteria for model-based optimization.

This module implements the criteria used to score unevaluated candidates
from surrogate predictions:
- Mean: predicted mean, usable with any surrogate
- Expected Improvement (EI): closed form under a Gaussian predictive
- Confidence Bound (CB): mean shifted by a multiple of the dispersion
- Direct Indicator Based (DIB): multi-objective, scores the confidence
  bound vector by its epsilon indicator or hypervolume contribution
  relative to the current Pareto front

All criteria return scores where larger is better.

Based on:
- Jones et al. (1998) "Efficient Global Optimization of Expensive Black-Box Functions"
- Srinivas et al. (2010) "Gaussian Process Optimization in the Bandit Setting"
- Horn et al. (2015) "Model-based multi-objective optimization: taxonomy,
  multi-point proposal, toolbox and benchmark"
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import numpy as np
from scipy.stats import norm

from smbo.core.base import BaseInfillCriterion
from smbo.core.exceptions import ConfigurationError
from smbo.core.types import (
    DibIndicator,
    Evaluation,
    InfillCriterionType,
    ModelPrediction,
)
from smbo.optimization.pareto import (
    additive_epsilon,
    default_reference_point,
    hypervolume_contribution,
    non_dominated_mask,
    to_minimization,
)

logger = logging.getLogger(__name__)

# Standard deviations below this are treated as zero
MIN_STD = 1e-12


@dataclass(frozen=True)
class InfillScores:
    """Scores of a set of candidates plus the predictions they came from."""
    score: np.ndarray
    mean: np.ndarray
    std: Optional[np.ndarray] = None

    @property
    def dispersion(self) -> np.ndarray:
        """Per-candidate dispersion used for tie-breaking (zeros when unavailable)."""
        if self.std is None:
            return np.zeros(len(self.score))
        std = np.asarray(self.std)
        return std if std.ndim == 1 else np.mean(std, axis=1)


def observed_outcomes(archive: Sequence[Evaluation]) -> np.ndarray:
    ok = [e.outcome for e in archive if e.is_ok and e.outcome is not None]
    if not ok:
        return np.empty((0, 0))
    return np.array(ok, dtype=float)


class MeanCriterion(BaseInfillCriterion):
    """Predicted mean; lower is better when minimizing."""

    name = InfillCriterionType.MEAN.value

    def evaluate(self, predictions: List[ModelPrediction], archive: Sequence[Evaluation]) -> InfillScores:
        pred = predictions[0]
        sign = 1.0 if self.minimize[0] else -1.0
        return InfillScores(score=-sign * pred.mean, mean=pred.mean, std=pred.std)


class ExpectedImprovement(BaseInfillCriterion):
    """
    Expected Improvement acquisition function.

    EI(x) = E[max(f_min - f(x) - xi, 0)]

    where f_min is the current best (minimum) observed value.
    """

    name = InfillCriterionType.EXPECTED_IMPROVEMENT.value
    requires_dispersion = True

    def __init__(self, minimize: Sequence[bool], xi: float = 0.0, **kwargs):
        """
        Initialize Expected Improvement.

        Args:
            minimize: Objective direction
            xi: Exploration parameter (higher values encourage more exploration)
        """
        super().__init__(minimize, **kwargs)
        self.xi = xi

    def evaluate(self, predictions: List[ModelPrediction], archive: Sequence[Evaluation]) -> InfillScores:
        pred = predictions[0]
        if pred.std is None:
            raise ConfigurationError("Expected improvement requires a dispersion estimate")

        sign = 1.0 if self.minimize[0] else -1.0
        Y = observed_outcomes(archive)
        if Y.size == 0:
            raise ValueError("Expected improvement needs at least one successful evaluation")
        current_best = float(np.min(sign * Y[:, 0]))

        mu = sign * pred.mean
        std = pred.std
        improvement = current_best - mu - self.xi
        ei = np.maximum(improvement, 0.0)
        positive = std > MIN_STD
        z = improvement[positive] / std[positive]
        ei[positive] = improvement[positive] * norm.cdf(z) + std[positive] * norm.pdf(z)
        return InfillScores(score=np.maximum(ei, 0.0), mean=pred.mean, std=std)


class ConfidenceBound(BaseInfillCriterion):
    """
    Lower (minimization) or upper (maximization) confidence bound.

    The bound is shifted toward the optimistic side by ``cb_lambda``
    standard deviations, which favours exploration.
    """

    name = InfillCriterionType.CONFIDENCE_BOUND.value
    requires_dispersion = True

    def __init__(self, minimize: Sequence[bool], cb_lambda: float = 1.0, **kwargs):
        super().__init__(minimize, **kwargs)
        if cb_lambda < 0:
            raise ConfigurationError("cb_lambda must be non-negative")
        self.cb_lambda = cb_lambda

    def evaluate(self, predictions: List[ModelPrediction], archive: Sequence[Evaluation]) -> InfillScores:
        pred = predictions[0]
        if pred.std is None:
            raise ConfigurationError("Confidence bound requires a dispersion estimate")
        sign = 1.0 if self.minimize[0] else -1.0
        bound = sign * pred.mean - self.cb_lambda * pred.std
        return InfillScores(score=-bound, mean=pred.mean, std=pred.std)


class DirectIndicatorBased(BaseInfillCriterion):
    """
    Direct indicator based criterion for multi-objective optimization.

    Each candidate is represented by its confidence bound vector. With the
    epsilon indicator the score is the negated additive epsilon against the
    current front. With the SMS indicator non-dominated candidates score
    their hypervolume contribution and dominated ones the negated epsilon.
    """

    name = InfillCriterionType.DIRECT_INDICATOR.value
    requires_dispersion = True

    def __init__(
        self,
        minimize: Sequence[bool],
        indicator: DibIndicator = DibIndicator.EPSILON,
        cb_lambda: float = 1.0,
        reference_offset: float = 1.0,
        **kwargs
    ):
        """
        Initialize the criterion.

        Args:
            minimize: Direction per objective
            indicator: Front quality indicator ('eps' or 'sms')
            cb_lambda: Confidence bound multiplier
            reference_offset: Offset added to the worst observed values to
                form the hypervolume reference point
        """
        super().__init__(minimize, **kwargs)
        if len(self.minimize) < 2:
            raise ConfigurationError("The dib criterion needs at least two objectives")
        self.indicator = DibIndicator(indicator)
        self.cb_lambda = cb_lambda
        self.reference_offset = reference_offset

    def evaluate(self, predictions: List[ModelPrediction], archive: Sequence[Evaluation]) -> InfillScores:
        if len(predictions) != self.n_objectives:
            raise ValueError(f"Expected {self.n_objectives} predictions, got {len(predictions)}")
        if any(p.std is None for p in predictions):
            raise ConfigurationError("The dib criterion requires dispersion estimates")

        mean = np.column_stack([p.mean for p in predictions])
        std = np.column_stack([p.std for p in predictions])
        bound = to_minimization(mean, self.minimize) - self.cb_lambda * std

        Y = observed_outcomes(archive)
        if Y.size == 0:
            raise ValueError("The dib criterion needs at least one successful evaluation")
        Y = to_minimization(Y, self.minimize)
        front = Y[non_dominated_mask(Y)]

        eps = additive_epsilon(bound, front)
        if self.indicator == DibIndicator.EPSILON:
            score = -eps
        else:
            reference = default_reference_point(np.vstack([Y, bound]), self.reference_offset)
            score = -eps
            improving = eps < 0
            if np.any(improving):
                score[improving] = hypervolume_contribution(bound[improving], front, reference)
        return InfillScores(score=score, mean=mean, std=std)


def default_cb_lambda(parameter_space) -> float:
    """1 for purely numeric spaces, 2 when categorical parameters are present."""
    return 1.0 if parameter_space.is_all_numeric else 2.0


def create_infill_criterion(
    criterion: InfillCriterionType,
    minimize: Sequence[bool],
    parameter_space,
    params: Optional[Dict[str, Any]] = None,
    indicator: DibIndicator = DibIndicator.EPSILON,
) -> BaseInfillCriterion:
    """
    Create an infill criterion by type.

    Args:
        criterion: Criterion type
        minimize: Direction per modelled objective
        parameter_space: Space, used for defaults
        params: Criterion parameters ('cb_lambda', 'xi', 'reference_offset')
        indicator: Indicator for the dib criterion

    Returns:
        Infill criterion instance
    """
    params = dict(params or {})
    criterion = InfillCriterionType(criterion)
    cb_lambda = params.get("cb_lambda", default_cb_lambda(parameter_space))

    if criterion == InfillCriterionType.MEAN:
        return MeanCriterion(minimize)
    if criterion == InfillCriterionType.EXPECTED_IMPROVEMENT:
        return ExpectedImprovement(minimize, xi=params.get("xi", 0.0))
    if criterion == InfillCriterionType.CONFIDENCE_BOUND:
        return ConfidenceBound(minimize, cb_lambda=cb_lambda)
    if criterion == InfillCriterionType.DIRECT_INDICATOR:
        return DirectIndicatorBased(
            minimize,
            indicator=indicator,
            cb_lambda=cb_lambda,
            reference_offset=params.get("reference_offset", 1.0),
        )
    raise ConfigurationError(f"Unknown infill criterion: {criterion}")
