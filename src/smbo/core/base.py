"""
Base classes and abstract interfaces for the SMBO engine.

This module defines the capability interfaces the engine consumes:
surrogate models and infill criteria.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Sequence

import numpy as np

from smbo.core.exceptions import SurrogateFitFailure, SurrogatePredictionFailure
from smbo.core.types import Evaluation, ModelPrediction, ParameterDict


@dataclass(frozen=True)
class SurrogateState:
    """
    Opaque fitted model.

    Built from one archive snapshot and discarded after the iteration that
    produced it; never refitted in place.
    """
    estimator: Any
    objective_index: int
    n_train: int
    y_best: float
    metadata: Dict[str, Any] = field(default_factory=dict)


class BaseSurrogateModel(ABC):
    """
    Abstract base class for surrogate models.

    Implementations receive mixed-type configurations and do their own
    encoding through ``ParameterSpace.encode``.
    """

    supports_dispersion: bool = True
    min_train_points: int = 2

    def __init__(self, parameter_space, **kwargs):
        """
        Initialize the surrogate model.

        Args:
            parameter_space: Space the configurations belong to
            **kwargs: Estimator options
        """
        self.parameter_space = parameter_space
        self.kwargs = kwargs

    def training_data(
        self,
        archive: Sequence[Evaluation],
        objective_index: int = 0,
    ):
        """Encode successful evaluations into (X, y)."""
        ok = [e for e in archive if e.is_ok and e.outcome is not None]
        if len(ok) < self.min_train_points:
            raise SurrogateFitFailure(
                f"{self.__class__.__name__} needs at least {self.min_train_points} "
                f"successful evaluations, got {len(ok)}"
            )

        X = self.parameter_space.encode([e.configuration for e in ok])
        Y = np.array([e.outcome for e in ok], dtype=float)
        y = Y[:, objective_index]

        if not np.all(np.isfinite(y)):
            raise SurrogateFitFailure("Training targets contain non-finite values")
        return X, y

    def fit(self, archive: Sequence[Evaluation], objective_index: int = 0) -> SurrogateState:
        """
        Fit the surrogate model to an archive snapshot.

        Args:
            archive: Evaluations to train on (failed ones are ignored)
            objective_index: Which outcome component to model

        Returns:
            Fitted surrogate state
        """
        X, y = self.training_data(archive, objective_index)
        try:
            estimator = self._fit_estimator(X, y)
        except SurrogateFitFailure:
            raise
        except Exception as e:
            raise SurrogateFitFailure(f"{self.__class__.__name__} fit failed: {e}") from e

        return SurrogateState(
            estimator=estimator,
            objective_index=objective_index,
            n_train=len(y),
            y_best=float(np.min(y)),
            metadata={"model": self.__class__.__name__},
        )

    def predict(
        self,
        state: SurrogateState,
        configurations: Sequence[ParameterDict],
    ) -> ModelPrediction:
        """
        Make predictions at given configurations.

        Args:
            state: Fitted surrogate state
            configurations: Configurations to predict

        Returns:
            Mean and (if supported) standard deviation per configuration

        Raises:
            SurrogatePredictionFailure: the estimator failed to predict
        """
        X = self.parameter_space.encode(list(configurations))
        try:
            mean, std = self._predict_estimator(state.estimator, X)
        except Exception as e:
            raise SurrogatePredictionFailure(f"{self.__class__.__name__} predict failed: {e}") from e
        mean = np.asarray(mean, dtype=float).ravel()
        if std is not None:
            std = np.maximum(np.asarray(std, dtype=float).ravel(), 0.0)
        return ModelPrediction(mean=mean, std=std)

    @abstractmethod
    def _fit_estimator(self, X: np.ndarray, y: np.ndarray) -> Any:
        """Fit the underlying estimator on an encoded design matrix."""
        pass

    @abstractmethod
    def _predict_estimator(self, estimator: Any, X: np.ndarray):
        """Return (mean, std or None) for an encoded design matrix."""
        pass

    def get_model_info(self) -> Dict[str, Any]:
        """Get information about the model."""
        return {
            "type": self.__class__.__name__,
            "supports_dispersion": self.supports_dispersion,
            "parameter_space_dim": len(self.parameter_space),
        }


class BaseInfillCriterion(ABC):
    """
    Abstract base class for infill criteria.

    Scores are oriented so that larger is better, whatever the objective
    direction.
    """

    requires_dispersion: bool = False
    name: str = "base"

    def __init__(self, minimize: Sequence[bool], **kwargs):
        self.minimize = list(minimize)
        self.kwargs = kwargs

    @property
    def n_objectives(self) -> int:
        return len(self.minimize)

    @abstractmethod
    def evaluate(
        self,
        predictions: List[ModelPrediction],
        archive: Sequence[Evaluation],
    ):
        """
        Score candidates from their per-objective predictions.

        Args:
            predictions: One prediction per modelled objective
            archive: Evaluations the models were fitted on

        Returns:
            InfillScores for the candidates
        """
        pass
