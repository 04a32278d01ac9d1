"""Linear regression surrogate without a dispersion estimate."""

from typing import Any

import numpy as np
from sklearn.linear_model import Ridge

from smbo.core.base import BaseSurrogateModel


class LinearSurrogate(BaseSurrogateModel):
    """
    Ridge regression on the encoded configuration.

    Only usable with criteria that need no dispersion (``mean``).
    """

    supports_dispersion = False
    min_train_points = 2

    def __init__(self, parameter_space, alpha: float = 1e-6, **kwargs):
        super().__init__(parameter_space, **kwargs)
        self.alpha = alpha

    def _fit_estimator(self, X: np.ndarray, y: np.ndarray) -> Any:
        return Ridge(alpha=self.alpha).fit(X, y)

    def _predict_estimator(self, estimator: Any, X: np.ndarray):
        return estimator.predict(X), None
