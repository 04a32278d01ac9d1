"""
Random forest surrogate.

Dispersion is the standard deviation of the per-tree predictions, which
makes the forest usable with EI and confidence bound criteria on mixed
and hierarchical spaces.
"""

import logging
from typing import Any, Dict, Optional

import numpy as np
from sklearn.ensemble import RandomForestRegressor

from smbo.core.base import BaseSurrogateModel

logger = logging.getLogger(__name__)


class RandomForestSurrogate(BaseSurrogateModel):
    """Random forest regression with tree-spread uncertainty."""

    supports_dispersion = True
    min_train_points = 2

    def __init__(
        self,
        parameter_space,
        n_estimators: int = 100,
        min_samples_leaf: int = 1,
        max_features: Optional[float] = None,
        random_state: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(parameter_space, **kwargs)
        self.n_estimators = n_estimators
        self.min_samples_leaf = min_samples_leaf
        self.max_features = max_features if max_features is not None else 1.0
        self.random_state = random_state

    def _fit_estimator(self, X: np.ndarray, y: np.ndarray) -> Any:
        forest = RandomForestRegressor(
            n_estimators=self.n_estimators,
            min_samples_leaf=self.min_samples_leaf,
            max_features=self.max_features,
            random_state=self.random_state,
        )
        forest.fit(X, y)
        logger.debug(f"Fitted random forest with {self.n_estimators} trees on {len(y)} points")
        return forest

    def _predict_estimator(self, estimator: Any, X: np.ndarray):
        per_tree = np.stack([tree.predict(X) for tree in estimator.estimators_])
        return per_tree.mean(axis=0), per_tree.std(axis=0)

    def get_model_info(self) -> Dict[str, Any]:
        info = super().get_model_info()
        info.update({
            "n_estimators": self.n_estimators,
            "min_samples_leaf": self.min_samples_leaf,
        })
        return info
