"""
Gaussian process surrogate.

A Matern 5/2 kernel with automatic relevance determination over the
encoded design matrix; a white noise term is added for noisy objectives.
"""

import logging
import warnings
from typing import Any, Dict, Optional

import numpy as np
from sklearn.exceptions import ConvergenceWarning
from sklearn.gaussian_process import GaussianProcessRegressor
from sklearn.gaussian_process.kernels import ConstantKernel as C
from sklearn.gaussian_process.kernels import Matern, WhiteKernel

from smbo.core.base import BaseSurrogateModel

logger = logging.getLogger(__name__)


class GaussianProcessSurrogate(BaseSurrogateModel):
    """Gaussian process regression with a Matern kernel."""

    supports_dispersion = True
    min_train_points = 2

    def __init__(
        self,
        parameter_space,
        nu: float = 2.5,
        noisy: bool = False,
        alpha: float = 1e-6,
        n_restarts_optimizer: int = 2,
        random_state: Optional[int] = None,
        **kwargs,
    ):
        """
        Initialize the GP surrogate.

        Args:
            parameter_space: Space the configurations belong to
            nu: Matern smoothness
            noisy: Add a learned white noise term
            alpha: Jitter added to the kernel diagonal
            n_restarts_optimizer: Restarts of the hyperparameter optimizer
            random_state: Seed for the hyperparameter optimizer
        """
        super().__init__(parameter_space, **kwargs)
        self.nu = nu
        self.noisy = noisy
        self.alpha = alpha
        self.n_restarts_optimizer = n_restarts_optimizer
        self.random_state = random_state

    def _create_kernel(self, n_features: int):
        kernel = C(1.0, (1e-3, 1e3)) * Matern(
            length_scale=np.ones(n_features),
            length_scale_bounds=(1e-3, 1e3),
            nu=self.nu,
        )
        if self.noisy:
            kernel += WhiteKernel(noise_level=1e-2, noise_level_bounds=(1e-8, 1e1))
        return kernel

    def _fit_estimator(self, X: np.ndarray, y: np.ndarray) -> Any:
        gp = GaussianProcessRegressor(
            kernel=self._create_kernel(X.shape[1]),
            alpha=self.alpha,
            normalize_y=True,
            n_restarts_optimizer=self.n_restarts_optimizer,
            random_state=self.random_state,
        )
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", ConvergenceWarning)
            gp.fit(X, y)
        logger.debug(f"Fitted GP on {len(y)} points, kernel: {gp.kernel_}")
        return gp

    def _predict_estimator(self, estimator: Any, X: np.ndarray):
        return estimator.predict(X, return_std=True)

    def get_model_info(self) -> Dict[str, Any]:
        info = super().get_model_info()
        info.update({"kernel": f"Matern(nu={self.nu})", "noisy": self.noisy})
        return info
