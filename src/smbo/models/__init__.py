"""
Surrogate models for the SMBO engine.

Components:
- RandomForestSurrogate: tree ensemble, works well on mixed spaces
- GaussianProcessSurrogate: Matern kernel GP for numeric spaces
- LinearSurrogate: ridge regression, no dispersion estimate
"""

from typing import Any, Dict, Type

from smbo.core.base import BaseSurrogateModel
from smbo.models.gaussian_process import GaussianProcessSurrogate
from smbo.models.linear import LinearSurrogate
from smbo.models.random_forest import RandomForestSurrogate

SURROGATES: Dict[str, Type[BaseSurrogateModel]] = {
    "rf": RandomForestSurrogate,
    "gp": GaussianProcessSurrogate,
    "linear": LinearSurrogate,
}


def create_surrogate(name: str, parameter_space, **kwargs: Any) -> BaseSurrogateModel:
    """Create a surrogate model by its short name."""
    try:
        surrogate_class = SURROGATES[name]
    except KeyError:
        raise ValueError(f"Unknown surrogate '{name}', choose one of {sorted(SURROGATES)}") from None
    return surrogate_class(parameter_space, **kwargs)


__all__ = [
    "SURROGATES",
    "create_surrogate",
    "RandomForestSurrogate",
    "GaussianProcessSurrogate",
    "LinearSurrogate",
]
