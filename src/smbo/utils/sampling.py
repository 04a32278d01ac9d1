"""
Sampling utilities for experimental design.

This module provides space-filling samplers on the unit hypercube. The
design generator maps their output onto typed parameters.
"""

import logging
import warnings
from typing import Callable, Dict, Optional

import numpy as np
from scipy.spatial.distance import pdist
from scipy.stats import qmc

logger = logging.getLogger(__name__)


def latin_hypercube_sampling(
    n_dimensions: int,
    n_samples: int,
    rng: Optional[np.random.Generator] = None,
    criterion: Optional[str] = "maximin",
    n_candidates: int = 10,
) -> np.ndarray:
    """
    Generate Latin Hypercube samples in [0, 1]^d.

    Args:
        n_dimensions: Number of dimensions
        n_samples: Number of samples to generate
        rng: Random generator for reproducibility
        criterion: 'maximin' keeps the best of several designs, None keeps the first
        n_candidates: Number of designs compared under the criterion

    Returns:
        Array of shape (n_samples, n_dimensions) with samples
    """
    _check_request(n_dimensions, n_samples)
    sampler = qmc.LatinHypercube(d=n_dimensions, rng=rng)
    unit_samples = sampler.random(n_samples)

    if criterion == "maximin" and n_samples > 1:
        best_min_dist = _compute_min_distance(unit_samples)
        for _ in range(n_candidates - 1):
            candidate_samples = sampler.random(n_samples)
            min_dist = _compute_min_distance(candidate_samples)
            if min_dist > best_min_dist:
                unit_samples = candidate_samples
                best_min_dist = min_dist

    logger.debug(f"Generated {n_samples} Latin Hypercube samples in {n_dimensions}D space")
    return unit_samples


def sobol_sampling(
    n_dimensions: int,
    n_samples: int,
    rng: Optional[np.random.Generator] = None,
    scramble: bool = True,
) -> np.ndarray:
    """
    Generate Sobol sequence samples in [0, 1]^d.

    Sample sizes that are not powers of two are allowed; the balance warning
    scipy emits for them is silenced.
    """
    _check_request(n_dimensions, n_samples)
    sampler = qmc.Sobol(d=n_dimensions, scramble=scramble, rng=rng)
    with warnings.catch_warnings():
        warnings.simplefilter("ignore", UserWarning)
        unit_samples = sampler.random(n_samples)

    logger.debug(f"Generated {n_samples} Sobol samples in {n_dimensions}D space")
    return unit_samples


def halton_sampling(
    n_dimensions: int,
    n_samples: int,
    rng: Optional[np.random.Generator] = None,
    scramble: bool = True,
) -> np.ndarray:
    """Generate Halton sequence samples in [0, 1]^d."""
    _check_request(n_dimensions, n_samples)
    sampler = qmc.Halton(d=n_dimensions, scramble=scramble, rng=rng)
    unit_samples = sampler.random(n_samples)

    logger.debug(f"Generated {n_samples} Halton samples in {n_dimensions}D space")
    return unit_samples


def random_sampling(
    n_dimensions: int,
    n_samples: int,
    rng: Optional[np.random.Generator] = None,
) -> np.ndarray:
    """Generate uniform random samples in [0, 1]^d."""
    _check_request(n_dimensions, n_samples)
    rng = rng if rng is not None else np.random.default_rng()
    return rng.random((n_samples, n_dimensions))


def _check_request(n_dimensions: int, n_samples: int) -> None:
    if n_dimensions <= 0:
        raise ValueError("Number of dimensions must be positive")
    if n_samples < 0:
        raise ValueError("Number of samples cannot be negative")


def _compute_min_distance(samples: np.ndarray) -> float:
    """Compute minimum pairwise distance in a sample set."""
    if samples.shape[0] < 2:
        return float("inf")
    return float(np.min(pdist(samples)))


SAMPLERS: Dict[str, Callable[..., np.ndarray]] = {
    "lhs": latin_hypercube_sampling,
    "sobol": sobol_sampling,
    "halton": halton_sampling,
    "random": random_sampling,
}
