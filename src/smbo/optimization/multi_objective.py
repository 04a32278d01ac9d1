"""
ParEGO scalarization for multi-objective model-based optimization.

Every proposed point gets its own weight vector from a simplex lattice;
the archive is scalarized with the augmented Tchebycheff function and a
single surrogate is fitted on the scalar outcome, so any single-objective
infill criterion can be used.

Based on:
- Knowles (2006) "ParEGO: A hybrid algorithm with on-line landscape
  approximation for expensive multiobjective optimization problems"
"""

import logging
from itertools import combinations
from typing import Dict, List, Optional, Sequence

import numpy as np

from smbo.core.types import Evaluation, ObjectiveKind
from smbo.optimization.pareto import to_minimization

logger = logging.getLogger(__name__)

# Lattice resolution per number of objectives, chosen to give a few hundred weights or fewer
DEFAULT_LATTICE_RESOLUTION: Dict[int, int] = {2: 100, 3: 20, 4: 10, 5: 7}


def default_lattice_resolution(n_objectives: int) -> int:
    return DEFAULT_LATTICE_RESOLUTION.get(n_objectives, 5)


def weight_lattice(n_objectives: int, s: int) -> np.ndarray:
    """
    All weight vectors with components in {0, 1/s, ..., 1} summing to one.

    Enumerated with stars and bars: choosing n_objectives - 1 divider
    positions among s + n_objectives - 1 slots.
    """
    if n_objectives < 2:
        raise ValueError("Weight lattices need at least two objectives")
    weights = []
    for dividers in combinations(range(s + n_objectives - 1), n_objectives - 1):
        bounds = (-1,) + dividers + (s + n_objectives - 1,)
        weights.append([bounds[i + 1] - bounds[i] - 1 for i in range(n_objectives)])
    return np.array(weights, dtype=float) / s


def sample_weights(lattice: np.ndarray, k: int, rng: np.random.Generator) -> np.ndarray:
    """k distinct lattice weight vectors (with replacement only if the lattice is smaller than k)."""
    replace = k > lattice.shape[0]
    return lattice[rng.choice(lattice.shape[0], size=k, replace=replace)]


def augmented_tchebycheff(Y: np.ndarray, weights: np.ndarray, rho: float = 0.05) -> np.ndarray:
    """
    Scalarize a minimization outcome matrix.

    Columns are normalized to [0, 1] over the observed range first.
    """
    Y = np.atleast_2d(np.asarray(Y, dtype=float))
    low = np.min(Y, axis=0)
    span = np.max(Y, axis=0) - low
    span[span == 0] = 1.0
    normalized = (Y - low) / span
    weighted = normalized * weights
    return np.max(weighted, axis=1) + rho * np.sum(weighted, axis=1)


def scalarize_archive(
    archive: Sequence[Evaluation],
    weights: np.ndarray,
    minimize: Sequence[bool],
    rho: float = 0.05,
) -> List[Evaluation]:
    """
    Copy of the archive whose outcomes are the scalarized (minimized) values.

    Failed evaluations are carried over unchanged in status, so surrogates
    keep ignoring them.
    """
    ok_positions = [i for i, e in enumerate(archive) if e.is_ok and e.outcome is not None]
    scalar: Dict[int, float] = {}
    if ok_positions:
        Y = to_minimization(np.array([archive[i].outcome for i in ok_positions]), minimize)
        values = augmented_tchebycheff(Y, weights, rho)
        scalar = {i: float(v) for i, v in zip(ok_positions, values)}

    scalarized = []
    for i, evaluation in enumerate(archive):
        outcome = (scalar[i],) if i in scalar else None
        scalarized.append(evaluation.model_copy(update={"outcome": outcome, "kind": ObjectiveKind.SINGLE}))
    return scalarized


class ParEGOScalarizer:
    """Draws weight vectors and produces scalarized archives for ParEGO proposals."""

    def __init__(
        self,
        n_objectives: int,
        minimize: Sequence[bool],
        s: Optional[int] = None,
        rho: float = 0.05,
        rng: Optional[np.random.Generator] = None,
    ):
        self.n_objectives = n_objectives
        self.minimize = list(minimize)
        self.s = s or default_lattice_resolution(n_objectives)
        self.rho = rho
        self.rng = rng if rng is not None else np.random.default_rng()
        self.lattice = weight_lattice(n_objectives, self.s)
        logger.debug(f"ParEGO lattice with {self.lattice.shape[0]} weight vectors (s={self.s})")

    def draw(self, k: int) -> np.ndarray:
        return sample_weights(self.lattice, k, self.rng)

    def scalarize(self, archive: Sequence[Evaluation], weights: np.ndarray) -> List[Evaluation]:
        return scalarize_archive(archive, weights, self.minimize, self.rho)
