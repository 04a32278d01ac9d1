"""
Pareto dominance and front quality indicators for multi-objective optimization.

This module provides:
- Direction-aware dominance and non-dominated filtering
- Pareto front extraction from evaluations (a pure function of the outcomes)
- Additive epsilon indicator and exact hypervolume (dimension sweep)
- Front quality metrics for reporting

All numerical routines work in minimization space; ``to_minimization``
flips maximized objectives.

Based on:
- Zitzler et al. (2003) "Performance assessment of multiobjective optimizers"
- While et al. (2006) "A faster algorithm for calculating hypervolume"
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from smbo.core.types import Evaluation

logger = logging.getLogger(__name__)


def to_minimization(Y: np.ndarray, minimize: Optional[Sequence[bool]] = None) -> np.ndarray:
    """Flip the sign of maximized objectives."""
    Y = np.atleast_2d(np.asarray(Y, dtype=float))
    if minimize is None:
        return Y.copy()
    signs = np.where(np.asarray(minimize, dtype=bool), 1.0, -1.0)
    return Y * signs


def dominates(a: Sequence[float], b: Sequence[float], minimize: Optional[Sequence[bool]] = None) -> bool:
    """
    True iff ``a`` is no worse than ``b`` on every objective and strictly
    better on at least one.
    """
    pair = to_minimization(np.vstack([a, b]), minimize)
    return bool(np.all(pair[0] <= pair[1]) and np.any(pair[0] < pair[1]))


def non_dominated_mask(Y: np.ndarray, minimize: Optional[Sequence[bool]] = None) -> np.ndarray:
    """Boolean mask of rows not dominated by any other row."""
    Y = to_minimization(Y, minimize)
    n = Y.shape[0]
    mask = np.ones(n, dtype=bool)
    for i in range(n):
        no_worse = np.all(Y <= Y[i], axis=1)
        better = np.any(Y < Y[i], axis=1)
        if np.any(no_worse & better):
            mask[i] = False
    return mask


def pareto_front(
    evaluations: Sequence[Evaluation],
    minimize: Optional[Sequence[bool]] = None,
) -> List[Evaluation]:
    """
    Successful evaluations not dominated by any other successful evaluation.

    Path order is preserved and equal outcome vectors are all kept.
    """
    ok = [e for e in evaluations if e.is_ok and e.outcome is not None]
    if not ok:
        return []
    mask = non_dominated_mask(np.array([e.outcome for e in ok]), minimize)
    return [e for e, keep in zip(ok, mask) if keep]


def additive_epsilon(points: np.ndarray, front: np.ndarray) -> np.ndarray:
    """
    Additive epsilon of each point with respect to a front (minimization).

    eps(y) = max_f min_j (y_j - f_j). Positive values measure how far ``y``
    must move to escape domination; non-positive values mean no front member
    weakly dominates it.
    """
    points = np.atleast_2d(points)
    front = np.atleast_2d(front)
    if front.shape[0] == 0:
        return np.full(points.shape[0], -np.inf)
    # (n_points, n_front, n_obj)
    diff = points[:, None, :] - front[None, :, :]
    return np.max(np.min(diff, axis=2), axis=1)


def hypervolume(front: np.ndarray, reference_point: Sequence[float]) -> float:
    """
    Exact hypervolume dominated by ``front`` and bounded by the reference
    point (minimization), computed by slicing along the last objective.
    """
    reference_point = np.asarray(reference_point, dtype=float)
    front = np.atleast_2d(np.asarray(front, dtype=float))
    if front.size == 0:
        return 0.0
    front = front[np.all(front < reference_point, axis=1)]
    if front.shape[0] == 0:
        return 0.0
    return float(_hypervolume_recursive(front, reference_point))


def _hypervolume_recursive(points: np.ndarray, ref: np.ndarray) -> float:
    n_obj = points.shape[1]
    if n_obj == 1:
        return ref[0] - np.min(points[:, 0])

    if n_obj == 2:
        order = np.argsort(points[:, 0], kind="stable")
        volume = 0.0
        best_y = ref[1]
        for x, y in points[order]:
            if y < best_y:
                volume += (ref[0] - x) * (best_y - y)
                best_y = y
        return volume

    order = np.argsort(points[:, -1], kind="stable")
    points = points[order]
    volume = 0.0
    for i in range(points.shape[0]):
        upper = points[i + 1, -1] if i + 1 < points.shape[0] else ref[-1]
        depth = upper - points[i, -1]
        if depth > 0:
            volume += depth * _hypervolume_recursive(points[: i + 1, :-1], ref[:-1])
    return volume


def hypervolume_contribution(
    points: np.ndarray,
    front: np.ndarray,
    reference_point: Sequence[float],
) -> np.ndarray:
    """Hypervolume gained by adding each point individually to the front."""
    points = np.atleast_2d(points)
    front = np.atleast_2d(front) if np.size(front) else np.empty((0, points.shape[1]))
    base = hypervolume(front, reference_point) if front.shape[0] else 0.0
    return np.array([
        hypervolume(np.vstack([front, p]), reference_point) - base for p in points
    ])


def default_reference_point(Y: np.ndarray, offset: float = 1.0) -> np.ndarray:
    """Worst observed value per objective plus ``offset`` (minimization)."""
    return np.max(np.atleast_2d(Y), axis=0) + offset


@dataclass
class ParetoFrontMetrics:
    """Summary metrics for a Pareto front."""
    hypervolume: float = 0.0
    spacing: float = 0.0
    front_size: int = 0
    reference_point: Optional[List[float]] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert metrics to dictionary for serialization."""
        return {
            "hypervolume": self.hypervolume,
            "spacing": self.spacing,
            "front_size": self.front_size,
            "reference_point": self.reference_point,
        }


def spacing(front: np.ndarray) -> float:
    """Standard deviation of nearest-neighbour distances within the front."""
    front = np.atleast_2d(front)
    if front.shape[0] < 2:
        return 0.0
    distances = np.linalg.norm(front[:, None, :] - front[None, :, :], axis=2)
    np.fill_diagonal(distances, np.inf)
    return float(np.std(np.min(distances, axis=1)))


def compute_front_metrics(
    front: Sequence[Evaluation],
    minimize: Sequence[bool],
    reference_point: Optional[Sequence[float]] = None,
) -> ParetoFrontMetrics:
    """
    Metrics for a front of evaluations.

    ``reference_point`` is given in the objectives' own direction.
    """
    if not front:
        return ParetoFrontMetrics(reference_point=list(reference_point) if reference_point is not None else None)

    Y = to_minimization(np.array([e.outcome for e in front]), minimize)
    if reference_point is None:
        ref = default_reference_point(Y)
    else:
        ref = to_minimization(np.asarray(reference_point, dtype=float), minimize)[0]

    return ParetoFrontMetrics(
        hypervolume=hypervolume(Y, ref),
        spacing=spacing(Y),
        front_size=len(front),
        reference_point=list(to_minimization(ref, minimize)[0]),
    )
