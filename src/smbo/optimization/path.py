"""
Optimization path: the append-only record of a run.

The path is the single source of truth for surrogate fitting and final
results. It has exactly one writer (the engine's control loop); readers get
immutable snapshots. Once the run completes the path is frozen.
"""

import logging
from typing import Iterator, List, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from smbo.core.exceptions import PathFrozenError
from smbo.core.types import (
    Evaluation,
    EvaluationOutcome,
    EvaluationStatus,
    MetadataDict,
    ObjectiveKind,
)
from smbo.optimization.pareto import pareto_front

logger = logging.getLogger(__name__)


class OptimizationPath:
    """Append-only ordered sequence of evaluations."""

    def __init__(
        self,
        parameter_space,
        objective_names: Sequence[str] = ("y",),
        minimize: Optional[Sequence[bool]] = None,
    ):
        """
        Initialize an empty path.

        Args:
            parameter_space: Space the configurations belong to
            objective_names: Names of the outcome components
            minimize: Direction per objective (default: minimize all)
        """
        self.parameter_space = parameter_space
        self.objective_names = list(objective_names)
        self.minimize = list(minimize) if minimize is not None else [True] * len(self.objective_names)
        if len(self.minimize) != len(self.objective_names):
            raise ValueError("minimize must have one entry per objective")
        self._evaluations: List[Evaluation] = []
        self._frozen = False

    @property
    def n_objectives(self) -> int:
        return len(self.objective_names)

    @property
    def kind(self) -> ObjectiveKind:
        return ObjectiveKind.SINGLE if self.n_objectives == 1 else ObjectiveKind.MULTI

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Make the path read-only."""
        self._frozen = True

    def __len__(self) -> int:
        return len(self._evaluations)

    def __iter__(self) -> Iterator[Evaluation]:
        return iter(tuple(self._evaluations))

    def __getitem__(self, index: int) -> Evaluation:
        return self._evaluations[index]

    def snapshot(self) -> Tuple[Evaluation, ...]:
        """Immutable view of the evaluations recorded so far."""
        return tuple(self._evaluations)

    def append(
        self,
        outcome: EvaluationOutcome,
        iteration: int,
        proposed_by: str,
        extras: Optional[MetadataDict] = None,
    ) -> Evaluation:
        """
        Record an evaluation outcome.

        Raises:
            PathFrozenError: the run that owns this path has completed
        """
        if self._frozen:
            raise PathFrozenError("Optimization path is frozen")
        if outcome.outcome is not None and len(outcome.outcome) != self.n_objectives:
            raise ValueError(
                f"Outcome has {len(outcome.outcome)} values, path expects {self.n_objectives}"
            )

        evaluation = Evaluation(
            index=len(self._evaluations),
            configuration=self.parameter_space.normalize(outcome.configuration),
            outcome=outcome.outcome,
            kind=self.kind,
            status=EvaluationStatus.FAILED if outcome.failed else EvaluationStatus.OK,
            iteration=iteration,
            proposed_by=proposed_by,
            execution_time=outcome.execution_time,
            error=outcome.error,
            extras=dict(extras or {}),
        )
        self._evaluations.append(evaluation)
        logger.debug(f"Recorded evaluation {evaluation.index} (iteration {iteration}): {evaluation.outcome}")
        return evaluation

    # Queries

    def successful(self) -> List[Evaluation]:
        return [e for e in self._evaluations if e.is_ok]

    def failed(self) -> List[Evaluation]:
        return [e for e in self._evaluations if not e.is_ok]

    @property
    def n_failed(self) -> int:
        return sum(1 for e in self._evaluations if not e.is_ok)

    def outcomes(self) -> np.ndarray:
        """(n_ok, n_objectives) matrix of successful outcomes."""
        ok = self.successful()
        if not ok:
            return np.empty((0, self.n_objectives))
        return np.array([e.outcome for e in ok], dtype=float)

    def best(self) -> Optional[Evaluation]:
        """Best successful evaluation of a single-objective path (first one on ties)."""
        if self.kind != ObjectiveKind.SINGLE:
            raise TypeError("best() is only defined for single-objective paths, use pareto_front()")
        ok = self.successful()
        if not ok:
            return None
        if self.minimize[0]:
            return min(ok, key=lambda e: e.outcome[0])
        return max(ok, key=lambda e: e.outcome[0])

    def best_so_far(self) -> List[Optional[float]]:
        """Running best outcome after each evaluation (None before the first success)."""
        history: List[Optional[float]] = []
        best: Optional[float] = None
        better = (lambda a, b: a < b) if self.minimize[0] else (lambda a, b: a > b)
        for e in self._evaluations:
            if e.is_ok and (best is None or better(e.outcome[0], best)):
                best = e.outcome[0]
            history.append(best)
        return history

    def pareto_front(self) -> List[Evaluation]:
        """Non-dominated successful evaluations, recomputed from the full path."""
        return pareto_front(self._evaluations, self.minimize)

    def to_dataframe(self) -> pd.DataFrame:
        """
        Tabular view: one row per evaluation with parameter values, outcomes,
        iteration index and status.
        """
        params = self.parameter_space.to_frame([e.configuration for e in self._evaluations])
        outcome_rows = [
            list(e.outcome) if e.outcome is not None else [np.nan] * self.n_objectives
            for e in self._evaluations
        ]
        outcomes = pd.DataFrame(outcome_rows, columns=self.objective_names, dtype=float)
        meta = pd.DataFrame({
            "iteration": [e.iteration for e in self._evaluations],
            "status": [e.status.value for e in self._evaluations],
            "proposed_by": [e.proposed_by for e in self._evaluations],
            "execution_time": [e.execution_time for e in self._evaluations],
            "error": [e.error for e in self._evaluations],
            "timestamp": [e.timestamp for e in self._evaluations],
        })
        frame = pd.concat([params, outcomes, meta], axis=1)
        frame.index.name = "index"
        return frame
