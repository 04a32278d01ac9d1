"""
Candidate proposal: optimization of the infill criterion.

The inner problem (find the configuration maximizing the infill criterion)
is solved with focus search, a randomized direct search that works on
mixed and hierarchical spaces where gradients are unavailable:
- sample candidates in a region, keep the best
- shrink numeric bounds around the incumbent and drop one categorical
  level per round
- repeat from the full space for several restarts

Batches are built with the constant liar strategy: every chosen point
enters a working copy of the archive with a lied outcome, the surrogates
are refitted, and the next point is chosen.

Based on:
- Bischl et al. (2017) "mlrMBO: A Modular Framework for Model-Based Optimization"
- Ginsbourger et al. (2010) "Kriging is well-suited to parallelize optimization"
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, Sequence, Set, Tuple

import numpy as np

from smbo.core.base import BaseInfillCriterion, BaseSurrogateModel, SurrogateState
from smbo.core.exceptions import ProposalExhaustion, SMBOError, SurrogatePredictionFailure
from smbo.core.types import Evaluation, EvaluationStatus, ObjectiveKind, ParameterDict, ParameterType
from smbo.experimental_design.parameters import ParameterSpace
from smbo.optimization.infill import InfillScores

logger = logging.getLogger(__name__)

# Relative tolerance under which two infill scores count as tied
SCORE_TIE_RTOL = 1e-9
SCORE_TIE_ATOL = 1e-12


@dataclass
class Proposal:
    """Configurations chosen in one proposal step and how they were chosen."""
    configurations: List[ParameterDict] = field(default_factory=list)
    extras: List[Dict[str, Any]] = field(default_factory=list)
    exhausted: bool = False

    @property
    def duplicates(self) -> int:
        return sum(1 for extra in self.extras if extra.get("duplicate"))

    def __len__(self) -> int:
        return len(self.configurations)

    def extend(self, other: "Proposal") -> None:
        self.configurations.extend(other.configurations)
        self.extras.extend(other.extras)
        self.exhausted = self.exhausted or other.exhausted


def _to_builtin(value: Any) -> Any:
    if value is None:
        return None
    array = np.asarray(value, dtype=float)
    return float(array) if array.ndim == 0 else [float(v) for v in array]


class CandidateProposer:
    """
    Proposes configurations maximizing an infill criterion.

    One surrogate state is fitted per modelled objective (``n_models``);
    the criterion receives all of their predictions.
    """

    def __init__(
        self,
        parameter_space: ParameterSpace,
        surrogate: BaseSurrogateModel,
        criterion: BaseInfillCriterion,
        n_models: int = 1,
        points: int = 1000,
        maxit: int = 5,
        restarts: int = 3,
        aggregator: Callable[[np.ndarray], float] = np.min,
        rng: Optional[np.random.Generator] = None,
    ):
        """
        Initialize the proposer.

        Args:
            parameter_space: Search space
            surrogate: Surrogate model used for every modelled objective
            criterion: Infill criterion to maximize
            n_models: Number of modelled objectives
            points: Candidates sampled per focus search round
            maxit: Shrinking rounds per restart
            restarts: Focus search restarts
            aggregator: Reduces observed outcomes to the constant liar value
            rng: Random generator
        """
        self.parameter_space = parameter_space
        self.surrogate = surrogate
        self.criterion = criterion
        self.n_models = n_models
        self.points = points
        self.maxit = maxit
        self.restarts = restarts
        self.aggregator = aggregator
        self.rng = rng if rng is not None else np.random.default_rng()
        self._finite_size = parameter_space.n_configurations(cap=points + 1)

    # Surrogate handling

    def fit(self, archive: Sequence[Evaluation]) -> List[SurrogateState]:
        """Fit one surrogate state per modelled objective on an archive snapshot."""
        return [self.surrogate.fit(archive, objective_index=j) for j in range(self.n_models)]

    def score(
        self,
        states: Sequence[SurrogateState],
        configurations: Sequence[ParameterDict],
        archive: Sequence[Evaluation],
    ) -> InfillScores:
        predictions = [self.surrogate.predict(state, configurations) for state in states]
        try:
            return self.criterion.evaluate(predictions, archive)
        except SMBOError:
            raise
        except Exception as e:
            raise SurrogatePredictionFailure(f"Infill criterion '{self.criterion.name}' failed: {e}") from e

    # Proposal

    def propose(
        self,
        archive: Sequence[Evaluation],
        batch_size: int = 1,
        states: Optional[Sequence[SurrogateState]] = None,
        exclude: Optional[Set[Tuple]] = None,
    ) -> Proposal:
        """
        Propose a batch of configurations.

        Args:
            archive: Settled snapshot of the optimization path
            batch_size: Number of configurations
            states: Surrogate states already fitted on ``archive``
            exclude: Additional configuration keys to avoid

        Returns:
            Proposal with exactly ``batch_size`` configurations
        """
        if batch_size < 1:
            raise ValueError("batch_size must be positive")

        working = list(archive)
        taken: Set[Tuple] = set(exclude or ())
        taken.update(self.parameter_space.configuration_key(e.configuration) for e in archive)
        states = list(states) if states is not None else self.fit(working)
        lie = self._lie_value(archive) if batch_size > 1 else None

        proposal = Proposal()
        for position in range(batch_size):
            if position > 0:
                # Constant liar: pretend the previous pick was evaluated, then refit
                working.append(self._lied_evaluation(proposal.configurations[-1], lie, len(working)))
                states = self.fit(working)

            config, extra, exhausted = self._optimize_criterion(states, working, taken)
            if exhausted:
                proposal.exhausted = True
            if lie is not None:
                extra["lie"] = list(lie)
            proposal.configurations.append(config)
            proposal.extras.append(extra)
            taken.add(self.parameter_space.configuration_key(config))

        if proposal.exhausted:
            logger.warning(
                f"Parameter space exhausted: proposal contains {proposal.duplicates} duplicate configuration(s)"
            )
        return proposal

    def _lie_value(self, archive: Sequence[Evaluation]) -> Tuple[float, ...]:
        Y = np.array([e.outcome for e in archive if e.is_ok and e.outcome is not None], dtype=float)
        if Y.size == 0:
            raise ValueError("Constant liar needs at least one successful evaluation")
        return tuple(float(self.aggregator(Y[:, j])) for j in range(Y.shape[1]))

    def _lied_evaluation(self, configuration: ParameterDict, lie: Tuple[float, ...], index: int) -> Evaluation:
        return Evaluation(
            index=index,
            configuration=configuration,
            outcome=lie,
            kind=ObjectiveKind.SINGLE if self.n_models == 1 else ObjectiveKind.MULTI,
            status=EvaluationStatus.OK,
            iteration=-1,
            proposed_by="constant_liar",
        )

    # Inner optimization

    def _optimize_criterion(
        self,
        states: Sequence[SurrogateState],
        archive: Sequence[Evaluation],
        taken: Set[Tuple],
    ) -> Tuple[ParameterDict, Dict[str, Any], bool]:
        """Best novel configuration, falling back to the best duplicate when none is left."""
        def score_fn(configs):
            return self.score(states, configs, archive)

        if self._finite_size is not None and self._finite_size <= self.points:
            candidates = self.parameter_space.enumerate()
            scores = score_fn(candidates)
            best = self._select(candidates, scores, taken)
            if best is None:
                config, extra = self._finish(candidates, scores, self._select(candidates, scores, set()), duplicate=True)
                return config, extra, True
            config, extra = self._finish(candidates, scores, best, duplicate=False)
            return config, extra, False

        best_config, best_extra = None, None
        best_score, best_std = -np.inf, -np.inf
        fallback: Optional[Tuple[ParameterDict, Dict[str, Any]]] = None
        for restart in range(self.restarts):
            region = self._full_region()
            incumbent, incumbent_score = None, -np.inf
            for it in range(self.maxit):
                candidates = self.parameter_space.sample(self.points, self.rng, region)
                scores = score_fn(candidates)
                index = self._select(candidates, scores, taken)
                if index is None:
                    if fallback is None:
                        dup = self._select(candidates, scores, set())
                        fallback = self._finish(candidates, scores, dup, duplicate=True)
                    continue

                score = float(scores.score[index])
                std = float(scores.dispersion[index])
                if score > incumbent_score:
                    incumbent, incumbent_score = candidates[index], score
                if self._better(score, std, best_score, best_std):
                    best_config, best_extra = self._finish(candidates, scores, index, duplicate=False)
                    best_score, best_std = score, std
                if incumbent is not None:
                    region = self._shrink(region, incumbent)
            logger.debug(f"Focus search restart {restart + 1}: best score {incumbent_score:.6g}")

        if best_config is None:
            if fallback is None:
                raise ProposalExhaustion("Focus search produced no candidates")
            return fallback[0], fallback[1], True
        return best_config, best_extra, False

    def _select(self, candidates: Sequence[ParameterDict], scores: InfillScores, taken: Set[Tuple]) -> Optional[int]:
        """Index of the best non-taken candidate; ties go to the larger dispersion."""
        score = np.asarray(scores.score, dtype=float).copy()
        score[~np.isfinite(score)] = -np.inf
        if taken:
            for i, config in enumerate(candidates):
                if self.parameter_space.configuration_key(config) in taken:
                    score[i] = -np.inf
        if not np.any(score > -np.inf):
            if taken:
                return None
            return 0
        top = np.max(score)
        tied = np.flatnonzero(np.isclose(score, top, rtol=SCORE_TIE_RTOL, atol=SCORE_TIE_ATOL) & (score > -np.inf))
        if len(tied) == 1:
            return int(tied[0])
        dispersion = scores.dispersion[tied]
        return int(tied[int(np.argmax(dispersion))])

    @staticmethod
    def _better(score: float, std: float, best_score: float, best_std: float) -> bool:
        if np.isclose(score, best_score, rtol=SCORE_TIE_RTOL, atol=SCORE_TIE_ATOL):
            return std > best_std
        return score > best_score

    def _finish(self, candidates, scores: InfillScores, index: int, duplicate: bool):
        mean = np.asarray(scores.mean)
        std = None if scores.std is None else np.asarray(scores.std)
        extra = {
            "infill_score": float(scores.score[index]),
            "predicted_mean": _to_builtin(mean[index]),
            "predicted_std": _to_builtin(std[index]) if std is not None else None,
            "duplicate": duplicate,
        }
        return dict(candidates[index]), extra

    # Focus search regions

    def _full_region(self) -> Dict[str, Any]:
        region: Dict[str, Any] = {}
        for param in self.parameter_space:
            region[param.name] = tuple(param.bounds) if param.is_numeric else list(param.categories)
        return region

    def _shrink(self, region: Dict[str, Any], incumbent: ParameterDict) -> Dict[str, Any]:
        """Halve numeric ranges around the incumbent and drop one non-incumbent level per categorical."""
        shrunk = dict(region)
        for param in self.parameter_space:
            if param.name not in incumbent:
                continue
            value = incumbent[param.name]
            if param.is_numeric:
                low, high = region[param.name]
                quarter = (high - low) / 4.0
                new_low, new_high = max(low, value - quarter), min(high, value + quarter)
                if param.type == ParameterType.INTEGER:
                    new_low, new_high = int(np.floor(new_low)), int(np.ceil(new_high))
                    new_low, new_high = min(new_low, int(value)), max(new_high, int(value))
                shrunk[param.name] = (new_low, new_high)
            else:
                levels = list(region[param.name])
                droppable = [level for level in levels if level != value]
                if len(levels) > 1 and droppable:
                    drop = droppable[int(self.rng.integers(len(droppable)))]
                    levels.remove(drop)
                shrunk[param.name] = levels
        return shrunk

    def random_configurations(self, n: int, exclude: Optional[Set[Tuple]] = None) -> Proposal:
        """Random novel configurations (used for interleaving and fallback proposals)."""
        taken = set(exclude or ())
        proposal = Proposal()
        for _ in range(n):
            config = None
            for _attempt in range(100):
                candidate = self.parameter_space.sample(1, self.rng)[0]
                if self.parameter_space.configuration_key(candidate) not in taken:
                    config = candidate
                    break
            duplicate = config is None
            if duplicate:
                config = candidate
                proposal.exhausted = True
            taken.add(self.parameter_space.configuration_key(config))
            proposal.configurations.append(config)
            proposal.extras.append({"duplicate": duplicate})
        return proposal
