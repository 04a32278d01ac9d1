"""
The sequential model-based optimization engine.

This module implements the control loop that ties together:
- Initial design generation and evaluation
- Surrogate fitting on settled path snapshots
- Infill optimization and constant liar batch proposal
- Batch evaluation on worker threads with a join barrier
- Termination checks, cancellation and error reporting

State machine: INITIALIZING -> ITERATING -> TERMINATED. A terminated engine
is read-only; its path is frozen.
"""

import logging
import threading
import time
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field

from smbo.core.base import BaseSurrogateModel
from smbo.core.control import MBOControl
from smbo.core.exceptions import (
    ConfigurationError,
    EngineStateError,
    EvaluationFailure,
    ProposalExhaustion,
    SurrogateFitFailure,
    SurrogatePredictionFailure,
)
from smbo.core.types import (
    EngineState,
    Evaluation,
    MultiCritMethod,
    ObjectiveFunction,
    ParameterDict,
    ReportedError,
    TerminationReason,
)
from smbo.experimental_design.design import DesignGenerator
from smbo.experimental_design.parameters import ParameterSpace
from smbo.optimization.evaluator import ObjectiveEvaluator
from smbo.optimization.infill import create_infill_criterion
from smbo.optimization.multi_objective import ParEGOScalarizer
from smbo.optimization.pareto import (
    compute_front_metrics,
    default_reference_point,
    hypervolume,
    to_minimization,
)
from smbo.optimization.path import OptimizationPath
from smbo.optimization.proposer import CandidateProposer, Proposal

logger = logging.getLogger(__name__)


class MBOResult(BaseModel):
    """Result of an optimization run."""

    model_config = ConfigDict(arbitrary_types_allowed=True)

    best: Optional[Evaluation] = Field(default=None, description="Best evaluation (single objective)")
    pareto_front: Optional[List[Evaluation]] = Field(default=None, description="Pareto front (multi-objective)")
    path: OptimizationPath = Field(..., description="Frozen optimization path")
    n_iterations: int = Field(..., description="Completed post-design iterations")
    termination_reason: Optional[TerminationReason] = Field(default=None, description="Why the run stopped")
    state: EngineState = Field(..., description="Engine state when the result was taken")
    errors: List[ReportedError] = Field(default_factory=list, description="Run-level errors")
    execution_time: float = Field(..., description="Execution time in seconds")
    convergence_history: List[float] = Field(
        default_factory=list, description="Best value (or dominated hypervolume) after each iteration"
    )

    def to_dataframe(self):
        """The optimization path as a DataFrame."""
        return self.path.to_dataframe()

    def get_summary(self) -> Dict[str, Any]:
        """Get a summary of the run."""
        summary = {
            "n_evaluations": len(self.path),
            "n_failed": self.path.n_failed,
            "n_iterations": self.n_iterations,
            "termination_reason": self.termination_reason.value if self.termination_reason else None,
            "execution_time": self.execution_time,
            "n_errors": len(self.errors),
        }
        if self.best is not None:
            summary["best_value"] = self.best.value
            summary["best_configuration"] = self.best.configuration
        if self.pareto_front is not None:
            summary["pareto_front_size"] = len(self.pareto_front)
            summary["front_metrics"] = compute_front_metrics(self.pareto_front, self.path.minimize).to_dict()
        return summary


class MBOEngine:
    """
    Orchestrates one model-based optimization run.

    The engine is the only writer of its optimization path. Surrogates are
    fitted on settled snapshots, batches are evaluated concurrently and
    joined before the next fit.
    """

    def __init__(
        self,
        parameter_space: ParameterSpace,
        objective: Union[ObjectiveFunction, ObjectiveEvaluator],
        surrogate: BaseSurrogateModel,
        control: Optional[MBOControl] = None,
        design: Optional[Sequence[ParameterDict]] = None,
    ):
        """
        Initialize the engine.

        Args:
            parameter_space: Search space
            objective: Objective function or a configured ObjectiveEvaluator
            surrogate: Surrogate model capability
            control: Run configuration (defaults to ``MBOControl()``)
            design: Optional initial design; validated immediately

        Raises:
            ConfigurationError: the criterion needs dispersion the surrogate cannot supply,
                or the evaluator disagrees with the control
            InvalidConfiguration: a design configuration violates the space
        """
        self.parameter_space = parameter_space
        self.control = control if control is not None else MBOControl()
        self.surrogate = surrogate
        self.rng = np.random.default_rng(self.control.random_seed)

        if isinstance(objective, ObjectiveEvaluator):
            self.evaluator = objective
            if self.evaluator.n_objectives != self.control.n_objectives:
                raise ConfigurationError(
                    f"Evaluator has {self.evaluator.n_objectives} objectives, control expects "
                    f"{self.control.n_objectives}"
                )
            if self.evaluator.parameter_space is None:
                self.evaluator.parameter_space = parameter_space
        else:
            self.evaluator = ObjectiveEvaluator(
                objective,
                n_objectives=self.control.n_objectives,
                objective_names=self.control.resolved_objective_names,
                parameter_space=parameter_space,
                noisy=self.control.noisy,
                n_workers=self.control.n_workers,
                timeout=self.control.eval_timeout,
            )

        self._design = None
        if design is not None:
            self._design = [dict(config) for config in design]
            for config in self._design:
                parameter_space.validate(config)

        minimize = self.control.resolved_minimize
        criterion_type = self.control.resolved_infill_criterion
        self._parego: Optional[ParEGOScalarizer] = None
        if self.control.is_multi_objective and self.control.multicrit_method == MultiCritMethod.PAREGO:
            self._parego = ParEGOScalarizer(
                self.control.n_objectives,
                minimize,
                s=self.control.parego_s,
                rho=self.control.parego_rho,
                rng=self.rng,
            )
            criterion_minimize, n_models = [True], 1
        elif self.control.is_multi_objective:
            criterion_minimize, n_models = minimize, self.control.n_objectives
        else:
            criterion_minimize, n_models = minimize, 1

        self.criterion = create_infill_criterion(
            criterion_type,
            criterion_minimize,
            parameter_space,
            params=self.control.infill_params,
            indicator=self.control.dib_indicator,
        )
        if self.criterion.requires_dispersion and not surrogate.supports_dispersion:
            raise ConfigurationError(
                f"Infill criterion '{criterion_type.value}' requires a dispersion estimate, "
                f"which {surrogate.__class__.__name__} cannot provide"
            )

        self.proposer = CandidateProposer(
            parameter_space,
            surrogate,
            self.criterion,
            n_models=n_models,
            points=self.control.focus_search_points,
            maxit=self.control.focus_search_maxit,
            restarts=self.control.focus_search_restarts,
            aggregator=self.control.multipoint_aggregator,
            rng=self.rng,
        )

        self.path = OptimizationPath(
            parameter_space,
            objective_names=self.evaluator.objective_names,
            minimize=minimize,
        )
        self.state = EngineState.INITIALIZING
        self.iteration = 0
        self.errors: List[ReportedError] = []
        self.termination_reason: Optional[TerminationReason] = None
        self.convergence_history: List[float] = []
        self._cancel_event = threading.Event()
        self._start_time: Optional[float] = None
        self._end_time: Optional[float] = None
        self._fitted_once = False
        self._reference_point: Optional[np.ndarray] = None

        logger.info(
            f"Initialized MBO engine: {len(parameter_space)} parameters, "
            f"{self.control.n_objectives} objective(s), infill '{criterion_type.value}', "
            f"{self.control.propose_points} point(s) per iteration"
        )

    # Lifecycle

    def cancel(self) -> None:
        """Request cooperative cancellation; honoured between iterations and evaluations."""
        self._cancel_event.set()

    @property
    def is_terminated(self) -> bool:
        return self.state == EngineState.TERMINATED

    def _require_state(self, *allowed: EngineState) -> None:
        if self.state not in allowed:
            raise EngineStateError(
                f"Operation not allowed in state '{self.state.value}' "
                f"(allowed: {[s.value for s in allowed]})"
            )

    def run(self, cancel_event: Optional[threading.Event] = None) -> MBOResult:
        """
        Run the optimization until a termination condition triggers.

        Args:
            cancel_event: External cooperative cancellation signal

        Returns:
            Optimization result with the frozen path
        """
        self._require_state(EngineState.INITIALIZING, EngineState.ITERATING)
        if cancel_event is not None:
            self._cancel_event = cancel_event

        if self.state == EngineState.INITIALIZING:
            self.initialize()
        while self.state == EngineState.ITERATING:
            self.step()

        logger.info(
            f"Optimization finished after {self.iteration} iteration(s), "
            f"{len(self.path)} evaluation(s): {self.termination_reason.value}"
        )
        return self.result()

    def initialize(self) -> List[Evaluation]:
        """Build or accept the initial design, evaluate it and seed the path."""
        self._require_state(EngineState.INITIALIZING)
        self._start_time = time.time()

        design = self._design
        if design is None:
            n = self.control.init_design_size_for(len(self.parameter_space))
            if self.control.max_evals is not None:
                n = min(n, self.control.max_evals)
            try:
                design = DesignGenerator(self.control.design_method, rng=self.rng).generate(self.parameter_space, n)
            except ProposalExhaustion as e:
                self._report(e)
                self._terminate(TerminationReason.EXHAUSTED)
                return []

        logger.info(f"Evaluating initial design of {len(design)} point(s)")
        new = self._evaluate_and_record(
            design,
            ["initdesign"] * len(design),
            [{} for _ in design],
        )

        self.state = EngineState.ITERATING
        self._update_convergence()
        self._check_termination()
        return new

    def step(self) -> List[Evaluation]:
        """
        Run one iteration: fit, propose, evaluate, append, check termination.

        Returns:
            Evaluations recorded in this iteration
        """
        self._require_state(EngineState.ITERATING)
        self.iteration += 1
        snapshot = self.path.snapshot()

        batch_size = self.control.propose_points
        if self.control.max_evals is not None:
            batch_size = min(batch_size, self.control.max_evals - len(snapshot))

        proposed = self._propose(snapshot, batch_size)
        if proposed is None:
            return []

        configurations, origins, extras = proposed
        for config in configurations:
            self.parameter_space.validate(config)

        new = self._evaluate_and_record(configurations, origins, extras)
        self._update_convergence()
        self._log_iteration_summary(new)
        self._check_termination()
        return new

    def result(self) -> MBOResult:
        """Result of a terminated run."""
        self._require_state(EngineState.TERMINATED)
        best = None
        front = None
        if self.control.is_multi_objective:
            front = self.path.pareto_front()
        else:
            best = self.path.best()

        return MBOResult(
            best=best,
            pareto_front=front,
            path=self.path,
            n_iterations=self.iteration,
            termination_reason=self.termination_reason,
            state=self.state,
            errors=list(self.errors),
            execution_time=(self._end_time or time.time()) - (self._start_time or time.time()),
            convergence_history=list(self.convergence_history),
        )

    # Proposal

    def _propose(
        self,
        snapshot: Tuple[Evaluation, ...],
        batch_size: int,
    ) -> Optional[Tuple[List[ParameterDict], List[str], List[Dict[str, Any]]]]:
        taken = {self.parameter_space.configuration_key(e.configuration) for e in snapshot}
        origin = f"infill_{self.criterion.name}"

        try:
            if self._parego is not None:
                proposal = self._propose_parego(snapshot, batch_size, taken)
            else:
                proposal = self.proposer.propose(snapshot, batch_size)
            self._fitted_once = True
        except (SurrogateFitFailure, SurrogatePredictionFailure) as e:
            self._report(e)
            if not self._fitted_once:
                logger.error(f"Surrogate failed on the initial design: {e}")
                self.iteration -= 1
                self._terminate(TerminationReason.SURROGATE_FAILURE)
                return None
            logger.warning(f"Surrogate failed in iteration {self.iteration}, proposing random points: {e}")
            proposal = self.proposer.random_configurations(batch_size, exclude=taken)
            origin = "random_fallback"

        if proposal.exhausted:
            self._report(ProposalExhaustion(
                f"No novel configuration left; {proposal.duplicates} duplicate(s) proposed"
            ))

        configurations = list(proposal.configurations)
        origins = [origin] * len(configurations)
        extras = list(proposal.extras)

        n_random = self.control.interleave_random_points
        if self.control.max_evals is not None:
            remaining = self.control.max_evals - len(snapshot) - len(configurations)
            n_random = max(0, min(n_random, remaining))
        if n_random:
            taken.update(self.parameter_space.configuration_key(c) for c in configurations)
            interleaved = self.proposer.random_configurations(n_random, exclude=taken)
            configurations.extend(interleaved.configurations)
            origins.extend(["random_interleave"] * n_random)
            extras.extend(interleaved.extras)

        return configurations, origins, extras

    def _propose_parego(self, snapshot, batch_size: int, taken) -> Proposal:
        proposal = Proposal()
        taken = set(taken)
        for weights in self._parego.draw(batch_size):
            scalarized = self._parego.scalarize(snapshot, weights)
            single = self.proposer.propose(scalarized, 1, exclude=taken)
            single.extras[0]["weights"] = [float(w) for w in weights]
            taken.add(self.parameter_space.configuration_key(single.configurations[0]))
            proposal.extend(single)
        return proposal

    # Evaluation

    def _evaluate_and_record(
        self,
        configurations: Sequence[ParameterDict],
        origins: Sequence[str],
        extras: Sequence[Dict[str, Any]],
    ) -> List[Evaluation]:
        outcomes = self.evaluator.evaluate_many(configurations, cancel_event=self._cancel_event)
        recorded = []
        for position, outcome in outcomes:
            evaluation = self.path.append(
                outcome,
                iteration=self.iteration,
                proposed_by=origins[position],
                extras=extras[position],
            )
            if not evaluation.is_ok:
                self.errors.append(ReportedError(
                    kind=EvaluationFailure.__name__,
                    message=f"Evaluation {evaluation.index}: {evaluation.error}",
                    iteration=self.iteration,
                ))
            recorded.append(evaluation)
        return recorded

    # Termination

    def _check_termination(self) -> None:
        reason = self._termination_reason()
        if reason is not None:
            self._terminate(reason)

    def _termination_reason(self) -> Optional[TerminationReason]:
        control = self.control
        if self._cancel_event.is_set():
            return TerminationReason.CANCELLED

        if control.max_failures is not None and self.path.n_failed > control.max_failures:
            self._report(EvaluationFailure(
                f"{self.path.n_failed} failed evaluations exceed the threshold of {control.max_failures}"
            ))
            return TerminationReason.FAILURE_THRESHOLD

        if control.target_value is not None:
            best = self.path.best()
            if best is not None:
                reached = best.value <= control.target_value if self.path.minimize[0] \
                    else best.value >= control.target_value
                if reached:
                    return TerminationReason.TARGET_REACHED

        if control.max_evals is not None and len(self.path) >= control.max_evals:
            return TerminationReason.MAX_EVALS

        if control.time_budget is not None and time.time() - self._start_time >= control.time_budget:
            return TerminationReason.TIME_BUDGET

        if control.iterations is not None and self.iteration >= control.iterations:
            return TerminationReason.ITERATIONS

        return None

    def _terminate(self, reason: TerminationReason) -> None:
        self.state = EngineState.TERMINATED
        self.termination_reason = reason
        self._end_time = time.time()
        self.path.freeze()
        logger.info(f"Terminating: {reason.value}")

    def _report(self, error: Exception) -> None:
        self.errors.append(ReportedError(
            kind=type(error).__name__,
            message=str(error),
            iteration=self.iteration,
        ))

    # Progress tracking

    def _update_convergence(self) -> None:
        Y = self.path.outcomes()
        if Y.shape[0] == 0:
            return
        if not self.control.is_multi_objective:
            self.convergence_history.append(float(self.path.best().value))
            return

        Y = to_minimization(Y, self.path.minimize)
        if self._reference_point is None:
            # Fixed after the initial design so values are comparable across iterations
            self._reference_point = default_reference_point(Y)
        front = to_minimization(
            np.array([e.outcome for e in self.path.pareto_front()]), self.path.minimize
        )
        self.convergence_history.append(hypervolume(front, self._reference_point))

    def _log_iteration_summary(self, new: Sequence[Evaluation]) -> None:
        n_failed = sum(1 for e in new if not e.is_ok)
        if self.control.is_multi_objective:
            progress = f"front size = {len(self.path.pareto_front())}"
        else:
            best = self.path.best()
            progress = f"best value = {best.value:.6g}" if best is not None else "no successful evaluation"
        logger.info(
            f"Iteration {self.iteration}: {progress}, {len(new)} new evaluation(s) "
            f"({n_failed} failed), total = {len(self.path)}"
        )


def mbo(
    objective: Union[ObjectiveFunction, ObjectiveEvaluator],
    parameter_space: ParameterSpace,
    surrogate: BaseSurrogateModel,
    control: Optional[MBOControl] = None,
    design: Optional[Sequence[ParameterDict]] = None,
    cancel_event: Optional[threading.Event] = None,
) -> MBOResult:
    """Run a complete optimization with a fresh engine."""
    engine = MBOEngine(parameter_space, objective, surrogate, control=control, design=design)
    return engine.run(cancel_event=cancel_event)
