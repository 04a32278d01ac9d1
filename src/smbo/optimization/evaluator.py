"""
Objective evaluation for model-based optimization.

Wraps a user-supplied black-box function and evaluates single
configurations or whole batches on worker threads. Failures (exceptions,
timeouts, wrong arity, non-finite values) never escape: they come back as
failed outcomes so the engine can record them on the optimization path.
"""

import logging
import queue
import threading
import time
from typing import Any, Dict, List, Mapping, Optional, Sequence, Tuple

import numpy as np

from smbo.core.config import settings
from smbo.core.exceptions import EvaluationFailure
from smbo.core.types import EvaluationOutcome, ObjectiveFunction, ParameterDict

logger = logging.getLogger(__name__)


class ObjectiveEvaluator:
    """
    Capability boundary around the objective function.

    The evaluator makes no assumption about cost or determinism; ``noisy``
    is carried as metadata only.
    """

    def __init__(
        self,
        fun: ObjectiveFunction,
        n_objectives: int = 1,
        objective_names: Optional[Sequence[str]] = None,
        parameter_space=None,
        noisy: bool = False,
        n_workers: Optional[int] = None,
        timeout: Optional[float] = None,
    ):
        """
        Initialize the evaluator.

        Args:
            fun: Objective function taking a configuration
            n_objectives: Length of the outcome vector
            objective_names: Names used to read mapping results
            parameter_space: Space whose transforms are applied before calling ``fun``
            noisy: Whether repeated calls may legitimately differ
            n_workers: Worker threads for batch evaluation
            timeout: Per-evaluation timeout in seconds
        """
        if n_objectives < 1:
            raise ValueError("n_objectives must be at least 1")
        self.fun = fun
        self.n_objectives = n_objectives
        self.objective_names = list(objective_names) if objective_names else (
            ["y"] if n_objectives == 1 else [f"y{i + 1}" for i in range(n_objectives)]
        )
        if len(self.objective_names) != n_objectives:
            raise ValueError("objective_names must match n_objectives")
        self.parameter_space = parameter_space
        self.noisy = noisy
        self.n_workers = n_workers or settings.n_workers
        self.timeout = timeout
        self.n_calls = 0

    def _coerce_outcome(self, raw: Any) -> Tuple[float, ...]:
        """Turn the raw return value into a finite outcome vector."""
        if isinstance(raw, Mapping):
            missing = [name for name in self.objective_names if name not in raw]
            if missing:
                raise EvaluationFailure(f"Objective result lacks {missing}")
            values = [raw[name] for name in self.objective_names]
        elif np.ndim(raw) == 0:
            values = [raw]
        else:
            values = list(np.asarray(raw, dtype=float).ravel())

        if len(values) != self.n_objectives:
            raise EvaluationFailure(
                f"Expected {self.n_objectives} objective value(s), got {len(values)}"
            )
        try:
            outcome = tuple(float(v) for v in values)
        except (TypeError, ValueError) as e:
            raise EvaluationFailure(f"Objective returned non-numeric value: {e}") from e
        if not all(np.isfinite(outcome)):
            raise EvaluationFailure(f"Objective returned non-finite value(s): {outcome}")
        return outcome

    def _call(self, configuration: ParameterDict) -> EvaluationOutcome:
        start_time = time.time()
        try:
            x = self.parameter_space.apply_transforms(configuration) if self.parameter_space else dict(configuration)
            outcome = self._coerce_outcome(self.fun(x))
        except Exception as e:
            message = str(e) if isinstance(e, EvaluationFailure) else f"{type(e).__name__}: {e}"
            logger.warning(f"Evaluation failed for {configuration}: {message}")
            return EvaluationOutcome(
                configuration=configuration,
                outcome=None,
                execution_time=time.time() - start_time,
                error=message,
            )
        return EvaluationOutcome(
            configuration=configuration,
            outcome=outcome,
            execution_time=time.time() - start_time,
        )

    def evaluate(self, configuration: ParameterDict) -> EvaluationOutcome:
        """Evaluate one configuration (subject to the timeout when set)."""
        results = self.evaluate_many([configuration])
        return results[0][1]

    def evaluate_many(
        self,
        configurations: Sequence[ParameterDict],
        cancel_event: Optional[threading.Event] = None,
    ) -> List[Tuple[int, EvaluationOutcome]]:
        """
        Evaluate a batch of configurations.

        Args:
            configurations: Configurations to evaluate
            cancel_event: Cooperative cancellation signal, checked between completions

        Returns:
            (input position, outcome) pairs in input order. Evaluations that
            never started because of cancellation are left out.
        """
        if not configurations:
            return []

        if self.n_workers == 1 and self.timeout is None:
            return self._evaluate_sequential(configurations, cancel_event)
        return self._evaluate_threads(configurations, cancel_event)

    def _evaluate_sequential(
        self,
        configurations: Sequence[ParameterDict],
        cancel_event: Optional[threading.Event],
    ) -> List[Tuple[int, EvaluationOutcome]]:
        results = []
        for i, configuration in enumerate(configurations):
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Cancelled with {len(configurations) - i} evaluation(s) not started")
                break
            self.n_calls += 1
            results.append((i, self._call(configuration)))
        return results

    def _evaluate_threads(
        self,
        configurations: Sequence[ParameterDict],
        cancel_event: Optional[threading.Event],
    ) -> List[Tuple[int, EvaluationOutcome]]:
        """
        Run the batch with at most ``n_workers`` live evaluations.

        Every evaluation gets its own daemon thread. A timed-out evaluation
        is abandoned and its slot goes to the next queued configuration, so
        a hung objective neither blocks the rest of the batch nor keeps the
        interpreter from exiting.
        """
        finished: "queue.Queue[Tuple[int, EvaluationOutcome]]" = queue.Queue()
        waiting = list(range(len(configurations)))
        running: Dict[int, float] = {}
        results: Dict[int, EvaluationOutcome] = {}

        def task(index: int) -> None:
            finished.put((index, self._call(configurations[index])))

        def collect(block: bool) -> None:
            try:
                index, outcome = finished.get(timeout=0.05) if block else finished.get_nowait()
            except queue.Empty:
                return
            while True:
                # Results of abandoned evaluations arrive late and are ignored
                if running.pop(index, None) is not None:
                    results[index] = outcome
                try:
                    index, outcome = finished.get_nowait()
                except queue.Empty:
                    return

        cancelled = False
        while waiting or running:
            if cancel_event is not None and cancel_event.is_set():
                cancelled = True
                break
            while waiting and len(running) < self.n_workers:
                index = waiting.pop(0)
                running[index] = time.time()
                self.n_calls += 1
                threading.Thread(target=task, args=(index,), name=f"smbo-eval-{index}", daemon=True).start()

            collect(block=True)

            if self.timeout is not None:
                now = time.time()
                for index, started in list(running.items()):
                    if now - started > self.timeout:
                        del running[index]
                        message = f"Evaluation timed out after {self.timeout:.3g}s"
                        logger.warning(f"{message}: {configurations[index]}")
                        results[index] = EvaluationOutcome(
                            configuration=configurations[index],
                            outcome=None,
                            execution_time=now - started,
                            error=message,
                        )

        if cancelled:
            # Keep whatever finished, drop work that is still running or never started
            collect(block=False)
            n_dropped = len(configurations) - len(results)
            logger.info(f"Cancelled batch evaluation, {n_dropped} evaluation(s) dropped")

        return sorted(results.items(), key=lambda item: item[0])
