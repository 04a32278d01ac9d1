"""
Run control for the MBO engine.

``MBOControl`` is an immutable, validated value describing one run:
termination, initial design, infill criterion and its optimizer, batch
proposal, multi-objective method and evaluation limits. It is assembled
once through ``MBOControlBuilder`` and handed to the engine.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, model_validator

from smbo.core.config import settings
from smbo.core.exceptions import ConfigurationError
from smbo.core.types import (
    DibIndicator,
    InfillCriterionType,
    MultiCritMethod,
    MultiPointMethod,
)

logger = logging.getLogger(__name__)


class MBOControl(BaseModel):
    """Validated, immutable run configuration."""

    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    # Termination
    iterations: Optional[int] = Field(default=10, ge=0, description="Post-design iterations")
    time_budget: Optional[float] = Field(default=None, gt=0, description="Wall-clock budget in seconds")
    max_evals: Optional[int] = Field(default=None, gt=0, description="Maximum number of evaluations")
    target_value: Optional[float] = Field(default=None, description="Stop once the best outcome reaches this")

    # Objectives
    n_objectives: int = Field(default=1, ge=1, description="Number of objectives")
    objective_names: Optional[List[str]] = Field(default=None, description="Objective names")
    minimize: Optional[List[bool]] = Field(default=None, description="Direction per objective")
    noisy: bool = Field(default=False, description="Objective is stochastic")

    # Initial design
    init_design_size: Optional[int] = Field(default=None, ge=1, description="Initial design size")
    design_method: str = Field(default_factory=lambda: settings.design_method, description="Design method")

    # Infill criterion and its optimizer
    infill_criterion: Optional[InfillCriterionType] = Field(default=None, description="Infill criterion")
    infill_params: Dict[str, float] = Field(default_factory=dict, description="Criterion parameters")
    focus_search_points: int = Field(default_factory=lambda: settings.focus_search_points, ge=1)
    focus_search_maxit: int = Field(default_factory=lambda: settings.focus_search_maxit, ge=1)
    focus_search_restarts: int = Field(default_factory=lambda: settings.focus_search_restarts, ge=1)
    interleave_random_points: int = Field(default=0, ge=0, description="Random points added per iteration")

    # Multi-point proposal
    propose_points: int = Field(default=1, ge=1, description="Batch size per iteration")
    multipoint_method: MultiPointMethod = Field(default=MultiPointMethod.CONSTANT_LIAR)
    multipoint_aggregator: Callable[[np.ndarray], float] = Field(
        default=np.min, description="Reduces observed outcomes to the lie value"
    )

    # Multi-objective
    multicrit_method: MultiCritMethod = Field(default=MultiCritMethod.DIB)
    dib_indicator: DibIndicator = Field(default=DibIndicator.EPSILON)
    parego_s: Optional[int] = Field(default=None, ge=1, description="Weight lattice resolution")
    parego_rho: float = Field(default=0.05, ge=0, description="Augmentation weight")

    # Evaluation
    max_failures: Optional[int] = Field(default=None, ge=0, description="Failures tolerated before aborting")
    eval_timeout: Optional[float] = Field(default=None, gt=0, description="Per-evaluation timeout in seconds")
    n_workers: int = Field(default_factory=lambda: settings.n_workers, ge=1)
    random_seed: Optional[int] = Field(default_factory=lambda: settings.random_seed)

    @model_validator(mode="after")
    def check_consistency(self):
        if self.iterations is None and self.time_budget is None and self.max_evals is None:
            raise ValueError("At least one of iterations, time_budget or max_evals is required")
        if self.objective_names is not None and len(self.objective_names) != self.n_objectives:
            raise ValueError("objective_names must have one entry per objective")
        if self.objective_names is not None and len(set(self.objective_names)) != self.n_objectives:
            raise ValueError("objective_names must be unique")
        if self.minimize is not None and len(self.minimize) != self.n_objectives:
            raise ValueError("minimize must have one entry per objective")
        if self.target_value is not None and self.n_objectives > 1:
            raise ValueError("target_value is only supported for single-objective runs")

        criterion = self.infill_criterion
        if self.n_objectives == 1 and criterion == InfillCriterionType.DIRECT_INDICATOR:
            raise ValueError("The dib criterion requires at least two objectives")
        if self.n_objectives > 1 and self.multicrit_method == MultiCritMethod.DIB:
            if criterion is not None and criterion != InfillCriterionType.DIRECT_INDICATOR:
                raise ValueError("multicrit_method 'dib' requires the dib infill criterion")
        if self.n_objectives > 1 and self.multicrit_method == MultiCritMethod.PAREGO:
            if criterion == InfillCriterionType.DIRECT_INDICATOR:
                raise ValueError("multicrit_method 'parego' uses a single-objective infill criterion")
        return self

    @property
    def resolved_objective_names(self) -> List[str]:
        if self.objective_names is not None:
            return list(self.objective_names)
        if self.n_objectives == 1:
            return ["y"]
        return [f"y{i + 1}" for i in range(self.n_objectives)]

    @property
    def resolved_minimize(self) -> List[bool]:
        return list(self.minimize) if self.minimize is not None else [True] * self.n_objectives

    @property
    def resolved_infill_criterion(self) -> InfillCriterionType:
        if self.infill_criterion is not None:
            return self.infill_criterion
        if self.n_objectives > 1 and self.multicrit_method == MultiCritMethod.DIB:
            return InfillCriterionType.DIRECT_INDICATOR
        return InfillCriterionType.EXPECTED_IMPROVEMENT

    @property
    def is_multi_objective(self) -> bool:
        return self.n_objectives > 1

    def init_design_size_for(self, dimension: int) -> int:
        if self.init_design_size is not None:
            return self.init_design_size
        return max(settings.init_design_factor * dimension, 2)

    @classmethod
    def builder(cls) -> "MBOControlBuilder":
        return MBOControlBuilder()


class MBOControlBuilder:
    """
    Fluent builder for ``MBOControl``.

    Every setter returns the builder; ``build`` validates and freezes the
    accumulated options.
    """

    def __init__(self, **options: Any):
        self._options: Dict[str, Any] = dict(options)

    def _set(self, **options: Any) -> "MBOControlBuilder":
        self._options.update({k: v for k, v in options.items() if v is not None})
        return self

    def objectives(
        self,
        n_objectives: int = 1,
        names: Optional[List[str]] = None,
        minimize: Optional[List[bool]] = None,
        noisy: Optional[bool] = None,
    ) -> "MBOControlBuilder":
        return self._set(n_objectives=n_objectives, objective_names=names, minimize=minimize, noisy=noisy)

    def termination(
        self,
        iterations: Optional[int] = None,
        time_budget: Optional[float] = None,
        max_evals: Optional[int] = None,
        target_value: Optional[float] = None,
    ) -> "MBOControlBuilder":
        if iterations is None and (time_budget is not None or max_evals is not None):
            # An explicit budget without an iteration count means "no iteration limit"
            self._options["iterations"] = None
        return self._set(
            iterations=iterations, time_budget=time_budget, max_evals=max_evals, target_value=target_value
        )

    def init_design(self, size: Optional[int] = None, method: Optional[str] = None) -> "MBOControlBuilder":
        return self._set(init_design_size=size, design_method=method)

    def infill(
        self,
        criterion: Optional[str] = None,
        params: Optional[Dict[str, float]] = None,
        focus_search_points: Optional[int] = None,
        focus_search_maxit: Optional[int] = None,
        focus_search_restarts: Optional[int] = None,
        interleave_random_points: Optional[int] = None,
    ) -> "MBOControlBuilder":
        return self._set(
            infill_criterion=InfillCriterionType(criterion) if criterion is not None else None,
            infill_params=params,
            focus_search_points=focus_search_points,
            focus_search_maxit=focus_search_maxit,
            focus_search_restarts=focus_search_restarts,
            interleave_random_points=interleave_random_points,
        )

    def multi_point(
        self,
        propose_points: int,
        method: str = MultiPointMethod.CONSTANT_LIAR.value,
        aggregator: Optional[Callable[[np.ndarray], float]] = None,
    ) -> "MBOControlBuilder":
        return self._set(
            propose_points=propose_points,
            multipoint_method=MultiPointMethod(method),
            multipoint_aggregator=aggregator,
        )

    def multi_objective(
        self,
        method: str = MultiCritMethod.DIB.value,
        indicator: Optional[str] = None,
        parego_s: Optional[int] = None,
        parego_rho: Optional[float] = None,
    ) -> "MBOControlBuilder":
        return self._set(
            multicrit_method=MultiCritMethod(method),
            dib_indicator=DibIndicator(indicator) if indicator is not None else None,
            parego_s=parego_s,
            parego_rho=parego_rho,
        )

    def evaluation(
        self,
        max_failures: Optional[int] = None,
        timeout: Optional[float] = None,
        n_workers: Optional[int] = None,
    ) -> "MBOControlBuilder":
        return self._set(max_failures=max_failures, eval_timeout=timeout, n_workers=n_workers)

    def seed(self, random_seed: int) -> "MBOControlBuilder":
        return self._set(random_seed=random_seed)

    def build(self) -> MBOControl:
        """Validate the options and return the frozen control."""
        try:
            control = MBOControl(**self._options)
        except ValueError as e:
            raise ConfigurationError(str(e)) from e
        logger.debug(f"Built control: {control!r}")
        return control
