"""
Type definitions and data structures for the SMBO engine.

This module contains the enums, records and type aliases shared by the
parameter space, the optimization path and the engine.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

import numpy as np
from pydantic import BaseModel, ConfigDict, Field


class ParameterType(str, Enum):
    """Parameter types for optimization variables."""
    CONTINUOUS = "continuous"
    INTEGER = "integer"
    CATEGORICAL = "categorical"


class ObjectiveKind(str, Enum):
    """Tag distinguishing single- from multi-objective outcomes."""
    SINGLE = "single"
    MULTI = "multi"


class EvaluationStatus(str, Enum):
    """Outcome status of one objective evaluation."""
    OK = "ok"
    FAILED = "failed"


class InfillCriterionType(str, Enum):
    """Available infill criteria."""
    MEAN = "mean"
    EXPECTED_IMPROVEMENT = "ei"
    CONFIDENCE_BOUND = "cb"
    DIRECT_INDICATOR = "dib"


class MultiPointMethod(str, Enum):
    """Batch proposal methods."""
    CONSTANT_LIAR = "cl"


class MultiCritMethod(str, Enum):
    """Multi-objective optimization methods."""
    DIB = "dib"
    PAREGO = "parego"


class DibIndicator(str, Enum):
    """Front quality indicators used by the direct indicator based criterion."""
    EPSILON = "eps"
    SMS = "sms"


class EngineState(str, Enum):
    """Lifecycle states of an MBO engine."""
    INITIALIZING = "initializing"
    ITERATING = "iterating"
    TERMINATED = "terminated"


class TerminationReason(str, Enum):
    """Why a run stopped."""
    ITERATIONS = "iterations"
    TIME_BUDGET = "time_budget"
    MAX_EVALS = "max_evals"
    TARGET_REACHED = "target_reached"
    FAILURE_THRESHOLD = "failure_threshold"
    SURROGATE_FAILURE = "surrogate_failure"
    EXHAUSTED = "exhausted"
    CANCELLED = "cancelled"


# Type aliases for commonly used types
ParameterDict = Dict[str, Any]
OutcomeVector = Tuple[float, ...]
MetadataDict = Dict[str, Any]

# Function type aliases
ObjectiveFunction = Callable[[ParameterDict], Union[float, List[float], Dict[str, float]]]
Aggregator = Callable[[np.ndarray], float]


class Evaluation(BaseModel):
    """A single evaluated configuration with its outcome(s)."""

    model_config = ConfigDict(frozen=True)

    index: int = Field(..., description="Position in the optimization path")
    configuration: Dict[str, Any] = Field(..., description="Parameter values (untransformed)")
    outcome: Optional[Tuple[float, ...]] = Field(default=None, description="Objective values")
    kind: ObjectiveKind = Field(default=ObjectiveKind.SINGLE, description="Outcome tag")
    status: EvaluationStatus = Field(default=EvaluationStatus.OK, description="Evaluation status")
    iteration: int = Field(default=0, description="Iteration index, 0 for the initial design")
    proposed_by: str = Field(default="initdesign", description="Origin of the configuration")
    timestamp: datetime = Field(default_factory=datetime.now, description="Timestamp")
    execution_time: float = Field(default=0.0, description="Evaluation wall time in seconds")
    error: Optional[str] = Field(default=None, description="Failure message")
    extras: Dict[str, Any] = Field(default_factory=dict, description="Proposal metadata")

    @property
    def is_ok(self) -> bool:
        return self.status == EvaluationStatus.OK

    @property
    def value(self) -> float:
        """Scalar outcome of a single-objective evaluation."""
        if self.kind != ObjectiveKind.SINGLE:
            raise TypeError("value is only defined for single-objective evaluations")
        if self.outcome is None:
            raise ValueError(f"Evaluation {self.index} failed and has no outcome")
        return self.outcome[0]


@dataclass(frozen=True)
class EvaluationOutcome:
    """Result of calling the objective once, before it is placed on the path."""
    configuration: ParameterDict
    outcome: Optional[Tuple[float, ...]]
    execution_time: float = 0.0
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.outcome is None


@dataclass(frozen=True)
class ModelPrediction:
    """Vectorized surrogate prediction; ``std`` is None when no dispersion is available."""
    mean: np.ndarray
    std: Optional[np.ndarray] = None

    @property
    def has_dispersion(self) -> bool:
        return self.std is not None


class ReportedError(BaseModel):
    """A run-level error recorded on the result instead of being raised."""
    kind: str = Field(..., description="Exception class name")
    message: str = Field(..., description="Error message")
    iteration: int = Field(default=0, description="Iteration in which it occurred")
    timestamp: datetime = Field(default_factory=datetime.now, description="Timestamp")
