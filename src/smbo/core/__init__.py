"""
Core module for the SMBO engine.

This module contains the fundamental classes and interfaces:
- Settings and logging configuration
- Run control (MBOControl and its builder)
- Shared types and records
- Surrogate and infill criterion base classes
- Exception taxonomy
"""

from smbo.core.base import BaseInfillCriterion, BaseSurrogateModel, SurrogateState
from smbo.core.config import Settings, configure_logging, settings
from smbo.core.control import MBOControl, MBOControlBuilder
from smbo.core.exceptions import (
    ConfigurationError,
    ConstructionError,
    EngineStateError,
    EvaluationFailure,
    InvalidConfiguration,
    PathFrozenError,
    ProposalExhaustion,
    SMBOError,
    SurrogateFitFailure,
    SurrogatePredictionFailure,
)
from smbo.core.types import (
    EngineState,
    Evaluation,
    EvaluationOutcome,
    EvaluationStatus,
    InfillCriterionType,
    ModelPrediction,
    ObjectiveKind,
    ParameterType,
    TerminationReason,
)

__all__ = [
    "BaseInfillCriterion",
    "BaseSurrogateModel",
    "SurrogateState",
    "Settings",
    "settings",
    "configure_logging",
    "MBOControl",
    "MBOControlBuilder",
    "SMBOError",
    "ConstructionError",
    "InvalidConfiguration",
    "ConfigurationError",
    "EvaluationFailure",
    "SurrogateFitFailure",
    "SurrogatePredictionFailure",
    "ProposalExhaustion",
    "EngineStateError",
    "PathFrozenError",
    "EngineState",
    "Evaluation",
    "EvaluationOutcome",
    "EvaluationStatus",
    "InfillCriterionType",
    "ModelPrediction",
    "ObjectiveKind",
    "ParameterType",
    "TerminationReason",
]
