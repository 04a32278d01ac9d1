"""
Optimization module for the SMBO engine.

Components:
- engine: The model-based optimization loop and its result
- evaluator: Objective calls, single or on worker threads
- path: Append-only record of evaluations
- infill: Mean, EI, confidence bound and DIB criteria
- proposer: Focus search and constant liar batches
- multi_objective: ParEGO scalarization
- pareto: Dominance, Pareto fronts and hypervolume
"""

from smbo.optimization.engine import MBOEngine, MBOResult, mbo
from smbo.optimization.evaluator import ObjectiveEvaluator
from smbo.optimization.infill import (
    ConfidenceBound,
    DirectIndicatorBased,
    ExpectedImprovement,
    InfillScores,
    MeanCriterion,
    create_infill_criterion,
)
from smbo.optimization.multi_objective import ParEGOScalarizer
from smbo.optimization.pareto import hypervolume, non_dominated_mask, pareto_front
from smbo.optimization.path import OptimizationPath
from smbo.optimization.proposer import CandidateProposer, Proposal

__all__ = [
    "MBOEngine",
    "MBOResult",
    "mbo",
    "ObjectiveEvaluator",
    "OptimizationPath",
    "MeanCriterion",
    "ExpectedImprovement",
    "ConfidenceBound",
    "DirectIndicatorBased",
    "InfillScores",
    "create_infill_criterion",
    "CandidateProposer",
    "Proposal",
    "ParEGOScalarizer",
    "hypervolume",
    "non_dominated_mask",
    "pareto_front",
]
