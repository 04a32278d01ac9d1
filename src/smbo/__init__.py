"""
SMBO: Sequential Model-Based Optimization

An engine for optimizing expensive black-box functions over mixed and
hierarchical parameter spaces by alternating surrogate fitting and infill
criterion optimization.

Key Features:
- Continuous, integer and categorical parameters with activation requirements
- Space-filling initial designs (LHS, Sobol, Halton)
- Mean, expected improvement and confidence bound infill criteria
- Multi-objective optimization with DIB (epsilon / SMS) and ParEGO
- Constant liar batch proposals evaluated concurrently
- Random forest, Gaussian process and linear surrogates

Modules:
- core: Settings, run control, types, base classes and exceptions
- experimental_design: Parameter spaces and initial designs
- optimization: Engine, evaluator, path, infill criteria and proposal
- models: Surrogate models
- utils: Sampling methods and benchmark problems
"""

__version__ = "0.1.0"
__author__ = "SMBO Engine Team"

from smbo.core.config import Settings
from smbo.core.control import MBOControl, MBOControlBuilder
from smbo.experimental_design.parameters import Parameter, ParameterSpace, Requirement
from smbo.optimization.engine import MBOEngine, MBOResult, mbo

__all__ = [
    "__version__",
    "__author__",
    "Settings",
    "MBOControl",
    "MBOControlBuilder",
    "Parameter",
    "ParameterSpace",
    "Requirement",
    "MBOEngine",
    "MBOResult",
    "mbo",
]


def get_version() -> str:
    """Get the current version of the SMBO engine."""
    return __version__


def get_info() -> dict:
    """Get package information."""
    return {
        "name": "smbo-engine",
        "version": __version__,
        "author": __author__,
        "description": "Sequential model-based optimization over mixed and hierarchical spaces",
    }
