"""
Utilities module for the SMBO engine.

Components:
- sampling: Space-filling sampling methods on the unit hypercube
- test_functions: Benchmark objectives with their parameter spaces
"""

from smbo.utils.sampling import (
    SAMPLERS,
    halton_sampling,
    latin_hypercube_sampling,
    random_sampling,
    sobol_sampling,
)

__all__ = [
    "SAMPLERS",
    "latin_hypercube_sampling",
    "sobol_sampling",
    "halton_sampling",
    "random_sampling",
]
