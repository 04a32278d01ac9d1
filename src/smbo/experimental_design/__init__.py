"""
Experimental design module for the SMBO engine.

Components:
- parameters: Typed, hierarchical parameter spaces
- design: Initial design generation
"""

from smbo.experimental_design.design import DesignGenerator, generate_design
from smbo.experimental_design.parameters import (
    TRANSFORMS,
    Parameter,
    ParameterSpace,
    Requirement,
)

__all__ = [
    "Parameter",
    "ParameterSpace",
    "Requirement",
    "TRANSFORMS",
    "DesignGenerator",
    "generate_design",
]
