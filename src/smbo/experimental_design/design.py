"""
Initial design generation for model-based optimization.

Produces space-filling samples over mixed, hierarchical parameter spaces:
numeric parameters are driven by a unit-hypercube sampler (Latin hypercube
by default), categorical parameters by balanced level assignment, and
conditional parameters are only set where their requirement holds.
"""

import logging
from typing import Dict, List, Optional, Set, Tuple

import numpy as np

from smbo.core.config import settings
from smbo.core.exceptions import ProposalExhaustion
from smbo.core.types import ParameterDict, ParameterType
from smbo.experimental_design.parameters import ParameterSpace
from smbo.utils.sampling import SAMPLERS

logger = logging.getLogger(__name__)

# Finite spaces up to this size are enumerated and subsampled without replacement
MAX_ENUMERATED_DESIGN_SPACE = 10000


class DesignGenerator:
    """
    Initial design generator.

    ``generate`` always returns exactly ``n`` valid configurations or raises
    ``ProposalExhaustion`` when a finite space holds fewer than ``n``
    distinct configurations.
    """

    def __init__(
        self,
        method: Optional[str] = None,
        random_seed: Optional[int] = None,
        rng: Optional[np.random.Generator] = None,
    ):
        """
        Initialize the design generator.

        Args:
            method: One of 'lhs', 'sobol', 'halton', 'random'
            random_seed: Seed used when no generator is supplied
            rng: Shared random generator
        """
        self.method = method or settings.design_method
        if self.method not in SAMPLERS:
            raise ValueError(f"Unknown design method: {self.method}")
        self.rng = rng if rng is not None else np.random.default_rng(random_seed)

    def generate(self, space: ParameterSpace, n: int) -> List[ParameterDict]:
        """
        Generate an initial design.

        Args:
            space: Parameter space to cover
            n: Number of configurations

        Returns:
            List of exactly n configurations, each valid for ``space``
        """
        if n < 0:
            raise ValueError("Design size cannot be negative")
        if n == 0:
            return []

        if space.is_finite():
            total = space.n_configurations(cap=max(n, MAX_ENUMERATED_DESIGN_SPACE + 1))
            if total < n:
                raise ProposalExhaustion(
                    f"Requested {n} design points but the space only has {total} distinct configurations"
                )
            if total <= MAX_ENUMERATED_DESIGN_SPACE:
                all_configs = space.enumerate()
                chosen = self.rng.choice(len(all_configs), size=n, replace=False)
                design = [all_configs[i] for i in chosen]
                logger.info(f"Generated {n} design points from {total} enumerated configurations")
                return design

        design = self._stratified_design(space, n)
        if space.is_finite():
            design = self._replace_duplicates(space, design)

        logger.info(f"Generated {n} design points ({self.method}) in {len(space)}D space")
        return design

    def _stratified_design(self, space: ParameterSpace, n: int) -> List[ParameterDict]:
        numeric = [p for p in space if p.is_numeric]
        unit_columns: Dict[str, np.ndarray] = {}
        if numeric:
            unit = SAMPLERS[self.method](len(numeric), n, rng=self.rng)
            unit_columns = {p.name: unit[:, j] for j, p in enumerate(numeric)}

        level_columns: Dict[str, list] = {}
        for param in space:
            if param.type == ParameterType.CATEGORICAL:
                level_columns[param.name] = self._balanced_levels(param.categories, n)

        design = []
        for i in range(n):
            config: Dict[str, object] = {}
            for param in space.dependency_order:
                if param.requires is not None and not param.requires.is_satisfied(config):
                    continue
                if param.is_numeric:
                    config[param.name] = param.from_unit(unit_columns[param.name][i])
                else:
                    config[param.name] = level_columns[param.name][i]
            design.append(space.normalize(config))
        return design

    def _balanced_levels(self, levels: list, n: int) -> list:
        """Each level appears floor(n/k) or ceil(n/k) times, in shuffled order."""
        k = len(levels)
        repeats = list(levels) * (n // k)
        repeats += [levels[j] for j in self.rng.permutation(k)[: n % k]]
        order = self.rng.permutation(n)
        return [repeats[j] for j in order]

    def _replace_duplicates(self, space: ParameterSpace, design: List[ParameterDict]) -> List[ParameterDict]:
        seen: Set[Tuple] = set()
        result = []
        n_replaced = 0
        for config in design:
            key = space.configuration_key(config)
            attempts = 0
            while key in seen:
                attempts += 1
                if attempts > 1000:
                    raise ProposalExhaustion("Could not draw a novel configuration for the initial design")
                config = space.sample(1, self.rng)[0]
                key = space.configuration_key(config)
                n_replaced += 1
            seen.add(key)
            result.append(config)
        if n_replaced:
            logger.debug(f"Replaced {n_replaced} duplicate design points")
        return result


def generate_design(
    space: ParameterSpace,
    n: int,
    method: Optional[str] = None,
    random_seed: Optional[int] = None,
) -> List[ParameterDict]:
    """Convenience wrapper around ``DesignGenerator.generate``."""
    return DesignGenerator(method=method, random_seed=random_seed).generate(space, n)
