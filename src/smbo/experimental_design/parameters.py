"""
Parameter definition and search space definition.

This module provides the typed search domain used throughout the engine:
- Continuous, integer and categorical parameters with bounds or levels
- Optional monotonic value transforms applied before evaluation
- Explicit activation requirements for hierarchical spaces, resolved in
  dependency order and checked for cycles when the space is built
- Validation, random sampling, enumeration of finite spaces and a numeric
  encoding for surrogate models
"""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Sequence, Tuple

import numpy as np
import pandas as pd

from smbo.core.exceptions import ConstructionError, InvalidConfiguration
from smbo.core.types import ParameterDict, ParameterType

logger = logging.getLogger(__name__)

# Named transforms usable from dictionaries / the CLI
TRANSFORMS: Dict[str, Callable[[float], float]] = {
    "exp": math.exp,
    "exp2": lambda x: 2.0 ** x,
    "exp10": lambda x: 10.0 ** x,
}

# Encoded value for numeric parameters that are inactive in a configuration
INACTIVE_NUMERIC_CODE = -1.0


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float, np.integer, np.floating)) and not isinstance(value, (bool, np.bool_))


@dataclass(frozen=True)
class Requirement:
    """
    Activation predicate of a conditional parameter.

    The predicate only ever sees values of parameters listed in
    ``depends_on``; if any of them is unassigned (inactive) the requirement
    is not satisfied.
    """
    depends_on: Tuple[str, ...]
    predicate: Callable[[Mapping[str, Any]], bool]
    description: str = ""
    allowed_values: Optional[Tuple[Any, ...]] = None

    def __post_init__(self):
        if isinstance(self.depends_on, str):
            object.__setattr__(self, "depends_on", (self.depends_on,))
        else:
            object.__setattr__(self, "depends_on", tuple(self.depends_on))
        if not self.depends_on:
            raise ValueError("A requirement must depend on at least one parameter")

    @classmethod
    def equals(cls, name: str, *values: Any) -> "Requirement":
        """Active iff parameter ``name`` takes one of ``values``."""
        if not values:
            raise ValueError("At least one value is required")
        allowed = tuple(values)
        return cls(
            depends_on=(name,),
            predicate=lambda assignment: assignment[name] in allowed,
            description=f"{name} in {list(allowed)}",
            allowed_values=allowed,
        )

    def is_satisfied(self, assignment: Mapping[str, Any]) -> bool:
        if any(dep not in assignment for dep in self.depends_on):
            return False
        return bool(self.predicate({dep: assignment[dep] for dep in self.depends_on}))


@dataclass
class Parameter:
    """Definition of an optimization parameter."""
    name: str
    type: ParameterType
    bounds: Optional[Tuple[float, float]] = None
    categories: Optional[List[Any]] = None
    transform: Optional[Callable[[Any], Any]] = None
    requires: Optional[Requirement] = None
    description: Optional[str] = None

    def __post_init__(self):
        """Validate parameter definition."""
        self.type = ParameterType(self.type)
        if not self.name:
            raise ConstructionError("Parameter name must be non-empty")

        if self.type in (ParameterType.CONTINUOUS, ParameterType.INTEGER):
            if self.bounds is None or len(self.bounds) != 2:
                raise ConstructionError(f"Bounds required for {self.type.value} parameter '{self.name}'")
            low, high = self.bounds
            if not (_is_number(low) and _is_number(high)) or not (np.isfinite(low) and np.isfinite(high)):
                raise ConstructionError(f"Bounds of '{self.name}' must be finite numbers")
            if low > high:
                raise ConstructionError(f"Lower bound exceeds upper bound for '{self.name}'")
            if self.type == ParameterType.INTEGER:
                if not (float(low).is_integer() and float(high).is_integer()):
                    raise ConstructionError(f"Integer parameter '{self.name}' needs integral bounds")
                self.bounds = (int(low), int(high))
            else:
                self.bounds = (float(low), float(high))
        else:
            if not self.categories:
                raise ConstructionError(f"Categories required for categorical parameter '{self.name}'")
            self.categories = list(self.categories)
            if len(set(self.categories)) != len(self.categories):
                raise ConstructionError(f"Duplicate categories for '{self.name}'")

    @classmethod
    def continuous(cls, name: str, low: float, high: float, **kwargs) -> "Parameter":
        return cls(name=name, type=ParameterType.CONTINUOUS, bounds=(low, high), **kwargs)

    @classmethod
    def integer(cls, name: str, low: int, high: int, **kwargs) -> "Parameter":
        return cls(name=name, type=ParameterType.INTEGER, bounds=(low, high), **kwargs)

    @classmethod
    def categorical(cls, name: str, categories: Sequence[Any], **kwargs) -> "Parameter":
        return cls(name=name, type=ParameterType.CATEGORICAL, categories=list(categories), **kwargs)

    @property
    def is_numeric(self) -> bool:
        return self.type != ParameterType.CATEGORICAL

    @property
    def is_conditional(self) -> bool:
        return self.requires is not None

    @property
    def n_values(self) -> Optional[int]:
        """Number of distinct values, None for continuous parameters."""
        if self.type == ParameterType.CONTINUOUS:
            return None
        if self.type == ParameterType.INTEGER:
            return self.bounds[1] - self.bounds[0] + 1
        return len(self.categories)

    def values(self) -> List[Any]:
        """All values of a finite parameter."""
        if self.type == ParameterType.INTEGER:
            return list(range(self.bounds[0], self.bounds[1] + 1))
        if self.type == ParameterType.CATEGORICAL:
            return list(self.categories)
        raise TypeError(f"Continuous parameter '{self.name}' has no finite value set")

    def check_value(self, value: Any) -> None:
        """Raise InvalidConfiguration if ``value`` is outside the domain."""
        if self.type == ParameterType.CATEGORICAL:
            if value not in self.categories:
                raise InvalidConfiguration(
                    f"Value {value!r} of '{self.name}' is not one of {self.categories}", self.name
                )
            return

        if not _is_number(value) or not np.isfinite(value):
            raise InvalidConfiguration(f"Value {value!r} of '{self.name}' is not a finite number", self.name)
        if self.type == ParameterType.INTEGER and not float(value).is_integer():
            raise InvalidConfiguration(f"Value {value!r} of '{self.name}' is not integral", self.name)
        low, high = self.bounds
        if value < low or value > high:
            raise InvalidConfiguration(
                f"Value {value!r} of '{self.name}' is outside [{low}, {high}]", self.name
            )

    def contains(self, value: Any) -> bool:
        try:
            self.check_value(value)
        except InvalidConfiguration:
            return False
        return True

    def from_unit(self, u: float, bounds: Optional[Tuple[float, float]] = None) -> Any:
        """Map a unit-interval sample to a numeric value inside ``bounds``."""
        low, high = bounds if bounds is not None else self.bounds
        u = min(max(float(u), 0.0), 1.0)
        if self.type == ParameterType.INTEGER:
            low, high = int(math.ceil(low)), int(math.floor(high))
            return int(min(low + math.floor(u * (high - low + 1)), high))
        return float(low + u * (high - low))

    def to_unit(self, value: Any) -> float:
        """Scale a numeric value to [0, 1] relative to the full bounds."""
        low, high = self.bounds
        if high == low:
            return 0.5
        return (float(value) - low) / (high - low)

    def normalize(self, value: Any) -> Any:
        """Canonical python representation of a value (used for keys and storage)."""
        if self.type == ParameterType.INTEGER:
            return int(value)
        if self.type == ParameterType.CONTINUOUS:
            return float(value)
        if isinstance(value, np.generic):
            return value.item()
        return value

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"name": self.name, "type": self.type.value}
        if self.is_numeric:
            data["bounds"] = list(self.bounds)
        else:
            data["categories"] = list(self.categories)
        if self.transform is not None:
            names = [key for key, fn in TRANSFORMS.items() if fn is self.transform]
            if not names:
                raise ValueError(f"Transform of '{self.name}' is a custom callable and cannot be serialized")
            data["transform"] = names[0]
        if self.requires is not None:
            if self.requires.allowed_values is None:
                raise ValueError(f"Requirement of '{self.name}' is a custom predicate and cannot be serialized")
            data["requires"] = {
                "parameter": self.requires.depends_on[0],
                "values": list(self.requires.allowed_values),
            }
        if self.description:
            data["description"] = self.description
        return data


class ParameterSpace:
    """
    Ordered collection of parameters with unique names.

    Requirements are resolved once at construction: unknown references and
    cycles raise ``ConstructionError``, and a dependency order is fixed in
    which every parameter comes after the parameters its activation depends
    on.
    """

    def __init__(self, parameters: Sequence[Parameter], name: Optional[str] = None):
        self.name = name
        self._parameters: List[Parameter] = list(parameters)
        if not self._parameters:
            raise ConstructionError("A parameter space needs at least one parameter")

        self._by_name: Dict[str, Parameter] = {}
        for param in self._parameters:
            if param.name in self._by_name:
                raise ConstructionError(f"Duplicate parameter name '{param.name}'")
            self._by_name[param.name] = param

        for param in self._parameters:
            if param.requires is None:
                continue
            for dep in param.requires.depends_on:
                if dep not in self._by_name:
                    raise ConstructionError(
                        f"Requirement of '{param.name}' references unknown parameter '{dep}'"
                    )

        self._order = self._resolve_dependency_order()
        logger.debug(f"Built parameter space with {len(self)} parameters")

    def _resolve_dependency_order(self) -> List[Parameter]:
        # Depth-first topological sort; grey nodes on the stack mark a cycle
        white, grey, black = 0, 1, 2
        color = {p.name: white for p in self._parameters}
        order: List[Parameter] = []

        def visit(name: str, trail: List[str]) -> None:
            if color[name] == black:
                return
            if color[name] == grey:
                cycle = trail[trail.index(name):] + [name]
                raise ConstructionError(f"Cyclic requirement: {' -> '.join(cycle)}")
            color[name] = grey
            param = self._by_name[name]
            if param.requires is not None:
                for dep in param.requires.depends_on:
                    visit(dep, trail + [name])
            color[name] = black
            order.append(param)

        for param in self._parameters:
            visit(param.name, [])
        return order

    # Container protocol

    def __len__(self) -> int:
        return len(self._parameters)

    def __iter__(self) -> Iterator[Parameter]:
        return iter(self._parameters)

    def __getitem__(self, name: str) -> Parameter:
        return self._by_name[name]

    def __contains__(self, name: str) -> bool:
        return name in self._by_name

    def __repr__(self) -> str:
        return f"ParameterSpace({[p.name for p in self._parameters]})"

    @property
    def parameters(self) -> List[Parameter]:
        return list(self._parameters)

    @property
    def names(self) -> List[str]:
        return [p.name for p in self._parameters]

    @property
    def dependency_order(self) -> List[Parameter]:
        return list(self._order)

    @property
    def is_all_numeric(self) -> bool:
        return all(p.is_numeric for p in self._parameters)

    @property
    def has_conditions(self) -> bool:
        return any(p.is_conditional for p in self._parameters)

    # Activation and validation

    def active_parameters(self, partial_assignment: Mapping[str, Any]) -> List[Parameter]:
        """
        Resolve which parameters apply given already-assigned values.

        Values of parameters that are themselves inactive are ignored when
        evaluating requirements.

        Args:
            partial_assignment: Values assigned so far

        Returns:
            Active parameters in dependency order
        """
        resolved: Dict[str, Any] = {}
        active = []
        for param in self._order:
            if param.requires is None or param.requires.is_satisfied(resolved):
                active.append(param)
                if param.name in partial_assignment:
                    resolved[param.name] = partial_assignment[param.name]
        return active

    def validate(self, configuration: Mapping[str, Any]) -> bool:
        """
        Validate a configuration against the space.

        Raises:
            InvalidConfiguration: unknown parameter, missing value for an
                active parameter, value for an inactive parameter, or an
                out-of-domain value
        """
        for key in configuration:
            if key not in self._by_name:
                raise InvalidConfiguration(f"Unknown parameter '{key}'", key)

        resolved: Dict[str, Any] = {}
        for param in self._order:
            active = param.requires is None or param.requires.is_satisfied(resolved)
            if active:
                if param.name not in configuration:
                    raise InvalidConfiguration(f"Missing value for active parameter '{param.name}'", param.name)
                param.check_value(configuration[param.name])
                resolved[param.name] = configuration[param.name]
            elif param.name in configuration:
                raise InvalidConfiguration(
                    f"Value supplied for inactive parameter '{param.name}' "
                    f"(requires {param.requires.description or param.requires.depends_on})",
                    param.name,
                )
        return True

    def is_valid(self, configuration: Mapping[str, Any]) -> bool:
        try:
            return self.validate(configuration)
        except InvalidConfiguration:
            return False

    def apply_transforms(self, configuration: Mapping[str, Any]) -> ParameterDict:
        """Values as passed to the objective function."""
        transformed = {}
        for name, value in configuration.items():
            param = self._by_name[name]
            transformed[name] = param.transform(value) if param.transform is not None else value
        return transformed

    def normalize(self, configuration: Mapping[str, Any]) -> ParameterDict:
        """Canonical python values in declaration order."""
        return {
            p.name: p.normalize(configuration[p.name])
            for p in self._parameters if p.name in configuration
        }

    def configuration_key(self, configuration: Mapping[str, Any]) -> Tuple:
        """Hashable identity of a configuration, used for duplicate detection."""
        return tuple(
            (p.name, p.normalize(configuration[p.name]))
            for p in self._parameters if p.name in configuration
        )

    # Sampling and enumeration

    def sample(
        self,
        n: int,
        rng: Optional[np.random.Generator] = None,
        region: Optional[Mapping[str, Any]] = None,
    ) -> List[ParameterDict]:
        """
        Draw random valid configurations.

        Args:
            n: Number of configurations
            rng: Random generator
            region: Optional per-parameter restriction, bounds tuples for
                numeric parameters and level lists for categoricals

        Returns:
            List of configurations
        """
        rng = rng if rng is not None else np.random.default_rng()
        region = region or {}
        configurations = []
        for _ in range(n):
            config: Dict[str, Any] = {}
            for param in self._order:
                if param.requires is not None and not param.requires.is_satisfied(config):
                    continue
                restriction = region.get(param.name)
                if param.type == ParameterType.CATEGORICAL:
                    levels = restriction if restriction else param.categories
                    config[param.name] = levels[int(rng.integers(len(levels)))]
                else:
                    config[param.name] = param.from_unit(rng.random(), restriction)
            configurations.append(self.normalize(config))
        return configurations

    def is_finite(self) -> bool:
        return all(p.type != ParameterType.CONTINUOUS for p in self._parameters)

    def iter_configurations(self) -> Iterator[ParameterDict]:
        """Enumerate every valid configuration of a finite space."""
        if not self.is_finite():
            raise TypeError("Only spaces without continuous parameters can be enumerated")

        order = self._order

        def expand(position: int, config: Dict[str, Any]) -> Iterator[Dict[str, Any]]:
            if position == len(order):
                yield self.normalize(config)
                return
            param = order[position]
            if param.requires is not None and not param.requires.is_satisfied(config):
                yield from expand(position + 1, config)
                return
            for value in param.values():
                config[param.name] = value
                yield from expand(position + 1, config)
            del config[param.name]

        yield from expand(0, {})

    def enumerate(self, limit: Optional[int] = None) -> List[ParameterDict]:
        configurations = []
        for config in self.iter_configurations():
            if limit is not None and len(configurations) >= limit:
                break
            configurations.append(config)
        return configurations

    def n_configurations(self, cap: Optional[int] = None) -> Optional[int]:
        """
        Number of distinct valid configurations.

        Returns None for spaces with continuous parameters. Counting stops
        at ``cap`` when given.
        """
        if not self.is_finite():
            return None
        count = 0
        for _ in self.iter_configurations():
            count += 1
            if cap is not None and count >= cap:
                break
        return count

    # Encoding

    def encode(self, configurations: Sequence[Mapping[str, Any]]) -> np.ndarray:
        """
        Numeric design matrix for surrogate models.

        Numeric parameters are scaled to [0, 1] (inactive ones coded -1),
        categorical parameters are one-hot encoded (all zeros when inactive).
        """
        n_columns = sum(1 if p.is_numeric else len(p.categories) for p in self._parameters)
        X = np.zeros((len(configurations), n_columns), dtype=float)
        for row, config in enumerate(configurations):
            column = 0
            for param in self._parameters:
                if param.is_numeric:
                    if param.name in config:
                        X[row, column] = param.to_unit(config[param.name])
                    else:
                        X[row, column] = INACTIVE_NUMERIC_CODE
                    column += 1
                else:
                    if param.name in config:
                        X[row, column + param.categories.index(config[param.name])] = 1.0
                    column += len(param.categories)
        return X

    def to_frame(self, configurations: Sequence[Mapping[str, Any]]) -> pd.DataFrame:
        """Configurations as a DataFrame; inactive parameters are missing values."""
        rows = [{p.name: config.get(p.name) for p in self._parameters} for config in configurations]
        return pd.DataFrame(rows, columns=self.names)

    # Serialization

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "parameters": [p.to_dict() for p in self._parameters]}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ParameterSpace":
        """
        Build a space from a dictionary.

        Supports ``requires: {"parameter": ..., "values": [...]}`` and named
        transforms (``exp``, ``exp2``, ``exp10``).
        """
        parameters = []
        for entry in data["parameters"]:
            requires = None
            if entry.get("requires"):
                req = entry["requires"]
                requires = Requirement.equals(req["parameter"], *req["values"])
            transform = None
            if entry.get("transform"):
                if entry["transform"] not in TRANSFORMS:
                    raise ConstructionError(f"Unknown transform '{entry['transform']}'")
                transform = TRANSFORMS[entry["transform"]]
            parameters.append(Parameter(
                name=entry["name"],
                type=ParameterType(entry["type"]),
                bounds=tuple(entry["bounds"]) if entry.get("bounds") is not None else None,
                categories=entry.get("categories"),
                transform=transform,
                requires=requires,
                description=entry.get("description"),
            ))
        return cls(parameters, name=data.get("name"))
