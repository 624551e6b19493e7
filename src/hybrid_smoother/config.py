"""
Configuration for the hybrid smoother.
"""
from typing import Any, Dict, Optional

import yaml
from attrs import define, field, fields, validators

from .types.enums import FrontierScheme
from .utils.validation import positive_int_validator, probability_validator


def _to_frontier_scheme(value) -> FrontierScheme:
    if isinstance(value, FrontierScheme):
        return value
    if isinstance(value, str):
        try:
            return FrontierScheme[value.upper()]
        except KeyError:
            raise ValueError(
                f"Unknown frontier scheme '{value}'. Valid schemes are: {[s.name for s in FrontierScheme]}"
            )
    raise TypeError(f"Frontier scheme must be a FrontierScheme or str, got {type(value)}")


@define
class SmootherParams:
    """
    Parameters of a HybridSmoother.
    """

    marginal_threshold: Optional[float] = field(
        default=0.99,
        validator=probability_validator,
        metadata={"description": "When pruning, fix a discrete variable once its marginal exceeds this (None: once a single value survives)"},
    )
    max_leaves: Optional[int] = field(
        default=None,
        validator=validators.optional(positive_int_validator),
        metadata={"description": "Default hypothesis bound per update (None: no pruning)"},
    )
    frontier_scheme: FrontierScheme = field(
        default=FrontierScheme.NONE,
        converter=_to_frontier_scheme,
        metadata={"description": "Which continuous keys are held to the end of the ordering"},
    )
    check_invariants: bool = field(
        default=True,
        validator=validators.instance_of(bool),
        metadata={"description": "Audit the posterior after every update"},
    )

    @classmethod
    def from_dict(cls, params: Dict[str, Any]) -> "SmootherParams":
        """
        Build parameters from a plain dictionary.

        Raises:
            ValueError: on keys that are not smoother parameters.
        """
        known = {a.name for a in fields(cls)}
        unknown = set(params) - known
        if unknown:
            raise ValueError(f"Unknown smoother parameters: {sorted(unknown)}")
        return cls(**params)

    @classmethod
    def from_yaml(cls, path: str) -> "SmootherParams":
        """Load parameters from a YAML file of top-level key/value pairs."""
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        if not isinstance(data, dict):
            raise ValueError(f"Expected a mapping in {path}, got {type(data)}")
        return cls.from_dict(data)
