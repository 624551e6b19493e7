"""
Pose types exchanged with the smoother front-end.
"""
from attrs import define, field, validators
from typing import Tuple
import numpy as np

from .key import Key
from ..utils.validation import tuple_length_validator, bound_validator


@define
class Pose2D:
    """
    A pose estimate or initial guess: planar position plus heading.
    """

    key: Key = field(
        validator=validators.instance_of(Key),
        metadata={"description": "The pose key"},
    )
    position: Tuple[float, float] = field(
        validator=tuple_length_validator(2),
        metadata={"description": "Position (x, y)"},
    )
    orientation: float = field(
        validator=bound_validator(-np.pi, np.pi),
        metadata={"description": "Heading (psi) in radians"},
    )

