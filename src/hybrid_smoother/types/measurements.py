"""
Measurement types for the smoother front-end.
"""
from abc import ABC
from attrs import define, field, validators
from typing import Optional, Tuple
import numpy as np

from .key import DiscreteKey, Key, KeyPair
from ..utils.validation import bound_validator, sigmas_validator, tuple_length_validator

Pose2Tuple = Tuple[float, float, float]


def _check_pose_tuple(instance, attribute, value) -> None:
    tuple_length_validator(3)(instance, attribute, value)
    if not -np.pi <= value[2] <= np.pi:
        raise ValueError(f"{attribute.name} has heading {value[2]} outside [-pi, pi]")


@define
class PairMeasurement(ABC):
    """
    Base class for measurements between two variables.
    """

    key_pair: KeyPair = field(
        validator=validators.instance_of(KeyPair),
        metadata={"description": "The keys identifying the two poses"},
    )

    @property
    def key1(self) -> Key:
        """Returns the first key from the key pair."""
        return self.key_pair.key1

    @property
    def key2(self) -> Key:
        """Returns the second key from the key pair."""
        return self.key_pair.key2


@define
class PosePrior2D:
    """
    Absolute prior on a 2D pose.
    """

    key: Key = field(
        validator=validators.instance_of(Key),
        metadata={"description": "The pose key"},
    )
    position: Tuple[float, float] = field(
        validator=tuple_length_validator(2),
        metadata={"description": "Prior position (x, y)"},
    )
    orientation: float = field(
        validator=bound_validator(-np.pi, np.pi),
        metadata={"description": "Prior heading (psi) in radians"},
    )
    sigmas: Pose2Tuple = field(
        validator=sigmas_validator(3),
        metadata={"description": "Standard deviations (x, y, psi)"},
    )

    def __repr__(self) -> str:
        return f"PosePrior2D({self.key})"


@define
class OdometryMeasurement2D(PairMeasurement):
    """
    2D odometry measurement between two pose variables.
    """

    relative_translation: Tuple[float, float] = field(
        validator=tuple_length_validator(2),
        metadata={"description": "Translation vector (x, y)"},
    )
    relative_rotation: float = field(
        validator=bound_validator(-np.pi, np.pi),
        metadata={"description": "Rotation angle (psi) in radians"},
    )
    sigmas: Pose2Tuple = field(
        validator=sigmas_validator(3),
        metadata={"description": "Standard deviations (x, y, psi)"},
    )

    def __repr__(self) -> str:
        return f"Odom2D({self.key_pair})"

    @property
    def x(self) -> float:
        return self.relative_translation[0]

    @property
    def y(self) -> float:
        return self.relative_translation[1]

    @property
    def psi(self) -> float:
        return self.relative_rotation


@define
class AmbiguousOdometryMeasurement2D(PairMeasurement):
    """
    Odometry whose relative pose is one of several alternatives, selected by a
    discrete mode variable. Alternative i corresponds to mode value i.
    """

    mode_key: DiscreteKey = field(
        validator=validators.instance_of(DiscreteKey),
        metadata={"description": "The discrete variable selecting the alternative"},
    )
    alternatives: Tuple[Pose2Tuple, ...] = field(
        converter=tuple,
        validator=validators.deep_iterable(_check_pose_tuple),
        metadata={"description": "Relative poses (x, y, psi), one per mode value"},
    )
    sigmas: Pose2Tuple = field(
        validator=sigmas_validator(3),
        metadata={"description": "Standard deviations (x, y, psi) shared by all alternatives"},
    )
    weights: Optional[Tuple[float, ...]] = field(
        default=None,
        metadata={"description": "Prior weight of each alternative (None: uniform)"},
    )

    def __attrs_post_init__(self):
        if len(self.alternatives) != self.mode_key.cardinality:
            raise ValueError(
                f"{self.mode_key} needs {self.mode_key.cardinality} alternatives, "
                f"got {len(self.alternatives)}"
            )
        if self.weights is not None:
            if len(self.weights) != len(self.alternatives):
                raise ValueError(
                    f"Got {len(self.weights)} weights for {len(self.alternatives)} alternatives"
                )
            if any(w <= 0.0 for w in self.weights):
                raise ValueError(f"Weights must be positive, got {self.weights}")

    def __repr__(self) -> str:
        return f"AmbiguousOdom2D({self.key_pair}, {self.mode_key})"


@define
class LoopClosureMeasurement2D(PairMeasurement):
    """
    Loop closure that may be an outlier. The binary mode variable selects
    between an "open loop" null hypothesis (value 0, a broad noise model on the
    same relative pose) and the closure itself (value 1).
    """

    mode_key: DiscreteKey = field(
        validator=validators.instance_of(DiscreteKey),
        metadata={"description": "Binary variable: 0 open loop, 1 closed"},
    )
    relative_translation: Tuple[float, float] = field(
        validator=tuple_length_validator(2),
        metadata={"description": "Translation vector (x, y)"},
    )
    relative_rotation: float = field(
        validator=bound_validator(-np.pi, np.pi),
        metadata={"description": "Rotation angle (psi) in radians"},
    )
    sigmas: Pose2Tuple = field(
        validator=sigmas_validator(3),
        metadata={"description": "Standard deviations (x, y, psi) of the closure"},
    )
    open_loop_sigmas: Pose2Tuple = field(
        validator=sigmas_validator(3),
        metadata={"description": "Standard deviations (x, y, psi) of the null hypothesis"},
    )

    def __attrs_post_init__(self):
        if self.mode_key.cardinality != 2:
            raise ValueError(f"Loop closure mode must be binary, got {self.mode_key}")

    def __repr__(self) -> str:
        return f"LoopClosure2D({self.key_pair}, {self.mode_key})"


@define
class GpsMeasurement2D:
    """
    Absolute position fix for a 2D pose.
    """

    key: Key = field(
        validator=validators.instance_of(Key),
        metadata={"description": "The pose key"},
    )
    position: Tuple[float, float] = field(
        validator=tuple_length_validator(2),
        metadata={"description": "Measured position (x, y)"},
    )
    sigmas: Tuple[float, float] = field(
        validator=sigmas_validator(2),
        metadata={"description": "Standard deviations (x, y)"},
    )

    def __repr__(self) -> str:
        return f"GPS2D({self.key})"
