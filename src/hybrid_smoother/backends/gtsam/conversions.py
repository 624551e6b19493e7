"""
Conversion utilities between internal types and GTSAM types.

This module provides functions to convert between our custom types (Key,
DiscreteKey, Pose2D) and GTSAM's native types (symbol, Pose2, Values).
"""
from gtsam.gtsam import Pose2, Symbol, Values, symbol

from typing import Iterable, Tuple

from ...types.key import DiscreteKey, Key
from ...types.variables import Pose2D


def get_gtsam_symbol_from_key(key: Key) -> int:
    """
    Convert a Key to a GTSAM symbol.

    Args:
        key: The Key to convert.

    Returns:
        The GTSAM symbol as an integer.
    """
    assert isinstance(key, Key), "Key must be of type Key"
    return symbol(key.char, key.index)


def get_key_from_gtsam_symbol(gtsam_key: int) -> Key:
    """
    Convert a GTSAM symbol back to a Key.
    """
    sym = Symbol(gtsam_key)
    return Key(f"{chr(sym.chr())}{sym.index()}")


def get_gtsam_discrete_key(discrete_key: DiscreteKey) -> Tuple[int, int]:
    """
    Convert a DiscreteKey to GTSAM's (symbol, cardinality) pair.
    """
    return get_gtsam_symbol_from_key(discrete_key.key), discrete_key.cardinality


def get_pose2_from_tuple(pose: Iterable[float]) -> Pose2:
    """
    Convert an (x, y, psi) tuple to a GTSAM Pose2.
    """
    x, y, psi = pose
    return Pose2(float(x), float(y), float(psi))


def get_pose2d_from_values(values: Values, key: Key) -> Pose2D:
    """
    Read a pose out of GTSAM Values.

    Args:
        values: The values holding the pose.
        key: The key for which to retrieve the pose.

    Returns:
        The pose corresponding to the given key.
    """
    pose = values.atPose2(get_gtsam_symbol_from_key(key))
    return Pose2D(
        key=key,
        position=(float(pose.x()), float(pose.y())),
        orientation=float(pose.theta()),
    )
