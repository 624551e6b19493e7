"""
GTSAM backend for the smoother front-end.

This module provides GTSAM-specific key conversion and factor construction.
"""

from .conversions import (
    get_gtsam_discrete_key,
    get_gtsam_symbol_from_key,
    get_key_from_gtsam_symbol,
    get_pose2_from_tuple,
    get_pose2d_from_values,
)
from .factors import (
    get_ambiguous_odometry_factor,
    get_gps_factor,
    get_loop_closure_factor,
    get_odometry_factor,
    get_prior_factor,
)

__all__ = [
    "get_gtsam_discrete_key",
    "get_gtsam_symbol_from_key",
    "get_key_from_gtsam_symbol",
    "get_pose2_from_tuple",
    "get_pose2d_from_values",
    "get_ambiguous_odometry_factor",
    "get_gps_factor",
    "get_loop_closure_factor",
    "get_odometry_factor",
    "get_prior_factor",
]
