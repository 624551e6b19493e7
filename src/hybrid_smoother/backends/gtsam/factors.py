"""
Factor creation utilities for GTSAM.

This module builds GTSAM nonlinear and hybrid nonlinear factors from our
measurement types.
"""
import math

import numpy as np

from gtsam.gtsam import (
    BetweenFactorPose2,
    HybridNonlinearFactor,
    PoseTranslationPrior2D,
    PriorFactorPose2,
    noiseModel,
)

from typing import Sequence

from ...types.key import Key
from ...types.measurements import (
    AmbiguousOdometryMeasurement2D,
    GpsMeasurement2D,
    LoopClosureMeasurement2D,
    OdometryMeasurement2D,
    PosePrior2D,
)

from .conversions import get_gtsam_discrete_key, get_gtsam_symbol_from_key, get_pose2_from_tuple


def _diagonal_noise(sigmas: Sequence[float]):
    return noiseModel.Diagonal.Sigmas(np.array(sigmas, dtype=float))


def _get_between_factor(key1: Key, key2: Key, relative_pose: Sequence[float], noise) -> BetweenFactorPose2:
    return BetweenFactorPose2(
        get_gtsam_symbol_from_key(key1),
        get_gtsam_symbol_from_key(key2),
        get_pose2_from_tuple(relative_pose),
        noise,
    )


def get_prior_factor(prior: PosePrior2D) -> PriorFactorPose2:
    """
    Create a PriorFactorPose2 from a pose prior.
    """
    return PriorFactorPose2(
        get_gtsam_symbol_from_key(prior.key),
        get_pose2_from_tuple((*prior.position, prior.orientation)),
        _diagonal_noise(prior.sigmas),
    )


def get_odometry_factor(odom_measurement: OdometryMeasurement2D) -> BetweenFactorPose2:
    """
    Create a BetweenFactorPose2 from an odometry measurement.
    """
    return _get_between_factor(
        odom_measurement.key1,
        odom_measurement.key2,
        (odom_measurement.x, odom_measurement.y, odom_measurement.psi),
        _diagonal_noise(odom_measurement.sigmas),
    )


def get_gps_factor(gps_measurement: GpsMeasurement2D) -> PoseTranslationPrior2D:
    """
    Create a translation-only prior from a position fix.
    """
    return PoseTranslationPrior2D(
        get_gtsam_symbol_from_key(gps_measurement.key),
        np.array(gps_measurement.position, dtype=float),
        _diagonal_noise(gps_measurement.sigmas),
    )


def get_ambiguous_odometry_factor(
    measurement: AmbiguousOdometryMeasurement2D,
) -> HybridNonlinearFactor:
    """
    One BetweenFactorPose2 per alternative, selected by the measurement's mode.
    Each component carries the noise model's normalization constant plus the
    -log of its (normalized) prior weight.
    """
    noise = _diagonal_noise(measurement.sigmas)
    weights = measurement.weights or (1.0,) * len(measurement.alternatives)
    total = float(sum(weights))
    components = [
        (
            _get_between_factor(measurement.key1, measurement.key2, alternative, noise),
            noise.negLogConstant() - math.log(weight / total),
        )
        for alternative, weight in zip(measurement.alternatives, weights)
    ]
    return HybridNonlinearFactor(get_gtsam_discrete_key(measurement.mode_key), components)


def get_loop_closure_factor(measurement: LoopClosureMeasurement2D) -> HybridNonlinearFactor:
    """
    A two-component loop closure: the open-loop null hypothesis (mode 0) and
    the closure (mode 1), each with its own noise model's normalization constant.
    """
    relative_pose = (*measurement.relative_translation, measurement.relative_rotation)
    components = []
    for sigmas in (measurement.open_loop_sigmas, measurement.sigmas):
        noise = _diagonal_noise(sigmas)
        between = _get_between_factor(measurement.key1, measurement.key2, relative_pose, noise)
        components.append((between, noise.negLogConstant()))
    return HybridNonlinearFactor(get_gtsam_discrete_key(measurement.mode_key), components)
