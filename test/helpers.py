"""
Factor builders shared by the test suites.
"""
import math

import numpy as np

from gtsam.gtsam import (
    GaussianFactorGraph,
    HybridGaussianFactor,
    HybridGaussianFactorGraph,
    HybridValues,
    JacobianFactor,
    VectorValues,
    noiseModel,
)
from gtsam.symbol_shorthand import M, X

from hybrid_smoother.utils.hybrid import to_discrete_values

X0, X1, X2, X3 = X(0), X(1), X(2), X(3)
M0, M1, M2 = (M(0), 2), (M(1), 2), (M(2), 2)


def prior(key, mean, sigma=1.0):
    mean = np.atleast_1d(np.asarray(mean, dtype=float))
    dim = mean.size
    return JacobianFactor(key, np.eye(dim), mean, noiseModel.Isotropic.Sigma(dim, sigma))


def between(key1, key2, delta, sigma=1.0):
    delta = np.atleast_1d(np.asarray(delta, dtype=float))
    dim = delta.size
    return JacobianFactor(
        key1, -np.eye(dim), key2, np.eye(dim), delta, noiseModel.Isotropic.Sigma(dim, sigma)
    )


def mode_between(mode, key1, key2, deltas, sigma=1.0, weights=None):
    weights = weights or [1.0] * len(deltas)
    total = float(sum(weights))
    components = [
        (between(key1, key2, d, sigma), -math.log(w / total)) for d, w in zip(deltas, weights)
    ]
    return HybridGaussianFactor(mode, components)


def graph(factors):
    result = HybridGaussianFactorGraph()
    for factor in factors:
        result.push_back(factor)
    return result


def dense_solution(factors):
    """Least-squares solution of a set of Gaussian factors, for comparison."""
    result = GaussianFactorGraph()
    for factor in factors:
        result.push_back(factor)
    return result.optimize()


def hybrid_values(continuous, discrete):
    vector_values = VectorValues()
    for key, value in continuous.items():
        vector_values.insert(key, np.atleast_1d(np.asarray(value, dtype=float)))
    return HybridValues(vector_values, to_discrete_values(discrete))
