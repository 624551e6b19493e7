import math
import unittest

import numpy as np

from gtsam.gtsam import HybridGaussianFactorGraph, Pose2, Values

from hybrid_smoother.backends.gtsam import (
    get_ambiguous_odometry_factor,
    get_gtsam_symbol_from_key,
    get_key_from_gtsam_symbol,
    get_loop_closure_factor,
    get_prior_factor,
)
from hybrid_smoother.smoother import HybridSmoother
from hybrid_smoother.smoother_manager import ManagerConfig, SmootherManager
from hybrid_smoother.types.key import DiscreteKey, Key, KeyPair
from hybrid_smoother.types.measurements import (
    AmbiguousOdometryMeasurement2D,
    GpsMeasurement2D,
    LoopClosureMeasurement2D,
    PosePrior2D,
)
from hybrid_smoother.types.variables import Pose2D
from hybrid_smoother.utils.hybrid import to_discrete_values

X0, X1, X2, X3 = Key("X0"), Key("X1"), Key("X2"), Key("X3")
M0 = DiscreteKey(Key("M0"), 2)
L0 = DiscreteKey(Key("L0"), 2)


def neg_log_constant(sigmas):
    return 0.5 * len(sigmas) * math.log(2.0 * math.pi) + sum(math.log(s) for s in sigmas)


def ambiguous_step(key1, key2, mode_key=M0):
    return AmbiguousOdometryMeasurement2D(
        key_pair=KeyPair(key1, key2),
        mode_key=mode_key,
        alternatives=[(1.0, 0.0, 0.0), (3.0, 0.0, 0.0)],
        sigmas=ManagerConfig().pose_sigmas,
        weights=(0.9, 0.1),
    )


class TestGtsamFactors(unittest.TestCase):
    def setUp(self):
        self.values = Values()
        self.values.insert(get_gtsam_symbol_from_key(X0), Pose2(0.0, 0.0, 0.0))
        self.values.insert(get_gtsam_symbol_from_key(X1), Pose2(1.0, 0.0, 0.0))

    def test_symbol_round_trip(self):
        self.assertEqual(get_key_from_gtsam_symbol(get_gtsam_symbol_from_key(Key("X42"))), Key("X42"))

    def test_prior_has_no_error_at_its_mean(self):
        prior = PosePrior2D(key=X0, position=(0.0, 0.0), orientation=0.0, sigmas=(0.5, 0.5, 0.1))
        self.assertAlmostEqual(get_prior_factor(prior).error(self.values), 0.0)

    def test_ambiguous_odometry_component_constants(self):
        measurement = ambiguous_step(X0, X1)
        factor = get_ambiguous_odometry_factor(measurement)
        base = neg_log_constant(measurement.sigmas)
        mode = get_gtsam_symbol_from_key(M0.key)

        # X1 sits exactly at the first alternative, so only the constant remains.
        error0 = factor.error(self.values, to_discrete_values({mode: 0}))
        self.assertAlmostEqual(error0, base - math.log(0.9), places=6)
        error1 = factor.error(self.values, to_discrete_values({mode: 1}))
        self.assertGreater(error1, base - math.log(0.1))

    def test_loop_closure_component_constants(self):
        measurement = LoopClosureMeasurement2D(
            key_pair=KeyPair(X0, X1),
            mode_key=L0,
            relative_translation=(1.0, 0.0),
            relative_rotation=0.0,
            sigmas=(0.1, 0.1, 0.01),
            open_loop_sigmas=(10.0, 10.0, 10.0),
        )
        factor = get_loop_closure_factor(measurement)
        mode = get_gtsam_symbol_from_key(L0.key)
        open_loop = factor.error(self.values, to_discrete_values({mode: 0}))
        closure = factor.error(self.values, to_discrete_values({mode: 1}))
        self.assertAlmostEqual(open_loop, neg_log_constant(measurement.open_loop_sigmas), places=6)
        self.assertAlmostEqual(closure, neg_log_constant(measurement.sigmas), places=6)
        self.assertLess(closure, open_loop)


class TestSmootherManager(unittest.TestCase):
    def setUp(self):
        self.manager = SmootherManager(config=ManagerConfig(update_frequency=1))
        self.manager.initialize_pose(Pose2D(key=X0, position=(0.0, 0.0), orientation=0.0))
        self.manager.add_odometry(self.manager.odometry(X0, X1, (1.0, 0.0, 0.0)))

    def test_batches_until_hybrid_measurement(self):
        self.assertEqual(self.manager.num_pending, 2)
        self.assertEqual(self.manager.num_updates, 0)
        self.assertTrue(self.manager.add_ambiguous_odometry(ambiguous_step(X1, X2)))
        self.assertEqual(self.manager.num_pending, 0)
        self.assertEqual(self.manager.num_updates, 1)

    def test_whole_batch_is_linearized_together(self):
        manager = SmootherManager(config=ManagerConfig(update_frequency=2))
        manager.initialize_pose(Pose2D(key=X0, position=(0.0, 0.0), orientation=0.0))
        manager.add_odometry(manager.odometry(X0, X1, (1.0, 0.0, 0.0)))
        self.assertFalse(manager.add_ambiguous_odometry(ambiguous_step(X1, X2)))

        graph = manager.nonlinear_graph()
        self.assertEqual(graph.size(), 3)
        linearized = graph.linearize(manager.linearization_point)
        self.assertIsInstance(linearized, HybridGaussianFactorGraph)
        self.assertEqual(linearized.size(), 3)
        self.assertIn(get_gtsam_symbol_from_key(M0.key), linearized.discreteKeySet())
        self.assertIn(get_gtsam_symbol_from_key(X2), linearized.continuousKeySet())

    def test_ambiguous_odometry_picks_likely_mode(self):
        self.manager.add_ambiguous_odometry(ambiguous_step(X1, X2))
        self.assertEqual(self.manager.current_modes[M0.key], 0)
        pose = self.manager.get_pose(X2)
        np.testing.assert_allclose(pose.position, (2.0, 0.0), atol=1e-6)
        self.assertAlmostEqual(pose.orientation, 0.0, places=6)

    def test_consistent_loop_closure_is_accepted(self):
        self.manager.add_ambiguous_odometry(ambiguous_step(X1, X2))
        closure = self.manager.loop_closure(X2, X0, L0, (-2.0, 0.0, 0.0))
        self.assertTrue(self.manager.add_loop_closure(closure))
        self.assertEqual(self.manager.current_modes[L0.key], 1)
        self.assertEqual(self.manager.current_modes[M0.key], 0)
        np.testing.assert_allclose(self.manager.get_pose(X2).position, (2.0, 0.0), atol=1e-6)

    def test_fixed_mode_is_restricted_before_linearizing(self):
        manager = SmootherManager(
            smoother=HybridSmoother(marginal_threshold=0.99),
            config=ManagerConfig(update_frequency=1, max_leaves=1),
        )
        manager.initialize_pose(Pose2D(key=X0, position=(0.0, 0.0), orientation=0.0))
        manager.add_ambiguous_odometry(ambiguous_step(X0, X1))
        mode = get_gtsam_symbol_from_key(M0.key)
        self.assertEqual(manager.smoother.fixed_values, {mode: 0})

        # The same mode variable again: the smoother only accepts it once restricted.
        self.assertTrue(manager.add_ambiguous_odometry(ambiguous_step(X1, X2)))
        self.assertEqual(manager.current_modes[M0.key], 0)
        np.testing.assert_allclose(manager.get_pose(X2).position, (2.0, 0.0), atol=1e-6)

    def test_gps_update(self):
        self.manager.add_gps(GpsMeasurement2D(key=X1, position=(1.0, 0.0), sigmas=(0.1, 0.1)))
        self.assertTrue(self.manager.update())
        self.assertFalse(self.manager.update())
        np.testing.assert_allclose(self.manager.get_pose(X1).position, (1.0, 0.0), atol=1e-6)

    def test_unsolved_pose_reports_initial_guess(self):
        self.manager.add_odometry(self.manager.odometry(X1, X2, (0.5, 0.0, 0.0)))
        np.testing.assert_allclose(self.manager.get_pose(X2).position, (1.5, 0.0), atol=1e-9)

    def test_measurement_on_unknown_pose(self):
        with self.assertRaises(ValueError):
            self.manager.add_gps(GpsMeasurement2D(key=X3, position=(0.0, 0.0), sigmas=(1.0, 1.0)))
        with self.assertRaises(ValueError):
            self.manager.add_odometry(self.manager.odometry(X3, Key("X4"), (1.0, 0.0, 0.0)))

    def test_config_from_dict(self):
        config = ManagerConfig.from_dict({'update_frequency': 5, 'max_leaves': None})
        self.assertEqual(config.update_frequency, 5)
        self.assertIsNone(config.max_leaves)
        with self.assertRaises(ValueError):
            ManagerConfig.from_dict({'update_every': 5})


if __name__ == '__main__':
    unittest.main()
