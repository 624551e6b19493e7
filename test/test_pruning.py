import unittest

import numpy as np

from gtsam.gtsam import Ordering

from hybrid_smoother.smoother import HybridSmoother
from hybrid_smoother.utils.hybrid import bayes_net, count_leaves, to_discrete_values

from helpers import M0, M1, M2, X0, X1, X2, X3, graph, mode_between, prior


def eliminate(factors, keys):
    result = graph(factors).eliminateSequential(Ordering(keys))
    return [result.at(i) for i in range(result.size())]


def three_mode_fragment():
    return eliminate(
        [
            prior(X0, 0.0),
            mode_between(M0, X0, X1, [1.0, 2.0], weights=[0.6, 0.4]),
            mode_between(M1, X1, X2, [1.0, 2.0], weights=[0.7, 0.3]),
            mode_between(M2, X2, X3, [1.0, 2.0], weights=[0.8, 0.2]),
        ],
        [X0, X1, X2, X3, M0[0], M1[0], M2[0]],
    )


class TestPrune(unittest.TestCase):
    def setUp(self):
        self.fragment = three_mode_fragment()

    def prune(self, max_leaves, marginal_threshold=None):
        smoother = HybridSmoother(marginal_threshold=marginal_threshold)
        return smoother._prune(self.fragment, max_leaves)

    def test_leaf_count(self):
        self.assertEqual(count_leaves(self.fragment), 8)

    def test_within_budget_keeps_every_leaf(self):
        pruned, fixed = self.prune(8)
        self.assertEqual(fixed, {})
        self.assertEqual(count_leaves(pruned), 8)

    def test_bounds_leaves_and_fixes_collapsed_modes(self):
        # The three best leaves (000, 100, 010) all have M2 = 0.
        pruned, fixed = self.prune(3, marginal_threshold=0.99)
        self.assertLessEqual(count_leaves(pruned), 3)
        self.assertEqual(fixed, {M2[0]: 0})

        for conditional in pruned:
            self.assertNotIn(M2[0], conditional.keys())

        marginal = bayes_net(pruned).discreteMarginal()
        p00 = marginal.evaluate(to_discrete_values({M0[0]: 0, M1[0]: 0}))
        p10 = marginal.evaluate(to_discrete_values({M0[0]: 1, M1[0]: 0}))
        p11 = marginal.evaluate(to_discrete_values({M0[0]: 1, M1[0]: 1}))
        self.assertAlmostEqual(p00 / p10, 0.336 / 0.224, places=6)
        self.assertEqual(p11, 0.0)

    def test_unreached_branches_are_dropped(self):
        pruned, fixed = self.prune(3)
        self.assertEqual(fixed, {M2[0]: 0})
        gaussian_net = bayes_net(pruned).choose(
            to_discrete_values({M0[0]: 1, M1[0]: 1, M2[0]: 0})
        )
        self.assertFalse(all(gaussian_net.exists(i) for i in range(gaussian_net.size())))

        kept = bayes_net(pruned).choose(to_discrete_values({M0[0]: 0, M1[0]: 0, M2[0]: 0}))
        self.assertTrue(all(kept.exists(i) for i in range(kept.size())))

    def test_single_leaf_fixes_everything(self):
        pruned, fixed = self.prune(1, marginal_threshold=0.99)
        self.assertEqual(fixed, {M0[0]: 0, M1[0]: 0, M2[0]: 0})
        self.assertEqual(count_leaves(pruned), 0)
        for conditional in pruned:
            self.assertFalse(conditional.isHybrid())

    def test_no_threshold_fixes_single_survivors(self):
        pruned, fixed = self.prune(1)
        self.assertEqual(fixed, {M0[0]: 0, M1[0]: 0, M2[0]: 0})
        self.assertEqual(count_leaves(pruned), 0)

    def test_marginal_threshold_without_pruning(self):
        self.fragment = eliminate(
            [prior(X0, 0.0), mode_between(M0, X0, X1, [1.0, 2.0], weights=[0.995, 0.005])],
            [X0, X1, M0[0]],
        )
        _, fixed = self.prune(10, marginal_threshold=0.99)
        self.assertEqual(fixed, {M0[0]: 0})
        _, fixed = self.prune(10)
        self.assertEqual(fixed, {})

    def test_continuous_fragment(self):
        fragment = eliminate([prior(X0, np.zeros(2))], [X0])
        self.assertEqual(count_leaves(fragment), 0)


if __name__ == '__main__':
    unittest.main()
