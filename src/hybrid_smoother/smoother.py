"""
Incremental smoother for hybrid discrete/continuous factor graphs.
"""
import logging
from typing import Dict, List, Optional, Sequence, Tuple, Union

from gtsam.gtsam import (
    DiscreteValues,
    HybridBayesNet,
    HybridConditional,
    HybridGaussianConditional,
    HybridGaussianFactorGraph,
    HybridValues,
    Ordering,
    VectorValues,
)

from .belief_store import BeliefStore
from .carry_forward import add_conditionals
from .config import SmootherParams
from .errors import EliminationError, HybridSmootherError, InvariantViolationError
from .ordering import check_given_ordering, frontier_keys, get_ordering
from .types.enums import ConditionalKind, FrontierScheme
from .utils.hybrid import (
    conditional_kind,
    format_keys,
    from_discrete_values,
    frontal_keys,
    ordering_keys,
    restrict_conditional,
    to_discrete_values,
)

logger = logging.getLogger(__name__)

# gtsam only fixes values whose marginal is strictly above the threshold
SINGLE_VALUE_THRESHOLD = 1.0 - 1e-9


class HybridSmoother:
    """
    Maintains a hybrid posterior as new batches of factors arrive.

    Each update reopens only the stored conditionals the new factors touch,
    eliminates them together with the new factors (continuous keys first,
    discrete keys last), optionally prunes the resulting fragment to a bounded
    number of discrete hypotheses, and appends it to the posterior.

    Calls must be serialized by the caller; the smoother does no locking.
    """

    def __init__(
        self,
        marginal_threshold: Optional[float] = 0.99,
        max_leaves: Optional[int] = None,
        frontier_scheme: FrontierScheme = FrontierScheme.NONE,
        check_invariants: bool = True,
    ):
        """
        Initialize the smoother with an empty posterior.
        Args:
            marginal_threshold: when pruning, fix a discrete variable once its
                marginal exceeds this (None: once a single value survives).
            max_leaves: hypothesis bound used when `update` is given none.
            frontier_scheme: continuous keys held to the end of each ordering.
            check_invariants: audit the posterior after every update.
        """
        self.params = SmootherParams(
            marginal_threshold=marginal_threshold,
            max_leaves=max_leaves,
            frontier_scheme=frontier_scheme,
            check_invariants=check_invariants,
        )
        self._store = BeliefStore()
        self.last_ordering: List[int] = []

    @classmethod
    def from_params(cls, params: SmootherParams) -> "HybridSmoother":
        return cls(
            marginal_threshold=params.marginal_threshold,
            max_leaves=params.max_leaves,
            frontier_scheme=params.frontier_scheme,
            check_invariants=params.check_invariants,
        )

    @property
    def fixed_values(self) -> Dict[int, int]:
        """Discrete values fixed by pruning so far (a copy)."""
        return dict(self._store.fixed_values)

    def current_posterior(self) -> Tuple[HybridConditional, ...]:
        """Read-only snapshot of the stored conditionals, in store order."""
        return tuple(self._store.conditionals())

    def bayes_net(self) -> HybridBayesNet:
        """The stored conditionals as a GTSAM HybridBayesNet."""
        return self._store.bayes_net()

    def hybrid_conditional(self, index: int) -> HybridGaussianConditional:
        """The mixture conditional at a position of the posterior."""
        conditional = self.current_posterior()[index]
        kind = conditional_kind(conditional)
        if kind is not ConditionalKind.HYBRID:
            raise TypeError(
                f"Conditional {index} on {format_keys(frontal_keys(conditional))} is {kind.name}, not HYBRID"
            )
        return conditional.asHybrid()

    def update(
        self,
        new_factors: HybridGaussianFactorGraph,
        max_leaves: Optional[int] = None,
        ordering: Optional[Union[Ordering, Sequence[int]]] = None,
    ) -> None:
        """
        Fold a batch of factors into the posterior.

        Args:
            new_factors: the incoming factor batch (may be empty). It must not
                mention discrete keys that are already fixed.
            max_leaves: keep at most this many discrete hypotheses in the new
                fragment; defaults to the smoother's `max_leaves` parameter.
            ordering: elimination ordering to use unchanged instead of computing one.

        Raises:
            EliminationError: if the batch cannot be eliminated with the ordering.
            InvariantViolationError: if the stored posterior is found corrupted.

        On error the posterior and fixed values are left as they were.
        """
        if max_leaves is None:
            max_leaves = self.params.max_leaves

        working = self._store.copy()
        try:
            stale = set(new_factors.discreteKeySet()) & set(working.fixed_values)
            if stale:
                raise EliminationError(
                    f"New factors depend on fixed discrete keys {format_keys(stale)}"
                )

            # Add the necessary conditionals from the previous updates
            graph, reopened = add_conditionals(new_factors, working)
            if graph.empty() and ordering is None:
                logger.info("[update] Empty batch, posterior unchanged")
                self.last_ordering = []
                return

            if ordering is None:
                last_keys = frontier_keys(self.params.frontier_scheme, new_factors, graph)
                elimination_ordering = get_ordering(graph, last_keys)
            else:
                elimination_ordering = check_given_ordering(graph, ordering)

            fragment = self._eliminate(graph, elimination_ordering)

            newly_fixed: Dict[int, int] = {}
            if max_leaves is not None and any(c.isDiscrete() for c in fragment):
                fragment, newly_fixed = self._prune(fragment, max_leaves)
                working.fix(newly_fixed)
                fragment = [restrict_conditional(c, newly_fixed) for c in fragment]

            # Dead-mode removal can leave discrete conditionals without keys
            fragment = [c for c in fragment if len(c.keys()) > 0]
            working.append(fragment)
            if len(working.slots) > 2 * len(working):
                working.compact()
            if self.params.check_invariants:
                working.check_invariants()
        except HybridSmootherError as e:
            logger.error(f"[update] Update failed, posterior left unchanged: {e}")
            raise

        self._store = working
        self.last_ordering = ordering_keys(elimination_ordering)
        fixed_str = dict(zip(format_keys(newly_fixed), newly_fixed.values()))
        logger.info(
            f"[update] {new_factors.size()} new factors, {len(reopened)} reopened, "
            f"fragment of {len(fragment)} conditionals, newly fixed {fixed_str}"
        )

    @staticmethod
    def _eliminate(graph: HybridGaussianFactorGraph, ordering: Ordering) -> List[HybridConditional]:
        try:
            bayes_net = graph.eliminateSequential(ordering)
        except (RuntimeError, ValueError) as e:
            raise EliminationError(
                f"Eliminating {format_keys(ordering_keys(ordering))} failed: {e}"
            ) from e
        return [bayes_net.at(i) for i in range(bayes_net.size())]

    def _prune(
        self, fragment: List[HybridConditional], max_leaves: int
    ) -> Tuple[List[HybridConditional], Dict[int, int]]:
        """Prune a fragment to `max_leaves` hypotheses, returning the values it fixed."""
        bayes_net = HybridBayesNet()
        for conditional in fragment:
            bayes_net.push_back(conditional)
        threshold = min(self.params.marginal_threshold or 1.0, SINGLE_VALUE_THRESHOLD)
        fixed = DiscreteValues()
        try:
            pruned = bayes_net.prune(max_leaves, threshold, fixed)
        except (RuntimeError, ValueError) as e:
            raise EliminationError(f"Pruning to {max_leaves} leaves failed: {e}") from e
        return [pruned.at(i) for i in range(pruned.size())], from_discrete_values(fixed)

    def optimize(self) -> HybridValues:
        """
        Most probable discrete assignment over the whole posterior (fixed values
        included) and the continuous solution of the branches it selects.

        Raises:
            InvariantViolationError: if the assignment selects a pruned branch.
        """
        if len(self._store) == 0:
            return HybridValues(VectorValues(), to_discrete_values(self._store.fixed_values))
        bayes_net = self._store.bayes_net()
        try:
            assignment = bayes_net.mpe()
            for key, value in self._store.fixed_values.items():
                assignment[key] = value
            gaussian_net = bayes_net.choose(assignment)
            if not all(gaussian_net.exists(i) for i in range(gaussian_net.size())):
                raise InvariantViolationError(
                    f"Assignment {from_discrete_values(assignment)} selects a pruned branch"
                )
            continuous = gaussian_net.optimize()
        except HybridSmootherError as e:
            logger.error(f"[optimize] Corrupted posterior: {e}")
            raise
        return HybridValues(continuous, assignment)

    def error(self, values: HybridValues) -> float:
        """Negative log posterior density at a hybrid point, up to a constant."""
        return self._store.bayes_net().error(values)
