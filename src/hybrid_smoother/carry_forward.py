"""
Carry-forward: reopen the stored conditionals that new factors invalidate.
"""
import logging
from typing import List, Set, Tuple

from gtsam.gtsam import HybridConditional, HybridGaussianFactorGraph

from .belief_store import BeliefStore
from .errors import InvariantViolationError
from .utils.hybrid import format_keys, frontal_keys, parent_keys

logger = logging.getLogger(__name__)


def involved_keys(new_factors: HybridGaussianFactorGraph, store: BeliefStore) -> Set[int]:
    """
    Keys touched by the new factors, closed under parents of the conditionals
    that define them. Parents are stored after their children, so a single pass
    in store order reaches every ancestor.
    """
    involved = set(new_factors.keys())
    for conditional in store.conditionals():
        if any(k in involved for k in frontal_keys(conditional)):
            involved.update(parent_keys(conditional))
    return involved


def add_conditionals(
    new_factors: HybridGaussianFactorGraph, store: BeliefStore
) -> Tuple[HybridGaussianFactorGraph, List[HybridConditional]]:
    """
    Move every conditional whose frontal is involved out of `store` and into the
    elimination input alongside `new_factors`.

    Returns:
        (elimination input graph, the reopened conditionals)

    Raises:
        InvariantViolationError: if an involved key was eliminated before but is
            neither defined by a conditional nor fixed.
    """
    graph = HybridGaussianFactorGraph()
    graph.push_back(new_factors)
    involved = involved_keys(new_factors, store)

    to_reopen = [
        c for c in store.conditionals() if any(k in involved for k in frontal_keys(c))
    ]
    reopened: List[HybridConditional] = []
    for conditional in to_reopen:
        removed = store.remove(frontal_keys(conditional)[0])
        if removed is not conditional:
            raise InvariantViolationError(
                f"Removed a different conditional than the one defining {format_keys(frontal_keys(conditional))}"
            )
        reopened.append(removed)
        graph.push_back(removed)

    reopened_keys = {k for c in reopened for k in frontal_keys(c)}
    for key in involved:
        if key in store.eliminated and key not in reopened_keys:
            if key not in store.fixed_values and not store.defines(key):
                raise InvariantViolationError(
                    f"{format_keys([key])[0]} was eliminated earlier but has no defining conditional"
                )
    logger.debug(
        f"[add_conditionals] involved {sorted(format_keys(involved))}, "
        f"reopened {len(reopened)} conditionals"
    )
    return graph, reopened
