"""
Ordering policy: every continuous key is eliminated before every discrete key.

A mixture conditional only collapses into a discrete factor once all of its
continuous keys are gone, so discrete keys go last. Which continuous keys are
additionally held back to just before the discrete block is a configurable
frontier scheme; it changes fill-in and timing, not correctness.
"""
import logging
from typing import Iterable, List, Sequence, Union

from gtsam.gtsam import HybridGaussianFactorGraph, Ordering

from .errors import EliminationError
from .types.enums import FrontierScheme
from .utils.hybrid import format_keys, ordering_keys

logger = logging.getLogger(__name__)


def frontier_keys(
    scheme: FrontierScheme,
    new_factors: HybridGaussianFactorGraph,
    graph: HybridGaussianFactorGraph,
) -> List[int]:
    """
    Continuous keys to eliminate last (before the discrete block).

    NONE leaves COLAMD free; NEW_FACTOR_KEYS holds back the keys of the incoming
    batch; ALL_KEYS holds back every continuous key of the elimination input.
    """
    if scheme is FrontierScheme.NONE:
        return []
    elif scheme is FrontierScheme.NEW_FACTOR_KEYS:
        return list(new_factors.continuousKeySet())
    elif scheme is FrontierScheme.ALL_KEYS:
        return list(graph.continuousKeySet())
    else:
        raise ValueError(f"Unknown frontier scheme: {scheme}")


def get_ordering(graph: HybridGaussianFactorGraph, last_keys_to_eliminate: Iterable[int]) -> Ordering:
    """
    COLAMD ordering over every key of `graph` with the continuous keys of
    `last_keys_to_eliminate` followed by all discrete keys forced to the end.
    """
    all_discrete = graph.discreteKeySet()
    last_keys = [k for k in last_keys_to_eliminate if k not in all_discrete]
    last_keys += list(all_discrete)
    ordering = Ordering.ColamdConstrainedLastHybridGaussianFactorGraph(graph, last_keys, True)
    logger.debug(f"[get_ordering] {format_keys(ordering_keys(ordering))}")
    return ordering


def check_given_ordering(
    graph: HybridGaussianFactorGraph, ordering: Union[Ordering, Sequence[int]]
) -> Ordering:
    """
    Accept a caller-supplied ordering unchanged after checking that it names every
    key to be eliminated exactly once.

    Raises:
        EliminationError: on a missing, extra or repeated key.
    """
    keys = ordering_keys(ordering) if isinstance(ordering, Ordering) else [int(k) for k in ordering]
    expected = set(graph.keys())
    if len(set(keys)) != len(keys) or set(keys) != expected:
        raise EliminationError(
            f"Given ordering {format_keys(keys)} does not cover the keys "
            f"{sorted(format_keys(expected))} exactly once"
        )
    return Ordering(keys)


def is_discrete_last(ordering: Union[Ordering, Sequence[int]], discrete_keys: Iterable[int]) -> bool:
    """True if no discrete key precedes a continuous key in `ordering`."""
    keys = ordering_keys(ordering) if isinstance(ordering, Ordering) else list(ordering)
    discrete = set(discrete_keys)
    seen_discrete = False
    for key in keys:
        if key in discrete:
            seen_discrete = True
        elif seen_discrete:
            return False
    return True
