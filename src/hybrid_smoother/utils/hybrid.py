"""
Helpers over GTSAM's hybrid conditionals, factor graphs and discrete values.
"""
import itertools
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

from gtsam.gtsam import (
    DefaultKeyFormatter,
    DiscreteConditional,
    DiscreteValues,
    GaussianConditional,
    HybridBayesNet,
    HybridConditional,
    HybridGaussianConditional,
    Ordering,
)

from ..errors import InvariantViolationError
from ..types.enums import ConditionalKind


def conditional_kind(conditional: HybridConditional) -> ConditionalKind:
    if conditional.isDiscrete():
        return ConditionalKind.DISCRETE
    elif conditional.isContinuous():
        return ConditionalKind.CONTINUOUS
    elif conditional.isHybrid():
        return ConditionalKind.HYBRID
    else:
        raise InvariantViolationError(
            f"Conditional on {format_keys(conditional.keys())} has no known kind"
        )


def frontal_keys(conditional: HybridConditional) -> Tuple[int, ...]:
    """Frontal keys of a conditional: the first nrFrontals() of its keys."""
    return tuple(conditional.keys()[: conditional.nrFrontals()])


def parent_keys(conditional: HybridConditional) -> Tuple[int, ...]:
    return tuple(conditional.keys()[conditional.nrFrontals() :])


def discrete_keys(factor) -> Dict[int, int]:
    """Discrete keys of a hybrid factor or conditional, with their cardinalities."""
    keys = factor.discreteKeys()
    return dict(keys.at(n) for n in range(keys.size()))


def to_discrete_values(values: Mapping[int, int]) -> DiscreteValues:
    result = DiscreteValues()
    for key, value in values.items():
        result[key] = int(value)
    return result


def from_discrete_values(values: DiscreteValues) -> Dict[int, int]:
    return {int(key): int(value) for key, value in values.items()}


def ordering_keys(ordering: Ordering) -> List[int]:
    return [ordering.at(i) for i in range(ordering.size())]


def format_keys(keys: Iterable[int]) -> List[str]:
    return [DefaultKeyFormatter(k) for k in keys]


def as_hybrid_conditional(conditional) -> HybridConditional:
    """
    Wrap a Gaussian, discrete or mixture conditional as a HybridConditional.

    Raises:
        InvariantViolationError: if the object is not a conditional.
    """
    if isinstance(conditional, HybridConditional):
        return conditional
    if isinstance(conditional, (GaussianConditional, DiscreteConditional, HybridGaussianConditional)):
        return HybridConditional(conditional)
    raise InvariantViolationError(f"Expected a conditional, got {type(conditional).__name__}")


def restrict_conditional(conditional: HybridConditional, fixed: Mapping[int, int]) -> HybridConditional:
    """
    Condition a stored conditional on the fixed values of its discrete parents.
    A mixture whose discrete parents are all fixed becomes its Gaussian branch.
    """
    relevant = {k: v for k, v in fixed.items() if k in discrete_keys(conditional)}
    if not relevant:
        return conditional
    overlap = set(frontal_keys(conditional)) & set(relevant)
    if overlap:
        raise InvariantViolationError(
            f"Fixed keys {format_keys(overlap)} are frontal in a stored conditional"
        )
    return as_hybrid_conditional(conditional.restrict(to_discrete_values(relevant)))


def bayes_net(conditionals: Iterable[HybridConditional]) -> HybridBayesNet:
    result = HybridBayesNet()
    for conditional in conditionals:
        result.push_back(conditional)
    return result


def count_leaves(conditionals: Sequence[HybridConditional]) -> int:
    """
    Number of discrete assignments with non-zero probability under the discrete
    conditionals of a Bayes net. Enumerates every assignment, so only use it on
    fragments with few discrete keys.
    """
    cardinalities: Dict[int, int] = {}
    for conditional in conditionals:
        if conditional.isDiscrete():
            cardinalities.update(discrete_keys(conditional))
    if not cardinalities:
        return 0
    marginal = bayes_net(conditionals).discreteMarginal()
    keys = list(cardinalities)
    count = 0
    for assignment in itertools.product(*(range(cardinalities[k]) for k in keys)):
        if marginal.evaluate(to_discrete_values(dict(zip(keys, assignment)))) > 0.0:
            count += 1
    return count
