"""
The accumulated posterior: an ordered arena of GTSAM hybrid conditionals plus
the map of discrete values that pruning has permanently fixed.
"""
import logging
from typing import Dict, Iterator, List, Mapping, Sequence, Set, Union

from attrs import define, field
from gtsam.gtsam import HybridBayesNet, HybridConditional

from .errors import InvariantViolationError
from .types.enums import ABSENT, Absent
from .utils.hybrid import bayes_net, format_keys, frontal_keys, parent_keys, restrict_conditional

logger = logging.getLogger(__name__)


@define
class Slot:
    """One arena entry: a live conditional, or ABSENT once it has been removed."""

    conditional: Union[HybridConditional, Absent] = field()

    @property
    def is_live(self) -> bool:
        return self.conditional is not ABSENT


@define
class BeliefStore:
    """
    Ordered posterior with one defining conditional per eliminated key.

    Conditionals are only added through `append` and only taken out through
    `remove`; both keep the key-to-slot index consistent. Parents are always
    stored after their children, and no stored conditional mentions a fixed key.
    """

    slots: List[Slot] = field(factory=list)
    key_to_slot: Dict[int, int] = field(factory=dict)
    eliminated: Set[int] = field(factory=set)
    fixed_values: Dict[int, int] = field(factory=dict)
    version: int = 0

    def __len__(self) -> int:
        return sum(1 for s in self.slots if s.is_live)

    def copy(self) -> "BeliefStore":
        """Working copy sharing the (never mutated) conditionals."""
        return BeliefStore(
            slots=[Slot(s.conditional) for s in self.slots],
            key_to_slot=dict(self.key_to_slot),
            eliminated=set(self.eliminated),
            fixed_values=dict(self.fixed_values),
            version=self.version,
        )

    def conditionals(self) -> Iterator[HybridConditional]:
        """Live conditionals in store order; removed slots are skipped."""
        for slot in self.slots:
            if slot.is_live:
                yield slot.conditional

    def bayes_net(self) -> HybridBayesNet:
        return bayes_net(self.conditionals())

    def defines(self, key: int) -> bool:
        return key in self.key_to_slot

    def conditional_for(self, key: int) -> HybridConditional:
        if key not in self.key_to_slot:
            raise InvariantViolationError(f"No conditional defines {format_keys([key])[0]}")
        return self.slots[self.key_to_slot[key]].conditional

    def append(self, fragment: Sequence[HybridConditional]) -> None:
        """
        Add a fragment at the end of the store.

        Raises:
            InvariantViolationError: if a frontal is already defined or fixed.
        """
        for conditional in fragment:
            frontals = frontal_keys(conditional)
            for key in frontals:
                if key in self.key_to_slot:
                    raise InvariantViolationError(
                        f"{format_keys([key])[0]} is already defined in the posterior"
                    )
                if key in self.fixed_values:
                    raise InvariantViolationError(
                        f"{format_keys([key])[0]} is fixed and cannot be redefined"
                    )
            index = len(self.slots)
            self.slots.append(Slot(conditional))
            for key in frontals:
                self.key_to_slot[key] = index
                self.eliminated.add(key)
        self.version += 1

    def remove(self, key: int) -> HybridConditional:
        """
        Take out the conditional defining `key` (and every other frontal it defines).

        Raises:
            InvariantViolationError: if nothing defines `key`.
        """
        name = format_keys([key])[0]
        if key not in self.key_to_slot:
            raise InvariantViolationError(f"Expected a conditional defining {name} but none is stored")
        index = self.key_to_slot[key]
        slot = self.slots[index]
        if not slot.is_live:
            raise InvariantViolationError(f"{name} points at a removed conditional")
        conditional = slot.conditional
        for frontal in frontal_keys(conditional):
            if self.key_to_slot.get(frontal) != index:
                raise InvariantViolationError(
                    f"Index for {format_keys([frontal])[0]} disagrees with the conditional stored for {name}"
                )
            del self.key_to_slot[frontal]
        slot.conditional = ABSENT
        self.version += 1
        return conditional

    def fix(self, values: Mapping[int, int]) -> None:
        """
        Record newly fixed discrete values and condition every stored conditional
        that has one of them as a parent. Entries are never changed once set.

        Raises:
            InvariantViolationError: if a key is re-fixed to a different value, or
                a newly fixed key is still defined by a conditional.
        """
        for key, value in values.items():
            existing = self.fixed_values.get(key)
            if existing is not None and existing != value:
                raise InvariantViolationError(
                    f"{format_keys([key])[0]} is fixed to {existing}, refusing to change it to {value}"
                )
            if key in self.key_to_slot:
                raise InvariantViolationError(
                    f"{format_keys([key])[0]} is still defined by a conditional and cannot be fixed"
                )
            self.fixed_values[key] = int(value)
        if not values:
            return
        for slot in self.slots:
            if slot.is_live:
                slot.conditional = restrict_conditional(slot.conditional, values)
        self.version += 1

    def compact(self) -> None:
        """Drop removed slots, preserving order."""
        live = [s for s in self.slots if s.is_live]
        if len(live) == len(self.slots):
            return
        self.slots = live
        self.key_to_slot = {
            key: index
            for index, slot in enumerate(self.slots)
            for key in frontal_keys(slot.conditional)
        }

    def check_invariants(self) -> None:
        """
        Audit the one-definition-per-key and parents-after-children invariants.

        Raises:
            InvariantViolationError: on the first violation found.
        """
        seen: Dict[int, int] = {}
        for index, slot in enumerate(self.slots):
            if not slot.is_live:
                continue
            for key in frontal_keys(slot.conditional):
                name = format_keys([key])[0]
                if key in seen:
                    raise InvariantViolationError(f"{name} is defined by slots {seen[key]} and {index}")
                if self.key_to_slot.get(key) != index:
                    raise InvariantViolationError(f"Index for {name} does not point at slot {index}")
                seen[key] = index
        if set(seen) != set(self.key_to_slot):
            stale = set(self.key_to_slot) - set(seen)
            raise InvariantViolationError(f"Index has entries for removed keys {format_keys(stale)}")
        for index, slot in enumerate(self.slots):
            if not slot.is_live:
                continue
            frontals = format_keys(frontal_keys(slot.conditional))
            for parent in parent_keys(slot.conditional):
                if parent in self.fixed_values:
                    raise InvariantViolationError(
                        f"Conditional on {frontals} still depends on fixed key {format_keys([parent])[0]}"
                    )
                if parent not in seen:
                    raise InvariantViolationError(
                        f"Parent {format_keys([parent])[0]} of {frontals} is not defined"
                    )
                if seen[parent] <= index:
                    raise InvariantViolationError(
                        f"Parent {format_keys([parent])[0]} is stored before its child {frontals}"
                    )
        overlap = set(seen) & set(self.fixed_values)
        if overlap:
            raise InvariantViolationError(f"Fixed keys {format_keys(overlap)} still have conditionals")
