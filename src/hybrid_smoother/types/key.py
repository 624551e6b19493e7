"""
Key types for the smoother.
"""
from attrs import define, field, validators
from ..utils.validation import _check_valid_key, positive_int_validator


@define
class Key:
    """
    A key uniquely identifying variables in the smoother.
    Keys are strings starting with a capital letter followed by numbers (e.g., "X0", "M1").
    The same key type names continuous and discrete variables; a discrete
    variable is additionally described by a DiscreteKey carrying its cardinality.
    """
    key: str = field(
        validator=validators.and_(
            validators.instance_of(str),
            _check_valid_key,
        ),
        metadata={"description": "The unique key identifier."},
    )

    def __hash__(self) -> int:
        return hash(self.key)

    def __str__(self) -> str:
        return self.key

    def __repr__(self) -> str:
        return f"Key({self.key})"

    def __lt__(self, other: "Key") -> bool:
        return (self.char, self.index) < (other.char, other.index)

    @property
    def char(self) -> str:
        """Returns the character prefix of the key."""
        return self.key[0]

    @property
    def index(self) -> int:
        """Returns the numeric index of the key."""
        return int(self.key[1:])


@define
class DiscreteKey:
    """
    A discrete variable: its key plus the number of values it can take.
    """

    key: Key = field(
        validator=validators.instance_of(Key),
        metadata={"description": "The key of the discrete variable"},
    )
    cardinality: int = field(
        validator=positive_int_validator,
        metadata={"description": "Number of values the variable can take"},
    )

    def __hash__(self) -> int:
        return hash((self.key, self.cardinality))

    def __str__(self) -> str:
        return f"{self.key}[{self.cardinality}]"


@define
class KeyPair:
    """
    The two poses joined by a relative measurement.
    """

    key1: Key = field(metadata={"description": "The first key"}, validator=validators.instance_of(Key))
    key2: Key = field(metadata={"description": "The second key"}, validator=validators.instance_of(Key))

    def __str__(self) -> str:
        return f"KeyPair({self.key1}, {self.key2})"
