"""
Enumerations for conditional kinds and ordering schemes.
"""
from enum import Enum


class ConditionalKind(Enum):
    """The closed set of conditional kinds stored in a posterior."""
    DISCRETE = 1
    CONTINUOUS = 2
    HYBRID = 3


class FrontierScheme(Enum):
    """Which continuous keys are forced to the end of the elimination ordering."""
    NONE = 1
    NEW_FACTOR_KEYS = 2
    ALL_KEYS = 3


class Absent(Enum):
    """Marker for a removed posterior slot."""
    ABSENT = 0


ABSENT = Absent.ABSENT
