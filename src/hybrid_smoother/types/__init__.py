"""
Types package for smoother data structures.
"""
from .key import Key, DiscreteKey
from .enums import ABSENT, Absent, ConditionalKind, FrontierScheme

__all__ = ["Key", "DiscreteKey", "ABSENT", "Absent", "ConditionalKind", "FrontierScheme"]

# Note: measurement and variable types should be imported explicitly
# from their modules to avoid circular dependencies.
