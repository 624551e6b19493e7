"""
Validation utilities for smoother types.
"""
from typing import Optional
import numpy as np
from attrs import validators


def positive_int_validator(instance, attribute, value) -> None:
    """Checks that a value is a strictly positive integer."""
    if isinstance(value, bool) or not isinstance(value, (int, np.integer)):
        raise TypeError(f"{attribute.name} must be an integer, got {type(value)}")
    if value < 1:
        raise ValueError(f"{attribute.name} must be >= 1, got {value}")


def probability_validator(instance, attribute, value: Optional[float]) -> None:
    """Checks that an optional value lies in (0, 1]."""
    if value is None:
        return
    if not 0.0 < value <= 1.0:
        raise ValueError(f"{attribute.name} must be in (0, 1], got {value}")


def _check_valid_key(instance, attribute, key: str) -> None:
    """
    Checks that a key is valid (non-empty string starting with a capital letter followed by numbers).

    Args:
        key: the key to check
    Raises:
        ValueError: if the key is not valid
    """
    if len(key) < 2:
        raise ValueError(f"Invalid key: {key}")
    first_is_cap_letter = key[0].isupper()
    rest_are_numbers = key[1:].isdigit()
    if not (first_is_cap_letter and rest_are_numbers):
        raise ValueError(f"Invalid key: {key}")


def _check_sigmas(sigmas: np.ndarray) -> None:
    """Checks that standard deviations are finite and strictly positive."""
    if not np.all(np.isfinite(sigmas)):
        raise ValueError(f"Sigmas must be finite, got {sigmas}")
    if np.any(sigmas <= 0.0):
        raise ValueError(f"Sigmas must be positive, got {sigmas}")


def bound_validator(a: float, b: float):
    """
    Returns a validator that checks if a value is within the bounds [a, b].
    """
    return validators.and_(validators.ge(a), validators.le(b))


def tuple_length_validator(length: int):
    """
    Returns a validator that checks if a value is a tuple of a specific length.
    """

    def _validator(instance, attribute, value):
        if not isinstance(value, tuple):
            raise TypeError(f"{attribute.name} must be a tuple.")
        if len(value) != length:
            raise ValueError(f"{attribute.name} must have {length} elements.")

    return _validator


def sigmas_validator(length: int):
    """
    Returns a validator for a tuple of `length` positive standard deviations.
    """
    check_length = tuple_length_validator(length)

    def _validator(instance, attribute, value):
        check_length(instance, attribute, value)
        _check_sigmas(np.asarray(value, dtype=float))

    return _validator
