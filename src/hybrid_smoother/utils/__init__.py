"""
Utils package for smoother utility functions.
"""

__all__ = []

# Utilities are imported explicitly as needed to avoid namespace pollution
# Example usage:
#   from hybrid_smoother.utils.hybrid import frontal_keys
#   from hybrid_smoother.utils.validation import _check_valid_key
