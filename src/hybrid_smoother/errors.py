"""
Exception taxonomy for the hybrid smoother.

Every error raised here is fatal for the call that raised it: the smoother
never logs-and-continues past one of these.
"""


class HybridSmootherError(RuntimeError):
    """Base class for errors raised by the smoother."""
    pass


class InvariantViolationError(HybridSmootherError):
    """Raised when the stored posterior is found in a corrupted state."""
    pass


class EliminationError(HybridSmootherError):
    """Raised when a factor graph cannot be eliminated with the given ordering."""
    pass
