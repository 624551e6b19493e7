"""
Incremental smoothing for hybrid discrete/continuous factor graphs.
"""
from .config import SmootherParams
from .errors import EliminationError, HybridSmootherError, InvariantViolationError
from .smoother import HybridSmoother

__all__ = [
    "HybridSmoother",
    "SmootherParams",
    "HybridSmootherError",
    "EliminationError",
    "InvariantViolationError",
]

# Note: SmootherManager should be imported explicitly
# from hybrid_smoother.smoother_manager.
