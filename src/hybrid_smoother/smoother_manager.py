"""
Measurement front-end for the hybrid smoother.

Collects 2D pose measurements as GTSAM nonlinear and hybrid nonlinear
factors, linearizes each batch as one HybridNonlinearFactorGraph at a fixed
linearization point, feeds it to a HybridSmoother and retracts the smoother's
tangent-space solution back onto the poses.
"""
import logging
import threading
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from attrs import define, field, fields, validators
from gtsam.gtsam import Factor, HybridNonlinearFactorGraph, Values

from .backends.gtsam import (
    get_ambiguous_odometry_factor,
    get_gps_factor,
    get_gtsam_symbol_from_key,
    get_key_from_gtsam_symbol,
    get_loop_closure_factor,
    get_odometry_factor,
    get_pose2_from_tuple,
    get_pose2d_from_values,
    get_prior_factor,
)
from .smoother import HybridSmoother
from .types.key import DiscreteKey, Key, KeyPair
from .types.measurements import (
    AmbiguousOdometryMeasurement2D,
    GpsMeasurement2D,
    LoopClosureMeasurement2D,
    OdometryMeasurement2D,
    PosePrior2D,
)
from .types.variables import Pose2D
from .utils.hybrid import from_discrete_values, to_discrete_values
from .utils.validation import positive_int_validator, sigmas_validator

logger = logging.getLogger(__name__)

Measurement = Union[
    PosePrior2D,
    OdometryMeasurement2D,
    AmbiguousOdometryMeasurement2D,
    LoopClosureMeasurement2D,
    GpsMeasurement2D,
]


@define
class ManagerConfig:
    """
    Parameters of the measurement front-end.
    """

    update_frequency: int = field(
        default=3,
        validator=positive_int_validator,
        metadata={"description": "Hybrid measurements collected before each smoother update"},
    )
    relinearization_frequency: int = field(
        default=1,
        validator=positive_int_validator,
        metadata={"description": "Smoother updates between pose estimate refreshes"},
    )
    max_leaves: Optional[int] = field(
        default=10,
        validator=validators.optional(positive_int_validator),
        metadata={"description": "Hypothesis bound passed to each smoother update"},
    )
    prior_sigmas: Tuple[float, float, float] = field(
        default=(1e-4, 1e-4, 1e-4),
        converter=tuple,
        validator=sigmas_validator(3),
        metadata={"description": "Sigmas of the gauge prior on the first pose"},
    )
    pose_sigmas: Tuple[float, float, float] = field(
        default=(1.0 / 30.0, 1.0 / 30.0, 1.0 / 100.0),
        converter=tuple,
        validator=sigmas_validator(3),
        metadata={"description": "Sigmas of odometry and loop closures"},
    )
    open_loop_sigmas: Tuple[float, float, float] = field(
        default=(10.0, 10.0, 10.0),
        converter=tuple,
        validator=sigmas_validator(3),
        metadata={"description": "Sigmas of the open-loop hypothesis of a loop closure"},
    )

    @classmethod
    def from_dict(cls, params: Dict[str, Any]) -> "ManagerConfig":
        known = {a.name for a in fields(cls)}
        unknown = set(params) - known
        if unknown:
            raise ValueError(f"Unknown manager parameters: {sorted(unknown)}")
        return cls(**params)


class SmootherManager:
    """
    Front-end that owns a HybridSmoother and a GTSAM linearization point.

    Every measurement is linearized once, at the initial guesses of the poses it
    touches, so the smoother's continuous solution is a tangent-space update
    relative to that fixed point.
    """

    def __init__(
        self,
        smoother: Optional[HybridSmoother] = None,
        config: Optional[ManagerConfig] = None,
    ):
        """
        Initializes the SmootherManager.

        Args:
            smoother: The smoother to drive (default: a HybridSmoother with default parameters)
            config: Front-end parameters (default: ManagerConfig())
        """
        self.smoother = smoother if smoother is not None else HybridSmoother()
        self.config = config if config is not None else ManagerConfig()
        self.linearization_point = Values()
        self.current_estimate = Values()
        self.current_modes: Dict[Key, int] = {}
        self.num_updates = 0

        self._pending: List[Measurement] = []
        self._num_pending_hybrid = 0

        # Re-entrant lock to guard smoother access (updates and other calls)
        self._lock = threading.RLock()

    def _has_initial_guess(self, key: Key) -> bool:
        return self.linearization_point.exists(get_gtsam_symbol_from_key(key))

    def _require_initial_guess(self, *keys: Key) -> None:
        missing = [str(k) for k in keys if not self._has_initial_guess(k)]
        if missing:
            raise ValueError(f"No initial guess for poses {missing}")

    def _initialize_from(self, key1: Key, key2: Key, relative_pose: Sequence[float]) -> None:
        """Initialize key2 by composing key1's guess with a relative pose, if key2 is new."""
        if self._has_initial_guess(key2):
            return
        self._require_initial_guess(key1)
        pose1 = self.linearization_point.atPose2(get_gtsam_symbol_from_key(key1))
        pose2 = pose1.compose(get_pose2_from_tuple(relative_pose))
        self.linearization_point.insert(get_gtsam_symbol_from_key(key2), pose2)

    def initialize_pose(self, pose: Pose2D) -> None:
        """
        Set the initial guess of a pose. A pose with index 0 also receives a
        tight prior to fix the gauge freedom.

        Args:
            pose: The pose to initialize.
        """
        with self._lock:
            if self._has_initial_guess(pose.key):
                raise ValueError(f"Pose {pose.key} is already initialized")
            self.linearization_point.insert(
                get_gtsam_symbol_from_key(pose.key),
                get_pose2_from_tuple((*pose.position, pose.orientation)),
            )
            if pose.key.index == 0:
                logger.debug(f"[initialize_pose] Adding gauge prior to pose {pose.key}")
                self.add_pose_prior(
                    PosePrior2D(
                        key=pose.key,
                        position=pose.position,
                        orientation=pose.orientation,
                        sigmas=self.config.prior_sigmas,
                    )
                )

    def odometry(
        self, key1: Key, key2: Key, relative_pose: Sequence[float]
    ) -> OdometryMeasurement2D:
        """Build an odometry measurement with the configured pose sigmas."""
        x, y, psi = relative_pose
        return OdometryMeasurement2D(
            key_pair=KeyPair(key1, key2),
            relative_translation=(x, y),
            relative_rotation=psi,
            sigmas=self.config.pose_sigmas,
        )

    def loop_closure(
        self, key1: Key, key2: Key, mode_key: DiscreteKey, relative_pose: Sequence[float]
    ) -> LoopClosureMeasurement2D:
        """Build a loop closure with the configured closure and open-loop sigmas."""
        x, y, psi = relative_pose
        return LoopClosureMeasurement2D(
            key_pair=KeyPair(key1, key2),
            mode_key=mode_key,
            relative_translation=(x, y),
            relative_rotation=psi,
            sigmas=self.config.pose_sigmas,
            open_loop_sigmas=self.config.open_loop_sigmas,
        )

    def add_pose_prior(self, prior: PosePrior2D) -> None:
        """
        Add a pose prior. Initializes the pose at the prior if it has no guess yet.
        """
        with self._lock:
            if not self._has_initial_guess(prior.key):
                self.linearization_point.insert(
                    get_gtsam_symbol_from_key(prior.key),
                    get_pose2_from_tuple((*prior.position, prior.orientation)),
                )
            self._pending.append(prior)

    def add_odometry(self, odom_measurement: OdometryMeasurement2D) -> None:
        """
        Add an odometry measurement, initializing the second pose by dead reckoning.
        """
        with self._lock:
            self._initialize_from(
                odom_measurement.key1,
                odom_measurement.key2,
                (odom_measurement.x, odom_measurement.y, odom_measurement.psi),
            )
            self._pending.append(odom_measurement)

    def add_ambiguous_odometry(self, measurement: AmbiguousOdometryMeasurement2D) -> bool:
        """
        Add an odometry measurement with several alternatives. The second pose is
        initialized from the most likely alternative.

        Returns:
            True if the measurement triggered a smoother update.
        """
        with self._lock:
            weights = measurement.weights or (1.0,) * len(measurement.alternatives)
            best = max(range(len(weights)), key=lambda i: weights[i])
            self._initialize_from(
                measurement.key1, measurement.key2, measurement.alternatives[best]
            )
            return self._add_hybrid(measurement)

    def add_loop_closure(self, measurement: LoopClosureMeasurement2D) -> bool:
        """
        Add a loop closure between two already initialized poses.

        Returns:
            True if the measurement triggered a smoother update.
        """
        with self._lock:
            self._require_initial_guess(measurement.key1, measurement.key2)
            return self._add_hybrid(measurement)

    def add_gps(self, gps_measurement: GpsMeasurement2D) -> None:
        """
        Add a position fix on an already initialized pose.
        """
        with self._lock:
            self._require_initial_guess(gps_measurement.key)
            self._pending.append(gps_measurement)

    def _add_hybrid(self, measurement: Measurement) -> bool:
        self._pending.append(measurement)
        self._num_pending_hybrid += 1
        if self._num_pending_hybrid >= self.config.update_frequency:
            return self.update()
        return False

    @staticmethod
    def _to_gtsam_factor(measurement: Measurement) -> Factor:
        if isinstance(measurement, PosePrior2D):
            return get_prior_factor(measurement)
        elif isinstance(measurement, OdometryMeasurement2D):
            return get_odometry_factor(measurement)
        elif isinstance(measurement, GpsMeasurement2D):
            return get_gps_factor(measurement)
        elif isinstance(measurement, AmbiguousOdometryMeasurement2D):
            return get_ambiguous_odometry_factor(measurement)
        elif isinstance(measurement, LoopClosureMeasurement2D):
            return get_loop_closure_factor(measurement)
        else:
            raise ValueError(f"Unknown measurement type: {type(measurement)}")

    def nonlinear_graph(self) -> HybridNonlinearFactorGraph:
        """
        The pending measurements as one HybridNonlinearFactorGraph, restricted to
        the discrete values the smoother has already fixed.
        """
        with self._lock:
            graph = HybridNonlinearFactorGraph()
            for measurement in self._pending:
                graph.push_back(self._to_gtsam_factor(measurement))
            fixed = self.smoother.fixed_values
            relevant = {k: v for k, v in fixed.items() if k in graph.discreteKeySet()}
            if relevant:
                logger.debug(f"[nonlinear_graph] Restricting to fixed modes {relevant}")
                graph = graph.restrict(to_discrete_values(relevant))
            return graph

    def update(self) -> bool:
        """
        Send the pending measurements to the smoother.

        Returns:
            True if an update ran, False if nothing was pending.

        Raises:
            HybridSmootherError: if the smoother rejects the batch. The pending
                measurements are kept and the smoother is unchanged.
        """
        with self._lock:
            if not self._pending:
                return False

            graph = self.nonlinear_graph()
            linearized = graph.linearize(self.linearization_point)
            logger.debug(f"[update] Linearized {linearized.size()} measurements")
            self.smoother.update(linearized, max_leaves=self.config.max_leaves)

            self._pending = []
            self._num_pending_hybrid = 0
            self.num_updates += 1
            if self.num_updates % self.config.relinearization_frequency == 0:
                self.refresh_estimate()
            return True

    def refresh_estimate(self) -> None:
        """
        Solve the smoother and retract its solution onto the linearization point.
        """
        with self._lock:
            estimate = self.smoother.optimize()
            self.current_estimate = self.linearization_point.retract(estimate.continuous())
            self.current_modes = {
                get_key_from_gtsam_symbol(k): v
                for k, v in from_discrete_values(estimate.discrete()).items()
            }
            modes_str = {str(k): v for k, v in self.current_modes.items()}
            logger.info(
                f"[refresh_estimate] {self.current_estimate.size()} poses, modes {modes_str}"
            )

    def get_pose(self, key: Key) -> Pose2D:
        """
        Current estimate of a pose; poses not yet solved report their initial guess.
        """
        with self._lock:
            if self.current_estimate.exists(get_gtsam_symbol_from_key(key)):
                return get_pose2d_from_values(self.current_estimate, key)
            self._require_initial_guess(key)
            return get_pose2d_from_values(self.linearization_point, key)

    @property
    def num_pending(self) -> int:
        return len(self._pending)
