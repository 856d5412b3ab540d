"""
Extended Kalman Filter SLAM with range-bearing landmark observations.

Jointly estimates the robot pose and the positions of N static landmarks.

State vector (length n = 3 + 2N, heading first):
    x = [θ, x_r, y_r, m_0x, m_0y, ..., m_(N-1)x, m_(N-1)y]

Initial covariance:
    Σ_0 = diag(0_3x3, σ²_m I_2N),   σ²_m = 10000 by default

Prediction (one motion command):
    x_pose <- x_pose + Δ(θ, u) + w,       w ~ N(0, Q)
    Σ      <- G Σ G^T + Q̄

Correction (sequential over the observed landmarks, in input order):
    ẑ_i = h(x, m_i) + v,                   v ~ N(0, R)
    z_i = h(x, c_i)
    K   = Σ H_i^T (H_i Σ H_i^T + R)^{-1}
    x   <- x + K (z_i - ẑ_i)
    Σ   <- (I - K H_i) Σ

Each landmark's correction is committed before the next one is processed,
so the order of the observation list changes the result.

Measurement noise is injected on the expected side (ẑ) while the observed
center is used noise-free.
"""

import warnings
from typing import Callable, List, Optional, Sequence, Union

import numpy as np

from ekfslam.estimators.base import StateEstimator
from ekfslam.models.measurement_models import (
    LANDMARK_DIM,
    POSE_DIM,
    landmark_slot,
    range_bearing,
    range_bearing_jacobian,
)
from ekfslam.models.motion_models import (
    embed_process_noise,
    motion_jacobian,
    unicycle_delta,
)
from ekfslam.sim.gaussian import GaussianSampler, NormalSource
from ekfslam.slam.config import DEFAULT_LANDMARK_VARIANCE, EKFSlamConfig
from ekfslam.slam.types import LandmarkObservation, Twist2D


ObservationLike = Union[LandmarkObservation, Sequence[float], np.ndarray]


def _as_twist(command: Union[Twist2D, Sequence[float], np.ndarray]) -> Twist2D:
    if isinstance(command, Twist2D):
        return command
    return Twist2D.from_array(np.asarray(command, dtype=float))


def _as_observation(obs: ObservationLike) -> LandmarkObservation:
    if isinstance(obs, LandmarkObservation):
        return obs
    return LandmarkObservation.from_array(np.asarray(obs, dtype=float))


class EKFSlam(StateEstimator):
    """
    EKF SLAM estimator with a fixed number of landmark slots.

    Observation ``i`` of every scan must be the observation of landmark
    slot ``i``; no data association is performed.

    Attributes:
        n_landmarks: Number of landmark slots N.
        Q: Pose process noise covariance (3×3).
        R: Measurement noise covariance (2×2).
        state: State estimate, shape (3 + 2N,).
        covariance: State covariance, shape (3 + 2N, 3 + 2N).
        innovation_func: Optional f(z_actual, z_expected) -> innovation.
            Plain subtraction when None.

    Example:
        >>> slam = EKFSlam(2, Q=np.diag([1e-4, 1e-3, 1e-3]), R=np.diag([1e-2, 1e-3]))
        >>> slam.predict(Twist2D(wz=0.1, vx=0.5))
        >>> slam.correct([LandmarkObservation(2.0, 1.0), LandmarkObservation(-1.0, 3.0)])
        >>> theta, x, y = slam.pose()
    """

    def __init__(
        self,
        n_landmarks: int,
        Q: np.ndarray,
        R: np.ndarray,
        rng: Optional[NormalSource] = None,
        innovation_func: Optional[Callable[[np.ndarray, np.ndarray], np.ndarray]] = None,
        initial_landmark_variance: float = DEFAULT_LANDMARK_VARIANCE,
    ):
        """
        Initialize the filter.

        Args:
            n_landmarks: Number of landmark slots N (>= 0).
            Q: Pose process noise covariance (3×3), positive-definite.
            R: Measurement noise covariance (2×2), positive-definite.
            rng: Source of standard-normal variates shared by both noise
                samplers. Defaults to the process-wide generator.
            innovation_func: Optional innovation f(z_actual, z_expected).
                Use ekfslam.models.range_bearing_innovation to wrap bearings.
            initial_landmark_variance: Diagonal of the initial landmark
                covariance block.

        Raises:
            TypeError: If n_landmarks is not an integer.
            ValueError: If shapes are wrong or Q/R cannot be Cholesky-factored.
        """
        config = EKFSlamConfig(
            n_landmarks=n_landmarks,
            process_noise=Q,
            measurement_noise=R,
            initial_landmark_variance=initial_landmark_variance,
        )
        super().__init__(config.state_dim)

        self.config = config
        self.n_landmarks = config.n_landmarks
        self.Q = config.process_noise
        self.R = config.measurement_noise
        self.innovation_func = innovation_func

        # Factor both covariances up front so a bad configuration fails here
        try:
            self._process_sampler = GaussianSampler(self.Q, rng=rng)
        except ValueError as exc:
            raise ValueError(f"Invalid process noise Q: {exc}") from exc
        try:
            self._measurement_sampler = GaussianSampler(self.R, rng=rng)
        except ValueError as exc:
            raise ValueError(f"Invalid measurement noise R: {exc}") from exc

        self._Q_bar = embed_process_noise(self.Q, self.state_dim)

        self.state = np.zeros(self.state_dim)
        self.covariance = np.zeros((self.state_dim, self.state_dim))
        self.covariance[POSE_DIM:, POSE_DIM:] = (
            np.eye(LANDMARK_DIM * self.n_landmarks) * config.initial_landmark_variance
        )

    @classmethod
    def from_config(
        cls,
        config: EKFSlamConfig,
        rng: Optional[NormalSource] = None,
        innovation_func: Optional[Callable[[np.ndarray, np.ndarray], np.ndarray]] = None,
    ) -> "EKFSlam":
        """Construct a filter from an EKFSlamConfig."""
        return cls(
            config.n_landmarks,
            config.process_noise,
            config.measurement_noise,
            rng=rng,
            innovation_func=innovation_func,
            initial_landmark_variance=config.initial_landmark_variance,
        )

    def predict(self, u: Optional[Union[Twist2D, Sequence[float], np.ndarray]] = None) -> None:
        """
        Propagate the pose with one motion command.

        Heading, x and y receive the unicycle delta plus process noise drawn
        from Q; landmarks are untouched. Covariance becomes G Σ G^T + Q̄ with
        G evaluated at the pre-prediction heading.

        Args:
            u: Twist2D or array [wz, vx, vy]. None means stand still.

        Raises:
            ValueError: If the command is malformed or not finite. The state
                is not modified in that case.
        """
        twist = Twist2D() if u is None else _as_twist(u)

        noise = self._process_sampler.sample()

        theta = self.state[0]
        delta, d_delta = unicycle_delta(theta, twist)

        self.state[:POSE_DIM] += delta + noise

        G = motion_jacobian(self.state_dim, d_delta)
        self.covariance = G @ self.covariance @ G.T + self._Q_bar
        self._symmetrize()

    def correct(self, observations: Sequence[ObservationLike]) -> List[int]:
        """
        Sequentially fuse one scan of landmark observations.

        Args:
            observations: Ordered observations; entry i is landmark slot i.
                Each entry is a LandmarkObservation or [x, y(, radius)].

        Returns:
            Slot indices whose update was applied. A slot is missing when its
            landmark estimate or its observed center coincides with the robot
            estimate.

        Raises:
            ValueError: If more than N observations are given or an entry is
                malformed. Nothing is modified in that case.
        """
        observations = list(observations)
        if len(observations) > self.n_landmarks:
            raise ValueError(
                f"Got {len(observations)} observations but the filter has only "
                f"{self.n_landmarks} landmark slots"
            )
        parsed = [_as_observation(obs) for obs in observations]

        applied = []
        for i, obs in enumerate(parsed):
            if self._correct_landmark(i, obs):
                applied.append(i)
        return applied

    def update(self, z: Sequence[ObservationLike]) -> List[int]:
        """Alias for correct(), for the StateEstimator interface."""
        return self.correct(z)

    def _correct_landmark(self, index: int, obs: LandmarkObservation) -> bool:
        j = landmark_slot(index)
        pose = self.state[:POSE_DIM]

        # Expected measurement carries the injected noise, actual does not
        noise = self._measurement_sampler.sample()
        z_expected = range_bearing(pose, self.state[j:j + LANDMARK_DIM], noise)
        z_actual = range_bearing(pose, obs.center)

        if obs.x == pose[1] and obs.y == pose[2]:
            warnings.warn(
                f"Landmark {index} observation coincides with the robot position "
                "estimate; skipping its update for this scan.",
                RuntimeWarning,
            )
            return False

        try:
            H = range_bearing_jacobian(self.state, index)
        except ZeroDivisionError:
            warnings.warn(
                f"Landmark {index} estimate coincides with the robot position "
                "estimate; skipping its update for this scan.",
                RuntimeWarning,
            )
            return False

        K = self.kalman_gain(H)
        if not np.all(np.isfinite(K)):
            warnings.warn(
                f"Non-finite Kalman gain for landmark {index}; skipping its update "
                "for this scan.",
                RuntimeWarning,
            )
            return False

        if self.innovation_func is not None:
            innovation = self.innovation_func(z_actual, z_expected)
        else:
            innovation = z_actual - z_expected

        self.state = self.state + K @ innovation
        self.covariance = (np.eye(self.state_dim) - K @ H) @ self.covariance
        self._symmetrize()
        return True

    def kalman_gain(self, H: np.ndarray) -> np.ndarray:
        """
        Kalman gain K = Σ H^T (H Σ H^T + R)^{-1} at the current covariance.

        Args:
            H: Measurement Jacobian (2 × n).

        Returns:
            K, shape (n, 2).
        """
        S = H @ self.covariance @ H.T + self.R
        return self.covariance @ H.T @ np.linalg.inv(S)

    def _symmetrize(self) -> None:
        self.covariance = 0.5 * (self.covariance + self.covariance.T)

    def pose(self) -> np.ndarray:
        """Current robot pose estimate [θ, x, y] (copy)."""
        return self.state[:POSE_DIM].copy()

    def landmark(self, index: int) -> np.ndarray:
        """
        Current position estimate [x, y] of one landmark slot (copy).

        Raises:
            IndexError: If index is not in [0, N).
        """
        if not 0 <= index < self.n_landmarks:
            raise IndexError(f"Landmark index {index} out of range [0, {self.n_landmarks})")
        j = landmark_slot(index)
        return self.state[j:j + LANDMARK_DIM].copy()

    def landmarks(self) -> np.ndarray:
        """All landmark estimates, shape (N, 2) (copy)."""
        return self.state[POSE_DIM:].reshape(self.n_landmarks, LANDMARK_DIM).copy()

    def landmark_covariance(self, index: int) -> np.ndarray:
        """
        Marginal 2×2 covariance of one landmark slot (copy).

        Raises:
            IndexError: If index is not in [0, N).
        """
        if not 0 <= index < self.n_landmarks:
            raise IndexError(f"Landmark index {index} out of range [0, {self.n_landmarks})")
        j = landmark_slot(index)
        return self.covariance[j:j + LANDMARK_DIM, j:j + LANDMARK_DIM].copy()
