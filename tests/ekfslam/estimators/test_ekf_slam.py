"""
Unit tests for the EKF SLAM filter.

Tests cover:
    - Initial state and covariance layout
    - Configuration errors (Q/R not factorable)
    - Deterministic prediction with noise switched off
    - Covariance propagation and symmetry
    - Sequential correction: zero innovation, gain formula, order sensitivity
    - Contract violations and degenerate geometry
"""

import unittest
import warnings

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from ekfslam import EKFSlam, EKFSlamConfig, LandmarkObservation, Twist2D
from ekfslam.models import (
    embed_process_noise,
    motion_jacobian,
    range_bearing,
    range_bearing_innovation,
    range_bearing_jacobian,
    unicycle_delta,
)
from ekfslam.sim import GaussianSampler


class ConstantNormal:
    """Standard-normal source that always returns the same value."""

    def __init__(self, value: float = 0.0):
        self.value = value

    def standard_normal(self, size):
        return np.full(size, self.value)


Q = np.diag([0.01, 0.05, 0.05])
R = np.diag([0.02, 0.005])


def make_filter(n_landmarks=2, rng=None, **kwargs):
    if rng is None:
        rng = ConstantNormal(0.0)
    return EKFSlam(n_landmarks, Q, R, rng=rng, **kwargs)


def random_spd(n, seed=0):
    rng = np.random.default_rng(seed)
    A = rng.normal(size=(n, n))
    return A @ A.T + n * np.eye(n)


class TestInitialization(unittest.TestCase):
    """State and covariance at construction."""

    def test_state_dimension(self):
        slam = make_filter(4)
        self.assertEqual(slam.state_dim, 11)
        self.assertEqual(slam.state.shape, (11,))
        self.assertEqual(slam.covariance.shape, (11, 11))
        assert_array_equal(slam.state, np.zeros(11))

    def test_initial_covariance_blocks(self):
        slam = make_filter(3)
        P = slam.covariance

        assert_array_equal(P[:3, :3], np.zeros((3, 3)))
        assert_array_equal(P[:3, 3:], np.zeros((3, 6)))
        assert_array_equal(P[3:, :3], np.zeros((6, 3)))
        assert_array_equal(np.diag(P[3:, 3:]), np.full(6, 10000.0))
        assert_array_equal(P[3:, 3:], np.eye(6) * 10000.0)

    def test_custom_landmark_variance(self):
        slam = make_filter(1, initial_landmark_variance=250.0)
        assert_array_equal(slam.covariance[3:, 3:], np.eye(2) * 250.0)

    def test_zero_landmarks(self):
        slam = make_filter(0)
        self.assertEqual(slam.state_dim, 3)
        slam.predict(Twist2D(wz=0.1, vx=1.0))
        self.assertEqual(slam.correct([]), [])
        self.assertEqual(slam.landmarks().shape, (0, 2))

    def test_q_not_positive_definite(self):
        with self.assertRaises(ValueError):
            EKFSlam(2, np.diag([0.01, 0.0, 0.05]), R)

    def test_r_not_positive_definite(self):
        with self.assertRaises(ValueError):
            EKFSlam(2, Q, np.array([[1.0, 2.0], [2.0, 1.0]]))

    def test_wrong_shapes(self):
        with self.assertRaises(ValueError):
            EKFSlam(2, np.eye(2), R)
        with self.assertRaises(ValueError):
            EKFSlam(2, Q, np.eye(3))

    def test_negative_landmark_count(self):
        with self.assertRaises(ValueError):
            EKFSlam(-1, Q, R)

    def test_from_config(self):
        config = EKFSlamConfig(n_landmarks=2, process_noise=Q, measurement_noise=R,
                               initial_landmark_variance=50.0)
        slam = EKFSlam.from_config(config, rng=ConstantNormal())
        self.assertEqual(slam.n_landmarks, 2)
        assert_array_equal(slam.covariance[3:, 3:], np.eye(4) * 50.0)

    def test_get_state_returns_copies(self):
        slam = make_filter(1)
        state, cov = slam.get_state()
        state[0] = 99.0
        cov[0, 0] = 99.0
        self.assertEqual(slam.state[0], 0.0)
        self.assertEqual(slam.covariance[0, 0], 0.0)


class TestPredict(unittest.TestCase):
    """Prediction step."""

    def test_straight_motion_exact(self):
        slam = make_filter(2)
        slam.state[:3] = [0.3, 1.0, -2.0]

        slam.predict(Twist2D(wz=0.0, vx=1.2, vy=0.4))

        self.assertEqual(slam.state[0], 0.3)
        self.assertEqual(slam.state[1], 1.0 + 1.2 * np.cos(0.3))
        self.assertEqual(slam.state[2], -2.0 + 0.4 * np.sin(0.3))

    def test_curved_motion_closed_form(self):
        slam = make_filter(2)
        theta, wz, vx = 0.7, 0.4, 1.5
        slam.state[:3] = [theta, 2.0, 3.0]

        slam.predict(Twist2D(wz=wz, vx=vx))

        ratio = vx / wz
        assert_allclose(slam.pose(), [
            theta + wz,
            2.0 - ratio * np.sin(theta) + ratio * np.sin(theta + wz),
            3.0 + ratio * np.cos(theta) - ratio * np.cos(theta + wz),
        ], atol=1e-12)

    def test_accepts_array_command(self):
        a = make_filter(1)
        b = make_filter(1)
        a.predict(Twist2D(wz=0.2, vx=1.0, vy=0.0))
        b.predict(np.array([0.2, 1.0, 0.0]))
        assert_array_equal(a.state, b.state)
        assert_array_equal(a.covariance, b.covariance)

    def test_landmarks_untouched(self):
        slam = make_filter(2)
        slam.state[3:] = [1.0, 2.0, 3.0, 4.0]
        slam.predict(Twist2D(wz=0.3, vx=1.0))
        assert_array_equal(slam.state[3:], [1.0, 2.0, 3.0, 4.0])

    def test_process_noise_added_to_pose(self):
        slam = make_filter(1, rng=ConstantNormal(1.0))
        twist = Twist2D(wz=0.1, vx=0.5)
        delta, _ = unicycle_delta(0.0, twist)
        L = GaussianSampler(Q).L

        slam.predict(twist)

        assert_allclose(slam.pose(), delta + L @ np.ones(3), atol=1e-12)

    def test_covariance_propagation(self):
        slam = make_filter(2)
        P0 = random_spd(slam.state_dim)
        slam.covariance = P0.copy()
        slam.state[0] = -0.4
        twist = Twist2D(wz=0.25, vx=0.8)

        _, d_delta = unicycle_delta(-0.4, twist)
        G = motion_jacobian(slam.state_dim, d_delta)
        expected = G @ P0 @ G.T + embed_process_noise(Q, slam.state_dim)

        slam.predict(twist)

        assert_allclose(slam.covariance, expected, atol=1e-10)

    def test_first_prediction_covariance_is_q(self):
        """Robot block starts at zero, so one prediction leaves exactly Q."""
        slam = make_filter(1)
        slam.predict(Twist2D(wz=0.5, vx=1.0))
        assert_allclose(slam.covariance[:3, :3], Q, atol=1e-15)
        assert_allclose(slam.covariance[3:, 3:], np.eye(2) * 10000.0)

    def test_invalid_command_leaves_state(self):
        slam = make_filter(1)
        slam.state[:3] = [0.1, 0.2, 0.3]
        before = slam.get_state()

        with self.assertRaises(ValueError):
            slam.predict(np.array([np.nan, 1.0, 0.0]))
        with self.assertRaises(ValueError):
            slam.predict(np.array([0.1, 1.0]))

        assert_array_equal(slam.state, before[0])
        assert_array_equal(slam.covariance, before[1])

    def test_none_command_only_adds_noise(self):
        slam = make_filter(1)
        slam.predict()
        assert_array_equal(slam.pose(), np.zeros(3))


class TestCorrect(unittest.TestCase):
    """Correction step."""

    def setUp(self):
        self.slam = make_filter(2)
        self.slam.state[:] = [0.2, 1.0, -0.5, 3.0, 2.0, -1.0, 2.5]

    def test_zero_innovation_keeps_state(self):
        before_state, before_cov = self.slam.get_state()
        H = range_bearing_jacobian(before_state, 0)
        K = before_cov @ H.T @ np.linalg.inv(H @ before_cov @ H.T + R)

        applied = self.slam.correct([LandmarkObservation(3.0, 2.0)])

        self.assertEqual(applied, [0])
        assert_array_equal(self.slam.state, before_state)
        # Covariance still shrinks through (I - K H) Σ
        self.assertFalse(np.allclose(K, 0.0))
        expected_cov = (np.eye(7) - K @ H) @ before_cov
        assert_allclose(self.slam.covariance, expected_cov, atol=1e-8)
        self.assertLess(self.slam.covariance[3, 3], before_cov[3, 3])

    def test_single_update_matches_equations(self):
        self.slam.predict(Twist2D(wz=0.1, vx=0.5))
        x0, P0 = self.slam.get_state()
        obs = LandmarkObservation(3.4, 1.7, radius=0.2)

        z_expected = range_bearing(x0[:3], x0[3:5])
        z_actual = range_bearing(x0[:3], obs.center)
        H = range_bearing_jacobian(x0, 0)
        K = P0 @ H.T @ np.linalg.inv(H @ P0 @ H.T + R)

        self.slam.correct([obs])

        assert_allclose(self.slam.state, x0 + K @ (z_actual - z_expected), atol=1e-12)
        assert_allclose(self.slam.covariance, (np.eye(7) - K @ H) @ P0, atol=1e-8)

    def test_expected_measurement_carries_noise(self):
        """Noise drawn from R is applied to the expected side only."""
        slam = make_filter(1, rng=ConstantNormal(1.0))
        slam.state[:] = [0.0, 0.0, 0.0, 3.0, 4.0]
        x0, P0 = slam.get_state()
        L_R = GaussianSampler(R).L

        slam.correct([LandmarkObservation(3.0, 4.0)])

        H = range_bearing_jacobian(x0, 0)
        K = P0 @ H.T @ np.linalg.inv(H @ P0 @ H.T + R)
        innovation = -(L_R @ np.ones(2))
        assert_allclose(slam.state, x0 + K @ innovation, atol=1e-12)

    def test_kalman_gain_formula(self):
        P = random_spd(self.slam.state_dim, seed=3)
        self.slam.covariance = P
        H = range_bearing_jacobian(self.slam.state, 1)

        K = self.slam.kalman_gain(H)

        S = H @ P @ H.T + R
        expected = np.linalg.solve(S.T, (P @ H.T).T).T
        assert_allclose(K, expected, atol=1e-10)
        self.assertEqual(K.shape, (7, 2))

    def test_hand_built_single_landmark_gain(self):
        """One landmark straight ahead at range 2 with a diagonal prior."""
        slam = make_filter(1)
        slam.state[:] = [0.0, 0.0, 0.0, 2.0, 0.0]
        slam.covariance = np.diag([0.1, 0.2, 0.3, 4.0, 5.0])

        H = range_bearing_jacobian(slam.state, 0)
        assert_allclose(H, [
            [0.0, -1.0, 0.0, 1.0, 0.0],
            [-1.0, 0.0, 0.5, 0.0, 0.5],
        ])

        # H Σ H^T + R by hand
        S = np.array([
            [0.2 + 4.0 + 0.02, 0.0],
            [0.0, 0.1 + 0.25 * 0.3 + 0.25 * 5.0 + 0.005],
        ])
        PHt = np.array([
            [0.0, -0.1],
            [-0.2, 0.0],
            [0.0, 0.15],
            [4.0, 0.0],
            [0.0, 2.5],
        ])
        expected = PHt / np.diag(S)
        assert_allclose(slam.kalman_gain(H), expected, atol=1e-12)

    def test_order_sensitivity(self):
        """Swapping the processing order of two landmarks changes the result."""
        a_est, a_obs = np.array([2.0, 1.0]), LandmarkObservation(2.5, 1.2)
        b_est, b_obs = np.array([-1.0, 3.0]), LandmarkObservation(-1.3, 3.4)

        ab = make_filter(2, initial_landmark_variance=0.1)
        ab.state[3:] = [*a_est, *b_est]
        ba = make_filter(2, initial_landmark_variance=0.1)
        ba.state[3:] = [*b_est, *a_est]

        # Robot uncertainty couples the two landmark updates
        ab.predict()
        ba.predict()

        ab.correct([a_obs, b_obs])
        ba.correct([b_obs, a_obs])

        self.assertFalse(np.allclose(ab.pose(), ba.pose(), rtol=0.0, atol=1e-12))
        self.assertFalse(np.allclose(ab.covariance[:3, :3], ba.covariance[:3, :3],
                                     rtol=0.0, atol=1e-12))

    def test_n_observations_accepted(self):
        applied = self.slam.correct([LandmarkObservation(3.1, 2.0),
                                     LandmarkObservation(-1.0, 2.4)])
        self.assertEqual(applied, [0, 1])

    def test_too_many_observations_rejected(self):
        before_state, before_cov = self.slam.get_state()
        observations = [LandmarkObservation(3.1, 2.0),
                        LandmarkObservation(-1.0, 2.4),
                        LandmarkObservation(5.0, 5.0)]

        with self.assertRaises(ValueError):
            self.slam.correct(observations)

        assert_array_equal(self.slam.state, before_state)
        assert_array_equal(self.slam.covariance, before_cov)

    def test_malformed_observation_rejected_before_any_update(self):
        before_state, before_cov = self.slam.get_state()

        with self.assertRaises(ValueError):
            self.slam.correct([LandmarkObservation(3.1, 2.0), [1.0, 2.0, 3.0, 4.0]])

        assert_array_equal(self.slam.state, before_state)
        assert_array_equal(self.slam.covariance, before_cov)

    def test_accepts_array_observations(self):
        a = make_filter(2)
        b = make_filter(2)
        a.state[:] = b.state[:] = self.slam.state
        a.correct([LandmarkObservation(3.1, 2.0, 0.1)])
        b.correct([np.array([3.1, 2.0, 0.1])])
        assert_array_equal(a.state, b.state)

    def test_update_alias(self):
        other = make_filter(2)
        other.state[:] = self.slam.state
        observations = [LandmarkObservation(3.1, 2.0)]
        self.slam.correct(observations)
        other.update(observations)
        assert_array_equal(self.slam.state, other.state)

    def test_innovation_func_is_used(self):
        calls = []

        def recording(z, z_pred):
            calls.append((z.copy(), z_pred.copy()))
            return range_bearing_innovation(z, z_pred)

        slam = make_filter(2, innovation_func=recording)
        slam.state[:] = self.slam.state
        slam.correct([LandmarkObservation(3.1, 2.0), LandmarkObservation(-1.0, 2.4)])
        self.assertEqual(len(calls), 2)


class TestDegenerateGeometry:
    """Landmark estimate on top of the robot estimate."""

    def test_all_degenerate_skipped(self):
        slam = make_filter(1)
        before_state, before_cov = slam.get_state()

        with pytest.warns(RuntimeWarning):
            applied = slam.correct([LandmarkObservation(2.0, 1.0)])

        assert applied == []
        assert_array_equal(slam.state, before_state)
        assert_array_equal(slam.covariance, before_cov)

    def test_observed_center_on_robot_skipped(self):
        slam = make_filter(1)
        slam.state[:] = [0.4, 1.0, 1.0, 3.0, 3.0]
        before_state, before_cov = slam.get_state()

        with pytest.warns(RuntimeWarning, match="observation coincides"):
            applied = slam.correct([LandmarkObservation(1.0, 1.0)])

        assert applied == []
        assert_array_equal(slam.state, before_state)
        assert_array_equal(slam.covariance, before_cov)

    def test_observed_center_on_robot_keeps_noise_draw(self):
        """The skipped landmark still consumes its measurement noise draw."""
        draws = []

        class CountingNormal(ConstantNormal):
            def standard_normal(self, size):
                draws.append(size)
                return super().standard_normal(size)

        slam = make_filter(2, rng=CountingNormal(0.0))
        slam.state[:] = [0.0, 1.0, 1.0, 3.0, 3.0, -2.0, 4.0]

        with pytest.warns(RuntimeWarning):
            applied = slam.correct([LandmarkObservation(1.0, 1.0),
                                    LandmarkObservation(-2.0, 4.5)])

        assert applied == [1]
        assert draws == [2, 2]

    def test_earlier_updates_stay_committed(self):
        slam = make_filter(2)
        slam.state[3:5] = [2.0, 1.0]
        before_state = slam.state.copy()

        with pytest.warns(RuntimeWarning, match="Landmark 1"):
            applied = slam.correct([LandmarkObservation(2.5, 1.5),
                                    LandmarkObservation(4.0, 4.0)])

        assert applied == [0]
        assert not np.allclose(slam.state[3:5], before_state[3:5])
        assert_array_equal(slam.state[5:], [0.0, 0.0])
        assert np.all(np.isfinite(slam.state))
        assert np.all(np.isfinite(slam.covariance))


class TestInvariants:
    """Properties that hold across long runs."""

    def test_symmetry_after_every_step(self):
        rng = np.random.default_rng(11)
        slam = EKFSlam(3, Q, R, rng=rng)
        landmarks = np.array([[4.0, 1.0], [-2.0, 3.0], [1.0, -4.0]])

        with warnings.catch_warnings():
            warnings.simplefilter("ignore", RuntimeWarning)
            for _ in range(30):
                slam.predict(Twist2D(wz=0.1, vx=0.3))
                assert_allclose(slam.covariance, slam.covariance.T, atol=1e-9)

                centers = landmarks + rng.normal(0.0, 0.05, size=landmarks.shape)
                slam.correct([LandmarkObservation(x, y) for x, y in centers])
                assert_allclose(slam.covariance, slam.covariance.T, atol=1e-9)

        assert np.all(np.isfinite(slam.state))

    def test_pose_is_pure_accessor(self):
        slam = make_filter(1)
        slam.state[:3] = [0.5, 1.0, 2.0]
        pose = slam.pose()
        pose[0] = 10.0
        assert_array_equal(slam.pose(), [0.5, 1.0, 2.0])
        assert_array_equal(slam.pose(), slam.pose())

    def test_landmark_accessors(self):
        slam = make_filter(2)
        slam.state[3:] = [1.0, 2.0, 3.0, 4.0]

        assert_array_equal(slam.landmark(1), [3.0, 4.0])
        assert_array_equal(slam.landmarks(), [[1.0, 2.0], [3.0, 4.0]])
        assert_array_equal(slam.landmark_covariance(0), np.eye(2) * 10000.0)

        with pytest.raises(IndexError):
            slam.landmark(2)
        with pytest.raises(IndexError):
            slam.landmark_covariance(-1)
