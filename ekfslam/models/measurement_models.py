"""
Range-bearing measurement model for landmark SLAM.

State layout: [θ, x_r, y_r, m_0x, m_0y, m_1x, m_1y, ...]

Measurement of a point p = (x, y) from pose (θ, x_r, y_r):
    range   = sqrt((x - x_r)² + (y - y_r)²) + n_range
    bearing = wrap(atan2(y - y_r, x - x_r) - θ + n_bearing)

The same function yields the expected measurement (p = landmark estimate,
noise drawn from R) and the actual measurement (p = observed center, zero
noise).

Jacobian for landmark slot i, with dx = m_ix - x_r, dy = m_iy - y_r,
q = dx² + dy², r = sqrt(q):

                θ     x_r      y_r      m_ix     m_iy
    range   [   0,  -dx/r,   -dy/r,    dx/r,    dy/r ]
    bearing [  -1,   dy/q,    dx/q,   -dy/q,    dx/q ]

All other columns are zero. The bearing/y_r entry is +dx/q, not the
analytic -dx/q.
"""

from typing import Optional, Tuple

import numpy as np

from ekfslam.utils import angle_diff, wrap_angle


POSE_DIM = 3
LANDMARK_DIM = 2


def landmark_slot(landmark_index: int) -> int:
    """Index of a landmark's x coordinate in the state vector."""
    return POSE_DIM + LANDMARK_DIM * landmark_index


def range_bearing(
    pose: np.ndarray,
    point: np.ndarray,
    noise: Optional[np.ndarray] = None,
) -> np.ndarray:
    """
    Range and bearing from a robot pose to a point.

    Args:
        pose: Robot pose [θ, x, y].
        point: Point [x, y] (landmark estimate or observed center).
        noise: Additive [n_range, n_bearing]. Zero when None.

    Returns:
        Measurement [range, bearing], bearing in (-π, π].

    Example:
        >>> range_bearing(np.array([0.0, 0.0, 0.0]), np.array([0.0, 2.0]))
        array([2.        , 1.57079633])
    """
    theta, rx, ry = pose[0], pose[1], pose[2]
    x_diff = point[0] - rx
    y_diff = point[1] - ry

    if noise is None:
        n_range, n_bearing = 0.0, 0.0
    else:
        n_range, n_bearing = noise[0], noise[1]

    rho = np.sqrt(x_diff**2 + y_diff**2) + n_range
    bearing = wrap_angle(np.arctan2(y_diff, x_diff) - theta + n_bearing)
    return np.array([rho, bearing])


def landmark_offset(state: np.ndarray, landmark_index: int) -> Tuple[float, float, float]:
    """
    Offset from the robot estimate to a landmark estimate.

    Args:
        state: Full SLAM state vector.
        landmark_index: Landmark slot i.

    Returns:
        Tuple (dx, dy, q) with q = dx² + dy².
    """
    j = landmark_slot(landmark_index)
    dx = state[j] - state[1]
    dy = state[j + 1] - state[2]
    return dx, dy, dx * dx + dy * dy


def range_bearing_jacobian(state: np.ndarray, landmark_index: int) -> np.ndarray:
    """
    Measurement Jacobian H for one landmark slot.

    Args:
        state: Full SLAM state vector, length 3 + 2N.
        landmark_index: Landmark slot i, 0 <= i < N.

    Returns:
        H, shape (2, len(state)).

    Raises:
        IndexError: If the slot is outside the state vector.
        ZeroDivisionError: If the landmark estimate coincides with the robot
            estimate (q == 0).
    """
    n_states = len(state)
    j = landmark_slot(landmark_index)
    if landmark_index < 0 or j + 1 >= n_states:
        raise IndexError(
            f"Landmark slot {landmark_index} outside state of length {n_states}"
        )

    dx, dy, q = landmark_offset(state, landmark_index)
    if q == 0:
        raise ZeroDivisionError(
            f"Landmark {landmark_index} estimate coincides with the robot estimate"
        )
    r = np.sqrt(q)

    H = np.zeros((2, n_states))

    # Robot pose block
    H[0, 0:3] = [0.0, -dx / r, -dy / r]
    H[1, 0:3] = [-1.0, dy / q, dx / q]

    # Landmark block
    H[0, j:j + 2] = [dx / r, dy / r]
    H[1, j:j + 2] = [-dy / q, dx / q]

    return H


def range_bearing_innovation(z_measured: np.ndarray, z_predicted: np.ndarray) -> np.ndarray:
    """
    Innovation with the bearing component wrapped to (-π, π].

    Pass as ``innovation_func`` to EKFSlam to avoid ~2π bearing jumps when
    the expected and actual bearings straddle ±π.

    Args:
        z_measured: Actual [range, bearing].
        z_predicted: Expected [range, bearing].

    Returns:
        [range difference, wrapped bearing difference]
    """
    return np.array([
        z_measured[0] - z_predicted[0],
        angle_diff(float(z_measured[1]), float(z_predicted[1])),
    ])
