"""
Unicycle motion model for the SLAM prediction step.

The robot pose is stored heading-first, [θ, x, y], followed by the static
landmark coordinates. A body twist (wz, vx, vy) applied for one time unit
moves the pose by an exact arc (wz ≠ 0) or a straight segment (wz = 0).

Curved motion (r = vx / wz):
    Δθ = wz
    Δx = -r sin θ + r sin(θ + wz)
    Δy =  r cos θ - r cos(θ + wz)

Straight motion:
    Δθ = 0
    Δx = vx cos θ
    Δy = vy sin θ

The straight-line Δy uses vy while its heading derivative uses vx.

Only the heading enters the delta, so the transition Jacobian is the
identity plus ∂Δ/∂θ added to column 0 (rows 0-2).
"""

from typing import Tuple

import numpy as np

from ekfslam.slam.types import Twist2D


POSE_DIM = 3


def unicycle_delta(theta: float, twist: Twist2D) -> Tuple[np.ndarray, np.ndarray]:
    """
    Pose increment and its derivative with respect to heading.

    Args:
        theta: Current heading estimate (radians).
        twist: Body-frame velocity command for one time unit.

    Returns:
        Tuple (delta, d_delta_d_theta), each shape (3,), ordered [θ, x, y].

    Example:
        >>> delta, _ = unicycle_delta(0.0, Twist2D(wz=0.0, vx=1.0))
        >>> delta
        array([0., 1., 0.])
    """
    wz, vx, vy = twist.wz, twist.vx, twist.vy

    if wz == 0:
        delta = np.array([
            0.0,
            vx * np.cos(theta),
            vy * np.sin(theta),
        ])
        d_delta = np.array([
            0.0,
            -vx * np.sin(theta),
            vx * np.cos(theta),
        ])
    else:
        ratio = vx / wz
        delta = np.array([
            wz,
            -ratio * np.sin(theta) + ratio * np.sin(theta + wz),
            ratio * np.cos(theta) - ratio * np.cos(theta + wz),
        ])
        d_delta = np.array([
            0.0,
            -ratio * np.cos(theta) + ratio * np.cos(theta + wz),
            -ratio * np.sin(theta) + ratio * np.sin(theta + wz),
        ])

    return delta, d_delta


def motion_jacobian(state_dim: int, d_delta_d_theta: np.ndarray) -> np.ndarray:
    """
    State transition Jacobian G for the full SLAM state.

    Args:
        state_dim: Length of the state vector (3 + 2N).
        d_delta_d_theta: Heading derivative of the pose delta, shape (3,).

    Returns:
        G, shape (state_dim, state_dim): identity plus d_delta_d_theta
        added to column 0, rows 0-2.
    """
    if state_dim < POSE_DIM:
        raise ValueError(f"state_dim must be at least {POSE_DIM}, got {state_dim}")

    G = np.eye(state_dim)
    G[:POSE_DIM, 0] += np.asarray(d_delta_d_theta, dtype=float)
    return G


def embed_process_noise(Q: np.ndarray, state_dim: int) -> np.ndarray:
    """
    Embed the 3×3 pose process noise into a full-size zero matrix.

    Landmarks are static, so they receive no process noise.

    Args:
        Q: Pose process noise covariance (3×3).
        state_dim: Length of the state vector (3 + 2N).

    Returns:
        Q̄, shape (state_dim, state_dim).
    """
    Q = np.asarray(Q, dtype=float)
    if Q.shape != (POSE_DIM, POSE_DIM):
        raise ValueError(f"Q must be {POSE_DIM}x{POSE_DIM}, got shape {Q.shape}")

    Q_bar = np.zeros((state_dim, state_dim))
    Q_bar[:POSE_DIM, :POSE_DIM] = Q
    return Q_bar
