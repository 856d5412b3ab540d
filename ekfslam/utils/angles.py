"""
Angle wrapping and manipulation utilities.

Provides functions for keeping angular quantities within (-π, π].

Critical for:
- Bearing measurements from the robot to each landmark
- Robot heading stored in the SLAM state vector
- Angular innovations in the correction step
"""

import numpy as np
from typing import Union


def wrap_angle(angle: float) -> float:
    """
    Wrap angle to the half-open range (-π, π].

    Bearings near ±180° must map to a single representative, otherwise
    -179° vs +179° reads as a 358° error instead of a 2° error. The
    lower bound is open: -π is reported as +π.

    Args:
        angle: Angle in radians (can be any value)

    Returns:
        Wrapped angle in range (-π, π]

    Example:
        >>> wrap_angle(3.5 * np.pi)  # 630° -> -90°
        -1.5707963267948966
        >>> wrap_angle(-np.pi)
        3.141592653589793
    """
    wrapped = float(np.arctan2(np.sin(angle), np.cos(angle)))
    if wrapped <= -np.pi:
        wrapped += 2.0 * np.pi
    return wrapped


def wrap_angle_array(angles: np.ndarray) -> np.ndarray:
    """
    Wrap array of angles to (-π, π].

    Vectorized version of wrap_angle().

    Args:
        angles: Array of angles in radians

    Returns:
        Array of wrapped angles in range (-π, π]
    """
    wrapped = np.arctan2(np.sin(angles), np.cos(angles))
    return np.where(wrapped <= -np.pi, wrapped + 2.0 * np.pi, wrapped)


def angle_diff(angle1: Union[float, np.ndarray],
               angle2: Union[float, np.ndarray]) -> Union[float, np.ndarray]:
    """
    Compute the shortest angular difference between two angles.

    Returns angle1 - angle2, wrapped to (-π, π].

    Args:
        angle1: First angle in radians (measured)
        angle2: Second angle in radians (predicted)

    Returns:
        Shortest signed difference angle1 - angle2 in (-π, π]

    Example:
        >>> angle_diff(np.pi - 0.1, -np.pi + 0.1)  # Nearly opposite
        -0.2
    """
    if isinstance(angle1, np.ndarray) or isinstance(angle2, np.ndarray):
        return wrap_angle_array(np.asarray(angle1) - np.asarray(angle2))
    else:
        return wrap_angle(angle1 - angle2)
