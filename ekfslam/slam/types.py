"""Type definitions for landmark-based EKF SLAM.

Key types:
    - Twist2D: body-frame velocity command applied for one time unit
    - LandmarkObservation: detected landmark center and radius for one scan

Observation ``i`` in a scan is always the observation of landmark slot
``i``. Resolving which physical landmark was seen is the detector's job.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional

import numpy as np


@dataclass(frozen=True)
class Twist2D:
    """
    Planar body twist: angular velocity and two linear velocities.

    Attributes:
        wz: Angular velocity about the body z-axis (rad per time unit).
        vx: Linear velocity along the body x-axis.
        vy: Linear velocity along the body y-axis.

    Examples:
        >>> Twist2D(wz=0.0, vx=1.0)        # straight ahead
        >>> Twist2D(wz=0.5, vx=1.0)        # arc to the left
    """

    wz: float = 0.0
    vx: float = 0.0
    vy: float = 0.0

    def __post_init__(self) -> None:
        """Validate command values after initialization."""
        for name in ("wz", "vx", "vy"):
            value = getattr(self, name)
            if not np.isfinite(value):
                raise ValueError(f"{name} must be finite, got {value}")

    def to_array(self) -> np.ndarray:
        """Return the command as [wz, vx, vy]."""
        return np.array([self.wz, self.vx, self.vy], dtype=np.float64)

    @classmethod
    def from_array(cls, arr: np.ndarray) -> "Twist2D":
        """
        Create Twist2D from array [wz, vx, vy].

        Raises:
            ValueError: If array does not have exactly 3 elements.
        """
        arr = np.asarray(arr, dtype=float)
        if arr.shape != (3,):
            raise ValueError(f"Array must have shape (3,), got {arr.shape}")
        return cls(wz=float(arr[0]), vx=float(arr[1]), vy=float(arr[2]))


@dataclass(frozen=True)
class LandmarkObservation:
    """
    One detected landmark in a sensor scan.

    Attributes:
        x: Estimated landmark center, x (world frame).
        y: Estimated landmark center, y (world frame).
        radius: Fitted landmark radius. Carried through from the detector
            but not used by the correction step, so it is not validated.
    """

    x: float
    y: float
    radius: float = 0.0

    def __post_init__(self) -> None:
        if not np.isfinite(self.x):
            raise ValueError(f"x must be finite, got {self.x}")
        if not np.isfinite(self.y):
            raise ValueError(f"y must be finite, got {self.y}")

    @property
    def center(self) -> np.ndarray:
        return np.array([self.x, self.y], dtype=np.float64)

    @classmethod
    def from_array(cls, arr: np.ndarray) -> "LandmarkObservation":
        """
        Create an observation from [x, y] or [x, y, radius].

        Raises:
            ValueError: If array does not have 2 or 3 elements.
        """
        arr = np.asarray(arr, dtype=float)
        if arr.shape == (2,):
            return cls(x=float(arr[0]), y=float(arr[1]))
        if arr.shape == (3,):
            return cls(x=float(arr[0]), y=float(arr[1]), radius=float(arr[2]))
        raise ValueError(f"Array must have shape (2,) or (3,), got {arr.shape}")


def observations_from_centers(centers: np.ndarray,
                              radii: Optional[Iterable[float]] = None) -> List[LandmarkObservation]:
    """
    Build an ordered observation list from detector output.

    Args:
        centers: Landmark centers, shape (k, 2). Row i is landmark slot i.
        radii: Optional radii, length k. Zero when omitted.

    Returns:
        List of LandmarkObservation, in slot order.
    """
    centers = np.asarray(centers, dtype=float).reshape(-1, 2)
    if radii is None:
        radii = np.zeros(len(centers))
    radii = list(radii)
    if len(radii) != len(centers):
        raise ValueError(
            f"Got {len(centers)} centers but {len(radii)} radii"
        )
    return [
        LandmarkObservation(x=float(c[0]), y=float(c[1]), radius=float(r))
        for c, r in zip(centers, radii)
    ]
