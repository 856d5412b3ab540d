"""Data structures and configuration for the SLAM filter.

Main components:
    - Twist2D: motion command consumed by EKFSlam.predict
    - LandmarkObservation: per-landmark scan result consumed by EKFSlam.correct
    - EKFSlamConfig, load_config: filter construction parameters
"""

from .config import EKFSlamConfig, load_config, save_config
from .types import LandmarkObservation, Twist2D, observations_from_centers

__all__ = [
    "EKFSlamConfig",
    "LandmarkObservation",
    "Twist2D",
    "load_config",
    "observations_from_centers",
    "save_config",
]
