"""EKF SLAM estimation core for a planar mobile robot.

This package estimates the robot pose together with the positions of a
fixed set of landmarks:
- estimators: the EKF SLAM filter (predict / correct)
- models: unicycle motion model and range-bearing measurement model
- sim: correlated Gaussian noise sampling
- slam: commands, observations and configuration
- utils: angle wrapping
"""

from ekfslam.estimators import EKFSlam
from ekfslam.slam import EKFSlamConfig, LandmarkObservation, Twist2D, load_config

__version__ = "0.1.0"

__all__ = [
    "EKFSlam",
    "EKFSlamConfig",
    "LandmarkObservation",
    "Twist2D",
    "load_config",
]
