"""
State estimators.

Available estimators:
    - EKF SLAM with range-bearing landmark observations
"""

from ekfslam.estimators.base import StateEstimator
from ekfslam.estimators.ekf_slam import EKFSlam

__all__ = [
    "StateEstimator",
    "EKFSlam",
]
