"""
Utility functions for the SLAM estimator.

This module provides the angle helpers used by the motion and
measurement models.
"""

from .angles import wrap_angle, wrap_angle_array, angle_diff

__all__ = [
    'wrap_angle',
    'wrap_angle_array',
    'angle_diff',
]
