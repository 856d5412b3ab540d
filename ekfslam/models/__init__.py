"""
Motion and measurement models for landmark EKF SLAM.

The motion model integrates a body twist over one time unit; the
measurement model maps the state to range-bearing observations of a
single landmark slot.
"""

from .motion_models import (
    unicycle_delta,
    motion_jacobian,
    embed_process_noise,
)

from .measurement_models import (
    landmark_slot,
    landmark_offset,
    range_bearing,
    range_bearing_jacobian,
    range_bearing_innovation,
)

__all__ = [
    # Motion model
    'unicycle_delta',
    'motion_jacobian',
    'embed_process_noise',

    # Measurement model
    'landmark_slot',
    'landmark_offset',
    'range_bearing',
    'range_bearing_jacobian',
    'range_bearing_innovation',
]
