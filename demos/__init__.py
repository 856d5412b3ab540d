"""Runnable EKF SLAM examples.

Examples:
    - example_ekf_slam.py: robot circling four landmarks, with plots

Dependencies:
    - ekfslam: filter, models, observation types
    - matplotlib: Visualization
    - tqdm: Progress bars
"""

__all__ = []
