"""
Noise generation for the SLAM estimator.

Modules:
    gaussian: Correlated Gaussian noise via Cholesky factorization
"""

from ekfslam.sim.gaussian import (
    GaussianSampler,
    NormalSource,
    get_default_rng,
)

__all__ = [
    "GaussianSampler",
    "NormalSource",
    "get_default_rng",
]
