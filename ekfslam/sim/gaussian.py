"""
Correlated zero-mean Gaussian noise generation.

Shapes independent standard-normal variates into noise with a requested
covariance using the lower-triangular Cholesky factor:

    Q = L L^T,    w = L s,    s ~ N(0, I)    =>    Cov(w) = Q

Used by the SLAM filter for process noise injected at every prediction and
for the noise injected into the expected range-bearing measurement.

Random source:
    Any object exposing ``standard_normal(size)`` can drive the sampler
    (``numpy.random.Generator`` does). When none is supplied, a single
    process-wide generator is created lazily on first use, seeded from OS
    entropy, and reused for every later draw. It is never reseeded and is
    not safe to share between threads without external locking.
"""

from typing import Optional, Protocol

import numpy as np
from scipy import linalg


class NormalSource(Protocol):
    """Anything that can draw independent standard-normal variates."""

    def standard_normal(self, size: int) -> np.ndarray:
        ...


_default_rng: Optional[np.random.Generator] = None


def get_default_rng() -> np.random.Generator:
    """
    Return the shared process-wide generator, creating it on first call.

    The generator is seeded from OS entropy exactly once.
    """
    global _default_rng
    if _default_rng is None:
        _default_rng = np.random.default_rng()
    return _default_rng


class GaussianSampler:
    """
    Zero-mean multivariate Gaussian sampler with a fixed covariance.

    The Cholesky factor is computed once at construction, so a covariance
    that is not positive-definite is rejected immediately rather than at
    the first draw.

    Attributes:
        covariance: Covariance matrix (n×n)
        L: Lower-triangular Cholesky factor, covariance = L @ L.T
        dim: Dimension n of the drawn vectors

    Example:
        >>> sampler = GaussianSampler(np.diag([0.01, 0.04]),
        ...                           rng=np.random.default_rng(0))
        >>> sampler.sample().shape
        (2,)
    """

    def __init__(self, covariance: np.ndarray, rng: Optional[NormalSource] = None):
        """
        Initialize sampler.

        Args:
            covariance: Symmetric positive-definite matrix (n×n).
            rng: Source of standard-normal variates. Defaults to the shared
                generator returned by get_default_rng().

        Raises:
            ValueError: If covariance is not square, not finite, or not
                positive-definite.
        """
        covariance = np.asarray(covariance, dtype=float)
        if covariance.ndim != 2 or covariance.shape[0] != covariance.shape[1]:
            raise ValueError(f"Covariance must be a square matrix, got shape {covariance.shape}")
        if not np.all(np.isfinite(covariance)):
            raise ValueError("Covariance must contain only finite values")

        try:
            L = linalg.cholesky(covariance, lower=True)
        except linalg.LinAlgError as exc:
            raise ValueError(
                f"Covariance is not positive-definite, Cholesky factorization failed: {exc}"
            ) from exc

        self.covariance = covariance
        self.L = L
        self.dim = covariance.shape[0]
        self._rng = rng

    @property
    def rng(self) -> NormalSource:
        if self._rng is None:
            return get_default_rng()
        return self._rng

    def sample(self) -> np.ndarray:
        """
        Draw one correlated noise vector.

        Returns:
            Noise vector L @ s with s ~ N(0, I), shape (n,).
        """
        samples = np.asarray(self.rng.standard_normal(self.dim), dtype=float)
        return self.L @ samples
