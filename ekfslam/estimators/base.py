"""
Base class for recursive state estimators.

Defines the predict/update interface shared by the SLAM filter.
"""

from abc import ABC, abstractmethod
from typing import Any, Optional, Tuple

import numpy as np


class StateEstimator(ABC):
    """Abstract base class for recursive state estimators."""

    def __init__(self, state_dim: int):
        """
        Initialize state estimator.

        Args:
            state_dim: Dimension of the state vector.
        """
        self.state_dim = state_dim
        self.state: Optional[np.ndarray] = None
        self.covariance: Optional[np.ndarray] = None

    @abstractmethod
    def predict(self, u: Any = None) -> None:
        """
        Perform prediction step (time update).

        Args:
            u: Control input.
        """
        pass

    @abstractmethod
    def update(self, z: Any) -> Any:
        """
        Perform measurement update (correction step).

        Args:
            z: Measurement.
        """
        pass

    def get_state(self) -> Tuple[np.ndarray, np.ndarray]:
        """
        Get current state estimate and covariance.

        Returns:
            Tuple of (state_vector, covariance_matrix), both copies.
        """
        if self.state is None or self.covariance is None:
            raise RuntimeError("Estimator not initialized.")
        return self.state.copy(), self.covariance.copy()
