"""Configuration for the EKF SLAM filter.

Example scripts keep filter settings in a ``config.json`` next to their
data. The layout is:

    {
        "n_landmarks": 3,
        "process_noise": [[...], [...], [...]],
        "measurement_noise": [[...], [...]],
        "initial_landmark_variance": 10000.0
    }

``initial_landmark_variance`` is optional.
"""

import json
import warnings
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Union

import numpy as np


DEFAULT_LANDMARK_VARIANCE = 10000.0


def _as_covariance(value: Any, dim: int, name: str) -> np.ndarray:
    M = np.asarray(value, dtype=float)
    if M.shape != (dim, dim):
        raise ValueError(f"{name} must be {dim}x{dim}, got shape {M.shape}")
    if not np.all(np.isfinite(M)):
        raise ValueError(f"{name} must contain only finite values")
    if not np.allclose(M, M.T):
        raise ValueError(f"{name} must be symmetric")
    return M


@dataclass(frozen=True)
class EKFSlamConfig:
    """
    Filter construction parameters.

    Attributes:
        n_landmarks: Number of landmark slots N, fixed for the filter lifetime.
        process_noise: Pose process noise covariance Q (3×3), ordered [θ, x, y].
        measurement_noise: Range-bearing noise covariance R (2×2).
        initial_landmark_variance: Diagonal of the initial landmark covariance
            block. Large values mean "position unknown".

    Positive-definiteness of Q and R is checked when the filter factors
    them, not here.
    """

    n_landmarks: int
    process_noise: np.ndarray = field(repr=False)
    measurement_noise: np.ndarray = field(repr=False)
    initial_landmark_variance: float = DEFAULT_LANDMARK_VARIANCE

    def __post_init__(self) -> None:
        """Validate and normalize parameters."""
        if isinstance(self.n_landmarks, bool) or not isinstance(self.n_landmarks, (int, np.integer)):
            raise TypeError(f"n_landmarks must be an integer, got {type(self.n_landmarks)}")
        if self.n_landmarks < 0:
            raise ValueError(f"n_landmarks must be non-negative, got {self.n_landmarks}")

        # frozen dataclass: normalize through object.__setattr__
        object.__setattr__(self, "n_landmarks", int(self.n_landmarks))
        object.__setattr__(
            self, "process_noise", _as_covariance(self.process_noise, 3, "process_noise")
        )
        object.__setattr__(
            self, "measurement_noise", _as_covariance(self.measurement_noise, 2, "measurement_noise")
        )

        variance = self.initial_landmark_variance
        if not isinstance(variance, (float, int)) or not np.isfinite(variance) or variance <= 0:
            raise ValueError(
                f"initial_landmark_variance must be a positive finite number, got {variance}"
            )
        object.__setattr__(self, "initial_landmark_variance", float(variance))

        if self.initial_landmark_variance < np.max(np.diag(self.process_noise)):
            warnings.warn(
                f"initial_landmark_variance ({self.initial_landmark_variance}) is smaller "
                "than the process noise; landmarks will be treated as well known.",
                UserWarning,
            )

    @property
    def state_dim(self) -> int:
        return 3 + 2 * self.n_landmarks

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EKFSlamConfig":
        """
        Build a config from a parsed ``config.json`` mapping.

        Raises:
            KeyError: If a required key is missing.
        """
        return cls(
            n_landmarks=data["n_landmarks"],
            process_noise=data["process_noise"],
            measurement_noise=data["measurement_noise"],
            initial_landmark_variance=data.get(
                "initial_landmark_variance", DEFAULT_LANDMARK_VARIANCE
            ),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Inverse of from_dict, JSON serializable."""
        return {
            "n_landmarks": self.n_landmarks,
            "process_noise": self.process_noise.tolist(),
            "measurement_noise": self.measurement_noise.tolist(),
            "initial_landmark_variance": self.initial_landmark_variance,
        }


def load_config(path: Union[str, Path]) -> EKFSlamConfig:
    """
    Load filter configuration from a JSON file.

    Args:
        path: Path to the JSON file, or to a directory containing
            ``config.json``.

    Returns:
        Parsed EKFSlamConfig.
    """
    path = Path(path)
    if path.is_dir():
        path = path / "config.json"

    with open(path) as f:
        return EKFSlamConfig.from_dict(json.load(f))


def save_config(config: EKFSlamConfig, path: Union[str, Path]) -> None:
    """Write configuration as JSON."""
    with open(path, "w") as f:
        json.dump(config.to_dict(), f, indent=2)
