"""
Information-form fusion of independent pose beliefs.

Two Gaussian beliefs over the same 7-dimensional pose (position, quaternion)
are combined by adding their information matrices:

    Σ_f = (Σ_a⁻¹ + Σ_b⁻¹)⁻¹
    μ_f = Σ_f Σ_a⁻¹ μ_a + Σ_f Σ_b⁻¹ μ_b

The result is only used as the initial guess of scan registration; it never
replaces either filter's own belief.
"""

import numpy as np
from dataclasses import dataclass

from ..geometry.transforms import make_transform, normalize_quaternion

# position (0:3) and orientation (6:10) entries of the 16-dimensional IMU state
POSE_INDICES = np.array([0, 1, 2, 6, 7, 8, 9])


@dataclass
class PoseBelief:
    """
    Gaussian belief over a pose.

    Attributes:
        mean: [px, py, pz, qw, qx, qy, qz]
        covariance: 7x7 covariance matrix co-indexed with mean
    """
    mean: np.ndarray
    covariance: np.ndarray

    def __post_init__(self):
        self.mean = np.asarray(self.mean, dtype=float)
        self.covariance = np.asarray(self.covariance, dtype=float)
        if self.mean.shape != (7,):
            raise ValueError(f"Pose mean must have 7 elements, got {self.mean.shape}")
        if self.covariance.shape != (7, 7):
            raise ValueError(f"Pose covariance must be 7x7, got {self.covariance.shape}")

    @property
    def position(self) -> np.ndarray:
        return self.mean[0:3].copy()

    @property
    def quaternion(self) -> np.ndarray:
        """Normalized orientation (w, x, y, z)."""
        return normalize_quaternion(self.mean[3:7])

    def to_matrix(self) -> np.ndarray:
        """4x4 rigid transform of the mean pose."""
        return make_transform(self.position, self.quaternion)


def extract_pose_belief(mean: np.ndarray, cov: np.ndarray) -> PoseBelief:
    """
    Restrict a 16-dimensional IMU-filter belief to its pose sub-space.

    Velocity and bias entries are dropped together with their cross
    covariances.
    """
    mean = np.asarray(mean, dtype=float)
    cov = np.asarray(cov, dtype=float)
    return PoseBelief(mean[POSE_INDICES], cov[np.ix_(POSE_INDICES, POSE_INDICES)])


def fuse_pose_beliefs(first: PoseBelief, second: PoseBelief) -> PoseBelief:
    """
    Combine two independent pose beliefs by inverse-covariance weighting.

    Args:
        first: Belief of the first estimator
        second: Belief of the second estimator

    Returns:
        Fused belief (quaternion entries are not renormalized in the mean)

    Raises:
        numpy.linalg.LinAlgError: If a covariance or the information sum is singular
    """
    inv_first = np.linalg.inv(first.covariance)
    inv_second = np.linalg.inv(second.covariance)

    fused_cov = np.linalg.inv(inv_first + inv_second)
    fused_mean = fused_cov @ inv_first @ first.mean + fused_cov @ inv_second @ second.mean

    return PoseBelief(fused_mean, fused_cov)
