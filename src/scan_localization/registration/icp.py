"""
Point-to-point Iterative Closest Point registration in 3D.

Iteratively aligns a source scan to a target map by alternating between:
    1. Nearest-neighbour correspondences gated by a maximum distance:
           b_ij = 1 if ‖T p_j − m_i‖ ≤ d_max else 0
    2. The closed-form rigid alignment of the matched pairs (Kabsch/SVD):
           H = Σ (p − p̄)(m − m̄)ᵀ = U Σ Vᵀ
           R = V diag(1, 1, det(VUᵀ)) Uᵀ
           t = m̄ − R p̄

Convergence is declared when the incremental transform falls below the
translation and rotation epsilons.
"""

import numpy as np
from scipy.spatial import cKDTree
from typing import Optional, Tuple
import logging

from .base import Registration
from ..geometry.transforms import transform_points, rotation_angle

logger = logging.getLogger(__name__)


def align_svd(source_points: np.ndarray, target_points: np.ndarray) -> np.ndarray:
    """
    Optimal rigid transform mapping source points onto corresponding targets.

    Args:
        source_points: Source points, shape (N, 3)
        target_points: Corresponding target points, shape (N, 3)

    Returns:
        4x4 rigid transform

    Raises:
        ValueError: If shapes differ or fewer than 3 correspondences are given
    """
    if source_points.shape != target_points.shape:
        raise ValueError(f"Point clouds must have same shape. "
                         f"Got source={source_points.shape}, target={target_points.shape}")
    if source_points.shape[0] < 3:
        raise ValueError(f"Need at least 3 correspondences for SVD alignment, "
                         f"got {source_points.shape[0]}")

    centroid_source = np.mean(source_points, axis=0)
    centroid_target = np.mean(target_points, axis=0)

    H = (source_points - centroid_source).T @ (target_points - centroid_target)
    U, _, Vt = np.linalg.svd(H)

    # reflection correction
    D = np.eye(3)
    D[2, 2] = np.sign(np.linalg.det(Vt.T @ U.T)) or 1.0
    R = Vt.T @ D @ U.T

    T = np.eye(4)
    T[0:3, 0:3] = R
    T[0:3, 3] = centroid_target - R @ centroid_source
    return T


class IterativeClosestPoint(Registration):
    """
    Point-to-point ICP against a KD-tree indexed map.

    Attributes:
        max_iterations: Iteration limit per alignment
        max_correspondence_distance: Correspondence gating distance (m)
        transformation_epsilon: Translation convergence threshold (m)
        rotation_epsilon: Rotation convergence threshold (rad)
        min_correspondences: Minimum matched pairs needed to continue
    """

    def __init__(self, max_iterations: int = 50, max_correspondence_distance: float = 1.0,
                 transformation_epsilon: float = 1e-6, rotation_epsilon: float = 1e-6,
                 min_correspondences: int = 3):
        if max_iterations <= 0:
            raise ValueError(f"max_iterations must be positive, got {max_iterations}")
        if max_correspondence_distance <= 0:
            raise ValueError("max_correspondence_distance must be positive")
        if min_correspondences < 3:
            raise ValueError("min_correspondences must be at least 3")

        self.max_iterations = max_iterations
        self.max_correspondence_distance = max_correspondence_distance
        self.transformation_epsilon = transformation_epsilon
        self.rotation_epsilon = rotation_epsilon
        self.min_correspondences = min_correspondences

        self._target: Optional[np.ndarray] = None
        self._tree: Optional[cKDTree] = None
        self._source: Optional[np.ndarray] = None

        self._final_transformation = np.eye(4)
        self._converged = False
        self._fitness_score = float('inf')
        self._iterations = 0

    @staticmethod
    def _checked_cloud(cloud: np.ndarray, name: str) -> np.ndarray:
        cloud = np.asarray(cloud, dtype=float)
        if cloud.ndim != 2 or cloud.shape[1] != 3:
            raise ValueError(f"{name} must be an Nx3 array, got shape {cloud.shape}")
        if cloud.shape[0] == 0:
            raise ValueError(f"{name} is empty")
        return cloud

    def set_input_target(self, cloud: np.ndarray) -> None:
        self._target = self._checked_cloud(cloud, "Target cloud")
        self._tree = cKDTree(self._target)
        logger.info(f"ICP target set with {len(self._target)} points")

    def set_input_source(self, cloud: np.ndarray) -> None:
        self._source = self._checked_cloud(cloud, "Source cloud")

    def _find_correspondences(self, points: np.ndarray) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        distances, indices = self._tree.query(points, k=1,
                                              distance_upper_bound=self.max_correspondence_distance)
        valid = np.isfinite(distances)
        return points[valid], self._target[indices[valid]], distances[valid]

    def align(self, initial_guess: np.ndarray) -> np.ndarray:
        """
        Align the source cloud to the target starting from initial_guess.

        Raises:
            RuntimeError: If source or target has not been set
        """
        if self._tree is None or self._source is None:
            raise RuntimeError("Source and target clouds must be set before align()")

        current = np.asarray(initial_guess, dtype=float).copy()
        if current.shape != (4, 4):
            raise ValueError(f"Initial guess must be a 4x4 transform, got {current.shape}")

        self._converged = False
        self._fitness_score = float('inf')

        for iteration in range(self.max_iterations):
            self._iterations = iteration + 1
            transformed = transform_points(current, self._source)
            matched_source, matched_target, distances = self._find_correspondences(transformed)

            if len(matched_source) < self.min_correspondences:
                logger.warning(f"ICP stopped after {iteration + 1} iterations: "
                               f"only {len(matched_source)} correspondences")
                break

            self._fitness_score = float(np.mean(distances ** 2))

            delta = align_svd(matched_source, matched_target)
            current = delta @ current

            if (np.linalg.norm(delta[0:3, 3]) < self.transformation_epsilon
                    and rotation_angle(delta) < self.rotation_epsilon):
                self._converged = True
                break

        self._final_transformation = current
        logger.debug(f"ICP finished: iterations={self._iterations}, converged={self._converged}, "
                     f"fitness={self._fitness_score:.4f}")
        return transform_points(current, self._source)

    def get_final_transformation(self) -> np.ndarray:
        return self._final_transformation.copy()

    def has_converged(self) -> bool:
        return self._converged

    def get_fitness_score(self) -> float:
        return self._fitness_score

    @property
    def iterations(self) -> int:
        """Iterations performed by the last align() call."""
        return self._iterations
