"""
Quaternion and rigid-body transform utilities.

All quaternions in this package are stored as numpy arrays in (w, x, y, z)
order, matching the layout of the filter state vectors. Rigid transforms are
4x4 homogeneous matrices:

    T = | R  t |
        | 0  1 |

Conversions between rotation matrices and quaternions are delegated to
scipy.spatial.transform.Rotation, which uses (x, y, z, w) ordering internally.

Quaternion Product (Hamilton convention):
    q1 ⊗ q2 = (w1w2 − v1·v2,  w1v2 + w2v1 + v1 × v2)
"""

import numpy as np
from scipy.spatial.transform import Rotation
from typing import Tuple


def normalize_quaternion(quaternion: np.ndarray) -> np.ndarray:
    """
    Return the unit quaternion pointing in the same direction.

    Args:
        quaternion: 4-element quaternion (w, x, y, z)

    Returns:
        Normalized copy of the quaternion

    Raises:
        ValueError: If the quaternion has zero norm or wrong size
    """
    q = np.asarray(quaternion, dtype=float)
    if q.shape != (4,):
        raise ValueError(f"Quaternion must have 4 elements, got shape {q.shape}")
    norm = np.linalg.norm(q)
    if norm < 1e-12:
        raise ValueError("Cannot normalize a zero-norm quaternion")
    return q / norm


def quaternion_multiply(q1: np.ndarray, q2: np.ndarray) -> np.ndarray:
    """Hamilton product q1 ⊗ q2 of two (w, x, y, z) quaternions."""
    w1, x1, y1, z1 = q1
    w2, x2, y2, z2 = q2
    return np.array([
        w1 * w2 - x1 * x2 - y1 * y2 - z1 * z2,
        w1 * x2 + x1 * w2 + y1 * z2 - z1 * y2,
        w1 * y2 - x1 * z2 + y1 * w2 + z1 * x2,
        w1 * z2 + x1 * y2 - y1 * x2 + z1 * w2
    ])


def quaternion_conjugate(quaternion: np.ndarray) -> np.ndarray:
    """Conjugate (inverse for unit quaternions)."""
    q = np.asarray(quaternion, dtype=float)
    return np.array([q[0], -q[1], -q[2], -q[3]])


def rotate_vector(quaternion: np.ndarray, vector: np.ndarray) -> np.ndarray:
    """
    Rotate a 3-vector by a unit quaternion.

    Uses the expanded form v' = v + 2w(u × v) + 2u × (u × v), which avoids
    building the full rotation matrix inside sigma-point loops.
    """
    w = quaternion[0]
    u = np.asarray(quaternion[1:4], dtype=float)
    v = np.asarray(vector, dtype=float)
    uv = np.cross(u, v)
    return v + 2.0 * w * uv + 2.0 * np.cross(u, uv)


def quaternion_to_rotation_matrix(quaternion: np.ndarray) -> np.ndarray:
    """Convert a (w, x, y, z) quaternion to a 3x3 rotation matrix."""
    q = normalize_quaternion(quaternion)
    return Rotation.from_quat([q[1], q[2], q[3], q[0]]).as_matrix()


def rotation_matrix_to_quaternion(rotation: np.ndarray) -> np.ndarray:
    """
    Convert a 3x3 rotation matrix to a (w, x, y, z) quaternion.

    The sign of the returned quaternion is not canonicalized; callers that
    need continuity must disambiguate it against a reference quaternion.
    """
    rotation = np.asarray(rotation, dtype=float)
    if rotation.shape != (3, 3):
        raise ValueError(f"Rotation matrix must be 3x3, got {rotation.shape}")
    x, y, z, w = Rotation.from_matrix(rotation).as_quat()
    return np.array([w, x, y, z])


def quaternion_from_rotvec(rotvec: np.ndarray) -> np.ndarray:
    """Quaternion (w, x, y, z) for an axis-angle rotation vector."""
    x, y, z, w = Rotation.from_rotvec(np.asarray(rotvec, dtype=float)).as_quat()
    return np.array([w, x, y, z])


def make_transform(position: np.ndarray, quaternion: np.ndarray) -> np.ndarray:
    """
    Build a 4x4 homogeneous transform from a position and orientation.

    Args:
        position: Translation [x, y, z]
        quaternion: Orientation (w, x, y, z), normalized before use

    Returns:
        4x4 rigid transform
    """
    T = np.eye(4)
    T[0:3, 0:3] = quaternion_to_rotation_matrix(quaternion)
    T[0:3, 3] = np.asarray(position, dtype=float)
    return T


def decompose_transform(transform: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
    """
    Split a 4x4 transform into translation and (w, x, y, z) quaternion.

    Returns:
        Tuple of (translation, quaternion)
    """
    transform = np.asarray(transform, dtype=float)
    if transform.shape != (4, 4):
        raise ValueError(f"Transform must be 4x4, got {transform.shape}")
    return transform[0:3, 3].copy(), rotation_matrix_to_quaternion(transform[0:3, 0:3])


def invert_transform(transform: np.ndarray) -> np.ndarray:
    """Closed-form inverse of a rigid transform: (Rᵀ, −Rᵀt)."""
    R = transform[0:3, 0:3]
    t = transform[0:3, 3]
    inverse = np.eye(4)
    inverse[0:3, 0:3] = R.T
    inverse[0:3, 3] = -R.T @ t
    return inverse


def transform_points(transform: np.ndarray, points: np.ndarray) -> np.ndarray:
    """
    Apply a rigid transform to an (N, 3) point array.

    Raises:
        ValueError: If points is not an (N, 3) array
    """
    points = np.asarray(points, dtype=float)
    if points.ndim != 2 or points.shape[1] != 3:
        raise ValueError(f"Points must be an Nx3 array, got shape {points.shape}")
    return points @ transform[0:3, 0:3].T + transform[0:3, 3]


def rotation_angle(transform: np.ndarray) -> float:
    """
    Geodesic rotation angle (radians) of the rotation block of a transform.

    θ = atan2(‖vee(R − Rᵀ)‖, tr(R) − 1), which stays accurate near θ = 0
    where arccos((tr(R) − 1)/2) loses half the significant digits.
    """
    R = np.asarray(transform, dtype=float)[0:3, 0:3]
    skew = np.array([R[2, 1] - R[1, 2], R[0, 2] - R[2, 0], R[1, 0] - R[0, 1]])
    return float(np.arctan2(np.linalg.norm(skew), np.trace(R) - 1.0))
