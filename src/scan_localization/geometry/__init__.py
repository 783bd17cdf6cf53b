"""
Geometry helpers for scan localization.

Quaternions use (w, x, y, z) ordering throughout the package; rigid
transforms are 4x4 homogeneous matrices.
"""

from .transforms import (
    normalize_quaternion,
    quaternion_multiply,
    quaternion_conjugate,
    rotate_vector,
    quaternion_to_rotation_matrix,
    rotation_matrix_to_quaternion,
    quaternion_from_rotvec,
    make_transform,
    decompose_transform,
    invert_transform,
    transform_points,
    rotation_angle,
)

__all__ = [
    "normalize_quaternion",
    "quaternion_multiply",
    "quaternion_conjugate",
    "rotate_vector",
    "quaternion_to_rotation_matrix",
    "rotation_matrix_to_quaternion",
    "quaternion_from_rotvec",
    "make_transform",
    "decompose_transform",
    "invert_transform",
    "transform_points",
    "rotation_angle",
]
