"""
Scan-to-map registration engines.

The estimator depends only on the Registration interface; the bundled
IterativeClosestPoint engine is a KD-tree point-to-point ICP.
"""

from .base import Registration
from .icp import IterativeClosestPoint, align_svd

__all__ = [
    "Registration",
    "IterativeClosestPoint",
    "align_svd"
]
