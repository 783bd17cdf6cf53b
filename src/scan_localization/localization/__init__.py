"""
Pose estimation facade for scan localization.

PoseEstimator combines an IMU-driven filter, a lazily created odometry-driven
filter and a scan registration engine into one map-relative pose estimate.
"""

from .config import EstimatorConfig
from .pose_estimator import PoseEstimator, CorrectionPolicy

__all__ = [
    "EstimatorConfig",
    "PoseEstimator",
    "CorrectionPolicy"
]
