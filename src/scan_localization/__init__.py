"""
Scan Localization: 6-DoF pose estimation against a prebuilt point-cloud map

A scientific Python package for localizing a vehicle by fusing inertial and
odometry predictions with scan-to-map registration.

This package implements:
- Unscented Kalman Filters for IMU-driven and odometry-driven pose prediction
- Information-form fusion of the two pose beliefs as a registration guess
- A point-to-point ICP registration engine
- Simulated sensors, a synthetic map and an end-to-end demo scenario
"""

from .localization.pose_estimator import PoseEstimator
from .localization.config import EstimatorConfig
from .fusion.kalman import UnscentedKalmanFilter
from .fusion.systems import PoseSystem, OdomSystem
from .fusion.information import PoseBelief, fuse_pose_beliefs
from .registration.base import Registration
from .registration.icp import IterativeClosestPoint

__version__ = "1.0.0"
__author__ = "Scan Localization Team"

__all__ = [
    "PoseEstimator",
    "EstimatorConfig",
    "UnscentedKalmanFilter",
    "PoseSystem",
    "OdomSystem",
    "PoseBelief",
    "fuse_pose_beliefs",
    "Registration",
    "IterativeClosestPoint"
]
