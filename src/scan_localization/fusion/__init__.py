"""
State filtering and fusion algorithms for scan localization.

This module implements the Unscented Kalman Filter engine, the inertial and
odometry process models it runs, and the information-form fusion that merges
two pose beliefs into a registration initial guess.
"""

from .kalman import StateFilter, UnscentedKalmanFilter, FilterDiagnostics, ensure_positive_finite
from .systems import StateSystem, PoseSystem, OdomSystem, odom_process_noise
from .information import PoseBelief, extract_pose_belief, fuse_pose_beliefs

__all__ = [
    "StateFilter",
    "UnscentedKalmanFilter",
    "FilterDiagnostics",
    "ensure_positive_finite",
    "StateSystem",
    "PoseSystem",
    "OdomSystem",
    "odom_process_noise",
    "PoseBelief",
    "extract_pose_belief",
    "fuse_pose_beliefs"
]
