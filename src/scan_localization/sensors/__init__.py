"""
Sensor models for scan localization.

This module contains simulated IMU and odometry sensors with realistic noise
models used to exercise the pose estimator.
"""

from .imu import IMUSensor, IMUMeasurement
from .odometry import OdometrySensor

__all__ = [
    "IMUSensor",
    "IMUMeasurement",
    "OdometrySensor"
]
