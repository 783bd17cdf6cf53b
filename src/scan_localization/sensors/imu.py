"""
IMU sensor simulation with bias drift.

This module implements an Inertial Measurement Unit (IMU) model producing the
raw specific force and angular rate consumed by the pose estimator.

IMU Measurement Model:
    z_accel = Rᵀ (a_world + g) + b_a + n_a
    z_gyro  = ω_body + b_g + n_g

    where:
    - R: body-to-world rotation of the vehicle
    - a_world: true acceleration in the world frame (z up)
    - g = (0, 0, 9.80665): gravity reaction measured by a resting accelerometer
    - b_a, b_g: time-varying bias vectors
    - n_a, n_g: zero-mean Gaussian noise

Bias Drift Model:
    b(t+1) = b(t) + w_drift,  w_drift ~ N(0, (drift_rate·dt)²)
"""

import numpy as np
from dataclasses import dataclass
from typing import Optional

from ..geometry.transforms import quaternion_conjugate, rotate_vector


@dataclass
class IMUMeasurement:
    """
    One IMU sample.

    Attributes:
        timestamp: Sample time (s)
        acceleration: Specific force [ax, ay, az] (m/s²)
        angular_velocity: Angular rate [ωx, ωy, ωz] (rad/s)
    """
    timestamp: float
    acceleration: np.ndarray
    angular_velocity: np.ndarray


class IMUSensor:
    """
    IMU sensor with bias drift.

    Attributes:
        accel_noise_std: Accelerometer noise standard deviation (m/s²)
        gyro_noise_std: Gyroscope noise standard deviation (rad/s)
        bias_drift_rate: Bias random-walk rate (sensor units/s)
        gravity: Gravity magnitude (m/s²)
        accel_bias: Current accelerometer bias [x, y, z]
        gyro_bias: Current gyroscope bias [x, y, z]
    """

    def __init__(self, accel_noise_std: float = 0.05, gyro_noise_std: float = 0.01,
                 bias_drift_rate: float = 0.001, gravity: float = 9.80665,
                 rng: Optional[np.random.Generator] = None):
        """
        Initialize IMU sensor with specified noise characteristics.

        Raises:
            ValueError: If noise parameters are negative
        """
        if accel_noise_std < 0 or gyro_noise_std < 0:
            raise ValueError("IMU noise standard deviations must be non-negative")
        if bias_drift_rate < 0:
            raise ValueError("Bias drift rate must be non-negative")

        self.accel_noise_std = accel_noise_std
        self.gyro_noise_std = gyro_noise_std
        self.bias_drift_rate = bias_drift_rate
        self.gravity = np.array([0.0, 0.0, gravity])
        self.rng = rng if rng is not None else np.random.default_rng()

        # Accelerometer bias typically 0.01-0.05 m/s², gyroscope 0.001-0.01 rad/s
        self.accel_bias = self.rng.normal(0, 0.02, 3) if bias_drift_rate > 0 else np.zeros(3)
        self.gyro_bias = self.rng.normal(0, 0.002, 3) if bias_drift_rate > 0 else np.zeros(3)

    def update_bias_drift(self, dt: float) -> None:
        """Random-walk both biases over a time step."""
        if dt <= 0:
            raise ValueError("Time step must be positive")
        self.accel_bias += self.rng.normal(0, self.bias_drift_rate * dt, 3)
        self.gyro_bias += self.rng.normal(0, self.bias_drift_rate * dt, 3)

    def get_measurement(self, timestamp: float, true_acceleration: np.ndarray,
                        orientation: np.ndarray, true_angular_velocity: np.ndarray,
                        dt: float) -> IMUMeasurement:
        """
        Generate an IMU sample.

        Args:
            timestamp: Sample time (s)
            true_acceleration: World-frame acceleration [x, y, z] (m/s²)
            orientation: Body-to-world quaternion (w, x, y, z)
            true_angular_velocity: Body-frame angular velocity (rad/s)
            dt: Time since the previous sample, drives bias drift

        Raises:
            ValueError: If input vectors are not 3D
        """
        if len(true_acceleration) != 3 or len(true_angular_velocity) != 3:
            raise ValueError("IMU requires 3D acceleration and angular velocity inputs")

        self.update_bias_drift(dt)

        specific_force = rotate_vector(quaternion_conjugate(orientation),
                                       np.asarray(true_acceleration, dtype=float) + self.gravity)

        acceleration = specific_force + self.accel_bias + self.rng.normal(0, self.accel_noise_std, 3)
        angular_velocity = (np.asarray(true_angular_velocity, dtype=float) + self.gyro_bias
                            + self.rng.normal(0, self.gyro_noise_std, 3))

        return IMUMeasurement(timestamp, acceleration, angular_velocity)
