"""
Ground-truth trajectory generation for localization scenarios.

This module produces smooth parametric vehicle trajectories together with the
analytic derivatives needed to synthesize IMU and odometry measurements.

Mathematical Framework:
    The figure-8 trajectory is generated using parametric equations:

        x(t) = R sin(ωt)
        y(t) = R sin(2ωt) / 2
        z(t) = H (1 + cos(2ωt)) / 2

    The circle trajectory:

        x(t) = R sin(ωt)
        y(t) = R (1 − cos(ωt))
        z(t) = H (1 + cos(ωt)) / 2

    The linear trajectory moves along x at the circle's speed 2πR/T.

    where ω = 2π/T is the angular frequency and T the trajectory period.

Orientation Model:
    The vehicle stays level and faces along its horizontal velocity:

        ψ(t) = atan2(ẏ, ẋ)
        ψ̇(t) = (ẋÿ − ẏẍ) / (ẋ² + ẏ²)

    so the body angular velocity is [0, 0, ψ̇].
"""

import numpy as np
from typing import Optional
import warnings
from dataclasses import dataclass

from ..geometry.transforms import make_transform


@dataclass
class TrajectoryParameters:
    """Physical parameters for trajectory generation with validation."""

    radius: float = 10.0          # Primary trajectory radius [m]
    height: float = 1.0           # Maximum elevation change [m]
    period: float = 40.0          # Trajectory completion period [s]
    trajectory_type: str = "figure8"  # Trajectory pattern type

    def __post_init__(self):
        """Validate trajectory parameters against physical constraints."""
        if self.radius <= 0:
            raise ValueError(f"Trajectory radius must be positive, got {self.radius}")
        if self.height < 0:
            raise ValueError(f"Height must be non-negative, got {self.height}")
        if self.period <= 0:
            raise ValueError(f"Period must be positive, got {self.period}")
        if self.trajectory_type not in ["figure8", "circle", "linear"]:
            raise ValueError(f"Unknown trajectory type: {self.trajectory_type}")


class TrajectoryGenerator:
    """
    Parametric 3D trajectory generator with analytic kinematics.

    Attributes:
        params (TrajectoryParameters): Physical trajectory parameters
    """

    def __init__(self, params: Optional[TrajectoryParameters] = None):
        """
        Initialize trajectory generator with validated parameters.

        Args:
            params: Trajectory generation parameters. If None, uses defaults.

        Raises:
            ValueError: If the trajectory exceeds safe velocity or acceleration limits
        """
        self.params = params if params is not None else TrajectoryParameters()
        self._time_samples = np.linspace(0, self.params.period, 1000)

        self._omega = 2 * np.pi / self.params.period

        self._validate_trajectory_feasibility()

    def _validate_trajectory_feasibility(self) -> None:
        max_vel = self.get_maximum_velocity()
        if max_vel > 15.0:
            raise ValueError(f"Maximum velocity {max_vel:.2f} m/s exceeds safe limits")
        elif max_vel > 10.0:
            warnings.warn(f"High maximum velocity {max_vel:.2f} m/s detected")

        max_acc = self.get_maximum_acceleration()
        if max_acc > 10.0:
            raise ValueError(f"Maximum acceleration {max_acc:.2f} m/s² exceeds safe limits")
        elif max_acc > 5.0:
            warnings.warn(f"High maximum acceleration {max_acc:.2f} m/s² detected")

    @staticmethod
    def _check_time(t) -> None:
        if not isinstance(t, (int, float, np.number)):
            raise TypeError(f"Time must be numeric, got {type(t)}")

    def get_position(self, t: float) -> np.ndarray:
        """
        Compute 3D position along trajectory at specified time.

        Args:
            t: Time parameter [s]

        Returns:
            3D position vector [x, y, z] in meters
        """
        self._check_time(t)
        R, H, wt = self.params.radius, self.params.height, self._omega * t

        if self.params.trajectory_type == "figure8":
            return np.array([R * np.sin(wt), R * np.sin(2 * wt) / 2,
                             H * (1 + np.cos(2 * wt)) / 2], dtype=np.float64)
        if self.params.trajectory_type == "circle":
            return np.array([R * np.sin(wt), R * (1 - np.cos(wt)),
                             H * (1 + np.cos(wt)) / 2], dtype=np.float64)
        return np.array([R * self._omega * t, 0.0, 0.0], dtype=np.float64)

    def get_velocity(self, t: float) -> np.ndarray:
        """
        Compute 3D velocity vector (analytic first derivative) at specified time.

        Args:
            t: Time parameter [s]

        Returns:
            3D velocity vector [vx, vy, vz] in m/s
        """
        self._check_time(t)
        R, H, w = self.params.radius, self.params.height, self._omega
        wt = w * t

        if self.params.trajectory_type == "figure8":
            return np.array([R * w * np.cos(wt), R * w * np.cos(2 * wt),
                             -H * w * np.sin(2 * wt)], dtype=np.float64)
        if self.params.trajectory_type == "circle":
            return np.array([R * w * np.cos(wt), R * w * np.sin(wt),
                             -H * w * np.sin(wt) / 2], dtype=np.float64)
        return np.array([R * w, 0.0, 0.0], dtype=np.float64)

    def get_acceleration(self, t: float) -> np.ndarray:
        """
        Compute 3D acceleration vector (analytic second derivative) at specified time.

        Args:
            t: Time parameter [s]

        Returns:
            3D acceleration vector [ax, ay, az] in m/s²
        """
        self._check_time(t)
        R, H, w = self.params.radius, self.params.height, self._omega
        wt = w * t
        omega_sq = w**2

        if self.params.trajectory_type == "figure8":
            return np.array([-R * omega_sq * np.sin(wt), -2 * R * omega_sq * np.sin(2 * wt),
                             -2 * H * omega_sq * np.cos(2 * wt)], dtype=np.float64)
        if self.params.trajectory_type == "circle":
            return np.array([-R * omega_sq * np.sin(wt), R * omega_sq * np.cos(wt),
                             -H * omega_sq * np.cos(wt) / 2], dtype=np.float64)
        return np.zeros(3, dtype=np.float64)

    def get_yaw(self, t: float) -> float:
        """Heading angle ψ = atan2(ẏ, ẋ) in radians."""
        v = self.get_velocity(t)
        return float(np.arctan2(v[1], v[0]))

    def get_orientation(self, t: float) -> np.ndarray:
        """
        Level, velocity-aligned body orientation.

        Returns:
            Unit quaternion (w, x, y, z)
        """
        half_yaw = 0.5 * self.get_yaw(t)
        return np.array([np.cos(half_yaw), 0.0, 0.0, np.sin(half_yaw)])

    def get_angular_velocity(self, t: float) -> np.ndarray:
        """
        Body-frame angular velocity [0, 0, ψ̇] in rad/s.
        """
        v = self.get_velocity(t)
        a = self.get_acceleration(t)
        horizontal_speed_sq = v[0]**2 + v[1]**2
        if horizontal_speed_sq < 1e-12:
            return np.zeros(3)
        yaw_rate = (v[0] * a[1] - v[1] * a[0]) / horizontal_speed_sq
        return np.array([0.0, 0.0, yaw_rate])

    def get_pose_matrix(self, t: float) -> np.ndarray:
        """Body-to-world 4x4 transform at time t."""
        return make_transform(self.get_position(t), self.get_orientation(t))

    def get_maximum_velocity(self) -> float:
        return max(np.linalg.norm(self.get_velocity(t)) for t in self._time_samples)

    def get_maximum_acceleration(self) -> float:
        return max(np.linalg.norm(self.get_acceleration(t)) for t in self._time_samples)

    def __repr__(self) -> str:
        return (f"TrajectoryGenerator(type={self.params.trajectory_type}, "
                f"radius={self.params.radius:.2f}m, height={self.params.height:.2f}m, "
                f"period={self.params.period:.2f}s)")
