"""
Configuration parameters of the pose estimator.

All noise constants of the two filters live in one dataclass so that a
deployment can tune them without touching the estimator. Values are
validated on construction.
"""

from dataclasses import dataclass, asdict, fields
from typing import Any, Dict


@dataclass
class EstimatorConfig:
    """
    Noise and timing parameters of the pose estimator.

    Attributes:
        cool_time_duration: Seconds after initialization during which IMU
            prediction is suppressed
        position_process_noise: Process noise scale of the position block (per second)
        velocity_process_noise: Process noise scale of the velocity block (per second)
        orientation_process_noise: Process noise scale of the quaternion block (per second)
        bias_process_noise: Process noise scale of both bias blocks (per second)
        position_measurement_noise: Registration position noise
        orientation_measurement_noise: Registration quaternion noise
        initial_covariance: Diagonal scale of the initial IMU-filter covariance
        odom_process_noise: Baseline process noise of the odometry filter
        odom_measurement_noise: Registration noise seen by the odometry filter
        odom_initial_covariance: Diagonal scale of the initial odometry covariance
        odom_noise_floor: Floor added to the motion-adaptive odometry noise
        gravity: Gravity magnitude (m/s²), world z axis points up
        ukf_lambda: Sigma point scaling parameter
        min_eigenvalue: Covariance eigenvalue floor
    """
    cool_time_duration: float = 1.0

    position_process_noise: float = 1.0
    velocity_process_noise: float = 1.0
    orientation_process_noise: float = 0.5
    bias_process_noise: float = 1e-6

    position_measurement_noise: float = 0.01
    orientation_measurement_noise: float = 0.001

    initial_covariance: float = 0.01

    odom_process_noise: float = 1.0
    odom_measurement_noise: float = 1e-3
    odom_initial_covariance: float = 1e-2
    odom_noise_floor: float = 1e-3

    gravity: float = 9.80665
    ukf_lambda: float = 1.0
    min_eigenvalue: float = 1e-9

    def __post_init__(self):
        """Validate parameters."""
        if self.cool_time_duration < 0:
            raise ValueError(f"Cool time duration must be non-negative, got {self.cool_time_duration}")
        for name in ('position_process_noise', 'velocity_process_noise',
                     'orientation_process_noise', 'bias_process_noise',
                     'position_measurement_noise', 'orientation_measurement_noise',
                     'initial_covariance', 'odom_process_noise', 'odom_measurement_noise',
                     'odom_initial_covariance', 'ukf_lambda', 'min_eigenvalue'):
            value = getattr(self, name)
            if value <= 0:
                raise ValueError(f"{name} must be positive, got {value}")
        if self.odom_noise_floor < 0:
            raise ValueError(f"odom_noise_floor must be non-negative, got {self.odom_noise_floor}")

    @classmethod
    def from_dict(cls, values: Dict[str, Any]) -> 'EstimatorConfig':
        """
        Create a configuration from a plain dictionary.

        Raises:
            ValueError: If the dictionary contains unknown keys
        """
        known = {f.name for f in fields(cls)}
        unknown = set(values) - known
        if unknown:
            raise ValueError(f"Unknown estimator parameters: {sorted(unknown)}")
        return cls(**values)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)
