"""
End-to-end localization scenario.

A simulated vehicle follows a ground-truth trajectory through a synthetic
map. IMU samples, odometry increments and range scans are generated at their
own rates on a common clock driven by the IMU:

    IMU tick k:  t = k / imu_rate
        every tick                     -> PoseEstimator.predict
        every imu_rate/odom_rate ticks -> PoseEstimator.predict_odom
        every imu_rate/scan_rate ticks -> PoseEstimator.correct

The estimator starts at the true initial pose. Position errors are recorded
right after each correction.
"""

import numpy as np
from dataclasses import dataclass
from typing import Any, Dict, List, Optional
import logging

from ..localization.config import EstimatorConfig
from ..localization.pose_estimator import PoseEstimator
from ..registration.icp import IterativeClosestPoint
from ..sensors.imu import IMUSensor
from ..sensors.odometry import OdometrySensor
from .environment import generate_map, simulate_scan
from .trajectory import TrajectoryGenerator, TrajectoryParameters

logger = logging.getLogger(__name__)


@dataclass
class ScenarioConfig:
    """Parameters of a simulated localization run."""

    duration: float = 20.0            # Simulated time [s]
    imu_rate: float = 100.0           # IMU sample rate [Hz]
    odom_rate: float = 20.0           # Odometry rate [Hz]
    scan_rate: float = 5.0            # Range scan rate [Hz]
    seed: Optional[int] = 0           # Random seed, None for non-deterministic runs
    use_odometry: bool = True         # Feed odometry into the estimator
    cool_time: float = 0.5            # Estimator cool time [s]
    trajectory_type: str = "figure8"  # figure8, circle or linear
    scan_max_range: float = 30.0      # Sensor range [m]
    scan_noise_std: float = 0.02      # Scan point noise [m]
    scan_max_points: int = 1000       # Points kept per scan

    def __post_init__(self):
        if self.duration <= 0:
            raise ValueError(f"Duration must be positive, got {self.duration}")
        if self.imu_rate <= 0 or self.odom_rate <= 0 or self.scan_rate <= 0:
            raise ValueError("Sensor rates must be positive")
        if self.odom_rate > self.imu_rate or self.scan_rate > self.imu_rate:
            raise ValueError("Odometry and scan rates cannot exceed the IMU rate")
        if self.cool_time < 0:
            raise ValueError(f"Cool time must be non-negative, got {self.cool_time}")
        if self.scan_max_points < 3:
            raise ValueError("Scans need at least 3 points")


@dataclass
class ScenarioResult:
    """
    Recorded outcome of a scenario, one row per applied correction.

    Attributes:
        times: Correction timestamps (s)
        true_positions: Ground-truth positions, shape (N, 3)
        estimated_positions: Corrected estimator positions, shape (N, 3)
        odom_positions: Odometry-filter positions, shape (N, 3), NaN rows before
            the odometry filter exists, None without odometry
        position_errors: ‖estimate − truth‖ per correction (m)
        prediction_errors: Translation of the IMU prediction error per correction (m)
        final_state: Estimator state dictionary at the end of the run
    """
    times: np.ndarray
    true_positions: np.ndarray
    estimated_positions: np.ndarray
    odom_positions: Optional[np.ndarray]
    position_errors: np.ndarray
    prediction_errors: np.ndarray
    final_state: Dict[str, Any]

    @property
    def num_corrections(self) -> int:
        return len(self.times)

    def summary(self) -> Dict[str, float]:
        """Position error statistics of the run."""
        if self.num_corrections == 0:
            return {'corrections': 0}
        errors = self.position_errors
        return {
            'corrections': self.num_corrections,
            'rmse': float(np.sqrt(np.mean(errors**2))),
            'max_error': float(np.max(errors)),
            'mean_error': float(np.mean(errors)),
            'final_error': float(errors[-1]),
            'mean_prediction_error': float(np.mean(self.prediction_errors))
        }


def run_scenario(config: Optional[ScenarioConfig] = None) -> ScenarioResult:
    """
    Simulate sensors along a trajectory and run the pose estimator on them.

    Args:
        config: Scenario parameters, defaults to ScenarioConfig()

    Returns:
        Recorded estimates and errors
    """
    config = config if config is not None else ScenarioConfig()
    rng = np.random.default_rng(config.seed)

    trajectory = TrajectoryGenerator(TrajectoryParameters(trajectory_type=config.trajectory_type))
    global_map = generate_map(rng=rng)

    registration = IterativeClosestPoint(max_iterations=30, max_correspondence_distance=2.0,
                                         transformation_epsilon=1e-4, rotation_epsilon=1e-4)
    registration.set_input_target(global_map)

    estimator = PoseEstimator(registration, 0.0, trajectory.get_position(0.0),
                              trajectory.get_orientation(0.0),
                              config=EstimatorConfig(cool_time_duration=config.cool_time))

    imu = IMUSensor(rng=rng)
    odometry = OdometrySensor(rng=rng)

    imu_dt = 1.0 / config.imu_rate
    odom_every = max(1, int(round(config.imu_rate / config.odom_rate)))
    scan_every = max(1, int(round(config.imu_rate / config.scan_rate)))
    num_ticks = int(np.floor(config.duration * config.imu_rate)) + 1

    logger.info(f"Running {config.trajectory_type} scenario: {config.duration:.1f}s, "
                f"{len(global_map)} map points, odometry={'on' if config.use_odometry else 'off'}")

    times: List[float] = []
    true_positions: List[np.ndarray] = []
    estimated_positions: List[np.ndarray] = []
    odom_positions: List[np.ndarray] = []
    prediction_errors: List[float] = []

    for k in range(num_ticks):
        t = k * imu_dt
        true_pose = trajectory.get_pose_matrix(t)

        sample = imu.get_measurement(t, trajectory.get_acceleration(t),
                                     trajectory.get_orientation(t),
                                     trajectory.get_angular_velocity(t), imu_dt)
        estimator.predict(t, sample.acceleration, sample.angular_velocity)

        if config.use_odometry and k % odom_every == 0:
            delta = odometry.get_measurement(true_pose)
            if delta is not None:
                estimator.predict_odom(delta)

        if k > 0 and k % scan_every == 0:
            scan = simulate_scan(global_map, true_pose, config.scan_max_range,
                                 config.scan_noise_std, rng, config.scan_max_points)
            if len(scan) < 3:
                logger.warning(f"Scan at t={t:.2f} has {len(scan)} points, skipped")
                continue

            estimator.correct(t, scan)

            times.append(t)
            true_positions.append(true_pose[0:3, 3])
            estimated_positions.append(estimator.position)
            if config.use_odometry:
                odom_positions.append(estimator.odom_position if estimator.has_odom_estimate
                                      else np.full(3, np.nan))
            prediction_errors.append(float(np.linalg.norm(estimator.imu_prediction_error[0:3, 3])))

    true_array = np.array(true_positions).reshape(-1, 3)
    estimated_array = np.array(estimated_positions).reshape(-1, 3)

    result = ScenarioResult(
        times=np.array(times),
        true_positions=true_array,
        estimated_positions=estimated_array,
        odom_positions=np.array(odom_positions).reshape(-1, 3) if config.use_odometry else None,
        position_errors=np.linalg.norm(estimated_array - true_array, axis=1),
        prediction_errors=np.array(prediction_errors),
        final_state=estimator.get_state_dict()
    )

    summary = result.summary()
    if result.num_corrections > 0:
        logger.info(f"Scenario finished: {summary['corrections']} corrections, "
                    f"RMSE={summary['rmse']:.3f}m, max={summary['max_error']:.3f}m")
    return result
