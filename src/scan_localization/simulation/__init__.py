"""
Simulation components for scan localization.

This module contains ground-truth trajectory generation, a synthetic map with
range-scan simulation, and an end-to-end scenario runner for exercising the
pose estimator.

Components:
    - TrajectoryGenerator: Parametric trajectories with analytic kinematics
    - generate_map / simulate_scan: Synthetic global cloud and sensor-frame scans
    - run_scenario: IMU, odometry and scan streams driving a PoseEstimator
"""

from .trajectory import TrajectoryGenerator, TrajectoryParameters
from .environment import generate_map, simulate_scan
from .runner import ScenarioConfig, ScenarioResult, run_scenario

__all__ = [
    "TrajectoryGenerator",
    "TrajectoryParameters",
    "generate_map",
    "simulate_scan",
    "ScenarioConfig",
    "ScenarioResult",
    "run_scenario"
]
