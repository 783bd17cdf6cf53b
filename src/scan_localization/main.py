#!/usr/bin/env python3
"""
Scan localization demo.

Simulates a vehicle driving through a synthetic map with an IMU, odometry and
a range sensor, and localizes it with the dual-UKF pose estimator corrected
by ICP scan-to-map registration.

Run with: scan-localization-demo --duration 20 --plot
"""

import argparse
import logging
from typing import List, Optional

import numpy as np

from .simulation.runner import ScenarioConfig, ScenarioResult, run_scenario
from .visualization.plotter import TrajectoryPlotter

logger = logging.getLogger(__name__)


def print_report(result: ScenarioResult) -> None:
    """Print the scenario performance summary"""
    summary = result.summary()

    print()
    print("=== Localization Results ===")
    print(f"Corrections applied: {summary['corrections']}")
    if result.num_corrections == 0:
        print("No corrections were applied, nothing to report")
        return

    print(f"Position RMSE:        {summary['rmse']:.3f} m")
    print(f"Maximum error:        {summary['max_error']:.3f} m")
    print(f"Mean error:           {summary['mean_error']:.3f} m")
    print(f"Final error:          {summary['final_error']:.3f} m")
    print(f"Mean IMU prediction error: {summary['mean_prediction_error']:.3f} m")

    if result.odom_positions is not None:
        valid = np.all(np.isfinite(result.odom_positions), axis=1)
        if np.any(valid):
            odom_errors = np.linalg.norm(result.odom_positions[valid] - result.true_positions[valid],
                                         axis=1)
            print(f"Odometry filter RMSE: {np.sqrt(np.mean(odom_errors**2)):.3f} m")


def plot_result(result: ScenarioResult, save_path: Optional[str], show: bool) -> None:
    """Draw ground truth against the estimates"""
    if result.num_corrections < 2:
        logger.warning("Not enough corrections to plot")
        return

    plotter = TrajectoryPlotter()
    plotter.add_trajectory(result.true_positions, label='Ground Truth', color='green',
                           timestamps=result.times)
    plotter.add_trajectory(result.estimated_positions, label='Estimate', color='red',
                           timestamps=result.times)

    if result.odom_positions is not None and np.all(np.isfinite(result.odom_positions)):
        plotter.add_trajectory(result.odom_positions, label='Odometry Filter', color='blue',
                               timestamps=result.times)

    plotter.plot_all_trajectories(reference_label='Ground Truth', save_path=save_path, show=show)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point"""
    parser = argparse.ArgumentParser(description='Scan Matching Localization Demo')
    parser.add_argument('--duration', type=float, default=20.0,
                        help='Simulation duration in seconds (default: 20)')
    parser.add_argument('--seed', type=int, default=0,
                        help='Random seed (default: 0)')
    parser.add_argument('--trajectory', choices=['figure8', 'circle', 'linear'], default='figure8',
                        help='Ground-truth trajectory shape (default: figure8)')
    parser.add_argument('--no-odom', action='store_true',
                        help='Disable odometry-based prediction')
    parser.add_argument('--plot', action='store_true',
                        help='Show trajectory comparison plots')
    parser.add_argument('--save-plot', metavar='PATH',
                        help='Save trajectory comparison plots to PATH')
    parser.add_argument('--log-level', default='WARNING',
                        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
                        help='Logging level (default: WARNING)')

    args = parser.parse_args(argv)

    logging.basicConfig(level=getattr(logging, args.log_level),
                        format='%(asctime)s %(name)s %(levelname)s: %(message)s')

    config = ScenarioConfig(duration=args.duration, seed=args.seed,
                            use_odometry=not args.no_odom, trajectory_type=args.trajectory)

    print("=== Scan Matching Localization ===")
    print(f"Simulation duration: {config.duration} seconds")
    print(f"Trajectory: {config.trajectory_type}")
    print(f"Odometry: {'enabled' if config.use_odometry else 'disabled'}")

    try:
        result = run_scenario(config)
    except Exception as e:
        print(f"\nSimulation error: {e}")
        raise

    print_report(result)

    if args.plot or args.save_plot:
        plot_result(result, args.save_plot, show=args.plot)

    return 0


if __name__ == "__main__":
    raise SystemExit(main())
