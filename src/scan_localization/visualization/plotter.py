"""
Trajectory comparison and plotting.

TrajectoryPlotter collects labelled trajectories, computes error statistics
between a reference and an estimate, and draws a four-panel figure:

    ┌──────────────┬──────────────┐
    │ 3D overlay   │ XY projection│
    ├──────────────┼──────────────┤
    │ XZ projection│ error vs time│
    └──────────────┴──────────────┘

Error Statistics (e_i = ‖p_ref,i − p_est,i‖):
    RMSE = sqrt(mean(e²)), max, mean, std, median and 95th percentile
"""

import numpy as np
import matplotlib.pyplot as plt
from matplotlib.figure import Figure
from typing import List, Dict, Any, Optional, Tuple, Union
from dataclasses import dataclass
import logging

logger = logging.getLogger(__name__)


@dataclass
class TrajectoryStatistics:
    """Container for trajectory comparison statistics."""
    rmse: float
    max_error: float
    mean_error: float
    std_error: float
    median_error: float
    percentile_95: float


class TrajectoryPlotter:
    """
    Trajectory repository with comparison statistics and plots.

    Attributes:
        trajectories (List[Dict]): Trajectory records in insertion order
        figure (matplotlib.figure.Figure): Last figure drawn, None before plotting
        analysis_results (Dict): Cached comparison results by "ref_vs_comp" key
    """

    def __init__(self, figure_size: Tuple[int, int] = (15, 10)):
        self.trajectories: List[Dict[str, Any]] = []
        self.figure: Optional[Figure] = None
        self.figure_size = figure_size
        self.analysis_results: Dict[str, Dict[str, float]] = {}

    def add_trajectory(self,
                       positions: Union[np.ndarray, List[List[float]]],
                       label: str = "Trajectory",
                       color: str = 'blue',
                       timestamps: Optional[Union[np.ndarray, List[float]]] = None) -> None:
        """
        Add trajectory data with validation.

        Args:
            positions: Nx3 array of position coordinates [x, y, z]
            label: Unique label for the trajectory
            color: Matplotlib color specification
            timestamps: Optional sample times, one per position

        Raises:
            ValueError: If trajectory data is invalid or the label is taken
        """
        positions = np.asarray(positions, dtype=np.float64)

        if positions.ndim != 2 or positions.shape[1] != 3:
            raise ValueError(f"Positions must be Nx3 array, got shape {positions.shape}")
        if len(positions) < 2:
            raise ValueError("Trajectory must contain at least 2 points")
        if not np.all(np.isfinite(positions)):
            raise ValueError("Trajectory contains invalid values (inf/nan)")
        if any(traj['label'] == label for traj in self.trajectories):
            raise ValueError(f"Trajectory label '{label}' already in use")

        if timestamps is not None:
            timestamps = np.asarray(timestamps, dtype=np.float64)
            if len(timestamps) != len(positions):
                raise ValueError("Timestamps length must match positions length")
            if not np.all(np.diff(timestamps) > 0):
                logger.warning("Timestamps are not strictly increasing")

        self.trajectories.append({
            'positions': positions.copy(),
            'label': str(label),
            'color': color,
            'timestamps': timestamps.copy() if timestamps is not None else None,
            'length': float(np.sum(np.linalg.norm(np.diff(positions, axis=0), axis=1)))
        })

        logger.debug(f"Added trajectory '{label}' with {len(positions)} points")

    def _find(self, label: str) -> Dict[str, Any]:
        for traj in self.trajectories:
            if traj['label'] == label:
                return traj
        raise ValueError(f"Trajectory '{label}' not found")

    @staticmethod
    def _align_trajectories(traj1: np.ndarray, traj2: np.ndarray) -> Tuple[np.ndarray, np.ndarray]:
        """
        Resample the longer trajectory to the length of the shorter by linear
        interpolation over the sample index.
        """
        target_length = min(len(traj1), len(traj2))

        def resample(traj: np.ndarray) -> np.ndarray:
            if len(traj) == target_length:
                return traj
            indices = np.linspace(0, len(traj) - 1, target_length)
            return np.array([np.interp(indices, np.arange(len(traj)), traj[:, i])
                             for i in range(3)]).T

        return resample(traj1), resample(traj2)

    def compute_errors(self, reference_label: str, comparison_label: str) -> np.ndarray:
        """Per-sample position error norms between two stored trajectories."""
        ref, comp = self._align_trajectories(self._find(reference_label)['positions'],
                                             self._find(comparison_label)['positions'])
        return np.linalg.norm(ref - comp, axis=1)

    def compare_trajectories(self, reference_label: str, comparison_label: str) -> TrajectoryStatistics:
        """
        Error statistics of one trajectory against a reference.

        Raises:
            ValueError: If either trajectory is not found
        """
        errors = self.compute_errors(reference_label, comparison_label)

        stats = TrajectoryStatistics(
            rmse=float(np.sqrt(np.mean(errors**2))),
            max_error=float(np.max(errors)),
            mean_error=float(np.mean(errors)),
            std_error=float(np.std(errors)),
            median_error=float(np.median(errors)),
            percentile_95=float(np.percentile(errors, 95))
        )

        self.analysis_results[f"{reference_label}_vs_{comparison_label}"] = stats.__dict__.copy()
        logger.info(f"Trajectory comparison {comparison_label} vs {reference_label}: "
                    f"RMSE = {stats.rmse:.4f}m")
        return stats

    def plot_all_trajectories(self, reference_label: Optional[str] = None,
                              save_path: Optional[str] = None, show: bool = True) -> Optional[Figure]:
        """
        Draw every stored trajectory.

        Args:
            reference_label: When given, the fourth panel shows each other
                trajectory's error against this one over time
            save_path: Write the figure to this path when given
            show: Call plt.show() after drawing

        Returns:
            The figure, or None when there is nothing to plot
        """
        if not self.trajectories:
            logger.warning("No trajectories to plot")
            return None

        self.figure = plt.figure(figsize=self.figure_size)

        ax_3d = self.figure.add_subplot(2, 2, 1, projection='3d')
        for traj in self.trajectories:
            positions = traj['positions']
            ax_3d.plot(positions[:, 0], positions[:, 1], positions[:, 2],
                       color=traj['color'], label=traj['label'], linewidth=2, alpha=0.8)
            ax_3d.scatter(positions[0, 0], positions[0, 1], positions[0, 2],
                          color=traj['color'], marker='o', s=60)
        ax_3d.set_xlabel('X Position (m)')
        ax_3d.set_ylabel('Y Position (m)')
        ax_3d.set_zlabel('Z Position (m)')
        ax_3d.set_title('Trajectory Comparison')
        ax_3d.legend()

        self._plot_projection(self.figure.add_subplot(2, 2, 2), 1, 'Y Position (m)', 'XY Projection')
        self._plot_projection(self.figure.add_subplot(2, 2, 3), 2, 'Z Position (m)', 'XZ Projection')
        self._plot_errors(self.figure.add_subplot(2, 2, 4), reference_label)

        self.figure.tight_layout()

        if save_path is not None:
            self.figure.savefig(save_path, dpi=150)
            logger.info(f"Figure saved to {save_path}")
        if show:
            plt.show()
        return self.figure

    def _plot_projection(self, axes, column: int, ylabel: str, title: str) -> None:
        for traj in self.trajectories:
            positions = traj['positions']
            axes.plot(positions[:, 0], positions[:, column],
                      color=traj['color'], label=traj['label'], linewidth=2)
        axes.set_xlabel('X Position (m)')
        axes.set_ylabel(ylabel)
        axes.set_title(title)
        axes.grid(True, alpha=0.3)
        axes.legend()
        if column == 1:
            axes.set_aspect('equal')

    def _plot_errors(self, axes, reference_label: Optional[str]) -> None:
        axes.set_title('Position Error')
        axes.set_ylabel('Error (m)')
        axes.grid(True, alpha=0.3)

        if reference_label is None:
            labels = [traj['label'] for traj in self.trajectories]
            lengths = [traj['length'] for traj in self.trajectories]
            axes.bar(labels, lengths, color=[traj['color'] for traj in self.trajectories], alpha=0.7)
            axes.set_title('Trajectory Length')
            axes.set_ylabel('Length (m)')
            return

        reference = self._find(reference_label)
        for traj in self.trajectories:
            if traj is reference:
                continue
            errors = self.compute_errors(reference_label, traj['label'])
            if traj['timestamps'] is not None and len(traj['timestamps']) == len(errors):
                axes.plot(traj['timestamps'], errors, color=traj['color'], label=traj['label'])
                axes.set_xlabel('Time (s)')
            else:
                axes.plot(errors, color=traj['color'], label=traj['label'])
                axes.set_xlabel('Sample')
        axes.legend()
