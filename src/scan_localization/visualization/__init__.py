"""
Visualization components for scan localization.
"""

from .plotter import TrajectoryPlotter, TrajectoryStatistics

__all__ = [
    "TrajectoryPlotter",
    "TrajectoryStatistics"
]
