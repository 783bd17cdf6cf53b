"""
Scan registration interface.

The pose estimator treats scan-to-map registration as an opaque engine: it
hands over the input scan and an initial guess, then reads back the aligned
scan and the final transformation. Any engine implementing this interface
(ICP, NDT, GICP, ...) can be plugged in.

Point clouds are (N, 3) float arrays expressed in the sensor frame (source)
or the map frame (target).
"""

import numpy as np
from abc import ABC, abstractmethod


class Registration(ABC):
    """
    Scan-to-map registration engine.

    Usage:
        registration.set_input_target(global_map)
        registration.set_input_source(scan)
        aligned = registration.align(initial_guess)
        T = registration.get_final_transformation()
    """

    @abstractmethod
    def set_input_target(self, cloud: np.ndarray) -> None:
        """Set the reference (map) cloud."""

    @abstractmethod
    def set_input_source(self, cloud: np.ndarray) -> None:
        """Set the cloud to be aligned to the target."""

    @abstractmethod
    def align(self, initial_guess: np.ndarray) -> np.ndarray:
        """
        Register the source cloud against the target.

        Args:
            initial_guess: 4x4 rigid transform from source to target frame

        Returns:
            Source cloud transformed by the final transformation
        """

    @abstractmethod
    def get_final_transformation(self) -> np.ndarray:
        """4x4 transform found by the last align() call."""

    @abstractmethod
    def has_converged(self) -> bool:
        """Whether the last align() call met its convergence criteria."""

    @abstractmethod
    def get_fitness_score(self) -> float:
        """Mean squared correspondence distance of the last alignment."""
