"""
Relative-motion odometry simulation (wheel or visual odometry).

The sensor reports the rigid motion between two consecutive samples in the
body frame of the earlier one:

    ΔT = T(k−1)⁻¹ · T(k)

Error Model:
    Δt_measured = Δt + n_t,   n_t ~ N(0, (σ_t·‖Δt‖ + σ_0)²)
    ΔR_measured = exp([n_r]×)·ΔR,  n_r ~ N(0, (σ_r·θ + σ_0)²)

Translation and rotation noise grow with the motion magnitude, which is the
behaviour the estimator's adaptive odometry process noise assumes.
"""

import numpy as np
from typing import Optional

from ..geometry.transforms import invert_transform, rotation_angle
from scipy.spatial.transform import Rotation


class OdometrySensor:
    """
    Odometry sensor producing noisy relative transforms.

    Attributes:
        translation_noise_ratio: Translation noise per metre travelled
        rotation_noise_ratio: Rotation noise per radian turned
        noise_floor: Constant noise added to both components
    """

    def __init__(self, translation_noise_ratio: float = 0.02, rotation_noise_ratio: float = 0.02,
                 noise_floor: float = 1e-4, rng: Optional[np.random.Generator] = None):
        if translation_noise_ratio < 0 or rotation_noise_ratio < 0 or noise_floor < 0:
            raise ValueError("Odometry noise parameters must be non-negative")

        self.translation_noise_ratio = translation_noise_ratio
        self.rotation_noise_ratio = rotation_noise_ratio
        self.noise_floor = noise_floor
        self.rng = rng if rng is not None else np.random.default_rng()

        self._previous_pose: Optional[np.ndarray] = None

    def reset(self) -> None:
        self._previous_pose = None

    def get_measurement(self, true_pose: np.ndarray) -> Optional[np.ndarray]:
        """
        Relative motion since the previous call.

        Args:
            true_pose: Current 4x4 body-to-world transform

        Returns:
            Noisy 4x4 relative transform, or None on the first call
        """
        true_pose = np.asarray(true_pose, dtype=float)
        if self._previous_pose is None:
            self._previous_pose = true_pose.copy()
            return None

        delta = invert_transform(self._previous_pose) @ true_pose
        self._previous_pose = true_pose.copy()

        translation_std = self.translation_noise_ratio * np.linalg.norm(delta[0:3, 3]) + self.noise_floor
        rotation_std = self.rotation_noise_ratio * rotation_angle(delta) + self.noise_floor

        noisy = delta.copy()
        noisy[0:3, 3] += self.rng.normal(0, translation_std, 3)
        noise_rotation = Rotation.from_rotvec(self.rng.normal(0, rotation_std, 3)).as_matrix()
        noisy[0:3, 0:3] = noise_rotation @ delta[0:3, 0:3]
        return noisy
