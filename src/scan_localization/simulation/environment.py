"""
Synthetic global map and range-scan simulation.

The map is a point cloud sampled uniformly at random from three kinds of
surfaces:
    - a ground plane at z = ground_height
    - four perimeter walls at x = ±extent and y = ±extent
    - vertical cylindrical pillars scattered inside the perimeter

Random (not lattice) sampling keeps the map free of periodic structure, so
scan registration has a single alignment to find.

Scan Model:
    p_sensor = T⁻¹ · p_map,  kept if ‖p_sensor‖ ≤ max_range
    p_measured = p_sensor + n,  n ~ N(0, σ² I)

Occlusion is not modelled; every in-range surface point is visible.
"""

import numpy as np
from typing import Optional

from ..geometry.transforms import invert_transform, transform_points


def _sample_ground(rng: np.random.Generator, extent: float, height: float,
                   density: float) -> np.ndarray:
    count = int((2 * extent) ** 2 * density)
    xy = rng.uniform(-extent, extent, (count, 2))
    return np.column_stack([xy, np.full(count, height)])


def _sample_walls(rng: np.random.Generator, extent: float, base: float,
                  wall_height: float, density: float) -> np.ndarray:
    count = int(2 * extent * wall_height * density)
    walls = []
    for axis in (0, 1):
        for side in (-extent, extent):
            points = np.empty((count, 3))
            points[:, axis] = side
            points[:, 1 - axis] = rng.uniform(-extent, extent, count)
            points[:, 2] = rng.uniform(base, base + wall_height, count)
            walls.append(points)
    return np.vstack(walls)


def _sample_pillar(rng: np.random.Generator, center: np.ndarray, radius: float,
                   base: float, height: float, density: float) -> np.ndarray:
    count = max(int(2 * np.pi * radius * height * density), 8)
    angles = rng.uniform(0, 2 * np.pi, count)
    return np.column_stack([center[0] + radius * np.cos(angles),
                            center[1] + radius * np.sin(angles),
                            rng.uniform(base, base + height, count)])


def generate_map(extent: float = 20.0, ground_height: float = -2.0,
                 wall_height: float = 6.0, num_pillars: int = 16,
                 ground_density: float = 2.0, surface_density: float = 4.0,
                 rng: Optional[np.random.Generator] = None) -> np.ndarray:
    """
    Build a synthetic global point cloud.

    Args:
        extent: Half-width of the square area enclosed by the walls (m)
        ground_height: z coordinate of the ground plane (m)
        wall_height: Height of walls and pillars above the ground (m)
        num_pillars: Number of cylindrical pillars
        ground_density: Ground points per square metre
        surface_density: Wall and pillar points per square metre
        rng: Random generator, a fresh unseeded one if None

    Returns:
        Map points, shape (N, 3)

    Raises:
        ValueError: If a size or density is not positive
    """
    if extent <= 0 or wall_height <= 0:
        raise ValueError("Map extent and wall height must be positive")
    if ground_density <= 0 or surface_density <= 0:
        raise ValueError("Point densities must be positive")
    if num_pillars < 0:
        raise ValueError(f"Number of pillars must be non-negative, got {num_pillars}")

    rng = rng if rng is not None else np.random.default_rng()

    parts = [
        _sample_ground(rng, extent, ground_height, ground_density),
        _sample_walls(rng, extent, ground_height, wall_height, surface_density)
    ]

    pillar_margin = 0.8 * extent
    for _ in range(num_pillars):
        center = rng.uniform(-pillar_margin, pillar_margin, 2)
        radius = rng.uniform(0.3, 0.8)
        parts.append(_sample_pillar(rng, center, radius, ground_height, wall_height,
                                    surface_density))

    return np.vstack(parts)


def simulate_scan(global_map: np.ndarray, pose: np.ndarray, max_range: float = 30.0,
                  noise_std: float = 0.02, rng: Optional[np.random.Generator] = None,
                  max_points: Optional[int] = 1000) -> np.ndarray:
    """
    Simulate a range scan taken from a sensor pose.

    Args:
        global_map: Map points, shape (N, 3)
        pose: 4x4 sensor-to-map transform
        max_range: Maximum sensing distance (m)
        noise_std: Per-axis Gaussian point noise (m)
        rng: Random generator, a fresh unseeded one if None
        max_points: Random subsample size, no subsampling if None

    Returns:
        Scan points in the sensor frame, shape (M, 3); M may be 0
    """
    if max_range <= 0:
        raise ValueError(f"Maximum range must be positive, got {max_range}")
    if noise_std < 0:
        raise ValueError(f"Noise standard deviation must be non-negative, got {noise_std}")

    rng = rng if rng is not None else np.random.default_rng()

    local = transform_points(invert_transform(pose), global_map)
    local = local[np.linalg.norm(local, axis=1) <= max_range]

    if max_points is not None and len(local) > max_points:
        local = local[rng.choice(len(local), max_points, replace=False)]

    return local + rng.normal(0, noise_std, local.shape)
