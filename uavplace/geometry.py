# uavplace/geometry.py
from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class Position:
    x: float
    y: float
    z: float

    def distance_to(self, other: "Position") -> float:
        return float(np.linalg.norm(self.as_array() - other.as_array()))

    def as_array(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=float)


def positions_to_array(positions) -> np.ndarray:
    """Stack an iterable of Position into an (N,3) array."""
    arr = np.array([[p.x, p.y, p.z] for p in positions], dtype=float)
    return arr.reshape(-1, 3)


def pairwise_distances_m(a_xyz: np.ndarray, b_xyz: np.ndarray) -> np.ndarray:
    """
    Euclidean distances between two point sets.

    a_xyz: (N,3)
    b_xyz: (M,3)

    Returns
    -------
    dist_m: (N,M)
    """
    diff = a_xyz[:, None, :] - b_xyz[None, :, :]
    return np.linalg.norm(diff, axis=-1)


def equidistant_grid_xyz(n_points: int, side_m: float, altitude_m: float) -> np.ndarray:
    """
    Lay n_points on a square grid covering [0, side_m]^2 at a fixed altitude.

    Points sit at cell centres of the smallest k x k grid with k*k >= n_points;
    the grid is filled row by row, so a non-square n leaves the last row short.
    """
    if n_points <= 0:
        return np.zeros((0, 3), dtype=float)

    k = int(np.ceil(np.sqrt(n_points)))
    step = side_m / k
    centers = (np.arange(k, dtype=float) + 0.5) * step

    xx, yy = np.meshgrid(centers, centers)
    xy = np.stack([xx.ravel(), yy.ravel()], axis=-1)[:n_points]
    z = np.full((n_points, 1), float(altitude_m))
    return np.hstack([xy, z])
