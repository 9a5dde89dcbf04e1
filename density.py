# density.py
"""
Scalar density field over the plane.

The density at a point is the sum over all particles of
radius^2 / (distance^2 + 1). The +1 keeps the kernel finite at a
particle's own position, so the field is defined everywhere and is
never negative. Every query is a brute-force O(N) sum.
"""
import logging
import numpy as np
from typing import Dict, Any
from numba import jit, prange
from constants import DEFAULT_PARTICLE_RADIUS

# --- Data Contracts ---
#
# class DensityField:
#   - density_at(self, x: float, y: float, positions: np.ndarray) -> float
#     - Outputs: >= 0, exactly 0 when positions is empty.
#
#   - sample(self, xs: np.ndarray, ys: np.ndarray, positions: np.ndarray) -> np.ndarray
#     - Outputs: array of shape (len(ys), len(xs)); entry [row, col] is
#       the density at (xs[col], ys[row]).


@jit(nopython=True)
def _density_at(x, y, positions, radius_sq):
    total = 0.0
    for i in range(positions.shape[0]):
        dx = x - positions[i, 0]
        dy = y - positions[i, 1]
        total += radius_sq / (dx * dx + dy * dy + 1.0)
    return total


@jit(nopython=True, parallel=True)
def _sample_lattice(xs, ys, positions, radius_sq):
    """
    Numba-jitted lattice sampling. Rows run in parallel; each writes only
    its own row of the output.
    """
    out = np.empty((ys.shape[0], xs.shape[0]), dtype=np.float64)
    for row in prange(ys.shape[0]):
        for col in range(xs.shape[0]):
            out[row, col] = _density_at(xs[col], ys[row], positions, radius_sq)
    return out


class DensityField:
    """
    Samples the particle density at arbitrary points.
    """
    def __init__(self, params: Dict[str, Any]):
        self.radius = float(params.get('particle_radius', DEFAULT_PARTICLE_RADIUS))
        self.radius_sq = self.radius * self.radius

    def density_at(self, x: float, y: float, positions: np.ndarray) -> float:
        return float(_density_at(float(x), float(y), positions, self.radius_sq))

    def sample(self, xs: np.ndarray, ys: np.ndarray, positions: np.ndarray) -> np.ndarray:
        xs = np.ascontiguousarray(xs, dtype=np.float64)
        ys = np.ascontiguousarray(ys, dtype=np.float64)
        samples = _sample_lattice(xs, ys, positions, self.radius_sq)
        logging.debug(
            f"Sampled density on a {xs.shape[0]}x{ys.shape[0]} lattice "
            f"over {positions.shape[0]} particles."
        )
        return samples
