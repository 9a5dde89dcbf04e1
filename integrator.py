# integrator.py
"""
Advances particle velocities and positions by one step.

The order within a step is fixed: gravity (y axis only), then drag on
both axes, then the position update, then boundary handling. All work is
vectorized over the particle arrays.
"""
import logging
import numpy as np
from typing import Dict, Any
from constants import DEFAULT_PARTICLE_RADIUS
from particle import BoundingBox, ParticleStore

# --- Data Contracts ---
#
# class Integrator:
#   - __init__(self, params: Dict[str, Any], bounds: BoundingBox):
#     - Inputs:
#       - params: "simulation_parameters" section of config.json.
#         - "gravity": float, added to vy every step
#         - "drag": float in [0, 1], multiplies velocity every step
#         - "bounce": float in [0, 1], restitution on boundary hits
#         - "boundary_policy": "reflect" | "clamp_invert"
#
#   - step(self, store: ParticleStore) -> None:
#     - Side Effects: Modifies store.positions and store.velocities.
#     - Invariants: After the call every position lies inside the
#       bounding box inset by the particle radius.

BOUNDARY_POLICIES = ("reflect", "clamp_invert")


def reflect_boundaries(positions, velocities, low, high, bounce):
    """
    Clamps positions that went past a bound and points the velocity back
    inside the domain, scaled by bounce.

    Args:
        low, high: Per-axis bounds as arrays of shape (2,).
    """
    below = positions < low
    above = positions > high
    positions[:] = np.where(below, low, np.where(above, high, positions))
    speed = np.abs(velocities) * bounce
    velocities[:] = np.where(below, speed, np.where(above, -speed, velocities))


def clamp_invert_boundaries(positions, velocities, low, high, bounce):
    """
    Clamps positions into the bounds and, on every axis where the clamp
    changed the value, negates the velocity scaled by bounce.
    """
    clamped = np.clip(positions, low, high)
    hit = clamped != positions
    positions[:] = clamped
    velocities[:] = np.where(hit, -velocities * bounce, velocities)


class Integrator:
    """
    Applies gravity, drag and the boundary-reflecting position update.
    """
    def __init__(self, params: Dict[str, Any], bounds: BoundingBox):
        self.gravity = float(params.get('gravity', 0.2))
        self.drag = float(params.get('drag', 0.98))
        self.bounce = float(params.get('bounce', 0.7))
        self.boundary_policy = params.get('boundary_policy', 'reflect')
        self.bounds = bounds
        radius = float(params.get('particle_radius', DEFAULT_PARTICLE_RADIUS))

        problems = []
        if not 0.0 <= self.drag <= 1.0:
            problems.append(f"drag must be in [0, 1], got {self.drag}")
        if not 0.0 <= self.bounce <= 1.0:
            problems.append(f"bounce must be in [0, 1], got {self.bounce}")
        if self.boundary_policy not in BOUNDARY_POLICIES:
            problems.append(f"unknown boundary_policy '{self.boundary_policy}'")
        if bounds.width <= 2 * radius or bounds.height <= 2 * radius:
            problems.append(f"bounding box {tuple(bounds)} is too small for radius {radius}")
        if problems:
            msg = "Configuration error: " + "; ".join(problems) + "."
            logging.critical(msg)
            raise ValueError(msg)

        min_x, min_y, max_x, max_y = bounds.inset(radius)
        self.low = np.array([min_x, min_y], dtype=np.float64)
        self.high = np.array([max_x, max_y], dtype=np.float64)

        if self.boundary_policy == 'reflect':
            self._handle_boundaries = reflect_boundaries
        else:
            self._handle_boundaries = clamp_invert_boundaries

        logging.info(
            f"Integrator initialized: gravity {self.gravity}, drag {self.drag}, "
            f"bounce {self.bounce}, '{self.boundary_policy}' boundaries."
        )

    def step(self, store: ParticleStore) -> None:
        """Executes one integration step for every particle."""
        if store.particle_count == 0:
            return

        velocities = store.velocities
        velocities[:, 1] += self.gravity
        velocities *= self.drag
        store.positions += velocities

        self._handle_boundaries(store.positions, velocities, self.low, self.high, self.bounce)
