# particle.py
"""
Manages the state of all particles in the simulation.

This module defines the BoundingBox of the simulation domain and the
ParticleStore class, which owns every particle's position and velocity
in contiguous NumPy arrays. Particles are rows; a particle's identity is
its row index for the duration of a frame.
"""
import logging
import numpy as np
from typing import Dict, Any, NamedTuple, Optional, Sequence, Tuple
from constants import DEFAULT_PARTICLE_RADIUS

# --- Data Contracts ---
#
# class BoundingBox(NamedTuple):
#   - x, y, width, height: float. Immutable axis-aligned domain rectangle.
#
# class ParticleStore:
#   - __init__(self, params: Dict[str, Any], bounds: BoundingBox):
#     - Inputs:
#       - params: "simulation_parameters" section of config.json.
#         - "seed": int
#         - "particle_count": int, particles seeded at startup
#         - "particle_radius": float
#         - "initial_velocity_scale": float
#       - bounds: the simulation domain used for initial seeding.
#     - Invariants:
#       - self.positions, self.velocities and self.accelerations are
#         NumPy arrays of shape (N, 2) and dtype float64, always the
#         same length.
#       - Rows are ordered oldest first.
#
#   - spawn(self, positions, velocities, max_particles, overflow_policy) -> int:
#     - Outputs: number of particles actually added.
#     - Side Effects: appends rows; with "evict_oldest" may drop the
#       oldest rows so the population never exceeds max_particles.

OVERFLOW_POLICIES = ("reject", "evict_oldest")


class BoundingBox(NamedTuple):
    """Immutable axis-aligned rectangle defining the simulation domain."""
    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def inset(self, margin: float) -> Tuple[float, float, float, float]:
        """Returns (min_x, min_y, max_x, max_y) shrunk by margin on every side."""
        return (
            self.x + margin,
            self.y + margin,
            self.right - margin,
            self.bottom - margin,
        )

    @classmethod
    def from_sequence(cls, values: Sequence[float]) -> "BoundingBox":
        x, y, width, height = (float(v) for v in values)
        return cls(x, y, width, height)


class ParticleStore:
    """
    A container for all particles, managing their state via NumPy arrays.
    """
    def __init__(self, params: Dict[str, Any], bounds: BoundingBox):
        """
        Initializes the particle store and seeds the initial population.

        Args:
            params (Dict[str, Any]): Simulation parameters from config.
            bounds (BoundingBox): The simulation domain.
        """
        self.radius = float(params.get('particle_radius', DEFAULT_PARTICLE_RADIUS))
        self.seed = params.get('seed', 42)

        # All randomness is controlled by a single master seed.
        # Spawning in interaction.py draws from this same generator.
        self.rng = np.random.default_rng(self.seed)

        initial_count = int(params.get('particle_count', 0))
        velocity_scale = float(params.get('initial_velocity_scale', 10.0))

        self.positions = self.rng.uniform(
            low=[bounds.x, bounds.y],
            high=[bounds.right, bounds.bottom],
            size=(initial_count, 2)
        )
        self.velocities = (self.rng.random((initial_count, 2)) - 0.5) * velocity_scale
        self.accelerations = np.zeros((initial_count, 2), dtype=np.float64)

        logging.info(
            f"ParticleStore initialized with {initial_count} particles "
            f"of radius {self.radius}."
        )
        logging.debug(
            f"Particle data arrays created. "
            f"Positions shape: {self.positions.shape}, "
            f"Velocities shape: {self.velocities.shape}"
        )

    @property
    def particle_count(self) -> int:
        return self.positions.shape[0]

    def speeds(self) -> np.ndarray:
        return np.linalg.norm(self.velocities, axis=1)

    def spawn(
        self,
        positions,
        velocities,
        max_particles: Optional[int] = None,
        overflow_policy: str = "reject"
    ) -> int:
        """
        Appends new particles, honoring the population cap.

        With the "reject" policy, new particles beyond the cap are silently
        dropped. With "evict_oldest", the oldest particles are removed to
        make room.

        Returns:
            int: The number of particles added.
        """
        positions = np.asarray(positions, dtype=np.float64).reshape(-1, 2)
        velocities = np.asarray(velocities, dtype=np.float64).reshape(-1, 2)
        if positions.shape != velocities.shape:
            raise ValueError(
                f"Spawn arrays disagree: positions {positions.shape}, "
                f"velocities {velocities.shape}."
            )

        if max_particles is not None:
            if overflow_policy == "reject":
                room = max(int(max_particles) - self.particle_count, 0)
                positions = positions[:room]
                velocities = velocities[:room]
            elif overflow_policy == "evict_oldest":
                # A batch larger than the cap keeps only its newest rows.
                positions = positions[-max_particles:] if max_particles > 0 else positions[:0]
                velocities = velocities[-max_particles:] if max_particles > 0 else velocities[:0]
                overflow = self.particle_count + positions.shape[0] - int(max_particles)
                if overflow > 0:
                    self.remove_oldest(overflow)
            else:
                raise ValueError(f"Unknown overflow policy '{overflow_policy}'.")

        added = positions.shape[0]
        if added == 0:
            return 0

        self.positions = np.concatenate([self.positions, positions])
        self.velocities = np.concatenate([self.velocities, velocities])
        self.accelerations = np.concatenate(
            [self.accelerations, np.zeros((added, 2), dtype=np.float64)]
        )
        return added

    def remove_oldest(self, count: int) -> None:
        """Drops the first `count` rows (the oldest particles)."""
        count = min(max(int(count), 0), self.particle_count)
        if count == 0:
            return
        self.positions = self.positions[count:].copy()
        self.velocities = self.velocities[count:].copy()
        self.accelerations = self.accelerations[count:].copy()
        logging.debug(f"Evicted {count} oldest particles.")
