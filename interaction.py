# interaction.py
"""
External impulses driven by the pointer device.

The host application hands over an immutable PointerState snapshot each
frame. Holding the left button spawns a batch of particles at the
pointer; holding the right button pulls every particle toward it (or
pushes them away when the strength is negative).
"""
import logging
import numpy as np
from typing import Dict, Any, NamedTuple, Optional, Tuple
from particle import OVERFLOW_POLICIES, ParticleStore

# --- Data Contracts ---
#
# class PointerState(NamedTuple):
#   - position: Optional[Tuple[float, float]], None when the pointer has
#     not been seen yet.
#   - left_active, right_active: bool
#
# class InteractionForceApplier:
#   - __init__(self, params: Dict[str, Any]):
#     - Inputs:
#       - params: "interaction" section of config.json.
#         - "max_particles": int
#         - "spawn_batch_size": int
#         - "spawn_velocity_scale": float
#         - "overflow_policy": "reject" | "evict_oldest"
#         - "push_strength": float, K
#         - "push_falloff": "inverse_distance" | "constant"
#         - "push_radius": float, cutoff for the constant falloff
#
#   - apply(self, pointer: PointerState, store: ParticleStore) -> int:
#     - Outputs: the number of particles spawned.
#     - Side Effects: may append particles and modify store.velocities.
#     - Invariants: The population never exceeds max_particles.

PUSH_FALLOFFS = ("inverse_distance", "constant")


class PointerState(NamedTuple):
    """Per-frame snapshot of the pointer device."""
    position: Optional[Tuple[float, float]] = None
    left_active: bool = False
    right_active: bool = False


class InteractionForceApplier:
    """
    Injects spawn and radial push/pull impulses from pointer input.
    """
    def __init__(self, params: Dict[str, Any]):
        self.max_particles = int(params.get('max_particles', 5000))
        self.spawn_batch_size = int(params.get('spawn_batch_size', 10))
        self.spawn_velocity_scale = float(params.get('spawn_velocity_scale', 5.0))
        self.overflow_policy = params.get('overflow_policy', 'reject')
        self.push_strength = float(params.get('push_strength', 15.0))
        self.push_falloff = params.get('push_falloff', 'inverse_distance')
        self.push_radius = float(params.get('push_radius', 100.0))

        problems = []
        if self.max_particles < 0:
            problems.append(f"max_particles must not be negative, got {self.max_particles}")
        if self.spawn_batch_size < 0:
            problems.append(f"spawn_batch_size must not be negative, got {self.spawn_batch_size}")
        if self.overflow_policy not in OVERFLOW_POLICIES:
            problems.append(f"unknown overflow_policy '{self.overflow_policy}'")
        if self.push_falloff not in PUSH_FALLOFFS:
            problems.append(f"unknown push_falloff '{self.push_falloff}'")
        if problems:
            msg = "Configuration error: " + "; ".join(problems) + "."
            logging.critical(msg)
            raise ValueError(msg)

        # Used to log a full population once per saturation, not every frame.
        self._saturated = False

        logging.info(
            f"Interaction initialized: cap {self.max_particles}, batch "
            f"{self.spawn_batch_size}, '{self.push_falloff}' push with K={self.push_strength}."
        )

    def apply(self, pointer: PointerState, store: ParticleStore) -> int:
        """
        Applies the pointer's effect for one frame.

        Returns:
            int: The number of particles spawned.
        """
        if pointer.position is None:
            return 0

        spawned = 0
        if pointer.left_active:
            spawned = self.spawn(pointer.position, store)
        if pointer.right_active:
            self.push(pointer.position, store)
        return spawned

    def spawn(self, position: Tuple[float, float], store: ParticleStore) -> int:
        """Spawns a batch at the given position with small random velocities."""
        if self.overflow_policy == 'reject' and store.particle_count >= self.max_particles:
            if not self._saturated:
                logging.warning(
                    f"Particle cap of {self.max_particles} reached; "
                    f"further spawns are dropped."
                )
                self._saturated = True
            return 0
        self._saturated = False

        batch = self.spawn_batch_size
        positions = np.tile(np.asarray(position, dtype=np.float64), (batch, 1))
        velocities = (store.rng.random((batch, 2)) - 0.5) * self.spawn_velocity_scale
        added = store.spawn(positions, velocities, self.max_particles, self.overflow_policy)
        logging.debug(f"Spawned {added} particles at {position}.")
        return added

    def push(self, position: Tuple[float, float], store: ParticleStore) -> None:
        """Adds a radially attenuated impulse toward the position to every particle."""
        if store.particle_count == 0:
            return
        offsets = np.asarray(position, dtype=np.float64) - store.positions
        distances = np.linalg.norm(offsets, axis=1)

        if self.push_falloff == 'inverse_distance':
            magnitudes = self.push_strength / (1.0 + distances)
        else:
            magnitudes = np.where(distances < self.push_radius, self.push_strength, 0.0)

        # A particle sitting on the pointer has no direction to move in.
        safe = distances > 0.0
        directions = np.zeros_like(offsets)
        directions[safe] = offsets[safe] / distances[safe, np.newaxis]
        store.velocities += directions * magnitudes[:, np.newaxis]
