# simulation.py
"""
Handles the per-frame simulation pipeline.

This module defines the Simulation class, which wires the spatial grid,
force solver, pointer interaction, integrator and contour extractor
together and advances the particle store by one frame at a time. The
stages run strictly in sequence:

    grid build -> pressure/viscosity -> pointer interaction -> integration

Contours and particle views are read from the resulting state on demand.
"""
import logging
import numpy as np
from typing import Dict, Any, Iterator, Optional, Tuple
from constants import COLOR_VALUE_SCALE
from contour import ContourExtractor, Polygon
from density import DensityField
from forces import ForceSolver
from grid import SpatialGrid
from integrator import Integrator
from interaction import InteractionForceApplier, PointerState
from particle import BoundingBox, ParticleStore

# --- Data Contracts ---
#
# class Simulation:
#   - __init__(self, particles: ParticleStore, params: Dict[str, Any],
#              interaction_params: Optional[Dict[str, Any]] = None,
#              contour_params: Optional[Dict[str, Any]] = None):
#     - Inputs:
#       - particles: An initialized ParticleStore.
#       - params: "simulation_parameters" section of config.json.
#         - "bounding_box": [x, y, width, height]
#         - "cell_size": float
#         - plus the keys read by ForceSolver and Integrator.
#       - interaction_params: "interaction" section of config.json.
#       - contour_params: "contour" section of config.json.
#     - Side Effects: Validates the whole configuration; raises ValueError
#       on any invalid option.
#
#   - step(self, pointer: PointerState = PointerState()) -> None:
#     - Side Effects: Modifies the ParticleStore (positions, velocities,
#       accelerations, and possibly its size).
#     - Invariants: Positions stay inside the inset bounding box. Raises
#       FloatingPointError if any position or velocity becomes non-finite.
#
#   - contours(self) -> Iterator[Polygon]
#   - particle_view(self, mode: str) -> Tuple[np.ndarray, np.ndarray]

DEFAULT_BOUNDING_BOX = (5.0, 5.0, 690.0, 490.0)
PARTICLE_MODES = ("pressure", "velocity", "speed", "acceleration")


class Simulation:
    """
    Manages the frame pipeline using a spatial grid for neighbor search.
    """
    def __init__(
        self,
        particles: ParticleStore,
        params: Dict[str, Any],
        interaction_params: Optional[Dict[str, Any]] = None,
        contour_params: Optional[Dict[str, Any]] = None
    ):
        """
        Initializes the simulation environment.

        Args:
            particles (ParticleStore): The particles to simulate.
            params (Dict[str, Any]): Simulation parameters from config.
            interaction_params (Optional[Dict[str, Any]]): Pointer interaction settings.
            contour_params (Optional[Dict[str, Any]]): Marching-squares settings.
        """
        self.particles = particles
        self.bounds = BoundingBox.from_sequence(params.get('bounding_box', DEFAULT_BOUNDING_BOX))

        self.grid = SpatialGrid(float(params.get('cell_size', 20.0)))
        self.force_solver = ForceSolver(params)
        self.integrator = Integrator(params, self.bounds)
        self.interaction = InteractionForceApplier(interaction_params or {})
        self.density_field = DensityField(params)
        self.contour_extractor = ContourExtractor(
            contour_params or {}, self.bounds, self.density_field
        )

        self.step_count = 0
        self.last_interactions = 0
        self.last_spawned = 0

        logging.info("Simulation logic initialized and configuration validated.")
        logging.info(f"Simulation domain: {tuple(self.bounds)}.")

    def step(self, pointer: PointerState = PointerState()) -> None:
        """
        Executes one frame of the simulation.

        The stored per-particle acceleration is the velocity change from
        the pressure pass and integration; pointer impulses are excluded.
        """
        store = self.particles

        # 1. Rebuild the spatial grid from the current positions
        self.grid.build(store.positions)

        # 2. Pressure and viscosity between neighbors
        before_forces = store.velocities.copy()
        self.last_interactions = self.force_solver.apply(store, self.grid)
        force_delta = store.velocities - before_forces
        count_before = store.particle_count

        # 3. Pointer interaction (may spawn or evict particles)
        self.last_spawned = self.interaction.apply(pointer, store)

        # 4. Gravity, drag, position update and boundaries
        before_integration = store.velocities.copy()
        self.integrator.step(store)
        store.accelerations = store.velocities - before_integration

        # Surviving old particles are the leading rows, new ones are appended.
        survivors = min(store.particle_count - self.last_spawned, count_before)
        if survivors > 0:
            store.accelerations[:survivors] += force_delta[count_before - survivors:]

        self._check_finite()
        self.step_count += 1
        logging.debug(
            f"Step {self.step_count}: {store.particle_count} particles, "
            f"{self.last_interactions} pair interactions, {self.last_spawned} spawned."
        )

    def _check_finite(self) -> None:
        store = self.particles
        if not (np.isfinite(store.positions).all() and np.isfinite(store.velocities).all()):
            msg = f"Non-finite particle state detected at step {self.step_count + 1}."
            logging.critical(msg)
            raise FloatingPointError(msg)

    def contours(self) -> Iterator[Polygon]:
        """Returns a lazy generator of the density isosurface polygons."""
        return self.contour_extractor.extract(self.particles.positions)

    def particle_view(self, mode: str = "velocity") -> Tuple[np.ndarray, np.ndarray]:
        """
        Returns particle positions and a per-particle scalar in [0, 1].

        Modes:
            velocity / speed: speed, scaled and clipped.
            acceleration: magnitude of the last step's velocity change.
            pressure: neighbors within the interaction radius, relative
                to the most crowded particle.
        """
        store = self.particles
        if mode in ("velocity", "speed"):
            values = np.clip(store.speeds() / COLOR_VALUE_SCALE, 0.0, 1.0)
        elif mode == "acceleration":
            magnitudes = np.linalg.norm(store.accelerations, axis=1)
            values = np.clip(magnitudes / COLOR_VALUE_SCALE, 0.0, 1.0)
        elif mode == "pressure":
            self.grid.build(store.positions)
            counts = self.force_solver.neighbor_counts(store, self.grid).astype(np.float64)
            peak = counts.max() if counts.size else 0.0
            values = counts / peak if peak > 0 else np.zeros_like(counts)
        else:
            raise ValueError(f"Unknown particle view mode '{mode}'. Expected one of {PARTICLE_MODES}.")
        return store.positions.copy(), values
