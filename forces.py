# forces.py
"""
Pairwise pressure and viscosity between neighboring particles.

Two interacting particles closer than the interaction radius are pushed
apart along the line joining them, with a magnitude that grows linearly
as they approach, and their velocities are blended toward their average.
Neighbor candidates come from the 3x3 cell block of a SpatialGrid that
must have been built on the current positions.
"""
import logging
import numpy as np
from typing import Dict, Any
from numba import jit, prange
from constants import DEFAULT_PARTICLE_RADIUS, MIN_SEPARATION
from grid import SpatialGrid
from particle import ParticleStore

# --- Data Contracts ---
#
# class ForceSolver:
#   - __init__(self, params: Dict[str, Any]):
#     - Inputs:
#       - params: "simulation_parameters" section of config.json.
#         - "interaction_radius": float, <= "cell_size"
#         - "pressure_coeff": float
#         - "viscosity_coeff": float in [0, 1]
#         - "pair_visitation": "unique" | "both"
#         - "solver": "sequential" | "parallel"
#     - Raises ValueError on an invalid combination.
#
#   - apply(self, store: ParticleStore, grid: SpatialGrid) -> int:
#     - Outputs: number of pair interactions applied.
#     - Side Effects: Modifies store.velocities in place.
#     - Invariants: Positions are untouched. Pairs closer than
#       MIN_SEPARATION are skipped, so no NaN can be produced.

PAIR_VISITATIONS = ("unique", "both")
SOLVERS = ("sequential", "parallel")


@jit(nopython=True)
def _pressure_viscosity_sequential(
    positions, velocities, cell_of, cell_start, order, neighbor_cells,
    interaction_radius, pressure_coeff, viscosity_coeff, unique_pairs, min_separation
):
    """
    Numba-jitted in-place pass over all neighbor pairs.

    Updates are applied immediately, so a pair sees the velocities left by
    every pair processed before it. With unique_pairs, a pair (a, b) is
    processed only from the side with the smaller index; otherwise both
    sides apply the full interaction.
    """
    particle_count = positions.shape[0]
    radius_sq = interaction_radius * interaction_radius
    min_separation_sq = min_separation * min_separation
    keep = 1.0 - viscosity_coeff
    interactions = 0

    for a in range(particle_count):
        home = cell_of[a]
        for k in range(9):
            c = neighbor_cells[home, k]
            if c >= 0:
                for slot in range(cell_start[c], cell_start[c + 1]):
                    b = order[slot]
                    if b == a:
                        continue
                    if unique_pairs and b < a:
                        continue

                    delta_x = positions[b, 0] - positions[a, 0]
                    delta_y = positions[b, 1] - positions[a, 1]
                    distance_sq = delta_x * delta_x + delta_y * delta_y
                    if distance_sq >= radius_sq or distance_sq <= min_separation_sq:
                        continue

                    distance = np.sqrt(distance_sq)
                    # Direction is FROM a TO b
                    dir_x = delta_x / distance
                    dir_y = delta_y / distance

                    force = (interaction_radius - distance) * pressure_coeff
                    velocities[a, 0] -= force * dir_x
                    velocities[a, 1] -= force * dir_y
                    velocities[b, 0] += force * dir_x
                    velocities[b, 1] += force * dir_y

                    avg_vx = (velocities[a, 0] + velocities[b, 0]) * 0.5
                    avg_vy = (velocities[a, 1] + velocities[b, 1]) * 0.5
                    velocities[a, 0] = avg_vx * viscosity_coeff + velocities[a, 0] * keep
                    velocities[a, 1] = avg_vy * viscosity_coeff + velocities[a, 1] * keep
                    velocities[b, 0] = avg_vx * viscosity_coeff + velocities[b, 0] * keep
                    velocities[b, 1] = avg_vy * viscosity_coeff + velocities[b, 1] * keep
                    interactions += 1
    return interactions


@jit(nopython=True, parallel=True)
def _pressure_viscosity_parallel(
    positions, velocities, cell_of, cell_start, order, neighbor_cells,
    interaction_radius, pressure_coeff, viscosity_coeff, min_separation
):
    """
    Numba-jitted parallel pass producing per-particle velocity deltas.

    Each iteration writes only row a of the delta buffer, using the
    velocities from the start of the pass. Both members of a pair compute
    their own half of the interaction, which keeps pressure symmetric.
    The caller commits the deltas after the parallel phase.
    """
    particle_count = positions.shape[0]
    radius_sq = interaction_radius * interaction_radius
    min_separation_sq = min_separation * min_separation
    half_viscosity = viscosity_coeff * 0.5
    delta = np.zeros((particle_count, 2), dtype=np.float64)
    counts = np.zeros(particle_count, dtype=np.int64)

    for a in prange(particle_count):
        dvx = 0.0
        dvy = 0.0
        hits = 0
        home = cell_of[a]
        for k in range(9):
            c = neighbor_cells[home, k]
            if c >= 0:
                for slot in range(cell_start[c], cell_start[c + 1]):
                    b = order[slot]
                    if b == a:
                        continue
                    delta_x = positions[b, 0] - positions[a, 0]
                    delta_y = positions[b, 1] - positions[a, 1]
                    distance_sq = delta_x * delta_x + delta_y * delta_y
                    if distance_sq >= radius_sq or distance_sq <= min_separation_sq:
                        continue

                    distance = np.sqrt(distance_sq)
                    force = (interaction_radius - distance) * pressure_coeff
                    dvx -= force * delta_x / distance
                    dvy -= force * delta_y / distance
                    dvx += half_viscosity * (velocities[b, 0] - velocities[a, 0])
                    dvy += half_viscosity * (velocities[b, 1] - velocities[a, 1])
                    hits += 1
        delta[a, 0] = dvx
        delta[a, 1] = dvy
        counts[a] = hits
    return delta, counts


@jit(nopython=True)
def _neighbor_counts(positions, cell_of, cell_start, order, neighbor_cells, interaction_radius):
    """Numba-jitted count of neighbors within the interaction radius."""
    particle_count = positions.shape[0]
    radius_sq = interaction_radius * interaction_radius
    counts = np.zeros(particle_count, dtype=np.int64)
    for a in range(particle_count):
        home = cell_of[a]
        for k in range(9):
            c = neighbor_cells[home, k]
            if c >= 0:
                for slot in range(cell_start[c], cell_start[c + 1]):
                    b = order[slot]
                    if b == a:
                        continue
                    delta_x = positions[b, 0] - positions[a, 0]
                    delta_y = positions[b, 1] - positions[a, 1]
                    if delta_x * delta_x + delta_y * delta_y < radius_sq:
                        counts[a] += 1
    return counts


class ForceSolver:
    """
    Applies pressure and viscosity impulses between neighboring particles.
    """
    def __init__(self, params: Dict[str, Any]):
        """
        Initializes the solver and validates its configuration.

        Args:
            params (Dict[str, Any]): Simulation parameters from config.
        """
        particle_radius = float(params.get('particle_radius', DEFAULT_PARTICLE_RADIUS))
        self.interaction_radius = float(params.get('interaction_radius', 2.0 * particle_radius))
        self.pressure_coeff = float(params.get('pressure_coeff', 0.05))
        self.viscosity_coeff = float(params.get('viscosity_coeff', 0.02))
        self.pair_visitation = params.get('pair_visitation', 'unique')
        self.solver = params.get('solver', 'sequential')
        cell_size = float(params.get('cell_size', 20.0))

        problems = []
        if self.interaction_radius <= 0:
            problems.append(f"interaction_radius must be positive, got {self.interaction_radius}")
        if self.interaction_radius > cell_size:
            # A 3x3 block only covers partners closer than one cell.
            problems.append(
                f"interaction_radius ({self.interaction_radius}) exceeds cell_size ({cell_size})"
            )
        if not 0.0 <= self.viscosity_coeff <= 1.0:
            problems.append(f"viscosity_coeff must be in [0, 1], got {self.viscosity_coeff}")
        if self.pair_visitation not in PAIR_VISITATIONS:
            problems.append(f"unknown pair_visitation '{self.pair_visitation}'")
        if self.solver not in SOLVERS:
            problems.append(f"unknown solver '{self.solver}'")
        if self.solver == 'parallel' and self.pair_visitation == 'both':
            problems.append("the parallel solver only supports 'unique' pair visitation")
        if problems:
            msg = "Configuration error: " + "; ".join(problems) + "."
            logging.critical(msg)
            raise ValueError(msg)

        logging.info(
            f"ForceSolver initialized: radius {self.interaction_radius:.2f}, "
            f"pressure {self.pressure_coeff}, viscosity {self.viscosity_coeff}, "
            f"{self.solver} solver, '{self.pair_visitation}' pair visitation."
        )

    def _check_grid(self, store: ParticleStore, grid: SpatialGrid) -> None:
        if grid.particle_count != store.particle_count:
            raise ValueError(
                f"Spatial grid holds {grid.particle_count} particles but the store "
                f"holds {store.particle_count}; rebuild the grid before solving."
            )

    def apply(self, store: ParticleStore, grid: SpatialGrid) -> int:
        """
        Applies one pressure and viscosity pass to every particle.

        Returns:
            int: The number of pair interactions applied.
        """
        self._check_grid(store, grid)
        if store.particle_count < 2:
            return 0

        if self.solver == 'parallel':
            delta, counts = _pressure_viscosity_parallel(
                store.positions, store.velocities,
                grid.cell_of, grid.cell_start, grid.order, grid.neighbor_cells,
                self.interaction_radius, self.pressure_coeff, self.viscosity_coeff,
                MIN_SEPARATION
            )
            store.velocities += delta
            # Both members of a pair count the interaction.
            interactions = int(counts.sum()) // 2
        else:
            interactions = _pressure_viscosity_sequential(
                store.positions, store.velocities,
                grid.cell_of, grid.cell_start, grid.order, grid.neighbor_cells,
                self.interaction_radius, self.pressure_coeff, self.viscosity_coeff,
                self.pair_visitation == 'unique', MIN_SEPARATION
            )
        return interactions

    def neighbor_counts(self, store: ParticleStore, grid: SpatialGrid) -> np.ndarray:
        """Returns, per particle, how many others lie within the interaction radius."""
        self._check_grid(store, grid)
        if store.particle_count == 0:
            return np.zeros(0, dtype=np.int64)
        return _neighbor_counts(
            store.positions, grid.cell_of, grid.cell_start, grid.order,
            grid.neighbor_cells, self.interaction_radius
        )
