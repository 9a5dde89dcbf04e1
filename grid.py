# grid.py
"""
Uniform-cell spatial grid for bounded neighbor search.

The grid is rebuilt from scratch every step and only stores occupied
cells. Particle indices are stably sorted by their integer cell key, so
each cell's members are a contiguous slice of `order` and keep their
insertion (index) order. Occupied cell keys are kept in lexicographic
order and each one records the indices of its occupied 3x3 neighbors,
so memory follows the particle count, not the area the particles span.
"""
import logging
import math
import numpy as np
from typing import Dict, NamedTuple
from numba import jit

# --- Data Contracts ---
#
# class SpatialGrid:
#   - __init__(self, cell_size: float)
#     - Raises ValueError if cell_size is not positive.
#
#   - build(self, positions: np.ndarray) -> None:
#     - Inputs: positions, float64 array of shape (N, 2).
#     - Side Effects: replaces keys, cell_keys, cell_start, cell_of, order
#       and neighbor_cells.
#     - Invariants: every index 0..N-1 appears exactly once in order, in
#       the cell given by floor(position / cell_size).
#
#   - neighbors(self, index: int) -> np.ndarray:
#     - Outputs: int64 indices of all particles in the 3x3 block around
#       the particle's cell, the particle itself included.

# Slots of neighbor_cells rows, dx outer and dy inner.
NEIGHBOR_OFFSETS = tuple((dx, dy) for dx in (-1, 0, 1) for dy in (-1, 0, 1))


class CellKey(NamedTuple):
    """Integer cell coordinates (floor(x / cell_size), floor(y / cell_size))."""
    cx: int
    cy: int


def cell_key(x: float, y: float, cell_size: float) -> CellKey:
    return CellKey(int(math.floor(x / cell_size)), int(math.floor(y / cell_size)))


@jit(nopython=True)
def _find_cell(cell_keys, cx, cy):
    """Binary search over lexicographically sorted keys; -1 when unoccupied."""
    lo = 0
    hi = cell_keys.shape[0]
    while lo < hi:
        mid = (lo + hi) // 2
        mx = cell_keys[mid, 0]
        my = cell_keys[mid, 1]
        if mx < cx or (mx == cx and my < cy):
            lo = mid + 1
        else:
            hi = mid
    if lo < cell_keys.shape[0] and cell_keys[lo, 0] == cx and cell_keys[lo, 1] == cy:
        return lo
    return -1


@jit(nopython=True)
def _link_neighbor_cells(cell_keys):
    """
    Numba-jitted lookup of the occupied 3x3 neighbors of every cell.

    Returns:
        int64 array of shape (M, 9); entry k holds the index of the cell at
        NEIGHBOR_OFFSETS[k], or -1 when that cell is empty.
    """
    cell_count = cell_keys.shape[0]
    neighbor_cells = np.full((cell_count, 9), -1, dtype=np.int64)
    for c in range(cell_count):
        slot = 0
        for dx in range(-1, 2):
            for dy in range(-1, 2):
                neighbor_cells[c, slot] = _find_cell(
                    cell_keys, cell_keys[c, 0] + dx, cell_keys[c, 1] + dy
                )
                slot += 1
    return neighbor_cells


class SpatialGrid:
    """
    Maps cell keys to the indices of the particles inside each cell.
    """
    def __init__(self, cell_size: float):
        if cell_size <= 0:
            msg = f"Configuration error: cell_size must be positive, got {cell_size}."
            logging.critical(msg)
            raise ValueError(msg)
        self.cell_size = float(cell_size)
        self._reset()
        logging.info(f"Spatial grid enabled with cell size {self.cell_size:.2f}.")

    def _reset(self):
        self.keys = np.empty((0, 2), dtype=np.int64)
        self.cell_keys = np.empty((0, 2), dtype=np.int64)
        self.cell_start = np.zeros(1, dtype=np.int64)
        self.cell_of = np.empty(0, dtype=np.int64)
        self.order = np.empty(0, dtype=np.int64)
        self.neighbor_cells = np.empty((0, 9), dtype=np.int64)

    @property
    def particle_count(self) -> int:
        return self.cell_of.shape[0]

    @property
    def cell_count(self) -> int:
        return self.cell_keys.shape[0]

    def build(self, positions: np.ndarray) -> None:
        """Clears the grid and repopulates it from the given positions."""
        particle_count = positions.shape[0]
        if particle_count == 0:
            self._reset()
            return

        keys = np.floor(positions / self.cell_size).astype(np.int64)
        # lexsort is stable, so members stay in index order within a cell.
        order = np.lexsort((keys[:, 1], keys[:, 0])).astype(np.int64)
        sorted_keys = keys[order]

        new_cell = np.ones(particle_count, dtype=bool)
        new_cell[1:] = np.any(sorted_keys[1:] != sorted_keys[:-1], axis=1)
        starts = np.nonzero(new_cell)[0]

        cell_of = np.empty(particle_count, dtype=np.int64)
        cell_of[order] = np.cumsum(new_cell) - 1

        self.keys = keys
        self.order = order
        self.cell_of = cell_of
        self.cell_keys = np.ascontiguousarray(sorted_keys[starts])
        self.cell_start = np.append(starts, particle_count).astype(np.int64)
        self.neighbor_cells = _link_neighbor_cells(self.cell_keys)
        logging.debug(
            f"Grid rebuilt: {particle_count} particles in {self.cell_count} occupied cells."
        )

    def _find(self, cx: int, cy: int) -> int:
        if self.cell_count == 0:
            return -1
        return int(_find_cell(self.cell_keys, cx, cy))

    def _cell_members(self, c: int) -> np.ndarray:
        return self.order[self.cell_start[c]:self.cell_start[c + 1]]

    def _block(self, cx: int, cy: int) -> np.ndarray:
        parts = []
        for dx, dy in NEIGHBOR_OFFSETS:
            c = self._find(cx + dx, cy + dy)
            if c >= 0:
                parts.append(self._cell_members(c))
        if not parts:
            return np.empty(0, dtype=np.int64)
        return np.concatenate(parts)

    def neighbors(self, index: int) -> np.ndarray:
        """
        Returns the indices in the 3x3 cell block around particle `index`.

        The particle itself is part of the result; callers filter it out
        by index.
        """
        parts = [
            self._cell_members(c)
            for c in self.neighbor_cells[self.cell_of[index]]
            if c >= 0
        ]
        return np.concatenate(parts)

    def neighbors_of_point(self, x: float, y: float) -> np.ndarray:
        """Returns the indices in the 3x3 cell block around an arbitrary point."""
        key = cell_key(x, y, self.cell_size)
        return self._block(key.cx, key.cy)

    def key_of(self, index: int) -> CellKey:
        return CellKey(int(self.keys[index, 0]), int(self.keys[index, 1]))

    def members(self, key: CellKey) -> np.ndarray:
        """Returns the ordered indices of the particles inside one cell."""
        c = self._find(key.cx, key.cy)
        if c < 0:
            return np.empty(0, dtype=np.int64)
        return self._cell_members(c)

    def cells(self) -> Dict[CellKey, np.ndarray]:
        """Returns every occupied cell and its members."""
        return {
            CellKey(int(cx), int(cy)): self._cell_members(c)
            for c, (cx, cy) in enumerate(self.cell_keys)
        }
