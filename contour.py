# contour.py
"""
Marching-squares extraction of the density isosurface.

The bounding box is covered by a lattice of square cells of side
`contour_step_size`. The density is sampled at every lattice corner and
each corner is compared against `density_threshold`, giving a 4-bit case
index per cell:

    top-left = 1, top-right = 2, bottom-right = 4, bottom-left = 8

(y grows downward, as on screen). The case indexes a 16-entry table, whose
entries are polygon vertices in units of the step size relative to the
cell's top-left corner. Complementary cases share a shape. The two saddle
cases, 5 and 10, are drawn as hexagons without disambiguation.
`contour_table` picks the "classic" table (the default) or the
"geometric" one, which differ only in cases 3/12, 6/9 and 7/8.
"""
import logging
import math
import numpy as np
from typing import Dict, Any, Iterator, NamedTuple, Optional, Sequence, Tuple
from density import DensityField
from particle import BoundingBox

# --- Data Contracts ---
#
# generate_contour(x, y, step, densities, threshold) -> Optional[Polygon]:
#   - Inputs: densities at (top-left, top-right, bottom-right, bottom-left).
#   - Outputs: None for cases 0 and 15, otherwise a Polygon of 3, 4 or
#     6 vertices.
#
# class ContourExtractor:
#   - extract(self, positions: np.ndarray) -> Iterator[Polygon]:
#     - Outputs: a lazy, finite, single-use generator of polygons for the
#       current particle positions.

Offset = Tuple[float, float]

TOP_LEFT = 1
TOP_RIGHT = 2
BOTTOM_RIGHT = 4
BOTTOM_LEFT = 8

_CORNER_TL = (0.0, 0.5), (0.0, 0.0), (0.5, 0.0)
_CORNER_TR = (0.5, 0.0), (1.0, 0.0), (1.0, 0.5)
_CORNER_BR = (1.0, 0.5), (1.0, 1.0), (0.5, 1.0)
_CORNER_BL = (0.0, 0.5), (0.0, 1.0), (0.5, 1.0)
_SADDLE_5 = (0.0, 0.5), (0.0, 0.0), (0.5, 0.0), (1.0, 0.0), (1.0, 0.5), (0.5, 1.0)
_SADDLE_10 = (0.0, 0.0), (0.5, 0.0), (1.0, 0.0), (1.0, 1.0), (0.5, 1.0), (0.0, 0.5)

# Shapes shared by complementary case pairs.
_TOP_WEDGE = (0.0, 0.5), (0.0, 0.0), (1.0, 0.5)
_SLANTED_RIGHT = (0.5, 0.0), (1.0, 0.0), (0.0, 1.0), (0.5, 1.0)
_BOTTOM_WEDGE = (0.0, 0.5), (0.0, 1.0), (1.0, 1.0)

_TOP_HALF = (0.0, 0.5), (0.0, 0.0), (1.0, 0.0), (1.0, 0.5)
_RIGHT_HALF = (0.5, 0.0), (1.0, 0.0), (1.0, 1.0), (0.5, 1.0)


def _table(top_pair, right_pair, bottom_left_pair):
    """Builds a 16-entry table from the shapes of cases 3/12, 6/9 and 7/8."""
    return (
        None,               # 0
        _CORNER_TL,         # 1
        _CORNER_TR,         # 2
        top_pair,           # 3
        _CORNER_BR,         # 4
        _SADDLE_5,          # 5
        right_pair,         # 6
        bottom_left_pair,   # 7
        bottom_left_pair,   # 8
        right_pair,         # 9
        _SADDLE_10,         # 10
        _CORNER_BR,         # 11
        top_pair,           # 12
        _CORNER_TR,         # 13
        _CORNER_TL,         # 14
        None,               # 15
    )


ContourTable = Tuple[Optional[Tuple[Offset, ...]], ...]

# The classic table draws cases 3/12, 6/9 and 7/8 as wedges that span the
# cell; the geometric table draws them as the half cell or corner they
# enclose.
CONTOUR_TABLE: ContourTable = _table(_TOP_WEDGE, _SLANTED_RIGHT, _BOTTOM_WEDGE)
GEOMETRIC_CONTOUR_TABLE: ContourTable = _table(_TOP_HALF, _RIGHT_HALF, _CORNER_BL)

CONTOUR_TABLES: Dict[str, ContourTable] = {
    "classic": CONTOUR_TABLE,
    "geometric": GEOMETRIC_CONTOUR_TABLE,
}


class Polygon(NamedTuple):
    """A contour polygon in world coordinates."""
    vertices: Tuple[Tuple[float, float], ...]
    # Mean corner density, used by the renderer for coloring.
    pressure: float
    case: int


def case_index(densities: Sequence[float], threshold: float) -> int:
    """Builds the 4-bit case from (top-left, top-right, bottom-right, bottom-left)."""
    index = 0
    if densities[0] > threshold:
        index |= TOP_LEFT
    if densities[1] > threshold:
        index |= TOP_RIGHT
    if densities[2] > threshold:
        index |= BOTTOM_RIGHT
    if densities[3] > threshold:
        index |= BOTTOM_LEFT
    return index


def polygon_for_case(
    case: int, x: float, y: float, step: float, pressure: float = 0.0,
    table: ContourTable = CONTOUR_TABLE
) -> Optional[Polygon]:
    offsets = table[case]
    if offsets is None:
        return None
    vertices = tuple((x + fx * step, y + fy * step) for fx, fy in offsets)
    return Polygon(vertices, pressure, case)


def generate_contour(
    x: float, y: float, step: float, densities: Sequence[float], threshold: float,
    table: ContourTable = CONTOUR_TABLE
) -> Optional[Polygon]:
    """Returns the polygon for one lattice cell, or None when it has no contour."""
    case = case_index(densities, threshold)
    pressure = float(sum(densities)) / 4.0
    return polygon_for_case(case, x, y, step, pressure, table)


class ContourExtractor:
    """
    Runs marching squares over the density field on a regular lattice.
    """
    def __init__(self, params: Dict[str, Any], bounds: BoundingBox, density_field: DensityField):
        """
        Initializes the lattice covering the bounding box.

        Args:
            params (Dict[str, Any]): The "contour" section of config.json.
            bounds (BoundingBox): The region to cover.
            density_field (DensityField): The field to sample.
        """
        self.step = float(params.get('contour_step_size', 5.0))
        self.threshold = float(params.get('density_threshold', 0.5))
        self.density_field = density_field
        table_name = params.get('contour_table', 'classic')

        if self.step <= 0:
            msg = f"Configuration error: contour_step_size must be positive, got {self.step}."
            logging.critical(msg)
            raise ValueError(msg)
        if table_name not in CONTOUR_TABLES:
            msg = (
                f"Configuration error: unknown contour_table '{table_name}'. "
                f"Expected one of {tuple(CONTOUR_TABLES)}."
            )
            logging.critical(msg)
            raise ValueError(msg)
        self.table = CONTOUR_TABLES[table_name]
        self.table_name = table_name

        columns = max(int(math.ceil(bounds.width / self.step)), 1)
        rows = max(int(math.ceil(bounds.height / self.step)), 1)
        # Corner coordinates; there is one more corner than cells per axis.
        self.xs = bounds.x + self.step * np.arange(columns + 1, dtype=np.float64)
        self.ys = bounds.y + self.step * np.arange(rows + 1, dtype=np.float64)

        logging.info(
            f"Contour lattice: {columns}x{rows} cells of step {self.step}, "
            f"threshold {self.threshold}, '{self.table_name}' table."
        )

    def case_indices(self, samples: np.ndarray) -> np.ndarray:
        """Returns the case index of every cell for a (rows + 1, columns + 1) sample array."""
        above = (samples > self.threshold).astype(np.int64)
        return (
            above[:-1, :-1] * TOP_LEFT
            | above[:-1, 1:] * TOP_RIGHT
            | above[1:, 1:] * BOTTOM_RIGHT
            | above[1:, :-1] * BOTTOM_LEFT
        )

    def extract(self, positions: np.ndarray) -> Iterator[Polygon]:
        """
        Yields the contour polygons for the given particle positions.

        Sampling happens when iteration starts; the generator cannot be
        restarted.
        """
        if positions.shape[0] == 0:
            return
        samples = self.density_field.sample(self.xs, self.ys, positions)
        cases = self.case_indices(samples)
        rows, cols = np.nonzero((cases != 0) & (cases != 15))
        for row, col in zip(rows, cols):
            corners = (
                samples[row, col],
                samples[row, col + 1],
                samples[row + 1, col + 1],
                samples[row + 1, col],
            )
            yield generate_contour(
                float(self.xs[col]), float(self.ys[row]), self.step, corners, self.threshold,
                self.table
            )
