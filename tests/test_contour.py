import types

import numpy as np
import pytest

from contour import (
    CONTOUR_TABLE, GEOMETRIC_CONTOUR_TABLE, ContourExtractor, case_index, generate_contour,
    polygon_for_case
)
from density import DensityField
from particle import BoundingBox


def _corners_for_case(case):
    """Densities (TL, TR, BR, BL) that produce the given case at threshold 0.5."""
    return [1.0 if case & bit else 0.0 for bit in (1, 2, 4, 8)]


def test_table_covers_all_sixteen_cases():
    assert len(CONTOUR_TABLE) == 16


@pytest.mark.parametrize("case", range(16))
def test_every_case_is_handled(case):
    polygon = generate_contour(10.0, 20.0, 5.0, _corners_for_case(case), 0.5)

    if case in (0, 15):
        assert polygon is None
        return
    assert polygon.case == case
    assert len(polygon.vertices) in (3, 4, 6)
    for x, y in polygon.vertices:
        assert 10.0 <= x <= 15.0
        assert 20.0 <= y <= 25.0


@pytest.mark.parametrize("case", [1, 2, 3, 4, 6, 7])
def test_complementary_cases_share_a_shape(case):
    assert CONTOUR_TABLE[case] == CONTOUR_TABLE[15 - case]


def test_saddle_cases_are_hexagons():
    assert len(CONTOUR_TABLE[5]) == 6
    assert len(CONTOUR_TABLE[10]) == 6


def test_single_corner_cases_are_triangles():
    for case in (1, 2, 4, 8):
        assert len(CONTOUR_TABLE[case]) == 3


def test_case_index_bit_order():
    assert case_index([0.9, 0.0, 0.0, 0.0], 0.5) == 1
    assert case_index([0.0, 0.9, 0.0, 0.0], 0.5) == 2
    assert case_index([0.0, 0.0, 0.9, 0.0], 0.5) == 4
    assert case_index([0.0, 0.0, 0.0, 0.9], 0.5) == 8
    # The threshold itself is not inside.
    assert case_index([0.5, 0.5, 0.5, 0.5], 0.5) == 0


def test_polygon_is_scaled_and_annotated():
    polygon = generate_contour(0.0, 0.0, 10.0, [2.0, 0.0, 0.0, 0.0], 0.5)

    assert polygon.vertices == ((0.0, 5.0), (0.0, 0.0), (5.0, 0.0))
    assert polygon.pressure == 0.5
    assert polygon_for_case(0, 0.0, 0.0, 10.0) is None


@pytest.fixture
def extractor():
    bounds = BoundingBox(0.0, 0.0, 100.0, 60.0)
    field = DensityField({"particle_radius": 5.5})
    return ContourExtractor({"contour_step_size": 5.0, "density_threshold": 0.5}, bounds, field)


def test_lattice_covers_the_box(extractor):
    assert extractor.xs[0] == 0.0
    assert extractor.xs[-1] == 100.0
    assert extractor.ys[-1] == 60.0


def test_no_particles_no_polygons(extractor):
    assert list(extractor.extract(np.empty((0, 2)))) == []


def test_blob_produces_a_closed_band_of_polygons(extractor):
    positions = np.array([[50.0, 30.0], [52.0, 31.0], [48.0, 29.0]])

    polygons = extractor.extract(positions)
    assert isinstance(polygons, types.GeneratorType)

    polygons = list(polygons)
    assert polygons
    for polygon in polygons:
        assert polygon.case not in (0, 15)
        assert len(polygon.vertices) in (3, 4, 6)
        for x, y in polygon.vertices:
            assert 0.0 <= x <= 100.0
            assert 0.0 <= y <= 60.0
    # Contour cells surround the blob.
    centers = np.array([np.mean(p.vertices, axis=0) for p in polygons])
    assert centers[:, 0].min() < 50.0 < centers[:, 0].max()
    assert centers[:, 1].min() < 30.0 < centers[:, 1].max()


def test_extraction_is_single_use(extractor):
    polygons = extractor.extract(np.array([[50.0, 30.0]]))
    first = list(polygons)
    assert first
    assert list(polygons) == []


def test_invalid_step_is_rejected():
    with pytest.raises(ValueError):
        ContourExtractor({"contour_step_size": 0.0}, BoundingBox(0, 0, 10, 10), DensityField({}))


# Vertices of every case at x = y = 0 with a step of 4.
CLASSIC_VERTICES = {
    1: ((0, 2), (0, 0), (2, 0)),
    2: ((2, 0), (4, 0), (4, 2)),
    3: ((0, 2), (0, 0), (4, 2)),
    4: ((4, 2), (4, 4), (2, 4)),
    5: ((0, 2), (0, 0), (2, 0), (4, 0), (4, 2), (2, 4)),
    6: ((2, 0), (4, 0), (0, 4), (2, 4)),
    7: ((0, 2), (0, 4), (4, 4)),
    10: ((0, 0), (2, 0), (4, 0), (4, 4), (2, 4), (0, 2)),
}


@pytest.mark.parametrize("case", range(1, 15))
def test_classic_table_vertices(case):
    expected = CLASSIC_VERTICES.get(case, CLASSIC_VERTICES.get(15 - case))
    polygon = generate_contour(0.0, 0.0, 4.0, _corners_for_case(case), 0.5)

    assert polygon.vertices == tuple((float(x), float(y)) for x, y in expected)


def test_geometric_table_is_opt_in():
    polygon = generate_contour(0.0, 0.0, 4.0, _corners_for_case(3), 0.5, GEOMETRIC_CONTOUR_TABLE)
    assert polygon.vertices == ((0.0, 2.0), (0.0, 0.0), (4.0, 0.0), (4.0, 2.0))

    for case in (1, 2, 4, 5, 10, 11, 13, 14):
        assert GEOMETRIC_CONTOUR_TABLE[case] == CONTOUR_TABLE[case]


def test_extractor_selects_table_by_name():
    bounds = BoundingBox(0.0, 0.0, 20.0, 20.0)
    field = DensityField({})
    assert ContourExtractor({}, bounds, field).table is CONTOUR_TABLE
    geometric = ContourExtractor({"contour_table": "geometric"}, bounds, field)
    assert geometric.table is GEOMETRIC_CONTOUR_TABLE

    with pytest.raises(ValueError):
        ContourExtractor({"contour_table": "smooth"}, bounds, field)
