import numpy as np
import pytest

from grid import CellKey, SpatialGrid, cell_key


def test_cell_key_floors_negative_coordinates():
    assert cell_key(-0.5, 19.9, 20.0) == CellKey(-1, 0)
    assert cell_key(40.0, -20.0, 20.0) == CellKey(2, -1)


def test_empty_grid_has_no_neighbors():
    grid = SpatialGrid(20.0)
    grid.build(np.empty((0, 2)))

    assert grid.particle_count == 0
    assert grid.neighbors_of_point(10.0, 10.0).size == 0
    assert grid.cells() == {}


def test_non_positive_cell_size_is_rejected():
    with pytest.raises(ValueError):
        SpatialGrid(0.0)


def test_every_particle_lands_in_exactly_one_cell():
    rng = np.random.default_rng(1)
    positions = rng.uniform(-50.0, 150.0, size=(300, 2))
    grid = SpatialGrid(20.0)
    grid.build(positions)

    cells = grid.cells()
    members = np.concatenate(list(cells.values()))
    assert sorted(members.tolist()) == list(range(300))
    for key, indices in cells.items():
        for i in indices:
            assert cell_key(positions[i, 0], positions[i, 1], 20.0) == key


def test_members_keep_insertion_order():
    positions = np.array([[5.0, 5.0], [50.0, 50.0], [6.0, 6.0], [7.0, 7.0]])
    grid = SpatialGrid(20.0)
    grid.build(positions)

    assert grid.members(CellKey(0, 0)).tolist() == [0, 2, 3]
    assert grid.members(CellKey(9, 9)).size == 0


def test_neighbors_include_self():
    grid = SpatialGrid(20.0)
    grid.build(np.array([[10.0, 10.0]]))
    assert grid.neighbors(0).tolist() == [0]


def test_neighbors_match_brute_force_scan():
    rng = np.random.default_rng(3)
    cell_size = 10.0
    positions = rng.uniform(0.0, 100.0, size=(250, 2))
    grid = SpatialGrid(cell_size)
    grid.build(positions)
    keys = np.floor(positions / cell_size).astype(int)

    for i in range(positions.shape[0]):
        found = set(grid.neighbors(i).tolist())

        # Exactly the particles whose cell is in the 3x3 block.
        in_block = set(np.nonzero(np.all(np.abs(keys - keys[i]) <= 1, axis=1))[0].tolist())
        assert found == in_block

        # Every particle within one cell size is found.
        distances = np.linalg.norm(positions - positions[i], axis=1)
        close = set(np.nonzero(distances < cell_size)[0].tolist())
        assert close <= found


def test_rebuild_replaces_previous_contents():
    grid = SpatialGrid(20.0)
    grid.build(np.array([[5.0, 5.0], [6.0, 6.0]]))
    grid.build(np.array([[105.0, 105.0]]))

    assert grid.particle_count == 1
    assert grid.members(CellKey(0, 0)).size == 0
    assert grid.key_of(0) == CellKey(5, 5)


def test_neighbors_of_point_outside_occupied_range():
    grid = SpatialGrid(20.0)
    grid.build(np.array([[5.0, 5.0]]))

    assert grid.neighbors_of_point(25.0, 25.0).tolist() == [0]
    assert grid.neighbors_of_point(500.0, 500.0).size == 0


def test_far_apart_particles_only_store_occupied_cells():
    grid = SpatialGrid(1.0)
    grid.build(np.array([[0.0, 0.0], [2e6, 2e6], [2e6 + 0.5, 2e6]]))

    assert grid.cell_count == 2
    assert grid.cell_start.shape == (3,)
    assert grid.neighbors(0).tolist() == [0]
    assert sorted(grid.neighbors(1).tolist()) == [1, 2]
    assert grid.members(CellKey(2000000, 2000000)).tolist() == [1, 2]
    assert grid.neighbors_of_point(1e6, 1e6).size == 0


def test_neighbor_cells_point_at_occupied_cells():
    positions = np.array([[5.0, 5.0], [25.0, 5.0], [65.0, 5.0], [-15.0, -15.0]])
    grid = SpatialGrid(20.0)
    grid.build(positions)

    origin = grid.cell_of[0]
    linked = {
        tuple(grid.cell_keys[c].tolist()) for c in grid.neighbor_cells[origin] if c >= 0
    }
    assert linked == {(0, 0), (1, 0), (-1, -1)}
