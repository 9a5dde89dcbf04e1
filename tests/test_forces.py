import numpy as np
import pytest

from forces import ForceSolver
from grid import SpatialGrid


def _solve(store, params, passes=1):
    solver = ForceSolver(params)
    grid = SpatialGrid(params["cell_size"])
    interactions = 0
    for _ in range(passes):
        grid.build(store.positions)
        interactions += solver.apply(store, grid)
    return interactions


def _assert_equal_and_opposite_along_line(store):
    va, vb = store.velocities
    np.testing.assert_allclose(va, -vb, atol=1e-12)
    line = store.positions[1] - store.positions[0]
    # Parallel to the line joining the pair, pushing a away from b.
    assert abs(va[0] * line[1] - va[1] * line[0]) < 1e-12
    assert np.dot(va, line) < 0


@pytest.mark.parametrize("solver", ["sequential", "parallel"])
def test_pair_gets_equal_and_opposite_impulse(make_store, sim_params, solver):
    store = make_store([[100.0, 100.0], [103.0, 104.0]])
    params = dict(sim_params, solver=solver)

    interactions = _solve(store, params)

    assert interactions == 1
    _assert_equal_and_opposite_along_line(store)


def test_pressure_magnitude_with_viscosity(make_store, sim_params):
    store = make_store([[100.0, 100.0], [105.0, 100.0]])

    _solve(store, sim_params)

    # f = (11 - 5) * 0.05, then blended toward the zero average by 0.02.
    expected = 0.3 * 0.98
    np.testing.assert_allclose(store.velocities[0], [-expected, 0.0])
    np.testing.assert_allclose(store.velocities[1], [expected, 0.0])


def test_both_sides_visitation_doubles_the_push(make_store, sim_params):
    unique = make_store([[100.0, 100.0], [105.0, 100.0]])
    doubled = make_store([[100.0, 100.0], [105.0, 100.0]])

    assert _solve(unique, sim_params) == 1
    assert _solve(doubled, dict(sim_params, pair_visitation="both")) == 2

    assert abs(doubled.velocities[0, 0]) > 1.9 * abs(unique.velocities[0, 0])
    _assert_equal_and_opposite_along_line(doubled)


def test_pairs_outside_radius_are_ignored(make_store, sim_params):
    store = make_store([[100.0, 100.0], [112.0, 100.0]])

    assert _solve(store, sim_params) == 0
    np.testing.assert_array_equal(store.velocities, 0.0)


def test_coincident_particles_are_skipped(make_store, sim_params):
    store = make_store([[100.0, 100.0], [100.0, 100.0], [104.0, 100.0]])

    _solve(store, sim_params)

    assert np.isfinite(store.velocities).all()
    # Both are pushed away from the third particle, not from each other.
    assert store.velocities[0, 0] < 0
    assert store.velocities[1, 0] < 0
    np.testing.assert_allclose(store.velocities[:, 1], 0.0)


@pytest.mark.parametrize("solver", ["sequential", "parallel"])
def test_momentum_is_conserved_in_a_cluster(make_store, sim_params, solver):
    rng = np.random.default_rng(5)
    positions = rng.uniform(100.0, 160.0, size=(80, 2))
    velocities = rng.normal(size=(80, 2))
    store = make_store(positions, velocities)
    total_before = store.velocities.sum(axis=0)

    _solve(store, dict(sim_params, solver=solver), passes=3)

    np.testing.assert_allclose(store.velocities.sum(axis=0), total_before, atol=1e-9)
    assert np.isfinite(store.velocities).all()


def test_stale_grid_is_rejected(make_store, sim_params):
    store = make_store([[100.0, 100.0], [105.0, 100.0]])
    grid = SpatialGrid(sim_params["cell_size"])
    grid.build(store.positions[:1])

    with pytest.raises(ValueError):
        ForceSolver(sim_params).apply(store, grid)


def test_neighbor_counts(make_store, sim_params):
    store = make_store([[100.0, 100.0], [105.0, 100.0], [108.0, 100.0], [150.0, 150.0]])
    solver = ForceSolver(sim_params)
    grid = SpatialGrid(sim_params["cell_size"])
    grid.build(store.positions)

    assert solver.neighbor_counts(store, grid).tolist() == [2, 2, 2, 0]


@pytest.mark.parametrize("overrides", [
    {"interaction_radius": 25.0},
    {"viscosity_coeff": 1.5},
    {"pair_visitation": "sometimes"},
    {"solver": "gpu"},
    {"solver": "parallel", "pair_visitation": "both"},
])
def test_invalid_configuration(sim_params, overrides):
    with pytest.raises(ValueError):
        ForceSolver(dict(sim_params, **overrides))
