import numpy as np
import pytest

from particle import BoundingBox, ParticleStore


@pytest.fixture
def sim_params():
    """Simulation parameters matching config.json, without initial particles."""
    return {
        "seed": 7,
        "particle_count": 0,
        "particle_radius": 5.5,
        "gravity": 0.2,
        "drag": 0.98,
        "bounce": 0.7,
        "pressure_coeff": 0.05,
        "viscosity_coeff": 0.02,
        "interaction_radius": 11.0,
        "cell_size": 20.0,
        "bounding_box": [5.0, 5.0, 690.0, 490.0],
        "boundary_policy": "reflect",
        "pair_visitation": "unique",
        "solver": "sequential",
    }


@pytest.fixture
def bounds(sim_params):
    return BoundingBox.from_sequence(sim_params["bounding_box"])


@pytest.fixture
def make_store(sim_params, bounds):
    """Builds an empty store and fills it with the given particles."""
    def _make(positions=(), velocities=None, **overrides):
        params = dict(sim_params, **overrides)
        store = ParticleStore(params, bounds)
        positions = np.asarray(positions, dtype=np.float64).reshape(-1, 2)
        if velocities is None:
            velocities = np.zeros_like(positions)
        store.spawn(positions, velocities)
        return store
    return _make
