"""Shared fixtures: small meshes, run control and dry forcing."""

import numpy as np
import pytest

from pihm.canopy.types import Diagnostics
from pihm.inputs import ControlParameters, ForcingData
from pihm.mesh.types import Elements, Mesh, Segments


def make_elements(**overrides: object) -> Elements:
    """Two elements sharing one edge, with all other edges closed."""
    params: dict[str, object] = {
        "area": np.array([100.0, 100.0]),
        "surface_elevation": np.array([20.0, 20.0]),
        "bed_elevation": np.array([0.0, 0.0]),
        "neighbors": np.array([[1, -1, -1], [0, -1, -1]]),
        "edge_length": np.full((2, 3), 10.0),
        "neighbor_distance": np.full((2, 3), 10.0),
        "kh": 1e-3,
    }
    params.update(overrides)
    return Elements(**params)  # type: ignore[arg-type]


@pytest.fixture
def two_cell_mesh() -> Mesh:
    """Two adjacent elements, no channel."""
    return Mesh(make_elements(), Segments.empty())


@pytest.fixture
def river_mesh() -> Mesh:
    """Two elements draining into one rectangular segment with a closed outlet.

    No water can leave this mesh, so its total storage is invariant.
    """
    elements = make_elements(
        surface_elevation=np.array([10.0, 10.0]),
        kh=1e-4,
        kv=1e-5,
    )
    segments = Segments(
        length=np.array([10.0]),
        width=2.0,
        bottom_elevation=np.array([9.0]),
        downstream=np.array([-1]),
        left=np.array([0]),
        right=np.array([1]),
        left_distance=5.0,
        right_distance=5.0,
        side_slope=0.0,
        outlet_slope=0.0,
    )
    return Mesh(elements, segments)


@pytest.fixture
def open_river_mesh() -> Mesh:
    """Two elements draining into a chain of two segments with an open outlet."""
    elements = make_elements(surface_elevation=np.array([10.0, 10.0]), kh=1e-4, kv=1e-5)
    segments = Segments(
        length=np.array([10.0, 10.0]),
        width=2.0,
        bottom_elevation=np.array([9.0, 8.9]),
        downstream=np.array([1, -1]),
        left=np.array([0, -1]),
        right=np.array([1, -1]),
        left_distance=5.0,
        right_distance=5.0,
        outlet_slope=1e-2,
    )
    return Mesh(elements, segments)


@pytest.fixture
def control() -> ControlParameters:
    """Reports at 0, 6 h and 12 h with a 5 h sub-step ceiling."""
    return ControlParameters(
        start_time=0.0,
        report_times=(0.0, 360.0, 720.0),
        et_step=300.0,
        init_step=0.1,
        max_step=60.0,
        rtol=1e-8,
        atol=1e-10,
    )


@pytest.fixture
def dry_forcing() -> ForcingData:
    """No precipitation and no evaporative demand."""
    return ForcingData.constant(precipitation=0.0, temperature=10.0, pet=0.0)


@pytest.fixture
def no_diagnostics() -> Diagnostics:
    """Diagnostics for two elements with no net precipitation or infiltration capacity."""
    return Diagnostics.initialize(2)
