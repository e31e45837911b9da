"""Mesh and topology data structures.

This module defines the static, read-only description of the watershed:
- Elements: triangular finite-volume cells with soil and land cover parameters
- Segments: river/channel routing units with cross-section and bed parameters
- Mesh: the validated combination of both

All containers are frozen dataclasses holding read-only numpy arrays. Scalar
parameters are broadcast to every entity on construction.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import ClassVar

import numpy as np

from ..constants import MINUTES_PER_DAY
from ..errors import ConfigurationError
from .constants import ELEMENT_PARAM_NAMES, NO_NEIGHBOR, SEGMENT_PARAM_NAMES

logger = logging.getLogger(__name__)


# Typical ranges for validation warnings (time unit: minutes)
_ELEMENT_BOUNDS: dict[str, tuple[float, float]] = {
    "porosity": (0.05, 0.6),
    "kh": (1e-8, 1.0),
    "kv": (1e-9, 1.0),
    "manning": (1e-4, 1e-2),
    "interception_capacity": (0.0, 5e-3),
    "melt_factor": (0.0, 0.0144 / MINUTES_PER_DAY),  # Up to 14.4 mm/degC/day
}

_SEGMENT_BOUNDS: dict[str, tuple[float, float]] = {
    "manning": (1e-4, 5e-3),
    "bed_porosity": (0.05, 0.6),
    "outlet_slope": (0.0, 0.1),
}


def _warn_if_outside_bounds(kind: str, values: dict[str, np.ndarray], bounds: dict[str, tuple[float, float]]) -> None:
    """Log warnings for parameters outside typical calibration ranges.

    This does not raise errors - parameters outside bounds may still be valid
    for specific catchments or research purposes.
    """
    for name, (lower, upper) in bounds.items():
        arr = values[name]
        outside = int(np.count_nonzero((arr < lower) | (arr > upper)))
        if outside:
            logger.warning(
                "%s parameter %s has %d value(s) outside typical range [%.2g, %.2g]",
                kind,
                name,
                outside,
                lower,
                upper,
            )


def _as_float_vector(name: str, value: np.ndarray | float, n: int) -> np.ndarray:
    arr = np.asarray(value, dtype=np.float64)
    if arr.ndim == 0:
        arr = np.full(n, float(arr))
    elif arr.shape != (n,):
        msg = f"{name} must be a scalar or have shape ({n},), got {arr.shape}"
        raise ConfigurationError(msg)
    else:
        arr = arr.copy()
    if np.isnan(arr).any():
        msg = f"{name} contains NaN values"
        raise ConfigurationError(msg)
    arr.flags.writeable = False
    return arr


def _as_table(name: str, value: np.ndarray, n: int, dtype: type) -> np.ndarray:
    arr = np.array(value, dtype=dtype, copy=True)
    if arr.shape != (n, 3):
        msg = f"{name} must have shape ({n}, 3), got {arr.shape}"
        raise ConfigurationError(msg)
    arr.flags.writeable = False
    return arr


def _require(condition: bool, message: str) -> None:
    if not condition:
        raise ConfigurationError(message)


@dataclass(frozen=True)
class Elements:
    """Triangular finite-volume cells.

    Attributes:
        area: Plan area of each cell [m2].
        surface_elevation: Land surface elevation at the centroid [m].
        bed_elevation: Aquifer base elevation [m]. Aquifer depth is
            surface_elevation - bed_elevation and must be positive.
        neighbors: Neighbor element id across each edge, shape (n, 3).
            -1 marks a no-flow boundary edge.
        edge_length: Length of each edge [m], shape (n, 3).
        neighbor_distance: Centroid-to-centroid distance across each edge
            [m], shape (n, 3). Ignored on boundary edges.
        porosity: Drainable porosity of the soil column [-], in (0, 1].
        kh: Lateral saturated hydraulic conductivity [m/min].
        kv: Vertical hydraulic conductivity driving recharge [m/min].
        k_inf: Infiltration conductivity of the soil matrix [m/min].
        macropore_k: Conductivity of macropores when active [m/min].
        macropore_fraction: Areal fraction of macropores [-].
        infiltration_depth: Depth over which the infiltration gradient acts [m].
        manning: Overland Manning roughness [min m^(-1/3)].
        interception_capacity: Canopy storage capacity per vegetated area [m].
        vegetation_fraction: Vegetated fraction of the cell [-].
        melt_factor: Degree-index snowmelt factor [m/degC/min].
    """

    area: np.ndarray
    surface_elevation: np.ndarray
    bed_elevation: np.ndarray
    neighbors: np.ndarray
    edge_length: np.ndarray
    neighbor_distance: np.ndarray
    porosity: np.ndarray | float = 0.4
    kh: np.ndarray | float = 1e-4
    kv: np.ndarray | float = 1e-5
    k_inf: np.ndarray | float = 1e-5
    macropore_k: np.ndarray | float = 1e-4
    macropore_fraction: np.ndarray | float = 0.0
    infiltration_depth: np.ndarray | float = 0.1
    manning: np.ndarray | float = 6.7e-4
    interception_capacity: np.ndarray | float = 1e-3
    vegetation_fraction: np.ndarray | float = 0.5
    melt_factor: np.ndarray | float = 2e-6

    BOUNDS: ClassVar[dict[str, tuple[float, float]]] = _ELEMENT_BOUNDS

    def __post_init__(self) -> None:
        """Coerce arrays, validate physical constraints and warn on atypical values."""
        area = np.asarray(self.area, dtype=np.float64)
        _require(area.ndim == 1 and area.size > 0, "area must be a non-empty 1D array")
        n = area.size

        for name in ELEMENT_PARAM_NAMES:
            object.__setattr__(self, name, _as_float_vector(name, getattr(self, name), n))
        object.__setattr__(self, "neighbors", _as_table("neighbors", self.neighbors, n, np.int64))
        object.__setattr__(self, "edge_length", _as_table("edge_length", self.edge_length, n, np.float64))
        object.__setattr__(
            self, "neighbor_distance", _as_table("neighbor_distance", self.neighbor_distance, n, np.float64)
        )

        _require(bool((self.area > 0).all()), "area must be positive")
        _require(bool((self.aquifer_depth > 0).all()), "surface_elevation must exceed bed_elevation")
        _require(bool(((self.porosity > 0) & (self.porosity <= 1)).all()), "porosity must be in (0, 1]")
        for name in ("kh", "kv", "k_inf", "macropore_k", "interception_capacity", "melt_factor"):
            _require(bool((getattr(self, name) >= 0).all()), f"{name} must be non-negative")
        for name in ("macropore_fraction", "vegetation_fraction"):
            values = getattr(self, name)
            _require(bool(((values >= 0) & (values <= 1)).all()), f"{name} must be in [0, 1]")
        _require(bool((self.manning > 0).all()), "manning must be positive")
        _require(bool((self.infiltration_depth > 0).all()), "infiltration_depth must be positive")
        _require(bool((self.edge_length > 0).all()), "edge_length must be positive")
        connected = self.neighbors != NO_NEIGHBOR
        _require(bool((self.neighbor_distance[connected] > 0).all()), "neighbor_distance must be positive")

        _warn_if_outside_bounds("Element", {name: getattr(self, name) for name in self.BOUNDS}, self.BOUNDS)

    def __len__(self) -> int:
        return int(self.area.size)

    @property
    def aquifer_depth(self) -> np.ndarray:
        """Thickness between land surface and aquifer base [m]."""
        return self.surface_elevation - self.bed_elevation

    def __array__(self, dtype: np.dtype | None = None, copy: bool | None = None) -> np.ndarray:
        """Pack parameters into a 2D array for the numba kernels.

        Layout: one row per element, columns as in `pihm.mesh.constants`
        (E_AREA ... E_MELT_FACTOR), 14 columns.
        """
        arr = np.column_stack([getattr(self, name) for name in ELEMENT_PARAM_NAMES]).astype(np.float64)
        if dtype is not None:
            arr = arr.astype(dtype)
        return arr


@dataclass(frozen=True)
class Segments:
    """River/channel routing segments.

    Attributes:
        length: Segment length along the channel [m].
        width: Channel bottom width [m].
        bottom_elevation: Channel bottom elevation [m].
        downstream: Downstream segment id, -1 for an outlet.
        left: Element id on the left bank, -1 if none.
        right: Element id on the right bank, -1 if none.
        left_distance: Distance from the left element centroid to the channel [m].
        right_distance: Distance from the right element centroid to the channel [m].
        side_slope: Bank side slope (horizontal/vertical) [-]. 0 is rectangular.
        manning: Channel Manning roughness [min m^(-1/3)].
        bed_depth: Thickness of the riverbed aquifer below the channel bottom [m].
        bed_k: Riverbed hydraulic conductivity [m/min].
        bed_porosity: Riverbed aquifer porosity [-], in (0, 1].
        outlet_slope: Energy slope for normal-depth outflow at an outlet [-].
            Zero closes the outlet.
    """

    length: np.ndarray
    width: np.ndarray | float
    bottom_elevation: np.ndarray
    downstream: np.ndarray
    left: np.ndarray
    right: np.ndarray
    left_distance: np.ndarray | float
    right_distance: np.ndarray | float
    side_slope: np.ndarray | float = 0.0
    manning: np.ndarray | float = 5e-4
    bed_depth: np.ndarray | float = 1.0
    bed_k: np.ndarray | float = 1e-5
    bed_porosity: np.ndarray | float = 0.4
    outlet_slope: np.ndarray | float = 1e-3

    BOUNDS: ClassVar[dict[str, tuple[float, float]]] = _SEGMENT_BOUNDS

    def __post_init__(self) -> None:
        """Coerce arrays, validate physical constraints and warn on atypical values."""
        length = np.asarray(self.length, dtype=np.float64)
        _require(length.ndim == 1, "length must be a 1D array")
        n = length.size

        for name in SEGMENT_PARAM_NAMES:
            object.__setattr__(self, name, _as_float_vector(name, getattr(self, name), n))
        for name in ("downstream", "left", "right"):
            ids = np.array(getattr(self, name), dtype=np.int64, copy=True).reshape(-1)
            _require(ids.shape == (n,), f"{name} must have shape ({n},), got {ids.shape}")
            ids.flags.writeable = False
            object.__setattr__(self, name, ids)

        for name in ("length", "width", "manning", "bed_depth"):
            _require(bool((getattr(self, name) > 0).all()), f"{name} must be positive")
        for name in ("side_slope", "bed_k", "outlet_slope"):
            _require(bool((getattr(self, name) >= 0).all()), f"{name} must be non-negative")
        _require(
            bool(((self.bed_porosity > 0) & (self.bed_porosity <= 1)).all()),
            "bed_porosity must be in (0, 1]",
        )
        _require(bool((self.left_distance[self.left != NO_NEIGHBOR] > 0).all()), "left_distance must be positive")
        _require(
            bool((self.right_distance[self.right != NO_NEIGHBOR] > 0).all()),
            "right_distance must be positive",
        )

        if n:
            _warn_if_outside_bounds("Segment", {name: getattr(self, name) for name in self.BOUNDS}, self.BOUNDS)

    @classmethod
    def empty(cls) -> Segments:
        """Create a channel-free segment set."""
        none = np.zeros(0)
        ids = np.zeros(0, dtype=np.int64)
        return cls(
            length=none,
            width=none,
            bottom_elevation=none,
            downstream=ids,
            left=ids,
            right=ids,
            left_distance=none,
            right_distance=none,
        )

    def __len__(self) -> int:
        return int(self.length.size)

    @property
    def topology(self) -> np.ndarray:
        """Connectivity table, shape (n, 3): [left, right, downstream]."""
        return np.column_stack([self.left, self.right, self.downstream]).astype(np.int64).reshape(len(self), 3)

    def __array__(self, dtype: np.dtype | None = None, copy: bool | None = None) -> np.ndarray:
        """Pack parameters into a 2D array for the numba kernels.

        Layout: one row per segment, columns as in `pihm.mesh.constants`
        (S_LENGTH ... S_RIGHT_DISTANCE), 11 columns.
        """
        arr = np.column_stack([getattr(self, name) for name in SEGMENT_PARAM_NAMES]).astype(np.float64)
        arr = arr.reshape(len(self), len(SEGMENT_PARAM_NAMES))
        if dtype is not None:
            arr = arr.astype(dtype)
        return arr


@dataclass(frozen=True)
class Mesh:
    """Validated watershed mesh: elements, channel segments and their topology.

    Construction fails with ConfigurationError if the topology is
    inconsistent, so the engine never runs on a partially valid mesh.
    """

    elements: Elements
    segments: Segments

    def __post_init__(self) -> None:
        from .topology import validate_topology

        validate_topology(self.elements, self.segments)

    @property
    def n_elements(self) -> int:
        return len(self.elements)

    @property
    def n_segments(self) -> int:
        return len(self.segments)

    def describe(self) -> dict[str, float]:
        """Summary figures used in run logs."""
        return {
            "n_elements": self.n_elements,
            "n_segments": self.n_segments,
            "area": float(self.elements.area.sum()),
            "channel_length": float(self.segments.length.sum()),
        }
