"""Named state container.

State holds one array per physical quantity and converts to and from the
flat vector defined by StateLayout.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from .layout import ORDER, Quantity, StateLayout

if TYPE_CHECKING:
    from ..mesh.types import Mesh


@dataclass
class State:
    """Model state variables.

    Mutable state that evolves during simulation.

    Attributes:
        surface: Surface water depth per element [m]. Constraint: >= 0.
        unsaturated: Unsaturated-zone water storage per element [m]. Constraint: >= 0.
        groundwater: Saturated thickness above the aquifer base per element [m].
            Constraint: 0 <= groundwater <= aquifer depth.
        stage: Channel water depth per segment [m]. Constraint: >= 0.
        bed: Riverbed aquifer saturated thickness per segment [m].
    """

    surface: np.ndarray
    unsaturated: np.ndarray
    groundwater: np.ndarray
    stage: np.ndarray
    bed: np.ndarray

    @classmethod
    def initialize(
        cls,
        mesh: Mesh,
        surface: float = 0.0,
        unsaturated_fraction: float = 0.3,
        groundwater_fraction: float = 0.5,
        stage: float = 0.0,
        bed_fraction: float = 1.0,
    ) -> State:
        """Create an initial state from the mesh geometry.

        Uses fractions of the available storage:
        - Groundwater at groundwater_fraction of the aquifer depth
        - Unsaturated storage at unsaturated_fraction of the remaining pore space
        - Riverbed aquifer at bed_fraction of the bed depth

        Args:
            mesh: The mesh to initialize for.
            surface: Uniform initial ponding depth [m].
            unsaturated_fraction: Fraction of the unsaturated pore space filled [-].
            groundwater_fraction: Fraction of the aquifer depth saturated [-].
            stage: Uniform initial channel depth [m].
            bed_fraction: Fraction of the bed depth saturated [-].

        Returns:
            Initialized State object ready for simulation.
        """
        elements = mesh.elements
        depth = elements.aquifer_depth
        groundwater = groundwater_fraction * depth
        unsaturated = unsaturated_fraction * elements.porosity * (depth - groundwater)
        return cls(
            surface=np.full(mesh.n_elements, surface),
            unsaturated=unsaturated,
            groundwater=groundwater,
            stage=np.full(mesh.n_segments, stage),
            bed=bed_fraction * mesh.segments.bed_depth,
        )

    def __array__(self, dtype: np.dtype | None = None, copy: bool | None = None) -> np.ndarray:
        """Convert state to a flat vector in StateLayout order.

        Layout: [surface, unsaturated, groundwater, stage, bed]
        """
        arr = np.concatenate([np.asarray(getattr(self, q.value), dtype=np.float64) for q in ORDER])
        if dtype is not None:
            arr = arr.astype(dtype)
        return arr

    @classmethod
    def from_array(cls, arr: np.ndarray, layout: StateLayout) -> State:
        """Reconstruct State from a flat vector."""
        if arr.shape != (layout.size,):
            msg = f"Expected array of length {layout.size}, got shape {arr.shape}"
            raise ValueError(msg)
        return cls(**{q.value: layout.view(arr, q).copy() for q in ORDER})

    def get(self, quantity: Quantity) -> np.ndarray:
        return getattr(self, quantity.value)
