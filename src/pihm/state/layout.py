"""State vector layout.

The global ODE state is one flat float64 vector. StateLayout is the single
place that knows how named physical quantities map onto positions in it:

    [surface(n_ele) | unsaturated(n_ele) | groundwater(n_ele) | stage(n_seg) | bed(n_seg)]

The layout is fixed once per run and shared by the evaluator, the explicit
updater, the controller and the solver.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING

import numpy as np

if TYPE_CHECKING:
    from ..mesh.types import Mesh


class Quantity(Enum):
    """Physical quantity stored in the state vector."""

    SURFACE = "surface"  # Surface water depth [m]
    UNSATURATED = "unsaturated"  # Unsaturated-zone water storage [m]
    GROUNDWATER = "groundwater"  # Saturated thickness above aquifer base [m]
    STAGE = "stage"  # Channel water depth above bottom [m]
    BED = "bed"  # Riverbed aquifer saturated thickness [m]

    @property
    def per_element(self) -> bool:
        return self in ELEMENT_QUANTITIES


ELEMENT_QUANTITIES: tuple[Quantity, ...] = (Quantity.SURFACE, Quantity.UNSATURATED, Quantity.GROUNDWATER)
SEGMENT_QUANTITIES: tuple[Quantity, ...] = (Quantity.STAGE, Quantity.BED)
ORDER: tuple[Quantity, ...] = ELEMENT_QUANTITIES + SEGMENT_QUANTITIES


@dataclass(frozen=True)
class StateLayout:
    """Bijection between (quantity, entity id) pairs and state vector positions.

    Attributes:
        n_elements: Number of mesh elements.
        n_segments: Number of channel segments.
    """

    n_elements: int
    n_segments: int

    def __post_init__(self) -> None:
        if self.n_elements < 0 or self.n_segments < 0:
            msg = f"entity counts must be non-negative, got ({self.n_elements}, {self.n_segments})"
            raise ValueError(msg)

    @classmethod
    def for_mesh(cls, mesh: Mesh) -> StateLayout:
        """Create the layout matching a mesh."""
        return cls(n_elements=mesh.n_elements, n_segments=mesh.n_segments)

    @property
    def size(self) -> int:
        """Total length of the state vector."""
        return len(ELEMENT_QUANTITIES) * self.n_elements + len(SEGMENT_QUANTITIES) * self.n_segments

    def count(self, quantity: Quantity) -> int:
        """Number of entities carrying a quantity."""
        return self.n_elements if quantity.per_element else self.n_segments

    def offset(self, quantity: Quantity) -> int:
        """Position of the first entry of a quantity block."""
        position = 0
        for q in ORDER:
            if q is quantity:
                return position
            position += self.count(q)
        msg = f"unknown quantity {quantity!r}"
        raise KeyError(msg)

    def slice_of(self, quantity: Quantity) -> slice:
        start = self.offset(quantity)
        return slice(start, start + self.count(quantity))

    def index_of(self, quantity: Quantity, entity: int) -> int:
        """Position of one entity's quantity in the state vector.

        Raises:
            IndexError: If the entity id is out of range. Indices are
                precomputed once, so this is a programming error.
        """
        n = self.count(quantity)
        if not 0 <= entity < n:
            msg = f"{quantity.value} entity {entity} out of range [0, {n})"
            raise IndexError(msg)
        return self.offset(quantity) + entity

    def quantity_at(self, index: int) -> tuple[Quantity, int]:
        """Inverse of index_of."""
        if not 0 <= index < self.size:
            msg = f"state index {index} out of range [0, {self.size})"
            raise IndexError(msg)
        for q in ORDER:
            block = self.slice_of(q)
            if index < block.stop:
                return q, index - block.start
        raise AssertionError("unreachable")

    def view(self, y: np.ndarray, quantity: Quantity) -> np.ndarray:
        """Named view into a state (or derivative) vector. Writes go through."""
        if y.shape != (self.size,):
            msg = f"state vector shape {y.shape} does not match layout size {self.size}"
            raise ValueError(msg)
        return y[self.slice_of(quantity)]

    def zeros(self) -> np.ndarray:
        return np.zeros(self.size, dtype=np.float64)
