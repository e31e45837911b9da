"""Water storage accounting over a state vector."""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np

from ..state.layout import Quantity, StateLayout

if TYPE_CHECKING:
    from ..mesh.types import Mesh


def storage_by_component(mesh: Mesh, state: np.ndarray) -> dict[str, float]:
    """Water volume held in each storage compartment [m3].

    Args:
        mesh: Mesh the state belongs to.
        state: Flat state vector.

    Returns:
        Dict with keys surface, unsaturated, groundwater, channel, bed.
    """
    layout = StateLayout.for_mesh(mesh)
    y = np.asarray(state, dtype=np.float64)
    elements = mesh.elements
    segments = mesh.segments

    stage = layout.view(y, Quantity.STAGE)
    return {
        "surface": float(np.sum(elements.area * layout.view(y, Quantity.SURFACE))),
        "unsaturated": float(np.sum(elements.area * layout.view(y, Quantity.UNSATURATED))),
        "groundwater": float(np.sum(elements.area * elements.porosity * layout.view(y, Quantity.GROUNDWATER))),
        "channel": float(np.sum((segments.width + segments.side_slope * stage) * stage * segments.length)),
        "bed": float(np.sum(segments.bed_porosity * segments.width * segments.length * layout.view(y, Quantity.BED))),
    }


def total_storage(mesh: Mesh, state: np.ndarray) -> float:
    """Total water volume in the watershed [m3]."""
    return sum(storage_by_component(mesh, state).values())
