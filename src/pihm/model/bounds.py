"""Physical-bound enforcement on a committed state vector.

The solver may return states marginally outside the physical domain. After
each sub-step these are corrected in place, conserving volume wherever the
excess has somewhere to go:
- negative storages are clamped to zero (the only non-conservative fix)
- groundwater above the land surface is moved onto the surface
- unsaturated water exceeding the free pore space is moved onto the surface
- riverbed water above the bed depth is moved into the channel
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from numba import njit

from ..mesh.constants import (
    E_BED_ELEVATION,
    E_POROSITY,
    E_SURFACE_ELEVATION,
    S_BED_DEPTH,
    S_BED_POROSITY,
    S_LENGTH,
    S_SIDE_SLOPE,
    S_WIDTH,
)
from .processes import channel_volume, stage_for_volume

if TYPE_CHECKING:
    from ..mesh.types import Mesh


@njit(cache=True)
def _enforce_bounds_numba(
    y: np.ndarray,  # shape (3n + 2r,) - modified in place
    ele: np.ndarray,  # shape (n, 14)
    riv: np.ndarray,  # shape (r, 11)
    counters: np.ndarray,  # shape (2,) - [clamped, relocated]
) -> None:
    """Correct out-of-bound storages in place (Numba-optimized)."""
    n = ele.shape[0]
    r = riv.shape[0]
    o_unsat = n
    o_gw = 2 * n
    o_stage = 3 * n
    o_bed = 3 * n + r

    for k in range(y.shape[0]):
        if not y[k] >= 0.0:
            y[k] = 0.0
            counters[0] += 1

    for i in range(n):
        porosity = ele[i, E_POROSITY]
        depth = ele[i, E_SURFACE_ELEVATION] - ele[i, E_BED_ELEVATION]

        excess = y[o_gw + i] - depth
        if excess > 0.0:
            y[o_gw + i] = depth
            y[i] += porosity * excess
            counters[1] += 1

        space = porosity * (depth - y[o_gw + i])
        excess = y[o_unsat + i] - space
        if excess > 0.0:
            y[o_unsat + i] = space
            y[i] += excess
            counters[1] += 1

    for s in range(r):
        length = riv[s, S_LENGTH]
        width = riv[s, S_WIDTH]
        side = riv[s, S_SIDE_SLOPE]
        bed_depth = riv[s, S_BED_DEPTH]
        excess = y[o_bed + s] - bed_depth
        if excess > 0.0:
            y[o_bed + s] = bed_depth
            spill = riv[s, S_BED_POROSITY] * width * length * excess
            volume = channel_volume(y[o_stage + s], width, side, length) + spill
            y[o_stage + s] = stage_for_volume(volume, width, side, length)
            counters[1] += 1


def enforce_bounds(mesh: Mesh, state: np.ndarray) -> tuple[int, int]:
    """Clamp and redistribute out-of-bound storages in place.

    Args:
        mesh: Mesh the state belongs to.
        state: Flat state vector, modified in place. Must be float64 and contiguous.

    Returns:
        Tuple of (clamped negative values, relocated excess storages).
    """
    counters = np.zeros(2, dtype=np.int64)
    _enforce_bounds_numba(
        state,
        np.ascontiguousarray(np.asarray(mesh.elements), dtype=np.float64),
        np.ascontiguousarray(np.asarray(mesh.segments), dtype=np.float64),
        counters,
    )
    return int(counters[0]), int(counters[1])
