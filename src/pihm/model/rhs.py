"""Right-hand side of the semi-discrete ODE system.

This module provides the derivative evaluator handed to the stiff solver:
- _rhs_numba(): the compiled kernel over packed mesh arrays
- DerivativeEvaluator: wraps the kernel for one mesh and layout
- EvaluationStats: counters of evaluations, clamps and floored terms
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np
from numba import njit

from ..constants import DEFAULT_MIN_DEPTH, GRADIENT_EPSILON
from ..mesh.constants import (
    E_AREA,
    E_BED_ELEVATION,
    E_KH,
    E_KV,
    E_MANNING,
    E_POROSITY,
    E_SURFACE_ELEVATION,
    S_BED_DEPTH,
    S_BED_K,
    S_BED_POROSITY,
    S_BOTTOM_ELEVATION,
    S_LEFT_DISTANCE,
    S_LENGTH,
    S_MANNING,
    S_OUTLET_SLOPE,
    S_SIDE_SLOPE,
    S_WIDTH,
    T_DOWN,
    T_LEFT,
)
from ..state.layout import StateLayout
from .constants import (
    C_CLAMPED,
    C_FLOORED,
    ELEMENT_FLUX_NAMES,
    F_EXFILTRATION,
    F_GROUNDWATER_LATERAL,
    F_GROUNDWATER_TO_CHANNEL,
    F_INFILTRATION,
    F_RECHARGE,
    F_SURFACE_LATERAL,
    F_SURFACE_TO_CHANNEL,
    N_COUNTERS,
    N_ELEMENT_FLUXES,
    N_SEGMENT_FLUXES,
    R_BASEFLOW,
    R_BED_DISCHARGE,
    R_DISCHARGE,
    R_LEAKAGE,
    R_SURFACE_INFLOW,
    SEGMENT_FLUX_NAMES,
)
from .processes import (
    channel_flux,
    darcy_flux,
    exfiltration_rate,
    infiltration_rate,
    leakage_flux,
    outlet_flux,
    overland_flux,
    recharge_rate,
    relative_saturation,
    top_width,
)

if TYPE_CHECKING:
    from ..canopy.types import Diagnostics
    from ..mesh.types import Mesh


@njit(cache=True)
def _rhs_numba(
    y: np.ndarray,  # shape (3n + 2r,)
    dy: np.ndarray,  # shape (3n + 2r,) - derivative written here
    ele: np.ndarray,  # shape (n, 14) - element parameter columns
    neighbors: np.ndarray,  # shape (n, 3)
    edge_length: np.ndarray,  # shape (n, 3)
    distance: np.ndarray,  # shape (n, 3)
    riv: np.ndarray,  # shape (r, 11) - segment parameter columns
    topo: np.ndarray,  # shape (r, 3) - [left, right, downstream]
    net_precip: np.ndarray,  # shape (n,)
    infil_capacity: np.ndarray,  # shape (n,)
    floor: float,
    eps: float,
    ele_flux: np.ndarray,  # shape (n, 7) - written here
    riv_flux: np.ndarray,  # shape (r, 5) - written here
    counters: np.ndarray,  # shape (2,) - incremented
) -> None:
    """Evaluate d(state)/dt for the whole mesh (Numba-optimized).

    State layout: [surface(n), unsaturated(n), groundwater(n), stage(r), bed(r)]
    Element columns: see pihm.mesh.constants (E_*)
    Segment columns: see pihm.mesh.constants (S_*)

    Lateral exchanges are accumulated as volumes per minute and converted to
    storage rates at the end, so every exchange leaves one control volume
    exactly as it enters the other.
    """
    n = ele.shape[0]
    r = riv.shape[0]
    o_unsat = n
    o_gw = 2 * n
    o_stage = 3 * n
    o_bed = 3 * n + r

    # Read storages, clamping solver overshoot below zero
    surf = np.empty(n)
    unsat = np.empty(n)
    gw = np.empty(n)
    for i in range(n):
        v = y[i]
        if not v >= 0.0:
            counters[C_CLAMPED] += 1
            v = 0.0
        surf[i] = v
        v = y[o_unsat + i]
        if not v >= 0.0:
            counters[C_CLAMPED] += 1
            v = 0.0
        unsat[i] = v
        v = y[o_gw + i]
        if not v >= 0.0:
            counters[C_CLAMPED] += 1
            v = 0.0
        gw[i] = v

    stage = np.empty(r)
    bed = np.empty(r)
    for s in range(r):
        v = y[o_stage + s]
        if not v >= 0.0:
            counters[C_CLAMPED] += 1
            v = 0.0
        stage[s] = v
        v = y[o_bed + s]
        if not v >= 0.0:
            counters[C_CLAMPED] += 1
            v = 0.0
        bed[s] = v

    q_surf = np.zeros(n)  # Net lateral inflow [m3/min]
    q_gw = np.zeros(n)
    q_stage = np.zeros(r)
    q_bed = np.zeros(r)

    # 1. Vertical exchanges within each element column
    for i in range(n):
        zs = ele[i, E_SURFACE_ELEVATION]
        zb = ele[i, E_BED_ELEVATION]
        porosity = ele[i, E_POROSITY]
        kv = ele[i, E_KV]
        depth = zs - zb
        deficit = max(depth - gw[i], 0.0)
        pore_space = porosity * deficit - unsat[i]

        if surf[i] <= floor:
            counters[C_FLOORED] += 1
        if porosity * deficit <= floor:
            counters[C_FLOORED] += 1

        saturation = relative_saturation(unsat[i], porosity, deficit, floor)
        infil = infiltration_rate(surf[i], infil_capacity[i], pore_space, floor)
        recharge = recharge_rate(unsat[i], saturation, kv, floor)
        exfil = exfiltration_rate(gw[i], depth, kv)

        dy[i] = net_precip[i] - infil + exfil
        dy[o_unsat + i] = infil - recharge
        dy[o_gw + i] = (recharge - exfil) / porosity

        ele_flux[i, F_INFILTRATION] = infil
        ele_flux[i, F_RECHARGE] = recharge
        ele_flux[i, F_EXFILTRATION] = exfil

    # 2. Element-element exchanges, each shared edge visited once
    for i in range(n):
        for k in range(3):
            j = neighbors[i, k]
            if j <= i:
                continue
            dist = distance[i, k]
            length = edge_length[i, k]

            roughness = 0.5 * (ele[i, E_MANNING] + ele[j, E_MANNING])
            q = overland_flux(
                ele[i, E_SURFACE_ELEVATION] + surf[i],
                ele[j, E_SURFACE_ELEVATION] + surf[j],
                surf[i],
                surf[j],
                dist,
                length,
                roughness,
                floor,
                eps,
            )
            q_surf[i] -= q
            q_surf[j] += q

            g = darcy_flux(
                ele[i, E_BED_ELEVATION] + gw[i],
                ele[j, E_BED_ELEVATION] + gw[j],
                gw[i],
                gw[j],
                ele[i, E_KH],
                ele[j, E_KH],
                dist,
                length,
                floor,
            )
            q_gw[i] -= g
            q_gw[j] += g

    # 3. Channel segments
    for s in range(r):
        length = riv[s, S_LENGTH]
        width = riv[s, S_WIDTH]
        side = riv[s, S_SIDE_SLOPE]
        roughness = riv[s, S_MANNING]
        bottom = riv[s, S_BOTTOM_ELEVATION]
        bed_depth = riv[s, S_BED_DEPTH]
        bed_k = riv[s, S_BED_K]
        h_stage = bottom + stage[s]
        h_bed = bottom - bed_depth + bed[s]

        if stage[s] <= floor:
            counters[C_FLOORED] += 1

        # Channel <-> riverbed aquifer
        leak = leakage_flux(h_stage, h_bed, stage[s], bed[s], bed_k, bed_depth, width * length, floor)
        q_stage[s] -= leak
        q_bed[s] += leak
        riv_flux[s, R_LEAKAGE] = leak

        # Bank elements
        for side_idx in range(2):
            e = topo[s, T_LEFT + side_idx]
            if e < 0:
                continue
            dist = riv[s, S_LEFT_DISTANCE + side_idx]
            bank = ele[e, E_SURFACE_ELEVATION]

            # River head seen from the element never drops below the bank
            q = overland_flux(
                bank + surf[e],
                max(h_stage, bank),
                surf[e],
                h_stage - bank,
                dist,
                length,
                ele[e, E_MANNING],
                floor,
                eps,
            )
            q_surf[e] -= q
            q_stage[s] += q
            riv_flux[s, R_SURFACE_INFLOW] += q
            ele_flux[e, F_SURFACE_TO_CHANNEL] += q

            g = darcy_flux(
                ele[e, E_BED_ELEVATION] + gw[e], h_bed, gw[e], bed[s], ele[e, E_KH], bed_k, dist, length, floor
            )
            q_gw[e] -= g
            q_bed[s] += g
            riv_flux[s, R_BASEFLOW] += g
            ele_flux[e, F_GROUNDWATER_TO_CHANNEL] += g

        # Downstream routing
        d = topo[s, T_DOWN]
        if d >= 0:
            dist = 0.5 * (length + riv[d, S_LENGTH])
            bottom_d = riv[d, S_BOTTOM_ELEVATION]
            q = channel_flux(
                h_stage,
                bottom_d + stage[d],
                stage[s],
                stage[d],
                dist,
                width,
                side,
                roughness,
                riv[d, S_WIDTH],
                riv[d, S_SIDE_SLOPE],
                riv[d, S_MANNING],
                floor,
                eps,
            )
            q_stage[s] -= q
            q_stage[d] += q
            riv_flux[s, R_DISCHARGE] = q

            b = darcy_flux(
                h_bed,
                bottom_d - riv[d, S_BED_DEPTH] + bed[d],
                bed[s],
                bed[d],
                bed_k,
                riv[d, S_BED_K],
                dist,
                0.5 * (width + riv[d, S_WIDTH]),
                floor,
            )
            q_bed[s] -= b
            q_bed[d] += b
            riv_flux[s, R_BED_DISCHARGE] = b
        else:
            q = outlet_flux(stage[s], width, side, roughness, riv[s, S_OUTLET_SLOPE], floor)
            q_stage[s] -= q
            riv_flux[s, R_DISCHARGE] = q

    # 4. Convert volumetric exchanges to storage rates
    for i in range(n):
        area = ele[i, E_AREA]
        dy[i] += q_surf[i] / area
        dy[o_gw + i] += q_gw[i] / (area * ele[i, E_POROSITY])
        ele_flux[i, F_SURFACE_LATERAL] = q_surf[i]
        ele_flux[i, F_GROUNDWATER_LATERAL] = q_gw[i]

    for s in range(r):
        length = riv[s, S_LENGTH]
        width = riv[s, S_WIDTH]
        dy[o_stage + s] = q_stage[s] / (length * top_width(stage[s], width, riv[s, S_SIDE_SLOPE]))
        dy[o_bed + s] = q_bed[s] / (riv[s, S_BED_POROSITY] * width * length)


@dataclass
class EvaluationStats:
    """Counters accumulated across RHS evaluations.

    Attributes:
        evaluations: Number of derivative evaluations.
        clamped: Negative storages read as zero.
        floored: Guarded terms evaluated at or below the depth floor.
        reads: Storage values read (evaluations x state size).
    """

    evaluations: int = 0
    clamped: int = 0
    floored: int = 0
    reads: int = 0

    @property
    def clamp_rate(self) -> float:
        """Fraction of storage reads that needed clamping."""
        return self.clamped / self.reads if self.reads else 0.0

    def reset(self) -> EvaluationStats:
        """Return a snapshot of the counters and zero them."""
        snapshot = EvaluationStats(self.evaluations, self.clamped, self.floored, self.reads)
        self.evaluations = self.clamped = self.floored = self.reads = 0
        return snapshot


class DerivativeEvaluator:
    """Computes d(state)/dt for a fixed mesh and layout.

    The evaluator never mutates its inputs. Its only side effect is the
    `stats` counter, which has no influence on the derivative.

    Args:
        mesh: Validated mesh.
        layout: State layout matching the mesh.
        min_depth: Depth floor guarding divisions and drying sources [m].
        gradient_epsilon: Width of the linear Manning region around zero gradient [-].
    """

    def __init__(
        self,
        mesh: Mesh,
        layout: StateLayout,
        min_depth: float = DEFAULT_MIN_DEPTH,
        gradient_epsilon: float = GRADIENT_EPSILON,
    ) -> None:
        if layout != StateLayout.for_mesh(mesh):
            msg = f"layout {layout} does not match mesh ({mesh.n_elements} elements, {mesh.n_segments} segments)"
            raise ValueError(msg)
        if min_depth <= 0.0 or gradient_epsilon <= 0.0:
            msg = "min_depth and gradient_epsilon must be positive"
            raise ValueError(msg)

        self.mesh = mesh
        self.layout = layout
        self.min_depth = float(min_depth)
        self.gradient_epsilon = float(gradient_epsilon)
        self.stats = EvaluationStats()

        # Writable contiguous copies for the kernel
        elements = mesh.elements
        segments = mesh.segments
        self._ele = np.ascontiguousarray(np.asarray(elements), dtype=np.float64)
        self._neighbors = np.array(elements.neighbors, dtype=np.int64)
        self._edge_length = np.array(elements.edge_length, dtype=np.float64)
        self._distance = np.array(elements.neighbor_distance, dtype=np.float64)
        self._riv = np.ascontiguousarray(np.asarray(segments), dtype=np.float64)
        self._topo = np.array(segments.topology, dtype=np.int64)

    def _compute(
        self, state: np.ndarray, diagnostics: Diagnostics, count: bool = True
    ) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        y = np.ascontiguousarray(state, dtype=np.float64)
        if y.shape != (self.layout.size,):
            msg = f"state vector shape {y.shape} does not match layout size {self.layout.size}"
            raise ValueError(msg)

        n = self.layout.n_elements
        dy = np.empty_like(y)
        ele_flux = np.zeros((n, N_ELEMENT_FLUXES))
        riv_flux = np.zeros((self.layout.n_segments, N_SEGMENT_FLUXES))
        counters = np.zeros(N_COUNTERS, dtype=np.int64)

        _rhs_numba(
            y,
            dy,
            self._ele,
            self._neighbors,
            self._edge_length,
            self._distance,
            self._riv,
            self._topo,
            np.ascontiguousarray(diagnostics.net_precipitation, dtype=np.float64),
            np.ascontiguousarray(diagnostics.infiltration_capacity, dtype=np.float64),
            self.min_depth,
            self.gradient_epsilon,
            ele_flux,
            riv_flux,
            counters,
        )

        if count:
            self._record(counters, y.size)
        return dy, ele_flux, riv_flux

    def _record(self, counters: np.ndarray, reads: int) -> None:
        self.stats.evaluations += 1
        self.stats.clamped += int(counters[C_CLAMPED])
        self.stats.floored += int(counters[C_FLOORED])
        self.stats.reads += reads

    def evaluate(self, time: float, state: np.ndarray, diagnostics: Diagnostics) -> np.ndarray:
        """Derivative of the state vector at `time`.

        Forcing enters only through `diagnostics`, so `time` does not change
        the result; it is accepted to match the solver's f(t, y) signature.

        Args:
            time: Current time [min].
            state: Flat state vector in layout order.
            diagnostics: Explicit-process diagnostics of the current sub-step.

        Returns:
            Derivative vector with the same layout as `state`.
        """
        dy, _, _ = self._compute(state, diagnostics)
        return dy

    def rhs_for(self, diagnostics: Diagnostics) -> Callable[[float, np.ndarray], np.ndarray]:
        """Bind one sub-step's diagnostics into a solver callback f(t, y)."""

        def rhs(t: float, y: np.ndarray) -> np.ndarray:
            return self.evaluate(t, y, diagnostics)

        return rhs

    def fluxes(self, state: np.ndarray, diagnostics: Diagnostics) -> dict[str, np.ndarray]:
        """Micro-fluxes at a state, keyed by name.

        Element entries are per element, segment entries per segment. This
        call does not count towards `stats`.
        """
        _, ele_flux, riv_flux = self._compute(state, diagnostics, count=False)

        result: dict[str, np.ndarray] = {}
        for col, name in enumerate(ELEMENT_FLUX_NAMES):
            result[name] = ele_flux[:, col].copy()
        for col, name in enumerate(SEGMENT_FLUX_NAMES):
            result[name] = riv_flux[:, col].copy()
        return result
