"""Explicit process updater.

Runs once per sub-step before the implicit solve: partitions precipitation
into rain and snow, melts snow, fills and evaporates the canopy, withdraws
surface and soil evapotranspiration from the state, and diagnoses the net
precipitation and infiltration capacity seen by the evaluator.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from numba import njit

from ..constants import TIME_TOLERANCE
from ..errors import ConfigurationError
from ..model.processes import relative_saturation
from ..mesh.constants import (
    E_BED_ELEVATION,
    E_INFILTRATION_DEPTH,
    E_INTERCEPTION_CAPACITY,
    E_K_INF,
    E_MACROPORE_FRACTION,
    E_MACROPORE_K,
    E_MELT_FACTOR,
    E_POROSITY,
    E_SURFACE_ELEVATION,
    E_VEGETATION_FRACTION,
)
from .constants import (
    D_CANOPY,
    D_CANOPY_EVAPORATION,
    D_INFILTRATION_CAPACITY,
    D_NET_PRECIPITATION,
    D_SNOW,
    D_SNOWMELT,
    D_SURFACE_EVAPORATION,
    D_THROUGHFALL,
    D_TRANSPIRATION,
    N_DIAGNOSTICS,
)
from .processes import (
    canopy_evaporation,
    infiltration_capacity,
    intercept,
    moisture_stress,
    snow_fraction,
    snowmelt,
)
from .types import Diagnostics

if TYPE_CHECKING:
    from ..inputs import ControlParameters, ForcingData
    from ..mesh.types import Mesh
    from ..state.layout import StateLayout


@njit(cache=True)
def _advance_numba(
    y: np.ndarray,  # shape (3n + 2r,) - surface and unsaturated modified in place
    ele: np.ndarray,  # shape (n, 14)
    dt: float,
    precip: np.ndarray,  # shape (n,) [m/min]
    temp: np.ndarray,  # shape (n,) [°C]
    pet: np.ndarray,  # shape (n,) [m/min]
    diag_in: np.ndarray,  # shape (n, 9) - committed diagnostics
    diag_out: np.ndarray,  # shape (n, 9) - written here
    floor: float,
) -> None:
    """Advance the explicit processes of every element over dt (Numba-optimized).

    Diagnostics layout: [canopy, snow, net_precipitation, throughfall, snowmelt,
                         canopy_evaporation, surface_evaporation, transpiration,
                         infiltration_capacity]
    """
    n = ele.shape[0]
    for i in range(n):
        # Unpack parameters
        porosity = ele[i, E_POROSITY]
        depth = ele[i, E_SURFACE_ELEVATION] - ele[i, E_BED_ELEVATION]
        vf = ele[i, E_VEGETATION_FRACTION]
        capacity = ele[i, E_INTERCEPTION_CAPACITY] * vf

        surface = max(y[i], 0.0)
        unsat = max(y[n + i], 0.0)
        gw = max(y[2 * n + i], 0.0)
        canopy = diag_in[i, D_CANOPY]
        snow = diag_in[i, D_SNOW]

        # 1. Rain/snow partition and snowpack
        p = max(precip[i], 0.0) * dt
        snowfall = snow_fraction(temp[i]) * p
        rain = p - snowfall
        snow = snow + snowfall
        melt = snowmelt(snow, temp[i], ele[i, E_MELT_FACTOR], dt)
        snow = snow - melt

        # 2. Interception on the vegetated fraction
        canopy, drip = intercept(canopy, vf * rain, capacity)
        throughfall = (1.0 - vf) * rain + drip

        # 3. Evapotranspiration, each term bounded by the remaining demand
        demand = max(pet[i], 0.0) * dt
        e_canopy = canopy_evaporation(canopy, capacity, demand, vf)
        canopy = canopy - e_canopy
        demand = demand - e_canopy

        e_ponded = min(surface, demand)
        surface = surface - e_ponded
        demand = demand - e_ponded

        saturation = relative_saturation(unsat, porosity, max(depth - gw, 0.0), floor)
        e_soil = min(unsat, (1.0 - vf) * demand * saturation)
        unsat = unsat - e_soil
        transp = min(unsat, vf * demand * moisture_stress(saturation))
        unsat = unsat - transp

        y[i] = surface
        y[n + i] = unsat

        # Write diagnostics
        diag_out[i, D_CANOPY] = canopy
        diag_out[i, D_SNOW] = snow
        diag_out[i, D_NET_PRECIPITATION] = (throughfall + melt) / dt
        diag_out[i, D_THROUGHFALL] = throughfall / dt
        diag_out[i, D_SNOWMELT] = melt / dt
        diag_out[i, D_CANOPY_EVAPORATION] = e_canopy / dt
        diag_out[i, D_SURFACE_EVAPORATION] = (e_ponded + e_soil) / dt
        diag_out[i, D_TRANSPIRATION] = transp / dt
        diag_out[i, D_INFILTRATION_CAPACITY] = infiltration_capacity(
            surface,
            ele[i, E_K_INF],
            ele[i, E_MACROPORE_K],
            ele[i, E_MACROPORE_FRACTION],
            ele[i, E_INFILTRATION_DEPTH],
        )


class ExplicitProcessUpdater:
    """Explicit interception, snow and evapotranspiration updates.

    `advance` has no side effects: it returns the updated state and the
    sub-step's diagnostics. The controller calls `commit` once the implicit
    solve over the same sub-step has succeeded, which makes the canopy and
    snow storages of those diagnostics the starting point of the next one.

    Args:
        mesh: Validated mesh.
        layout: State layout matching the mesh.
        forcing: Meteorological forcing series.
        control: Run control; provides the sub-step ceiling and depth floor.
        initial: Initial canopy and snow storages. Defaults to empty stores.
    """

    def __init__(
        self,
        mesh: Mesh,
        layout: StateLayout,
        forcing: ForcingData,
        control: ControlParameters,
        initial: Diagnostics | None = None,
    ) -> None:
        n = mesh.n_elements
        if forcing.n_series not in (1, n):
            msg = f"forcing has {forcing.n_series} spatial series, expected 1 or {n}"
            raise ConfigurationError(msg)
        if initial is not None and initial.canopy.shape != (n,):
            msg = f"initial diagnostics cover {initial.canopy.shape[0]} elements, expected {n}"
            raise ConfigurationError(msg)

        self.mesh = mesh
        self.layout = layout
        self.forcing = forcing
        self.ceiling = control.et_step
        self.min_depth = control.min_depth
        self._ele = np.ascontiguousarray(np.asarray(mesh.elements), dtype=np.float64)
        self._diagnostics = initial if initial is not None else Diagnostics.initialize(n)

    @property
    def diagnostics(self) -> Diagnostics:
        """Diagnostics of the last committed sub-step."""
        return self._diagnostics

    def advance(self, time: float, sub_step: float, state: np.ndarray) -> tuple[np.ndarray, Diagnostics]:
        """Apply the explicit processes over [time, time + sub_step].

        Args:
            time: Sub-step start time [min]; forcing is sampled here.
            sub_step: Sub-step length [min]. Must be positive and not exceed
                the configured ceiling.
            state: Flat state vector at `time`. Not modified.

        Returns:
            Tuple of (state after ET withdrawals, diagnostics).

        Raises:
            ValueError: If sub_step is not positive or exceeds the ceiling.
        """
        if not sub_step > 0.0:
            msg = f"sub_step must be positive, got {sub_step}"
            raise ValueError(msg)
        if sub_step > self.ceiling * (1.0 + TIME_TOLERANCE):
            msg = f"sub_step {sub_step} exceeds the ceiling {self.ceiling}"
            raise ValueError(msg)

        y = np.array(state, dtype=np.float64, copy=True)
        if y.shape != (self.layout.size,):
            msg = f"state vector shape {y.shape} does not match layout size {self.layout.size}"
            raise ValueError(msg)

        n = self.mesh.n_elements
        precip, temp, pet = self.forcing.at(time, n)
        diag_out = np.empty((n, N_DIAGNOSTICS))
        _advance_numba(
            y,
            self._ele,
            float(sub_step),
            precip,
            temp,
            pet,
            np.ascontiguousarray(np.asarray(self._diagnostics), dtype=np.float64),
            diag_out,
            self.min_depth,
        )
        return y, Diagnostics.from_array(diag_out)

    def commit(self, diagnostics: Diagnostics) -> None:
        """Make a sub-step's diagnostics authoritative."""
        self._diagnostics = diagnostics
