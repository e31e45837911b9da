"""Diagnostics produced by the explicit process updater."""

from __future__ import annotations

from dataclasses import dataclass, fields

import numpy as np

from .constants import N_DIAGNOSTICS


@dataclass(frozen=True)
class Diagnostics:
    """Per-element explicit-process results of one sub-step.

    Storages are the values at the end of the sub-step. Rates are sub-step
    averages.

    Attributes:
        canopy: Intercepted water held on vegetation [m].
        snow: Snowpack water equivalent [m].
        net_precipitation: Throughfall plus snowmelt reaching the surface [m/min].
        throughfall: Rain passing or dripping through the canopy [m/min].
        snowmelt: Melt released from the snowpack [m/min].
        canopy_evaporation: Evaporation of intercepted water [m/min].
        surface_evaporation: Evaporation from ponded water and bare soil [m/min].
        transpiration: Root water uptake from the unsaturated zone [m/min].
        infiltration_capacity: Potential infiltration rate [m/min].
    """

    canopy: np.ndarray
    snow: np.ndarray
    net_precipitation: np.ndarray
    throughfall: np.ndarray
    snowmelt: np.ndarray
    canopy_evaporation: np.ndarray
    surface_evaporation: np.ndarray
    transpiration: np.ndarray
    infiltration_capacity: np.ndarray

    @classmethod
    def initialize(cls, n_elements: int, canopy: float = 0.0, snow: float = 0.0) -> Diagnostics:
        """Diagnostics with the given storages and all rates zero."""
        arr = np.zeros((n_elements, N_DIAGNOSTICS))
        arr[:, 0] = canopy
        arr[:, 1] = snow
        return cls.from_array(arr)

    def __array__(self, dtype: np.dtype | None = None, copy: bool | None = None) -> np.ndarray:
        """Pack into an (n, 9) array, columns in field order (see D_* constants)."""
        arr = np.column_stack([getattr(self, f.name) for f in fields(self)]).astype(np.float64)
        if dtype is not None:
            arr = arr.astype(dtype)
        return arr

    @classmethod
    def from_array(cls, arr: np.ndarray) -> Diagnostics:
        """Unpack an (n, 9) array."""
        if arr.ndim != 2 or arr.shape[1] != N_DIAGNOSTICS:
            msg = f"Expected array of shape (n, {N_DIAGNOSTICS}), got {arr.shape}"
            raise ValueError(msg)
        return cls(*(np.ascontiguousarray(arr[:, col], dtype=np.float64) for col in range(N_DIAGNOSTICS)))

    def to_dict(self) -> dict[str, np.ndarray]:
        """Convert to dictionary of arrays."""
        return {field.name: getattr(self, field.name) for field in fields(self)}
