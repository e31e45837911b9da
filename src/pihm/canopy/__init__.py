"""Explicit process subpackage.

Canopy interception, snow accumulation and melt, and evapotranspiration,
applied once per sub-step ahead of the implicit solve.
"""

from .processes import canopy_evaporation, infiltration_capacity, intercept, moisture_stress, snow_fraction, snowmelt
from .run import ExplicitProcessUpdater
from .types import Diagnostics

__all__ = [
    "Diagnostics",
    "ExplicitProcessUpdater",
    "canopy_evaporation",
    "infiltration_capacity",
    "intercept",
    "moisture_stress",
    "snow_fraction",
    "snowmelt",
]
