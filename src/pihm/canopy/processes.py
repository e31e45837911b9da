"""Explicit per-element process functions.

Snow partitioning and melt, canopy interception and evaporation, soil
moisture stress and the infiltration capacity handed to the evaluator.
Amounts are water depths [m] over one sub-step unless stated otherwise.
"""

from numba import njit

from .constants import CANOPY_WETNESS_EXPONENT, STRESS_SATURATION, T_ALL_RAIN, T_ALL_SNOW, T_MELT


@njit(cache=True)
def snow_fraction(temp: float) -> float:
    """Solid fraction of precipitation [-], linear between the two thresholds."""
    if temp <= T_ALL_SNOW:
        return 1.0
    if temp >= T_ALL_RAIN:
        return 0.0
    return (T_ALL_RAIN - temp) / (T_ALL_RAIN - T_ALL_SNOW)


@njit(cache=True)
def snowmelt(snow: float, temp: float, melt_factor: float, dt: float) -> float:
    """Degree-index melt over dt, limited by the snowpack."""
    if snow <= 0.0 or temp <= T_MELT:
        return 0.0
    return min(snow, melt_factor * (temp - T_MELT) * dt)


@njit(cache=True)
def intercept(canopy: float, rain: float, capacity: float) -> tuple[float, float]:
    """Fill the canopy with rain up to its capacity.

    Returns:
        Tuple of (new canopy storage, throughfall of the excess).
    """
    filled = canopy + rain
    if filled <= capacity:
        return filled, 0.0
    return max(capacity, 0.0), filled - max(capacity, 0.0)


@njit(cache=True)
def canopy_evaporation(canopy: float, capacity: float, demand: float, vegetation_fraction: float) -> float:
    """Evaporation of intercepted water, scaled by the wet canopy fraction."""
    if canopy <= 0.0 or capacity <= 0.0 or demand <= 0.0:
        return 0.0
    wetness = min(canopy / capacity, 1.0) ** CANOPY_WETNESS_EXPONENT
    return min(canopy, vegetation_fraction * demand * wetness)


@njit(cache=True)
def moisture_stress(saturation: float) -> float:
    """Transpiration reduction factor [0, 1]."""
    if saturation <= 0.0:
        return 0.0
    return min(saturation / STRESS_SATURATION, 1.0)


@njit(cache=True)
def infiltration_capacity(
    surface: float,
    k_inf: float,
    macropore_k: float,
    macropore_fraction: float,
    infiltration_depth: float,
) -> float:
    """Potential infiltration rate [m/min].

    Ponded water activates the macropore domain and adds a head gradient
    over the infiltration depth.
    """
    if surface <= 0.0:
        return k_inf
    k_eff = (1.0 - macropore_fraction) * k_inf + macropore_fraction * macropore_k
    return k_eff * (1.0 + surface / infiltration_depth)
