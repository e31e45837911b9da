"""Pointwise flux laws used by the RHS evaluator.

Every function is a numba-compiled scalar kernel that can also be called
from Python. Fluxes are signed: positive means from the first control
volume to the second. All of them return exactly zero (never NaN) when the
governing depth or cross-section drops below the depth floor, and all of
them pass continuously through zero when the driving gradient changes sign.
"""

import math

from numba import njit

from ..constants import AVAILABILITY_RAMP, HYDRAULIC_RADIUS_EXPONENT, MANNING_DEPTH_EXPONENT, RECHARGE_EXPONENT


@njit(cache=True)
def smooth_sqrt_gradient(grad: float, eps: float) -> float:
    """Signed sqrt(|grad|), linearised inside |grad| < eps.

    The two branches agree at |grad| = eps, so the result is continuous and
    its slope stays finite at grad = 0.
    """
    a = abs(grad)
    if a < eps:
        return grad / math.sqrt(eps)
    return grad / math.sqrt(a)


@njit(cache=True)
def availability(depth: float, floor: float) -> float:
    """Fraction [0, 1] of a source storage allowed to drain.

    Zero at or below the floor, ramps linearly to one at RAMP * floor.
    """
    if depth <= floor:
        return 0.0
    width = (AVAILABILITY_RAMP - 1.0) * floor
    if width <= 0.0:
        return 1.0
    return min((depth - floor) / width, 1.0)


@njit(cache=True)
def overland_flux(
    head_i: float,
    head_n: float,
    depth_i: float,
    depth_n: float,
    distance: float,
    edge_length: float,
    roughness: float,
    floor: float,
    eps: float,
) -> float:
    """Diffusion-wave Manning flow across an edge [m3/min], positive i -> n.

    Uses the upwind water depth above the floor as the flow depth of a wide
    rectangular section.
    """
    grad = (head_i - head_n) / distance
    depth = depth_i if grad > 0.0 else depth_n
    depth = depth - floor
    if depth <= 0.0:
        return 0.0
    return edge_length * depth**MANNING_DEPTH_EXPONENT / roughness * smooth_sqrt_gradient(grad, eps)


@njit(cache=True)
def darcy_flux(
    head_i: float,
    head_n: float,
    thick_i: float,
    thick_n: float,
    k_i: float,
    k_n: float,
    distance: float,
    width: float,
    floor: float,
) -> float:
    """Lateral Darcy flow between two saturated columns [m3/min], positive i -> n.

    Transmissivity uses the harmonic mean conductivity and the mean
    saturated thickness. The source side is scaled by its availability.
    """
    ti = max(thick_i, 0.0)
    tn = max(thick_n, 0.0)
    thickness = 0.5 * (ti + tn)
    k_sum = k_i + k_n
    if thickness <= 0.0 or k_sum <= 0.0:
        return 0.0
    k = 2.0 * k_i * k_n / k_sum
    q = k * (head_i - head_n) / distance * thickness * width
    if q > 0.0:
        return q * availability(ti, floor)
    return q * availability(tn, floor)


@njit(cache=True)
def leakage_flux(
    head_top: float,
    head_bottom: float,
    storage_top: float,
    storage_bottom: float,
    k: float,
    thickness: float,
    area: float,
    floor: float,
) -> float:
    """Vertical seepage through a layer [m3/min], positive top -> bottom."""
    q = k * (head_top - head_bottom) / thickness * area
    if q > 0.0:
        return q * availability(storage_top, floor)
    return q * availability(storage_bottom, floor)


@njit(cache=True)
def relative_saturation(unsat: float, porosity: float, deficit: float, floor: float) -> float:
    """Filled fraction of the unsaturated pore space [-], capped at 1.

    The pore space is floored so the ratio stays finite as the water
    table reaches the surface.
    """
    capacity = max(porosity * deficit, floor)
    return min(max(unsat, 0.0) / capacity, 1.0)


@njit(cache=True)
def infiltration_rate(surface: float, capacity: float, pore_space: float, floor: float) -> float:
    """Surface -> unsaturated zone infiltration [m/min].

    Limited by the diagnosed capacity, by the ponded water above the floor
    and by the free pore space. A surface depth at or below the floor gives
    exactly zero.
    """
    if surface <= floor or capacity <= 0.0:
        return 0.0
    return capacity * availability(surface, floor) * availability(pore_space, floor)


@njit(cache=True)
def recharge_rate(unsat: float, saturation: float, kv: float, floor: float) -> float:
    """Gravity drainage from the unsaturated zone to groundwater [m/min]."""
    if unsat <= 0.0:
        return 0.0
    return kv * saturation**RECHARGE_EXPONENT * availability(unsat, floor)


@njit(cache=True)
def exfiltration_rate(groundwater: float, aquifer_depth: float, kv: float) -> float:
    """Saturation-excess return flow from groundwater to the surface [m/min]."""
    excess = groundwater - aquifer_depth
    if excess <= 0.0:
        return 0.0
    return kv * excess / (0.5 * aquifer_depth)


@njit(cache=True)
def cross_section(depth: float, width: float, side_slope: float) -> tuple[float, float]:
    """Flow area [m2] and wetted perimeter [m] of a trapezoidal channel."""
    area = (width + side_slope * depth) * depth
    perimeter = width + 2.0 * depth * math.sqrt(1.0 + side_slope * side_slope)
    return area, perimeter


@njit(cache=True)
def top_width(depth: float, width: float, side_slope: float) -> float:
    """Free-surface width [m]; d(volume)/d(stage) per unit length."""
    return width + 2.0 * side_slope * max(depth, 0.0)


@njit(cache=True)
def channel_volume(depth: float, width: float, side_slope: float, length: float) -> float:
    """Water volume held in a segment at a given stage [m3]."""
    d = max(depth, 0.0)
    return (width + side_slope * d) * d * length


@njit(cache=True)
def manning_discharge(depth: float, width: float, side_slope: float, roughness: float, floor: float) -> float:
    """Conveyance A R^(2/3) / n of the section above the floor, zero when dry."""
    d = depth - floor
    if d <= 0.0:
        return 0.0
    area, perimeter = cross_section(d, width, side_slope)
    if area <= 0.0 or perimeter <= 0.0:
        return 0.0
    return area * (area / perimeter) ** HYDRAULIC_RADIUS_EXPONENT / roughness


@njit(cache=True)
def channel_flux(
    head_i: float,
    head_d: float,
    depth_i: float,
    depth_d: float,
    distance: float,
    width_i: float,
    side_i: float,
    n_i: float,
    width_d: float,
    side_d: float,
    n_d: float,
    floor: float,
    eps: float,
) -> float:
    """Diffusion-wave routing between two segments [m3/min], positive i -> d.

    The upwind segment's cross-section carries the flow.
    """
    grad = (head_i - head_d) / distance
    if grad > 0.0:
        conveyance = manning_discharge(depth_i, width_i, side_i, n_i, floor)
    else:
        conveyance = manning_discharge(depth_d, width_d, side_d, n_d, floor)
    return conveyance * smooth_sqrt_gradient(grad, eps)


@njit(cache=True)
def outlet_flux(depth: float, width: float, side_slope: float, roughness: float, slope: float, floor: float) -> float:
    """Normal-depth outflow leaving the network at an outlet [m3/min]."""
    if slope <= 0.0:
        return 0.0
    return manning_discharge(depth, width, side_slope, roughness, floor) * math.sqrt(slope)


@njit(cache=True)
def stage_for_volume(volume: float, width: float, side_slope: float, length: float) -> float:
    """Inverse of channel_volume: stage holding a given volume [m]."""
    if volume <= 0.0:
        return 0.0
    area = volume / length
    if side_slope <= 0.0:
        return area / width
    return (-width + math.sqrt(width * width + 4.0 * side_slope * area)) / (2.0 * side_slope)
