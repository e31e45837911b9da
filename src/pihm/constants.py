"""PIHM numerical constants.

Fixed values shared by the flux evaluator, the explicit process updater and
the time-stepping controller. Time is measured in minutes throughout.
"""

MINUTES_PER_DAY: float = 1440.0  # Unit conversion for per-day inputs

# Numerical safeguards
DEFAULT_MIN_DEPTH: float = 1e-4  # Depth floor below which storages count as dry [m]
AVAILABILITY_RAMP: float = 10.0  # Sources drain smoothly between floor and RAMP * floor
GRADIENT_EPSILON: float = 1e-7  # Manning sqrt(gradient) is linear inside |grad| < eps [-]

# Process shape constants
RECHARGE_EXPONENT: float = 3.0  # Gravity drainage ~ kv * s^n for relative saturation s
MANNING_DEPTH_EXPONENT: float = 5.0 / 3.0  # Wide-channel overland flow depth exponent
HYDRAULIC_RADIUS_EXPONENT: float = 2.0 / 3.0

# Run-time safeguards
DEFAULT_CLAMP_WARNING_RATE: float = 1e-3  # Clamped fraction of state reads per interval
TIME_TOLERANCE: float = 1e-9  # Relative tolerance when snapping solver time to a target
