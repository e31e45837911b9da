"""Column layouts of the packed mesh parameter arrays.

`np.asarray(elements)` and `np.asarray(segments)` return 2-D float arrays
whose columns follow these indices. The numba kernels address parameters
through them.
"""

# Element parameter columns
E_AREA: int = 0
E_SURFACE_ELEVATION: int = 1
E_BED_ELEVATION: int = 2
E_POROSITY: int = 3
E_KH: int = 4
E_KV: int = 5
E_K_INF: int = 6
E_MACROPORE_K: int = 7
E_MACROPORE_FRACTION: int = 8
E_INFILTRATION_DEPTH: int = 9
E_MANNING: int = 10
E_INTERCEPTION_CAPACITY: int = 11
E_VEGETATION_FRACTION: int = 12
E_MELT_FACTOR: int = 13
ELEMENT_PARAM_NAMES: tuple[str, ...] = (
    "area",
    "surface_elevation",
    "bed_elevation",
    "porosity",
    "kh",
    "kv",
    "k_inf",
    "macropore_k",
    "macropore_fraction",
    "infiltration_depth",
    "manning",
    "interception_capacity",
    "vegetation_fraction",
    "melt_factor",
)

# Segment parameter columns
S_LENGTH: int = 0
S_WIDTH: int = 1
S_SIDE_SLOPE: int = 2
S_MANNING: int = 3
S_BOTTOM_ELEVATION: int = 4
S_BED_DEPTH: int = 5
S_BED_K: int = 6
S_BED_POROSITY: int = 7
S_OUTLET_SLOPE: int = 8
S_LEFT_DISTANCE: int = 9
S_RIGHT_DISTANCE: int = 10
SEGMENT_PARAM_NAMES: tuple[str, ...] = (
    "length",
    "width",
    "side_slope",
    "manning",
    "bottom_elevation",
    "bed_depth",
    "bed_k",
    "bed_porosity",
    "outlet_slope",
    "left_distance",
    "right_distance",
)

# Segment topology columns
T_LEFT: int = 0
T_RIGHT: int = 1
T_DOWN: int = 2

NO_NEIGHBOR: int = -1
