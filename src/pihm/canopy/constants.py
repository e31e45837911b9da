"""Canopy, snow and evapotranspiration constants.

Temperatures in degrees Celsius. Rates per minute.
"""

T_ALL_SNOW: float = -3.0  # At or below: all precipitation falls as snow [°C]
T_ALL_RAIN: float = 1.0  # At or above: all precipitation falls as rain [°C]
T_MELT: float = 0.0  # Degree-index melt threshold [°C]
CANOPY_WETNESS_EXPONENT: float = 2.0 / 3.0  # Wet canopy fraction = (storage / capacity)^b
STRESS_SATURATION: float = 0.5  # Relative saturation above which transpiration is unstressed [-]

# Diagnostics columns (packed (n, 9) array)
D_CANOPY: int = 0
D_SNOW: int = 1
D_NET_PRECIPITATION: int = 2
D_THROUGHFALL: int = 3
D_SNOWMELT: int = 4
D_CANOPY_EVAPORATION: int = 5
D_SURFACE_EVAPORATION: int = 6
D_TRANSPIRATION: int = 7
D_INFILTRATION_CAPACITY: int = 8
N_DIAGNOSTICS: int = 9
