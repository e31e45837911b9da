"""Column layouts of the flux and counter arrays written by the RHS kernel."""

# Element fluxes
F_INFILTRATION: int = 0  # Surface -> unsaturated zone [m/min]
F_RECHARGE: int = 1  # Unsaturated zone -> groundwater [m/min]
F_EXFILTRATION: int = 2  # Groundwater -> surface [m/min]
F_SURFACE_LATERAL: int = 3  # Net lateral surface inflow incl. channel exchange [m3/min]
F_GROUNDWATER_LATERAL: int = 4  # Net lateral groundwater inflow incl. bed exchange [m3/min]
F_SURFACE_TO_CHANNEL: int = 5  # Overland flow into adjacent channels [m3/min]
F_GROUNDWATER_TO_CHANNEL: int = 6  # Groundwater flow into adjacent riverbeds [m3/min]
N_ELEMENT_FLUXES: int = 7
ELEMENT_FLUX_NAMES: tuple[str, ...] = (
    "infiltration",
    "recharge",
    "exfiltration",
    "surface_lateral",
    "groundwater_lateral",
    "surface_to_channel",
    "groundwater_to_channel",
)

# Segment fluxes [m3/min]
R_DISCHARGE: int = 0  # To the downstream segment or out of the outlet
R_SURFACE_INFLOW: int = 1  # Overland inflow from bank elements
R_BASEFLOW: int = 2  # Groundwater inflow from bank elements into the bed
R_LEAKAGE: int = 3  # Channel -> riverbed aquifer
R_BED_DISCHARGE: int = 4  # Riverbed aquifer -> downstream riverbed aquifer
N_SEGMENT_FLUXES: int = 5
SEGMENT_FLUX_NAMES: tuple[str, ...] = (
    "discharge",
    "surface_inflow",
    "baseflow",
    "leakage",
    "bed_discharge",
)

# Counter slots
C_CLAMPED: int = 0  # Negative (or NaN) storages replaced by zero
C_FLOORED: int = 1  # Guarded terms evaluated below the depth floor
N_COUNTERS: int = 2
