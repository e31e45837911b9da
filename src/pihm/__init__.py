"""PIHM: semi-discrete finite-volume watershed hydrology engine.

Surface, unsaturated and groundwater storages on an unstructured mesh are
coupled to a channel network and integrated with a stiff ODE solver, with
interception, snow and evapotranspiration applied explicitly between solves.
"""

from .canopy import Diagnostics, ExplicitProcessUpdater
from .errors import ConfigurationError, IntegrationError
from .inputs import ControlParameters, ForcingData
from .mesh import Elements, Mesh, Segments
from .model import DerivativeEvaluator, EvaluationStats, total_storage
from .outputs import (
    OUTPUT_CHANNELS,
    IntervalSummary,
    MemorySink,
    ModelOutput,
    ReportingSink,
    ReportRecord,
    TextFileSink,
)
from .run import run
from .solver import Phase, StiffIntegrator, TimeSteppingController
from .state import Quantity, State, StateLayout

__all__ = [
    "OUTPUT_CHANNELS",
    "ConfigurationError",
    "ControlParameters",
    "DerivativeEvaluator",
    "Diagnostics",
    "Elements",
    "EvaluationStats",
    "ExplicitProcessUpdater",
    "ForcingData",
    "IntegrationError",
    "IntervalSummary",
    "MemorySink",
    "Mesh",
    "ModelOutput",
    "Phase",
    "Quantity",
    "ReportRecord",
    "ReportingSink",
    "Segments",
    "State",
    "StateLayout",
    "StiffIntegrator",
    "TextFileSink",
    "TimeSteppingController",
    "run",
]
