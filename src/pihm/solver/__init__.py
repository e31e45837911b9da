"""Time integration subpackage.

The stiff integrator collaborator and the time-stepping controller.
"""

from .controller import Phase, TimeSteppingController
from .integrator import StiffIntegrator

__all__ = [
    "Phase",
    "StiffIntegrator",
    "TimeSteppingController",
]
