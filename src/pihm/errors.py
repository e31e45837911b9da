"""Exceptions raised by the PIHM engine.

Only configuration errors and integration failures halt a run. Numerical
singularities and physical-bound violations are corrected in place and
counted by the flux evaluator instead of being raised.
"""

from __future__ import annotations

import numpy as np


class ConfigurationError(ValueError):
    """Malformed or inconsistent mesh, topology or forcing input."""


class IntegrationError(RuntimeError):
    """The stiff solver could not advance the state to the requested time.

    Attributes:
        time: Last time at which the state is known to be valid [min].
        state: Copy of the last valid state vector, if available.
    """

    def __init__(self, message: str, time: float, state: np.ndarray | None = None) -> None:
        super().__init__(f"{message} (last stable time t={time:.6g} min)")
        self.time = time
        self.state = None if state is None else np.array(state, dtype=np.float64, copy=True)
