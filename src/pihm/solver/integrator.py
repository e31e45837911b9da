"""Stiff ODE integrator collaborator.

Wraps scipy.integrate.solve_ivp behind the single call the controller needs:
advance y from t0 to t_target, or fail with IntegrationError.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

import numpy as np
from scipy.integrate import solve_ivp

from ..constants import TIME_TOLERANCE
from ..errors import IntegrationError

if TYPE_CHECKING:
    from scipy.sparse import spmatrix

    from ..inputs import ControlParameters

logger = logging.getLogger(__name__)

# Methods that accept a Jacobian sparsity pattern
_SPARSE_METHODS: frozenset[str] = frozenset({"BDF", "Radau"})


class StiffIntegrator:
    """Implicit integrator configured once from the run control.

    Args:
        control: Provides method, rtol, atol, init_step, max_step and min_step.
        jac_sparsity: Sparsity pattern of the RHS Jacobian. Used by BDF and
            Radau to cut the cost of finite-difference Jacobians; ignored by LSODA.

    Attributes:
        calls: Completed integrate() calls.
        steps: Accepted internal steps over all calls.
        evaluations: RHS evaluations reported by the solver over all calls.
    """

    def __init__(self, control: ControlParameters, jac_sparsity: spmatrix | None = None) -> None:
        self.method = control.method
        self.rtol = control.rtol
        self.atol = control.atol
        self.init_step = control.init_step
        self.max_step = control.max_step
        self.min_step = control.min_step
        self.jac_sparsity = jac_sparsity if self.method in _SPARSE_METHODS else None
        self.calls = 0
        self.steps = 0
        self.evaluations = 0

    def integrate(
        self,
        fun: Callable[[float, np.ndarray], np.ndarray],
        t0: float,
        y0: np.ndarray,
        t_target: float,
    ) -> tuple[np.ndarray, float]:
        """Advance y0 from t0 to t_target.

        Args:
            fun: Right-hand side f(t, y).
            t0: Start time [min].
            y0: State at t0. Not modified.
            t_target: Requested end time [min], > t0.

        Returns:
            Tuple of (state at the reached time, reached time). The reached
            time equals t_target on success.

        Raises:
            ValueError: If t_target <= t0.
            IntegrationError: On solver failure, an accepted step shorter than
                min_step, or a reached time beyond t_target.
        """
        span = t_target - t0
        if not span > 0.0:
            msg = f"t_target {t_target} must exceed t0 {t0}"
            raise ValueError(msg)

        options: dict[str, object] = {
            "method": self.method,
            "rtol": self.rtol,
            "atol": self.atol,
            "first_step": min(self.init_step, span),
            "max_step": min(self.max_step, span),
        }
        if self.jac_sparsity is not None:
            options["jac_sparsity"] = self.jac_sparsity

        y_start = np.array(y0, dtype=np.float64, copy=True)
        try:
            sol = solve_ivp(fun, (t0, t_target), y_start, **options)
        except (ValueError, FloatingPointError) as exc:
            raise IntegrationError(f"{self.method} raised {type(exc).__name__}: {exc}", t0, y0) from exc

        self.calls += 1
        self.steps += len(sol.t) - 1
        self.evaluations += int(sol.nfev)

        if not sol.success:
            raise IntegrationError(f"{self.method} failed: {sol.message}", t0, y0)

        t_reached = float(sol.t[-1])
        tol = TIME_TOLERANCE * max(1.0, abs(t_target))
        if t_reached > t_target + tol:
            raise IntegrationError(f"{self.method} overshot t={t_target:.6g} to t={t_reached:.6g}", t0, y0)

        # The final step is cut to hit t_target exactly, so only earlier ones are checked
        steps = np.diff(sol.t)
        if self.min_step > 0.0 and steps.size > 1 and steps[:-1].min() < self.min_step:
            msg = f"{self.method} step {steps[:-1].min():.3g} min fell below min_step {self.min_step:.3g}"
            raise IntegrationError(msg, t0, y0)

        if abs(t_reached - t_target) <= tol:
            t_reached = t_target
        logger.debug("Integrated [%g, %g] min in %d steps, %d evaluations", t0, t_reached, len(steps), sol.nfev)
        return np.array(sol.y[:, -1], dtype=np.float64), t_reached
