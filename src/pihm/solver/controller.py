"""Time-stepping controller.

Drives a run from start_time through every reporting boundary. Each
interval is split into sub-steps no longer than the ET step ceiling; the
last sub-step of an interval is shortened to land exactly on the boundary.
One sub-step is:

    explicit update -> implicit solve -> bound enforcement -> commit

The controller is the sole owner of the live state vector. The explicit
updater and the solver work on copies, and nothing they produce becomes
authoritative until the sub-step commits.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import TYPE_CHECKING

import numpy as np

from ..constants import TIME_TOLERANCE
from ..errors import IntegrationError
from ..model.balance import total_storage
from ..model.bounds import enforce_bounds
from ..outputs import ELEMENT_CHANNELS, SEGMENT_CHANNELS, IntervalSummary, ReportRecord
from ..state.layout import Quantity

if TYPE_CHECKING:
    from ..canopy.run import ExplicitProcessUpdater
    from ..canopy.types import Diagnostics
    from ..inputs import ControlParameters
    from ..mesh.types import Mesh
    from ..model.rhs import DerivativeEvaluator
    from ..outputs import ReportingSink
    from ..state.layout import StateLayout
    from .integrator import StiffIntegrator

logger = logging.getLogger(__name__)


class Phase(Enum):
    """Controller lifecycle."""

    IDLE = "idle"
    SUBSTEPPING = "substepping"
    REPORTING = "reporting"
    FINISHED = "finished"


class TimeSteppingController:
    """Sequences explicit updates, implicit solves and reports.

    Args:
        mesh: Validated mesh.
        control: Run control parameters.
        layout: State layout matching the mesh.
        updater: Explicit process updater.
        evaluator: RHS evaluator bound into each solve.
        integrator: Stiff integrator.
        sink: Receives one ReportRecord per reporting boundary.

    Attributes:
        phase: Current lifecycle phase.
        time: Time of the last committed state [min].
        substeps: (start, end) of every committed sub-step.
    """

    def __init__(
        self,
        mesh: Mesh,
        control: ControlParameters,
        layout: StateLayout,
        updater: ExplicitProcessUpdater,
        evaluator: DerivativeEvaluator,
        integrator: StiffIntegrator,
        sink: ReportingSink,
    ) -> None:
        self.mesh = mesh
        self.control = control
        self.layout = layout
        self.updater = updater
        self.evaluator = evaluator
        self.integrator = integrator
        self.sink = sink

        self.phase = Phase.IDLE
        self.time = control.start_time
        self.substeps: list[tuple[float, float]] = []
        self._stop_requested = False
        self._stopped_early = False

        # Interval accumulators
        self._interval_start = control.start_time
        self._interval_substeps = 0
        self._interval_clamped = 0
        self._interval_relocated = 0

    def request_stop(self) -> None:
        """Ask the run to stop at the next sub-step boundary."""
        self._stop_requested = True

    @property
    def stopped(self) -> bool:
        """Whether the run ended before its last boundary on request."""
        return self._stopped_early

    def run(self, state: np.ndarray) -> np.ndarray:
        """Run from start_time to the last reporting boundary.

        Args:
            state: Initial flat state vector. Copied; never modified.

        Returns:
            The last committed state: at the final boundary, or at the last
            completed sub-step if a stop was requested.

        Raises:
            RuntimeError: If the controller has already run.
            IntegrationError: If a solve fails. Carries the last committed
                time and state.
        """
        if self.phase is not Phase.IDLE:
            msg = f"controller cannot run from phase {self.phase.value}"
            raise RuntimeError(msg)

        y = np.array(state, dtype=np.float64, copy=True)
        if y.shape != (self.layout.size,):
            msg = f"state vector shape {y.shape} does not match layout size {self.layout.size}"
            raise ValueError(msg)

        control = self.control
        self.time = control.start_time
        self._interval_start = self.time
        logger.info(
            "Starting run: %d elements, %d segments, t=%g..%g min, %d reports, sub-step ceiling %g min",
            self.mesh.n_elements,
            self.mesh.n_segments,
            control.start_time,
            control.end_time,
            len(control.report_times),
            control.et_step,
        )

        for boundary in control.report_times:
            self.phase = Phase.SUBSTEPPING
            tol = TIME_TOLERANCE * max(1.0, abs(boundary))
            while self.time < boundary - tol:
                if self._stop_requested:
                    logger.info("Stop requested; ending run at t=%g min", self.time)
                    self._stopped_early = True
                    self.phase = Phase.FINISHED
                    return y
                target = min(self.time + control.et_step, boundary)
                y = self._substep(y, target)

            self.time = boundary
            self.phase = Phase.REPORTING
            self._report(y, boundary)

        self.phase = Phase.FINISHED
        logger.info("Run finished at t=%g min after %d sub-steps", self.time, len(self.substeps))
        return y

    def _substep(self, y: np.ndarray, target: float) -> np.ndarray:
        start = self.time
        while True:
            y_new, diagnostics, t_reached = self._solve(y, start, target)
            if t_reached == target:
                break
            # Short reach: redo the explicit update over the span actually solved
            logger.debug("Solver stopped at t=%g min short of %g min; retrying shorter sub-step", t_reached, target)
            target = t_reached

        y_new = np.array(y_new, dtype=np.float64, copy=True)
        clamped, relocated = enforce_bounds(self.mesh, y_new)
        self.updater.commit(diagnostics)

        self.time = t_reached
        self.substeps.append((start, t_reached))
        self._interval_substeps += 1
        self._interval_clamped += clamped
        self._interval_relocated += relocated
        logger.debug("Committed sub-step [%g, %g] min (%d clamped, %d relocated)", start, t_reached, clamped, relocated)
        return y_new

    def _solve(self, y: np.ndarray, start: float, target: float) -> tuple[np.ndarray, Diagnostics, float]:
        """Explicit update and implicit solve over [start, target], nothing committed.

        Returns:
            Tuple of (solved state, diagnostics, reached time). The reached
            time is snapped to `target` when within tolerance.
        """
        y_explicit, diagnostics = self.updater.advance(start, target - start, y)
        rhs = self.evaluator.rhs_for(diagnostics)

        try:
            y_new, t_reached = self.integrator.integrate(rhs, start, y_explicit, target)
        except IntegrationError as exc:
            logger.error("Integration failed over [%g, %g] min: %s", start, target, exc)
            raise IntegrationError(f"sub-step [{start:g}, {target:g}] min did not complete", start, y) from exc

        tol = TIME_TOLERANCE * max(1.0, abs(target))
        if t_reached > target + tol:
            logger.error("Solver reached t=%g min past target %g min", t_reached, target)
            raise IntegrationError(f"solver overshot target t={target:g} to t={t_reached:g}", start, y)
        if not t_reached > start:
            logger.error("Solver made no progress from t=%g min", start)
            raise IntegrationError(f"solver made no progress towards t={target:g}", start, y)
        if abs(t_reached - target) <= tol:
            t_reached = target
        return y_new, diagnostics, t_reached

    def _report(self, y: np.ndarray, boundary: float) -> None:
        diagnostics = self.updater.diagnostics
        fluxes = self.evaluator.fluxes(y, diagnostics)
        stats = self.evaluator.stats.reset()
        layout = self.layout

        values = {q.value: layout.view(y, q).copy() for q in Quantity}
        values.update({name: arr.copy() for name, arr in diagnostics.to_dict().items()})
        values.update(fluxes)
        elements = {name: values[name] for name in ELEMENT_CHANNELS}
        segments = {name: values[name] for name in SEGMENT_CHANNELS}

        clamp_rate = stats.clamp_rate
        warn = clamp_rate > self.control.clamp_warning_rate
        if warn:
            logger.warning(
                "Clamp rate %.3g over [%g, %g] min exceeds %.3g; consider a smaller max_step or tighter tolerances",
                clamp_rate,
                self._interval_start,
                boundary,
                self.control.clamp_warning_rate,
            )

        summary = IntervalSummary(
            start=self._interval_start,
            end=boundary,
            substeps=self._interval_substeps,
            evaluations=stats.evaluations,
            clamped=stats.clamped + self._interval_clamped,
            floored=stats.floored,
            relocated=self._interval_relocated,
            clamp_rate=clamp_rate,
            total_storage=total_storage(self.mesh, y),
            clamp_warning=warn,
        )
        self.sink.write(ReportRecord(time=boundary, elements=elements, segments=segments, summary=summary))
        logger.info(
            "Report at t=%g min: storage %.6g m3, %d sub-steps, %d evaluations",
            boundary,
            summary.total_storage,
            summary.substeps,
            summary.evaluations,
        )

        self._interval_start = boundary
        self._interval_substeps = 0
        self._interval_clamped = 0
        self._interval_relocated = 0
