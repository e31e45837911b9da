"""Run control and forcing inputs.

Pydantic models validating everything the engine reads before a run starts:
- ControlParameters: reporting boundaries, sub-step ceiling and solver settings
- ForcingData: precipitation, temperature and PET series
"""

from __future__ import annotations

from typing import Literal

import numpy as np
from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .constants import DEFAULT_CLAMP_WARNING_RATE, DEFAULT_MIN_DEPTH
from .errors import ConfigurationError


class ControlParameters(BaseModel):
    """Run control parameters. Times in minutes.

    Attributes:
        start_time: Simulation start time [min].
        report_times: Reporting boundaries, strictly increasing and >= start_time.
            A boundary equal to start_time reports the initial condition.
        et_step: Ceiling on the explicit/implicit sub-step length [min].
        init_step: Initial step size hint for the stiff solver [min].
        max_step: Maximum internal solver step [min].
        min_step: Minimum accepted internal solver step [min].
        rtol: Relative solver tolerance [-].
        atol: Absolute solver tolerance [m].
        min_depth: Depth floor guarding drying storages [m].
        method: scipy stiff integration method.
        clamp_warning_rate: Clamped fraction of storage reads per interval above
            which a warning is logged [-].
    """

    model_config = ConfigDict(frozen=True)

    start_time: float = 0.0
    report_times: tuple[float, ...]
    et_step: float = Field(default=60.0, gt=0)
    init_step: float = Field(default=1.0, gt=0)
    max_step: float = Field(default=60.0, gt=0)
    min_step: float = Field(default=1e-8, ge=0)
    rtol: float = Field(default=1e-4, gt=0)
    atol: float = Field(default=1e-6, gt=0)
    min_depth: float = Field(default=DEFAULT_MIN_DEPTH, gt=0)
    method: Literal["BDF", "Radau", "LSODA"] = "BDF"
    clamp_warning_rate: float = Field(default=DEFAULT_CLAMP_WARNING_RATE, ge=0)

    @field_validator("report_times", mode="before")
    @classmethod
    def coerce_report_times(cls, v: object) -> tuple[float, ...]:
        """Accept any 1D sequence or array of times."""
        arr = np.asarray(v, dtype=np.float64)
        if arr.ndim != 1:
            msg = f"report_times must be 1D, got {arr.ndim}D"
            raise ValueError(msg)
        if arr.size == 0:
            raise ValueError("report_times must not be empty")
        if np.isnan(arr).any():
            raise ValueError("report_times contains NaN values")
        return tuple(float(t) for t in arr)

    @model_validator(mode="after")
    def check_consistency(self) -> ControlParameters:
        """Check time ordering and step size relations."""
        times = np.asarray(self.report_times)
        if times[0] < self.start_time:
            msg = f"first report time {times[0]} precedes start_time {self.start_time}"
            raise ValueError(msg)
        if (np.diff(times) <= 0).any():
            raise ValueError("report_times must be strictly increasing")
        if self.min_step > self.max_step:
            msg = f"min_step {self.min_step} exceeds max_step {self.max_step}"
            raise ValueError(msg)
        return self

    @classmethod
    def regular(cls, start: float, end: float, interval: float, **kwargs: object) -> ControlParameters:
        """Evenly spaced reporting boundaries from start + interval to end.

        The last boundary is `end` even when the span is not a multiple of
        the interval.

        Args:
            start: Simulation start time [min].
            end: Simulation end time [min].
            interval: Reporting interval [min].
            **kwargs: Further ControlParameters fields.
        """
        if interval <= 0 or end <= start:
            msg = f"need interval > 0 and end > start, got interval={interval}, start={start}, end={end}"
            raise ValueError(msg)
        count = int(np.floor((end - start) / interval + 1e-9))
        times = [start + interval * (k + 1) for k in range(count)]
        if not times or times[-1] < end - 1e-9 * interval:
            times.append(end)
        else:
            times[-1] = end
        return cls(start_time=start, report_times=times, **kwargs)

    @property
    def end_time(self) -> float:
        return self.report_times[-1]


class ForcingData(BaseModel):
    """Meteorological forcing series. Times in minutes.

    Each variable is either one series shared by all elements, shape
    (n_time,), or one series per element, shape (n_time, n_elements).

    Attributes:
        time: Sample times [min], strictly increasing.
        precipitation: Precipitation rate [m/min]. Constraint: >= 0.
        temperature: Air temperature [°C].
        pet: Potential evapotranspiration rate [m/min]. Constraint: >= 0.
    """

    model_config = ConfigDict(arbitrary_types_allowed=True, frozen=True)

    time: np.ndarray
    precipitation: np.ndarray
    temperature: np.ndarray
    pet: np.ndarray

    @field_validator("time", mode="before")
    @classmethod
    def validate_time(cls, v: object) -> np.ndarray:
        """Validate the time axis."""
        arr = np.array(v, dtype=np.float64, copy=True)
        if arr.ndim != 1:
            msg = f"time array must be 1D, got {arr.ndim}D"
            raise ValueError(msg)
        if arr.size == 0:
            raise ValueError("time array must not be empty")
        if np.isnan(arr).any():
            raise ValueError("time array contains NaN values")
        if (np.diff(arr) <= 0).any():
            raise ValueError("time array must be strictly increasing")
        arr.flags.writeable = False
        return arr

    @field_validator("precipitation", "temperature", "pet", mode="before")
    @classmethod
    def validate_series(cls, v: object) -> np.ndarray:
        """Coerce to float64 and reject NaN."""
        arr = np.array(v, dtype=np.float64, copy=True)
        if arr.ndim not in (1, 2):
            msg = f"forcing array must be 1D or 2D, got {arr.ndim}D"
            raise ValueError(msg)
        if np.isnan(arr).any():
            raise ValueError("forcing array contains NaN values")
        arr.flags.writeable = False
        return arr

    @model_validator(mode="after")
    def check_shapes(self) -> ForcingData:
        """Check lengths against the time axis and value ranges."""
        n_time = len(self.time)
        for name in ("precipitation", "temperature", "pet"):
            arr = getattr(self, name)
            if arr.shape[0] != n_time:
                msg = f"{name} length {arr.shape[0]} does not match time length {n_time}"
                raise ValueError(msg)
        columns = {arr.shape[1] for arr in (self.precipitation, self.temperature, self.pet) if arr.ndim == 2}
        if len(columns) > 1:
            msg = f"per-element forcing series disagree on element count: {sorted(columns)}"
            raise ValueError(msg)
        if (self.precipitation < 0).any():
            raise ValueError("precipitation must be non-negative")
        if (self.pet < 0).any():
            raise ValueError("pet must be non-negative")
        return self

    @classmethod
    def constant(
        cls,
        precipitation: float = 0.0,
        temperature: float = 10.0,
        pet: float = 0.0,
    ) -> ForcingData:
        """Forcing held at fixed values for all time."""
        return cls(
            time=np.array([0.0]),
            precipitation=np.array([precipitation]),
            temperature=np.array([temperature]),
            pet=np.array([pet]),
        )

    def __len__(self) -> int:
        return len(self.time)

    @property
    def n_series(self) -> int:
        """Number of spatial series: 1 for uniform forcing, else the element count."""
        for arr in (self.precipitation, self.temperature, self.pet):
            if arr.ndim == 2:
                return int(arr.shape[1])
        return 1

    def at(self, t: float, n_elements: int) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Forcing at time t, linearly interpolated and broadcast to elements.

        Values are held constant before the first and after the last sample.

        Returns:
            Tuple of (precipitation, temperature, pet), each shape (n_elements,).

        Raises:
            ConfigurationError: If per-element series do not match n_elements.
        """
        return (
            self._sample(self.precipitation, t, n_elements),
            self._sample(self.temperature, t, n_elements),
            self._sample(self.pet, t, n_elements),
        )

    def _sample(self, values: np.ndarray, t: float, n_elements: int) -> np.ndarray:
        time = self.time
        if t <= time[0]:
            row = values[0]
        elif t >= time[-1]:
            row = values[-1]
        else:
            k = int(np.searchsorted(time, t, side="right")) - 1
            w = (t - time[k]) / (time[k + 1] - time[k])
            row = (1.0 - w) * values[k] + w * values[k + 1]
        if values.ndim == 2 and values.shape[1] != n_elements:
            msg = f"forcing has {values.shape[1]} element series, expected {n_elements}"
            raise ConfigurationError(msg)
        return np.ascontiguousarray(np.broadcast_to(row, (n_elements,)), dtype=np.float64).copy()
