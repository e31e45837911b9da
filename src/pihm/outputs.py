"""Reporting records, sinks and collected model output.

The controller emits one ReportRecord per reporting boundary. Sinks consume
them in strictly increasing time order:
- MemorySink keeps them and assembles a ModelOutput
- TextFileSink writes one whitespace-delimited file per output channel
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import IO, Protocol

import numpy as np
import pandas as pd

logger = logging.getLogger(__name__)

# Quantity name -> channel file suffix. River fluxes are a reduced set of five
# per-segment streams (rivFlx0..rivFlx4): outlet discharge, overland inflow
# from both banks, baseflow from both banks, bed leakage and bed discharge.
# The per-bank splits of the full eleven-stream set are summed into these.
OUTPUT_CHANNELS: dict[str, str] = {
    "groundwater": "GW",
    "surface": "surf",
    "canopy_evaporation": "et0",
    "transpiration": "et1",
    "surface_evaporation": "et2",
    "canopy": "is",
    "snow": "snow",
    "stage": "stage",
    "unsaturated": "unsat",
    "recharge": "Rech",
    "bed": "rbed",
    "infiltration": "infil",
    "discharge": "rivFlx0",
    "surface_inflow": "rivFlx1",
    "baseflow": "rivFlx2",
    "leakage": "rivFlx3",
    "bed_discharge": "rivFlx4",
}

ELEMENT_CHANNELS: tuple[str, ...] = (
    "groundwater",
    "surface",
    "canopy_evaporation",
    "transpiration",
    "surface_evaporation",
    "canopy",
    "snow",
    "unsaturated",
    "recharge",
    "infiltration",
)
SEGMENT_CHANNELS: tuple[str, ...] = (
    "stage",
    "bed",
    "discharge",
    "surface_inflow",
    "baseflow",
    "leakage",
    "bed_discharge",
)


@dataclass(frozen=True)
class IntervalSummary:
    """Numerical health of one reporting interval.

    Attributes:
        start: Interval start time [min].
        end: Interval end time [min].
        substeps: Number of sub-steps taken.
        evaluations: RHS evaluations made by the solver.
        clamped: Negative storages clamped during evaluation and commit.
        floored: Guarded terms evaluated below the depth floor.
        relocated: Excess storages moved to the surface or channel on commit.
        clamp_rate: Clamped fraction of storage reads [-].
        total_storage: Watershed water volume at the end of the interval [m3].
        clamp_warning: Whether clamp_rate exceeded the configured threshold.
    """

    start: float
    end: float
    substeps: int = 0
    evaluations: int = 0
    clamped: int = 0
    floored: int = 0
    relocated: int = 0
    clamp_rate: float = 0.0
    total_storage: float = 0.0
    clamp_warning: bool = False


@dataclass(frozen=True)
class ReportRecord:
    """Snapshot of the model at one reporting boundary.

    Attributes:
        time: Boundary time [min].
        elements: Per-element values keyed by channel name, each shape (n_elements,).
        segments: Per-segment values keyed by channel name, each shape (n_segments,).
        summary: Interval summary ending at this boundary.
    """

    time: float
    elements: dict[str, np.ndarray]
    segments: dict[str, np.ndarray]
    summary: IntervalSummary

    def get(self, name: str) -> np.ndarray:
        """Values of one channel, element or segment."""
        if name in self.elements:
            return self.elements[name]
        if name in self.segments:
            return self.segments[name]
        msg = f"unknown output channel {name!r}"
        raise KeyError(msg)


class ReportingSink(Protocol):
    """Consumer of report records, called in strictly increasing time order."""

    def write(self, record: ReportRecord) -> None: ...


def _check_order(last: float | None, record: ReportRecord) -> None:
    if last is not None and not record.time > last:
        msg = f"report time {record.time} does not follow previous report time {last}"
        raise ValueError(msg)


@dataclass(frozen=True)
class ModelOutput:
    """Collected output of a run.

    Attributes:
        time: Report times [min], shape (n_reports,).
        elements: Per-element series keyed by channel, each shape (n_reports, n_elements).
        segments: Per-segment series keyed by channel, each shape (n_reports, n_segments).
        summaries: One IntervalSummary per report.
        final_state: State vector at the end of the run (or at cancellation).
    """

    time: np.ndarray
    elements: dict[str, np.ndarray]
    segments: dict[str, np.ndarray]
    summaries: list[IntervalSummary] = field(default_factory=list)
    final_state: np.ndarray | None = None

    def __len__(self) -> int:
        return len(self.time)

    def to_dataframe(self, kind: str = "element") -> pd.DataFrame:
        """Convert element or segment series to a DataFrame.

        Args:
            kind: "element" or "segment".

        Returns:
            DataFrame indexed by report time with (channel, entity) MultiIndex columns.
        """
        if kind == "element":
            series = self.elements
        elif kind == "segment":
            series = self.segments
        else:
            msg = f"kind must be 'element' or 'segment', got {kind!r}"
            raise ValueError(msg)

        data = {
            (name, entity): values[:, entity] for name, values in series.items() for entity in range(values.shape[1])
        }
        df = pd.DataFrame(data, index=pd.Index(self.time, name="time"))
        if data:
            df.columns = pd.MultiIndex.from_tuples(list(data), names=["channel", "entity"])
        return df

    def summary_dataframe(self) -> pd.DataFrame:
        """Interval summaries as a DataFrame indexed by interval end time."""
        df = pd.DataFrame([asdict(s) for s in self.summaries])
        if not df.empty:
            df = df.set_index("end")
        return df


class MemorySink:
    """Keeps every record in memory."""

    def __init__(self) -> None:
        self.records: list[ReportRecord] = []

    def write(self, record: ReportRecord) -> None:
        _check_order(self.records[-1].time if self.records else None, record)
        self.records.append(record)

    def to_output(self, final_state: np.ndarray | None = None) -> ModelOutput:
        """Stack the collected records into a ModelOutput."""
        time = np.array([r.time for r in self.records], dtype=np.float64)
        elements: dict[str, np.ndarray] = {}
        segments: dict[str, np.ndarray] = {}
        if self.records:
            first = self.records[0]
            elements = {name: np.vstack([r.elements[name] for r in self.records]) for name in first.elements}
            segments = {name: np.vstack([r.segments[name] for r in self.records]) for name in first.segments}
        return ModelOutput(
            time=time,
            elements=elements,
            segments=segments,
            summaries=[r.summary for r in self.records],
            final_state=final_state,
        )


class TeeSink:
    """Forwards each record to several sinks in order."""

    def __init__(self, sinks: tuple[ReportingSink, ...]) -> None:
        self.sinks = sinks

    def write(self, record: ReportRecord) -> None:
        for sink in self.sinks:
            sink.write(record)


class TextFileSink:
    """Writes one whitespace-delimited file per channel, one row per report.

    Files are named `<prefix>.<suffix>` and opened on the first record. Each
    row holds the report time followed by the entity values. Writing after
    `close` raises ValueError, so earlier reports are never truncated.

    Args:
        prefix: Output path prefix, e.g. "output/catchment".
        channels: Channel names to write. Defaults to all of OUTPUT_CHANNELS.
    """

    def __init__(self, prefix: str | Path, channels: tuple[str, ...] | None = None) -> None:
        names = tuple(OUTPUT_CHANNELS) if channels is None else channels
        unknown = [name for name in names if name not in OUTPUT_CHANNELS]
        if unknown:
            msg = f"unknown output channels: {unknown}"
            raise ValueError(msg)
        self.prefix = Path(prefix)
        self.channels = names
        self._handles: dict[str, IO[str]] = {}
        self._last: float | None = None
        self._closed = False

    def path_for(self, channel: str) -> Path:
        return self.prefix.with_name(f"{self.prefix.name}.{OUTPUT_CHANNELS[channel]}")

    def write(self, record: ReportRecord) -> None:
        if self._closed:
            msg = f"cannot write to closed output sink {self.prefix}"
            raise ValueError(msg)
        _check_order(self._last, record)
        if not self._handles:
            self._open()
        for name in self.channels:
            row = np.concatenate([[record.time], record.get(name)])
            np.savetxt(self._handles[name], row[np.newaxis, :], fmt="%.10g")
            self._handles[name].flush()
        self._last = record.time

    def _open(self) -> None:
        self.prefix.parent.mkdir(parents=True, exist_ok=True)
        for name in self.channels:
            self._handles[name] = self.path_for(name).open("w")
        logger.info("Writing %d output channels to %s.*", len(self.channels), self.prefix)

    def close(self) -> None:
        for handle in self._handles.values():
            handle.close()
        self._handles.clear()
        self._closed = True

    def __enter__(self) -> TextFileSink:
        return self

    def __exit__(self, *exc: object) -> None:
        self.close()
