"""End-to-end tests for pihm.run().

These run the real evaluator, updater, scipy integrator and controller on
the small meshes from conftest.py.
"""

from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from pihm import run
from pihm.canopy.types import Diagnostics
from pihm.errors import ConfigurationError
from pihm.inputs import ControlParameters, ForcingData
from pihm.mesh.types import Mesh
from pihm.model.balance import total_storage
from pihm.outputs import ELEMENT_CHANNELS, TextFileSink
from pihm.state.layout import Quantity, StateLayout
from pihm.state.types import State


def _storage_series(output) -> np.ndarray:
    return np.array([s.total_storage for s in output.summaries])


class TestConservation:
    """Closed meshes keep their water."""

    def test_closed_river_mesh(
        self, river_mesh: Mesh, control: ControlParameters, dry_forcing: ForcingData
    ) -> None:
        initial = State.initialize(river_mesh, stage=0.2)
        expected = total_storage(river_mesh, np.asarray(initial))

        output = run(river_mesh, control, dry_forcing, initial_state=initial)

        np.testing.assert_allclose(_storage_series(output), expected, rtol=1e-6)
        assert output.final_state is not None
        assert total_storage(river_mesh, output.final_state) == pytest.approx(expected, rel=1e-6)

    def test_rain_is_stored(self, two_cell_mesh: Mesh, control: ControlParameters) -> None:
        """Storage gain equals rainfall minus what the canopy holds back."""
        forcing = ForcingData.constant(precipitation=1e-4, temperature=10.0, pet=0.0)
        initial = State.initialize(two_cell_mesh)
        before = total_storage(two_cell_mesh, np.asarray(initial))

        output = run(two_cell_mesh, control, forcing, initial_state=initial)

        canopy = output.elements["canopy"][-1]
        rain = 1e-4 * 720.0 * 200.0
        gained = output.summaries[-1].total_storage - before
        assert gained == pytest.approx(rain - 100.0 * canopy.sum(), rel=1e-6)
        np.testing.assert_allclose(canopy, 5e-4)


class TestDynamics:
    """Qualitative behaviour of the coupled system."""

    def test_groundwater_mound_spreads(
        self, two_cell_mesh: Mesh, control: ControlParameters, dry_forcing: ForcingData
    ) -> None:
        initial = State.initialize(two_cell_mesh)
        initial.groundwater = np.array([10.0, 5.0])

        output = run(two_cell_mesh, control, dry_forcing, initial_state=initial)

        gw = output.elements["groundwater"]
        assert gw[-1, 0] < 10.0
        assert gw[-1, 1] > 5.0
        assert gw[-1, 0] >= gw[-1, 1]
        assert (np.diff(gw[:, 0]) < 0).all()

    def test_state_stays_non_negative(
        self, open_river_mesh: Mesh, control: ControlParameters
    ) -> None:
        forcing = ForcingData.constant(precipitation=1e-4, temperature=10.0, pet=1e-5)

        output = run(open_river_mesh, control, forcing)

        assert output.final_state is not None
        assert (output.final_state >= 0.0).all()
        for values in output.elements.values():
            assert (values >= 0.0).all()

    def test_snow_accumulates_in_the_cold(self, two_cell_mesh: Mesh, control: ControlParameters) -> None:
        forcing = ForcingData.constant(precipitation=1e-5, temperature=-10.0, pet=0.0)

        output = run(two_cell_mesh, control, forcing)

        np.testing.assert_allclose(output.elements["snow"][-1], 1e-5 * 720.0)
        np.testing.assert_array_equal(output.elements["canopy"][-1], 0.0)


class TestOutput:
    """Shape and content of the returned ModelOutput."""

    def test_reports_at_boundaries(
        self, river_mesh: Mesh, control: ControlParameters, dry_forcing: ForcingData
    ) -> None:
        output = run(river_mesh, control, dry_forcing)

        np.testing.assert_array_equal(output.time, [0.0, 360.0, 720.0])
        assert set(output.elements) == set(ELEMENT_CHANNELS)
        assert output.segments["stage"].shape == (3, 1)
        assert output.final_state is not None
        assert output.final_state.shape == (StateLayout.for_mesh(river_mesh).size,)

    def test_first_report_is_initial_state(
        self, river_mesh: Mesh, control: ControlParameters, dry_forcing: ForcingData
    ) -> None:
        initial = State.initialize(river_mesh, stage=0.2)

        output = run(river_mesh, control, dry_forcing, initial_state=initial)

        np.testing.assert_array_equal(output.elements["groundwater"][0], initial.groundwater)
        np.testing.assert_array_equal(output.segments["stage"][0], [0.2])

    def test_dataframes(self, river_mesh: Mesh, control: ControlParameters, dry_forcing: ForcingData) -> None:
        output = run(river_mesh, control, dry_forcing)

        elements = output.to_dataframe("element")
        summaries = output.summary_dataframe()

        assert isinstance(elements, pd.DataFrame)
        assert elements.shape == (3, 2 * len(ELEMENT_CHANNELS))
        assert list(summaries.index) == [0.0, 360.0, 720.0]
        assert (summaries["substeps"].iloc[1:] == 2).all()

    def test_extra_text_sink(
        self, river_mesh: Mesh, control: ControlParameters, dry_forcing: ForcingData, tmp_path: Path
    ) -> None:
        with TextFileSink(tmp_path / "basin", channels=("groundwater", "stage")) as sink:
            output = run(river_mesh, control, dry_forcing, sinks=(sink,))

        gw = np.loadtxt(tmp_path / "basin.GW")
        assert gw.shape == (3, 3)
        np.testing.assert_allclose(gw[:, 0], output.time)
        np.testing.assert_allclose(gw[:, 1:], output.elements["groundwater"])

    def test_initial_diagnostics(self, two_cell_mesh: Mesh, control: ControlParameters) -> None:
        forcing = ForcingData.constant(precipitation=0.0, temperature=-5.0, pet=0.0)
        snowpack = Diagnostics.initialize(2, snow=0.05)

        output = run(two_cell_mesh, control, forcing, initial_diagnostics=snowpack)

        np.testing.assert_allclose(output.elements["snow"][:, 0], 0.05)

    def test_logs_solver_statistics(
        self,
        river_mesh: Mesh,
        control: ControlParameters,
        dry_forcing: ForcingData,
        caplog: pytest.LogCaptureFixture,
    ) -> None:
        with caplog.at_level("INFO", logger="pihm"):
            run(river_mesh, control, dry_forcing)

        assert "Solver statistics" in caplog.text
        assert "Report at t=720" in caplog.text


class TestRunErrors:
    """Input errors surface before the run starts."""

    def test_wrong_initial_state_size(
        self, river_mesh: Mesh, control: ControlParameters, dry_forcing: ForcingData
    ) -> None:
        with pytest.raises(ConfigurationError, match="does not match layout size"):
            run(river_mesh, control, dry_forcing, initial_state=np.zeros(4))

    def test_nan_initial_state(self, river_mesh: Mesh, control: ControlParameters, dry_forcing: ForcingData) -> None:
        y0 = np.asarray(State.initialize(river_mesh))
        y0[StateLayout.for_mesh(river_mesh).index_of(Quantity.STAGE, 0)] = np.nan

        with pytest.raises(ConfigurationError, match="NaN"):
            run(river_mesh, control, dry_forcing, initial_state=y0)

    def test_forcing_for_other_mesh(self, river_mesh: Mesh, control: ControlParameters) -> None:
        forcing = ForcingData(time=[0.0], precipitation=np.zeros((1, 5)), temperature=[0.0], pet=[0.0])

        with pytest.raises(ConfigurationError, match="spatial series"):
            run(river_mesh, control, forcing)
