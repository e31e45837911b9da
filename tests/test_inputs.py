"""Tests for ControlParameters and ForcingData validation."""

import numpy as np
import pytest
from pydantic import ValidationError

from pihm.errors import ConfigurationError
from pihm.inputs import ControlParameters, ForcingData


class TestControlParameters:
    """Tests for run control validation."""

    def test_defaults(self) -> None:
        control = ControlParameters(report_times=(60.0,))

        assert control.start_time == 0.0
        assert control.method == "BDF"
        assert control.end_time == 60.0

    def test_accepts_array(self) -> None:
        control = ControlParameters(report_times=np.array([10.0, 20.0]))

        assert control.report_times == (10.0, 20.0)

    def test_rejects_empty_report_times(self) -> None:
        with pytest.raises(ValidationError, match="must not be empty"):
            ControlParameters(report_times=())

    def test_rejects_2d_report_times(self) -> None:
        with pytest.raises(ValidationError, match="must be 1D"):
            ControlParameters(report_times=[[1.0, 2.0]])

    def test_rejects_nan(self) -> None:
        with pytest.raises(ValidationError, match="NaN"):
            ControlParameters(report_times=[1.0, float("nan")])

    def test_rejects_unordered_times(self) -> None:
        with pytest.raises(ValidationError, match="strictly increasing"):
            ControlParameters(report_times=[20.0, 10.0])

    def test_rejects_repeated_times(self) -> None:
        with pytest.raises(ValidationError, match="strictly increasing"):
            ControlParameters(report_times=[10.0, 10.0])

    def test_rejects_boundary_before_start(self) -> None:
        with pytest.raises(ValidationError, match="precedes start_time"):
            ControlParameters(start_time=100.0, report_times=[50.0, 150.0])

    def test_boundary_at_start_is_allowed(self) -> None:
        control = ControlParameters(start_time=100.0, report_times=[100.0, 150.0])

        assert control.report_times[0] == control.start_time

    def test_rejects_non_positive_et_step(self) -> None:
        with pytest.raises(ValidationError):
            ControlParameters(report_times=[60.0], et_step=0.0)

    def test_rejects_min_step_above_max_step(self) -> None:
        with pytest.raises(ValidationError, match="min_step"):
            ControlParameters(report_times=[60.0], min_step=10.0, max_step=1.0)

    def test_rejects_unknown_method(self) -> None:
        with pytest.raises(ValidationError):
            ControlParameters(report_times=[60.0], method="RK45")

    def test_is_frozen(self) -> None:
        control = ControlParameters(report_times=[60.0])

        with pytest.raises(ValidationError):
            control.et_step = 5.0  # type: ignore[misc]


class TestRegular:
    """Tests for ControlParameters.regular()."""

    def test_even_division(self) -> None:
        control = ControlParameters.regular(0.0, 1440.0, 360.0)

        assert control.report_times == (360.0, 720.0, 1080.0, 1440.0)

    def test_remainder_appends_end(self) -> None:
        control = ControlParameters.regular(0.0, 1000.0, 360.0)

        assert control.report_times == (360.0, 720.0, 1000.0)

    def test_interval_longer_than_span(self) -> None:
        control = ControlParameters.regular(10.0, 40.0, 60.0)

        assert control.report_times == (40.0,)
        assert control.start_time == 10.0

    def test_passes_extra_fields(self) -> None:
        control = ControlParameters.regular(0.0, 120.0, 60.0, et_step=15.0, method="Radau")

        assert control.et_step == 15.0
        assert control.method == "Radau"

    def test_rejects_bad_interval(self) -> None:
        with pytest.raises(ValueError, match="interval > 0"):
            ControlParameters.regular(0.0, 100.0, 0.0)


class TestForcingValidation:
    """Tests for ForcingData construction."""

    def test_uniform_series(self) -> None:
        forcing = ForcingData(
            time=[0.0, 60.0],
            precipitation=[0.0, 1e-5],
            temperature=[5.0, 6.0],
            pet=[0.0, 0.0],
        )

        assert len(forcing) == 2
        assert forcing.n_series == 1

    def test_per_element_series(self) -> None:
        forcing = ForcingData(
            time=[0.0, 60.0],
            precipitation=np.zeros((2, 3)),
            temperature=np.full(2, 5.0),
            pet=np.zeros((2, 3)),
        )

        assert forcing.n_series == 3

    def test_arrays_are_read_only(self) -> None:
        forcing = ForcingData.constant()

        with pytest.raises(ValueError):
            forcing.precipitation[0] = 1.0

    def test_rejects_unordered_time(self) -> None:
        with pytest.raises(ValidationError, match="strictly increasing"):
            ForcingData(time=[60.0, 0.0], precipitation=[0.0, 0.0], temperature=[0.0, 0.0], pet=[0.0, 0.0])

    def test_rejects_2d_time(self) -> None:
        with pytest.raises(ValidationError, match="must be 1D"):
            ForcingData(time=[[0.0]], precipitation=[0.0], temperature=[0.0], pet=[0.0])

    def test_rejects_length_mismatch(self) -> None:
        with pytest.raises(ValidationError, match="does not match time length"):
            ForcingData(time=[0.0, 60.0], precipitation=[0.0], temperature=[0.0, 0.0], pet=[0.0, 0.0])

    def test_rejects_nan(self) -> None:
        with pytest.raises(ValidationError, match="NaN"):
            ForcingData(time=[0.0], precipitation=[0.0], temperature=[np.nan], pet=[0.0])

    def test_rejects_negative_precipitation(self) -> None:
        with pytest.raises(ValidationError, match="precipitation must be non-negative"):
            ForcingData(time=[0.0], precipitation=[-1.0], temperature=[0.0], pet=[0.0])

    def test_rejects_negative_pet(self) -> None:
        with pytest.raises(ValidationError, match="pet must be non-negative"):
            ForcingData(time=[0.0], precipitation=[0.0], temperature=[0.0], pet=[-1.0])

    def test_rejects_disagreeing_columns(self) -> None:
        with pytest.raises(ValidationError, match="disagree"):
            ForcingData(
                time=[0.0],
                precipitation=np.zeros((1, 2)),
                temperature=np.zeros((1, 3)),
                pet=[0.0],
            )


class TestForcingAt:
    """Tests for ForcingData.at() sampling."""

    @pytest.fixture
    def ramp(self) -> ForcingData:
        return ForcingData(
            time=[0.0, 100.0],
            precipitation=[0.0, 1e-4],
            temperature=[0.0, 10.0],
            pet=[2e-5, 2e-5],
        )

    def test_linear_interpolation(self, ramp: ForcingData) -> None:
        precip, temp, pet = ramp.at(25.0, 3)

        np.testing.assert_allclose(precip, 2.5e-5)
        np.testing.assert_allclose(temp, 2.5)
        np.testing.assert_allclose(pet, 2e-5)
        assert precip.shape == (3,)

    def test_held_constant_outside_range(self, ramp: ForcingData) -> None:
        before, _, _ = ramp.at(-50.0, 1)
        after, _, _ = ramp.at(500.0, 1)

        assert before[0] == 0.0
        assert after[0] == 1e-4

    def test_samples_are_writable_copies(self, ramp: ForcingData) -> None:
        precip, _, _ = ramp.at(0.0, 2)
        precip[:] = 1.0

        assert ramp.precipitation[0] == 0.0

    def test_per_element_values(self) -> None:
        forcing = ForcingData(
            time=[0.0],
            precipitation=np.array([[1e-5, 2e-5]]),
            temperature=[0.0],
            pet=[0.0],
        )

        precip, temp, _ = forcing.at(10.0, 2)

        np.testing.assert_array_equal(precip, [1e-5, 2e-5])
        np.testing.assert_array_equal(temp, [0.0, 0.0])

    def test_element_count_mismatch(self) -> None:
        forcing = ForcingData(time=[0.0], precipitation=np.zeros((1, 2)), temperature=[0.0], pet=[0.0])

        with pytest.raises(ConfigurationError, match="expected 3"):
            forcing.at(0.0, 3)
