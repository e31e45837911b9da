"""Tests for the pointwise flux laws in pihm.model.processes.

The kernels are numba-compiled but callable from Python; these tests pin the
sign conventions, the dry-source guards and continuity through zero gradient.
"""

import math

import pytest

from pihm.model.processes import (
    availability,
    channel_flux,
    channel_volume,
    cross_section,
    darcy_flux,
    exfiltration_rate,
    infiltration_rate,
    leakage_flux,
    manning_discharge,
    outlet_flux,
    overland_flux,
    recharge_rate,
    relative_saturation,
    smooth_sqrt_gradient,
    stage_for_volume,
)

FLOOR = 1e-4
EPS = 1e-7


class TestSmoothSqrtGradient:
    """Tests for smooth_sqrt_gradient()."""

    def test_zero_at_zero(self) -> None:
        assert smooth_sqrt_gradient(0.0, EPS) == 0.0

    def test_continuous_at_epsilon(self) -> None:
        """Linear and square-root branches meet at |grad| = eps."""
        below = smooth_sqrt_gradient(EPS * (1 - 1e-9), EPS)
        above = smooth_sqrt_gradient(EPS * (1 + 1e-9), EPS)

        assert below == pytest.approx(above, rel=1e-6)

    def test_odd(self) -> None:
        """Reversing the gradient reverses the result."""
        assert smooth_sqrt_gradient(-0.01, EPS) == -smooth_sqrt_gradient(0.01, EPS)

    def test_sqrt_outside_linear_region(self) -> None:
        assert smooth_sqrt_gradient(0.04, EPS) == pytest.approx(0.2)


class TestAvailability:
    """Tests for availability()."""

    def test_zero_at_floor(self) -> None:
        assert availability(FLOOR, FLOOR) == 0.0
        assert availability(0.0, FLOOR) == 0.0

    def test_full_above_ramp(self) -> None:
        assert availability(10 * FLOOR, FLOOR) == pytest.approx(1.0)
        assert availability(1.0, FLOOR) == 1.0

    def test_linear_ramp(self) -> None:
        assert availability(5.5 * FLOOR, FLOOR) == pytest.approx(0.5)


class TestOverlandFlux:
    """Tests for overland_flux()."""

    def test_zero_for_equal_heads(self) -> None:
        assert overland_flux(10.1, 10.1, 0.1, 0.1, 10.0, 10.0, 1e-3, FLOOR, EPS) == 0.0

    def test_flows_downhill(self) -> None:
        """Positive flux from the higher head to the lower one."""
        assert overland_flux(10.1, 10.0, 0.1, 0.0, 10.0, 10.0, 1e-3, FLOOR, EPS) > 0.0

    def test_antisymmetric(self) -> None:
        """Swapping the two cells reverses the flux exactly."""
        q_ij = overland_flux(10.1, 10.05, 0.1, 0.05, 10.0, 10.0, 1e-3, FLOOR, EPS)
        q_ji = overland_flux(10.05, 10.1, 0.05, 0.1, 10.0, 10.0, 1e-3, FLOOR, EPS)

        assert q_ij == -q_ji

    def test_dry_upwind_gives_zero(self) -> None:
        """No flow out of a cell whose depth is below the floor."""
        assert overland_flux(12.0, 10.0, FLOOR / 2, 0.0, 10.0, 10.0, 1e-3, FLOOR, EPS) == 0.0

    def test_manning_magnitude(self) -> None:
        """Matches L * (h - floor)^(5/3) / n * sqrt(S)."""
        q = overland_flux(10.2, 10.0, 0.2, 0.0, 10.0, 5.0, 1e-3, FLOOR, EPS)
        expected = 5.0 * (0.2 - FLOOR) ** (5 / 3) / 1e-3 * math.sqrt(0.02)

        assert q == pytest.approx(expected, rel=1e-12)


class TestDarcyFlux:
    """Tests for darcy_flux()."""

    def test_antisymmetric(self) -> None:
        q_ij = darcy_flux(10.0, 5.0, 10.0, 5.0, 1e-4, 2e-4, 10.0, 10.0, FLOOR)
        q_ji = darcy_flux(5.0, 10.0, 5.0, 10.0, 2e-4, 1e-4, 10.0, 10.0, FLOOR)

        assert q_ij == pytest.approx(-q_ji, rel=1e-15)

    def test_harmonic_conductivity_and_mean_thickness(self) -> None:
        q = darcy_flux(10.0, 5.0, 10.0, 5.0, 1e-4, 1e-4, 10.0, 10.0, FLOOR)

        assert q == pytest.approx(1e-4 * 0.5 * 7.5 * 10.0)

    def test_dry_source_gives_zero(self) -> None:
        """A source column at the floor cannot drain."""
        assert darcy_flux(10.0, 5.0, 0.0, 5.0, 1e-4, 1e-4, 10.0, 10.0, FLOOR) == 0.0

    def test_zero_conductivity(self) -> None:
        assert darcy_flux(10.0, 5.0, 10.0, 5.0, 0.0, 0.0, 10.0, 10.0, FLOOR) == 0.0


class TestVerticalFluxes:
    """Tests for infiltration, recharge, exfiltration and leakage."""

    def test_no_infiltration_at_floor(self) -> None:
        """A surface depth at or below the floor yields exactly zero."""
        assert infiltration_rate(FLOOR, 1e-3, 1.0, FLOOR) == 0.0
        assert infiltration_rate(0.0, 1e-3, 1.0, FLOOR) == 0.0

    def test_infiltration_at_capacity_when_ponded(self) -> None:
        assert infiltration_rate(0.1, 1e-5, 1.0, FLOOR) == pytest.approx(1e-5)

    def test_no_infiltration_into_full_soil(self) -> None:
        assert infiltration_rate(0.1, 1e-5, 0.0, FLOOR) == 0.0

    def test_relative_saturation_capped(self) -> None:
        assert relative_saturation(5.0, 0.4, 1.0, FLOOR) == 1.0
        assert relative_saturation(0.2, 0.4, 1.0, FLOOR) == pytest.approx(0.5)

    def test_recharge_cubic_in_saturation(self) -> None:
        assert recharge_rate(1.0, 0.5, 1e-5, FLOOR) == pytest.approx(1e-5 * 0.125)
        assert recharge_rate(0.0, 0.5, 1e-5, FLOOR) == 0.0

    def test_exfiltration_only_above_surface(self) -> None:
        assert exfiltration_rate(9.0, 10.0, 1e-5) == 0.0
        assert exfiltration_rate(10.5, 10.0, 1e-5) == pytest.approx(1e-5 * 0.5 / 5.0)

    def test_leakage_direction(self) -> None:
        """Positive from the higher top head into the layer below."""
        assert leakage_flux(9.5, 9.0, 0.5, 1.0, 1e-5, 1.0, 20.0, FLOOR) == pytest.approx(1e-5 * 0.5 * 20.0)
        assert leakage_flux(9.0, 9.0, 0.5, 1.0, 1e-5, 1.0, 20.0, FLOOR) == 0.0


class TestChannelHydraulics:
    """Tests for cross-section geometry, routing and outlet flow."""

    def test_rectangular_section(self) -> None:
        area, perimeter = cross_section(0.5, 2.0, 0.0)

        assert area == pytest.approx(1.0)
        assert perimeter == pytest.approx(3.0)

    def test_volume_inverse(self) -> None:
        """stage_for_volume inverts channel_volume for a trapezoid."""
        volume = channel_volume(0.7, 2.0, 1.5, 10.0)

        assert stage_for_volume(volume, 2.0, 1.5, 10.0) == pytest.approx(0.7, rel=1e-12)
        assert stage_for_volume(0.0, 2.0, 1.5, 10.0) == 0.0

    def test_dry_channel_has_no_conveyance(self) -> None:
        assert manning_discharge(FLOOR, 2.0, 0.0, 5e-4, FLOOR) == 0.0

    def test_channel_flux_antisymmetric(self) -> None:
        q_ij = channel_flux(9.5, 9.3, 0.5, 0.4, 10.0, 2.0, 0.0, 5e-4, 2.0, 0.0, 5e-4, FLOOR, EPS)
        q_ji = channel_flux(9.3, 9.5, 0.4, 0.5, 10.0, 2.0, 0.0, 5e-4, 2.0, 0.0, 5e-4, FLOOR, EPS)

        assert q_ij > 0.0
        assert q_ij == -q_ji

    def test_closed_outlet(self) -> None:
        assert outlet_flux(0.5, 2.0, 0.0, 5e-4, 0.0, FLOOR) == 0.0

    def test_open_outlet(self) -> None:
        expected = manning_discharge(0.5, 2.0, 0.0, 5e-4, FLOOR) * math.sqrt(1e-3)

        assert outlet_flux(0.5, 2.0, 0.0, 5e-4, 1e-3, FLOOR) == pytest.approx(expected)
