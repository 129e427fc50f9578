import logging

import numpy as np
import pandas as pd
import pytest

from bigleaf_flux.constants import EsatFormula, default_constants
from bigleaf_flux.errors import InvalidInputError, NumericalNonConvergence
from bigleaf_flux.meteorology import (
    air_density,
    dew_point,
    kinematic_viscosity,
    latent_heat_vaporization,
    pressure_from_elevation,
    psychrometric_constant,
    saturation_vapor_pressure,
    saturation_vapor_pressure_slope,
    virtual_temperature,
    wetbulb_temperature,
)

# Test Data Constants
STANDARD_TEMPERATURE = 20.0  # degC
STANDARD_PRESSURE = 101.325  # kPa
ALL_FORMULAS = list(EsatFormula)


class TestSaturationVaporPressure:
    """Tests for the saturation vapour pressure formulations"""

    def test_reference_value(self):
        """Sonntag (1990) at 25.2 degC"""
        assert saturation_vapor_pressure(25.2) == pytest.approx(3.197, abs=1e-3)

    def test_freezing_point(self):
        """At 0 degC each formula returns its coefficient a"""
        assert saturation_vapor_pressure(0.0, "Sonntag_1990") == pytest.approx(0.6112)
        assert saturation_vapor_pressure(0.0, "Alduchov_1996") == pytest.approx(0.61094)
        assert saturation_vapor_pressure(0.0, "Allen_1998") == pytest.approx(0.6108)

    def test_formulas_agree(self):
        """Variants agree within 0.1 kPa over the physiological range"""
        Tair = np.arange(0.0, 40.5, 0.5)
        values = [saturation_vapor_pressure(Tair, formula) for formula in ALL_FORMULAS]
        for other in values[1:]:
            assert np.max(np.abs(values[0] - other)) < 0.1

    def test_monotonic(self):
        """Saturation vapour pressure increases with temperature"""
        Tair = np.linspace(-30.0, 50.0, 200)
        assert np.all(np.diff(saturation_vapor_pressure(Tair)) > 0)

    def test_scalar_returns_float(self):
        assert isinstance(saturation_vapor_pressure(STANDARD_TEMPERATURE), float)

    def test_array_shape_preserved(self):
        result = saturation_vapor_pressure(np.full((2, 3), 15.0))
        assert result.shape == (2, 3)

    def test_series_input(self):
        result = saturation_vapor_pressure(pd.Series([10.0, 20.0, 30.0]))
        assert isinstance(result, np.ndarray)
        assert result.shape == (3,)

    def test_missing_propagates(self):
        """A missing element yields a missing element, not an abort"""
        result = saturation_vapor_pressure([10.0, np.nan, 30.0])
        assert np.isnan(result[1])
        assert np.isfinite(result[[0, 2]]).all()

    def test_enum_and_string_selectors_equal(self):
        assert saturation_vapor_pressure(20.0, EsatFormula.ALLEN_1998) == (
            saturation_vapor_pressure(20.0, "Allen_1998")
        )

    def test_invalid_formula(self):
        with pytest.raises(InvalidInputError) as excinfo:
            saturation_vapor_pressure(20.0, "Magnus_1844")
        assert excinfo.value.argument == "formula"

    def test_absolute_zero(self):
        with pytest.raises(InvalidInputError):
            saturation_vapor_pressure(-273.15)

    def test_below_absolute_zero_in_array_aborts_call(self):
        with pytest.raises(InvalidInputError):
            saturation_vapor_pressure([20.0, -300.0, 25.0])


class TestSaturationVaporPressureSlope:
    """Tests for the analytic slope of the saturation vapour pressure curve"""

    @pytest.mark.parametrize("formula", ALL_FORMULAS)
    def test_matches_centered_difference(self, formula):
        """Analytic slope agrees with a centred finite difference"""
        step = 0.1
        Tair = np.round(np.arange(20.0, 22.0 + step / 2, step), 10)
        Esat = saturation_vapor_pressure(Tair, formula)
        numeric = (Esat[2:] - Esat[:-2]) / (2 * step)
        analytic = saturation_vapor_pressure_slope(Tair[1:-1], formula)
        assert np.all(np.abs(analytic - numeric) < 1e-3)

    def test_reference_value(self):
        """Slope at 20 degC is about 0.144 kPa/K"""
        assert saturation_vapor_pressure_slope(20.0) == pytest.approx(0.1443, abs=1e-3)


class TestThermodynamicProperties:
    """Tests for latent heat, psychrometric constant, density and viscosity"""

    def test_latent_heat(self):
        assert latent_heat_vaporization(0.0) == pytest.approx(2.501e6)
        assert latent_heat_vaporization(20.0) == pytest.approx(2.4536e6)

    def test_psychrometric_constant(self):
        assert psychrometric_constant(20.0, 100.0) == pytest.approx(0.0658, abs=1e-4)

    def test_psychrometric_constant_scales_with_pressure(self):
        gamma = psychrometric_constant(20.0, np.array([50.0, 100.0]))
        assert gamma[1] == pytest.approx(2 * gamma[0])

    def test_air_density(self):
        assert air_density(25.0, 100.0) == pytest.approx(1.1684, abs=1e-4)

    def test_air_density_negative_pressure(self):
        with pytest.raises(InvalidInputError) as excinfo:
            air_density(20.0, -1.0)
        assert excinfo.value.argument == "pressure"

    def test_virtual_temperature_warmer_than_air(self):
        Tv = virtual_temperature(25.0, 100.0, 1.0)
        assert 25.0 < Tv < 28.0

    def test_virtual_temperature_dry_air_at_zero_humidity(self):
        """With e = 0 the virtual temperature equals the air temperature"""
        VPD = saturation_vapor_pressure(25.0)
        assert virtual_temperature(25.0, 100.0, VPD) == pytest.approx(25.0)

    def test_kinematic_viscosity_reference(self):
        """At 0 degC and standard pressure nu equals the reference value"""
        nu = kinematic_viscosity(0.0, STANDARD_PRESSURE)
        assert nu == pytest.approx(1.327e-05)

    def test_pressure_from_elevation(self):
        assert pressure_from_elevation(0.0, 15.0) == pytest.approx(STANDARD_PRESSURE)
        assert pressure_from_elevation(500.0, 20.0) == pytest.approx(95.59, abs=0.01)

    def test_pressure_from_elevation_with_humidity(self):
        """Moist air is lighter, so pressure falls more slowly with height"""
        dry = pressure_from_elevation(1000.0, 20.0)
        moist = pressure_from_elevation(1000.0, 20.0, VPD=0.5)
        assert moist > dry


class TestConstantsOverride:
    """Formula results follow an overridden constants table"""

    def test_override_changes_result(self):
        constants = default_constants().override(cp=2 * default_constants().cp)
        base = psychrometric_constant(20.0, 100.0)
        assert psychrometric_constant(20.0, 100.0, constants=constants) == pytest.approx(2 * base)

    def test_override_leaves_default_untouched(self):
        original = default_constants().cp
        default_constants().override(cp=1.0)
        assert default_constants().cp == original


class TestDewPoint:
    """Tests for the dew-point solver"""

    def test_reference_value(self):
        assert dew_point(25.0, 1.0) == pytest.approx(18.76, abs=0.01)

    def test_saturated_air(self):
        """With VPD = 0 the dew point equals the air temperature"""
        assert dew_point(15.0, 0.0) == pytest.approx(15.0, abs=1e-3)

    @pytest.mark.parametrize("formula", ALL_FORMULAS)
    def test_residual_below_accuracy(self, formula):
        Tair = np.array([5.0, 15.0, 25.0, 35.0])
        VPD = np.array([0.2, 0.8, 1.5, 3.0])
        Td = dew_point(Tair, VPD, Esat_formula=formula, accuracy=1e-6)
        e = saturation_vapor_pressure(Tair, formula) - VPD
        residual = saturation_vapor_pressure(Td, formula) - e
        assert np.all(np.abs(residual) < 1e-6)

    def test_missing_propagates(self):
        Td = dew_point([20.0, np.nan], [1.0, 1.0])
        assert np.isfinite(Td[0])
        assert np.isnan(Td[1])

    def test_no_iterations_raises(self):
        with pytest.raises(NumericalNonConvergence) as excinfo:
            dew_point(25.0, 1.0, max_iter=0)
        assert excinfo.value.iterations == 0

    def test_vpd_above_saturation(self):
        """No dew point exists for a non-positive vapour pressure"""
        with pytest.raises(InvalidInputError):
            dew_point(10.0, 5.0)

    def test_length_mismatch(self):
        with pytest.raises(InvalidInputError):
            dew_point([20.0, 21.0, 22.0], [1.0, 1.0])


class TestWetBulbTemperature:
    """Tests for the wet-bulb temperature solver"""

    def test_between_dew_point_and_air_temperature(self):
        Tw = wetbulb_temperature(25.0, 100.0, 1.0)
        Td = dew_point(25.0, 1.0)
        assert Td < Tw < 25.0
        assert Tw == pytest.approx(20.65, abs=0.05)

    def test_saturated_air(self):
        assert wetbulb_temperature(20.0, 100.0, 0.0) == pytest.approx(20.0, abs=1e-3)

    def test_residual_below_accuracy(self):
        Tair, pressure, VPD = 30.0, 95.0, 2.0
        constants = default_constants()
        Tw = wetbulb_temperature(Tair, pressure, VPD, accuracy=1e-6)
        gamma = psychrometric_constant(Tair, pressure)
        e = saturation_vapor_pressure(Tair) - VPD
        residual = saturation_vapor_pressure(Tw) - constants.Le067 * gamma * (Tair - Tw) - e
        assert abs(residual) < 1e-6

    def test_no_iterations_raises(self):
        with pytest.raises(NumericalNonConvergence) as excinfo:
            wetbulb_temperature(25.0, 100.0, 1.0, max_iter=0)
        assert np.isfinite(excinfo.value.estimate)

    def test_negative_pressure(self):
        with pytest.raises(InvalidInputError):
            wetbulb_temperature(25.0, -100.0, 1.0)

    def test_no_warnings_logged(self, caplog):
        with caplog.at_level(logging.WARNING):
            wetbulb_temperature(np.linspace(0, 35, 20), 100.0, 0.5)
        assert caplog.records == []
