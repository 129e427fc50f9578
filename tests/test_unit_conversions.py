import logging

import numpy as np
import pytest

from bigleaf_flux.constants import DEFAULT_CONSTANTS
from bigleaf_flux.errors import InvalidInputError
from bigleaf_flux.meteorology import saturation_vapor_pressure
from bigleaf_flux.unit_conversions import (
    ET_to_LE,
    LE_to_ET,
    PPFD_to_Rg,
    Rg_to_PPFD,
    VPD_to_e,
    VPD_to_q,
    VPD_to_rH,
    e_to_q,
    e_to_rH,
    e_to_VPD,
    gC_to_umolCO2,
    kg_to_mol,
    mol_to_ms,
    ms_to_mol,
    q_to_e,
    q_to_VPD,
    rH_to_e,
    rH_to_VPD,
    umolCO2_to_gC,
)

# Physiological temperature range and typical pressures
TEMPERATURES = np.linspace(0.0, 40.0, 41)
PRESSURES = np.array([70.0, 85.0, 101.325])
UNIT_CONVERSIONS_LOGGER = "bigleaf_flux.unit_conversions"


@pytest.fixture
def humidity_grid():
    """Temperature and vapour pressure pairs spanning 0 to saturation"""
    Tair = np.repeat(TEMPERATURES, 11)
    fraction = np.tile(np.linspace(0.0, 1.0, 11), TEMPERATURES.size)
    e = fraction * saturation_vapor_pressure(Tair)
    return Tair, e


class TestVaporPressureDeficit:
    """Tests for the VPD <-> e conversions"""

    def test_vpd_round_trip(self, humidity_grid):
        Tair, e = humidity_grid
        VPD = saturation_vapor_pressure(Tair) - e
        assert np.max(np.abs(e_to_VPD(VPD_to_e(VPD, Tair), Tair) - VPD)) < 1e-9

    def test_e_round_trip(self, humidity_grid):
        Tair, e = humidity_grid
        assert np.max(np.abs(VPD_to_e(e_to_VPD(e, Tair), Tair) - e)) < 1e-9

    def test_saturated_air_has_zero_deficit(self):
        assert e_to_VPD(saturation_vapor_pressure(20.0), 20.0) == pytest.approx(0.0, abs=1e-12)

    def test_scalar_broadcast_against_array(self):
        result = e_to_VPD(np.array([0.5, 1.0, 1.5]), 20.0)
        assert result.shape == (3,)

    def test_length_mismatch(self):
        with pytest.raises(InvalidInputError) as excinfo:
            e_to_VPD([1.0, 1.2, 1.4], [20.0, 21.0])
        assert excinfo.value.argument == "shapes"

    def test_invalid_formula(self):
        with pytest.raises(InvalidInputError):
            VPD_to_e(1.0, 20.0, Esat_formula="Tetens_1930")


class TestRelativeHumidity:
    """Tests for the relative humidity conversions"""

    def test_rh_round_trip(self):
        Tair = np.repeat(TEMPERATURES, 21)
        rH = np.tile(np.linspace(0.0, 1.0, 21), TEMPERATURES.size)
        assert np.max(np.abs(VPD_to_rH(rH_to_VPD(rH, Tair), Tair) - rH)) < 1e-9

    def test_e_rh_round_trip(self, humidity_grid):
        Tair, e = humidity_grid
        assert np.max(np.abs(rH_to_e(e_to_rH(e, Tair), Tair) - e)) < 1e-9

    def test_oversaturation_clamped_with_one_warning(self, caplog):
        """Vapour pressure just above saturation gives exactly rH = 1"""
        e = saturation_vapor_pressure(25.0) + 1e-3
        with caplog.at_level(logging.WARNING, logger=UNIT_CONVERSIONS_LOGGER):
            rH = e_to_rH(e, 25.0)
        assert rH == 1.0
        assert len(caplog.records) == 1
        assert "higher than saturation" in caplog.records[0].getMessage()

    def test_oversaturation_in_array_one_warning_per_call(self, caplog):
        Esat = saturation_vapor_pressure(np.array([10.0, 20.0, 30.0]))
        e = Esat + np.array([0.01, -0.5, 0.02])
        with caplog.at_level(logging.WARNING, logger=UNIT_CONVERSIONS_LOGGER):
            rH = e_to_rH(e, [10.0, 20.0, 30.0])
        assert rH[0] == 1.0
        assert rH[2] == 1.0
        assert rH[1] < 1.0
        assert len(caplog.records) == 1

    def test_no_warning_below_saturation(self, caplog):
        with caplog.at_level(logging.WARNING, logger=UNIT_CONVERSIONS_LOGGER):
            e_to_rH(1.0, 25.0)
        assert caplog.records == []

    def test_rh_out_of_range_clamped(self, caplog):
        with caplog.at_level(logging.WARNING, logger=UNIT_CONVERSIONS_LOGGER):
            e = rH_to_e(np.array([1.2, -0.1, 0.5]), 20.0)
        Esat = saturation_vapor_pressure(20.0)
        np.testing.assert_allclose(e, [Esat, 0.0, 0.5 * Esat])
        assert len(caplog.records) == 1

    def test_negative_vapour_pressure_clamped_to_zero(self, caplog):
        with caplog.at_level(logging.WARNING, logger=UNIT_CONVERSIONS_LOGGER):
            rH = e_to_rH(-0.1, 20.0)
        assert rH == 0.0
        assert len(caplog.records) == 1
        assert "negative in 1 case(s)" in caplog.records[0].getMessage()

    def test_mixed_excursions_one_warning_per_call(self, caplog):
        Esat = saturation_vapor_pressure(20.0)
        with caplog.at_level(logging.WARNING, logger=UNIT_CONVERSIONS_LOGGER):
            rH = e_to_rH(np.array([-0.2, 0.5 * Esat, Esat + 0.1, np.nan]), 20.0)
        np.testing.assert_allclose(rH[:3], [0.0, 0.5, 1.0])
        assert np.isnan(rH[3])
        assert len(caplog.records) == 1

    def test_vpd_outside_saturation_range_clamped(self, caplog):
        Esat = saturation_vapor_pressure(20.0)
        with caplog.at_level(logging.WARNING, logger=UNIT_CONVERSIONS_LOGGER):
            rH = VPD_to_rH(np.array([-0.5, 0.5 * Esat, Esat + 0.5]), 20.0)
        np.testing.assert_allclose(rH, [1.0, 0.5, 0.0])
        assert len(caplog.records) == 1


class TestSpecificHumidity:
    """Tests for the specific humidity conversions"""

    @pytest.mark.parametrize("pressure", PRESSURES)
    def test_e_round_trip(self, humidity_grid, pressure):
        Tair, e = humidity_grid
        assert np.max(np.abs(q_to_e(e_to_q(e, pressure), pressure) - e)) < 1e-9

    @pytest.mark.parametrize("pressure", PRESSURES)
    def test_vpd_round_trip(self, humidity_grid, pressure):
        Tair, e = humidity_grid
        VPD = saturation_vapor_pressure(Tair) - e
        q = VPD_to_q(VPD, Tair, pressure)
        assert np.max(np.abs(q_to_VPD(q, Tair, pressure) - VPD)) < 1e-9

    def test_typical_value(self):
        """About 10 g/kg at 1.6 kPa and sea level"""
        assert e_to_q(1.6, 101.325) == pytest.approx(0.00988, abs=1e-4)

    def test_negative_pressure(self):
        with pytest.raises(InvalidInputError) as excinfo:
            e_to_q(1.0, -100.0)
        assert excinfo.value.argument == "pressure"
        assert excinfo.value.value == -100.0


class TestFluxConversions:
    """Tests for energy, mass, carbon and radiation conversions"""

    def test_le_et_round_trip(self):
        LE = np.linspace(-50.0, 600.0, 14)
        np.testing.assert_allclose(ET_to_LE(LE_to_ET(LE, 20.0), 20.0), LE, rtol=1e-12)

    def test_le_to_et_value(self):
        """100 W/m2 at 20 degC is about 0.147 mm/h"""
        ET = LE_to_ET(100.0, 20.0)
        assert ET * 3600 == pytest.approx(0.1467, abs=1e-3)

    def test_kg_to_mol_exact(self):
        masses = np.array([0.0, 0.001, 1.0, 18.0, 123.456])
        for mass in masses:
            assert kg_to_mol(mass) == mass / DEFAULT_CONSTANTS.H2Omol
            assert kg_to_mol(mass, 0.044) == mass / 0.044

    def test_kg_to_mol_invalid_molar_mass(self):
        with pytest.raises(InvalidInputError):
            kg_to_mol(1.0, 0.0)

    def test_kg_to_mol_per_record_molar_mass(self):
        n = kg_to_mol([0.018, 0.044], np.array([0.018, 0.044]))
        np.testing.assert_allclose(n, [1.0, 1.0])

    def test_kg_to_mol_length_mismatch(self):
        with pytest.raises(InvalidInputError):
            kg_to_mol([1.0, 2.0, 3.0], np.array([0.018, 0.044]))

    def test_carbon_round_trip(self):
        flux = np.array([0.0, 0.5, 5.0, 25.0, 80.0])
        np.testing.assert_allclose(gC_to_umolCO2(umolCO2_to_gC(flux)), flux, rtol=1e-6)

    def test_carbon_value(self):
        """1 umol CO2 m-2 s-1 is about 1.04 g C m-2 d-1"""
        assert umolCO2_to_gC(1.0) == pytest.approx(1.0378, abs=1e-3)

    def test_radiation_round_trip(self):
        Rg = np.linspace(0.0, 1200.0, 25)
        assert np.max(np.abs(PPFD_to_Rg(Rg_to_PPFD(Rg)) - Rg)) < 1e-9

    def test_radiation_value(self):
        assert Rg_to_PPFD(500.0) == pytest.approx(1150.0)


class TestConductanceConversions:
    """Tests for conductance unit conversions"""

    @pytest.mark.parametrize("Tair", [0.0, 20.0, 40.0])
    @pytest.mark.parametrize("pressure", PRESSURES)
    def test_round_trip_at_fixed_state(self, Tair, pressure):
        G_ms = np.array([0.001, 0.01, 0.05])
        G_mol = ms_to_mol(G_ms, Tair, pressure)
        np.testing.assert_allclose(mol_to_ms(G_mol, Tair, pressure), G_ms, rtol=1e-12)

    def test_value(self):
        """0.01 m/s is about 0.41 mol/m2/s at 20 degC and 100 kPa"""
        assert ms_to_mol(0.01, 20.0, 100.0) == pytest.approx(0.4103, abs=1e-3)

    def test_depends_on_state(self):
        warm = ms_to_mol(0.01, 30.0, 100.0)
        cold = ms_to_mol(0.01, 0.0, 100.0)
        assert cold > warm

    def test_temperature_below_absolute_zero(self):
        with pytest.raises(InvalidInputError) as excinfo:
            ms_to_mol(0.01, -280.0, 100.0)
        assert excinfo.value.argument == "Tair"
