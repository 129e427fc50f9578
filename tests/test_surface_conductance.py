import numpy as np
import pandas as pd
import pytest

from bigleaf_flux.constants import DEFAULT_CONSTANTS
from bigleaf_flux.errors import InvalidInputError
from bigleaf_flux.meteorology import (
    latent_heat_vaporization,
    psychrometric_constant,
    saturation_vapor_pressure_slope,
)
from bigleaf_flux.surface_conductance import potential_ET, surface_conductance
from bigleaf_flux.unit_conversions import ms_to_mol

# Midday conditions over a forest
TAIR = 25.0  # degC
PRESSURE = 100.0  # kPa
RN = 500.0  # W/m^2
G = 30.0  # W/m^2
S = 10.0  # W/m^2
VPD = 1.5  # kPa
GA = 0.05  # m/s


class TestPotentialET:
    """Tests for potential evapotranspiration"""

    def test_priestley_taylor(self):
        result = potential_ET(TAIR, PRESSURE, RN, G, S)
        Delta = saturation_vapor_pressure_slope(TAIR)
        gamma = psychrometric_constant(TAIR, PRESSURE)
        expected = 1.26 * Delta * (RN - G - S) / (Delta + gamma)
        assert result.loc[0, "LE_pot"] == pytest.approx(expected)
        assert result.loc[0, "ET_pot"] == pytest.approx(expected / latent_heat_vaporization(TAIR))

    def test_priestley_taylor_alpha_scales(self):
        base = potential_ET(TAIR, PRESSURE, RN, G, S)
        doubled = potential_ET(TAIR, PRESSURE, RN, G, S, alpha=2.52)
        assert doubled.loc[0, "LE_pot"] == pytest.approx(2 * base.loc[0, "LE_pot"])

    def test_penman_monteith_increases_with_gs(self):
        low = potential_ET(TAIR, PRESSURE, RN, G, S, VPD, GA, approach="Penman-Monteith", Gs_pot=0.2)
        high = potential_ET(TAIR, PRESSURE, RN, G, S, VPD, GA, approach="Penman-Monteith", Gs_pot=0.8)
        assert high.loc[0, "LE_pot"] > low.loc[0, "LE_pot"]

    def test_series_input_keeps_index(self):
        index = pd.date_range("2024-07-01 10:00", periods=4, freq="30min")
        Rn = pd.Series([300.0, 400.0, 500.0, np.nan], index=index)
        result = potential_ET(TAIR, PRESSURE, Rn)
        assert result.index.equals(index)
        assert np.isnan(result["LE_pot"].iloc[-1])

    def test_invalid_approach(self):
        with pytest.raises(InvalidInputError):
            potential_ET(TAIR, PRESSURE, RN, approach="Hargreaves")


class TestSurfaceConductance:
    """Tests for the surface conductance inversions"""

    def test_penman_monteith_inverts_forward_model(self):
        """Inverting the potential LE recovers the prescribed conductance"""
        Gs_pot = np.array([0.1, 0.3, 0.6, 1.0])
        forward = potential_ET(
            TAIR, PRESSURE, RN, G, S, VPD, GA, approach="Penman-Monteith", Gs_pot=Gs_pot
        )
        gs = surface_conductance(TAIR, PRESSURE, RN, G, S, forward["LE_pot"], VPD, GA)
        np.testing.assert_allclose(gs["Gs_mol"], Gs_pot, rtol=1e-9)

    def test_units_consistent(self):
        gs = surface_conductance(TAIR, PRESSURE, RN, G, S, 300.0, VPD, GA)
        assert gs.loc[0, "Gs_mol"] == pytest.approx(ms_to_mol(gs.loc[0, "Gs_ms"], TAIR, PRESSURE))

    def test_flux_gradient(self):
        gs = surface_conductance(
            TAIR, PRESSURE, RN, G, S, 300.0, VPD, GA, formulation="Flux-Gradient"
        )
        ET = 300.0 / latent_heat_vaporization(TAIR)
        expected = ET / DEFAULT_CONSTANTS.Mw * PRESSURE / VPD
        assert gs.loc[0, "Gs_mol"] == pytest.approx(expected)

    def test_flux_gradient_ignores_ga(self):
        a = surface_conductance(TAIR, PRESSURE, RN, G, S, 300.0, VPD, 0.01, formulation="Flux-Gradient")
        b = surface_conductance(TAIR, PRESSURE, RN, G, S, 300.0, VPD, 0.1, formulation="Flux-Gradient")
        pd.testing.assert_frame_equal(a, b)

    def test_missing_propagates(self):
        gs = surface_conductance(TAIR, PRESSURE, RN, G, S, [300.0, np.nan], VPD, GA)
        assert np.isfinite(gs.loc[0, "Gs_ms"])
        assert np.isnan(gs.loc[1, "Gs_ms"])

    def test_length_mismatch(self):
        with pytest.raises(InvalidInputError):
            surface_conductance(TAIR, PRESSURE, [RN, RN], G, S, [300.0, 250.0, 200.0], VPD, GA)

    def test_invalid_formulation(self):
        with pytest.raises(InvalidInputError):
            surface_conductance(TAIR, PRESSURE, RN, G, S, 300.0, VPD, GA, formulation="Bowen")
