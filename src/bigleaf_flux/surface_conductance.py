"""
Surface conductance to water vapour and potential evapotranspiration.

This module implements:
1. Inversion of the Penman-Monteith equation for the surface conductance
2. The flux-gradient surface conductance (no aerodynamic term)
3. Potential evapotranspiration after Priestley-Taylor and Penman-Monteith

References:
    Monteith J.L. (1965) Evaporation and environment. Symposia of the
        Society for Experimental Biology 19, 205-234.
    Priestley C.H.B., Taylor R.J. (1972) On the assessment of surface heat
        flux and evaporation using large-scale parameters. Monthly Weather
        Review 100, 81-92.
    Knauer J. et al. (2018) Bigleaf - An R package for the calculation of
        physical and physiological ecosystem properties from eddy covariance
        data. PLoS ONE 13, e0201114.
"""

from typing import Union

import numpy as np
import pandas as pd

from .constants import (
    DEFAULT_CONSTANTS,
    BigleafConstants,
    EsatFormula,
    PotentialETApproach,
    SurfaceConductanceFormulation,
    _select,
)
from .meteorology import _esat_slope, _latent_heat, _psychrometric_constant
from ._utils import (
    ArrayLike,
    broadcast_inputs,
    check_positive,
    check_temperature,
    pandas_index,
    to_frame,
)


def _air_density(Tair, pressure, constants):
    return (pressure * constants.kPa2Pa) / (constants.Rd * (Tair + constants.Kelvin))


def _mol_per_m3(Tair, pressure, constants):
    # molar concentration of air, converts m s-1 to mol m-2 s-1
    return (pressure * constants.kPa2Pa) / (constants.Rgas * (Tair + constants.Kelvin))


def surface_conductance(
    Tair: ArrayLike,
    pressure: ArrayLike,
    Rn: ArrayLike,
    G: ArrayLike,
    S: ArrayLike,
    LE: ArrayLike,
    VPD: ArrayLike,
    Ga: ArrayLike,
    formulation: Union[
        SurfaceConductanceFormulation, str
    ] = SurfaceConductanceFormulation.PENMAN_MONTEITH,
    Esat_formula: Union[EsatFormula, str] = EsatFormula.SONNTAG_1990,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> pd.DataFrame:
    """
    Bulk surface conductance to water vapour.

    With ``formulation="Penman-Monteith"`` the Penman-Monteith equation is
    solved for the surface conductance:

    .. math::
        G_s = \\frac{LE\\,G_a\\,\\gamma}
                    {\\Delta (R_n - G - S) + \\rho c_p G_a D
                     - LE (\\Delta + \\gamma)}

    With ``formulation="Flux-Gradient"`` the aerodynamic resistance is
    neglected and :math:`G_s = E / M_w \\cdot p / D` in mol m-2 s-1.

    Parameters
    ----------
    Tair : float or array_like
        Air temperature (degC).
    pressure : float or array_like
        Atmospheric pressure (kPa).
    Rn, G, S : float or array_like
        Net radiation, ground heat flux and the sum of all storage fluxes
        (W m-2). Missing ``G`` or ``S`` should be passed as ``0``.
    LE : float or array_like
        Latent heat flux (W m-2).
    VPD : float or array_like
        Vapour pressure deficit (kPa).
    Ga : float or array_like
        Aerodynamic conductance to heat and water vapour (m s-1). Not used
        by the flux-gradient formulation.
    formulation : SurfaceConductanceFormulation or str
        ``"Penman-Monteith"`` (default) or ``"Flux-Gradient"``.
    Esat_formula : EsatFormula or str, default ``"Sonntag_1990"``
        Formulation of the saturation vapour pressure slope.
    constants : BigleafConstants, optional
        Constants table.

    Returns
    -------
    pandas.DataFrame
        Columns ``Gs_ms`` (m s-1) and ``Gs_mol`` (mol m-2 s-1).
    """
    formulation = _select(SurfaceConductanceFormulation, formulation, "formulation")
    Esat_formula = _select(EsatFormula, Esat_formula, "Esat_formula")
    index = pandas_index(Tair, pressure, Rn, G, S, LE, VPD, Ga)

    arrays, _ = broadcast_inputs(
        Tair=Tair, pressure=pressure, Rn=Rn, G=G, S=S, LE=LE, VPD=VPD, Ga=Ga
    )
    Tair, pressure = arrays["Tair"], arrays["pressure"]
    check_temperature(Tair, constants.Kelvin)
    check_positive(pressure, "pressure")
    LE, VPD = arrays["LE"], arrays["VPD"]
    mol_per_m3 = _mol_per_m3(Tair, pressure, constants)

    with np.errstate(divide="ignore", invalid="ignore"):
        if formulation == SurfaceConductanceFormulation.FLUX_GRADIENT:
            ET = LE / _latent_heat(Tair)
            Gs_mol = (ET / constants.Mw) * pressure / VPD
            Gs_ms = Gs_mol / mol_per_m3
        else:
            Ga = arrays["Ga"]
            available = arrays["Rn"] - arrays["G"] - arrays["S"]
            Delta = _esat_slope(Tair, Esat_formula, constants)
            gamma = _psychrometric_constant(Tair, pressure, constants)
            rho = _air_density(Tair, pressure, constants)
            Gs_ms = (LE * Ga * gamma) / (
                Delta * available + rho * constants.cp * Ga * VPD - LE * (Delta + gamma)
            )
            Gs_mol = Gs_ms * mol_per_m3

    return to_frame({"Gs_ms": Gs_ms, "Gs_mol": Gs_mol}, index)


def potential_ET(
    Tair: ArrayLike,
    pressure: ArrayLike,
    Rn: ArrayLike,
    G: ArrayLike = 0.0,
    S: ArrayLike = 0.0,
    VPD: ArrayLike = np.nan,
    Ga: ArrayLike = np.nan,
    approach: Union[PotentialETApproach, str] = PotentialETApproach.PRIESTLEY_TAYLOR,
    alpha: float = 1.26,
    Gs_pot: float = 0.6,
    Esat_formula: Union[EsatFormula, str] = EsatFormula.SONNTAG_1990,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> pd.DataFrame:
    """
    Potential evapotranspiration.

    ``"Priestley-Taylor"``::

        LE_pot = alpha * Delta * (Rn - G - S) / (Delta + gamma)

    ``"Penman-Monteith"`` with a prescribed potential surface conductance
    *Gs_pot* (mol m-2 s-1)::

        LE_pot = (Delta * (Rn - G - S) + rho * cp * VPD * Ga)
                 / (Delta + gamma * (1 + Ga / Gs_pot))

    Parameters
    ----------
    Tair, pressure : float or array_like
        Air temperature (degC) and atmospheric pressure (kPa).
    Rn, G, S : float or array_like
        Net radiation, ground heat flux and storage fluxes (W m-2).
    VPD : float or array_like
        Vapour pressure deficit (kPa); Penman-Monteith only.
    Ga : float or array_like
        Aerodynamic conductance (m s-1); Penman-Monteith only.
    approach : PotentialETApproach or str, default ``"Priestley-Taylor"``
        Approach used.
    alpha : float, default ``1.26``
        Priestley-Taylor coefficient.
    Gs_pot : float, default ``0.6``
        Potential surface conductance (mol m-2 s-1).
    Esat_formula : EsatFormula or str, default ``"Sonntag_1990"``
        Formulation of the saturation vapour pressure slope.
    constants : BigleafConstants, optional
        Constants table.

    Returns
    -------
    pandas.DataFrame
        Columns ``ET_pot`` (kg m-2 s-1) and ``LE_pot`` (W m-2).
    """
    approach = _select(PotentialETApproach, approach, "approach")
    Esat_formula = _select(EsatFormula, Esat_formula, "Esat_formula")
    index = pandas_index(Tair, pressure, Rn, G, S, VPD, Ga)

    arrays, _ = broadcast_inputs(
        Tair=Tair, pressure=pressure, Rn=Rn, G=G, S=S, VPD=VPD, Ga=Ga
    )
    Tair, pressure = arrays["Tair"], arrays["pressure"]
    check_temperature(Tair, constants.Kelvin)
    check_positive(pressure, "pressure")

    available = arrays["Rn"] - arrays["G"] - arrays["S"]
    Delta = _esat_slope(Tair, Esat_formula, constants)
    gamma = _psychrometric_constant(Tair, pressure, constants)

    with np.errstate(divide="ignore", invalid="ignore"):
        if approach == PotentialETApproach.PRIESTLEY_TAYLOR:
            LE_pot = (alpha * Delta * available) / (Delta + gamma)
        else:
            Ga = arrays["Ga"]
            Gs_pot_ms = Gs_pot / _mol_per_m3(Tair, pressure, constants)
            rho = _air_density(Tair, pressure, constants)
            LE_pot = (Delta * available + rho * constants.cp * arrays["VPD"] * Ga) / (
                Delta + gamma * (1 + Ga / Gs_pot_ms)
            )
        ET_pot = LE_pot / _latent_heat(Tair)

    return to_frame({"ET_pot": ET_pot, "LE_pot": LE_pot}, index)
