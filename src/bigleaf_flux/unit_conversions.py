"""
Conversions between humidity measures and between flux and conductance units.

This module provides:
1. Vapour pressure, vapour pressure deficit, relative and specific humidity
2. Latent heat flux and evapotranspiration
3. Mass and molar amounts, CO2 and carbon fluxes
4. Global radiation and photosynthetic photon flux density
5. Conductance in m s-1 and mol m-2 s-1

Vapour pressures and pressures are in kPa, temperatures in degC.
"""

import logging
from typing import Union

import numpy as np

from .constants import DEFAULT_CONSTANTS, BigleafConstants, EsatFormula, _select
from .meteorology import _esat, _latent_heat
from ._utils import (
    ArrayLike,
    broadcast_inputs,
    check_positive,
    check_temperature,
    finalize,
)

logger = logging.getLogger(__name__)

Result = Union[float, np.ndarray]


def _esat_at(Tair, formula, constants):
    formula = _select(EsatFormula, formula, "Esat_formula")
    check_temperature(Tair, constants.Kelvin)
    return _esat(Tair, formula, constants)


def _clamp_rH(rH: np.ndarray) -> np.ndarray:
    outside = (rH < 0) | (rH > 1)
    if np.any(outside):
        logger.warning(
            "relative humidity (rH) has to be between 0 and 1; "
            "clamping %d value(s) to that range",
            int(np.count_nonzero(outside)),
        )
        rH = np.clip(rH, 0.0, 1.0)
    return rH


def e_to_VPD(
    e: ArrayLike,
    Tair: ArrayLike,
    Esat_formula: Union[EsatFormula, str] = EsatFormula.SONNTAG_1990,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> Result:
    """
    Vapour pressure deficit from vapour pressure, ``VPD = e_sat(Tair) - e``.

    Parameters
    ----------
    e : float or array_like
        Vapour pressure (kPa).
    Tair : float or array_like
        Air temperature (degC).
    Esat_formula : EsatFormula or str, default ``"Sonntag_1990"``
        Saturation vapour pressure formulation.
    constants : BigleafConstants, optional
        Constants table.

    Returns
    -------
    float or ndarray
        Vapour pressure deficit (kPa).
    """
    arrays, is_scalar = broadcast_inputs(e=e, Tair=Tair)
    Esat = _esat_at(arrays["Tair"], Esat_formula, constants)
    return finalize(Esat - arrays["e"], is_scalar)


def VPD_to_e(
    VPD: ArrayLike,
    Tair: ArrayLike,
    Esat_formula: Union[EsatFormula, str] = EsatFormula.SONNTAG_1990,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> Result:
    """Vapour pressure (kPa) from vapour pressure deficit, ``e = e_sat(Tair) - VPD``."""
    arrays, is_scalar = broadcast_inputs(VPD=VPD, Tair=Tair)
    Esat = _esat_at(arrays["Tair"], Esat_formula, constants)
    return finalize(Esat - arrays["VPD"], is_scalar)


def e_to_rH(
    e: ArrayLike,
    Tair: ArrayLike,
    Esat_formula: Union[EsatFormula, str] = EsatFormula.SONNTAG_1990,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> Result:
    """
    Relative humidity from vapour pressure, ``rH = e / e_sat(Tair)``.

    Vapour pressures above saturation, typically caused by sensor noise,
    are not an error: the affected elements are clamped to exactly
    ``rH = 1``. Negative vapour pressures are clamped to ``rH = 0``. A single
    warning is logged for the call.

    Parameters
    ----------
    e : float or array_like
        Vapour pressure (kPa).
    Tair : float or array_like
        Air temperature (degC).
    Esat_formula : EsatFormula or str, default ``"Sonntag_1990"``
        Saturation vapour pressure formulation.
    constants : BigleafConstants, optional
        Constants table.

    Returns
    -------
    float or ndarray
        Relative humidity (-), in the range 0-1.

    Examples
    --------
    >>> from bigleaf_flux.meteorology import saturation_vapor_pressure
    >>> e_to_rH(saturation_vapor_pressure(25.0) + 1e-3, 25.0)
    1.0
    """
    arrays, is_scalar = broadcast_inputs(e=e, Tair=Tair)
    e = arrays["e"]
    Esat = _esat_at(arrays["Tair"], Esat_formula, constants)

    oversaturated = e > Esat
    negative = e < 0
    if np.any(oversaturated | negative):
        logger.warning(
            "Provided vapour pressure was higher than saturation in %d case(s) "
            "and negative in %d case(s); returning rH=1 and rH=0 for those cases",
            int(np.count_nonzero(oversaturated)),
            int(np.count_nonzero(negative)),
        )
    rH = np.clip(e / Esat, 0.0, 1.0)
    return finalize(rH, is_scalar)


def rH_to_e(
    rH: ArrayLike,
    Tair: ArrayLike,
    Esat_formula: Union[EsatFormula, str] = EsatFormula.SONNTAG_1990,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> Result:
    """
    Vapour pressure (kPa) from relative humidity, ``e = rH * e_sat(Tair)``.

    Relative humidities outside 0-1 are clamped with a logged warning.
    """
    arrays, is_scalar = broadcast_inputs(rH=rH, Tair=Tair)
    rH = _clamp_rH(arrays["rH"])
    Esat = _esat_at(arrays["Tair"], Esat_formula, constants)
    return finalize(rH * Esat, is_scalar)


def VPD_to_rH(
    VPD: ArrayLike,
    Tair: ArrayLike,
    Esat_formula: Union[EsatFormula, str] = EsatFormula.SONNTAG_1990,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> Result:
    """
    Relative humidity (-) from vapour pressure deficit, ``rH = 1 - VPD / e_sat``.

    A negative VPD or one above saturation gives an rH outside 0-1, which is
    clamped with a logged warning.
    """
    arrays, is_scalar = broadcast_inputs(VPD=VPD, Tair=Tair)
    Esat = _esat_at(arrays["Tair"], Esat_formula, constants)
    return finalize(_clamp_rH(1.0 - arrays["VPD"] / Esat), is_scalar)


def rH_to_VPD(
    rH: ArrayLike,
    Tair: ArrayLike,
    Esat_formula: Union[EsatFormula, str] = EsatFormula.SONNTAG_1990,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> Result:
    """
    Vapour pressure deficit (kPa) from relative humidity.

    Relative humidities outside 0-1 are clamped with a logged warning.
    """
    arrays, is_scalar = broadcast_inputs(rH=rH, Tair=Tair)
    rH = _clamp_rH(arrays["rH"])
    Esat = _esat_at(arrays["Tair"], Esat_formula, constants)
    return finalize(Esat - rH * Esat, is_scalar)


def e_to_q(
    e: ArrayLike,
    pressure: ArrayLike,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> Result:
    """
    Specific humidity from vapour pressure.

    .. math:: q = \\frac{\\epsilon\\,e}{p - (1 - \\epsilon)\\,e}

    Parameters
    ----------
    e : float or array_like
        Vapour pressure (kPa).
    pressure : float or array_like
        Atmospheric pressure (kPa).
    constants : BigleafConstants, optional
        Constants table; ``eps`` is used.

    Returns
    -------
    float or ndarray
        Specific humidity (kg kg-1).
    """
    arrays, is_scalar = broadcast_inputs(e=e, pressure=pressure)
    e, pressure = arrays["e"], arrays["pressure"]
    check_positive(pressure, "pressure")

    eps = constants.eps
    return finalize(eps * e / (pressure - (1 - eps) * e), is_scalar)


def q_to_e(
    q: ArrayLike,
    pressure: ArrayLike,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> Result:
    """Vapour pressure (kPa) from specific humidity (kg kg-1); inverse of :func:`e_to_q`."""
    arrays, is_scalar = broadcast_inputs(q=q, pressure=pressure)
    q, pressure = arrays["q"], arrays["pressure"]
    check_positive(pressure, "pressure")

    eps = constants.eps
    return finalize(q * pressure / ((1 - eps) * q + eps), is_scalar)


def q_to_VPD(
    q: ArrayLike,
    Tair: ArrayLike,
    pressure: ArrayLike,
    Esat_formula: Union[EsatFormula, str] = EsatFormula.SONNTAG_1990,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> Result:
    """Vapour pressure deficit (kPa) from specific humidity (kg kg-1)."""
    arrays, is_scalar = broadcast_inputs(q=q, Tair=Tair, pressure=pressure)
    Esat = _esat_at(arrays["Tair"], Esat_formula, constants)
    e = q_to_e(arrays["q"], arrays["pressure"], constants=constants)
    return finalize(Esat - e, is_scalar)


def VPD_to_q(
    VPD: ArrayLike,
    Tair: ArrayLike,
    pressure: ArrayLike,
    Esat_formula: Union[EsatFormula, str] = EsatFormula.SONNTAG_1990,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> Result:
    """Specific humidity (kg kg-1) from vapour pressure deficit (kPa)."""
    arrays, is_scalar = broadcast_inputs(VPD=VPD, Tair=Tair, pressure=pressure)
    Esat = _esat_at(arrays["Tair"], Esat_formula, constants)
    e = Esat - arrays["VPD"]
    return finalize(e_to_q(e, arrays["pressure"], constants=constants), is_scalar)


def LE_to_ET(LE: ArrayLike, Tair: ArrayLike) -> Result:
    """
    Evapotranspiration from latent heat flux, ``ET = LE / lambda(Tair)``.

    Parameters
    ----------
    LE : float or array_like
        Latent heat flux (W m-2).
    Tair : float or array_like
        Air temperature (degC).

    Returns
    -------
    float or ndarray
        Evapotranspiration (kg m-2 s-1).
    """
    arrays, is_scalar = broadcast_inputs(LE=LE, Tair=Tair)
    return finalize(arrays["LE"] / _latent_heat(arrays["Tair"]), is_scalar)


def ET_to_LE(ET: ArrayLike, Tair: ArrayLike) -> Result:
    """Latent heat flux (W m-2) from evapotranspiration (kg m-2 s-1)."""
    arrays, is_scalar = broadcast_inputs(ET=ET, Tair=Tair)
    return finalize(arrays["ET"] * _latent_heat(arrays["Tair"]), is_scalar)


def kg_to_mol(
    mass: ArrayLike,
    molar_mass: ArrayLike = DEFAULT_CONSTANTS.H2Omol,
) -> Result:
    """
    Amount of substance from mass, ``n = mass / molar_mass``.

    Parameters
    ----------
    mass : float or array_like
        Mass (kg).
    molar_mass : float or array_like, default ``H2Omol``
        Molar mass (kg mol-1); defaults to that of water.

    Returns
    -------
    float or ndarray
        Amount of substance (mol).
    """
    arrays, is_scalar = broadcast_inputs(mass=mass, molar_mass=molar_mass)
    check_positive(arrays["molar_mass"], "molar_mass")
    return finalize(arrays["mass"] / arrays["molar_mass"], is_scalar)


def umolCO2_to_gC(
    CO2_flux: ArrayLike,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> Result:
    """
    Convert a CO2 flux (umol CO2 m-2 s-1) to a carbon flux (g C m-2 d-1).

    Examples
    --------
    >>> round(umolCO2_to_gC(1.0), 3)
    1.038
    """
    arrays, is_scalar = broadcast_inputs(CO2_flux=CO2_flux)
    C_flux = (
        arrays["CO2_flux"]
        * constants.umol2mol
        * constants.Cmol
        * constants.kg2g
        * constants.days2seconds
    )
    return finalize(C_flux, is_scalar)


def gC_to_umolCO2(
    C_flux: ArrayLike,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> Result:
    """Convert a carbon flux (g C m-2 d-1) to a CO2 flux (umol CO2 m-2 s-1)."""
    arrays, is_scalar = broadcast_inputs(C_flux=C_flux)
    CO2_flux = (
        arrays["C_flux"]
        * constants.g2kg
        / constants.days2seconds
        / constants.Cmol
        * constants.mol2umol
    )
    return finalize(CO2_flux, is_scalar)


def Rg_to_PPFD(
    Rg: ArrayLike,
    J_to_mol: float = 4.6,
    frac_PAR: float = 0.5,
) -> Result:
    """
    Photosynthetic photon flux density from global radiation.

    Parameters
    ----------
    Rg : float or array_like
        Global (shortwave) radiation (W m-2).
    J_to_mol : float, default ``4.6``
        Conversion factor from J m-2 s-1 (W m-2) to umol photons m-2 s-1.
    frac_PAR : float, default ``0.5``
        Fraction of global radiation that is photosynthetically active.

    Returns
    -------
    float or ndarray
        PPFD (umol m-2 s-1).
    """
    arrays, is_scalar = broadcast_inputs(Rg=Rg)
    return finalize(arrays["Rg"] * frac_PAR * J_to_mol, is_scalar)


def PPFD_to_Rg(
    PPFD: ArrayLike,
    J_to_mol: float = 4.6,
    frac_PAR: float = 0.5,
) -> Result:
    """Global radiation (W m-2) from PPFD (umol m-2 s-1); inverse of :func:`Rg_to_PPFD`."""
    arrays, is_scalar = broadcast_inputs(PPFD=PPFD)
    return finalize(arrays["PPFD"] / frac_PAR / J_to_mol, is_scalar)


def ms_to_mol(
    G_ms: ArrayLike,
    Tair: ArrayLike,
    pressure: ArrayLike,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> Result:
    """
    Convert a conductance from m s-1 to mol m-2 s-1.

    The molar concentration of air, :math:`p / (R\\,T)`, makes the
    conversion temperature and pressure dependent.

    Parameters
    ----------
    G_ms : float or array_like
        Conductance (m s-1).
    Tair : float or array_like
        Air temperature (degC).
    pressure : float or array_like
        Atmospheric pressure (kPa).
    constants : BigleafConstants, optional
        Constants table; ``Rgas``, ``Kelvin`` and ``kPa2Pa`` are used.

    Returns
    -------
    float or ndarray
        Conductance (mol m-2 s-1).
    """
    arrays, is_scalar = broadcast_inputs(G_ms=G_ms, Tair=Tair, pressure=pressure)
    Tair, pressure = arrays["Tair"], arrays["pressure"]
    check_temperature(Tair, constants.Kelvin)
    check_positive(pressure, "pressure")

    G_mol = arrays["G_ms"] * (pressure * constants.kPa2Pa) / (
        constants.Rgas * (Tair + constants.Kelvin)
    )
    return finalize(G_mol, is_scalar)


def mol_to_ms(
    G_mol: ArrayLike,
    Tair: ArrayLike,
    pressure: ArrayLike,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> Result:
    """Convert a conductance from mol m-2 s-1 to m s-1; inverse of :func:`ms_to_mol`."""
    arrays, is_scalar = broadcast_inputs(G_mol=G_mol, Tair=Tair, pressure=pressure)
    Tair, pressure = arrays["Tair"], arrays["pressure"]
    check_temperature(Tair, constants.Kelvin)
    check_positive(pressure, "pressure")

    G_ms = arrays["G_mol"] * (constants.Rgas * (Tair + constants.Kelvin)) / (
        pressure * constants.kPa2Pa
    )
    return finalize(G_ms, is_scalar)
