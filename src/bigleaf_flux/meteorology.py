"""
Meteorological variables derived from air temperature, pressure and humidity.

This module implements:
1. Saturation vapour pressure and its slope (several empirical formulations)
2. Latent heat of vaporisation and the psychrometric constant
3. Air density, virtual temperature and kinematic viscosity
4. Barometric pressure from site elevation
5. Dew-point and wet-bulb temperature (iterative Newton solves)

All functions are element-wise: scalars, arrays and pandas Series are
accepted and broadcast together; missing values propagate as ``NaN``.

References:
    Sonntag D. (1990) Important new values of the physical constants of 1986,
        vapour pressure formulations based on the ITS-90, and psychrometer
        formulae. Zeitschrift fuer Meteorologie 70, 340-344.
    Alduchov O.A., Eskridge R.E. (1996) Improved Magnus form approximation of
        saturation vapor pressure. Journal of Applied Meteorology 35, 601-609.
    Allen R.G. et al. (1998) Crop evapotranspiration. FAO Irrigation and
        Drainage Paper 56.
    Foken T. (2008) Micrometeorology. Springer.
"""

from typing import Optional, Union

import numpy as np

from .constants import (
    DEFAULT_CONSTANTS,
    ESAT_COEFFICIENTS,
    BigleafConstants,
    EsatFormula,
    _select,
)
from .errors import InvalidInputError, NumericalNonConvergence
from ._utils import (
    ArrayLike,
    broadcast_inputs,
    check_positive,
    check_temperature,
    finalize,
)

# Default iteration settings of the dew-point and wet-bulb solvers
SOLVER_ACCURACY = 1e-4  # kPa
SOLVER_MAX_ITER = 50


def _esat(Tair: np.ndarray, formula: EsatFormula, constants: BigleafConstants) -> np.ndarray:
    a, b, c = ESAT_COEFFICIENTS[formula]
    return a * np.exp((b * Tair) / (c + Tair)) * constants.Pa2kPa


def _esat_slope(Tair: np.ndarray, formula: EsatFormula, constants: BigleafConstants) -> np.ndarray:
    a, b, c = ESAT_COEFFICIENTS[formula]
    return a * np.exp((b * Tair) / (c + Tair)) * (b * c) / (c + Tair) ** 2 * constants.Pa2kPa


def _latent_heat(Tair: np.ndarray) -> np.ndarray:
    k1 = 2.501
    k2 = 0.00237
    return (k1 - k2 * Tair) * 1e6


def _psychrometric_constant(
    Tair: np.ndarray, pressure: np.ndarray, constants: BigleafConstants
) -> np.ndarray:
    return (constants.cp * pressure) / (constants.eps * _latent_heat(Tair))


def saturation_vapor_pressure(
    Tair: ArrayLike,
    formula: Union[EsatFormula, str] = EsatFormula.SONNTAG_1990,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> Union[float, np.ndarray]:
    """
    Saturation vapour pressure over a plane surface of liquid water.

    All supported formulations share the Magnus form

    .. math::
        e_{sat}(T) = a \\exp\\left(\\frac{b\\,T}{c + T}\\right)

    and differ only in the coefficients (see
    :data:`~bigleaf_flux.constants.ESAT_COEFFICIENTS`).  Over the
    physiological range 0-40 degC the variants agree to well within
    0.1 kPa.

    Parameters
    ----------
    Tair : float or array_like
        Air temperature (degC).
    formula : EsatFormula or str, default ``"Sonntag_1990"``
        Empirical formulation; one of ``"Sonntag_1990"``,
        ``"Alduchov_1996"`` or ``"Allen_1998"``.
    constants : BigleafConstants, optional
        Constants table; ``Pa2kPa`` is used.

    Returns
    -------
    float or ndarray
        Saturation vapour pressure (kPa).

    Raises
    ------
    InvalidInputError
        If *formula* is not supported or *Tair* is at or below absolute
        zero.

    Examples
    --------
    >>> round(saturation_vapor_pressure(25.2), 3)
    3.198
    >>> saturation_vapor_pressure([0.0, 20.0], formula="Allen_1998")
    array([0.6108..., 2.338...])
    """
    formula = _select(EsatFormula, formula, "formula")
    arrays, is_scalar = broadcast_inputs(Tair=Tair)
    Tair = arrays["Tair"]
    check_temperature(Tair, constants.Kelvin)
    return finalize(_esat(Tair, formula, constants), is_scalar)


def saturation_vapor_pressure_slope(
    Tair: ArrayLike,
    formula: Union[EsatFormula, str] = EsatFormula.SONNTAG_1990,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> Union[float, np.ndarray]:
    """
    Slope of the saturation vapour pressure curve, :math:`\\Delta`.

    The analytic derivative of the selected formulation,

    .. math::
        \\Delta = \\frac{d e_{sat}}{dT}
                = e_{sat}(T)\\,\\frac{b\\,c}{(c + T)^2}.

    Parameters
    ----------
    Tair : float or array_like
        Air temperature (degC).
    formula : EsatFormula or str, default ``"Sonntag_1990"``
        Empirical formulation, as for :func:`saturation_vapor_pressure`.
    constants : BigleafConstants, optional
        Constants table.

    Returns
    -------
    float or ndarray
        Slope of the saturation vapour pressure curve (kPa K-1).
    """
    formula = _select(EsatFormula, formula, "formula")
    arrays, is_scalar = broadcast_inputs(Tair=Tair)
    Tair = arrays["Tair"]
    check_temperature(Tair, constants.Kelvin)
    return finalize(_esat_slope(Tair, formula, constants), is_scalar)


def latent_heat_vaporization(Tair: ArrayLike) -> Union[float, np.ndarray]:
    """
    Latent heat of vaporisation as a linear function of temperature.

    .. math:: \\lambda = (2.501 - 0.00237\\,T) \\cdot 10^6

    Parameters
    ----------
    Tair : float or array_like
        Air temperature (degC).

    Returns
    -------
    float or ndarray
        Latent heat of vaporisation (J kg-1).

    References
    ----------
    Stull, R. B. (1988). *An Introduction to Boundary Layer Meteorology*,
    p. 641. Springer.
    """
    arrays, is_scalar = broadcast_inputs(Tair=Tair)
    return finalize(_latent_heat(arrays["Tair"]), is_scalar)


def psychrometric_constant(
    Tair: ArrayLike,
    pressure: ArrayLike,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> Union[float, np.ndarray]:
    """
    Psychrometric constant :math:`\\gamma = c_p\\,p / (\\epsilon\\,\\lambda)`.

    Parameters
    ----------
    Tair : float or array_like
        Air temperature (degC).
    pressure : float or array_like
        Atmospheric pressure (kPa).
    constants : BigleafConstants, optional
        Constants table; ``cp`` and ``eps`` are used.

    Returns
    -------
    float or ndarray
        Psychrometric constant (kPa K-1).

    Examples
    --------
    >>> round(psychrometric_constant(20.0, 100.0), 4)
    0.0658
    """
    arrays, is_scalar = broadcast_inputs(Tair=Tair, pressure=pressure)
    Tair, pressure = arrays["Tair"], arrays["pressure"]
    check_temperature(Tair, constants.Kelvin)
    check_positive(pressure, "pressure")
    return finalize(_psychrometric_constant(Tair, pressure, constants), is_scalar)


def air_density(
    Tair: ArrayLike,
    pressure: ArrayLike,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> Union[float, np.ndarray]:
    """
    Density of dry air from the ideal gas law, :math:`\\rho = p / (R_d T)`.

    Parameters
    ----------
    Tair : float or array_like
        Air temperature (degC).
    pressure : float or array_like
        Atmospheric pressure (kPa).
    constants : BigleafConstants, optional
        Constants table; ``Rd``, ``Kelvin`` and ``kPa2Pa`` are used.

    Returns
    -------
    float or ndarray
        Air density (kg m-3).

    Examples
    --------
    >>> round(air_density(25.0, 100.0), 4)
    1.1684
    """
    arrays, is_scalar = broadcast_inputs(Tair=Tair, pressure=pressure)
    Tair, pressure = arrays["Tair"], arrays["pressure"]
    check_temperature(Tair, constants.Kelvin)
    check_positive(pressure, "pressure")

    rho = (pressure * constants.kPa2Pa) / (constants.Rd * (Tair + constants.Kelvin))
    return finalize(rho, is_scalar)


def virtual_temperature(
    Tair: ArrayLike,
    pressure: ArrayLike,
    VPD: ArrayLike,
    Esat_formula: Union[EsatFormula, str] = EsatFormula.SONNTAG_1990,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> Union[float, np.ndarray]:
    """
    Virtual temperature, the temperature dry air would need to have the
    same density as the moist air.

    .. math:: T_v = \\frac{T}{1 - (1 - \\epsilon)\\,e / p}

    Parameters
    ----------
    Tair : float or array_like
        Air temperature (degC).
    pressure : float or array_like
        Atmospheric pressure (kPa).
    VPD : float or array_like
        Vapour pressure deficit (kPa).
    Esat_formula : EsatFormula or str, default ``"Sonntag_1990"``
        Formulation used to convert *VPD* to vapour pressure.
    constants : BigleafConstants, optional
        Constants table.

    Returns
    -------
    float or ndarray
        Virtual temperature (degC).
    """
    formula = _select(EsatFormula, Esat_formula, "Esat_formula")
    arrays, is_scalar = broadcast_inputs(Tair=Tair, pressure=pressure, VPD=VPD)
    Tair, pressure, VPD = arrays["Tair"], arrays["pressure"], arrays["VPD"]
    check_temperature(Tair, constants.Kelvin)
    check_positive(pressure, "pressure")

    e = _esat(Tair, formula, constants) - VPD
    Tair_K = Tair + constants.Kelvin
    Tv = Tair_K / (1 - (1 - constants.eps) * e / pressure)
    return finalize(Tv - constants.Kelvin, is_scalar)


def kinematic_viscosity(
    Tair: ArrayLike,
    pressure: ArrayLike,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> Union[float, np.ndarray]:
    """
    Kinematic viscosity of air (m2 s-1), Massman (1999b).

    Parameters
    ----------
    Tair : float or array_like
        Air temperature (degC).
    pressure : float or array_like
        Atmospheric pressure (kPa).
    constants : BigleafConstants, optional
        Constants table.

    Returns
    -------
    float or ndarray
        Kinematic viscosity of air (m2 s-1).
    """
    arrays, is_scalar = broadcast_inputs(Tair=Tair, pressure=pressure)
    Tair, pressure = arrays["Tair"], arrays["pressure"]
    check_temperature(Tair, constants.Kelvin)
    check_positive(pressure, "pressure")

    Tair_K = Tair + constants.Kelvin
    pressure_Pa = pressure * constants.kPa2Pa
    v = 1.327e-05 * (constants.pressure0 / pressure_Pa) * (Tair_K / constants.Tair0) ** 1.81
    return finalize(v, is_scalar)


def pressure_from_elevation(
    elev: ArrayLike,
    Tair: ArrayLike,
    VPD: Optional[ArrayLike] = None,
    Esat_formula: Union[EsatFormula, str] = EsatFormula.SONNTAG_1990,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> Union[float, np.ndarray]:
    """
    Atmospheric pressure from site elevation (hypsometric equation).

    .. math:: p = p_0 \\exp\\left(-\\frac{g\\,z}{R_d\\,T}\\right)

    When *VPD* is supplied the virtual temperature replaces the air
    temperature, accounting for the lower density of moist air.

    Parameters
    ----------
    elev : float or array_like
        Elevation above sea level (m).
    Tair : float or array_like
        Air temperature (degC).
    VPD : float or array_like, optional
        Vapour pressure deficit (kPa).
    Esat_formula : EsatFormula or str, default ``"Sonntag_1990"``
        Formulation used for the virtual temperature.
    constants : BigleafConstants, optional
        Constants table; ``pressure0``, ``g`` and ``Rd`` are used.

    Returns
    -------
    float or ndarray
        Atmospheric pressure (kPa).

    Examples
    --------
    >>> round(pressure_from_elevation(500.0, 20.0), 2)
    95.59
    """
    arrays, is_scalar = broadcast_inputs(elev=elev, Tair=Tair)
    elev, Tair = arrays["elev"], arrays["Tair"]
    check_temperature(Tair, constants.Kelvin)

    if VPD is not None:
        reference_pressure = constants.pressure0 * constants.Pa2kPa
        Tair = virtual_temperature(
            Tair, reference_pressure, VPD, Esat_formula=Esat_formula, constants=constants
        )
        is_scalar = is_scalar and np.ndim(VPD) == 0

    Tair_K = np.asarray(Tair) + constants.Kelvin
    pressure = constants.pressure0 / np.exp(constants.g * elev / (constants.Rd * Tair_K))
    return finalize(pressure * constants.Pa2kPa, is_scalar)


def _newton_solve(func, fprime, initial, accuracy, max_iter, quantity):
    """
    Vectorised Newton iteration on independent scalar equations.

    Convergence is declared only after an update step, once every
    non-missing residual is below *accuracy*.
    """
    estimate = np.array(initial, dtype=float)
    for iteration in range(1, max_iter + 1):
        estimate = estimate - func(estimate) / fprime(estimate)
        residual = func(estimate)
        finite = ~np.isnan(residual)
        if np.all(np.abs(residual[finite]) < accuracy):
            return estimate
    raise NumericalNonConvergence(quantity, estimate, func(estimate), max_iter)


def _check_solver_settings(accuracy: float, max_iter: int) -> None:
    if not accuracy > 0:
        raise InvalidInputError("accuracy", accuracy, "Value must be strictly positive")
    if max_iter < 0:
        raise InvalidInputError("max_iter", max_iter, "Value must be non-negative")


def dew_point(
    Tair: ArrayLike,
    VPD: ArrayLike,
    Esat_formula: Union[EsatFormula, str] = EsatFormula.SONNTAG_1990,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
    accuracy: float = SOLVER_ACCURACY,
    max_iter: int = SOLVER_MAX_ITER,
) -> Union[float, np.ndarray]:
    """
    Dew-point temperature, the temperature at which the actual vapour
    pressure equals the saturation vapour pressure.

    The equation :math:`e_{sat}(T_d) - e = 0` is solved by Newton
    iteration starting from the air temperature, using the analytic slope
    of the selected saturation vapour pressure formulation.  Because
    :math:`e_{sat}` is convex and increasing the iteration converges
    monotonically from any start at or above the solution.

    Parameters
    ----------
    Tair : float or array_like
        Air temperature (degC).
    VPD : float or array_like
        Vapour pressure deficit (kPa).
    Esat_formula : EsatFormula or str, default ``"Sonntag_1990"``
        Saturation vapour pressure formulation.
    constants : BigleafConstants, optional
        Constants table.
    accuracy : float, default ``1e-4``
        Residual tolerance in vapour pressure space (kPa).
    max_iter : int, default ``50``
        Iteration budget.

    Returns
    -------
    float or ndarray
        Dew-point temperature (degC).

    Raises
    ------
    InvalidInputError
        If the implied vapour pressure ``e = e_sat(Tair) - VPD`` is not
        positive, for which no dew point exists.
    NumericalNonConvergence
        If the residual is still above *accuracy* after *max_iter*
        iterations.  The exception carries the last estimate and residual.

    Examples
    --------
    >>> round(dew_point(25.0, 1.0), 1)
    18.8
    """
    formula = _select(EsatFormula, Esat_formula, "Esat_formula")
    _check_solver_settings(accuracy, max_iter)
    arrays, is_scalar = broadcast_inputs(Tair=Tair, VPD=VPD)
    Tair, VPD = arrays["Tair"], arrays["VPD"]
    check_temperature(Tair, constants.Kelvin)

    e = _esat(Tair, formula, constants) - VPD
    check_positive(e, "e")

    Td = _newton_solve(
        lambda T: _esat(T, formula, constants) - e,
        lambda T: _esat_slope(T, formula, constants),
        Tair,
        accuracy,
        max_iter,
        "dew point",
    )
    return finalize(Td, is_scalar)


def wetbulb_temperature(
    Tair: ArrayLike,
    pressure: ArrayLike,
    VPD: ArrayLike,
    Esat_formula: Union[EsatFormula, str] = EsatFormula.SONNTAG_1990,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
    accuracy: float = SOLVER_ACCURACY,
    max_iter: int = SOLVER_MAX_ITER,
) -> Union[float, np.ndarray]:
    """
    Wet-bulb temperature from the psychrometric equation.

    The wet-bulb temperature :math:`T_w` balances the sensible heat given
    up by the air against the latent heat taken up by evaporation:

    .. math::
        e = e_{sat}(T_w) - Le^{0.67}\\,\\gamma\\,(T - T_w)

    The equation is solved by Newton iteration starting from the air
    temperature; :math:`\\gamma` is evaluated at the air temperature.

    Parameters
    ----------
    Tair : float or array_like
        Air temperature (degC).
    pressure : float or array_like
        Atmospheric pressure (kPa).
    VPD : float or array_like
        Vapour pressure deficit (kPa).
    Esat_formula : EsatFormula or str, default ``"Sonntag_1990"``
        Saturation vapour pressure formulation.
    constants : BigleafConstants, optional
        Constants table; ``Le067`` is used.
    accuracy : float, default ``1e-4``
        Residual tolerance in vapour pressure space (kPa).
    max_iter : int, default ``50``
        Iteration budget.

    Returns
    -------
    float or ndarray
        Wet-bulb temperature (degC).

    Raises
    ------
    NumericalNonConvergence
        If the residual is still above *accuracy* after *max_iter*
        iterations.

    Examples
    --------
    >>> 20.6 < wetbulb_temperature(25.0, 100.0, 1.0) < 20.7
    True
    """
    formula = _select(EsatFormula, Esat_formula, "Esat_formula")
    _check_solver_settings(accuracy, max_iter)
    arrays, is_scalar = broadcast_inputs(Tair=Tair, pressure=pressure, VPD=VPD)
    Tair, pressure, VPD = arrays["Tair"], arrays["pressure"], arrays["VPD"]
    check_temperature(Tair, constants.Kelvin)
    check_positive(pressure, "pressure")

    gamma = _psychrometric_constant(Tair, pressure, constants)
    e = _esat(Tair, formula, constants) - VPD
    psychro = constants.Le067 * gamma

    Tw = _newton_solve(
        lambda T: _esat(T, formula, constants) - psychro * (Tair - T) - e,
        lambda T: _esat_slope(T, formula, constants) + psychro,
        Tair,
        accuracy,
        max_iter,
        "wet-bulb temperature",
    )
    return finalize(Tw, is_scalar)
