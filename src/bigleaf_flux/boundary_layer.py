"""
Surface-layer stability, wind profile and aerodynamic conductance.

This module implements the aerodynamic part of the big-leaf framework:
1. Monin-Obukhov length, stability parameter and integrated stability
   corrections (Dyer 1970, Businger 1971)
2. The logarithmic wind profile with stability correction
3. Canopy boundary-layer (quasi-laminar) conductance after Thom (1972),
   Choudhury & Monteith (1988), Su et al. (2001) or a constant kB-1
4. Aerodynamic conductance for momentum, heat and CO2

References:
    Thom A.S. (1972) Momentum, mass and heat exchange of vegetation.
        Quarterly Journal of the Royal Meteorological Society 98, 124-134.
    Choudhury B.J., Monteith J.L. (1988) A four-layer model for the heat
        budget of homogeneous land surfaces. QJRMS 114, 373-398.
    Su Z. et al. (2001) An evaluation of two models for estimation of the
        roughness height for heat transfer between the land surface and the
        atmosphere. Journal of Applied Meteorology 40, 1933-1951.
    Foken T. (2008) Micrometeorology. Springer.
"""

from typing import Optional, Union

import numpy as np
import pandas as pd

from .constants import (
    DEFAULT_CONSTANTS,
    STABILITY_COEFFICIENTS,
    BigleafConstants,
    BoundaryLayerModel,
    StabilityFormulation,
    _select,
)
from .errors import InvalidInputError
from .meteorology import air_density, kinematic_viscosity
from ._utils import (
    ArrayLike,
    broadcast_inputs,
    check_positive,
    check_temperature,
    finalize,
    pandas_index,
    to_frame,
)

Result = Union[float, np.ndarray]


def monin_obukhov_length(
    Tair: ArrayLike,
    pressure: ArrayLike,
    ustar: ArrayLike,
    H: ArrayLike,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> Result:
    """
    Monin-Obukhov length *L*, the height above which buoyant production
    of turbulence dominates over shear production.

    .. math::
        L = -\\frac{\\rho\\,c_p\\,u_*^3\\,T}{\\kappa\\,g\\,H}

    Parameters
    ----------
    Tair : float or array_like
        Air temperature (degC).
    pressure : float or array_like
        Atmospheric pressure (kPa).
    ustar : float or array_like
        Friction velocity (m s-1).
    H : float or array_like
        Sensible heat flux (W m-2).
    constants : BigleafConstants, optional
        Constants table; ``cp``, ``k`` and ``g`` are used.

    Returns
    -------
    float or ndarray
        Monin-Obukhov length (m); negative when unstable, positive when
        stable.  ``H = 0`` gives an infinite length (neutral).

    Examples
    --------
    >>> round(monin_obukhov_length(25.0, 100.0, 0.3, 100.0), 1)
    -23.5
    """
    arrays, is_scalar = broadcast_inputs(Tair=Tair, pressure=pressure, ustar=ustar, H=H)
    Tair, ustar, H = arrays["Tair"], arrays["ustar"], arrays["H"]
    rho = air_density(Tair, arrays["pressure"], constants=constants)
    Tair_K = Tair + constants.Kelvin

    with np.errstate(divide="ignore", invalid="ignore"):
        MOL = (-rho * constants.cp * ustar**3 * Tair_K) / (constants.k * constants.g * H)
    return finalize(MOL, is_scalar)


def stability_parameter(zr: ArrayLike, d: ArrayLike, MOL: ArrayLike) -> Result:
    """Stability parameter ``zeta = (zr - d) / L`` (-)."""
    arrays, is_scalar = broadcast_inputs(zr=zr, d=d, MOL=MOL)
    zeta = (arrays["zr"] - arrays["d"]) / arrays["MOL"]
    return finalize(zeta, is_scalar)


def _psi(zeta: np.ndarray, formulation: StabilityFormulation):
    coef = STABILITY_COEFFICIENTS[formulation]
    psi_h = np.full(zeta.shape, np.nan)
    psi_m = np.full(zeta.shape, np.nan)

    # Stable and neutral conditions
    mask_stable = zeta >= 0
    psi_h[mask_stable] = coef["x_h"] * zeta[mask_stable]
    psi_m[mask_stable] = coef["x_m"] * zeta[mask_stable]

    # Unstable conditions
    mask_unstable = zeta < 0
    zu = zeta[mask_unstable]
    y_h = coef["a_h"] * (1 - coef["gamma_h"] * zu) ** 0.5
    y_m = (1 - coef["gamma_m"] * zu) ** 0.25
    psi_h[mask_unstable] = 2 * np.log((1 + y_h) / 2)
    psi_m[mask_unstable] = (
        2 * np.log((1 + y_m) / 2)
        + np.log((1 + y_m**2) / 2)
        - 2 * np.arctan(y_m)
        + np.pi / 2
    )
    return psi_h, psi_m


def stability_correction(
    zeta: ArrayLike,
    formulation: Union[StabilityFormulation, str] = StabilityFormulation.DYER_1970,
) -> pd.DataFrame:
    """
    Integrated stability correction functions for heat and momentum.

    For stable conditions (``zeta >= 0``) both corrections are linear in
    *zeta*; for unstable conditions the integrated Businger-Dyer forms
    are used:

    .. math::
        \\psi_h = 2 \\ln\\frac{1 + y_h}{2}, \\qquad
        \\psi_m = 2 \\ln\\frac{1 + y_m}{2} + \\ln\\frac{1 + y_m^2}{2}
                  - 2 \\arctan y_m + \\frac{\\pi}{2}

    Parameters
    ----------
    zeta : float or array_like
        Stability parameter (-).
    formulation : StabilityFormulation or str, default ``"Dyer_1970"``
        ``"Dyer_1970"`` or ``"Businger_1971"``.

    Returns
    -------
    pandas.DataFrame
        Columns ``psi_h`` and ``psi_m``, one row per element of *zeta*.
    """
    formulation = _select(StabilityFormulation, formulation, "formulation")
    arrays, _ = broadcast_inputs(zeta=zeta)
    zeta_arr = np.atleast_1d(arrays["zeta"])
    psi_h, psi_m = _psi(zeta_arr, formulation)
    return to_frame({"psi_h": psi_h, "psi_m": psi_m}, pandas_index(zeta))


def wind_profile(
    z: ArrayLike,
    ustar: ArrayLike,
    d: ArrayLike,
    z0m: ArrayLike,
    MOL: Optional[ArrayLike] = None,
    stab_formulation: Union[StabilityFormulation, str] = StabilityFormulation.DYER_1970,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> Result:
    """
    Wind speed at height *z* from the logarithmic wind profile.

    .. math::
        u(z) = \\frac{u_*}{\\kappa}
               \\left[\\ln\\frac{z - d}{z_{0m}} - \\psi_m\\right]

    The stability correction is applied when the Monin-Obukhov length
    *MOL* is given; otherwise neutral conditions are assumed.  Heights at
    or below the displacement height give zero wind speed.

    Parameters
    ----------
    z : float or array_like
        Height above ground (m).
    ustar : float or array_like
        Friction velocity (m s-1).
    d : float or array_like
        Zero-plane displacement height (m).
    z0m : float or array_like
        Roughness length for momentum (m).
    MOL : float or array_like, optional
        Monin-Obukhov length (m).
    stab_formulation : StabilityFormulation or str, default ``"Dyer_1970"``
        Stability correction functions.
    constants : BigleafConstants, optional
        Constants table; ``k`` is used.

    Returns
    -------
    float or ndarray
        Wind speed at height *z* (m s-1).
    """
    formulation = _select(StabilityFormulation, stab_formulation, "stab_formulation")
    inputs = dict(z=z, ustar=ustar, d=d, z0m=z0m)
    if MOL is not None:
        inputs["MOL"] = MOL
    arrays, is_scalar = broadcast_inputs(**inputs)
    check_positive(arrays["z0m"], "z0m")

    height = arrays["z"] - arrays["d"]
    if MOL is not None:
        _, psi_m = _psi(np.atleast_1d(height / arrays["MOL"]), formulation)
        psi_m = psi_m.reshape(height.shape)
    else:
        psi_m = 0.0

    with np.errstate(divide="ignore", invalid="ignore"):
        log_term = np.log(np.maximum(height, 0) / arrays["z0m"])
    wind = np.maximum(0.0, (arrays["ustar"] / constants.k) * (log_term - psi_m))
    return finalize(wind, is_scalar)


def reynolds_number(
    Tair: ArrayLike,
    pressure: ArrayLike,
    ustar: ArrayLike,
    z0m: ArrayLike,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> Result:
    """Roughness Reynolds number ``Re = z0m * ustar / nu`` (-)."""
    arrays, is_scalar = broadcast_inputs(Tair=Tair, pressure=pressure, ustar=ustar, z0m=z0m)
    v = kinematic_viscosity(arrays["Tair"], arrays["pressure"], constants=constants)
    return finalize(arrays["z0m"] * arrays["ustar"] / v, is_scalar)


def _co2_resistance(Rb_h: np.ndarray, constants: BigleafConstants) -> np.ndarray:
    return Rb_h * (constants.Sc_CO2 / constants.Pr) ** 0.67


def _gb_frame(Rb_h, ustar, constants, index) -> pd.DataFrame:
    with np.errstate(divide="ignore", invalid="ignore"):
        Gb_h = 1 / Rb_h
        kB_h = Rb_h * constants.k * ustar
        Gb_CO2 = 1 / _co2_resistance(Rb_h, constants)
    return to_frame(
        {"Gb_h": Gb_h, "Rb_h": Rb_h, "kB_h": kB_h, "Gb_CO2": Gb_CO2}, index
    )


def Gb_Thom(
    ustar: ArrayLike,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> pd.DataFrame:
    """
    Canopy boundary-layer conductance after Thom (1972).

    .. math:: R_{b,h} = 6.2\\,u_*^{-0.667}

    Parameters
    ----------
    ustar : float or array_like
        Friction velocity (m s-1).
    constants : BigleafConstants, optional
        Constants table.

    Returns
    -------
    pandas.DataFrame
        ``Gb_h`` (m s-1), ``Rb_h`` (s m-1), ``kB_h`` (-), ``Gb_CO2`` (m s-1).
    """
    arrays, _ = broadcast_inputs(ustar=ustar)
    ustar_arr = np.atleast_1d(arrays["ustar"])
    with np.errstate(divide="ignore"):
        Rb_h = 6.2 * ustar_arr**-0.667
    return _gb_frame(Rb_h, ustar_arr, constants, pandas_index(ustar))


def Gb_Choudhury(
    ustar: ArrayLike,
    wind_zh: ArrayLike,
    leafwidth: float,
    LAI: ArrayLike,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> pd.DataFrame:
    """
    Canopy boundary-layer conductance after Choudhury & Monteith (1988).

    The leaf boundary-layer conductance, scaled to the canopy with an
    exponential wind attenuation coefficient that depends on LAI.

    Parameters
    ----------
    ustar : float or array_like
        Friction velocity (m s-1).
    wind_zh : float or array_like
        Wind speed at canopy height (m s-1); floored at 0.01.
    leafwidth : float
        Characteristic leaf width (m).
    LAI : float or array_like
        Leaf area index (m2 m-2).
    constants : BigleafConstants, optional
        Constants table.

    Returns
    -------
    pandas.DataFrame
        ``Gb_h``, ``Rb_h``, ``kB_h``, ``Gb_CO2``.
    """
    arrays, _ = broadcast_inputs(ustar=ustar, wind_zh=wind_zh, LAI=LAI)
    ustar_arr = np.atleast_1d(arrays["ustar"])
    LAI_arr = np.atleast_1d(arrays["LAI"])
    check_positive(np.asarray(leafwidth, dtype=float), "leafwidth")
    check_positive(LAI_arr, "LAI")

    alpha = 4.39 - 3.97 * np.exp(-0.258 * LAI_arr)
    wind_zh_arr = np.maximum(0.01, np.atleast_1d(arrays["wind_zh"]))
    Gb_h = LAI_arr * ((0.02 / alpha) * np.sqrt(wind_zh_arr / leafwidth) * (1 - np.exp(-alpha / 2)))
    return _gb_frame(1 / Gb_h, ustar_arr, constants, pandas_index(ustar, wind_zh))


def Gb_Su(
    Tair: ArrayLike,
    pressure: ArrayLike,
    ustar: ArrayLike,
    wind_zh: ArrayLike,
    Dl: float,
    fc: Optional[ArrayLike] = None,
    LAI: Optional[ArrayLike] = None,
    N: int = 2,
    Cd: float = 0.2,
    hs: float = 0.01,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> pd.DataFrame:
    """
    Canopy boundary-layer conductance after Su et al. (2001).

    A physically based kB-1 model that blends the canopy contribution,
    weighted by the squared fractional vegetation cover, with a bare-soil
    contribution:

    .. math::
        kB^{-1} = \\frac{\\kappa\\,C_d}{4\\,C_t\\,u_*/u(h)}\\,f_c^2
                  + kB_s^{-1}\\,(1 - f_c)^2

    Parameters
    ----------
    Tair : float or array_like
        Air temperature (degC).
    pressure : float or array_like
        Atmospheric pressure (kPa).
    ustar : float or array_like
        Friction velocity (m s-1).
    wind_zh : float or array_like
        Wind speed at canopy height (m s-1).
    Dl : float
        Characteristic leaf dimension (m).
    fc : float or array_like, optional
        Fractional vegetation cover (-).  Estimated from *LAI* as
        ``1 - exp(-LAI/2)`` when not given.
    LAI : float or array_like, optional
        Leaf area index; required when *fc* is not given.
    N : int, default ``2``
        Number of leaf sides participating in heat exchange.
    Cd : float, default ``0.2``
        Foliage drag coefficient.
    hs : float, default ``0.01``
        Roughness length of the soil surface (m).
    constants : BigleafConstants, optional
        Constants table.

    Returns
    -------
    pandas.DataFrame
        ``Gb_h``, ``Rb_h``, ``kB_h``, ``Gb_CO2``.

    Raises
    ------
    InvalidInputError
        If neither *fc* nor *LAI* is given.
    """
    if fc is None:
        if LAI is None:
            raise InvalidInputError("fc", None, "Either fc or LAI must be provided")
        fc = 1 - np.exp(-np.asarray(LAI, dtype=float) / 2)

    arrays, _ = broadcast_inputs(
        Tair=Tair, pressure=pressure, ustar=ustar, wind_zh=wind_zh, fc=fc
    )
    ustar_arr = np.atleast_1d(arrays["ustar"])
    wind_zh_arr = np.atleast_1d(arrays["wind_zh"])
    fc_arr = np.atleast_1d(arrays["fc"])
    check_positive(np.asarray(Dl, dtype=float), "Dl")

    v = np.atleast_1d(kinematic_viscosity(arrays["Tair"], arrays["pressure"], constants=constants))
    Re = hs * ustar_arr / v
    kBs = 2.46 * Re**0.25 - np.log(7.4)
    Reh = Dl * wind_zh_arr / v
    Ct = 1 * constants.Pr**-0.6667 * Reh**-0.5 * N

    kB_h = (constants.k * Cd) / (4 * Ct * ustar_arr / wind_zh_arr) * fc_arr**2 + kBs * (1 - fc_arr) ** 2
    Rb_h = kB_h / (constants.k * ustar_arr)
    return _gb_frame(Rb_h, ustar_arr, constants, pandas_index(Tair, ustar))


def Gb_constant_kB1(
    ustar: ArrayLike,
    kB_h: ArrayLike,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> pd.DataFrame:
    """Canopy boundary-layer conductance from a prescribed kB-1, ``Rb_h = kB_h / (k ustar)``."""
    arrays, _ = broadcast_inputs(ustar=ustar, kB_h=kB_h)
    ustar_arr = np.atleast_1d(arrays["ustar"])
    Rb_h = np.atleast_1d(arrays["kB_h"]) / (constants.k * ustar_arr)
    return _gb_frame(Rb_h, ustar_arr, constants, pandas_index(ustar))


def aerodynamic_conductance(
    Tair: ArrayLike,
    pressure: ArrayLike,
    wind: ArrayLike,
    ustar: ArrayLike,
    H: Optional[ArrayLike] = None,
    zr: Optional[float] = None,
    zh: Optional[float] = None,
    d: Optional[float] = None,
    z0m: Optional[float] = None,
    Dl: Optional[float] = None,
    N: int = 2,
    fc: Optional[ArrayLike] = None,
    LAI: Optional[ArrayLike] = None,
    Cd: float = 0.2,
    hs: float = 0.01,
    kB_h: Optional[ArrayLike] = None,
    use_wind_profile: bool = False,
    stab_correction: bool = True,
    stab_formulation: Union[StabilityFormulation, str] = StabilityFormulation.DYER_1970,
    Rb_model: Union[BoundaryLayerModel, str] = BoundaryLayerModel.THOM_1972,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> pd.DataFrame:
    """
    Bulk aerodynamic conductance for momentum, heat and CO2.

    The aerodynamic resistance for heat is the sum of the turbulent
    resistance for momentum and the canopy boundary-layer resistance:

    .. math:: R_{a,h} = R_{a,m} + R_{b,h}

    :math:`R_{a,m}` is either taken from the bulk relation
    ``wind / ustar**2`` (``use_wind_profile=False``) or from the
    stability-corrected logarithmic profile

    .. math::
        R_{a,m} = \\frac{\\ln\\left((z_r - d)/z_{0m}\\right) - \\psi_h}
                        {\\kappa\\,u_*}

    :math:`R_{b,h}` follows the selected *Rb_model*.

    Parameters
    ----------
    Tair : float or array_like
        Air temperature (degC).
    pressure : float or array_like
        Atmospheric pressure (kPa).
    wind : float or array_like
        Wind speed at measurement height (m s-1).
    ustar : float or array_like
        Friction velocity (m s-1).
    H : float or array_like, optional
        Sensible heat flux (W m-2); required when *stab_correction* is set.
    zr : float, optional
        Measurement height (m).
    zh : float, optional
        Canopy height (m).
    d : float, optional
        Zero-plane displacement height (m).
    z0m : float, optional
        Roughness length for momentum (m).
    Dl : float, optional
        Characteristic leaf dimension (m), for ``Choudhury_1988`` and
        ``Su_2001``.
    N : int, default ``2``
        Number of leaf sides exchanging heat (``Su_2001``).
    fc, LAI : float or array_like, optional
        Fractional vegetation cover and leaf area index.
    Cd : float, default ``0.2``
        Foliage drag coefficient (``Su_2001``).
    hs : float, default ``0.01``
        Soil roughness length (m) (``Su_2001``).
    kB_h : float or array_like, optional
        Prescribed kB-1 for ``constant_kB-1``.
    use_wind_profile : bool, default ``False``
        Use the logarithmic wind profile for :math:`R_{a,m}`.
    stab_correction : bool, default ``True``
        Apply the stability correction.
    stab_formulation : StabilityFormulation or str, default ``"Dyer_1970"``
        Stability correction functions.
    Rb_model : BoundaryLayerModel or str, default ``"Thom_1972"``
        Canopy boundary-layer conductance model.
    constants : BigleafConstants, optional
        Constants table.

    Returns
    -------
    pandas.DataFrame
        Columns ``Ga_m``, ``Ra_m``, ``Ga_h``, ``Ra_h``, ``Gb_h``, ``Rb_h``,
        ``kB_h``, ``zeta``, ``psi_h``, ``Ga_CO2``, ``Ra_CO2``, ``Gb_CO2``.
        Conductances in m s-1, resistances in s m-1.

    Raises
    ------
    InvalidInputError
        If a parameter required by the selected options is missing.
    """
    Rb_model = _select(BoundaryLayerModel, Rb_model, "Rb_model")
    formulation = _select(StabilityFormulation, stab_formulation, "stab_formulation")
    index = pandas_index(Tair, pressure, wind, ustar, H)

    def _require(**params):
        for name, value in params.items():
            if value is None:
                raise InvalidInputError(
                    name, value, f"Parameter required for Rb_model={Rb_model.value!r}"
                )

    arrays, _ = broadcast_inputs(
        Tair=Tair, pressure=pressure, wind=wind, ustar=ustar, H=np.nan if H is None else H
    )
    Tair_arr = np.atleast_1d(arrays["Tair"])
    pressure_arr = np.atleast_1d(arrays["pressure"])
    wind_arr = np.atleast_1d(arrays["wind"])
    ustar_arr = np.atleast_1d(arrays["ustar"])
    check_temperature(Tair_arr, constants.Kelvin)
    check_positive(pressure_arr, "pressure")

    MOL = None
    zeta = np.full(ustar_arr.shape, np.nan)
    psi_h = np.zeros(ustar_arr.shape)
    if stab_correction:
        if H is None or zr is None or d is None:
            raise InvalidInputError(
                "H", H, "H, zr and d are required for the stability correction"
            )
        MOL = monin_obukhov_length(
            Tair_arr, pressure_arr, ustar_arr, np.atleast_1d(arrays["H"]), constants=constants
        )
        with np.errstate(divide="ignore", invalid="ignore"):
            zeta = (zr - d) / MOL
        psi_h, _ = _psi(zeta, formulation)

    if Rb_model in (BoundaryLayerModel.CHOUDHURY_1988, BoundaryLayerModel.SU_2001):
        _require(zh=zh, d=d, z0m=z0m, Dl=Dl)
        wind_zh = wind_profile(
            zh, ustar_arr, d, z0m, MOL=MOL, stab_formulation=formulation, constants=constants
        )

    if Rb_model == BoundaryLayerModel.THOM_1972:
        gb = Gb_Thom(ustar_arr, constants=constants)
    elif Rb_model == BoundaryLayerModel.CHOUDHURY_1988:
        _require(LAI=LAI)
        gb = Gb_Choudhury(ustar_arr, wind_zh, leafwidth=Dl, LAI=LAI, constants=constants)
    elif Rb_model == BoundaryLayerModel.SU_2001:
        gb = Gb_Su(
            Tair_arr, pressure_arr, ustar_arr, wind_zh, Dl=Dl, fc=fc, LAI=LAI,
            N=N, Cd=Cd, hs=hs, constants=constants,
        )
    else:
        _require(kB_h=kB_h)
        gb = Gb_constant_kB1(ustar_arr, kB_h, constants=constants)

    Rb_h = gb["Rb_h"].to_numpy()
    if use_wind_profile and (zr is None or d is None or z0m is None):
        raise InvalidInputError(
            "z0m", z0m, "zr, d and z0m are required for the wind profile"
        )

    with np.errstate(divide="ignore", invalid="ignore"):
        if use_wind_profile:
            Ra_m = np.maximum(np.log((zr - d) / z0m) - psi_h, 0) / (constants.k * ustar_arr)
        else:
            Ra_m = wind_arr / ustar_arr**2

        Ra_h = Ra_m + Rb_h
        Ra_CO2 = Ra_m + _co2_resistance(Rb_h, constants)
        result = {
            "Ga_m": 1 / Ra_m,
            "Ra_m": Ra_m,
            "Ga_h": 1 / Ra_h,
            "Ra_h": Ra_h,
            "Gb_h": gb["Gb_h"].to_numpy(),
            "Rb_h": Rb_h,
            "kB_h": gb["kB_h"].to_numpy(),
            "zeta": zeta,
            "psi_h": psi_h,
            "Ga_CO2": 1 / Ra_CO2,
            "Ra_CO2": Ra_CO2,
            "Gb_CO2": gb["Gb_CO2"].to_numpy(),
        }
    return to_frame(result, index)
