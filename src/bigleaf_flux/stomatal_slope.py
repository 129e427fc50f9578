"""
Fitting the stomatal slope parameter of bulk stomatal conductance models.

Three semi-empirical models relating surface conductance to
photosynthesis are supported:

==========  ==============================================================
Model       Equation (Gs in mol m-2 s-1)
----------  --------------------------------------------------------------
USO         ``Gs = g0 + 1.6 * (1 + g1 / sqrt(VPD)) * GPP / Ca``
Ball&Berry  ``Gs = g0 + g1 * GPP * rH / Ca``
Leuning     ``Gs = g0 + g1 * GPP / ((Ca - Gamma) * (1 + VPD / D0))``
==========  ==============================================================

The parameters are estimated by non-linear least squares.

References:
    Medlyn B.E. et al. (2011) Reconciling the optimal and empirical
        approaches to modelling stomatal conductance. Global Change
        Biology 17, 2134-2144.
    Ball J.T., Woodrow I.E., Berry J.A. (1987) A model predicting
        stomatal conductance and its contribution to the control of
        photosynthesis under different environmental conditions.
    Leuning R. (1995) A critical appraisal of a combined
        stomatal-photosynthesis model for C3 plants. Plant, Cell and
        Environment 18, 339-355.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Union

import numpy as np
from scipy.optimize import curve_fit

from .constants import (
    DEFAULT_CONSTANTS,
    BigleafConstants,
    EsatFormula,
    StomatalSlopeModel,
    _select,
)
from .errors import InvalidInputError, NumericalNonConvergence
from .meteorology import _esat
from ._utils import ArrayLike, broadcast_inputs, check_temperature

logger = logging.getLogger(__name__)

# Starting value of g1 for each model
_G1_START = {
    StomatalSlopeModel.USO: 3.0,
    StomatalSlopeModel.BALL_BERRY: 9.0,
    StomatalSlopeModel.LEUNING: 9.0,
}

_MAX_EVALUATIONS = 10000


@dataclass(frozen=True)
class StomatalSlopeFit:
    """
    Result of :func:`stomatal_slope`.

    Attributes
    ----------
    model : StomatalSlopeModel
        Fitted model.
    params : dict
        Parameter estimates; always ``g0`` and ``g1``, plus ``D0`` for the
        Leuning model. Fixed parameters are reported with their given value.
    stderr : dict
        Standard errors of the fitted parameters only.
    n : int
        Number of records used in the fit.
    """

    model: StomatalSlopeModel
    params: Dict[str, float]
    stderr: Dict[str, float]
    n: int


def _predictor(model, GPP, Ca, VPD, rH, Gamma):
    """Return ``f(g0, g1, D0)`` giving modelled Gs for the selected model."""
    if model == StomatalSlopeModel.USO:
        return lambda g0, g1, D0: g0 + 1.6 * (1.0 + g1 / np.sqrt(VPD)) * GPP / Ca
    if model == StomatalSlopeModel.BALL_BERRY:
        return lambda g0, g1, D0: g0 + g1 * GPP * rH / Ca
    return lambda g0, g1, D0: g0 + g1 * GPP / ((Ca - Gamma) * (1.0 + VPD / D0))


def stomatal_slope(
    Tair: ArrayLike,
    GPP: ArrayLike,
    Ca: ArrayLike,
    Gs: ArrayLike,
    VPD: ArrayLike,
    model: Union[StomatalSlopeModel, str] = StomatalSlopeModel.USO,
    g0: float = 0.0,
    fitg0: bool = False,
    fitD0: bool = False,
    D0: float = 1.5,
    Gamma: float = 50.0,
    min_VPD: float = 0.01,
    Esat_formula: Union[EsatFormula, str] = EsatFormula.SONNTAG_1990,
    constants: BigleafConstants = DEFAULT_CONSTANTS,
) -> StomatalSlopeFit:
    """
    Estimate the stomatal slope parameter ``g1``.

    Parameters
    ----------
    Tair : array_like
        Air temperature (degC); used for the relative humidity of the
        Ball&Berry model.
    GPP : array_like
        Gross primary productivity (umol m-2 s-1).
    Ca : array_like
        Atmospheric CO2 concentration (umol mol-1).
    Gs : array_like
        Surface conductance to water vapour (mol m-2 s-1).
    VPD : array_like
        Vapour pressure deficit (kPa).
    model : StomatalSlopeModel or str, default ``"USO"``
        ``"USO"``, ``"Ball&Berry"`` or ``"Leuning"``.
    g0 : float, default ``0``
        Intercept (mol m-2 s-1); the starting value when *fitg0* is set.
    fitg0 : bool, default ``False``
        Estimate ``g0`` instead of holding it fixed.
    fitD0 : bool, default ``False``
        Estimate ``D0`` (Leuning only).
    D0 : float, default ``1.5``
        VPD sensitivity parameter of the Leuning model (kPa).
    Gamma : float, default ``50``
        CO2 compensation concentration of the Leuning model (umol mol-1).
    min_VPD : float, default ``0.01``
        Records with ``VPD < min_VPD`` are excluded (kPa).
    Esat_formula : EsatFormula or str, default ``"Sonntag_1990"``
        Saturation vapour pressure formulation for the relative humidity.
    constants : BigleafConstants, optional
        Constants table.

    Returns
    -------
    StomatalSlopeFit

    Raises
    ------
    InvalidInputError
        If fewer complete records than free parameters remain.
    NumericalNonConvergence
        If the least-squares fit does not converge. Its ``estimate`` holds
        the starting values and its ``residual`` the misfit at those values.
    """
    model = _select(StomatalSlopeModel, model, "model")
    Esat_formula = _select(EsatFormula, Esat_formula, "Esat_formula")

    arrays, _ = broadcast_inputs(Tair=Tair, GPP=GPP, Ca=Ca, Gs=Gs, VPD=VPD)
    arrays = {name: np.atleast_1d(arr) for name, arr in arrays.items()}
    check_temperature(arrays["Tair"], constants.Kelvin)

    complete = np.logical_and.reduce([np.isfinite(arr) for arr in arrays.values()])
    complete &= arrays["VPD"] >= min_VPD
    data = {name: arr[complete] for name, arr in arrays.items()}
    n = int(np.count_nonzero(complete))
    logger.debug(
        "%d of %d records remain for the %s fit", n, complete.size, model.value
    )

    Esat = _esat(data["Tair"], Esat_formula, constants)
    rH = np.clip((Esat - data["VPD"]) / Esat, 0.0, 1.0)
    predict = _predictor(model, data["GPP"], data["Ca"], data["VPD"], rH, Gamma)

    free = ["g1"]
    if fitg0:
        free.insert(0, "g0")
    if fitD0 and model == StomatalSlopeModel.LEUNING:
        free.append("D0")
    if n < len(free) + 1:
        raise InvalidInputError(
            "n", n, f"Too few complete records to fit {', '.join(free)}"
        )

    fixed = {"g0": g0, "g1": _G1_START[model], "D0": D0}

    def objective(_, *values):
        params = dict(fixed, **dict(zip(free, values)))
        return predict(params["g0"], params["g1"], params["D0"])

    p0 = [fixed[name] for name in free]
    try:
        popt, pcov = curve_fit(
            objective, np.arange(n, dtype=float), data["Gs"], p0=p0, maxfev=_MAX_EVALUATIONS
        )
    except RuntimeError as err:
        # curve_fit discards its last iterate on failure; report the start
        raise NumericalNonConvergence(
            f"stomatal slope ({model.value})",
            np.asarray(p0),
            data["Gs"] - objective(None, *p0),
            _MAX_EVALUATIONS,
        ) from err

    estimates = dict(zip(free, (float(value) for value in popt)))
    stderr = dict(zip(free, (float(value) for value in np.sqrt(np.diag(pcov)))))
    params = {"g0": float(g0), "g1": estimates["g1"]}
    params.update(estimates)
    if model == StomatalSlopeModel.LEUNING:
        params.setdefault("D0", float(D0))

    return StomatalSlopeFit(model=model, params=params, stderr=stderr, n=n)
