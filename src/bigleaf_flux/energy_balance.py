"""
Energy balance closure of eddy covariance measurements.

The closure compares the turbulent fluxes ``LE + H`` with the available
energy ``Rn - G - S`` both as a ratio of sums (the energy balance ratio)
and as an ordinary least squares regression.

References:
    Wilson K. et al. (2002) Energy balance closure at FLUXNET sites.
        Agricultural and Forest Meteorology 113, 223-243.
"""

import logging
from dataclasses import dataclass
from typing import Union

import numpy as np
import statsmodels.api as sm

from .errors import InvalidInputError
from ._utils import ArrayLike, broadcast_inputs, finalize

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EnergyClosure:
    """
    Summary of the energy balance closure.

    Attributes
    ----------
    n : int
        Number of complete records used.
    intercept : float
        OLS intercept of ``LE + H`` on ``Rn - G - S`` (W m-2).
    slope : float
        OLS slope (-).
    r_squared : float
        Coefficient of determination of the fit.
    EBR : float
        Energy balance ratio ``sum(LE + H) / sum(Rn - G - S)``.
    """

    n: int
    intercept: float
    slope: float
    r_squared: float
    EBR: float


def energy_closure(
    Rn: ArrayLike,
    G: ArrayLike = 0.0,
    S: ArrayLike = 0.0,
    LE: ArrayLike = np.nan,
    H: ArrayLike = np.nan,
    instantaneous: bool = False,
) -> Union[EnergyClosure, float, np.ndarray]:
    """
    Energy balance closure.

    Parameters
    ----------
    Rn : float or array_like
        Net radiation (W m-2).
    G : float or array_like, default ``0``
        Ground heat flux (W m-2).
    S : float or array_like, default ``0``
        Sum of all storage fluxes (W m-2).
    LE, H : float or array_like
        Latent and sensible heat flux (W m-2).
    instantaneous : bool, default ``False``
        Return the element-wise ratio ``(LE + H) / (Rn - G - S)`` instead of
        the aggregate statistics.

    Returns
    -------
    EnergyClosure, or float/ndarray when *instantaneous*

    Raises
    ------
    InvalidInputError
        If fewer than three complete records remain for the regression.
    """
    arrays, is_scalar = broadcast_inputs(Rn=Rn, G=G, S=S, LE=LE, H=H)
    available = arrays["Rn"] - arrays["G"] - arrays["S"]
    turbulent = arrays["LE"] + arrays["H"]

    if instantaneous:
        with np.errstate(divide="ignore", invalid="ignore"):
            return finalize(turbulent / available, is_scalar)

    available = np.atleast_1d(available)
    turbulent = np.atleast_1d(turbulent)
    complete = np.isfinite(available) & np.isfinite(turbulent)
    n = int(np.count_nonzero(complete))
    if n < 3:
        raise InvalidInputError("n", n, "Too few complete records for the energy closure")

    x = available[complete]
    y = turbulent[complete]
    logger.debug("energy closure on %d of %d records", n, complete.size)

    fit = sm.OLS(y, sm.add_constant(x, has_constant="add")).fit()
    intercept, slope = fit.params

    return EnergyClosure(
        n=n,
        intercept=float(intercept),
        slope=float(slope),
        r_squared=float(fit.rsquared),
        EBR=float(np.sum(y) / np.sum(x)),
    )
