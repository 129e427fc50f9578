"""
Quality control and filtering of half-hourly eddy covariance records.

Every filter returns a new DataFrame carrying a boolean ``valid`` column.
The column is created all ``True`` when absent and is only ever narrowed:
a record invalidated by one filter stays invalid through every later one.

This module implements filtering by:
1. Quality-control flags of individual variables
2. Plausible value ranges
3. Growing-season membership derived from smoothed daily GPP
4. Proximity to precipitation events (wet canopy)

References:
    Knauer J. et al. (2018) Bigleaf - An R package for the calculation of
        physical and physiological ecosystem properties from eddy covariance
        data. PLoS ONE 13, e0201114.
    Pastorello G. et al. (2020) The FLUXNET2015 dataset and the ONEFlux
        processing pipeline for eddy covariance data. Scientific Data 7, 225.
"""

import logging
from typing import Dict, Iterable, Optional, Tuple

import numpy as np
import pandas as pd

from .constants import DEFAULT_VAR_RANGES
from .errors import InvalidInputError

logger = logging.getLogger(__name__)

VALID_COLUMN = "valid"


def _with_valid(df: pd.DataFrame) -> pd.DataFrame:
    out = df.copy()
    if VALID_COLUMN not in out.columns:
        out[VALID_COLUMN] = True
    else:
        out[VALID_COLUMN] = out[VALID_COLUMN].fillna(False).astype(bool)
    return out


def _require_columns(df: pd.DataFrame, columns: Iterable[str]) -> None:
    for column in columns:
        if column not in df.columns:
            raise InvalidInputError("column", column, "Column not found in data")


def _require_datetime_index(df: pd.DataFrame) -> None:
    if not isinstance(df.index, pd.DatetimeIndex):
        raise InvalidInputError(
            "index", type(df.index).__name__, "A DatetimeIndex is required"
        )


def _narrow(df: pd.DataFrame, bad: pd.Series, reason: str) -> None:
    newly = bad & df[VALID_COLUMN]
    df[VALID_COLUMN] = df[VALID_COLUMN] & ~bad
    logger.info("%s: %d record(s) set invalid", reason, int(newly.sum()))


def setinvalid_qualityflag(
    df: pd.DataFrame,
    vars: Iterable[str],
    qc_suffix: str = "_qc",
    good_quality_threshold: float = 1.0,
    missing_qc_as_bad: bool = True,
    setvalmissing: bool = True,
) -> pd.DataFrame:
    """
    Invalidate records whose quality flag exceeds a threshold.

    Parameters
    ----------
    df : pandas.DataFrame
        Half-hourly data.
    vars : iterable of str
        Variables to check. Each needs a companion flag column named
        ``var + qc_suffix``.
    qc_suffix : str, default ``"_qc"``
        Suffix of the quality-flag columns.
    good_quality_threshold : float, default ``1.0``
        Highest flag value regarded as good quality (e.g. ``0`` measured,
        ``1`` good gap-fill, ``2`` medium, ``3`` poor).
    missing_qc_as_bad : bool, default ``True``
        Treat records with a missing flag as bad.
    setvalmissing : bool, default ``True``
        Replace bad values of each variable by ``NaN``.

    Returns
    -------
    pandas.DataFrame
        Filtered copy of *df*.

    Raises
    ------
    InvalidInputError
        If a variable or its flag column is missing.
    """
    vars = list(vars)
    _require_columns(df, vars)
    _require_columns(df, [var + qc_suffix for var in vars])
    out = _with_valid(df)

    for var in vars:
        qc = out[var + qc_suffix]
        bad = qc > good_quality_threshold
        if missing_qc_as_bad:
            bad |= qc.isna()
        if setvalmissing:
            out.loc[bad, var] = np.nan
        _narrow(out, bad, f"quality flag of {var}")

    return out


def setinvalid_range(
    df: pd.DataFrame,
    var_ranges: Optional[Dict[str, Tuple[float, float]]] = None,
    setvalmissing: bool = True,
) -> pd.DataFrame:
    """
    Invalidate records with values outside a plausible range.

    Parameters
    ----------
    df : pandas.DataFrame
        Half-hourly data.
    var_ranges : dict, optional
        Mapping of column name to ``(min, max)``. Either bound may be
        ``None`` (open). When omitted, :data:`DEFAULT_VAR_RANGES` is applied
        to the columns present in *df*.
    setvalmissing : bool, default ``True``
        Replace out-of-range values by ``NaN``.

    Returns
    -------
    pandas.DataFrame
        Filtered copy of *df*. Missing values are not regarded as out of
        range.
    """
    if var_ranges is None:
        var_ranges = {
            var: bounds for var, bounds in DEFAULT_VAR_RANGES.items() if var in df.columns
        }
    else:
        _require_columns(df, var_ranges)
    out = _with_valid(df)

    for var, (lower, upper) in var_ranges.items():
        values = out[var]
        bad = pd.Series(False, index=out.index)
        if lower is not None:
            bad |= values < lower
        if upper is not None:
            bad |= values > upper
        if setvalmissing:
            out.loc[bad, var] = np.nan
        _narrow(out, bad, f"range of {var}")

    return out


def _flip_short_runs(mask: np.ndarray, min_int: int) -> np.ndarray:
    """Invert runs of identical values that are shorter than *min_int*."""
    mask = mask.copy()
    if mask.size == 0:
        return mask
    change = np.flatnonzero(np.diff(mask.astype(np.int8))) + 1
    starts = np.concatenate(([0], change))
    ends = np.concatenate((change, [mask.size]))
    if starts.size == 1:
        return mask
    for start, end in zip(starts, ends):
        if end - start < min_int:
            mask[start:end] = ~mask[start:end]
    return mask


def get_growing_season(
    GPPd,
    tGPP: float = 0.4,
    ws: int = 15,
    min_int: int = 5,
    warngap: bool = True,
) -> np.ndarray:
    """
    Growing-season mask from daily GPP.

    The daily series is gap-filled by linear interpolation and smoothed
    with a centred moving average of *ws* days. A day belongs to the
    growing season when its smoothed GPP reaches *tGPP* times the 95th
    percentile of the smoothed series. Periods shorter than *min_int* days
    are attributed to the surrounding season.

    Parameters
    ----------
    GPPd : array_like or pandas.Series
        Daily gross primary productivity (any unit).
    tGPP : float, default ``0.4``
        Threshold as a fraction of the 95th percentile.
    ws : int, default ``15``
        Window width of the moving average (days).
    min_int : int, default ``5``
        Minimum length of a growing or non-growing period (days).
    warngap : bool, default ``True``
        Log a warning when gaps are interpolated.

    Returns
    -------
    ndarray of bool
        ``True`` on growing-season days.

    Raises
    ------
    InvalidInputError
        If half or more of the daily values are missing.
    """
    GPPd = pd.Series(np.asarray(GPPd, dtype=float))
    missing = int(GPPd.isna().sum())
    if GPPd.size == 0 or missing >= 0.5 * GPPd.size:
        raise InvalidInputError(
            "GPPd", missing, "At least half of the daily GPP values are missing"
        )

    if missing > 0:
        if warngap:
            logger.warning(
                "%d gap(s) in daily GPP are filled by linear interpolation", missing
            )
        GPPd = GPPd.interpolate(method="linear", limit_direction="both")

    smoothed = GPPd.rolling(window=ws, center=True, min_periods=1).mean()
    growing = (smoothed >= tGPP * smoothed.quantile(0.95)).to_numpy()
    return _flip_short_runs(growing, min_int)


def setinvalid_nongrowingseason(
    df: pd.DataFrame,
    tGPP: float = 0.4,
    ws: int = 15,
    min_int: int = 5,
    gpp_col: str = "GPP",
    warngap: bool = True,
) -> pd.DataFrame:
    """
    Invalidate records outside the growing season.

    Parameters
    ----------
    df : pandas.DataFrame
        Half-hourly data with a :class:`pandas.DatetimeIndex`.
    tGPP, ws, min_int, warngap
        See :func:`get_growing_season`.
    gpp_col : str, default ``"GPP"``
        Column holding GPP.

    Returns
    -------
    pandas.DataFrame
        Filtered copy of *df*.
    """
    _require_datetime_index(df)
    _require_columns(df, [gpp_col])
    out = _with_valid(df)

    daily = out[gpp_col].resample("D").mean()
    growing = pd.Series(
        get_growing_season(daily, tGPP=tGPP, ws=ws, min_int=min_int, warngap=warngap),
        index=daily.index,
    )
    days = out.index.normalize()
    in_season = growing.reindex(days).to_numpy()
    bad = pd.Series(~in_season.astype(bool), index=out.index)
    _narrow(out, bad, "non-growing season")

    return out


def setinvalid_afterprecip(
    df: pd.DataFrame,
    min_precip: float = 0.02,
    hours_after: float = 24,
    precip_col: str = "precip",
) -> pd.DataFrame:
    """
    Invalidate records during and after precipitation.

    A record is invalid when it falls at or within *hours_after* hours of
    any record with ``precip > min_precip``, to exclude periods with a wet
    canopy and evaporation of intercepted water.

    Parameters
    ----------
    df : pandas.DataFrame
        Half-hourly data with a sorted :class:`pandas.DatetimeIndex`.
    min_precip : float, default ``0.02``
        Precipitation per record above which the record counts as an event
        (mm).
    hours_after : float, default ``24``
        Length of the excluded period following an event (h).
    precip_col : str, default ``"precip"``
        Column holding precipitation.

    Returns
    -------
    pandas.DataFrame
        Filtered copy of *df*.
    """
    _require_datetime_index(df)
    _require_columns(df, [precip_col])
    if not df.index.is_monotonic_increasing:
        raise InvalidInputError("index", "unsorted", "The DatetimeIndex must be sorted")
    out = _with_valid(df)

    event = (out[precip_col] > min_precip).astype(float)
    window = pd.Timedelta(hours=hours_after)
    wet = event.rolling(window, closed="both").max() > 0
    _narrow(out, wet, "precipitation")

    return out
