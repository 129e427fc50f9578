"""
Helpers shared by the element-wise formula functions.

Every formula accepts scalars, lists, NumPy arrays or pandas Series.  Inputs
are converted to float arrays and broadcast to a common shape; missing values
become ``NaN`` and propagate through the arithmetic element by element.
Physically impossible values abort the whole call with
:class:`~bigleaf_flux.errors.InvalidInputError`.
"""

from typing import Dict, Optional, Tuple, Union

import numpy as np
import pandas as pd

from .errors import InvalidInputError

ArrayLike = Union[float, np.ndarray, pd.Series, list]


def broadcast_inputs(**inputs: ArrayLike) -> Tuple[Dict[str, np.ndarray], bool]:
    """
    Convert named inputs to float arrays of one broadcast shape.

    Returns
    -------
    arrays : dict of ndarray
        Broadcast arrays keyed by argument name, in the order given.
    is_scalar : bool
        ``True`` when every input was a scalar.

    Raises
    ------
    InvalidInputError
        If the shapes cannot be broadcast together, e.g. sequences of
        different lengths.
    """
    is_scalar = all(np.ndim(value) == 0 for value in inputs.values())
    arrays = {name: np.asarray(value, dtype=float) for name, value in inputs.items()}

    try:
        shape = np.broadcast_shapes(*(arr.shape for arr in arrays.values()))
    except ValueError:
        shapes = {name: arr.shape for name, arr in arrays.items()}
        raise InvalidInputError(
            "shapes", shapes, "Input arrays have incompatible shapes"
        ) from None

    arrays = {name: np.broadcast_to(arr, shape) for name, arr in arrays.items()}
    return arrays, is_scalar


def finalize(result, is_scalar: bool):
    """Return a Python float for scalar calls and an ndarray otherwise."""
    result = np.asarray(result, dtype=float)
    if is_scalar:
        return float(result.item())
    return result


def _first_offender(values: np.ndarray, mask: np.ndarray) -> float:
    return float(np.asarray(values)[mask].flat[0])


def check_temperature(Tair: np.ndarray, kelvin: float, argument: str = "Tair") -> None:
    """Reject temperatures (degC) at or below absolute zero."""
    bad = Tair <= -kelvin
    if np.any(bad):
        raise InvalidInputError(
            argument, _first_offender(Tair, bad), "Temperature at or below absolute zero"
        )


def check_positive(values: np.ndarray, argument: str) -> None:
    """Reject zero or negative values, ignoring missing ones."""
    bad = values <= 0
    if np.any(bad):
        raise InvalidInputError(
            argument, _first_offender(values, bad), "Value must be strictly positive"
        )


def pandas_index(*values) -> Optional[pd.Index]:
    """Index of the first pandas Series among *values*, if any."""
    for value in values:
        if isinstance(value, pd.Series):
            return value.index
    return None


def to_frame(columns: Dict[str, np.ndarray], index: Optional[pd.Index] = None) -> pd.DataFrame:
    """
    Assemble equally shaped result arrays into a DataFrame.

    Scalar results give a single-row frame; *index* is used when its
    length matches the results.
    """
    columns = {name: np.atleast_1d(np.asarray(arr, dtype=float)) for name, arr in columns.items()}
    n = max(len(arr) for arr in columns.values())
    columns = {name: np.array(np.broadcast_to(arr, (n,))) for name, arr in columns.items()}
    if index is not None and len(index) != n:
        index = None
    return pd.DataFrame(columns, index=index)
