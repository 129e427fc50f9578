"""
Exception types raised by the formula functions.

Two conditions are fatal to a single call:

* :class:`InvalidInputError` - an argument lies outside its physically
  defined domain, sequences cannot be aligned, or a formula selector is
  not supported.
* :class:`NumericalNonConvergence` - an iterative solver exhausted its
  iteration budget before reaching the requested accuracy.

Values that are only slightly outside their expected range (for example a
measured vapour pressure just above saturation) are clamped and logged
instead of raised.
"""

from typing import Any

import numpy as np


class InvalidInputError(ValueError):
    """
    Raised when an argument is outside its physically valid domain.

    Parameters
    ----------
    argument : str
        Name of the offending argument.
    value : Any
        Offending value (the first one found for array input).
    message : str
        Human-readable description of the violated constraint.
    """

    def __init__(self, argument: str, value: Any, message: str):
        self.argument = argument
        self.value = value
        super().__init__(f"{message}: {argument}={value!r}")


class NumericalNonConvergence(ArithmeticError):
    """
    Raised when an iterative solve fails to reach its accuracy target.

    Attributes
    ----------
    estimate : float or ndarray
        Last estimate of the solution.
    residual : float or ndarray
        Residual of the solved equation at ``estimate``.
    iterations : int
        Number of iterations performed.
    """

    def __init__(self, quantity: str, estimate, residual, iterations: int):
        self.quantity = quantity
        self.estimate = estimate
        self.residual = residual
        self.iterations = iterations
        worst = float(np.nanmax(np.abs(residual))) if np.size(residual) else np.nan
        super().__init__(
            f"{quantity} did not converge after {iterations} iterations "
            f"(max |residual| = {worst:.3g})"
        )
