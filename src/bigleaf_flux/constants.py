"""
Physical constants and formula selectors for big-leaf ecosystem calculations.

This module provides:
1. The default table of physical and conversion constants
2. Enumerations selecting among alternative empirical parameterisations
3. Coefficient tables for the saturation vapour pressure formulations
4. Default plausible ranges used by the quality-control filters
"""

from dataclasses import dataclass, fields, replace, asdict
from enum import Enum
from typing import Dict, Tuple, Iterator

from .errors import InvalidInputError


@dataclass(frozen=True)
class BigleafConstants:
    """
    Immutable table of the physical and unit-conversion constants used by
    every formula in the package.

    Instances are passed into the formula functions through their
    ``constants`` keyword.  The table cannot be modified in place; use
    :meth:`override` to derive a variant with one or more values replaced.

    Values may be read either as attributes (``c.k``) or with mapping-style
    access (``c["k"]``).

    Examples
    --------
    >>> c = default_constants()
    >>> c.k, c["H2Omol"]
    (0.41, 0.01801528)
    >>> c.override(k=0.40).k
    0.4
    >>> c.k
    0.41
    """

    # physical constants
    cp: float = 1004.834  # specific heat of air at constant pressure (J/K/kg)
    Rgas: float = 8.31451  # universal gas constant (J/mol/K)
    Rv: float = 461.5  # gas constant of water vapor (J/kg/K)
    Rd: float = 287.0586  # gas constant of dry air (J/kg/K)
    Md: float = 0.0289645  # molar mass of dry air (kg/mol)
    Mw: float = 0.0180153  # molar mass of water vapor (kg/mol)
    eps: float = 0.622  # ratio of molar masses of water vapor and dry air
    g: float = 9.81  # gravitational acceleration (m/s^2)
    solar_constant: float = 1366.1  # solar radiation at earth distance (W/m^2)
    pressure0: float = 101325.0  # reference atmospheric pressure at sea level (Pa)
    Tair0: float = 273.15  # reference air temperature (K)
    k: float = 0.41  # von Karman constant
    Cmol: float = 0.012011  # molar mass of carbon (kg/mol)
    Omol: float = 0.0159994  # molar mass of oxygen (kg/mol)
    H2Omol: float = 0.01801528  # molar mass of water (kg/mol)
    sigma: float = 5.670367e-08  # Stefan-Boltzmann constant (W/m^2/K^4)
    Pr: float = 0.71  # Prandtl number
    Sc_CO2: float = 1.07  # Schmidt number for CO2
    Le067: float = 0.93  # Lewis number for water vapor to the power of 0.67

    # conversion constants
    Kelvin: float = 273.15  # degree Celsius to Kelvin
    DwDc: float = 1.6  # ratio of molecular diffusivities of water vapor and CO2
    days2seconds: float = 86400.0
    kPa2Pa: float = 1000.0
    Pa2kPa: float = 0.001
    umol2mol: float = 1e-06
    mol2umol: float = 1e06
    kg2g: float = 1000.0
    g2kg: float = 0.001
    kJ2J: float = 1000.0
    J2kJ: float = 0.001
    se_median: float = 1.253  # standard error of the mean to that of the median
    frac2percent: float = 100.0

    def __getitem__(self, name: str) -> float:
        if name not in self.keys():
            raise KeyError(name)
        return getattr(self, name)

    def __iter__(self) -> Iterator[str]:
        return iter(self.keys())

    def keys(self) -> Tuple[str, ...]:
        return tuple(f.name for f in fields(self))

    def as_dict(self) -> Dict[str, float]:
        return asdict(self)

    def override(self, **values: float) -> "BigleafConstants":
        """
        Return a copy of the table with the given constants replaced.

        Parameters
        ----------
        **values : float
            Constant names and their new values.

        Returns
        -------
        BigleafConstants
            A new table; the receiver is left untouched.

        Raises
        ------
        InvalidInputError
            If a name is not a known constant.
        """
        unknown = sorted(set(values) - set(self.keys()))
        if unknown:
            raise InvalidInputError(
                "constants", unknown[0], "Unknown constant name"
            )
        return replace(self, **{name: float(v) for name, v in values.items()})


DEFAULT_CONSTANTS = BigleafConstants()


def default_constants() -> BigleafConstants:
    """Return the process-wide default constants table."""
    return DEFAULT_CONSTANTS


class EsatFormula(str, Enum):
    """Empirical formulations of the saturation vapour pressure curve"""

    SONNTAG_1990 = "Sonntag_1990"
    ALDUCHOV_1996 = "Alduchov_1996"
    ALLEN_1998 = "Allen_1998"


class StabilityFormulation(str, Enum):
    """Integrated stability correction functions for heat and momentum"""

    DYER_1970 = "Dyer_1970"
    BUSINGER_1971 = "Businger_1971"


class BoundaryLayerModel(str, Enum):
    """Canopy boundary-layer (quasi-laminar) conductance models"""

    THOM_1972 = "Thom_1972"
    CHOUDHURY_1988 = "Choudhury_1988"
    SU_2001 = "Su_2001"
    CONSTANT_KB1 = "constant_kB-1"


class SurfaceConductanceFormulation(str, Enum):
    """Ways of deriving bulk surface conductance from measured fluxes"""

    PENMAN_MONTEITH = "Penman-Monteith"
    FLUX_GRADIENT = "Flux-Gradient"


class PotentialETApproach(str, Enum):
    """Potential evapotranspiration approaches"""

    PRIESTLEY_TAYLOR = "Priestley-Taylor"
    PENMAN_MONTEITH = "Penman-Monteith"


class StomatalSlopeModel(str, Enum):
    """Stomatal conductance models whose slope parameter can be fitted"""

    USO = "USO"
    BALL_BERRY = "Ball&Berry"
    LEUNING = "Leuning"


# Coefficients (a [Pa], b [-], c [degC]) of e_sat = a * exp(b*T / (c + T))
ESAT_COEFFICIENTS = {
    EsatFormula.SONNTAG_1990: (611.2, 17.62, 243.12),
    EsatFormula.ALDUCHOV_1996: (610.94, 17.625, 243.04),
    EsatFormula.ALLEN_1998: (610.8, 17.27, 237.3),
}

# Stability correction coefficients: stable-side slopes x_h and x_m, and the
# unstable-side factor a_h and gammas of y = (1 - gamma * zeta)^p
STABILITY_COEFFICIENTS = {
    StabilityFormulation.DYER_1970: {
        "x_h": -5.0,
        "x_m": -5.0,
        "a_h": 1.0,
        "gamma_h": 16.0,
        "gamma_m": 16.0,
    },
    StabilityFormulation.BUSINGER_1971: {
        "x_h": -7.8,
        "x_m": -6.0,
        "a_h": 0.95,
        "gamma_h": 11.6,
        "gamma_m": 19.3,
    },
}

# Plausible ranges used by the range filter when none are given
DEFAULT_VAR_RANGES = {
    "Tair": (-50.0, 60.0),  # degC
    "pressure": (60.0, 110.0),  # kPa
    "VPD": (0.0, 10.0),  # kPa
    "rH": (0.0, 1.0),  # -
    "Rg": (-50.0, 1500.0),  # W/m^2
    "Rn": (-200.0, 1200.0),  # W/m^2
    "LE": (-200.0, 1000.0),  # W/m^2
    "H": (-500.0, 1000.0),  # W/m^2
    "G": (-250.0, 400.0),  # W/m^2
    "ustar": (0.0, 5.0),  # m/s
    "wind": (0.0, 40.0),  # m/s
    "GPP": (-10.0, 100.0),  # umol/m^2/s
    "Ca": (150.0, 1000.0),  # umol/mol
    "precip": (0.0, 100.0),  # mm
}


def _select(enum_type, value, argument: str):
    """Coerce *value* to a member of *enum_type*."""
    try:
        return enum_type(value)
    except ValueError:
        allowed = ", ".join(member.value for member in enum_type)
        raise InvalidInputError(
            argument, value, f"Unsupported formula selector (expected one of: {allowed})"
        ) from None
