# bigleaf_flux/__init__.py
import logging

from . import boundary_layer
from . import constants
from . import data_quality
from . import energy_balance
from . import meteorology
from . import stomatal_slope
from . import surface_conductance
from . import unit_conversions

from .boundary_layer import (
    Gb_Choudhury,
    Gb_constant_kB1,
    Gb_Su,
    Gb_Thom,
    aerodynamic_conductance,
    monin_obukhov_length,
    reynolds_number,
    stability_correction,
    stability_parameter,
    wind_profile,
)
from .constants import (
    DEFAULT_CONSTANTS,
    BigleafConstants,
    BoundaryLayerModel,
    EsatFormula,
    PotentialETApproach,
    StabilityFormulation,
    StomatalSlopeModel,
    SurfaceConductanceFormulation,
    default_constants,
)
from .data_quality import (
    get_growing_season,
    setinvalid_afterprecip,
    setinvalid_nongrowingseason,
    setinvalid_qualityflag,
    setinvalid_range,
)
from .energy_balance import EnergyClosure, energy_closure
from .errors import InvalidInputError, NumericalNonConvergence
from .main import EcosystemPropertiesProcessor
from .meteorology import (
    air_density,
    dew_point,
    kinematic_viscosity,
    latent_heat_vaporization,
    pressure_from_elevation,
    psychrometric_constant,
    saturation_vapor_pressure,
    saturation_vapor_pressure_slope,
    virtual_temperature,
    wetbulb_temperature,
)
from .stomatal_slope import StomatalSlopeFit, stomatal_slope
from .surface_conductance import potential_ET, surface_conductance
from .unit_conversions import (
    ET_to_LE,
    LE_to_ET,
    PPFD_to_Rg,
    Rg_to_PPFD,
    VPD_to_e,
    VPD_to_q,
    VPD_to_rH,
    e_to_q,
    e_to_rH,
    e_to_VPD,
    gC_to_umolCO2,
    kg_to_mol,
    mol_to_ms,
    ms_to_mol,
    q_to_e,
    q_to_VPD,
    rH_to_e,
    rH_to_VPD,
    umolCO2_to_gC,
)

__version__ = "0.1.0"

logging.getLogger(__name__).addHandler(logging.NullHandler())
