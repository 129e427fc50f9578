"""
High-level processing of a half-hourly eddy covariance dataset.

This module chains the quality-control filters with the aerodynamic and
surface conductance derivations, driven by a plain configuration
dictionary.
"""

import logging
from typing import Any, Dict

import numpy as np
import pandas as pd

from .boundary_layer import aerodynamic_conductance
from .constants import (
    BoundaryLayerModel,
    StabilityFormulation,
    SurfaceConductanceFormulation,
    _select,
    default_constants,
)
from .data_quality import (
    VALID_COLUMN,
    setinvalid_afterprecip,
    setinvalid_nongrowingseason,
    setinvalid_qualityflag,
    setinvalid_range,
)
from .surface_conductance import surface_conductance

logger = logging.getLogger(__name__)


class EcosystemPropertiesProcessor:
    """Derive ecosystem properties from filtered half-hourly flux data"""

    def __init__(self, config: Dict[str, Any]):
        """
        Initialize processor with configuration.

        Args:
            config: Dictionary of processing options and site parameters
        """
        self.config = config
        self.initialize_parameters()

    def initialize_parameters(self) -> None:
        """Initialize processing parameters from the configuration"""
        self.constants = default_constants().override(**self.config.get('constants', {}))
        self.esat_formula = self.config.get('esat_formula', 'Sonntag_1990')

        # Quality control
        self.quality_vars = self.config.get('quality_vars', [])
        self.good_quality_threshold = self.config.get('good_quality_threshold', 1.0)
        self.var_ranges = self.config.get('var_ranges', None)
        self.filter_growing_season = self.config.get('filter_growing_season', True)
        self.tGPP = self.config.get('tGPP', 0.4)
        self.ws = self.config.get('ws', 15)
        self.min_int = self.config.get('min_int', 5)
        self.filter_precip = self.config.get('filter_precip', True)
        self.min_precip = self.config.get('min_precip', 0.02)
        self.hours_after = self.config.get('hours_after', 24)

        # Site parameters
        site = self.config.get('site', {})
        self.site = {
            'zr': site.get('zr', 40.0),
            'zh': site.get('zh', 25.0),
            'd': site.get('d', None),
            'z0m': site.get('z0m', None),
            'Dl': site.get('Dl', 0.01),
            'LAI': site.get('LAI', None),
        }
        # Rule of thumb for a dense canopy
        if self.site['d'] is None:
            self.site['d'] = 0.7 * self.site['zh']
        if self.site['z0m'] is None:
            self.site['z0m'] = 0.1 * self.site['zh']

        # Conductance options
        self.Rb_model = _select(
            BoundaryLayerModel, self.config.get('Rb_model', 'Thom_1972'), 'Rb_model'
        )
        self.use_wind_profile = self.config.get('use_wind_profile', False)
        self.stab_correction = self.config.get('stab_correction', True)
        self.stab_formulation = _select(
            StabilityFormulation, self.config.get('stab_formulation', 'Dyer_1970'),
            'stab_formulation'
        )
        self.surface_conductance_formulation = _select(
            SurfaceConductanceFormulation,
            self.config.get('surface_conductance_formulation', 'Penman-Monteith'),
            'surface_conductance_formulation'
        )

    def filter_data(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Apply the configured quality-control filters.

        Args:
            df: Half-hourly data

        Returns:
            Copy of the data with the ``valid`` column narrowed by each filter
        """
        out = df
        if self.quality_vars:
            out = setinvalid_qualityflag(
                out, self.quality_vars, good_quality_threshold=self.good_quality_threshold
            )
        out = setinvalid_range(out, self.var_ranges)

        is_timeseries = isinstance(out.index, pd.DatetimeIndex)
        if self.filter_precip and is_timeseries and 'precip' in out.columns:
            out = setinvalid_afterprecip(
                out, min_precip=self.min_precip, hours_after=self.hours_after
            )
        if self.filter_growing_season and is_timeseries and 'GPP' in out.columns:
            out = setinvalid_nongrowingseason(
                out, tGPP=self.tGPP, ws=self.ws, min_int=self.min_int
            )

        logger.info(
            "%d of %d records valid after filtering",
            int(out[VALID_COLUMN].sum()), len(out)
        )
        return out

    def process(self, df: pd.DataFrame) -> pd.DataFrame:
        """
        Filter the data and derive aerodynamic and surface conductance.

        Args:
            df: Half-hourly data with columns ``Tair`` (degC), ``pressure``
                (kPa), ``wind`` (m/s), ``ustar`` (m/s), ``H``, ``LE``, ``Rn``
                (W/m^2) and ``VPD`` (kPa); ``G`` and ``S`` are optional

        Returns:
            Filtered data joined with the conductance columns
        """
        out = self.filter_data(df)
        zeros = pd.Series(0.0, index=out.index)

        logger.debug("aerodynamic conductance with Rb_model=%s", self.Rb_model.value)
        ga = aerodynamic_conductance(
            out['Tair'], out['pressure'], out['wind'], out['ustar'], out['H'],
            zr=self.site['zr'], zh=self.site['zh'], d=self.site['d'],
            z0m=self.site['z0m'], Dl=self.site['Dl'], LAI=self.site['LAI'],
            use_wind_profile=self.use_wind_profile,
            stab_correction=self.stab_correction,
            stab_formulation=self.stab_formulation,
            Rb_model=self.Rb_model,
            constants=self.constants,
        )

        gs = surface_conductance(
            out['Tair'], out['pressure'], out['Rn'],
            out.get('G', zeros).fillna(0.0), out.get('S', zeros).fillna(0.0),
            out['LE'], out['VPD'], ga['Ga_h'],
            formulation=self.surface_conductance_formulation,
            Esat_formula=self.esat_formula,
            constants=self.constants,
        )

        result = pd.concat([out, ga, gs], axis=1)
        n_gs = int(np.isfinite(result.loc[result[VALID_COLUMN], 'Gs_ms']).sum())
        logger.info("surface conductance available for %d valid records", n_gs)
        return result
