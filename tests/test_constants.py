import dataclasses
import threading

import pytest

from bigleaf_flux.constants import (
    DEFAULT_CONSTANTS,
    ESAT_COEFFICIENTS,
    BigleafConstants,
    BoundaryLayerModel,
    EsatFormula,
    _select,
    default_constants,
)
from bigleaf_flux.errors import InvalidInputError, NumericalNonConvergence


class TestBigleafConstants:
    """Tests for the constants table"""

    def test_default_is_shared(self):
        assert default_constants() is DEFAULT_CONSTANTS

    def test_reference_values(self):
        c = default_constants()
        assert c.k == 0.41
        assert c.cp == 1004.834
        assert c.Kelvin == 273.15
        assert c["H2Omol"] == 0.01801528

    def test_immutable(self):
        with pytest.raises(dataclasses.FrozenInstanceError):
            DEFAULT_CONSTANTS.k = 0.4

    def test_override_returns_new_table(self):
        derived = DEFAULT_CONSTANTS.override(k=0.40, g=9.80665)
        assert isinstance(derived, BigleafConstants)
        assert derived.k == 0.40
        assert derived.g == 9.80665
        assert derived.cp == DEFAULT_CONSTANTS.cp
        assert DEFAULT_CONSTANTS.k == 0.41

    def test_override_unknown_name(self):
        with pytest.raises(InvalidInputError) as excinfo:
            DEFAULT_CONSTANTS.override(karman=0.4)
        assert excinfo.value.value == "karman"

    def test_mapping_access(self):
        c = default_constants()
        assert "Rd" in c.keys()
        assert set(c) == set(c.as_dict())
        with pytest.raises(KeyError):
            c["not_a_constant"]

    def test_concurrent_reads(self):
        """Concurrent overrides never disturb the shared default"""
        def derive(value):
            for _ in range(200):
                DEFAULT_CONSTANTS.override(k=value)

        threads = [threading.Thread(target=derive, args=(0.3 + i / 100,)) for i in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()
        assert DEFAULT_CONSTANTS.k == 0.41


class TestFormulaSelectors:
    """Tests for coercing formula selector tags"""

    def test_every_esat_formula_has_coefficients(self):
        assert set(ESAT_COEFFICIENTS) == set(EsatFormula)

    def test_select_from_string(self):
        assert _select(BoundaryLayerModel, "constant_kB-1", "Rb_model") == (
            BoundaryLayerModel.CONSTANT_KB1
        )

    def test_select_member_passthrough(self):
        assert _select(EsatFormula, EsatFormula.ALLEN_1998, "formula") is EsatFormula.ALLEN_1998

    def test_select_unknown(self):
        with pytest.raises(InvalidInputError) as excinfo:
            _select(EsatFormula, "Goff_Gratch", "formula")
        assert excinfo.value.argument == "formula"
        assert "Sonntag_1990" in str(excinfo.value)


class TestErrors:
    """Tests for the exception types"""

    def test_invalid_input_is_value_error(self):
        err = InvalidInputError("pressure", -1.0, "Value must be strictly positive")
        assert isinstance(err, ValueError)
        assert "pressure=-1.0" in str(err)

    def test_non_convergence_carries_diagnostics(self):
        err = NumericalNonConvergence("dew point", 18.0, 0.5, 3)
        assert isinstance(err, ArithmeticError)
        assert err.estimate == 18.0
        assert err.residual == 0.5
        assert err.iterations == 3
        assert "3 iterations" in str(err)
