from __future__ import annotations

import numpy as np
import pytest

from conftest import NULL
from logpolish.curves.units import (
    conversion_factor,
    convert,
    convert_array,
    norm_unit,
    standard_unit_for,
)


def test_norm_unit_aliases() -> None:
    assert norm_unit(" gm/cc ") == "G/CC"
    assert norm_unit("ohm.m") == "OHMM"
    assert norm_unit("%") == "PU"
    assert norm_unit("feet") == "FT"
    assert norm_unit(None) == ""
    assert norm_unit("furlongs") == "FURLONGS"


def test_identity_conversion() -> None:
    r = convert(2.5, "G/CC", "g/cc")
    assert r.value == 2.5
    assert r.factor == 1.0
    assert r.converted is False
    assert r.available


def test_feet_to_metres() -> None:
    r = convert(100.0, "FT", "M")
    assert r.converted
    assert r.value == pytest.approx(30.48)
    assert conversion_factor("M", "FT") == pytest.approx(1.0 / 0.3048)


def test_density_to_si() -> None:
    assert convert(2.65, "G/CC", "KG/M3").value == pytest.approx(2650.0)


def test_unknown_pair_is_advisory() -> None:
    r = convert(7.0, "GAPI", "OHMM")
    assert r.value == 7.0
    assert r.factor == 1.0
    assert not r.converted
    assert "No conversion available" in r.formula
    assert conversion_factor("GAPI", "OHMM") is None


def test_convert_array_skips_sentinels() -> None:
    x = np.array([20.0, NULL, 15.0])
    out, info = convert_array(x, "PU", "V/V", null_value=NULL)
    assert info.converted
    np.testing.assert_allclose(out, [0.2, NULL, 0.15])
    assert x[0] == 20.0


def test_standard_units() -> None:
    assert standard_unit_for("NPHI") == "V/V"
    assert standard_unit_for("CALI") == "IN"
    assert standard_unit_for("DTC") == "US/FT"
    assert standard_unit_for("XYZ") == ""
