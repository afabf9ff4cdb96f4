# src/logpolish/curves/units.py
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple

import numpy as np

from logpolish.io.logfile import null_mask

# =============================================================================
# Unit spelling normalization
# =============================================================================

# Alias (raw/variant) -> canonical unit spelling used as conversion-table key
UNIT_ALIASES: Dict[str, str] = {
    # Depth
    "F": "FT",
    "FT": "FT",
    "FEET": "FT",
    "M": "M",
    "METERS": "M",
    "METRES": "M",

    # Gamma ray
    "GAPI": "GAPI",
    "API": "API",
    "API-GR": "GAPI",

    # SP
    "MV": "MV",
    "MILLIVOLTS": "MV",
    "V": "V",

    # Density
    "G/CC": "G/CC",
    "GM/CC": "G/CC",
    "G/C3": "G/CC",
    "GM/C3": "G/CC",
    "G/CM3": "G/CM3",
    "GM/CM3": "G/CM3",
    "KG/M3": "KG/M3",

    # Sonic
    "USEC/FT": "US/FT",
    "US/FT": "US/FT",
    "US/F": "US/FT",
    "USEC/M": "US/M",
    "US/M": "US/M",
    "MS/M": "MS/M",

    # Caliper
    "IN": "IN",
    "INCH": "IN",
    "INCHES": "IN",
    "MM": "MM",
    "CM": "CM",

    # Resistivity
    "OHMM": "OHMM",
    "OHM-M": "OHMM",
    "OHM.M": "OHMM",
    "OHM/M": "OHMM",
    "OHMFT": "OHMFT",
    "OHM-FT": "OHMFT",
    "OHM.FT": "OHMFT",

    # Porosity: fractional and percent kept apart so they can be converted
    "V/V": "V/V",
    "VV": "V/V",
    "FRAC": "FRAC",
    "DEC": "FRAC",
    "CFCF": "V/V",
    "PU": "PU",
    "P.U.": "PU",
    "%": "PU",
    "PERC": "PU",
    "PERCENT": "PU",
    "PCT": "PU",

    # Photoelectric
    "B/E": "B/E",
    "BARNS/E": "B/E",

    # Temperature
    "DEGF": "DEGF",
    "DEGC": "DEGC",

    "NONE": "",
}

_WS_RE = re.compile(r"\s+")
_UNIT_BAD_RE = re.compile(r"[^A-Z0-9_/.\-%]+")


def norm_unit(unit: Optional[str]) -> str:
    """
    Canonicalize a unit spelling (upper-case, whitespace removed, alias-collapsed).
    Unknown units pass through cleaned.
    """
    if unit is None:
        return ""
    u = unit.strip()
    if not u:
        return ""
    u = _WS_RE.sub("", u).upper().replace("\\", "/")
    u = _UNIT_BAD_RE.sub("", u)
    return UNIT_ALIASES.get(u, u)


# =============================================================================
# Conversion table (multiplicative factors only)
# =============================================================================

_PAIRS: Tuple[Tuple[str, str, float], ...] = (
    ("FT", "M", 0.3048),
    ("G/CC", "KG/M3", 1000.0),
    ("G/CC", "G/CM3", 1.0),
    ("G/CM3", "KG/M3", 1000.0),
    ("US/FT", "US/M", 3.28084),
    ("US/FT", "MS/M", 0.00328084),
    ("US/M", "MS/M", 0.001),
    ("OHMM", "OHMFT", 3.28084),
    ("V/V", "FRAC", 1.0),
    ("V/V", "PU", 100.0),
    ("FRAC", "PU", 100.0),
    ("IN", "MM", 25.4),
    ("IN", "CM", 2.54),
    ("CM", "MM", 10.0),
    ("GAPI", "API", 1.0),
    ("V", "MV", 1000.0),
)


def _build_table() -> Dict[str, Dict[str, float]]:
    table: Dict[str, Dict[str, float]] = {}
    for a, b, f in _PAIRS:
        table.setdefault(a, {})[b] = float(f)
        table.setdefault(b, {})[a] = 1.0 / float(f)
    return table


CONVERSIONS: Dict[str, Dict[str, float]] = _build_table()

# Canonical (API) mnemonic -> standard unit
STANDARD_UNITS: Dict[str, str] = {
    "DEPT": "FT",
    "GR": "GAPI",
    "RT": "OHMM",
    "RHOB": "G/CC",
    "NPHI": "V/V",
    "PE": "B/E",
    "SP": "MV",
    "CAL": "IN",
    "DT": "US/FT",
    "BS": "IN",
    "TEMP": "DEGF",
}


@dataclass(frozen=True)
class UnitConversion:
    value: float
    factor: float
    formula: str
    from_unit: str
    to_unit: str
    converted: bool

    @property
    def available(self) -> bool:
        return self.converted or self.from_unit == self.to_unit


def conversion_factor(from_unit: Optional[str], to_unit: Optional[str]) -> Optional[float]:
    a = norm_unit(from_unit)
    b = norm_unit(to_unit)
    if a == b:
        return 1.0
    return CONVERSIONS.get(a, {}).get(b)


def convert(value: float, from_unit: Optional[str], to_unit: Optional[str]) -> UnitConversion:
    """
    Convert a single value. Missing table entries are advisory: the value comes back
    unchanged with factor 1.0 and a "No conversion available" formula.
    """
    a = norm_unit(from_unit)
    b = norm_unit(to_unit)
    if a == b:
        return UnitConversion(value=value, factor=1.0, formula=f"{a} = {b}", from_unit=a, to_unit=b, converted=False)

    f = CONVERSIONS.get(a, {}).get(b)
    if f is None:
        return UnitConversion(
            value=value,
            factor=1.0,
            formula=f"No conversion available: {a or '?'} to {b or '?'}",
            from_unit=a,
            to_unit=b,
            converted=False,
        )
    return UnitConversion(
        value=float(value) * f,
        factor=f,
        formula=f"{a} × {f:g} = {b}",
        from_unit=a,
        to_unit=b,
        converted=True,
    )


def convert_array(
    values: np.ndarray,
    from_unit: Optional[str],
    to_unit: Optional[str],
    *,
    null_value: float,
) -> Tuple[np.ndarray, UnitConversion]:
    """
    Vectorized convert; sentinel samples are left untouched.
    """
    x = np.asarray(values, dtype="float64").copy()
    info = convert(1.0, from_unit, to_unit)
    if info.converted and info.factor != 1.0:
        ok = ~null_mask(x, null_value)
        x[ok] = x[ok] * info.factor
    return x, info


def standard_unit_for(canonical_mnemonic: Optional[str]) -> str:
    from logpolish.curves.normalize_header import aliases_for

    fam = aliases_for(canonical_mnemonic or "")
    key = fam[0] if fam else ""
    return STANDARD_UNITS.get(key, "")
