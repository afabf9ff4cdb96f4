# src/logpolish/curves/__init__.py
from __future__ import annotations

from .normalize_header import MnemonicMatch, StandardizationResult, standardize_curves, standardize_mnemonic
from .units import UnitConversion, convert, convert_array, norm_unit, standard_unit_for

__all__ = [
    "MnemonicMatch",
    "StandardizationResult",
    "standardize_curves",
    "standardize_mnemonic",
    "UnitConversion",
    "convert",
    "convert_array",
    "norm_unit",
    "standard_unit_for",
]
