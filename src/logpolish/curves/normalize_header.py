# src/logpolish/curves/normalize_header.py
from __future__ import annotations

import re
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Dict, List, Literal, Mapping, Optional, Sequence, Tuple

if TYPE_CHECKING:
    from logpolish.config.schema import MnemonicOptions
    from logpolish.io.logfile import LogFile

# =============================================================================
# Canonicalization tables (mnemonics)
# =============================================================================

MnemonicStandard = Literal["api", "cwls", "custom"]

# Canonical mnemonic -> alias family (API naming).
#
# Design intent:
# - The canonical name is listed first in its own family.
# - Order matters: matching walks this table top to bottom, so families whose
#   short aliases are substrings of other mnemonics come later.
MNEMONIC_DATABASE: Dict[str, Tuple[str, ...]] = {
    "DEPT": ("DEPT", "DEPTH", "DPTH", "MD"),
    "GR": ("GR", "SGR", "CGR", "GAMMA", "GAPI", "GRD", "GRS", "HCGR", "GR_EDTC"),
    "RHOB": ("RHOB", "RHOZ", "DEN", "DENSITY", "DENB", "DENC", "ZDEN"),
    "NPHI": ("NPHI", "TNPH", "NEU", "NEUTRON", "PHIN", "NPOR", "CNPOR", "TNPHI"),
    "RT": ("RT", "ILD", "MSFL", "RES", "RESIST", "AT90", "AT10", "RILD", "LLD", "RDEP"),
    "PE": ("PE", "PEF", "PHOTOELEC", "PHOTO", "PEA", "PEFZ"),
    "CAL": ("CAL", "CALI", "CALIPER", "DCAL", "HCAL"),
    "DT": ("DT", "AC", "SONIC", "DTCO", "DTC", "TRANSIT"),
    "SP": ("SP", "SELFPOT", "SPR", "SPS", "SSP"),
    "BS": ("BS", "BIT", "BITSIZE", "DRILL"),
    "TEMP": ("TEMP", "TEMPERATURE", "BHT", "BHTV"),
}

# CWLS canonical spellings for the API canonical names (identity when absent).
CWLS_RENAMES: Dict[str, str] = {
    "CAL": "CALI",
    "PE": "PEF",
    "DT": "DTC",
    "RT": "RT",
}

# Canonical mnemonic -> (semantic curve category, display label)
CANONICAL_CATEGORIES: Dict[str, Tuple[str, str]] = {
    "DEPT": ("depth", "Depth"),
    "GR": ("gamma_ray", "Gamma Ray"),
    "RT": ("resistivity", "Resistivity"),
    "RHOB": ("density", "Density"),
    "NPHI": ("porosity", "Neutron"),
    "PE": ("photoelectric", "Photoelectric"),
    "SP": ("sp", "Spontaneous Potential"),
    "CAL": ("caliper", "Caliper"),
    "DT": ("sonic", "Acoustic"),
    "BS": ("drilling", "Bit Size"),
    "TEMP": ("temperature", "Temperature"),
}

# Interpretation outputs: already-computed curves, never conditioned.
COMPUTED_MNEMONICS = frozenset({
    "PHIE", "PHIT", "PHID", "SW", "SWE", "SWT", "VSH", "VCL", "BVW", "PERM", "KPERM", "RW",
})

DEPTH_MNEMONICS = frozenset({"DEPT", "DEPTH", "DPTH", "MD", "TVD"})

UNKNOWN_CATEGORY = "UNKNOWN"

CONFIDENCE_EXACT = 100
CONFIDENCE_CANONICAL = 95
CONFIDENCE_CONTAINS = 85

# =============================================================================
# Token cleaning
# =============================================================================

_WS_RE = re.compile(r"\s+")
# Keep ":" long enough to strip LAS duplicate suffixes (GR:1, GR:2)
_MNEM_BAD_RE = re.compile(r"[^A-Z0-9_:/\-]+")
_MNEM_SUFFIX_RE = re.compile(r":\d+$")


def clean_mnemonic(x: Optional[str]) -> str:
    if x is None:
        return ""
    s = x.strip()
    if not s:
        return ""
    s = _WS_RE.sub("", s).upper()
    s = _MNEM_BAD_RE.sub("", s)
    return _MNEM_SUFFIX_RE.sub("", s)


# =============================================================================
# Matching
# =============================================================================

@dataclass(frozen=True)
class MnemonicMatch:
    original: str
    standardized: str
    confidence: int
    category: str
    curve_type: str
    matched_alias: str = ""
    rule: str = "none"

    @property
    def matched(self) -> bool:
        return self.confidence > 0


def _merged_database(
    custom_aliases: Optional[Mapping[str, Sequence[str]]],
) -> List[Tuple[str, Tuple[str, ...]]]:
    """
    Custom families first (they win ties), then the built-in table.
    """
    out: List[Tuple[str, Tuple[str, ...]]] = []
    if custom_aliases:
        for canon, variants in custom_aliases.items():
            c = clean_mnemonic(canon)
            if not c:
                continue
            fam = [c] + [v for v in (clean_mnemonic(a) for a in variants) if v and v != c]
            out.append((c, tuple(fam)))
    out.extend(MNEMONIC_DATABASE.items())
    return out


def _contains(a: str, b: str) -> bool:
    shorter, longer = (a, b) if len(a) <= len(b) else (b, a)
    return len(shorter) >= 2 and shorter in longer


def _render(canon: str, standard: MnemonicStandard) -> str:
    if standard == "cwls":
        return CWLS_RENAMES.get(canon, canon)
    return canon


def curve_category_for(canonical: Optional[str]) -> Tuple[str, str]:
    """
    (semantic category, display label) for an API canonical mnemonic.
    Accepts CWLS spellings as well.
    """
    c = clean_mnemonic(canonical)
    if c in CANONICAL_CATEGORIES:
        return CANONICAL_CATEGORIES[c]
    for api, cwls in CWLS_RENAMES.items():
        if c == cwls:
            return CANONICAL_CATEGORIES[api]
    return "custom", "Other"


def standardize_mnemonic(
    mnemonic: str,
    *,
    standard: MnemonicStandard = "api",
    custom_aliases: Optional[Mapping[str, Sequence[str]]] = None,
) -> MnemonicMatch:
    """
    Map a raw mnemonic to its canonical name.

    Priority across the whole table:
      1) exact alias match           -> 100
      2) raw equals a canonical name -> 95
      3) containment either way      -> 85
      4) no match                    -> 0, name unchanged, category UNKNOWN

    Pure lookup; never raises.
    """
    raw = mnemonic if isinstance(mnemonic, str) else str(mnemonic or "")
    m = clean_mnemonic(raw)
    db = _merged_database(custom_aliases if standard == "custom" else None)

    def _hit(canon: str, alias: str, conf: int, rule: str) -> MnemonicMatch:
        curve_type, label = curve_category_for(canon)
        return MnemonicMatch(
            original=raw,
            standardized=_render(canon, standard),
            confidence=conf,
            category=label,
            curve_type=curve_type,
            matched_alias=alias,
            rule=rule,
        )

    if m:
        for canon, variants in db:
            if m in variants:
                return _hit(canon, m, CONFIDENCE_EXACT, "exact")

        for canon, _variants in db:
            if m == canon or m == _render(canon, standard):
                return _hit(canon, canon, CONFIDENCE_CANONICAL, "canonical")

        for canon, variants in db:
            for v in variants:
                if _contains(m, v):
                    return _hit(canon, v, CONFIDENCE_CONTAINS, "contains")

    return MnemonicMatch(
        original=raw,
        standardized=raw,
        confidence=0,
        category=UNKNOWN_CATEGORY,
        curve_type="custom",
    )


def infer_data_type(mnemonic: str, *, position: int) -> str:
    """
    'depth' for the first column or a depth alias, 'computed' for interpretation
    outputs, else 'log'.
    """
    m = clean_mnemonic(mnemonic)
    if position == 0 or m in DEPTH_MNEMONICS:
        return "depth"
    if m in COMPUTED_MNEMONICS:
        return "computed"
    return "log"


def aliases_for(canonical: str) -> List[str]:
    c = clean_mnemonic(canonical)
    for api, cwls in CWLS_RENAMES.items():
        if c == cwls:
            c = api
            break
    return list(MNEMONIC_DATABASE.get(c, (c,) if c else ()))


# =============================================================================
# Stage over a whole log
# =============================================================================

@dataclass(frozen=True)
class StandardizationResult:
    log: "LogFile"
    mappings: Tuple[Dict[str, object], ...] = ()
    conversions: Tuple[Dict[str, object], ...] = ()
    suggestions: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()

    @property
    def n_standardized(self) -> int:
        return sum(1 for m in self.mappings if m.get("applied"))

    def metrics(self) -> Dict[str, object]:
        confs = [int(m["confidence"]) for m in self.mappings if m.get("applied")]
        return {
            "curves_total": len(self.mappings),
            "curves_standardized": self.n_standardized,
            "mean_confidence": (float(sum(confs)) / len(confs)) if confs else 0.0,
            "units_converted": sum(1 for c in self.conversions if c.get("converted")),
            "suggestions": len(self.suggestions),
        }


def standardize_curves(log: "LogFile", opts: "MnemonicOptions") -> StandardizationResult:
    """
    Apply mnemonic standardization (and optional unit conversion) to every curve.

    Returns a new LogFile; the input's grid is never written to.
    Matches below 95 are only applied when opts.auto_standardize is set; the rest
    are reported as suggestions. Unmapped names and unconvertible units are
    advisory findings.
    """
    from logpolish.curves.units import convert_array, norm_unit, standard_unit_for

    custom = opts.custom_aliases if opts.standard == "custom" else None
    grid = log.grid
    taken = {c.mnemonic.upper() for c in log.curves}

    curves = []
    mappings: List[Dict[str, object]] = []
    conversions: List[Dict[str, object]] = []
    suggestions: List[str] = []
    warnings: List[str] = []

    for i, c in enumerate(log.curves):
        m = standardize_mnemonic(c.original_mnemonic or c.mnemonic, standard=opts.standard, custom_aliases=custom)
        applied = m.matched and (opts.auto_standardize or m.confidence >= CONFIDENCE_CANONICAL)

        mappings.append({
            "original": c.mnemonic,
            "standardized": m.standardized,
            "confidence": int(m.confidence),
            "category": m.category,
            "rule": m.rule,
            "applied": bool(applied),
        })

        if not m.matched:
            warnings.append(f"Unmapped mnemonic: {c.mnemonic}")
            curves.append(c)
            continue
        if not applied:
            suggestions.append(f"{c.mnemonic} could be {m.standardized} (confidence {m.confidence})")
            curves.append(c)
            continue

        new = replace(
            c,
            standard_mnemonic=m.standardized,
            category="depth" if c.data_type == "depth" else m.curve_type,
            confidence=int(m.confidence),
        )

        if not opts.preserve_original and m.standardized.upper() != c.mnemonic.upper():
            if m.standardized.upper() in taken:
                warnings.append(f"Cannot rename {c.mnemonic} to {m.standardized}: name already in use")
            else:
                taken.discard(c.mnemonic.upper())
                taken.add(m.standardized.upper())
                new = replace(new, mnemonic=m.standardized)

        target = standard_unit_for(m.standardized)
        src = norm_unit(c.unit)
        if target and src:
            if src == target:
                new = replace(new, standard_unit=target)
            elif opts.convert_units and c.data_type == "log":
                values, info = convert_array(grid.column(i), src, target, null_value=grid.null_value)
                conversions.append({
                    "curve": new.mnemonic,
                    "from_unit": info.from_unit,
                    "to_unit": info.to_unit,
                    "factor": float(info.factor),
                    "formula": info.formula,
                    "converted": bool(info.converted),
                })
                if info.converted:
                    grid = grid.with_column(i, values)
                    new = replace(new, unit=target, standard_unit=target)
                else:
                    warnings.append(f"{new.mnemonic}: {info.formula}")

        curves.append(new)

    out = replace(log, curves=tuple(curves), grid=grid if grid is not log.grid else log.grid.copy())
    return StandardizationResult(
        log=out,
        mappings=tuple(mappings),
        conversions=tuple(conversions),
        suggestions=tuple(suggestions),
        warnings=tuple(warnings),
    )
