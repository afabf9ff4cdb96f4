# src/logpolish/qc/validation.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

import numpy as np

from logpolish.config.schema import ValidationOptions
from logpolish.curves.normalize_header import (
    CANONICAL_CATEGORIES,
    CONFIDENCE_CANONICAL,
    aliases_for,
    standardize_mnemonic,
)
from logpolish.curves.units import STANDARD_UNITS, conversion_factor, norm_unit
from logpolish.io.logfile import Curve, LogFile, null_mask

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PhysicalBounds:
    hard_min: float
    hard_max: float
    typical_min: float
    typical_max: float
    unit: str


# Canonical (API) curve type -> bounds, in the standard unit for that type
PHYSICAL_BOUNDS: Dict[str, PhysicalBounds] = {
    "GR": PhysicalBounds(0.0, 300.0, 20.0, 150.0, "GAPI"),
    "RT": PhysicalBounds(0.1, 10000.0, 0.5, 1000.0, "OHMM"),
    "RHOB": PhysicalBounds(1.0, 3.5, 1.8, 2.8, "G/CC"),
    "NPHI": PhysicalBounds(-0.15, 1.0, 0.05, 0.4, "V/V"),
    "PE": PhysicalBounds(0.0, 10.0, 1.5, 5.0, "B/E"),
    "SP": PhysicalBounds(-200.0, 200.0, -100.0, 50.0, "MV"),
    "CAL": PhysicalBounds(4.0, 20.0, 6.0, 12.0, "IN"),
    "DT": PhysicalBounds(40.0, 200.0, 55.0, 140.0, "US/FT"),
}

# Density-neutron plausibility
DN_DENSITY_LIMIT = 2.6
DN_NEUTRON_LIMIT = 0.25
DN_TOLERANCE = 0.10

GAP_RANGE_FRACTION = 0.01
GAP_STEP_FACTOR = 1.5

MAX_INDICES = 1000


@dataclass(frozen=True)
class ValidationIssue:
    category: str
    kind: str
    message: str
    severity: int
    auto_fixable: bool = False
    curve: Optional[str] = None
    count: int = 0
    indices: Tuple[int, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "kind": self.kind,
            "curve": self.curve,
            "message": self.message,
            "severity": int(self.severity),
            "auto_fixable": bool(self.auto_fixable),
            "count": int(self.count),
            "indices": list(self.indices),
        }


@dataclass(frozen=True)
class ValidationReport:
    issues: Tuple[ValidationIssue, ...] = ()
    curves_checked: Tuple[str, ...] = ()
    # keyed by LogFile.curve_labels(), so repeated mnemonics stay apart
    curve_validity: Mapping[str, bool] = field(default_factory=dict)

    def _count(self, kind: str) -> int:
        return sum(1 for i in self.issues if i.kind == kind)

    @property
    def errors(self) -> int:
        return self._count("error")

    @property
    def warnings(self) -> int:
        return self._count("warning")

    @property
    def info(self) -> int:
        return self._count("info")

    @property
    def passed(self) -> bool:
        return self.errors == 0

    @property
    def score(self) -> float:
        s = 100.0 - 10.0 * self.errors - 3.0 * self.warnings - 1.0 * self.info
        return float(min(100.0, max(0.0, s)))

    def summary(self) -> Dict[str, Any]:
        by_cat: Dict[str, int] = {}
        for i in self.issues:
            by_cat[i.category] = by_cat.get(i.category, 0) + 1
        return {
            "passed": self.passed,
            "score": self.score,
            "errors": self.errors,
            "warnings": self.warnings,
            "info": self.info,
            "by_category": by_cat,
            "curves_checked": len(self.curves_checked),
        }

    def to_dict(self) -> Dict[str, Any]:
        out = self.summary()
        out["issues"] = [i.to_dict() for i in self.issues]
        out["curve_validity"] = dict(self.curve_validity)
        return out


# -----------------------------------------------------------------------------
# Helpers
# -----------------------------------------------------------------------------

def curve_type_of(curve: Curve) -> Optional[str]:
    """
    API canonical type for a curve: its standard mnemonic when set, else a
    high-confidence lookup of the raw name.
    """
    if curve.standard_mnemonic:
        fam = aliases_for(curve.standard_mnemonic)
        if fam and fam[0] in CANONICAL_CATEGORIES:
            return fam[0]
    m = standardize_mnemonic(curve.original_mnemonic or curve.mnemonic)
    if m.confidence >= CONFIDENCE_CANONICAL and m.standardized in CANONICAL_CATEGORIES:
        return m.standardized
    return None


def bounds_for(curve_type: str, overrides: Mapping[str, Tuple[float, float]]) -> Optional[PhysicalBounds]:
    """
    Built-in bounds, with hard limits replaced by a caller override keyed by the
    canonical type ("RHOB") or its category ("DENSITY").
    """
    base = PHYSICAL_BOUNDS.get(curve_type)
    cat = CANONICAL_CATEGORIES.get(curve_type, ("", ""))[0].upper()
    ov = overrides.get(curve_type) or (overrides.get(cat) if cat else None)
    if ov is None:
        return base
    lo, hi = float(ov[0]), float(ov[1])
    if base is None:
        return PhysicalBounds(lo, hi, lo, hi, STANDARD_UNITS.get(curve_type, ""))
    return PhysicalBounds(lo, hi, max(lo, base.typical_min), min(hi, base.typical_max), base.unit)


def _in_standard_unit(values: np.ndarray, curve: Curve, unit: str) -> np.ndarray:
    f = conversion_factor(curve.unit, unit) if norm_unit(curve.unit) else None
    if f is None or f == 1.0:
        return values
    return values * f


def _rows(mask: np.ndarray, flag: bool) -> Tuple[int, ...]:
    if not flag:
        return ()
    return tuple(int(i) for i in np.flatnonzero(mask)[:MAX_INDICES])


# -----------------------------------------------------------------------------
# Checks
# -----------------------------------------------------------------------------

def check_depth(log: LogFile, *, flag_outliers: bool = True) -> List[ValidationIssue]:
    issues: List[ValidationIssue] = []
    if not log.curves or log.grid.n_rows == 0:
        return issues

    depth = log.depth
    ok = ~null_mask(depth, log.null_value)
    rows = np.flatnonzero(ok)
    d = depth[ok]
    name = log.curves[log.grid.depth_index].mnemonic

    if rows.size < ok.size:
        miss = ~ok
        issues.append(ValidationIssue(
            category="depth", kind="error", curve=name, severity=3, auto_fixable=True,
            message=f"{int(miss.sum())} rows have no depth value",
            count=int(miss.sum()), indices=_rows(miss, flag_outliers),
        ))

    neg = d < 0
    if neg.any():
        issues.append(ValidationIssue(
            category="depth", kind="error", curve=name, severity=3, auto_fixable=True,
            message=f"{int(neg.sum())} negative depth values",
            count=int(neg.sum()), indices=tuple(int(r) for r in rows[neg][:MAX_INDICES]) if flag_outliers else (),
        ))

    if d.size < 2:
        return issues

    diffs = np.diff(d)
    bad = diffs <= 0
    if bad.any():
        issues.append(ValidationIssue(
            category="depth", kind="error", curve=name, severity=3, auto_fixable=True,
            message=f"{int(bad.sum())} non-monotonic depth steps (decreasing or duplicate)",
            count=int(bad.sum()), indices=tuple(int(r) for r in rows[1:][bad][:MAX_INDICES]) if flag_outliers else (),
        ))

    span = float(np.max(d) - np.min(d))
    pos = diffs[diffs > 0]
    step = abs(float(log.well.step)) if np.isfinite(log.well.step) and log.well.step != 0 else 0.0
    if step <= 0 and pos.size:
        step = float(np.median(pos))
    if span > 0 and step > 0:
        gap = (diffs > GAP_RANGE_FRACTION * span) & (diffs > GAP_STEP_FACTOR * step)
        if gap.any():
            biggest = float(diffs[gap].max())
            issues.append(ValidationIssue(
                category="depth", kind="warning", curve=name, severity=2, auto_fixable=False,
                message=f"{int(gap.sum())} depth gaps larger than 1% of the depth range (largest {biggest:g})",
                count=int(gap.sum()), indices=tuple(int(r) for r in rows[1:][gap][:MAX_INDICES]) if flag_outliers else (),
            ))
    return issues


def check_ranges(log: LogFile, opts: ValidationOptions) -> Tuple[List[ValidationIssue], Dict[str, bool], List[str]]:
    issues: List[ValidationIssue] = []
    validity: Dict[str, bool] = {}
    checked: List[str] = []

    labels = log.curve_labels()
    for i in log.continuous_indices():
        c = log.curves[i]
        label = labels[i]
        raw = log.grid.column(i)
        ok = ~null_mask(raw, log.null_value)
        if not ok.any():
            validity[label] = False
            issues.append(ValidationIssue(
                category="data", kind="warning", curve=label, severity=2, auto_fixable=False,
                message=f"{label} has no valid samples",
            ))
            continue

        ctype = curve_type_of(c)
        b = bounds_for(ctype, opts.physical_ranges) if ctype else None
        if b is None:
            validity[label] = True
            continue

        checked.append(label)
        v = _in_standard_unit(raw, c, b.unit)
        hard = ok & ((v < b.hard_min) | (v > b.hard_max))
        typ = ok & ~hard & ((v < b.typical_min) | (v > b.typical_max))
        validity[label] = not bool(hard.any())

        if hard.any():
            issues.append(ValidationIssue(
                category="range", kind="error", curve=label, severity=3, auto_fixable=False,
                message=(
                    f"{label}: {int(hard.sum())} values outside physical limits "
                    f"{b.hard_min:g}-{b.hard_max:g} {b.unit}"
                ),
                count=int(hard.sum()), indices=_rows(hard, opts.flag_outliers),
            ))
        if typ.any():
            issues.append(ValidationIssue(
                category="range", kind="warning", curve=label, severity=1, auto_fixable=False,
                message=(
                    f"{label}: {int(typ.sum())} values outside typical range "
                    f"{b.typical_min:g}-{b.typical_max:g} {b.unit}"
                ),
                count=int(typ.sum()), indices=_rows(typ, opts.flag_outliers),
            ))
    return issues, validity, checked


def _first_of_type(log: LogFile, curve_type: str) -> Optional[int]:
    for i in log.continuous_indices():
        if curve_type_of(log.curves[i]) == curve_type:
            return i
    return None


def check_density_neutron(log: LogFile, *, flag_outliers: bool = True) -> List[ValidationIssue]:
    """
    High density together with high neutron porosity is implausible in typical
    reservoir rock; flag when it covers more than 10% of the shared samples.
    """
    i_d = _first_of_type(log, "RHOB")
    i_n = _first_of_type(log, "NPHI")
    if i_d is None or i_n is None:
        return []

    labels = log.curve_labels()
    rhob = log.grid.column(i_d)
    nphi = log.grid.column(i_n)
    both = ~null_mask(rhob, log.null_value) & ~null_mask(nphi, log.null_value)
    n = int(both.sum())
    if n == 0:
        return []

    rhob = _in_standard_unit(rhob, log.curves[i_d], "G/CC")
    nphi = _in_standard_unit(nphi, log.curves[i_n], "V/V")
    bad = both & (rhob > DN_DENSITY_LIMIT) & (nphi > DN_NEUTRON_LIMIT)
    frac = float(bad.sum()) / float(n)
    if frac <= DN_TOLERANCE:
        return []
    return [ValidationIssue(
        category="cross_curve", kind="warning", severity=2, auto_fixable=False,
        curve=f"{labels[i_d]}/{labels[i_n]}",
        message=(
            f"Density-neutron inconsistency: {frac * 100:.1f}% of samples have "
            f"density > {DN_DENSITY_LIMIT} g/cc with neutron porosity > {DN_NEUTRON_LIMIT} v/v"
        ),
        count=int(bad.sum()), indices=_rows(bad, flag_outliers),
    )]


def validate_log(log: LogFile, opts: Optional[ValidationOptions] = None) -> ValidationReport:
    """
    Depth integrity, physical ranges and cross-curve consistency. Advisory only:
    findings are returned, nothing is raised for bad data.
    """
    opts = opts or ValidationOptions()
    issues: List[ValidationIssue] = []
    issues.extend(check_depth(log, flag_outliers=opts.flag_outliers))
    range_issues, validity, checked = check_ranges(log, opts)
    issues.extend(range_issues)
    if opts.cross_validation:
        issues.extend(check_density_neutron(log, flag_outliers=opts.flag_outliers))

    logger.debug("validation %s: %d issues", log.name, len(issues))
    return ValidationReport(issues=tuple(issues), curves_checked=tuple(checked), curve_validity=validity)
