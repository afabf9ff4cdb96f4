# src/logpolish/qc/quality.py
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, List, Literal, Optional, Tuple

import numpy as np

from logpolish.config.schema import ValidationOptions
from logpolish.io.logfile import LogFile, null_mask
from logpolish.qc.validation import ValidationReport, validate_log
from logpolish.signal.despike import hampel

Grade = Literal["A", "B", "C", "D", "F"]
RecommendationSeverity = Literal["critical", "warning", "info"]

GRADE_BANDS: Tuple[Tuple[float, Grade], ...] = ((90.0, "A"), (75.0, "B"), (60.0, "C"), (50.0, "D"))

QC_SPIKE_WINDOW = 7
QC_SPIKE_THRESHOLD = 3.0

W_COMPLETENESS = 0.4
W_NOISE = 0.3
W_SPIKES = 0.2
W_VALIDITY = 0.1

W_CURVES = 0.8
W_VALIDATION = 0.2

NOISY_LEVEL = 0.5
LOW_COMPLETENESS_PCT = 50.0


def grade_for(score: float) -> Grade:
    s = float(score)
    for lo, g in GRADE_BANDS:
        if s >= lo:
            return g
    return "F"


def noise_level(x: np.ndarray) -> float:
    """
    Roughness ratio std(diff(x)) / (sqrt(2) std(x)), clipped to [0, 1].
    About 1 for white noise, near 0 for smooth curves.
    """
    x = np.asarray(x, dtype="float64")
    if x.size < 3:
        return 0.0
    sd = float(np.std(x))
    if sd <= 0:
        return 0.0
    r = float(np.std(np.diff(x))) / (math.sqrt(2.0) * sd)
    return float(min(1.0, max(0.0, r)))


def spike_score(spikes: int, n_valid: int) -> float:
    """100 with no spikes, losing 10 points per percent of samples flagged."""
    if n_valid <= 0:
        return 0.0
    pct = 100.0 * float(spikes) / float(n_valid)
    return float(max(0.0, 100.0 - 10.0 * pct))


@dataclass(frozen=True)
class CurveQuality:
    mnemonic: str
    n_samples: int
    n_valid: int
    completeness_pct: float
    noise_pct: float
    spike_count: int
    physically_valid: bool
    score: float
    grade: Grade

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mnemonic": self.mnemonic,
            "n_samples": self.n_samples,
            "n_valid": self.n_valid,
            "completeness_pct": round(self.completeness_pct, 2),
            "noise_pct": round(self.noise_pct, 2),
            "spike_count": self.spike_count,
            "physically_valid": self.physically_valid,
            "score": round(self.score, 2),
            "grade": self.grade,
        }


@dataclass(frozen=True)
class Recommendation:
    severity: RecommendationSeverity
    message: str
    action: Optional[str] = None
    curve: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"severity": self.severity, "message": self.message, "action": self.action, "curve": self.curve}


@dataclass(frozen=True)
class QCResult:
    overall_score: float
    grade: Grade
    curves: Tuple[CurveQuality, ...]
    standardization: Dict[str, Any]
    validation: Dict[str, Any]
    recommendations: Tuple[Recommendation, ...] = ()

    def curve(self, mnemonic: str) -> Optional[CurveQuality]:
        for c in self.curves:
            if c.mnemonic.upper() == (mnemonic or "").upper():
                return c
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall_score": self.overall_score,
            "grade": self.grade,
            "curves": [c.to_dict() for c in self.curves],
            "standardization": dict(self.standardization),
            "validation": dict(self.validation),
            "recommendations": [r.to_dict() for r in self.recommendations],
        }


def curve_quality(mnemonic: str, values: np.ndarray, *, null_value: float, physically_valid: bool = True) -> CurveQuality:
    y = np.asarray(values, dtype="float64")
    ok = ~null_mask(y, null_value)
    x = y[ok]
    n, nv = int(y.size), int(x.size)
    completeness = 100.0 * (1.0 - (n - nv) / n) if n else 0.0

    if nv == 0:
        return CurveQuality(mnemonic, n, 0, completeness, 0.0, 0, False, 0.0, "F")

    noise = noise_level(x)
    spikes = int(hampel(x, window_size=QC_SPIKE_WINDOW, threshold=QC_SPIKE_THRESHOLD).sum())
    score = (
        W_COMPLETENESS * completeness
        + W_NOISE * (1.0 - noise) * 100.0
        + W_SPIKES * spike_score(spikes, nv)
        + W_VALIDITY * (100.0 if physically_valid else 0.0)
    )
    score = float(min(100.0, max(0.0, score)))
    return CurveQuality(
        mnemonic=mnemonic,
        n_samples=n,
        n_valid=nv,
        completeness_pct=completeness,
        noise_pct=noise * 100.0,
        spike_count=spikes,
        physically_valid=bool(physically_valid),
        score=score,
        grade=grade_for(score),
    )


def standardization_summary(log: LogFile) -> Dict[str, Any]:
    total = len(log.curves)
    std = [c for c in log.curves if c.standard_mnemonic]
    confs = [c.confidence for c in std]
    return {
        "curves_total": total,
        "curves_standardized": len(std),
        "mean_confidence": round(float(np.mean(confs)), 2) if confs else 0.0,
        "unmapped": [c.mnemonic for c in log.curves if not c.standard_mnemonic and c.data_type == "log"],
    }


_ISSUE_SEVERITY: Dict[int, RecommendationSeverity] = {3: "critical", 2: "warning", 1: "info"}

_ISSUE_ACTIONS: Dict[str, str] = {
    "depth": "Sort by depth and drop duplicate or negative depth rows",
    "range": "Check tool calibration and units; clip or null out-of-range samples",
    "cross_curve": "Review density and neutron matrix settings and borehole conditions",
    "data": "Drop the empty curve or re-export it from the source",
}


def build_recommendations(
    curves: Tuple[CurveQuality, ...],
    report: ValidationReport,
    standardization: Dict[str, Any],
) -> Tuple[Recommendation, ...]:
    out: List[Recommendation] = []
    for i in sorted(report.issues, key=lambda k: -k.severity):
        action = _ISSUE_ACTIONS.get(i.category)
        if i.auto_fixable and action:
            action = f"{action} (auto-fixable)"
        out.append(Recommendation(_ISSUE_SEVERITY.get(i.severity, "info"), i.message, action, i.curve))

    for c in curves:
        if c.grade == "F":
            out.append(Recommendation("critical", f"{c.mnemonic} quality grade F ({c.score:.1f})",
                                      "Inspect the curve before interpretation", c.mnemonic))
        elif c.grade == "D":
            out.append(Recommendation("warning", f"{c.mnemonic} quality grade D ({c.score:.1f})",
                                      "Consider reprocessing with stronger conditioning", c.mnemonic))
        if c.n_valid and c.completeness_pct < LOW_COMPLETENESS_PCT:
            out.append(Recommendation("warning", f"{c.mnemonic} is only {c.completeness_pct:.1f}% complete",
                                      "Check for missing intervals", c.mnemonic))
        if c.noise_pct > NOISY_LEVEL * 100.0:
            out.append(Recommendation("info", f"{c.mnemonic} is noisy ({c.noise_pct:.0f}%)",
                                      "Enable denoising", c.mnemonic))
        if c.spike_count:
            out.append(Recommendation("info", f"{c.mnemonic} has {c.spike_count} spikes",
                                      "Enable despiking", c.mnemonic))

    for m in standardization.get("unmapped", []):
        out.append(Recommendation("info", f"Mnemonic {m} is not recognised", "Add a custom alias", m))
    return tuple(out)


def assess_quality(
    log: LogFile,
    report: Optional[ValidationReport] = None,
    *,
    validation_opts: Optional[ValidationOptions] = None,
) -> QCResult:
    """
    Deterministic quality assessment of a log.

    Per curve:
      0.4 completeness + 0.3 (1 - noise) + 0.2 spike score + 0.1 physical validity
    Overall:
      0.8 mean curve score + 0.2 validation score, 2 decimals, within [0, 100]
    """
    if report is None:
        report = validate_log(log, validation_opts)

    labels = log.curve_labels()
    curves = tuple(
        curve_quality(
            labels[i],
            log.grid.column(i),
            null_value=log.null_value,
            physically_valid=bool(report.curve_validity.get(labels[i], True)),
        )
        for i in log.continuous_indices()
    )

    if curves:
        overall = W_CURVES * float(np.mean([c.score for c in curves])) + W_VALIDATION * report.score
    else:
        overall = report.score
    overall = round(float(min(100.0, max(0.0, overall))), 2)

    std = standardization_summary(log)
    return QCResult(
        overall_score=overall,
        grade=grade_for(overall),
        curves=curves,
        standardization=std,
        validation=report.summary(),
        recommendations=build_recommendations(curves, report, std),
    )
